"""
Tensor preprocessing: resample a decoded image and flatten it into the
normalized buffer the classifier expects.
"""

from typing import Union

import numpy as np
import torchvision.transforms as transforms
from PIL import Image

INPUT_SIZE = 256

PixelSource = Union[np.ndarray, Image.Image]


def _to_pil(pixels: PixelSource) -> Image.Image:
    if pixels is None:
        raise ValueError("preprocess requires an image, got None")
    if isinstance(pixels, Image.Image):
        return pixels.convert("RGB")
    arr = np.asarray(pixels)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError(f"Expected an HxWx3 RGB array, got shape {arr.shape}")
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    return Image.fromarray(np.ascontiguousarray(arr))


def build_resize(size: int = INPUT_SIZE) -> transforms.Resize:
    # A (h, w) tuple stretches to the exact size; no crop, no letterbox.
    return transforms.Resize(
        (size, size),
        interpolation=transforms.InterpolationMode.BILINEAR,
        antialias=True,
    )


def resample(pixels: PixelSource, size: int = INPUT_SIZE) -> Image.Image:
    """Stretch an image to ``size x size`` with a bilinear filter."""
    return build_resize(size)(_to_pil(pixels))


def preprocess(pixels: PixelSource, size: int = INPUT_SIZE) -> np.ndarray:
    """
    Convert an RGB image into a flat float32 tensor of length ``size*size*3``.

    The image is resampled to ``size x size`` first. Channels are scaled to
    [0, 1] and laid out row-major with R, G, B interleaved per pixel.

    Args:
        pixels: HxWx3 uint8 RGB array or a PIL image.
        size: Target width and height.

    Returns:
        1-D native-endian float32 array.
    """
    image = pixels if _is_resampled(pixels, size) else resample(pixels, size)
    chw = transforms.ToTensor()(image)  # (C, H, W), scaled by 1/255
    hwc = chw.permute(1, 2, 0).contiguous()
    tensor = hwc.reshape(-1).numpy().astype(np.float32, copy=False)
    return tensor


def _is_resampled(pixels: PixelSource, size: int) -> bool:
    return (
        isinstance(pixels, Image.Image)
        and pixels.mode == "RGB"
        and pixels.size == (size, size)
    )
