import io
import logging
import threading
import zipfile
from pathlib import Path
from typing import Optional, Union

import numpy as np
import torch

from core.errors import InferenceError, ModelLoadError
from core.preprocessor import INPUT_SIZE

logger = logging.getLogger(__name__)

# TorchScript lite archive produced by optimize_for_mobile + _save_for_lite_interpreter
MOBILE_SUFFIXES = (".ptl",)
ALTERNATE_SUFFIXES = (".pt", ".pth", ".onnx", ".tflite")


class ModelHandle:
    """A loaded classifier with a single predict operation.

    The number of output classes is discovered from the model itself by a
    forward pass on a blank input at load time.
    """

    def __init__(self, module: torch.nn.Module, *, input_size: int = INPUT_SIZE, source: str = "<bytes>"):
        self.module = module.eval()
        self.input_size = int(input_size)
        self.source = source
        self._lock = threading.Lock()
        self.num_classes = self._discover_num_classes()

    @property
    def input_length(self) -> int:
        return self.input_size * self.input_size * 3

    def _discover_num_classes(self) -> int:
        blank = torch.zeros(1, self.input_size, self.input_size, 3, dtype=torch.float32)
        try:
            with torch.inference_mode():
                out = self.module(blank)
        except Exception as e:
            raise ModelLoadError(f"Model {self.source} rejected a blank input of shape {tuple(blank.shape)}: {e}") from e
        if not isinstance(out, torch.Tensor):
            raise ModelLoadError(f"Model {self.source} returned {type(out).__name__}, expected a tensor")
        n = int(out.reshape(-1).numel())
        if n < 1:
            raise ModelLoadError(f"Model {self.source} produced an empty output")
        return n

    def predict(self, tensor: np.ndarray) -> np.ndarray:
        """Run the classifier on one normalized tensor.

        Args:
            tensor: Flat float32 buffer of length input_size*input_size*3.

        Returns:
            Probability vector of length ``num_classes`` (not re-normalized).
        """
        arr = np.asarray(tensor, dtype=np.float32)
        if arr.size != self.input_length:
            raise InferenceError(f"Tensor length {arr.size} does not match model input {self.input_length}")
        x = torch.from_numpy(np.ascontiguousarray(arr)).reshape(1, self.input_size, self.input_size, 3)

        with self._lock:
            try:
                with torch.inference_mode():
                    out = self.module(x)
            except Exception as e:
                raise InferenceError(f"Model forward failed: {e}") from e

        probs = out.detach().reshape(-1).float().cpu().numpy()
        if probs.shape[0] != self.num_classes:
            raise InferenceError(f"Model returned {probs.shape[0]} values, expected {self.num_classes}")
        return probs


def load_model(model_bytes: Optional[bytes], *, input_size: int = INPUT_SIZE, source: str = "<bytes>") -> ModelHandle:
    """Deserialize a TorchScript archive into a ModelHandle.

    Raises:
        ModelLoadError: bytes absent, truncated, or not a TorchScript archive.
    """
    if not model_bytes:
        raise ModelLoadError(f"Model bytes are empty: {source}")
    buf = io.BytesIO(model_bytes)
    if not zipfile.is_zipfile(buf):
        raise ModelLoadError(f"Not a recognized serialized-model format: {source}")
    buf.seek(0)
    try:
        module = torch.jit.load(buf, map_location="cpu")
    except Exception as e:
        raise ModelLoadError(f"Failed to deserialize model {source}: {e}") from e
    handle = ModelHandle(module, input_size=input_size, source=source)
    logger.info(f"Loaded model {source} ({handle.num_classes} output classes)")
    return handle


def find_model_asset(asset_dir: Union[str, Path]) -> Path:
    """Locate the bundled model file, preferring the mobile-optimized format."""
    asset_dir = Path(asset_dir)
    if not asset_dir.is_dir():
        raise ModelLoadError(f"Model asset directory not found: {asset_dir}")

    files = sorted(p for p in asset_dir.iterdir() if p.is_file())
    mobile = [p for p in files if p.suffix.lower() in MOBILE_SUFFIXES]
    alternate = [p for p in files if p.suffix.lower() in ALTERNATE_SUFFIXES]

    if mobile:
        if len(mobile) > 1:
            logger.warning(f"Multiple mobile models in {asset_dir}, using {mobile[0].name}")
        return mobile[0]
    if alternate:
        return alternate[0]
    raise ModelLoadError(f"No model asset found in {asset_dir}")


def load_model_asset(asset_dir: Union[str, Path], *, input_size: int = INPUT_SIZE) -> ModelHandle:
    path = find_model_asset(asset_dir)
    if path.suffix.lower() not in MOBILE_SUFFIXES:
        raise ModelLoadError(f"Unsupported model format '{path.suffix}' ({path.name}); expected one of {MOBILE_SUFFIXES}")
    try:
        model_bytes = path.read_bytes()
    except OSError as e:
        raise ModelLoadError(f"Could not read model asset {path}: {e}") from e
    return load_model(model_bytes, input_size=input_size, source=path.name)
