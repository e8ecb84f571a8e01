import io
import logging
import threading
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

import numpy as np
from PIL import Image

from core.errors import AnalysisCancelled, InferenceError, MediaDecodeError, MediaLoadError
from core.preprocessor import INPUT_SIZE, preprocess, resample
from core.video_processor import FrameSampler, OpenCVVideoSource, VideoSource

logger = logging.getLogger(__name__)

IMAGE_LABEL = "Uploaded Image"

ProgressCallback = Callable[[float, str], None]


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class AnalysisRequest:
    """One user-selected media source and its kind."""
    source: object
    kind: MediaKind


@dataclass(frozen=True, eq=False)
class FrameResult:
    label: str
    thumbnail: np.ndarray
    probabilities: Optional[Tuple[float, ...]]
    timestamp_seconds: Optional[int] = None

    @property
    def has_prediction(self) -> bool:
        return self.probabilities is not None


class CancellationToken:
    """Cooperative cancellation flag checked between units of work."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis cancelled")


def frame_label(second: int) -> str:
    return f"Frame at {second + 1} sec"


def decode_image(source: Union[str, Path, bytes, Image.Image, np.ndarray]) -> Image.Image:
    """Decode an image source into an RGB PIL image.

    Raises:
        MediaLoadError: nothing selected, file missing or unreadable.
        MediaDecodeError: bytes are not a decodable image.
    """
    if source is None:
        raise MediaLoadError("No image selected")
    if isinstance(source, Image.Image):
        return source.convert("RGB")
    if isinstance(source, np.ndarray):
        if source.ndim != 3 or source.shape[2] != 3:
            raise MediaDecodeError(f"Expected an HxWx3 RGB array, got shape {source.shape}")
        arr = source if source.dtype == np.uint8 else np.clip(source, 0, 255).astype(np.uint8)
        return Image.fromarray(np.ascontiguousarray(arr))

    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
        name = "<bytes>"
    else:
        path = Path(source)
        if not path.is_file():
            raise MediaLoadError(f"Image file not found: {path}")
        try:
            data = path.read_bytes()
        except OSError as e:
            raise MediaLoadError(f"Could not read image {path}: {e}") from e
        name = str(path)

    if not data:
        raise MediaLoadError(f"Image is empty: {name}")
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.convert("RGB")
    except Exception as e:
        raise MediaDecodeError(f"Could not decode image {name}: {e}") from e


def _predict_unit(model, image: Image.Image, size: int) -> Tuple[np.ndarray, Optional[Tuple[float, ...]]]:
    """Resample, preprocess and predict one unit; a failed predict yields None."""
    resized = resample(image, size)
    tensor = preprocess(resized, size)
    thumbnail = np.asarray(resized)
    try:
        probs = model.predict(tensor)
    except InferenceError as e:
        logger.warning(f"Prediction failed: {e}")
        return thumbnail, None
    return thumbnail, tuple(float(p) for p in probs)


def _report(progress_callback: Optional[ProgressCallback], fraction: float, status: str) -> None:
    if progress_callback is not None:
        progress_callback(min(1.0, max(0.0, fraction)), status)


def analyze_image(
    source,
    *,
    model,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    input_size: int = INPUT_SIZE,
) -> List[FrameResult]:
    """Classify a single image; returns one FrameResult labeled 'Uploaded Image'."""
    cancel_token = cancel_token or CancellationToken()
    _report(progress_callback, 0.0, "Decoding image")
    image = decode_image(source)
    cancel_token.raise_if_cancelled()

    thumbnail, probs = _predict_unit(model, image, input_size)
    cancel_token.raise_if_cancelled()

    result = FrameResult(label=IMAGE_LABEL, thumbnail=thumbnail, probabilities=probs)
    _report(progress_callback, 1.0, "Analysis complete")
    return [result]


def analyze_video(
    source: Union[str, Path, VideoSource],
    *,
    model,
    sampler: Optional[FrameSampler] = None,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    input_size: int = INPUT_SIZE,
) -> List[FrameResult]:
    """
    Sample frames from a video and classify each one in sampling order.

    Args:
        source: Video path or an open VideoSource.
        model: ModelHandle (anything with ``predict(tensor)``).
        sampler: FrameSampler; defaults to 50 random frames.
        progress_callback: Called with (fraction, status) after every unit.
        cancel_token: Checked before each unit.

    Returns:
        Ordered FrameResults, one per extracted frame.
    """
    if source is None:
        raise MediaLoadError("No video selected")
    sampler = sampler or FrameSampler()
    cancel_token = cancel_token or CancellationToken()

    video = source if isinstance(source, VideoSource) else OpenCVVideoSource(str(source))
    try:
        cancel_token.raise_if_cancelled()
        timestamps = sampler.select_timestamps(video.duration_ms())
        total = len(timestamps)
        logger.info(f"Analyzing {total} frame(s)")
        _report(progress_callback, 0.0, f"Extracting frames (0/{total})")
    except BaseException:
        video.release()
        raise

    results: List[FrameResult] = []
    with closing(sampler.sample(video, timestamps)) as frames:
        for frame in frames:
            cancel_token.raise_if_cancelled()
            image = Image.fromarray(np.ascontiguousarray(frame.pixels))
            thumbnail, probs = _predict_unit(model, image, input_size)
            cancel_token.raise_if_cancelled()
            results.append(FrameResult(
                label=frame_label(frame.second),
                thumbnail=thumbnail,
                probabilities=probs,
                timestamp_seconds=frame.second,
            ))
            _report(progress_callback, (frame.index + 1) / total, f"Analyzed frame {frame.index + 1}/{total}")
            # stop before the sampler decodes the next frame
            cancel_token.raise_if_cancelled()

    if len(results) < total:
        logger.info(f"Extracted {len(results)} of {total} frames")
    _report(progress_callback, 1.0, "Analysis complete")
    return results


def analyze(
    request: AnalysisRequest,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    *,
    model,
    sampler: Optional[FrameSampler] = None,
    input_size: int = INPUT_SIZE,
) -> List[FrameResult]:
    """Run one analysis request through the image or video path."""
    kind = MediaKind(request.kind)
    if kind is MediaKind.IMAGE:
        return analyze_image(
            request.source,
            model=model,
            progress_callback=progress_callback,
            cancel_token=cancel_token,
            input_size=input_size,
        )
    return analyze_video(
        request.source,
        model=model,
        sampler=sampler,
        progress_callback=progress_callback,
        cancel_token=cancel_token,
        input_size=input_size,
    )
