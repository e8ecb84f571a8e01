"""
Video processing module for metadata lookup and per-second frame sampling.
"""

import cv2
import random
import numpy as np
from pathlib import Path
from typing import List, Optional, Iterator, NamedTuple, Sequence
import logging

from core.errors import MediaDecodeError, MediaLoadError

logger = logging.getLogger(__name__)

SAMPLING_MODES = ("random", "stride")


class SampledFrame(NamedTuple):
    """Container for one extracted frame."""
    index: int
    second: int
    timestamp_ms: int
    pixels: np.ndarray


class VideoSource:
    """Seekable video source interface used by FrameSampler.

    Implementations return the duration in milliseconds (None when unknown),
    an RGB frame for a timestamp (None when the decoder has no frame), and
    release their decoder resources on ``release()``.
    """

    def duration_ms(self) -> Optional[int]:
        raise NotImplementedError

    def frame_at(self, timestamp_ms: int) -> Optional[np.ndarray]:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class OpenCVVideoSource(VideoSource):
    """VideoSource backed by cv2.VideoCapture."""

    def __init__(self, video_path: str):
        self.video_path = str(video_path)
        if not Path(self.video_path).exists():
            raise MediaLoadError(f"Video file not found: {self.video_path}")

        self._cap = cv2.VideoCapture(self.video_path)
        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            raise MediaDecodeError(f"Failed to open video: {self.video_path}")

    @property
    def released(self) -> bool:
        return self._cap is None

    def duration_ms(self) -> Optional[int]:
        if self._cap is None:
            return None
        total_frames = self._cap.get(cv2.CAP_PROP_FRAME_COUNT)
        fps = self._cap.get(cv2.CAP_PROP_FPS)
        if total_frames <= 0 or fps <= 0:
            return None
        return int(total_frames / fps * 1000)

    def frame_at(self, timestamp_ms: int) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        self._cap.set(cv2.CAP_PROP_POS_MSEC, float(timestamp_ms))
        success, frame = self._cap.read()
        if not success or frame is None:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class FrameSampler:
    """Selects whole-second timestamps from a video and extracts one frame per timestamp."""

    def __init__(self, max_frames: int = 50, mode: str = "random", seed: Optional[int] = None):
        if max_frames < 1:
            raise ValueError(f"max_frames must be >= 1, got {max_frames}")
        if mode not in SAMPLING_MODES:
            raise ValueError(f"Unknown sampling mode: {mode}")
        self.max_frames = int(max_frames)
        self.mode = mode
        self._rng = random.Random(seed)

    @staticmethod
    def candidate_seconds(duration_ms: Optional[int]) -> List[int]:
        """Whole seconds 0..n-1 where n = max(1, floor(duration_ms / 1000))."""
        if duration_ms is None or duration_ms <= 0:
            logger.warning("Video duration unknown, assuming 1 second")
            duration_ms = 1000
        count = max(1, int(duration_ms) // 1000)
        return list(range(count))

    def select_timestamps(self, duration_ms: Optional[int]) -> List[int]:
        """
        Choose which seconds to sample.

        All candidates are kept when there are at most ``max_frames`` of them.
        Otherwise ``max_frames`` distinct seconds are picked, at random or by
        an even stride depending on ``mode``. The result is in increasing order.
        """
        candidates = self.candidate_seconds(duration_ms)
        if len(candidates) <= self.max_frames:
            return candidates

        if self.mode == "stride":
            idx = np.linspace(0, len(candidates) - 1, num=self.max_frames, endpoint=True)
            chosen = [candidates[i] for i in np.rint(idx).astype(int)]
        else:
            chosen = self._rng.sample(candidates, self.max_frames)

        logger.info(
            f"Down-sampled {len(candidates)} candidate seconds to {self.max_frames} ({self.mode})"
        )
        return sorted(chosen)

    def sample(self, source: VideoSource, timestamps: Optional[Sequence[int]] = None) -> Iterator[SampledFrame]:
        """Yield frames for the selected seconds and release the source when done.

        Seconds whose extraction returns no frame or raises are skipped. The source is
        released when the generator finishes, is closed, or raises.
        """
        try:
            if timestamps is None:
                timestamps = self.select_timestamps(source.duration_ms())
            for index, second in enumerate(timestamps):
                timestamp_ms = int(second) * 1000
                try:
                    frame = source.frame_at(timestamp_ms)
                except Exception as e:
                    logger.warning(f"Frame extraction failed at {second}s: {e}")
                    continue
                if frame is None:
                    logger.debug(f"No frame at {second}s, skipping")
                    continue
                yield SampledFrame(index=index, second=int(second), timestamp_ms=timestamp_ms, pixels=frame)
        finally:
            source.release()
