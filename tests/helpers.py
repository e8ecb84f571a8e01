import io
import threading
from typing import Iterable, List, Optional

import numpy as np
import torch

from core.errors import InferenceError
from core.video_processor import VideoSource


class TinyClassifier(torch.nn.Module):
    """Pools an NHWC image to its mean colour and maps it to class probabilities."""

    def __init__(self, num_classes: int):
        super().__init__()
        self.linear = torch.nn.Linear(3, num_classes)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        pooled = x.mean(dim=(1, 2))
        return torch.softmax(self.linear(pooled), dim=-1)


class ExplodingClassifier(torch.nn.Module):
    """Accepts the all-zero load-time check but fails on any non-zero input."""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if bool(x.sum() > 0):
            raise RuntimeError("boom")
        return torch.zeros(1, 2)


class ChannelsFirstClassifier(torch.nn.Module):
    """Expects a 224x224 NCHW input and so rejects the load-time check."""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x.reshape(1, 3, 224, 224).mean(dim=(2, 3))


def script_to_bytes(module: torch.nn.Module) -> bytes:
    buf = io.BytesIO()
    torch.jit.save(torch.jit.script(module), buf)
    return buf.getvalue()


class StubModel:
    """ModelHandle stand-in returning fixed vectors; failing calls raise InferenceError."""

    def __init__(self, vector: Iterable[float] = (0.7, 0.3), fail_on: Iterable[int] = ()):
        self.vector = np.asarray(list(vector), dtype=np.float32)
        self.num_classes = len(self.vector)
        self.fail_on = set(fail_on)
        self.calls = 0

    def predict(self, tensor: np.ndarray) -> np.ndarray:
        assert tensor.shape == (256 * 256 * 3,)
        assert tensor.dtype == np.float32
        call = self.calls
        self.calls += 1
        if call in self.fail_on:
            raise InferenceError(f"failure on call {call}")
        return self.vector.copy()


class FakeVideoSource(VideoSource):
    """In-memory video: one solid frame per second, with optional decode failures.

    Seconds in ``fail_seconds`` return no frame; seconds in ``raise_seconds``
    make ``frame_at`` raise RuntimeError.
    """

    def __init__(self, duration_ms: Optional[int], fail_seconds: Iterable[int] = (),
                 raise_seconds: Iterable[int] = (), size=(48, 64)):
        self._duration_ms = duration_ms
        self.fail_seconds = set(fail_seconds)
        self.raise_seconds = set(raise_seconds)
        self.size = size
        self.requested: List[int] = []
        self.release_count = 0

    @property
    def released(self) -> bool:
        return self.release_count > 0

    def duration_ms(self) -> Optional[int]:
        return self._duration_ms

    def frame_at(self, timestamp_ms: int) -> Optional[np.ndarray]:
        assert not self.released, "frame requested after release"
        self.requested.append(timestamp_ms)
        second = timestamp_ms // 1000
        if second in self.raise_seconds:
            raise RuntimeError(f"decoder crashed at {second}s")
        if second in self.fail_seconds:
            return None
        h, w = self.size
        return np.full((h, w, 3), second % 256, dtype=np.uint8)

    def release(self) -> None:
        self.release_count += 1


class BlockingVideoSource(FakeVideoSource):
    """Signals when the first frame is requested, then blocks until ``gate`` is set."""

    def __init__(self, duration_ms: int):
        super().__init__(duration_ms)
        self.started = threading.Event()
        self.gate = threading.Event()

    def frame_at(self, timestamp_ms: int) -> Optional[np.ndarray]:
        self.started.set()
        self.gate.wait(timeout=10)
        return super().frame_at(timestamp_ms)
