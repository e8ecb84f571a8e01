"""Core inference components (preprocessing, frame sampling, runners)."""

from .errors import (
    DetectionError,
    ModelLoadError,
    MediaLoadError,
    MediaDecodeError,
    InferenceError,
    AnalysisCancelled,
)
from .preprocessor import preprocess, resample
from .video_processor import FrameSampler, OpenCVVideoSource, SampledFrame, VideoSource
from .runner import AnalysisRequest, CancellationToken, FrameResult, MediaKind, analyze
from .controller import AnalysisController, PipelineState, Screen

__all__ = [
    "DetectionError",
    "ModelLoadError",
    "MediaLoadError",
    "MediaDecodeError",
    "InferenceError",
    "AnalysisCancelled",
    "preprocess",
    "resample",
    "FrameSampler",
    "OpenCVVideoSource",
    "SampledFrame",
    "VideoSource",
    "AnalysisRequest",
    "CancellationToken",
    "FrameResult",
    "MediaKind",
    "analyze",
    "AnalysisController",
    "PipelineState",
    "Screen",
]
