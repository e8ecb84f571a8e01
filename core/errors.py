"""
Error kinds raised by the detection pipeline.
"""


class DetectionError(Exception):
    """Base class for pipeline errors."""


class ModelLoadError(DetectionError):
    """Model asset missing, corrupt, or in an unsupported format."""


class MediaLoadError(DetectionError):
    """Media source absent or unreadable."""


class MediaDecodeError(DetectionError):
    """Image bytes not decodable, or video rejected by the decoder."""


class InferenceError(DetectionError):
    """Tensor shape mismatch or runtime failure during predict."""


class AnalysisCancelled(DetectionError):
    """Raised inside a run once its cancellation token is set."""
