"""
Analysis controller: owns the model handle and the pipeline state, and runs
one analysis at a time on a background worker.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional

from core.errors import AnalysisCancelled, DetectionError, ModelLoadError
from core.preprocessor import INPUT_SIZE
from core.runner import AnalysisRequest, CancellationToken, FrameResult, MediaKind, analyze
from core.video_processor import FrameSampler, VideoSource
from utils.labels import Verdict, aggregate_verdict

logger = logging.getLogger(__name__)


class Screen(str, Enum):
    UPLOAD = "upload"
    PROGRESS = "progress"
    RESULTS = "results"


@dataclass(frozen=True)
class PipelineState:
    model_ready: bool = False
    model_error: Optional[str] = None
    screen: Screen = Screen.UPLOAD
    progress: float = 0.0
    status: str = ""
    results: List[FrameResult] = field(default_factory=list)
    verdict: Optional[Verdict] = None
    error: Optional[str] = None


StateListener = Callable[[PipelineState], None]


class AnalysisController:
    """Presentation-facing entry point: start/cancel commands plus a state stream.

    Args:
        model_loader: Zero-argument callable returning a ModelHandle.
        sampler: FrameSampler used for video requests.
        input_size: Side length of the model input.
    """

    def __init__(self, model_loader: Callable[[], object], sampler: Optional[FrameSampler] = None, input_size: int = INPUT_SIZE):
        self._model_loader = model_loader
        self._sampler = sampler or FrameSampler()
        self._input_size = input_size
        self._model = None

        self._lock = threading.Lock()
        self._state = PipelineState()
        self._listeners: List[StateListener] = []
        self._generation = 0
        self._token: Optional[CancellationToken] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="analysis")

    @property
    def state(self) -> PipelineState:
        with self._lock:
            return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener for state snapshots; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _update(self, generation: Optional[int] = None, **changes) -> bool:
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._state = replace(self._state, **changes)
            snapshot = self._state
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener failed")
        return True

    def load_model(self) -> bool:
        """Load the model once per session. Never raises; failures land in state."""
        if self._model is not None:
            return True
        try:
            self._model = self._model_loader()
        except ModelLoadError as e:
            logger.error(f"Model unavailable: {e}")
            self._update(model_ready=False, model_error=str(e))
            return False
        self._update(model_ready=True, model_error=None)
        return True

    def start_analysis(self, source, kind) -> Future:
        """Cancel any in-flight run and start analyzing ``source``."""
        request = AnalysisRequest(source=source, kind=MediaKind(kind))
        token = CancellationToken()
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._token = token
            self._generation += 1
            generation = self._generation

        self._update(
            generation,
            screen=Screen.PROGRESS,
            progress=0.0,
            status="Starting analysis",
            results=[],
            verdict=None,
            error=None,
        )
        return self._executor.submit(self._run, request, token, generation)

    def cancel_current_analysis(self) -> None:
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._token = None
            self._generation += 1
            generation = self._generation
        self._update(generation, screen=Screen.UPLOAD, progress=0.0, status="", results=[], verdict=None)

    def _run(self, request: AnalysisRequest, token: CancellationToken, generation: int) -> List[FrameResult]:
        if token.cancelled:
            self._discard(request)
            return []
        if self._model is None:
            self._discard(request)
            self._fail(generation, self.state.model_error or "Model not loaded")
            return []

        def on_progress(fraction: float, status: str):
            self._update(generation, progress=fraction, status=status)

        try:
            results = analyze(
                request,
                on_progress,
                token,
                model=self._model,
                sampler=self._sampler,
                input_size=self._input_size,
            )
        except AnalysisCancelled:
            logger.info("Analysis cancelled")
            return []
        except DetectionError as e:
            logger.error(f"Analysis failed: {e}")
            self._fail(generation, str(e))
            return []
        except Exception as e:
            logger.exception(f"Unexpected error during analysis: {e}")
            self._fail(generation, f"Analysis failed: {e}")
            return []

        if token.cancelled:
            return []
        verdict = aggregate_verdict(r.probabilities for r in results)
        self._update(
            generation,
            screen=Screen.RESULTS,
            progress=1.0,
            status="Analysis complete",
            results=list(results),
            verdict=verdict,
        )
        self._release_token(token)
        return results

    @staticmethod
    def _discard(request: AnalysisRequest) -> None:
        # a run that never starts still owns the video handle it was given
        if isinstance(request.source, VideoSource):
            request.source.release()

    def _fail(self, generation: int, message: str) -> None:
        self._update(generation, screen=Screen.UPLOAD, progress=0.0, status="", results=[], verdict=None, error=message)

    def _release_token(self, token: CancellationToken) -> None:
        with self._lock:
            if self._token is token:
                self._token = None

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._token = None
        self._executor.shutdown(wait=wait)
