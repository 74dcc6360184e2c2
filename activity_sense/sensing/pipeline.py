"""
Bounded, off-thread processing of completed frames.

Each dispatched frame runs preprocess -> extract -> predict on a worker
thread.  The number of frames in flight is bounded by ``max_pending_frames``
and the backpressure policy decides what happens at the bound:

    drop  -- the new frame is discarded and counted (producer never waits)
    block -- the producer waits until a slot frees up
    queue -- the bound is ignored and frames queue without limit

Predictions run on a separate executor so a hung classifier can be
abandoned after ``inference_timeout`` seconds with ``InferenceTimeoutError``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np
from numpy.typing import NDArray

from activity_sense.config.settings import Settings
from activity_sense.sensing.classifier import (
    ActivityLabel,
    ClassifierGateway,
    InferenceError,
    InferenceTimeoutError,
)
from activity_sense.sensing.feature_extractor import FrameFeatureExtractor
from activity_sense.sensing.preprocessing import preprocess
from activity_sense.sensing.windowing import Frame

logger = logging.getLogger(__name__)


class PipelineClosedError(Exception):
    """Exception raised when a frame is dispatched after shutdown."""
    pass


class BackpressurePolicy(str, Enum):
    """What to do with a new frame when ``max_pending_frames`` are in flight."""

    DROP = "drop"
    BLOCK = "block"
    QUEUE = "queue"


@dataclass(frozen=True)
class FrameResult:
    """Outcome of one successful pipeline run."""

    frame_index: int
    label: ActivityLabel
    features: NDArray[np.float32]


ResultCallback = Callable[[Frame, FrameResult], None]
ErrorCallback = Callable[[Frame, BaseException], None]


class FramePipeline:
    """
    Executor wrapper that turns frames into activity labels.

    Parameters
    ----------
    classifier : ClassifierGateway
        Loaded classifier; shared by all workers.
    extractor : FrameFeatureExtractor, optional
        Feature extractor (a default instance is created if omitted).
    max_workers : int
        Worker threads.  One worker keeps completion order equal to
        dispatch order.
    max_pending_frames : int
        Bound on frames dispatched but not yet completed.
    backpressure_policy : str or BackpressurePolicy
        ``drop``, ``block`` or ``queue``.
    inference_timeout : float or None
        Seconds to wait for ``classifier.predict``; ``None`` waits forever.
    """

    def __init__(
        self,
        classifier: ClassifierGateway,
        extractor: Optional[FrameFeatureExtractor] = None,
        max_workers: int = 1,
        max_pending_frames: int = 8,
        backpressure_policy: str = "drop",
        inference_timeout: Optional[float] = 2.0,
    ) -> None:
        if max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        if max_pending_frames <= 0:
            raise ValueError(f"max_pending_frames must be positive, got {max_pending_frames}")
        if inference_timeout is not None and inference_timeout <= 0:
            raise ValueError(f"inference_timeout must be positive, got {inference_timeout}")

        self._classifier = classifier
        self._extractor = extractor or FrameFeatureExtractor()
        self._policy = BackpressurePolicy(backpressure_policy)
        self._max_pending = max_pending_frames
        self._inference_timeout = inference_timeout

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="frame-worker"
        )
        self._inference_executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="frame-inference"
        )
        self._slots = threading.BoundedSemaphore(max_pending_frames)

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._dropped = 0
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        classifier: ClassifierGateway,
        extractor: Optional[FrameFeatureExtractor] = None,
    ) -> "FramePipeline":
        return cls(
            classifier,
            extractor=extractor,
            max_workers=settings.max_workers,
            max_pending_frames=settings.max_pending_frames,
            backpressure_policy=settings.backpressure_policy,
            inference_timeout=settings.inference_timeout_seconds,
        )

    # -- properties ---------------------------------------------------------

    @property
    def policy(self) -> BackpressurePolicy:
        return self._policy

    @property
    def max_pending_frames(self) -> int:
        return self._max_pending

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def dropped_frames(self) -> int:
        return self._dropped

    @property
    def closed(self) -> bool:
        return self._closed

    # -- dispatch -----------------------------------------------------------

    def dispatch(
        self,
        frame: Frame,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> Optional[Future]:
        """
        Submit ``frame`` for processing.

        Returns the future of the run, or ``None`` if the frame was dropped
        by the ``drop`` policy.  Callbacks run on the worker thread after the
        future resolves.

        Raises:
            PipelineClosedError: If ``shutdown`` has been called
        """
        if self._closed:
            raise PipelineClosedError("Frame pipeline is shut down")

        if not self._acquire_slot():
            with self._lock:
                self._dropped += 1
            logger.warning(
                "Dropped frame %d: %d frames already in flight",
                frame.index, self._max_pending,
            )
            return None

        with self._lock:
            self._in_flight += 1
        try:
            future = self._executor.submit(self._run, frame)
        except RuntimeError as exc:
            self._finish_slot()
            raise PipelineClosedError("Frame pipeline is shut down") from exc

        future.add_done_callback(
            lambda done: self._complete(done, frame, on_result, on_error)
        )
        return future

    def process(self, frame: Frame) -> FrameResult:
        """Run the pipeline on ``frame`` in the calling thread."""
        return self._run(frame)

    def _acquire_slot(self) -> bool:
        if self._policy is BackpressurePolicy.QUEUE:
            return True
        if self._policy is BackpressurePolicy.BLOCK:
            return self._slots.acquire()
        return self._slots.acquire(blocking=False)

    def _finish_slot(self) -> None:
        if self._policy is not BackpressurePolicy.QUEUE:
            self._slots.release()
        with self._idle:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.notify_all()

    def _run(self, frame: Frame) -> FrameResult:
        features = self._extractor.extract(preprocess(frame))
        label = self._predict(features)
        logger.debug("Frame %d classified as %s", frame.index, label.name)
        return FrameResult(frame_index=frame.index, label=label, features=features)

    def _predict(self, features: NDArray[np.float32]) -> ActivityLabel:
        if self._inference_timeout is None:
            return self._call_classifier(features)

        future = self._inference_executor.submit(self._call_classifier, features)
        try:
            return future.result(timeout=self._inference_timeout)
        except FuturesTimeoutError as exc:
            future.cancel()
            raise InferenceTimeoutError(
                f"Classifier did not respond within {self._inference_timeout}s"
            ) from exc

    def _call_classifier(self, features: NDArray[np.float32]) -> ActivityLabel:
        try:
            label = self._classifier.predict(features)
        except InferenceError:
            raise
        except Exception as exc:
            raise InferenceError(f"Classifier raised {type(exc).__name__}: {exc}") from exc
        if not isinstance(label, ActivityLabel):
            label = ActivityLabel.from_output(label)
        return label

    def _complete(
        self,
        future: Future,
        frame: Frame,
        on_result: Optional[ResultCallback],
        on_error: Optional[ErrorCallback],
    ) -> None:
        try:
            if future.cancelled():
                return
            error = future.exception()
            if error is not None:
                logger.error("Frame %d failed: %s", frame.index, error)
                if on_error is not None:
                    on_error(frame, error)
            elif on_result is not None:
                on_result(frame, future.result())
        except Exception:
            logger.exception("Frame %d completion callback failed", frame.index)
        finally:
            self._finish_slot()

    # -- lifecycle ----------------------------------------------------------

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every dispatched frame has completed, callbacks included.

        Returns ``False`` if ``timeout`` expired first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        """
        Refuse new frames and release the worker threads.

        Frame workers are joined when ``wait`` is true; each is bounded by
        ``inference_timeout``.  Inference threads still stuck in a classifier
        call are never joined.
        """
        self._closed = True
        self._executor.shutdown(wait=wait)
        self._inference_executor.shutdown(wait=False, cancel_futures=True)
        logger.debug("Frame pipeline shut down (dropped %d frames)", self._dropped)

    def __enter__(self) -> "FramePipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(wait=True)

    def __repr__(self) -> str:
        return (
            f"FramePipeline(classifier={self._classifier!r}, "
            f"policy={self._policy.value}, in_flight={self._in_flight}/{self._max_pending})"
        )
