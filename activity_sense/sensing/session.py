"""
Recording session: sensor events in, activity counters out.

``SessionController`` owns the frame accumulator, the frame pipeline and the
session counters.  Sensor events are accepted only while recording; each
completed frame is classified off-thread and its outcome is folded into an
immutable ``SessionCounters`` snapshot.  Snapshots are replaced under a
single writer lock and read without locking, so observers never block the
pipeline.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from activity_sense.config.settings import Settings
from activity_sense.sensing.accel_collector import SampleValidationError, coerce_sample
from activity_sense.sensing.classifier import ActivityLabel, ClassifierGateway
from activity_sense.sensing.evaluation import EvaluationResult, evaluate_counts
from activity_sense.sensing.feature_extractor import FrameFeatureExtractor
from activity_sense.sensing.pipeline import FramePipeline, FrameResult
from activity_sense.sensing.windowing import Frame, FrameAccumulator

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Exception raised for an operation the session cannot perform in its current state."""
    pass


class SessionStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"


@dataclass(frozen=True)
class SessionCounters:
    """
    Frame counts for one recording session.

    ``walking_frames``/``running_frames`` count predictions;
    ``actual_*`` count frames completed while the matching ground-truth
    toggle was on.
    """

    total_frames: int = 0
    walking_frames: int = 0
    running_frames: int = 0
    actual_walking_frames: int = 0
    actual_running_frames: int = 0
    failed_frames: int = 0
    dropped_samples: int = 0
    dropped_frames: int = 0
    evaluation: EvaluationResult = field(default_factory=EvaluationResult)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_frames": self.total_frames,
            "walking_frames": self.walking_frames,
            "running_frames": self.running_frames,
            "actual_walking_frames": self.actual_walking_frames,
            "actual_running_frames": self.actual_running_frames,
            "failed_frames": self.failed_frames,
            "dropped_samples": self.dropped_samples,
            "dropped_frames": self.dropped_frames,
            "evaluation": self.evaluation.as_dict(),
        }


Observer = Callable[[SessionCounters], None]


def format_elapsed(seconds: float) -> str:
    """Render a duration as ``HH:MM:SS``; hours are not wrapped at 24."""
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class SessionController:
    """
    Start/stop/reset surface around the frame pipeline.

    Parameters
    ----------
    classifier : ClassifierGateway
        Loaded classifier used for every frame.
    frame_size : int
        Samples per frame.
    frame_duration_seconds : float
        Wall-clock length of one frame, used for elapsed-time reporting.
    pipeline : FramePipeline, optional
        Pre-built pipeline; one with default bounds is created if omitted.
    """

    def __init__(
        self,
        classifier: ClassifierGateway,
        frame_size: int = 50,
        frame_duration_seconds: float = 1.0,
        pipeline: Optional[FramePipeline] = None,
    ) -> None:
        self._accumulator = FrameAccumulator(frame_size)
        self._pipeline = pipeline or FramePipeline(classifier)
        self._frame_duration = frame_duration_seconds

        self._input_lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._counters = SessionCounters()
        self._generation = 0
        self._status = SessionStatus.IDLE
        self._evaluation_mode = False
        self._ground_truth: Optional[ActivityLabel] = None
        self._last_error: Optional[BaseException] = None

        self._observers: List[Observer] = []
        self._observers_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, classifier: ClassifierGateway) -> "SessionController":
        pipeline = FramePipeline.from_settings(settings, classifier, FrameFeatureExtractor())
        return cls(
            classifier,
            frame_size=settings.frame_size,
            frame_duration_seconds=settings.frame_duration_seconds,
            pipeline=pipeline,
        )

    # -- read-only state ----------------------------------------------------

    @property
    def counters(self) -> SessionCounters:
        """Latest counter snapshot."""
        return self._counters

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_recording(self) -> bool:
        return self._status is SessionStatus.RECORDING

    @property
    def evaluation_mode(self) -> bool:
        return self._evaluation_mode

    @property
    def ground_truth(self) -> Optional[ActivityLabel]:
        """Activity the operator currently marks as true, if any."""
        return self._ground_truth

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    @property
    def pipeline(self) -> FramePipeline:
        return self._pipeline

    def elapsed(self, frames: int) -> str:
        """Format a frame count as elapsed recording time."""
        return format_elapsed(frames * self._frame_duration)

    # -- session control ----------------------------------------------------

    def start(self) -> None:
        """Begin accepting sensor events; counters carry over from before."""
        with self._input_lock:
            if self._pipeline.closed:
                raise SessionError("Session has been closed")
            if self._status is SessionStatus.RECORDING:
                raise SessionError("Session is already recording")
            self._status = SessionStatus.RECORDING
        logger.info("Recording started")

    def stop(self, timeout: Optional[float] = None) -> EvaluationResult:
        """
        Stop recording, let in-flight frames finish, then evaluate.

        Frames completed after the status flips are not dispatched and the
        partially filled frame is discarded.  If in-flight frames are
        still running after ``timeout`` seconds the evaluation is computed
        from the counts available at that point.

        Raises:
            SessionError: If the session is not recording
        """
        with self._input_lock:
            if self._status is not SessionStatus.RECORDING:
                raise SessionError("Session is not recording")
            self._status = SessionStatus.STOPPED
            self._accumulator.reset()

        if not self._pipeline.drain(timeout):
            logger.warning(
                "Stopped with %d frames still in flight after %.1fs",
                self._pipeline.in_flight, timeout,
            )

        result = self.evaluate()
        logger.info(
            "Recording stopped: %d frames (precision=%.3f recall=%.3f f1=%.3f)",
            self._counters.total_frames, result.precision, result.recall, result.f1,
        )
        return result

    def reset(self) -> None:
        """
        Zero all counters and evaluation outputs and clear the ground-truth toggles.

        Frames already in flight finish but no longer touch the counters.
        Recording status and evaluation mode are unchanged.
        """
        with self._input_lock, self._write_lock:
            self._accumulator.reset()
            self._generation += 1
            self._ground_truth = None
            self._last_error = None
            self._counters = SessionCounters()
            snapshot = self._counters
        logger.info("Session reset")
        self._notify(snapshot)

    def evaluate(self) -> EvaluationResult:
        """Score predicted against ground-truth counts and store the result."""
        with self._write_lock:
            current = self._counters
            result = evaluate_counts(
                current.actual_walking_frames,
                current.walking_frames,
                current.actual_running_frames,
                current.running_frames,
            )
            self._counters = replace(current, evaluation=result)
            snapshot = self._counters
        self._notify(snapshot)
        return result

    def close(self, wait: bool = True) -> None:
        """Stop recording if needed and shut the pipeline down."""
        if self._status is SessionStatus.RECORDING:
            self.stop()
        self._pipeline.shutdown(wait=wait)

    def __enter__(self) -> "SessionController":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- ground truth -------------------------------------------------------

    def set_evaluation_mode(self, enabled: bool) -> None:
        """Turn evaluation mode on or off; either way both toggles are cleared."""
        with self._write_lock:
            self._evaluation_mode = bool(enabled)
            self._ground_truth = None
        logger.info("Evaluation mode %s", "enabled" if enabled else "disabled")

    def toggle_ground_truth(self, label: ActivityLabel) -> Optional[ActivityLabel]:
        """
        Flip the ground-truth toggle for ``label`` and return the active one.

        Selecting an activity clears the other; selecting the active
        activity again clears it.

        Raises:
            SessionError: If evaluation mode is off
            ValueError: If ``label`` is not WALKING or RUNNING
        """
        label = ActivityLabel(label)
        if label not in (ActivityLabel.WALKING, ActivityLabel.RUNNING):
            raise ValueError(f"Ground truth can only be WALKING or RUNNING, got {label.name}")
        with self._write_lock:
            if not self._evaluation_mode:
                raise SessionError("Ground truth can only be set in evaluation mode")
            self._ground_truth = None if self._ground_truth is label else label
            active = self._ground_truth
        logger.debug("Ground truth now %s", active.name if active else "none")
        return active

    # -- observers ----------------------------------------------------------

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """
        Register ``callback`` for every new counter snapshot.

        Callbacks may run on pipeline worker threads.  Returns a function
        that removes the subscription.
        """
        with self._observers_lock:
            self._observers.append(callback)

        def unsubscribe() -> None:
            with self._observers_lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return unsubscribe

    def _notify(self, snapshot: SessionCounters) -> None:
        with self._observers_lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(snapshot)
            except Exception:
                logger.exception("Session observer %r failed", observer)

    # -- sensor input -------------------------------------------------------

    def on_sensor_event(self, event: Any) -> None:
        """
        Feed one sensor event.

        Malformed events are logged and counted as dropped samples.  Events
        arriving while not recording are ignored.  The status check, the
        accumulator and the dispatch share one lock with ``stop``.
        """
        with self._input_lock:
            if self._status is not SessionStatus.RECORDING:
                return
            try:
                sample = coerce_sample(event)
            except SampleValidationError as exc:
                logger.warning("Dropped malformed sensor event: %s", exc)
                self._update(lambda c: replace(c, dropped_samples=c.dropped_samples + 1))
                return

            frame = self._accumulator.accept(sample)
            if frame is not None:
                self._dispatch(frame)

    def _dispatch(self, frame: Frame) -> None:
        generation = self._generation
        ground_truth = self._ground_truth

        future = self._pipeline.dispatch(
            frame,
            on_result=lambda f, result: self._record_result(generation, ground_truth, result),
            on_error=lambda f, exc: self._record_failure(generation, exc),
        )
        if future is None:
            self._update(
                lambda c: replace(c, dropped_frames=c.dropped_frames + 1), generation
            )

    def _record_result(
        self,
        generation: int,
        ground_truth: Optional[ActivityLabel],
        result: FrameResult,
    ) -> None:
        def apply(c: SessionCounters) -> SessionCounters:
            return replace(
                c,
                total_frames=c.total_frames + 1,
                walking_frames=c.walking_frames + (result.label is ActivityLabel.WALKING),
                running_frames=c.running_frames + (result.label is ActivityLabel.RUNNING),
                actual_walking_frames=c.actual_walking_frames
                + (ground_truth is ActivityLabel.WALKING),
                actual_running_frames=c.actual_running_frames
                + (ground_truth is ActivityLabel.RUNNING),
            )

        self._update(apply, generation)

    def _record_failure(self, generation: int, error: BaseException) -> None:
        def apply(c: SessionCounters) -> SessionCounters:
            self._last_error = error
            return replace(c, failed_frames=c.failed_frames + 1)

        self._update(apply, generation)

    def _update(
        self,
        change: Callable[[SessionCounters], SessionCounters],
        generation: Optional[int] = None,
    ) -> None:
        with self._write_lock:
            if generation is not None and generation != self._generation:
                logger.debug("Ignoring update from session generation %d", generation)
                return
            self._counters = change(self._counters)
            snapshot = self._counters
        self._notify(snapshot)
