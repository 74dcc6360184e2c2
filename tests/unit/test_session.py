"""
Unit tests for the recording session controller.
"""

from __future__ import annotations

import threading
import time

import pytest

from activity_sense.config.settings import get_test_settings
from activity_sense.sensing.classifier import (
    ActivityLabel,
    InferenceError,
    ThresholdActivityClassifier,
)
from activity_sense.sensing.evaluation import EvaluationResult
from activity_sense.sensing.pipeline import FramePipeline
from activity_sense.sensing.session import (
    SessionController,
    SessionCounters,
    SessionError,
    SessionStatus,
    format_elapsed,
)
from activity_sense.sensing.windowing import FrameAccumulator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FRAME = 10


class ScriptedClassifier:
    """Returns labels from a fixed list, one per call."""

    def __init__(self, labels):
        self._labels = list(labels)
        self._lock = threading.Lock()

    def predict(self, features):
        with self._lock:
            label = self._labels.pop(0)
        if isinstance(label, Exception):
            raise label
        return label


class GatedClassifier:
    def __init__(self, label=ActivityLabel.WALKING):
        self.label = label
        self.gate = threading.Event()

    def predict(self, features):
        self.gate.wait(timeout=5.0)
        return self.label


class MeanZClassifier:
    """Labels a frame by its mean z value: 0 other, 1 walking, 2 running."""

    def predict(self, features):
        return ActivityLabel.from_output(round(float(features[2])))


class PausingAccumulator(FrameAccumulator):
    """Pauses after completing a frame, before the caller can dispatch it."""

    def __init__(self, frame_size, pause=0.3):
        super().__init__(frame_size)
        self.pause = pause
        self.frame_ready = threading.Event()

    def accept(self, sample):
        frame = super().accept(sample)
        if frame is not None:
            self.frame_ready.set()
            time.sleep(self.pause)
        return frame


def make_controller(classifier, **pipeline_kwargs):
    pipeline_kwargs.setdefault("backpressure_policy", "queue")
    pipeline = FramePipeline(classifier, **pipeline_kwargs)
    return SessionController(classifier, frame_size=FRAME, pipeline=pipeline)


def feed_frames(controller, n_frames, value=(0.0, 0.0, 1.0)):
    for _ in range(n_frames * FRAME):
        controller.on_sensor_event(list(value))


# ===========================================================================
# format_elapsed tests
# ===========================================================================

class TestFormatElapsed:
    @pytest.mark.parametrize("seconds,expected", [
        (0, "00:00:00"),
        (59, "00:00:59"),
        (61, "00:01:01"),
        (3600, "01:00:00"),
        (3725.9, "01:02:05"),
        (100 * 3600, "100:00:00"),
        (-5, "00:00:00"),
    ])
    def test_format(self, seconds, expected):
        assert format_elapsed(seconds) == expected


# ===========================================================================
# Session lifecycle tests
# ===========================================================================

class TestSessionLifecycle:
    def test_counts_predictions(self):
        clf = ScriptedClassifier([
            ActivityLabel.WALKING, ActivityLabel.RUNNING, ActivityLabel.OTHER, ActivityLabel.WALKING,
        ])
        with make_controller(clf) as controller:
            controller.start()
            feed_frames(controller, 4)
            controller.stop(timeout=5.0)
            counters = controller.counters
        assert counters.total_frames == 4
        assert counters.walking_frames == 2
        assert counters.running_frames == 1

    def test_events_ignored_when_not_recording(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            feed_frames(controller, 2)
            assert controller.pipeline.drain(timeout=5.0)
            assert controller.counters.total_frames == 0
            assert controller.status is SessionStatus.IDLE

    def test_stop_discards_partial_frame(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.start()
            for _ in range(FRAME - 1):
                controller.on_sensor_event([0.0, 0.0, 0.0])
            controller.stop(timeout=5.0)
            controller.start()
            controller.on_sensor_event([0.0, 0.0, 0.0])
            controller.stop(timeout=5.0)
            assert controller.counters.total_frames == 0

    def test_stop_drains_in_flight_frames(self):
        clf = GatedClassifier()
        with make_controller(clf) as controller:
            controller.start()
            feed_frames(controller, 3)
            threading.Timer(0.1, clf.gate.set).start()
            controller.stop(timeout=5.0)
            assert controller.counters.total_frames == 3
            assert controller.counters.walking_frames == 3

    def test_stop_waits_for_frame_being_dispatched(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            accumulator = PausingAccumulator(FRAME)
            controller._accumulator = accumulator
            controller.start()
            producer = threading.Thread(target=feed_frames, args=(controller, 1))
            producer.start()
            assert accumulator.frame_ready.wait(timeout=5.0)

            controller.stop(timeout=5.0)
            total_at_stop = controller.counters.total_frames
            producer.join(timeout=5.0)
            assert controller.pipeline.drain(timeout=5.0)

            assert total_at_stop == 1
            assert controller.counters.total_frames == total_at_stop

    def test_events_after_stop_are_not_dispatched(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.start()
            for _ in range(FRAME - 1):
                controller.on_sensor_event([0.0, 0.0, 1.0])
            controller.stop(timeout=5.0)
            controller.on_sensor_event([0.0, 0.0, 1.0])
            assert controller.pipeline.drain(timeout=5.0)
            assert controller.counters.total_frames == 0

    def test_start_twice_raises(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.start()
            with pytest.raises(SessionError):
                controller.start()

    def test_stop_without_start_raises(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            with pytest.raises(SessionError):
                controller.stop()

    def test_counters_carry_over_between_recordings(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.start()
            feed_frames(controller, 2)
            controller.stop(timeout=5.0)
            controller.start()
            feed_frames(controller, 1)
            controller.stop(timeout=5.0)
            assert controller.counters.total_frames == 3

    def test_from_settings(self):
        settings = get_test_settings()
        with SessionController.from_settings(settings, ThresholdActivityClassifier()) as controller:
            assert controller.elapsed(90) == "00:01:30"


# ===========================================================================
# Reset tests
# ===========================================================================

class TestSessionReset:
    def test_reset_zeroes_everything(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.set_evaluation_mode(True)
            controller.toggle_ground_truth(ActivityLabel.WALKING)
            controller.start()
            feed_frames(controller, 3)
            controller.stop(timeout=5.0)
            assert controller.counters.total_frames == 3

            controller.reset()
            assert controller.counters == SessionCounters()
            assert controller.counters.evaluation == EvaluationResult()
            assert controller.ground_truth is None
            assert controller.evaluation_mode is True

    def test_reset_is_idempotent(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.start()
            feed_frames(controller, 2)
            controller.stop(timeout=5.0)
            controller.reset()
            first = controller.counters
            controller.reset()
            assert controller.counters == first == SessionCounters()

    def test_frames_from_before_reset_are_ignored(self):
        clf = GatedClassifier()
        with make_controller(clf) as controller:
            controller.start()
            feed_frames(controller, 2)
            controller.reset()
            clf.gate.set()
            assert controller.pipeline.drain(timeout=5.0)
            assert controller.counters.total_frames == 0
            assert controller.is_recording


# ===========================================================================
# Ground truth tests
# ===========================================================================

class TestGroundTruth:
    def test_toggle_requires_evaluation_mode(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            with pytest.raises(SessionError):
                controller.toggle_ground_truth(ActivityLabel.WALKING)

    def test_toggles_are_mutually_exclusive(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.set_evaluation_mode(True)
            assert controller.toggle_ground_truth(ActivityLabel.WALKING) is ActivityLabel.WALKING
            assert controller.toggle_ground_truth(ActivityLabel.RUNNING) is ActivityLabel.RUNNING
            assert controller.toggle_ground_truth(ActivityLabel.RUNNING) is None
            assert controller.ground_truth is None

    def test_other_is_not_a_ground_truth(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.set_evaluation_mode(True)
            with pytest.raises(ValueError):
                controller.toggle_ground_truth(ActivityLabel.OTHER)

    def test_switching_mode_clears_toggles(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.set_evaluation_mode(True)
            controller.toggle_ground_truth(ActivityLabel.RUNNING)
            controller.set_evaluation_mode(False)
            assert controller.ground_truth is None

    def test_evaluation_on_stop(self):
        labels = [ActivityLabel.WALKING] * 8 + [ActivityLabel.OTHER] * 2 + [ActivityLabel.RUNNING] * 5
        with make_controller(ScriptedClassifier(labels)) as controller:
            controller.set_evaluation_mode(True)
            controller.start()
            controller.toggle_ground_truth(ActivityLabel.WALKING)
            feed_frames(controller, 10)
            controller.toggle_ground_truth(ActivityLabel.RUNNING)
            feed_frames(controller, 5)
            result = controller.stop(timeout=5.0)

            counters = controller.counters
            assert counters.actual_walking_frames == 10
            assert counters.actual_running_frames == 5
            assert result.precision == pytest.approx(1.0)
            assert result.recall == pytest.approx(13 / 15)
            assert counters.evaluation == result


# ===========================================================================
# Error handling tests
# ===========================================================================

class TestSessionErrors:
    def test_malformed_events_are_dropped(self):
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.start()
            controller.on_sensor_event([1.0, 2.0])
            controller.on_sensor_event("garbage")
            controller.on_sensor_event(None)
            assert controller.counters.dropped_samples == 3
            assert controller.status is SessionStatus.RECORDING

    def test_inference_failure_does_not_count_frame(self):
        clf = ScriptedClassifier([ActivityLabel.WALKING, InferenceError("corrupt output"), ActivityLabel.RUNNING])
        with make_controller(clf) as controller:
            controller.start()
            feed_frames(controller, 3)
            controller.stop(timeout=5.0)
            counters = controller.counters
            assert counters.total_frames == 2
            assert counters.failed_frames == 1
            assert isinstance(controller.last_error, InferenceError)

    def test_dropped_frames_are_counted(self):
        clf = GatedClassifier()
        with make_controller(clf, backpressure_policy="drop", max_pending_frames=1) as controller:
            controller.start()
            feed_frames(controller, 3)
            assert controller.counters.dropped_frames == 2
            clf.gate.set()
            controller.stop(timeout=5.0)
            assert controller.counters.total_frames == 1


# ===========================================================================
# Observer tests
# ===========================================================================

class TestObservers:
    def test_observer_receives_snapshots(self):
        snapshots = []
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.subscribe(snapshots.append)
            controller.start()
            feed_frames(controller, 2)
            controller.stop(timeout=5.0)
        totals = [s.total_frames for s in snapshots]
        assert totals[:2] == [1, 2]
        assert all(isinstance(s, SessionCounters) for s in snapshots)

    def test_unsubscribe(self):
        snapshots = []
        with make_controller(ThresholdActivityClassifier()) as controller:
            unsubscribe = controller.subscribe(snapshots.append)
            unsubscribe()
            unsubscribe()
            controller.reset()
        assert snapshots == []

    def test_failing_observer_does_not_break_session(self):
        def broken(snapshot):
            raise RuntimeError("ui gone")

        received = []
        with make_controller(ThresholdActivityClassifier()) as controller:
            controller.subscribe(broken)
            controller.subscribe(received.append)
            controller.start()
            feed_frames(controller, 1)
            controller.stop(timeout=5.0)
            assert controller.counters.total_frames == 1
        assert received

    def test_counters_are_immutable(self):
        counters = SessionCounters()
        with pytest.raises(Exception):
            counters.total_frames = 5


# ===========================================================================
# Concurrency tests
# ===========================================================================

class TestSessionConcurrency:
    def test_many_workers_lose_no_updates(self):
        n_frames = 400
        with make_controller(MeanZClassifier(), max_workers=8) as controller:
            controller.set_evaluation_mode(True)
            controller.toggle_ground_truth(ActivityLabel.WALKING)
            controller.start()
            for index in range(n_frames):
                feed_frames(controller, 1, value=(0.0, 0.0, float(index % 3)))
            controller.stop(timeout=30.0)
            counters = controller.counters

        assert counters.total_frames == n_frames
        assert counters.walking_frames == sum(1 for i in range(n_frames) if i % 3 == 1)
        assert counters.running_frames == sum(1 for i in range(n_frames) if i % 3 == 2)
        assert counters.actual_walking_frames == n_frames
        assert counters.actual_running_frames == 0
        assert counters.failed_frames == 0
        assert counters.dropped_frames == 0

    def test_concurrent_producers_are_serialized(self):
        with make_controller(ThresholdActivityClassifier(), max_workers=4) as controller:
            controller.start()
            producers = [
                threading.Thread(target=feed_frames, args=(controller, 25)) for _ in range(4)
            ]
            for producer in producers:
                producer.start()
            for producer in producers:
                producer.join(timeout=30.0)
            controller.stop(timeout=30.0)
            assert controller.counters.total_frames == 100
