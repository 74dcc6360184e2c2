"""
Simulate command implementation for Activity Sense
"""

import itertools
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from activity_sense.config.settings import Settings
from activity_sense.logger import get_logger
from activity_sense.sensing.accel_collector import SimulatedAccelCollector
from activity_sense.sensing.classifier import ActivityLabel, create_classifier
from activity_sense.sensing.session import SessionController

logger = get_logger(__name__)

_GROUND_TRUTH = {
    "walking": ActivityLabel.WALKING,
    "running": ActivityLabel.RUNNING,
    "stationary": None,
}


def parse_segment(text: str) -> Tuple[str, float]:
    """Parse an ``activity:seconds`` segment such as ``walking:30``."""

    activity, sep, seconds = text.partition(":")
    if not sep:
        raise ValueError(f"Segment '{text}' is not of the form activity:seconds")
    try:
        duration = float(seconds)
    except ValueError:
        raise ValueError(f"Segment '{text}' has a non-numeric duration") from None
    return activity.strip().lower(), duration


def _apply_ground_truth(controller: SessionController, activity: str) -> None:
    """Drive the ground-truth toggles the way an operator following the script would."""

    target = _GROUND_TRUTH.get(activity)
    current = controller.ground_truth
    if target is current:
        return
    if target is None:
        controller.toggle_ground_truth(current)
    else:
        controller.toggle_ground_truth(target)


def run_simulation(
    settings: Settings,
    segments: Sequence[Tuple[str, float]],
    evaluate: bool = False,
    seed: int = 42,
    realtime: bool = False,
) -> Dict[str, Any]:
    """Play a scripted session through the full pipeline and return its summary."""

    collector = SimulatedAccelCollector(
        segments, seed=seed, sampling_interval_us=settings.sampling_interval_us
    )
    if not realtime and settings.backpressure_policy == "drop":
        # Batch replay outpaces any classifier; wait for slots instead of losing frames
        settings = settings.model_copy(update={"backpressure_policy": "block"})

    classifier = create_classifier(settings)
    logger.info(f"Simulating {collector.total_samples()} samples with {classifier!r}")

    with SessionController.from_settings(settings, classifier) as controller:
        controller.set_evaluation_mode(evaluate)
        controller.start()

        indices = itertools.count()

        def on_sample(sample):
            index = next(indices)
            if evaluate:
                _apply_ground_truth(controller, collector.activity_at(index))
            controller.on_sensor_event(sample)

        if realtime:
            collector.start(on_sample)
            collector.join()
        else:
            for sample in collector.generate_samples():
                on_sample(sample)

        result = controller.stop()
        counters = controller.counters

        return {
            "samples": collector.total_samples(),
            "counters": counters.as_dict(),
            "elapsed": {
                "total": controller.elapsed(counters.total_frames),
                "walking": controller.elapsed(counters.walking_frames),
                "running": controller.elapsed(counters.running_frames),
                "walking_actual": controller.elapsed(counters.actual_walking_frames),
                "running_actual": controller.elapsed(counters.actual_running_frames),
            },
            "evaluation": result.as_dict() if evaluate else None,
            "last_error": str(controller.last_error) if controller.last_error else None,
        }


def simulate_command(
    settings: Settings,
    segments: List[str],
    evaluate: bool = False,
    seed: int = 42,
    realtime: bool = False,
    output_format: str = "text",
) -> None:
    """Run a simulated recording session and print the counters."""

    script = [parse_segment(text) for text in segments]
    summary = run_simulation(settings, script, evaluate=evaluate, seed=seed, realtime=realtime)

    if output_format == "json":
        print(json.dumps(summary, indent=2, default=str))
        return

    _print_text_summary(summary)


def _print_text_summary(summary: Dict[str, Any]) -> None:
    counters = summary["counters"]
    elapsed = summary["elapsed"]

    print("=" * 48)
    print("Activity Sense Simulation")
    print("=" * 48)
    print(f"Samples:        {summary['samples']}")
    print(f"Total time:     {elapsed['total']}")
    print(f"Walking time:   {elapsed['walking']}")
    print(f"Running time:   {elapsed['running']}")
    if counters["failed_frames"] or counters["dropped_frames"] or counters["dropped_samples"]:
        print(
            f"Failed frames:  {counters['failed_frames']}  "
            f"Dropped frames: {counters['dropped_frames']}  "
            f"Dropped samples: {counters['dropped_samples']}"
        )
    if summary["last_error"]:
        print(f"Last error:     {summary['last_error']}")

    evaluation: Optional[Dict[str, float]] = summary["evaluation"]
    if evaluation is not None:
        print()
        print(f"Walking (actual): {elapsed['walking_actual']}")
        print(f"Running (actual): {elapsed['running_actual']}")
        print(f"Precision: {evaluation['precision']:.3f}")
        print(f"Recall:    {evaluation['recall']:.3f}")
        print(f"F1 score:  {evaluation['f1']:.3f}")
