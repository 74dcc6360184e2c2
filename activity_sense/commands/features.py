"""
Features command implementation for Activity Sense
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from activity_sense.config.settings import Settings
from activity_sense.logger import get_logger
from activity_sense.sensing.accel_collector import read_samples_csv
from activity_sense.sensing.feature_extractor import FEATURE_NAMES, FrameFeatureExtractor
from activity_sense.sensing.preprocessing import preprocess
from activity_sense.sensing.windowing import FrameAccumulator

logger = get_logger(__name__)


def extract_frame_features(settings: Settings, csv_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Frame a recorded CSV stream and return one feature row per complete frame."""

    samples = read_samples_csv(csv_path)
    accumulator = FrameAccumulator(settings.frame_size)
    extractor = FrameFeatureExtractor()

    rows = []
    for sample in samples:
        frame = accumulator.accept(sample)
        if frame is None:
            continue
        vector = extractor.extract(preprocess(frame))
        row: Dict[str, Any] = {"frame": frame.index}
        row.update({name: float(value) for name, value in zip(FEATURE_NAMES, vector)})
        rows.append(row)

    if accumulator.fill_level:
        logger.info(
            f"Ignored {accumulator.fill_level} trailing samples that do not fill a frame"
        )
    logger.debug(f"Extracted {len(rows)} frames from {len(samples)} samples in {csv_path}")
    return rows


def features_command(
    settings: Settings,
    csv_path: Union[str, Path],
    output_format: str = "text",
) -> None:
    """Print the feature vectors of a recorded acceleration stream."""

    rows = extract_frame_features(settings, csv_path)

    if output_format == "json":
        print(json.dumps(rows, indent=2))
        return

    print("\t".join(["frame"] + FEATURE_NAMES))
    for row in rows:
        values = [str(row["frame"])] + [f"{row[name]:.6g}" for name in FEATURE_NAMES]
        print("\t".join(values))
