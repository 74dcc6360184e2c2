"""
Accelerometer Activity Sensing
==============================

Classifies locomotion (stationary / walking / running) from a stream of
tri-axial linear-acceleration samples.

Components:
    - accel_collector: Sample type, event validation, simulated and CSV sources
    - windowing: Fixed-size framing of the sample stream
    - preprocessing: Magnitude augmentation of a frame
    - spectral: FFT energy and entropy of one axis
    - feature_extractor: 22-element statistical / correlation / spectral features
    - classifier: Activity labels and the classifier gateways
    - evaluation: Duration-overlap precision, recall and F1
    - pipeline: Bounded off-thread frame processing
    - session: Recording session controller and counters
"""

from activity_sense.sensing.accel_collector import (
    AccelSample,
    SampleValidationError,
    SimulatedAccelCollector,
    coerce_sample,
    read_samples_csv,
)
from activity_sense.sensing.windowing import (
    Frame,
    FrameAccumulator,
)
from activity_sense.sensing.preprocessing import preprocess
from activity_sense.sensing.spectral import SpectralSummary, analyze
from activity_sense.sensing.feature_extractor import (
    FEATURE_COUNT,
    FEATURE_NAMES,
    ActivityFeatures,
    FrameFeatureExtractor,
)
from activity_sense.sensing.classifier import (
    ActivityLabel,
    ClassifierGateway,
    InferenceError,
    InferenceTimeoutError,
    JoblibActivityClassifier,
    ModelLoadError,
    OnnxActivityClassifier,
    ThresholdActivityClassifier,
    create_classifier,
)
from activity_sense.sensing.evaluation import EvaluationResult, evaluate_counts
from activity_sense.sensing.pipeline import (
    BackpressurePolicy,
    FramePipeline,
    FrameResult,
    PipelineClosedError,
)
from activity_sense.sensing.session import (
    SessionController,
    SessionCounters,
    SessionError,
    SessionStatus,
    format_elapsed,
)

__all__ = [
    "AccelSample",
    "SampleValidationError",
    "SimulatedAccelCollector",
    "coerce_sample",
    "read_samples_csv",
    "Frame",
    "FrameAccumulator",
    "preprocess",
    "SpectralSummary",
    "analyze",
    "FEATURE_COUNT",
    "FEATURE_NAMES",
    "ActivityFeatures",
    "FrameFeatureExtractor",
    "ActivityLabel",
    "ClassifierGateway",
    "InferenceError",
    "InferenceTimeoutError",
    "JoblibActivityClassifier",
    "ModelLoadError",
    "OnnxActivityClassifier",
    "ThresholdActivityClassifier",
    "create_classifier",
    "EvaluationResult",
    "evaluate_counts",
    "BackpressurePolicy",
    "FramePipeline",
    "FrameResult",
    "PipelineClosedError",
    "SessionController",
    "SessionCounters",
    "SessionError",
    "SessionStatus",
    "format_elapsed",
]
