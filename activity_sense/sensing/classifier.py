"""
Activity classification from frame features.

Every classifier here satisfies the ``ClassifierGateway`` protocol: a 22-element
float32 feature vector in, one ``ActivityLabel`` out.  Three gateways are
provided:
    - OnnxActivityClassifier      -- pre-trained ONNX model (production)
    - JoblibActivityClassifier    -- scikit-learn estimator persisted with joblib
    - ThresholdActivityClassifier -- rule-based, for simulation and tests

Failures never fall back to a default label; they raise ``InferenceError``.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from pathlib import Path
from typing import Any, Protocol, Sequence, Union, runtime_checkable

import joblib
import numpy as np
import onnxruntime as ort
from numpy.typing import NDArray

from activity_sense.config.settings import Settings
from activity_sense.sensing.feature_extractor import FEATURE_COUNT, ActivityFeatures
from activity_sense.utils.assets import load_asset_from_cache

logger = logging.getLogger(__name__)


class InferenceError(Exception):
    """Exception raised when a prediction cannot be produced."""
    pass


class ModelLoadError(InferenceError):
    """Exception raised when a classifier model cannot be loaded."""
    pass


class InferenceTimeoutError(InferenceError):
    """Exception raised when a prediction does not finish in time."""
    pass


class ActivityLabel(IntEnum):
    """Classified locomotion state."""

    OTHER = 0
    WALKING = 1
    RUNNING = 2

    @classmethod
    def from_output(cls, value: Any) -> "ActivityLabel":
        """
        Convert a raw model output to a label.

        Raises:
            InferenceError: If ``value`` is not one of 0, 1, 2
        """
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise InferenceError(f"Unparseable classifier output: {value!r}") from exc
        if not number.is_integer() or int(number) not in {member.value for member in cls}:
            raise InferenceError(f"Classifier output out of range: {value!r}")
        return cls(int(number))


@runtime_checkable
class ClassifierGateway(Protocol):
    """Protocol that all activity classifiers must implement."""

    def predict(self, features: NDArray[np.float32]) -> ActivityLabel:
        """Classify one feature vector."""
        ...


def as_feature_vector(features: Union[NDArray[np.floating], Sequence[float], ActivityFeatures]) -> NDArray[np.float32]:
    """Validate and convert classifier input to a float32 vector of length 22."""
    if isinstance(features, ActivityFeatures):
        return features.to_vector()
    vector = np.asarray(features, dtype=np.float32).ravel()
    if vector.size != FEATURE_COUNT:
        raise InferenceError(f"Expected {FEATURE_COUNT} features, got {vector.size}")
    return vector


def _first_scalar(outputs: Any) -> Any:
    try:
        return np.asarray(outputs[0]).ravel()[0]
    except (IndexError, TypeError, ValueError) as exc:
        raise InferenceError(f"Malformed classifier output: {outputs!r}") from exc


# ---------------------------------------------------------------------------
# ONNX model
# ---------------------------------------------------------------------------

class OnnxActivityClassifier:
    """
    Classifier backed by an ONNX model, loaded once at construction.

    The model takes a ``(1, 22)`` float32 tensor on its first input and
    returns the label as the first element of its first output.

    Parameters
    ----------
    model_path : str or Path
        Path of the ``.onnx`` file.
    """

    def __init__(self, model_path: Union[str, Path]) -> None:
        self._model_path = Path(model_path)
        try:
            self._session = ort.InferenceSession(
                str(self._model_path), providers=["CPUExecutionProvider"]
            )
            inputs = self._session.get_inputs()
        except Exception as exc:
            raise ModelLoadError(f"Failed to load ONNX model {self._model_path}: {exc}") from exc

        if not inputs:
            raise ModelLoadError(f"ONNX model {self._model_path} declares no inputs")
        self._input_name = inputs[0].name
        logger.info("Loaded ONNX activity model from %s (input '%s')", self._model_path, self._input_name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OnnxActivityClassifier":
        """Load the bundled model asset, caching it to writable storage first."""
        try:
            path = load_asset_from_cache(
                settings.asset_directory, settings.cache_directory, settings.model_asset_name
            )
        except OSError as exc:
            raise ModelLoadError(f"Model asset unavailable: {exc}") from exc
        return cls(path)

    @property
    def model_path(self) -> Path:
        return self._model_path

    def predict(self, features: NDArray[np.float32]) -> ActivityLabel:
        vector = as_feature_vector(features).reshape(1, FEATURE_COUNT)
        try:
            outputs = self._session.run(None, {self._input_name: vector})
        except Exception as exc:
            raise InferenceError(f"ONNX inference failed: {exc}") from exc
        return ActivityLabel.from_output(_first_scalar(outputs))

    def __repr__(self) -> str:
        return f"OnnxActivityClassifier(model={self._model_path.name})"


# ---------------------------------------------------------------------------
# scikit-learn model
# ---------------------------------------------------------------------------

class JoblibActivityClassifier:
    """Classifier backed by a scikit-learn estimator saved with ``joblib.dump``."""

    def __init__(self, model_path: Union[str, Path]) -> None:
        self._model_path = Path(model_path)
        try:
            self._model = joblib.load(self._model_path)
        except Exception as exc:
            raise ModelLoadError(f"Failed to load joblib model {self._model_path}: {exc}") from exc
        if not hasattr(self._model, "predict"):
            raise ModelLoadError(f"{self._model_path} does not contain an estimator with predict()")
        logger.info("Loaded joblib activity model from %s", self._model_path)

    @classmethod
    def from_settings(cls, settings: Settings) -> "JoblibActivityClassifier":
        try:
            path = load_asset_from_cache(
                settings.asset_directory, settings.cache_directory, settings.model_asset_name
            )
        except OSError as exc:
            raise ModelLoadError(f"Model asset unavailable: {exc}") from exc
        return cls(path)

    def predict(self, features: NDArray[np.float32]) -> ActivityLabel:
        vector = as_feature_vector(features).reshape(1, FEATURE_COUNT)
        try:
            outputs = self._model.predict(vector)
        except Exception as exc:
            raise InferenceError(f"Estimator prediction failed: {exc}") from exc
        return ActivityLabel.from_output(_first_scalar([outputs]))

    def __repr__(self) -> str:
        return f"JoblibActivityClassifier(model={self._model_path.name})"


# ---------------------------------------------------------------------------
# Rule-based classifier
# ---------------------------------------------------------------------------

class ThresholdActivityClassifier:
    """
    Rule-based activity classifier.

    Classification rules
    --------------------
    The summed population variance of the x, y and z axes measures how
    vigorously the device is moving:
       - OTHER   if total variance < ``walking_threshold``
       - RUNNING if total variance >= ``running_threshold``
       - WALKING otherwise

    Parameters
    ----------
    walking_threshold : float
        Minimum total variance ((m/s^2)^2) to declare walking (default 0.5).
    running_threshold : float
        Minimum total variance to declare running (default 8.0).
    """

    def __init__(self, walking_threshold: float = 0.5, running_threshold: float = 8.0) -> None:
        if walking_threshold >= running_threshold:
            raise ValueError(
                f"walking_threshold ({walking_threshold}) must be below "
                f"running_threshold ({running_threshold})"
            )
        self._walk_thresh = walking_threshold
        self._run_thresh = running_threshold

    @property
    def walking_threshold(self) -> float:
        return self._walk_thresh

    @property
    def running_threshold(self) -> float:
        return self._run_thresh

    def predict(self, features: NDArray[np.float32]) -> ActivityLabel:
        named = ActivityFeatures.from_vector(as_feature_vector(features))
        total_variance = named.var_x + named.var_y + named.var_z

        if not np.isfinite(total_variance):
            raise InferenceError(f"Non-finite motion variance: {total_variance}")
        if total_variance >= self._run_thresh:
            return ActivityLabel.RUNNING
        if total_variance >= self._walk_thresh:
            return ActivityLabel.WALKING
        return ActivityLabel.OTHER

    def __repr__(self) -> str:
        return (
            f"ThresholdActivityClassifier(walking>={self._walk_thresh}, "
            f"running>={self._run_thresh})"
        )


def create_classifier(settings: Settings) -> ClassifierGateway:
    """Build the classifier gateway selected by ``settings.classifier_backend``."""
    backend = settings.classifier_backend
    if backend == "onnx":
        return OnnxActivityClassifier.from_settings(settings)
    if backend == "joblib":
        return JoblibActivityClassifier.from_settings(settings)
    if backend == "threshold":
        return ThresholdActivityClassifier(
            walking_threshold=settings.walking_variance_threshold,
            running_threshold=settings.running_variance_threshold,
        )
    raise ValueError(f"Unknown classifier backend: {backend}")
