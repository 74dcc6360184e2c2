"""
Activity Sense
==============

Real-time locomotion recognition (stationary / walking / running) from a
tri-axial linear-acceleration stream.

This package provides:
- Fixed-size framing of the sensor stream
- Statistical, correlation and FFT features per frame
- ONNX, scikit-learn and rule-based classifier gateways
- A recording session with bounded off-thread inference
- Duration-overlap precision / recall / F1 evaluation

Example usage:
    >>> from activity_sense.config import get_settings
    >>> from activity_sense.sensing import SessionController, create_classifier
    >>>
    >>> settings = get_settings()
    >>> controller = SessionController.from_settings(settings, create_classifier(settings))
    >>> controller.start()

For CLI usage:
    $ activity-sense simulate --segment walking:30 --segment running:20 --evaluate
    $ activity-sense features recording.csv --format json
    $ activity-sense evaluate 10 8 5 5
"""

__version__ = "1.0.0"
__author__ = "Activity Sense Team"
__license__ = "MIT"

# Package metadata
__title__ = "activity-sense"
__description__ = "Accelerometer-based walking and running recognition"

# Version info tuple
__version_info__ = tuple(int(x) for x in __version__.split('.'))

__all__ = [
    '__version__',
    '__version_info__',
    '__title__',
    '__description__',
]
