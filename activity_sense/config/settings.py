"""
Pydantic settings for the activity recognition pipeline
"""

import os
from typing import List, Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application settings
    app_name: str = Field(default="Activity Sense", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment (development, testing, production)")
    debug: bool = Field(default=False, description="Debug mode")

    # Sensor / windowing settings
    frame_size: int = Field(default=50, description="Samples per analysis frame")
    sampling_interval_us: int = Field(default=20000, description="Sensor sampling interval in microseconds")

    # Classifier settings
    classifier_backend: str = Field(default="onnx", description="Classifier gateway (onnx, joblib, threshold)")
    model_asset_name: str = Field(default="activity_model.onnx", description="Bundled model asset file name")
    asset_directory: str = Field(default="./assets", description="Directory holding bundled assets")
    cache_directory: str = Field(default="./cache", description="Writable directory assets are cached into")
    walking_variance_threshold: float = Field(default=0.5, description="Summed x/y/z variance above which a frame is walking")
    running_variance_threshold: float = Field(default=8.0, description="Summed x/y/z variance above which a frame is running")
    inference_timeout_seconds: float = Field(default=2.0, description="Timeout for a single classifier call")

    # Pipeline settings
    max_workers: int = Field(default=1, description="Worker threads processing completed frames")
    max_pending_frames: int = Field(default=8, description="Frames allowed in flight before backpressure applies")
    backpressure_policy: str = Field(default="drop", description="Backpressure policy (drop, block, queue)")

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size: int = Field(default=10485760, description="Max log file size in bytes (10MB)")
    log_backup_count: int = Field(default=5, description="Number of log backup files")

    model_config = SettingsConfigDict(
        env_prefix="ACTIVITY_SENSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        protected_namespaces=(),
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_environments = ["development", "testing", "production"]
        if v not in allowed_environments:
            raise ValueError(f"Environment must be one of: {allowed_environments}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level setting."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("classifier_backend")
    @classmethod
    def validate_classifier_backend(cls, v):
        """Validate classifier backend."""
        allowed_backends = ["onnx", "joblib", "threshold"]
        if v.lower() not in allowed_backends:
            raise ValueError(f"Classifier backend must be one of: {allowed_backends}")
        return v.lower()

    @field_validator("backpressure_policy")
    @classmethod
    def validate_backpressure_policy(cls, v):
        """Validate backpressure policy."""
        allowed_policies = ["drop", "block", "queue"]
        if v.lower() not in allowed_policies:
            raise ValueError(f"Backpressure policy must be one of: {allowed_policies}")
        return v.lower()

    @field_validator("frame_size", "sampling_interval_us", "max_workers", "max_pending_frames")
    @classmethod
    def validate_positive(cls, v):
        """Validate counts and intervals."""
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("inference_timeout_seconds")
    @classmethod
    def validate_inference_timeout(cls, v):
        """Validate inference timeout."""
        if v <= 0:
            raise ValueError("Inference timeout must be positive")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def sampling_rate_hz(self) -> float:
        """Sensor sampling rate derived from the sampling interval."""
        return 1_000_000.0 / self.sampling_interval_us

    @property
    def frame_duration_seconds(self) -> float:
        """Wall-clock length of one frame."""
        return self.frame_size * self.sampling_interval_us / 1_000_000.0

    def get_model_asset_path(self) -> str:
        """Get path of the bundled model asset."""
        return os.path.join(self.asset_directory, self.model_asset_name)

    def create_directories(self):
        """Create necessary directories."""
        directories = [self.cache_directory]
        if self.log_file:
            directories.append(os.path.dirname(self.log_file) or ".")

        for directory in directories:
            os.makedirs(directory, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_test_settings() -> Settings:
    """Get settings for testing."""
    return Settings(
        environment="testing",
        debug=True,
        classifier_backend="threshold",
        frame_size=50,
        sampling_interval_us=20000,
        max_workers=1,
        max_pending_frames=8,
        backpressure_policy="queue",
        log_level="DEBUG",
    )


def load_settings_from_file(file_path: str) -> Settings:
    """Load settings from a specific file."""
    return Settings(_env_file=file_path)


def validate_settings(settings: Settings) -> List[str]:
    """Validate settings and return list of issues."""
    issues = []

    if settings.is_production and settings.debug:
        issues.append("Debug mode should be disabled in production")

    if settings.walking_variance_threshold >= settings.running_variance_threshold:
        issues.append("Walking variance threshold must be below the running threshold")

    if settings.classifier_backend != "threshold":
        if not os.path.exists(settings.get_model_asset_path()):
            issues.append(f"Model asset not found: {settings.get_model_asset_path()}")

    if settings.backpressure_policy == "queue" and settings.max_workers > 1:
        issues.append("Unbounded queueing with several workers can reorder counter updates")

    try:
        settings.create_directories()
    except Exception as e:
        issues.append(f"Cannot create storage directories: {e}")

    return issues
