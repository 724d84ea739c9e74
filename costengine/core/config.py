"""
Configuration module for loading environment variables.
Values are read once at import; the engine only ever sees EngineSettings.
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from costengine.pricing.aws_region_map import is_known_region

logger = logging.getLogger(__name__)


DEFAULT_MAX_BATCH_SIZE = 100
MAX_MAX_BATCH_SIZE = 500

# Current name first, then deprecated, then legacy
BATCH_SIZE_ENV_CHAIN = ("FINFOCUS_MAX_BATCH_SIZE", "PULUMICOST_MAX_BATCH_SIZE", "MAX_BATCH_SIZE")
STRICT_VALIDATION_ENV_CHAIN = (
    "FINFOCUS_STRICT_VALIDATION",
    "PULUMICOST_STRICT_VALIDATION",
    "STRICT_VALIDATION",
)
TEST_MODE_ENV_CHAIN = ("FINFOCUS_TEST_MODE", "PULUMICOST_TEST_MODE")


def _first_env(names: Sequence[str]) -> Optional[str]:
    """
    Return the value of the first set variable in a deprecation chain.

    Logs a warning when a deprecated or legacy name supplied the value.
    """
    for position, name in enumerate(names):
        value = os.getenv(name)
        if value is None or value.strip() == "":
            continue
        if position > 0:
            logger.warning(
                "Environment variable %s is deprecated; use %s instead",
                name,
                names[0],
            )
        return value.strip()
    return None


def parse_bool(value: Optional[str]) -> bool:
    """Parse true/1/yes/on (any case) as True; everything else is False."""
    if value is None:
        return False
    return value.strip().lower() in ("true", "1", "yes", "on")


def resolve_max_batch_size(raw: Optional[str]) -> int:
    """
    Resolve the configured recommendation batch size.

    Non-numeric or non-positive values fall back to the default; values
    above the hard ceiling are clamped.
    """
    if raw is None:
        return DEFAULT_MAX_BATCH_SIZE
    try:
        size = int(raw)
    except ValueError:
        logger.warning("Invalid max batch size %r, using default %d", raw, DEFAULT_MAX_BATCH_SIZE)
        return DEFAULT_MAX_BATCH_SIZE
    if size <= 0:
        logger.warning("Max batch size must be positive (got %d), using default %d", size, DEFAULT_MAX_BATCH_SIZE)
        return DEFAULT_MAX_BATCH_SIZE
    if size > MAX_MAX_BATCH_SIZE:
        logger.warning("Max batch size %d exceeds ceiling, clamping to %d", size, MAX_MAX_BATCH_SIZE)
        return MAX_MAX_BATCH_SIZE
    return size


@dataclass(frozen=True)
class EngineSettings:
    """Immutable settings handed to the cost engine at construction."""
    region: str = "us-east-1"
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    strict_validation: bool = False
    test_mode: bool = False
    plugin_name: str = "aws-public"
    plugin_version: str = "0.1.0"


class Config:
    """Application configuration loaded from environment variables."""

    # Region served by this instance
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")

    # Optional override for the embedded offer file
    PRICING_DATA_PATH: str = os.getenv("PRICING_DATA_PATH", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    PLUGIN_VERSION: str = os.getenv("PLUGIN_VERSION", "0.1.0")

    MAX_BATCH_SIZE: int = resolve_max_batch_size(_first_env(BATCH_SIZE_ENV_CHAIN))
    STRICT_VALIDATION: bool = parse_bool(_first_env(STRICT_VALIDATION_ENV_CHAIN))
    TEST_MODE: bool = parse_bool(_first_env(TEST_MODE_ENV_CHAIN))

    @classmethod
    def validate(cls) -> None:
        """
        Validates that required configuration values are set.

        Raises:
            ValueError: If any required configuration is missing or invalid.
        """
        if not cls.AWS_REGION:
            raise ValueError("AWS_REGION is required")
        if not is_known_region(cls.AWS_REGION):
            logger.warning("AWS_REGION %s is not a known region code", cls.AWS_REGION)
        if cls.LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be a standard logging level (got: {cls.LOG_LEVEL})")
        if cls.PRICING_DATA_PATH and not os.path.exists(cls.PRICING_DATA_PATH):
            raise ValueError(f"PRICING_DATA_PATH does not exist: {cls.PRICING_DATA_PATH}")

    @classmethod
    def engine_settings(cls) -> EngineSettings:
        """Snapshot the environment-derived values into an EngineSettings."""
        return EngineSettings(
            region=cls.AWS_REGION,
            max_batch_size=cls.MAX_BATCH_SIZE,
            strict_validation=cls.STRICT_VALIDATION,
            test_mode=cls.TEST_MODE,
            plugin_version=cls.PLUGIN_VERSION,
        )


config = Config()
