"""
Application configuration.

Values come from environment variables (``.env`` is loaded by ``app.py``
via python-dotenv) with validated defaults. ``create_app`` copies the
result into ``app.config`` and lets explicit overrides win.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_MAX_CONTENT_LENGTH = 10 * 1024 * 1024


def get_env_int(var_name: str, default: int, min_value: int = 1, max_value: Optional[int] = None) -> int:
    """
    Safely get an integer from environment variable with validation.

    Args:
        var_name: Environment variable name
        default: Default value if not set or invalid
        min_value: Minimum allowed value
        max_value: Maximum allowed value (None for no limit)

    Returns:
        Validated integer value
    """
    value_str = os.getenv(var_name)
    if value_str is None:
        return default

    try:
        value = int(value_str)
    except ValueError:
        logger.warning(f"Invalid {var_name}='{value_str}', using default {default}")
        return default

    if value < min_value:
        logger.warning(f"{var_name}={value} is below minimum {min_value}, using {min_value}")
        return min_value
    if max_value is not None and value > max_value:
        logger.warning(f"{var_name}={value} exceeds maximum {max_value}, using {max_value}")
        return max_value
    return value


def get_env_float(var_name: str, default: float, min_value: float = 0.0, max_value: Optional[float] = None) -> float:
    value_str = os.getenv(var_name)
    if value_str is None:
        return default
    try:
        value = float(value_str)
    except ValueError:
        logger.warning(f"Invalid {var_name}='{value_str}', using default {default}")
        return default
    if value < min_value:
        return min_value
    if max_value is not None and value > max_value:
        return max_value
    return value


def get_env_str(var_name: str, default: str, allowed_values: Optional[List[str]] = None) -> str:
    """
    Safely get a string from environment variable with validation.

    Args:
        var_name: Environment variable name
        default: Default value if not set
        allowed_values: List of allowed values (None for any value)

    Returns:
        Validated string value
    """
    value = os.getenv(var_name, default).strip().lower()

    if allowed_values and value not in allowed_values:
        logger.warning(f"Invalid {var_name}='{value}', allowed: {allowed_values}, using default {default}")
        return default
    return value


def get_env_bool(var_name: str, default: bool = False) -> bool:
    value = os.getenv(var_name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> Dict[str, Any]:
    """
    Build the configuration dict from the environment.

    Reading the configuration has no side effects; directories and the
    database are created when services are built.
    """
    return {
        "SECRET_KEY": os.getenv("SECRET_KEY", "dev-secret-key-change-in-production"),
        "DEBUG_ERRORS": get_env_bool("DEBUG_ERRORS", False),

        # Storage
        "STORAGE_BACKEND": get_env_str("STORAGE_BACKEND", "sqlite", ["sqlite", "memory"]),
        "DATABASE_PATH": os.getenv("DATABASE_PATH", str(PROJECT_ROOT / "data" / "storybook.db")),
        "UPLOAD_FOLDER": os.getenv("UPLOAD_FOLDER", str(PROJECT_ROOT / "uploads")),
        "MAX_CONTENT_LENGTH": get_env_int("MAX_CONTENT_LENGTH", DEFAULT_MAX_CONTENT_LENGTH),

        # Providers
        "LLM_PROVIDER": get_env_str("LLM_PROVIDER", "openai", ["openai", "gemini"]),
        "LLM_MODEL": os.getenv("LLM_MODEL") or None,
        "LLM_TEMPERATURE": get_env_float("LLM_TEMPERATURE", 0.8, 0.0, 2.0),
        "IMAGE_PROVIDER": get_env_str("IMAGE_PROVIDER", "openai", ["openai"]),
        "IMAGE_MODEL": os.getenv("IMAGE_MODEL") or None,
        "PROVIDER_TIMEOUT_SECONDS": get_env_int("PROVIDER_TIMEOUT_SECONDS", 120, 1, 600),
        "PROVIDER_MAX_ATTEMPTS": get_env_int("PROVIDER_MAX_ATTEMPTS", 3, 1, 10),
        "PROVIDER_RETRY_DELAY_SECONDS": get_env_float("PROVIDER_RETRY_DELAY_SECONDS", 1.0, 0.0, 30.0),

        # Background jobs
        "USE_BACKGROUND_JOBS": get_env_bool("USE_BACKGROUND_JOBS", False),
        "REDIS_URL": os.getenv("REDIS_URL", "memory://"),

        # Rate limits
        "RATELIMIT_STORAGE_URI": os.getenv("REDIS_URL", "memory://"),
        "DEFAULT_RATE_LIMITS": ["1000 per day", "200 per hour"],
        "GENERATE_RATE_LIMIT": os.getenv("GENERATE_RATE_LIMIT", "10 per minute"),
        "IMAGE_RATE_LIMIT": os.getenv("IMAGE_RATE_LIMIT", "10 per minute"),
        "ANALYZE_RATE_LIMIT": os.getenv("ANALYZE_RATE_LIMIT", "30 per minute"),
        "UPLOAD_RATE_LIMIT": os.getenv("UPLOAD_RATE_LIMIT", "30 per minute"),
    }
