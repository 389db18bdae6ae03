"""Environment settings and overrides."""

import os
from typing import Any, Dict, List, Optional


class Settings:
    """Application settings from environment variables."""

    # Environment variable -> (section, key, kind)
    OVERRIDES = {
        "MONGO_URI": ("mongodb", "uri", "str"),
        "MONGO_USERNAME": ("mongodb", "username", "str"),
        "MONGO_PASSWORD": ("mongodb", "password", "str"),
        "MONGO_DATABASE": ("mongodb", "database", "str"),
        "SERVER_PORT": ("server", "port", "str"),
        "LOG_LEVEL": ("logging", "level", "str"),
        "METRICS_ENABLED": ("metrics", "enabled_metrics", "list"),
        "METRICS_DISABLED": ("metrics", "disabled_metrics", "list"),
    }

    @staticmethod
    def get(key: str, default: Optional[str] = None, required: bool = False) -> str:
        """
        Get environment variable value.

        Args:
            key: Environment variable name
            default: Default value if not set
            required: Whether the variable is required

        Returns:
            str: Environment variable value

        Raises:
            ValueError: If required variable is not set
        """
        value = os.getenv(key, default)
        if required and not value:
            raise ValueError(f"Required environment variable not set: {key}")
        return value or ""

    @staticmethod
    def split_list(value: str) -> List[str]:
        """Split a comma-separated variable, dropping blanks."""
        return [item.strip() for item in value.split(",") if item.strip()]

    @classmethod
    def apply_overrides(cls, raw_config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Overlay environment variables onto a raw configuration mapping.

        Args:
            raw_config: Parsed configuration (modified copy is returned)

        Returns:
            Dict[str, Any]: Configuration with overrides applied
        """
        merged = {section: dict(values or {}) for section, values in raw_config.items()}
        for env_var, (section, key, kind) in cls.OVERRIDES.items():
            value = cls.get(env_var)
            if not value:
                continue
            merged.setdefault(section, {})
            merged[section][key] = cls.split_list(value) if kind == "list" else value
        return merged
