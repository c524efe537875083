"""Centralized template service configuration.

Single source of truth for template rendering settings.
Reads from environment variables with sensible defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

CompressionType = Literal["deflated", "stored"]


@dataclass
class TemplateSettings:
    """Template settings loaded from environment.

    Usage:
        settings = get_template_settings()
        print(settings.default_sheet)  # "1"
    """
    # Upload guardrails
    max_upload_bytes: int = 20 * 1024 * 1024

    # Rendering
    default_sheet: str = "1"
    validate_output: bool = True
    compression: CompressionType = "deflated"

    # Logging
    log_level: str = "INFO"


def _load_settings_from_env() -> TemplateSettings:
    """Load template settings from environment variables."""
    settings = TemplateSettings()

    if os.getenv("TEMPLATE_MAX_UPLOAD_BYTES"):
        settings.max_upload_bytes = int(os.getenv("TEMPLATE_MAX_UPLOAD_BYTES"))

    settings.default_sheet = os.getenv("TEMPLATE_DEFAULT_SHEET", settings.default_sheet)
    settings.validate_output = os.getenv("TEMPLATE_VALIDATE_OUTPUT", "1").lower() in ("1", "true")

    compression = os.getenv("TEMPLATE_COMPRESSION", "deflated").lower()
    settings.compression = "stored" if compression == "stored" else "deflated"

    settings.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    return settings


# Singleton instance
_settings: TemplateSettings | None = None


def get_template_settings() -> TemplateSettings:
    """Get the template settings singleton.

    Settings are loaded once from environment on first access.
    """
    global _settings
    if _settings is None:
        _settings = _load_settings_from_env()
    return _settings


def reload_template_settings() -> TemplateSettings:
    """Force reload settings from environment.

    Useful for testing or after env changes.
    """
    global _settings
    _settings = _load_settings_from_env()
    return _settings
