"""Shared fixtures for the template engine tests."""

import sys
from pathlib import Path

# Add project root to path (tests/templating/ -> tests/ -> project root)
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest

from services.template_config import reload_template_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Each test starts from default settings, unaffected by the developer's .env."""
    for var in (
        "TEMPLATE_MAX_UPLOAD_BYTES",
        "TEMPLATE_DEFAULT_SHEET",
        "TEMPLATE_VALIDATE_OUTPUT",
        "TEMPLATE_COMPRESSION",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    reload_template_settings()
    yield
    reload_template_settings()
