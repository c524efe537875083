"""Exceptions raised by the template engine.

Structural problems (a broken package, a sheet that does not exist, a
reference that cannot be parsed) abort the operation. Missing data is not an
error: unresolved placeholders and dangling shared-string indexes are skipped.
"""

from __future__ import annotations


class TemplateError(Exception):
    """Base class for all template engine errors."""


class TemplateLoadError(TemplateError):
    """A required part or relationship is missing, or a part cannot be parsed."""


class SheetNotFoundError(TemplateError, LookupError):
    """No sheet matches the requested id or name."""

    def __init__(self, sheet: int | str):
        self.sheet = sheet
        super().__init__(f"Sheet not found: {sheet!r}")


class ReferenceParseError(TemplateError, ValueError):
    """A cell or range reference does not match the expected syntax."""

    def __init__(self, ref: str, kind: str = "cell"):
        self.ref = ref
        self.kind = kind
        super().__init__(f"Invalid {kind} reference: {ref!r}")
