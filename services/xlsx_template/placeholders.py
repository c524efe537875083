"""Placeholder scanner.

Grammar::

    placeholder := "${" [kind ":"] name ["." key] "}"

``kind`` defaults to ``normal``. ``key`` is everything after the first dot.
An opening ``${`` without a closing brace produces no token.
"""

from __future__ import annotations

from typing import Iterator, Optional

from .schemas import Placeholder, PlaceholderKind


OPEN = "${"
CLOSE = "}"


def _parse_body(body: str) -> Optional[tuple[str, str, Optional[str]]]:
    kind = PlaceholderKind.NORMAL.value
    prefix, sep, rest = body.partition(":")
    if sep and prefix:
        kind = prefix
    else:
        rest = body

    name, _, key = rest.partition(".")
    if not name:
        return None
    return kind, name, key or None


def _scan(text: str) -> Iterator[Placeholder]:
    pos = 0
    while True:
        start = text.find(OPEN, pos)
        if start == -1:
            return
        close = text.find(CLOSE, start + len(OPEN))
        if close == -1:
            return
        # Innermost opener wins for input like "${ ${name}"
        start = text.rfind(OPEN, start, close)
        end = close + len(CLOSE)
        parsed = _parse_body(text[start + len(OPEN):close])
        pos = end
        if parsed is None:
            continue
        kind, name, key = parsed
        raw = text[start:end]
        yield Placeholder(
            raw=raw,
            kind=kind,
            name=name,
            key=key,
            is_whole_cell_value=len(raw) == len(text),
            start=start,
            end=end,
        )


class Placeholders:
    """Lazy, restartable sequence of the placeholders in a string.

    Every iteration rescans the text from the start, left to right.
    """

    __slots__ = ("text",)

    def __init__(self, text: str):
        self.text = text or ""

    def __iter__(self) -> Iterator[Placeholder]:
        return _scan(self.text)

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None

    def __repr__(self) -> str:
        return f"Placeholders({self.text!r})"


def extract_placeholders(text: Optional[str]) -> Placeholders:
    return Placeholders(text or "")


def has_placeholders(text: Optional[str]) -> bool:
    return bool(text) and OPEN in text and bool(Placeholders(text))
