"""Placeholder substitution for {{name}} tokens.

A single regex pass: substituted values are never re-scanned, so the
same text and values always render to the same output.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

from .document import PLACEHOLDER_RE, Document


class MissingPlaceholderError(Exception):
    """Strict rendering found placeholders without a value."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"No value for placeholder(s): {', '.join(missing)}")


@dataclass
class RenderResult:
    """Rendered text plus bookkeeping about the substitution."""

    text: str
    substituted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    unused: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "substituted": self.substituted,
            "missing": self.missing,
            "unused": self.unused,
        }


def render(text: str, values: Mapping[str, str], strict: bool = False) -> RenderResult:
    """Replace every ``{{ name }}`` that has a value.

    Tokens without a value stay exactly as written and are reported in
    ``missing``. With ``strict=True`` they raise MissingPlaceholderError.
    """
    substituted: dict[str, None] = {}
    missing: dict[str, None] = {}

    def _replace(match):
        name = match.group(1).strip()
        if name in values:
            substituted.setdefault(name, None)
            return str(values[name])
        missing.setdefault(name, None)
        return match.group(0)

    rendered = PLACEHOLDER_RE.sub(_replace, text)

    if strict and missing:
        raise MissingPlaceholderError(list(missing))

    return RenderResult(
        text=rendered,
        substituted=list(substituted),
        missing=list(missing),
        unused=[name for name in values if name not in substituted and name not in missing],
    )


def render_document(
    document: Document, values: Mapping[str, str], strict: bool = False
) -> RenderResult:
    return render(document.body, values, strict=strict)


def parse_assignments(items: Iterable[str]) -> dict[str, str]:
    """Parse ``name=value`` pairs. Later pairs win."""
    values: dict[str, str] = {}
    for item in items:
        name, sep, value = item.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Expected name=value, got '{item}'")
        values[name] = value
    return values


def load_values(path: str | Path) -> dict[str, str]:
    """Load substitution values from a JSON object file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object, got {type(data).__name__}")
    return {str(k): v if isinstance(v, str) else str(v) for k, v in data.items()}
