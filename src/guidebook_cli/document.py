"""Document model - one markdown file of the corpus.

Parses the CONTEXT header block, discovers {{placeholder}} tokens,
tracks fenced code and extracts CLAUDE_CODE_COMMANDS blocks. Nothing
here writes to disk.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

PLACEHOLDER_RE = re.compile(r"\{\{(.*?)\}\}")
HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")
CONTEXT_FIELD_RE = re.compile(
    r"^\s*[-*+]\s+(?:\*\*)?(?P<key>[^:*]+?)(?::\*\*|\*\*:|:)\s*(?P<value>.*)$"
)

COMMANDS_MARKER = "CLAUDE_CODE_COMMANDS"

# CONTEXT fields every document with a CONTEXT block must fill in
REQUIRED_CONTEXT_FIELDS = {
    "project_type": "Project Type",
    "complexity": "Complexity",
    "template_version": "Template Version",
}


class DocumentError(Exception):
    """A corpus file could not be read or decoded."""


@dataclass
class Fence:
    """A fenced code block. ``end`` is None when the fence is never closed."""

    marker: str
    info: str
    start: int
    end: int | None = None
    lines: list[str] = field(default_factory=list)

    @property
    def language(self) -> str:
        return self.info.split()[0] if self.info else ""

    @property
    def code(self) -> str:
        return "\n".join(self.lines)

    def closed_by(self, line: str) -> bool:
        stripped = line.strip()
        if len(line) - len(line.lstrip(" ")) > 3:
            return False
        run = len(stripped) - len(stripped.lstrip(self.marker[0]))
        return run >= len(self.marker) and not stripped[run:].strip()


@dataclass
class CommandBlock:
    """A fenced block listed under a CLAUDE_CODE_COMMANDS section."""

    language: str
    code: str
    line: int

    def to_dict(self) -> dict[str, Any]:
        return {"language": self.language, "code": self.code, "line": self.line}


@dataclass
class Document:
    """A single markdown document of the corpus."""

    path: str
    name: str
    body: str
    category: str = ""
    subcategory: str = ""
    title: str = ""

    # CONTEXT block
    has_context: bool = False
    context: dict[str, str] = field(default_factory=dict)
    project_type: str = ""
    complexity: str = ""
    last_updated: str = ""
    template_version: str = ""

    placeholders: list[str] = field(default_factory=list)

    def to_dict(self, include_body: bool = False) -> dict[str, Any]:
        data = {
            "path": self.path,
            "name": self.name,
            "category": self.category,
            "subcategory": self.subcategory,
            "title": self.title,
            "has_context": self.has_context,
            "project_type": self.project_type,
            "complexity": self.complexity,
            "last_updated": self.last_updated,
            "template_version": self.template_version,
            "context": dict(self.context),
            "placeholders": list(self.placeholders),
            "summary": self.summary(),
        }
        if include_body:
            data["body"] = self.body
        return data

    def summary(self) -> str:
        """One-line description for listings."""
        parts = [self.path]
        if self.project_type:
            parts.append(self.project_type)
        if self.complexity:
            parts.append(self.complexity)
        if self.template_version:
            parts.append(f"v{self.template_version.lstrip('vV')}")
        if self.placeholders:
            parts.append(f"{len(self.placeholders)} placeholders")
        return " | ".join(parts)


def match_heading(line: str) -> tuple[int, str] | None:
    """Return (level, text) for an ATX heading line, else None."""
    match = HEADING_RE.match(line)
    if not match:
        return None
    text = (match.group(2) or "").strip()
    # Optional closing sequence: "## Title ##"
    text = re.sub(r"(?:^|[ \t]+)#+$", "", text).strip()
    return len(match.group(1)), text


def iter_fences(text: str) -> list[Fence]:
    """Find fenced code blocks, in document order."""
    fences: list[Fence] = []
    current: Fence | None = None
    for lineno, line in enumerate(text.splitlines(), start=1):
        if current is None:
            match = FENCE_RE.match(line)
            if match:
                marker, info = match.group(1), match.group(2).strip()
                # Backtick fences cannot carry backticks in the info string
                if marker[0] == "`" and "`" in info:
                    continue
                current = Fence(marker=marker, info=info, start=lineno)
                fences.append(current)
        elif current.closed_by(line):
            current.end = lineno
            current = None
        else:
            current.lines.append(line)
    return fences


def _fenced_lines(fences: list[Fence], total: int) -> set[int]:
    covered: set[int] = set()
    for fence in fences:
        end = fence.end if fence.end is not None else total
        covered.update(range(fence.start, end + 1))
    return covered


def outside_fences(text: str) -> list[tuple[int, str]]:
    lines = text.splitlines()
    covered = _fenced_lines(iter_fences(text), len(lines))
    return [
        (lineno, line)
        for lineno, line in enumerate(lines, start=1)
        if lineno not in covered
    ]


def _plain(text: str) -> str:
    return re.sub(r"[*_`]", "", text).strip().rstrip(":").strip()


def _field_key(label: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", label.strip().lower()).strip("_")


def find_context_heading(text: str) -> int | None:
    """Line number of the CONTEXT heading, or None."""
    for lineno, line in outside_fences(text):
        heading = match_heading(line)
        if heading and _plain(heading[1]).upper() == "CONTEXT":
            return lineno
    return None


def parse_context(text: str) -> dict[str, str]:
    """Parse the bullet fields of the CONTEXT block.

    Reads from the first ``CONTEXT`` heading up to the next heading.
    Keys come back in snake_case (``Project Type`` -> ``project_type``);
    the first occurrence of a key wins.
    """
    fields: dict[str, str] = {}
    in_context = False
    for _, line in outside_fences(text):
        heading = match_heading(line)
        if heading is not None:
            if in_context:
                break
            in_context = _plain(heading[1]).upper() == "CONTEXT"
            continue
        if not in_context:
            continue
        match = CONTEXT_FIELD_RE.match(line)
        if match:
            key = _field_key(match.group("key"))
            if key:
                fields.setdefault(key, match.group("value").strip())
    return fields


def find_placeholders(text: str) -> list[str]:
    """Placeholder names in first-seen order, without duplicates."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_RE.finditer(text):
        seen.setdefault(match.group(1).strip(), None)
    return list(seen)


def extract_command_blocks(text: str) -> list[CommandBlock]:
    """Collect fenced blocks that sit under a CLAUDE_CODE_COMMANDS marker.

    The marker is either a heading (the section runs to the next heading
    of the same or higher level) or a plain label line such as
    ``**CLAUDE_CODE_COMMANDS:**`` (the section runs to the next heading).
    """
    lines = text.splitlines()
    fences = iter_fences(text)
    by_start = {fence.start: fence for fence in fences}
    covered = _fenced_lines(fences, len(lines))

    blocks: list[CommandBlock] = []
    section_level: int | None = None
    for lineno, line in enumerate(lines, start=1):
        fence = by_start.get(lineno)
        if fence is not None:
            if section_level is not None or COMMANDS_MARKER in fence.info.upper():
                blocks.append(
                    CommandBlock(language=fence.language, code=fence.code, line=lineno)
                )
            continue
        if lineno in covered:
            continue

        heading = match_heading(line)
        if heading is not None:
            level, title = heading
            if COMMANDS_MARKER in title.upper():
                section_level = level
            elif section_level is not None and level <= section_level:
                section_level = None
        elif _plain(line).upper().startswith(COMMANDS_MARKER):
            section_level = 7
    return blocks


def _first_title(text: str) -> str:
    for _, line in outside_fences(text):
        heading = match_heading(line)
        if heading and heading[0] == 1 and heading[1]:
            return heading[1]
    return ""


def parse_document(text: str, path: str) -> Document:
    """Build a Document from markdown text and its corpus-relative path."""
    rel = Path(path)
    parts = rel.parts
    context = parse_context(text)

    return Document(
        path=rel.as_posix(),
        name=rel.stem,
        body=text,
        category=parts[0] if len(parts) > 1 else "",
        subcategory=parts[1] if len(parts) > 2 else "",
        title=_first_title(text) or rel.stem,
        has_context=find_context_heading(text) is not None,
        context=context,
        project_type=context.get("project_type", ""),
        complexity=context.get("complexity", ""),
        last_updated=context.get("last_updated", ""),
        template_version=context.get("template_version", ""),
        placeholders=find_placeholders(text),
    )


def load_document(path: str | Path, root: str | Path) -> Document:
    """Read a markdown file and parse it relative to the corpus root."""
    path = Path(path)
    root = Path(root)
    try:
        text = path.read_bytes().decode("utf-8-sig")
    except OSError as e:
        raise DocumentError(f"Cannot read {path}: {e.strerror or e}") from e
    except UnicodeDecodeError as e:
        raise DocumentError(f"{path} is not valid UTF-8: {e.reason}") from e

    try:
        rel = path.resolve().relative_to(root.resolve())
    except ValueError:
        rel = Path(path.name)
    return parse_document(text, rel.as_posix())
