"""Corpus linter - mechanical checks over every document.

Checks that fences close, that CONTEXT blocks carry the required
fields, and that placeholder names are snake_case identifiers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .corpus import COLLECTIONS, Corpus
from .document import (
    PLACEHOLDER_RE,
    REQUIRED_CONTEXT_FIELDS,
    Document,
    outside_fences,
    find_context_heading,
    iter_fences,
    match_heading,
)

PLACEHOLDER_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")
# A "{{" with no "}}" anywhere after it; stray closing braces are code
UNCLOSED_PLACEHOLDER_RE = re.compile(r"\{\{(?!.*\}\})")
TEMPLATE_VERSION_RE = re.compile(r"^v?\d+(\.\d+){0,2}([-+.][0-9A-Za-z.-]+)?$")

ERROR = "error"
WARNING = "warning"


@dataclass
class LintIssue:
    """A single finding."""

    path: str
    line: int
    rule: str
    severity: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "line": self.line,
            "rule": self.rule,
            "severity": self.severity,
            "message": self.message,
        }

    def __str__(self) -> str:
        return f"{self.path}:{self.line}: {self.severity} [{self.rule}] {self.message}"


@dataclass
class LintReport:
    """All findings for a corpus."""

    issues: list[LintIssue] = field(default_factory=list)
    documents_checked: int = 0

    @property
    def errors(self) -> int:
        return sum(1 for i in self.issues if i.severity == ERROR)

    @property
    def warnings(self) -> int:
        return sum(1 for i in self.issues if i.severity == WARNING)

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents_checked": self.documents_checked,
            "errors": self.errors,
            "warnings": self.warnings,
            "issues": [i.to_dict() for i in self.issues],
        }


def _check_structure(doc: Document) -> list[LintIssue]:
    issues = []
    if not doc.body.strip():
        return [LintIssue(doc.path, 1, "empty-document", ERROR, "Document is empty")]

    for fence in iter_fences(doc.body):
        if fence.end is None:
            issues.append(LintIssue(
                doc.path, fence.start, "unclosed-fence", ERROR,
                f"Code fence '{fence.marker}' opened here is never closed",
            ))

    if doc.category and doc.category not in COLLECTIONS:
        issues.append(LintIssue(
            doc.path, 1, "unknown-collection", WARNING,
            f"'{doc.category}/' is not one of: {', '.join(COLLECTIONS)}",
        ))

    for lineno, line in outside_fences(doc.body):
        heading = match_heading(line)
        if heading is not None and not heading[1]:
            issues.append(LintIssue(
                doc.path, lineno, "empty-heading", WARNING, "Heading has no text",
            ))
    return issues


def _check_context(doc: Document) -> list[LintIssue]:
    line = find_context_heading(doc.body)
    if line is None:
        return []

    issues = []
    for key, label in REQUIRED_CONTEXT_FIELDS.items():
        if not doc.context.get(key, "").strip():
            issues.append(LintIssue(
                doc.path, line, "context-field-missing", ERROR,
                f"CONTEXT block has no value for '{label}'",
            ))

    version = doc.context.get("template_version", "").strip()
    if version and not TEMPLATE_VERSION_RE.match(version):
        issues.append(LintIssue(
            doc.path, line, "template-version", WARNING,
            f"Template Version '{version}' is not semver-like",
        ))
    return issues


def _check_placeholders(doc: Document) -> list[LintIssue]:
    issues = []
    for lineno, line in enumerate(doc.body.splitlines(), start=1):
        for match in PLACEHOLDER_RE.finditer(line):
            name = match.group(1).strip()
            if not PLACEHOLDER_NAME_RE.match(name):
                issues.append(LintIssue(
                    doc.path, lineno, "placeholder-name", ERROR,
                    f"Placeholder '{{{{{name}}}}}' is not a snake_case identifier",
                ))
        if UNCLOSED_PLACEHOLDER_RE.search(line):
            issues.append(LintIssue(
                doc.path, lineno, "unbalanced-placeholder", WARNING,
                "'{{' is never closed by '}}' on this line",
            ))
    return issues


def lint_document(doc: Document) -> list[LintIssue]:
    """Run every check on one document."""
    issues = _check_structure(doc)
    if not doc.body.strip():
        return issues
    issues.extend(_check_context(doc))
    issues.extend(_check_placeholders(doc))
    issues.sort(key=lambda i: (i.line, i.rule))
    return issues


def lint_corpus(corpus: Corpus) -> LintReport:
    """Lint every document, including files that failed to load."""
    report = LintReport(documents_checked=len(corpus.documents) + len(corpus.errors))
    for path, message in corpus.errors:
        report.issues.append(LintIssue(path, 1, "load-error", ERROR, message))
    for doc in corpus.documents:
        report.issues.extend(lint_document(doc))
    return report
