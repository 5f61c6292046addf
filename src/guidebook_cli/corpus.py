"""Corpus loader - walks a guide tree and selects documents by topic.

Documents are grouped by their top-level directory (the collection).
A topic is matched against directory and file naming, never against
an index file: the layout is the index.
"""

from __future__ import annotations

import logging
import os
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .document import Document, DocumentError, load_document

logger = logging.getLogger(__name__)

COLLECTIONS = ("guides", "patterns", "prompts", "references", "scenarios", "practice")

IGNORE_DIRS = {
    ".git", "node_modules", "__pycache__", ".venv", "venv", "env",
    ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    "build", "dist", "site", ".idea", ".vscode",
}

MARKDOWN_EXTENSIONS = {".md", ".markdown"}


class CorpusError(Exception):
    """The corpus root is unusable."""


class DocumentNotFound(CorpusError):
    """No document matches the requested topic or path."""


@dataclass
class Match:
    """A ranked search hit."""

    document: Document
    score: int


def _normalize(text: str) -> str:
    text = text.strip().lower().replace("\\", "/")
    for ext in MARKDOWN_EXTENSIONS:
        if text.endswith(ext):
            text = text[: -len(ext)]
    text = re.sub(r"[\s_-]+", "-", text)
    return text.strip("/-")


def _words(text: str) -> list[str]:
    return [w for w in re.split(r"[^a-z0-9+#]+", text.lower()) if w]


def _score(doc: Document, topic: str) -> int:
    """Score how well a normalized topic names a document. 0 = no match."""
    path = _normalize(doc.path)
    name = _normalize(doc.name)

    if topic == path:
        return 100
    if topic == name:
        return 80
    if path.endswith("/" + topic):
        return 70
    if name.startswith(topic):
        return 50

    words = _words(topic)
    if not words:
        return 0
    path_words = set(_words(path))
    if all(w in path_words for w in words):
        name_words = set(_words(name))
        return 30 + 5 * sum(1 for w in words if w in name_words)
    title_words = set(_words(doc.title))
    if all(w in title_words for w in words):
        return 10
    return 0


@dataclass
class Corpus:
    """All markdown documents found under a root directory."""

    root: Path
    documents: list[Document] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)  # (path, message)

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self):
        return iter(self.documents)

    def get(self, path: str) -> Document:
        """Exact lookup by corpus-relative path, ``.md`` optional."""
        wanted = path.strip().replace("\\", "/").removeprefix("./").removesuffix(".md")
        for doc in self.documents:
            if doc.path.removesuffix(".md") == wanted:
                return doc
        raise DocumentNotFound(f"No document at {path}")

    def filter(
        self,
        category: str | None = None,
        subcategory: str | None = None,
        project_type: str | None = None,
        complexity: str | None = None,
    ) -> list[Document]:
        """Documents whose fields equal every given value (case-insensitive)."""
        wanted = {
            "category": category,
            "subcategory": subcategory,
            "project_type": project_type,
            "complexity": complexity,
        }
        wanted = {k: v.strip().lower() for k, v in wanted.items() if v}
        return [
            doc for doc in self.documents
            if all(getattr(doc, k).strip().lower() == v for k, v in wanted.items())
        ]

    def search(self, topic: str) -> list[Match]:
        """Rank documents by how well the topic matches their naming."""
        normalized = _normalize(topic)
        if not normalized:
            return []
        matches = []
        for doc in self.documents:
            score = _score(doc, normalized)
            if score:
                matches.append(Match(document=doc, score=score))
        matches.sort(key=lambda m: (-m.score, m.document.path.count("/"), m.document.path))
        return matches

    def select(self, topic: str) -> Document:
        """Pick the single best document for a topic."""
        matches = self.search(topic)
        if not matches:
            raise DocumentNotFound(f"No document matches '{topic}'")
        best = matches[0]
        runners_up = [m for m in matches[1:] if m.score == best.score]
        if runners_up:
            logger.info(
                "Topic %r is ambiguous, picked %s over %s",
                topic, best.document.path,
                ", ".join(m.document.path for m in runners_up[:3]),
            )
        return best.document

    def collections(self) -> dict[str, int]:
        """Document count per top-level collection."""
        counts = Counter(doc.category or "." for doc in self.documents)
        return dict(sorted(counts.items()))

    def project_types(self) -> dict[str, int]:
        """Document count per CONTEXT project type."""
        counts = Counter(doc.project_type for doc in self.documents if doc.project_type)
        return dict(counts.most_common())


def load_corpus(root: str | Path, collections: Iterable[str] | None = None) -> Corpus:
    """Load every markdown document under root."""
    root = Path(root).resolve()
    if not root.is_dir():
        raise CorpusError(f"Not a directory: {root}")

    keep = {c.lower() for c in collections} if collections else None
    corpus = Corpus(root=root)

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if d not in IGNORE_DIRS and not d.startswith(".")
        )
        for fname in sorted(filenames):
            if os.path.splitext(fname)[1].lower() not in MARKDOWN_EXTENSIONS:
                continue
            fpath = Path(dirpath) / fname
            rel = fpath.relative_to(root).as_posix()
            try:
                doc = load_document(fpath, root)
            except DocumentError as e:
                logger.warning("Skipping %s: %s", rel, e)
                corpus.errors.append((rel, str(e)))
                continue
            if keep is not None and doc.category.lower() not in keep:
                continue
            corpus.documents.append(doc)

    corpus.documents.sort(key=lambda d: d.path)
    logger.debug("Loaded %d documents from %s", len(corpus.documents), root)
    return corpus
