"""Shared fixtures: small guide corpora built under tmp_path."""

import pytest

KOTLIN_NAMING = """# Kotlin Naming Conventions

## CONTEXT
- **Project Type**: Android App
- **Complexity**: Intermediate
- **Last Updated**: 2024-03-01
- **Template Version**: 2.1

## Rules
Classes in {{project_name}} use PascalCase.

```kotlin
val userName = "{{ default_user }}"
```

## CLAUDE_CODE_COMMANDS
```bash
claude "rename symbols in {{project_name}}"
```

## Notes
```bash
echo "not a command block"
```
"""

JAVA_STYLE = """# Java Style Guide

## CONTEXT
- Project Type: Backend Service
- Complexity: Advanced
- Template Version: 1.0

Four-space indentation.
"""

CLEAN_ARCHITECTURE = """# Clean Architecture

Layers depend inwards only.
"""

CODE_REVIEW = """# Code Review Prompt

## CONTEXT
- **Project Type:** Any
- **Complexity:** Simple
- **Template Version:** 3.0.0

Review {{file_path}} written in {{language}}.
Point out {{language}} idioms that are misused.
"""

SQL_NAMING = """# SQL Naming

## CONTEXT
- **Project Type**: Database
- **Complexity**: Simple
- **Template Version**: v1

Tables are plural snake_case.
"""

BROKEN = """# Broken

## CONTEXT
- **Project Type**: Web
- **Complexity**:
- **Template Version**: next

Use {{ProjectName}} and {{ok_name}}.
Dangling {{oops here

##

```python
print("never closed")
"""


@pytest.fixture
def sample_corpus(tmp_path):
    """A lint-clean corpus with five documents across four collections."""
    root = tmp_path / "corpus"
    files = {
        "guides/kotlin/naming-conventions.md": KOTLIN_NAMING,
        "guides/java/style-guide.md": JAVA_STYLE,
        "patterns/architecture/clean-architecture.md": CLEAN_ARCHITECTURE,
        "prompts/code-review.md": CODE_REVIEW,
        "references/sql/naming.md": SQL_NAMING,
    }
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    # Never part of the corpus
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "node_modules" / "pkg" / "README.md").write_text("# vendored\n")
    (root / ".github").mkdir()
    (root / ".github" / "PULL_REQUEST_TEMPLATE.md").write_text("# PR\n")
    (root / "guides" / "notes.txt").write_text("not markdown\n")
    return root


@pytest.fixture
def broken_corpus(tmp_path):
    """A corpus with one document breaking most lint rules."""
    root = tmp_path / "broken"
    (root / "guides").mkdir(parents=True)
    (root / "guides" / "broken.md").write_text(BROKEN, encoding="utf-8")
    (root / "guides" / "empty.md").write_text("   \n", encoding="utf-8")
    return root
