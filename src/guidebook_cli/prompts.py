"""Prompt framing for rendered guide documents.

A rendered document is handed to the model as reference material,
with its CONTEXT metadata up front and an optional task after it.
"""

from __future__ import annotations

from .document import Document

SYSTEM_PROMPT = """You are a senior engineer working on a codebase.
The user supplies a project guide: coding standards, naming conventions,
an architectural pattern or a prompt template. Treat it as binding for
the work you are asked to do.
Follow its conventions exactly. Do not restate the guide back.
If the guide and the task conflict, say so before answering."""


def _context_lines(document: Document) -> str:
    lines = [f"Document: {document.path}"]
    if document.title and document.title != document.name:
        lines.append(f"Title: {document.title}")
    for key, value in document.context.items():
        if value:
            lines.append(f"{key.replace('_', ' ').title()}: {value}")
    return "\n".join(lines)


def document_prompt(document: Document, rendered: str, task: str = "") -> str:
    """Wrap a rendered document (and an optional task) into a prompt."""
    task_block = (
        f"\n\nTASK:\n{task.strip()}"
        if task.strip()
        else "\n\nTASK:\nApply this guide. Summarise the rules you will follow, "
        "then ask for the code or change to work on."
    )
    return f"""GUIDE METADATA:
{_context_lines(document)}

GUIDE:
{rendered.strip()}{task_block}"""
