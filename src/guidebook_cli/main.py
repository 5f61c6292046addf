"""Guidebook CLI - pick a guide by topic, fill its placeholders, lint the corpus.

Usage:
    guidebook list --category guides
    guidebook render kotlin/naming --var project_name=Acme
    guidebook lint --root ./docs
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from . import __version__
from .corpus import Corpus, CorpusError, DocumentNotFound, load_corpus
from .document import Document, extract_command_blocks
from .lint import ERROR, lint_corpus
from .model import DEFAULT_MODEL, ModelError, OllamaClient
from .prompts import SYSTEM_PROMPT, document_prompt
from .render import (
    MissingPlaceholderError,
    load_values,
    parse_assignments,
    render_document,
)
from .serve import DEFAULT_PORT, start_server

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _corpus(ctx: click.Context) -> Corpus:
    """Load the corpus once per invocation."""
    if "corpus" not in ctx.obj:
        try:
            ctx.obj["corpus"] = load_corpus(ctx.obj["root"])
        except CorpusError as e:
            raise click.ClickException(str(e))
    return ctx.obj["corpus"]


def _select(ctx: click.Context, topic: str) -> Document:
    try:
        return _corpus(ctx).select(topic)
    except DocumentNotFound as e:
        raise click.ClickException(f"{e}. Try: guidebook list")


def _values(pairs: tuple[str, ...], vars_file: str | None) -> dict[str, str]:
    """Merge --vars-file and --var values; --var wins."""
    try:
        values = load_values(vars_file) if vars_file else {}
        values.update(parse_assignments(pairs))
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))
    return values


var_option = click.option(
    "--var", "-v", "pairs", multiple=True, metavar="NAME=VALUE",
    help="Placeholder value (repeatable)",
)
vars_file_option = click.option(
    "--vars-file", type=click.Path(exists=True, dir_okay=False), default=None,
    help="JSON object of placeholder values",
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--root", "-r", default=".", envvar="GUIDEBOOK_ROOT", show_default=True,
    type=click.Path(file_okay=False), help="Corpus root directory",
)
@click.option("--verbose", is_flag=True, help="Debug logging on stderr")
@click.pass_context
def cli(ctx: click.Context, root: str, verbose: bool):
    """Guidebook - select, render and lint markdown guide corpora.

    Documents live under collections such as guides/, patterns/, prompts/,
    references/, scenarios/ and practice/. A TOPIC is matched against
    directory and file names.
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["root"] = Path(root)


@cli.command("list")
@click.option("--category", "-c", default=None, help="Only this collection")
@click.option("--project-type", "-p", default=None, help="Only this CONTEXT project type")
@click.option("--complexity", default=None, help="Only this CONTEXT complexity")
@click.option("--json", "as_json", is_flag=True, help="Output JSON to stdout")
@click.pass_context
def list_documents(ctx, category, project_type, complexity, as_json):
    """List documents in the corpus."""
    docs = _corpus(ctx).filter(
        category=category, project_type=project_type, complexity=complexity,
    )
    if as_json:
        click.echo(json.dumps([d.to_dict() for d in docs], indent=2))
        return

    if not docs:
        console.print("[yellow]No documents found.[/]")
        return

    table = Table(show_header=True, border_style="dim")
    table.add_column("Path", style="bold")
    table.add_column("Title")
    table.add_column("Project Type")
    table.add_column("Complexity")
    table.add_column("Version", justify="right")
    table.add_column("Vars", justify="right")
    for d in docs:
        table.add_row(
            d.path, d.title[:50], d.project_type, d.complexity,
            d.template_version, str(len(d.placeholders)) if d.placeholders else "",
        )
    console.print(table)
    console.print(f"[dim]{len(docs)} documents[/]")


@cli.command()
@click.pass_context
def tree(ctx):
    """Show collections and their documents."""
    corpus = _corpus(ctx)
    root = Tree(f"[bold]{corpus.root.name}/[/] ({len(corpus)} documents)")
    branches: dict[str, Tree] = {}
    for doc in corpus.documents:
        branch = root
        parts = doc.path.split("/")[:-1]
        for depth in range(len(parts)):
            key = "/".join(parts[: depth + 1])
            if key not in branches:
                branches[key] = branch.add(f"[cyan]{parts[depth]}/[/]")
            branch = branches[key]
        branch.add(doc.path.split("/")[-1])
    console.print(root)


@cli.command()
@click.argument("topic")
@click.pass_context
def show(ctx, topic):
    """Show a document with its CONTEXT metadata."""
    doc = _select(ctx, topic)

    table = Table(show_header=False, border_style="dim")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Path", doc.path)
    for key, value in doc.context.items():
        table.add_row(key.replace("_", " ").title(), value)
    if doc.placeholders:
        table.add_row("Placeholders", ", ".join(doc.placeholders))
    console.print(Panel(
        table, title=escape(doc.title), subtitle=escape(doc.summary()), border_style="cyan",
    ))
    console.print(Markdown(doc.body))


@cli.command()
@click.argument("topic")
@var_option
@vars_file_option
@click.option("--strict", is_flag=True, help="Fail when a placeholder has no value")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write to file")
@click.pass_context
def render(ctx, topic, pairs, vars_file, strict, output):
    """Render a document, substituting {{placeholders}}."""
    doc = _select(ctx, topic)
    values = _values(pairs, vars_file)
    try:
        result = render_document(doc, values, strict=strict)
    except MissingPlaceholderError as e:
        raise click.ClickException(f"{doc.path}: {e}")

    if output:
        out = Path(output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(result.text, encoding="utf-8")
        err_console.print(f"[green]Rendered {doc.path} to {out}[/]")
    else:
        click.echo(result.text, nl=not result.text.endswith("\n"))

    if result.missing:
        err_console.print(f"[yellow]Unfilled placeholders:[/] {', '.join(result.missing)}")
    if result.unused:
        err_console.print(f"[dim]Unused values: {', '.join(result.unused)}[/]")


@cli.command()
@click.argument("topic")
@click.option("--json", "as_json", is_flag=True, help="Output JSON to stdout")
@click.pass_context
def placeholders(ctx, topic, as_json):
    """List the placeholders a document expects."""
    doc = _select(ctx, topic)
    if as_json:
        click.echo(json.dumps({"path": doc.path, "placeholders": doc.placeholders}, indent=2))
        return
    if not doc.placeholders:
        console.print(f"[dim]{doc.path} has no placeholders[/]")
        return
    console.print(f"[bold]{doc.path}[/]")
    for name in doc.placeholders:
        console.print(escape(f"  {{{{{name}}}}}"), highlight=False)


@cli.command()
@click.argument("topic")
@click.pass_context
def commands(ctx, topic):
    """Print the CLAUDE_CODE_COMMANDS blocks of a document (never run)."""
    doc = _select(ctx, topic)
    blocks = extract_command_blocks(doc.body)
    if not blocks:
        console.print(f"[dim]{doc.path} has no CLAUDE_CODE_COMMANDS blocks[/]")
        return
    for block in blocks:
        console.print(f"[dim]{doc.path}:{block.line}[/]")
        console.print(Syntax(block.code, block.language or "text", word_wrap=True))


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output JSON to stdout")
@click.pass_context
def lint(ctx, as_json):
    """Check CONTEXT blocks, placeholders and code fences."""
    report = lint_corpus(_corpus(ctx))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        for issue in report.issues:
            color = "red" if issue.severity == ERROR else "yellow"
            console.print(
                f"[bold]{escape(issue.path)}[/]:{issue.line}: [{color}]{issue.severity}[/] "
                f"[dim]\\[{issue.rule}][/] {escape(issue.message)}",
                highlight=False,
            )
        summary = (
            f"{report.documents_checked} documents, "
            f"{report.errors} errors, {report.warnings} warnings"
        )
        console.print(f"[green]{summary}[/]" if report.ok else f"[red]{summary}[/]")

    if not report.ok:
        ctx.exit(1)


@cli.command()
@click.option("--port", "-p", default=DEFAULT_PORT, show_default=True, help="Port to serve on")
@click.option("--open", "open_browser", is_flag=True, help="Open the viewer in a browser")
@click.pass_context
def serve(ctx, port, open_browser):
    """Browse the corpus in a local web viewer."""
    root = ctx.obj["root"]
    console.print(f"Serving [bold]{Path(root).resolve()}[/] at http://localhost:{port}")
    console.print("[dim]Press Ctrl+C to stop[/]")
    try:
        start_server(root, port=port, open_browser=open_browser)
    except (CorpusError, FileNotFoundError) as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument("topic")
@var_option
@vars_file_option
@click.option("--task", "-t", default="", help="What the model should do with the guide")
@click.option("--model", "-m", default=DEFAULT_MODEL, show_default=True, help="Ollama model name")
@click.option("--strict", is_flag=True, help="Fail when a placeholder has no value")
@click.option("--raw", is_flag=True, help="Print the response without markdown formatting")
@click.pass_context
def send(ctx, topic, pairs, vars_file, task, model, strict, raw):
    """Render a document and hand it to a local Ollama model."""
    doc = _select(ctx, topic)
    try:
        result = render_document(doc, _values(pairs, vars_file), strict=strict)
    except MissingPlaceholderError as e:
        raise click.ClickException(f"{doc.path}: {e}")
    if result.missing:
        err_console.print(f"[yellow]Unfilled placeholders:[/] {', '.join(result.missing)}")

    client = OllamaClient(model=model)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=err_console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Checking model...", total=None)

        def on_progress(status, completed, total):
            progress.update(task_id, description=status)

        try:
            client.ensure_ready(progress_callback=on_progress)
            progress.update(task_id, description=f"Sending {doc.path} to {model}...")
            response = client.generate(document_prompt(doc, result.text, task), system=SYSTEM_PROMPT)
        except ModelError as e:
            raise click.ClickException(str(e))

    if raw:
        click.echo(response)
    else:
        console.print(Markdown(response))


@cli.command()
def version():
    """Show version information."""
    console.print(f"guidebook-cli v{__version__}")
    console.print("Select, render and lint markdown guide corpora")


if __name__ == "__main__":
    cli()
