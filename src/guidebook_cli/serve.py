"""Local HTTP server for browsing a guide corpus.

Serves the viewer HTML template plus a small read-only JSON API.
Placeholders are filled through ``var.<name>`` query parameters, kept
apart from ``path`` so a placeholder may itself be called ``path``.
"""

from __future__ import annotations

import json
import threading
import webbrowser
from functools import partial
from http.server import HTTPServer, SimpleHTTPRequestHandler
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from .corpus import Corpus, DocumentNotFound, load_corpus
from .document import extract_command_blocks
from .render import render_document

VIEWER_TEMPLATE = Path(__file__).parent / "templates" / "viewer.html"
DEFAULT_PORT = 8420
VAR_PREFIX = "var."


def _load_corpus_data(corpus: Corpus) -> dict[str, Any]:
    """Build the listing payload served at /api/documents."""
    if not corpus.documents:
        raise FileNotFoundError(
            f"No markdown documents found in {corpus.root}. "
            "Point --root at a guide corpus (guides/, patterns/, prompts/, ...)."
        )
    return {
        "root": str(corpus.root),
        "collections": corpus.collections(),
        "project_types": corpus.project_types(),
        "documents": [doc.to_dict() for doc in corpus.documents],
    }


class GuidebookHandler(SimpleHTTPRequestHandler):
    """HTTP handler that serves the viewer and API data."""

    def __init__(self, *args, corpus: Corpus, listing: dict, viewer_html: str, **kwargs):
        self._corpus = corpus
        self._listing = listing
        self._viewer_html = viewer_html
        super().__init__(*args, **kwargs)

    def do_GET(self):
        url = urlsplit(self.path)
        if url.path in ("/", "/index.html"):
            self._send(200, "text/html; charset=utf-8", self._viewer_html.encode("utf-8"))
        elif url.path == "/api/documents":
            self._send_json(self._listing)
        elif url.path == "/api/document":
            self._serve_document(parse_qsl(url.query, keep_blank_values=True))
        else:
            self.send_error(404)

    def _serve_document(self, params: list[tuple[str, str]]):
        path = ""
        values = {}
        for key, value in params:
            if key == "path":
                path = value
            elif key.startswith(VAR_PREFIX):
                values[key[len(VAR_PREFIX):]] = value
        try:
            doc = self._corpus.get(path)
        except DocumentNotFound:
            self.send_error(404, f"No document at {path}")
            return
        result = render_document(doc, values)
        payload = doc.to_dict()
        payload["rendered"] = result.text
        payload["missing"] = result.missing
        payload["commands"] = [b.to_dict() for b in extract_command_blocks(doc.body)]
        self._send_json(payload)

    def _send_json(self, data: dict):
        self._send(200, "application/json", json.dumps(data).encode("utf-8"))

    def _send(self, status: int, content_type: str, content: bytes):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(content)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(content)

    def log_message(self, format, *args):
        """Suppress default access logs."""
        pass


def start_server(
    root: Path,
    port: int = DEFAULT_PORT,
    open_browser: bool = False,
) -> None:
    """Start the local viewer server.

    Args:
        root: Corpus root directory
        port: Port to serve on
        open_browser: Whether to auto-open in browser
    """
    corpus = load_corpus(root)
    listing = _load_corpus_data(corpus)
    viewer_html = VIEWER_TEMPLATE.read_text(encoding="utf-8")

    handler = partial(GuidebookHandler, corpus=corpus, listing=listing, viewer_html=viewer_html)
    HTTPServer.allow_reuse_address = True
    server = HTTPServer(("127.0.0.1", port), handler)

    url = f"http://localhost:{port}"

    if open_browser:
        threading.Timer(0.5, lambda: webbrowser.open(url)).start()

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
