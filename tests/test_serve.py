"""Tests for the serve module."""

import json
import threading
import time
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import urlopen

import pytest

from guidebook_cli.corpus import load_corpus
from guidebook_cli.serve import _load_corpus_data, start_server


class TestLoadCorpusData:
    def test_listing(self, sample_corpus):
        data = _load_corpus_data(load_corpus(sample_corpus))
        assert len(data["documents"]) == 5
        assert data["collections"]["guides"] == 2
        assert "body" not in data["documents"][0]
        summaries = [d["summary"] for d in data["documents"]]
        assert "prompts/code-review.md | Any | Simple | v3.0.0 | 2 placeholders" in summaries

    def test_empty_corpus(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="No markdown documents"):
            _load_corpus_data(load_corpus(tmp_path))


class TestServer:
    def test_serve_and_api(self, sample_corpus):
        port = 18422
        server_thread = threading.Thread(
            target=start_server,
            args=(sample_corpus,),
            kwargs={"port": port, "open_browser": False},
            daemon=True,
        )
        server_thread.start()
        time.sleep(0.5)

        base = f"http://localhost:{port}"

        html = urlopen(f"{base}/").read().decode()
        assert "<title>" in html
        assert "Guidebook" in html

        listing = json.loads(urlopen(f"{base}/api/documents").read().decode())
        assert len(listing["documents"]) == 5

        query = urlencode({"path": "prompts/code-review.md", "var.language": "Kotlin"})
        doc = json.loads(urlopen(f"{base}/api/document?{query}").read().decode())
        assert "written in Kotlin" in doc["rendered"]
        assert doc["missing"] == ["file_path"]
        assert doc["project_type"] == "Any"

        query = urlencode({"path": "guides/kotlin/naming-conventions"})
        doc = json.loads(urlopen(f"{base}/api/document?{query}").read().decode())
        assert len(doc["commands"]) == 1

        with pytest.raises(HTTPError) as exc:
            urlopen(f"{base}/api/document?path=nope.md")
        assert exc.value.code == 404

        with pytest.raises(HTTPError) as exc:
            urlopen(f"{base}/elsewhere")
        assert exc.value.code == 404

    def test_placeholder_named_path(self, tmp_path):
        (tmp_path / "prompts").mkdir()
        (tmp_path / "prompts" / "fix.md").write_text(
            "# Fix\n\nFix the bug in {{path}} for {{owner}}.\n", encoding="utf-8"
        )
        port = 18423
        server_thread = threading.Thread(
            target=start_server,
            args=(tmp_path,),
            kwargs={"port": port, "open_browser": False},
            daemon=True,
        )
        server_thread.start()
        time.sleep(0.5)

        query = urlencode({
            "path": "prompts/fix.md",
            "var.path": "src/app.py",
            "var.owner": "ada",
        })
        doc = json.loads(urlopen(f"http://localhost:{port}/api/document?{query}").read().decode())
        assert doc["path"] == "prompts/fix.md"
        assert "Fix the bug in src/app.py for ada." in doc["rendered"]
        assert doc["missing"] == []
