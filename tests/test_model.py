"""Tests for the Ollama model client and prompt framing."""

from unittest.mock import MagicMock, patch

import pytest

from guidebook_cli.document import parse_document
from guidebook_cli.model import DEFAULT_MODEL, ModelError, OllamaClient
from guidebook_cli.prompts import document_prompt

from conftest import CODE_REVIEW


class TestOllamaClient:
    """Test OllamaClient methods."""

    def test_default_config(self):
        client = OllamaClient(base_url="http://localhost:11434")
        assert client.model == DEFAULT_MODEL
        assert "11434" in client.base_url

    def test_host_without_scheme(self):
        client = OllamaClient(base_url="gpu-box:11434/")
        assert client.base_url == "http://gpu-box:11434"

    @patch("httpx.Client.get")
    def test_is_ollama_running_true(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        assert OllamaClient().is_ollama_running() is True

    @patch("httpx.Client.get")
    def test_is_ollama_running_false(self, mock_get):
        from httpx import ConnectError

        mock_get.side_effect = ConnectError("connection refused")
        assert OllamaClient().is_ollama_running() is False

    @patch("httpx.Client.get")
    def test_is_model_available(self, mock_get):
        mock_resp = MagicMock(status_code=200)
        mock_resp.json.return_value = {
            "models": [{"name": "qwen2.5-coder:7b"}, {"name": "llama3:latest"}]
        }
        mock_get.return_value = mock_resp
        assert OllamaClient(model="qwen2.5-coder:7b").is_model_available() is True
        assert OllamaClient(model="llama3").is_model_available() is True
        assert OllamaClient(model="codellama:13b").is_model_available() is False

    @patch("httpx.Client.get")
    def test_is_model_available_server_error(self, mock_get):
        mock_get.return_value = MagicMock(status_code=500, text="boom")
        assert OllamaClient().is_model_available() is False

    @patch("httpx.Client.post")
    def test_generate_success(self, mock_post):
        mock_resp = MagicMock(status_code=200)
        mock_resp.json.return_value = {"response": "Renamed 3 classes."}
        mock_post.return_value = mock_resp
        assert OllamaClient().generate("Apply this guide") == "Renamed 3 classes."
        payload = mock_post.call_args.kwargs["json"]
        assert payload["prompt"] == "Apply this guide"
        assert payload["stream"] is False
        assert "system" not in payload

    @patch("httpx.Client.post")
    def test_generate_error(self, mock_post):
        mock_post.return_value = MagicMock(status_code=500, text="Internal server error")
        with pytest.raises(ModelError, match="500"):
            OllamaClient().generate("test prompt")

    @patch("httpx.Client.post")
    def test_generate_timeout(self, mock_post):
        from httpx import TimeoutException

        mock_post.side_effect = TimeoutException("timed out")
        with pytest.raises(ModelError, match="timed out"):
            OllamaClient().generate("test prompt")

    @patch("httpx.Client.post")
    def test_generate_connect_error(self, mock_post):
        from httpx import ConnectError

        mock_post.side_effect = ConnectError("refused")
        with pytest.raises(ModelError, match="Cannot connect"):
            OllamaClient().generate("test prompt")

    def test_ensure_ready_without_ollama(self):
        client = OllamaClient()
        with patch.object(client, "is_ollama_running", return_value=False), \
                patch.object(client, "start_ollama", return_value=False):
            with pytest.raises(ModelError, match="not installed"):
                client.ensure_ready()

    def test_ensure_ready_pulls_missing_model(self):
        client = OllamaClient()
        calls = []
        with patch.object(client, "is_ollama_running", return_value=True), \
                patch.object(client, "is_model_available", return_value=False), \
                patch.object(client, "pull_model", return_value=True) as pull:
            client.ensure_ready(progress_callback=lambda *a: calls.append(a))
        pull.assert_called_once()
        assert "Downloading" in calls[0][0]


class TestDocumentPrompt:
    def test_includes_metadata_guide_and_task(self):
        doc = parse_document(CODE_REVIEW, "prompts/code-review.md")
        prompt = document_prompt(doc, "RENDERED BODY", task="Review app.py")
        assert "Document: prompts/code-review.md" in prompt
        assert "Title: Code Review Prompt" in prompt
        assert "Project Type: Any" in prompt
        assert "RENDERED BODY" in prompt
        assert prompt.endswith("TASK:\nReview app.py")

    def test_default_task(self):
        doc = parse_document("# x\n", "x.md")
        prompt = document_prompt(doc, "body")
        assert "Apply this guide" in prompt
        assert "Title:" not in prompt
