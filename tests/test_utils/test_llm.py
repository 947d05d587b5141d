"""
Unit tests for the Gemini text client (mocked genai).
"""

import pytest
from unittest.mock import MagicMock, patch
from topic_reconciler.errors import CollaboratorError
from topic_reconciler.utils.llm import GeminiTextClient


def test_json_mode_generation_config():
    """Test model construction with low temperature and JSON output."""
    with patch('topic_reconciler.utils.llm.genai') as mock_genai:
        GeminiTextClient(api_key="test-key", model_name="gemini-1.5-flash", temperature=0.2)

        mock_genai.configure.assert_called_once_with(api_key="test-key")
        kwargs = mock_genai.GenerativeModel.call_args.kwargs
        assert kwargs["model_name"] == "gemini-1.5-flash"
        assert kwargs["generation_config"] == {
            "temperature": 0.2,
            "response_mime_type": "application/json"
        }


def test_plain_text_mode():
    with patch('topic_reconciler.utils.llm.genai') as mock_genai:
        GeminiTextClient(api_key="test-key", json_mode=False)

        kwargs = mock_genai.GenerativeModel.call_args.kwargs
        assert "response_mime_type" not in kwargs["generation_config"]


def test_complete_returns_text():
    mock_response = MagicMock()
    mock_response.text = '{"gaps": ["Chain rule"]}'

    with patch('topic_reconciler.utils.llm.genai') as mock_genai:
        mock_model = MagicMock()
        mock_model.generate_content.return_value = mock_response
        mock_genai.GenerativeModel.return_value = mock_model

        client = GeminiTextClient(api_key="test-key")

        assert client.complete("prompt") == '{"gaps": ["Chain rule"]}'
        mock_model.generate_content.assert_called_once_with("prompt")


def test_complete_wraps_api_errors():
    """Test that API failures surface as CollaboratorError."""
    with patch('topic_reconciler.utils.llm.genai') as mock_genai:
        mock_model = MagicMock()
        mock_model.generate_content.side_effect = RuntimeError("429 Resource exhausted")
        mock_genai.GenerativeModel.return_value = mock_model

        client = GeminiTextClient(api_key="test-key")

        with pytest.raises(CollaboratorError) as exc_info:
            client.complete("prompt")
        assert "429" in str(exc_info.value)
