"""
Unit tests for the completion client.

Tests Azure OpenAI call parameters and failure classification.
"""

from unittest.mock import Mock, patch

import httpx
import openai
import pytest

from dad_joke.config.loader import AppConfig
from dad_joke.core.prompts import build_prompt
from dad_joke.sdk.completion_client import (
    MAX_TOKENS,
    TEMPERATURE,
    CompletionClient,
    CompletionError,
    CompletionFailed,
    classify_failure,
)

ENDPOINT = "https://jokes.openai.azure.com/"
REQUEST = httpx.Request("POST", ENDPOINT + "openai/deployments/gpt-4o-mini/chat/completions")


def _status_error(error_class, status_code, message=None):
    response = httpx.Response(status_code, request=REQUEST)
    return error_class(message or f"Error code: {status_code}", response=response, body=None)


def _completion(content):
    response = Mock()
    response.choices = [Mock(message=Mock(content=content))]
    return response


class TestClassifyFailure:
    """Test failure classification."""

    def test_authentication_error(self):
        assert classify_failure(_status_error(openai.AuthenticationError, 401)) == CompletionError.UNAUTHORIZED

    def test_permission_denied(self):
        assert classify_failure(_status_error(openai.PermissionDeniedError, 403)) == CompletionError.UNAUTHORIZED

    def test_rate_limit(self):
        assert classify_failure(_status_error(openai.RateLimitError, 429)) == CompletionError.RATE_LIMITED

    def test_timeout(self):
        assert classify_failure(openai.APITimeoutError(request=REQUEST)) == CompletionError.UNREACHABLE

    def test_connection_error(self):
        assert classify_failure(openai.APIConnectionError(request=REQUEST)) == CompletionError.UNREACHABLE

    def test_builtin_timeout(self):
        assert classify_failure(TimeoutError()) == CompletionError.UNREACHABLE

    def test_server_error_is_unknown(self):
        assert classify_failure(_status_error(openai.InternalServerError, 500)) == CompletionError.UNKNOWN

    @pytest.mark.parametrize("message, expected", [
        ("Access denied due to invalid subscription key", CompletionError.UNAUTHORIZED),
        ("Request timed out", CompletionError.UNREACHABLE),
        ("Network is unreachable", CompletionError.UNREACHABLE),
        ("You exceeded your current quota", CompletionError.RATE_LIMITED),
        ("Rate limit reached for requests", CompletionError.RATE_LIMITED),
        ("Something odd happened", CompletionError.UNKNOWN),
    ])
    def test_message_patterns(self, message, expected):
        """Test classification of errors without a status code."""
        assert classify_failure(Exception(message)) == expected

    def test_status_code_beats_message(self):
        """Test that the status code is consulted before the message."""
        error = _status_error(openai.RateLimitError, 429, message="connection reset")

        assert classify_failure(error) == CompletionError.RATE_LIMITED


class TestCompletionClient:
    """Test CompletionClient wrapper."""

    @patch('dad_joke.sdk.completion_client.AzureOpenAI')
    def test_init_with_api_key(self, mock_azure_class):
        """Test key-based initialization disables SDK retries."""
        client = CompletionClient(
            endpoint=ENDPOINT,
            deployment="gpt-4o-mini",
            api_key="secret",
            timeout=12.0,
        )

        assert client.deployment == "gpt-4o-mini"
        mock_azure_class.assert_called_once_with(
            azure_endpoint=ENDPOINT,
            api_key="secret",
            api_version="2024-06-01",
            timeout=12.0,
            max_retries=0,
        )

    @patch('azure.identity.get_bearer_token_provider')
    @patch('azure.identity.DefaultAzureCredential')
    @patch('dad_joke.sdk.completion_client.AzureOpenAI')
    def test_init_without_key_uses_entra_id(self, mock_azure_class, mock_credential, mock_provider):
        """Test that a missing key falls back to DefaultAzureCredential."""
        mock_provider.return_value = "token-provider"

        CompletionClient(endpoint=ENDPOINT, deployment="gpt-4o-mini")

        mock_credential.assert_called_once_with()
        kwargs = mock_azure_class.call_args.kwargs
        assert kwargs["azure_ad_token_provider"] == "token-provider"
        assert "api_key" not in kwargs
        assert kwargs["max_retries"] == 0

    def test_init_missing_endpoint(self):
        """Test initialization fails with missing endpoint."""
        with pytest.raises(ValueError, match="endpoint is required"):
            CompletionClient(endpoint="", deployment="gpt-4o-mini", api_key="k")

    def test_init_missing_deployment(self):
        """Test initialization fails with missing deployment."""
        with pytest.raises(ValueError, match="deployment is required"):
            CompletionClient(endpoint=ENDPOINT, deployment=" ", api_key="k")

    def test_from_config_without_endpoint(self):
        """Test that no endpoint means no client."""
        assert CompletionClient.from_config(AppConfig()) is None

    @patch('dad_joke.sdk.completion_client.AzureOpenAI')
    def test_from_config(self, mock_azure_class):
        """Test client creation from config."""
        config = AppConfig(
            completion_endpoint=ENDPOINT,
            completion_api_key="secret",
            completion_deployment="jokes",
            completion_timeout=5.0,
        )

        client = CompletionClient.from_config(config)

        assert client.deployment == "jokes"
        assert client.timeout == 5.0

    @patch('dad_joke.sdk.completion_client.AzureOpenAI')
    def test_generate_success(self, mock_azure_class):
        """Test successful generation returns trimmed text."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion("  Why so serious?\n")
        mock_azure_class.return_value = mock_client

        client = CompletionClient(endpoint=ENDPOINT, deployment="gpt-4o-mini", api_key="k")
        prompt = build_prompt("cats")

        assert client.generate(prompt) == "Why so serious?"
        mock_client.chat.completions.create.assert_called_once_with(
            model="gpt-4o-mini",
            messages=prompt.to_messages(),
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
        )

    @pytest.mark.parametrize("content", ["", "   \n", None])
    @patch('dad_joke.sdk.completion_client.AzureOpenAI')
    def test_generate_empty_response(self, mock_azure_class, content):
        """Test that blank content is a failure, not a joke."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion(content)
        mock_azure_class.return_value = mock_client

        client = CompletionClient(endpoint=ENDPOINT, deployment="gpt-4o-mini", api_key="k")

        with pytest.raises(CompletionFailed) as excinfo:
            client.generate(build_prompt(None))
        assert excinfo.value.kind == CompletionError.EMPTY_RESPONSE

    @patch('dad_joke.sdk.completion_client.AzureOpenAI')
    def test_generate_no_choices(self, mock_azure_class):
        """Test that a response without choices is empty."""
        response = Mock()
        response.choices = []
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = response
        mock_azure_class.return_value = mock_client

        client = CompletionClient(endpoint=ENDPOINT, deployment="gpt-4o-mini", api_key="k")

        with pytest.raises(CompletionFailed) as excinfo:
            client.generate(build_prompt(None))
        assert excinfo.value.kind == CompletionError.EMPTY_RESPONSE

    @pytest.mark.parametrize("error, kind", [
        (_status_error(openai.AuthenticationError, 401), CompletionError.UNAUTHORIZED),
        (openai.APITimeoutError(request=REQUEST), CompletionError.UNREACHABLE),
        (_status_error(openai.RateLimitError, 429), CompletionError.RATE_LIMITED),
        (Exception("boom"), CompletionError.UNKNOWN),
    ])
    @patch('dad_joke.sdk.completion_client.AzureOpenAI')
    def test_generate_failure_is_classified(self, mock_azure_class, error, kind):
        """Test that API errors surface as classified CompletionFailed."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = error
        mock_azure_class.return_value = mock_client

        client = CompletionClient(endpoint=ENDPOINT, deployment="gpt-4o-mini", api_key="k")

        with pytest.raises(CompletionFailed) as excinfo:
            client.generate(build_prompt("cats"))
        assert excinfo.value.kind == kind
        assert excinfo.value.__cause__ is error
        # single attempt, no internal retries
        assert mock_client.chat.completions.create.call_count == 1

    @patch('dad_joke.sdk.completion_client.AzureOpenAI')
    def test_failure_message_hides_upstream_detail(self, mock_azure_class):
        """Test that the raised message carries only the category."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = Exception("key sk-123 rejected")
        mock_azure_class.return_value = mock_client

        client = CompletionClient(endpoint=ENDPOINT, deployment="gpt-4o-mini", api_key="k")

        with pytest.raises(CompletionFailed) as excinfo:
            client.generate(build_prompt(None))
        assert "sk-123" not in str(excinfo.value)
