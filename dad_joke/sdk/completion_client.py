"""
Chat-completion client wrapper.

Generates joke text through Azure OpenAI and classifies failures.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

import openai
from openai import AzureOpenAI

from ..config.loader import AppConfig
from ..core.prompts import Prompt

logger = logging.getLogger(__name__)

MAX_TOKENS = 100
TEMPERATURE = 0.9

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"


class CompletionError(Enum):
    """Failure categories for a completion call."""
    UNAUTHORIZED = "unauthorized"
    UNREACHABLE = "unreachable"
    RATE_LIMITED = "rate_limited"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


class CompletionFailed(Exception):
    """Raised when a completion call yields no usable text."""
    def __init__(self, message: str, kind: CompletionError):
        super().__init__(message)
        self.kind = kind


_STATUS_ERRORS = {
    401: CompletionError.UNAUTHORIZED,
    403: CompletionError.UNAUTHORIZED,
    408: CompletionError.UNREACHABLE,
    429: CompletionError.RATE_LIMITED,
}

# Checked in order against the lower-cased error message
_MESSAGE_ERRORS: Tuple[Tuple[str, CompletionError], ...] = (
    ("unauthorized", CompletionError.UNAUTHORIZED),
    ("forbidden", CompletionError.UNAUTHORIZED),
    ("access denied", CompletionError.UNAUTHORIZED),
    ("invalid api key", CompletionError.UNAUTHORIZED),
    ("timed out", CompletionError.UNREACHABLE),
    ("timeout", CompletionError.UNREACHABLE),
    ("connection", CompletionError.UNREACHABLE),
    ("network", CompletionError.UNREACHABLE),
    ("name or service not known", CompletionError.UNREACHABLE),
    ("rate limit", CompletionError.RATE_LIMITED),
    ("quota", CompletionError.RATE_LIMITED),
    ("too many requests", CompletionError.RATE_LIMITED),
)


def classify_failure(error: BaseException) -> CompletionError:
    """Map an exception from the completion call to a failure category."""
    if isinstance(error, (openai.APITimeoutError, openai.APIConnectionError,
                          TimeoutError, ConnectionError)):
        return CompletionError.UNREACHABLE

    status_code = getattr(error, "status_code", None)
    if status_code in _STATUS_ERRORS:
        return _STATUS_ERRORS[status_code]

    message = str(error).lower()
    for pattern, kind in _MESSAGE_ERRORS:
        if pattern in message:
            return kind
    return CompletionError.UNKNOWN


class CompletionClient:
    """Azure OpenAI chat-completion wrapper for joke generation.

    One attempt per call: the SDK's own retries are disabled and the
    request is bounded by the configured timeout.
    """

    def __init__(
        self,
        endpoint: str,
        deployment: str,
        api_key: Optional[str] = None,
        api_version: str = "2024-06-01",
        timeout: float = 20.0,
    ):
        """Initialize the completion client.

        Args:
            endpoint: Azure OpenAI resource endpoint (required)
            deployment: Model deployment name (required)
            api_key: API key; Entra ID credentials are used when omitted
            api_version: Azure OpenAI REST API version
            timeout: Request timeout in seconds

        Raises:
            ValueError: If endpoint or deployment is missing/empty
        """
        if not endpoint or not endpoint.strip():
            raise ValueError("endpoint is required and cannot be empty")
        if not deployment or not deployment.strip():
            raise ValueError("deployment is required and cannot be empty")

        self.endpoint = endpoint
        self.deployment = deployment
        self.timeout = timeout

        if api_key:
            self.client = AzureOpenAI(
                azure_endpoint=endpoint,
                api_key=api_key,
                api_version=api_version,
                timeout=timeout,
                max_retries=0,
            )
        else:
            # Import here so key-based deployments never touch azure-identity
            from azure.identity import DefaultAzureCredential, get_bearer_token_provider

            token_provider = get_bearer_token_provider(
                DefaultAzureCredential(), COGNITIVE_SERVICES_SCOPE
            )
            self.client = AzureOpenAI(
                azure_endpoint=endpoint,
                azure_ad_token_provider=token_provider,
                api_version=api_version,
                timeout=timeout,
                max_retries=0,
            )

    @classmethod
    def from_config(cls, config: AppConfig) -> Optional["CompletionClient"]:
        """Create a client, or None when no endpoint is configured."""
        if not config.completion_configured:
            return None
        return cls(
            endpoint=config.completion_endpoint,
            deployment=config.completion_deployment,
            api_key=config.completion_api_key,
            api_version=config.completion_api_version,
            timeout=config.completion_timeout,
        )

    def generate(self, prompt: Prompt) -> str:
        """Generate joke text for a prompt.

        Args:
            prompt: System/user prompt pair

        Returns:
            Trimmed generated text

        Raises:
            CompletionFailed: If the call fails or returns no text
        """
        try:
            response = self.client.chat.completions.create(
                model=self.deployment,
                messages=prompt.to_messages(),
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
            )
        except Exception as e:
            kind = classify_failure(e)
            logger.warning("Completion call failed (%s): %s", kind.value, e)
            raise CompletionFailed(f"Completion call failed: {kind.value}", kind) from e

        text = None
        if response.choices:
            text = response.choices[0].message.content
        text = (text or "").strip()
        if not text:
            logger.warning("Completion returned empty content")
            raise CompletionFailed("Completion returned empty content",
                                   CompletionError.EMPTY_RESPONSE)
        return text
