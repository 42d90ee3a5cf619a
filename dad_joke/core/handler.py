"""
Joke and stats request handling.

Orchestrates prompt building, completion, fallback and usage tracking for
one request. Completion and storage failures always degrade; only
unexpected faults produce an error response.
"""

import json
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .fallback import FallbackJokeBank
from .prompts import build_prompt, normalize_keywords
from ..sdk.completion_client import CompletionClient, CompletionFailed
from ..storage.repository import UsageStore

logger = logging.getLogger(__name__)

JOKE_ERROR = "Failed to generate joke"
STATS_ERROR = "Failed to retrieve stats"


class MalformedRequest(ValueError):
    """The request body could not be parsed as JSON."""


@dataclass(frozen=True)
class HandlerResponse:
    """Status code and JSON payload for the HTTP layer."""
    status_code: int
    body: Dict[str, Any]


def parse_body_keywords(body: Union[bytes, str, None]) -> Optional[str]:
    """Extract keywords from a POST body.

    Accepts ``{"keywords": "..."}`` or a JSON string; any other text is
    taken as the keywords themselves with surrounding quotes stripped.
    """
    if body is None:
        return None
    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    else:
        text = body
    if not text.strip():
        return None

    try:
        data = _load_json(text)
    except MalformedRequest:
        return normalize_keywords(text.strip().strip('"\''))

    if isinstance(data, dict):
        value = data.get("keywords")
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            return None
        return normalize_keywords(value)
    if isinstance(data, str):
        return normalize_keywords(data)
    return None


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as e:
        raise MalformedRequest(f"Request body is not valid JSON: {e}") from e


class JokeRequestHandler:
    """Per-request orchestration of the joke and stats endpoints.

    Holds no per-request state, so one instance serves every invocation.
    """

    def __init__(
        self,
        usage_store: UsageStore,
        completion_client: Optional[CompletionClient] = None,
        joke_bank: Optional[FallbackJokeBank] = None,
        rng_factory: Callable[[], random.Random] = random.Random,
    ):
        """Initialize the handler.

        Args:
            usage_store: Joke log and daily counter
            completion_client: Completion API client, None for fallback only
            joke_bank: Fallback jokes
            rng_factory: Creates the random source used for each fallback pick
        """
        self.usage_store = usage_store
        self.completion_client = completion_client
        self.joke_bank = joke_bank or FallbackJokeBank()
        self.rng_factory = rng_factory

    def extract_keywords(self, method: str, params: Mapping[str, str],
                         body: Union[bytes, str, None] = None) -> Optional[str]:
        keywords = normalize_keywords(params.get("keywords"))
        if keywords is None and method.upper() == "POST":
            keywords = parse_body_keywords(body)
        return keywords

    def generate_joke(self, keywords: Optional[str]) -> str:
        """Generate a joke, falling back to the joke bank on any failure."""
        if self.completion_client is not None:
            try:
                return self.completion_client.generate(build_prompt(keywords))
            except CompletionFailed as e:
                logger.info("Using fallback joke after %s", e.kind.value)
        return self.joke_bank.pick(keywords, rng=self.rng_factory())

    def handle_joke(self, method: str, params: Mapping[str, str],
                    body: Union[bytes, str, None] = None) -> HandlerResponse:
        try:
            keywords = self.extract_keywords(method, params, body)
            joke = self.generate_joke(keywords)
            record = self.usage_store.record_joke(joke, keywords)
            request_count = self.usage_store.increment_daily_counter()
            return HandlerResponse(200, {
                "joke": joke,
                "keywords": keywords,
                "requestCount": request_count,
                "timestamp": record.created_at.isoformat(),
            })
        except Exception:
            logger.exception("Error generating joke")
            return HandlerResponse(500, {"error": JOKE_ERROR})

    def handle_stats(self) -> HandlerResponse:
        try:
            snapshot = self.usage_store.query_stats()
            return HandlerResponse(200, snapshot.to_dict())
        except Exception:
            logger.exception("Error retrieving stats")
            return HandlerResponse(500, {"error": STATS_ERROR})
