"""
HTTP routes for the Functions host.

Thin adapters between ``azure.functions`` requests and JokeRequestHandler.
"""

import json
import logging
from typing import Optional

import azure.functions as func

from ..config.loader import load_config
from ..core.handler import JOKE_ERROR, STATS_ERROR, HandlerResponse, JokeRequestHandler
from ..sdk.completion_client import CompletionClient
from ..storage.repository import get_usage_store

logger = logging.getLogger(__name__)

joke_bp = func.Blueprint()

_handler: Optional[JokeRequestHandler] = None


def get_handler() -> JokeRequestHandler:
    """Build the handler from app settings on first use."""
    global _handler
    if _handler is None:
        config = load_config()
        if not config.completion_configured:
            logger.warning("Azure OpenAI not configured; serving fallback jokes only")
        if not config.store_configured:
            logger.warning("Table storage not configured; usage tracking disabled")
        _handler = JokeRequestHandler(
            usage_store=get_usage_store(config.store_connection),
            completion_client=CompletionClient.from_config(config),
        )
    return _handler


def set_handler(handler: Optional[JokeRequestHandler]) -> None:
    global _handler
    _handler = handler


def to_http_response(response: HandlerResponse) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(response.body),
        status_code=response.status_code,
        mimetype="application/json",
    )


def joke_response(req: func.HttpRequest) -> func.HttpResponse:
    try:
        handler = get_handler()
    except Exception:
        logger.exception("Error configuring joke handler")
        return to_http_response(HandlerResponse(500, {"error": JOKE_ERROR}))
    return to_http_response(handler.handle_joke(req.method, req.params, req.get_body()))


def stats_response(req: func.HttpRequest) -> func.HttpResponse:
    try:
        handler = get_handler()
    except Exception:
        logger.exception("Error configuring stats handler")
        return to_http_response(HandlerResponse(500, {"error": STATS_ERROR}))
    return to_http_response(handler.handle_stats())


@joke_bp.route(route="joke", methods=["GET", "POST"], auth_level=func.AuthLevel.ANONYMOUS)
def get_joke(req: func.HttpRequest) -> func.HttpResponse:
    logger.info("Joke requested (%s)", req.method)
    return joke_response(req)


@joke_bp.route(route="stats", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def get_stats(req: func.HttpRequest) -> func.HttpResponse:
    logger.info("Stats requested")
    return stats_response(req)
