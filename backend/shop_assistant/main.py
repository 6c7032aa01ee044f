from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shop_assistant.api import catalog as catalog_api
from shop_assistant.api import conversation as conversation_api
from shop_assistant.api import websocket as websocket_api
from shop_assistant.core.config import Settings, get_settings
from shop_assistant.core.logging import setup_logging
from shop_assistant.providers.base import LLMAdapter, MockAdapter, ProviderRuntimeConfig
from shop_assistant.providers.openai_adapter import OpenAIAdapter
from shop_assistant.services.action_executors import build_default_dispatcher
from shop_assistant.services.cart_service import CartStore
from shop_assistant.services.catalog_service import CatalogService
from shop_assistant.services.classification_client import ClassificationClient
from shop_assistant.services.conversation_manager import ConversationManager
from shop_assistant.services.prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.conversation_manager.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.state.ws_manager = websocket_api.WebSocketManager()
    app.state.catalog_service = CatalogService(
        settings.catalog_base_url, timeout_sec=settings.catalog_timeout_sec
    )
    app.state.cart_store = CartStore()
    app.state.action_dispatcher = build_default_dispatcher(
        app.state.catalog_service, app.state.cart_store, app.state.ws_manager
    )
    adapter, runtime_cfg = create_classifier_backend(settings)
    app.state.classification_client = ClassificationClient(
        adapter,
        runtime_cfg,
        PromptBuilder(),
        max_attempts=settings.rate_limit_max_attempts,
        backoff_sec=settings.rate_limit_backoff_sec,
    )
    app.state.conversation_manager = ConversationManager(
        app.state.classification_client,
        app.state.action_dispatcher,
        history_window=settings.history_window,
        max_input_chars=settings.max_input_chars,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(conversation_api.router)
    app.include_router(catalog_api.router)
    app.include_router(catalog_api.cart_router)
    app.include_router(websocket_api.router)

    return app


def create_classifier_backend(settings: Settings) -> tuple[LLMAdapter, ProviderRuntimeConfig]:
    """Select the classification adapter configured by CLASSIFIER_PROVIDER."""

    provider = settings.classifier_provider.strip().lower()
    if provider == "mock":
        return MockAdapter(), ProviderRuntimeConfig(provider="mock", model_name="mock-1")
    if provider != "openai":
        logger.warning("Unknown CLASSIFIER_PROVIDER=%s; fallback to openai", provider)
    return (
        OpenAIAdapter(timeout_sec=settings.classifier_timeout_sec),
        ProviderRuntimeConfig(
            provider="openai",
            model_name=settings.openai_model,
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key or None,
        ),
    )


def serve() -> None:
    """Run the API with uvicorn on APP_HOST:APP_PORT."""

    settings = get_settings()
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.app_host, port=settings.app_port, log_level="info")
    )
    server.run()


app = create_app()
