import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest

from shop_assistant.core.config import get_settings
from shop_assistant.main import create_app
from shop_assistant.providers.base import LLMResult, ProviderRuntimeConfig

CATALOG_URL = "https://fakestoreapi.test"

FAKE_PRODUCTS = [
    {
        "id": 1,
        "title": "Fjallraven Backpack",
        "price": 109.95,
        "description": "Your perfect pack for everyday use. Fits 15 inch laptops.",
        "category": "men's clothing",
        "image": "https://img.test/1.jpg",
        "rating": {"rate": 3.9, "count": 120},
    },
    {
        "id": 2,
        "title": "Mens Casual Slim Fit T-Shirt",
        "price": 22.3,
        "description": "Slim-fitting style, lightweight cotton.",
        "category": "men's clothing",
        "image": "https://img.test/2.jpg",
        "rating": {"rate": 4.1, "count": 259},
    },
    {
        "id": 3,
        "title": "WD 2TB Elements Portable External Hard Drive",
        "price": 64,
        "description": "USB 3.0 and USB 2.0 compatibility. Fast data transfers.",
        "category": "electronics",
        "image": "https://img.test/3.jpg",
        "rating": {"rate": 3.3, "count": 203},
    },
    {
        "id": 4,
        "title": "Samsung 49-Inch Gaming Monitor",
        "price": 999.99,
        "description": "49 inch super ultrawide curved gaming monitor with HDR.",
        "category": "electronics",
        "image": "https://img.test/4.jpg",
        "rating": {"rate": 2.2, "count": 140},
    },
    {
        "id": 5,
        "title": "Silver Dragon Station Chain Bracelet",
        "price": 695,
        "description": "From our Legends Collection.",
        "category": "jewelery",
        "image": "https://img.test/5.jpg",
        "rating": {"rate": 4.6, "count": 7},
    },
    {
        "id": 6,
        "title": "Opna Women's Short Sleeve Moisture",
        "price": 7.95,
        "description": "100% polyester, lightweight and soft.",
        "category": "women's clothing",
        "image": "https://img.test/6.jpg",
        "rating": {"rate": 4.5, "count": 21},
    },
]


def fake_store_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/products":
        return httpx.Response(200, json=FAKE_PRODUCTS)
    if path == "/products/categories":
        categories = sorted({item["category"] for item in FAKE_PRODUCTS})
        return httpx.Response(200, json=categories)
    if path.startswith("/products/"):
        product_id = int(path.rsplit("/", 1)[1])
        for item in FAKE_PRODUCTS:
            if item["id"] == product_id:
                return httpx.Response(200, json=item)
        # Fake Store answers unknown ids with an empty 200 response.
        return httpx.Response(200, content=b"")
    return httpx.Response(404, json={"error": "not found"})


def make_payload(
    message: str = "Hello! How can I help?",
    *,
    intent: str = "GREETING",
    confidence: float = 0.9,
    entities: dict | None = None,
    actions: list[dict] | None = None,
    should_block: bool = False,
    tone: str = "helpful",
    context: dict | None = None,
) -> dict:
    intent_payload = {"type": intent, "confidence": confidence}
    if entities is not None:
        intent_payload["entities"] = entities
    return {
        "intent": intent_payload,
        "actions": actions or [],
        "immediateResponse": {"message": message, "tone": tone, "shouldBlock": should_block},
        "context": context or {},
    }


class StubAdapter:
    """Adapter stub that replays queued payloads instead of calling a model."""

    def __init__(self, payloads: list | None = None) -> None:
        self.payloads = list(payloads or [])
        self.calls: list[list[dict]] = []

    async def classify(
        self, cfg: ProviderRuntimeConfig, messages: list[dict], function: dict
    ) -> LLMResult:
        self.calls.append([dict(message) for message in messages])
        item = self.payloads.pop(0) if self.payloads else make_payload()
        if isinstance(item, Exception):
            raise item
        content = item if isinstance(item, str) else json.dumps(item)
        return LLMResult(content=content, model_provider=cfg.provider, model_name=cfg.model_name)


class RecordingEvents:
    """UI event publisher that keeps every payload in memory."""

    def __init__(self) -> None:
        self.events: list[dict] = []

    async def broadcast(self, payload: dict) -> None:
        self.events.append(payload)

    def names(self) -> list[str]:
        return [event["event"] for event in self.events]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def stub_cfg() -> ProviderRuntimeConfig:
    return ProviderRuntimeConfig(provider="stub", model_name="stub-model")


@pytest.fixture
async def catalog_client():
    transport = httpx.MockTransport(fake_store_handler)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setenv("CLASSIFIER_PROVIDER", "mock")
    monkeypatch.setenv("CATALOG_BASE_URL", CATALOG_URL)
    get_settings.cache_clear()
    app = create_app()
    yield app
    get_settings.cache_clear()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.conversation_manager.shutdown()
