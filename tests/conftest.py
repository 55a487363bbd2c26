import time
from types import SimpleNamespace

import pytest
from jose import jwt

from storefront.orchestrator.coordinator import StorefrontCoordinator
from storefront.services.enrichment import EnrichmentClient
from storefront.services.identity import IdentityVerifier
from storefront.storage import Database, InMemoryLocalStore, ProductStore
from storefront.storage.models import ProductDraft, ProductRecord, UserProfileRecord
from storefront.utils.config import Config

SECRET = "test-signing-secret"
CLIENT_ID = "storefront-test.apps.googleusercontent.com"
CURATOR_EMAIL = "curadoria@example.com"


def make_product(id, title="", added_at=0, **kwargs):
    return ProductRecord(id=id, title=title, added_at=added_at, **kwargs)


class FakeCompletions:
    """Stands in for ``client.chat.completions`` of the OpenAI SDK."""

    def __init__(self, content="", error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_openai(content="", error=None):
    completions = FakeCompletions(content, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture
def db():
    return Database("sqlite:///:memory:")


@pytest.fixture
def store(db):
    return ProductStore(db)


@pytest.fixture
def local_store():
    return InMemoryLocalStore()


@pytest.fixture
def verifier():
    return IdentityVerifier(CLIENT_ID, keys=SECRET, algorithms=["HS256"])


@pytest.fixture
def config():
    return Config(
        curator={"email": CURATOR_EMAIL},
        identity={"client_id": CLIENT_ID, "algorithms": ["HS256"]},
        local_store={"path": ""},
    )


@pytest.fixture
def openai_client():
    return fake_openai(
        '{"title": "Fone Bluetooth", "description": "Som limpo", '
        '"category": "Eletrônicos", "estimated_price": "R$ 99,90"}'
    )


@pytest.fixture
def coordinator(db, store, verifier, local_store, config, openai_client):
    enrichment = EnrichmentClient(client=openai_client)
    coord = StorefrontCoordinator(
        db=db,
        store=store,
        verifier=verifier,
        enrichment=enrichment,
        local_store=local_store,
        config=config,
    )
    yield coord
    coord.close()


@pytest.fixture
def curator():
    return UserProfileRecord(uid="curator-1", display_name="Gestor", email="Curadoria@Example.com")


@pytest.fixture
def user():
    return UserProfileRecord(uid="user-1", display_name="Ana", email="ana@example.com")


@pytest.fixture
def other_user():
    return UserProfileRecord(uid="user-2", display_name="Bruno", email="bruno@example.com")


def draft(title, added_at, **kwargs):
    kwargs.setdefault("url", f"https://loja.test/{title.lower()}")
    return ProductDraft(title=title, added_at=added_at, **kwargs)


def make_token(sub="user-1", email="ana@example.com", name="Ana", **claims):
    payload = {
        "sub": sub,
        "email": email,
        "name": name,
        "picture": f"https://img.test/{sub}.png",
        "aud": CLIENT_ID,
        "iss": "https://accounts.google.com",
        "iat": int(time.time()),
        "exp": int(time.time()) + 3600,
    }
    payload.update(claims)
    return jwt.encode(payload, SECRET, algorithm="HS256")
