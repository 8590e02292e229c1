"""
Fixtures compartilhadas entre todos os testes.

O servidor local é `b.test`; o "resto do fediverso" é simulado por
`FakeFediverse`, servido via httpx.MockTransport — nenhum request sai da
máquina.
"""

import json

import httpx
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

LOCAL_DOMAIN = "b.test"
REMOTE_DOMAIN = "a.test"
ALICE_ID = "https://a.test/users/alice"
ALICE_KEY_ID = f"{ALICE_ID}#main-key"
BOB_INBOX_URL = "https://b.test/users/bob/inbox"


def _private_pem(key) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def _public_pem(key) -> str:
    return (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


# ---------------------------------------------------------------------------
# Chaves RSA geradas em memória uma única vez por sessão de testes
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_key_pem(rsa_private_key) -> str:
    return _private_pem(rsa_private_key)


@pytest.fixture(scope="session")
def rsa_public_key_pem(rsa_private_key) -> str:
    return _public_pem(rsa_private_key)


@pytest.fixture(scope="session")
def other_private_key():
    """Segundo par de chaves — usado para simular rotação e assinaturas forjadas."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key_pem(other_private_key) -> str:
    return _private_pem(other_private_key)


@pytest.fixture(scope="session")
def other_public_key_pem(other_private_key) -> str:
    return _public_pem(other_private_key)


# ---------------------------------------------------------------------------
# Configuração Dynaconf isolada para testes
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def patch_settings(monkeypatch):
    """
    Sobrescreve as settings do Dynaconf com valores de teste.
    `autouse=True` garante que nenhum teste dependa do settings.toml local.
    """
    from app import config

    monkeypatch.setattr(config.settings, "domain", LOCAL_DOMAIN)
    monkeypatch.setattr(config.settings, "http_timeout", 5.0)
    monkeypatch.setattr(config.settings, "actor_cache_ttl", 0)
    monkeypatch.setattr(config.settings, "signature_max_clock_skew", 3600)
    monkeypatch.setattr(config.settings, "auto_accept_follows", True)
    monkeypatch.setattr(config.settings, "open_registrations", False)
    monkeypatch.setattr(config.settings, "software_name", "saturn")
    monkeypatch.setattr(config.settings, "software_version", "1.0.0")
    monkeypatch.setattr(config.settings, "user_agent", "saturn-test")


# ---------------------------------------------------------------------------
# Banco SQLite em arquivo temporário: isolado por teste
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path):
    from app.database import init_db, make_engine

    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    from app.database import make_session_factory

    return make_session_factory(engine)


# ---------------------------------------------------------------------------
# Fediverso simulado
# ---------------------------------------------------------------------------


class FakeFediverse:
    """
    Servidores remotos em memória.

    - GET  /.well-known/webfinger → JRD registrado em `webfinger`
    - GET  <actor uri>            → documento registrado em `documents`
    - POST <qualquer inbox>       → grava o request em `delivered`
    """

    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.webfinger: dict[str, dict] = {}
        self.delivered: list[httpx.Request] = []
        self.fetches: list[str] = []
        self.inbox_status = 202

    def add_actor(
        self,
        actor_id: str,
        public_key_pem: str,
        shared_inbox: str | None = None,
    ) -> dict:
        host = httpx.URL(actor_id).host
        username = actor_id.rstrip("/").rsplit("/", 1)[-1]
        document = {
            "@context": ["https://www.w3.org/ns/activitystreams"],
            "id": actor_id,
            "type": "Person",
            "preferredUsername": username,
            "inbox": f"{actor_id}/inbox",
            "outbox": f"{actor_id}/outbox",
            "followers": f"{actor_id}/followers",
            "publicKey": {
                "id": f"{actor_id}#main-key",
                "owner": actor_id,
                "publicKeyPem": public_key_pem,
            },
        }
        if shared_inbox:
            document["endpoints"] = {"sharedInbox": shared_inbox}
        self.documents[actor_id] = document
        self.webfinger[f"acct:{username}@{host}"] = {
            "subject": f"acct:{username}@{host}",
            "links": [
                {"rel": "self", "type": "application/activity+json", "href": actor_id}
            ],
        }
        return document

    def delivered_json(self) -> list[dict]:
        return [json.loads(request.content) for request in self.delivered]

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            self.delivered.append(request)
            return httpx.Response(self.inbox_status)

        if request.url.path == "/.well-known/webfinger":
            jrd = self.webfinger.get(request.url.params.get("resource"))
            if jrd is None:
                return httpx.Response(404)
            return httpx.Response(200, json=jrd)

        url = str(request.url).split("?", 1)[0]
        self.fetches.append(url)
        document = self.documents.get(url)
        if document is None:
            return httpx.Response(404, json={"error": "Not found"})
        return httpx.Response(
            200,
            json=document,
            headers={"content-type": "application/activity+json"},
        )


class RecordingSink:
    def __init__(self):
        self.notifications = []

    async def notify(self, notification) -> None:
        self.notifications.append(notification)


@pytest.fixture
def fediverse(rsa_public_key_pem) -> FakeFediverse:
    fake = FakeFediverse()
    fake.add_actor(ALICE_ID, rsa_public_key_pem)
    return fake


@pytest.fixture
def notifier() -> RecordingSink:
    return RecordingSink()


@pytest_asyncio.fixture
async def http(fediverse):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fediverse.handler)) as client:
        yield client


@pytest_asyncio.fixture
async def federation(http, session_factory, notifier):
    from app.federation import build_federation

    return build_federation(http, session_factory, notifier=notifier)


@pytest_asyncio.fixture
async def bob(federation):
    """Actor local `bob@b.test`, com par de chaves próprio."""
    return await federation.actors.create_local_actor("bob", "Bob", "Conta de teste")


@pytest.fixture
def sign_as_alice(rsa_private_key_pem):
    """Factory que serializa uma atividade e assina o POST como alice@a.test."""
    from app.activitypub.signer import sign_request

    def _sign(
        activity: dict,
        url: str = BOB_INBOX_URL,
        private_key_pem: str | None = None,
        key_id: str = ALICE_KEY_ID,
    ) -> tuple[bytes, dict[str, str]]:
        body = json.dumps(activity).encode()
        headers = sign_request("POST", url, body, private_key_pem or rsa_private_key_pem, key_id)
        headers["Content-Type"] = "application/activity+json"
        return body, headers

    return _sign


@pytest.fixture
def make_follow():
    def _make(
        activity_id: str = "https://a.test/activities/follow-1",
        actor: str = ALICE_ID,
        target: str = "https://b.test/users/bob",
    ) -> dict:
        return {
            "@context": "https://www.w3.org/ns/activitystreams",
            "id": activity_id,
            "type": "Follow",
            "actor": actor,
            "object": target,
        }

    return _make


@pytest_asyncio.fixture
async def client(federation, session_factory):
    """Cliente HTTP da aplicação FastAPI, sem lifespan, ligado ao banco do teste."""
    from httpx import ASGITransport, AsyncClient

    from app import database
    from app.main import api

    async def _session():
        async with session_factory() as session:
            async with session.begin():
                yield session

    api.state.federation = federation
    api.dependency_overrides[database.get_session] = _session
    async with AsyncClient(transport=ASGITransport(app=api), base_url="https://b.test") as ac:
        yield ac
    api.dependency_overrides.clear()
