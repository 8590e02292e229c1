"""
app/activitypub/actor.py

Documentos públicos da federação e o tipo que representa um actor remoto.

- `build_actor_document()` — Person JSON-LD de um actor local (sem chave privada)
- `build_webfinger()`      — JRD de descoberta `acct:user@domain`
- `build_nodeinfo()`       — NodeInfo 2.1 do servidor
- `build_collection()`     — OrderedCollection para followers/following/outbox
- `RemoteActor`            — actor remoto montado a partir do documento buscado
"""

from dataclasses import dataclass
from typing import Any

from app.activitypub.errors import ActorUnreachable, NoPublicKey
from app.config import settings
from app.models.actor import LocalActor

ACTIVITY_JSON = "application/activity+json"

ACTOR_CONTEXT = [
    "https://www.w3.org/ns/activitystreams",
    "https://w3id.org/security/v1",
]


@dataclass(frozen=True)
class PublicKey:
    id: str
    owner: str
    pem: str


@dataclass(frozen=True)
class RemoteActor:
    id: str
    preferred_username: str | None
    inbox: str
    outbox: str | None
    followers: str | None
    public_key: PublicKey
    shared_inbox: str | None = None

    @property
    def delivery_inbox(self) -> str:
        return self.shared_inbox or self.inbox

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "RemoteActor":
        actor_id = document.get("id")
        inbox = document.get("inbox")
        if not isinstance(actor_id, str) or not isinstance(inbox, str):
            raise ActorUnreachable("Actor document has no id or inbox")

        key = document.get("publicKey")
        # Alguns servidores publicam uma lista de chaves: usamos a do próprio actor
        if isinstance(key, list):
            key = next(
                (k for k in key if isinstance(k, dict) and k.get("owner") == actor_id),
                None,
            )
        if not isinstance(key, dict):
            raise NoPublicKey(f"Actor {actor_id} has no publicKey")

        key_id, owner, pem = key.get("id"), key.get("owner"), key.get("publicKeyPem")
        if not key_id or not owner or not pem:
            raise NoPublicKey(f"Actor {actor_id} has an incomplete publicKey")
        if owner != actor_id:
            raise NoPublicKey(f"Key {key_id} is not owned by {actor_id}")

        endpoints = document.get("endpoints")
        shared_inbox = endpoints.get("sharedInbox") if isinstance(endpoints, dict) else None

        return cls(
            id=actor_id,
            preferred_username=document.get("preferredUsername"),
            inbox=inbox,
            outbox=document.get("outbox"),
            followers=document.get("followers"),
            public_key=PublicKey(id=key_id, owner=owner, pem=pem),
            shared_inbox=shared_inbox,
        )


def build_actor_document(actor: LocalActor) -> dict[str, Any]:
    # Lista explícita de campos: private_key_pem nunca entra no documento
    return {
        "@context": ACTOR_CONTEXT,
        "id": actor.actor_id,
        "type": "Person",
        "preferredUsername": actor.username,
        "name": actor.display_name,
        "summary": actor.summary or "",
        "inbox": actor.inbox_uri,
        "outbox": actor.outbox_uri,
        "followers": actor.followers_uri,
        "following": actor.following_uri,
        "manuallyApprovesFollowers": not settings.auto_accept_follows,
        "publicKey": {
            "id": actor.key_id,
            "owner": actor.actor_id,
            "publicKeyPem": actor.public_key_pem,
        },
    }


def build_webfinger(username: str, domain: str, href: str) -> dict[str, Any]:
    return {
        "subject": f"acct:{username}@{domain}",
        "aliases": [href],
        "links": [
            {
                "rel": "self",
                "type": ACTIVITY_JSON,
                "href": href,
            }
        ],
    }


def build_nodeinfo(total_users: int) -> dict[str, Any]:
    return {
        "version": "2.1",
        "software": {
            "name": settings.software_name,
            "version": settings.software_version,
        },
        "protocols": ["activitypub"],
        "services": {"inbound": [], "outbound": []},
        "openRegistrations": settings.open_registrations,
        "usage": {"users": {"total": total_users}},
        "metadata": {},
    }


def build_collection(collection_id: str, items: list[Any]) -> dict[str, Any]:
    return {
        "@context": "https://www.w3.org/ns/activitystreams",
        "id": collection_id,
        "type": "OrderedCollection",
        "totalItems": len(items),
        "orderedItems": items,
    }
