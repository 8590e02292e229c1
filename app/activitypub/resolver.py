"""
app/activitypub/resolver.py

Descoberta e resolução de actors remotos.

Fluxo:
  handle "user@domain"  → WebFinger → link rel="self" → resolve_by_uri()
  URI do actor          → cache → GET (Accept: activity+json) → RemoteActor

Toda falha de rede, timeout, status não-2xx ou documento inválido vira
ActorUnreachable; um actor sem chave pública utilizável vira NoPublicKey.
Não existe fallback para entrada vencida do cache.
"""

import logging
from urllib.parse import urldefrag

import httpx

from app.activitypub.actor import ACTIVITY_JSON, RemoteActor
from app.activitypub.cache import RemoteActorCache
from app.activitypub.errors import ActorUnreachable, DiscoveryMismatch

log = logging.getLogger(__name__)

_ACTOR_CONTENT_TYPES = ("application/activity+json", "application/ld+json")


def split_handle(handle: str) -> tuple[str, str]:
    """`@alice@a.example` ou `alice@a.example` → ("alice", "a.example")."""
    username, _, domain = handle.strip().lstrip("@").partition("@")
    if not username or not domain or "@" in domain:
        raise ActorUnreachable(f"Invalid handle: {handle!r}")
    return username, domain.lower()


def _is_actor_link(link: dict) -> bool:
    if link.get("rel") != "self":
        return False
    link_type = (link.get("type") or "").split(";")[0].strip()
    return link_type in _ACTOR_CONTENT_TYPES


class ActorResolver:
    def __init__(self, http: httpx.AsyncClient, cache: RemoteActorCache):
        self.http = http
        self.cache = cache

    async def resolve_by_handle(self, handle: str) -> RemoteActor:
        username, domain = split_handle(handle)
        resource = f"acct:{username}@{domain}"

        data = await self._get_json(
            f"https://{domain}/.well-known/webfinger",
            params={"resource": resource},
            accept="application/jrd+json, application/json",
        )

        subject = data.get("subject")
        if not isinstance(subject, str):
            raise ActorUnreachable(f"WebFinger response for {resource} has no subject")
        subject_domain = subject.removeprefix("acct:").rpartition("@")[2].lower()
        if subject_domain != domain:
            raise DiscoveryMismatch(
                f"WebFinger subject {subject!r} does not belong to {domain}"
            )

        links = data.get("links") or []
        href = next(
            (
                link.get("href")
                for link in links
                if isinstance(link, dict) and _is_actor_link(link)
            ),
            None,
        )
        if not href:
            raise ActorUnreachable(f"WebFinger response for {resource} has no actor link")

        return await self.resolve_by_uri(href)

    async def resolve_by_uri(self, uri: str, refresh: bool = False) -> RemoteActor:
        uri = urldefrag(uri)[0]

        if not refresh:
            cached = self.cache.get(uri)
            if cached is not None:
                return cached

        document = await self._get_json(uri, accept=ACTIVITY_JSON, actor_document=True)
        if document.get("id") != uri:
            raise ActorUnreachable(
                f"Actor document id {document.get('id')!r} does not match {uri}"
            )

        actor = RemoteActor.from_document(document)
        self.cache.put(uri, actor)
        log.info(f"Actor remoto resolvido: {uri}")
        return actor

    def invalidate(self, uri: str) -> None:
        self.cache.invalidate(urldefrag(uri)[0])

    async def _get_json(
        self,
        url: str,
        *,
        accept: str,
        params: dict | None = None,
        actor_document: bool = False,
    ) -> dict:
        try:
            response = await self.http.get(
                url, params=params, headers={"Accept": accept}, follow_redirects=True
            )
        except httpx.HTTPError as exc:
            raise ActorUnreachable(f"Could not fetch {url}: {exc!r}") from exc

        if not response.is_success:
            raise ActorUnreachable(f"Fetching {url} returned {response.status_code}")

        if actor_document:
            content_type = response.headers.get("content-type", "").split(";")[0].strip()
            if content_type not in _ACTOR_CONTENT_TYPES:
                raise ActorUnreachable(f"{url} answered with content type {content_type!r}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ActorUnreachable(f"{url} did not return JSON") from exc
        if not isinstance(data, dict):
            raise ActorUnreachable(f"{url} did not return a JSON object")
        return data
