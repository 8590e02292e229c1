"""
app/federation.py

Monta o grafo de dependências do motor de federação, das folhas para a raiz:

    RemoteActorCache → ActorResolver → SignatureVerifier ┐
    httpx.AsyncClient → OutboxDispatcher ────────────────┼→ InboxProcessor
    ActorService, NotificationSink ──────────────────────┘
    ActorService + ActorResolver + OutboxDispatcher → FederationService

Não existe estado global: o lifespan do FastAPI (ou o CLI) cria o cliente
HTTP e a fábrica de sessões e chama build_federation().
"""

from dataclasses import dataclass
from typing import Iterable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.activitypub.cache import RemoteActorCache
from app.activitypub.handlers import register_handlers
from app.activitypub.inbox import ActivityObserver, InboxProcessor
from app.activitypub.outbox import OutboxDispatcher
from app.activitypub.resolver import ActorResolver
from app.activitypub.verifier import SignatureVerifier
from app.config import settings
from app.services.actors import ActorService
from app.services.federation import FederationService
from app.services.notifications import LoggingNotificationSink, NotificationSink


@dataclass
class Federation:
    actors: ActorService
    resolver: ActorResolver
    verifier: SignatureVerifier
    dispatcher: OutboxDispatcher
    inbox: InboxProcessor
    service: FederationService


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=float(settings.http_timeout),
        headers={"User-Agent": settings.user_agent},
    )


def build_federation(
    http: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
    notifier: NotificationSink | None = None,
    observers: Iterable[ActivityObserver] = (),
) -> Federation:
    cache = RemoteActorCache(ttl=settings.actor_cache_ttl)
    resolver = ActorResolver(http, cache)
    verifier = SignatureVerifier(resolver, max_clock_skew=settings.signature_max_clock_skew)
    dispatcher = OutboxDispatcher(http)
    actors = ActorService(session_factory, settings.domain)

    inbox = InboxProcessor(
        session_factory,
        verifier,
        dispatcher,
        notifier or LoggingNotificationSink(),
        observers=observers,
        auto_accept=settings.auto_accept_follows,
    )
    register_handlers(inbox)

    return Federation(
        actors=actors,
        resolver=resolver,
        verifier=verifier,
        dispatcher=dispatcher,
        inbox=inbox,
        service=FederationService(session_factory, actors, resolver, dispatcher),
    )
