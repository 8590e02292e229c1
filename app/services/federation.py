"""
app/services/federation.py

Ações de saída dos actors locais: seguir, deixar de seguir, curtir e publicar.

Cada ação monta a atividade, grava o estado local necessário e entrega a
atividade assinada pelo actor local. Falhas de entrega voltam no
DeliveryResult; nada é re-tentado aqui.
"""

import logging
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.activitypub.activities import (
    Activity,
    ActivityType,
    build_create,
    build_follow,
    build_like,
    build_note,
    build_undo,
)
from app.activitypub.actor import RemoteActor
from app.activitypub.errors import ActorNotFound
from app.activitypub.outbox import DeliveryResult, OutboxDispatcher
from app.activitypub.resolver import ActorResolver
from app.models.actor import LocalActor
from app.models.following import Following
from app.models.post import Post
from app.services.actors import ActorService

log = logging.getLogger(__name__)


class FederationService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        actors: ActorService,
        resolver: ActorResolver,
        dispatcher: OutboxDispatcher,
    ):
        self.session_factory = session_factory
        self.actors = actors
        self.resolver = resolver
        self.dispatcher = dispatcher

    async def _local(self, username: str) -> LocalActor:
        actor = await self.actors.get_by_username(username)
        if actor is None:
            raise ActorNotFound(f"Unknown local actor: {username}")
        return actor

    async def resolve(self, target: str) -> RemoteActor:
        """Aceita tanto `user@domain` quanto a URI do actor."""
        if target.startswith(("https://", "http://")):
            return await self.resolver.resolve_by_uri(target)
        return await self.resolver.resolve_by_handle(target)

    async def follow(self, username: str, target: str) -> DeliveryResult:
        local = await self._local(username)
        remote = await self.resolve(target)
        follow = build_follow(local.actor_id, remote.id)

        async with self.session_factory() as session:
            async with session.begin():
                # Follow repetido substitui o pendente anterior
                await session.merge(
                    Following(
                        username=local.username,
                        actor_url=remote.id,
                        inbox_url=remote.inbox,
                        follow_activity_id=follow.id,
                        accepted=False,
                    )
                )

        log.info(f"{local.username} seguindo {remote.id}")
        return await self.dispatcher.deliver(follow, remote.inbox, local)

    async def unfollow(self, username: str, target: str) -> DeliveryResult | None:
        local = await self._local(username)
        remote = await self.resolve(target)

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(Following).where(
                        Following.username == local.username,
                        Following.actor_url == remote.id,
                    )
                )
                following = result.scalar_one_or_none()
                if following is None:
                    return None
                # O Undo precisa carregar o id do Follow original
                original = Activity(
                    id=following.follow_activity_id,
                    type=ActivityType.FOLLOW.value,
                    actor=local.actor_id,
                    object=remote.id,
                )
                inbox_uri = following.inbox_url
                await session.delete(following)

        log.info(f"{local.username} deixou de seguir {remote.id}")
        return await self.dispatcher.deliver(
            build_undo(local.actor_id, original), inbox_uri, local
        )

    async def like(self, username: str, object_uri: str, author: str) -> DeliveryResult:
        local = await self._local(username)
        remote = await self.resolve(author)
        like = build_like(local.actor_id, object_uri)
        return await self.dispatcher.deliver(like, remote.inbox, local)

    async def publish_note(
        self, username: str, content: str
    ) -> tuple[Post, list[DeliveryResult]]:
        local = await self._local(username)
        post = Post(
            uri=f"{local.actor_id}/posts/{uuid4()}",
            author_username=local.username,
            content=content,
            like_count=0,
            published=datetime.now(timezone.utc),
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(post)

        note = build_note(post.uri, local.actor_id, content, local.followers_uri, post.published)
        create = build_create(local.actor_id, note)

        inboxes = await self.actors.follower_inboxes(local.username)
        results = await self.dispatcher.fan_out(create, inboxes, local)
        log.info(
            f"Post {post.uri} entregue em {sum(r.ok for r in results)}/{len(results)} inboxes"
        )
        return post, results
