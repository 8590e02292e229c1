"""
app/services/actors.py

Consulta e criação de actors locais.

Cada chamada abre a própria sessão a partir da fábrica injetada, para que o
serviço possa ser usado tanto pelos endpoints quanto pelo inbox e pelo CLI.
"""

import logging
import re

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.activitypub.errors import ActorExists
from app.activitypub.keys import generate_key_pair
from app.models.actor import LocalActor
from app.models.follower import Follower
from app.models.following import Following

log = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,64}$")


class ActorService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], domain: str):
        self.session_factory = session_factory
        self.domain = domain

    def actor_id_for(self, username: str) -> str:
        return f"https://{self.domain}/users/{username}"

    async def create_local_actor(
        self,
        username: str,
        display_name: str | None = None,
        summary: str = "",
    ) -> LocalActor:
        """
        Cria o actor com o seu par de chaves RSA.

        As chaves são geradas antes de qualquer escrita: se a geração falhar,
        nenhuma linha é criada.
        """
        if not USERNAME_PATTERN.match(username):
            raise ValueError(f"Invalid username: {username!r}")

        if await self.get_by_username(username) is not None:
            raise ActorExists(f"Actor {username} already exists")

        keys = generate_key_pair()
        actor = LocalActor(
            username=username,
            actor_id=self.actor_id_for(username),
            display_name=display_name or username,
            summary=summary,
            public_key_pem=keys.public_key_pem,
            private_key_pem=keys.private_key_pem,
        )

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(actor)
        except IntegrityError as exc:
            raise ActorExists(f"Actor {username} already exists") from exc

        log.info(f"Actor local criado: {actor.actor_id}")
        return actor

    async def get_by_username(self, username: str) -> LocalActor | None:
        async with self.session_factory() as session:
            return await session.get(LocalActor, username)

    async def get_by_actor_id(self, actor_id: str) -> LocalActor | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(LocalActor).where(LocalActor.actor_id == actor_id)
            )
            return result.scalar_one_or_none()

    async def count(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(select(func.count()).select_from(LocalActor))
            return result.scalar_one()

    async def follower_inboxes(self, username: str) -> list[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Follower.inbox_url)
                .where(Follower.username == username)
                .distinct()
            )
            return list(result.scalars())

    async def list_followers(self, username: str) -> list[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Follower.actor_url)
                .where(Follower.username == username)
                .order_by(Follower.followed_at)
            )
            return list(result.scalars())

    async def list_following(self, username: str, accepted_only: bool = True) -> list[str]:
        query = select(Following.actor_url).where(Following.username == username)
        if accepted_only:
            query = query.where(Following.accepted.is_(True))
        async with self.session_factory() as session:
            result = await session.execute(query.order_by(Following.requested_at))
            return list(result.scalars())
