"""
app/database.py

Configuração do banco de dados via SQLAlchemy assíncrono (aiosqlite).

Exporta:
- `make_engine()` / `make_session_factory()` — construtores reutilizados pelos testes e pelo CLI
- `engine`, `async_session_factory` — instâncias padrão apontando para `settings.database_url`
- `Base`          — classe base para os modelos ORM
- `get_session()` — dependência FastAPI que fornece sessão por request
- `init_db()`     — cria as tabelas do protocolo (actors, ledger, seguidores, posts)

O InboxProcessor não usa `get_session`: ele abre suas próprias transações
a partir da fábrica para separar o registro no ledger dos efeitos colaterais.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


def make_engine(url: str) -> AsyncEngine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_async_engine(url, echo=False, connect_args=connect_args)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: serviços devolvem objetos ORM depois do commit
    return async_sessionmaker(bind=bind, expire_on_commit=False, class_=AsyncSession)


engine = make_engine(settings.database_url)

async_session_factory = make_session_factory(engine)


class Base(DeclarativeBase):
    pass


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Sessão por request para as rotas de leitura (outbox, coleções).
    Commit ao sair sem exceção, rollback caso contrário.
    """
    async with async_session_factory() as session:
        async with session.begin():
            yield session


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Cria as tabelas que ainda não existem. Sem `bind`, usa a engine padrão.
    Chamado no lifespan do FastAPI e no início de cada comando do CLI.
    """
    # Os modelos precisam estar registrados no metadata da Base antes do create_all
    from app.models import activity, actor, follower, following, post  # noqa: F401

    if bind is None:
        bind = engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
