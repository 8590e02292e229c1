"""
app/models/follower.py

Modelo ORM para os followers remotos de cada actor local.

Um registro por par (actor local, actor remoto): o Follow repetido apenas
atualiza a linha existente via `session.merge`. O inbox do follower fica
em cache aqui para evitar re-fetch a cada entrega.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Follower(Base):
    __tablename__ = "followers"

    # Actor local seguido
    username: Mapped[str] = mapped_column(
        String(255), ForeignKey("local_actors.username"), primary_key=True
    )

    # URL canônica do actor remoto, ex: "https://mastodon.social/users/fulano"
    actor_url: Mapped[str] = mapped_column(String(2048), primary_key=True)

    # Shared inbox quando o servidor remoto anuncia um, senão o inbox pessoal
    inbox_url: Mapped[str] = mapped_column(String(2048))

    # id do Follow recebido: permite resolver um Undo que referencia só a URI
    follow_activity_id: Mapped[str | None] = mapped_column(String(2048), index=True)

    followed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Follower username={self.username!r} actor_url={self.actor_url!r}>"
