"""
app/models/post.py

Tabelas tocadas pelos efeitos colaterais do inbox:

- `Post`       — posts locais (só o necessário para contar likes e fazer fan-out)
- `Like`       — likes remotos recebidos em posts locais
- `RemotePost` — referências a posts remotos recebidos via Create
- `Boost`      — Announces recebidos
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Post(Base):
    __tablename__ = "posts"

    uri: Mapped[str] = mapped_column(String(2048), primary_key=True)
    author_username: Mapped[str] = mapped_column(
        String(255), ForeignKey("local_actors.username"), index=True
    )
    content: Mapped[str] = mapped_column(Text)
    like_count: Mapped[int] = mapped_column(Integer, default=0)
    published: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), insert_default=_utcnow
    )

    def __repr__(self) -> str:
        return f"<Post uri={self.uri!r} like_count={self.like_count!r}>"


class Like(Base):
    __tablename__ = "likes"
    __table_args__ = (UniqueConstraint("actor_url", "object_uri"),)

    activity_id: Mapped[str] = mapped_column(String(2048), primary_key=True)
    actor_url: Mapped[str] = mapped_column(String(2048))
    object_uri: Mapped[str] = mapped_column(String(2048), index=True)
    liked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), insert_default=_utcnow
    )

    def __repr__(self) -> str:
        return f"<Like actor_url={self.actor_url!r} object_uri={self.object_uri!r}>"


class RemotePost(Base):
    __tablename__ = "remote_posts"

    uri: Mapped[str] = mapped_column(String(2048), primary_key=True)
    # Sempre o actor que assinou o Create, nunca o attributedTo declarado no objeto
    attributed_to: Mapped[str] = mapped_column(String(2048), index=True)
    content: Mapped[str | None] = mapped_column(Text)
    in_reply_to: Mapped[str | None] = mapped_column(String(2048))
    published: Mapped[str | None] = mapped_column(String(64))
    activity_id: Mapped[str] = mapped_column(String(2048))
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), insert_default=_utcnow
    )

    def __repr__(self) -> str:
        return f"<RemotePost uri={self.uri!r}>"


class Boost(Base):
    __tablename__ = "boosts"

    activity_id: Mapped[str] = mapped_column(String(2048), primary_key=True)
    actor_url: Mapped[str] = mapped_column(String(2048))
    object_uri: Mapped[str] = mapped_column(String(2048), index=True)
    announced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), insert_default=_utcnow
    )

    def __repr__(self) -> str:
        return f"<Boost actor_url={self.actor_url!r} object_uri={self.object_uri!r}>"
