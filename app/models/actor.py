"""
app/models/actor.py

Modelo ORM dos actors locais.

Cada actor local possui exatamente um par de chaves RSA, gerado na criação
e nunca rotacionado. A chave privada fica apenas nesta tabela: nenhum
documento público, `__repr__` ou log pode expô-la.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class LocalActor(Base):
    __tablename__ = "local_actors"

    username: Mapped[str] = mapped_column(String(255), primary_key=True)

    # URI canônica, ex: "https://saturn.example/users/alice"
    actor_id: Mapped[str] = mapped_column(String(2048), unique=True)

    display_name: Mapped[str] = mapped_column(String(255))
    summary: Mapped[str] = mapped_column(Text, default="")

    public_key_pem: Mapped[str] = mapped_column(Text)
    private_key_pem: Mapped[str] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=lambda: datetime.now(timezone.utc),
    )

    @property
    def key_id(self) -> str:
        return f"{self.actor_id}#main-key"

    @property
    def inbox_uri(self) -> str:
        return f"{self.actor_id}/inbox"

    @property
    def outbox_uri(self) -> str:
        return f"{self.actor_id}/outbox"

    @property
    def followers_uri(self) -> str:
        return f"{self.actor_id}/followers"

    @property
    def following_uri(self) -> str:
        return f"{self.actor_id}/following"

    def __repr__(self) -> str:
        return f"<LocalActor username={self.username!r} actor_id={self.actor_id!r}>"
