"""
app/models/following.py

Conjunto `following` de cada actor local: actors remotos para os quais um
Follow foi enviado. `accepted` vira True quando o Accept correspondente chega.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Following(Base):
    __tablename__ = "following"

    username: Mapped[str] = mapped_column(
        String(255), ForeignKey("local_actors.username"), primary_key=True
    )
    actor_url: Mapped[str] = mapped_column(String(2048), primary_key=True)
    inbox_url: Mapped[str] = mapped_column(String(2048))
    follow_activity_id: Mapped[str] = mapped_column(String(2048), index=True)
    accepted: Mapped[bool] = mapped_column(Boolean, default=False)

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return (
            f"<Following username={self.username!r} actor_url={self.actor_url!r} "
            f"accepted={self.accepted!r}>"
        )
