"""
app/models/activity.py

Ledger de atividades já processadas pelo inbox.

Existe apenas para tornar o processamento idempotente sob reentrega: o id
da atividade é a chave primária, então há no máximo um registro por id.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ProcessedActivity(Base):
    __tablename__ = "processed_activities"

    activity_id: Mapped[str] = mapped_column(String(2048), primary_key=True)
    target_username: Mapped[str] = mapped_column(String(255))
    activity_type: Mapped[str] = mapped_column(String(64))
    actor_id: Mapped[str] = mapped_column(String(2048))

    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<ProcessedActivity activity_id={self.activity_id!r}>"
