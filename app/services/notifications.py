"""
app/services/notifications.py

Saída de notificações geradas pelo inbox (novo follower, novo like).

O inbox só conhece o protocolo `NotificationSink`; a implementação padrão
apenas registra no log. Quem precisar de push, e-mail etc. injeta outra.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

log = logging.getLogger(__name__)


class NotificationType(str, Enum):
    FOLLOW = "follow"
    LIKE = "like"


@dataclass(frozen=True)
class Notification:
    type: NotificationType
    recipient: str          # username local
    actor_id: str           # actor remoto que originou a notificação
    object_id: str | None = None


class NotificationSink(Protocol):
    async def notify(self, notification: Notification) -> None: ...


class LoggingNotificationSink:
    async def notify(self, notification: Notification) -> None:
        log.info(
            f"Notificação {notification.type.value} para {notification.recipient} "
            f"de {notification.actor_id}"
        )
