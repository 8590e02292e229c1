"""
app/activitypub/inbox.py

Máquina de estados do inbox.

    RECEIVED → VERIFIED → ROUTED → APPLIED | REJECTED

Fluxo de `receive()`:
1. Verifica a assinatura HTTP e resolve o remetente
2. Faz o parse do corpo em Activity
3. Confere se o `actor` da atividade é o remetente que assinou
4. Consulta o ledger: atividade já vista → 202 sem efeitos colaterais
5. Grava o ledger e faz commit
6. Roteia pelo `type` e aplica os efeitos colaterais numa segunda transação
7. Após o commit: notificações, entregas (ex: Accept) e observers

O ledger e os efeitos colaterais são transações separadas: se o efeito
falhar, o ledger continua gravado e uma reentrega da mesma atividade é
tratada como duplicata.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterable, Mapping, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.activitypub.activities import Activity
from app.activitypub.actor import RemoteActor
from app.activitypub.errors import FederationError, SenderMismatch, UnknownActivityType
from app.activitypub.outbox import OutboxDispatcher
from app.activitypub.verifier import SignatureVerifier
from app.models.activity import ProcessedActivity
from app.models.actor import LocalActor
from app.services.notifications import Notification, NotificationSink, NotificationType

log = logging.getLogger(__name__)


class ActivityState(str, Enum):
    RECEIVED = "received"
    VERIFIED = "verified"
    ROUTED = "routed"
    APPLIED = "applied"
    REJECTED = "rejected"


@dataclass(frozen=True)
class InboxOutcome:
    state: ActivityState
    status_code: int
    detail: str | None = None

    @property
    def accepted(self) -> bool:
        return self.state is ActivityState.APPLIED


class ActivityObserver(Protocol):
    async def activity_applied(self, activity: Activity, target: LocalActor) -> None: ...


@dataclass
class InboxContext:
    """Tudo que um handler precisa para aplicar uma atividade."""

    activity: Activity
    target: LocalActor
    sender: RemoteActor
    session: AsyncSession
    auto_accept: bool = True
    notifications: list[Notification] = field(default_factory=list)
    deliveries: list[tuple[Activity, str]] = field(default_factory=list)

    def notify(
        self,
        notification_type: NotificationType,
        recipient: str,
        object_id: str | None = None,
    ) -> None:
        # Só é emitida depois do commit dos efeitos colaterais
        self.notifications.append(
            Notification(
                type=notification_type,
                recipient=recipient,
                actor_id=self.sender.id,
                object_id=object_id,
            )
        )

    def send(self, activity: Activity, inbox_uri: str) -> None:
        self.deliveries.append((activity, inbox_uri))


Handler = Callable[[InboxContext], Awaitable[None]]


class InboxProcessor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        verifier: SignatureVerifier,
        dispatcher: OutboxDispatcher,
        notifier: NotificationSink,
        observers: Iterable[ActivityObserver] = (),
        auto_accept: bool = True,
    ):
        self.session_factory = session_factory
        self.verifier = verifier
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.observers = list(observers)
        self.auto_accept = auto_accept
        self._handlers: dict[str, Handler] = {}

    def on(self, activity_type: str) -> Callable[[Handler], Handler]:
        """Decorator que registra o handler de um tipo de atividade."""
        key = getattr(activity_type, "value", activity_type)

        def decorator(handler: Handler) -> Handler:
            self._handlers[key] = handler
            return handler

        return decorator

    async def receive(
        self,
        target: LocalActor,
        method: str,
        path: str,
        headers: Mapping[str, str],
        body: bytes,
    ) -> InboxOutcome:
        log.debug(f"[{ActivityState.RECEIVED.value}] {method} {path} para {target.username}")

        try:
            sender = await self.verifier.verify(method, path, headers, body)
        except FederationError as exc:
            return self._reject(exc, f"Assinatura recusada em {path}")

        log.debug(f"[{ActivityState.VERIFIED.value}] remetente {sender.id}")

        try:
            activity = Activity.parse_body(body)
        except FederationError as exc:
            return self._reject(exc, f"Corpo inválido de {sender.id}")

        return await self.process(activity, target, sender)

    async def process(
        self, activity: Activity, target: LocalActor, sender: RemoteActor
    ) -> InboxOutcome:
        if activity.actor_id != sender.id:
            return self._reject(
                SenderMismatch(
                    f"Activity actor {activity.actor_id} was signed by {sender.id}"
                ),
                f"{activity.type} {activity.id}",
            )

        if not await self._record(activity, target):
            log.info(f"Atividade repetida ignorada: {activity.id}")
            return InboxOutcome(ActivityState.APPLIED, 202, "duplicate")

        log.debug(f"[{ActivityState.ROUTED.value}] {activity.type} {activity.id}")

        handler = self._handlers.get(activity.type)
        if handler is None:
            return self._reject(
                UnknownActivityType(activity.type), f"Atividade {activity.id}"
            )

        ctx = None
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    ctx = InboxContext(
                        activity=activity,
                        target=target,
                        sender=sender,
                        session=session,
                        auto_accept=self.auto_accept,
                    )
                    await handler(ctx)
        except FederationError as exc:
            return self._reject(exc, f"{activity.type} {activity.id}")
        except Exception as e:
            log.error(
                f"Erro ao aplicar {activity.type} {activity.id}: {e}", exc_info=True
            )
            return InboxOutcome(ActivityState.REJECTED, 500, "Internal error")

        log.info(f"{activity.type} {activity.id} aplicado para {target.username}")
        await self._after_commit(ctx)
        return InboxOutcome(ActivityState.APPLIED, 202)

    async def _record(self, activity: Activity, target: LocalActor) -> bool:
        """Grava a atividade no ledger. Retorna False se ela já tinha sido vista."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    if await session.get(ProcessedActivity, activity.id) is not None:
                        return False
                    session.add(
                        ProcessedActivity(
                            activity_id=activity.id,
                            target_username=target.username,
                            activity_type=activity.type,
                            actor_id=activity.actor_id,
                        )
                    )
        except IntegrityError:
            # Outra entrega concorrente gravou o mesmo id primeiro
            return False
        return True

    async def _after_commit(self, ctx: InboxContext) -> None:
        for notification in ctx.notifications:
            try:
                await self.notifier.notify(notification)
            except Exception as e:
                log.error(f"Erro ao emitir notificação {notification.type.value}: {e}", exc_info=True)

        for activity, inbox_uri in ctx.deliveries:
            result = await self.dispatcher.deliver(activity, inbox_uri, ctx.target)
            if not result.ok:
                log.warning(f"{activity.type} para {inbox_uri} não foi entregue")

        for observer in self.observers:
            try:
                await observer.activity_applied(ctx.activity, ctx.target)
            except Exception as e:
                log.error(f"Observer {observer!r} falhou: {e}", exc_info=True)

    @staticmethod
    def _reject(exc: FederationError, context: str) -> InboxOutcome:
        log.warning(f"{context} recusado: {exc}")
        return InboxOutcome(ActivityState.REJECTED, exc.status_code, str(exc))
