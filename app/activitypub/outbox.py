"""
app/activitypub/outbox.py

Entrega de atividades assinadas nos inboxes remotos.

Não há retry nem backoff: cada entrega retorna um DeliveryResult e quem
chamou decide o que fazer com uma falha.
"""

import asyncio
import json
import logging
from dataclasses import dataclass

import httpx

from app.activitypub.activities import Activity
from app.activitypub.actor import ACTIVITY_JSON
from app.activitypub.signer import sign_request
from app.models.actor import LocalActor

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    inbox_uri: str
    ok: bool
    status_code: int | None = None
    error: str | None = None


class OutboxDispatcher:
    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def deliver(
        self, activity: Activity, inbox_uri: str, signing_actor: LocalActor
    ) -> DeliveryResult:
        body = json.dumps(activity.to_json()).encode("utf-8")

        try:
            headers = sign_request(
                "POST",
                inbox_uri,
                body,
                signing_actor.private_key_pem,
                signing_actor.key_id,
            )
        except ValueError as exc:
            log.warning(f"Entrega de {activity.id} para {inbox_uri} abortada: {exc}")
            return DeliveryResult(inbox_uri=inbox_uri, ok=False, error=str(exc))

        headers["Content-Type"] = ACTIVITY_JSON
        headers["Accept"] = ACTIVITY_JSON

        try:
            response = await self.http.post(inbox_uri, content=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            # InvalidURL não herda de HTTPError: inbox com porta ou host inválido
            log.warning(f"Falha ao entregar {activity.type} {activity.id} em {inbox_uri}: {exc!r}")
            return DeliveryResult(inbox_uri=inbox_uri, ok=False, error=repr(exc))

        if not response.is_success:
            log.warning(
                f"{inbox_uri} recusou {activity.type} {activity.id}: {response.status_code}"
            )
            return DeliveryResult(
                inbox_uri=inbox_uri,
                ok=False,
                status_code=response.status_code,
                error=response.text[:200],
            )

        log.info(f"{activity.type} {activity.id} entregue em {inbox_uri}")
        return DeliveryResult(inbox_uri=inbox_uri, ok=True, status_code=response.status_code)

    async def fan_out(
        self, activity: Activity, inbox_uris, signing_actor: LocalActor
    ) -> list[DeliveryResult]:
        # Followers do mesmo servidor costumam compartilhar o shared inbox
        unique = list(dict.fromkeys(inbox_uris))
        return await asyncio.gather(
            *(self.deliver(activity, inbox, signing_actor) for inbox in unique)
        )
