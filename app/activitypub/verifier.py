"""
app/activitypub/verifier.py

Verificação da assinatura HTTP de requests recebidos no inbox.

A string assinada é reconstruída a partir dos valores reais do request, na
ordem exata da lista `headers` declarada pelo remetente.
"""

import logging
from datetime import datetime, timezone
from typing import Mapping

from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from app.activitypub.actor import RemoteActor
from app.activitypub.errors import (
    DigestMismatch,
    ExpiredSignature,
    InvalidSignature,
    MissingSignature,
    UnsupportedAlgorithm,
)
from app.activitypub.keys import load_public_key
from app.activitypub.resolver import ActorResolver
from app.activitypub.signature import (
    SIGNATURE_ALGORITHM,
    SignatureHeader,
    build_signing_string,
    calculate_digest,
    parse_http_date,
    parse_signature_header,
)

log = logging.getLogger(__name__)


def _digest_matches(header_value: str, body: bytes) -> bool:
    expected = calculate_digest(body)
    # Digest pode listar mais de um algoritmo: "SHA-256=...,SHA-512=..."
    for part in header_value.split(","):
        algorithm, _, value = part.strip().partition("=")
        if algorithm.upper() == "SHA-256":
            return f"SHA-256={value}" == expected
    return False


class SignatureVerifier:
    def __init__(self, resolver: ActorResolver, max_clock_skew: float = 0):
        self.resolver = resolver
        # 0 desliga a checagem do header Date
        self.max_clock_skew = max_clock_skew

    async def verify(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str],
        body: bytes,
    ) -> RemoteActor:
        """
        Verifica a assinatura e retorna o actor remoto que assinou o request.

        Levanta uma subclasse de VerificationError ou de ResolutionError
        quando o request não pode ser atribuído a um actor.
        """
        lowered = {name.lower(): value for name, value in headers.items()}

        raw = lowered.get("signature")
        if not raw:
            raise MissingSignature("Request has no Signature header")

        signature = parse_signature_header(raw)
        if signature.algorithm.lower() != SIGNATURE_ALGORITHM:
            raise UnsupportedAlgorithm(
                f"Unsupported signature algorithm: {signature.algorithm}"
            )

        actor_id = signature.actor_id
        was_cached = actor_id in self.resolver.cache
        actor = await self.resolver.resolve_by_uri(actor_id)

        self._check_digest(lowered, body)
        self._check_date(lowered)

        signing_string = build_signing_string(
            method,
            path,
            [(name, lowered.get(name.lower())) for name in signature.headers],
        )

        try:
            self._verify_with(actor, signature, signing_string)
        except InvalidSignature:
            if not was_cached:
                raise
            # O actor pode ter trocado de chave desde que entrou no cache
            log.info(f"Assinatura inválida com chave em cache, rebuscando {actor_id}")
            self.resolver.invalidate(actor_id)
            actor = await self.resolver.resolve_by_uri(actor_id, refresh=True)
            self._verify_with(actor, signature, signing_string)

        return actor

    def _check_digest(self, headers: dict[str, str], body: bytes) -> None:
        digest = headers.get("digest")
        if digest is not None and not _digest_matches(digest, body):
            raise DigestMismatch("Digest header does not match the request body")

    def _check_date(self, headers: dict[str, str]) -> None:
        date = headers.get("date")
        if date is None or not self.max_clock_skew:
            return
        skew = abs((datetime.now(timezone.utc) - parse_http_date(date)).total_seconds())
        if skew > self.max_clock_skew:
            raise ExpiredSignature(f"Date header is {int(skew)}s away from server time")

    @staticmethod
    def _verify_with(
        actor: RemoteActor, signature: SignatureHeader, signing_string: str
    ) -> None:
        if signature.key_id != actor.public_key.id:
            raise InvalidSignature(
                f"Key {signature.key_id} is not the published key of {actor.id}"
            )

        try:
            public_key = load_public_key(actor.public_key.pem)
        except ValueError as exc:
            raise InvalidSignature(f"Unusable public key for {actor.id}") from exc

        try:
            public_key.verify(
                signature.signature,
                signing_string.encode("utf-8"),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except CryptoInvalidSignature:
            raise InvalidSignature(f"Signature does not match key of {actor.id}") from None
