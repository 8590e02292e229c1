"""
app/activitypub/signature.py

Funções puras do esquema HTTP Signatures (draft-cavage) usado na federação.
Nenhuma I/O acontece aqui — assinatura e verificação ficam em signer.py e
verifier.py.

Formato no fio:
    Signature: keyId="https://a.example/users/alice#main-key",algorithm="rsa-sha256",
               headers="(request-target) host date digest",signature="<base64>"
"""

import base64
import binascii
import hashlib
from dataclasses import dataclass
from datetime import datetime
from email.utils import formatdate, parsedate_to_datetime
from typing import Iterable

from app.activitypub.errors import MalformedSignature, MissingHeader

REQUEST_TARGET = "(request-target)"

SIGNATURE_ALGORITHM = "rsa-sha256"

_REQUIRED_PARAMS = ("keyId", "algorithm", "headers", "signature")


@dataclass(frozen=True)
class SignatureHeader:
    key_id: str
    algorithm: str
    headers: tuple[str, ...]
    signature: bytes

    @property
    def actor_id(self) -> str:
        """URI do actor dono da chave — o keyId sem o `#fragment`."""
        return self.key_id.split("#", 1)[0]


def build_signing_string(
    method: str,
    path: str,
    header_values: Iterable[tuple[str, str | None]],
) -> str:
    """
    Monta a string assinada, uma linha por header coberto, na ordem recebida.
    Um header com valor None levanta MissingHeader em vez de ser ignorado.
    """
    lines = []
    for name, value in header_values:
        if name == REQUEST_TARGET:
            lines.append(f"{REQUEST_TARGET}: {method.lower()} {path}")
            continue
        if value is None:
            raise MissingHeader(name)
        lines.append(f"{name.lower()}: {value}")
    return "\n".join(lines)


def parse_signature_header(raw: str) -> SignatureHeader:
    params: dict[str, str] = {}
    for segment in raw.split(","):
        if "=" not in segment:
            raise MalformedSignature(f"Invalid signature segment: {segment.strip()!r}")
        key, value = segment.split("=", 1)
        params[key.strip()] = value.strip().strip('"')

    missing = [name for name in _REQUIRED_PARAMS if not params.get(name)]
    if missing:
        raise MalformedSignature(f"Signature header is missing {', '.join(missing)}")

    headers = tuple(params["headers"].split())
    if not headers:
        raise MalformedSignature("Signature header covers no headers")

    try:
        signature = base64.b64decode(params["signature"], validate=True)
    except (binascii.Error, ValueError):
        raise MalformedSignature("Signature is not valid base64") from None

    return SignatureHeader(
        key_id=params["keyId"],
        algorithm=params["algorithm"],
        headers=headers,
        signature=signature,
    )


def format_signature_header(signature: SignatureHeader) -> str:
    encoded = base64.b64encode(signature.signature).decode("ascii")
    return (
        f'keyId="{signature.key_id}",'
        f'algorithm="{signature.algorithm}",'
        f'headers="{" ".join(h.lower() for h in signature.headers)}",'
        f'signature="{encoded}"'
    )


def calculate_digest(body: bytes) -> str:
    return "SHA-256=" + base64.b64encode(hashlib.sha256(body).digest()).decode("ascii")


def http_date(epoch_seconds: float | None = None) -> str:
    return formatdate(epoch_seconds, usegmt=True)


def parse_http_date(value: str) -> datetime:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        raise MalformedSignature(f"Invalid HTTP date: {value!r}") from None
    if parsed is None or parsed.tzinfo is None:
        raise MalformedSignature(f"Invalid HTTP date: {value!r}")
    return parsed
