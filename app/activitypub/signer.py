"""
app/activitypub/signer.py

Assinatura de requests de saída com a chave privada de um actor local.
Só monta os headers — o envio é responsabilidade do OutboxDispatcher.
"""

from urllib.parse import urlsplit

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from app.activitypub.keys import load_private_key
from app.activitypub.signature import (
    REQUEST_TARGET,
    SIGNATURE_ALGORITHM,
    SignatureHeader,
    build_signing_string,
    calculate_digest,
    format_signature_header,
    http_date,
)

DEFAULT_SIGNED_HEADERS = (REQUEST_TARGET, "host", "date", "digest")


def request_target_path(url: str) -> str:
    parts = urlsplit(url)
    path = parts.path or "/"
    if parts.query:
        path += f"?{parts.query}"
    return path


def sign_request(
    method: str,
    url: str,
    body: bytes,
    private_key_pem: str,
    key_id: str,
    signed_headers: tuple[str, ...] = DEFAULT_SIGNED_HEADERS,
) -> dict[str, str]:
    """
    Retorna os headers Host, Date, Digest e Signature para o request.

    `signed_headers` define a ordem das linhas da string assinada e do campo
    `headers` da assinatura; o padrão é `(request-target) host date digest`.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"URL must be absolute: {url!r}")

    headers = {
        "Host": parts.netloc,
        "Date": http_date(),
        "Digest": calculate_digest(body),
    }
    lowered = {name.lower(): value for name, value in headers.items()}

    signing_string = build_signing_string(
        method,
        request_target_path(url),
        [(name, lowered.get(name.lower())) for name in signed_headers],
    )

    private_key = load_private_key(private_key_pem)
    signature = private_key.sign(
        signing_string.encode("utf-8"),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )

    headers["Signature"] = format_signature_header(
        SignatureHeader(
            key_id=key_id,
            algorithm=SIGNATURE_ALGORITHM,
            headers=tuple(signed_headers),
            signature=signature,
        )
    )
    return headers
