"""
app/activitypub/errors.py

Taxonomia de erros do motor de federação.

Cada erro carrega o `status_code` HTTP com que é exposto no inbox. Erros
de verificação e de parsing são locais ao request e nunca são re-tentados
no servidor.
"""


class FederationError(Exception):
    status_code = 500


# ---------------------------------------------------------------------------
# Verificação de assinatura HTTP
# ---------------------------------------------------------------------------


class VerificationError(FederationError):
    status_code = 401


class MissingSignature(VerificationError):
    pass


class MalformedSignature(VerificationError):
    status_code = 400


class UnsupportedAlgorithm(VerificationError):
    status_code = 400


class MissingHeader(VerificationError):
    def __init__(self, header: str):
        super().__init__(f"Missing required header: {header}")
        self.header = header


class DigestMismatch(VerificationError):
    pass


class ExpiredSignature(VerificationError):
    pass


class InvalidSignature(VerificationError):
    pass


class SenderMismatch(VerificationError):
    pass


# ---------------------------------------------------------------------------
# Resolução de actors remotos
# ---------------------------------------------------------------------------


class ResolutionError(FederationError):
    status_code = 401


class ActorUnreachable(ResolutionError):
    pass


class DiscoveryMismatch(ActorUnreachable):
    """O subject do WebFinger aponta para um domínio diferente do pedido."""


class NoPublicKey(ResolutionError):
    pass


# ---------------------------------------------------------------------------
# Atividades
# ---------------------------------------------------------------------------


class ActivityError(FederationError):
    status_code = 400


class MalformedActivity(ActivityError):
    pass


class UnknownActivityType(ActivityError):
    def __init__(self, activity_type: str | None):
        super().__init__(f"Unsupported activity type: {activity_type}")
        self.activity_type = activity_type


# ---------------------------------------------------------------------------
# Actors locais
# ---------------------------------------------------------------------------


class ActorExists(FederationError):
    status_code = 409


class ActorNotFound(FederationError):
    status_code = 404
