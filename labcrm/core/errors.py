"""Error taxonomy and safe user-facing messages.

Backend failures carry raw codes and messages (SQLSTATEs, PostgREST codes,
auth provider codes). None of that detail is ever returned to clients:
``safe_error_message`` maps the codes we know to short Portuguese text and
falls back to a generic message for everything else.
"""
import logging
from sqlalchemy.exc import SQLAlchemyError

log = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Ocorreu um erro. Tente novamente."
PATIENT_DEFAULT_MESSAGE = "Erro ao processar dados do paciente"
AUTH_DEFAULT_MESSAGE = "Erro de autenticação"

ERROR_MESSAGES: dict[str, str] = {
    # PostgreSQL constraint violations
    "23505": "Este registro já existe",
    "23503": "Este registro está vinculado a outros dados",
    "23514": "Os dados fornecidos são inválidos",
    "23502": "Campos obrigatórios não foram preenchidos",
    # row-level security / permissions
    "42501": "Você não tem permissão para esta ação",
    "42503": "Acesso negado",
    "PGRST116": "Operação não permitida",
    "PGRST301": "Você não tem permissão para acessar este recurso",
    # auth provider
    "invalid_credentials": "Email ou senha inválidos",
    "email_not_confirmed": "Por favor, confirme seu email antes de fazer login",
    "user_not_found": "Usuário não encontrado",
    "invalid_grant": "Email ou senha inválidos",
    "weak_password": "A senha deve ter pelo menos 6 caracteres",
    # rate limiting
    "over_request_limit": "Muitas tentativas. Aguarde um momento",
    "too_many_requests": "Muitas tentativas. Aguarde um momento",
    # network
    "FetchError": "Erro de conexão. Verifique sua internet",
    "NetworkError": "Erro de conexão. Verifique sua internet",
}

# message fragments that are safe to translate even without a code
_MESSAGE_FRAGMENTS: list[tuple[tuple[str, ...], str]] = [
    (("Invalid login credentials",), "Email ou senha inválidos"),
    (("Email not confirmed",), "Por favor, confirme seu email antes de fazer login"),
    (("User already registered",), "Este email já está cadastrado"),
    (("Password should be at least",), "A senha deve ter pelo menos 6 caracteres"),
    (("rate limit", "too many"), "Muitas tentativas. Aguarde um momento"),
    (("network", "fetch"), "Erro de conexão. Verifique sua internet"),
]

AUTHORIZATION_CODES = {"42501", "42503", "PGRST116", "PGRST301"}


class CRMError(Exception):
    status_code = 400
    default_message = DEFAULT_MESSAGE

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or self.default_message
        self.code = code
        super().__init__(self.message)


class ValidationError(CRMError):
    status_code = 422
    default_message = "Preencha todos os campos obrigatórios"

    def __init__(self, message: str | None = None, *, fields: list[str] | None = None, code: str | None = None):
        super().__init__(message, code=code)
        self.fields = fields or []


class NotFoundError(CRMError):
    status_code = 404
    default_message = "Paciente não encontrado"


class PersistenceError(CRMError):
    status_code = 503
    default_message = PATIENT_DEFAULT_MESSAGE

    @property
    def is_authorization(self) -> bool:
        return self.code in AUTHORIZATION_CODES


class ExternalDispatchError(CRMError):
    status_code = 502
    default_message = "Falha ao enviar lembrete"


class NothingToNotify(CRMError):
    status_code = 409
    default_message = "Nenhum paciente agendado para amanhã"


def error_code(error: object) -> str | None:
    """Best-effort extraction of a backend error code.

    Understands our own errors, SQLAlchemy DBAPI wrappers (asyncpg exposes
    ``sqlstate``, psycopg ``pgcode``) and plain objects/dicts with ``code``.
    """
    if error is None:
        return None
    if isinstance(error, dict):
        return error.get("code")
    if isinstance(error, SQLAlchemyError):
        # SQLAlchemy's own ``code`` is a docs anchor, the SQLSTATE lives on the driver error
        orig = getattr(error, "orig", None)
        for attr in ("sqlstate", "pgcode"):
            value = getattr(orig, attr, None)
            if value:
                return str(value)
        return None
    code = getattr(error, "code", None)
    if code:
        return str(code)
    name = type(error).__name__
    return name if name in ERROR_MESSAGES else None


def safe_error_message(error: object, default: str = DEFAULT_MESSAGE) -> str:
    if not error:
        return default
    code = error_code(error)
    if code and code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]
    message = error.get("message") if isinstance(error, dict) else str(error)
    if message:
        for fragments, safe in _MESSAGE_FRAGMENTS:
            if any(f in message for f in fragments):
                return safe
    log.debug("Unmapped backend error: %r", error)
    return default


def patient_error_message(error: object) -> str:
    return safe_error_message(error, PATIENT_DEFAULT_MESSAGE)


def auth_error_message(error: object) -> str:
    return safe_error_message(error, AUTH_DEFAULT_MESSAGE)
