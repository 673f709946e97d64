"""
auth/errors.py -- Typed errors raised by the auth layer.

Client errors (AuthError subclasses) carry a fixed HTTP status, a machine
code, and a message that is safe to show to the end user. Messages are in
Russian, the language of the deployment's audience. api/main.py renders them
into the standard {"error": {...}} envelope.

Authentication failures use deliberately generic messages: the login error
is identical for "no such user" and "wrong password" so the response cannot
be used to enumerate accounts.

RoleNotSeededError is NOT a client error. It means the deployment skipped
`python main.py seed-roles` and is left to the catch-all 500 handler.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for business-rule violations surfaced to the client."""

    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "Некорректный запрос"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ConflictError(AuthError):
    code = "conflict"
    default_message = "Пользователь с таким Email уже есть"


class InvalidActivationLinkError(AuthError):
    code = "invalid_activation_link"
    default_message = "Некорректная ссылка активации"


class InvalidCredentialsError(AuthError):
    code = "bad_credentials"
    default_message = "Неверный Email или Пароль"


class UnauthorizedError(AuthError):
    status_code = 401
    code = "unauthorized"
    default_message = "Пользователь не авторизован"


class SessionNotFoundError(AuthError):
    """Raised by SessionStore.delete_by_token when no row matches."""

    status_code = 404
    code = "session_not_found"
    default_message = "Сессия не найдена"


class RoleNotSeededError(RuntimeError):
    """The default role is missing from the roles table (deployment error)."""
