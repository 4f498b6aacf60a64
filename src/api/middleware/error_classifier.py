"""Terminal error handling: map any error to a status code and a plain-text body.

Classification order:

1. **Authorization failures** (``UnauthorizedError`` anywhere in the class
   hierarchy) answer 401 with the raw error message and a single warning
2. **Explicit status**: an integer ``status_code`` attribute in 100..599
3. **Kind mapping**: the first class name in the hierarchy found in the
   configured ``ErrorClassification``
4. **Default**: 500

Every non-authorization error is logged at ERROR with its traceback, then
"Responding to client" at DEBUG, before the response is written.

The classifier is installed twice by the server: as the exception handler
for the errors FastAPI would otherwise answer itself (``HTTPException`` and
``RequestValidationError``), and as ``ErrorClassifierMiddleware``, the
innermost middleware, which catches everything else. Both sit inside the
lifecycle and CORS layers, so error responses are logged and carry CORS
headers like any other response.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from loguru import logger as default_logger
from starlette.exceptions import HTTPException

from src.api.utils.responses import plain_text_error
from src.core.context import RequestContext
from src.core.error_context import sanitize_error_context
from src.core.observability import record_exception_on_span

if TYPE_CHECKING:
    from loguru import Logger
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

UNAUTHORIZED_KIND = "UnauthorizedError"
UNAUTHORIZED_STATUS = 401
MIN_STATUS_CODE = 100
MAX_STATUS_CODE = 599


@dataclass(frozen=True, slots=True)
class ErrorClassification:
    """Read-only mapping from error kind (class name) to HTTP status.

    Attributes:
        status_by_kind: Kind name to status code.
        default_status: Status for errors matching nothing else.
    """

    status_by_kind: Mapping[str, int] = field(default_factory=dict)
    default_status: int = 500

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "status_by_kind", MappingProxyType(dict(self.status_by_kind))
        )

    def status_for(self, kinds: Iterable[str]) -> int | None:
        """Return the status of the first kind present in the mapping."""
        for kind in kinds:
            if kind in self.status_by_kind:
                return self.status_by_kind[kind]
        return None


DEFAULT_CLASSIFICATION = ErrorClassification(
    {
        "ValidationError": 400,
        "CastError": 400,
        "RequestValidationError": 400,
    }
)


def error_kinds(exc: BaseException) -> tuple[str, ...]:
    """Class names of ``exc``'s hierarchy, most specific first."""
    return tuple(
        cls.__name__
        for cls in type(exc).__mro__
        if cls not in (BaseException, Exception, object)
    )


def explicit_status(exc: BaseException) -> int | None:
    """Return the status code an error carries itself, if it is a usable one."""
    status = getattr(exc, "status_code", None)
    if isinstance(status, bool) or not isinstance(status, int):
        return None
    if MIN_STATUS_CODE <= status <= MAX_STATUS_CODE:
        return status
    return None


def is_authorization_failure(exc: BaseException) -> bool:
    """Whether ``exc`` is an authorization failure, by kind."""
    return UNAUTHORIZED_KIND in error_kinds(exc)


def _response_headers(exc: BaseException) -> Mapping[str, str] | None:
    if isinstance(exc, HTTPException):
        return exc.headers
    return None


def _response_text(exc: BaseException) -> str:
    if isinstance(exc, HTTPException) and isinstance(exc.detail, str):
        return exc.detail
    try:
        return str(exc)
    except Exception:  # noqa: BLE001
        return type(exc).__name__


def _authorization_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str):
        return message
    return _response_text(exc)


class ErrorClassifier:
    """Stateless error-to-response translator.

    Args:
        classification: Kind mapping and default status.
        logger: Fallback logger for errors raised outside a request context.
        sensitive_fields: Field names redacted from logged error attributes,
            in addition to the built-in patterns.
    """

    def __init__(
        self,
        classification: ErrorClassification = DEFAULT_CLASSIFICATION,
        logger: Logger | None = None,
        sensitive_fields: Iterable[str] = (),
    ) -> None:
        self.classification = classification
        self._logger = logger or default_logger
        self.sensitive_fields = tuple(sensitive_fields)

    def classify(self, exc: BaseException) -> int:
        """Pick the HTTP status for an error.

        Args:
            exc: The error to classify.

        Returns:
            int: The status code; the same error kind always yields the same
                status.
        """
        if is_authorization_failure(exc):
            return UNAUTHORIZED_STATUS

        status = explicit_status(exc)
        if status is not None:
            return status

        status = self.classification.status_for(error_kinds(exc))
        if status is not None:
            return status

        return self.classification.default_status

    def logger_for(self, scope: Scope) -> Logger:
        """Request-scoped logger when one exists, otherwise the fallback."""
        context = RequestContext.from_scope(scope)
        return context.logger if context else self._logger

    async def respond(self, scope: Scope, exc: BaseException) -> Response:
        """Log an error and build the response that answers it.

        Args:
            scope: ASGI scope of the failing request.
            exc: The error to answer.

        Returns:
            Response: Plain-text response with the classified status.
        """
        log = self.logger_for(scope)
        status_code = self.classify(exc)
        record_exception_on_span(exc, status_code)

        if status_code == UNAUTHORIZED_STATUS and is_authorization_failure(exc):
            message = _authorization_message(exc)
            log.warning(
                "Authorization failed: {}",
                message,
                status_code=status_code,
                error_type=type(exc).__name__,
            )
            return plain_text_error(status_code, message)

        text = _response_text(exc)
        log.opt(exception=exc).bind(
            **{
                **sanitize_error_context(exc, sensitive_fields=self.sensitive_fields),
                "status_code": status_code,
            }
        ).error("Request failed: {}", text)
        log.debug("Responding to client", status_code=status_code)

        return plain_text_error(status_code, text, _response_headers(exc))

    async def handle(self, request: Request, exc: Exception) -> Response:
        """Starlette exception-handler entry point."""
        return await self.respond(request.scope, exc)


class ErrorClassifierMiddleware:
    """Innermost middleware: turn any escaping error into a classified response.

    Args:
        app: The ASGI application to wrap.
        classifier: The classifier that builds the responses.
    """

    def __init__(self, app: ASGIApp, *, classifier: ErrorClassifier) -> None:
        self.app = app
        self.classifier = classifier

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process one ASGI call."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                # Nothing more can be written; let the server drop the connection
                self.classifier.logger_for(scope).opt(exception=exc).error(
                    "Error raised after the response started: {}", type(exc).__name__
                )
                raise
            response = await self.classifier.respond(scope, exc)
            await response(scope, receive, send)
