"""
Zen Bridge Exceptions
=====================

Every error raised on purpose by the bridge is a ``ZenBridgeError``. Each
carries a short code (shown in ``str()``), a context dict for the logs, a
message fit for the CLI, and whether retrying later can help.

Subclasses only declare their defaults; the base class applies them.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Short codes grouped by area: C config, D database, F feed, P processing,
    R resources, S system."""

    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"
    CONFIG_INACTIVE = "C003"

    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_HTTP_ERROR = "F005"

    PROCESSING_FAILED = "P003"

    DUPLICATE_RESOURCE = "R001"
    RESOURCE_NOT_FOUND = "R002"
    RESOURCE_LOCKED = "R003"

    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_MEMORY_ERROR = "S004"


class ZenBridgeError(Exception):
    """Base class for bridge errors.

    Args:
        message: Technical message, used in logs
        error_code: Overrides the class default code
        context: Extra fields for structured logs
        user_message: Overrides the message shown to CLI users
        recoverable: Overrides whether a later retry may succeed
    """

    default_code: Optional[ErrorCode] = None
    default_user_message: Optional[str] = None
    default_recoverable: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})
        self.user_message = user_message or self.default_user_message or message
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def _add_context(self, **values: Any) -> None:
        self.context.update({k: v for k, v in values.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        """Fields for ``extra=`` in log calls."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        text = super().__str__()
        return f"[{self.error_code.value}] {text}" if self.error_code else text


class ConfigurationError(ZenBridgeError):
    """Settings or RSS configuration values are unusable."""

    default_code = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        kwargs.setdefault("user_message", f"Configuration error: {message}")
        super().__init__(message, **kwargs)
        self._add_context(config_key=config_key)


class ConfigMissingError(ConfigurationError):
    """There is no active RSS configuration to sync or render from."""

    default_code = ErrorCode.CONFIG_MISSING
    default_user_message = "RSS configuration not found or inactive"

    def __init__(self, message: str = "RSS configuration not found", **kwargs):
        kwargs.setdefault("user_message", self.default_user_message)
        super().__init__(message, **kwargs)


class DatabaseError(ZenBridgeError):
    """A store operation failed."""

    default_code = ErrorCode.DATABASE_ERROR
    default_user_message = "Database operation failed"
    default_recoverable = True

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(query=query)


class ArticleNotFoundError(DatabaseError):
    default_code = ErrorCode.RESOURCE_NOT_FOUND
    default_user_message = "Article not found"
    default_recoverable = False

    def __init__(self, article_id: str):
        super().__init__(f"Article with id {article_id} not found")
        self._add_context(article_id=article_id)
        self.article_id = article_id


class RssConfigNotFoundError(DatabaseError):
    default_code = ErrorCode.RESOURCE_NOT_FOUND
    default_user_message = "RSS configuration not found"
    default_recoverable = False

    def __init__(self, config_id: str):
        super().__init__(f"RSS config with id {config_id} not found")
        self._add_context(config_id=config_id)
        self.config_id = config_id


class DuplicateArticleError(DatabaseError):
    """An article with this link is already stored."""

    default_code = ErrorCode.DUPLICATE_RESOURCE
    default_user_message = "Article already exists"
    default_recoverable = False

    def __init__(self, link: str):
        super().__init__(f"Article with link {link} already exists")
        self._add_context(link=link)
        self.link = link


class FeedError(ZenBridgeError):
    """Something went wrong with the source feed."""

    default_code = ErrorCode.FEED_NETWORK_ERROR
    default_recoverable = True

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        kwargs.setdefault("user_message", f"Feed processing failed: {message}")
        super().__init__(message, **kwargs)
        self._add_context(feed_url=feed_url)
        self.feed_url = feed_url


class FeedFetchError(FeedError):
    """The source feed could not be obtained; the whole cycle is abandoned."""


class FeedTransportError(FeedFetchError):
    """HTTP status, network or timeout failure."""


class FeedParseError(FeedFetchError):
    """The body is not a usable RSS or Atom document."""

    default_code = ErrorCode.FEED_PARSE_ERROR


class ProcessingError(ZenBridgeError):
    """One article failed somewhere between creation and its terminal state."""

    default_code = ErrorCode.PROCESSING_FAILED
    default_user_message = "Article processing failed"
    default_recoverable = True

    def __init__(self, message: str, article_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(article_id=article_id)


class ProcessLockError(ZenBridgeError):
    """A sync for the same configuration is running in another process."""

    default_code = ErrorCode.RESOURCE_LOCKED
    default_user_message = "A sync is already running for this feed"
    default_recoverable = True

    def __init__(self, lock_name: str, holder_pid: Optional[int] = None):
        held_by = f" by PID {holder_pid}" if holder_pid else ""
        super().__init__(f"Lock {lock_name} is already held{held_by}")
        self._add_context(lock_name=lock_name, holder_pid=holder_pid)


# (exception type, code, user message, recoverable) for OS-level failures
_SYSTEM_FAILURES = (
    (PermissionError, ErrorCode.SYSTEM_PERMISSION_DENIED, "Access denied", False),
    (MemoryError, ErrorCode.SYSTEM_MEMORY_ERROR, "System resources exhausted", True),
)


def _wrap(exception: Exception, operation: str, context: Dict[str, Any]) -> ZenBridgeError:
    if isinstance(exception, (ConnectionError, TimeoutError)):
        return FeedTransportError(
            f"Network error during {operation}: {exception}",
            context=context,
            user_message="Network connection failed",
        )

    for exc_type, code, user_message, recoverable in _SYSTEM_FAILURES:
        if isinstance(exception, exc_type):
            return ZenBridgeError(
                f"{exc_type.__name__} during {operation}: {exception}",
                error_code=code,
                context=context,
                user_message=user_message,
                recoverable=recoverable,
            )

    return ZenBridgeError(
        f"Unexpected error during {operation}: {exception}",
        context=context,
        user_message="An unexpected error occurred",
        recoverable=True,
    )


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> ZenBridgeError:
    """Log ``exception`` once and return it as a ``ZenBridgeError``.

    Bridge errors are returned unchanged; anything else is wrapped with
    ``operation`` and the original type recorded in its context.
    """
    if isinstance(exception, ZenBridgeError):
        error = exception
    else:
        error = _wrap(
            exception,
            operation,
            {
                **(context or {}),
                "operation": operation,
                "original_exception_type": type(exception).__name__,
            },
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def get_user_friendly_message(exception: Exception) -> str:
    if isinstance(exception, ZenBridgeError):
        return exception.user_message
    return "An unexpected error occurred. Please try again later."
