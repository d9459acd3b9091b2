"""
Exception hierarchy for the translation pipeline.

Every error raised by the pipeline derives from TranslationError and carries
a ``recoverable`` flag. The retry manager retries recoverable errors and
re-raises the others immediately.
"""

from typing import Optional, Dict, Any


class TranslationError(Exception):
    """Base exception for all translation-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context about the error
        recoverable: Whether the error can potentially be recovered from
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"{self.__class__.__name__}: {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" (context: {context_str})"
        return base


# ============================================================================
# LLM-related errors
# ============================================================================

class LLMError(TranslationError):
    """Base exception for LLM provider errors."""
    pass


class LLMConnectionError(LLMError):
    """Raised when the connection to the LLM endpoint fails or times out.

    This is recoverable by retrying the request.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=True)


class LLMServerError(LLMError):
    """Raised on 5xx responses. Recoverable by retrying."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if status_code is not None:
            ctx['status_code'] = status_code
        super().__init__(message, ctx, recoverable=True)
        self.status_code = status_code


class LLMRateLimitError(LLMError):
    """Raised when rate limit is exceeded.

    This is recoverable by waiting and retrying.
    """

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if retry_after is not None:
            ctx['retry_after'] = retry_after
        super().__init__(message, ctx, recoverable=True)
        self.retry_after = retry_after


class LLMAuthenticationError(LLMError):
    """Raised when authentication fails (401/403).

    This is NOT recoverable without user intervention.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class LLMRequestError(LLMError):
    """Raised on 4xx responses other than auth and rate limit. Not retried."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if status_code is not None:
            ctx['status_code'] = status_code
        super().__init__(message, ctx, recoverable=False)
        self.status_code = status_code


class LLMResponseError(LLMError):
    """Raised when the LLM response is empty, invalid or unparseable."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        super().__init__(message, context, recoverable=recoverable)


class ToolCallError(LLMError):
    """Raised when a tool call cannot be executed (bad arguments, iteration cap)."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if tool_name is not None:
            ctx['tool'] = tool_name
        super().__init__(message, ctx, recoverable=False)
        self.tool_name = tool_name


# ============================================================================
# Checkpoint/persistence errors
# ============================================================================

class CheckpointError(TranslationError):
    """Base exception for checkpoint and job store errors."""
    pass


class CheckpointLoadError(CheckpointError):
    """Raised when loading persisted data fails."""
    pass


class CheckpointSaveError(CheckpointError):
    """Raised when saving persisted data fails."""
    pass


# ============================================================================
# Document errors
# ============================================================================

class DocumentError(TranslationError):
    """Base exception for source document errors."""
    pass


class BookDataError(DocumentError):
    """Raised when BookData input is missing fields or malformed."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


class HtmlParsingError(DocumentError):
    """Raised when chapter HTML cannot be parsed."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        content_preview: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if original_error:
            ctx['original_error'] = str(original_error)
        if content_preview:
            ctx['content_preview'] = content_preview[:200]
        super().__init__(message, ctx, recoverable=False)


# ============================================================================
# Configuration errors
# ============================================================================

class ConfigurationError(TranslationError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context, recoverable=False)


# ============================================================================
# Retry exhaustion
# ============================================================================

class RetryExhaustedError(TranslationError):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        original_error: The original error that triggered retries
        attempts: Number of attempts made
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        attempts: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        ctx = context or {}
        if original_error:
            ctx['original_error'] = str(original_error)
            ctx['original_error_type'] = type(original_error).__name__
        if attempts is not None:
            ctx['attempts'] = attempts
        super().__init__(message, ctx, recoverable=False)
        self.original_error = original_error
        self.attempts = attempts
