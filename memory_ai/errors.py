"""
Error taxonomy for the AI layer.

Every error raised by this package is an ``AIError`` carrying a
machine-readable ``code``, a ``recoverable`` flag (consulted by
``with_retry``) and the original ``cause``.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SUPPORT_CONTACT = "https://github.com/memory-ai/memory-ai/issues"


class AIError(Exception):
    code = "UNKNOWN"
    recoverable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


# --- recoverable -------------------------------------------------------

class ProviderUnavailableError(AIError):
    code = "PROVIDER_UNAVAILABLE"
    recoverable = True

    def __init__(self, provider_name: str, cause: Optional[BaseException] = None):
        super().__init__(f'AI provider "{provider_name}" is not available', cause=cause)
        self.provider_name = provider_name


class ModelLoadError(AIError):
    code = "MODEL_LOAD_FAILED"
    recoverable = True

    def __init__(self, model_name: str, cause: Optional[BaseException] = None):
        super().__init__(f'Failed to load model "{model_name}"', cause=cause)
        self.model_name = model_name


class EmbeddingError(AIError):
    code = "EMBEDDING_FAILED"
    recoverable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Embedding generation failed: {message}", cause=cause)


class NetworkError(AIError):
    code = "NETWORK_ERROR"
    recoverable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Network error: {message}", cause=cause)


class ChatError(AIError):
    code = "CHAT_FAILED"
    recoverable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Chat error: {message}", cause=cause)


# --- fatal -------------------------------------------------------------

class InitializationError(AIError):
    code = "INITIALIZATION_FAILED"

    def __init__(
        self,
        component: str,
        cause: Optional[BaseException] = None,
        message: Optional[str] = None,
    ):
        super().__init__(message or f"Failed to initialize {component}", cause=cause)
        self.component = component


class ProviderInitializationError(InitializationError):
    def __init__(self, provider_name: str, cause: Optional[BaseException] = None):
        super().__init__(
            provider_name,
            cause=cause,
            message=f"Failed to initialize provider: {provider_name}",
        )
        self.provider_name = provider_name


class DependencyError(AIError):
    code = "DEPENDENCY_UNAVAILABLE"

    def __init__(self, dependency: str, cause: Optional[BaseException] = None):
        super().__init__(f"Required dependency not available: {dependency}", cause=cause)
        self.dependency = dependency


class InvalidInputError(AIError, ValueError):
    code = "INVALID_INPUT"


class DimensionMismatchError(AIError, ValueError):
    code = "DIMENSION_MISMATCH"

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimension mismatch: {expected} vs {actual}")
        self.expected = expected
        self.actual = actual


class ProviderNotInitializedError(AIError):
    code = "PROVIDER_NOT_INITIALIZED"

    def __init__(self, provider_name: str):
        super().__init__(f"{provider_name} is not initialized. Call initialize() first.")
        self.provider_name = provider_name


class CapabilityNotSupportedError(AIError):
    code = "CAPABILITY_UNSUPPORTED"

    def __init__(self, provider_name: str, capability: str):
        super().__init__(f"{provider_name} does not support {capability}")
        self.provider_name = provider_name
        self.capability = capability


class NoProviderAvailableError(AIError):
    code = "NO_PROVIDER_AVAILABLE"

    def __init__(self, message: str = "No AI provider available"):
        super().__init__(message)


class CacheClosedError(AIError):
    code = "CACHE_CLOSED"

    def __init__(self):
        super().__init__("Embedding cache is closed")


# ---------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------

USER_MESSAGES: Dict[str, str] = {
    "PROVIDER_UNAVAILABLE": "AI is currently unavailable. Please check that a model backend is running.",
    "MODEL_LOAD_FAILED": "Failed to load the AI model. Please check your connection and try again.",
    "EMBEDDING_FAILED": "Could not process your text. Please try again.",
    "NETWORK_ERROR": "Network connection issue. Please check your internet connection.",
    "CHAT_FAILED": "Unable to generate a response. Please try again.",
    "INITIALIZATION_FAILED": "Failed to start the AI system. Please restart and try again.",
    "DEPENDENCY_UNAVAILABLE": "Required AI components are not installed.",
    "INVALID_INPUT": "Please enter some text and try again.",
    "DIMENSION_MISMATCH": "Stored data is incompatible with the current AI model.",
    "PROVIDER_NOT_INITIALIZED": "The AI system is still starting. Please try again shortly.",
    "CAPABILITY_UNSUPPORTED": "The selected AI backend cannot do that.",
    "NO_PROVIDER_AVAILABLE": "No AI backend is available right now.",
    "CACHE_CLOSED": "The AI system is shutting down.",
}
DEFAULT_USER_MESSAGE = "An unexpected error occurred. Please try again."


def _contains(message: str, *terms: str) -> bool:
    return any(t in message for t in terms)


class ErrorHandler:
    """Converts arbitrary exceptions into the taxonomy and renders them."""

    def handle(self, error: BaseException, context: Optional[str] = None) -> AIError:
        if context:
            logger.debug("AI error in %s: %r", context, error)

        if isinstance(error, AIError):
            return error

        text = str(error)
        message = text.lower()

        if _contains(message, "provider") and _contains(message, "not available", "unavailable"):
            return ProviderUnavailableError("unknown", cause=error)

        # chat before network to avoid "connection" false positives in chat failures
        if _contains(message, "chat", "completion"):
            return ChatError(text, cause=error)

        if _contains(message, "embedding", "tokenize", "pipeline"):
            return EmbeddingError(text, cause=error)

        if _contains(message, "model", "load", "download"):
            return ModelLoadError("unknown", cause=error)

        if isinstance(error, (TimeoutError, ConnectionError)) or _contains(
            message, "network", "fetch", "timeout", "connection"
        ):
            return NetworkError(text, cause=error)

        if _contains(message, "initialize", "setup", "config"):
            return InitializationError("AI system", cause=error)

        return AIError(text or "Unknown AI error", code="UNKNOWN", recoverable=False, cause=error)

    def user_message(self, error: AIError) -> str:
        return USER_MESSAGES.get(error.code, DEFAULT_USER_MESSAGE)

    def support_info(self, error: AIError, include_cause: bool = False) -> str:
        lines = [
            f"Error Code: {error.code}",
            f"Recoverable: {str(error.recoverable).lower()}",
            f"Error Type: {type(error).__name__}",
        ]
        if include_cause and error.cause is not None:
            lines.append(f"Cause: {error.cause}")
        lines.append("")
        lines.append(f"For support: {SUPPORT_CONTACT}")
        return "\n".join(lines)

    def is_recoverable(self, error: BaseException) -> bool:
        return isinstance(error, AIError) and error.recoverable


error_handler = ErrorHandler()
