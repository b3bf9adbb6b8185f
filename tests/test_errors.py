import pytest

from memory_ai.errors import (
    AIError,
    ChatError,
    DependencyError,
    DimensionMismatchError,
    EmbeddingError,
    ErrorHandler,
    InitializationError,
    InvalidInputError,
    ModelLoadError,
    NetworkError,
    ProviderInitializationError,
    ProviderUnavailableError,
    DEFAULT_USER_MESSAGE,
    SUPPORT_CONTACT,
)


@pytest.fixture()
def handler():
    return ErrorHandler()


@pytest.mark.parametrize(
    "error, recoverable",
    [
        (ProviderUnavailableError("ollama"), True),
        (ModelLoadError("MiniLM"), True),
        (EmbeddingError("bad"), True),
        (NetworkError("offline"), True),
        (ChatError("bad"), True),
        (InitializationError("engine"), False),
        (DependencyError("sentence-transformers"), False),
        (InvalidInputError("empty"), False),
        (DimensionMismatchError(384, 3), False),
    ],
)
def test_recoverability_is_fixed_per_kind(handler, error, recoverable):
    assert error.recoverable is recoverable
    assert handler.is_recoverable(error) is recoverable


def test_codes_are_distinct():
    errors = [
        ProviderUnavailableError("x"),
        ModelLoadError("x"),
        EmbeddingError("x"),
        NetworkError("x"),
        ChatError("x"),
        InitializationError("x"),
        DependencyError("x"),
        InvalidInputError("x"),
        DimensionMismatchError(1, 2),
    ]
    assert len({e.code for e in errors}) == len(errors)


def test_dimension_mismatch_is_value_error():
    err = DimensionMismatchError(384, 3)
    assert isinstance(err, ValueError)
    assert str(err) == "Vector dimension mismatch: 384 vs 3"


def test_provider_initialization_error():
    cause = RuntimeError("no key")
    err = ProviderInitializationError("OpenAI (cloud)", cause=cause)
    assert err.code == "INITIALIZATION_FAILED"
    assert err.message == "Failed to initialize provider: OpenAI (cloud)"
    assert err.cause is cause
    assert err.__cause__ is cause


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Provider chrome is not available", ProviderUnavailableError),
        ("chat completion failed", ChatError),
        ("tokenize step blew up", EmbeddingError),
        ("failed to download weights", ModelLoadError),
        ("fetch failed", NetworkError),
        ("bad config value", InitializationError),
    ],
)
def test_classifier(handler, message, expected):
    original = Exception(message)
    err = handler.handle(original, context="test")
    assert isinstance(err, expected)
    assert err.cause is original


def test_classifier_builtin_network_errors(handler):
    assert isinstance(handler.handle(TimeoutError()), NetworkError)
    assert isinstance(handler.handle(ConnectionResetError("reset")), NetworkError)


def test_classifier_unknown(handler):
    original = KeyError("zzz")
    err = handler.handle(original)
    assert type(err) is AIError
    assert err.code == "UNKNOWN"
    assert err.recoverable is False
    assert err.cause is original


def test_classifier_passes_through_ai_errors(handler):
    err = ChatError("x")
    assert handler.handle(err) is err


def test_user_messages(handler):
    assert "unavailable" in handler.user_message(ProviderUnavailableError("x"))
    assert handler.user_message(AIError("x", code="SOMETHING_NEW")) == DEFAULT_USER_MESSAGE


def test_support_info(handler):
    info = handler.support_info(NetworkError("offline", cause=OSError("unreachable")), include_cause=True)
    lines = info.splitlines()
    assert lines[0] == "Error Code: NETWORK_ERROR"
    assert lines[1] == "Recoverable: true"
    assert lines[2] == "Error Type: NetworkError"
    assert "Cause: unreachable" in lines
    assert lines[-1] == f"For support: {SUPPORT_CONTACT}"

    assert "Cause:" not in handler.support_info(NetworkError("offline", cause=OSError("x")))
