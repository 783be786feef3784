from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

import httpx
from httpx_sse import SSEError

ExtraInfoType = dict[str, str | None]


class LLMErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    MODEL_UNAVAILABLE = "model_unavailable"
    QUOTA_EXHAUSTED = "quota_exhausted"
    MALFORMED_REQUEST = "malformed_request"
    TRANSPORT = "transport"
    CONFIGURATION = "configuration"
    PARSE = "parse"
    UNKNOWN = "unknown"


class LLMError(Exception):
    """An error from a chat-completion provider."""

    kind: LLMErrorKind = LLMErrorKind.UNKNOWN

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if details := [f"{key}: {value}" for key, value in (extra_info or {}).items() if value is not None]:
            msg += " (" + ", ".join(details) + ")"
        super().__init__(msg)


class AuthenticationFailedError(LLMError):
    """The provider rejected the credential."""

    kind = LLMErrorKind.AUTHENTICATION

    def __init__(self, detail: str | None = None):
        super().__init__(message="Authentication failed.", extra_info={"detail": detail})


class ModelUnavailableError(LLMError):
    """The requested model or endpoint does not exist."""

    kind = LLMErrorKind.MODEL_UNAVAILABLE

    def __init__(self, detail: str | None = None):
        super().__init__(message="The model is unavailable.", extra_info={"detail": detail})


class QuotaExhaustedError(LLMError):
    """The provider reported a rate limit or an exhausted quota."""

    kind = LLMErrorKind.QUOTA_EXHAUSTED

    def __init__(self, detail: str | None = None):
        super().__init__(message="The quota is exhausted.", extra_info={"detail": detail})


class MalformedRequestError(LLMError):
    """The provider refused the request."""

    kind = LLMErrorKind.MALFORMED_REQUEST

    def __init__(self, detail: str | None = None):
        super().__init__(message="The request failed.", extra_info={"detail": detail})


class NetworkError(LLMError):
    """The provider could not be reached or failed on its side."""

    kind = LLMErrorKind.TRANSPORT

    def __init__(self, detail: str | None = None):
        super().__init__(message="A network error occurred.", extra_info={"detail": detail})


class ConfigurationError(LLMError):
    """The provider configuration is missing, unknown or unsupported."""

    kind = LLMErrorKind.CONFIGURATION

    def __init__(self, detail: str, extra_info: ExtraInfoType | None = None):
        super().__init__(message=f"Configuration error: {detail}", extra_info=extra_info)


class ResponseParseError(LLMError):
    """The provider answered with an unexpected shape."""

    kind = LLMErrorKind.PARSE

    def __init__(self, detail: str | None = None):
        super().__init__(message="The response could not be parsed.", extra_info={"detail": detail})


class UnknownLLMError(LLMError):
    """An error that does not fit any other kind."""

    kind = LLMErrorKind.UNKNOWN

    def __init__(self, detail: str | None = None):
        super().__init__(message="An unknown error occurred.", extra_info={"detail": detail})


UNAUTHORIZED = 401
FORBIDDEN = 403
NOT_FOUND = 404
TOO_MANY_REQUESTS = 429


def error_from_status_code(status_code: int, message: str | None = None) -> LLMError:
    """Map an unsuccessful HTTP status to the provider error taxonomy."""

    detail = message or None

    if status_code in (UNAUTHORIZED, FORBIDDEN):
        return AuthenticationFailedError(detail)
    if status_code == NOT_FOUND:
        return ModelUnavailableError(detail)
    if status_code == TOO_MANY_REQUESTS:
        return QuotaExhaustedError(detail)
    if 400 <= status_code < 500:  # noqa: PLR2004
        return MalformedRequestError(detail)
    if 500 <= status_code < 600:  # noqa: PLR2004
        return NetworkError(detail)

    return UnknownLLMError(detail)


@contextmanager
def translate_transport_errors() -> Iterator[None]:
    """Convert httpx and httpx-sse failures raised in the block into provider errors."""

    try:
        yield
    except SSEError as e:
        raise ResponseParseError(str(e)) from e
    except httpx.HTTPStatusError as e:
        raise error_from_status_code(e.response.status_code, e.response.text) from e
    except httpx.HTTPError as e:
        raise NetworkError(str(e) or type(e).__name__) from e
