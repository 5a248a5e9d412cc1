from typing import Any, Optional

from cronbeats_client.models import ErrorCode


class CronbeatsError(Exception):
    """Base error for everything the SDK raises"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CronbeatsError):
    """Invalid input detected before any request was sent"""


class TransportError(CronbeatsError):
    """The transport could not complete the HTTP call"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message if cause is None else f"{message}: {cause}")
        self.cause = cause


class ApiError(CronbeatsError):
    """The service answered with a non-2xx status, or could not be reached at all"""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: Optional[int] = None,
        retryable: bool = False,
        raw: Any = None,
    ):
        super().__init__(message)
        self.code = code
        self.http_status = http_status
        self.retryable = retryable
        self.raw = raw

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code.value}, http_status={self.http_status}, "
            f"retryable={self.retryable}, message={self.message!r})"
        )


class NetworkError(ApiError):
    def __init__(self, message: str, raw: Any = None):
        super().__init__(ErrorCode.network, message, retryable=True, raw=raw)
