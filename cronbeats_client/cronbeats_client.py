import asyncio
import json
import random
import re
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import aiohttp
import pydantic
from loguru import logger
from cronbeats_client.errors import (
    ApiError,
    NetworkError,
    TransportError,
    ValidationError,
)
from cronbeats_client.models import (
    ClientConfig,
    ErrorCode,
    PingResult,
    ProgressOptions,
)
from cronbeats_client.transport import AiohttpTransport, Transport

JOB_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9]{8}$")
MAX_MESSAGE_LENGTH = 255
END_STATUSES = ("success", "fail")

# Exceptions a transport may raise when it could not complete the call
NETWORK_EXCEPTIONS = (TransportError, aiohttp.ClientError, asyncio.TimeoutError, OSError)


def map_status(status: int) -> tuple[ErrorCode, bool]:
    """Classify a non-2xx HTTP status into an error code and whether it is worth retrying"""
    if status == 400:
        return ErrorCode.validation, False
    if status == 404:
        return ErrorCode.not_found, False
    if status == 429:
        return ErrorCode.rate_limited, True
    if status >= 500:
        return ErrorCode.server, True
    return ErrorCode.unknown, False


def safe_json(raw: str) -> Dict[str, Any]:
    """Decode a response body, substituting a placeholder object for anything that is not a JSON object"""
    try:
        decoded = json.loads(raw)
    except ValueError:
        return {"message": "Invalid JSON response"}
    if not isinstance(decoded, dict):
        return {"message": "Invalid JSON response"}
    return decoded


def float_or_zero(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
    except (OverflowError, ValueError):
        return 0.0
    return 0.0


def _non_empty_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value != "" else None


class PingClient:
    def __init__(
        self,
        job_key: str,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        if not isinstance(job_key, str) or not JOB_KEY_PATTERN.match(job_key):
            raise ValidationError("job_key must be exactly 8 alphanumeric characters.")

        self._job_key = job_key
        self.config = config or ClientConfig()
        self.transport = transport or AiohttpTransport()
        self.rng = rng or random.Random()
        self.sleep = sleep or asyncio.sleep
        self.logger = logger

    @property
    def job_key(self) -> str:
        return self._job_key

    async def ping(self) -> PingResult:
        return await self._request("ping", f"/ping/{self._job_key}")

    async def start(self) -> PingResult:
        return await self._request("start", f"/ping/{self._job_key}/start")

    async def end(self, status: str = "success") -> PingResult:
        """Report the end of a run; status is "success" or "fail", case and whitespace insensitive"""
        if not isinstance(status, str):
            raise ValidationError('Status must be "success" or "fail".')
        status_value = status.strip().lower() or "success"
        if status_value not in END_STATUSES:
            raise ValidationError('Status must be "success" or "fail".')
        return await self._request("end", f"/ping/{self._job_key}/end/{status_value}")

    async def success(self) -> PingResult:
        return await self.end("success")

    async def fail(self) -> PingResult:
        return await self.end("fail")

    async def progress(self, value: Any = None, message: str = "") -> PingResult:
        """Report progress of a running job.

        `value` is either None, a non-negative sequence number, or a
        ProgressOptions (or a mapping with its fields) carrying an optional
        sequence and a message. Messages are cut to 255 characters.
        """
        seq, msg = self._parse_progress(value, message)
        body = {"message": msg[:MAX_MESSAGE_LENGTH]}

        if seq is not None:
            return await self._request("progress", f"/ping/{self._job_key}/progress/{seq}", body)
        return await self._request("progress", f"/ping/{self._job_key}/progress", body)

    @staticmethod
    def _parse_progress(value: Any, message: str) -> tuple[Optional[int], str]:
        if not isinstance(message, str):
            raise ValidationError("Progress message must be a string.")

        if isinstance(value, Mapping):
            try:
                value = ProgressOptions.model_validate(value)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid progress options: {e}") from e

        seq: Optional[int] = None
        if value is None:
            pass
        elif isinstance(value, int) and not isinstance(value, bool):
            seq = value
        elif isinstance(value, ProgressOptions):
            seq = value.seq
            if value.message.strip() or not message:
                message = value.message
        else:
            raise ValidationError("Progress input must be int, ProgressOptions, or None.")

        if seq is not None and seq < 0:
            raise ValidationError("Progress seq must be a non-negative integer.")
        return seq, message

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
        }

    def _calculate_delay(self, attempt: int) -> float:
        """Backoff in seconds before retry number `attempt` (1-based): base * 2^(attempt-1) plus jitter"""
        delay_ms = self.config.retry_backoff_ms * (2 ** max(0, attempt - 1))
        if self.config.retry_jitter_ms > 0:
            delay_ms += self.rng.randint(0, self.config.retry_jitter_ms)
        return delay_ms / 1000

    async def _wait_before_retry(self, attempt: int, reason: str) -> None:
        delay = self._calculate_delay(attempt)
        self.logger.debug(
            f"{reason}, retry {attempt}/{self.config.max_retries} in {delay:.3f}s"
        )
        await self.sleep(delay)

    async def _request(
        self, action: str, path: str, body: Optional[Dict[str, Any]] = None
    ) -> PingResult:
        url = f"{self.config.base_url}{path}"
        payload = json.dumps(body).encode("utf-8") if body else b""
        headers = self._headers()
        attempt = 0

        while True:
            self.logger.debug(f"POST {url} (action={action}, attempt={attempt + 1})")
            try:
                response = await self.transport.request(
                    "POST", url, dict(headers), payload, self.config.timeout_ms
                )
            except NETWORK_EXCEPTIONS as e:
                if attempt >= self.config.max_retries:
                    self.logger.warning(f"Giving up on {action} after {attempt + 1} attempts: {e}")
                    raise NetworkError(str(e) or type(e).__name__, raw=e) from e
                attempt += 1
                await self._wait_before_retry(attempt, f"Network error: {e}")
                continue

            parsed = safe_json(response.body)
            if 200 <= response.status < 300:
                return self._normalize_success(action, parsed)

            code, retryable = map_status(response.status)
            message = _non_empty_str(parsed.get("message")) or "Request failed"

            if retryable and attempt < self.config.max_retries:
                attempt += 1
                await self._wait_before_retry(attempt, f"HTTP {response.status} ({code.value})")
                continue

            if retryable:
                self.logger.warning(
                    f"Giving up on {action} after {attempt + 1} attempts: HTTP {response.status}"
                )
            raise ApiError(
                code,
                message,
                http_status=response.status,
                retryable=retryable,
                raw=parsed,
            )

    def _normalize_success(self, action: str, payload: Dict[str, Any]) -> PingResult:
        timestamp = payload.get("timestamp")
        next_expected = payload.get("next_expected")
        return PingResult(
            ok=True,
            action=_non_empty_str(payload.get("action")) or action,
            job_key=_non_empty_str(payload.get("job_key")) or self._job_key,
            timestamp=timestamp if isinstance(timestamp, str) else "",
            processing_time_ms=float_or_zero(payload.get("processing_time_ms")),
            next_expected=next_expected if isinstance(next_expected, str) else None,
            raw=payload,
        )
