"""Async client for the CV Optimizer API.

Mirrors what the web front end does: one session per process, and retries
on failures the error classifier judges transient, with a "Retrying... (n/3)"
notice per retry.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from cv_optimizer.models.resume import StructuredResume
from cv_optimizer.services import retry
from cv_optimizer.services.error_classifier import PERMANENT_CATEGORIES, classify, is_retryable
from cv_optimizer.services.errors import NetworkError, ProviderError
from cv_optimizer.services.export import ExportFormat
from cv_optimizer.services.response_normalizer import validate
from cv_optimizer.services.session import SessionContext

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BASE_DELAY = 1.0


class APIRequestError(ProviderError):
    """Non-2xx answer from the CV Optimizer API.

    The message is the server's user-safe ``error`` string.
    """

    def __init__(self, message: str, status_code: int, details: str | None = None):
        super().__init__(message, status_code=status_code)
        self.details = details


def _error_from_response(response: httpx.Response) -> APIRequestError:
    message, details = f"Request failed with status {response.status_code}", None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail") or message
        details = body.get("details")
    return APIRequestError(str(message), response.status_code, details)


def should_retry(error: Exception) -> bool:
    """Retry predicate for API calls.

    The server answers 500 for quota, safety, configuration and
    unparseable-output failures too; those are told apart by their message and
    never re-sent.
    """
    if isinstance(error, APIRequestError) and classify(error) in PERMANENT_CATEGORIES:
        return False
    return is_retryable(error)


class OptimizerClient:
    def __init__(
        self,
        base_url: str,
        session: SessionContext,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 120.0,
        policy: retry.RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session = session
        self.policy = policy or retry.RetryPolicy(
            max_attempts=MAX_ATTEMPTS, base_delay=BASE_DELAY, retry_if=should_retry
        )
        self._sleep = sleep
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "OptimizerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"X-Session-Id": self.session.session_id}
        if self.session.user_id:
            headers["X-User-Id"] = self.session.user_id
        return headers

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network connection error: {e}") from e
        if response.is_error:
            raise _error_from_response(response)
        return response

    async def optimize(
        self,
        resume_text: str,
        job_description: str,
        job_role: str = "",
        on_retry: Callable[[int, Exception], None] | None = None,
    ) -> StructuredResume:
        """Optimize a resume, retrying transient failures."""

        def notify(attempt: int, error: Exception) -> None:
            logger.info("Retrying... (%d/%d): %s", attempt, self.policy.max_attempts, error)
            if on_retry is not None:
                on_retry(attempt, error)

        policy = retry.RetryPolicy(
            max_attempts=self.policy.max_attempts,
            base_delay=self.policy.base_delay,
            on_retry=notify,
            retry_if=self.policy.retry_if,
        )
        payload = {
            "resumeText": resume_text,
            "jobDescription": job_description,
            "jobRole": job_role or "Not specified",
        }

        async def attempt() -> httpx.Response:
            return await self._request("POST", "/optimize", json=payload)

        response = await retry.execute(attempt, policy, sleep=self._sleep)
        return validate(response.json())

    async def extract(self, path: str | Path) -> str:
        path = Path(path)
        response = await self._request(
            "POST", "/extract", files={"file": (path.name, path.read_bytes())}
        )
        return response.json()["text"]

    async def usage(self) -> dict:
        return (await self._request("GET", "/usage")).json()

    async def list_optimizations(self) -> list[dict]:
        return (await self._request("GET", "/optimizations")).json()

    async def delete_optimization(self, optimization_id: str) -> None:
        await self._request("DELETE", f"/optimizations/{optimization_id}")

    async def download(
        self,
        optimization_id: str,
        fmt: ExportFormat = ExportFormat.PDF,
    ) -> tuple[str, bytes]:
        """Return (filename, content) for a stored optimization."""
        response = await self._request("GET", f"/optimizations/{optimization_id}/export/{fmt.value}")
        disposition = response.headers.get("content-disposition", "")
        filename = disposition.partition("filename=")[2].strip('"') or f"optimized-cv.{fmt.value}"
        return filename, response.content
