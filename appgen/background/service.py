"""Background job dispatch.

A job is identified by a name (a path such as ``/generated-apps/``) and a
JSON payload. ``queue()`` returns as soon as the job is handed off; callers
never wait for the job to finish.

Two dispatchers are provided:
- LocalBackgroundService runs registered handlers on a thread pool.
- HttpBackgroundService POSTs the payload to ``base_url + name`` so the job
  runs inside the web application serving that path.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import httpx

logger = logging.getLogger(__name__)

JobPayload = dict[str, Any]
JobHandler = Callable[[JobPayload], None]


class UnknownJobError(Exception):
    """Raised when a job name has no registered handler."""

    def __init__(self, name: str, code: str = "unknown_job") -> None:
        super().__init__(f"No handler registered for job: {name}")
        self.name = name
        self.code = code


class BackgroundService(ABC):
    """Fire-and-forget job queue."""

    @abstractmethod
    def queue(self, name: str, payload: JobPayload) -> None:
        """Enqueue a job and return immediately."""

    def shutdown(self, wait: bool = True) -> None:
        """Release worker resources, optionally waiting for queued jobs."""


class LocalBackgroundService(BackgroundService):
    """Run jobs in-process on a thread pool.

    Args:
        max_workers: Maximum number of jobs running at once.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._handlers: dict[str, JobHandler] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="appgen-job"
        )

    def register(self, name: str, handler: JobHandler) -> None:
        """Register the handler for a job name."""
        self._handlers[name] = handler

    def queue(self, name: str, payload: JobPayload) -> None:
        """Submit a job to the thread pool.

        Raises:
            UnknownJobError: If no handler is registered for name.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownJobError(name)

        future = self._executor.submit(handler, dict(payload))
        future.add_done_callback(lambda f: self._log_outcome(name, f))
        logger.debug("Queued job %s", name)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _log_outcome(name: str, future: Future[None]) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Job %s failed: %s", name, exc, exc_info=exc)
        else:
            logger.debug("Job %s finished", name)


class HttpBackgroundService(BackgroundService):
    """Dispatch jobs as HTTP POST requests.

    Args:
        base_url: Base URL of the service that runs the jobs.
        timeout: Request timeout in seconds.
        client: Optional httpx client (created if not provided).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 3600,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._executor = ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="appgen-dispatch"
        )

    def queue(self, name: str, payload: JobPayload) -> None:
        """Post the job on a worker thread and return immediately."""
        url = f"{self.base_url}/{name.lstrip('/')}"
        self._executor.submit(self._post, url, dict(payload))
        logger.debug("Dispatching job to %s", url)

    def _post(self, url: str, payload: JobPayload) -> None:
        try:
            response = self._client.post(url, json=payload)
            response.raise_for_status()
        except (httpx.HTTPError, RuntimeError) as e:
            # RuntimeError: the client was closed by shutdown(wait=False)
            logger.error("Job dispatch to %s failed: %s", url, e)
            return
        logger.debug("Job at %s finished with %d", url, response.status_code)

    def shutdown(self, wait: bool = True) -> None:
        """Stop dispatching and close the HTTP client.

        Without ``wait``, jobs not yet posted are cancelled.
        """
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
        self._client.close()


__all__ = [
    "BackgroundService",
    "HttpBackgroundService",
    "JobHandler",
    "JobPayload",
    "LocalBackgroundService",
    "UnknownJobError",
]
