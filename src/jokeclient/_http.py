"""
HTTP client abstraction for the jokeclient package.

This module provides a small HTTP client interface so the JokeClient can be
exercised with test doubles or custom transports.

Available implementations:
    - HttpClient: Abstract base class.
    - RequestsHttpClient: `requests.Session` based client enforcing a total time budget. Default.

Example:
    >>> from jokeclient._http import RequestsHttpClient
    >>> client = RequestsHttpClient()
    >>> response = client.get("https://v2.jokeapi.dev/joke/Any", timeout=5.0)
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import override

import requests
import urllib3

logger = logging.getLogger(__name__)


def default_user_agent() -> str:
    """Returns the User-Agent sent when none is configured."""
    from jokeclient import __version__
    return f"jokeclient/{__version__}"


# =============================================================================
# Abstract Base Class
# =============================================================================


class HttpClient(ABC):
    """
    Abstract base class for HTTP clients.

    Implementations must honour `timeout` as a total budget for the call and
    raise `requests.Timeout` when it is exceeded.

    Example:
        >>> class MyHttpClient(HttpClient):
        ...     def get(self, url, headers=None, timeout=5.0):
        ...         return requests.get(url, headers=headers, timeout=timeout)
    """

    @abstractmethod
    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 5.0,
    ) -> requests.Response:
        """
        Execute a GET request.

        Args:
            url: The full URL to request.
            headers: Additional headers to include.
            timeout: Total time budget in seconds.

        Returns:
            The HTTP response.

        Raises:
            requests.Timeout: If the budget is exceeded.
            requests.RequestException: If the HTTP request fails.
        """
        pass

    def close(self) -> None:
        """Release any resources held by the client."""
        pass


# =============================================================================
# requests Implementation
# =============================================================================


class RequestsHttpClient(HttpClient):
    """
    HTTP client backed by a `requests.Session`.

    Every request carries `Accept: application/json` and a User-Agent header.

    `requests` applies its timeout per socket operation, so a slow server
    trickling bytes could keep a call alive far beyond the budget. This client
    streams the body and aborts the response once the overall deadline passes.

    Args:
        user_agent: User-Agent header value. Defaults to "jokeclient/<version>".
        session: Optional pre-configured session. When given, the caller owns it
            and `close()` leaves it open.
        chunk_size: Bytes read per iteration while streaming the body.
    """

    def __init__(
        self,
        user_agent: str | None = None,
        session: requests.Session | None = None,
        chunk_size: int = 8192,
    ):
        assert chunk_size > 0, "chunk_size must be greater than 0."

        self.user_agent = user_agent or default_user_agent()
        self.chunk_size = chunk_size
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._session.headers.update({
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        })

    @override
    def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 5.0,
    ) -> requests.Response:
        """
        Execute a GET request bounded by a total time budget.

        Raises:
            AssertionError: If url is empty or timeout is invalid.
            requests.Timeout: If connecting, waiting or reading exceeds `timeout`.
            requests.RequestException: If the HTTP request fails.
        """
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        deadline = time.monotonic() + timeout
        # `total` caps connect plus the wait for headers; body reads are capped below
        response = self._session.get(
            url, headers=headers, timeout=urllib3.Timeout(total=timeout), stream=True,
        )
        try:
            response._content = self._read_body(response, deadline, timeout)
        finally:
            # Returns the connection to the pool, or drops it when the read was aborted
            response.close()
        return response

    def _read_body(self, response: requests.Response, deadline: float, timeout: float) -> bytes:
        chunks: list[bytes] = []
        self._shrink_read_timeout(response, self._remaining(response, deadline, timeout))
        for chunk in response.iter_content(chunk_size=self.chunk_size):
            chunks.append(chunk)
            self._shrink_read_timeout(response, self._remaining(response, deadline, timeout))
        return b"".join(chunks)

    @staticmethod
    def _remaining(response: requests.Response, deadline: float, timeout: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug(f"Aborting response from {response.url}: time budget of {timeout:.2f}s exceeded.")
            raise requests.Timeout(
                f"Request exceeded its time budget of {timeout:.2f}s",
                response=response,
            )
        return remaining

    @staticmethod
    def _shrink_read_timeout(response: requests.Response, remaining: float) -> None:
        # The next socket read may block for at most what is left of the budget
        connection = getattr(response.raw, "connection", None)
        sock = getattr(connection, "sock", None)
        if sock is not None:
            sock.settimeout(remaining)

    @override
    def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._owns_session:
            self._session.close()
