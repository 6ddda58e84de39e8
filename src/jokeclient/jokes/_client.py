"""
JokeAPI client.

This module provides a synchronous client for JokeAPI that builds request URLs
from structured options, gates every call through an admission controller and
classifies each outcome into a JokeResponse.
"""

import dataclasses
import logging
import time
from dataclasses import dataclass
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import quote, urlencode

if TYPE_CHECKING:
    from jokeclient._config import ClientConfig

import requests

from jokeclient._http import HttpClient
from jokeclient._rate_limit import AdmissionController, LimiterStoppedError
from jokeclient.jokes._models import (
    DomainFailure,
    FetchOptions,
    Joke,
    JokeApiError,
    JokeCategory,
    JokeFetchError,
    JokeResponse,
    JokeStatus,
    failure_from_exception,
    format_joke,
    parse_jokes,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JokeClientOptions:
    """
    Configuration options for the JokeClient.

    Fields set to None will use values from global config (JOKES.config.client).

    Attributes:
        request_timeout: Default per-call time budget in seconds.
        lang: Default language tag applied when a fetch does not set one.

    Example:
        >>> client = JokeClient(options=JokeClientOptions(request_timeout=2.0))
    """
    request_timeout: float | None = None
    lang: str | None = None

    def with_defaults_from(self, cfg: "ClientConfig") -> "JokeClientOptions":
        """
        Returns a new JokeClientOptions with None values filled from config.

        Args:
            cfg: The ClientConfig to use for default values.
        """
        return JokeClientOptions(
            request_timeout=self.request_timeout if self.request_timeout is not None else cfg.request_timeout,
            lang=self.lang if self.lang is not None else cfg.lang,
        )


class JokeClient:
    """
    Synchronous client for JokeAPI.

    Every call goes through the admission controller first. A denied call never
    reaches the network. `fetch()` does not raise for transport errors, timeouts,
    service errors or admission denials: they are returned as a JokeResponse
    carrying exactly one failure. Nothing is retried.

    Example:
        >>> from jokeclient.jokes import JokeClient, FetchOptions, JokeCategory
        >>> with JokeClient() as client:
        ...     response = client.fetch(FetchOptions(category=JokeCategory.PROGRAMMING))
        ...     if response.is_success():
        ...         print(response.format())

    Attributes:
        base_url: The JokeAPI base URL.
        options: Resolved client options.
        http_client: HTTP client used for the calls.
        rate_limiter: Admission controller, or None when rate limiting is disabled.
    """

    def __init__(
        self,
        base_url: str | None = None,
        options: JokeClientOptions | None = None,
        http_client: HttpClient | None = None,
        rate_limiter: AdmissionController | None = None,
    ):
        """
        Initialize the JokeClient.

        Args:
            base_url: Base URL for JokeAPI.
                If None, uses global config (JOKES.config.client.base_url).
            options: Client options. Partial options are merged with
                JOKES.config.client via with_defaults_from().
            http_client: Custom HTTP client. If None, a RequestsHttpClient is
                created (and owned) by this client.
            rate_limiter: Admission controller. If None, one is built from
                JOKES.config.rate_limit (which may disable rate limiting).
        """
        from jokeclient._config import JOKES
        cfg = JOKES.config

        resolved_options = (options or JokeClientOptions()).with_defaults_from(cfg.client)

        if base_url is None:
            base_url = cfg.client.base_url

        self._owns_http_client = http_client is None
        if http_client is None:
            from jokeclient._http import RequestsHttpClient
            http_client = RequestsHttpClient(user_agent=cfg.client.user_agent)

        if rate_limiter is None:
            from jokeclient._rate_limit import create_admission_controller
            rate_limiter = create_admission_controller(cfg.rate_limit)

        assert base_url, "JokeClient base_url cannot be empty."
        assert resolved_options.request_timeout is not None, \
            "🌀 Sanity check | request_timeout must be set after with_defaults_from()"
        assert resolved_options.request_timeout > 0, "request_timeout must be greater than 0."

        self.base_url = base_url.rstrip("/")
        self.options = resolved_options
        self.http_client: HttpClient = http_client
        self.rate_limiter: AdmissionController | None = rate_limiter
        self._stopped = False

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def build_url(self, options: FetchOptions | None = None) -> str:
        """
        Build the fully-qualified request URL for `options`.

        Example:
            >>> client.build_url(FetchOptions(category="Programming", amount=3))
            'https://v2.jokeapi.dev/joke/Programming?amount=3'
        """
        options = self._resolve(options or FetchOptions())
        url = f"{self.base_url}/joke/{quote(options.to_path_segment(), safe=',')}"

        params = options.to_query_params()
        if not params:
            return url

        # `safe-mode` is a valueless flag, so it is appended by hand
        flags = [name for name, value in params.items() if value == ""]
        query = urlencode({k: v for k, v in params.items() if v != ""}, safe=",")
        query = "&".join(part for part in [query, *flags] if part)
        return f"{url}?{query}"

    def fetch(self, options: FetchOptions | None = None) -> JokeResponse:
        """
        Fetch one or more jokes (blocking).

        Args:
            options: What to fetch. If None, one joke from any category.

        Returns:
            A JokeResponse holding either the decoded jokes or exactly one
            failure (transport, timeout, service error or admission denied).
        """
        options = self._resolve(options or FetchOptions())
        budget = options.timeout if options.timeout is not None else self.options.request_timeout
        assert budget is not None, "🌀 Sanity check | time budget must be resolved."

        deadline = time.monotonic() + budget

        try:
            if self._stopped:
                raise LimiterStoppedError("JokeClient has been stopped.")

            url = self.build_url(options)
            logger.info(f"{options.id[:26]:<26} | Jokes | Fetching {url}")

            if self.rate_limiter is None:
                response = self._do_fetch(options, url, deadline, budget)
            else:
                response = self.rate_limiter.run(
                    lambda: self._do_fetch(options, url, deadline, budget),
                    timeout=budget,
                )

            assert response.options is options, \
                "🌀 Sanity check | Unexpected mismatch: response does not reference its corresponding options."
            return response

        except Exception as e:
            failure = failure_from_exception(e, budget)
            if failure.kind == JokeStatus.ADMISSION_DENIED:
                logger.warning(f"{options.id[:26]:<26} | Jokes | ⏳ {failure.message}")
            else:
                logger.error(
                    f"{options.id[:26]:<26} | Jokes | ❌ Fetch failed ({failure.kind}): {failure.message}",
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
            return JokeResponse.failed(options=options, failure=failure)

    def _do_fetch(self, options: FetchOptions, url: str, deadline: float, budget: float) -> JokeResponse:
        """
        Execute the HTTP call and decode the payload.

        The HTTP call only gets what is left of the budget once admission
        (and any wait in the scheduler queue) is over.

        Raises:
            requests.Timeout: If the call would end after `deadline`.
            requests.HTTPError: On a non-2xx status.
            requests.RequestException: On network errors.
            ValueError: If the body is not JSON.
            JokeApiError: If the service answered with its error envelope.
            JokePayloadError: If the payload does not decode into jokes.
        """
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise requests.Timeout(f"Time budget of {budget:.2f}s exhausted before the request was sent")

        http_response = self.http_client.get(url, timeout=remaining)
        assert isinstance(http_response, requests.Response), \
            f"🌀 Sanity check | Object returned by `get` method is not an instance of `requests.Response`. ({http_response.__class__})"

        http_response.raise_for_status()
        data = http_response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}.")

        if data.get("error") is True:
            raise JokeApiError(DomainFailure.from_api(data))

        jokes, is_batch = parse_jokes(data)
        logger.info(f"{options.id[:26]:<26} | Jokes | ✅ Received {len(jokes)} joke(s)")
        return JokeResponse(
            options=options,
            status=JokeStatus.SUCCESS,
            jokes=jokes,
            is_batch=is_batch,
            raw_response=data,
        )

    def _resolve(self, options: FetchOptions) -> FetchOptions:
        if options.lang is None and self.options.lang:
            return dataclasses.replace(options, lang=self.options.lang)
        return options

    # -------------------------------------------------------------------------
    # Convenience
    # -------------------------------------------------------------------------

    def get_random_joke(self, options: FetchOptions | None = None) -> JokeResponse:
        """Fetch a single joke. `amount` in `options` is ignored."""
        options = dataclasses.replace(options or FetchOptions(), amount=None)
        return self.fetch(options)

    def get_programming_joke(self, safe: bool = True) -> JokeResponse:
        """
        Fetch one Programming joke.

        Args:
            safe: Blacklist every sensitive content flag.
        """
        if safe:
            return self.fetch(FetchOptions.safe(category=JokeCategory.PROGRAMMING))
        return self.fetch(FetchOptions(category=JokeCategory.PROGRAMMING))

    def get_multiple_jokes(self, count: int, options: FetchOptions | None = None) -> list[str]:
        """
        Fetch up to 10 jokes in one call and return them formatted.

        Raises:
            AssertionError: If count is not positive.
            JokeFetchError: If the fetch failed.
        """
        assert count > 0, "count must be greater than 0."
        response = self.fetch(dataclasses.replace(options or FetchOptions(), amount=count))
        if response.failure is not None:
            raise JokeFetchError(response.failure)
        return response.format_all()

    @staticmethod
    def format_joke(joke: Joke) -> str:
        return format_joke(joke)

    @staticmethod
    def available_categories() -> list[JokeCategory]:
        """Returns every category JokeAPI accepts, including the ANY sentinel."""
        return list(JokeCategory)

    def rate_limit_status(self) -> dict[str, Any]:
        """Returns a snapshot of the admission controller (empty when disabled)."""
        if self.rate_limiter is None:
            return {}
        return self.rate_limiter.stats()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def stop(self) -> None:
        """
        Stop the admission controller. Idempotent.

        Queued calls are dropped and later fetches return a TransportFailure.
        """
        if self._stopped:
            return
        self._stopped = True
        if self.rate_limiter is not None:
            self.rate_limiter.stop()

    def close(self) -> None:
        """Stop the client and release the HTTP client it created."""
        self.stop()
        if self._owns_http_client:
            self.http_client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def create_joke_client(
    base_url: str | None = None,
    request_timeout: float | None = None,
    lang: str | None = None,
    rate_limiter: AdmissionController | None = None,
    http_client: HttpClient | None = None,
) -> JokeClient:
    """
    Build a JokeClient from keyword arguments; unset values come from JOKES.config.

    Example:
        >>> client = create_joke_client(request_timeout=2.0, lang="de")
    """
    return JokeClient(
        base_url=base_url,
        options=JokeClientOptions(request_timeout=request_timeout, lang=lang),
        http_client=http_client,
        rate_limiter=rate_limiter,
    )
