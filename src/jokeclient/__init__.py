"""
JokeAPI client for Python.

A small, synchronous client for the public JokeAPI (https://v2.jokeapi.dev),
with client-side rate limiting and a closed set of outcomes per request.

Quick Start:
    >>> from jokeclient import JokeClient, FetchOptions, JokeCategory
    >>> client = JokeClient()
    >>> response = client.fetch(FetchOptions(category=JokeCategory.PUN))
    >>> print(response.format() if response.is_success() else response.error)

Global Configuration:
    >>> from jokeclient import JOKES
    >>>
    >>> # Pre-loaded with defaults + env vars
    >>> timeout = JOKES.config.client.request_timeout
    >>>
    >>> # Custom configuration
    >>> JOKES.configure(
    ...     client={"request_timeout": 3.0, "lang": "de"},
    ...     rate_limit={"strategy": "scheduler", "max_requests": 5, "time_window": 10.0},
    ... )

Main Classes:
    - JokeClient: Client for fetching jokes.
    - FetchOptions: What to fetch (categories, flags, type, amount, ...).
    - JokeResponse: Outcome of one fetch (jokes or exactly one failure).
    - JokeStatus: Enum with the possible outcomes.

Configuration:
    - JOKES: Global singleton for configuration.
    - JokesConfig: Root configuration dataclass.
    - ClientConfig: JokeClient configuration.
    - RateLimitConfig: Rate limiting configuration.
    - ConfigEnvVarError / ConfigValidationError: Configuration errors.

HTTP Client:
    - HttpClient: Abstract base class for HTTP clients.
    - RequestsHttpClient: requests-based client with a total time budget. Default.

Rate Limiting:
    - FixedWindowRateLimiter: Fail-fast fixed-window budget. Default.
    - SchedulingRateLimiter: FIFO queue with a reservoir and minimum spacing.
    - ClientSideRateLimitError and its subclasses.
"""

from importlib.metadata import version as _get_version

__version__ = _get_version("jokeclient")

from jokeclient._config import (
    JOKES,
    ClientConfig,
    ConfigEntry,
    ConfigEnvVarError,
    ConfigValidationError,
    JokesConfig,
    RateLimitConfig,
    RateLimitStrategy,
)
from jokeclient._http import (
    HttpClient,
    RequestsHttpClient,
)
from jokeclient._rate_limit import (
    AdmissionController,
    AdmissionDeniedError,
    ClientSideRateLimitError,
    FixedWindowRateLimiter,
    LimiterStoppedError,
    SchedulingRateLimiter,
    TokenAcquisitionTimeoutError,
    create_admission_controller,
)
from jokeclient.jokes import (
    FetchOptions,
    JokeCategory,
    JokeClient,
    JokeClientOptions,
    JokeFetchError,
    JokeFlag,
    JokeResponse,
    JokeStatus,
    JokeType,
    create_joke_client,
    format_joke,
    get_random_joke,
)

__all__ = [
    "__version__",
    # Configuration
    "JOKES",
    "JokesConfig",
    "ClientConfig",
    "RateLimitConfig",
    "RateLimitStrategy",
    "ConfigEntry",
    "ConfigEnvVarError",
    "ConfigValidationError",
    # HTTP Client
    "HttpClient",
    "RequestsHttpClient",
    # Rate Limiting
    "AdmissionController",
    "FixedWindowRateLimiter",
    "SchedulingRateLimiter",
    "create_admission_controller",
    "ClientSideRateLimitError",
    "AdmissionDeniedError",
    "TokenAcquisitionTimeoutError",
    "LimiterStoppedError",
    # Jokes
    "JokeClient",
    "JokeClientOptions",
    "create_joke_client",
    "FetchOptions",
    "JokeResponse",
    "JokeStatus",
    "JokeCategory",
    "JokeType",
    "JokeFlag",
    "JokeFetchError",
    "format_joke",
    "get_random_joke",
]
