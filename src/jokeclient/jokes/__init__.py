"""
Jokes module for jokeclient.

This module provides the JokeAPI client, its request/response models and a
process-wide default client.

Example:
    >>> from jokeclient.jokes import JokeClient, FetchOptions, JokeCategory
    >>> client = JokeClient()
    >>> response = client.fetch(
    ...     FetchOptions(category=JokeCategory.PROGRAMMING, amount=3)
    ... )
    >>> if response.is_success():
    ...     for text in response.format_all():
    ...         print(text)

For a quick one-liner through the shared client:
    >>> from jokeclient.jokes import get_random_joke
    >>> print(get_random_joke())
"""

from jokeclient.jokes._client import (
    JokeClient,
    JokeClientOptions,
    create_joke_client,
)
from jokeclient.jokes._default import (
    close_default_client,
    get_default_client,
    get_random_joke,
)
from jokeclient.jokes._models import (
    SENSITIVE_FLAGS,
    AdmissionDenied,
    DomainFailure,
    FailureOutcome,
    FetchOptions,
    Joke,
    JokeApiError,
    JokeCategory,
    JokeFetchError,
    JokeFlag,
    JokeFlags,
    JokePayloadError,
    JokeResponse,
    JokeStatus,
    JokeType,
    SingleJoke,
    TimeoutFailure,
    TransportFailure,
    TwoPartJoke,
    failure_from_exception,
    format_joke,
    parse_joke,
)

__all__ = [
    # Main client
    "JokeClient",
    "create_joke_client",
    # Options
    "JokeClientOptions",
    "FetchOptions",
    # Default client
    "get_default_client",
    "get_random_joke",
    "close_default_client",
    # Data models
    "JokeCategory",
    "JokeType",
    "JokeFlag",
    "JokeFlags",
    "SENSITIVE_FLAGS",
    "Joke",
    "SingleJoke",
    "TwoPartJoke",
    "JokeResponse",
    "JokeStatus",
    "parse_joke",
    "format_joke",
    # Failures
    "FailureOutcome",
    "TransportFailure",
    "TimeoutFailure",
    "DomainFailure",
    "AdmissionDenied",
    "failure_from_exception",
    # Exceptions
    "JokeApiError",
    "JokeFetchError",
    "JokePayloadError",
]
