"""
Process-wide default JokeClient.

The default client is created on first use from JOKES.config and shared by
every caller in the process, so they also share one rate budget.

Example:
    >>> from jokeclient.jokes import get_random_joke
    >>> print(get_random_joke())
"""

import logging
import threading

from jokeclient.jokes._client import JokeClient
from jokeclient.jokes._models import FetchOptions, JokeFetchError

logger = logging.getLogger(__name__)

_default_client: JokeClient | None = None
_default_client_lock = threading.Lock()


def get_default_client() -> JokeClient:
    """
    Returns the shared JokeClient, creating it on first call.

    Thread-safe: concurrent first calls build exactly one client.
    """
    global _default_client
    if _default_client is None:
        with _default_client_lock:
            if _default_client is None:
                logger.debug("Creating default JokeClient.")
                _default_client = JokeClient()
    return _default_client


def get_random_joke(options: FetchOptions | None = None) -> str:
    """
    Fetch one joke with the default client and return it formatted.

    Raises:
        JokeFetchError: If the fetch failed; the failure is on `error.failure`.
    """
    response = get_default_client().get_random_joke(options)
    if response.failure is not None:
        raise JokeFetchError(response.failure)
    text = response.format()
    assert text is not None, "🌀 Sanity check | a successful response must carry a joke."
    return text


def close_default_client() -> None:
    """Close the shared client. The next call to get_default_client() builds a new one."""
    global _default_client
    with _default_client_lock:
        client, _default_client = _default_client, None
    if client is not None:
        client.close()
