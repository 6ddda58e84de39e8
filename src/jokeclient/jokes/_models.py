"""
Data models for the JokeAPI client.

This module contains the data classes used to represent requests and responses
when talking to JokeAPI:

- FetchOptions: what to ask for (frozen/immutable), and its query-string mapping
- SingleJoke / TwoPartJoke: the two joke shapes returned by the service
- TransportFailure / TimeoutFailure / DomainFailure / AdmissionDenied: the
  closed set of failure outcomes
- JokeResponse: the result of one fetch, either jokes or exactly one failure
"""

import enum
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import requests

MIN_AMOUNT = 1
MAX_AMOUNT = 10


class JokeCategory(enum.StrEnum):
    """Joke categories known to JokeAPI. ANY is the catch-all sentinel."""
    PROGRAMMING = "Programming"
    MISC = "Misc"
    DARK = "Dark"
    PUN = "Pun"
    SPOOKY = "Spooky"
    CHRISTMAS = "Christmas"
    ANY = "Any"


class JokeType(enum.StrEnum):
    """Delivery format of a joke."""
    SINGLE = "single"
    TWOPART = "twopart"


class JokeFlag(enum.StrEnum):
    """Content flags that can be blacklisted."""
    NSFW = "nsfw"
    RELIGIOUS = "religious"
    POLITICAL = "political"
    RACIST = "racist"
    SEXIST = "sexist"
    EXPLICIT = "explicit"


# Every sensitive flag, in the order the service documents them
SENSITIVE_FLAGS: tuple[JokeFlag, ...] = tuple(JokeFlag)


class JokeStatus(enum.StrEnum):
    """
    Outcome of a fetch.

    Attributes:
        SUCCESS: One or more jokes were decoded.
        TRANSPORT_ERROR: Network failure, non-2xx status or unreadable body.
        TIMEOUT: The call (or its wait for admission) exceeded its time budget.
        DOMAIN_ERROR: JokeAPI answered with its own error envelope (e.g. no match).
        ADMISSION_DENIED: The local rate budget is exhausted; nothing was sent.
    """
    SUCCESS = "SUCCESS"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    TIMEOUT = "TIMEOUT"
    DOMAIN_ERROR = "DOMAIN_ERROR"
    ADMISSION_DENIED = "ADMISSION_DENIED"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Request
# =============================================================================


@dataclass(frozen=True)
class FetchOptions:
    """
    Options for a single fetch. Every field is optional.

    Attributes:
        category: One category or a non-empty ordered sequence of categories.
            Defaults to JokeCategory.ANY.
        lang: Language tag (e.g. "de"). None uses the configured default.
        blacklist_flags: Content flags to exclude, sent in the given order.
        joke_type: Restrict to JokeType.SINGLE or JokeType.TWOPART.
        contains: Free-text search term.
        amount: Number of jokes, clamped to [1, 10].
        safe_mode: Ask the service for its curated "safe" jokes only.
        timeout: Per-call time budget in seconds, overriding the client default.
        id: Identifier used to correlate log lines. Auto-generated.

    Example:
        >>> options = FetchOptions(
        ...     category=[JokeCategory.PROGRAMMING, JokeCategory.PUN],
        ...     blacklist_flags=[JokeFlag.NSFW],
        ...     amount=3,
        ... )
    """
    category: str | Sequence[str] | None = None
    lang: str | None = None
    blacklist_flags: Sequence[str] = ()
    joke_type: str | None = None
    contains: str | None = None
    amount: int | None = None
    safe_mode: bool = False
    timeout: float | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        assert self.id, "Request ID cannot be empty."

        category = self.category
        if isinstance(category, str):
            assert category, "Category cannot be empty."
        elif category is not None:
            category = tuple(category)
            assert category, "Category sequence cannot be empty."
            assert all(category), "Category values cannot be empty."
        object.__setattr__(self, "category", category)

        flags = self.blacklist_flags
        object.__setattr__(self, "blacklist_flags", (flags,) if isinstance(flags, str) else tuple(flags or ()))

        if self.amount is not None:
            assert isinstance(self.amount, int), "amount must be an integer."
        if self.timeout is not None:
            assert self.timeout > 0, "timeout must be greater than 0."

    @classmethod
    def safe(cls, **kwargs: Any) -> "FetchOptions":
        """Options that blacklist every sensitive content flag."""
        assert "blacklist_flags" not in kwargs, "safe() sets blacklist_flags itself."
        return cls(blacklist_flags=SENSITIVE_FLAGS, **kwargs)

    @property
    def categories(self) -> tuple[str, ...]:
        """Returns the categories to request, defaulting to ANY."""
        if self.category is None:
            return (str(JokeCategory.ANY),)
        if isinstance(self.category, str):
            return (str(self.category),)
        return tuple(str(c) for c in self.category)

    @property
    def resolved_amount(self) -> int:
        """Returns the amount clamped to [1, 10]; 1 when unset."""
        if self.amount is None:
            return MIN_AMOUNT
        return max(MIN_AMOUNT, min(MAX_AMOUNT, self.amount))

    def to_path_segment(self) -> str:
        """Returns the category path segment, e.g. "Programming,Pun"."""
        return ",".join(self.categories)

    def to_query_params(self) -> dict[str, str]:
        """
        Converts the options to JokeAPI query parameters.

        Parameters are only present when their option is set; an empty value is
        never emitted. `amount` is only sent when it asks for more than one joke.
        `safe-mode` is a valueless flag, represented here by an empty string.
        """
        params: dict[str, str] = {}
        if self.lang:
            params["lang"] = self.lang
        if self.blacklist_flags:
            params["blacklistFlags"] = ",".join(str(f) for f in self.blacklist_flags)
        if self.joke_type:
            params["type"] = str(self.joke_type)
        if self.contains:
            params["contains"] = self.contains
        if self.resolved_amount > MIN_AMOUNT:
            params["amount"] = str(self.resolved_amount)
        if self.safe_mode:
            params["safe-mode"] = ""
        return params


# =============================================================================
# Jokes
# =============================================================================


class JokePayloadError(ValueError):
    """Raised when a JokeAPI payload cannot be decoded into a joke."""
    pass


@dataclass(frozen=True)
class JokeFlags:
    """Content flags attached to a joke by the service."""
    nsfw: bool = False
    religious: bool = False
    political: bool = False
    racist: bool = False
    sexist: bool = False
    explicit: bool = False

    @classmethod
    def from_api(cls, data: Mapping[str, Any] | None) -> "JokeFlags":
        data = data or {}
        return cls(**{str(flag): bool(data.get(str(flag), False)) for flag in JokeFlag})

    @property
    def active(self) -> tuple[JokeFlag, ...]:
        """Returns the flags set to True."""
        return tuple(flag for flag in JokeFlag if getattr(self, str(flag)))


@dataclass(frozen=True)
class SingleJoke:
    """
    A one-liner joke.

    Attributes:
        text: The joke.
        category: Category the service filed it under.
        flags: Content flags.
        id: Numeric identifier on the service.
        safe: Whether the service considers it safe.
        lang: Language tag.
    """
    text: str
    category: str
    flags: JokeFlags = field(default_factory=JokeFlags)
    id: int = 0
    safe: bool = True
    lang: str = "en"

    @property
    def type(self) -> JokeType:
        return JokeType.SINGLE

    def format(self) -> str:
        """Returns the text verbatim."""
        return self.text


@dataclass(frozen=True)
class TwoPartJoke:
    """
    A joke split into a setup and a delivery.

    Attributes are the same as SingleJoke, with `setup`/`delivery` instead of `text`.
    """
    setup: str
    delivery: str
    category: str
    flags: JokeFlags = field(default_factory=JokeFlags)
    id: int = 0
    safe: bool = True
    lang: str = "en"

    @property
    def type(self) -> JokeType:
        return JokeType.TWOPART

    def format(self) -> str:
        """Returns setup and delivery separated by one line break."""
        return f"{self.setup}\n{self.delivery}"


Joke = SingleJoke | TwoPartJoke


def format_joke(joke: Joke) -> str:
    """
    Returns a display string for `joke`.

    Example:
        >>> format_joke(TwoPartJoke(setup="A", delivery="B", category="Pun"))
        'A\\nB'
    """
    assert joke is not None, "Joke cannot be None."
    return joke.format()


def _required_text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise JokePayloadError(f"Joke payload has no usable '{key}' field.")
    return value


def parse_joke(data: Mapping[str, Any]) -> Joke:
    """
    Decodes one JokeAPI joke object.

    Raises:
        JokePayloadError: If the type is unknown or a text field is missing/empty.
    """
    if not isinstance(data, Mapping):
        raise JokePayloadError(f"Joke payload must be an object, got {type(data).__name__}.")

    common: dict[str, Any] = {
        "category": str(data.get("category") or JokeCategory.ANY),
        "flags": JokeFlags.from_api(data.get("flags")),
        "id": int(data.get("id") or 0),
        "safe": bool(data.get("safe", True)),
        "lang": str(data.get("lang") or "en"),
    }

    joke_type = data.get("type")
    if joke_type == JokeType.SINGLE:
        return SingleJoke(text=_required_text(data, "joke"), **common)
    if joke_type == JokeType.TWOPART:
        return TwoPartJoke(
            setup=_required_text(data, "setup"),
            delivery=_required_text(data, "delivery"),
            **common,
        )
    raise JokePayloadError(f"Unknown joke type: {joke_type!r}")


def parse_jokes(data: Mapping[str, Any]) -> tuple[tuple[Joke, ...], bool]:
    """
    Decodes a successful JokeAPI payload.

    Returns:
        The decoded jokes and whether the payload was a batch (`jokes` array).

    Raises:
        JokePayloadError: If the payload is malformed or holds no jokes.
    """
    if "jokes" in data:
        items = data["jokes"]
        if not isinstance(items, list) or not items:
            raise JokePayloadError("Batch payload has no jokes.")
        return tuple(parse_joke(item) for item in items), True
    return (parse_joke(data),), False


# =============================================================================
# Failures
# =============================================================================


@dataclass(frozen=True)
class TransportFailure:
    """Network-level failure, non-2xx status or unreadable body."""
    message: str
    status_code: int | None = None
    kind: JokeStatus = field(default=JokeStatus.TRANSPORT_ERROR, init=False)


@dataclass(frozen=True)
class TimeoutFailure:
    """The call exceeded its time budget (seconds)."""
    message: str
    budget: float
    kind: JokeStatus = field(default=JokeStatus.TIMEOUT, init=False)


@dataclass(frozen=True)
class DomainFailure:
    """JokeAPI rejected the request through its own error envelope."""
    code: int
    message: str
    caused_by: tuple[str, ...] = ()
    additional_info: str | None = None
    kind: JokeStatus = field(default=JokeStatus.DOMAIN_ERROR, init=False)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "DomainFailure":
        caused_by = data.get("causedBy") or ()
        if isinstance(caused_by, str):
            caused_by = (caused_by,)
        return cls(
            code=int(data.get("code") or 0),
            message=str(data.get("message") or "Unknown API error"),
            caused_by=tuple(str(c) for c in caused_by),
            additional_info=data.get("additionalInfo"),
        )


@dataclass(frozen=True)
class AdmissionDenied:
    """The local rate budget is exhausted; `retry_after` seconds until it refills."""
    retry_after: float
    kind: JokeStatus = field(default=JokeStatus.ADMISSION_DENIED, init=False)

    @property
    def message(self) -> str:
        return f"Rate limit exceeded. Please try again in {self.retry_after:.2f}s."


FailureOutcome = TransportFailure | TimeoutFailure | DomainFailure | AdmissionDenied


class JokeApiError(Exception):
    """Raised when JokeAPI answers with `"error": true`."""

    def __init__(self, failure: DomainFailure):
        self.failure = failure
        super().__init__(f"JokeAPI error {failure.code}: {failure.message}")


class JokeFetchError(Exception):
    """Raised by helpers that return a plain string when the fetch failed."""

    def __init__(self, failure: FailureOutcome):
        self.failure = failure
        super().__init__(f"{failure.kind}: {failure.message}")


def failure_from_exception(exc: BaseException, budget: float) -> FailureOutcome:
    """
    Maps an exception raised while fetching to exactly one failure outcome.

    Args:
        exc: The exception caught at the client boundary.
        budget: The time budget (seconds) the call was running under.
    """
    from jokeclient._rate_limit import (
        AdmissionDeniedError,
        LimiterStoppedError,
        TokenAcquisitionTimeoutError,
    )

    if isinstance(exc, AdmissionDeniedError):
        return AdmissionDenied(retry_after=exc.retry_after)
    if isinstance(exc, TokenAcquisitionTimeoutError):
        return TimeoutFailure(message=str(exc), budget=exc.max_wait_time)
    if isinstance(exc, LimiterStoppedError):
        return TransportFailure(message=str(exc))
    if isinstance(exc, JokeApiError):
        return exc.failure
    if isinstance(exc, requests.Timeout):
        return TimeoutFailure(message=f"Request timed out after {budget:.2f}s: {exc}", budget=budget)
    if isinstance(exc, requests.HTTPError):
        status_code = exc.response.status_code if exc.response is not None else None
        return TransportFailure(message=str(exc), status_code=status_code)
    if isinstance(exc, requests.RequestException):
        return TransportFailure(message=f"Request failed: {exc}")
    if isinstance(exc, ValueError):
        # Body was not JSON, or JSON that does not decode into jokes
        return TransportFailure(message=f"Invalid response body: {exc}")
    return TransportFailure(message=f"Unexpected error: {type(exc).__name__}: {exc}")


# =============================================================================
# Response
# =============================================================================


@dataclass(frozen=True)
class JokeResponse:
    """
    Represents the outcome of one fetch.

    Exactly one of `jokes` (non-empty) or `failure` is set.

    Attributes:
        options: The options that produced this response.
        status: SUCCESS or the failure kind.
        jokes: Decoded jokes (one unless the payload was a batch).
        failure: The failure outcome for non-SUCCESS responses.
        is_batch: Whether the payload carried a `jokes` array.
        raw_response: The decoded JSON body, when one was received.

    Example:
        >>> response = client.fetch(FetchOptions(category="Pun"))
        >>> if response.is_success():
        ...     print(response.format())
        ... else:
        ...     print(f"{response.status}: {response.error}")
    """
    options: FetchOptions
    status: JokeStatus
    jokes: tuple[Joke, ...] = ()
    failure: FailureOutcome | None = None
    is_batch: bool = False
    raw_response: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        assert self.options, "Options cannot be empty."
        assert self.status, "Status cannot be empty."
        if self.status == JokeStatus.SUCCESS:
            assert self.jokes, "A successful response must carry at least one joke."
            assert self.failure is None, "A successful response cannot carry a failure."
        else:
            assert self.failure is not None, "A failed response must carry its failure."
            assert self.failure.kind == self.status, "Failure kind must match the response status."
            assert not self.jokes, "A failed response cannot carry jokes."

    @classmethod
    def failed(cls, options: FetchOptions, failure: FailureOutcome, raw_response: dict[str, Any] | None = None) -> "JokeResponse":
        return cls(options=options, status=failure.kind, failure=failure, raw_response=raw_response)

    @property
    def joke(self) -> Joke | None:
        """Returns the first joke, or None on failure."""
        return self.jokes[0] if self.jokes else None

    @property
    def error(self) -> str | None:
        """Returns the failure message, or None on success."""
        return self.failure.message if self.failure else None

    def is_success(self) -> bool:
        return self.status == JokeStatus.SUCCESS

    def is_timeout(self) -> bool:
        return self.status == JokeStatus.TIMEOUT

    def is_denied(self) -> bool:
        return self.status == JokeStatus.ADMISSION_DENIED

    def format(self) -> str | None:
        """Returns the first joke formatted for display, or None on failure."""
        return format_joke(self.jokes[0]) if self.jokes else None

    def format_all(self) -> list[str]:
        """Returns every joke formatted for display."""
        return [format_joke(joke) for joke in self.jokes]
