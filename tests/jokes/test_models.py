"""Tests for JokeAPI data models."""

import dataclasses
import unittest
from unittest.mock import MagicMock

import pytest
import requests

from jokeclient._rate_limit import (
    AdmissionDeniedError,
    LimiterStoppedError,
    TokenAcquisitionTimeoutError,
)
from jokeclient.jokes import (
    SENSITIVE_FLAGS,
    AdmissionDenied,
    DomainFailure,
    FetchOptions,
    JokeApiError,
    JokeCategory,
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
from jokeclient.jokes._models import parse_jokes

SINGLE_PAYLOAD = {
    "error": False,
    "category": "Programming",
    "type": "single",
    "joke": "There are only 10 kinds of people in this world.",
    "flags": {"nsfw": False, "religious": False, "political": False,
              "racist": False, "sexist": False, "explicit": False},
    "id": 25,
    "safe": True,
    "lang": "en",
}

TWOPART_PAYLOAD = {
    "error": False,
    "category": "Pun",
    "type": "twopart",
    "setup": "Why did the developer go broke?",
    "delivery": "Because he used up all his cache.",
    "flags": {"nsfw": False, "religious": False, "political": True,
              "racist": False, "sexist": False, "explicit": True},
    "id": 7,
    "safe": False,
    "lang": "en",
}


# =============================================================================
# FetchOptions Tests
# =============================================================================


class TestFetchOptions:
    """Tests for FetchOptions construction and query mapping."""

    def test_defaults_request_any_category_without_params(self):
        options = FetchOptions()

        assert options.categories == ("Any",)
        assert options.to_path_segment() == "Any"
        assert options.to_query_params() == {}
        assert options.resolved_amount == 1

    def test_auto_generates_unique_id(self):
        assert FetchOptions().id != FetchOptions().id

    def test_is_immutable(self):
        options = FetchOptions()

        with pytest.raises(dataclasses.FrozenInstanceError):
            options.amount = 3  # type: ignore[misc]

    def test_single_category(self):
        options = FetchOptions(category=JokeCategory.PROGRAMMING)

        assert options.categories == ("Programming",)

    def test_multiple_categories_keep_caller_order(self):
        options = FetchOptions(category=[JokeCategory.PUN, JokeCategory.PROGRAMMING, "Misc"])

        assert options.category == ("Pun", "Programming", "Misc")
        assert options.to_path_segment() == "Pun,Programming,Misc"

    def test_empty_category_sequence_is_rejected(self):
        with pytest.raises(AssertionError, match="Category sequence cannot be empty"):
            FetchOptions(category=[])

    def test_empty_category_string_is_rejected(self):
        with pytest.raises(AssertionError, match="Category cannot be empty"):
            FetchOptions(category="")

    def test_single_blacklist_flag_string_is_kept_whole(self):
        options = FetchOptions(blacklist_flags="nsfw")

        assert options.blacklist_flags == ("nsfw",)
        assert options.to_query_params()["blacklistFlags"] == "nsfw"

    def test_all_params_in_order(self):
        options = FetchOptions(
            lang="de",
            blacklist_flags=[JokeFlag.NSFW, JokeFlag.EXPLICIT],
            joke_type=JokeType.TWOPART,
            contains="debug",
            amount=4,
            safe_mode=True,
        )

        assert list(options.to_query_params().items()) == [
            ("lang", "de"),
            ("blacklistFlags", "nsfw,explicit"),
            ("type", "twopart"),
            ("contains", "debug"),
            ("amount", "4"),
            ("safe-mode", ""),
        ]

    def test_blacklist_flags_keep_caller_order(self):
        options = FetchOptions(blacklist_flags=["sexist", "nsfw", "racist"])

        assert options.to_query_params()["blacklistFlags"] == "sexist,nsfw,racist"

    @pytest.mark.parametrize(
        "amount, expected",
        [(None, 1), (-5, 1), (0, 1), (1, 1), (7, 7), (10, 10), (11, 10), (500, 10)],
    )
    def test_amount_is_clamped(self, amount, expected):
        assert FetchOptions(amount=amount).resolved_amount == expected

    @pytest.mark.parametrize("amount", [None, 0, 1])
    def test_amount_only_sent_when_greater_than_one(self, amount):
        assert "amount" not in FetchOptions(amount=amount).to_query_params()

    def test_empty_values_are_never_emitted(self):
        options = FetchOptions(lang="", contains="", blacklist_flags=[], joke_type=None)

        assert options.to_query_params() == {}

    def test_safe_builds_options_with_every_sensitive_flag(self):
        options = FetchOptions.safe(category=JokeCategory.PROGRAMMING)

        assert options.blacklist_flags == SENSITIVE_FLAGS
        assert options.to_query_params()["blacklistFlags"] == "nsfw,religious,political,racist,sexist,explicit"

    def test_timeout_must_be_positive(self):
        with pytest.raises(AssertionError, match="timeout must be greater than 0"):
            FetchOptions(timeout=0)


# =============================================================================
# Joke Parsing & Formatting Tests
# =============================================================================


class TestParseJoke:
    """Tests for parse_joke() and parse_jokes()."""

    def test_parses_single_joke(self):
        joke = parse_joke(SINGLE_PAYLOAD)

        assert isinstance(joke, SingleJoke)
        assert joke.text == "There are only 10 kinds of people in this world."
        assert joke.category == "Programming"
        assert joke.id == 25
        assert joke.type == JokeType.SINGLE
        assert joke.flags == JokeFlags()

    def test_parses_twopart_joke(self):
        joke = parse_joke(TWOPART_PAYLOAD)

        assert isinstance(joke, TwoPartJoke)
        assert joke.setup == "Why did the developer go broke?"
        assert joke.delivery == "Because he used up all his cache."
        assert joke.safe is False
        assert joke.flags.active == (JokeFlag.POLITICAL, JokeFlag.EXPLICIT)

    def test_unknown_type_raises(self):
        with pytest.raises(JokePayloadError, match="Unknown joke type"):
            parse_joke({**SINGLE_PAYLOAD, "type": "haiku"})

    def test_missing_text_raises(self):
        payload = {k: v for k, v in TWOPART_PAYLOAD.items() if k != "delivery"}

        with pytest.raises(JokePayloadError, match="delivery"):
            parse_joke(payload)

    def test_empty_text_raises(self):
        with pytest.raises(JokePayloadError, match="joke"):
            parse_joke({**SINGLE_PAYLOAD, "joke": ""})

    def test_non_object_raises(self):
        with pytest.raises(JokePayloadError, match="must be an object"):
            parse_joke(["not", "a", "joke"])  # type: ignore[arg-type]

    def test_parse_jokes_single(self):
        jokes, is_batch = parse_jokes(SINGLE_PAYLOAD)

        assert len(jokes) == 1
        assert is_batch is False

    def test_parse_jokes_batch(self):
        payload = {"error": False, "amount": 2, "jokes": [SINGLE_PAYLOAD, TWOPART_PAYLOAD]}

        jokes, is_batch = parse_jokes(payload)

        assert [type(j) for j in jokes] == [SingleJoke, TwoPartJoke]
        assert is_batch is True

    def test_parse_jokes_empty_batch_raises(self):
        with pytest.raises(JokePayloadError, match="no jokes"):
            parse_jokes({"error": False, "amount": 0, "jokes": []})


class TestFormatJoke:
    """Tests for format_joke()."""

    def test_single_joke_is_returned_verbatim(self):
        joke = SingleJoke(text="  Spaces kept  ", category="Misc")

        assert format_joke(joke) == "  Spaces kept  "

    def test_twopart_joke_joins_with_one_line_break(self):
        joke = TwoPartJoke(setup="Knock knock.", delivery="Who's there?", category="Pun")

        assert format_joke(joke) == "Knock knock.\nWho's there?"


# =============================================================================
# Failure Tests
# =============================================================================


class TestFailureFromException:
    """Tests for failure_from_exception()."""

    def test_admission_denied(self):
        failure = failure_from_exception(AdmissionDeniedError(retry_after=12.0), budget=5.0)

        assert failure == AdmissionDenied(retry_after=12.0)
        assert failure.kind == JokeStatus.ADMISSION_DENIED
        assert "12.00s" in failure.message

    def test_token_acquisition_timeout(self):
        failure = failure_from_exception(TokenAcquisitionTimeoutError(waited=2.1, max_wait_time=2.0), budget=2.0)

        assert isinstance(failure, TimeoutFailure)
        assert failure.budget == 2.0

    def test_requests_timeout(self):
        failure = failure_from_exception(requests.Timeout("read timed out"), budget=5.0)

        assert isinstance(failure, TimeoutFailure)
        assert failure.budget == 5.0
        assert "5.00s" in failure.message

    def test_http_error_carries_status_code(self):
        response = MagicMock(spec=requests.Response)
        response.status_code = 503
        error = requests.HTTPError("503 Server Error", response=response)

        failure = failure_from_exception(error, budget=5.0)

        assert failure == TransportFailure(message="503 Server Error", status_code=503)

    def test_connection_error(self):
        failure = failure_from_exception(requests.ConnectionError("refused"), budget=5.0)

        assert isinstance(failure, TransportFailure)
        assert failure.status_code is None

    def test_invalid_body(self):
        failure = failure_from_exception(ValueError("Expecting value"), budget=5.0)

        assert isinstance(failure, TransportFailure)
        assert "Invalid response body" in failure.message

    def test_domain_error(self):
        domain = DomainFailure(code=106, message="No matching joke found")

        assert failure_from_exception(JokeApiError(domain), budget=5.0) is domain

    def test_stopped_limiter(self):
        failure = failure_from_exception(LimiterStoppedError(), budget=5.0)

        assert isinstance(failure, TransportFailure)

    def test_unexpected_error(self):
        failure = failure_from_exception(RuntimeError("boom"), budget=5.0)

        assert isinstance(failure, TransportFailure)
        assert "RuntimeError" in failure.message


class TestDomainFailure:
    """Tests for DomainFailure.from_api()."""

    def test_from_api_error_envelope(self):
        failure = DomainFailure.from_api({
            "error": True,
            "internalError": False,
            "code": 106,
            "message": "No matching joke found",
            "causedBy": ["No jokes were found that match your provided filter(s)."],
            "additionalInfo": "The specified ID range is invalid.",
        })

        assert failure.code == 106
        assert failure.message == "No matching joke found"
        assert failure.caused_by == ("No jokes were found that match your provided filter(s).",)
        assert failure.additional_info == "The specified ID range is invalid."
        assert failure.kind == JokeStatus.DOMAIN_ERROR

    def test_from_api_with_missing_fields(self):
        failure = DomainFailure.from_api({"error": True})

        assert failure.code == 0
        assert failure.message == "Unknown API error"
        assert failure.caused_by == ()


# =============================================================================
# JokeResponse Tests
# =============================================================================


class TestJokeResponse(unittest.TestCase):
    """Tests for JokeResponse invariants and helpers."""

    def setUp(self):
        self.options = FetchOptions()
        self.joke = SingleJoke(text="Hello", category="Misc")

    def test_success_response(self):
        response = JokeResponse(options=self.options, status=JokeStatus.SUCCESS, jokes=(self.joke,))

        self.assertTrue(response.is_success())
        self.assertIs(response.joke, self.joke)
        self.assertEqual(response.format(), "Hello")
        self.assertIsNone(response.failure)
        self.assertIsNone(response.error)

    def test_failed_response(self):
        failure = TimeoutFailure(message="too slow", budget=1.0)

        response = JokeResponse.failed(options=self.options, failure=failure)

        self.assertFalse(response.is_success())
        self.assertTrue(response.is_timeout())
        self.assertEqual(response.status, JokeStatus.TIMEOUT)
        self.assertIsNone(response.joke)
        self.assertIsNone(response.format())
        self.assertEqual(response.error, "too slow")

    def test_denied_response(self):
        response = JokeResponse.failed(options=self.options, failure=AdmissionDenied(retry_after=3.0))

        self.assertTrue(response.is_denied())

    def test_success_without_jokes_is_rejected(self):
        with self.assertRaises(AssertionError):
            JokeResponse(options=self.options, status=JokeStatus.SUCCESS)

    def test_failure_without_outcome_is_rejected(self):
        with self.assertRaises(AssertionError):
            JokeResponse(options=self.options, status=JokeStatus.TRANSPORT_ERROR)

    def test_status_must_match_failure_kind(self):
        with self.assertRaises(AssertionError):
            JokeResponse(
                options=self.options,
                status=JokeStatus.TIMEOUT,
                failure=TransportFailure(message="boom"),
            )

    def test_format_all(self):
        other = TwoPartJoke(setup="A", delivery="B", category="Pun")
        response = JokeResponse(
            options=self.options, status=JokeStatus.SUCCESS, jokes=(self.joke, other), is_batch=True,
        )

        self.assertEqual(response.format_all(), ["Hello", "A\nB"])
