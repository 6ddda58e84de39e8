"""Tests for HTTP client implementations."""

import io
import itertools
from unittest.mock import MagicMock, patch

import pytest
import requests

from jokeclient import HttpClient, RequestsHttpClient, __version__


def make_response(body: bytes, status_code: int = 200) -> requests.Response:
    """Build a real, unread requests.Response backed by an in-memory stream."""
    response = requests.Response()
    response.status_code = status_code
    response.url = "https://v2.jokeapi.dev/joke/Any"
    response.raw = io.BytesIO(body)
    response.headers["Content-Type"] = "application/json; charset=utf-8"
    response.encoding = "utf-8"
    return response


# =============================================================================
# HttpClient Tests
# =============================================================================


class TestHttpClient:
    """Tests for the HttpClient abstract base class."""

    def test_cannot_instantiate_abstract_class(self):
        with pytest.raises(TypeError):
            HttpClient()  # type: ignore[abstract]

    def test_close_is_noop_by_default(self):
        class MinimalHttpClient(HttpClient):
            def get(self, url, headers=None, timeout=5.0):
                return MagicMock(spec=requests.Response)

        MinimalHttpClient().close()


# =============================================================================
# RequestsHttpClient Tests
# =============================================================================


class TestRequestsHttpClientInit:
    """Tests for RequestsHttpClient initialization."""

    def test_sets_default_headers(self):
        client = RequestsHttpClient()

        assert client._session.headers["Accept"] == "application/json"
        assert client._session.headers["User-Agent"] == f"jokeclient/{__version__}"

    def test_custom_user_agent(self):
        client = RequestsHttpClient(user_agent="my-app/2.0")

        assert client.user_agent == "my-app/2.0"
        assert client._session.headers["User-Agent"] == "my-app/2.0"

    def test_uses_given_session(self):
        session = requests.Session()

        client = RequestsHttpClient(session=session)

        assert client._session is session
        assert session.headers["Accept"] == "application/json"

    def test_init_fails_with_invalid_chunk_size(self):
        with pytest.raises(AssertionError, match="chunk_size must be greater than 0"):
            RequestsHttpClient(chunk_size=0)


class TestRequestsHttpClientGet:
    """Tests for RequestsHttpClient.get()."""

    def test_get_reads_body(self):
        client = RequestsHttpClient(chunk_size=4)
        response = make_response(b'{"error": false, "joke": "hi"}')

        with patch.object(client._session, "get", return_value=response) as mock_get:
            result = client.get("https://v2.jokeapi.dev/joke/Any", timeout=3.0)

        mock_get.assert_called_once()
        assert mock_get.call_args.args == ("https://v2.jokeapi.dev/joke/Any",)
        assert mock_get.call_args.kwargs["headers"] is None
        assert mock_get.call_args.kwargs["stream"] is True
        assert mock_get.call_args.kwargs["timeout"].total == 3.0
        assert result is response
        assert result.json() == {"error": False, "joke": "hi"}

    def test_get_passes_extra_headers(self):
        client = RequestsHttpClient()
        response = make_response(b"{}")

        with patch.object(client._session, "get", return_value=response) as mock_get:
            client.get("https://v2.jokeapi.dev/joke/Any", headers={"X-Trace": "1"})

        assert mock_get.call_args.kwargs["headers"] == {"X-Trace": "1"}
        assert mock_get.call_args.kwargs["timeout"].total == 5.0

    def test_get_raises_timeout_when_budget_exceeded_while_reading(self):
        client = RequestsHttpClient(chunk_size=2)
        response = make_response(b'{"slow": "body"}')
        # Start at 0s, first check in time, then jump past the 1s budget
        clock = itertools.chain([0.0, 0.0], itertools.repeat(10.0))

        with patch.object(client._session, "get", return_value=response), \
                patch("jokeclient._http.time.monotonic", side_effect=lambda: next(clock)):
            with pytest.raises(requests.Timeout, match="time budget of 1.00s"):
                client.get("https://v2.jokeapi.dev/joke/Any", timeout=1.0)

        assert response.raw.closed

    def test_get_shrinks_socket_read_timeout_as_deadline_approaches(self):
        client = RequestsHttpClient(chunk_size=2)
        response = make_response(b'{"a":1}')
        sock = MagicMock()
        response.raw.connection = MagicMock(sock=sock)
        # Deadline taken at 0s, then one check before the first read and one after each chunk
        clock = iter([0.0, 0.1, 0.4, 0.7, 0.8, 0.9])

        with patch.object(client._session, "get", return_value=response), \
                patch("jokeclient._http.time.monotonic", side_effect=lambda: next(clock)):
            result = client.get("https://v2.jokeapi.dev/joke/Any", timeout=1.0)

        assert result.json() == {"a": 1}
        timeouts = [c.args[0] for c in sock.settimeout.call_args_list]
        assert timeouts == pytest.approx([0.9, 0.6, 0.3, 0.2, 0.1])

    def test_get_propagates_connection_errors(self):
        client = RequestsHttpClient()

        with patch.object(client._session, "get", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(requests.ConnectionError, match="refused"):
                client.get("https://v2.jokeapi.dev/joke/Any")

    def test_get_fails_with_empty_url(self):
        client = RequestsHttpClient()

        with pytest.raises(AssertionError, match="URL cannot be empty"):
            client.get("")

    def test_get_fails_with_non_positive_timeout(self):
        client = RequestsHttpClient()

        with pytest.raises(AssertionError, match="Timeout must be greater than 0"):
            client.get("https://v2.jokeapi.dev/joke/Any", timeout=0)


class TestRequestsHttpClientClose:
    """Tests for RequestsHttpClient.close()."""

    def test_close_closes_owned_session(self):
        client = RequestsHttpClient()

        with patch.object(client._session, "close") as mock_close:
            client.close()

        mock_close.assert_called_once()

    def test_close_leaves_given_session_open(self):
        session = MagicMock(spec=requests.Session)
        session.headers = {}
        client = RequestsHttpClient(session=session)

        client.close()

        session.close.assert_not_called()
