"""Tests for the retrying HTTP helper."""

from unittest.mock import patch, MagicMock

import pytest
import requests

from common.errors import FetchError
from common.http_client import robust_get
from constants import Constants


def _response(status, text="", content=b"", headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    resp.content = content
    resp.headers = headers or {}
    return resp


@patch('common.http_client.time.sleep')
class TestRobustGet:
    """Retry and error behaviour of robust_get."""

    @patch('common.http_client.requests.get')
    def test_returns_text_body(self, mock_get, _sleep):
        """A 200 returns status, headers and text."""
        mock_get.return_value = _response(200, text="v1.0.0\n", headers={"X": "1"})

        status, headers, body = robust_get("https://proxy.example/m/@v/list")

        assert (status, headers, body) == (200, {"X": "1"}, "v1.0.0\n")
        assert mock_get.call_args.kwargs["timeout"] == Constants.REQUEST_TIMEOUT

    @patch('common.http_client.requests.get')
    def test_returns_binary_body(self, mock_get, _sleep):
        """binary=True returns the raw content."""
        mock_get.return_value = _response(200, content=b"PK")

        assert robust_get("https://proxy.example/m.zip", binary=True)[2] == b"PK"

    @patch('common.http_client.requests.get')
    def test_client_errors_are_not_retried(self, mock_get, _sleep):
        """4xx responses come back to the caller untouched."""
        mock_get.return_value = _response(404)

        assert robust_get("https://proxy.example/missing")[0] == 404
        assert mock_get.call_count == 1

    @patch('common.http_client.requests.get')
    def test_server_error_then_success(self, mock_get, mock_sleep):
        """A 5xx is retried after a backoff sleep."""
        mock_get.side_effect = [_response(503), _response(200, text="ok")]

        assert robust_get("https://proxy.example/flaky")[2] == "ok"
        assert mock_get.call_count == 2
        mock_sleep.assert_called_once_with(Constants.HTTP_RETRY_BASE_DELAY_SEC)

    @patch('common.http_client.requests.get')
    def test_timeouts_exhaust_retries(self, mock_get, mock_sleep):
        """Every attempt timing out raises FetchError."""
        mock_get.side_effect = requests.Timeout()

        with pytest.raises(FetchError) as excinfo:
            robust_get("https://proxy.example/slow")

        assert "timeout" in str(excinfo.value)
        assert mock_get.call_count == Constants.HTTP_RETRY_MAX
        assert mock_sleep.call_count == Constants.HTTP_RETRY_MAX - 1

    @patch('common.http_client.requests.get')
    def test_connection_errors_raise_fetch_error(self, mock_get, _sleep):
        """Connection errors are retried, then surface as FetchError."""
        mock_get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(FetchError, match="refused"):
            robust_get("https://proxy.example/down")

    def test_uses_given_session(self, _sleep):
        """A session's get is used instead of requests.get."""
        session = MagicMock()
        session.get.return_value = _response(200, text="hi")

        assert robust_get("https://proxy.example/s", session=session)[2] == "hi"
        session.get.assert_called_once()
