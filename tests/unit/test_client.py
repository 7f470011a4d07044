"""Tests for client.py: VerificationClient with resilience."""

from unittest.mock import MagicMock, patch

import httpx

from transcript_engine.client import VerificationClient


def _mock_response(data: dict, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    return resp


class TestClientInit:
    def test_defaults(self):
        client = VerificationClient()
        assert client.server_url == "http://localhost:8080"
        assert client.max_retries == 3
        client.close()

    def test_strips_trailing_slash(self):
        client = VerificationClient(server_url="http://registry:9090/", max_retries=5)
        assert client.server_url == "http://registry:9090"
        assert client.max_retries == 5
        client.close()


class TestClientVerify:
    def test_valid_response(self):
        client = VerificationClient()
        client._http = MagicMock()
        client._http.post.return_value = _mock_response({
            "valid": True,
            "student_name": "Asha Rao",
            "usn": "1GU21CS001",
            "major": "B.Tech Computer Science",
            "cgpa": 8.3,
            "approval_date": "2025-06-01T09:30:00Z",
        })
        result = client.verify("  some-code  ")
        assert result.valid is True
        assert result.code == "VALID"
        assert result.usn == "1GU21CS001"
        assert result.cgpa == 8.3
        assert result.approval_date.year == 2025
        assert result.approval_date.tzinfo is not None
        client._http.post.assert_called_once_with("/verify", json={"code": "some-code"})

    def test_invalid_response(self):
        client = VerificationClient()
        client._http = MagicMock()
        client._http.post.return_value = _mock_response({"valid": False})
        result = client.verify("nope")
        assert result.valid is False
        assert result.code == "INVALID"
        assert result.error == ""

    def test_client_error_not_retried(self):
        client = VerificationClient()
        client._http = MagicMock()
        client._http.post.return_value = _mock_response({}, status_code=422)
        result = client.verify("nope")
        assert result.valid is False
        assert result.code == "CLIENT_ERROR"
        assert client._http.post.call_count == 1

    @patch("transcript_engine.client.time.sleep")
    def test_server_error_retried(self, mock_sleep):
        client = VerificationClient(max_retries=3)
        client._http = MagicMock()
        client._http.post.side_effect = [
            _mock_response({}, status_code=503),
            _mock_response({"valid": False}),
        ]
        result = client.verify("nope")
        assert result.code == "INVALID"
        assert client._http.post.call_count == 2
        mock_sleep.assert_called_once_with(0.5)

    @patch("transcript_engine.client.time.sleep")
    def test_timeouts_exhaust_retries(self, mock_sleep):
        client = VerificationClient(max_retries=2)
        client._http = MagicMock()
        client._http.post.side_effect = httpx.TimeoutException("slow")
        result = client.verify("nope")
        assert result.valid is False
        assert result.code == "CONNECTION_ERROR"
        assert "timeout" in result.error
        assert client._http.post.call_count == 2


class TestClientHealth:
    def test_health(self):
        client = VerificationClient()
        client._http = MagicMock()
        client._http.get.return_value = _mock_response({"status": "ok", "version": "0.1.0"})
        assert client.health()["status"] == "ok"

    def test_context_manager_closes(self):
        with VerificationClient() as client:
            client._http = MagicMock()
        client._http.close.assert_called_once()
