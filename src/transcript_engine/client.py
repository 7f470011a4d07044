"""
VerificationClient: sync client for the public verification endpoint.

Used by employers, admissions offices and other third parties to check a
transcript's verification code against a Transcript-Engine deployment.
"""

import json
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx


@dataclass
class ClientVerificationResult:
    """Result of verify() call."""

    valid: bool
    student_name: Optional[str] = None
    usn: Optional[str] = None
    major: Optional[str] = None
    cgpa: Optional[float] = None
    approval_date: Optional[datetime] = None
    error: str = ""
    code: str = ""


def _parse_dt(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


class VerificationClient:
    """
    Synchronous HTTP client for the public verification endpoint.

    Network failures are reported as ``valid=False`` with ``error`` set, so
    callers can tell "could not check" apart from "checked and invalid".
    """

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
    ):
        self.server_url = server_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
        )

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Central HTTP method with retry and structured error handling.

        Retries on:
        - httpx.TimeoutException
        - 5xx status codes
        - 429 (rate limit)

        No retry on other 4xx errors.

        Returns parsed JSON on success, or structured error dict on failure.
        """
        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = getattr(self._http, method)(path, **kwargs)
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self.max_retries - 1:
                        time.sleep(self.retry_backoff_base * (2 ** attempt))
                        continue
                    return {
                        "error": f"Server error: {resp.status_code}",
                        "code": "SERVER_ERROR",
                    }
                if resp.status_code >= 400:
                    return {
                        "error": f"Client error: {resp.status_code}",
                        "code": "CLIENT_ERROR",
                    }
                return resp.json()
            except httpx.TimeoutException:
                last_error = "timeout"
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except httpx.HTTPError as e:
                last_error = str(e)
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except json.JSONDecodeError:
                return {"error": "Invalid JSON response", "code": "JSON_ERROR"}

        return {"error": f"All {self.max_retries} retries exhausted: {last_error}", "code": "CONNECTION_ERROR"}

    def verify(self, code: str) -> ClientVerificationResult:
        """Check a verification code. Surrounding whitespace is ignored."""
        data = self._request("post", "/verify", json={"code": code.strip()})
        if "error" in data:
            return ClientVerificationResult(
                valid=False, error=data["error"], code=data.get("code", ""),
            )
        if not data.get("valid"):
            return ClientVerificationResult(valid=False, code="INVALID")
        return ClientVerificationResult(
            valid=True,
            student_name=data.get("student_name"),
            usn=data.get("usn"),
            major=data.get("major"),
            cgpa=data.get("cgpa"),
            approval_date=_parse_dt(data.get("approval_date")),
            code="VALID",
        )

    def health(self) -> dict[str, Any]:
        return self._request("get", "/health")

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "VerificationClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
