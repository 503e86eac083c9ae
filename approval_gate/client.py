import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests

from .config import (
    REFRESH_MAX_ATTEMPTS,
    REFRESH_RETRY_DELAY_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    GateConfig,
)
from .models import STATUS_UNAUTHORIZED, Decision, classify_response
from .utils import audit


TOKEN_HEADER = "Token"


class ApprovalClientError(RuntimeError):
    def __init__(self, message, *, code="approval_error", retryable=True):
        super().__init__(message)
        self.code = str(code)
        self.retryable = bool(retryable)


class TransportError(ApprovalClientError):
    def __init__(self, message):
        super().__init__(message, code="transport", retryable=True)


class DecodeError(ApprovalClientError):
    def __init__(self, message):
        super().__init__(message, code="decode", retryable=True)


class RefreshError(ApprovalClientError):
    def __init__(self, message):
        super().__init__(message, code="refresh_rejected", retryable=True)


class RefreshExhausted(ApprovalClientError):
    def __init__(self, message, *, attempts, last_error=None):
        super().__init__(message, code="refresh_exhausted", retryable=False)
        self.attempts = attempts
        self.last_error = last_error


def read_token_file(path) -> str:
    return Path(path).read_text(encoding="utf-8")


@dataclass
class TokenState:
    """Credential state shared by the query and refresh sub-protocols."""

    access_token: str
    token_path: str
    refresh_token_path: str

    def read_disk_token(self) -> str:
        return read_token_file(self.token_path)

    def read_refresh_token(self) -> str:
        # never cached: an external rotator may replace it at any time
        return read_token_file(self.refresh_token_path)


@dataclass(frozen=True)
class QueryResult:
    http_status: int
    body: str

    @property
    def unauthorized(self) -> bool:
        return self.http_status == STATUS_UNAUTHORIZED


class ApprovalClient:
    def __init__(
        self,
        status_url: str,
        refresh_url: str,
        tokens: TokenState,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        max_refresh_attempts: int = REFRESH_MAX_ATTEMPTS,
        refresh_delay: float = REFRESH_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.status_url = status_url
        self.refresh_url = refresh_url
        self.tokens = tokens
        self.session = session or requests.Session()
        self.timeout = float(timeout)
        self.max_refresh_attempts = max(1, int(max_refresh_attempts))
        self.refresh_delay = max(0.0, float(refresh_delay))
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: GateConfig, **kwargs) -> "ApprovalClient":
        tokens = TokenState(
            access_token=config.api_log_token,
            token_path=config.token_path,
            refresh_token_path=config.refresh_token_path,
        )
        return cls(config.approval_status_url, config.refresh_url, tokens, **kwargs)

    def close(self):
        self.session.close()

    def _headers(self) -> dict:
        return {TOKEN_HEADER: self.tokens.access_token}

    def query_approval(self) -> QueryResult:
        """Issues one approval-status GET. Raises TransportError on network failure."""
        try:
            response = self.session.get(
                self.status_url,
                headers=self._headers(),
                timeout=self.timeout,
            )
            return QueryResult(http_status=response.status_code, body=response.text)
        except requests.Timeout as exc:
            raise TransportError(f"Approval-status request timed out: {exc}") from exc
        except requests.RequestException as exc:
            raise TransportError(f"Approval-status request failed: {exc}") from exc
        except ValueError as exc:
            # http.client rejects header values it cannot send
            raise TransportError(f"Approval-status request could not be sent: {exc}") from exc

    def poll_once(self) -> Decision:
        result = self.query_approval()
        if result.unauthorized:
            return Decision.AUTH_REJECTED
        return classify_response(result.body)

    def _request_new_token(self) -> str:
        """Runs a single refresh attempt and returns the new access token.

        A token file that no longer matches the in-memory token means
        someone else already rotated it, so it is adopted without a
        network call. Otherwise the refresh token is exchanged at the
        refresh endpoint.
        """
        try:
            disk_token = self.tokens.read_disk_token()
        except (OSError, UnicodeDecodeError) as exc:
            raise RefreshError(f"Cannot read token file {self.tokens.token_path}: {exc}") from exc
        if disk_token.strip() != self.tokens.access_token.strip():
            return disk_token.strip()

        try:
            refresh_token = self.tokens.read_refresh_token()
        except (OSError, UnicodeDecodeError) as exc:
            raise RefreshError(
                f"Cannot read refresh token file {self.tokens.refresh_token_path}: {exc}"
            ) from exc

        try:
            response = self.session.post(
                self.refresh_url,
                headers=self._headers(),
                json={"refresh_token": refresh_token},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Refresh request failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Refresh request could not be sent: {exc}") from exc

        if response.status_code != 200:
            raise RefreshError(response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodeError(f"Refresh response is not valid JSON: {exc}") from exc

        data = payload.get("data") if isinstance(payload, dict) else None
        if data is None:
            raise DecodeError("Refresh token response did not contain new JWT")
        if not isinstance(data, list):
            raise DecodeError("Refresh token response was not properly formatted")
        if len(data) != 1:
            raise DecodeError("Refresh token response did not contain data")
        if not isinstance(data[0], str):
            raise DecodeError("Refresh token data was not properly formatted")
        return data[0]

    def refresh_access_token(self) -> str:
        """Replaces the access token, retrying on a fixed delay.

        Every failure kind counts against the same attempt budget. Raises
        RefreshExhausted once all attempts have failed.
        """
        last_error = None
        for attempt in range(1, self.max_refresh_attempts + 1):
            try:
                token = self._request_new_token()
            except ApprovalClientError as exc:
                last_error = exc
                audit(
                    "TOKEN_REFRESH",
                    f"Attempt {attempt}/{self.max_refresh_attempts} failed ({exc.code}): {exc}",
                    "ERROR",
                )
            else:
                self.tokens.access_token = token
                audit("TOKEN_REFRESH", f"New token found on attempt {attempt}", "INFO")
                return token

            if attempt < self.max_refresh_attempts:
                self._sleep(self.refresh_delay)

        raise RefreshExhausted(
            f"Could not refresh access token after {self.max_refresh_attempts} attempts: {last_error}",
            attempts=self.max_refresh_attempts,
            last_error=last_error,
        )
