"""
Signed HTTP dispatch with retry/backoff and structured error mapping.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping
from urllib.parse import urljoin

import requests

from x_ads import __version__
from x_ads.cancellation import CancellationToken, check_cancelled
from x_ads.config import ADS_API_BASE_URL, XAdsCredentials
from x_ads.exceptions import (
    ApiResponseError,
    AuthorizationDenied,
    RateLimitExceeded,
    RemoteRejection,
    TransientNetworkError,
)
from x_ads.models import ApiResult, parse_errors
from x_ads.oauth1 import OAuth1Signer, Params, as_pairs
from x_ads.rate_limit import RateLimitInfo, RetryPolicy, parse_retry_after

logger = logging.getLogger(__name__)

USER_AGENT = f"x-ads-client/{__version__}"


class ApiClient:
    """
    Executes OAuth 1.0a signed requests against the X APIs.

    Every attempt is signed afresh so retries carry a new nonce and
    timestamp. ``429``, ``5xx`` and connection failures are retried according
    to ``retry_policy``; other ``4xx`` responses surface immediately.
    """

    def __init__(
        self,
        credentials: XAdsCredentials,
        *,
        base_url: str = ADS_API_BASE_URL,
        retry_policy: RetryPolicy | None = None,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        signer: OAuth1Signer | None = None,
    ) -> None:
        credentials.require_complete()
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.sleep = sleep
        self._session = session or requests.Session()
        self._signer = signer or OAuth1Signer(
            credentials.consumer_key,
            credentials.consumer_secret,
            credentials.access_token,
            credentials.access_token_secret,
        )

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return urljoin(self.base_url, path.lstrip("/"))

    def execute(
        self,
        method: str,
        path: str,
        query: Params | None = None,
        body: Params | None = None,
        *,
        files: Mapping[str, Any] | None = None,
        json_body: Any = None,
        cancel: CancellationToken | None = None,
    ) -> ApiResult:
        """
        Send one logical request, retrying transient failures.

        Args:
            method: HTTP verb.
            path: Path relative to ``base_url`` or an absolute URL.
            query: Query string parameters (signed).
            body: Form fields. Signed when sent form-encoded; sent unsigned as
                multipart fields when ``files`` is given.
            files: Multipart file parts, never signed.
            json_body: JSON payload, never signed.
            cancel: Checked before every attempt and every backoff sleep.

        Returns:
            ApiResult for the first 2xx response.

        Raises:
            AuthorizationDenied: on ``401``.
            RemoteRejection: on any other non-retryable status.
            TransientNetworkError: when retries are exhausted
                (``RateLimitExceeded`` if the last failure was a ``429``).
            OperationCancelled: when ``cancel`` fires between attempts.
        """

        url = self.url_for(path)
        action = f"{method.upper()} {url}"
        policy = self.retry_policy
        attempt = 0

        while True:
            check_cancelled(cancel, action)
            retry_after: float | None = None
            error: TransientNetworkError
            try:
                response = self._send(method, url, query, body, files, json_body)
            except (requests.ConnectionError, requests.Timeout) as exc:
                error = TransientNetworkError(f"{action} failed: {exc}", attempts=attempt + 1)
                error.__cause__ = exc
            else:
                result = self._handle_response(method, url, response, attempt)
                if isinstance(result, ApiResult):
                    return result
                error = result
                if isinstance(result, RateLimitExceeded):
                    retry_after = result.retry_after

            attempt += 1
            if attempt >= policy.max_attempts:
                raise error

            delay = policy.delay_for(attempt - 1, retry_after)
            logger.warning(
                "Retrying %s in %.2fs (attempt %d/%d): %s",
                action,
                delay,
                attempt + 1,
                policy.max_attempts,
                error,
            )
            self._backoff(delay, cancel, action)

    def _backoff(self, delay: float, cancel: CancellationToken | None, action: str) -> None:
        """Sleep ``delay`` seconds, never past the deadline of ``cancel``."""

        check_cancelled(cancel, action)
        remaining = cancel.remaining() if cancel is not None else None
        if remaining is not None and remaining < delay:
            logger.debug("Backoff for %s cut to %.2fs by its deadline", action, remaining)
            delay = remaining
        self.sleep(delay)

    def _send(
        self,
        method: str,
        url: str,
        query: Params | None,
        body: Params | None,
        files: Mapping[str, Any] | None,
        json_body: Any,
    ) -> requests.Response:
        form_signed = files is None and json_body is None
        signed = self._signer.sign(method, url, query, body if form_signed else None)

        headers = {
            "Authorization": signed.authorization_header,
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        kwargs: dict[str, Any] = {"params": list(signed.query), "timeout": self.timeout}
        if files is not None:
            kwargs["data"] = as_pairs(body)
            kwargs["files"] = files
        elif json_body is not None:
            kwargs["json"] = json_body
        elif signed.body:
            kwargs["data"] = list(signed.body)

        logger.debug("%s %s", signed.method, signed.url)
        return self._session.request(signed.method, signed.url, headers=headers, **kwargs)

    def _handle_response(
        self,
        method: str,
        url: str,
        response: requests.Response,
        attempt: int,
    ) -> ApiResult | TransientNetworkError:
        status = response.status_code
        rate_limit = RateLimitInfo.from_headers(response.headers)
        payload = self._decode(response)

        if 200 <= status < 300:
            if payload is None:
                raise ApiResponseError(
                    f"{method.upper()} {url} returned a non-JSON body.", status=status
                )
            return ApiResult.from_payload(status, payload, rate_limit=rate_limit)

        body = payload or {}
        errors = parse_errors(body)
        message = _describe(method, url, status, errors, response)

        if status == 401:
            raise AuthorizationDenied(message, status=status, errors=errors, body=body)

        if not self.retry_policy.is_retryable(status):
            raise RemoteRejection(message, status=status, errors=errors, body=body)

        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            if retry_after is None:
                retry_after = rate_limit.seconds_until_reset() or None
            return RateLimitExceeded(
                message,
                retry_after=retry_after,
                reset_at=rate_limit.reset_at,
                attempts=attempt + 1,
                status=status,
                errors=errors,
                body=body,
            )
        return TransientNetworkError(
            message, attempts=attempt + 1, status=status, errors=errors, body=body
        )

    @staticmethod
    def _decode(response: requests.Response) -> dict[str, Any] | None:
        if not response.content or not response.content.strip():
            return {}
        try:
            payload = response.json()
        except ValueError:
            return None
        if isinstance(payload, Mapping):
            return dict(payload)
        return {"data": payload}


def _describe(
    method: str,
    url: str,
    status: int,
    errors: list[Any],
    response: requests.Response,
) -> str:
    if errors:
        detail = "; ".join(
            f"{error.code}: {error.message}" if error.code is not None else str(error.message)
            for error in errors
        )
    else:
        detail = (response.reason or response.text[:200]).strip()
    return f"{method.upper()} {url} -> HTTP {status}: {detail}"
