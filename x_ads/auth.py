"""
Three-legged OAuth 1.0a flow producing durable X Ads credentials.
"""

from __future__ import annotations

import enum
import logging
import webbrowser
from dataclasses import dataclass
from typing import Callable, Mapping
from urllib.parse import parse_qsl, urljoin, urlsplit

import requests
from requests_oauthlib import OAuth1Session
from requests_oauthlib.oauth1_session import TokenMissing, TokenRequestDenied, VerifierMissing

from x_ads.cancellation import CancellationToken, check_cancelled
from x_ads.config import OAUTH_BASE_URL, ConfigManager, XAdsCredentials
from x_ads.exceptions import (
    AuthenticationError,
    AuthorizationDenied,
    ConfigurationError,
    OperationCancelled,
)

logger = logging.getLogger(__name__)

PIN_CALLBACK = "oob"

CallbackHandler = Callable[[str], str]
SessionFactory = Callable[..., OAuth1Session]


class AuthState(enum.Enum):
    START = "start"
    REQUEST_TOKEN_OBTAINED = "request_token_obtained"
    AUTHORIZED_BY_USER = "authorized_by_user"
    ACCESS_TOKEN_OBTAINED = "access_token_obtained"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class TemporaryCredentials:
    """Request token pair; exchanged for access tokens and then discarded."""

    token: str
    token_secret: str
    callback_confirmed: bool = False


def default_callback_handler(url: str) -> str:
    """Open ``url`` in a browser and read the PIN or redirected URL from stdin."""

    print("\nAuthorize x-ads in your browser:")
    print(f"\n{url}\n")
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        print("Could not open a browser. Copy the URL above manually.")
    return input("Enter the PIN (or the full redirected URL): ").strip()


def extract_verifier(response: str) -> str:
    """
    Return the verifier from a bare PIN or a redirected callback URL.

    Raises:
        AuthorizationDenied: when the callback URL reports a denial.
        AuthenticationError: when no verifier can be found.
    """

    text = response.strip()
    if "oauth_verifier=" in text or "denied=" in text or text.startswith(("http://", "https://")):
        query = urlsplit(text).query if "://" in text else text.lstrip("?")
        params = dict(parse_qsl(query))
        if "denied" in params:
            raise AuthorizationDenied("Authorization was declined by the user.")
        verifier = params.get("oauth_verifier")
        if not verifier:
            raise AuthenticationError("Callback URL did not contain oauth_verifier.")
        return verifier
    if not text:
        raise AuthenticationError("No verifier was supplied.")
    return text


class AuthFlow:
    """
    Drives ``request_token -> authorize -> access_token``.

    Each handshake uses one ``OAuth1Session`` from ``session_factory``; the
    session keeps the request token between steps. Credentials are handed to
    the ConfigManager only after the access token exchange succeeded, so a
    failure at any step leaves the store untouched.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        callback_handler: CallbackHandler | None = None,
        *,
        session_factory: SessionFactory = OAuth1Session,
        oauth_base_url: str = OAUTH_BASE_URL,
        callback: str = PIN_CALLBACK,
        timeout: float = 30.0,
    ) -> None:
        self._config = config_manager
        self._callback_handler = callback_handler or default_callback_handler
        self._session_factory = session_factory
        self._base_url = oauth_base_url if oauth_base_url.endswith("/") else f"{oauth_base_url}/"
        self._callback = callback
        self._timeout = timeout
        self.state = AuthState.START

    def ensure_credentials(self, *, cancel: CancellationToken | None = None) -> XAdsCredentials:
        """Return stored credentials when complete; otherwise run the flow."""

        credentials = self._config.load_credentials()
        if credentials.is_complete():
            return credentials
        return self.run(cancel=cancel)

    def run(self, *, cancel: CancellationToken | None = None) -> XAdsCredentials:
        """Run the whole handshake and persist the resulting credentials."""

        consumer = self._config.load_credentials()
        if not consumer.has_consumer():
            raise ConfigurationError("Consumer key and secret are required to authorize.")

        self.state = AuthState.START
        try:
            check_cancelled(cancel, "authorization")
            session = self.open_session(consumer)
            try:
                temporary = self.request_token(session)
                check_cancelled(cancel, "authorization")
                verifier = self.authorize(session, temporary)
                check_cancelled(cancel, "authorization")
                credentials = self.access_token(session, consumer, verifier)
            finally:
                session.close()
        except BaseException:
            self.state = AuthState.FAILED
            raise

        self._config.save_credentials(credentials)
        logger.info("Stored access token for consumer %s", consumer.consumer_key)
        return credentials

    def open_session(self, consumer: XAdsCredentials) -> OAuth1Session:
        return self._session_factory(
            consumer.consumer_key,
            client_secret=consumer.consumer_secret,
            callback_uri=self._callback,
        )

    def request_token(self, session: OAuth1Session) -> TemporaryCredentials:
        fields = self._exchange(
            "request_token",
            lambda url: session.fetch_request_token(url, timeout=self._timeout),
        )

        token = fields.get("oauth_token")
        token_secret = fields.get("oauth_token_secret")
        if not token or not token_secret:
            raise AuthenticationError("Request token response was missing oauth_token fields.")

        self.state = AuthState.REQUEST_TOKEN_OBTAINED
        return TemporaryCredentials(
            token=token,
            token_secret=token_secret,
            callback_confirmed=fields.get("oauth_callback_confirmed") == "true",
        )

    def authorization_url(self, session: OAuth1Session, temporary: TemporaryCredentials) -> str:
        return session.authorization_url(
            urljoin(self._base_url, "authorize"), request_token=temporary.token
        )

    def authorize(self, session: OAuth1Session, temporary: TemporaryCredentials) -> str:
        """Block on the callback handler until the user supplies a verifier."""

        try:
            response = self._callback_handler(self.authorization_url(session, temporary))
        except KeyboardInterrupt as exc:
            raise OperationCancelled("Authorization was cancelled by the user.") from exc

        verifier = extract_verifier(response)
        self.state = AuthState.AUTHORIZED_BY_USER
        return verifier

    def access_token(
        self,
        session: OAuth1Session,
        consumer: XAdsCredentials,
        verifier: str,
    ) -> XAdsCredentials:
        fields = self._exchange(
            "access_token",
            lambda url: session.fetch_access_token(url, verifier=verifier, timeout=self._timeout),
        )

        token = fields.get("oauth_token")
        token_secret = fields.get("oauth_token_secret")
        if not token or not token_secret:
            raise AuthenticationError("Access token response was missing oauth_token fields.")

        self.state = AuthState.ACCESS_TOKEN_OBTAINED
        return XAdsCredentials(
            consumer_key=consumer.consumer_key,
            consumer_secret=consumer.consumer_secret,
            access_token=token,
            access_token_secret=token_secret,
        )

    def _exchange(
        self,
        endpoint: str,
        fetch: Callable[[str], Mapping[str, str]],
    ) -> dict[str, str]:
        """Call one token endpoint and map library errors onto ours."""

        try:
            return dict(fetch(urljoin(self._base_url, endpoint)))
        except TokenRequestDenied as exc:
            if exc.status_code in (401, 403):
                raise AuthorizationDenied(
                    f"{endpoint} was rejected: HTTP {exc.status_code} {exc.response.text[:200]}",
                    status=exc.status_code,
                ) from exc
            raise AuthenticationError(
                f"{endpoint} failed: HTTP {exc.status_code} {exc.response.text[:200]}"
            ) from exc
        except (TokenMissing, VerifierMissing) as exc:
            raise AuthenticationError(f"{endpoint} response was incomplete: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError(f"{endpoint} response could not be decoded: {exc}") from exc
        except requests.RequestException as exc:
            raise AuthenticationError(f"{endpoint} request failed: {exc}") from exc
