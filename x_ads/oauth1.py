"""
OAuth 1.0a (RFC 5849) HMAC-SHA1 request signing on top of oauthlib.

oauthlib computes the signature and renders the ``Authorization`` header; this
module adapts our parameter shapes (mappings, pair lists, bytes, booleans) to
it and keeps the exact pairs it signed so the transport sends the same ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence, Union
from urllib.parse import parse_qsl, urlencode, urlsplit

from oauthlib.common import safe_string_equals
from oauthlib.oauth1 import SIGNATURE_HMAC, Client
from oauthlib.oauth1.rfc5849 import signature as rfc5849
from oauthlib.oauth1.rfc5849.utils import parse_authorization_header, unescape

from x_ads.exceptions import SigningError

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

ParamValue = Union[str, bytes, int, float, bool]
Params = Union[Mapping[str, ParamValue], Sequence[tuple[str, ParamValue]]]


def to_text(value: ParamValue) -> str:
    """Render a parameter value as text; bytes must be valid UTF-8."""

    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SigningError(f"Parameter value is not valid UTF-8: {value!r}") from exc
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise SigningError(f"Unsupported parameter type {type(value).__name__!r}.")


def as_pairs(params: Params | None) -> list[tuple[str, str]]:
    """Flatten a mapping or pair sequence into ``(key, text)`` tuples."""

    if not params:
        return []
    items: Iterable[tuple[str, ParamValue]]
    items = params.items() if isinstance(params, Mapping) else params
    return [(to_text(key), to_text(value)) for key, value in items if value is not None]


def normalize_base_url(url: str) -> tuple[str, list[tuple[str, str]]]:
    """
    Split ``url`` into the signature base URL and the query pairs it carried.

    Scheme and host are lowercased, default ports dropped, query and fragment
    removed.
    """

    try:
        base_url = rfc5849.base_string_uri(url)
    except ValueError as exc:
        raise SigningError(f"Cannot sign URL {url!r}: {exc}") from exc
    return base_url, parse_qsl(urlsplit(url).query, keep_blank_values=True)


@dataclass(frozen=True, slots=True)
class SignedRequest:
    """One signed attempt: the request parameters plus its OAuth header."""

    method: str
    url: str
    query: tuple[tuple[str, str], ...]
    body: tuple[tuple[str, str], ...]
    oauth_params: tuple[tuple[str, str], ...]
    authorization_header: str

    @property
    def signature(self) -> str:
        return dict(self.oauth_params)["oauth_signature"]

    @property
    def nonce(self) -> str:
        return dict(self.oauth_params)["oauth_nonce"]

    @property
    def timestamp(self) -> str:
        return dict(self.oauth_params)["oauth_timestamp"]

    @property
    def base_string(self) -> str:
        return rfc5849.signature_base_string(
            self.method, self.url, rfc5849.normalize_parameters(self.signature_parameters())
        )

    def signature_parameters(self) -> list[tuple[str, str]]:
        """Every pair that entered the signature (``oauth_signature`` excluded)."""

        protocol = [(k, v) for k, v in self.oauth_params if k != "oauth_signature"]
        return [*self.query, *self.body, *protocol]

    def verify(self, consumer_secret: str, token_secret: str | None = None) -> bool:
        """Recompute the signature from this request's own parameters."""

        keys = Client("", client_secret=consumer_secret, resource_owner_secret=token_secret)
        expected = rfc5849.sign_hmac_sha1_with_client(self.base_string, keys)
        return safe_string_equals(expected, self.signature)


class OAuth1Signer:
    """Signs requests with a consumer key pair and an optional token pair."""

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        token: str | None = None,
        token_secret: str | None = None,
        *,
        clock: Callable[[], str] | None = None,
        nonce_factory: Callable[[], str] | None = None,
    ) -> None:
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.token = token
        self.token_secret = token_secret
        self._clock = clock
        self._nonce_factory = nonce_factory

    def _client(self, callback: str | None, verifier: str | None) -> Client:
        # oauthlib draws a fresh nonce and timestamp when these are None
        return Client(
            self.consumer_key,
            client_secret=self.consumer_secret,
            resource_owner_key=self.token or None,
            resource_owner_secret=self.token_secret,
            callback_uri=callback,
            verifier=verifier,
            signature_method=SIGNATURE_HMAC,
            nonce=self._nonce_factory() if self._nonce_factory else None,
            timestamp=self._clock() if self._clock else None,
        )

    def sign(
        self,
        method: str,
        url: str,
        query: Params | None = None,
        body: Params | None = None,
        *,
        oauth_params: Mapping[str, str] | None = None,
    ) -> SignedRequest:
        """
        Build a :class:`SignedRequest`.

        ``body`` must only contain form-encoded fields; multipart and JSON
        payloads are not part of the signature and must not be passed here.
        ``oauth_params`` may carry ``oauth_callback`` or ``oauth_verifier``.
        """

        base_url, url_query = normalize_base_url(url)
        query_pairs = [*url_query, *as_pairs(query)]
        body_pairs = as_pairs(body)

        extra = {key: to_text(value) for key, value in (oauth_params or {}).items()}
        callback = extra.pop("oauth_callback", None)
        verifier = extra.pop("oauth_verifier", None)
        if extra:
            raise SigningError(f"Unsupported OAuth parameters: {sorted(extra)}")

        method = method.upper()
        client = self._client(callback, verifier)
        try:
            uri = f"{base_url}?{urlencode(query_pairs)}" if query_pairs else base_url
            if body_pairs:
                _, headers, _ = client.sign(
                    uri, method, urlencode(body_pairs), {"Content-Type": FORM_CONTENT_TYPE}
                )
            else:
                _, headers, _ = client.sign(uri, method)
        except ValueError as exc:
            raise SigningError(f"Cannot sign {method} {base_url}: {exc}") from exc

        header = headers["Authorization"]
        return SignedRequest(
            method=method,
            url=base_url,
            query=tuple(query_pairs),
            body=tuple(body_pairs),
            oauth_params=tuple(
                (key, unescape(value)) for key, value in parse_authorization_header(header)
            ),
            authorization_header=header,
        )
