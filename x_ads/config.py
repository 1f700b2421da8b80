"""
Configuration management utilities for x_ads.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Mapping, Sequence

from dotenv import dotenv_values

from x_ads.exceptions import (
    ConfigurationError,
    CredentialsNotFound,
    InvalidCredentialsFile,
)

ADS_API_BASE_URL = "https://ads-api.x.com/12/"
PUBLIC_API_BASE_URL = "https://api.x.com/2/"
OAUTH_BASE_URL = "https://api.x.com/oauth/"
MEDIA_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"

DEFAULT_CREDENTIAL_PATH = Path("~/.x-ads/credentials.json")
CREDENTIAL_PATH_ENV = "X_ADS_CREDENTIALS_PATH"
AD_ACCOUNT_ENV = "X_AD_ACCOUNT_ID"

ENV_VAR_MAP = {
    "consumer_key": "X_API_KEY",
    "consumer_secret": "X_API_SECRET",
    "access_token": "X_ACCESS_TOKEN",
    "access_token_secret": "X_ACCESS_TOKEN_SECRET",
}


@dataclass(slots=True)
class XAdsCredentials:
    """OAuth 1.0a consumer and access token pairs."""

    consumer_key: str | None = None
    consumer_secret: str | None = None
    access_token: str | None = None
    access_token_secret: str | None = None

    def is_empty(self) -> bool:
        return all(
            value in (None, "")
            for value in (
                self.consumer_key,
                self.consumer_secret,
                self.access_token,
                self.access_token_secret,
            )
        )

    def has_consumer(self) -> bool:
        return bool(self.consumer_key and self.consumer_secret)

    def has_access_token(self) -> bool:
        return bool(self.access_token and self.access_token_secret)

    def is_complete(self) -> bool:
        return self.has_consumer() and self.has_access_token()

    def require_complete(self) -> "XAdsCredentials":
        """Return ``self`` or raise when any of the four values is missing."""

        if not self.has_consumer():
            raise ConfigurationError("Consumer key and secret are required.")
        if not self.has_access_token():
            raise ConfigurationError(
                "Access token and secret are required. Run `x-ads auth login`."
            )
        return self

    def merge(self, other: "XAdsCredentials") -> "XAdsCredentials":
        """Merge credential sets, preferring non-null values from ``other``."""

        return XAdsCredentials(
            consumer_key=other.consumer_key or self.consumer_key,
            consumer_secret=other.consumer_secret or self.consumer_secret,
            access_token=other.access_token or self.access_token,
            access_token_secret=other.access_token_secret or self.access_token_secret,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            key: value
            for key, value in asdict(self).items()
            if isinstance(value, str) and value
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, str | None]) -> "XAdsCredentials":
        return cls(
            consumer_key=data.get("consumer_key"),
            consumer_secret=data.get("consumer_secret"),
            access_token=data.get("access_token"),
            access_token_secret=data.get("access_token_secret"),
        )


class ConfigManager:
    """Loads and persists credentials from environment variables, .env or disk."""

    def __init__(
        self,
        credential_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
        dotenv_path: Path | None = None,
    ) -> None:
        self._env = os.environ if env is None else env
        configured = self._env.get(CREDENTIAL_PATH_ENV)
        path = credential_path or (Path(configured) if configured else DEFAULT_CREDENTIAL_PATH)
        self._credential_path = path.expanduser()
        self._dotenv_path = dotenv_path or Path(".env")

    @property
    def credential_path(self) -> Path:
        return self._credential_path

    def load_credentials(
        self,
        priority: Sequence[str] = ("env", "dotenv", "file"),
    ) -> XAdsCredentials:
        """
        Load credentials according to the requested priority order.

        Sources are merged in reverse priority so a higher priority source can
        override individual values of a lower one (e.g. consumer key from the
        environment, access token from the credential file).

        Raises:
            CredentialsNotFound: when no source provides any value.
            InvalidCredentialsFile: when the credential file is malformed.
        """

        merged = XAdsCredentials()
        for source in reversed(tuple(priority)):
            if source == "env":
                credentials = self._load_from_env()
            elif source == "dotenv":
                credentials = self._load_from_dotenv()
            elif source == "file":
                credentials = self._load_from_file()
            else:
                raise ValueError(f"Unknown credential source '{source}'.")

            if credentials is not None:
                merged = merged.merge(credentials)

        if merged.is_empty():
            raise CredentialsNotFound(
                f"X Ads credentials are not configured (looked in {self._credential_path})."
            )
        return merged

    def save_credentials(self, credentials: XAdsCredentials) -> None:
        """Persist credentials to disk, merging with existing values."""

        try:
            existing = self._load_from_file()
        except InvalidCredentialsFile:
            existing = None
        merged = existing.merge(credentials) if existing else credentials

        self._credential_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._credential_path.parent, prefix=".credentials-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                json.dump(merged.to_dict(), fp, indent=2, sort_keys=True)
            # Owner read/write only
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._credential_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _load_from_env(self) -> XAdsCredentials | None:
        values: dict[str, str | None] = {
            field: self._env.get(env_name) for field, env_name in ENV_VAR_MAP.items()
        }
        credentials = XAdsCredentials.from_mapping(values)
        return credentials if not credentials.is_empty() else None

    def _load_from_dotenv(self) -> XAdsCredentials | None:
        if not self._dotenv_path.exists():
            return None

        values = dotenv_values(self._dotenv_path)
        credentials = XAdsCredentials.from_mapping(
            {field: values.get(env_name) for field, env_name in ENV_VAR_MAP.items()}
        )
        return credentials if not credentials.is_empty() else None

    def _load_from_file(self) -> XAdsCredentials | None:
        if not self._credential_path.exists():
            return None

        try:
            with self._credential_path.open("r", encoding="utf-8") as fp:
                data = json.load(fp)
        except (OSError, ValueError) as exc:
            raise InvalidCredentialsFile(
                f"Credential file {self._credential_path} could not be read: {exc}"
            ) from exc

        if not isinstance(data, Mapping):
            raise InvalidCredentialsFile(
                f"Credential file {self._credential_path} did not contain a mapping."
            )
        if any(value is not None and not isinstance(value, str) for value in data.values()):
            raise InvalidCredentialsFile(
                f"Credential file {self._credential_path} contains non-string values."
            )

        credentials = XAdsCredentials.from_mapping(data)
        return credentials if not credentials.is_empty() else None


def resolve_ad_account_id(
    explicit: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> str:
    """Return the ad account id from ``explicit`` or the ``X_AD_ACCOUNT_ID`` variable."""

    if explicit:
        return explicit
    source = os.environ if env is None else env
    account_id = source.get(AD_ACCOUNT_ENV)
    if not account_id:
        raise ConfigurationError(
            f"No ad account id given. Pass --account or set {AD_ACCOUNT_ENV}."
        )
    return account_id
