from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from x_ads.config import ConfigManager, XAdsCredentials, resolve_ad_account_id
from x_ads.exceptions import (
    ConfigurationError,
    CredentialsNotFound,
    InvalidCredentialsFile,
)


def _write_file_credentials(path: Path, **overrides: str) -> None:
    data = {
        "consumer_key": "file-key",
        "consumer_secret": "file-secret",
        "access_token": "file-access",
        "access_token_secret": "file-access-secret",
    }
    data.update(overrides)
    path.write_text(json.dumps(data), encoding="utf-8")


def test_load_credentials_prefers_environment(tmp_path: Path) -> None:
    env = {
        "X_API_KEY": "env-key",
        "X_API_SECRET": "env-secret",
        "X_ACCESS_TOKEN": "env-access",
        "X_ACCESS_TOKEN_SECRET": "env-secret-token",
    }
    credential_path = tmp_path / "credentials.json"
    _write_file_credentials(credential_path)

    manager = ConfigManager(credential_path=credential_path, env=env, dotenv_path=tmp_path / ".env")
    credentials = manager.load_credentials()

    assert credentials.consumer_key == "env-key"
    assert credentials.access_token == "env-access"


def test_load_credentials_combines_env_consumer_with_file_tokens(tmp_path: Path) -> None:
    credential_path = tmp_path / "credentials.json"
    credential_path.write_text(
        json.dumps({"access_token": "file-access", "access_token_secret": "file-access-secret"}),
        encoding="utf-8",
    )
    env = {"X_API_KEY": "env-key", "X_API_SECRET": "env-secret"}

    manager = ConfigManager(credential_path=credential_path, env=env, dotenv_path=tmp_path / ".env")
    credentials = manager.load_credentials()

    assert credentials.is_complete()
    assert credentials.consumer_key == "env-key"
    assert credentials.access_token == "file-access"


def test_load_credentials_from_file_when_env_empty(tmp_path: Path) -> None:
    credential_path = tmp_path / "credentials.json"
    _write_file_credentials(credential_path)

    manager = ConfigManager(credential_path=credential_path, env={})
    credentials = manager.load_credentials(priority=("file",))

    assert credentials.consumer_key == "file-key"
    assert credentials.access_token_secret == "file-access-secret"


def test_load_credentials_from_dotenv(tmp_path: Path) -> None:
    dotenv_file = tmp_path / ".env"
    dotenv_file.write_text(
        """
X_API_KEY=dotenv-key
X_API_SECRET=dotenv-secret
X_ACCESS_TOKEN=dotenv-access
X_ACCESS_TOKEN_SECRET=dotenv-access-secret
""".strip()
    )

    manager = ConfigManager(credential_path=tmp_path / "credentials.json", env={}, dotenv_path=dotenv_file)
    credentials = manager.load_credentials(priority=("dotenv",))

    assert credentials.consumer_key == "dotenv-key"
    assert credentials.access_token_secret == "dotenv-access-secret"


def test_credential_path_can_come_from_environment(tmp_path: Path) -> None:
    credential_path = tmp_path / "custom.json"
    _write_file_credentials(credential_path)

    manager = ConfigManager(env={"X_ADS_CREDENTIALS_PATH": str(credential_path)})

    assert manager.credential_path == credential_path
    assert manager.load_credentials(priority=("file",)).consumer_key == "file-key"


def test_missing_credentials_raise_not_found(tmp_path: Path) -> None:
    manager = ConfigManager(credential_path=tmp_path / "credentials.json", env={}, dotenv_path=tmp_path / ".env")

    with pytest.raises(CredentialsNotFound):
        manager.load_credentials()


def test_malformed_credential_file_is_distinct_from_missing(tmp_path: Path) -> None:
    credential_path = tmp_path / "credentials.json"
    credential_path.write_text("{not json", encoding="utf-8")
    manager = ConfigManager(credential_path=credential_path, env={})

    with pytest.raises(InvalidCredentialsFile) as exc_info:
        manager.load_credentials(priority=("file",))

    assert not isinstance(exc_info.value, CredentialsNotFound)


def test_credential_file_must_contain_a_mapping(tmp_path: Path) -> None:
    credential_path = tmp_path / "credentials.json"
    credential_path.write_text(json.dumps(["a", "b"]), encoding="utf-8")
    manager = ConfigManager(credential_path=credential_path, env={})

    with pytest.raises(InvalidCredentialsFile):
        manager.load_credentials(priority=("file",))


def test_unknown_priority_source_is_rejected(tmp_path: Path) -> None:
    manager = ConfigManager(credential_path=tmp_path / "credentials.json", env={})

    with pytest.raises(ValueError):
        manager.load_credentials(priority=("keychain",))


def test_save_credentials_merges_existing_values(tmp_path: Path) -> None:
    credential_path = tmp_path / "credentials.json"
    credential_path.write_text(
        json.dumps(
            {
                "consumer_key": "existing-key",
                "consumer_secret": "existing-secret",
                "access_token": "existing-access",
            }
        ),
        encoding="utf-8",
    )
    manager = ConfigManager(credential_path=credential_path, env={})

    manager.save_credentials(
        XAdsCredentials(
            access_token="new-access",
            access_token_secret="new-secret",
        )
    )

    data = json.loads(credential_path.read_text(encoding="utf-8"))
    assert data["consumer_key"] == "existing-key"
    assert data["access_token"] == "new-access"
    assert data["access_token_secret"] == "new-secret"


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
def test_save_credentials_restricts_permissions(tmp_path: Path) -> None:
    credential_path = tmp_path / "nested" / "credentials.json"
    manager = ConfigManager(credential_path=credential_path, env={})

    manager.save_credentials(
        XAdsCredentials("key", "secret", "access", "access-secret")
    )

    mode = stat.S_IMODE(credential_path.stat().st_mode)
    assert mode == 0o600
    assert list(credential_path.parent.glob(".credentials-*")) == []


def test_require_complete_reports_missing_tokens() -> None:
    with pytest.raises(ConfigurationError, match="Access token"):
        XAdsCredentials(consumer_key="key", consumer_secret="secret").require_complete()

    with pytest.raises(ConfigurationError, match="Consumer key"):
        XAdsCredentials(access_token="a", access_token_secret="b").require_complete()


def test_resolve_ad_account_id_prefers_explicit_value() -> None:
    assert resolve_ad_account_id("18ce54d4x5t", env={"X_AD_ACCOUNT_ID": "env-id"}) == "18ce54d4x5t"
    assert resolve_ad_account_id(None, env={"X_AD_ACCOUNT_ID": "env-id"}) == "env-id"

    with pytest.raises(ConfigurationError):
        resolve_ad_account_id(None, env={})
