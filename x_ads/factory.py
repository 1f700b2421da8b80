"""
Factory for creating API client instances with proper initialization.
"""

from __future__ import annotations

import requests

from x_ads.clients.api_client import ApiClient
from x_ads.config import ADS_API_BASE_URL, ConfigManager, XAdsCredentials
from x_ads.exceptions import ConfigurationError
from x_ads.rate_limit import RetryPolicy


class XAdsClientFactory:
    """Factory for creating properly initialized X Ads API clients."""

    @staticmethod
    def create_from_config(
        config_manager: ConfigManager,
        *,
        retry_policy: RetryPolicy | None = None,
        base_url: str = ADS_API_BASE_URL,
    ) -> ApiClient:
        """
        Create an ApiClient from stored credentials.

        Raises:
            ConfigurationError: If credentials are missing or incomplete
        """
        credentials = config_manager.load_credentials()
        return XAdsClientFactory.create_from_credentials(
            credentials, retry_policy=retry_policy, base_url=base_url
        )

    @staticmethod
    def create_from_credentials(
        credentials: XAdsCredentials,
        *,
        retry_policy: RetryPolicy | None = None,
        base_url: str = ADS_API_BASE_URL,
        session: requests.Session | None = None,
    ) -> ApiClient:
        """
        Create an ApiClient directly from credentials.

        Raises:
            ConfigurationError: If required credentials are missing
        """
        if not credentials.consumer_key or not credentials.consumer_secret:
            raise ConfigurationError("Consumer key and secret are required")

        if not credentials.access_token or not credentials.access_token_secret:
            raise ConfigurationError("Access token and secret are required")

        return ApiClient(
            credentials,
            base_url=base_url,
            retry_policy=retry_policy,
            session=session,
        )
