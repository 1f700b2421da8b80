"""
HTTP client adapters for the X Ads and companion public APIs.
"""

from x_ads.clients.api_client import ApiClient

__all__ = ["ApiClient"]
