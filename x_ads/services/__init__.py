"""
Service layer modules orchestrate workflows (media, tweets, stats)
on top of the signed API client.
"""

__all__ = [
    "media_service",
    "stats_service",
    "tweet_service",
]
