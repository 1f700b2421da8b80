"""Mock responses for X Ads API integration tests."""

from __future__ import annotations

# Ads API list responses
ACCOUNTS_PAGE_1 = {
    "request": {"params": {"with_deleted": False}},
    "data": [
        {"id": "18ce54d4x5t", "name": "Main account", "approval_status": "ACCEPTED"},
        {"id": "gq1a1b", "name": "Sandbox", "approval_status": "ACCEPTED"},
    ],
    "data_type": "account",
    "total_count": 5,
    "next_cursor": "8x7v00oow",
}

ACCOUNTS_PAGE_2 = {
    "data": [
        {"id": "5gvk9h", "name": "EU account", "approval_status": "ACCEPTED"},
        {"id": "9v5q2e", "name": "Agency", "approval_status": "ACCEPTED"},
    ],
    "data_type": "account",
    "total_count": 5,
    "next_cursor": "9a1b22ppx",
}

ACCOUNTS_PAGE_3 = {
    "data": [
        {"id": "7aq3rd", "name": "Archive", "approval_status": "ACCEPTED"},
    ],
    "data_type": "account",
    "total_count": 5,
    "next_cursor": None,
}

RATE_LIMITED_RESPONSE = {
    "errors": [{"code": "TOO_MANY_REQUESTS", "message": "Rate limit exceeded"}],
    "request": {"params": {}},
}

INVALID_PARAMETER_RESPONSE = {
    "errors": [
        {
            "code": "INVALID_PARAMETER",
            "message": "Expected a valid entity status, got \"RUNNING\"",
            "parameter": "entity_status",
        }
    ],
    "request": {"params": {"entity_status": "RUNNING"}},
}

# v1.1 chunked media upload responses
MEDIA_UPLOAD_VIDEO_INIT_RESPONSE = {
    "media_id": 1234567890123456790,
    "media_id_string": "1234567890123456790",
    "media_key": "7_1234567890123456790",
    "expires_after_secs": 86400,
}

MEDIA_UPLOAD_VIDEO_FINALIZE_RESPONSE = {
    "media_id": 1234567890123456790,
    "media_id_string": "1234567890123456790",
    "size": 10485760,
    "expires_after_secs": 86400,
    "processing_info": {
        "state": "pending",
        "check_after_secs": 1,
    },
}

MEDIA_UPLOAD_VIDEO_STATUS_PROCESSING = {
    "media_id": 1234567890123456790,
    "media_id_string": "1234567890123456790",
    "processing_info": {
        "state": "in_progress",
        "check_after_secs": 1,
        "progress_percent": 50,
    },
}

MEDIA_UPLOAD_VIDEO_STATUS_SUCCEEDED = {
    "media_id": 1234567890123456790,
    "media_id_string": "1234567890123456790",
    "size": 10485760,
    "processing_info": {
        "state": "succeeded",
        "progress_percent": 100,
    },
}

MEDIA_UPLOAD_VIDEO_STATUS_FAILED = {
    "media_id": 1234567890123456790,
    "media_id_string": "1234567890123456790",
    "processing_info": {
        "state": "failed",
        "error": {
            "code": 1,
            "name": "InvalidMedia",
            "message": "Unsupported video format",
        },
    },
}

# Public API v2 tweet creation
TWEET_RESPONSE = {
    "data": {
        "id": "1445880548472328192",
        "text": "Now available in three colors",
        "edit_history_tweet_ids": ["1445880548472328192"],
    }
}
