"""
Media upload workflows wrapping the chunked INIT/APPEND/FINALIZE/STATUS protocol.
"""

from __future__ import annotations

import enum
import io
import logging
import mimetypes
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterator, Protocol, Union

from x_ads.cancellation import CancellationToken, check_cancelled
from x_ads.config import MEDIA_UPLOAD_URL
from x_ads.exceptions import (
    MediaProcessingFailed,
    MediaProcessingTimeout,
    MediaValidationError,
    UploadFailed,
)
from x_ads.models import ApiResult, MediaProcessingInfo, MediaUploadResult

logger = logging.getLogger(__name__)

MAX_CHUNK_BYTES = 5 * 1024 * 1024
DEFAULT_CHUNK_BYTES = 4 * 1024 * 1024

IMAGE_MAX_BYTES = 5 * 1024 * 1024
GIF_MAX_BYTES = 15 * 1024 * 1024
VIDEO_MAX_BYTES = 512 * 1024 * 1024
ALLOWED_IMAGE_MIME_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
ALLOWED_VIDEO_MIME_TYPES = {"video/mp4"}

PENDING_STATES = {"pending", "in_progress"}
SUCCEEDED_STATES = {"succeeded", "success"}

Payload = Union[bytes, bytearray, memoryview, BinaryIO]


class UploadClient(Protocol):
    """Protocol subset of :class:`~x_ads.clients.api_client.ApiClient` used for uploads."""

    def execute(
        self,
        method: str,
        path: str,
        query: Any = None,
        body: Any = None,
        **kwargs: Any,
    ) -> ApiResult:
        ...


class UploadState(enum.Enum):
    INITIATED = "initiated"
    APPENDING = "appending"
    FINALIZED = "finalized"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class UploadSession:
    """State of one chunked upload; never reused across files."""

    media_id: str
    total_bytes: int
    media_type: str
    media_category: str
    media_key: str | None = None
    segment_index: int = 0
    bytes_sent: int = 0
    state: UploadState = UploadState.INITIATED


@dataclass(slots=True)
class ChunkedUploader:
    """Runs one upload at a time, sending segments strictly in order."""

    client: UploadClient
    upload_url: str = MEDIA_UPLOAD_URL
    chunk_size: int = DEFAULT_CHUNK_BYTES
    poll_interval: float = 2.0
    timeout: float = 300.0
    sleep: Callable[[float], None] = field(default=time.sleep)
    clock: Callable[[], float] = field(default=time.monotonic)

    def __post_init__(self) -> None:
        if not 0 < self.chunk_size <= MAX_CHUNK_BYTES:
            raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_BYTES} bytes")

    def upload(
        self,
        payload: Payload,
        *,
        media_type: str,
        media_category: str,
        total_bytes: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> MediaUploadResult:
        """Initiate, append every chunk, finalize and wait for processing."""

        if total_bytes is None:
            total_bytes = _payload_size(payload)
        session = self.initiate(total_bytes, media_type, media_category, cancel=cancel)
        self.append_all(session, payload, cancel=cancel)
        result = self.finalize(session, cancel=cancel)
        return self.await_processing(session, result, cancel=cancel)

    def initiate(
        self,
        total_bytes: int,
        media_type: str,
        media_category: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> UploadSession:
        if total_bytes <= 0:
            raise MediaValidationError("Cannot upload an empty payload.")

        response = self.client.execute(
            "POST",
            self.upload_url,
            body={
                "command": "INIT",
                "total_bytes": str(total_bytes),
                "media_type": media_type,
                "media_category": media_category,
            },
            cancel=cancel,
        )
        result = _parse_result(response)
        logger.debug("Initiated upload %s (%d bytes, %s)", result.media_id, total_bytes, media_type)
        return UploadSession(
            media_id=result.media_id,
            total_bytes=total_bytes,
            media_type=media_type,
            media_category=media_category,
            media_key=result.media_key,
        )

    def append_all(
        self,
        session: UploadSession,
        payload: Payload,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        if session.state is not UploadState.INITIATED:
            raise UploadFailed(
                f"Upload {session.media_id} cannot append in state {session.state.value}.",
                media_id=session.media_id,
            )

        session.state = UploadState.APPENDING
        try:
            for chunk in _iter_chunks(payload, self.chunk_size):
                if session.bytes_sent + len(chunk) > session.total_bytes:
                    raise UploadFailed(
                        f"Upload {session.media_id} is longer than the declared"
                        f" {session.total_bytes} bytes.",
                        media_id=session.media_id,
                    )
                self.client.execute(
                    "POST",
                    self.upload_url,
                    body={
                        "command": "APPEND",
                        "media_id": session.media_id,
                        "segment_index": str(session.segment_index),
                    },
                    files={"media": ("blob", chunk, "application/octet-stream")},
                    cancel=cancel,
                )
                session.segment_index += 1
                session.bytes_sent += len(chunk)
        except BaseException:
            session.state = UploadState.FAILED
            raise

        if session.bytes_sent != session.total_bytes:
            session.state = UploadState.FAILED
            raise UploadFailed(
                f"Upload {session.media_id} sent {session.bytes_sent} bytes,"
                f" expected {session.total_bytes}.",
                media_id=session.media_id,
            )

    def finalize(
        self,
        session: UploadSession,
        *,
        cancel: CancellationToken | None = None,
    ) -> MediaUploadResult:
        if session.state is not UploadState.APPENDING:
            raise UploadFailed(
                f"Upload {session.media_id} cannot finalize in state {session.state.value}.",
                media_id=session.media_id,
            )

        try:
            response = self.client.execute(
                "POST",
                self.upload_url,
                body={"command": "FINALIZE", "media_id": session.media_id},
                cancel=cancel,
            )
        except BaseException:
            session.state = UploadState.FAILED
            raise

        result = _parse_result(response)
        session.state = UploadState.FINALIZED
        session.media_key = result.media_key or session.media_key

        info = result.processing_info
        if info is None or info.state.lower() in SUCCEEDED_STATES:
            session.state = UploadState.SUCCEEDED
        elif info.state.lower() == "failed":
            session.state = UploadState.FAILED
            raise _processing_failed(session, info)
        else:
            session.state = UploadState.PROCESSING
        return result

    def await_processing(
        self,
        session: UploadSession,
        result: MediaUploadResult,
        *,
        cancel: CancellationToken | None = None,
    ) -> MediaUploadResult:
        """Poll STATUS until processing succeeds, fails or ``timeout`` elapses."""

        if session.state is UploadState.SUCCEEDED:
            return _with_session_key(result, session)

        info = result.processing_info
        deadline = self.clock() + self.timeout
        current = result
        while info and info.state.lower() in PENDING_STATES:
            wait_seconds = info.check_after_secs or self.poll_interval
            if self.clock() + wait_seconds > deadline:
                session.state = UploadState.FAILED
                raise MediaProcessingTimeout(
                    "Timed out waiting for media processing to complete.",
                    media_id=session.media_id,
                )
            check_cancelled(cancel, f"processing poll for {session.media_id}")
            self.sleep(wait_seconds)

            response = self.client.execute(
                "GET",
                self.upload_url,
                {"command": "STATUS", "media_id": session.media_id},
                cancel=cancel,
            )
            current = _parse_result(response)
            info = current.processing_info
            if info is not None:
                logger.debug(
                    "Upload %s processing: %s (%s%%)",
                    session.media_id,
                    info.state,
                    info.progress_percent,
                )

            if info and info.state.lower() == "failed":
                session.state = UploadState.FAILED
                raise _processing_failed(session, info)

        if info and info.state.lower() not in SUCCEEDED_STATES:
            session.state = UploadState.FAILED
            raise MediaProcessingFailed(
                f"Media processing ended in unexpected state '{info.state}'.",
                media_id=session.media_id,
            )

        session.state = UploadState.SUCCEEDED
        return _with_session_key(current, session)


@dataclass(slots=True)
class MediaService:
    """Validates local media files and uploads them through a ChunkedUploader."""

    uploader: ChunkedUploader

    def upload_file(self, path: Path, *, cancel: CancellationToken | None = None) -> MediaUploadResult:
        """Upload an image, GIF or video, choosing the category from its MIME type."""

        path = self._validate_path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        if mime_type in ALLOWED_VIDEO_MIME_TYPES:
            return self.upload_video(path, cancel=cancel)
        return self.upload_image(path, cancel=cancel)

    def upload_image(
        self,
        path: Path,
        *,
        media_category: str = "tweet_image",
        cancel: CancellationToken | None = None,
    ) -> MediaUploadResult:
        """
        Upload an image file (up to 5MB, animated GIF up to 15MB).

        GIFs always use the ``tweet_gif`` category because they go through
        server side processing.

        Raises:
            MediaValidationError: If file size exceeds limit or MIME type unsupported
        """
        path = self._validate_path(path)
        mime_type = self._validate_image(path)
        if mime_type == "image/gif":
            media_category = "tweet_gif"
        return self._upload(path, media_category=media_category, mime_type=mime_type, cancel=cancel)

    def upload_video(
        self,
        path: Path,
        *,
        media_category: str = "tweet_video",
        cancel: CancellationToken | None = None,
    ) -> MediaUploadResult:
        """
        Upload an mp4 video (up to 512MB).

        Raises:
            MediaValidationError: If file size exceeds limit or MIME type unsupported
            MediaProcessingTimeout: If processing takes too long
            MediaProcessingFailed: If X's processing fails
        """
        path = self._validate_path(path)
        mime_type = self._validate_video(path)
        return self._upload(path, media_category=media_category, mime_type=mime_type, cancel=cancel)

    def _upload(
        self,
        path: Path,
        *,
        media_category: str,
        mime_type: str,
        cancel: CancellationToken | None,
    ) -> MediaUploadResult:
        size = path.stat().st_size
        logger.info("Uploading %s (%d bytes, %s)", path.name, size, media_category)
        with path.open("rb") as file_obj:
            return self.uploader.upload(
                file_obj,
                media_type=mime_type,
                media_category=media_category,
                total_bytes=size,
                cancel=cancel,
            )

    @staticmethod
    def _validate_path(path: Path) -> Path:
        resolved = Path(path).expanduser()
        if not resolved.exists() or not resolved.is_file():
            raise MediaValidationError(f"Media file '{path}' does not exist or is not a file.")
        return resolved

    @staticmethod
    def _validate_image(path: Path) -> str:
        mime_type, _ = mimetypes.guess_type(path.name)
        if mime_type not in ALLOWED_IMAGE_MIME_TYPES:
            raise MediaValidationError(
                f"Unsupported image MIME type '{mime_type}' for '{path.name}'."
            )
        limit = GIF_MAX_BYTES if mime_type == "image/gif" else IMAGE_MAX_BYTES
        size = path.stat().st_size
        if size > limit:
            raise MediaValidationError(f"Image '{path}' exceeds the {limit} byte size limit.")
        if size == 0:
            raise MediaValidationError(f"Image '{path}' is empty.")
        return mime_type

    @staticmethod
    def _validate_video(path: Path) -> str:
        mime_type, _ = mimetypes.guess_type(path.name)
        if mime_type not in ALLOWED_VIDEO_MIME_TYPES:
            raise MediaValidationError(
                f"Unsupported video MIME type '{mime_type}' for '{path.name}'."
            )
        size = path.stat().st_size
        if size > VIDEO_MAX_BYTES:
            raise MediaValidationError(
                f"Video '{path}' exceeds the {VIDEO_MAX_BYTES} byte size limit."
            )
        if size == 0:
            raise MediaValidationError(f"Video '{path}' is empty.")
        return mime_type


def _parse_result(response: ApiResult) -> MediaUploadResult:
    body = response.body
    if "media_id" not in body and isinstance(response.data, dict):
        body = response.data
    try:
        return MediaUploadResult.from_api(body)
    except (TypeError, ValueError) as exc:
        raise UploadFailed(
            f"Unexpected media upload response: {body!r}", status=response.status
        ) from exc


def _with_session_key(result: MediaUploadResult, session: UploadSession) -> MediaUploadResult:
    if result.media_key is None and session.media_key is not None:
        return result.model_copy(update={"media_key": session.media_key})
    return result


def _processing_failed(session: UploadSession, info: MediaProcessingInfo) -> MediaProcessingFailed:
    reason = info.error.message if info.error and info.error.message else "Media processing failed."
    return MediaProcessingFailed(
        reason,
        reason=reason,
        media_id=session.media_id,
        errors=[info.error.model_dump()] if info.error else None,
    )


def _payload_size(payload: Payload) -> int:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return len(payload)
    position = payload.tell()
    payload.seek(0, io.SEEK_END)
    size = payload.tell() - position
    payload.seek(position)
    return size


def _iter_chunks(payload: Payload, chunk_size: int) -> Iterator[bytes]:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        view = memoryview(payload)
        for start in range(0, len(view), chunk_size):
            yield bytes(view[start : start + chunk_size])
        return
    while True:
        chunk = payload.read(chunk_size)
        if not chunk:
            return
        yield chunk
