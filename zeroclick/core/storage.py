import asyncio
import logging
import re
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from zeroclick.core.config import Settings
from zeroclick.core.credentials import load_credentials
from zeroclick.core.errors import UploadRejectedError, UpstreamServiceError
from zeroclick.core.schemas import UploadUrlResponse

logger = logging.getLogger(__name__)

ALLOWED_AUDIO_TYPES = {
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/flac",
    "audio/x-flac",
    "audio/ogg",
    "audio/webm",
}


def safe_file_name(file_name: str) -> str:
    """Keep the last path component, only [A-Za-z0-9._-], at most 100 chars."""
    base = file_name.replace("\\", "/").split("/")[-1]
    base = re.sub(r"[^A-Za-z0-9._-]", "_", base).strip("._")
    return base[:100] or "audio"


def build_object_name(file_name: str, today: date, token: Optional[str] = None) -> str:
    """
    Namespace uploads by ingestion date plus a random token.

    Example:
        "Call with Raj.mp3" → "2024-03-05/3f9c...e1-Call_with_Raj.mp3"
    """
    token = token or uuid.uuid4().hex
    return f"{today.isoformat()}/{token}-{safe_file_name(file_name)}"


class UploadBroker:
    """Short-lived, content-type scoped, size-bounded upload URLs."""

    def __init__(self, settings: Settings, client: Optional[storage.Client] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = storage.Client(
                project=self.settings.GCP_PROJECT_ID,
                credentials=load_credentials(self.settings),
            )
        return self._client

    def validate(self, file_type: str, file_size: int):
        if file_type.lower() not in ALLOWED_AUDIO_TYPES:
            raise UploadRejectedError(f"Unsupported file type: {file_type}")
        if file_size <= 0 or file_size > self.settings.MAX_UPLOAD_BYTES:
            limit_mb = self.settings.MAX_UPLOAD_BYTES // (1024 * 1024)
            raise UploadRejectedError(f"File must be between 1 byte and {limit_mb} MB")
        if not self.settings.UPLOAD_BUCKET:
            raise UpstreamServiceError("Upload bucket is not configured")

    def _sign(self, object_name: str, file_type: str, expiration: timedelta) -> str:
        blob = self.client.bucket(self.settings.UPLOAD_BUCKET).blob(object_name)
        return blob.generate_signed_url(
            version="v4",
            expiration=expiration,
            method="PUT",
            content_type=file_type,
            headers={"x-goog-content-length-range": f"0,{self.settings.MAX_UPLOAD_BYTES}"},
        )

    async def signed_upload_url(
        self, file_name: str, file_type: str, file_size: int
    ) -> UploadUrlResponse:
        self.validate(file_type, file_size)

        now = datetime.now(timezone.utc)
        object_name = build_object_name(file_name, now.date())
        expiration = timedelta(minutes=self.settings.UPLOAD_URL_TTL_MINUTES)

        try:
            # blocking SDK call
            url = await asyncio.to_thread(self._sign, object_name, file_type, expiration)
        # AttributeError: credentials without a private key cannot sign
        except (
            gcp_exceptions.GoogleAPIError,
            auth_exceptions.GoogleAuthError,
            OSError,
            ValueError,
            AttributeError,
        ) as e:
            logger.error(f"Failed to create signed URL for {object_name}: {e}")
            raise UpstreamServiceError("Failed to create signed URL") from e

        logger.info(f"Issued upload URL for {object_name}")
        return UploadUrlResponse(
            url=url,
            bucket=self.settings.UPLOAD_BUCKET,
            object_name=object_name,
            expires_at=now + expiration,
            headers={
                "Content-Type": file_type,
                "x-goog-content-length-range": f"0,{self.settings.MAX_UPLOAD_BYTES}",
            },
        )
