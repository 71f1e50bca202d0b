import json
import logging
from typing import Optional, Dict, Any

from google.oauth2 import service_account

from zeroclick.core.config import Settings

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def _service_account_info(settings: Settings) -> Optional[Dict[str, Any]]:
    """
    Resolve service account info.

    Inline JSON (GOOGLE_APPLICATION_CREDENTIALS_JSON) wins over the key file
    path (GOOGLE_APPLICATION_CREDENTIALS). None means Application Default
    Credentials.
    """
    if settings.GOOGLE_APPLICATION_CREDENTIALS_JSON is not None:
        raw = settings.GOOGLE_APPLICATION_CREDENTIALS_JSON.get_secret_value()
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(
                "GOOGLE_APPLICATION_CREDENTIALS_JSON is not valid JSON"
            ) from e

    if settings.GOOGLE_APPLICATION_CREDENTIALS:
        with open(settings.GOOGLE_APPLICATION_CREDENTIALS, encoding="utf-8") as fh:
            return json.load(fh)

    return None


def load_credentials(settings: Settings) -> Optional[service_account.Credentials]:
    info = _service_account_info(settings)
    if info is None:
        logger.info("No explicit service account configured, using ADC")
        return None

    return service_account.Credentials.from_service_account_info(
        info, scopes=[CLOUD_PLATFORM_SCOPE]
    )


def describe_credentials(settings: Settings) -> Dict[str, Any]:
    """Which credential source is active. Never returns key material."""
    if settings.GOOGLE_APPLICATION_CREDENTIALS_JSON is not None:
        source = "env_json"
    elif settings.GOOGLE_APPLICATION_CREDENTIALS:
        source = "key_file"
    else:
        source = "application_default"

    info = _service_account_info(settings) or {}
    return {
        "source": source,
        "client_email": info.get("client_email"),
        "project_id": settings.GCP_PROJECT_ID or info.get("project_id"),
    }
