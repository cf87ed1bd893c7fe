"""Firebase initialization and message helpers.

Integration details:
- Credentials come from `FIREBASE_CREDENTIALS_PATH` (service account JSON file) or the
  inline `FIREBASE_PROJECT_ID` / `FIREBASE_PRIVATE_KEY` / `FIREBASE_CLIENT_EMAIL` settings.
- Initialization fails open: errors are logged and the app runs without push.
- `send_message` is the blocking FCM call; it raises so callers can classify failures.
"""

import logging
from typing import Dict, Optional

import firebase_admin
from firebase_admin import credentials, messaging

from app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _build_credentials(settings: Settings):
    if settings.firebase_credentials_path:
        return credentials.Certificate(settings.firebase_credentials_path)
    if settings.firebase_private_key and settings.firebase_project_id:
        client_email = settings.firebase_client_email or (
            f"firebase-adminsdk@{settings.firebase_project_id}.iam.gserviceaccount.com"
        )
        return credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                # Keys from env files usually carry escaped newlines.
                "private_key": settings.firebase_private_key.replace("\\n", "\n"),
                "client_email": client_email,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
    return None


def initialize_firebase(settings: Optional[Settings] = None) -> bool:
    """Initialize the default Firebase app.

    Returns True when an app is available; returns False and logs when credentials are
    absent or invalid so non-push code paths keep working.
    """
    settings = settings or default_settings
    if firebase_admin._apps:
        return True
    try:
        cred = _build_credentials(settings)
        if cred is None:
            logger.warning("Firebase credentials missing, push notifications disabled")
            return False
        options = (
            {"projectId": settings.firebase_project_id}
            if settings.firebase_project_id
            else None
        )
        firebase_admin.initialize_app(cred, options)
        logger.info("Firebase initialized successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize Firebase: {str(e)}")
        return False


def build_message(
    token: str, title: str, body: str, data: Optional[Dict[str, str]] = None
) -> messaging.Message:
    """Build a single-device FCM message; `data` values must already be strings."""
    return messaging.Message(
        notification=messaging.Notification(title=title, body=body),
        data=data or {},
        token=token,
    )


def send_message(message: messaging.Message) -> str:
    """Send one FCM message and return its message id. Blocking; raises on failure."""
    return messaging.send(message)


__all__ = ["initialize_firebase", "build_message", "send_message"]
