"""Firebase Admin SDK configuration and initialization"""

import os
import logging

import firebase_admin
from firebase_admin import credentials

logger = logging.getLogger(__name__)

# Track initialization state
_firebase_app = None


def get_credentials_file() -> str:
    """Get the Firebase service account file path based on environment"""
    cred_file = os.getenv("FIREBASE_CREDENTIALS_FILE")
    if cred_file:
        return cred_file

    if os.getenv("ENV", "local") == "production":
        return "firebase-credentials.json"
    return "firebase-credentials-dev.json"


def load_credentials() -> credentials.Base:
    """Service account file when present, otherwise Application Default Credentials.

    Raises:
        FileNotFoundError: If neither a credentials file nor ADC is configured
    """
    cred_file = get_credentials_file()
    if os.path.exists(cred_file):
        logger.info(f"Using Firebase credentials from: {cred_file}")
        return credentials.Certificate(cred_file)

    if os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
        logger.info("Using Application Default Credentials for Firebase")
        return credentials.ApplicationDefault()

    raise FileNotFoundError(
        f"Firebase credentials file not found: {cred_file}. "
        "Provide a service account JSON file or set GOOGLE_APPLICATION_CREDENTIALS."
    )


def initialize_firebase() -> firebase_admin.App:
    """
    Initialize Firebase Admin SDK once and cache the app instance.

    Session cookies are minted by this app, so it must be initialized before
    the first sign-in callback is served.
    """
    global _firebase_app

    if _firebase_app is not None:
        return _firebase_app

    options = {}
    project_id = os.getenv("FIREBASE_PROJECT_ID")
    if project_id:
        options["projectId"] = project_id

    try:
        _firebase_app = firebase_admin.initialize_app(load_credentials(), options or None)
        logger.info("Firebase initialized")
        return _firebase_app
    except Exception as e:
        logger.error(f"Failed to initialize Firebase: {e}")
        raise


def get_firebase_app() -> firebase_admin.App:
    """Get the Firebase app instance, initializing if necessary."""
    if _firebase_app is None:
        return initialize_firebase()
    return _firebase_app


def is_firebase_initialized() -> bool:
    return _firebase_app is not None
