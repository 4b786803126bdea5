"""
Firebase Configuration

Builds the Firestore client shared by the persistence modules.

The service-account key path is read from FIREBASE_CREDENTIALS, optionally
loaded from a .env file next to the application. When no credentials are
configured (or initialization fails) get_db() returns None and callers
raise RuntimeError("Firestore is not available").
"""

import logging
import os
from pathlib import Path

import firebase_admin
from dotenv import load_dotenv
from firebase_admin import credentials, firestore


logger = logging.getLogger(__name__)

# Load .env from the app directory or its parent
env_path = Path(__file__).parent.parent / ".env"
if not env_path.exists():
    env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(env_path)

_db = None


def _initialize_app():
    """Initialize the default Firebase app once, returning it or None."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    cred_path = os.getenv("FIREBASE_CREDENTIALS")
    if not cred_path:
        logger.warning("FIREBASE_CREDENTIALS is not set; Firestore disabled")
        return None

    try:
        cred = credentials.Certificate(cred_path)
        return firebase_admin.initialize_app(cred)
    except (OSError, ValueError) as e:
        logger.error("Could not initialize Firebase from %s: %s", cred_path, e)
        return None


def get_db():
    """
    Get the Firestore client.

    Returns:
        google.cloud.firestore.Client | None: Client instance, or None when
        Firebase could not be initialized.
    """
    global _db
    if _db is not None:
        return _db

    app = _initialize_app()
    if app is None:
        return None

    _db = firestore.client(app)
    return _db
