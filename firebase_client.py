"""
Firebase Admin initialization and Firestore client access.
The app is initialized on first use so importing modules has no side effects.
"""

import logging
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from config import settings

logger = logging.getLogger(__name__)

_db: Optional[Any] = None


def init_firebase() -> None:
    """Initialize the default Firebase app once."""
    try:
        firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
        firebase_admin.initialize_app(cred)
        logger.info("Firebase app initialized")


def get_db():
    """Get the Firestore client, creating it on first call."""
    global _db
    if _db is None:
        init_firebase()
        _db = firestore.client()
    return _db


def set_db(client) -> None:
    """Replace the Firestore client (tests and scripts)."""
    global _db
    _db = client
