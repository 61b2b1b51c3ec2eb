from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore_async


logger = logging.getLogger(__name__)


def init_firebase(credentials_path: Path) -> Any:
    """Initialise the default Firebase app once and return it."""
    if not firebase_admin._apps:
        if not credentials_path.exists():
            raise FileNotFoundError(f"Firebase credentials not found: {credentials_path}")
        cred = credentials.Certificate(str(credentials_path))
        firebase_admin.initialize_app(cred)
        logger.info("Firebase app initialised from %s", credentials_path)
    return firebase_admin.get_app()


def firestore_client(app: Any) -> Any:
    return firestore_async.client(app)
