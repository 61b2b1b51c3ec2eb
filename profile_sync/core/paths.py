from __future__ import annotations

import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent
ROOT_DIR = BASE_DIR.parent
DATA_DIR = ROOT_DIR / "data"

FIREBASE_CREDENTIALS_PATH = Path(
    os.getenv("FIREBASE_CREDENTIALS_PATH", str(ROOT_DIR / "firebase_key.json"))
)
SESSION_CACHE_PATH = Path(os.getenv("SESSION_CACHE_PATH", str(DATA_DIR / "session.bin")))
SESSION_KEY_PATH = Path(os.getenv("SESSION_KEY_PATH", str(DATA_DIR / "session.key")))
