from __future__ import annotations

import os


USERS_COLLECTION = os.getenv("USERS_COLLECTION", "users")
DEFAULT_DISPLAY_NAME = "Username"
MAX_DISPLAY_NAME_LENGTH = int(os.getenv("MAX_DISPLAY_NAME_LENGTH", "64"))

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "").strip()

HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

ENV_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "").split(",")
    if origin.strip()
]

ALLOWED_ORIGINS = ENV_ALLOWED_ORIGINS or DEFAULT_ALLOWED_ORIGINS

# How many undelivered notices the HTTP layer keeps for GET /notices.
NOTICE_BUFFER_SIZE = 50
