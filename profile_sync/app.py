from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Tuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from profile_sync.core.constants import (
    ALLOWED_ORIGINS,
    GOOGLE_CLIENT_ID,
    HOST,
    NOTICE_BUFFER_SIZE,
    PORT,
)
from profile_sync.core.crypto import SessionCache
from profile_sync.core.logging import setup_logging
from profile_sync.core.paths import (
    FIREBASE_CREDENTIALS_PATH,
    SESSION_CACHE_PATH,
    SESSION_KEY_PATH,
)
from profile_sync.firebase_admin_init import firestore_client, init_firebase
from profile_sync.routes.auth import router as auth_router
from profile_sync.routes.deps import NoticeBuffer
from profile_sync.routes.profile import router as profile_router
from profile_sync.services.document_store import FirestoreDocumentStore
from profile_sync.services.identity import (
    FirebaseCredentialExchange,
    GoogleIdentityProvider,
    IdentityProvider,
)
from profile_sync.services.profile_store import ProfileStore
from profile_sync.services.session_controller import SessionController


logger = logging.getLogger(__name__)


def build_controller() -> Tuple[SessionController, GoogleIdentityProvider]:
    if not GOOGLE_CLIENT_ID:
        raise RuntimeError("GOOGLE_CLIENT_ID is not configured")

    firebase_app = init_firebase(FIREBASE_CREDENTIALS_PATH)
    provider = GoogleIdentityProvider(
        GOOGLE_CLIENT_ID,
        cache=SessionCache.from_paths(SESSION_CACHE_PATH, SESSION_KEY_PATH),
    )
    controller = SessionController(
        provider=provider,
        exchange=FirebaseCredentialExchange(firebase_app),
        profiles=ProfileStore(FirestoreDocumentStore(firestore_client(firebase_app))),
    )
    return controller, provider


def create_app(
    controller: SessionController | None = None,
    identity_provider: IdentityProvider | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()
        if controller is None:
            active, provider = build_controller()
        else:
            active, provider = controller, identity_provider

        notices = NoticeBuffer(NOTICE_BUFFER_SIZE)
        active.subscribe_notices(notices)
        app.state.controller = active
        app.state.identity_provider = provider
        app.state.notices = notices

        await active.start()
        logger.info("Session controller started (state=%s)", active.state.status)
        try:
            yield
        finally:
            await active.aclose()

    app = FastAPI(title="Profile Sync", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if ALLOWED_ORIGINS == ["*"] else ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(profile_router)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    return app


app = create_app()


def main() -> None:
    uvicorn.run(
        "profile_sync.app:app",
        host=HOST,
        port=PORT,
        log_level="info",
    )


if __name__ == "__main__":
    main()
