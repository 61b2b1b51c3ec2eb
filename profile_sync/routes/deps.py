from __future__ import annotations

from collections import deque
from typing import Any, Dict, List

from fastapi import HTTPException, Request

from profile_sync.models.session import Notice
from profile_sync.services.identity import GoogleIdentityProvider
from profile_sync.services.session_controller import SessionController


class NoticeBuffer:
    """Holds notices until the UI layer collects them."""

    def __init__(self, maxlen: int) -> None:
        self._items: deque[Notice] = deque(maxlen=maxlen)

    def __call__(self, notice: Notice) -> None:
        self._items.append(notice)

    def drain(self) -> List[Notice]:
        items = list(self._items)
        self._items.clear()
        return items


def get_controller(request: Request) -> SessionController:
    return request.app.state.controller


def get_identity_provider(request: Request) -> GoogleIdentityProvider:
    provider = request.app.state.identity_provider
    if not isinstance(provider, GoogleIdentityProvider):
        raise HTTPException(status_code=501, detail="Interactive sign-in result not supported")
    return provider


def get_notices(request: Request) -> NoticeBuffer:
    return request.app.state.notices


def render_state(controller: SessionController) -> Dict[str, Any]:
    return controller.state.model_dump(mode="json")
