from __future__ import annotations

import asyncio
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from profile_sync.routes.deps import (
    NoticeBuffer,
    get_controller,
    get_identity_provider,
    get_notices,
    render_state,
)
from profile_sync.services.identity import GoogleIdentityProvider
from profile_sync.services.session_controller import SessionController


router = APIRouter(tags=["session"])


async def _settle_sign_in(controller: SessionController) -> None:
    task = controller.sign_in_task
    if task is not None and not task.done():
        await asyncio.wait({task})


@router.get("/session")
def get_session(controller: SessionController = Depends(get_controller)) -> Dict[str, Any]:
    return render_state(controller)


@router.post("/session/sign-in", status_code=202)
async def begin_sign_in(controller: SessionController = Depends(get_controller)) -> Dict[str, Any]:
    if controller.begin_sign_in() is None:
        raise HTTPException(status_code=409, detail=f"Cannot sign in while {controller.state.status}")
    return render_state(controller)


@router.post("/session/sign-in/result")
async def sign_in_result(
    id_token: str = Body(..., embed=True),
    controller: SessionController = Depends(get_controller),
    provider: GoogleIdentityProvider = Depends(get_identity_provider),
) -> Dict[str, Any]:
    if not provider.deliver(id_token):
        raise HTTPException(status_code=409, detail="No sign-in is waiting for a result")
    await _settle_sign_in(controller)
    return render_state(controller)


@router.post("/session/sign-in/cancel")
async def cancel_sign_in(
    controller: SessionController = Depends(get_controller),
    provider: GoogleIdentityProvider = Depends(get_identity_provider),
) -> Dict[str, Any]:
    if not provider.cancel():
        raise HTTPException(status_code=409, detail="No sign-in is waiting for a result")
    await _settle_sign_in(controller)
    return render_state(controller)


@router.post("/session/sign-out")
async def sign_out(controller: SessionController = Depends(get_controller)) -> Dict[str, Any]:
    if not await controller.sign_out():
        raise HTTPException(status_code=409, detail="Already signed out")
    return render_state(controller)


@router.get("/notices")
def drain_notices(notices: NoticeBuffer = Depends(get_notices)) -> Dict[str, Any]:
    return {"notices": [notice.model_dump() for notice in notices.drain()]}
