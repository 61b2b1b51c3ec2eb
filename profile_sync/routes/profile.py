from __future__ import annotations

import asyncio
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from profile_sync.routes.deps import get_controller, render_state
from profile_sync.services.session_controller import SessionController


router = APIRouter(prefix="/profile", tags=["profile"])


@router.post("/edit")
async def begin_edit(controller: SessionController = Depends(get_controller)) -> Dict[str, Any]:
    if not controller.begin_edit():
        raise HTTPException(status_code=409, detail="Display name cannot be edited right now")
    return render_state(controller)


@router.put("/edit")
async def update_pending(
    display_name: str = Body(..., embed=True),
    controller: SessionController = Depends(get_controller),
) -> Dict[str, Any]:
    if not controller.update_pending(display_name):
        raise HTTPException(status_code=409, detail="Not editing")
    return render_state(controller)


@router.post("/edit/cancel")
async def cancel_edit(controller: SessionController = Depends(get_controller)) -> Dict[str, Any]:
    if not controller.cancel_edit():
        raise HTTPException(status_code=409, detail="Not editing")
    return render_state(controller)


@router.post("/edit/commit", status_code=202)
async def commit_edit(
    display_name: str = Body(..., embed=True),
    controller: SessionController = Depends(get_controller),
) -> Dict[str, Any]:
    try:
        task = controller.commit_edit(display_name)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if task is None:
        raise HTTPException(status_code=409, detail="Not editing")
    return render_state(controller)


@router.post("/refresh")
async def refresh_profile(controller: SessionController = Depends(get_controller)) -> Dict[str, Any]:
    task = controller.refresh_profile()
    if task is None:
        raise HTTPException(status_code=409, detail="Profile cannot be refreshed right now")
    await asyncio.wait({task})
    return render_state(controller)
