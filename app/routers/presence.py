"""
Presence router.

POST /presence/heartbeat          — publish the caller's status/screen
GET  /presence/{couple_id}        — the partner's last-known state
WS   /presence/ws/{couple_id}     — live partner updates; client frames are heartbeats
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import SyncException
from app.db.base import get_db
from app.schemas.presence import HeartbeatRequest, PartnerPresenceResponse, PresenceResponse
from app.services.pairing import get_couple, require_member
from app.services.presence import PresenceState, PresenceTracker, get_presence_tracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/presence", tags=["presence"])


def _state_to_response(state: PresenceState) -> PresenceResponse:
    return PresenceResponse(
        couple_id=state.couple_id,
        user_id=state.user_id,
        status=state.status,
        current_screen=state.current_screen,
        last_seen_at=state.last_seen_at.isoformat() if state.last_seen_at else None,
    )


def _state_payload(state: PresenceState) -> dict[str, Any]:
    return {"type": "presence", **_state_to_response(state).model_dump()}


@router.post(
    "/heartbeat",
    response_model=PresenceResponse,
    summary="Publish the caller's presence",
)
def heartbeat(
    payload: HeartbeatRequest,
    db: Session = Depends(get_db),
    tracker: PresenceTracker = Depends(get_presence_tracker),
):
    """Call every PRESENCE_HEARTBEAT_SECONDS and on every screen change."""
    couple = get_couple(db, payload.couple_id)
    require_member(couple, payload.user_id)
    state = tracker.heartbeat(
        couple.id, payload.user_id, status=payload.status, current_screen=payload.current_screen
    )
    return _state_to_response(state)


@router.get(
    "/{couple_id}",
    response_model=PartnerPresenceResponse,
    summary="The partner's presence as seen by the caller",
)
def partner_presence(
    couple_id: int,
    user_id: str = Query(min_length=1, max_length=64),
    db: Session = Depends(get_db),
    tracker: PresenceTracker = Depends(get_presence_tracker),
):
    couple = get_couple(db, couple_id)
    require_member(couple, user_id)
    partner = tracker.get_partner_state(couple, user_id)
    return PartnerPresenceResponse(
        partner=_state_to_response(partner) if partner else None,
        heartbeat_seconds=settings.PRESENCE_HEARTBEAT_SECONDS,
        timeout_seconds=settings.PRESENCE_TIMEOUT_SECONDS,
    )


def _authorize(db: Session, couple_id: int, user_id: str) -> Optional[str]:
    """Return the partner id, or raise if the user is not in the couple."""
    try:
        couple = get_couple(db, couple_id)
        require_member(couple, user_id)
        return couple.partner_of(user_id)
    finally:
        # Release the connection; the socket may stay open for a long time.
        db.close()


@router.websocket("/ws/{couple_id}")
async def presence_socket(
    ws: WebSocket,
    couple_id: int,
    user_id: str,
    db: Session = Depends(get_db),
    tracker: PresenceTracker = Depends(get_presence_tracker),
):
    """
    Server → client: {"type": "presence", ...} for every partner update.
    Client → server: {"status": "...", "current_screen": "..."} heartbeats.
    A frame that is not a JSON object gets {"type": "error", "code": "INVALID_FRAME"}.
    Closing the socket publishes offline.
    """
    try:
        partner_id = _authorize(db, couple_id, user_id)
    except SyncException as exc:
        logger.info("presence socket rejected couple=%s user=%s: %s", couple_id, user_id, exc.code)
        await ws.close(code=4403)
        return

    await ws.accept()
    loop = asyncio.get_running_loop()
    outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def relay(state: PresenceState) -> None:
        if state.user_id != user_id:
            loop.call_soon_threadsafe(outbox.put_nowait, _state_payload(state))

    unsubscribe = tracker.channel.subscribe(couple_id, relay)
    tracker.heartbeat(couple_id, user_id, status="online")
    if partner_id:
        await ws.send_json(_state_payload(tracker.get_state(couple_id, partner_id)))

    async def pump() -> None:
        while True:
            await ws.send_json(await outbox.get())

    sender = asyncio.create_task(pump())
    try:
        while True:
            raw = await ws.receive_text()
            try:
                frame = json.loads(raw)
                tracker.heartbeat(
                    couple_id,
                    user_id,
                    status=frame.get("status"),
                    current_screen=frame.get("current_screen"),
                )
            except (ValueError, AttributeError):
                await ws.send_json({"type": "error", "code": "INVALID_FRAME"})
    except WebSocketDisconnect:
        logger.info("presence socket closed couple=%s user=%s", couple_id, user_id)
    finally:
        sender.cancel()
        unsubscribe()
        tracker.disconnect(couple_id, user_id)
