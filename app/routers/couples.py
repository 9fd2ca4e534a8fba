"""
Couples router.

POST /couples/invite            — create a pending couple with a fresh invite code
POST /couples/redeem            — join a pending couple by code
GET  /couples/me                — the caller's current couple
PUT  /couples/{id}/categories   — change preferred question categories
POST /couples/{id}/dissolve     — soft-delete the couple
GET  /couples/{id}/stats        — CoupleStats + StreakRecord (a lapsed streak reads 0)
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.clock import as_utc, game_day
from app.core.config import settings
from app.core.errors import InvalidOperationError
from app.db.base import get_db
from app.models.couple import Couple
from app.schemas.couple import (
    CoupleResponse,
    CreateInviteRequest,
    InviteResponse,
    RedeemInviteRequest,
    UpdateCategoriesRequest,
    UserRequest,
)
from app.schemas.stats import CoupleStatsResponse
from app.services import pairing
from app.services.notifications import NotificationEvent, default_notifier
from app.services.stats import current_streak_on, get_stats, get_streak

router = APIRouter(prefix="/couples", tags=["couples"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _ev(v) -> str:
    """Extract bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


def _iso(dt) -> str | None:
    return as_utc(dt).isoformat() if dt else None


def couple_to_response(couple: Couple) -> CoupleResponse:
    return CoupleResponse(
        id=couple.id,
        partner_a_id=couple.partner_a_id,
        partner_b_id=couple.partner_b_id,
        status=_ev(couple.status),
        invite_code=couple.invite_code,
        invite_code_expires_at=_iso(couple.invite_code_expires_at),
        preferred_categories=couple.category_list,
        paired_at=_iso(couple.paired_at),
        created_at=_iso(couple.created_at) or "",
    )


# ---------------------------------------------------------------------------
# Pairing
# ---------------------------------------------------------------------------

@router.post(
    "/invite",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an invite code",
    responses={
        422: {"description": "Already paired, invite already pending, or unknown categories."},
        503: {"description": "Could not allocate a unique code, or storage unavailable."},
    },
)
def create_invite(payload: CreateInviteRequest, db: Session = Depends(get_db)):
    """
    Start a pairing. The returned code is single-use and expires after
    `INVITE_CODE_EXPIRY_DAYS`.
    """
    couple = pairing.create_invite(db, payload.user_id, categories=payload.categories)
    return InviteResponse(
        couple_id=couple.id,
        invite_code=couple.invite_code,
        expires_at=_iso(couple.invite_code_expires_at),
    )


@router.post(
    "/redeem",
    response_model=CoupleResponse,
    summary="Redeem an invite code",
    responses={
        404: {"description": "Code unknown or expired."},
        409: {"description": "Code was redeemed by someone else first."},
        422: {"description": "Self-join or malformed code."},
    },
)
def redeem_invite(payload: RedeemInviteRequest, db: Session = Depends(get_db)):
    if payload.dev_allow_self_join and not settings.dev_overrides_enabled:
        raise InvalidOperationError(message="dev_allow_self_join is disabled in this environment.")
    couple = pairing.redeem_invite(
        db,
        payload.user_id,
        payload.invite_code,
        allow_self_join=payload.dev_allow_self_join,
    )
    if couple.partner_a_id != couple.partner_b_id:
        default_notifier.notify(
            couple.partner_a_id,
            NotificationEvent.PARTNER_JOINED,
            {"couple_id": couple.id, "partner_id": couple.partner_b_id},
        )
    return couple_to_response(couple)


@router.get(
    "/me",
    response_model=CoupleResponse,
    summary="The caller's active or pending couple",
    responses={404: {"description": "User is not in a couple."}},
)
def my_couple(user_id: str = Query(min_length=1, max_length=64), db: Session = Depends(get_db)):
    return couple_to_response(pairing.get_couple_for_user(db, user_id))


@router.put(
    "/{couple_id}/categories",
    response_model=CoupleResponse,
    summary="Change preferred question categories",
)
def update_categories(
    couple_id: int, payload: UpdateCategoriesRequest, db: Session = Depends(get_db)
):
    couple = pairing.update_preferred_categories(db, couple_id, payload.user_id, payload.categories)
    return couple_to_response(couple)


@router.post(
    "/{couple_id}/dissolve",
    response_model=CoupleResponse,
    summary="Dissolve a couple (soft delete)",
)
def dissolve(couple_id: int, payload: UserRequest, db: Session = Depends(get_db)):
    return couple_to_response(pairing.dissolve_couple(db, couple_id, payload.user_id))


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

@router.get(
    "/{couple_id}/stats",
    response_model=CoupleStatsResponse,
    summary="Sync score, totals and streak",
)
def couple_stats(
    couple_id: int,
    user_id: str = Query(min_length=1, max_length=64),
    db: Session = Depends(get_db),
):
    couple = pairing.get_couple(db, couple_id)
    pairing.require_member(couple, user_id)
    stats = get_stats(db, couple_id)
    streak = get_streak(db, couple_id)
    return CoupleStatsResponse(
        couple_id=couple_id,
        total_games=stats.total_games,
        total_matches=stats.total_matches,
        sync_score=stats.sync_score,
        current_streak=current_streak_on(streak, game_day()),
        longest_streak=streak.longest_streak,
        last_played_date=str(streak.last_played_date) if streak.last_played_date else None,
    )
