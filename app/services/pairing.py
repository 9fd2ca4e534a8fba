"""
Pairing Manager — invite codes and the Couple lifecycle.

Rules
-----
- A user is in at most one pending-or-active couple. The couple_members row
  (UNIQUE user_id) is written in the same transaction as the couple insert or
  the redemption CAS, so a concurrent second claim fails on commit and is
  reported as InvitePendingError / AlreadyPairedError. The read-side checks
  only give the common case a friendlier error without a write.
- Invite codes are single-use: redemption clears `invite_code` in the same
  conditional UPDATE that sets `partner_b_id` (guarded by partner_b IS NULL),
  so of two concurrent redeemers exactly one wins; the loser gets
  InviteAlreadyRedeemedError.
- Code uniqueness is enforced by the unique constraint on couples.invite_code;
  the generator just retries on collision, up to INVITE_CODE_MAX_ATTEMPTS.
- CoupleStats and StreakRecord rows are provisioned in the redemption
  transaction.

Public API
----------
generate_invite_code(length, alphabet, rng)               -> str
normalize_invite_code(raw)                                -> str
create_invite(db, requester_id, categories, now)          -> Couple
redeem_invite(db, redeemer_id, code, allow_self_join, now) -> Couple
get_couple(db, couple_id)                                 -> Couple
get_couple_for_user(db, user_id)                          -> Couple
require_member(couple, user_id)                           -> None
update_preferred_categories(db, couple_id, user_id, cats) -> Couple
dissolve_couple(db, couple_id, user_id, now)              -> Couple
"""
from __future__ import annotations

import logging
import random
import secrets
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.config import settings
from app.core.errors import (
    AlreadyPairedError,
    CoupleNotFoundError,
    InvalidCategoriesError,
    InviteAlreadyRedeemedError,
    InviteCodeExhaustedError,
    InviteCodeNotFoundError,
    InvitePendingError,
    MalformedInviteCodeError,
    NotAParticipantError,
    SelfJoinError,
)
from app.db.gateway import insert_if_absent, surfaces_unavailable, update_if
from app.models.couple import Couple, CoupleStatus
from app.models.membership import CoupleMember
from app.models.question import QuestionCategory
from app.models.stats import CoupleStats, StreakRecord

logger = logging.getLogger(__name__)

_system_random = secrets.SystemRandom()

_LIVE_STATUSES = (CoupleStatus.pending, CoupleStatus.active)


# ---------------------------------------------------------------------------
# Invite codes
# ---------------------------------------------------------------------------

def generate_invite_code(
    length: Optional[int] = None,
    alphabet: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Uniform random code; uniqueness is the database's job, not ours."""
    length = length or settings.INVITE_CODE_LENGTH
    alphabet = alphabet or settings.INVITE_CODE_ALPHABET
    chooser = rng or _system_random
    return "".join(chooser.choice(alphabet) for _ in range(length))


def normalize_invite_code(raw: str) -> str:
    code = (raw or "").strip().upper()
    if len(code) != settings.INVITE_CODE_LENGTH or any(
        ch not in settings.INVITE_CODE_ALPHABET for ch in code
    ):
        raise MalformedInviteCodeError(code, settings.INVITE_CODE_LENGTH)
    return code


def validate_categories(categories: Iterable[str]) -> list[str]:
    """Dedupe (order kept) and check every tag is a known category."""
    known = {c.value for c in QuestionCategory}
    cleaned: list[str] = []
    for cat in categories:
        cat = cat.strip().lower()
        if cat and cat not in cleaned:
            cleaned.append(cat)
    if not cleaned or any(c not in known for c in cleaned):
        raise InvalidCategoriesError(list(categories))
    return cleaned


def _is_expired(couple: Couple, now: datetime) -> bool:
    if couple.invite_code_expires_at is None:
        return False
    return as_utc(couple.invite_code_expires_at) <= now


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _live_couple_for(db: Session, user_id: str) -> Optional[Couple]:
    """The user's active couple if any, else their pending one."""
    rows = (
        db.query(Couple)
        .filter(
            or_(Couple.partner_a_id == user_id, Couple.partner_b_id == user_id),
            Couple.status.in_(_LIVE_STATUSES),
        )
        .order_by(Couple.id.desc())
        .all()
    )
    for row in rows:
        if row.status == CoupleStatus.active:
            return row
    return rows[0] if rows else None


def _membership_for(db: Session, user_id: str) -> Optional[CoupleMember]:
    return db.query(CoupleMember).filter(CoupleMember.user_id == user_id).first()


def _release_members(db: Session, couple_ids: list[int]) -> None:
    """Free the members of dissolved couples so they can pair again. Does not commit."""
    if couple_ids:
        db.execute(
            delete(CoupleMember)
            .where(CoupleMember.couple_id.in_(couple_ids))
            .execution_options(synchronize_session=False)
        )


def _raise_if_claimed(db: Session, user_id: str) -> None:
    """After a rejected membership write: raise for the couple that holds `user_id`."""
    member = _membership_for(db, user_id)
    if member is None:
        return
    holder = db.get(Couple, member.couple_id, populate_existing=True)
    if holder is not None and holder.status == CoupleStatus.active:
        raise AlreadyPairedError(user_id=user_id, couple_id=holder.id)
    raise InvitePendingError(user_id=user_id, invite_code=(holder.invite_code if holder else None) or "")


@surfaces_unavailable
def get_couple(db: Session, couple_id: int) -> Couple:
    couple = db.get(Couple, couple_id)
    if couple is None:
        raise CoupleNotFoundError(couple_id=couple_id)
    return couple


@surfaces_unavailable
def get_couple_for_user(db: Session, user_id: str) -> Couple:
    couple = _live_couple_for(db, user_id)
    if couple is None:
        raise CoupleNotFoundError(user_id=user_id)
    return couple


def require_member(couple: Couple, user_id: str) -> None:
    if not couple.is_member(user_id):
        raise NotAParticipantError(user_id=user_id, couple_id=couple.id)


# ---------------------------------------------------------------------------
# createInvite
# ---------------------------------------------------------------------------

@surfaces_unavailable
def create_invite(
    db: Session,
    requester_id: str,
    categories: Optional[list[str]] = None,
    now: Optional[datetime] = None,
    code_factory: Callable[[], str] = generate_invite_code,
) -> Couple:
    """
    Persist a new pending Couple owned by `requester_id` with a fresh code.

    An expired pending invite of the requester is dissolved first; a live one
    raises InvitePendingError, an active couple raises AlreadyPairedError.
    """
    now = as_utc(now) if now is not None else utcnow()
    preferred = validate_categories(categories or settings.default_categories_list)

    existing = _live_couple_for(db, requester_id)
    if existing is not None:
        if existing.status == CoupleStatus.active:
            raise AlreadyPairedError(user_id=requester_id, couple_id=existing.id)
        if not _is_expired(existing, now):
            raise InvitePendingError(user_id=requester_id, invite_code=existing.invite_code or "")
        update_if(
            db, Couple,
            Couple.id == existing.id,
            Couple.status == CoupleStatus.pending,
            status=CoupleStatus.dissolved,
            invite_code=None,
            dissolved_at=now,
        )
        _release_members(db, [existing.id])
        db.commit()
        logger.info("dissolved expired invite couple=%s", existing.id)

    expires_at = now + timedelta(days=settings.INVITE_CODE_EXPIRY_DAYS)
    attempts = settings.INVITE_CODE_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        couple = Couple(
            partner_a_id=requester_id,
            status=CoupleStatus.pending,
            invite_code=code_factory(),
            invite_code_expires_at=expires_at,
            preferred_categories=",".join(preferred),
        )
        couple.members.append(CoupleMember(user_id=requester_id))
        if insert_if_absent(db, couple):
            logger.info(
                "invite created couple=%s requester=%s attempt=%d",
                couple.id, requester_id, attempt,
            )
            return couple
        # Either the code or the requester's membership was taken.
        _raise_if_claimed(db, requester_id)
        logger.info("invite code collision on attempt %d, regenerating", attempt)

    raise InviteCodeExhaustedError(attempts=attempts)


# ---------------------------------------------------------------------------
# redeemInvite
# ---------------------------------------------------------------------------

@surfaces_unavailable
def redeem_invite(
    db: Session,
    redeemer_id: str,
    code: str,
    allow_self_join: bool = False,
    now: Optional[datetime] = None,
) -> Couple:
    """
    Join the pending couple that owns `code`.

    allow_self_join is a test/dev override: it lets partner_a redeem their own
    code so one account can drive both sides of a session.
    """
    now = as_utc(now) if now is not None else utcnow()
    normalized = normalize_invite_code(code)

    couple = (
        db.query(Couple)
        .filter(Couple.invite_code == normalized, Couple.status == CoupleStatus.pending)
        .first()
    )
    if couple is None or _is_expired(couple, now):
        raise InviteCodeNotFoundError(normalized)

    self_join = redeemer_id == couple.partner_a_id
    if self_join and not allow_self_join:
        raise SelfJoinError()

    if not self_join:
        current = _live_couple_for(db, redeemer_id)
        if current is not None and current.status == CoupleStatus.active:
            raise AlreadyPairedError(user_id=redeemer_id, couple_id=current.id)

    couple_id = couple.id
    won = update_if(
        db, Couple,
        Couple.id == couple_id,
        Couple.status == CoupleStatus.pending,
        Couple.partner_b_id.is_(None),
        partner_b_id=redeemer_id,
        status=CoupleStatus.active,
        paired_at=now,
        invite_code=None,
        invite_code_expires_at=None,
    )
    if not won:
        db.rollback()
        logger.info("lost redemption race couple=%s redeemer=%s", couple_id, redeemer_id)
        raise InviteAlreadyRedeemedError(normalized)

    # The redeemer's own outstanding invite is dropped so they stay in one couple.
    own_pending = [
        row.id
        for row in db.query(Couple.id).filter(
            Couple.partner_a_id == redeemer_id,
            Couple.status == CoupleStatus.pending,
            Couple.id != couple_id,
        )
    ]
    if own_pending:
        db.execute(
            update(Couple)
            .where(Couple.id.in_(own_pending), Couple.status == CoupleStatus.pending)
            .values(status=CoupleStatus.dissolved, invite_code=None, dissolved_at=now)
            .execution_options(synchronize_session=False)
        )
        _release_members(db, own_pending)
    if not self_join:
        db.add(CoupleMember(couple_id=couple_id, user_id=redeemer_id))
    db.add(CoupleStats(couple_id=couple_id))
    db.add(StreakRecord(couple_id=couple_id))
    try:
        db.commit()
    except IntegrityError:
        # The redeemer joined another couple since the read above; the CAS is undone too.
        db.rollback()
        member = _membership_for(db, redeemer_id)
        logger.info("redeemer already claimed couple=%s redeemer=%s", couple_id, redeemer_id)
        raise AlreadyPairedError(
            user_id=redeemer_id, couple_id=member.couple_id if member else None
        )

    couple = db.get(Couple, couple_id, populate_existing=True)
    logger.info("invite redeemed couple=%s partner_b=%s", couple_id, redeemer_id)
    return couple


# ---------------------------------------------------------------------------
# Couple maintenance
# ---------------------------------------------------------------------------

@surfaces_unavailable
def update_preferred_categories(
    db: Session, couple_id: int, user_id: str, categories: list[str]
) -> Couple:
    """Takes effect from the next session created; existing sessions keep their question."""
    couple = get_couple(db, couple_id)
    require_member(couple, user_id)
    couple.preferred_categories = ",".join(validate_categories(categories))
    db.commit()
    db.refresh(couple)
    return couple


@surfaces_unavailable
def dissolve_couple(
    db: Session, couple_id: int, user_id: str, now: Optional[datetime] = None
) -> Couple:
    """Soft delete. Idempotent: dissolving a dissolved couple returns it unchanged."""
    now = as_utc(now) if now is not None else utcnow()
    couple = get_couple(db, couple_id)
    require_member(couple, user_id)
    changed = update_if(
        db, Couple,
        Couple.id == couple_id,
        Couple.status != CoupleStatus.dissolved,
        status=CoupleStatus.dissolved,
        invite_code=None,
        dissolved_at=now,
    )
    _release_members(db, [couple_id])
    db.commit()
    if changed:
        logger.info("couple dissolved couple=%s by=%s", couple_id, user_id)
    return db.get(Couple, couple_id, populate_existing=True)
