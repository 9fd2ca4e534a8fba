"""
Tests for the pairing manager: invite codes, redemption and the Couple lifecycle.

Covers:
- Code generation and normalization against the configured alphabet
- Collision retry and exhaustion (via an injected code factory)
- Expiry boundaries (one second either side)
- Single-use redemption, including a redeemer that loses the race
- One live couple per user, held by couple_members even when the read-side
  check saw stale state
- Self-join rejection and the dev override
- Stats / streak rows provisioned at redemption
"""
import random
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

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
from app.models.couple import Couple, CoupleStatus
from app.models.membership import CoupleMember
from app.models.stats import CoupleStats, StreakRecord
from app.services import pairing


def _user(prefix="u") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _fixed(*codes):
    it = iter(codes)
    return lambda: next(it)


T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Invite codes
# ---------------------------------------------------------------------------

class TestInviteCodes:
    def test_generated_code_uses_alphabet_and_length(self):
        code = pairing.generate_invite_code(rng=random.Random(7))
        assert len(code) == settings.INVITE_CODE_LENGTH
        assert all(ch in settings.INVITE_CODE_ALPHABET for ch in code)

    def test_ambiguous_glyphs_never_generated(self):
        rng = random.Random(42)
        codes = "".join(pairing.generate_invite_code(rng=rng) for _ in range(200))
        for glyph in "01OI":
            assert glyph not in codes

    def test_custom_length(self):
        assert len(pairing.generate_invite_code(length=12)) == 12

    def test_normalize_strips_and_uppercases(self):
        assert pairing.normalize_invite_code("  a7k9mxpq ") == "A7K9MXPQ"

    @pytest.mark.parametrize("raw", ["", "A7K9MXP", "A7K9MXPQR", "A7K9MXP0", "A7K9-XPQ"])
    def test_malformed_codes_rejected(self, raw):
        with pytest.raises(MalformedInviteCodeError):
            pairing.normalize_invite_code(raw)


# ---------------------------------------------------------------------------
# createInvite
# ---------------------------------------------------------------------------

class TestCreateInvite:
    def test_creates_pending_couple(self, db):
        a = _user()
        couple = pairing.create_invite(db, a, now=T0)
        assert couple.status == CoupleStatus.pending
        assert couple.partner_a_id == a
        assert couple.partner_b_id is None
        assert len(couple.invite_code) == settings.INVITE_CODE_LENGTH
        expires = couple.invite_code_expires_at.replace(tzinfo=timezone.utc)
        assert expires == T0 + timedelta(days=settings.INVITE_CODE_EXPIRY_DAYS)

    def test_default_categories_applied(self, db):
        couple = pairing.create_invite(db, _user())
        assert couple.category_list == settings.default_categories_list

    def test_custom_categories_deduped(self, db):
        couple = pairing.create_invite(db, _user(), categories=["fun", "Heart", "fun"])
        assert couple.category_list == ["fun", "heart"]

    def test_unknown_category_rejected(self, db):
        with pytest.raises(InvalidCategoriesError):
            pairing.create_invite(db, _user(), categories=["astrology"])

    def test_second_live_invite_rejected(self, db):
        a = _user()
        pairing.create_invite(db, a, now=T0)
        with pytest.raises(InvitePendingError):
            pairing.create_invite(db, a, now=T0 + timedelta(hours=1))

    def test_expired_invite_replaced(self, db):
        a = _user()
        old = pairing.create_invite(db, a, now=T0)
        old_id = old.id
        later = T0 + timedelta(days=settings.INVITE_CODE_EXPIRY_DAYS, seconds=1)
        new = pairing.create_invite(db, a, now=later)
        assert new.id != old_id
        assert db.get(Couple, old_id, populate_existing=True).status == CoupleStatus.dissolved

    def test_active_member_cannot_invite(self, db, make_couple):
        _, a, b = make_couple()
        with pytest.raises(AlreadyPairedError):
            pairing.create_invite(db, a)
        with pytest.raises(AlreadyPairedError):
            pairing.create_invite(db, b)

    def test_concurrent_second_invite_rejected_by_membership(self, db, monkeypatch):
        """Both requests passed the live-couple check before either committed."""
        a = _user()
        monkeypatch.setattr(pairing, "_live_couple_for", lambda session, user_id: None)
        first = pairing.create_invite(db, a, now=T0)
        with pytest.raises(InvitePendingError) as exc:
            pairing.create_invite(db, a, now=T0)
        assert exc.value.details["invite_code"] == first.invite_code
        pending = db.query(Couple).filter_by(partner_a_id=a, status=CoupleStatus.pending).count()
        assert pending == 1

    def test_concurrent_invite_after_pairing_rejected(self, db, make_couple, monkeypatch):
        _, a, _ = make_couple()
        monkeypatch.setattr(pairing, "_live_couple_for", lambda session, user_id: None)
        with pytest.raises(AlreadyPairedError):
            pairing.create_invite(db, a)
        assert db.query(Couple).filter_by(partner_a_id=a, status=CoupleStatus.pending).count() == 0

    def test_collision_retries_with_new_code(self, db):
        taken = pairing.create_invite(db, _user()).invite_code
        fresh = pairing.generate_invite_code()
        couple = pairing.create_invite(db, _user(), code_factory=_fixed(taken, fresh))
        assert couple.invite_code == fresh

    def test_collisions_exhaust_attempts(self, db):
        taken = pairing.create_invite(db, _user()).invite_code
        with pytest.raises(InviteCodeExhaustedError) as exc:
            pairing.create_invite(db, _user(), code_factory=lambda: taken)
        assert exc.value.details["attempts"] == settings.INVITE_CODE_MAX_ATTEMPTS
        assert exc.value.http_status == 503


# ---------------------------------------------------------------------------
# redeemInvite
# ---------------------------------------------------------------------------

class TestRedeemInvite:
    def test_redeem_activates_couple(self, db):
        a, b = _user("a"), _user("b")
        invite = pairing.create_invite(db, a, now=T0, code_factory=_fixed("A7K9MXPQ"))
        couple = pairing.redeem_invite(db, b, "a7k9mxpq", now=T0 + timedelta(minutes=5))
        assert couple.id == invite.id
        assert couple.status == CoupleStatus.active
        assert couple.partner_a_id == a
        assert couple.partner_b_id == b
        assert couple.invite_code is None
        assert couple.paired_at is not None

    def test_stats_and_streak_rows_provisioned(self, db, make_couple):
        couple, _, _ = make_couple()
        stats = db.query(CoupleStats).filter_by(couple_id=couple.id).one()
        streak = db.query(StreakRecord).filter_by(couple_id=couple.id).one()
        assert (stats.total_games, stats.total_matches, stats.sync_score) == (0, 0, 0)
        assert (streak.current_streak, streak.longest_streak, streak.last_played_date) == (0, 0, None)

    def test_code_is_single_use(self, db):
        invite = pairing.create_invite(db, _user())
        code = invite.invite_code
        pairing.redeem_invite(db, _user(), code)
        with pytest.raises(InviteCodeNotFoundError):
            pairing.redeem_invite(db, _user(), code)

    def test_unknown_code(self, db):
        with pytest.raises(InviteCodeNotFoundError) as exc:
            pairing.redeem_invite(db, _user(), pairing.generate_invite_code())
        assert exc.value.http_status == 404

    def test_redeem_one_second_before_expiry(self, db):
        invite = pairing.create_invite(db, _user(), now=T0)
        expires = T0 + timedelta(days=settings.INVITE_CODE_EXPIRY_DAYS)
        couple = pairing.redeem_invite(db, _user(), invite.invite_code, now=expires - timedelta(seconds=1))
        assert couple.status == CoupleStatus.active

    def test_redeem_one_second_after_expiry(self, db):
        invite = pairing.create_invite(db, _user(), now=T0)
        expires = T0 + timedelta(days=settings.INVITE_CODE_EXPIRY_DAYS)
        with pytest.raises(InviteCodeNotFoundError):
            pairing.redeem_invite(db, _user(), invite.invite_code, now=expires + timedelta(seconds=1))

    def test_self_join_rejected(self, db):
        a = _user()
        invite = pairing.create_invite(db, a)
        with pytest.raises(SelfJoinError):
            pairing.redeem_invite(db, a, invite.invite_code)
        still = db.get(Couple, invite.id, populate_existing=True)
        assert still.status == CoupleStatus.pending

    def test_self_join_dev_override(self, db):
        a = _user()
        invite = pairing.create_invite(db, a)
        couple = pairing.redeem_invite(db, a, invite.invite_code, allow_self_join=True)
        assert couple.status == CoupleStatus.active
        assert couple.partner_a_id == couple.partner_b_id == a

    def test_paired_user_cannot_redeem(self, db, make_couple):
        _, _, b = make_couple()
        invite = pairing.create_invite(db, _user())
        with pytest.raises(AlreadyPairedError):
            pairing.redeem_invite(db, b, invite.invite_code)

    def test_redeemers_own_pending_invite_dissolved(self, db):
        a, b = _user("a"), _user("b")
        invite = pairing.create_invite(db, a)
        own = pairing.create_invite(db, b)
        own_id = own.id
        pairing.redeem_invite(db, b, invite.invite_code)
        dropped = db.get(Couple, own_id, populate_existing=True)
        assert dropped.status == CoupleStatus.dissolved
        assert dropped.invite_code is None

    def test_concurrent_redeemer_loses(self, db, monkeypatch):
        """A second redeemer lands between our lookup and our conditional update."""
        a, b, c = _user("a"), _user("b"), _user("c")
        invite = pairing.create_invite(db, a)
        code, couple_id = invite.invite_code, invite.id

        original = pairing._live_couple_for
        state = {"raced": False}

        def racing_lookup(session, user_id):
            if not state["raced"]:
                state["raced"] = True
                other = Session(bind=db.get_bind())
                try:
                    pairing.redeem_invite(other, c, code)
                finally:
                    other.close()
            return original(session, user_id)

        monkeypatch.setattr(pairing, "_live_couple_for", racing_lookup)

        with pytest.raises(InviteAlreadyRedeemedError) as exc:
            pairing.redeem_invite(db, b, code)
        assert exc.value.http_status == 409

        couple = db.get(Couple, couple_id, populate_existing=True)
        assert couple.partner_b_id == c
        assert db.query(CoupleStats).filter_by(couple_id=couple_id).count() == 1


    def test_one_redeemer_two_codes_joins_once(self, db, monkeypatch):
        """The redeemer's second redemption read no active couple, but the first already committed."""
        r = _user("r")
        first = pairing.create_invite(db, _user("a1"))
        second = pairing.create_invite(db, _user("a2"))
        first_id = first.id
        second_id, second_code = second.id, second.invite_code
        pairing.redeem_invite(db, r, first.invite_code)

        monkeypatch.setattr(pairing, "_live_couple_for", lambda session, user_id: None)
        with pytest.raises(AlreadyPairedError) as exc:
            pairing.redeem_invite(db, r, second_code)
        assert exc.value.details["couple_id"] == first_id

        active = db.query(Couple).filter(
            Couple.status == CoupleStatus.active,
            (Couple.partner_a_id == r) | (Couple.partner_b_id == r),
        ).count()
        assert active == 1
        untouched = db.get(Couple, second_id, populate_existing=True)
        assert untouched.status == CoupleStatus.pending
        assert untouched.invite_code == second_code
        assert db.query(CoupleStats).filter_by(couple_id=second_id).count() == 0


class TestMembership:
    def _members(self, db, couple_id):
        return sorted(m.user_id for m in db.query(CoupleMember).filter_by(couple_id=couple_id))

    def test_invite_claims_requester(self, db):
        a = _user()
        invite = pairing.create_invite(db, a)
        assert self._members(db, invite.id) == [a]

    def test_redemption_claims_both(self, db, make_couple):
        couple, a, b = make_couple()
        assert self._members(db, couple.id) == sorted([a, b])

    def test_self_join_keeps_one_row(self, db):
        a = _user()
        invite = pairing.create_invite(db, a)
        pairing.redeem_invite(db, a, invite.invite_code, allow_self_join=True)
        assert self._members(db, invite.id) == [a]

    def test_dissolve_releases_members(self, db, make_couple):
        couple, a, _ = make_couple()
        pairing.dissolve_couple(db, couple.id, a)
        assert self._members(db, couple.id) == []

    def test_expired_invite_releases_requester(self, db):
        a = _user()
        old = pairing.create_invite(db, a, now=T0)
        old_id = old.id
        later = T0 + timedelta(days=settings.INVITE_CODE_EXPIRY_DAYS, seconds=1)
        new = pairing.create_invite(db, a, now=later)
        assert self._members(db, old_id) == []
        assert self._members(db, new.id) == [a]

    def test_redeemers_own_invite_released(self, db):
        a, b = _user("a"), _user("b")
        invite = pairing.create_invite(db, a)
        own = pairing.create_invite(db, b)
        own_id = own.id
        pairing.redeem_invite(db, b, invite.invite_code)
        assert self._members(db, own_id) == []
        assert self._members(db, invite.id) == sorted([a, b])


# ---------------------------------------------------------------------------
# Couple maintenance
# ---------------------------------------------------------------------------

class TestCoupleMaintenance:
    def test_get_couple_for_user(self, db, make_couple):
        couple, a, b = make_couple()
        assert pairing.get_couple_for_user(db, a).id == couple.id
        assert pairing.get_couple_for_user(db, b).id == couple.id

    def test_get_couple_for_unpaired_user(self, db):
        with pytest.raises(CoupleNotFoundError):
            pairing.get_couple_for_user(db, _user())

    def test_pending_couple_visible_to_inviter(self, db):
        a = _user()
        invite = pairing.create_invite(db, a)
        assert pairing.get_couple_for_user(db, a).id == invite.id

    def test_update_categories(self, db, make_couple):
        couple, a, _ = make_couple()
        updated = pairing.update_preferred_categories(db, couple.id, a, ["history"])
        assert updated.category_list == ["history"]

    def test_update_categories_requires_member(self, db, make_couple):
        couple, _, _ = make_couple()
        with pytest.raises(NotAParticipantError):
            pairing.update_preferred_categories(db, couple.id, _user(), ["fun"])

    def test_update_categories_rejects_empty(self, db, make_couple):
        couple, a, _ = make_couple()
        with pytest.raises(InvalidCategoriesError):
            pairing.update_preferred_categories(db, couple.id, a, [" "])

    def test_dissolve_is_idempotent(self, db, make_couple):
        couple, a, b = make_couple()
        first = pairing.dissolve_couple(db, couple.id, a)
        assert first.status == CoupleStatus.dissolved
        dissolved_at = first.dissolved_at
        second = pairing.dissolve_couple(db, couple.id, b)
        assert second.status == CoupleStatus.dissolved
        assert second.dissolved_at == dissolved_at

    def test_dissolved_members_can_pair_again(self, db, make_couple):
        couple, a, _ = make_couple()
        pairing.dissolve_couple(db, couple.id, a)
        again = pairing.create_invite(db, a)
        assert again.status == CoupleStatus.pending
