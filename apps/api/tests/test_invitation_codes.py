"""
Invitation code tests.

Tests cover:
- Code format and case-insensitive lookup
- Uniform character distribution
- Redemption cap and expiry
- Revocation
- Duplicate membership
"""

from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import (
    AuthorityViolationError,
    DuplicateConflictError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
)
from app.core.security import INVITATION_CODE_ALPHABET, generate_invitation_code
from app.db.models import AuditLog
from app.schemas.auth import CallerContext
from app.services import invite_service, permission_service, role_service


@pytest.fixture
def org(make_profile, make_org, add_member):
    make_profile("owner")
    make_profile("alice")
    for user_id in ("u1", "u2", "u3"):
        make_profile(user_id)
    org = make_org("owner")
    add_member(org, "alice", "admin")
    return org


def _code(db, config, org, creator="owner", role_name="member", **kwargs):
    role = role_service.get_role_by_name(db, org.id, role_name)
    return invite_service.create_invitation_code(
        db, CallerContext.for_user(creator), config, org.id, role_id=role.id, **kwargs
    )


def test_code_format(db, config, org):
    code = _code(db, config, org)

    assert len(code.code) == config.invitation_code_length
    assert code.code.isalnum() and code.code.upper() == code.code
    assert code.status == "active"
    assert code.redemption_count == 0


def test_generated_codes_use_the_alphabet_evenly():
    counts = Counter("".join(generate_invitation_code() for _ in range(20000)))

    assert set(counts) <= set(INVITATION_CODE_ALPHABET)
    # A modulo mapping of random bytes would over-weight the first four letters
    head = sum(counts[c] for c in "ABCD") / 4
    rest = sum(counts[c] for c in INVITATION_CODE_ALPHABET[4:]) / 32
    assert abs(head - rest) < 200


def test_redeem_is_case_insensitive(db, config, org):
    code = _code(db, config, org)

    membership = invite_service.redeem_invitation_code(
        db, CallerContext.for_user("u1"), f"  {code.code.lower()} "
    )

    assert membership.role.name == "member"
    assert membership.invited_by == "owner"
    db.refresh(code)
    assert code.redemption_count == 1
    actions = sorted(
        a for (a,) in db.query(AuditLog.action).filter(
            AuditLog.action.in_(["invitationCode.redeemed", "member.added"])
        )
    )
    assert actions == ["invitationCode.redeemed", "member.added"]


def test_redemption_cap(db, config, org):
    code = _code(db, config, org, max_redemptions=2)

    invite_service.redeem_invitation_code(db, CallerContext.for_user("u1"), code.code)
    invite_service.redeem_invitation_code(db, CallerContext.for_user("u2"), code.code)
    with pytest.raises(InvalidStateError):
        invite_service.redeem_invitation_code(db, CallerContext.for_user("u3"), code.code)

    db.refresh(code)
    assert code.redemption_count == 2
    assert permission_service.get_membership(db, org.id, "u3") is None


def test_expired_code(db, config, org):
    code = _code(db, config, org)
    code.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    db.flush()

    with pytest.raises(ExpiredError):
        invite_service.redeem_invitation_code(db, CallerContext.for_user("u1"), code.code)
    # Expiry does not change status
    assert code.status == "active"


def test_revoked_code(db, config, org):
    code = _code(db, config, org)
    invite_service.revoke_invitation_code(db, CallerContext.for_user("alice"), org.id, code.id)

    assert code.status == "revoked"
    assert code.revoked_at is not None
    with pytest.raises(InvalidStateError):
        invite_service.redeem_invitation_code(db, CallerContext.for_user("u1"), code.code)


def test_already_member(db, config, org):
    code = _code(db, config, org)
    with pytest.raises(DuplicateConflictError):
        invite_service.redeem_invitation_code(db, CallerContext.for_user("alice"), code.code)


def test_unknown_code(db):
    with pytest.raises(NotFoundError):
        invite_service.redeem_invitation_code(db, CallerContext.for_user("u1"), "NOPE1234")


def test_admin_cannot_issue_owner_code(db, config, org):
    with pytest.raises(AuthorityViolationError):
        _code(db, config, org, creator="alice", role_name="owner")


def test_list_excludes_revoked_on_request(db, config, org):
    kept = _code(db, config, org)
    revoked = _code(db, config, org)
    invite_service.revoke_invitation_code(db, CallerContext.for_user("owner"), org.id, revoked.id)

    caller = CallerContext.for_user("alice")
    assert len(invite_service.list_invitation_codes(db, caller, org.id)) == 2
    active = invite_service.list_invitation_codes(db, caller, org.id, include_revoked=False)
    assert [c.id for c in active] == [kept.id]
