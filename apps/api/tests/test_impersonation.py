"""
Impersonation tests.

Tests cover:
- Only platform admins; never against another admin or self
- Effective user resolution and lazy expiry
- Starting a new session ends the previous one
- Audit rows keep the admin as actor
- Scheduled expiry sweep
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import (
    AdminImpersonationViolationError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from app.db.models import AuditLog, ImpersonationSession
from app.schemas.auth import CallerContext
from app.services import impersonation_service


@pytest.fixture
def users(make_profile):
    make_profile("root", is_admin=True)
    make_profile("other_admin", is_admin=True)
    make_profile("alice")
    make_profile("bob")


def _start(db, config, target, admin="root", **kwargs):
    return impersonation_service.start_impersonation(
        db, CallerContext.for_user(admin), config, target_user_id=target, **kwargs
    )


def test_start_sets_effective_user(db, config, users):
    session = _start(db, config, "alice", reason="support ticket")

    assert session.status == "active"
    assert impersonation_service.resolve_effective_user(db, "root") == "alice"
    # Other callers are unaffected
    assert impersonation_service.resolve_effective_user(db, "bob") == "bob"

    entry = db.query(AuditLog).filter(AuditLog.action == "impersonation.started").one()
    assert entry.actor_user_id == "root"
    assert entry.effective_user_id is None
    assert entry.metadata_["target_user_id"] == "alice"


def test_non_admin_cannot_impersonate(db, config, users):
    with pytest.raises(PermissionDeniedError):
        _start(db, config, "bob", admin="alice")


def test_cannot_impersonate_admin(db, config, users):
    with pytest.raises(AdminImpersonationViolationError):
        _start(db, config, "other_admin")
    assert db.query(ImpersonationSession).count() == 0


def test_cannot_impersonate_self(db, config, users):
    with pytest.raises(InvalidStateError):
        _start(db, config, "root")


def test_unknown_target(db, config, users):
    with pytest.raises(NotFoundError):
        _start(db, config, "ghost")


def test_new_session_replaces_previous(db, config, users):
    first = _start(db, config, "alice")
    second = _start(db, config, "bob")

    assert first.status == "ended"
    assert first.ended_at is not None
    assert second.status == "active"
    assert impersonation_service.resolve_effective_user(db, "root") == "bob"

    active = (
        db.query(ImpersonationSession)
        .filter(ImpersonationSession.admin_user_id == "root", ImpersonationSession.status == "active")
        .count()
    )
    assert active == 1
    ended = db.query(AuditLog).filter(AuditLog.action == "impersonation.ended").one()
    assert ended.metadata_["replaced"] is True


def test_stop(db, config, users):
    _start(db, config, "alice")

    ended = impersonation_service.stop_impersonation(db, CallerContext.for_user("root"))

    assert ended == 1
    assert impersonation_service.resolve_effective_user(db, "root") == "root"
    assert impersonation_service.stop_impersonation(db, CallerContext.for_user("root")) == 0


def test_expired_session_is_ignored(db, config, users):
    session = _start(db, config, "alice")
    session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    db.flush()

    assert impersonation_service.get_active_impersonation(db, "root") is None
    assert impersonation_service.resolve_effective_user(db, "root") == "root"


def test_expire_sweep(db, config, users):
    session = _start(db, config, "alice", ttl=timedelta(minutes=5))
    db.commit()

    later = datetime.now(timezone.utc) + timedelta(minutes=10)
    assert impersonation_service.expire_sessions(db, later) == 1
    assert impersonation_service.expire_sessions(db, later) == 0
    db.commit()

    db.refresh(session)
    assert session.status == "expired"


def test_actions_under_impersonation_are_attributed(db, config, users):
    from app.services import profile_service

    _start(db, config, "alice")
    effective = impersonation_service.resolve_effective_user(db, "root")
    caller = CallerContext(actor_user_id="root", effective_user_id=effective)

    profile_service.update_profile(db, caller, display_name="Alice (edited)")

    entry = db.query(AuditLog).filter(AuditLog.action == "profile.updated").one()
    assert entry.actor_user_id == "root"
    assert entry.effective_user_id == "alice"
    assert entry.resource_id == "alice"


def test_history(db, config, users):
    _start(db, config, "alice")
    _start(db, config, "bob")

    history = impersonation_service.list_impersonation_history(db, CallerContext.for_user("root"))
    assert {s.target_user_id for s in history} == {"alice", "bob"}

    only_alice = impersonation_service.list_impersonation_history(
        db, CallerContext.for_user("root"), target_user_id="alice"
    )
    assert len(only_alice) == 1
