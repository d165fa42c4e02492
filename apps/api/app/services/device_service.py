"""Device service - per-session device records for the signed-in user."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session
from user_agents import parse as parse_ua

from app.core.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from app.db.enums import AuditAction, DeviceType
from app.db.models import Device
from app.schemas.auth import CallerContext
from app.services import audit_service


logger = logging.getLogger(__name__)

# First match wins (Edge and Opera UAs also mention Chrome/Safari)
BROWSER_FAMILIES = ("Firefox", "Edge", "Opera", "Chrome", "Safari")
LINUX_FAMILIES = {"Linux", "Ubuntu", "Debian", "Fedora", "Arch Linux", "Chrome OS"}


def _empty_device_info() -> dict[str, str | None]:
    return {"device_name": None, "device_type": None, "browser": None, "os": None}


def parse_user_agent(user_agent_str: str | None) -> dict[str, str | None]:
    """
    Derive device_name, device_type, browser and os from a user agent.

    Unknown or unparseable agents yield all-None values.
    """
    info = _empty_device_info()
    if not user_agent_str:
        return info

    try:
        ua = parse_ua(user_agent_str)
        family = ua.browser.family or ""
        os_family = ua.os.family or ""
        is_tablet = ua.is_tablet
    except Exception:
        logger.debug("Unparseable user agent", exc_info=True)
        return info

    browser = next((name for name in BROWSER_FAMILIES if name in family), None)

    os_name: str | None = None
    device_type: str | None = None
    if os_family == "iOS":
        if is_tablet:
            os_name, device_type = "iPadOS", DeviceType.TABLET.value
        else:
            os_name, device_type = "iOS", DeviceType.MOBILE.value
    elif os_family == "Android":
        os_name = "Android"
        device_type = DeviceType.TABLET.value if is_tablet else DeviceType.MOBILE.value
    elif os_family == "Mac OS X":
        os_name, device_type = "macOS", DeviceType.DESKTOP.value
    elif os_family.startswith("Windows"):
        os_name, device_type = "Windows", DeviceType.DESKTOP.value
    elif os_family in LINUX_FAMILIES:
        os_name, device_type = "Linux", DeviceType.DESKTOP.value
    elif browser:
        device_type = DeviceType.WEB.value

    if browser and os_name:
        device_name = f"{browser} on {os_name}"
    else:
        device_name = browser or os_name

    info.update(device_name=device_name, device_type=device_type, browser=browser, os=os_name)
    return info


def register_device(
    db: Session,
    caller: CallerContext,
    session_id: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> Device | None:
    """
    Upsert the device for an identity session.

    Suppressed while impersonating so an admin's browser never shows up in
    the target's device list. Audited on first registration only.

    Raises:
        PermissionDeniedError: session_id belongs to another user
    """
    if caller.is_impersonating:
        logger.debug("Skipping device registration while impersonating")
        return None
    if not session_id:
        raise ValidationFailedError("session_id is required")

    now = datetime.now(timezone.utc)
    info = parse_user_agent(user_agent)
    device = db.query(Device).filter(Device.session_id == session_id).first()

    if device:
        if device.user_id != caller.effective_user_id:
            logger.warning(
                "Refused device upsert by %s for a session owned by another user",
                caller.effective_user_id,
            )
            raise PermissionDeniedError("Session belongs to another user")
        device.last_active_at = now
        if ip_address:
            device.ip_address = ip_address
        for key, value in info.items():
            if value is not None:
                setattr(device, key, value)
        db.flush()
        return device

    device = Device(
        user_id=caller.effective_user_id,
        session_id=session_id,
        ip_address=ip_address,
        last_active_at=now,
        **info,
    )
    db.add(device)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.DEVICE_REGISTERED,
        resource_type="device",
        resource_id=device.id,
        metadata={"device_name": device.device_name, "device_type": device.device_type},
    )
    return device


def list_devices(db: Session, caller: CallerContext) -> list[Device]:
    return (
        db.query(Device)
        .filter(Device.user_id == caller.effective_user_id)
        .order_by(Device.last_active_at.desc())
        .all()
    )


def update_device_activity(db: Session, caller: CallerContext, session_id: str) -> bool:
    """Touch last_active_at if the session's device belongs to the caller."""
    device = (
        db.query(Device)
        .filter(
            Device.session_id == session_id,
            Device.user_id == caller.effective_user_id,
        )
        .first()
    )
    if not device:
        return False
    device.last_active_at = datetime.now(timezone.utc)
    db.flush()
    return True


def remove_device(db: Session, caller: CallerContext, device_id: uuid.UUID) -> str:
    """Delete one of the caller's devices. Returns its session id for sign-out."""
    device = (
        db.query(Device)
        .filter(Device.id == device_id, Device.user_id == caller.effective_user_id)
        .first()
    )
    if not device:
        raise NotFoundError("Device not found")

    session_id = device.session_id
    db.delete(device)
    db.flush()

    audit_service.log_caller_event(
        db,
        caller,
        AuditAction.DEVICE_REMOVED,
        resource_type="device",
        resource_id=device_id,
    )
    return session_id


def remove_all_other_devices(
    db: Session,
    caller: CallerContext,
    current_session_id: str | None,
) -> list[str]:
    """Delete every device except the current session. Returns removed session ids."""
    query = db.query(Device).filter(Device.user_id == caller.effective_user_id)
    if current_session_id:
        query = query.filter(Device.session_id != current_session_id)
    devices = query.all()

    session_ids = [device.session_id for device in devices]
    for device in devices:
        db.delete(device)
    db.flush()

    if session_ids:
        audit_service.log_caller_event(
            db,
            caller,
            AuditAction.DEVICE_REVOKED_ALL,
            resource_type="device",
            metadata={"count": len(session_ids)},
        )
    return session_ids
