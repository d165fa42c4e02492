"""Identity, device and impersonation enums."""

from enum import Enum


class ImpersonationStatus(str, Enum):
    """
    Lifecycle of an admin impersonation session.

    - ACTIVE: in effect until expires_at
    - EXPIRED: passed expires_at (lazy check or hourly sweep)
    - ENDED: stopped by the admin or replaced by a newer session
    """

    ACTIVE = "active"
    EXPIRED = "expired"
    ENDED = "ended"


class DeviceType(str, Enum):
    """Coarse device class derived from the user agent."""

    WEB = "web"
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid device type."""
        return value in cls._value2member_map_
