"""Domain models for sealed-keyring.

``Item`` and ``Metadata`` are pydantic models exchanged with callers.
``AccessPolicy`` and ``AuthenticationContext`` are immutable values resolved
once per backend and attached to every native call the backend issues.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, IntFlag

from pydantic import BaseModel, ConfigDict


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ProtectionConstraint(str, Enum):
    """When an item is decryptable. Values are the platform's attribute names."""

    WHEN_UNLOCKED = "kSecAttrAccessibleWhenUnlocked"
    WHEN_UNLOCKED_THIS_DEVICE_ONLY = "kSecAttrAccessibleWhenUnlockedThisDeviceOnly"
    AFTER_FIRST_UNLOCK = "kSecAttrAccessibleAfterFirstUnlock"
    AFTER_FIRST_UNLOCK_THIS_DEVICE_ONLY = "kSecAttrAccessibleAfterFirstUnlockThisDeviceOnly"
    WHEN_PASSCODE_SET_THIS_DEVICE_ONLY = "kSecAttrAccessibleWhenPasscodeSetThisDeviceOnly"


DEFAULT_PROTECTION_CONSTRAINT = ProtectionConstraint.WHEN_UNLOCKED_THIS_DEVICE_ONLY


class AccessControlFlags(IntFlag):
    """Access-control factors. Bit values match ``SecAccessControlCreateFlags``."""

    NONE = 0
    USER_PRESENCE = 1 << 0
    BIOMETRY_ANY = 1 << 1
    BIOMETRY_CURRENT_SET = 1 << 3
    DEVICE_PASSCODE = 1 << 4
    WATCH = 1 << 5
    OR = 1 << 14
    AND = 1 << 15
    PRIVATE_KEY_USAGE = 1 << 30
    APPLICATION_PASSWORD = 1 << 31


COMBINATOR_FLAGS = AccessControlFlags.AND | AccessControlFlags.OR


class Combinator(str, Enum):
    """How several access-control factors are combined."""

    AND = "And"
    OR = "Or"


# ---------------------------------------------------------------------------
# Policy values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AccessPolicy:
    """Resolved access-control descriptor shared by every item of a backend."""

    protection_constraint: ProtectionConstraint = DEFAULT_PROTECTION_CONSTRAINT
    control_flags: AccessControlFlags = AccessControlFlags.NONE

    @property
    def factors(self) -> AccessControlFlags:
        return AccessControlFlags(int(self.control_flags) & ~int(COMBINATOR_FLAGS))

    @property
    def combinator(self) -> Combinator | None:
        """Logical combination of the factors.

        An explicit ``And``/``Or`` bit wins. Several factors without one are
        combined with ``And``, which is what the platform does.
        """
        if self.control_flags & AccessControlFlags.OR:
            return Combinator.OR
        if self.control_flags & AccessControlFlags.AND:
            return Combinator.AND
        if int(self.factors).bit_count() > 1:
            return Combinator.AND
        return None


@dataclass(frozen=True)
class AuthenticationContext:
    """Opaque per-backend token carrying the biometric reuse window.

    A zero duration means every interactive factor check prompts again.
    """

    allowable_reuse_duration: timedelta = timedelta(0)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

class Item(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    data: bytes = b""
    label: str = ""
    description: str = ""
    allow_sync: bool = True


class Metadata(BaseModel):
    """Descriptive view of an item. ``item.data`` is always empty."""

    model_config = ConfigDict(from_attributes=True)

    item: Item
    modification_time: datetime | None = None
