"""Access-control policy mapping.

Translates configuration names into the ``AccessPolicy`` descriptor attached
to every stored item. All functions here are pure: they either return a value
or raise ``InvalidConfiguration``.

Two strategies share one lifecycle engine:

- ``FlagPolicyStrategy`` reads a list of factor names and a protection
  constraint name.
- ``LegacyPolicyStrategy`` reads a single "accessible when unlocked" boolean
  and always requires the current biometric set.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import timedelta

from sealed_keyring.config import KeyringConfig
from sealed_keyring.errors import InvalidConfiguration
from sealed_keyring.models import (
    DEFAULT_PROTECTION_CONSTRAINT,
    AccessControlFlags,
    AccessPolicy,
    ProtectionConstraint,
)


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

PROTECTION_CONSTRAINTS: dict[str, ProtectionConstraint] = {
    "": DEFAULT_PROTECTION_CONSTRAINT,
    "WhenUnlocked": ProtectionConstraint.WHEN_UNLOCKED,
    "WhenUnlockedThisDeviceOnly": ProtectionConstraint.WHEN_UNLOCKED_THIS_DEVICE_ONLY,
    "AfterFirstUnlock": ProtectionConstraint.AFTER_FIRST_UNLOCK,
    "AfterFirstUnlockThisDeviceOnly": ProtectionConstraint.AFTER_FIRST_UNLOCK_THIS_DEVICE_ONLY,
    "WhenPasscodeSetThisDeviceOnly": ProtectionConstraint.WHEN_PASSCODE_SET_THIS_DEVICE_ONLY,
}

# Deprecated constraint name -> closest supported replacement
DEPRECATED_PROTECTION_CONSTRAINTS: dict[str, str] = {
    "Always": "AfterFirstUnlock",
    "AlwaysThisDeviceOnly": "AfterFirstUnlockThisDeviceOnly",
}

CONTROL_FLAGS: dict[str, AccessControlFlags] = {
    "UserPresence": AccessControlFlags.USER_PRESENCE,
    "BiometryAny": AccessControlFlags.BIOMETRY_ANY,
    "BiometryCurrentSet": AccessControlFlags.BIOMETRY_CURRENT_SET,
    "DevicePasscode": AccessControlFlags.DEVICE_PASSCODE,
    "Watch": AccessControlFlags.WATCH,
    "Or": AccessControlFlags.OR,
    "And": AccessControlFlags.AND,
    "PrivateKeyUsage": AccessControlFlags.PRIVATE_KEY_USAGE,
    "ApplicationPassword": AccessControlFlags.APPLICATION_PASSWORD,
}


# ---------------------------------------------------------------------------
# Mapping functions
# ---------------------------------------------------------------------------

def resolve_protection_constraint(name: str) -> ProtectionConstraint:
    """Map a constraint name to its enum value.

    The empty string selects the default constraint. Deprecated names are
    rejected with a pointer to their replacement instead of being mapped.
    """
    if name in DEPRECATED_PROTECTION_CONSTRAINTS:
        replacement = DEPRECATED_PROTECTION_CONSTRAINTS[name]
        raise InvalidConfiguration(
            f"protection constraint {name!r} is deprecated and no longer "
            f"supported; use {replacement!r} instead"
        )
    try:
        return PROTECTION_CONSTRAINTS[name]
    except KeyError:
        raise InvalidConfiguration(f"unknown protection constraint {name!r}") from None


def resolve_control_flags(names: Iterable[str]) -> AccessControlFlags:
    """OR together the flag for each name. Order and duplicates don't matter."""
    flags = AccessControlFlags.NONE
    for name in names:
        try:
            flags |= CONTROL_FLAGS[name]
        except KeyError:
            raise InvalidConfiguration(f"unknown access control flag {name!r}") from None
    return flags


def validate_biometric_reuse_duration(duration: timedelta) -> timedelta:
    """Return *duration* unchanged. Zero disables reuse; negative is rejected."""
    if duration < timedelta(0):
        raise InvalidConfiguration(
            f"biometric reuse duration must not be negative, got {duration}"
        )
    return duration


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class PolicyStrategy(ABC):
    """Resolves backend configuration into an ``AccessPolicy``."""

    name: str = "base"

    @abstractmethod
    def resolve_policy(self, config: KeyringConfig) -> AccessPolicy:
        """Return the policy for *config* or raise ``InvalidConfiguration``."""


class FlagPolicyStrategy(PolicyStrategy):
    """Policy from named access-control factors and a named constraint."""

    name = "flags"

    def resolve_policy(self, config: KeyringConfig) -> AccessPolicy:
        constraint = resolve_protection_constraint(config.protection_constraint)
        flags = resolve_control_flags(config.access_control_flags)
        if (flags & AccessControlFlags.AND) and (flags & AccessControlFlags.OR):
            raise InvalidConfiguration(
                "access control flags cannot combine both 'And' and 'Or'"
            )
        return AccessPolicy(protection_constraint=constraint, control_flags=flags)


class LegacyPolicyStrategy(PolicyStrategy):
    """Boolean-only policy: optional "when unlocked" plus the current biometric set."""

    name = "legacy"

    def resolve_policy(self, config: KeyringConfig) -> AccessPolicy:
        # Unknown or deprecated names get their specific error first
        resolve_control_flags(config.access_control_flags)
        resolve_protection_constraint(config.protection_constraint)
        if config.access_control_flags or config.protection_constraint:
            raise InvalidConfiguration(
                "the legacy policy does not support 'access_control_flags' or "
                "'protection_constraint'; use 'accessible_when_unlocked' or the "
                "'flags' policy"
            )
        if config.accessible_when_unlocked:
            constraint = ProtectionConstraint.WHEN_UNLOCKED
        else:
            constraint = DEFAULT_PROTECTION_CONSTRAINT
        return AccessPolicy(
            protection_constraint=constraint,
            control_flags=AccessControlFlags.BIOMETRY_CURRENT_SET,
        )


_STRATEGIES: dict[str, type[PolicyStrategy]] = {
    FlagPolicyStrategy.name: FlagPolicyStrategy,
    LegacyPolicyStrategy.name: LegacyPolicyStrategy,
}


def strategy_for(name: str) -> PolicyStrategy:
    try:
        return _STRATEGIES[name]()
    except KeyError:
        known = ", ".join(sorted(_STRATEGIES))
        raise InvalidConfiguration(
            f"unknown policy strategy {name!r} (expected one of: {known})"
        ) from None
