"""Build a configured backend from loaded settings."""

from __future__ import annotations

import logging
import pathlib

from sealed_keyring.backend import KeyringBackend
from sealed_keyring.config import Settings
from sealed_keyring.native import SecureStorePrimitive
from sealed_keyring.policy import strategy_for

logger = logging.getLogger(__name__)


def create_primitive(settings: Settings) -> SecureStorePrimitive:
    """Create the default primitive: an encrypted file under ``storage.path``."""
    from sealed_keyring.stores.encrypted_file import EncryptedFileStorePrimitive

    return EncryptedFileStorePrimitive(
        file_path=pathlib.Path(settings.storage.path),
        passphrase=settings.storage.passphrase,
    )


def open_keyring(
    settings: Settings,
    primitive: SecureStorePrimitive | None = None,
) -> KeyringBackend:
    """Return a backend for ``settings.keyring``.

    The policy strategy is picked by ``settings.keyring.policy``. Raises
    ``InvalidConfiguration`` without touching the primitive when the
    configuration does not validate.
    """
    config = settings.keyring
    strategy = strategy_for(config.policy)
    if primitive is None:
        primitive = create_primitive(settings)
    backend = KeyringBackend(config, primitive, strategy=strategy)
    logger.debug(
        "Opened keyring service=%r with %s policy", backend.service, strategy.name
    )
    return backend
