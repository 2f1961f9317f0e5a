"""Bundled secure store primitives."""

from sealed_keyring.stores.encrypted_file import EncryptedFileStorePrimitive
from sealed_keyring.stores.memory import MemoryStorePrimitive

__all__ = ["EncryptedFileStorePrimitive", "MemoryStorePrimitive"]
