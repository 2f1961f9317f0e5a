"""Fernet-encrypted JSON file primitive.

Used where no platform keychain is available. Derives an encryption key from
a passphrase using PBKDF2-HMAC-SHA256, then encrypts the whole record table
with Fernet. Access policies are stored by their native names so they can be
restored exactly.
"""

from __future__ import annotations

import base64
import json
import logging
import pathlib
from datetime import datetime
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sealed_keyring.models import AccessControlFlags, AccessPolicy, ProtectionConstraint
from sealed_keyring.native import NativeRecord, NativeStoreError, SecClass
from sealed_keyring.stores.memory import MemoryStorePrimitive, RecordTable

logger = logging.getLogger(__name__)

# Fixed salt -- acceptable for a local-only file where the threat model is
# casual disk access, not offline brute-force against a leaked database.
_SALT = b"sealed-keyring-records-v1"
_ITERATIONS = 480_000
_FORMAT_VERSION = 1


def _derive_key(passphrase: str) -> bytes:
    """Derive a 32-byte Fernet key from the passphrase via PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_SALT,
        iterations=_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


def _encode_date(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _decode_date(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _record_to_json(record: NativeRecord) -> dict[str, Any]:
    policy = None
    if record.access_policy is not None:
        policy = {
            "protection_constraint": record.access_policy.protection_constraint.value,
            "control_flags": int(record.access_policy.control_flags),
        }
    return {
        "class": record.sec_class.value,
        "service": record.service,
        "account": record.account,
        "label": record.label,
        "description": record.description,
        "data": base64.b64encode(record.data).decode("ascii"),
        "access_policy": policy,
        "synchronizable": record.synchronizable,
        "created": _encode_date(record.creation_date),
        "modified": _encode_date(record.modification_date),
    }


def _record_from_json(raw: dict[str, Any]) -> NativeRecord:
    policy = None
    if raw.get("access_policy") is not None:
        policy = AccessPolicy(
            protection_constraint=ProtectionConstraint(raw["access_policy"]["protection_constraint"]),
            control_flags=AccessControlFlags(raw["access_policy"]["control_flags"]),
        )
    return NativeRecord(
        sec_class=SecClass(raw["class"]),
        service=raw["service"],
        account=raw["account"],
        label=raw.get("label", ""),
        description=raw.get("description", ""),
        data=base64.b64decode(raw["data"]),
        access_policy=policy,
        synchronizable=raw.get("synchronizable", False),
        creation_date=_decode_date(raw.get("created")),
        modification_date=_decode_date(raw.get("modified")),
    )


class EncryptedFileStorePrimitive(MemoryStorePrimitive):
    """Stores records as a Fernet-encrypted JSON file on disk.

    Parameters
    ----------
    file_path:
        Path to the encrypted records file. Created on first write.
    passphrase:
        Passphrase used to derive the Fernet encryption key via PBKDF2.
    """

    def __init__(self, file_path: pathlib.Path, passphrase: str) -> None:
        super().__init__()
        self._path = file_path
        self._fernet = Fernet(_derive_key(passphrase))

    def _load(self) -> RecordTable:
        """Read and decrypt the records file. Returns an empty table if missing."""
        if not self._path.exists():
            return {}
        try:
            ciphertext = self._path.read_bytes()
        except OSError as exc:
            raise NativeStoreError(f"cannot read {self._path}: {exc}") from exc
        try:
            plaintext = self._fernet.decrypt(ciphertext)
        except InvalidToken:
            raise NativeStoreError(
                f"cannot decrypt {self._path}: wrong passphrase or corrupted file"
            ) from None
        try:
            document = json.loads(plaintext)
            records = [_record_from_json(raw) for raw in document.get("records", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise NativeStoreError(f"malformed records in {self._path}: {exc!r}") from exc
        return {(r.service, r.account): r for r in records}

    def _commit(self, records: RecordTable) -> None:
        """Encrypt and write the records to disk."""
        document = {
            "version": _FORMAT_VERSION,
            "records": [_record_to_json(r) for r in records.values()],
        }
        plaintext = json.dumps(document, sort_keys=True).encode("utf-8")
        ciphertext = self._fernet.encrypt(plaintext)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(ciphertext)
        except OSError as exc:
            raise NativeStoreError(f"cannot write {self._path}: {exc}") from exc
        logger.debug("Wrote %d records to %s", len(records), self._path)
