"""Tests for the bundled secure store primitives."""

from __future__ import annotations

import pathlib

import pytest
from cryptography.fernet import Fernet

from sealed_keyring.backend import KeyringBackend
from sealed_keyring.config import KeyringConfig
from sealed_keyring.errors import StoreError
from sealed_keyring.models import AccessControlFlags, AccessPolicy, Item, ProtectionConstraint
from sealed_keyring.native import (
    MatchLimit,
    NativeDuplicateItem,
    NativeItemNotFound,
    NativePatch,
    NativeQuery,
    NativeRecord,
    NativeStoreError,
    SecureStorePrimitive,
)
from sealed_keyring.stores.encrypted_file import EncryptedFileStorePrimitive, _derive_key
from sealed_keyring.stores.memory import MemoryStorePrimitive

SERVICE = "com.example.test"


class TestSecureStorePrimitiveABC:

    def test_cannot_instantiate_abstract(self) -> None:
        with pytest.raises(TypeError):
            SecureStorePrimitive()  # type: ignore[abstract]

    def test_has_required_methods(self) -> None:
        for method in ("query", "add", "update", "delete"):
            assert hasattr(SecureStorePrimitive, method), f"SecureStorePrimitive must define {method}"


# ---------------------------------------------------------------------------
# MemoryStorePrimitive
# ---------------------------------------------------------------------------

class TestMemoryStorePrimitive:

    @pytest.fixture
    def store(self) -> MemoryStorePrimitive:
        store = MemoryStorePrimitive()
        store.add(NativeRecord(service=SERVICE, account="a", label="A", data=b"1"))
        store.add(NativeRecord(service=SERVICE, account="b", label="B", data=b"2"))
        return store

    def test_add_duplicate_raises(self, store: MemoryStorePrimitive) -> None:
        with pytest.raises(NativeDuplicateItem):
            store.add(NativeRecord(service=SERVICE, account="a"))

    def test_same_account_in_other_service_is_not_duplicate(
        self, store: MemoryStorePrimitive
    ) -> None:
        store.add(NativeRecord(service="com.other", account="a"))

    def test_query_miss_raises_not_found(self, store: MemoryStorePrimitive) -> None:
        with pytest.raises(NativeItemNotFound):
            store.query(NativeQuery(service=SERVICE, account="zzz"))

    def test_query_one_limits_results(self, store: MemoryStorePrimitive) -> None:
        results = store.query(NativeQuery(service=SERVICE, match_limit=MatchLimit.ONE))
        assert len(results) == 1

    def test_query_all_preserves_insertion_order(self, store: MemoryStorePrimitive) -> None:
        results = store.query(NativeQuery(service=SERVICE, match_limit=MatchLimit.ALL))
        assert [r.account for r in results] == ["a", "b"]

    def test_query_without_data_blanks_payload(self, store: MemoryStorePrimitive) -> None:
        (record,) = store.query(
            NativeQuery(service=SERVICE, account="a", return_attributes=True)
        )
        assert record.data == b""
        assert record.label == "A"

    def test_query_without_attributes_blanks_label(self, store: MemoryStorePrimitive) -> None:
        (record,) = store.query(NativeQuery(service=SERVICE, account="a", return_data=True))
        assert record.data == b"1"
        assert record.label == ""

    def test_add_stamps_dates(self, store: MemoryStorePrimitive) -> None:
        (record,) = store.query(
            NativeQuery(service=SERVICE, account="a", return_attributes=True)
        )
        assert record.creation_date is not None
        assert record.modification_date == record.creation_date

    def test_update_replaces_patched_fields_only(self, store: MemoryStorePrimitive) -> None:
        query = NativeQuery(service=SERVICE, account="a")
        store.update(query, NativePatch(data=b"changed"))
        (record,) = store.query(
            NativeQuery(service=SERVICE, account="a", return_attributes=True, return_data=True)
        )
        assert record.data == b"changed"
        assert record.label == "A"
        assert record.modification_date is not None
        assert record.creation_date is not None
        assert record.modification_date >= record.creation_date

    def test_update_missing_raises(self, store: MemoryStorePrimitive) -> None:
        with pytest.raises(NativeItemNotFound):
            store.update(NativeQuery(service=SERVICE, account="zzz"), NativePatch(data=b""))

    def test_delete(self, store: MemoryStorePrimitive) -> None:
        store.delete(NativeQuery(service=SERVICE, account="a"))
        with pytest.raises(NativeItemNotFound):
            store.query(NativeQuery(service=SERVICE, account="a"))

    def test_delete_missing_raises(self, store: MemoryStorePrimitive) -> None:
        with pytest.raises(NativeItemNotFound):
            store.delete(NativeQuery(service=SERVICE, account="zzz"))


# ---------------------------------------------------------------------------
# EncryptedFileStorePrimitive
# ---------------------------------------------------------------------------

class TestEncryptedFileStorePrimitive:
    """Fernet-encrypted JSON file primitive behind a real backend."""

    @pytest.fixture
    def file_path(self, tmp_path: pathlib.Path) -> pathlib.Path:
        return tmp_path / "nested" / "keyring.enc"

    @pytest.fixture
    def config(self) -> KeyringConfig:
        return KeyringConfig(
            service_name=SERVICE,
            access_control_flags=["BiometryCurrentSet", "Or", "ApplicationPassword"],
            protection_constraint="AfterFirstUnlockThisDeviceOnly",
            synchronizable=True,
        )

    def test_set_and_get(self, file_path: pathlib.Path, config: KeyringConfig) -> None:
        backend = KeyringBackend(config, EncryptedFileStorePrimitive(file_path, "pw"))
        backend.set(Item(key="api", data=b"\x00\xffbinary", label="API"))
        assert backend.get("api").data == b"\x00\xffbinary"
        assert file_path.exists()

    def test_persists_across_instances(
        self, file_path: pathlib.Path, config: KeyringConfig
    ) -> None:
        first = KeyringBackend(config, EncryptedFileStorePrimitive(file_path, "pw"))
        first.set(Item(key="api", data=b"persistent", description="kept"))

        second = KeyringBackend(config, EncryptedFileStorePrimitive(file_path, "pw"))
        item = second.get("api")
        assert item.data == b"persistent"
        assert item.description == "kept"
        assert second.get_metadata("api").modification_time is not None

    def test_policy_and_sync_marker_round_trip(self, file_path: pathlib.Path) -> None:
        policy = AccessPolicy(
            protection_constraint=ProtectionConstraint.WHEN_PASSCODE_SET_THIS_DEVICE_ONLY,
            control_flags=AccessControlFlags.APPLICATION_PASSWORD | AccessControlFlags.WATCH,
        )
        EncryptedFileStorePrimitive(file_path, "pw").add(
            NativeRecord(service=SERVICE, account="k", access_policy=policy, synchronizable=True)
        )
        (record,) = EncryptedFileStorePrimitive(file_path, "pw").query(
            NativeQuery(service=SERVICE, account="k", return_attributes=True)
        )
        assert record.access_policy == policy
        assert record.synchronizable is True

    def test_file_is_not_plaintext(self, file_path: pathlib.Path, config: KeyringConfig) -> None:
        backend = KeyringBackend(config, EncryptedFileStorePrimitive(file_path, "pw"))
        backend.set(Item(key="secret-key", data=b"super-secret-value"))
        raw = file_path.read_bytes()
        assert b"super-secret-value" not in raw
        assert b"secret-key" not in raw

    def test_wrong_passphrase_is_store_error(
        self, file_path: pathlib.Path, config: KeyringConfig
    ) -> None:
        KeyringBackend(config, EncryptedFileStorePrimitive(file_path, "correct")).set(
            Item(key="k", data=b"v")
        )
        wrong = EncryptedFileStorePrimitive(file_path, "wrong")
        with pytest.raises(NativeStoreError):
            wrong.query(NativeQuery(service=SERVICE, account="k"))
        with pytest.raises(StoreError):
            KeyringBackend(config, wrong).get("k")

    def test_unreadable_path_is_store_error(
        self, tmp_path: pathlib.Path, config: KeyringConfig
    ) -> None:
        directory = tmp_path / "not-a-file"
        directory.mkdir()
        backend = KeyringBackend(config, EncryptedFileStorePrimitive(directory, "pw"))
        with pytest.raises(StoreError) as exc_info:
            backend.get("k")
        assert isinstance(exc_info.value.__cause__, NativeStoreError)
        with pytest.raises(StoreError):
            backend.set(Item(key="k", data=b"v"))
        with pytest.raises(StoreError):
            backend.keys()

    def test_unwritable_path_is_store_error(
        self, tmp_path: pathlib.Path, config: KeyringConfig
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("plain file")
        primitive = EncryptedFileStorePrimitive(blocker / "keyring.enc", "pw")
        with pytest.raises(StoreError):
            KeyringBackend(config, primitive).set(Item(key="k", data=b"v"))

    def test_malformed_records_are_store_error(
        self, file_path: pathlib.Path, config: KeyringConfig
    ) -> None:
        file_path.parent.mkdir(parents=True)
        token = Fernet(_derive_key("pw")).encrypt(b'{"records": [{"service": "x"}]}')
        file_path.write_bytes(token)
        with pytest.raises(StoreError):
            KeyringBackend(config, EncryptedFileStorePrimitive(file_path, "pw")).get("k")

    def test_non_json_payload_is_store_error(
        self, file_path: pathlib.Path, config: KeyringConfig
    ) -> None:
        file_path.parent.mkdir(parents=True)
        file_path.write_bytes(Fernet(_derive_key("pw")).encrypt(b"not json"))
        with pytest.raises(StoreError):
            list(KeyringBackend(config, EncryptedFileStorePrimitive(file_path, "pw")).keys())

    def test_missing_file_is_empty(self, file_path: pathlib.Path, config: KeyringConfig) -> None:
        backend = KeyringBackend(config, EncryptedFileStorePrimitive(file_path, "pw"))
        assert list(backend.keys()) == []
        assert not file_path.exists()
