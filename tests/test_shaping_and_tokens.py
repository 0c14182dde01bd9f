"""
tests/test_shaping_and_tokens.py -- Unit tests for response shaping, tokens and reset-code storage.
"""

from __future__ import annotations

import time

import pytest
from jose import jwt

from api.shaping import error_body, ok, paged, shape
from auth.models import Identity, User
from auth.reset_codes import consume_reset_code, generate_code, issue_reset_code
from auth.tokens import InvalidToken, hash_password, issue_token, verify_password, verify_token
from cache.store import MemoryExpiringStore, SQLiteExpiringStore, build_expiring_store
from core.config import get_settings
from core.errors import InsufficientStock, ValidationFailed
from core.models import Page, page_offset
from shop.models import Car


class TestShape:
    def test_camel_case_and_internal_fields_stripped(self):
        user = User(name="Ana", email="a@x.com", role="owner", hashed_password="secret-hash", id=1)
        shaped = shape(user)
        assert "hashedPassword" not in shaped
        assert shaped["createdAt"] == ""

    def test_version_and_mongo_artifacts_stripped(self):
        shaped = shape({"_id": "abc", "__v": 3, "version": 2, "license_plate": "X"})
        assert shaped == {"licensePlate": "X"}

    def test_nested_values_shaped(self):
        car = Car(license_plate="P", customer_name="C", customer_phone="1", make="M", model="N", year=2000)
        shaped = shape({"items": [car]})
        assert "version" not in shaped["items"][0]
        assert shaped["items"][0]["customerPhone"] == "1"

    def test_envelopes(self):
        assert ok(message="Deleted") == {"success": True, "message": "Deleted"}
        body = paged(Page(items=[{"a_b": 1}], page=2, limit=5, total=6))
        assert body == {"success": True, "data": [{"aB": 1}], "page": 2, "limit": 5, "total": 6}
        assert error_body("conflict", "Nope") == {"success": False, "code": "conflict", "message": "Nope"}


class TestErrors:
    def test_for_field(self):
        exc = ValidationFailed.for_field("car", "Car not found")
        assert exc.status_code == 400
        assert exc.message == "Car not found"
        assert exc.errors == [{"field": "car", "message": "Car not found"}]

    def test_insufficient_stock_message(self):
        assert InsufficientStock(available=2.5, requested=3).message == "Insufficient stock. Available: 2.5, Requested: 3"


def test_page_offset():
    assert page_offset(1, 10) == 0
    assert page_offset(3, 10) == 20
    assert page_offset(0, 10) == 0


class TestTokens:
    def test_round_trip(self):
        token = issue_token(Identity(id=7, role="mechanic", name="Ravi", email="ravi@x.com"))
        identity = verify_token(token)
        assert identity == Identity(id=7, role="mechanic", name="Ravi", email="ravi@x.com")

    def test_foreign_signature_rejected(self):
        forged = jwt.encode({"id": 7, "role": "owner"}, "not-the-server-secret-" * 3, algorithm="HS256")
        with pytest.raises(InvalidToken):
            verify_token(forged)

    def test_missing_claims_rejected(self):
        token = jwt.encode({"sub": "7"}, get_settings().secret_key, algorithm="HS256")
        with pytest.raises(InvalidToken):
            verify_token(token)

    def test_password_hashing(self):
        hashed = hash_password("hunter22")
        assert verify_password("hunter22", hashed)
        assert not verify_password("hunter23", hashed)
        assert not verify_password("anything", "")


class TestResetCodes:
    def test_code_shape(self):
        code = generate_code()
        assert len(code) == 6 and code.isdigit()

    def test_single_use(self):
        store = MemoryExpiringStore()
        code = issue_reset_code(store, "Ana@X.com", ttl_seconds=60)
        assert consume_reset_code(store, "ana@x.com", code)
        assert not consume_reset_code(store, "ana@x.com", code)

    def test_reissue_replaces_previous(self):
        store = MemoryExpiringStore()
        first = issue_reset_code(store, "ana@x.com", ttl_seconds=60)
        second = issue_reset_code(store, "ana@x.com", ttl_seconds=60)
        if first != second:
            assert not consume_reset_code(store, "ana@x.com", first)
        assert consume_reset_code(store, "ana@x.com", second)

    def test_expired_code_rejected(self):
        store = MemoryExpiringStore()
        code = issue_reset_code(store, "ana@x.com", ttl_seconds=0.01)
        time.sleep(0.05)
        assert not consume_reset_code(store, "ana@x.com", code)


class TestExpiringStores:
    def test_memory_purge(self):
        store = MemoryExpiringStore()
        store.set("a", {"v": 1}, ttl=0.01)
        store.set("b", {"v": 2}, ttl=60)
        time.sleep(0.05)
        assert store.purge_expired() == 1
        assert store.get("b") == {"v": 2}

    def test_sqlite_store(self, tmp_path):
        store = SQLiteExpiringStore(tmp_path / "codes.db")
        store.set("k", {"code": "123456"}, ttl=60)
        assert store.get("k") == {"code": "123456"}
        store.delete("k")
        assert store.get("k") is None
        store.close()

    def test_build_picks_backend(self, tmp_path):
        assert isinstance(build_expiring_store(""), MemoryExpiringStore)
        sqlite_store = build_expiring_store(str(tmp_path / "codes.db"))
        assert isinstance(sqlite_store, SQLiteExpiringStore)
        sqlite_store.close()
