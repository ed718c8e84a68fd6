"""
Document store tests.

Verifies:
- Collection / document / nested-field reads
- Multi-location updates
- Compare-and-swap writes
- Time-ordered push keys
"""

import pytest

from pharmapos.services.document_store import (
    StaleDocumentError,
    StoreError,
    generate_push_key,
    split_path,
)


class TestReads:

    def test_missing_paths(self, store):
        assert store.get("sales") == {}
        assert store.get("sales/nope") is None
        assert store.get("sales/nope/payment") is None

    def test_collection_document_and_field(self, store):
        store.set("users/7", {"email": "a@b.c", "role": "admin"})
        assert store.get("users") == {"7": {"email": "a@b.c", "role": "admin"}}
        assert store.get("users/7")["role"] == "admin"
        assert store.get("users/7/role") == "admin"

    def test_reads_are_copies(self, store):
        store.set("users/7", {"role": "admin"})
        body = store.get("users/7")
        body["role"] = "user"
        assert store.get("users/7/role") == "admin"

    def test_empty_path(self, store):
        with pytest.raises(StoreError):
            split_path("/")


class TestWrites:

    def test_nested_set_creates_document(self, store):
        store.set("medicines/m1/quantity", 4)
        assert store.get("medicines/m1") == {"quantity": 4}

    def test_nested_set_keeps_siblings(self, store):
        store.set("medicines/m1", {"name": "A", "quantity": 4})
        store.set("medicines/m1/quantity", 1)
        assert store.get("medicines/m1") == {"name": "A", "quantity": 1}

    def test_update_many_paths(self, store):
        store.set("medicines/m1", {"name": "A", "quantity": 4})
        store.update({
            "medicines/m1/quantity": 2,
            "sales/s1": {"grandTotal": 10},
            "saleCommits/s1/status": "pending",
        })
        assert store.get("medicines/m1/quantity") == 2
        assert store.get("sales/s1") == {"grandTotal": 10}
        assert store.get("saleCommits/s1") == {"status": "pending"}

    def test_delete(self, store):
        store.set("sales/s1", {"grandTotal": 10})
        store.delete("sales/s1")
        assert store.get("sales/s1") is None

    def test_push_returns_new_key(self, store):
        key = store.push("sales", {"grandTotal": 1})
        assert len(key) == 20
        assert store.get(f"sales/{key}") == {"grandTotal": 1}

    def test_replace_collection(self, store):
        store.set("medicines/old", {"name": "Old"})
        store.replace_collection("medicines", {"new": {"name": "New"}})
        assert store.get("medicines") == {"new": {"name": "New"}}

    def test_collection_set_requires_object(self, store):
        with pytest.raises(StoreError):
            store.set("medicines", [1, 2])


class TestCompareAndSwap:

    def test_version_increments(self, store):
        store.set("sales/s1", {"grandTotal": 10})
        _, first = store.get_versioned("sales/s1")
        store.set("sales/s1/grandTotal", 11)
        _, second = store.get_versioned("sales/s1")
        assert second == first + 1

    def test_matching_version_writes(self, store):
        store.set("sales/s1", {"grandTotal": 10})
        _, version = store.get_versioned("sales/s1")
        store.set("sales/s1", {"grandTotal": 12}, expected_version=version)
        assert store.get("sales/s1/grandTotal") == 12

    def test_stale_version_rejected(self, store):
        store.set("sales/s1", {"grandTotal": 10})
        _, version = store.get_versioned("sales/s1")
        store.set("sales/s1/grandTotal", 11)
        with pytest.raises(StaleDocumentError):
            store.set("sales/s1", {"grandTotal": 99}, expected_version=version)
        assert store.get("sales/s1/grandTotal") == 11

    def test_missing_document_is_stale(self, store):
        with pytest.raises(StaleDocumentError):
            store.set("sales/gone", {"grandTotal": 1}, expected_version=1)

    def test_get_versioned_missing(self, store):
        assert store.get_versioned("sales/none") == (None, None)


class TestPushKeys:

    def test_keys_sort_by_time(self):
        keys = [generate_push_key(ms) for ms in (1_700_000_000_000, 1_700_000_000_001, 1_800_000_000_000)]
        assert keys == sorted(keys)

    def test_keys_are_unique(self):
        assert len({generate_push_key(1) for _ in range(50)}) == 50
