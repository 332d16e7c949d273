"""Tests for envelope stamping."""

from __future__ import annotations

from docshelf.documents.envelope import (
    PROTECTED_FIELDS,
    SystemField,
    is_system_field,
    stamp_for_create,
    stamp_for_patch,
    stamp_for_replace,
    strip_storage_id,
    update_pipeline,
)


class TestStampForCreate:
    def test_adds_envelope(self) -> None:
        document = stamp_for_create({"total": 10}, owner="alice", identity="id-1", now=1000)

        assert document == {
            "total": 10,
            "_uuid": "id-1",
            "_owner": "alice",
            "_created": 1000,
            "_updated": 1000,
        }
        assert "_deleted" not in document

    def test_caller_cannot_forge_envelope(self) -> None:
        forged = {
            "_uuid": "forged",
            "_owner": "mallory",
            "_created": 1,
            "_updated": 2,
            "_id": "storage",
            "name": "x",
        }

        document = stamp_for_create(forged, owner="alice", identity="id-1", now=1000)

        assert document["_uuid"] == "id-1"
        assert document["_owner"] == "alice"
        assert document["_created"] == 1000
        assert document["_updated"] == 1000
        assert "_id" not in document
        assert document["name"] == "x"

    def test_does_not_mutate_input(self) -> None:
        data = {"total": 10}
        stamp_for_create(data, owner="alice", identity="id-1", now=1000)
        assert data == {"total": 10}


class TestStampForPatch:
    def test_only_named_keys_and_updated(self) -> None:
        assert stamp_for_patch({"total": 999}, now=2000) == {"total": 999, "_updated": 2000}

    def test_drops_protected_fields(self) -> None:
        values = stamp_for_patch(
            {"_uuid": "other", "_owner": "bob", "_created": 1, "_id": 5, "_deleted": True},
            now=2000,
        )

        assert values == {"_deleted": True, "_updated": 2000}

    def test_caller_updated_is_overwritten(self) -> None:
        assert stamp_for_patch({"_updated": 1}, now=2000)["_updated"] == 2000


class TestStampForReplace:
    existing = {
        "_uuid": "id-1",
        "_owner": "alice",
        "_created": 1000,
        "_updated": 1500,
        "_deleted": False,
        "_custom": "kept",
        "a": 1,
        "c": 3,
    }

    def test_drops_absent_user_fields_and_keeps_system_fields(self) -> None:
        document = stamp_for_replace({"a": 2, "b": 5}, self.existing, now=2000)

        assert document == {
            "a": 2,
            "b": 5,
            "_uuid": "id-1",
            "_owner": "alice",
            "_created": 1000,
            "_updated": 2000,
            "_deleted": False,
            "_custom": "kept",
        }

    def test_existing_system_fields_win_over_caller(self) -> None:
        document = stamp_for_replace(
            {"_uuid": "forged", "_owner": "mallory", "_created": 1}, self.existing, now=2000
        )

        assert document["_uuid"] == "id-1"
        assert document["_owner"] == "alice"
        assert document["_created"] == 1000

    def test_never_carries_storage_id(self) -> None:
        document = stamp_for_replace({"_id": "x"}, {**self.existing, "_id": "y"}, now=2000)
        assert "_id" not in document


class TestUpdatePipeline:
    def test_wraps_values_and_advances_updated(self) -> None:
        pipeline = update_pipeline({"price": "$5", "_deleted": True, "_updated": 2000})

        assert pipeline == [
            {
                "$set": {
                    "price": {"$literal": "$5"},
                    "_deleted": {"$literal": True},
                    "_updated": {"$max": [2000, {"$add": [{"$ifNull": ["$_updated", 0]}, 1]}]},
                }
            }
        ]

    def test_does_not_mutate_values(self) -> None:
        values = stamp_for_patch({"total": 1}, now=5)

        update_pipeline(values)

        assert values == {"total": 1, "_updated": 5}


class TestSystemFields:
    def test_prefix_convention(self) -> None:
        assert is_system_field("_uuid")
        assert is_system_field("_anything")
        assert not is_system_field("total")

    def test_enum_values_are_plain_keys(self) -> None:
        assert SystemField.IDENTITY == "_uuid"
        assert "_owner" in PROTECTED_FIELDS
        assert "_deleted" not in PROTECTED_FIELDS

    def test_strip_storage_id(self) -> None:
        assert strip_storage_id({"_id": 1, "a": 2}) == {"a": 2}
