import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from biorotator.descriptions import (
    MAX_LENGTH_FREE,
    MAX_LENGTH_SHORT_DESCRIPTION,
    Description,
    DescriptionFileError,
    DescriptionList,
    DescriptionNotFoundError,
    DescriptionStore,
    DescriptionValidationError,
    load_descriptions,
    save_descriptions,
    validate_list,
    validate_list_all,
    validate_text,
)


class ValidateTextTests(unittest.TestCase):
    def test_accepts_plain_and_unicode_text(self):
        validate_text("Hello World!", 70)
        validate_text("Привет мир! 👋", 70)
        validate_text("two\nlines\tand tab", 70)

    def test_rejects_empty(self):
        with self.assertRaises(DescriptionValidationError):
            validate_text("", 70)

    def test_rejects_too_long(self):
        with self.assertRaises(DescriptionValidationError):
            validate_text("a" * 71, 70)
        validate_text("a" * 100, 140)

    def test_rejects_control_characters(self):
        with self.assertRaises(DescriptionValidationError):
            validate_text("bell\x07", 70)

    def test_rejects_zero_width_and_embedded_objects(self):
        for text in ("Hello\u200bWorld", "a\u2060b", "\ufeffBOM", "image \ufffc here"):
            with self.assertRaises(DescriptionValidationError, msg=repr(text)):
                validate_text(text, 70)


class ValidateListTests(unittest.TestCase):
    def test_valid_list(self):
        validate_list(DescriptionList.example())

    def test_problems(self):
        cases = [
            DescriptionList(),
            DescriptionList([Description("a", "x", 10), Description("a", "y", 10)]),
            DescriptionList([Description("a", "", 10)]),
            DescriptionList([Description("a", "x" * 71, 10)]),
            DescriptionList([Description("a", "x", 0)]),
        ]
        for data in cases:
            with self.assertRaises(DescriptionValidationError):
                validate_list(data)

    def test_premium_raises_limit(self):
        data = DescriptionList([Description("a", "x" * 100, 10)], is_premium=True)
        validate_list(data)

    def test_limit_capped_at_short_description_length(self):
        self.assertEqual(DescriptionList().max_length(), MAX_LENGTH_FREE)
        self.assertEqual(DescriptionList(is_premium=True).max_length(), MAX_LENGTH_SHORT_DESCRIPTION)
        validate_list(DescriptionList([Description("a", "x" * 120, 10)], is_premium=True))
        with self.assertRaises(DescriptionValidationError):
            validate_list(DescriptionList([Description("a", "x" * 121, 10)], is_premium=True))

    def test_validate_all_reports_per_entry(self):
        data = DescriptionList(
            [
                Description("ok", "fine", 10),
                Description("ok", "dup", 10),
                Description("zero", "text", 0),
            ]
        )
        problems = validate_list_all(data)
        self.assertIsNone(problems[0])
        self.assertIn("Duplicate", problems[1])
        self.assertIn("invalid duration", problems[2])
        self.assertEqual(validate_list_all(DescriptionList()), ["No descriptions configured"])


class DescriptionFileTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.path = Path(tmp.name) / "descriptions.json"

    def test_round_trip(self):
        save_descriptions(self.path, DescriptionList.example())
        self.assertEqual(load_descriptions(self.path), DescriptionList.example())

    def test_failed_write_removes_temp_file(self):
        save_descriptions(self.path, DescriptionList.example())
        with mock.patch("biorotator.descriptions.models.os.fsync", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                save_descriptions(self.path, DescriptionList())
        self.assertFalse(self.path.with_name("descriptions.json.tmp").exists())
        self.assertEqual(load_descriptions(self.path), DescriptionList.example())

    def test_missing_file(self):
        with self.assertRaises(DescriptionFileError):
            load_descriptions(self.path)

    def test_malformed_entries(self):
        self.path.write_text(json.dumps({"descriptions": [{"id": "a"}]}), encoding="utf-8")
        with self.assertRaises(DescriptionFileError):
            load_descriptions(self.path)
        self.path.write_text(json.dumps({"descriptions": {}}), encoding="utf-8")
        with self.assertRaises(DescriptionFileError):
            load_descriptions(self.path)


class DescriptionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.path = Path(tmp.name) / "descriptions.json"
        save_descriptions(self.path, DescriptionList.example())
        self.store = DescriptionStore.load(self.path)

    def test_accessors(self):
        self.assertEqual(self.store.count(), 3)
        self.assertEqual(self.store.get(1).id, "working")
        self.assertIsNone(self.store.get(3))
        self.assertEqual(self.store.max_length(), 70)

    def test_resolve_by_id_or_position(self):
        self.assertEqual(self.store.resolve("evening"), 2)
        self.assertEqual(self.store.resolve("1"), 0)
        for target in ("0", "4", "nope"):
            with self.assertRaises(DescriptionNotFoundError):
                self.store.resolve(target)

    def test_snapshot_is_detached(self):
        snapshot = self.store.snapshot()
        self.store.edit_text("morning", "changed")
        self.assertNotEqual(snapshot.descriptions[0].text, "changed")

    def test_add_persists(self):
        self.store.add(Description("night", "Sleeping", 600))
        self.assertEqual(self.store.count(), 4)
        self.assertEqual(load_descriptions(self.path).descriptions[-1].id, "night")

    def test_add_rejects_bad_input(self):
        bad = [
            Description("morning", "dup", 10),
            Description("has space", "x", 10),
            Description("new", "x", 0),
            Description("new", "x" * 71, 10),
        ]
        for description in bad:
            with self.assertRaises(DescriptionValidationError):
                self.store.add(description)
        self.assertEqual(self.store.count(), 3)

    def test_premium_store_rejects_text_over_short_description_limit(self):
        store = DescriptionStore(self.path, DescriptionList(is_premium=True))
        store.add(Description("long", "x" * 120, 10))
        with self.assertRaises(DescriptionValidationError):
            store.add(Description("longer", "x" * 121, 10))
        with self.assertRaises(DescriptionValidationError):
            store.edit_text("long", "y" * 130)
        self.assertEqual(store.get(0).text, "x" * 120)

    def test_edit_and_duration(self):
        old_text = self.store.edit_text("working", "Busy")
        self.assertEqual(old_text, "💻 Currently working...")
        old_duration = self.store.set_duration("working", 60)
        self.assertEqual(old_duration, 7200)
        stored = load_descriptions(self.path).descriptions[1]
        self.assertEqual((stored.text, stored.duration_secs), ("Busy", 60))

    def test_delete(self):
        index, removed = self.store.delete("working")
        self.assertEqual(index, 1)
        self.assertEqual(removed.id, "working")
        self.assertEqual([d.id for d in load_descriptions(self.path).descriptions], ["morning", "evening"])
        with self.assertRaises(DescriptionNotFoundError):
            self.store.delete("working")

    def test_failed_save_rolls_back(self):
        store = DescriptionStore(Path(self.path.parent, "missing", "d.json"), DescriptionList.example())
        with self.assertLogs("biorotator.descriptions.store", level="WARNING"):
            with self.assertRaises(DescriptionFileError):
                store.delete("morning")
        self.assertEqual(store.count(), 3)
        with self.assertLogs("biorotator.descriptions.store", level="WARNING"):
            with self.assertRaises(DescriptionFileError):
                store.edit_text("morning", "new")
        self.assertEqual(store.get(0).text, DescriptionList.example().descriptions[0].text)

    def test_reload(self):
        save_descriptions(self.path, DescriptionList([Description("only", "one", 10)]))
        self.assertEqual(self.store.reload(), (3, 1))
        self.assertEqual(self.store.get(0).id, "only")

    def test_reload_rejects_invalid_file(self):
        save_descriptions(self.path, DescriptionList())
        with self.assertRaises(DescriptionValidationError):
            self.store.reload()
        self.assertEqual(self.store.count(), 3)


if __name__ == "__main__":
    unittest.main()
