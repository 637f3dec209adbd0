import re
import unittest

from visitor_beacon.clock import FakeClock
from visitor_beacon.identity import (
    LAST_VISIT_KEY,
    NEW_VISITOR_WINDOW_MS,
    check_if_new_visitor,
    create_identity,
    fingerprint_hash,
    generate_session_id,
    generate_visitor_id,
    to_base36,
)
from visitor_beacon.page import HeadlessPage
from visitor_beacon.storage import MemoryStorage, StorageError


class FailingStorage:
    def get_item(self, key):
        raise StorageError("disk gone")

    def set_item(self, key, value):
        raise StorageError("disk gone")


class TestFingerprint(unittest.TestCase):
    def test_hash_matches_known_values(self):
        self.assertEqual(fingerprint_hash(""), 0)
        self.assertEqual(fingerprint_hash("a"), 97)
        self.assertEqual(fingerprint_hash("ab"), 3105)
        self.assertEqual(fingerprint_hash("hello"), 99162322)

    def test_hash_wraps_to_signed_32_bit(self):
        # Classic String.hashCode() collision with Integer.MIN_VALUE.
        self.assertEqual(fingerprint_hash("polygenelubricants"), -2147483648)

    def test_hash_walks_utf16_code_units(self):
        # 97 * 31 + 0xD800; a lone surrogate hashes like charCodeAt sees it.
        self.assertEqual(fingerprint_hash("a\ud800"), 58303)
        # Astral characters count as their two surrogate halves.
        self.assertEqual(fingerprint_hash("\U0001F600"), 55357 * 31 + 0xDE00)

    def test_visitor_id_with_lone_surrogate(self):
        page = HeadlessPage(user_agent="Mozilla\ud800")
        ident = create_identity(page, MemoryStorage(), FakeClock())
        self.assertTrue(re.fullmatch(r"visitor_[0-9a-z]+", ident.visitor_id))

    def test_base36(self):
        self.assertEqual(to_base36(0), "0")
        self.assertEqual(to_base36(97), "2p")
        self.assertEqual(to_base36(2147483648), "zik0zk")

    def test_visitor_id_is_deterministic(self):
        page = HeadlessPage(user_agent="UA/1.0", language="fr-FR", screen_width=1280, screen_height=800)
        first = generate_visitor_id(page)
        self.assertEqual(first, generate_visitor_id(page))
        self.assertEqual(first, generate_visitor_id(HeadlessPage(user_agent="UA/1.0", language="fr-FR", screen_width=1280, screen_height=800)))
        self.assertTrue(re.fullmatch(r"visitor_[0-9a-z]+", first))

    def test_visitor_id_changes_with_fingerprint_inputs(self):
        a = generate_visitor_id(HeadlessPage(user_agent="UA/1.0"))
        b = generate_visitor_id(HeadlessPage(user_agent="UA/2.0"))
        c = generate_visitor_id(HeadlessPage(user_agent="UA/1.0", timezone_offset_minutes=-120))
        self.assertNotEqual(a, b)
        self.assertNotEqual(a, c)


class TestSession(unittest.TestCase):
    def test_session_id_shape(self):
        clock = FakeClock(start_ms=1_700_000_000_123)
        sid = generate_session_id(clock)
        self.assertTrue(re.fullmatch(r"session_1700000000123_[0-9a-z]{9}", sid), sid)

    def test_session_ids_differ_per_load(self):
        clock = FakeClock()
        self.assertNotEqual(generate_session_id(clock), generate_session_id(clock))


class TestNewVisitor(unittest.TestCase):
    def test_first_second_and_expired(self):
        storage = MemoryStorage()
        t0 = 1_700_000_000_000

        self.assertTrue(check_if_new_visitor(storage, t0))
        self.assertEqual(storage.get_item(LAST_VISIT_KEY), str(t0))

        self.assertFalse(check_if_new_visitor(storage, t0 + 60_000))
        # A returning visit does not move the marker.
        self.assertEqual(storage.get_item(LAST_VISIT_KEY), str(t0))

        # Exactly 24h is still "returning"; strictly more is new again.
        self.assertFalse(check_if_new_visitor(storage, t0 + NEW_VISITOR_WINDOW_MS))
        later = t0 + NEW_VISITOR_WINDOW_MS + 1
        self.assertTrue(check_if_new_visitor(storage, later))
        self.assertEqual(storage.get_item(LAST_VISIT_KEY), str(later))

    def test_malformed_marker_counts_as_new(self):
        storage = MemoryStorage()
        storage.set_item(LAST_VISIT_KEY, "yesterday")
        self.assertTrue(check_if_new_visitor(storage, 5))
        self.assertEqual(storage.get_item(LAST_VISIT_KEY), "5")

    def test_storage_failure_is_not_fatal(self):
        with self.assertLogs("visitor_beacon.identity", level="ERROR"):
            self.assertTrue(check_if_new_visitor(FailingStorage(), 5))

    def test_create_identity(self):
        clock = FakeClock(start_ms=42_000)
        storage = MemoryStorage()
        page = HeadlessPage()
        ident = create_identity(page, storage, clock)
        self.assertTrue(ident.is_new_visitor)
        self.assertEqual(ident.session_start_ms, 42_000)
        self.assertEqual(ident.visitor_id, generate_visitor_id(page))
        again = create_identity(page, storage, clock)
        self.assertFalse(again.is_new_visitor)
        self.assertEqual(again.visitor_id, ident.visitor_id)
        self.assertNotEqual(again.session_id, ident.session_id)


if __name__ == "__main__":
    unittest.main()
