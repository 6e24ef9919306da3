from django.test import SimpleTestCase

from .status import (
    CANCELLED,
    CANCELLED_STATUSES,
    FAILED,
    FAILED_STATUSES,
    PENDING,
    PENDING_STATUSES,
    SUCCESS,
    SUCCESS_STATUSES,
    classify_status,
)


class ClassifyStatusTests(SimpleTestCase):
    def test_synonyms_map_to_their_category(self):
        for names, category in (
            (SUCCESS_STATUSES, SUCCESS),
            (FAILED_STATUSES, FAILED),
            (CANCELLED_STATUSES, CANCELLED),
            (PENDING_STATUSES, PENDING),
        ):
            for name in names:
                with self.subTest(name=name):
                    self.assertEqual(classify_status(name), category)
                    self.assertEqual(classify_status(name.lower()), category)

    def test_surrounding_whitespace_is_ignored(self):
        self.assertEqual(classify_status("  paid "), SUCCESS)
        self.assertEqual(classify_status("\tuser_dropped\n"), CANCELLED)

    def test_empty_and_missing_default_to_pending(self):
        for value in (None, "", "   "):
            with self.subTest(value=value):
                self.assertEqual(classify_status(value), PENDING)

    def test_unknown_values_default_to_pending(self):
        self.assertEqual(classify_status("weird"), PENDING)
        self.assertEqual(classify_status("REFUNDED"), PENDING)

    def test_substring_match_for_pending_like_values(self):
        self.assertEqual(classify_status("payment_pending_bank"), PENDING)
        self.assertEqual(classify_status("STILL_PROCESSING"), PENDING)

    def test_classification_is_idempotent(self):
        for value in ("paid", "failure", "dropped", "initiated", "bogus", ""):
            with self.subTest(value=value):
                once = classify_status(value)
                self.assertEqual(classify_status(once), once)
