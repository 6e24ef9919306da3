from decimal import Decimal

from django.test import SimpleTestCase

from .utils import MAX_AMOUNT, AmountOutOfRange, parse_amount, to_decimal


class ParseAmountTests(SimpleTestCase):
    def test_quantizes_to_two_places(self):
        self.assertEqual(parse_amount("12.345"), Decimal("12.35"))
        self.assertEqual(parse_amount(1234), Decimal("1234.00"))

    def test_non_positive_and_garbage_are_absent(self):
        for value in (None, "", "0", "-3", "abc", "NaN", "0.001"):
            with self.subTest(value=value):
                self.assertIsNone(parse_amount(value))

    def test_largest_column_value_is_accepted(self):
        self.assertEqual(parse_amount("9999999999.99"), MAX_AMOUNT)

    def test_values_beyond_the_column_raise(self):
        for value in ("123456789012345", "9999999999.999", "1e30"):
            with self.subTest(value=value):
                with self.assertRaises(AmountOutOfRange):
                    parse_amount(value)

    def test_to_decimal_treats_out_of_range_as_absent(self):
        self.assertIsNone(to_decimal("123456789012345"))
        self.assertEqual(to_decimal("50"), Decimal("50.00"))
