import unittest
from datetime import date, datetime

from rategrid.core.dates import (
    DateWindow,
    add_days,
    add_months,
    date_range_strings,
    days_in_range,
    parse_date,
    weeks_in_range,
    window_for,
)


class DateMathTests(unittest.TestCase):
    def test_parse_date_accepts_time_suffix_and_rejects_garbage(self):
        self.assertEqual(parse_date("2025-03-01T00:00:00"), date(2025, 3, 1))
        self.assertEqual(parse_date(datetime(2025, 3, 1, 12, 30)), date(2025, 3, 1))
        self.assertIsNone(parse_date("2025-02-30"))
        self.assertIsNone(parse_date("not a date"))
        self.assertIsNone(parse_date(20250301))

    def test_add_months_clamps_to_month_end(self):
        self.assertEqual(add_months(date(2025, 1, 31), 1), date(2025, 2, 28))
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2025, 11, 15), 3), date(2026, 2, 15))

    def test_add_days_crosses_month_and_year(self):
        self.assertEqual(add_days(date(2025, 12, 31), 1), date(2026, 1, 1))
        self.assertEqual(add_days(date(2025, 3, 1), -1), date(2025, 2, 28))

    def test_days_in_range_is_inclusive_and_empty_when_reversed(self):
        self.assertEqual(len(days_in_range(date(2025, 3, 1), date(2025, 3, 10))), 10)
        self.assertEqual(days_in_range(date(2025, 3, 2), date(2025, 3, 1)), [])

    def test_date_range_strings_is_order_independent(self):
        forward = date_range_strings("2025-03-01", "2025-03-03")
        backward = date_range_strings("2025-03-03", "2025-03-01")
        self.assertEqual(forward, ["2025-03-01", "2025-03-02", "2025-03-03"])
        self.assertEqual(forward, backward)
        self.assertEqual(date_range_strings("2025-03-01", "bad"), [])

    def test_weeks_first_row_starts_at_start_then_aligns_to_monday(self):
        # 2025-03-05 is a Wednesday
        weeks = weeks_in_range(date(2025, 3, 5), 1)
        self.assertEqual(weeks[0][0], date(2025, 3, 5))
        self.assertEqual(weeks[0][-1], date(2025, 3, 9))
        for row in weeks[1:]:
            self.assertEqual(row[0].weekday(), 0)
            self.assertLessEqual(len(row), 7)

        flat = [d for row in weeks for d in row]
        self.assertEqual(flat, days_in_range(date(2025, 3, 5), date(2025, 4, 4)))

    def test_window_clip(self):
        window = window_for(date(2025, 3, 1), 1)
        self.assertEqual(window, DateWindow(date(2025, 3, 1), date(2025, 4, 1)))
        self.assertEqual(
            window.clip(date(2025, 2, 20), date(2025, 3, 3)),
            DateWindow(date(2025, 3, 1), date(2025, 3, 3)),
        )
        self.assertIsNone(window.clip(date(2025, 4, 2), date(2025, 4, 9)))
        self.assertTrue(window.contains(date(2025, 4, 1)))
        self.assertFalse(window.contains(date(2025, 2, 28)))


if __name__ == "__main__":
    unittest.main()
