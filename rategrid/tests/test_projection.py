import unittest
from datetime import date

from rategrid.core.dates import DateWindow, days_in_range, format_date
from rategrid.core.models import OccupancyPrice, RatePeriod, RateType
from rategrid.core.projection import DayValue, collapse_to_periods, project, resolve_price, to_wire

MARCH = DateWindow(date(2025, 3, 1), date(2025, 3, 20))


def _period(start, end, rate_type_id=1, price=None, minimum_stay=None, label=None, promo=False, acc=1):
    return RatePeriod(
        accommodation_id=acc,
        start=start,
        end=end,
        rate_type_id=rate_type_id,
        occupancy_prices=[OccupancyPrice(2, price)] if price is not None else [],
        minimum_stay=minimum_stay,
        has_promotion=promo,
        label=label,
    )


def _days(first, last):
    return [format_date(d) for d in days_in_range(date(2025, 3, first), date(2025, 3, last))]


class ProjectionTests(unittest.TestCase):
    def test_last_period_wins_on_overlap(self):
        p1 = _period(date(2025, 3, 1), date(2025, 3, 10), price=100)
        p2 = _period(date(2025, 3, 5), date(2025, 3, 15), price=120)
        result = project([p1, p2], MARCH)

        for iso in _days(1, 4):
            self.assertEqual(result.price(1, iso, 1), 100)
        for iso in _days(5, 15):
            self.assertEqual(result.price(1, iso, 1), 120)
        for iso in _days(16, 20):
            self.assertIsNone(result.price(1, iso, 1))
            self.assertNotIn(iso, result.daily[1])

    def test_minimum_stay_takes_the_maximum(self):
        a = _period(date(2025, 3, 1), date(2025, 3, 10), minimum_stay=2)
        b = _period(date(2025, 3, 5), date(2025, 3, 7), minimum_stay=5)
        shorter_later = _period(date(2025, 3, 6), date(2025, 3, 6), minimum_stay=1)
        result = project([a, b, shorter_later], MARCH)

        for iso in _days(1, 4) + _days(8, 10):
            self.assertEqual(result.minimum_stay(1, iso), 2)
        for iso in _days(5, 7):
            self.assertEqual(result.minimum_stay(1, iso), 5)

    def test_minimum_stay_is_also_kept_per_rate_type(self):
        public = _period(date(2025, 3, 1), date(2025, 3, 3), rate_type_id=10, price=100, minimum_stay=5)
        weekly = _period(date(2025, 3, 1), date(2025, 3, 3), rate_type_id=20, price=70, minimum_stay=1)
        result = project([public, weekly], MARCH)

        self.assertEqual(result.minimum_stay(1, "2025-03-02"), 5)
        self.assertEqual(result.rate_type_minimum_stay(1, "2025-03-02", 10), 5)
        self.assertEqual(result.rate_type_minimum_stay(1, "2025-03-02", 20), 1)
        self.assertIsNone(result.rate_type_minimum_stay(1, "2025-03-02", 30))

        result.set_minimum_stay(1, "2025-03-02", 3)
        self.assertEqual(result.rate_type_minimum_stay(1, "2025-03-02", 10), 3)
        self.assertEqual(result.rate_type_minimum_stay(1, "2025-03-02", 20), 3)
        result.set_minimum_stay(1, "2025-03-02", None)
        self.assertIsNone(result.rate_type_minimum_stay(1, "2025-03-02", 20))

    def test_clipping_to_window(self):
        outside = _period(date(2025, 4, 1), date(2025, 4, 30), price=50)
        partial = _period(date(2025, 2, 20), date(2025, 3, 2), price=70, acc=2)
        result = project([outside, partial], MARCH)

        self.assertNotIn(1, result.daily)
        self.assertEqual(sorted(result.daily[2]), ["2025-03-01", "2025-03-02"])

    def test_priceless_period_still_contributes_flags(self):
        period = _period(date(2025, 3, 1), date(2025, 3, 1), minimum_stay=3, promo=True, label="Promo")
        cell = project([period], MARCH).day(1, "2025-03-01")
        self.assertEqual(cell.price_by_rate_type, {})
        self.assertEqual(cell.minimum_stay, 3)
        self.assertTrue(cell.has_promotion)
        self.assertEqual(cell.rate_type_labels, ["Promo"])

    def test_promotion_is_sticky_and_labels_are_capped(self):
        periods = [
            _period(date(2025, 3, 1), date(2025, 3, 1), rate_type_id=1, price=10, label="A", promo=True),
            _period(date(2025, 3, 1), date(2025, 3, 1), rate_type_id=2, price=20, label="B"),
            _period(date(2025, 3, 1), date(2025, 3, 1), rate_type_id=3, price=30, label="C"),
            _period(date(2025, 3, 1), date(2025, 3, 1), rate_type_id=1, price=11, label="A"),
        ]
        cell = project(periods, MARCH).day(1, "2025-03-01")
        self.assertTrue(cell.has_promotion)
        self.assertEqual(cell.rate_type_labels, ["A", "B"])
        self.assertEqual(cell.price_by_rate_type, {1: 11, 2: 20, 3: 30})

    def test_malformed_periods_are_skipped(self):
        good = _period(date(2025, 3, 1), date(2025, 3, 1), price=10)
        reversed_dates = _period(date(2025, 3, 5), date(2025, 3, 1), price=99)
        result = project([None, reversed_dates, "junk", good], MARCH)
        self.assertEqual(result.price(1, "2025-03-01", 1), 10)
        self.assertIsNone(result.price(1, "2025-03-03", 1))

    def test_price_resolution_order(self):
        period = _period(date(2025, 3, 1), date(2025, 3, 1))
        period.occupancy_prices = [OccupancyPrice(1, 80.0), OccupancyPrice(2, 100.0)]
        self.assertEqual(resolve_price(period), 100.0)
        period.occupancy_prices = [OccupancyPrice(1, None), OccupancyPrice(3, 130.0)]
        self.assertEqual(resolve_price(period), 130.0)
        period.occupancy_prices = []
        period.flat_price = 75.0
        self.assertEqual(resolve_price(period), 75.0)

    def test_catalog_dedup_ordering_and_label_upgrade(self):
        known = [
            RateType(id=5, label="Type 5"),
            RateType(id=7, label="Week", order=2),
            RateType(id=3, label="Public", order=1),
        ]
        periods = [
            _period(date(2025, 3, 1), date(2025, 3, 1), rate_type_id=5, label="Non refundable"),
            _period(date(2025, 3, 1), date(2025, 3, 1), rate_type_id=7, label="Other label"),
            _period(date(2025, 3, 1), date(2025, 3, 1), rate_type_id=9),
            # Outside the window, but the rate type is still discovered.
            _period(date(2025, 6, 1), date(2025, 6, 1), rate_type_id=11, label="Summer"),
        ]
        catalog = project(periods, MARCH, known).rate_type_catalog

        ids = [rt.id for rt in catalog]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(ids, [3, 7, 5, 9, 11])
        labels = {rt.id: rt.label for rt in catalog}
        self.assertEqual(labels[5], "Non refundable")
        self.assertEqual(labels[7], "Week")
        self.assertEqual(labels[9], "Type 9")

    def test_default_rate_type(self):
        result = project([], MARCH, [RateType(id=3, label="A", order=1), RateType(id=4, label="B", order=2)])
        self.assertEqual(result.default_rate_type_id(4), 4)
        self.assertEqual(result.default_rate_type_id(99), 3)
        self.assertIsNone(project([], MARCH).default_rate_type_id(None))

    def test_to_wire(self):
        period = _period(date(2025, 3, 1), date(2025, 3, 2), price=90, minimum_stay=2, promo=True, label="Public")
        wire = to_wire(project([period], MARCH), 1)
        self.assertEqual(wire["rates"], {"2025-03-01": {1: 90}, "2025-03-02": {1: 90}})
        self.assertEqual(wire["promo"], {"2025-03-01": True, "2025-03-02": True})
        self.assertEqual(wire["rateTypes"]["2025-03-01"], ["Public"])
        self.assertEqual(wire["dureeMin"], {"2025-03-01": 2, "2025-03-02": 2})


class CollapseTests(unittest.TestCase):
    def test_contiguous_equal_days_merge(self):
        days = [
            DayValue("2025-03-01", 1, 100.0, 2),
            DayValue("2025-03-02", 1, 100.0, 2),
            DayValue("2025-03-03", 1, 120.0, 2),
            DayValue("2025-03-05", 1, 120.0, 2),
            DayValue("2025-03-01", 2, 80.0),
        ]
        periods = collapse_to_periods(4, days)
        spans = [(p.rate_type_id, p.start.day, p.end.day, resolve_price(p)) for p in periods]
        self.assertEqual(
            spans,
            [(1, 1, 2, 100.0), (1, 3, 3, 120.0), (1, 5, 5, 120.0), (2, 1, 1, 80.0)],
        )
        self.assertTrue(all(p.accommodation_id == 4 for p in periods))

    def test_later_edit_of_same_day_wins(self):
        days = [
            DayValue("2025-03-01", 1, 100.0),
            DayValue("2025-03-02", 1, 100.0),
            DayValue("2025-03-01", 1, 150.0),
            DayValue("bad-date", 1, 1.0),
        ]
        periods = collapse_to_periods(1, days)
        self.assertEqual([(p.start.day, p.end.day, resolve_price(p)) for p in periods], [(1, 1, 150.0), (2, 2, 100.0)])


if __name__ == "__main__":
    unittest.main()
