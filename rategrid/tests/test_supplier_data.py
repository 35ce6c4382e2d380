import unittest
from datetime import date
from unittest import mock

from rategrid.client.cancellation import CancellationToken, LoadCancelled
from rategrid.client.errors import OpenProHttpError
from rategrid.client.loaders import load_supplier_data
from rategrid.client.supplier_data import SupplierDataOrchestrator
from rategrid.core.bulk_edit import apply_price
from rategrid.core.dates import window_for
from rategrid.core.models import Supplier

START = date(2025, 3, 1)


class FakeOpenPro:
    """In-memory stand-in for OpenProClient keyed by supplier id."""

    def __init__(self, failing_suppliers=(), failing_rates=(), on_rates=None):
        self.failing_suppliers = set(failing_suppliers)
        self.failing_rates = set(failing_rates)
        self.on_rates = on_rates
        self.calls = []

    def list_accommodations(self, supplier_id, *, token=None):
        self.calls.append(("accommodations", supplier_id))
        if token is not None:
            token.raise_if_cancelled()
        if supplier_id in self.failing_suppliers:
            raise OpenProHttpError("HTTP 500", 500, "down")
        return {
            "hebergements": [
                {"idHebergement": supplier_id * 10 + 1, "nomHebergement": "Chalet"},
                {"idHebergement": supplier_id * 10 + 2, "nomHebergement": "Gîte"},
            ]
        }

    def list_rate_types(self, supplier_id, *, token=None):
        return {"typeTarifs": [{"idTypeTarif": 1, "libelle": "Public", "ordre": 1}]}

    def list_accommodation_rate_type_links(self, supplier_id, accommodation_id, *, token=None):
        return {"liaisonHebergementTypeTarifs": [{"idTypeTarif": 1}, {"idTypeTarif": 2}]}

    def get_stock(self, supplier_id, accommodation_id, debut=None, fin=None, *, token=None):
        return {"jours": [{"date": debut, "dispo": 1}]}

    def get_rates(self, supplier_id, accommodation_id, params=None, *, token=None):
        if self.on_rates is not None:
            self.on_rates(supplier_id, accommodation_id)
        if token is not None:
            token.raise_if_cancelled()
        if accommodation_id in self.failing_rates:
            raise OpenProHttpError("HTTP 502", 502, None)
        return {
            "tarifs": [
                {"debut": "2025-03-01", "fin": "2025-03-05", "idTypeTarif": 1, "prix": 100 + supplier_id},
            ]
        }


class LoaderTests(unittest.TestCase):
    def test_load_supplier_data_projects_rates(self):
        data = load_supplier_data(FakeOpenPro(), Supplier(1, "A"), window_for(START, 1))
        self.assertEqual([a.id for a in data.accommodations], [11, 12])
        self.assertEqual(data.projection.price(11, "2025-03-03", 1), 101)
        self.assertEqual(data.stock[11], {"2025-03-01": 1})
        self.assertEqual([(rt.id, rt.label) for rt in data.rate_types], [(1, "Public"), (2, "Type 2")])
        self.assertEqual(data.warnings, [])

    def test_failing_accommodation_is_skipped(self):
        data = load_supplier_data(FakeOpenPro(failing_rates={11}), Supplier(1, "A"), window_for(START, 1))
        self.assertIsNone(data.projection.price(11, "2025-03-03", 1))
        self.assertEqual(data.projection.price(12, "2025-03-03", 1), 101)
        self.assertEqual(len(data.warnings), 1)

    def test_cancellation_propagates(self):
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(LoadCancelled):
            load_supplier_data(FakeOpenPro(), Supplier(1, "A"), window_for(START, 1), token=token)

    def test_rate_cache_round_trip(self):
        cached_payload = {"tarifs": [{"debut": "2025-03-02", "fin": "2025-03-02", "idTypeTarif": 1, "prix": 55}]}
        with mock.patch("rategrid.client.loaders.get_cached", side_effect=[None, cached_payload]) as get_cached, \
                mock.patch("rategrid.client.loaders.set_cached") as set_cached:
            data = load_supplier_data(
                FakeOpenPro(), Supplier(1, "A"), window_for(START, 1), cache_client=object()
            )
        self.assertEqual(get_cached.call_count, 2)
        self.assertEqual(set_cached.call_count, 1)
        self.assertEqual(data.projection.price(11, "2025-03-02", 1), 101)
        self.assertEqual(data.projection.price(12, "2025-03-02", 1), 55)

    def test_cache_failures_fall_back_to_upstream(self):
        with mock.patch("rategrid.client.loaders.get_cached", side_effect=RuntimeError("db down")), \
                mock.patch("rategrid.client.loaders.set_cached", side_effect=RuntimeError("db down")):
            data = load_supplier_data(
                FakeOpenPro(), Supplier(1, "A"), window_for(START, 1), cache_client=object()
            )
        self.assertEqual(data.projection.price(12, "2025-03-02", 1), 101)


class OrchestratorTests(unittest.TestCase):
    def test_failure_on_one_supplier_does_not_block_others(self):
        client = FakeOpenPro(failing_suppliers={1})
        orchestrator = SupplierDataOrchestrator(client)
        loaded = orchestrator.load_all([Supplier(1, "A"), Supplier(2, "B")], START, 1)

        self.assertEqual(list(loaded), [2])
        self.assertEqual(len(orchestrator.warnings), 1)
        self.assertIn("A", orchestrator.warnings[0])
        self.assertEqual([c for c in client.calls if c[0] == "accommodations"], [("accommodations", 1), ("accommodations", 2)])

    def test_reload_clears_modifications(self):
        orchestrator = SupplierDataOrchestrator(FakeOpenPro())
        orchestrator.load_all([Supplier(1, "A")], START, 1)
        grid = orchestrator.grids[1]
        grid.selected_dates = frozenset({"2025-03-01"})
        apply_price(grid, 200.0)
        grid.selected_accommodations = {11}
        self.assertTrue(grid.has_changes)

        orchestrator.refresh(1, START, 1)
        self.assertIs(orchestrator.grids[1], grid)
        self.assertFalse(grid.has_changes)
        self.assertEqual(grid.selected_accommodations, {11, 12})
        self.assertEqual(grid.projection.price(11, "2025-03-01", 1), 101)

    def test_superseded_load_is_discarded(self):
        orchestrator = None
        state = {"nested": False}

        def on_rates(supplier_id, accommodation_id):
            # A refresh starts while the first load is still fetching rates.
            if not state["nested"]:
                state["nested"] = True
                orchestrator.refresh(supplier_id, START, 1)

        orchestrator = SupplierDataOrchestrator(FakeOpenPro(on_rates=on_rates))
        loaded = orchestrator.load_all([Supplier(1, "A")], START, 1)

        self.assertEqual(loaded, {})
        self.assertEqual(orchestrator.warnings, [])
        self.assertIn(1, orchestrator.data)

    def test_refresh_unknown_supplier(self):
        orchestrator = SupplierDataOrchestrator(FakeOpenPro())
        self.assertIsNone(orchestrator.refresh(99, START, 1))

    def test_cancel_discards_late_result(self):
        orchestrator = None

        def on_rates(supplier_id, accommodation_id):
            orchestrator.cancel(supplier_id)

        orchestrator = SupplierDataOrchestrator(FakeOpenPro(on_rates=on_rates))
        self.assertEqual(orchestrator.load_all([Supplier(1, "A")], START, 1), {})
        self.assertNotIn(1, orchestrator.data)


if __name__ == "__main__":
    unittest.main()
