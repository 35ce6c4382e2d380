import unittest
from unittest import mock

from rategrid.config import DEFAULT_SUPPLIERS, parse_suppliers
from rategrid.core.cache import (
    CACHE_TABLE,
    compute_cache_key,
    get_cached,
    invalidate_supplier,
    set_cached,
)


class CacheTests(unittest.TestCase):
    def test_cache_key_is_stable_and_query_specific(self):
        key = compute_cache_key(47186, 1, "2025-03-01", "2025-03-31")
        self.assertEqual(key, compute_cache_key(47186, 1, "2025-03-01", "2025-03-31"))
        self.assertEqual(len(key), 32)
        self.assertNotEqual(key, compute_cache_key(47186, 2, "2025-03-01", "2025-03-31"))
        self.assertNotEqual(key, compute_cache_key(47186, 1, "2025-03-01", "2025-04-01"))

    def test_get_cached_returns_payload(self):
        client = mock.MagicMock()
        query = client.table.return_value.select.return_value.eq.return_value.gt.return_value.limit.return_value
        query.execute.return_value = mock.Mock(data=[{"payload": {"tarifs": []}}])

        self.assertEqual(get_cached(client, "abc"), {"tarifs": []})
        client.table.assert_called_with(CACHE_TABLE)

        query.execute.return_value = mock.Mock(data=[])
        self.assertIsNone(get_cached(client, "abc"))

    def test_set_cached_upserts_with_expiry(self):
        client = mock.MagicMock()
        set_cached(client, "abc", 47186, {"tarifs": []}, ttl_minutes=5)

        row, = client.table.return_value.upsert.call_args.args
        self.assertEqual(row["cache_key"], "abc")
        self.assertEqual(row["supplier_id"], 47186)
        self.assertIn("expires_at", row)
        self.assertEqual(client.table.return_value.upsert.call_args.kwargs, {"on_conflict": "cache_key"})

    def test_invalidate_supplier(self):
        client = mock.MagicMock()
        invalidate_supplier(client, 47186)
        client.table.return_value.delete.return_value.eq.assert_called_once_with("supplier_id", 47186)


class SupplierConfigTests(unittest.TestCase):
    def test_parse_suppliers(self):
        suppliers = parse_suppliers('[{"idFournisseur": 12, "nom": "Mer"}, {"nom": "no id"}, {"idFournisseur": "13"}]')
        self.assertEqual([(s.id, s.name) for s in suppliers], [(12, "Mer"), (13, "Fournisseur 13")])

    def test_invalid_suppliers_fall_back_to_defaults(self):
        self.assertEqual(parse_suppliers(""), DEFAULT_SUPPLIERS)
        self.assertEqual(parse_suppliers("{not json"), DEFAULT_SUPPLIERS)
        self.assertEqual(parse_suppliers('{"idFournisseur": 1}'), DEFAULT_SUPPLIERS)
        self.assertEqual(parse_suppliers("[]"), DEFAULT_SUPPLIERS)


if __name__ == "__main__":
    unittest.main()
