"""
Sequential multi-supplier loading with per-supplier failure isolation.

Each load runs under its own CancellationToken and generation number. A
refresh cancels the in-flight load of the same supplier, and a result
whose generation is no longer current is discarded instead of replacing
fresher data.
"""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rategrid.client.cancellation import CancellationToken, LoadCancelled
from rategrid.client.loaders import SupplierData, load_supplier_data
from rategrid.client.openpro import OpenProClient
from rategrid.core.bulk_edit import SupplierGridState, new_grid_state, reset_after_reload
from rategrid.core.dates import window_for
from rategrid.core.models import Supplier

logger = logging.getLogger("rategrid.client.supplier_data")


class SupplierDataOrchestrator:
    def __init__(
        self,
        client: OpenProClient,
        cache_client: Any = None,
        cache_ttl_minutes: int = 60,
    ) -> None:
        self._client = client
        self._cache_client = cache_client
        self._cache_ttl_minutes = cache_ttl_minutes
        self._lock = threading.Lock()
        self._suppliers: Dict[int, Supplier] = {}
        self._tokens: Dict[int, CancellationToken] = {}
        self._generations: Dict[int, int] = {}
        self.data: Dict[int, SupplierData] = {}
        self.grids: Dict[int, SupplierGridState] = {}
        self.warnings: List[str] = []

    # -- bookkeeping -----------------------------------------------------------

    def _begin(self, supplier_id: int) -> Tuple[int, CancellationToken]:
        with self._lock:
            previous = self._tokens.get(supplier_id)
            if previous is not None:
                previous.cancel()
            generation = self._generations.get(supplier_id, 0) + 1
            token = CancellationToken()
            self._generations[supplier_id] = generation
            self._tokens[supplier_id] = token
            return generation, token

    def _commit(self, supplier_id: int, generation: int, data: SupplierData) -> bool:
        with self._lock:
            if self._generations.get(supplier_id) != generation:
                return False
            self._tokens.pop(supplier_id, None)
            self.data[supplier_id] = data
            grid = self.grids.get(supplier_id)
            if grid is None:
                self.grids[supplier_id] = new_grid_state(supplier_id, data.projection, data.accommodations)
            else:
                reset_after_reload(grid, data.projection, data.accommodations)
            return True

    def _finish(self, supplier_id: int, generation: int) -> None:
        with self._lock:
            if self._generations.get(supplier_id) == generation:
                self._tokens.pop(supplier_id, None)

    def _load(self, supplier: Supplier, start: date, months: int) -> Optional[SupplierData]:
        generation, token = self._begin(supplier.id)
        try:
            data = load_supplier_data(
                self._client,
                supplier,
                window_for(start, months),
                token=token,
                cache_client=self._cache_client,
                cache_ttl_minutes=self._cache_ttl_minutes,
            )
        except LoadCancelled:
            logger.info(f"Load of supplier {supplier.id} cancelled")
            self._finish(supplier.id, generation)
            return None
        except Exception:
            self._finish(supplier.id, generation)
            raise

        if not self._commit(supplier.id, generation, data):
            logger.info(f"Discarding superseded load of supplier {supplier.id}")
            return None
        return data

    # -- public surface --------------------------------------------------------

    def load_all(self, suppliers: Iterable[Supplier], start: date, months: int) -> Dict[int, SupplierData]:
        """
        Load suppliers one after another. A failing supplier is logged and
        recorded in warnings; the remaining suppliers still load.
        """
        self.warnings = []
        loaded: Dict[int, SupplierData] = {}
        for supplier in suppliers:
            self._suppliers[supplier.id] = supplier
            try:
                data = self._load(supplier, start, months)
            except Exception as exc:
                logger.warning(f"Error loading supplier {supplier.id} ({supplier.name}): {exc}")
                self.warnings.append(f"Erreur lors du chargement de {supplier.name}: {exc}")
                continue
            if data is None:
                continue
            loaded[supplier.id] = data
            self.warnings.extend(data.warnings)
        return loaded

    def refresh(self, supplier_id: int, start: date, months: int) -> Optional[SupplierData]:
        """
        Reload one supplier, cancelling its in-flight load. None when the
        supplier is unknown, the load was superseded, or it failed.
        """
        supplier = self._suppliers.get(supplier_id)
        if supplier is None:
            logger.warning(f"Refresh requested for unknown supplier {supplier_id}")
            return None
        try:
            return self._load(supplier, start, months)
        except Exception as exc:
            logger.warning(f"Error refreshing supplier {supplier_id}: {exc}")
            self.warnings.append(f"Erreur lors du chargement de {supplier.name}: {exc}")
            return None

    def cancel(self, supplier_id: int) -> None:
        with self._lock:
            token = self._tokens.pop(supplier_id, None)
            # Bump the generation so a load that ignores its token is still discarded.
            self._generations[supplier_id] = self._generations.get(supplier_id, 0) + 1
        if token is not None:
            token.cancel()

    def cancel_all(self) -> None:
        with self._lock:
            supplier_ids = list(self._tokens)
        for supplier_id in supplier_ids:
            self.cancel(supplier_id)
