"""
OpenPro API client.

Every response is an envelope {"ok": 1, "data": ...}; the helpers return
data and raise OpenProHttpError / OpenProApiError otherwise.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from rategrid.client.cancellation import CancellationToken
from rategrid.client.errors import OpenProApiError, OpenProHttpError

logger = logging.getLogger("rategrid.client.openpro")


def _clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    if not params:
        return {}
    return {k: str(v) for k, v in params.items() if v is not None}


class OpenProClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"OsApiKey {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "OpenProClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        if token is not None:
            token.raise_if_cancelled()
        response = self._http.request(method, path, params=_clean_params(params), json=json_body)
        # A cancelled load must not act on a late response.
        if token is not None:
            token.raise_if_cancelled()

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        if response.is_error:
            raise OpenProHttpError(
                f"HTTP {response.status_code}",
                response.status_code,
                body if body is not None else response.text,
            )
        if not isinstance(body, dict) or body.get("ok") != 1:
            raise OpenProApiError(f"API returned ok=0 for {method} {path}")
        return body.get("data")

    # -- read surface ----------------------------------------------------------

    def list_accommodations(self, supplier_id: int, *, token: Optional[CancellationToken] = None) -> Any:
        return self._request("GET", f"/fournisseur/{supplier_id}/hebergements", token=token)

    def get_rates(
        self,
        supplier_id: int,
        accommodation_id: int,
        params: Optional[Dict[str, Any]] = None,
        *,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        return self._request(
            "GET",
            f"/fournisseur/{supplier_id}/hebergements/{accommodation_id}/typetarifs/tarif",
            params=params,
            token=token,
        )

    def get_stock(
        self,
        supplier_id: int,
        accommodation_id: int,
        debut: Optional[str] = None,
        fin: Optional[str] = None,
        *,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        return self._request(
            "GET",
            f"/fournisseur/{supplier_id}/hebergements/{accommodation_id}/stock",
            params={"debut": debut, "fin": fin},
            token=token,
        )

    # -- admin surface ---------------------------------------------------------

    def list_rate_types(self, supplier_id: int, *, token: Optional[CancellationToken] = None) -> Any:
        return self._request("GET", f"/fournisseur/{supplier_id}/typetarifs", token=token)

    def list_accommodation_rate_type_links(
        self,
        supplier_id: int,
        accommodation_id: int,
        *,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        return self._request(
            "GET",
            f"/fournisseur/{supplier_id}/hebergements/{accommodation_id}/typetarifs",
            token=token,
        )

    def set_rates(self, supplier_id: int, accommodation_id: int, tarifs: List[Dict[str, Any]]) -> Any:
        logger.info(
            f"Writing {len(tarifs)} rate period(s) for supplier {supplier_id} "
            f"accommodation {accommodation_id}"
        )
        return self._request(
            "POST",
            f"/fournisseur/{supplier_id}/hebergements/{accommodation_id}/typetarifs/tarif",
            json_body={"tarifs": tarifs},
        )
