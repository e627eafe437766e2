# inventory/utils/remote_client.py
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx

from inventory.errors import BackendError

logger = logging.getLogger(__name__)


def eq(value: Any) -> str:
    return f"eq.{value}"


def in_(values: Iterable[Any]) -> str:
    return f"in.({','.join(str(v) for v in values)})"


class RemoteTableClient:
    """
    Table-oriented client for a hosted relational backend (PostgREST style
    REST API). Tables are addressed by name; filters are PostgREST
    expressions such as eq.5 or in.(1,2).
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = httpx.Client(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, table, **kwargs)
            response.raise_for_status()
            return response
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            # Log detailed error information before re-raising
            try:
                detail = e.response.text if isinstance(e, httpx.HTTPStatusError) else str(e)
            except Exception:
                detail = str(e)
            logger.error("Remote %s %s failed: %s", method, table, detail)
            raise BackendError(f"Remote {method} {table} failed") from e

    def select(
        self,
        table: str,
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        search: Optional[Tuple[Sequence[str], str]] = None,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        params: Dict[str, str] = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        if search:
            search_columns, term = search
            pattern = term.replace("\\", "\\\\").replace('"', '\\"')
            # quoted so commas, dots and parentheses in the term stay literal
            params["or"] = "(" + ",".join(f'{c}.ilike."*{pattern}*"' for c in search_columns) + ")"
        return self._request("GET", table, params=params).json()

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        response = self._request(
            "POST", table, json=rows, headers={"Prefer": "return=representation"}
        )
        return response.json()

    def update(self, table: str, filters: Dict[str, str], values: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = self._request(
            "PATCH", table, params=filters, json=values, headers={"Prefer": "return=representation"}
        )
        return response.json()

    def delete(self, table: str, filters: Dict[str, str]) -> None:
        self._request("DELETE", table, params=filters)

    def close(self) -> None:
        self.client.close()
