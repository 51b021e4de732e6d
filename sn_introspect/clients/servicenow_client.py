from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import httpx

from sn_introspect.shared.config import ConnectionInfo, ServiceNowConfig
from sn_introspect.shared.observability import get_logger
from sn_introspect.shared.observability.metrics import (
    remote_queries_total,
    remote_query_duration_seconds,
)

logger = get_logger(__name__)


class DisplayMode(str, Enum):
    """Values for sysparm_display_value."""

    RAW = "false"
    DISPLAY = "true"
    ALL = "all"


class ServiceNowAPIError(RuntimeError):
    """Raised when a ServiceNow table API call fails.

    ``status_code`` is None for transport failures (DNS, TLS, timeouts)
    where no HTTP response was received.
    """

    code = "REMOTE_API_ERROR"

    def __init__(
        self,
        status_code: Optional[int],
        message: str,
        detail: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.detail = detail
        status = status_code if status_code is not None else "network"
        text = f"ServiceNow API Error ({status}): {message}"
        if detail:
            text += f" - {detail}"
        super().__init__(text)


class ServiceNowClient:
    """Read-only client for the ServiceNow Table API (``/api/now/table``).

    One instance is built at startup and shared by every tool call. It holds
    fixed credentials and a base address and is never mutated afterwards.
    """

    def __init__(
        self,
        connection: ConnectionInfo,
        settings: Optional[ServiceNowConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or ServiceNowConfig()
        self.instance_url = connection.instance_url.rstrip("/")
        self.base_url = f"{self.instance_url}{self._settings.api_path}"
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            auth=httpx.BasicAuth(connection.username, connection.password),
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=self._settings.timeout_seconds,
            verify=self._settings.verify_ssl,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ServiceNowClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _handle_error(self, response: httpx.Response) -> None:
        message = response.reason_phrase or "Request failed"
        detail = None
        try:
            body = response.json()
        except ValueError:
            body = None
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            message = error.get("message") or message
            detail = error.get("detail") or None
        raise ServiceNowAPIError(response.status_code, message, detail)

    async def query_table(
        self,
        table: str,
        *,
        query: Optional[str] = None,
        fields: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
        order_by: Optional[str] = None,
        display_value: DisplayMode = DisplayMode.RAW,
        exclude_reference_link: bool = False,
    ) -> List[Dict[str, Any]]:
        """Run one filtered query against a table and return the result rows."""

        params: Dict[str, Any] = {"sysparm_display_value": display_value.value}
        if query:
            params["sysparm_query"] = query
        if fields:
            params["sysparm_fields"] = ",".join(fields)
        if limit is not None:
            params["sysparm_limit"] = limit
        if order_by:
            params["sysparm_orderby"] = order_by
        if exclude_reference_link:
            params["sysparm_exclude_reference_link"] = "true"

        started = time.perf_counter()
        try:
            response = await self._client.get(f"/table/{table}", params=params)
        except httpx.HTTPError as exc:
            remote_queries_total.labels(table, "transport_error").inc()
            logger.error(
                "ServiceNow request failed",
                table=table,
                error=str(exc) or exc.__class__.__name__,
            )
            raise ServiceNowAPIError(None, str(exc) or exc.__class__.__name__) from exc
        finally:
            remote_query_duration_seconds.labels(table).observe(
                time.perf_counter() - started
            )

        if response.status_code >= 400:
            remote_queries_total.labels(table, str(response.status_code)).inc()
            logger.error(
                "ServiceNow API error",
                table=table,
                status=response.status_code,
                body=response.text[:500],
            )
            self._handle_error(response)

        remote_queries_total.labels(table, "ok").inc()
        try:
            payload = response.json()
        except ValueError as exc:
            raise ServiceNowAPIError(
                response.status_code, "Response body is not JSON"
            ) from exc

        results = payload.get("result") if isinstance(payload, dict) else None
        rows = results if isinstance(results, list) else []
        logger.debug(
            "ServiceNow query completed",
            table=table,
            query=query,
            limit=limit,
            rows=len(rows),
        )
        return rows


__all__ = ["DisplayMode", "ServiceNowAPIError", "ServiceNowClient"]
