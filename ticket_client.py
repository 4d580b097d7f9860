"""HTTP client for the ticket JSON API."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:5001/api"


class TicketApiError(RuntimeError):
    """Raised when a ticket API request cannot be fulfilled."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _clean_params(filters: Optional[Mapping[str, Any]]) -> dict[str, str]:
    params: dict[str, str] = {}
    for key, value in (filters or {}).items():
        if value is None or value == "":
            continue
        params[key] = str(value)
    return params


class TicketApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or DEFAULT_API_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "TicketApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        action: str,
        params: Optional[Mapping[str, str]] = None,
        allow_404: bool = False,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Ticket API %s %s failed: %s", method, url, exc)
            raise TicketApiError(f"Failed to {action}: {exc}") from exc

        if allow_404 and resp.status_code == 404:
            return None
        if not resp.ok:
            raise TicketApiError(
                f"Failed to {action}: {resp.status_code} {resp.reason or ''}".strip(),
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise TicketApiError(f"Failed to {action}: response was not valid JSON.") from exc

    def get_tickets(self, filters: Optional[Mapping[str, Any]] = None) -> list[dict]:
        return self._request("GET", "tickets", "fetch tickets", params=_clean_params(filters))

    def get_ticket(self, ticket_id: str) -> Optional[dict]:
        return self._request(
            "GET",
            f"tickets/{quote(ticket_id, safe='')}",
            "fetch ticket",
            allow_404=True,
        )

    def get_enriched_tickets(self, filters: Optional[Mapping[str, Any]] = None) -> list[dict]:
        return self._request(
            "GET", "tickets/enriched", "fetch enriched tickets", params=_clean_params(filters)
        )

    def search_tickets(self, query: str) -> list[dict]:
        return self._request("GET", "tickets/search", "search tickets", params={"q": query})

    def get_analytics(self) -> dict:
        return self._request("GET", "analytics", "fetch analytics")

    def enrich_ticket(self, ticket_id: str) -> dict:
        return self._request("POST", f"tickets/{quote(ticket_id, safe='')}/enrich", "enrich ticket")
