"""
client.py — Thin requests-based client for the investment backend's REST API.

Depends only on: config.py, errors.py
Responses arrive wrapped as ``{"data": ...}``; list endpoints page their
results as ``{"result": [...], "meta": {"totalPage": n, ...}}``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Mapping, Optional

import requests

from invest_ledger.config import LedgerConfig
from invest_ledger.errors import ConflictError, NotFoundError, RemoteFailure, ValidationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Page:
    """One page of a paginated list endpoint."""

    result: list[dict[str, Any]]
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return int(self.meta.get("totalPage") or 1)

    @property
    def total(self) -> int:
        return int(self.meta.get("total") or len(self.result))

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.result)

    def __len__(self) -> int:
        return len(self.result)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {k: _jsonable(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _server_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class InvestmentApiClient:
    """
    Wraps a ``requests.Session`` with the configured base URL, bearer token
    and timeout, and maps HTTP failures onto the ledger's error taxonomy.

        client = InvestmentApiClient(LedgerConfig.from_env())
        project = client.get_investment("65f0c2...")
        page = client.list_participants(investment_id=project["_id"])
    """

    def __init__(self, config: Optional[LedgerConfig] = None, session: Optional[requests.Session] = None) -> None:
        self.config = config or LedgerConfig()
        self.session = session or requests.Session()
        if self.config.auth_token:
            self.session.headers["Authorization"] = f"Bearer {self.config.auth_token}"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.config.api_root}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        files: Any = None,
    ) -> Any:
        url = self._url(path)
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = self.session.request(
                method,
                url,
                params=params or None,
                json=_jsonable(json) if json is not None else None,
                data=data,
                files=files,
                timeout=self.config.timeout,
            )
        except requests.exceptions.Timeout as exc:
            log.warning("%s %s timed out after %ss", method, url, self.config.timeout)
            raise RemoteFailure(f"{method} {path} timed out after {self.config.timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            log.warning("%s %s failed: %s", method, url, exc)
            raise RemoteFailure(f"{method} {path} failed: {exc}") from exc

        status = response.status_code
        if status >= 400:
            message = _server_message(response)
            log.info("%s %s -> %s: %s", method, url, status, message)
            if status == 404:
                raise NotFoundError(message)
            if status == 409:
                raise ConflictError(message)
            if status in (400, 422):
                raise ValidationError(message)
            raise RemoteFailure(message, status_code=status)

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteFailure(f"{method} {path} returned a non-JSON body", status_code=status) from exc
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    @staticmethod
    def _page(payload: Any) -> Page:
        if isinstance(payload, list):
            return Page(result=payload)
        if isinstance(payload, dict) and isinstance(payload.get("result"), list):
            return Page(result=payload["result"], meta=payload.get("meta") or {})
        raise RemoteFailure("paginated response missing 'result'")

    @staticmethod
    def _record(payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise RemoteFailure("expected a JSON object in 'data'")
        return payload

    def iter_pages(self, lister: str, **kwargs: Any) -> Iterator[Page]:
        """Follow ``meta.totalPage`` for one of the ``list_*`` methods."""
        fetch = getattr(self, lister)
        page_no = 1
        while True:
            page = fetch(page=page_no, **kwargs)
            yield page
            if page_no >= page.total_pages or not page.result:
                break
            page_no += 1

    def fetch_all(self, lister: str, **kwargs: Any) -> list[dict[str, Any]]:
        return [record for page in self.iter_pages(lister, **kwargs) for record in page]

    # ------------------------------------------------------------------
    # Investments
    # ------------------------------------------------------------------

    def list_investments(self, page: int = 1, limit: Optional[int] = None, **filters: Any) -> Page:
        return self._page(self._request("GET", "/investments", params={"page": page, "limit": limit, **filters}))

    def get_investment(self, investment_id: str) -> dict[str, Any]:
        return self._record(self._request("GET", f"/investments/{investment_id}"))

    def create_investment(self, payload: dict[str, Any], files: Any = None) -> dict[str, Any]:
        """Create a project; sent as multipart form data when ``files`` are attached."""
        if files:
            form = {k: str(_jsonable(v)) for k, v in payload.items() if v is not None}
            return self._record(self._request("POST", "/investments", data=form, files=files))
        return self._record(self._request("POST", "/investments", json=payload))

    def update_investment(self, investment_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return self._record(self._request("PATCH", f"/investments/{investment_id}", json=changes))

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def list_participants(
        self,
        investment_id: Optional[str] = None,
        investor_id: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page:
        params = {"investmentId": investment_id, "investorId": investor_id, "page": page, "limit": limit}
        return self._page(self._request("GET", "/investment-participants", params=params))

    def get_participant(self, participant_id: str) -> dict[str, Any]:
        return self._record(self._request("GET", f"/investment-participants/{participant_id}"))

    def create_participant(
        self,
        investment_id: str,
        investor_id: str,
        amount: Any,
        agent_commission_rate: Any = 0,
    ) -> dict[str, Any]:
        payload = {
            "investorId": investor_id,
            "investmentId": investment_id,
            "amount": amount,
            "agentCommissionRate": agent_commission_rate,
        }
        return self._record(self._request("POST", "/investment-participants", json=payload))

    def update_participant(self, participant_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return self._record(self._request("PATCH", f"/investment-participants/{participant_id}", json=changes))

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def list_transactions(
        self,
        investment_id: Optional[str] = None,
        investor_id: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page:
        params = {"investmentId": investment_id, "investorId": investor_id, "page": page, "limit": limit}
        return self._page(self._request("GET", "/transactions", params=params))

    def record_transaction_payment(self, transaction_id: str, paid_amount: Any, note: str = "") -> dict[str, Any]:
        """Record an installment payment against one monthly transaction."""
        payload = {"paidAmount": paid_amount, "note": note}
        return self._record(self._request("PATCH", f"/transactions/{transaction_id}", json=payload))
