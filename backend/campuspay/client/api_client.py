"""
api_client.py — HTTP client for the CampusPay API.

Responsibilities:
- Bearer-token injection on every call
- Map transport failures to ServerUnavailable and HTTP errors to ApiError
- Cache proof / QR URLs through an injected SignedUrlCache, re-requesting
  them shortly before they expire

Sync/blocking; one instance per dashboard session.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urljoin

import requests

from campuspay.core.cache import SignedUrlCache
from campuspay.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15

# (bytes, filename, content type) for multipart uploads
FileTuple = Tuple[bytes, str, Optional[str]]


class CampusPayClientError(RuntimeError):
    """Base exception for client failures."""


class ServerUnavailable(CampusPayClientError):
    """The server could not be reached (connection error, timeout)."""


class ApiError(CampusPayClientError):
    """The server answered with an HTTP error status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class CampusPayClient:
    """
    Thin wrapper over `requests.Session` speaking the CampusPay JSON API.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        url_cache: Optional[SignedUrlCache] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()
        self._url_cache = url_cache if url_cache is not None else SignedUrlCache()

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    # --------------------------------------------------------------------- #
    # Organizations & events
    # --------------------------------------------------------------------- #
    def list_orgs(self) -> List[Dict[str, Any]]:
        return self._request("GET", "api/orgs")

    def create_org(self, name: str, **attrs: Any) -> Dict[str, Any]:
        return self._request("POST", "api/orgs", json={"name": name, **attrs})

    def list_events(self, org: Optional[str] = None, org_id: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {k: v for k, v in (("org", org), ("orgId", org_id)) if v}
        return self._request("GET", "api/events", params=params)

    def create_event(self, fields: Dict[str, Any], qr: Optional[FileTuple] = None) -> Dict[str, Any]:
        return self._send_form("POST", "api/events", fields, "receiverQR", qr)

    def update_event(self, event_id: str, fields: Dict[str, Any], qr: Optional[FileTuple] = None) -> Dict[str, Any]:
        result = self._send_form("PUT", f"api/events/{event_id}", fields, "receiverQR", qr)
        if qr is not None:
            self._url_cache.invalidate(f"event-qr:{event_id}")
        return result

    def delete_event(self, event_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"api/events/{event_id}")

    def event_qr_url(self, event_id: str) -> str:
        return self._cached_url(f"event-qr:{event_id}", f"api/events/{event_id}/qr-url")

    # --------------------------------------------------------------------- #
    # Payments
    # --------------------------------------------------------------------- #
    def list_payments(
        self,
        event_id: Optional[str] = None,
        years: Optional[Iterable[str]] = None,
        blocks: Optional[Iterable[str]] = None,
    ) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
        params: Dict[str, str] = {}
        if event_id:
            params["eventId"] = event_id
        if years is not None:
            params["year"] = ",".join(years)
        if blocks is not None:
            params["block"] = ",".join(blocks)
        return self._request("GET", "api/payments", params=params)

    def my_payments(self) -> List[Dict[str, Any]]:
        return self._request("GET", "api/my-payments")

    def submit_payment(self, fields: Dict[str, Any], proof: Optional[FileTuple] = None) -> Dict[str, Any]:
        return self._send_form("POST", "api/payments", fields, "proof", proof)

    def approve(self, payment_id: str) -> Dict[str, Any]:
        return self._request("POST", f"api/payments/{payment_id}/approve")

    def unapprove(self, payment_id: str) -> Dict[str, Any]:
        return self._request("POST", f"api/payments/{payment_id}/unapprove")

    def reject(self, payment_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._request("POST", f"api/payments/{payment_id}/reject", json={"reason": reason})

    def proof_url(self, payment_id: str) -> str:
        return self._cached_url(f"payment:{payment_id}", f"api/payments/{payment_id}/proof-url")

    # --------------------------------------------------------------------- #
    # Profiles & session
    # --------------------------------------------------------------------- #
    def list_officer_profiles(self, org: Optional[str] = None, org_id: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {k: v for k, v in (("org", org), ("orgId", org_id)) if v}
        return self._request("GET", "api/officer-profiles", params=params)

    def upsert_officer_profile(
        self, profile: Dict[str, Any], org: Optional[str] = None, org_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._request("POST", "api/officer-profiles", json={"org": org, "orgId": org_id, "profile": profile})

    def start_session(self, profile: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("POST", "session", json={"profile": profile} if profile else {})

    # ------------------------------------------------------------------ #
    # Request helpers
    # ------------------------------------------------------------------ #
    def _cached_url(self, key: str, path: str) -> str:
        url = self._url_cache.get_or_fetch(key, lambda: self._request("GET", path))
        return urljoin(self.base_url, url)

    def _send_form(
        self,
        method: str,
        path: str,
        fields: Dict[str, Any],
        file_field: str,
        upload: Optional[FileTuple],
    ) -> Dict[str, Any]:
        if upload is None:
            return self._request(method, path, json=fields)
        data = {
            k: json.dumps(v) if isinstance(v, (dict, list)) else str(v)
            for k, v in fields.items()
            if v is not None
        }
        content, filename, content_type = upload
        files = {file_field: (filename, content, content_type or "application/octet-stream")}
        return self._request(method, path, data=data, files=files)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", {}) or {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = urljoin(self.base_url, path)
        try:
            response = self._session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning("%s %s unreachable: %s", method, url, e)
            raise ServerUnavailable(str(e)) from e

        if response.status_code >= 400:
            raise ApiError(response.status_code, _error_detail(response))
        if not response.content:
            return None
        return response.json()


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or ""
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)
