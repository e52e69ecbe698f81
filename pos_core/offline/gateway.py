# =============================================================================
# pos_core/offline/gateway.py
# Remote Gateway to the POS Backend
# =============================================================================
"""
Remote gateway abstraction plus the HTTP implementation used in production.

The sync engine only talks to ``RemoteGateway``; tests substitute an
in-memory fake. ``HttpRemoteGateway`` maps record types onto the backend's
REST routes:

    products   GET/POST /products, PUT/DELETE /products/{id}
    sales      GET/POST /sales
    settings   GET/PUT  /business/settings
    movements  GET/POST /stock/movements
    health     GET      /health
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging
import time

import requests

from pos_core.config import GatewayConfig
from pos_core.errors import (
    GatewayError,
    NetworkUnreachableError,
    ServerRejectedError,
    UnsupportedActionError,
)
from pos_core.offline.models import RecordType, SyncAction

logger = logging.getLogger(__name__)


class RemoteGateway(ABC):
    """Abstract interface to the authoritative backend"""

    @abstractmethod
    def create(self, record_type: RecordType, record: Dict[str, Any]) -> Any:
        """Create a record; the client-assigned ``id`` travels in the payload"""
        pass

    @abstractmethod
    def update(self, record_type: RecordType, record_id: str, record: Dict[str, Any]) -> Any:
        pass

    @abstractmethod
    def delete(self, record_type: RecordType, record_id: str) -> Any:
        pass

    @abstractmethod
    def list(self, record_type: RecordType) -> List[Dict[str, Any]]:
        """Full listing of a type for the authenticated business"""
        pass

    @abstractmethod
    def health_check(self) -> Dict[str, Any]:
        """Never raises; returns ``{"status": "OK"}`` or ``{"status": "offline"}``"""
        pass

    def supports(self, record_type: RecordType, action: SyncAction) -> bool:
        return (RecordType.parse(record_type), SyncAction.parse(action)) in SUPPORTED_ACTIONS


SUPPORTED_ACTIONS = {
    (RecordType.PRODUCTS, SyncAction.CREATE),
    (RecordType.PRODUCTS, SyncAction.UPDATE),
    (RecordType.PRODUCTS, SyncAction.DELETE),
    (RecordType.SALES, SyncAction.CREATE),
    (RecordType.SETTINGS, SyncAction.UPDATE),
    (RecordType.MOVEMENTS, SyncAction.CREATE),
}


@dataclass(frozen=True)
class Route:
    """Backend endpoint for a record type"""
    collection: str
    item: Optional[str] = None   # format string with {id}; None when not addressable
    singleton: bool = False      # listing returns one object, not a list


ROUTES = {
    RecordType.PRODUCTS: Route("products", item="products/{id}"),
    RecordType.SALES: Route("sales"),
    RecordType.SETTINGS: Route("business/settings", singleton=True),
    RecordType.MOVEMENTS: Route("stock/movements"),
}


class HttpRemoteGateway(RemoteGateway):
    """
    requests-based client for the POS backend.

    Usage:
        gateway = HttpRemoteGateway(GatewayConfig(base_url="https://pdv.example.com/api"))
        gateway.set_token(token)
        gateway.create(RecordType.SALES, sale)
    """

    def __init__(self, config: Optional[GatewayConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or GatewayConfig()
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

        if self.config.token:
            self._set_auth_header()

    def _set_auth_header(self) -> None:
        self.session.headers["Authorization"] = f"Bearer {self.config.token}"

    def set_token(self, token: Optional[str]) -> None:
        """Set or clear the bearer token"""
        self.config.token = token
        if token:
            self._set_auth_header()
        else:
            self.session.headers.pop("Authorization", None)

    # =========================================================================
    # HTTP
    # =========================================================================

    def _url(self, endpoint: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def _send(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Any:
        """One HTTP round trip, with failures classified"""
        url = self._url(endpoint)

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=data,
                timeout=self.config.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise NetworkUnreachableError(f"Backend unreachable: {e}", endpoint=endpoint) from e
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"Request failed: {e}", endpoint=endpoint) from e

        if not response.ok:
            message = f"HTTP {response.status_code}"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("error"):
                    message = str(body["error"])
            except ValueError:
                pass
            raise ServerRejectedError(message, status_code=response.status_code, endpoint=endpoint)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise ServerRejectedError(
                "Undecodable response body",
                status_code=response.status_code,
                endpoint=endpoint,
            ) from e

    def _make_request(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Any:
        """
        Make HTTP request, retrying retryable failures with exponential backoff

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: Route relative to base_url
            data: JSON body

        Returns:
            Decoded JSON body (None for empty responses)
        """
        attempts = max(1, self.config.max_attempts)
        for attempt in range(attempts):
            try:
                return self._send(method, endpoint, data)
            except GatewayError as e:
                if not e.retryable or attempt == attempts - 1:
                    raise
                delay = self.config.backoff_factor * (self.config.backoff_base ** attempt)
                logger.debug(
                    f"{method} {endpoint} failed ({e.message}), "
                    f"retry {attempt + 1}/{attempts - 1} in {delay:.2f}s"
                )
                time.sleep(delay)

    def _require(self, record_type: RecordType, action: SyncAction) -> Route:
        record_type = RecordType.parse(record_type)
        if not self.supports(record_type, action):
            raise UnsupportedActionError(record_type.value, action.value)
        return ROUTES[record_type]

    # =========================================================================
    # RECORD OPERATIONS
    # =========================================================================

    def create(self, record_type: RecordType, record: Dict[str, Any]) -> Any:
        route = self._require(record_type, SyncAction.CREATE)
        return self._make_request("POST", route.collection, record)

    def update(self, record_type: RecordType, record_id: str, record: Dict[str, Any]) -> Any:
        route = self._require(record_type, SyncAction.UPDATE)
        endpoint = route.item.format(id=record_id) if route.item else route.collection
        return self._make_request("PUT", endpoint, record)

    def delete(self, record_type: RecordType, record_id: str) -> Any:
        route = self._require(record_type, SyncAction.DELETE)
        return self._make_request("DELETE", route.item.format(id=record_id))

    def list(self, record_type: RecordType) -> List[Dict[str, Any]]:
        route = ROUTES[RecordType.parse(record_type)]
        body = self._make_request("GET", route.collection)

        if body is None:
            return []
        if route.singleton:
            return [body] if isinstance(body, dict) else list(body)
        if isinstance(body, dict):
            # Tolerate {"data": [...]} envelopes
            body = body.get("data", [])
        if not isinstance(body, list):
            raise ServerRejectedError(
                f"Expected a list from {route.collection}",
                endpoint=route.collection,
            )
        return body

    def health_check(self) -> Dict[str, Any]:
        try:
            body = self._send("GET", "health")
        except GatewayError as e:
            logger.debug(f"Health check failed: {e.message}")
            return {"status": "offline", "error": e.message}

        if isinstance(body, dict):
            return body
        return {"status": "OK"}
