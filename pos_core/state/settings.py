# =============================================================================
# pos_core/state/settings.py
# Business Display Settings
# =============================================================================

from __future__ import annotations
from typing import Any, Dict

from pos_core.logging import get_logger
from pos_core.offline.models import RecordType, SyncAction
from pos_core.state.base import RecordState

logger = get_logger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "businessName": "Sistema de Gestão",
    "businessSubtitle": "Depósito de Bebidas",
    "logoUrl": "",
    "useCustomLogo": False,
}

# Server column -> client field
SERVER_FIELDS = {
    "name": "businessName",
    "subtitle": "businessSubtitle",
    "logo_url": "logoUrl",
    "use_custom_logo": "useCustomLogo",
}


def from_server(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map a settings row from either naming scheme onto client fields."""
    settings = dict(DEFAULT_SETTINGS)
    for key in DEFAULT_SETTINGS:
        if raw.get(key) not in (None, ""):
            settings[key] = raw[key]
    for server_key, key in SERVER_FIELDS.items():
        if raw.get(server_key) not in (None, ""):
            settings[key] = raw[server_key]
    return settings


class SettingsState(RecordState):
    """One settings record per business, id ``settings_{businessId}``."""

    record_type = RecordType.SETTINGS

    def __init__(self, service, business_id: str):
        super().__init__(service, business_id)
        self.settings: Dict[str, Any] = dict(DEFAULT_SETTINGS)

    @property
    def record_id(self) -> str:
        return f"settings_{self.business_id}"

    def load(self) -> Dict[str, Any]:
        super().load()
        self.settings = from_server(self.items[-1]) if self.items else dict(DEFAULT_SETTINGS)
        return self.settings

    def update_settings(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        self.settings = {**self.settings, **partial}
        self._persist()
        return self.settings

    def reset_settings(self) -> Dict[str, Any]:
        self.settings = dict(DEFAULT_SETTINGS)
        self._persist()
        logger.info(f"Settings reset for business {self.business_id}")
        return self.settings

    def _persist(self) -> None:
        payload = {
            **self.settings,
            # Column names the backend expects
            "name": self.settings["businessName"],
            "subtitle": self.settings["businessSubtitle"],
        }
        self._save(SyncAction.UPDATE, payload, record_id=self.record_id)
        self.items = [{**payload, "id": self.record_id}]
