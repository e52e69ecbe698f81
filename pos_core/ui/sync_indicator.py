# =============================================================================
# pos_core/ui/sync_indicator.py
# Connectivity and Sync Status Widget
# =============================================================================
"""
Sidebar widget showing whether the POS is online, how many operations are
waiting for the server, when the last sync ran, and any dropped operations.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from pos_core.errors import error_boundary, safe_execute
from pos_core.offline.models import SyncStatus
from pos_core.offline.persistence_service import DataPersistenceService


def status_text(status: SyncStatus) -> str:
    if not status.is_online:
        return "Offline"
    if status.is_syncing:
        return "Sincronizando..."
    if status.queue_length > 0:
        return f"{status.queue_length} pendente(s)"
    return "Sincronizado"


def status_color(status: SyncStatus) -> str:
    if not status.is_online:
        return "#f87171"
    if status.queue_length > 0 or status.is_syncing:
        return "#facc15"
    return "#4ade80"


def format_last_sync(last_sync: Optional[str]) -> Optional[str]:
    if not last_sync:
        return None
    ts = pd.to_datetime(last_sync, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.strftime("%H:%M:%S")


def dropped_table(items: List[Dict[str, Any]]) -> pd.DataFrame:
    """Dead-lettered items as rows for st.dataframe."""
    columns = ["id", "type", "action", "retryCount", "error", "droppedAt"]
    return pd.DataFrame([{c: item.get(c) for c in columns} for item in items], columns=columns)


@error_boundary(default_return=False, error_message="Falha ao sincronizar")
def force_sync(service: DataPersistenceService) -> bool:
    """Run a pass now and report its outcome."""
    if service.force_sync():
        st.success("Sincronização concluída")
        return True
    st.warning("Sincronização não concluída, tentaremos novamente")
    return False


def render_sync_indicator(
    service: DataPersistenceService,
    business_id: Optional[str] = None,
    container=None,
) -> SyncStatus:
    """
    Render the indicator.

    Args:
        service: The running persistence service
        business_id: Limit the dropped-items list to one business
        container: Streamlit container (default: the sidebar)

    Returns:
        The status that was rendered
    """
    target = container or st.sidebar
    status = service.get_sync_status()

    with target:
        st.markdown(
            f"<span style='color:{status_color(status)};font-weight:600'>"
            f"● {status_text(status)}</span>",
            unsafe_allow_html=True,
        )

        last = format_last_sync(status.last_sync)
        if last:
            st.caption(f"Última sync: {last}")

        if status.is_online and status.queue_length > 0:
            if st.button("Forçar sincronização", key="pos_force_sync", disabled=status.is_syncing):
                force_sync(service)

        dropped = service.get_dropped_items(business_id)
        if dropped:
            with st.expander(f"Operações descartadas ({len(dropped)})", expanded=False):
                st.dataframe(dropped_table(dropped), use_container_width=True, hide_index=True)
                for item in dropped:
                    label = f"Reenviar {item.get('type')}:{item.get('id')}"
                    if st.button(label, key=f"pos_retry_{item.get('type')}_{item.get('id')}"):
                        restored = safe_execute(
                            service.retry_dropped,
                            item.get("id"),
                            item.get("type"),
                            default=False,
                            error_message="Falha ao reenviar operação",
                        )
                        if restored:
                            st.rerun()

    return status
