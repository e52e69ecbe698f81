"""
Vitana POS - Streamlit entry point.

Run with:
    streamlit run app.py
"""
from __future__ import annotations
import os

import streamlit as st
from dotenv import load_dotenv

from pos_core.config import load_config
from pos_core.errors import ErrorContext
from pos_core.logging import setup_logging, get_logger
from pos_core.offline import DataPersistenceService, create_persistence_service
from pos_core.state import ProductsState, SalesState, SettingsState, StockMovementsState
from pos_core.ui import render_sync_indicator

load_dotenv()
setup_logging(os.environ.get("POS_LOG_LEVEL"))
logger = get_logger(__name__)


@st.cache_resource
def get_persistence_service() -> DataPersistenceService:
    """One service per Streamlit server process."""
    service = create_persistence_service(load_config())
    service.start()
    return service


# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="Vitana POS",
    page_icon="🧾",
    layout="wide",
)

service = get_persistence_service()

business_id = st.sidebar.text_input(
    "Empresa",
    value=st.session_state.get("business_id", "default"),
)
st.session_state["business_id"] = business_id
render_sync_indicator(service, business_id)

settings_state = SettingsState(service, business_id)
products_state = ProductsState(service, business_id)
sales_state = SalesState(service, business_id)
movements_state = StockMovementsState(service, business_id)

settings = settings_state.settings
with ErrorContext("Carregando dados"):
    settings = settings_state.load()
    products_state.load()
    sales_state.load()
    movements_state.load()

st.title(settings["businessName"])
st.caption(settings["businessSubtitle"])

tab_pdv, tab_stock, tab_reports, tab_settings = st.tabs(
    ["PDV", "Estoque", "Relatórios", "Configurações"]
)

# ============================================================================
# PDV
# ============================================================================
with tab_pdv:
    barcode = st.text_input("Código de barras")
    product = products_state.find_by_barcode(barcode) if barcode else None

    if barcode and product is None:
        st.warning("Produto não encontrado")

    if product:
        st.write(f"**{product['name']}** · R$ {product['price']:.2f} · estoque {product['stock']}")
        quantity = st.number_input("Quantidade", min_value=1, value=1, step=1)
        if st.button("Registrar venda"):
            with ErrorContext("Registrando venda"):
                total = round(product["price"] * quantity, 2)
                sale = sales_state.add_sale({
                    "items": [{
                        "productId": product["id"],
                        "productName": product["name"],
                        "quantity": quantity,
                        "unitPrice": product["price"],
                        "total": total,
                    }],
                    "total": total,
                    "paymentMethod": "dinheiro",
                })
                products_state.update_stock(product["id"], product["stock"] - quantity)
                movements_state.add_movement({
                    "productId": product["id"],
                    "productName": product["name"],
                    "type": "saida",
                    "quantity": quantity,
                    "reason": f"Venda {sale['id']}",
                })
                st.success(f"Venda {sale['id']} registrada")

# ============================================================================
# ESTOQUE
# ============================================================================
with tab_stock:
    st.dataframe(products_state.to_dataframe(), use_container_width=True, hide_index=True)

    low = products_state.low_stock()
    if low:
        st.warning(f"{len(low)} produto(s) abaixo do estoque mínimo")
        for item in low:
            st.write(f"- {item['name']}: {item['stock']} (mín. {item['minStock']})")

# ============================================================================
# RELATÓRIOS
# ============================================================================
with tab_reports:
    today = st.date_input("Dia")
    col1, col2, col3 = st.columns(3)
    col1.metric("Hoje", f"R$ {sales_state.get_daily_revenue(today):.2f}")
    col2.metric("Mês", f"R$ {sales_state.get_monthly_revenue(today):.2f}")
    col3.metric("Ano", f"R$ {sales_state.get_yearly_revenue(today):.2f}")

    daily = sales_state.revenue_by_day()
    if not daily.empty:
        st.bar_chart(daily.set_index("date")["revenue"])

# ============================================================================
# CONFIGURAÇÕES
# ============================================================================
with tab_settings:
    with st.form("settings_form"):
        name = st.text_input("Nome", value=settings["businessName"])
        subtitle = st.text_input("Subtítulo", value=settings["businessSubtitle"])
        saved = st.form_submit_button("Salvar")
    if saved:
        settings_state.update_settings({"businessName": name, "businessSubtitle": subtitle})
        st.success("Configurações salvas")
    if st.button("Restaurar padrão"):
        settings_state.reset_settings()
        st.rerun()
