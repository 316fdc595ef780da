from __future__ import annotations

import streamlit as st

from core.config import get_settings
from core.services.inventory import inventory_frame
from core.services.monitoring import StockMonitor
from core.services.reports import dashboard_stats
from core.store import open_store
from core.utils import money

st.set_page_config(page_title="Nursery ERP", page_icon="🌱", layout="wide")

st.title("🌱 Nursery ERP")
st.caption("Plant batches, consumables and honey: costing, tasks, sales and profitability.")

settings = get_settings()
store = open_store(settings)


@st.cache_resource
def _stock_monitor(db_path: str, backend: str) -> StockMonitor:
    # one background monitor per process and database
    monitor = StockMonitor(open_store(settings), threshold=settings.plant_low_stock_threshold)
    monitor.start(settings.monitor_interval_seconds)
    return monitor


monitor = _stock_monitor(str(settings.db_path), settings.backend)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")
    st.write(f"**Backend:** {store.label}")
    st.write(f"**Stock monitor:** {'running' if monitor.running else 'stopped'}")

if store.read_only:
    st.warning(
        "Demo mode: showing sample data. Changes cannot be saved"
        + (f" ({store.reason})." if getattr(store, "reason", None) else "."),
        icon="⚠️",
    )

try:
    stats = dashboard_stats(store, settings.plant_low_stock_threshold)
    # The background thread does the logging
    report = monitor.check(notify=False)
except Exception as e:
    st.error(str(e))
    st.stop()

c1, c2, c3, c4 = st.columns(4)
c1.metric("Items in stock", stats.total_items, f"{stats.total_units} units")
c2.metric("Stock value", money(stats.stock_value, settings.currency))
c3.metric("Sales", stats.total_sales, money(stats.revenue, settings.currency))
c4.metric("Customers", stats.customers)

c5, c6 = st.columns(2)
c5.metric("Low stock items", len(stats.low_stock))
c6.metric("Open tasks", stats.pending_tasks)

st.divider()
st.subheader("Alerts")
if report.has_alerts:
    for msg in report.messages():
        st.warning(msg, icon="🔔")
else:
    st.success("No low-stock items or tasks due today.")

if stats.low_stock:
    st.subheader(f"Below {settings.plant_low_stock_threshold} units")
    df = inventory_frame(
        stats.low_stock,
        plant_threshold=settings.plant_low_stock_threshold,
        consumable_threshold=settings.consumable_low_stock_threshold,
    )
    st.dataframe(df[["sku", "name", "category", "quantity", "status"]], use_container_width=True, hide_index=True)

st.info(
    "Use the left sidebar navigation. Start with **🧪 Data Management** to load demo data, then try **Inventory**, **Tasks**, **Sales** and **Reports**.",
    icon="ℹ️",
)
