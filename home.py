from __future__ import annotations

from datetime import date, timedelta

import pandas as pd
import streamlit as st

from bgsport.config import get_settings
from bgsport.db import ensure_schema, get_conn
from bgsport.services.demo_data import upsert_reference_data
from bgsport.services.reports import dashboard_stats, load_report_orders, recent_orders
from bgsport.utils import fmt_kip

st.title("👕 BG SPORT Order Desk")
st.caption("Garment orders, customer and factory settlement, and period reports.")

settings = get_settings()
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")

today = date.today()
quick = st.radio("Period", ["Today", "Last 7 days", "Last 30 days", "Custom"], index=2, horizontal=True)
if quick == "Today":
    start, end = today, today
elif quick == "Last 7 days":
    start, end = today - timedelta(days=7), today
elif quick == "Last 30 days":
    start, end = today - timedelta(days=30), today
else:
    c1, c2 = st.columns(2)
    start = c1.date_input("From", value=today - timedelta(days=30))
    end = c2.date_input("To", value=today)

stats = dashboard_stats(load_report_orders(conn), start.isoformat(), end.isoformat())

m1, m2, m3, m4 = st.columns(4)
m1.metric("Profit (completed)", fmt_kip(stats["total_profit"], settings.currency))
m2.metric("Customer balance", fmt_kip(stats["customer_balance"], settings.currency))
m3.metric("Factory cost in progress", fmt_kip(stats["factory_balance"], settings.currency))
m4.metric("Orders", f"{stats['completed_orders']} / {stats['total_orders']} completed")

s1, s2, s3, s4 = st.columns(4)
s1.metric("Shirts", f"{stats['total_shirts']:,}")
s2.metric("Short sleeve", f"{stats['short_sleeves']:,}")
s3.metric("Long sleeve", f"{stats['long_sleeves']:,}")
s4.metric("Giveaway", f"{stats['giveaway_shirts']:,}")

st.subheader("Recent orders")
recent = recent_orders(conn, start.isoformat(), end.isoformat())
if recent:
    st.dataframe(pd.DataFrame([dict(r) for r in recent]), use_container_width=True, hide_index=True)
else:
    st.info("No orders in this period. Create one in **New Order** or load demo data in **🧪 Data Management**.", icon="ℹ️")
