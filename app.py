from __future__ import annotations

import streamlit as st

from bgsport.config import get_settings
from bgsport.logging_setup import configure_logging

st.set_page_config(page_title="BG SPORT Order Desk", page_icon="👕", layout="wide")

settings = get_settings()
configure_logging(settings.log_dir, settings.log_level)

pages = [
    st.Page("home.py", title="Dashboard", icon="🏠"),
    st.Page("pages/1_📋_Orders.py", title="Orders", icon="📋"),
    st.Page("pages/2_➕_New_Order.py", title="New Order", icon="➕"),
    st.Page("pages/3_🧾_Order_Detail.py", title="Order Detail", icon="🧾"),
    st.Page("pages/4_💰_Payments.py", title="Payments", icon="💰"),
    st.Page("pages/5_🧵_Fabrics.py", title="Fabrics", icon="🧵"),
    st.Page("pages/6_👥_Users.py", title="Users", icon="👥"),
    st.Page("pages/7_🔎_Search.py", title="Search", icon="🔎"),
    st.Page("pages/8_📤_Import.py", title="Import", icon="📤"),
    st.Page("pages/9_📊_Reports.py", title="Reports", icon="📊"),
    st.Page("pages/10_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
