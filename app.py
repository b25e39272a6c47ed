from __future__ import annotations

import streamlit as st

from ricemill.config import get_settings
from ricemill.logging_setup import configure_logging

st.set_page_config(page_title="Rice Mill Operations", page_icon="🌾", layout="wide")

configure_logging(get_settings().log_dir)

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_🌾_Paddy_Intake.py", title="Paddy Intake", icon="🌾"),
    st.Page("pages/2_🏭_Rice_Production.py", title="Rice Production", icon="🏭"),
    st.Page("pages/3_🧾_By_Products.py", title="By-Products", icon="🧾"),
    st.Page("pages/4_⚡_Electricity.py", title="Electricity", icon="⚡"),
    st.Page("pages/5_👷_Hamali.py", title="Hamali", icon="👷"),
    st.Page("pages/6_🤝_Reconciliation.py", title="Reconciliation", icon="🤝"),
    st.Page("pages/7_📦_Stock_&_FCI.py", title="Stock & FCI", icon="📦"),
    st.Page("pages/8_📊_Operations_Summary.py", title="Operations Summary", icon="📊"),
    st.Page("pages/9_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
