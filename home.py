from __future__ import annotations

import streamlit as st

from ricemill.config import get_settings
from ricemill.db import ensure_schema, get_conn, last_sync
from ricemill.services.demo_data import upsert_reference_data
from ricemill.services.summary import operations_summary

st.set_page_config(page_title="Rice Mill Operations", page_icon="🌾", layout="wide")

settings = get_settings()

st.title(f"🌾 {settings.mill_name} Operations")
st.caption("Paddy intake, CMR production, by-products, power, hamali and center reconciliation in one ledger.")

conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")
    st.write(f"**Last saved:** {last_sync(conn) or 'never'}")

try:
    s = operations_summary(conn)
except Exception as e:
    st.error(str(e))
    st.stop()

c1, c2, c3, c4 = st.columns(4)
c1.metric("Paddy received (Qtl)", f"{s['paddy'].total_quintals:,.2f}")
c2.metric("Paddy available (Qtl)", f"{s['production']['paddy_available']:,.2f}")
c3.metric("ACKs produced", f"{s['acks'].produced} / {s['acks'].total_possible}")
c4.metric("Bottleneck", s["bottleneck"].name, f"{s['bottleneck'].capacity} ACKs", delta_color="off")

st.info(
    "Use the left sidebar navigation. Record production in **Rice Production**, then by-products, sales and payments in **By-Products**. "
    "**🧪 Data Management** loads demo stock and takes backups.",
    icon="ℹ️",
)
