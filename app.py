"""Streamlit UI for the dining room layout with CSV previews and validations."""
from __future__ import annotations

# Add src to sys.path so dining_room can be found
import sys
import os
import io
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "src"))

import pandas as pd
import streamlit as st
import streamlit.components.v1 as components

from dining_room.capacity import capacity
from dining_room.csv_loader import (
    BINDING_COLUMNS,
    RESERVATION_COLUMNS,
    TABLE_COLUMNS,
    bindings_frame,
    load_store,
    tables_frame,
)
from dining_room.engine import SeatingEngine
from dining_room.models import TableState, parse_date, parse_shift
from dining_room.results import ResultKind
from dining_room.settings import EngineSettings

# -----------------------------
# Helpers
# -----------------------------

def uploadedfile_to_csvio(uploaded_file) -> io.StringIO | None:
    """Read a Streamlit UploadedFile into a CSV buffer positioned at start."""
    if uploaded_file is None:
        return None
    uploaded_file.seek(0)
    return io.StringIO(uploaded_file.read().decode("utf-8"))

def validate_columns(df: pd.DataFrame, required: list[str], file_label: str) -> bool:
    """Check required columns and show an error if any are missing."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        st.error(f"Error in {file_label}: missing columns: {', '.join(missing)}")
        return False
    return True

def preview(uploaded_file, label: str, required: list[str]) -> bool:
    """Show an uploaded CSV and check its columns."""
    df = pd.read_csv(uploaded_file)
    uploaded_file.seek(0)
    st.subheader(f"{label} preview")
    st.dataframe(df, use_container_width=True)
    return validate_columns(df, required, label)

# -----------------------------
# Sidebar options
# -----------------------------

st.sidebar.header("Engine Options")
tolerance_hours = st.sidebar.number_input(
    "Conflict tolerance (hours)",
    min_value=0,
    max_value=12,
    value=2,
    help="Another reservation this close to the new one blocks the tables.",
)
rollback = st.sidebar.checkbox(
    "Roll back bindings if reserving fails",
    value=False,
    help="Remove the new bindings again when the group cannot be marked reserved.",
)

# -----------------------------
# Main UI and previews
# -----------------------------

st.title("Dining Room Layout")

_tables_file = st.file_uploader("Tables CSV", type="csv")
_reservations_file = st.file_uploader("Reservations CSV", type="csv")
_bindings_file = st.file_uploader("Bindings CSV", type="csv")

tables_valid = _tables_file is not None and preview(_tables_file, "tables.csv", TABLE_COLUMNS)
reservations_valid = _reservations_file is None or preview(_reservations_file, "reservations.csv", RESERVATION_COLUMNS)
bindings_valid = _bindings_file is None or preview(_bindings_file, "bindings.csv", BINDING_COLUMNS)

if not (tables_valid and reservations_valid and bindings_valid):
    st.stop()

# Keep the store across reruns so assignments accumulate
upload_sig = tuple(getattr(f, "file_id", getattr(f, "name", None)) for f in (_tables_file, _reservations_file, _bindings_file))
if st.session_state.get("upload_sig") != upload_sig:
    try:
        st.session_state["store"] = load_store(
            uploadedfile_to_csvio(_tables_file),
            uploadedfile_to_csvio(_reservations_file),
            uploadedfile_to_csvio(_bindings_file),
        )
    except ValueError as e:
        st.error(f"Input validation error: {e}")
        st.stop()
    st.session_state["upload_sig"] = upload_sig

store = st.session_state["store"]
engine = SeatingEngine(store, EngineSettings(tolerance_hours=int(tolerance_hours), rollback_on_reserve_failure=rollback))

configs = store.configurations()
if not configs:
    st.warning("tables.csv holds no tables.")
    st.stop()

label = st.selectbox(
    "Configuration",
    [f"{k.date.isoformat()} {k.shift.value} {k.room}" for k in configs],
)
day_str, shift_str, room = label.split(" ", 2)
day, shift = parse_date(day_str), parse_shift(shift_str)

# -----------------------------
# Groups and capacity
# -----------------------------

groups = engine.groups(day, shift, room)
groups_df = pd.DataFrame(
    {
        "group": list(range(1, len(groups) + 1)),
        "tables": ["|".join(f"({c.x},{c.y})" for c in g.coords) for g in groups],
        "seats": [capacity(g) for g in groups],
    }
)
st.subheader("Groups")
st.dataframe(groups_df, use_container_width=True)
st.metric("Total seats", int(groups_df["seats"].sum()) if len(groups_df) else 0)

# -----------------------------
# Group actions
# -----------------------------

st.subheader("Group actions")
col_x, col_y = st.columns(2)
x = int(col_x.number_input("Table x", value=0, step=1))
y = int(col_y.number_input("Table y", value=0, step=1))

names = sorted(r.name for r in store.reservations() if r.date == day)
reservation_name = st.selectbox("Reservation", names) if names else None
reserve_too = st.checkbox("Also mark the group reserved", value=True)

if st.button("Assign reservation", disabled=reservation_name is None):
    if reserve_too:
        result = engine.assign_and_reserve(day, shift, room, (x, y), reservation_name)
    else:
        result = engine.assign_reservation_to_group(day, shift, room, (x, y), reservation_name)
    if result.ok:
        st.success(f"Bound {reservation_name} to {result.inserted} table(s).")
    elif result.kind is ResultKind.CONFLICT:
        conflicting = ", ".join(f"({c.x},{c.y})" for c in result.conflicts)
        st.error(f"Conflict on {conflicting}: {result.message}")
    elif result.reserve_failed:
        st.warning(f"Bound but not reserved (rolled back: {result.rolled_back}): {result.message}")
    else:
        st.error(f"{result.kind.value}: {result.message}")

new_state = st.selectbox("New state", [s.value for s in TableState])
if st.button("Set group state"):
    change = engine.set_group_state(day, shift, room, (x, y), TableState(new_state))
    if change.ok:
        st.success(f"Updated {change.count} table(s).")
    else:
        st.error(f"{change.kind.value}: {change.message}")

bound = engine.get_group_reservations(day, shift, room, (x, y))
if bound:
    st.subheader("Reservations on this group")
    st.dataframe(
        pd.DataFrame(
            [
                {
                    "name": r.name,
                    "time": r.time.strftime("%H:%M") if r.time else "",
                    "party_size": r.party_size,
                    "phone": r.phone or "",
                }
                for r in bound
            ]
        ),
        use_container_width=True,
    )

# -----------------------------
# Floor map and downloads
# -----------------------------

st.subheader("Floor Map")
from generate_floor_map import generate_floor_map
tables = store.load_tables(day, shift, room)
per_table = {t.coord: store.load_bindings_for_table(day, shift, room, t.x, t.y) for t in tables}
components.html(generate_floor_map(tables, per_table), height=600, scrolling=True)

st.download_button(
    "Download tables as CSV",
    tables_frame(store).to_csv(index=False).encode("utf-8"),
    file_name="tables.csv",
)
st.download_button(
    "Download bindings as CSV",
    bindings_frame(store).to_csv(index=False).encode("utf-8"),
    file_name="bindings.csv",
)
