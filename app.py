from datetime import datetime, time as dtime

import streamlit as st
from dotenv import load_dotenv

from eventconsole.client import ApiError, FoxtrotClient
from eventconsole.config import get_api_url, get_timeout
from eventconsole.constants import OPERATOR_LABELS, OPERATORS, PERIOD_SELECTS, PERIOD_UNITS, SORT_ORDERS
from eventconsole.prefs import get_prefs, set_pref
from eventconsole.query import FilterValidationError, TimeRange
from eventconsole.session import BrowseSession
from eventconsole.telemetry import show_log_viewer_sidebar
from eventconsole.tiles import (
    TileBoard,
    TileContext,
    UnknownChartType,
    edit_line_context,
    line_form_defaults,
    line_form_values,
)

# ---------- Boot ----------
load_dotenv()
API_URL = get_api_url()

st.set_page_config(page_title="Event Console", layout="wide")
st.title("Event Console")

# ---------- Sidebar: Logs ----------
show_log_viewer_sidebar()

# ---------- Session ----------
if "client" not in st.session_state:
    st.session_state.client = FoxtrotClient(API_URL, timeout=get_timeout())
if "browse" not in st.session_state:
    st.session_state.browse = BrowseSession()
if "tables" not in st.session_state:
    st.session_state.tables = None
if "board" not in st.session_state:
    st.session_state.board = TileBoard()
if "tile_form" not in st.session_state:
    st.session_state.tile_form = {"editing": None, "blank": False, "nonce": 0}

client: FoxtrotClient = st.session_state.client
browse: BrowseSession = st.session_state.browse
board: TileBoard = st.session_state.board
tile_form = st.session_state.tile_form
prefs = get_prefs()

def _to_ms(day, at) -> int:
    return int(datetime.combine(day, at).timestamp() * 1000)

# ---------- Sidebar: Table ----------
st.sidebar.header("Table")
if st.session_state.tables is None:
    try:
        st.session_state.tables = client.list_tables()
    except ApiError as e:
        st.sidebar.error(f"Failed to list tables: {e}")
tables = st.session_state.tables or []

picked = st.sidebar.selectbox("Browse table", tables, index=0 if tables else None)
if picked and picked != browse.table:
    try:
        fields = client.fetch_fields(picked)
        browse.select_table(picked, fields)
    except ApiError as e:
        browse.clear()
        st.sidebar.error(f"Failed to load fields for {picked}: {e}")

st.sidebar.caption(f"API: {API_URL}")

if not browse.table:
    st.info("Pick a table in the sidebar to begin.")
    st.stop()

field_names = [f.field for f in browse.fields]

# ---------- Browse: filters ----------
st.subheader(f"Browse events: {browse.table}")

if st.button("Add filter", disabled=not browse.fields):
    browse.add_filter_row()

for row in browse.rows:
    c1, c2, c3, c4, c5 = st.columns([3, 3, 3, 3, 1])
    with c1:
        idx = st.selectbox("Field", range(len(field_names)), index=row.field_index,
                           format_func=lambda i: field_names[i], key=f"field-{browse.generation}-{row.id}")
        if idx != row.field_index:
            browse.rows.set_field(row.id, browse.fields, idx)
    with c2:
        op = st.selectbox("Operator", OPERATORS, index=OPERATORS.index(row.operator),
                          format_func=OPERATOR_LABELS.get, key=f"op-{browse.generation}-{row.id}")
        if op != row.operator:
            browse.rows.set_operator(row.id, op)
    with c3:
        if row.input_mode == "numeric":
            mapping = browse.fields[row.field_index]
            # step type picks int or float input
            value = st.number_input("Value", value=None, step=1 if mapping.integral else 0.1,
                                    format=None if mapping.integral else "%g",
                                    key=f"val-{browse.generation}-{row.id}")
        else:
            value = st.text_input("Value", key=f"val-{browse.generation}-{row.id}")
        browse.rows.set_value(row.id, "" if value is None else value)
    with c4:
        between = st.text_input("And", disabled=not row.between_enabled, key=f"btw-{browse.generation}-{row.id}")
        if row.between_enabled:
            browse.rows.set_value(row.id, row.value, between)
    with c5:
        if st.button("✕", key=f"rm-{browse.generation}-{row.id}"):
            browse.remove_filter_row(row.id)
            st.rerun()

# ---------- Browse: time range & sort ----------
with st.expander("Time range & sort", expanded=False):
    use_range = st.checkbox("Limit to a time range", value=False)
    if use_range:
        d1, d2 = st.columns(2)
        with d1:
            start_day = st.date_input("From")
            start_at = st.time_input("From time", value=dtime(0, 0))
        with d2:
            end_day = st.date_input("To")
            end_at = st.time_input("To time", value=dtime(23, 59))
        browse.set_time_range(_to_ms(start_day, start_at), _to_ms(end_day, end_at))
    else:
        browse.time_range = TimeRange()
    order = st.selectbox("Sort by time", SORT_ORDERS, index=SORT_ORDERS.index(prefs["sort_order"]))
    browse.sort_order = order
    set_pref("sort_order", order)

b1, b2 = st.columns(2)
with b1:
    run = st.button("Run query", type="primary")
with b2:
    more = st.button("Load more", disabled=browse.results.empty)

if run or more:
    try:
        with st.spinner("Querying..."):
            got = browse.run_query(client, reset=bool(run))
        if not got and more:
            st.caption("No more results.")
    except FilterValidationError as fe:
        st.warning(f"Fix the filter first: {fe}")
    except ApiError as e:
        st.error(f"Query failed: {e}")

# ---------- Browse: results ----------
results = browse.results
if not results.empty:
    with st.expander("Columns", expanded=False):
        if st.button("Select all", disabled=results.all_selected):
            results.select_all()
        search = st.text_input("Search columns", key=f"colsearch-{browse.generation}")
        options = results.search_columns(search) if search else results.display_columns
        shown = [c for c in results.selected_columns if c in options]
        chosen = st.multiselect("Visible columns", options, default=shown,
                                key=f"cols-{browse.generation}-{len(results)}-{search}-{results.all_selected}")
        if set(chosen) != set(shown):
            # columns hidden by the search box keep their selection state
            hidden = [c for c in results.selected_columns if c not in options]
            results.select_columns(hidden + chosen)
    st.caption(f"{len(results)} events loaded")
    st.dataframe(results.to_dataframe(), use_container_width=True)

# ---------- Tiles ----------
st.subheader("Tiles")
editing = board.get(tile_form["editing"]) if tile_form["editing"] else None
if editing is not None:
    defaults = line_form_defaults(editing.context)
elif tile_form["blank"]:
    defaults = line_form_defaults()
else:
    defaults = {**line_form_defaults(), "period": prefs["tile_period"], "timeframe": str(prefs["tile_timeframe"])}

periods = list(PERIOD_UNITS)
unique_options = ["none"] + field_names
if defaults["uniqueCountOn"] not in unique_options:
    unique_options.append(defaults["uniqueCountOn"])

with st.form(f"tile-form-{tile_form['nonce']}"):
    t1, t2, t3 = st.columns(3)
    with t1:
        period = st.selectbox("Time unit", periods, index=periods.index(defaults["period"]))
    with t2:
        unique_on = st.selectbox("Unique count on", unique_options, index=unique_options.index(defaults["uniqueCountOn"]))
    with t3:
        timeframe = st.text_input("Timeframe", value=defaults["timeframe"])
    f1, f2 = st.columns(2)
    with f1:
        submitted = st.form_submit_button(f"Save {editing.id}" if editing is not None else "Add line tile")
    with f2:
        cleared = st.form_submit_button("Clear form")

def _reset_tile_form(blank: bool) -> None:
    tile_form.update(editing=None, blank=blank, nonce=tile_form["nonce"] + 1)

if cleared:
    _reset_tile_form(blank=True)
    st.rerun()

if submitted:
    values, ok = line_form_values(period, unique_on, timeframe)
    if not ok:
        st.warning("Time unit, unique count and a positive timeframe are required.")
    elif editing is not None:
        board.replace(editing.id, edit_line_context(
            editing.context, values["period"], values["uniqueCountOn"], values["timeframe"],
        ))
        _reset_tile_form(blank=False)
        st.rerun()
    else:
        try:
            ctx = TileContext(
                table=browse.table,
                filters=tuple(browse.rows.to_filters(browse.fields)),
                period=values["period"],
                unique_count_on=values["uniqueCountOn"],
                timeframe=int(values["timeframe"]),
                chart_type="line",
            )
            board.add(ctx)
            set_pref("tile_period", period)
            set_pref("tile_timeframe", ctx.timeframe)
            _reset_tile_form(blank=False)
        except (FilterValidationError, UnknownChartType) as e:
            st.warning(str(e))

for tile in board:
    head, actions, health_col = st.columns([5, 1, 1])
    with head:
        st.markdown(f"**{tile.context.table}** · {tile.context.timeframe} {tile.context.period} · {tile.state.value}")
        select = st.selectbox("Range", PERIOD_SELECTS, index=PERIOD_SELECTS.index(prefs["period_select"]),
                              key=f"{tile.id}-range")
        if select != prefs["period_select"]:
            set_pref("period_select", select)
    with actions:
        reload = st.button("Refresh", key=f"{tile.id}-refresh")
        if st.button("Edit", key=f"{tile.id}-edit"):
            tile_form.update(editing=tile.id, blank=False, nonce=tile_form["nonce"] + 1)
            st.rerun()
        if st.button("Remove", key=f"{tile.id}-remove"):
            board.remove(tile.id)
            if tile_form["editing"] == tile.id:
                _reset_tile_form(blank=False)
            st.rerun()
    if reload or tile.needs_refresh(select):
        try:
            tile.refresh(client, select)
        except ApiError as e:
            st.error(f"Tile {tile.id} failed: {e}")
    with health_col:
        if tile.health_figure is not None:
            st.plotly_chart(tile.health_figure, use_container_width=False, config={"displayModeBar": False},
                            key=f"{tile.id}-health")
    if tile.figure is not None:
        st.plotly_chart(tile.figure, use_container_width=True, key=f"{tile.id}-chart")
    else:
        st.caption("No data for this window yet.")
