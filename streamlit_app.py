from __future__ import annotations

import time as time_module
from typing import List

import altair as alt
import pandas as pd
import streamlit as st

from analysis import AnalysisResult, TrendLine
from tracker import AlreadyTrackedError, NotTrackedError, SymbolStore
from tracker.config import get_bulk_tolerance, get_default_tolerance


st.set_page_config(page_title="Stock Tracker", layout="wide")

st.markdown("""
<style>
    @media only screen and (max-width: 768px) {
        .main .block-container {
            padding-left: 1rem;
            padding-right: 1rem;
            padding-top: 1rem;
            max-width: 100%;
        }
        h1 {
            font-size: 1.5rem !important;
        }
        [data-testid="stMetricValue"] {
            font-size: 1.2rem;
        }
    }
</style>
""", unsafe_allow_html=True)


# One store per server process, shared by every browser session
@st.cache_resource
def get_store() -> SymbolStore:
    return SymbolStore()


store = get_store()

# Re-run every 30 seconds so results published by background tasks show up
if 'last_refresh' not in st.session_state:
    st.session_state.last_refresh = time_module.time()
if time_module.time() - st.session_state.last_refresh > 30:
    st.session_state.last_refresh = time_module.time()
    st.rerun()


def top_lines(lines: tuple, n: int) -> List[TrendLine]:
    """Return the n lines with the most hits."""
    return sorted(lines, key=lambda t: t.hits, reverse=True)[:n]


def lines_frame(lines: List[TrendLine], kind: str) -> pd.DataFrame:
    """Two rows per line: its value at the first and last hit point."""
    rows = []
    for n, line in enumerate(lines):
        pts = sorted(line.points or line.parents, key=lambda p: p.timestamp)
        for p in (pts[0], pts[-1]):
            rows.append({
                'Date': pd.Timestamp(p.timestamp),
                'Value': line.value_at(p.timestamp),
                'Line': f"{kind} #{n + 1} ({line.hits} hits)",
            })
    return pd.DataFrame(rows)


def points_frame(lines: List[TrendLine], kind: str) -> pd.DataFrame:
    rows = []
    seen = set()
    for line in lines:
        for p in line.points:
            if p.timestamp in seen:
                continue
            seen.add(p.timestamp)
            rows.append({'Date': pd.Timestamp(p.timestamp), 'Value': p.value, 'Kind': kind})
    return pd.DataFrame(rows)


def trend_chart(info: AnalysisResult, n: int) -> alt.LayerChart | None:
    supports = top_lines(info.supports, n)
    resistances = top_lines(info.resistances, n)
    lines = pd.concat([lines_frame(supports, 'Support'),
                       lines_frame(resistances, 'Resistance')], ignore_index=True)
    points = pd.concat([points_frame(supports, 'Support'),
                        points_frame(resistances, 'Resistance')], ignore_index=True)
    if lines.empty:
        return None

    line_layer = alt.Chart(lines).mark_line(strokeWidth=2).encode(
        x=alt.X('Date:T', title=''),
        y=alt.Y('Value:Q', title='', scale=alt.Scale(zero=False)),
        color=alt.Color('Line:N', title=''),
        tooltip=[alt.Tooltip('Line:N'), alt.Tooltip('Value:Q', format=',.2f')],
    )
    layers = [line_layer]
    if not points.empty:
        layers.append(alt.Chart(points).mark_circle(size=60).encode(
            x='Date:T',
            y='Value:Q',
            color=alt.Color('Kind:N', scale=alt.Scale(
                domain=['Support', 'Resistance'], range=['#66bb6a', '#f44336']), legend=None),
            tooltip=[
                alt.Tooltip('Date:T', format='%Y-%m-%d'),
                alt.Tooltip('Value:Q', format=',.2f'),
                alt.Tooltip('Kind:N'),
            ],
        ))
    return alt.layer(*layers).properties(height=320, title='Top trend lines')


def averages_chart(info: AnalysisResult) -> alt.LayerChart | None:
    # ema carries a leading seed value, so it is one longer than sma
    frames = []
    if len(info.sma) > 1:
        frames.append(pd.DataFrame({'Index': range(1, len(info.sma)),
                                    'Value': info.sma[1:], 'Series': 'SMA'}))
    if len(info.ema) > 2:
        frames.append(pd.DataFrame({'Index': range(1, len(info.ema) - 1),
                                    'Value': info.ema[2:], 'Series': 'EMA'}))
    if not frames:
        return None
    df = pd.concat(frames, ignore_index=True)
    nearest = alt.selection_point(
        nearest=True, on='mousemove', encodings=['x'], empty=False)
    base = alt.Chart(df).encode(
        x=alt.X('Index:Q', title='Bars back', axis=alt.Axis(tickMinStep=1)),
        y=alt.Y('Value:Q', title='', scale=alt.Scale(zero=False)),
        color=alt.Color('Series:N', scale=alt.Scale(
            domain=['SMA', 'EMA'], range=['#4e79a7', '#f28e2c'])),
    )
    lines = base.mark_line()
    points = base.mark_circle(size=40).encode(
        opacity=alt.condition(nearest, alt.value(1), alt.value(0)),
        tooltip=[alt.Tooltip('Series:N'), alt.Tooltip('Value:Q', format=',.2f')],
    ).add_params(nearest)
    return alt.layer(lines, points).properties(height=220, title='Moving averages')


st.title("📈 Stock Tracker")

with st.sidebar:
    st.subheader("Track a stock")
    with st.form('add_stock', clear_on_submit=True):
        ticker = st.text_input("Ticker").strip().upper()
        tolerance = st.number_input(
            "Tolerance", min_value=0.0, value=float(get_default_tolerance()), step=0.01, format="%.2f")
        if st.form_submit_button("Track") and ticker:
            try:
                store.register(ticker, tolerance or None)
                st.success(f"Tracking {ticker}")
            except (AlreadyTrackedError, ValueError) as e:
                st.error(str(e))

    st.subheader("Bulk load")
    uploaded = st.file_uploader("Ticker list (one per line)", type=['txt', 'csv'])
    if uploaded is not None and st.button("Load list"):
        lines = uploaded.getvalue().decode('utf-8').splitlines()
        outcomes = store.load_from_list(lines, get_bulk_tolerance())
        failed = [f"{t}: {e}" for t, e in outcomes if e is not None]
        st.info(f"Loaded {len(outcomes) - len(failed)} of {len(outcomes)} tickers")
        for msg in failed:
            st.warning(msg)

tracked = sorted(store.list_tracked())
if not tracked:
    st.info("No stocks tracked yet. Add one from the sidebar.")
    st.stop()

selected = st.selectbox("Stock", tracked)
try:
    info = store.get_info(selected)
    config = store.get_config(selected)
except NotTrackedError:
    st.warning(f"{selected} is no longer tracked")
    st.stop()

if info.is_empty:
    st.info(f"⏳ Analysis for {selected} is not available yet")
else:
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Last close", f"{info.last_close:,.2f}",
              f"{info.last_close - info.last_open:+,.2f} vs open")
    c2.metric("Window high", f"{info.max_point.value:,.2f}",
              info.max_point.timestamp.strftime('%Y-%m-%d'), delta_color='off')
    c3.metric("Window low", f"{info.min_point.value:,.2f}",
              info.min_point.timestamp.strftime('%Y-%m-%d'), delta_color='off')
    c4.metric("Tolerance", f"{config.tolerance:.2f}")

    n_lines = st.slider("Lines per side", min_value=1, max_value=10, value=3)
    chart = trend_chart(info, n_lines)
    if chart is None:
        st.info("No trend lines found in this window.")
    else:
        st.altair_chart(chart, use_container_width=True)

    avg_chart = averages_chart(info)
    if avg_chart is not None:
        st.altair_chart(avg_chart, use_container_width=True)

    with st.expander("Raw analysis"):
        st.json(info.to_dict())

if st.button(f"Stop tracking {selected}"):
    try:
        store.deregister(selected)
    except NotTrackedError as e:
        st.error(str(e))
    st.rerun()
