import random
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

import pandas as pd
import plotly.express as px
from pydantic import BaseModel, ConfigDict, Field

from .client import ApiError
from .constants import (
    BORDER_COLOR,
    CHART_HEIGHT,
    GRID_COLOR,
    HEALTH_COLOR,
    HEALTH_HEIGHT,
    HEALTH_WIDTH,
    LINE_COLORS,
    PERIOD_UNITS,
    TIMESTAMP_FIELD,
)
from .formatting import axis_time_format, format_count
from .query import Filter
from .telemetry import log_event

Series = List[Tuple[int, int]]


class UnknownChartType(Exception):
    pass


class TileState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RENDERED = "rendered"


class TileContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    table: str
    filters: Tuple[Filter, ...] = ()
    period: str = "minutes"
    unique_count_on: Optional[str] = None
    timeframe: int = Field(default=24, gt=0)
    chart_type: str = "line"


def time_window_filter(period: str, timeframe: int, period_select: str = "custom") -> Filter:
    if period_select and period_select != "custom":
        duration = period_select
    else:
        unit = PERIOD_UNITS.get(period)
        if unit is None:
            raise ValueError(f"Unknown period: {period}")
        duration = f"{timeframe}{unit}"
    return Filter(field=TIMESTAMP_FIELD, operator="last", duration=duration)


def line_form_values(period: Optional[str], unique_count_on: Optional[str], timeframe: Any) -> Tuple[Dict[str, Any], bool]:
    values = {"period": period, "uniqueCountOn": unique_count_on, "timeframe": timeframe}
    ok = bool(period) and period in PERIOD_UNITS and bool(unique_count_on)
    try:
        ok = ok and int(str(timeframe).strip()) > 0
    except ValueError:
        ok = False
    return values, ok


class Tile(ABC):
    """A chart widget with its own fetch/render cycle.

    Subclasses supply the three steps; ``refresh`` drives them and keeps the
    state machine and the stale-response guard in one place.
    """

    chart_type: ClassVar[str] = ""

    def __init__(self, tile_id: str, context: TileContext):
        self.id = tile_id
        self.context = context
        self.state = TileState.IDLE
        self.rows: Series = []
        self.figure = None
        self.health_figure = None
        self.period_select = "custom"
        self._seq = 0

    def effective_filters(self, period_select: str = "custom") -> List[Filter]:
        window = time_window_filter(self.context.period, self.context.timeframe, period_select)
        return [*self.context.filters, window]

    @abstractmethod
    def get_query(self, period_select: str = "custom") -> Dict[str, Any]:
        ...

    @abstractmethod
    def get_data(self, response: Optional[Dict[str, Any]]) -> Optional[Series]:
        ...

    @abstractmethod
    def render(self, series: Series) -> None:
        ...

    def begin_fetch(self, period_select: str = "custom") -> Tuple[int, Dict[str, Any]]:
        request = self.get_query(period_select)
        self.period_select = period_select
        self._seq += 1
        self.state = TileState.FETCHING
        return self._seq, request

    def complete(self, seq: int, response: Optional[Dict[str, Any]]) -> bool:
        if seq != self._seq:
            log_event("stale_response", tile=self.id, seq=seq, current_seq=self._seq)
            return False
        series = self.get_data(response)
        if not series:
            # previous figures stay on screen
            self.state = TileState.IDLE
            log_event("tile_empty", tile=self.id, table=self.context.table)
            return False
        self.rows = series
        self.render(series)
        self.state = TileState.RENDERED
        return True

    def fail(self, seq: int) -> None:
        if seq == self._seq:
            self.state = TileState.IDLE

    def needs_refresh(self, period_select: str = "custom") -> bool:
        return self._seq == 0 or period_select != self.period_select

    def refresh(self, client, period_select: str = "custom") -> bool:
        seq, request = self.begin_fetch(period_select)
        try:
            response = client.histogram(request)
        except ApiError:
            self.fail(seq)
            raise
        return self.complete(seq, response)


def _count_ticks(max_count: float) -> List[float]:
    if max_count <= 0:
        return [0]
    return sorted({round(max_count * i / 4) for i in range(5)})


def series_frame(series: Series) -> pd.DataFrame:
    df = pd.DataFrame(series, columns=["period", "count"])
    df["date"] = pd.to_datetime(df["period"], unit="ms")
    return df


class LineTile(Tile):
    chart_type = "line"

    def get_query(self, period_select: str = "custom") -> Dict[str, Any]:
        ctx = self.context
        unique = ctx.unique_count_on if ctx.unique_count_on and ctx.unique_count_on != "none" else None
        return {
            "opcode": "histogram",
            "table": ctx.table,
            "filters": [f.wire() for f in self.effective_filters(period_select)],
            "field": TIMESTAMP_FIELD,
            "period": ctx.period,
            "uniqueCountOn": unique,
        }

    def get_data(self, response: Optional[Dict[str, Any]]) -> Optional[Series]:
        counts = (response or {}).get("counts")
        if not counts or not isinstance(counts, list):
            return None
        series: Series = []
        skipped = 0
        for bucket in counts:
            try:
                series.append((int(bucket["period"]), int(bucket["count"])))
            except (KeyError, TypeError, ValueError):
                skipped += 1
        if skipped:
            log_event("tile_malformed_buckets", tile=self.id, skipped=skipped, total=len(counts))
        series.sort(key=lambda pair: pair[0])
        return series or None

    def render(self, series: Series) -> None:
        df = series_frame(series)
        color = random.Random(self.id).choice(LINE_COLORS)

        fig = px.line(df, x="date", y="count")
        fig.update_traces(
            line=dict(width=4, color=color),
            mode="lines",
            hovertemplate="%{y} events at %{x}<extra></extra>",
        )
        ticks = _count_ticks(float(df["count"].max()))
        fig.update_xaxes(
            title=None,
            ticklen=0,
            showgrid=False,
            tickformat=axis_time_format(self.context.period, self.period_select),
            linecolor=BORDER_COLOR,
        )
        fig.update_yaxes(
            title=None,
            tickvals=ticks,
            ticktext=[format_count(t) for t in ticks],
            gridcolor=GRID_COLOR,
            griddash="dash",
            linecolor=BORDER_COLOR,
        )
        fig.update_layout(
            height=CHART_HEIGHT,
            showlegend=False,
            plot_bgcolor="white",
            margin=dict(l=10, r=10, t=10, b=10),
        )

        health = px.line(df, x="date", y="count")
        health.update_traces(line=dict(width=1, color=HEALTH_COLOR), mode="lines", hoverinfo="skip", hovertemplate=None)
        health.update_xaxes(visible=False, tickformat=axis_time_format(self.context.period, "custom"))
        health.update_yaxes(visible=False)
        health.update_layout(
            width=HEALTH_WIDTH,
            height=HEALTH_HEIGHT,
            showlegend=False,
            hovermode=False,
            plot_bgcolor="white",
            margin=dict(l=0, r=0, t=0, b=0),
        )

        self.figure = fig
        self.health_figure = health


TILE_TYPES: Dict[str, Type[Tile]] = {LineTile.chart_type: LineTile}


def create_tile(tile_id: str, context: TileContext) -> Tile:
    cls = TILE_TYPES.get(context.chart_type)
    if cls is None:
        raise UnknownChartType(f"No tile registered for chart type: {context.chart_type}")
    return cls(tile_id, context)


def line_form_defaults(context: Optional[TileContext] = None) -> Dict[str, Any]:
    """Form values for editing ``context``; a blank form when none is given."""
    if context is None:
        return {"period": next(iter(PERIOD_UNITS)), "uniqueCountOn": "none", "timeframe": ""}
    return {
        "period": context.period,
        "uniqueCountOn": context.unique_count_on or "none",
        "timeframe": str(context.timeframe),
    }


class TileBoard:
    """Ordered tiles on the console, keyed by id."""

    def __init__(self) -> None:
        self._tiles: Dict[str, Tile] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._tiles)

    def __iter__(self):
        return iter(list(self._tiles.values()))

    def get(self, tile_id: str) -> Optional[Tile]:
        return self._tiles.get(tile_id)

    def add(self, context: TileContext) -> Tile:
        tile = create_tile(f"tile-{self._next_id}", context)
        self._tiles[tile.id] = tile
        self._next_id += 1
        return tile

    def replace(self, tile_id: str, context: TileContext) -> Tile:
        if tile_id not in self._tiles:
            raise KeyError(tile_id)
        tile = create_tile(tile_id, context)
        self._tiles[tile_id] = tile
        return tile

    def remove(self, tile_id: str) -> None:
        self._tiles.pop(tile_id, None)


def edit_line_context(context: TileContext, period: str, unique_count_on: str, timeframe: Any) -> TileContext:
    return TileContext(
        table=context.table,
        filters=context.filters,
        period=period,
        unique_count_on=unique_count_on,
        timeframe=int(str(timeframe).strip()),
        chart_type=context.chart_type,
    )
