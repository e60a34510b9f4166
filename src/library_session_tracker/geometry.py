"""
Chart geometry for Library Session Tracker.

PURPOSE: Compute pie-slice arcs, bar positions and axis ticks, and render
them as standalone SVG.
AI CONTEXT: Pure math - no matplotlib here. exporters.py draws raster
images from the same layouts so SVG and PNG agree.

COORDINATES:
SVG space, origin top-left, y grows downward. Pie angles are in degrees,
0 at 12 o'clock, increasing clockwise.

LAYOUTS:
- PieLayout: 420 wide, height max(220, 40 + 20n + 50), pie centre (100, h/2), r = 80
- BarLayout: width max(800, 60n), height 400, margins 20/20/120/60
- YAxis: max rounded up to an hour (or a minute under 15 minutes), five ticks

USAGE:
    layout = layout_pie(buckets, title="Student Distribution by Level")
    svg = render_pie_svg(layout)
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from html import escape

from .config import Config
from .durations import format_duration
from .models import PieBucket, StudentTotal

__all__ = [
    "NO_PIE_DATA_MESSAGE",
    "Point",
    "PieSlice",
    "PieLayout",
    "AxisTick",
    "YAxis",
    "Bar",
    "BarLayout",
    "polar_to_cartesian",
    "describe_arc",
    "layout_pie",
    "compute_y_axis",
    "layout_bars",
    "render_pie_svg",
    "render_bar_svg",
]

NO_PIE_DATA_MESSAGE = "Not enough data to display pie chart."

PIE_VIEWBOX_WIDTH = 420
PIE_MIN_HEIGHT = 220
PIE_CENTER_X = 100
PIE_RADIUS = 80
LEGEND_Y_START = 40
LEGEND_ITEM_HEIGHT = 20
LEGEND_BOTTOM_PADDING = 50
LEGEND_WIDTH = 180
LEGEND_LABEL_MAX = 18

BAR_VIEWBOX_HEIGHT = 400
BAR_MIN_WIDTH = 800
BAR_SLOT_WIDTH = 60
BAR_MARGIN_TOP = 20
BAR_MARGIN_RIGHT = 20
BAR_MARGIN_BOTTOM = 120
BAR_MARGIN_LEFT = 60
BAR_FILL_RATIO = 0.8
Y_TICK_COUNT = 4


@dataclass(frozen=True)
class Point:
    """SVG coordinate."""

    x: float
    y: float


@dataclass(frozen=True)
class PieSlice:
    """One drawn wedge with its legend text."""

    label: str
    value: float
    color: str
    start_angle: float
    end_angle: float
    percentage: str
    path: str
    formatted_value: str

    @property
    def sweep(self) -> float:
        """Angular size of the wedge in degrees."""
        return self.end_angle - self.start_angle

    @property
    def legend_label(self) -> str:
        """Label shortened to fit the legend column."""
        if len(self.label) > LEGEND_LABEL_MAX:
            return f"{self.label[: LEGEND_LABEL_MAX - 2]}..."
        return self.label


@dataclass(frozen=True)
class PieLayout:
    """
    Fully computed pie chart.

    When the bucket total is zero, has_data is False, slices is empty and
    message holds the placeholder text to show instead of a chart.
    """

    title: str
    total: float
    total_label: str
    formatted_total: str
    slices: list[PieSlice]
    width: float
    height: float
    center: Point
    radius: float
    message: str | None = None

    @property
    def has_data(self) -> bool:
        """True when there is at least one non-empty slice to draw."""
        return self.message is None

    @property
    def legend_x(self) -> float:
        """Left edge of the legend, 40 units right of the pie."""
        return self.center.x + self.radius + 40


@dataclass(frozen=True)
class AxisTick:
    """Y-axis gridline value in seconds with its display label."""

    value: float
    label: str


@dataclass(frozen=True)
class YAxis:
    """Y-axis scale: the top value and ticks listed from top to bottom."""

    max_value: int
    ticks: list[AxisTick] = field(default_factory=list)


@dataclass(frozen=True)
class Bar:
    """One bar of the leaderboard chart."""

    label: str
    value: int
    session_count: int
    x: float
    y: float
    width: float
    height: float
    color: str

    @property
    def label_x(self) -> float:
        """Horizontal centre of the bar, where its rotated label is anchored."""
        return self.x + self.width / 2


@dataclass(frozen=True)
class BarLayout:
    """Fully computed bar chart of student totals."""

    width: float
    height: float
    inner_width: float
    inner_height: float
    bars: list[Bar]
    y_axis: YAxis

    @property
    def baseline_y(self) -> float:
        """Y of the x-axis line."""
        return BAR_MARGIN_TOP + self.inner_height

    def tick_y(self, tick: AxisTick) -> float:
        """Y coordinate of a tick's gridline."""
        return self.baseline_y - (tick.value / self.y_axis.max_value) * self.inner_height


def _num(value: float) -> str:
    # Compact SVG number: at most 3 decimals, no trailing zeros.
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def polar_to_cartesian(cx: float, cy: float, radius: float, angle_deg: float) -> Point:
    """
    Convert a pie angle to SVG coordinates.

    Angle 0 points straight up and angles grow clockwise, which is the
    usual clock-face convention for pie charts.

    Example:
        >>> polar_to_cartesian(100, 100, 80, 90)
        Point(x=180.0, y=100.0)
    """
    radians = math.radians(angle_deg - 90)
    return Point(x=cx + radius * math.cos(radians), y=cy + radius * math.sin(radians))


def describe_arc(cx: float, cy: float, radius: float, start_angle: float, end_angle: float) -> str:
    """
    Build the SVG path for a pie wedge between two angles.

    The arc is drawn from the end angle back to the start angle, then a
    line closes the wedge through the centre. A full circle cannot be
    expressed as one SVG arc, so a span of 360 degrees or more is drawn
    with the end pulled back by 0.01 degrees.

    Args:
        cx: Centre x.
        cy: Centre y.
        radius: Pie radius.
        start_angle: Wedge start in degrees.
        end_angle: Wedge end in degrees.

    Returns:
        Path data "M sx sy A r r 0 large 0 ex ey L cx cy Z".

    Example:
        >>> describe_arc(100, 100, 80, 0, 90)
        'M 180 100 A 80 80 0 0 0 100 20 L 100 100 Z'
    """
    if abs(end_angle - start_angle) >= 360:
        return describe_arc(cx, cy, radius, start_angle, end_angle - 0.01)

    start = polar_to_cartesian(cx, cy, radius, end_angle)
    end = polar_to_cartesian(cx, cy, radius, start_angle)
    large_arc = "0" if end_angle - start_angle <= 180 else "1"
    return " ".join(
        [
            "M", _num(start.x), _num(start.y),
            "A", _num(radius), _num(radius), "0", large_arc, "0", _num(end.x), _num(end.y),
            "L", _num(cx), _num(cy),
            "Z",
        ]
    )


def _format_count(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def layout_pie(
    buckets: Sequence[PieBucket],
    title: str = "",
    total_label: str = "Total",
    value_formatter: Callable[[float], str] | None = None,
) -> PieLayout:
    """
    Lay out a pie chart from labelled buckets.

    Slices start at 12 o'clock and follow bucket order clockwise. Each
    slice's sweep is value / total * 360. Percentages are one decimal
    place with a "%" suffix.

    Business context: Drives both the "by level" pie (values are entry
    counts) and the "by student" pie (values are seconds, formatted as
    durations through value_formatter).

    Args:
        buckets: Pie regions in drawing order.
        title: Heading drawn above the chart.
        total_label: Caption of the legend total row.
        value_formatter: Formats values and the total for the legend.
            Defaults to plain numbers.

    Returns:
        PieLayout. With a zero total, has_data is False and message is
        "Not enough data to display pie chart."

    Example:
        >>> layout = layout_pie([PieBucket("A", 1, "#f00"), PieBucket("B", 1, "#0f0")])
        >>> [s.percentage for s in layout.slices]
        ['50.0%', '50.0%']
    """
    formatter = value_formatter or _format_count
    total = sum(bucket.value for bucket in buckets)
    height = max(
        PIE_MIN_HEIGHT,
        LEGEND_Y_START + len(buckets) * LEGEND_ITEM_HEIGHT + LEGEND_BOTTOM_PADDING,
    )
    center = Point(PIE_CENTER_X, height / 2)

    if total == 0:
        return PieLayout(
            title=title,
            total=0,
            total_label=total_label,
            formatted_total=formatter(0),
            slices=[],
            width=PIE_VIEWBOX_WIDTH,
            height=height,
            center=center,
            radius=PIE_RADIUS,
            message=NO_PIE_DATA_MESSAGE,
        )

    slices: list[PieSlice] = []
    start_angle = 0.0
    for bucket in buckets:
        end_angle = start_angle + bucket.value / total * 360
        slices.append(
            PieSlice(
                label=bucket.label,
                value=bucket.value,
                color=bucket.color,
                start_angle=start_angle,
                end_angle=end_angle,
                percentage=f"{bucket.value / total * 100:.1f}%",
                path=describe_arc(center.x, center.y, PIE_RADIUS, start_angle, end_angle),
                formatted_value=formatter(bucket.value),
            )
        )
        start_angle = end_angle

    return PieLayout(
        title=title,
        total=total,
        total_label=total_label,
        formatted_total=formatter(total),
        slices=slices,
        width=PIE_VIEWBOX_WIDTH,
        height=height,
        center=center,
        radius=PIE_RADIUS,
    )


def compute_y_axis(values: Sequence[float]) -> YAxis:
    """
    Choose the bar chart's y-axis scale.

    The maximum rounds up to a whole hour. Under 15 minutes it rounds up
    to a whole minute instead, and it is never below 60 seconds. Five
    ticks split the range into quarters and are labelled with
    format_duration, listed from the top of the axis down.

    Args:
        values: Bar values in seconds.

    Returns:
        YAxis. Empty input gives max 3600 and no ticks.

    Example:
        >>> compute_y_axis([5400]).max_value
        7200
        >>> compute_y_axis([400]).max_value
        420
        >>> [t.label for t in compute_y_axis([3600]).ticks]
        ['1h 0m', '45m', '30m', '15m', '0s']
    """
    if not values:
        return YAxis(max_value=3600)

    max_val = max(max(values), 0)
    axis_max = math.ceil(max_val / 3600) * 3600
    if max_val < 900:
        axis_max = math.ceil(max_val / 60) * 60
    if axis_max == 0:
        axis_max = 60

    ticks = [
        AxisTick(value=axis_max / Y_TICK_COUNT * i, label=format_duration(axis_max / Y_TICK_COUNT * i))
        for i in range(Y_TICK_COUNT, -1, -1)
    ]
    return YAxis(max_value=int(axis_max), ticks=ticks)


def layout_bars(
    totals: Sequence[StudentTotal],
    palette: Sequence[str] | None = None,
) -> BarLayout:
    """
    Lay out the leaderboard bar chart.

    Each student gets an equal slot across the inner width; the bar
    fills 80% of the slot, offset 10% from its left edge. Bar height is
    proportional to total_seconds against the y-axis maximum. Colors
    cycle through the bar palette.

    Args:
        totals: Rows to chart, already sorted and limited.
        palette: Bar colors. Default: Config.BAR_PALETTE.

    Returns:
        BarLayout with one Bar per row.

    Example:
        >>> layout = layout_bars(totals[:2])
        >>> layout.width, layout.inner_height
        (800, 260)
    """
    colors = tuple(palette or Config.BAR_PALETTE)
    count = len(totals)
    width = max(BAR_MIN_WIDTH, count * BAR_SLOT_WIDTH)
    inner_width = width - BAR_MARGIN_LEFT - BAR_MARGIN_RIGHT
    inner_height = BAR_VIEWBOX_HEIGHT - BAR_MARGIN_TOP - BAR_MARGIN_BOTTOM
    y_axis = compute_y_axis([total.total_seconds for total in totals])

    bars: list[Bar] = []
    if count:
        slot = inner_width / count
        for index, total in enumerate(totals):
            bar_height = total.total_seconds / y_axis.max_value * inner_height
            bars.append(
                Bar(
                    label=total.student_name,
                    value=total.total_seconds,
                    session_count=total.session_count,
                    x=BAR_MARGIN_LEFT + slot * (index + 0.1),
                    y=BAR_MARGIN_TOP + inner_height - bar_height,
                    width=slot * BAR_FILL_RATIO,
                    height=bar_height,
                    color=colors[index % len(colors)],
                )
            )

    return BarLayout(
        width=width,
        height=BAR_VIEWBOX_HEIGHT,
        inner_width=inner_width,
        inner_height=inner_height,
        bars=bars,
        y_axis=y_axis,
    )


def render_pie_svg(layout: PieLayout) -> str:
    """
    Render a PieLayout as a standalone SVG document.

    A layout without data renders the placeholder message centred in
    the viewbox.
    """
    w, h = _num(layout.width), _num(layout.height)
    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {w} {h}" '
        f'width="{w}" height="{h}" font-family="sans-serif">',
        f'<text x="{_num(layout.width / 2)}" y="20" text-anchor="middle" font-size="18" '
        f'font-weight="bold">{escape(layout.title)}</text>',
    ]
    if not layout.has_data:
        parts.append(
            f'<text x="{_num(layout.width / 2)}" y="{_num(layout.height / 2)}" '
            f'text-anchor="middle" font-size="14" fill="#6B7280">{escape(layout.message or "")}</text>'
        )
        parts.append("</svg>")
        return "\n".join(parts)

    for piece in layout.slices:
        parts.append(
            f'<path d="{piece.path}" fill="{piece.color}"><title>'
            f"{escape(piece.label)}: {escape(piece.formatted_value)} ({piece.percentage})"
            "</title></path>"
        )

    parts.append(f'<g transform="translate({_num(layout.legend_x)}, 0)">')
    for index, piece in enumerate(layout.slices):
        y = LEGEND_Y_START + index * LEGEND_ITEM_HEIGHT
        parts.append(
            f'<g transform="translate(0, {y})">'
            f'<rect width="12" height="12" fill="{piece.color}" rx="2"/>'
            f'<text x="20" y="10" font-size="14">{escape(piece.legend_label)}</text>'
            f'<text x="{LEGEND_WIDTH}" y="10" text-anchor="end" font-size="14" fill="#6B7280">'
            f"{escape(piece.formatted_value)} ({piece.percentage})</text></g>"
        )
    rule_y = LEGEND_Y_START + len(layout.slices) * LEGEND_ITEM_HEIGHT + 15
    parts.append(f'<line x1="0" y1="{rule_y}" x2="{LEGEND_WIDTH}" y2="{rule_y}" stroke="#E5E7EB"/>')
    parts.append(
        f'<g transform="translate(0, {rule_y + 10})">'
        f'<text y="10" font-size="14" font-weight="bold">{escape(layout.total_label)}</text>'
        f'<text x="{LEGEND_WIDTH}" y="10" text-anchor="end" font-size="14" font-weight="bold">'
        f"{escape(layout.formatted_total)}</text></g>"
    )
    parts.append("</g>")
    parts.append("</svg>")
    return "\n".join(parts)


def render_bar_svg(layout: BarLayout) -> str:
    """Render a BarLayout as a standalone SVG document with gridlines and rotated labels."""
    w, h = _num(layout.width), _num(layout.height)
    right = _num(BAR_MARGIN_LEFT + layout.inner_width)
    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {w} {h}" '
        f'width="{w}" height="{h}" font-family="sans-serif">'
    ]
    for tick in layout.y_axis.ticks:
        y = _num(layout.tick_y(tick))
        parts.append(
            f'<text x="{BAR_MARGIN_LEFT - 8}" y="{y}" text-anchor="end" '
            f'dominant-baseline="middle" font-size="12" fill="#6B7280">{escape(tick.label)}</text>'
        )
        parts.append(
            f'<line x1="{BAR_MARGIN_LEFT}" y1="{y}" x2="{right}" y2="{y}" '
            'stroke="#D1D5DB" stroke-dasharray="2,2"/>'
        )

    base = _num(layout.baseline_y)
    parts.append(f'<line x1="{BAR_MARGIN_LEFT}" y1="{base}" x2="{right}" y2="{base}" stroke="#D1D5DB"/>')

    label_y = _num(layout.baseline_y + 15)
    for bar in layout.bars:
        parts.append(
            f'<rect x="{_num(bar.x)}" y="{_num(bar.y)}" width="{_num(bar.width)}" '
            f'height="{_num(bar.height)}" fill="{bar.color}"><title>{escape(bar.label)}: '
            f"{format_duration(bar.value)}, {bar.session_count} sessions</title></rect>"
        )
        cx = _num(bar.label_x)
        parts.append(
            f'<text x="{cx}" y="{label_y}" text-anchor="end" font-size="12" '
            f'transform="rotate(-45, {cx}, {label_y})">{escape(bar.label)}</text>'
        )
    parts.append("</svg>")
    return "\n".join(parts)
