"""
Export formatting for Library Session Tracker.

PURPOSE: Turn filtered sessions, leaderboard rows and chart layouts into
downloadable artifacts.
AI CONTEXT: CSV is built as plain text. Images and PDFs are drawn with
matplotlib, lazy-imported so the rest of the package works without it.

ARTIFACTS:
- session_log_csv / leaderboard_csv / chart_data_csv: CSV text
- TableExport: Title + headers + rows shared by the PNG and PDF renderers
- render_table_png / render_table_pdf: Table images and paginated documents
- render_pie_chart / render_bar_chart: Chart images (png, jpeg, svg)
- export_filename: Download names like library_session_log_2025-01-05.csv

ORDERING:
Exporters never filter or sort. Rows come out in the order given, so an
export always matches what the operator is looking at.

USAGE:
    csv_text = session_log_csv(filter_sessions(store.completed_sessions, f))
    pdf_bytes = render_table_pdf(session_log_table(sessions))
"""

from __future__ import annotations

import io
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from .config import Config
from .durations import format_duration, format_hhmmss
from .errors import ExportError
from .geometry import (
    BAR_MARGIN_LEFT,
    LEGEND_ITEM_HEIGHT,
    LEGEND_WIDTH,
    LEGEND_Y_START,
    BarLayout,
    PieLayout,
    render_bar_svg,
    render_pie_svg,
)
from .models import CompletedSession, StudentTotal

__all__ = [
    "SESSION_LOG_HEADERS",
    "LEADERBOARD_HEADERS",
    "CHART_DATA_HEADERS",
    "IMAGE_FORMATS",
    "TableExport",
    "escape_csv",
    "format_date",
    "format_time",
    "format_timestamp",
    "session_log_csv",
    "leaderboard_csv",
    "chart_data_csv",
    "session_log_table",
    "leaderboard_table",
    "render_table_png",
    "render_table_pdf",
    "render_pie_chart",
    "render_bar_chart",
    "export_filename",
]

SESSION_LOG_HEADERS = [
    "Student Name",
    "Level",
    "Time In",
    "Time Out",
    "Duration (HH:MM:SS)",
    "Notes",
]
LEADERBOARD_HEADERS = [
    "Student Name",
    "Level",
    "Session Count",
    "Average Session Time (HH:MM:SS)",
    "Total Time Spent (HH:MM:SS)",
]
CHART_DATA_HEADERS = ["Label", "Value (Formatted)", "Value (Raw Seconds/Count)"]

IMAGE_FORMATS = ("png", "jpeg", "svg")

NO_DATA_MESSAGE = "No data to export."

# Background and text colors for rendered images, per theme.
_THEME_COLORS = {
    "light": {"background": "#ffffff", "text": "#374151", "grid": "#d1d5db", "row": "#f9fafb"},
    "dark": {"background": "#1f2937", "text": "#e5e7eb", "grid": "#4b5563", "row": "#273142"},
}


@dataclass(frozen=True)
class TableExport:
    """
    Rectangular table ready to be drawn.

    Attributes:
        title: Heading printed above the table.
        headers: Column names.
        rows: Cell text, one list per row, same width as headers.
    """

    title: str
    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)


# =============================================================================
# CSV
# =============================================================================


def escape_csv(value: Any) -> str:
    """
    Escape one CSV field.

    None becomes an empty quoted field. Values containing a comma, a
    double quote or a newline are wrapped in quotes with inner quotes
    doubled. Everything else is written as-is.

    Example:
        >>> escape_csv('Said "hi", left')
        '"Said ""hi"", left"'
        >>> escape_csv(None)
        '""'
    """
    if value is None:
        return '""'
    text = str(value)
    if any(char in text for char in ('"', ",", "\n")):
        return '"' + text.replace('"', '""') + '"'
    return text


def format_date(moment: datetime) -> str:
    """US-English short date, e.g. "1/5/2025"."""
    return f"{moment.month}/{moment.day}/{moment.year}"


def format_time(moment: datetime) -> str:
    """US-English 12-hour time with seconds, e.g. "2:03:04 PM"."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d}:{moment.second:02d} {suffix}"


def format_timestamp(moment: datetime) -> str:
    """
    Format a timestamp the way US-English browsers print dates.

    The timestamp is shown in its own timezone, without conversion.

    Example:
        >>> format_timestamp(datetime(2025, 1, 5, 14, 3, 4))
        '1/5/2025, 2:03:04 PM'
    """
    return f"{format_date(moment)}, {format_time(moment)}"


def _require_rows(items: Sequence[Any]) -> None:
    if not items:
        raise ExportError(NO_DATA_MESSAGE)


def session_log_csv(sessions: Sequence[CompletedSession]) -> str:
    """
    Build the session log CSV.

    Timestamps are always quoted because the locale format contains a
    comma. Lines are joined with "\\n" and there is no trailing newline.

    Args:
        sessions: Filtered completed sessions, in display order.

    Returns:
        CSV text with SESSION_LOG_HEADERS as the first line.

    Raises:
        ExportError: If sessions is empty.

    Example:
        >>> print(session_log_csv([session]))
        Student Name,Level,Time In,Time Out,Duration (HH:MM:SS),Notes
        Alice,100,"1/5/2025, 9:00:00 AM","1/5/2025, 10:30:00 AM",01:30:00,""
    """
    _require_rows(sessions)
    lines = [",".join(SESSION_LOG_HEADERS)]
    for session in sessions:
        lines.append(
            ",".join(
                [
                    escape_csv(session.student_name),
                    str(session.level),
                    f'"{format_timestamp(session.time_in)}"',
                    f'"{format_timestamp(session.time_out)}"',
                    format_hhmmss(session.total_seconds),
                    escape_csv(session.notes),
                ]
            )
        )
    return "\n".join(lines)


def leaderboard_csv(totals: Sequence[StudentTotal]) -> str:
    """
    Build the student leaderboard CSV.

    Averages are floored to whole seconds in HH:MM:SS form.

    Raises:
        ExportError: If totals is empty.
    """
    _require_rows(totals)
    lines = [",".join(LEADERBOARD_HEADERS)]
    for total in totals:
        lines.append(
            ",".join(
                [
                    escape_csv(total.student_name),
                    str(total.level),
                    str(total.session_count),
                    format_hhmmss(total.average_seconds),
                    format_hhmmss(total.total_seconds),
                ]
            )
        )
    return "\n".join(lines)


def _raw_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _quoted(value: Any) -> str:
    return '"' + str(value).replace('"', '""') + '"'


def chart_data_csv(
    points: Sequence[tuple[str, float]],
    value_formatter: Callable[[float], str] | None = None,
) -> str:
    """
    Build the CSV behind a chart.

    Label and formatted value are always quoted, with inner quotes
    doubled; the raw value is not.

    Args:
        points: (label, value) pairs in chart order.
        value_formatter: Formats values for the second column, e.g.
            format_duration for time. Defaults to the plain number.

    Returns:
        CSV text with CHART_DATA_HEADERS as the first line.

    Raises:
        ExportError: If points is empty.

    Example:
        >>> print(chart_data_csv([("Level 100", 3)]))
        Label,Value (Formatted),Value (Raw Seconds/Count)
        "Level 100","3",3
    """
    _require_rows(points)
    formatter = value_formatter or _raw_number
    lines = [",".join(CHART_DATA_HEADERS)]
    for label, value in points:
        lines.append(f"{_quoted(label)},{_quoted(formatter(value))},{_raw_number(value)}")
    return "\n".join(lines)


# =============================================================================
# TABLES
# =============================================================================


def session_log_table(sessions: Iterable[CompletedSession]) -> TableExport:
    """Session log as a TableExport; blank notes print as "N/A"."""
    rows = [
        [
            session.student_name,
            str(session.level),
            format_timestamp(session.time_in),
            format_timestamp(session.time_out),
            format_hhmmss(session.total_seconds),
            session.notes or "N/A",
        ]
        for session in sessions
    ]
    return TableExport(title=Config.SESSION_LOG_TITLE, headers=list(SESSION_LOG_HEADERS), rows=rows)


def leaderboard_table(totals: Iterable[StudentTotal]) -> TableExport:
    """Leaderboard as a TableExport, using the compact duration display."""
    rows = [
        [
            total.student_name,
            str(total.level),
            str(total.session_count),
            format_duration(total.average_seconds),
            format_duration(total.total_seconds),
        ]
        for total in totals
    ]
    return TableExport(
        title=Config.LEADERBOARD_TITLE,
        headers=["Student Name", "Level", "Sessions", "Average", "Total Time"],
        rows=rows,
    )


def _pyplot() -> Any:
    # Lazy import keeps matplotlib optional for non-export code paths.
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    return plt


def _header_rgb() -> tuple[float, float, float]:
    r, g, b = Config.PDF_HEADER_COLOR
    return (r / 255, g / 255, b / 255)


def _draw_table(plt: Any, table: TableExport, rows: list[list[str]], figsize: tuple[float, float], theme: str) -> Any:
    colors = _THEME_COLORS.get(theme, _THEME_COLORS["light"])
    fig = plt.figure(figsize=figsize)
    fig.patch.set_facecolor(colors["background"])
    ax = fig.add_axes((0.04, 0.04, 0.92, 0.86))
    ax.axis("off")
    fig.text(0.04, 0.95, table.title, fontsize=14, fontweight="bold", color=colors["text"], va="top")

    grid = ax.table(
        cellText=rows or [[""] * len(table.headers)],
        colLabels=table.headers,
        loc="upper center",
        cellLoc="left",
    )
    grid.auto_set_font_size(False)
    grid.set_fontsize(8)
    grid.auto_set_column_width(list(range(len(table.headers))))
    for (row, _col), cell in grid.get_celld().items():
        cell.set_edgecolor(colors["grid"])
        if row == 0:
            cell.set_facecolor(_header_rgb())
            cell.get_text().set_color("white")
            cell.get_text().set_fontweight("bold")
        else:
            cell.set_facecolor(colors["row"] if row % 2 == 0 else colors["background"])
            cell.get_text().set_color(colors["text"])
    return fig


def render_table_png(table: TableExport, theme: str = "light") -> bytes:
    """
    Render a table as a single PNG image.

    The figure grows with the row count so every row is visible.

    Args:
        table: Table to draw.
        theme: "light" or "dark" background.

    Returns:
        PNG image bytes.

    Raises:
        ExportError: If the table has no rows.
        ImportError: If matplotlib is not installed. Caller should
            catch this and provide a fallback.
    """
    _require_rows(table.rows)
    plt = _pyplot()

    height = 1.2 + 0.3 * (len(table.rows) + 1)
    fig = _draw_table(plt, table, table.rows, (11, height), theme)
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=100, facecolor=fig.get_facecolor())
    plt.close(fig)
    buf.seek(0)
    return buf.read()


def render_table_pdf(
    table: TableExport,
    rows_per_page: int | None = None,
) -> bytes:
    """
    Render a table as a paginated PDF document.

    Every page repeats the title and the indigo header row. Rows are
    split into pages of rows_per_page.

    Business context: The PDF is what librarians print or email to
    administrators, so it always uses the light theme.

    Args:
        table: Table to draw.
        rows_per_page: Page size. Default: Config.PDF_ROWS_PER_PAGE.

    Returns:
        PDF document bytes.

    Raises:
        ExportError: If the table has no rows.
        ImportError: If matplotlib is not installed.

    Example:
        >>> pdf = render_table_pdf(session_log_table(sessions))
        >>> pdf[:5]
        b'%PDF-'
    """
    _require_rows(table.rows)
    plt = _pyplot()
    from matplotlib.backends.backend_pdf import PdfPages

    page_size = rows_per_page or Config.PDF_ROWS_PER_PAGE
    buf = io.BytesIO()
    with PdfPages(buf) as pdf:
        for start in range(0, len(table.rows), page_size):
            chunk = table.rows[start : start + page_size]
            fig = _draw_table(plt, table, chunk, (8.27, 11.69), "light")
            pdf.savefig(fig)
            plt.close(fig)
    buf.seek(0)
    return buf.read()


# =============================================================================
# CHARTS
# =============================================================================


def _check_format(fmt: str) -> str:
    normalized = fmt.lower()
    if normalized == "jpg":
        normalized = "jpeg"
    if normalized not in IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format: {fmt}")
    return normalized


def _canvas(plt: Any, width: float, height: float, theme: str) -> tuple[Any, Any, dict[str, str]]:
    # Axes in SVG coordinates: origin top-left, y downward.
    colors = _THEME_COLORS.get(theme, _THEME_COLORS["light"])
    fig = plt.figure(figsize=(width / 100, height / 100))
    fig.patch.set_facecolor(colors["background"])
    ax = fig.add_axes((0, 0, 1, 1))
    ax.set_xlim(0, width)
    ax.set_ylim(height, 0)
    ax.axis("off")
    return fig, ax, colors


def _save(plt: Any, fig: Any, fmt: str) -> bytes:
    buf = io.BytesIO()
    fig.savefig(buf, format=fmt, dpi=200, facecolor=fig.get_facecolor())
    plt.close(fig)
    buf.seek(0)
    return buf.read()


def render_pie_chart(layout: PieLayout, fmt: str = "png", theme: str = "light") -> bytes:
    """
    Render a pie layout as image bytes.

    PNG and JPEG are drawn with matplotlib from the same geometry as the
    SVG, at double resolution. SVG returns the geometry's own markup.

    Args:
        layout: Output of layout_pie().
        fmt: "png", "jpeg" or "svg".
        theme: "light" or "dark" background.

    Returns:
        Encoded image bytes.

    Raises:
        ValueError: If fmt is not supported.
        ExportError: If the layout has no data.
        ImportError: If matplotlib is not installed (png/jpeg only).
    """
    fmt = _check_format(fmt)
    if not layout.has_data:
        raise ExportError(layout.message or NO_DATA_MESSAGE)
    if fmt == "svg":
        return render_pie_svg(layout).encode("utf-8")

    plt = _pyplot()
    from matplotlib.patches import Rectangle, Wedge

    fig, ax, colors = _canvas(plt, layout.width, layout.height, theme)
    ax.text(layout.width / 2, 20, layout.title, ha="center", va="center", fontsize=13, fontweight="bold", color=colors["text"])

    center = (layout.center.x, layout.center.y)
    for piece in layout.slices:
        # With y pointing down, data angle (a - 90) runs clockwise on screen from 12 o'clock.
        ax.add_patch(
            Wedge(center, layout.radius, piece.start_angle - 90, piece.end_angle - 90, facecolor=piece.color, linewidth=0)
        )

    x0 = layout.legend_x
    for index, piece in enumerate(layout.slices):
        y = LEGEND_Y_START + index * LEGEND_ITEM_HEIGHT
        ax.add_patch(Rectangle((x0, y), 12, 12, facecolor=piece.color, linewidth=0))
        ax.text(x0 + 20, y + 6, piece.legend_label, va="center", fontsize=9, color=colors["text"])
        ax.text(
            x0 + LEGEND_WIDTH, y + 6, f"{piece.formatted_value} ({piece.percentage})",
            ha="right", va="center", fontsize=9, color=colors["text"],
        )

    rule_y = LEGEND_Y_START + len(layout.slices) * LEGEND_ITEM_HEIGHT + 15
    ax.plot([x0, x0 + LEGEND_WIDTH], [rule_y, rule_y], color=colors["grid"], linewidth=1)
    ax.text(x0, rule_y + 16, layout.total_label, va="center", fontsize=9, fontweight="bold", color=colors["text"])
    ax.text(
        x0 + LEGEND_WIDTH, rule_y + 16, layout.formatted_total,
        ha="right", va="center", fontsize=9, fontweight="bold", color=colors["text"],
    )
    return _save(plt, fig, fmt)


def render_bar_chart(layout: BarLayout, fmt: str = "png", theme: str = "light") -> bytes:
    """
    Render a bar layout as image bytes.

    Raises:
        ValueError: If fmt is not supported.
        ExportError: If the layout has no bars.
        ImportError: If matplotlib is not installed (png/jpeg only).
    """
    fmt = _check_format(fmt)
    if not layout.bars:
        raise ExportError(NO_DATA_MESSAGE)
    if fmt == "svg":
        return render_bar_svg(layout).encode("utf-8")

    plt = _pyplot()
    from matplotlib.patches import Rectangle

    fig, ax, colors = _canvas(plt, layout.width, layout.height, theme)
    right = BAR_MARGIN_LEFT + layout.inner_width

    for tick in layout.y_axis.ticks:
        y = layout.tick_y(tick)
        ax.text(BAR_MARGIN_LEFT - 8, y, tick.label, ha="right", va="center", fontsize=8, color=colors["text"])
        ax.plot([BAR_MARGIN_LEFT, right], [y, y], color=colors["grid"], linewidth=0.8, linestyle=(0, (2, 2)))
    ax.plot([BAR_MARGIN_LEFT, right], [layout.baseline_y] * 2, color=colors["grid"], linewidth=1)

    label_y = layout.baseline_y + 15
    for bar in layout.bars:
        ax.add_patch(Rectangle((bar.x, bar.y), bar.width, bar.height, facecolor=bar.color, linewidth=0))
        ax.text(
            bar.label_x, label_y, bar.label,
            ha="right", va="top", rotation=45, rotation_mode="anchor", fontsize=8, color=colors["text"],
        )
    return _save(plt, fig, fmt)


def export_filename(stem: str, ext: str, today: date | None = None, dated: bool = True) -> str:
    """
    Build a download filename.

    Args:
        stem: Base name, e.g. "library_session_log".
        ext: Extension without the dot.
        today: Date to embed. Defaults to today's local date.
        dated: Append _YYYY-MM-DD to the stem.

    Example:
        >>> export_filename("library_session_log", "csv", date(2025, 1, 5))
        'library_session_log_2025-01-05.csv'
        >>> export_filename("student_distribution_level", "png", dated=False)
        'student_distribution_level.png'
    """
    if not dated:
        return f"{stem}.{ext}"
    return f"{stem}_{(today or date.today()).isoformat()}.{ext}"
