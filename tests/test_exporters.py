"""Tests for exporters module."""

from __future__ import annotations

import csv
from datetime import date, datetime

import pytest
from conftest import at

from library_session_tracker.config import Config
from library_session_tracker.durations import format_duration
from library_session_tracker.errors import ExportError
from library_session_tracker.exporters import (
    CHART_DATA_HEADERS,
    LEADERBOARD_HEADERS,
    SESSION_LOG_HEADERS,
    TableExport,
    chart_data_csv,
    escape_csv,
    export_filename,
    format_timestamp,
    leaderboard_csv,
    leaderboard_table,
    render_bar_chart,
    render_pie_chart,
    render_table_pdf,
    render_table_png,
    session_log_csv,
    session_log_table,
)
from library_session_tracker.geometry import layout_bars, layout_pie
from library_session_tracker.models import CompletedSession, PieBucket, StudentTotal


@pytest.fixture
def sessions() -> list[CompletedSession]:
    return [
        CompletedSession.create("Alice", 100, at(14, 3, 4), at(15, 33, 4), 'Said "hi", left'),
        CompletedSession.create("Bob", 200, at(9), at(9, 0, 45)),
    ]


@pytest.fixture
def totals() -> list[StudentTotal]:
    return [
        StudentTotal("Bob", 200, 9000, 1, 9000.0),
        StudentTotal("Alice", 100, 6300, 2, 3150.5),
    ]


class TestEscapeCsv:
    """Tests for escape_csv()."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("plain", "plain"),
            ("a,b", '"a,b"'),
            ('say "x"', '"say ""x"""'),
            ("line\nbreak", '"line\nbreak"'),
            (None, '""'),
            (300, "300"),
        ],
    )
    def test_escaping(self, value: object, expected: str) -> None:
        """Verifies quoting rules for commas, quotes, newlines and None."""
        assert escape_csv(value) == expected


class TestFormatTimestamp:
    """Tests for format_timestamp()."""

    def test_afternoon(self) -> None:
        """Verifies US-English date and 12-hour time."""
        assert format_timestamp(datetime(2025, 1, 5, 14, 3, 4)) == "1/5/2025, 2:03:04 PM"

    def test_midnight_and_noon(self) -> None:
        """Verifies hour 0 prints as 12 AM and hour 12 as 12 PM."""
        assert format_timestamp(datetime(2025, 1, 5, 0, 0, 0)).endswith("12:00:00 AM")
        assert format_timestamp(datetime(2025, 1, 5, 12, 0, 0)).endswith("12:00:00 PM")

    def test_keeps_own_timezone(self) -> None:
        """Verifies aware timestamps are printed in their own offset."""
        assert format_timestamp(at(9)) == "1/6/2025, 9:00:00 AM"


class TestSessionLogCsv:
    """Tests for session_log_csv()."""

    def test_rows(self, sessions: list[CompletedSession]) -> None:
        """Verifies header, quoted timestamps, durations and escaped notes.

        Business context:
        Administrators open this file in spreadsheets; timestamps contain
        a comma and notes are free text, so both must survive parsing.

        Arrangement:
        One session with a tricky note, one without notes.

        Action:
        Build the CSV.

        Assertion Strategy:
        Compare each line exactly.
        """
        lines = session_log_csv(sessions).split("\n")

        assert lines[0] == ",".join(SESSION_LOG_HEADERS)
        assert lines[1] == (
            'Alice,100,"1/6/2025, 2:03:04 PM","1/6/2025, 3:33:04 PM",01:30:00,"Said ""hi"", left"'
        )
        assert lines[2] == 'Bob,200,"1/6/2025, 9:00:00 AM","1/6/2025, 9:00:45 AM",00:00:45,""'

    def test_no_trailing_newline(self, sessions: list[CompletedSession]) -> None:
        """Verifies lines are joined without a final newline."""
        assert not session_log_csv(sessions).endswith("\n")

    def test_empty_raises(self) -> None:
        """Verifies an empty log refuses to export."""
        with pytest.raises(ExportError):
            session_log_csv([])


class TestLeaderboardCsv:
    """Tests for leaderboard_csv()."""

    def test_rows(self, totals: list[StudentTotal]) -> None:
        """Verifies rows keep input order and averages are floored."""
        lines = leaderboard_csv(totals).split("\n")
        assert lines[0] == ",".join(LEADERBOARD_HEADERS)
        assert lines[1] == "Bob,200,1,02:30:00,02:30:00"
        assert lines[2] == "Alice,100,2,00:52:30,01:45:00"

    def test_empty_raises(self) -> None:
        """Verifies an empty leaderboard refuses to export."""
        with pytest.raises(ExportError):
            leaderboard_csv([])


class TestChartDataCsv:
    """Tests for chart_data_csv()."""

    def test_counts(self) -> None:
        """Verifies label and formatted value are quoted, raw is not."""
        text = chart_data_csv([("Level 100", 3), ("Level 200", 1)])
        assert text.split("\n") == [
            ",".join(CHART_DATA_HEADERS),
            '"Level 100","3",3',
            '"Level 200","1",1',
        ]

    def test_durations(self) -> None:
        """Verifies time charts use the duration formatter."""
        text = chart_data_csv([("Alice", 6300)], value_formatter=format_duration)
        assert text.split("\n")[1] == '"Alice","1h 45m",6300'

    def test_quoted_name(self) -> None:
        """Verifies quotes inside a student name survive a CSV round trip.

        Business context:
        Nicknames are often typed in quotes; a broken row would shift
        every column after it in a spreadsheet.
        """
        text = chart_data_csv([('Dwayne "Rock" Johnson', 1800)], value_formatter=format_duration)

        assert text.split("\n")[1] == '"Dwayne ""Rock"" Johnson","30m",1800'
        rows = list(csv.reader(text.split("\n")))
        assert rows[1] == ['Dwayne "Rock" Johnson', "30m", "1800"]

    def test_empty_raises(self) -> None:
        """Verifies an empty chart refuses to export."""
        with pytest.raises(ExportError):
            chart_data_csv([])


class TestTables:
    """Tests for session_log_table() and leaderboard_table()."""

    def test_session_log_table(self, sessions: list[CompletedSession]) -> None:
        """Verifies blank notes print as N/A."""
        table = session_log_table(sessions)
        assert table.title == Config.SESSION_LOG_TITLE
        assert table.headers == SESSION_LOG_HEADERS
        assert table.rows[1][-1] == "N/A"
        assert table.rows[0][4] == "01:30:00"

    def test_leaderboard_table(self, totals: list[StudentTotal]) -> None:
        """Verifies compact durations in the leaderboard image table."""
        table = leaderboard_table(totals)
        assert table.title == Config.LEADERBOARD_TITLE
        assert table.rows[1] == ["Alice", "100", "2", "52m", "1h 45m"]


class TestExportFilename:
    """Tests for export_filename()."""

    def test_dated(self) -> None:
        """Verifies the ISO date suffix."""
        assert export_filename("library_session_log", "csv", date(2025, 1, 5)) == (
            "library_session_log_2025-01-05.csv"
        )

    def test_undated(self) -> None:
        """Verifies chart images carry no date."""
        assert export_filename("student_distribution_level", "png", dated=False) == (
            "student_distribution_level.png"
        )

    def test_defaults_to_today(self) -> None:
        """Verifies the current date is used when none is given."""
        assert export_filename("x", "csv") == f"x_{date.today().isoformat()}.csv"


class TestChartImages:
    """Tests for render_pie_chart() and render_bar_chart()."""

    def test_svg_needs_no_matplotlib(self) -> None:
        """Verifies SVG output comes straight from the geometry."""
        layout = layout_pie([PieBucket("Level 100", 1, "#111")], title="Levels")
        assert render_pie_chart(layout, "svg").startswith(b"<svg")

    def test_unsupported_format(self) -> None:
        """Verifies unknown formats raise ValueError."""
        layout = layout_pie([PieBucket("A", 1, "#111")])
        with pytest.raises(ValueError, match="Unsupported image format"):
            render_pie_chart(layout, "gif")

    def test_empty_pie_raises(self) -> None:
        """Verifies a pie without data refuses to export."""
        with pytest.raises(ExportError):
            render_pie_chart(layout_pie([]), "svg")

    def test_empty_bars_raise(self) -> None:
        """Verifies a bar chart without rows refuses to export."""
        with pytest.raises(ExportError):
            render_bar_chart(layout_bars([]), "svg")

    def test_bar_svg(self, totals: list[StudentTotal]) -> None:
        """Verifies SVG bar export."""
        assert b"Alice" in render_bar_chart(layout_bars(totals), "svg")


class TestMatplotlibRendering:
    """Tests for raster and PDF output. Skipped without matplotlib."""

    @pytest.fixture(autouse=True)
    def _require_matplotlib(self) -> None:
        pytest.importorskip("matplotlib")

    def test_pie_png(self) -> None:
        """Verifies a PNG signature for the pie chart."""
        layout = layout_pie([PieBucket("A", 2, "#6366F1"), PieBucket("B", 1, "#10B981")], title="T")
        assert render_pie_chart(layout, "png").startswith(b"\x89PNG")

    def test_bar_jpg_alias(self, totals: list[StudentTotal]) -> None:
        """Verifies "jpg" is accepted and produces JPEG bytes."""
        assert render_bar_chart(layout_bars(totals), "jpg", theme="dark").startswith(b"\xff\xd8")

    def test_table_png(self, sessions: list[CompletedSession]) -> None:
        """Verifies the session log PNG."""
        assert render_table_png(session_log_table(sessions), theme="dark").startswith(b"\x89PNG")

    def test_table_pdf_paginates(self, sessions: list[CompletedSession]) -> None:
        """Verifies a multi-page PDF is produced when rows exceed a page."""
        table = session_log_table(sessions * 3)
        pdf = render_table_pdf(table, rows_per_page=2)
        assert pdf.startswith(b"%PDF-")
        assert b"/Count 3" in pdf

    def test_empty_table_raises(self) -> None:
        """Verifies an empty table refuses to render."""
        with pytest.raises(ExportError):
            render_table_png(TableExport("t", ["a"], []))
