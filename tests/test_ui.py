"""Tests for the BuildUi output sink."""

from __future__ import annotations

import logging


class TestBuildUi:
    """Console output mirrored into logging."""

    def test_say(self, ui, ui_output, caplog):
        with caplog.at_level(logging.INFO, logger="gcebake.ui"):
            ui.say("Creating instance...")
        assert "==> googlecompute: Creating instance..." in ui_output.getvalue()
        assert "Creating instance..." in caplog.text

    def test_markup_escaped(self, ui, ui_output):
        ui.message("[bold]not markup[/bold]")
        assert "[bold]not markup[/bold]" in ui_output.getvalue()

    def test_error_logged_at_error(self, ui, caplog):
        with caplog.at_level(logging.ERROR, logger="gcebake.ui"):
            ui.error("it broke")
        assert caplog.records[-1].levelno == logging.ERROR
