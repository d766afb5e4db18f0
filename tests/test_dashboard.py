"""Tests for ui.dashboard -- colour mapping and rendering smoke tests."""

import unittest

from rich.console import Console

import ui.dashboard as dashboard
from conntest.api import Server
from conntest.results import Result, Status
from conntest.stats import Statistics
from conntest.thresholds import Thresholds


class TestRichColor(unittest.TestCase):
    def test_css_rgba(self):
        self.assertEqual(dashboard.rich_color("rgba(64,  192, 0, 0.5)"), "rgb(64,192,0)")

    def test_css_rgb(self):
        self.assertEqual(dashboard.rich_color("rgb(1,2,3)"), "rgb(1,2,3)")

    def test_named(self):
        self.assertEqual(dashboard.rich_color("black"), "black")

    def test_unknown(self):
        self.assertEqual(dashboard.rich_color("not-a-colour"), "white")
        self.assertEqual(dashboard.rich_color(None), "white")


class TestHistogram(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(dashboard.create_histogram([]), "No data")

    def test_width(self):
        self.assertEqual(len(dashboard.create_histogram([1.0, 2.0, 3.0])), 3)


class TestRendering(unittest.TestCase):
    def setUp(self):
        self.console = Console(record=True, width=120)
        self.original = dashboard.console
        dashboard.console = self.console
        self.addCleanup(setattr, dashboard, "console", self.original)

        thresholds = Thresholds()
        self.thresholds = thresholds
        self.results = [
            Result.pending("Near", Server("https://near.example/", "DE")).completed(
                thresholds, Statistics.from_samples([10.0, 12.0, 11.0])
            ),
            Result.pending("Gone", Server("https://gone.example/")).completed(thresholds, None),
        ]

    def test_print_results(self):
        dashboard.print_results(self.results, self.thresholds)
        text = self.console.export_text()
        self.assertIn("Near", text)
        self.assertIn("Unreachable", text)
        self.assertIn(">= 60 ms", text)

    def test_print_statistics(self):
        dashboard.print_statistics(self.results[0])
        self.assertIn("Median abs. deviation", self.console.export_text())

    def test_print_statistics_unreachable(self):
        dashboard.print_statistics(self.results[1])
        self.assertIn("unreachable", self.console.export_text())

    def test_progress_display(self):
        display = dashboard.ProgressDisplay()
        display.start()
        display.update(Status(remaining=1, total=2, started=True, running=True))
        task = display.progress.tasks[0]
        self.assertEqual(task.total, 2)
        self.assertEqual(task.completed, 1)
        display.stop()


if __name__ == "__main__":
    unittest.main()
