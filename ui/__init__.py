"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ProgressDisplay,
    console,
    create_histogram,
    print_header,
    print_permalink,
    print_recommendation,
    print_results,
    print_statistics,
    rich_color,
)
from .output import (
    build_permalink,
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_text_result,
    save_json,
)

__all__ = [
    "ProgressDisplay",
    "build_permalink",
    "console",
    "create_histogram",
    "create_result_json",
    "format_csv_header",
    "format_csv_row",
    "format_text_result",
    "print_header",
    "print_permalink",
    "print_recommendation",
    "print_results",
    "print_statistics",
    "rich_color",
    "save_json",
]
