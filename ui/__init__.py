"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ConsoleNotifier,
    console,
    create_histogram,
    print_header,
    print_history,
    print_live_samples,
    print_probe_results,
    print_selected,
    print_statistics,
)
from .output import create_selection_json, save_json, save_text

__all__ = [
    "ConsoleNotifier",
    "console",
    "create_histogram",
    "create_selection_json",
    "print_header",
    "print_history",
    "print_live_samples",
    "print_probe_results",
    "print_selected",
    "print_statistics",
    "save_json",
    "save_text",
]
