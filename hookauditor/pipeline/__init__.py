"""Console output helpers shared by the hookaud commands."""

from .ui import console, print_error, print_header, print_success, print_warning, severity_markup

__all__ = ["console", "print_error", "print_header", "print_success", "print_warning", "severity_markup"]
