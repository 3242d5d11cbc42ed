"""Command implementations for hookaud CLI."""
