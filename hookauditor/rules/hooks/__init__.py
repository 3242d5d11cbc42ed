"""Rules of hooks and exhaustive dependency analysis."""
