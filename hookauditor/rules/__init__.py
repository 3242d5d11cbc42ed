"""Hook rules and their shared finding types."""
