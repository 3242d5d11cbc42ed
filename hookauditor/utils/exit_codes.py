"""Exit codes shared by the hookaud commands.

CI scripts rely on these values; keep them stable.
"""


class ExitCodes:
    """Process exit codes for hookaud."""

    SUCCESS = 0

    # Hook violations or dependency mismatches were reported
    VIOLATIONS = 1
    # Some files could not be read, parsed or analyzed
    ERRORS = 2

    # The requested function or file was not found
    TASK_INCOMPLETE = 3
