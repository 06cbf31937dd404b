"""Configuration constants.

This module contains values that should NOT be user-configurable, plus the
defaults the configurable models start from. For configurable values, see
models.py (SortConfig, LoggingConfig).
"""

# =============================================================================
# Sort Defaults
# =============================================================================

DEFAULT_BATCH_RECORDS = 65_536
"""Records per in-memory batch before a run is spilled."""

DEFAULT_BATCH_BYTES = 64 * 1024 * 1024
"""Record bytes per in-memory batch before a run is spilled."""

DEFAULT_CANCEL_CHECK_INTERVAL = 4096
"""Merged records between cancellation checks."""

DEFAULT_READ_BUFFER_BYTES = 64 * 1024
"""Read-ahead buffer for the source and for each run during the merge."""

DEFAULT_MAX_FAN_IN = 128
"""Runs open at once during a merge pass; kept well under common file limits."""

# =============================================================================
# Internal Implementation Constants
# =============================================================================

SCRATCH_PREFIX = "tracesort-"
"""Prefix of the per-job scratch directory."""

RUN_FILE_TEMPLATE = "run-{index:06d}.bin"
"""Name of the run file with a given run index inside the scratch directory."""

PARTIAL_SUFFIX = ".partial"
"""Suffix of the working name the destination is written under."""

SORT_KEY_MIN = -(2**63)
SORT_KEY_MAX = 2**63 - 1
"""Range of a sort key once scaled (signed 64-bit nanoseconds)."""

JOB_POLL_SEC = 0.1
"""CLI polling interval while waiting on a background job."""
