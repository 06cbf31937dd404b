"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (TRACESORT__SECTION__KEY)
3. Explicit or local YAML (./tracesort.yaml)
4. Global YAML (~/.config/tracesort/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    TRACESORT__<SECTION>__<KEY>=<VALUE>

Examples:
    TRACESORT__LOGGING__LEVEL=DEBUG
    TRACESORT__SORT__BATCH_RECORDS=100000
    TRACESORT__SORT__WORKERS=4
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from tracesort.config.constants import (
    DEFAULT_BATCH_BYTES,
    DEFAULT_BATCH_RECORDS,
    DEFAULT_CANCEL_CHECK_INTERVAL,
    DEFAULT_MAX_FAN_IN,
    DEFAULT_READ_BUFFER_BYTES,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
Framing = Literal["lines", "json"]
UnkeyedPolicy = Literal["lead", "drop"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        TRACESORT__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every run written and merged.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class SortConfig(BaseModel):
    """External sort configuration.

    Env vars:
        TRACESORT__SORT__BATCH_RECORDS: Max records held in memory per run
        TRACESORT__SORT__BATCH_BYTES: Max record bytes held in memory per run
        TRACESORT__SORT__WORKERS: Parallel batch-sort workers
        TRACESORT__SORT__MAX_FAN_IN: Runs merged at once
        TRACESORT__SORT__FRAMING: Record framing (lines, json)
        TRACESORT__SORT__UNKEYED: Policy for records without a timestamp (lead, drop)
        TRACESORT__SORT__SCRATCH_DIR: Parent directory for temporary runs
    """

    batch_records: int = Field(
        default=DEFAULT_BATCH_RECORDS,
        ge=1,
        description="Max records per in-memory batch. Each batch becomes one run. "
        "TRADEOFF: Lower values bound memory tighter but create more runs to merge.",
    )
    batch_bytes: int = Field(
        default=DEFAULT_BATCH_BYTES,
        ge=1,
        description="Max record bytes per in-memory batch. Whichever of "
        "batch_records/batch_bytes is reached first closes the batch.",
    )
    workers: int = Field(
        default=1,
        ge=1,
        description="Batch-sort worker threads. Peak memory grows with "
        "workers x batch budget since each worker holds one batch.",
    )
    max_fan_in: int = Field(
        default=DEFAULT_MAX_FAN_IN,
        ge=2,
        description="Max runs open at once while merging. More runs are first merged "
        "in groups into intermediate runs, costing one extra pass over the data per level.",
    )
    cancel_check_interval: int = Field(
        default=DEFAULT_CANCEL_CHECK_INTERVAL,
        ge=1,
        description="Merged records between cancellation checks.",
    )
    read_buffer_bytes: int = Field(
        default=DEFAULT_READ_BUFFER_BYTES,
        ge=1024,
        description="Buffered read-ahead per open file (source and each run).",
    )
    framing: Framing = Field(
        default="lines",
        description="How records are cut out of the source: one per line, "
        "or one per object of the first JSON array.",
    )
    unkeyed: UnkeyedPolicy = Field(
        default="lead",
        description="Records without a parsable timestamp: 'lead' keeps them ahead "
        "of all timestamped records in source order, 'drop' omits them.",
    )
    scratch_dir: str | None = Field(
        default=None,
        description="Parent directory for the per-job scratch directory. "
        "Default: the system temp directory.",
    )
    build_weight: float = Field(
        default=0.5,
        gt=0.0,
        lt=1.0,
        description="Share of the 0-100 progress indicator given to the build phase.",
    )


class TraceSortConfig(BaseModel):
    """Root configuration for tracesort.

    All settings can be configured via:
    1. Environment variables: TRACESORT__SECTION__KEY
    2. YAML config files (local or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sort: SortConfig = Field(default_factory=SortConfig)
