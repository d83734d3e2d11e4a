"""Export configuration model.

This module defines the ExportConfig schema used to parse and validate the
options of one snapshot export, whether they come from the command line or
from a JSON config file.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

CrossSchemeChecksumPolicy = Literal["strict", "advisory"]

DEFAULT_BUFFER_SIZE = 128 * 1024
DEFAULT_MAX_FILES_PER_GROUP = 10
DEFAULT_WORKERS = 4


class ExportConfig(BaseModel):
    """Options of a single snapshot export.

    JSON example:
        {
          "snapshot": "snaptb0",
          "copy_to": "oci://backups/hbase",
          "overwrite": true,
          "max_files_per_group": 1
        }

    ``cross_scheme_checksum`` decides what happens when source and target
    back-ends use different checksum algorithms: ``strict`` fails the copy,
    ``advisory`` logs the incomparable pair and keeps going.
    """

    snapshot: str = Field(..., min_length=1)
    target: str | None = Field(default=None, min_length=1)

    copy_to: str = Field(..., min_length=1)
    copy_from: str | None = Field(default=None, min_length=1)

    overwrite: bool = False
    reset_ttl: bool = False
    default_ttl: int = Field(default=0, ge=0)

    checksum_verify: bool = True
    source_verify: bool = True
    target_verify: bool = True
    cross_scheme_checksum: CrossSchemeChecksumPolicy = "strict"

    buffer_size: int = Field(default=DEFAULT_BUFFER_SIZE, gt=0)
    max_files_per_group: int = Field(default=DEFAULT_MAX_FILES_PER_GROUP, ge=1)
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)
    bandwidth_mb: int = Field(default=0, ge=0, description="MiB/s per worker, 0 = unlimited.")

    skip_tmp: bool = False

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_json_obj(cls, config_obj: dict[str, Any]) -> ExportConfig:
        """Create an ExportConfig instance from a JSON-compatible object."""
        return cls.model_validate(config_obj)

    @model_validator(mode="after")
    def validate_names(self) -> ExportConfig:
        """Snapshot names become path segments and must not contain separators."""
        for label, value in (("snapshot", self.snapshot), ("target", self.target)):
            if value is None:
                continue
            if "/" in value or value in {".", ".."} or value.startswith("."):
                raise ValueError(f"invalid {label} name: {value!r}")
        return self

    @property
    def target_name(self) -> str:
        return self.target or self.snapshot

    @property
    def bandwidth_bytes_per_second(self) -> int:
        return self.bandwidth_mb * 1024 * 1024
