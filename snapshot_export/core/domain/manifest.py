"""Snapshot manifest models.

This module defines the canonical Pydantic models describing a snapshot:
its descriptor and the per-region manifests listing each column family's
store files. These types are treated as schema definitions; the JSON
Schemas under ``core/schemas`` mirror them.
"""

# pylint: disable=missing-class-docstring
from __future__ import annotations

from collections.abc import Iterator
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

SnapshotKind = Literal["FLUSH", "SKIPFLUSH"]

# Snapshot format version written by this package.
SNAPSHOT_FORMAT_VERSION = 2

# TTL (seconds) a target snapshot gets when its TTL is reset; 0 never expires.
DEFAULT_SNAPSHOT_TTL = 0


# ---------------------------------------------------------------------------
# Expiration
# ---------------------------------------------------------------------------


def is_expired(ttl: int, creation_time: int, now: int) -> bool:
    """
    Return True if a snapshot with the given TTL has expired.

    ``ttl`` is in seconds, ``creation_time`` and ``now`` are epoch
    milliseconds. A TTL of zero (or less) never expires.
    """
    if ttl <= 0:
        return False
    return now - creation_time >= ttl * 1000


# ---------------------------------------------------------------------------
# Descriptor
# ---------------------------------------------------------------------------


class SnapshotDescriptor(BaseModel):
    """
    Identity of a snapshot.

    Notes:
    - ``table`` is ``namespace:qualifier``; a bare qualifier lives in the
      ``default`` namespace.
    - ``region_count`` must equal the number of region manifests stored
      next to the descriptor.
    """

    name: str = Field(..., min_length=1)
    table: str = Field(..., min_length=1)
    creation_time: int = Field(..., ge=0, description="Epoch milliseconds.")
    kind: SnapshotKind = "FLUSH"
    ttl: int = Field(default=DEFAULT_SNAPSHOT_TTL, ge=0, description="Seconds, 0 = never expires.")
    version: int = Field(default=SNAPSHOT_FORMAT_VERSION, ge=0)
    region_count: int = Field(..., ge=0)
    properties: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    def is_expired(self, now: int) -> bool:
        return is_expired(self.ttl, self.creation_time, now)

    def for_target(self, *, name: str, ttl: int | None = None) -> SnapshotDescriptor:
        """Return the descriptor published for an exported copy."""
        update: dict[str, object] = {"name": name}
        if ttl is not None:
            update["ttl"] = ttl
        return self.model_copy(update=update)


# ---------------------------------------------------------------------------
# Store files (discriminated union)
# ---------------------------------------------------------------------------


class DirectStoreFile(BaseModel):
    kind: Literal["direct"] = "direct"
    name: str = Field(..., min_length=1)
    size: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(extra="forbid")


class ReferenceStoreFile(BaseModel):
    """
    Store file produced by a split or merge.

    ``referenced_region`` / ``referenced_file`` are optional: the name
    usually encodes them. When present they must agree with the name.
    """

    kind: Literal["reference"] = "reference"
    name: str = Field(..., min_length=1)
    size: int | None = Field(default=None, ge=0)
    referenced_region: str | None = Field(default=None, min_length=1)
    referenced_file: str | None = Field(default=None, min_length=1)

    model_config = ConfigDict(extra="forbid")


StoreFileRef = Annotated[
    DirectStoreFile | ReferenceStoreFile,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------


class RegionManifest(BaseModel):
    encoded_name: str = Field(..., min_length=1)
    start_key: str = Field(default="", description="Hex-encoded start row.")
    end_key: str = Field(default="", description="Hex-encoded end row.")
    families: dict[str, list[StoreFileRef]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    def iter_store_files(self) -> Iterator[tuple[str, DirectStoreFile | ReferenceStoreFile]]:
        for family, store_files in self.families.items():
            for store_file in store_files:
                yield family, store_file

    @property
    def store_file_count(self) -> int:
        return sum(len(files) for files in self.families.values())


class SnapshotManifest(BaseModel):
    descriptor: SnapshotDescriptor
    regions: list[RegionManifest] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def validate_regions(self) -> SnapshotManifest:
        """
        Enforce manifest consistency:
        - one region manifest per declared region
        - region encoded names are unique
        """
        if len(self.regions) != self.descriptor.region_count:
            raise ValueError(
                f"descriptor declares {self.descriptor.region_count} regions "
                f"but {len(self.regions)} region manifests were found"
            )

        seen: set[str] = set()
        for region in self.regions:
            if region.encoded_name in seen:
                raise ValueError(f"duplicate region {region.encoded_name}")
            seen.add(region.encoded_name)

        return self

    @property
    def store_file_count(self) -> int:
        return sum(region.store_file_count for region in self.regions)


def descriptor_for_target(
    descriptor: SnapshotDescriptor,
    *,
    target_name: str,
    reset_ttl: bool,
    default_ttl: int = DEFAULT_SNAPSHOT_TTL,
) -> SnapshotDescriptor:
    """Descriptor of an exported copy: renamed, and with its TTL reset if asked."""
    return descriptor.for_target(
        name=target_name,
        ttl=default_ttl if reset_ttl else None,
    )
