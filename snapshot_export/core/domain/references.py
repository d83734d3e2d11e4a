"""
Store-file reference resolution.

Region splits and merges do not rewrite data. They leave small pointer
files behind whose *name* encodes the file (and region) that physically
holds the bytes:

- plain store file:  ``<hex>`` with an optional ``_SeqId_<n>_`` or
  ``_del`` suffix
- link:              ``[<namespace>=]<table>=<region>-<store file>``
- reference:         ``<store file or link>.<parent region>``

Resolution maps any of these to the physical ``(table, region, file)``
triple, which is what gets copied.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from snapshot_export.core.domain.errors import MalformedReferenceError

if TYPE_CHECKING:
    from snapshot_export.core.domain.manifest import StoreFileRef

HFILE_NAME_REGEX = r"[0-9a-f]+(?:(?:_SeqId_[0-9]+_)|(?:_del))?"
NAMESPACE_REGEX = r"[_A-Za-z0-9]+"
TABLE_QUALIFIER_REGEX = r"[_A-Za-z0-9][_A-Za-z0-9.\-]*"
REGION_NAME_REGEX = r"[a-f0-9]+"

LINK_NAME_REGEX = (
    rf"(?:(?:{NAMESPACE_REGEX}=)?){TABLE_QUALIFIER_REGEX}="
    rf"{REGION_NAME_REGEX}-{HFILE_NAME_REGEX}"
)

LINK_NAME_PATTERN = re.compile(
    rf"^(?:({NAMESPACE_REGEX})=)?({TABLE_QUALIFIER_REGEX})="
    rf"({REGION_NAME_REGEX})-({HFILE_NAME_REGEX})$"
)

REF_NAME_PATTERN = re.compile(
    rf"^({HFILE_NAME_REGEX}|{LINK_NAME_REGEX})\.(.+)$"
)

# Reference chains do not occur in practice; anything deeper is corrupt.
MAX_REFERENCE_DEPTH = 4


@dataclass(frozen=True, slots=True)
class ResolvedStoreFile:
    """
    Physical location of a store file's bytes.

    ``table`` is None when the file belongs to the snapshot's own table.
    """

    region: str
    file: str
    is_reference: bool
    table: str | None = None


def is_link_name(name: str) -> bool:
    return LINK_NAME_PATTERN.match(name) is not None


def is_reference_name(name: str) -> bool:
    return REF_NAME_PATTERN.match(name) is not None


def _looks_encoded(name: str) -> bool:
    return "." in name or "=" in name


def _decode_link(name: str) -> ResolvedStoreFile:
    match = LINK_NAME_PATTERN.match(name)
    if match is None:
        raise MalformedReferenceError(f"Invalid link name: {name}")

    namespace, qualifier, region, hfile = match.groups()
    table = f"{namespace}:{qualifier}" if namespace else qualifier

    return ResolvedStoreFile(
        region=region,
        file=hfile,
        is_reference=True,
        table=table,
    )


def _decode_once(name: str, current_region: str) -> ResolvedStoreFile:
    ref_match = REF_NAME_PATTERN.match(name)
    if ref_match is not None:
        referenced, parent_region = ref_match.groups()

        if is_link_name(referenced):
            return _decode_link(referenced)

        return ResolvedStoreFile(
            region=parent_region,
            file=referenced,
            is_reference=True,
        )

    if is_link_name(name):
        return _decode_link(name)

    if _looks_encoded(name):
        raise MalformedReferenceError(
            f"Store file {name!r} in region {current_region} looks like a "
            "reference but cannot be decoded"
        )

    return ResolvedStoreFile(region=current_region, file=name, is_reference=False)


def resolve(store_file_name: str, current_region: str) -> ResolvedStoreFile:
    """
    Resolve a store-file name to the file that physically holds its data.

    Names that do not encode a reference come back unchanged with
    ``is_reference=False``.
    """
    if not store_file_name:
        raise MalformedReferenceError(
            f"Empty store file name in region {current_region}"
        )

    resolved = _decode_once(store_file_name, current_region)
    if not resolved.is_reference:
        return resolved

    seen = {(current_region, store_file_name)}
    table = resolved.table

    for _ in range(MAX_REFERENCE_DEPTH):
        key = (resolved.region, resolved.file)
        if key in seen:
            raise MalformedReferenceError(
                f"Reference {store_file_name!r} in region {current_region} "
                "refers back to itself"
            )
        seen.add(key)

        if not _looks_encoded(resolved.file):
            return ResolvedStoreFile(
                region=resolved.region,
                file=resolved.file,
                is_reference=True,
                table=table,
            )

        resolved = _decode_once(resolved.file, resolved.region)
        table = resolved.table or table

    raise MalformedReferenceError(
        f"Reference {store_file_name!r} in region {current_region} exceeds "
        f"the maximum reference depth ({MAX_REFERENCE_DEPTH})"
    )


def resolve_store_file(ref: StoreFileRef, current_region: str) -> ResolvedStoreFile:
    """
    Resolve a manifest entry.

    A declared reference target wins when the name itself carries no
    decodable reference; when both exist they must agree.
    """
    declared_region = getattr(ref, "referenced_region", None)
    declared_file = getattr(ref, "referenced_file", None)

    if ref.kind == "direct" or (declared_region is None and declared_file is None):
        resolved = resolve(ref.name, current_region)
        if ref.kind == "reference" and not resolved.is_reference:
            raise MalformedReferenceError(
                f"Store file {ref.name!r} in region {current_region} is declared "
                "as a reference but does not name one"
            )
        return resolved

    if declared_region is None or declared_file is None:
        raise MalformedReferenceError(
            f"Reference {ref.name!r} in region {current_region} declares an "
            "incomplete target"
        )

    if _looks_encoded(ref.name):
        resolved = resolve(ref.name, current_region)
        if (resolved.region, resolved.file) != (declared_region, declared_file):
            raise MalformedReferenceError(
                f"Reference {ref.name!r} in region {current_region} points at "
                f"{resolved.region}/{resolved.file} but declares "
                f"{declared_region}/{declared_file}"
            )
        return resolved

    if (declared_region, declared_file) == (current_region, ref.name):
        raise MalformedReferenceError(
            f"Reference {ref.name!r} in region {current_region} refers to itself"
        )

    return _as_reference(resolve(declared_file, declared_region))


def _as_reference(resolved: ResolvedStoreFile) -> ResolvedStoreFile:
    return ResolvedStoreFile(
        region=resolved.region,
        file=resolved.file,
        is_reference=True,
        table=resolved.table,
    )
