"""
Semantic test: split/merge reference resolution.

Invariant:
Every store-file name resolves to the (table, region, file) that
physically holds its bytes. Plain names resolve to themselves; reference
and link names resolve to the file they encode; names that cannot be
decoded, or references that point back at themselves, are rejected.
"""

from __future__ import annotations

import pytest

from snapshot_export.core.domain.errors import MalformedReferenceError
from snapshot_export.core.domain.manifest import DirectStoreFile, ReferenceStoreFile
from snapshot_export.core.domain.references import (
    ResolvedStoreFile,
    is_link_name,
    is_reference_name,
    resolve,
    resolve_store_file,
)


def test_plain_store_file_resolves_to_itself() -> None:
    assert resolve("0a1b2c", "aaa111") == ResolvedStoreFile(
        region="aaa111",
        file="0a1b2c",
        is_reference=False,
    )


def test_plain_store_file_suffixes_are_not_references() -> None:
    assert not resolve("0a1b_SeqId_12_", "aaa111").is_reference
    assert not resolve("0a1b_del", "aaa111").is_reference


def test_split_reference_resolves_to_parent_region() -> None:
    resolved = resolve("0a1b2c.ccc333", "aaa111")

    assert resolved == ResolvedStoreFile(region="ccc333", file="0a1b2c", is_reference=True)


def test_link_resolves_to_linked_table_and_region() -> None:
    resolved = resolve("ns1=orders=ddd444-0f0f", "aaa111")

    assert resolved.table == "ns1:orders"
    assert resolved.region == "ddd444"
    assert resolved.file == "0f0f"
    assert resolved.is_reference


def test_link_without_namespace_uses_bare_table() -> None:
    resolved = resolve("orders=ddd444-0f0f", "aaa111")

    assert resolved.table == "orders"


def test_reference_to_link_resolves_to_link_target() -> None:
    resolved = resolve("orders=ddd444-0f0f.ccc333", "aaa111")

    assert (resolved.table, resolved.region, resolved.file) == ("orders", "ddd444", "0f0f")


def test_name_predicates() -> None:
    assert is_reference_name("0a1b.ccc333")
    assert not is_reference_name("0a1b")
    assert is_link_name("t1=ddd444-0f0f")
    assert not is_link_name("0f0f")


@pytest.mark.parametrize(
    "name",
    [
        "not-hex.ccc333",
        "0a1b.",
        "table=region-not-hex",
        "=ddd444-0f0f",
    ],
)
def test_undecodable_reference_is_malformed(name: str) -> None:
    with pytest.raises(MalformedReferenceError):
        resolve(name, "aaa111")


def test_empty_name_is_malformed() -> None:
    with pytest.raises(MalformedReferenceError):
        resolve("", "aaa111")


def test_direct_entry_with_reference_name_is_treated_as_reference() -> None:
    resolved = resolve_store_file(DirectStoreFile(name="0a1b.ccc333"), "aaa111")

    assert resolved.region == "ccc333"
    assert resolved.is_reference


def test_declared_reference_target_is_used() -> None:
    ref = ReferenceStoreFile(name="0a1b", referenced_region="ccc333", referenced_file="0a1b")

    resolved = resolve_store_file(ref, "aaa111")

    assert (resolved.region, resolved.file, resolved.is_reference) == ("ccc333", "0a1b", True)


def test_declared_target_must_agree_with_encoded_name() -> None:
    ref = ReferenceStoreFile(
        name="0a1b.ccc333",
        referenced_region="eee555",
        referenced_file="0a1b",
    )

    with pytest.raises(MalformedReferenceError, match="declares"):
        resolve_store_file(ref, "aaa111")


def test_declared_target_agreeing_with_name_is_accepted() -> None:
    ref = ReferenceStoreFile(
        name="0a1b.ccc333",
        referenced_region="ccc333",
        referenced_file="0a1b",
    )

    assert resolve_store_file(ref, "aaa111").region == "ccc333"


def test_self_reference_is_malformed() -> None:
    ref = ReferenceStoreFile(name="0a1b", referenced_region="aaa111", referenced_file="0a1b")

    with pytest.raises(MalformedReferenceError, match="itself"):
        resolve_store_file(ref, "aaa111")


def test_reference_kind_without_target_is_malformed() -> None:
    with pytest.raises(MalformedReferenceError):
        resolve_store_file(ReferenceStoreFile(name="0a1b"), "aaa111")


def test_incomplete_declared_target_is_malformed() -> None:
    with pytest.raises(MalformedReferenceError, match="incomplete"):
        resolve_store_file(ReferenceStoreFile(name="0a1b", referenced_region="ccc333"), "aaa111")
