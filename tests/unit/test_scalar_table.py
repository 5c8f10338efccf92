"""Unit tests for ScalarTable."""

from dataclasses import dataclass

import pytest

from kvtables.components.codec import CborCodec, JsonCodec
from kvtables.components.memory import MemoryPartition
from kvtables.components.scalar import ScalarTable
from kvtables.core.errors import DecodeError, EncodeError, StoreError
from kvtables.core.keys import MAX_KEY, encode_key
from kvtables.core.types import OnDecodeError


@dataclass
class Identifier:
    prefix: str = ""
    sn: int = 0


CORRUPT = b"\xff\xff"  # Not valid CBOR


@pytest.fixture
def partition():
    """Create empty partition for tests."""
    return MemoryPartition("identifiers")


@pytest.fixture
def table(partition):
    """ScalarTable of Identifier records with the default SKIP policy."""
    return ScalarTable(partition, CborCodec(Identifier), default_factory=Identifier)


def test_insert_get_roundtrip(table):
    """Test that an inserted record reads back equal."""
    table.insert(1, Identifier("EaU6", 0))
    table.insert(2, Identifier("Dq4Z", 4))

    assert table.get(1) == Identifier("EaU6", 0)
    assert table.get(2) == Identifier("Dq4Z", 4)


def test_insert_overwrites(table):
    """Test that insert replaces the record at an existing key."""
    table.insert(1, Identifier("first"))
    table.insert(1, Identifier("second"))

    assert table.get(1) == Identifier("second")
    assert len(table) == 1


def test_absent_key(table):
    """Test get/contains_key on a key that was never written."""
    assert table.get(99) is None
    assert table.contains_key(99) is False

    table.insert(99, Identifier("x"))
    assert table.contains_key(99) is True


def test_remove(table):
    """Test remove reports whether the key existed."""
    table.insert(3, Identifier("x"))

    assert table.remove(3) is True
    assert table.remove(3) is False
    assert table.get(3) is None


def test_get_undecodable_raises(table, partition):
    """Test that get surfaces a DecodeError for corrupt bytes."""
    partition.insert(encode_key(4), CORRUPT)

    with pytest.raises(DecodeError, match="key 4"):
        table.get(4)


def test_insert_unencodable_raises(table):
    """Test that insert surfaces an EncodeError for a bad record."""
    with pytest.raises(EncodeError, match="key 1"):
        table.insert(1, "not an identifier")

    assert table.contains_key(1) is False


def test_invalid_key_rejected(table):
    """Test that keys outside the u64 range raise ValueError."""
    with pytest.raises(ValueError):
        table.insert(-1, Identifier())
    with pytest.raises(ValueError):
        table.get(MAX_KEY + 1)


def test_iter_ascending_key_order(table):
    """Test iter() yields records by numeric key, not insert order."""
    for key in (300, 2, 256, 1):
        table.insert(key, Identifier(str(key)))

    assert [ident.prefix for ident in table.iter()] == ["1", "2", "256", "300"]


def test_iter_is_reversible_and_restartable(table):
    """Test that one sequence can be walked twice and backwards."""
    for key in range(3):
        table.insert(key, Identifier(str(key)))

    records = table.iter()

    assert [r.prefix for r in records] == ["0", "1", "2"]
    assert [r.prefix for r in records] == ["0", "1", "2"]
    assert [r.prefix for r in reversed(records)] == ["2", "1", "0"]


def test_iter_is_bounded_by_call_time(table):
    """Test that records written after iter() are not part of it."""
    table.insert(0, Identifier("a"))
    records = table.iter()
    table.insert(1, Identifier("b"))

    assert list(records) == [Identifier("a")]
    assert len(list(table.iter())) == 2


def test_iter_skips_undecodable(table, partition):
    """Test that iter() drops corrupt entries under SKIP."""
    table.insert(0, Identifier("a"))
    partition.insert(encode_key(1), CORRUPT)
    table.insert(2, Identifier("c"))

    assert [r.prefix for r in table.iter()] == ["a", "c"]


def test_items_pairs(table):
    """Test items() yields (key, record) pairs."""
    table.insert(5, Identifier("five"))
    table.insert(7, Identifier("seven"))

    assert list(table.items()) == [(5, Identifier("five")), (7, Identifier("seven"))]


def test_contains_value(table, partition):
    """Test contains_value scans past corrupt entries."""
    partition.insert(encode_key(0), CORRUPT)
    table.insert(1, Identifier("EaU6"))

    assert table.contains_value(Identifier("EaU6")) is True
    assert table.contains_value(Identifier("missing")) is False


def test_get_next_key_returns_last_key(table):
    """Test get_next_key is 0 when empty, else the last stored key."""
    assert table.get_next_key() == 0

    for key in range(3):
        table.insert(key, Identifier(str(key)))

    assert table.get_next_key() == 2


def test_get_next_key_follows_numeric_order(table):
    """Test that the last key is the numerically greatest one."""
    table.insert(256, Identifier("a"))
    table.insert(255, Identifier("b"))

    assert table.get_next_key() == 256


def test_next_free_key(table):
    """Test next_free_key is 0 when empty, else last key + 1."""
    assert table.next_free_key() == 0

    table.insert(0, Identifier("a"))
    assert table.next_free_key() == 1

    table.insert(41, Identifier("b"))
    assert table.next_free_key() == 42


def test_next_free_key_exhausted(table):
    """Test next_free_key refuses to wrap past the largest key."""
    table.insert(MAX_KEY, Identifier("last"))

    assert table.get_next_key() == MAX_KEY
    with pytest.raises(StoreError, match="exhausted"):
        table.next_free_key()


def test_get_key_by_value(table):
    """Test reverse lookup finds the key of each stored record."""
    pairs = {3: Identifier("a", 1), 8: Identifier("b", 2), 13: Identifier("c", 3)}
    for key, value in pairs.items():
        table.insert(key, value)

    for key, value in pairs.items():
        assert table.get_key_by_value(value) == key
    assert table.get_key_by_value(Identifier("zzz")) is None


def test_designated_key_existing_value(table):
    """Test designated_key returns the key already holding the value."""
    table.insert(0, Identifier("a"))
    table.insert(1, Identifier("b"))
    table.insert(2, Identifier("c"))

    assert table.designated_key(Identifier("b")) == 1


def test_designated_key_falls_back_to_get_next_key(table):
    """Test designated_key for an unknown value equals get_next_key()."""
    assert table.designated_key(Identifier("new")) == 0

    table.insert(0, Identifier("a"))
    table.insert(4, Identifier("b"))

    assert table.designated_key(Identifier("new")) == table.get_next_key() == 4


def test_designated_key_idempotent(table):
    """Test two calls with no insert in between agree."""
    table.insert(0, Identifier("a"))
    table.insert(1, Identifier("b"))

    first = table.designated_key(Identifier("new"))
    second = table.designated_key(Identifier("new"))

    assert first == second


def test_skip_policy_never_matches_default(table, partition):
    """Test SKIP does not turn corrupt entries into default matches."""
    partition.insert(encode_key(0), CORRUPT)

    assert table.get_key_by_value(Identifier()) is None
    assert table.contains_value(Identifier()) is False


def test_default_policy_coerces_corrupt_entries(partition):
    """Test DEFAULT coerces corrupt entries only for reverse lookup."""
    table = ScalarTable(
        partition,
        CborCodec(Identifier),
        on_decode_error=OnDecodeError.DEFAULT,
        default_factory=Identifier,
    )
    table.insert(0, Identifier("a"))
    partition.insert(encode_key(1), CORRUPT)

    assert table.get_key_by_value(Identifier()) == 1
    assert table.designated_key(Identifier()) == 1

    # Other scans still drop the corrupt entry
    assert list(table.iter()) == [Identifier("a")]
    assert list(reversed(table.iter())) == [Identifier("a")]
    assert list(table.items()) == [(0, Identifier("a"))]
    assert table.contains_value(Identifier()) is False


def test_default_policy_requires_factory(partition):
    """Test DEFAULT without default_factory is rejected."""
    with pytest.raises(ValueError, match="default_factory"):
        ScalarTable(partition, on_decode_error=OnDecodeError.DEFAULT)


def test_abort_policy_raises(partition):
    """Test ABORT fails scans on the first corrupt entry."""
    table = ScalarTable(partition, CborCodec(Identifier), on_decode_error=OnDecodeError.ABORT)
    table.insert(0, Identifier("a"))
    partition.insert(encode_key(1), CORRUPT)

    with pytest.raises(DecodeError, match="key 1"):
        list(table.iter())
    with pytest.raises(DecodeError):
        table.contains_value(Identifier("zzz"))
    with pytest.raises(DecodeError):
        table.get_key_by_value(Identifier("zzz"))

    # Found before reaching the corrupt entry
    assert table.get_key_by_value(Identifier("a")) == 0


def test_malformed_store_keys(partition):
    """Test entries whose raw key is shorter than 8 bytes."""
    partition.insert(b"\xff", CborCodec().encode("short"))

    skipping = ScalarTable(partition)
    assert list(skipping.iter()) == []
    with pytest.raises(DecodeError, match="Malformed last key"):
        skipping.get_next_key()

    aborting = ScalarTable(partition, on_decode_error=OnDecodeError.ABORT)
    with pytest.raises(DecodeError, match="Malformed key"):
        list(aborting.iter())


def test_json_codec_table(partition):
    """Test the table is independent of the record codec."""
    table = ScalarTable(partition, JsonCodec())
    table.insert(1, {"prefix": "EaU6"})

    assert table.get(1) == {"prefix": "EaU6"}
    assert partition.get(encode_key(1)) == b'{"prefix":"EaU6"}'


class FailingPartition(MemoryPartition):
    """Partition whose reads fail with an I/O error."""

    def get(self, key):
        raise OSError("disk on fire")


def test_store_errors_are_translated():
    """Test that OSError from a partition surfaces as StoreError."""
    table = ScalarTable(FailingPartition("broken"))

    with pytest.raises(StoreError, match="disk on fire") as exc_info:
        table.get(1)
    assert isinstance(exc_info.value.__cause__, OSError)
