"""Tests for local permanent storage and part staging."""
import pytest

from vidtransfer.core.exceptions import (
    InvalidArgumentException,
    ObjectNotFoundException,
    RangeUnsatisfiableException,
    StorageException,
)
from vidtransfer.models.transfer import ObjectSource


class TestLocalObjectStore:
    """Permanent local objects."""

    async def test_put_and_stat(self, local_store):
        size = await local_store.put_object("clip.mp4", b"0123456789")
        record = await local_store.stat_object("clip.mp4")

        assert size == 10
        assert record.size == 10
        assert record.source == ObjectSource.LOCAL

    async def test_put_length_mismatch(self, local_store):
        with pytest.raises(StorageException):
            await local_store.put_object("clip.mp4", b"abc", length=4)

    async def test_stat_missing(self, local_store):
        with pytest.raises(ObjectNotFoundException):
            await local_store.stat_object("missing.mp4")

    @pytest.mark.parametrize("name", ["", "../escape.mp4", "dir/clip.mp4", ".hidden"])
    async def test_invalid_names_rejected(self, local_store, name):
        with pytest.raises(InvalidArgumentException):
            await local_store.put_object(name, b"x")

    async def test_range_reads(self, local_store):
        await local_store.put_object("clip.mp4", b"0123456789")

        assert await local_store.get_object_range("clip.mp4", 0, 3) == b"0123"
        assert await local_store.get_object_range("clip.mp4", 7, 9) == b"789"

    async def test_range_end_clamped_to_object(self, local_store):
        await local_store.put_object("clip.mp4", b"0123456789")

        assert await local_store.get_object_range("clip.mp4", 8, 100) == b"89"

    async def test_range_past_end(self, local_store):
        await local_store.put_object("clip.mp4", b"0123456789")

        with pytest.raises(RangeUnsatisfiableException) as exc_info:
            await local_store.get_object_range("clip.mp4", 10, 12)

        assert exc_info.value.details["actual_size"] == 10

    async def test_iter_range_chunks(self, local_store):
        await local_store.put_object("clip.mp4", b"abcdefghij")

        chunks = [c async for c in local_store.iter_range("clip.mp4", 1, 8, chunk_size=3)]

        assert chunks == [b"bcd", b"efg", b"hi"]

    async def test_put_stream(self, local_store):
        async def chunks():
            for piece in (b"ab", b"cd", b"ef"):
                yield piece

        assert await local_store.put_stream("clip.mp4", chunks()) == 6
        assert local_store.path_for("clip.mp4").read_bytes() == b"abcdef"

    async def test_failed_stream_leaves_nothing(self, local_store):
        async def chunks():
            yield b"partial"
            raise ConnectionError("client went away")

        with pytest.raises(ConnectionError):
            await local_store.put_stream("clip.mp4", chunks())

        assert list(local_store.root.iterdir()) == []

    async def test_listing_skips_hidden_files(self, local_store):
        await local_store.put_object("b.mp4", b"bb")
        await local_store.put_object("a.mp4", b"a")
        (local_store.root / ".a.mp4.123.tmp").write_bytes(b"in progress")

        records = await local_store.list_objects()

        assert [(r.name, r.size) for r in records] == [("a.mp4", 1), ("b.mp4", 2)]

    async def test_delete(self, local_store):
        await local_store.put_object("clip.mp4", b"x")
        await local_store.delete_object("clip.mp4")

        with pytest.raises(ObjectNotFoundException):
            await local_store.delete_object("clip.mp4")


class TestPartStaging:
    """Per-session part files."""

    async def test_write_overwrites(self, staging):
        await staging.write_part("s1", 0, b"first")
        await staging.write_part("s1", 0, b"second")

        assert staging.part_path("s1", 0).read_bytes() == b"second"
        assert staging.part_path("s1", 0).is_file()
        assert not staging.part_path("s1", 1).exists()

    async def test_iter_missing_part(self, staging):
        with pytest.raises(StorageException):
            async for _ in staging.iter_part("s1", 0):
                pass

    async def test_discard(self, staging):
        await staging.write_part("s1", 0, b"data")

        assert staging.discard("s1") is True
        assert not staging.session_dir("s1").exists()
        assert staging.discard("s1") is False
