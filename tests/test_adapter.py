"""Tests for B2Adapter file operations, metadata and failure mapping."""

from unittest.mock import patch

import pytest

from b2vfs.adapter import B2Adapter
from b2vfs.errors import (
    InvalidConfiguration,
    UnableToCopyFile,
    UnableToDeleteFile,
    UnableToMoveFile,
    UnableToReadFile,
    UnableToRetrieveMetadata,
    UnableToSetVisibility,
    UnableToWriteFile,
    VisibilityUnsupported,
)
from b2vfs.mime import NullMimeTypeDetector
from b2vfs.options import CopyOptions, WriteOptions
from b2vfs.store.client import AUTO_CONTENT_TYPE, ObjectStoreError
from b2vfs.store.memory import MemoryObjectStoreClient


async def _stream(*chunks):
    for chunk in chunks:
        yield chunk


class TestCreate:
    async def test_explicit_bucket_and_prefix(self, client, bucket):
        adapter = await B2Adapter.create(client, bucket_id=bucket.bucket_id, prefix="p")
        assert adapter.bucket == bucket
        assert adapter.prefixer.prefix == "p/"

    async def test_defaults_from_key_restriction(self, clock):
        client = MemoryObjectStoreClient(clock=clock)
        bucket = client.create_bucket("restricted")
        client._allowed = {"bucketId": bucket.bucket_id, "namePrefix": "team/"}

        adapter = await B2Adapter.create(client)

        assert adapter.bucket.bucket_id == bucket.bucket_id
        assert adapter.prefixer.prefix == "team/"

    async def test_explicit_empty_prefix_beats_restriction(self, clock):
        client = MemoryObjectStoreClient(clock=clock)
        bucket = client.create_bucket("restricted")
        client._allowed = {"bucketId": bucket.bucket_id, "namePrefix": "team/"}

        adapter = await B2Adapter.create(client, prefix="")

        assert adapter.prefixer.prefix == ""

    async def test_missing_bucket_id(self, client):
        with pytest.raises(InvalidConfiguration):
            await B2Adapter.create(client)

    async def test_unknown_bucket(self, client):
        with pytest.raises(InvalidConfiguration):
            await B2Adapter.create(client, bucket_id="nope", prefix="")


class TestWriteAndRead:
    async def test_round_trip(self, adapter):
        await adapter.write("a/b.txt", b"hello world")
        assert await adapter.read("a/b.txt") == b"hello world"

    async def test_empty_contents(self, adapter):
        await adapter.write("empty.txt", b"")
        assert await adapter.read("empty.txt") == b""
        assert (await adapter.file_size("empty.txt")).file_size == 0

    async def test_str_contents_encoded_as_utf8(self, adapter):
        await adapter.write("unicode.txt", "héllo")
        assert await adapter.read("unicode.txt") == "héllo".encode("utf-8")

    async def test_write_stream(self, adapter):
        await adapter.write_stream("streamed.bin", _stream(b"abc", b"def", b""))
        assert await adapter.read("streamed.bin") == b"abcdef"

    async def test_overwrite_creates_new_version(self, adapter, client, bucket):
        await adapter.write("v.txt", b"one")
        await adapter.write("v.txt", b"two")
        assert await adapter.read("v.txt") == b"two"
        assert len(client.versions(bucket.bucket_id, "root/v.txt")) == 2

    async def test_keys_are_prefixed(self, adapter, client, bucket):
        await adapter.write("/x//y.txt", b"x")
        obj = await client.get_object_by_name(bucket.bucket_id, "root/x/y.txt")
        assert obj.size == 1

    async def test_explicit_mime_type(self, adapter):
        await adapter.write("data", b"{}", WriteOptions(mime_type="application/json"))
        assert (await adapter.mime_type("data")).mime_type == "application/json"

    async def test_detected_mime_type(self, adapter):
        await adapter.write("page.html", b"<html></html>")
        assert (await adapter.mime_type("page.html")).mime_type == "text/html"

    async def test_undetectable_content_left_to_b2(self, client, bucket):
        adapter = B2Adapter(client, bucket, "", detector=NullMimeTypeDetector())
        with patch.object(client, "put_object", wraps=client.put_object) as put:
            await adapter.write("blob", b"\x00\x01")
        assert put.call_args.args[3] == AUTO_CONTENT_TYPE

    async def test_write_records_last_modified(self, adapter, clock):
        await adapter.write("t.txt", b"t")
        assert (await adapter.last_modified("t.txt")).last_modified is not None

    async def test_caller_info_kept(self, adapter, client, bucket):
        options = WriteOptions(info={"src_last_modified_millis": "1000", "author": "me"})
        await adapter.write("i.txt", b"i", options)
        obj = await client.get_object_by_name(bucket.bucket_id, "root/i.txt")
        assert obj.info == {"src_last_modified_millis": "1000", "author": "me"}
        assert (await adapter.last_modified("i.txt")).last_modified == 1

    async def test_write_failure(self, adapter, client):
        with patch.object(client, "put_object", side_effect=ObjectStoreError("cap exceeded")):
            with pytest.raises(UnableToWriteFile) as excinfo:
                await adapter.write("a.txt", b"a")
        assert excinfo.value.location == "a.txt"

    async def test_read_missing(self, adapter):
        with pytest.raises(UnableToReadFile) as excinfo:
            await adapter.read("missing.txt")
        assert excinfo.value.location == "missing.txt"
        assert excinfo.value.__cause__ is not None

    async def test_read_stream(self, adapter):
        data = bytes(range(256)) * 1024
        await adapter.write("big.bin", data)
        stream = await adapter.read_stream("big.bin")
        chunks = [chunk async for chunk in stream]
        assert len(chunks) > 1
        assert b"".join(chunks) == data

    async def test_read_stream_missing_fails_before_iteration(self, adapter):
        with pytest.raises(UnableToReadFile):
            await adapter.read_stream("missing.bin")

    async def test_read_stream_buffered(self, client, bucket):
        adapter = B2Adapter(client, bucket, "", stream_reads=False)
        data = b"z" * (200 * 1024)
        await adapter.write("big.bin", data)
        stream = await adapter.read_stream("big.bin")
        chunks = [chunk async for chunk in stream]
        assert chunks == [data]


class TestExistence:
    async def test_file_exists_before_and_after_write(self, adapter):
        assert not await adapter.file_exists("new.txt")
        await adapter.write("new.txt", b"n")
        assert await adapter.file_exists("new.txt")

    async def test_hidden_file_does_not_exist(self, adapter, client, bucket):
        await adapter.write("h.txt", b"h")
        client.hide_object(bucket.bucket_id, "root/h.txt")
        assert not await adapter.file_exists("h.txt")

    async def test_directory_is_not_a_file(self, adapter):
        await adapter.write("d/f.txt", b"f")
        assert not await adapter.file_exists("d")


class TestDelete:
    async def test_delete(self, adapter):
        await adapter.write("gone.txt", b"g")
        await adapter.delete("gone.txt")
        assert not await adapter.file_exists("gone.txt")

    async def test_delete_twice_succeeds(self, adapter):
        await adapter.write("twice.txt", b"t")
        await adapter.delete("twice.txt")
        await adapter.delete("twice.txt")

    async def test_delete_missing_is_noop(self, adapter):
        await adapter.delete("never.txt")

    async def test_delete_removes_only_current_version(self, adapter):
        await adapter.write("v.txt", b"old")
        await adapter.write("v.txt", b"new")
        await adapter.delete("v.txt")
        assert await adapter.read("v.txt") == b"old"

    async def test_delete_failure(self, adapter, client):
        await adapter.write("locked.txt", b"l")
        with patch.object(
            client, "delete_object_version", side_effect=ObjectStoreError("legal hold")
        ):
            with pytest.raises(UnableToDeleteFile) as excinfo:
                await adapter.delete("locked.txt")
        assert excinfo.value.location == "locked.txt"
        assert "legal hold" in excinfo.value.reason


class TestMetadata:
    async def test_file_size(self, adapter):
        await adapter.write("s.txt", b"12345")
        attrs = await adapter.file_size("s.txt")
        assert attrs.file_size == 5
        assert attrs.path == "s.txt"

    async def test_extra_metadata_present(self, adapter):
        await adapter.write("m.txt", b"m")
        bag = (await adapter.file_size("m.txt")).extra_metadata["b2"]
        assert bag["fileId"]
        assert bag["contentSha1"]

    async def test_metadata_of_missing_file(self, adapter):
        for method in (adapter.file_size, adapter.last_modified, adapter.mime_type):
            with pytest.raises(UnableToRetrieveMetadata):
                await method("missing.txt")

    async def test_unknown_mime_type(self, client, bucket):
        adapter = B2Adapter(client, bucket, "", detector=NullMimeTypeDetector())
        await adapter.write("blob", b"\x00\x01")
        with pytest.raises(UnableToRetrieveMetadata) as excinfo:
            await adapter.mime_type("blob")
        assert excinfo.value.metadata_type == "mime_type"
        # Size is still available for the same object
        assert (await adapter.file_size("blob")).file_size == 2

    async def test_last_modified_without_custom_timestamp(self, adapter, client, bucket):
        await client.put_object(bucket.bucket_id, "root/raw.txt", b"raw", "text/plain")
        with pytest.raises(UnableToRetrieveMetadata):
            await adapter.last_modified("raw.txt")


class TestVisibility:
    async def test_set_visibility_always_fails(self, adapter):
        await adapter.write("v.txt", b"v")
        for visibility in ("public", "private"):
            with pytest.raises(UnableToSetVisibility):
                await adapter.set_visibility("v.txt", visibility)

    async def test_visibility_always_fails(self, adapter):
        await adapter.write("v.txt", b"v")
        with pytest.raises(VisibilityUnsupported) as excinfo:
            await adapter.visibility("v.txt")
        assert isinstance(excinfo.value, UnableToRetrieveMetadata)
        assert excinfo.value.metadata_type == "visibility"

    async def test_visibility_fails_for_missing_file(self, adapter):
        with pytest.raises(VisibilityUnsupported):
            await adapter.visibility("missing.txt")


class TestCopy:
    async def test_copy(self, adapter):
        await adapter.write("src.txt", b"content")
        await adapter.copy("src.txt", "dst.txt")
        assert await adapter.file_exists("src.txt")
        assert await adapter.file_exists("dst.txt")
        assert await adapter.read("src.txt") == await adapter.read("dst.txt") == b"content"

    async def test_copy_keeps_metadata_by_default(self, adapter):
        await adapter.write("src.txt", b"x", WriteOptions(mime_type="text/markdown"))
        await adapter.copy("src.txt", "dst.txt")
        assert (await adapter.mime_type("dst.txt")).mime_type == "text/markdown"

    async def test_copy_replace_metadata(self, adapter):
        await adapter.write("src.txt", b"x")
        options = CopyOptions(
            metadata_directive="REPLACE", content_type="application/json", info={"k": "v"}
        )
        await adapter.copy("src.txt", "dst.json", options)
        attrs = await adapter.mime_type("dst.json")
        assert attrs.mime_type == "application/json"
        assert attrs.extra_metadata["b2"]["fileInfo"] == {"k": "v"}

    async def test_copy_range(self, adapter):
        await adapter.write("src.txt", b"0123456789")
        await adapter.copy("src.txt", "part.txt", CopyOptions(range=(2, 5)))
        assert await adapter.read("part.txt") == b"2345"

    async def test_copy_legal_hold(self, adapter):
        await adapter.write("src.txt", b"x")
        await adapter.copy("src.txt", "held.txt", CopyOptions(legal_hold="on"))
        bag = (await adapter.file_size("held.txt")).extra_metadata["b2"]
        assert bag["legalHold"] == "on"

    async def test_copy_to_other_bucket(self, adapter, client):
        other = client.create_bucket("other")
        await adapter.write("src.txt", b"x")
        await adapter.copy("src.txt", "dst.txt", CopyOptions(destination_bucket_id=other.bucket_id))
        obj = await client.get_object_by_name(other.bucket_id, "root/dst.txt")
        assert obj.size == 1
        assert not await adapter.file_exists("dst.txt")

    async def test_copy_missing_source(self, adapter):
        with pytest.raises(UnableToCopyFile) as excinfo:
            await adapter.copy("missing.txt", "dst.txt")
        assert excinfo.value.source == "missing.txt"
        assert excinfo.value.destination == "dst.txt"

    async def test_copy_store_failure(self, adapter, client):
        await adapter.write("src.txt", b"x")
        with patch.object(client, "copy_object", side_effect=ObjectStoreError("cap")):
            with pytest.raises(UnableToCopyFile):
                await adapter.copy("src.txt", "dst.txt")


class TestMove:
    async def test_move(self, adapter):
        await adapter.write("src.txt", b"payload")
        await adapter.move("src.txt", "moved/dst.txt")
        assert not await adapter.file_exists("src.txt")
        assert await adapter.file_exists("moved/dst.txt")
        assert await adapter.read("moved/dst.txt") == b"payload"

    async def test_move_missing_source(self, adapter):
        with pytest.raises(UnableToMoveFile) as excinfo:
            await adapter.move("missing.txt", "dst.txt")
        assert not excinfo.value.partially_applied
        assert not await adapter.file_exists("dst.txt")

    async def test_move_copy_failure_leaves_source(self, adapter, client):
        await adapter.write("src.txt", b"x")
        with patch.object(client, "copy_object", side_effect=ObjectStoreError("cap")):
            with pytest.raises(UnableToMoveFile) as excinfo:
                await adapter.move("src.txt", "dst.txt")
        assert not excinfo.value.partially_applied
        assert isinstance(excinfo.value.__cause__, ObjectStoreError)
        assert await adapter.file_exists("src.txt")

    async def test_move_delete_failure_is_partial(self, adapter, client):
        await adapter.write("src.txt", b"x")
        with patch.object(
            client, "delete_object_version", side_effect=ObjectStoreError("denied")
        ):
            with pytest.raises(UnableToMoveFile) as excinfo:
                await adapter.move("src.txt", "dst.txt")

        assert excinfo.value.partially_applied
        assert isinstance(excinfo.value.__cause__, ObjectStoreError)
        # Destination persists and the source is still there
        assert await adapter.file_exists("dst.txt")
        assert await adapter.file_exists("src.txt")
