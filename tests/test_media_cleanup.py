"""
测试媒体存储标识推导与尽力清理
"""
import asyncio

import pytest

from dropx.models.file import File
from dropx.services.media_cleanup import remove_media_object, remove_media_objects
from dropx.utils.media import (
    derive_media_identifier,
    build_storage_name,
    build_storage_folder,
    is_supported_mime_type,
)

from conftest import FakeMediaStore


def _file(node_id="n1", file_url="https://ik.imagekit.io/demo/DropX/u/abc.jpg?updatedAt=1", path="/DropX/u/abc.jpg"):
    return File(id=node_id, name="abc.jpg", is_folder=False, file_url=file_url, path=path, user_id="u")


@pytest.mark.parametrize(
    "file_url, path, expected",
    [
        ("https://ik.imagekit.io/demo/DropX/u/abc.jpg?tr=w-100", None, "abc.jpg"),
        ("https://ik.imagekit.io/demo/DropX/u/abc.jpg", "/DropX/u/other.jpg", "abc.jpg"),
        ("", "/DropX/u/from-path.png", "from-path.png"),
        (None, "/DropX/u/from-path.png", "from-path.png"),
        ("https://ik.imagekit.io/demo/", "/DropX/u/fallback.pdf", "fallback.pdf"),
        ("", "", None),
        (None, None, None),
    ],
)
def test_derive_media_identifier(file_url, path, expected):
    assert derive_media_identifier(file_url, path) == expected


def test_supported_mime_types():
    assert is_supported_mime_type("image/png")
    assert is_supported_mime_type("IMAGE/JPEG")
    assert is_supported_mime_type("application/pdf")
    assert not is_supported_mime_type("text/plain")
    assert not is_supported_mime_type("application/pdfx")
    assert not is_supported_mime_type("")
    assert not is_supported_mime_type(None)


def test_storage_name_keeps_only_extension():
    name = build_storage_name("My Holiday.JPG")
    assert name.endswith(".JPG")
    assert "Holiday" not in name
    assert "." not in build_storage_name("README")


def test_storage_folder():
    assert build_storage_folder("DropX", "u1") == "/DropX/u1"
    assert build_storage_folder("/DropX/", "u1", "f1") == "/DropX/u1/folders/f1"


async def test_cleanup_uses_store_id_when_found():
    store = FakeMediaStore()
    obj = await store.upload(content=b"x", file_name="abc.jpg", folder="/DropX/u")

    assert await remove_media_object(store, _file()) is True
    assert store.lookups == ["abc.jpg"]
    assert store.deletes == [obj.file_id]


async def test_cleanup_retries_with_derived_identifier_when_id_delete_fails():
    store = FakeMediaStore()
    obj = await store.upload(content=b"x", file_name="abc.jpg", folder="/DropX/u")
    store.failing_names.add(obj.file_id)

    assert await remove_media_object(store, _file()) is True
    assert store.deletes == [obj.file_id, "abc.jpg"]


async def test_cleanup_deletes_derived_identifier_when_not_found():
    store = FakeMediaStore()

    assert await remove_media_object(store, _file()) is True
    assert store.deletes == ["abc.jpg"]


async def test_cleanup_swallows_delete_failures():
    store = FakeMediaStore()
    store.fail_lookup = True
    store.failing_names.add("abc.jpg")

    assert await remove_media_object(store, _file()) is False
    assert store.deletes == ["abc.jpg"]


async def test_cleanup_skips_folders_and_missing_identifiers():
    store = FakeMediaStore()
    folder = File(id="f", name="F", is_folder=True, file_url="", path="/folders/u/x", user_id="u")

    assert await remove_media_object(store, folder) is False
    assert await remove_media_object(store, _file(file_url="", path="")) is False
    assert store.call_count == 0


async def test_bulk_cleanup_isolates_failures():
    store = FakeMediaStore()
    nodes = [_file(f"n{i}", file_url=f"https://ik.imagekit.io/demo/img{i}.png", path="") for i in range(4)]
    store.failing_names.update({"img1.png", "img3.png"})

    outcome = await remove_media_objects(store, nodes)

    assert outcome == [True, False, True, False]
    assert sorted(store.deletes) == ["img0.png", "img1.png", "img2.png", "img3.png"]


async def test_bulk_cleanup_handles_unexpected_exceptions():
    store = FakeMediaStore()

    async def exploding_delete(file_id):
        raise asyncio.TimeoutError()

    store.delete = exploding_delete

    outcome = await remove_media_objects(store, [_file("a"), _file("b")])
    assert outcome == [False, False]


async def test_bulk_cleanup_respects_concurrency_limit():
    store = FakeMediaStore()
    in_flight = 0
    peak = 0

    async def slow_delete(file_id):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1

    store.delete = slow_delete
    nodes = [_file(f"n{i}", file_url=f"https://ik.imagekit.io/demo/{i}.png") for i in range(6)]

    outcome = await remove_media_objects(store, nodes, concurrency=2)

    assert outcome == [True] * 6
    assert peak == 2


async def test_bulk_cleanup_runs_concurrently_without_limit():
    store = FakeMediaStore()
    in_flight = 0
    peak = 0

    async def slow_delete(file_id):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1

    store.delete = slow_delete
    nodes = [_file(f"n{i}", file_url=f"https://ik.imagekit.io/demo/{i}.png") for i in range(5)]

    await remove_media_objects(store, nodes)
    assert peak == 5
