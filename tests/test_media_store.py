"""
测试 ImageKit 媒体存储客户端（使用 httpx.MockTransport，不访问网络）
"""
import base64
import hashlib
import hmac
import json

import httpx
import pytest

from dropx.core.exceptions import UpstreamStorageError
from dropx.services.media_store import ImageKitMediaStore

PRIVATE_KEY = "private_test_key"


def _store(handler) -> ImageKitMediaStore:
    return ImageKitMediaStore(
        public_key="public_test_key",
        private_key=PRIVATE_KEY,
        url_endpoint="https://ik.imagekit.io/demo",
        transport=httpx.MockTransport(handler),
    )


def _expected_auth_header() -> str:
    return "Basic " + base64.b64encode(f"{PRIVATE_KEY}:".encode()).decode()


async def test_upload_posts_multipart_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = request.content
        return httpx.Response(200, json={
            "fileId": "ik_123",
            "name": "abc.jpg",
            "filePath": "/DropX/u1/abc.jpg",
            "url": "https://ik.imagekit.io/demo/DropX/u1/abc.jpg",
            "thumbnailUrl": "https://ik.imagekit.io/demo/tr:n-ik_ml_thumbnail/DropX/u1/abc.jpg",
            "size": 3,
        })

    media = await _store(handler).upload(content=b"abc", file_name="abc.jpg", folder="/DropX/u1")

    assert seen["url"] == "https://upload.imagekit.io/api/v1/files/upload"
    assert seen["auth"] == _expected_auth_header()
    assert b'name="fileName"' in seen["body"]
    assert b'name="useUniqueFileName"' in seen["body"]
    assert b"/DropX/u1" in seen["body"]
    assert media.file_id == "ik_123"
    assert media.file_path == "/DropX/u1/abc.jpg"
    assert media.thumbnail_url.endswith("/DropX/u1/abc.jpg")


async def test_upload_http_error_is_upstream_error():
    def handler(request):
        return httpx.Response(500, json={"message": "boom"})

    with pytest.raises(UpstreamStorageError):
        await _store(handler).upload(content=b"abc", file_name="a.jpg", folder="/DropX/u1")


async def test_upload_network_error_is_upstream_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(UpstreamStorageError):
        await _store(handler).upload(content=b"abc", file_name="a.jpg", folder="/DropX/u1")


async def test_upload_without_file_id_is_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"message": "quota exceeded key=abc123"})

    with pytest.raises(UpstreamStorageError) as exc_info:
        await _store(handler).upload(content=b"abc", file_name="a.jpg", folder="/DropX/u1")

    assert exc_info.value.message == "Failed to upload file"
    assert "abc123" not in str(exc_info.value)


async def test_find_by_name_returns_first_file():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[
            {"type": "folder", "name": "abc.jpg"},
            {"fileId": "ik_9", "name": "abc.jpg", "filePath": "/x/abc.jpg", "url": "u"},
        ])

    found = await _store(handler).find_by_name("abc.jpg")

    assert seen["path"] == "/v1/files"
    assert seen["params"]["searchQuery"] == 'name = "abc.jpg"'
    assert found.file_id == "ik_9"


async def test_find_by_name_returns_none_when_empty():
    def handler(request):
        return httpx.Response(200, content=json.dumps([]))

    assert await _store(handler).find_by_name("missing.jpg") is None


async def test_delete_calls_files_endpoint():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        return httpx.Response(204)

    await _store(handler).delete("ik_42")

    assert seen == {"method": "DELETE", "path": "/v1/files/ik_42"}


async def test_delete_not_found_is_upstream_error():
    def handler(request):
        return httpx.Response(404, json={"message": "The requested file does not exist."})

    with pytest.raises(UpstreamStorageError):
        await _store(handler).delete("ik_missing")


def test_authentication_parameters_signature():
    store = _store(lambda request: httpx.Response(200))

    params = store.get_authentication_parameters(token="tok-1", expire=1700001800)

    expected = hmac.new(PRIVATE_KEY.encode(), b"tok-11700001800", hashlib.sha1).hexdigest()
    assert params == {"token": "tok-1", "expire": 1700001800, "signature": expected}


def test_authentication_parameters_defaults():
    store = _store(lambda request: httpx.Response(200))

    first = store.get_authentication_parameters()
    second = store.get_authentication_parameters()

    assert first["token"] != second["token"]
    assert isinstance(first["expire"], int)
    assert len(first["signature"]) == 40
