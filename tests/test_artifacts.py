import io
import json
import os
import socket
import urllib.request

import pytest

from actkit.artifacts import ArtifactRouter, LocalFS, safe_resolve, serve
from actkit.runctx import background

BASE = "artifact/server/path"


class _MemFile(io.BytesIO):
    def __init__(self, store, name):
        super().__init__()
        self._store = store
        self._name = name

    def close(self):
        if not self.closed:
            self._store[self._name] = self.getvalue()
        super().close()


class MemoryFS:
    def __init__(self, files=None):
        self.files = dict(files or {})

    def open(self, name):
        if name not in self.files:
            raise FileNotFoundError(name)
        return io.BytesIO(self.files[name])

    def open_writable(self, name):
        self.files[name] = b"content2"
        return _MemFile(self.files, name)

    def open_appendable(self, name):
        self.files[name] = b"content2"
        return _MemFile(self.files, name)

    def read_dir(self, name):
        prefix = name + "/"
        children = {k[len(prefix):].split("/")[0] for k in self.files if k.startswith(prefix)}
        if not children:
            raise FileNotFoundError(name)
        return sorted(children)

    def walk_files(self, root):
        if root in self.files:
            return [root]
        found = sorted(k for k in self.files if k.startswith(root + "/"))
        if not found:
            raise FileNotFoundError(root)
        return found


def _body(response):
    return json.loads(response.body)


def test_upload_prepare():
    router = ArtifactRouter(BASE, MemoryFS())
    resp = router.handle("POST", "http://localhost/_apis/pipelines/workflows/1/artifacts")
    assert resp.status == 200
    assert _body(resp)["fileContainerResourceUrl"] == "http://localhost/upload/1"


def test_upload_blob():
    memfs = MemoryFS()
    router = ArtifactRouter(BASE, memfs)
    resp = router.handle("PUT", "http://localhost/upload/1?itemPath=some/file", body=b"content")
    assert resp.status == 200
    assert _body(resp)["message"] == "success"
    assert memfs.files["artifact/server/path/1/some/file"] == b"content"


def test_finalize_upload():
    router = ArtifactRouter(BASE, MemoryFS())
    resp = router.handle("PATCH", "http://localhost/_apis/pipelines/workflows/1/artifacts")
    assert resp.status == 200
    assert _body(resp)["message"] == "success"


def test_list_artifacts():
    memfs = MemoryFS({"artifact/server/path/1/file.txt": b""})
    router = ArtifactRouter(BASE, memfs)
    resp = router.handle("GET", "http://localhost/_apis/pipelines/workflows/1/artifacts")
    assert resp.status == 200
    data = _body(resp)
    assert data["count"] == 1
    assert data["value"][0]["name"] == "file.txt"
    assert data["value"][0]["fileContainerResourceUrl"] == "http://localhost/download/1"


def test_list_artifact_container():
    memfs = MemoryFS({"artifact/server/path/1/some/file": b""})
    router = ArtifactRouter(BASE, memfs)
    resp = router.handle("GET", "http://localhost/download/1?itemPath=some/file")
    assert resp.status == 200
    value = _body(resp)["value"]
    assert len(value) == 1
    assert value[0]["path"] == "some/file"
    assert value[0]["itemType"] == "file"
    assert value[0]["contentLocation"] == "http://localhost/artifact/1/some/file/."


def test_download_artifact_file():
    memfs = MemoryFS({"artifact/server/path/1/some/file": b"content"})
    router = ArtifactRouter(BASE, memfs)
    resp = router.handle("GET", "http://localhost/artifact/1/some/file")
    assert resp.status == 200
    assert resp.body == b"content"


@pytest.mark.parametrize(
    "rel_path, expected",
    [
        ("baz", "/foo/bar/baz"),
        ("baz/blue", "/foo/bar/baz/blue"),
        ("baz/../../blue", "/foo/bar/blue"),
        ("../../parent", "/foo/bar/parent"),
        ("/root", "/foo/bar/root"),
        ("/", "/foo/bar"),
        ("", "/foo/bar"),
    ],
)
def test_safe_resolve(rel_path, expected):
    assert safe_resolve("/foo/bar", rel_path) == expected


def test_download_artifact_file_unsafe_path():
    memfs = MemoryFS({"artifact/server/path/some/file": b"content"})
    router = ArtifactRouter(BASE, memfs)
    resp = router.handle("GET", "http://localhost/artifact/2/../../some/file")
    assert resp.status == 200
    assert resp.body == b"content"


def test_upload_blob_unsafe_path():
    memfs = MemoryFS()
    router = ArtifactRouter(BASE, memfs)
    resp = router.handle(
        "PUT", "http://localhost/upload/1?itemPath=../../some/file", body=b"content"
    )
    assert resp.status == 200
    assert _body(resp)["message"] == "success"
    assert memfs.files["artifact/server/path/1/some/file"] == b"content"


def test_upload_without_body_is_an_error():
    router = ArtifactRouter(BASE, MemoryFS())
    resp = router.handle("PUT", "http://localhost/upload/1?itemPath=x", body=None)
    assert resp.status == 500
    assert _body(resp)["message"] == "No body given"


def test_unknown_route_and_wrong_method():
    router = ArtifactRouter(BASE, MemoryFS())
    assert router.handle("GET", "http://localhost/nothing").status == 404
    assert router.handle("DELETE", "http://localhost/upload/1").status == 405


def test_download_missing_file_is_an_error():
    router = ArtifactRouter(BASE, MemoryFS())
    assert router.handle("GET", "http://localhost/artifact/1/missing").status == 500


def test_host_header_takes_precedence():
    router = ArtifactRouter(BASE, MemoryFS())
    resp = router.handle(
        "POST", "/_apis/pipelines/workflows/7/artifacts", headers={"Host": "example.com:80"}
    )
    assert _body(resp)["fileContainerResourceUrl"] == "http://example.com:80/upload/7"


def test_gzip_upload_round_trip(tmp_path):
    router = ArtifactRouter(str(tmp_path), LocalFS())
    put = router.handle(
        "PUT",
        "http://localhost/upload/1?itemPath=some/file",
        headers={"Content-Encoding": "gzip"},
        body=b"zipped",
    )
    assert put.status == 200
    assert (tmp_path / "1" / "some" / ("file" + ".gz__")).read_bytes() == b"zipped"

    listing = _body(router.handle("GET", "http://localhost/download/1?itemPath=some"))
    assert [item["path"] for item in listing["value"]] == ["some/file"]
    assert listing["value"][0]["contentLocation"] == "http://localhost/artifact/1/some/file"

    get = router.handle("GET", "http://localhost/artifact/1/some/file")
    assert get.status == 200
    assert get.body == b"zipped"
    assert get.headers["Content-Encoding"] == "gzip"


def test_content_range_appends(tmp_path):
    router = ArtifactRouter(str(tmp_path), LocalFS())
    url = "http://localhost/upload/1?itemPath=data.bin"
    router.handle("PUT", url, headers={"Content-Range": "bytes 0-3/8"}, body=b"abcd")
    router.handle("PUT", url, headers={"Content-Range": "bytes 4-7/8"}, body=b"efgh")
    assert (tmp_path / "1" / "data.bin").read_bytes() == b"abcdefgh"

    router.handle("PUT", url, headers={"Content-Range": "bytes 0-1/2"}, body=b"xy")
    assert (tmp_path / "1" / "data.bin").read_bytes() == b"xy"


def test_local_fs_walk_and_read_dir(tmp_path):
    fs = LocalFS()
    for rel in ["b/z", "a/y", "a/x", "c"]:
        with fs.open_writable(str(tmp_path / rel)) as handle:
            handle.write(rel.encode())
    assert fs.read_dir(str(tmp_path)) == ["a", "b", "c"]
    walked = [os.path.relpath(p, tmp_path) for p in fs.walk_files(str(tmp_path))]
    assert walked == [os.path.join("a", "x"), os.path.join("a", "y"), os.path.join("b", "z"), "c"]
    assert list(fs.walk_files(str(tmp_path / "c"))) == [str(tmp_path / "c")]
    with pytest.raises(FileNotFoundError):
        list(fs.walk_files(str(tmp_path / "missing")))
    with fs.open(str(tmp_path / "a" / "x")) as handle:
        assert handle.read() == b"a/x"


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_serve_handles_requests(tmp_path):
    port = _free_port()
    cancel = serve(background(), str(tmp_path), "127.0.0.1", str(port))
    try:
        base = f"http://127.0.0.1:{port}"
        req = urllib.request.Request(
            f"{base}/_apis/pipelines/workflows/3/artifacts", data=b"", method="POST"
        )
        with urllib.request.urlopen(req, timeout=5) as resp:
            assert json.loads(resp.read())["fileContainerResourceUrl"] == f"{base}/upload/3"

        req = urllib.request.Request(
            f"{base}/upload/3?itemPath=out.txt", data=b"payload", method="PUT"
        )
        with urllib.request.urlopen(req, timeout=5) as resp:
            assert json.loads(resp.read())["message"] == "success"
        assert (tmp_path / "3" / "out.txt").read_bytes() == b"payload"
    finally:
        cancel()