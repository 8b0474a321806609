"""
LocalFileStorage tests: durable writes, cleanup, path safety.
"""

from __future__ import annotations

import hashlib
import io
import os

import pytest

from assetstore.adapters.local_storage import LocalFileStorage, create_local_storage
from assetstore.core.ports.storage import KeyExistsError, KeyNotFoundError, StorageWriteError


@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "store", chunk_size=4)


class TestPut:
    def test_bytes_round_trip(self, storage) -> None:
        stored = storage.put("a.bin", b"hello world")

        assert stored.key == "a.bin"
        assert stored.size_bytes == 11
        assert storage.get("a.bin") == b"hello world"
        assert storage.size("a.bin") == 11

    def test_stream_written_in_chunks(self, storage) -> None:
        data = bytes(range(256)) * 3
        stored = storage.put("s.bin", io.BytesIO(data))

        assert stored.size_bytes == len(data)
        assert storage.get("s.bin") == data

    def test_existing_key_rejected(self, storage) -> None:
        storage.put("a.bin", b"one")

        with pytest.raises(KeyExistsError):
            storage.put("a.bin", b"two")

        assert storage.get("a.bin") == b"one"

    def test_derived_subdirectory(self, storage) -> None:
        storage.put("thumbnails/thumb_a.jpg", b"jpeg")
        assert (storage.base_path / "thumbnails" / "thumb_a.jpg").is_file()

    def test_no_partial_file_left_after_success(self, storage) -> None:
        storage.put("a.bin", b"data")
        assert [p.name for p in storage.base_path.iterdir() if p.is_file()] == ["a.bin"]

    def test_failed_write_removes_partial(self, storage) -> None:
        class ExplodingStream(io.RawIOBase):
            def __init__(self) -> None:
                self.calls = 0

            def read(self, size: int = -1) -> bytes:
                self.calls += 1
                if self.calls > 2:
                    raise OSError(28, "No space left on device")
                return b"abcd"

        with pytest.raises(StorageWriteError) as exc_info:
            storage.put("big.bin", ExplodingStream())

        assert exc_info.value.key == "big.bin"
        assert not storage.exists("big.bin")
        assert not any(p.name.endswith(".partial") for p in storage.base_path.iterdir())


class TestRead:
    def test_sha256_reads_from_disk(self, storage) -> None:
        storage.put("a.bin", b"payload")
        assert storage.sha256("a.bin") == hashlib.sha256(b"payload").hexdigest()

    def test_sha256_sees_on_disk_changes(self, storage) -> None:
        storage.put("a.bin", b"payload")
        (storage.base_path / "a.bin").write_bytes(b"tampered")
        assert storage.sha256("a.bin") == hashlib.sha256(b"tampered").hexdigest()

    def test_open_missing(self, storage) -> None:
        with pytest.raises(KeyNotFoundError):
            storage.open("missing.bin")

    def test_size_missing(self, storage) -> None:
        with pytest.raises(KeyNotFoundError):
            storage.size("missing.bin")

    def test_exists(self, storage) -> None:
        assert not storage.exists("a.bin")
        storage.put("a.bin", b"x")
        assert storage.exists("a.bin")


class TestDelete:
    def test_delete_existing(self, storage) -> None:
        storage.put("a.bin", b"x")
        assert storage.delete("a.bin") is True
        assert not storage.exists("a.bin")

    def test_delete_missing(self, storage) -> None:
        assert storage.delete("a.bin") is False


class TestPathSafety:
    @pytest.mark.parametrize("key", ["../escape.bin", "thumbnails/../../x", "/etc/passwd", ""])
    def test_traversal_rejected(self, storage, key) -> None:
        with pytest.raises(ValueError):
            storage.put(key, b"x")


class TestFactory:
    def test_env_var(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("ASSETS_UPLOAD_DIR", str(tmp_path / "from-env"))
        storage = create_local_storage()
        assert storage.base_path == (tmp_path / "from-env").resolve()
        assert os.path.isdir(storage.base_path / "thumbnails")

    def test_explicit_path_wins(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("ASSETS_UPLOAD_DIR", str(tmp_path / "from-env"))
        storage = create_local_storage(tmp_path / "explicit")
        assert storage.base_path == (tmp_path / "explicit").resolve()


class TestDirectories:
    def test_ensure_dirs_idempotent(self, tmp_path) -> None:
        storage = LocalFileStorage(tmp_path / "lazy", create_dirs=False)
        assert not (tmp_path / "lazy").exists()

        storage.ensure_dirs()
        storage.ensure_dirs()

        assert (tmp_path / "lazy" / "thumbnails").is_dir()
