"""Tests for the streaming ZIP export."""

import io
import zipfile
from pathlib import Path

import pytest

from model_repo.core.errors import NotFound
from model_repo.domain.archive import ArchiveExporter, archive_filename
from model_repo.domain.visibility import Denied, DenyReason, Found, Visibility


@pytest.fixture
def exporter(repo, store):
    return ArchiveExporter(repo, store)


def _write(store, model_id, files):
    for name, data in files.items():
        store.save(model_id, name, io.BytesIO(data))


class TestArchiveFilename:
    """Download names keep only [a-zA-Z0-9_-]."""

    def test_sanitized(self):
        assert archive_filename("Test Model! @#$%", 7) == "Test_Model______.zip"

    def test_plain_name_unchanged(self):
        assert archive_filename("yolo-v8_small", 7) == "yolo-v8_small.zip"

    @pytest.mark.parametrize("name", [None, ""])
    def test_fallback(self, name):
        assert archive_filename(name, 42) == "model-42.zip"


class TestPrepare:
    """Failures detected before any bytes are produced."""

    def test_missing_directory(self, exporter, make_user, make_model):
        model = make_model(make_user())
        with pytest.raises(NotFound) as excinfo:
            exporter.prepare(model)
        assert excinfo.value.message == "Model files not found"

    def test_empty_directory(self, exporter, store, make_user, make_model):
        model = make_model(make_user())
        store.location(model.id).mkdir(parents=True)
        with pytest.raises(NotFound) as excinfo:
            exporter.prepare(model)
        assert excinfo.value.message == "No files available for download"

    def test_headers(self, exporter, store, make_user, make_model):
        model = make_model(make_user(), name="Test Model! @#$%")
        _write(store, model.id, {"a.txt": b"a"})
        prepared = exporter.prepare(model)
        assert prepared.headers["Content-Disposition"] == 'attachment; filename="Test_Model______.zip"'


class TestIterBytes:
    """The streamed bytes form a valid archive."""

    def test_contents(self, exporter, store, make_user, make_model):
        model = make_model(make_user())
        files = {"model.json": b"{}", "weights.bin": bytes(range(256)) * 1000, "metadata.yaml": b"a: 1\n"}
        _write(store, model.id, files)

        data = b"".join(exporter.prepare(model).iter_bytes())

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert sorted(zf.namelist()) == sorted(files)
            for name, content in files.items():
                assert zf.read(name) == content

    def test_vanished_file_skipped(self, exporter, store, make_user, make_model):
        model = make_model(make_user())
        _write(store, model.id, {"keep.txt": b"keep", "gone.txt": b"gone"})
        prepared = exporter.prepare(model)
        (store.location(model.id) / "gone.txt").unlink()

        data = b"".join(prepared.iter_bytes())

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.namelist() == ["keep.txt"]
            assert zf.read("keep.txt") == b"keep"

    def test_failure_after_start_aborts(self, exporter, store, make_user, make_model, monkeypatch):
        model = make_model(make_user())
        _write(store, model.id, {"a.bin": b"a" * 5000, "b.bin": b"b" * 5000})
        prepared = exporter.prepare(model)
        real_open = Path.open

        def guarded_open(self, *args, **kwargs):
            if self.name == "b.bin":
                raise PermissionError(13, "Permission denied", str(self))
            return real_open(self, *args, **kwargs)

        monkeypatch.setattr(Path, "open", guarded_open)

        chunks = []
        with pytest.raises(PermissionError):
            for chunk in prepared.iter_bytes():
                chunks.append(chunk)

        data = b"".join(chunks)
        # the first entry went out before the failure
        assert data.startswith(b"PK\x03\x04")
        # no end-of-central-directory record
        assert b"PK\x05\x06" not in data
        with pytest.raises(zipfile.BadZipFile):
            zipfile.ZipFile(io.BytesIO(data))

    def test_early_close(self, exporter, store, make_user, make_model):
        model = make_model(make_user())
        _write(store, model.id, {"a.bin": b"x" * 200_000, "b.bin": b"y" * 200_000})
        stream = exporter.prepare(model).iter_bytes()
        next(stream)
        stream.close()


class TestStreamArchive:
    """Access control runs before enumeration."""

    def test_private_model_anonymous(self, exporter, store, make_user, make_model):
        model = make_model(make_user())
        _write(store, model.id, {"a.txt": b"a"})
        result = exporter.stream_archive(model.id, None)
        assert result == Denied(DenyReason.forbidden, model.id)

    def test_missing_model(self, exporter):
        result = exporter.stream_archive(12345, None)
        assert isinstance(result, Denied)
        assert result.reason is DenyReason.missing

    def test_public_model_anonymous(self, exporter, store, make_user, make_model):
        model = make_model(make_user(), visibility=Visibility.public)
        _write(store, model.id, {"a.txt": b"a"})
        result = exporter.stream_archive(model.id, None)
        assert isinstance(result, Found)
        assert result.record.entries == ["a.txt"]
