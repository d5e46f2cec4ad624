# model_repo/domain/archive.py
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from loguru import logger

from ..core.errors import NotFound
from .models import Model
from .repos import CatalogRepo
from .storage import LocalModelStore
from .visibility import Denied, Found, Lookup

CHUNK_SIZE = 64 * 1024
ARCHIVE_MEDIA_TYPE = "application/zip"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def archive_filename(name: Optional[str], model_id: int) -> str:
    if not name:
        return f"model-{model_id}.zip"
    return f"{_UNSAFE_CHARS.sub('_', name)}.zip"


class _ChunkSink:
    """Write-only, non-seekable buffer; zipfile falls back to streaming mode."""

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


@dataclass
class PreparedArchive:
    model_id: int
    filename: str
    directory: Path
    entries: List[str]

    @property
    def headers(self):
        return {"Content-Disposition": f'attachment; filename="{self.filename}"'}

    def iter_bytes(self) -> Iterator[bytes]:
        """
        Yield the ZIP as it is built. Files that vanish after enumeration are
        skipped; any other failure propagates and aborts the response.
        """
        sink = _ChunkSink()
        written = 0
        completed = False
        zf = zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED)
        try:
            for name in self.entries:
                path = self.directory / name
                try:
                    info = zipfile.ZipInfo.from_file(path, arcname=name)
                    src = path.open("rb")
                except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
                    logger.warning("Skipping {} in archive for model {}: {}", name, self.model_id, exc)
                    continue
                info.compress_type = zipfile.ZIP_DEFLATED
                with src, zf.open(info, mode="w") as dest:
                    for chunk in iter(lambda: src.read(CHUNK_SIZE), b""):
                        dest.write(chunk)
                        data = sink.drain()
                        if data:
                            yield data
                written += 1
                data = sink.drain()
                if data:
                    yield data
            zf.close()
            completed = True
            yield sink.drain()
            logger.info("Archive for model {} complete ({} files)", self.model_id, written)
        except GeneratorExit:
            logger.info("Archive stream for model {} closed by client", self.model_id)
            raise
        except Exception:
            logger.exception("Archive stream for model {} aborted", self.model_id)
            raise
        finally:
            if not completed:
                zf.fp = None


class ArchiveExporter:
    def __init__(self, repo: CatalogRepo, store: LocalModelStore):
        self.repo = repo
        self.store = store

    def prepare(self, model: Model) -> PreparedArchive:
        entries = self.store.list_files(model.id)
        if entries is None:
            raise NotFound("Model files not found")
        if not entries:
            raise NotFound("No files available for download")
        return PreparedArchive(
            model_id=model.id,
            filename=archive_filename(model.name, model.id),
            directory=self.store.location(model.id),
            entries=entries,
        )

    def stream_archive(self, model_id: int, viewer_id: Optional[int]) -> Lookup:
        """
        Check read access, then enumerate the model's files. Returns
        ``Found(PreparedArchive)`` or ``Denied``; raises ``NotFound`` when the
        storage location is missing or empty, before any bytes are produced.
        """
        lookup = self.repo.find_model(model_id, viewer_id)
        if isinstance(lookup, Denied):
            return lookup
        return Found(self.prepare(lookup.record))
