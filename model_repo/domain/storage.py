# model_repo/domain/storage.py
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional

from loguru import logger

from ..core.errors import StorageError, ValidationError

CHUNK_SIZE = 1024 * 1024
FILE_MODE = 0o644
TMP_DIRNAME = ".tmp"


def safe_filename(name: str | None) -> str:
    """Strip any directory components a client may have sent with a filename."""
    base = os.path.basename((name or "").replace("\\", "/"))
    if base in ("", ".", ".."):
        raise ValidationError("Uploaded files must have a name")
    return base


@dataclass
class LocalModelStore:
    """
    One flat directory per model, ``<root>/models/<model_id>``, shared by all
    of that model's versions. A later upload of the same file name replaces
    the earlier file. Partial writes go to ``<root>/.tmp`` so the model
    directory only ever holds complete uploaded files.
    """

    root: str

    def location(self, model_id: int) -> Path:
        return Path(self.root) / "models" / str(model_id)

    def save(self, model_id: int, name: str, stream: BinaryIO) -> int:
        """Write ``stream`` as ``name`` in the model directory; returns bytes written."""
        directory = self.location(model_id)
        target = directory / safe_filename(name)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            staging = Path(self.root) / TMP_DIRNAME
            staging.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=staging, prefix="upload-")
            written = 0
            try:
                with os.fdopen(fd, "wb") as out:
                    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
                        out.write(chunk)
                        written += len(chunk)
                os.chmod(tmp, FILE_MODE)
                os.replace(tmp, target)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Failed to store {} for model {}: {}", name, model_id, exc)
            raise StorageError(f"Failed to store file {name}") from exc
        return written

    def list_files(self, model_id: int) -> Optional[List[str]]:
        """Sorted regular file names, or ``None`` when the directory is missing."""
        directory = self.location(model_id)
        try:
            entries = sorted(os.listdir(directory))
        except FileNotFoundError:
            return None
        except NotADirectoryError:
            return None
        return [name for name in entries if (directory / name).is_file()]

    def resolve(self, model_id: int, filename: str) -> Optional[Path]:
        """Path of an existing file inside the model directory, else ``None``."""
        directory = self.location(model_id).resolve()
        candidate = (directory / filename).resolve()
        if candidate.parent != directory or not candidate.is_file():
            return None
        return candidate

    def remove(self, model_id: int) -> bool:
        directory = self.location(model_id)
        if not directory.exists():
            return False
        try:
            shutil.rmtree(directory)
        except OSError as exc:
            logger.warning("Could not delete files for model {}: {}", model_id, exc)
            return False
        return True
