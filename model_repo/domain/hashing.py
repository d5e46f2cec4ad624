# model_repo/domain/hashing.py
import hashlib
from pathlib import Path
from typing import BinaryIO, Iterable, Tuple, Union

CHUNK_SIZE = 1024 * 1024

Content = Union[bytes, BinaryIO, Path]


def _iter_content(content: Content) -> Iterable[bytes]:
    if isinstance(content, (bytes, bytearray)):
        yield bytes(content)
        return
    if isinstance(content, Path):
        with content.open("rb") as f:
            yield from iter(lambda: f.read(CHUNK_SIZE), b"")
        return
    yield from iter(lambda: content.read(CHUNK_SIZE), b"")


def fingerprint(files: Iterable[Tuple[str, Content]]) -> str:
    """
    Deterministic SHA-256 over a set of named files.

    Files are sorted by name, then each file's name and full content are fed
    into one cumulative hash. Upload order does not matter; renaming a file
    changes the digest even when the bytes are identical.
    """
    hasher = hashlib.sha256()
    for name, content in sorted(files, key=lambda item: item[0]):
        hasher.update(name.encode("utf-8"))
        for chunk in _iter_content(content):
            hasher.update(chunk)
    return hasher.hexdigest()
