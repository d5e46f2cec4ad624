# model_repo/domain/versions.py
import os
from collections import OrderedDict
from typing import List, Optional, Sequence

from loguru import logger

from ..core.errors import NotFoundOrUnauthorized, PayloadTooLarge, ValidationError
from .hashing import fingerprint
from .metadata import METADATA_FILENAME, enrich, parse_metadata_yaml
from .models import DEFAULT_VERSION_LABEL, ModelVersion, UploadedFile
from .repos import CatalogRepo
from .storage import LocalModelStore, safe_filename

MAX_VERSION_LABEL = 50


def _measure(stream) -> int:
    try:
        size = stream.seek(0, os.SEEK_END)
        stream.seek(0)
    except (AttributeError, OSError):
        return 0
    return size


class VersionManager:
    """Turns an upload request into a new active version of a model."""

    def __init__(
        self,
        repo: CatalogRepo,
        store: LocalModelStore,
        default_format: str = "TensorFlow.js",
        max_upload_bytes: Optional[int] = None,
    ):
        self.repo = repo
        self.store = store
        self.default_format = default_format
        self.max_upload_bytes = max_upload_bytes

    def _prepare(self, files: Sequence[UploadedFile]) -> List[UploadedFile]:
        if not files:
            raise ValidationError("At least one file is required")
        # same name twice in one request: the later part wins, as it would on disk
        by_name: "OrderedDict[str, UploadedFile]" = OrderedDict()
        for f in files:
            name = safe_filename(f.name)
            by_name.pop(name, None)
            by_name[name] = UploadedFile(name=name, stream=f.stream, size=f.size or _measure(f.stream))
        prepared = list(by_name.values())

        total = sum(f.size for f in prepared)
        if self.max_upload_bytes is not None and total > self.max_upload_bytes:
            raise PayloadTooLarge(
                f"Upload of {total} bytes exceeds the {self.max_upload_bytes} byte limit"
            )
        return prepared

    def upload(
        self,
        model_id: int,
        owner_id: int,
        files: Sequence[UploadedFile],
        version_label: Optional[str] = None,
        created_date: Optional[str] = None,
    ) -> ModelVersion:
        model = self.repo.get_model(model_id)
        if model is None or model.owner_id != owner_id:
            logger.info(
                "Upload rejected for model {} by user {} ({})",
                model_id,
                owner_id,
                "missing" if model is None else "not owner",
            )
            raise NotFoundOrUnauthorized()

        label = (version_label or "").strip() or DEFAULT_VERSION_LABEL
        if len(label) > MAX_VERSION_LABEL:
            raise ValidationError(f"Version label must be at most {MAX_VERSION_LABEL} characters")

        prepared = self._prepare(files)

        metadata = {}
        for f in prepared:
            if f.name == METADATA_FILENAME:
                f.stream.seek(0)
                metadata = parse_metadata_yaml(f.stream.read())
                f.stream.seek(0)

        stored = []
        for f in sorted(prepared, key=lambda p: p.name):
            f.stream.seek(0)
            written = self.store.save(model_id, f.name, f.stream)
            stored.append((f.name, written))
        total_size = sum(size for _, size in stored)

        location = self.store.location(model_id)
        for f in prepared:
            f.stream.seek(0)
        metadata["model_hash"] = fingerprint((f.name, f.stream) for f in prepared)
        if created_date:
            metadata["form_created_date"] = created_date
        if not metadata.get("model_format"):
            metadata["model_format"] = self.default_format
        metadata = enrich(metadata, self.default_format)

        version = self.repo.add_active_version(
            model_id=model_id,
            version=label,
            storage_path=str(location),
            file_size=total_size,
            metadata=metadata,
        )
        logger.info(
            "Model {} version {} uploaded ({} files, {} bytes, hash {})",
            model_id,
            version.version,
            len(stored),
            total_size,
            metadata["model_hash"],
        )
        return version
