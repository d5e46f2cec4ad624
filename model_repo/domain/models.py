# model_repo/domain/models.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Dict, Optional

from .visibility import Visibility

TASK_TYPES = ("detect", "obb", "pose")
MIN_ZOOM_LEVEL = 8
MAX_ZOOM_LEVEL = 21
DEFAULT_ZOOM_LEVEL = 19
DEFAULT_VERSION_LABEL = "1.0.0"


@dataclass
class User:
    id: int
    username: str
    email: str
    created_at: datetime | None = None


@dataclass
class Model:
    id: int
    name: str
    description: str | None
    task_type: str
    zoom_level: int
    owner_id: int
    visibility: Visibility
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ModelVersion:
    id: int
    model_id: int
    version: str
    storage_path: str
    file_size: int
    metadata: Dict[str, Any]
    is_active: bool
    created_at: datetime | None = None


@dataclass
class ModelSummary:
    """A model joined with its owner's username and its active version, if any."""

    model: Model
    owner: str
    active_version: Optional[ModelVersion] = None


@dataclass
class UploadedFile:
    """One named part of an upload; ``stream`` is a readable binary file object."""

    name: str
    stream: BinaryIO
    size: int = field(default=0)
