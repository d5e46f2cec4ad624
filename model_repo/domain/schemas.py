# model_repo/domain/schemas.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from .models import DEFAULT_ZOOM_LEVEL, Model, ModelSummary, ModelVersion, User
from .visibility import Visibility


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, user: User) -> "UserOut":
        return cls(id=user.id, username=user.username, email=user.email, created_at=user.created_at)


class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class AuthResult(BaseModel):
    user: UserOut
    token: str


class RegistrationStatus(BaseModel):
    enabled: bool


class InviteResult(BaseModel):
    token: str
    url: str
    expires_at: datetime


class ModelCreate(BaseModel):
    # task_type / zoom_level / visibility are checked in the route so the
    # client gets the specific 400 message rather than a generic schema error
    name: Optional[str] = None
    description: Optional[str] = None
    task_type: Optional[str] = None
    zoom_level: Any = DEFAULT_ZOOM_LEVEL
    visibility: Any = Visibility.private.value


class VisibilityPatch(BaseModel):
    visibility: Any = None


class ModelOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    task_type: str
    zoom_level: int
    visibility: Visibility
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, m: Model) -> "ModelOut":
        return cls(
            id=m.id,
            name=m.name,
            description=m.description,
            task_type=m.task_type,
            zoom_level=m.zoom_level,
            visibility=m.visibility,
            created_at=m.created_at,
            updated_at=m.updated_at,
        )


class ModelDetail(ModelOut):
    owner: str
    version: Optional[str] = None
    file_size: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_summary(cls, summary: ModelSummary) -> "ModelDetail":
        m = summary.model
        v = summary.active_version
        return cls(
            id=m.id,
            name=m.name,
            description=m.description,
            task_type=m.task_type,
            zoom_level=m.zoom_level,
            visibility=m.visibility,
            created_at=m.created_at,
            updated_at=m.updated_at,
            owner=summary.owner,
            version=v.version if v else None,
            file_size=v.file_size if v else None,
            metadata=v.metadata if v else None,
        )


class VersionOut(BaseModel):
    id: int
    model_id: int
    version: str
    file_path: str
    file_size: int
    metadata: Dict[str, Any]
    is_active: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, v: ModelVersion) -> "VersionOut":
        return cls(
            id=v.id,
            model_id=v.model_id,
            version=v.version,
            file_path=v.storage_path,
            file_size=v.file_size,
            metadata=v.metadata,
            is_active=v.is_active,
            created_at=v.created_at,
        )


class UploadResult(BaseModel):
    message: str
    version: VersionOut


class MessageResult(BaseModel):
    message: str


class HealthResult(BaseModel):
    status: str
    timestamp: datetime

