# model_repo/domain/db_models.py
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo so everything is stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    invite_token = Column(String(64), unique=True, nullable=True)
    invite_token_expires = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    models = relationship(
        "RegistryModel",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_domain(self):
        from .models import User

        return User(
            id=self.id,
            username=self.username,
            email=self.email,
            created_at=self.created_at,
        )


class RegistryModel(Base):
    __tablename__ = "models"
    __table_args__ = (
        CheckConstraint("task_type IN ('detect', 'obb', 'pose')", name="ck_models_task_type"),
        CheckConstraint("zoom_level BETWEEN 8 AND 21", name="ck_models_zoom_level"),
        CheckConstraint(
            "visibility IN ('private', 'members', 'public')", name="ck_models_visibility"
        ),
        Index("idx_models_task_type", "task_type"),
        Index("idx_models_visibility", "visibility"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    task_type = Column(String(20), nullable=False)
    zoom_level = Column(Integer, nullable=False, default=19)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    visibility = Column(String(10), nullable=False, default="private")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("UserModel", back_populates="models")
    versions = relationship(
        "RegistryModelVersion",
        back_populates="model",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_domain(self):
        from .models import Model
        from .visibility import Visibility

        return Model(
            id=self.id,
            name=self.name,
            description=self.description,
            task_type=self.task_type,
            zoom_level=self.zoom_level,
            owner_id=self.user_id,
            visibility=Visibility(self.visibility),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class RegistryModelVersion(Base):
    __tablename__ = "model_versions"
    __table_args__ = (
        Index("idx_model_versions_active", "is_active"),
        # at most one active version per model
        Index(
            "uq_model_versions_one_active",
            "model_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    model_id = Column(Integer, ForeignKey("models.id", ondelete="CASCADE"), nullable=False)
    version = Column(String(50), nullable=False)
    file_path = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    model = relationship("RegistryModel", back_populates="versions")

    def to_domain(self):
        from .models import ModelVersion

        return ModelVersion(
            id=self.id,
            model_id=self.model_id,
            version=self.version,
            storage_path=self.file_path,
            file_size=self.file_size or 0,
            metadata=dict(self.meta or {}),
            is_active=bool(self.is_active),
            created_at=self.created_at,
        )
