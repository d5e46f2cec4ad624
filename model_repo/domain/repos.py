# model_repo/domain/repos.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import false, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.database import Catalog
from ..core.errors import ConflictError
from .db_models import RegistryModel, RegistryModelVersion, UserModel, utcnow
from .models import Model, ModelSummary, ModelVersion, User
from .visibility import Visibility, check_read, Lookup


def page_offset(page: int, limit: int) -> int:
    return max((page - 1) * limit, 0)


def _visible_to(viewer_id: Optional[int]):
    """SQL counterpart of ``visibility.can_read``."""
    if viewer_id is None:
        return RegistryModel.visibility == Visibility.public.value
    return or_(
        RegistryModel.visibility.in_([Visibility.public.value, Visibility.members.value]),
        RegistryModel.user_id == viewer_id,
    )


def _summary_query():
    return (
        select(RegistryModel, UserModel.username, RegistryModelVersion)
        .join(UserModel, RegistryModel.user_id == UserModel.id)
        .outerjoin(
            RegistryModelVersion,
            (RegistryModelVersion.model_id == RegistryModel.id)
            & (RegistryModelVersion.is_active.is_(True)),
        )
    )


def _to_summary(row) -> ModelSummary:
    model, username, version = row
    return ModelSummary(
        model=model.to_domain(),
        owner=username,
        active_version=version.to_domain() if version is not None else None,
    )


class CatalogRepo:
    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    # ---------------- users ----------------

    def create_user(self, username: str, email: str, password_hash: str) -> User:
        with self.catalog.session() as s:
            existing = s.execute(
                select(UserModel.id).where(
                    or_(UserModel.username == username, UserModel.email == email)
                )
            ).first()
            if existing:
                raise ConflictError("Username or email already exists")
            row = UserModel(username=username, email=email, password_hash=password_hash)
            s.add(row)
            try:
                s.flush()
            except IntegrityError as exc:
                raise ConflictError("Username or email already exists") from exc
            return row.to_domain()

    def get_user(self, user_id: int) -> Optional[User]:
        with self.catalog.session() as s:
            row = s.get(UserModel, user_id)
            return row.to_domain() if row else None

    def get_credentials(self, username: str) -> Optional[Dict[str, Any]]:
        with self.catalog.session() as s:
            row = s.execute(select(UserModel).where(UserModel.username == username)).scalar_one_or_none()
            if row is None:
                return None
            return {"user": row.to_domain(), "password_hash": row.password_hash}

    def get_invite(self, user_id: int) -> Optional[Dict[str, Any]]:
        with self.catalog.session() as s:
            row = s.get(UserModel, user_id)
            if row is None:
                return None
            return {"token": row.invite_token, "expires": row.invite_token_expires}

    def set_invite(self, user_id: int, token: str, expires: datetime) -> bool:
        with self.catalog.session() as s:
            result = s.execute(
                update(UserModel)
                .where(UserModel.id == user_id)
                .values(invite_token=token, invite_token_expires=expires, updated_at=utcnow())
            )
            return result.rowcount > 0

    def find_invite_owner(self, token: str, now: datetime) -> Optional[int]:
        with self.catalog.session() as s:
            return s.execute(
                select(UserModel.id).where(
                    UserModel.invite_token == token,
                    UserModel.invite_token_expires > now,
                )
            ).scalar_one_or_none()

    # ---------------- models ----------------

    def create_model(
        self,
        owner_id: int,
        name: str,
        description: Optional[str],
        task_type: str,
        zoom_level: int,
        visibility: Visibility,
    ) -> Model:
        with self.catalog.session() as s:
            row = RegistryModel(
                name=name,
                description=description,
                task_type=task_type,
                zoom_level=zoom_level,
                user_id=owner_id,
                visibility=visibility.value,
            )
            s.add(row)
            s.flush()
            return row.to_domain()

    def get_model(self, model_id: int) -> Optional[Model]:
        with self.catalog.session() as s:
            row = s.get(RegistryModel, model_id)
            return row.to_domain() if row else None

    def find_model(self, model_id: int, viewer_id: Optional[int]) -> Lookup:
        return check_read(
            self.get_model(model_id),
            viewer_id,
            lambda m: m.visibility,
            lambda m: m.owner_id,
            model_id,
        )

    def find_summary(self, model_id: int, viewer_id: Optional[int]) -> Lookup:
        with self.catalog.session() as s:
            row = s.execute(_summary_query().where(RegistryModel.id == model_id)).first()
            summary = _to_summary(row) if row else None
        return check_read(
            summary,
            viewer_id,
            lambda m: m.model.visibility,
            lambda m: m.model.owner_id,
            model_id,
        )

    def list_models(
        self,
        viewer_id: Optional[int],
        task_type: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ModelSummary]:
        query = _summary_query().where(_visible_to(viewer_id))
        if task_type:
            query = query.where(RegistryModel.task_type == task_type)
        query = (
            query.order_by(RegistryModel.created_at.desc(), RegistryModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        with self.catalog.session() as s:
            return [_to_summary(row) for row in s.execute(query).all()]

    def list_owned(self, owner_id: int) -> List[ModelSummary]:
        query = (
            _summary_query()
            .where(RegistryModel.user_id == owner_id)
            .order_by(RegistryModel.created_at.desc(), RegistryModel.id.desc())
        )
        with self.catalog.session() as s:
            return [_to_summary(row) for row in s.execute(query).all()]

    def set_visibility(self, model_id: int, owner_id: int, visibility: Visibility) -> Optional[Model]:
        with self.catalog.session() as s:
            row = s.execute(
                select(RegistryModel).where(
                    RegistryModel.id == model_id, RegistryModel.user_id == owner_id
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            row.visibility = visibility.value
            row.updated_at = utcnow()
            s.flush()
            return row.to_domain()

    def delete_model(self, model_id: int) -> bool:
        with self.catalog.session() as s:
            row = s.get(RegistryModel, model_id)
            if row is None:
                return False
            s.delete(row)
            return True

    # ---------------- versions ----------------

    def list_versions(self, model_id: int) -> List[ModelVersion]:
        with self.catalog.session() as s:
            rows = s.execute(
                select(RegistryModelVersion)
                .where(RegistryModelVersion.model_id == model_id)
                .order_by(RegistryModelVersion.created_at.desc(), RegistryModelVersion.id.desc())
            ).scalars()
            return [row.to_domain() for row in rows]

    def add_active_version(
        self,
        model_id: int,
        version: str,
        storage_path: str,
        file_size: int,
        metadata: Dict[str, Any],
    ) -> ModelVersion:
        """
        Deactivate every version of ``model_id`` and insert the new one as active,
        in one transaction. The parent row is locked first so concurrent uploads
        to the same model apply one after the other.
        """
        with self.catalog.session() as s:
            return self._swap_active(s, model_id, version, storage_path, file_size, metadata)

    @staticmethod
    def _swap_active(
        s: Session,
        model_id: int,
        version: str,
        storage_path: str,
        file_size: int,
        metadata: Dict[str, Any],
    ) -> ModelVersion:
        s.execute(
            select(RegistryModel.id).where(RegistryModel.id == model_id).with_for_update()
        )
        s.execute(
            update(RegistryModelVersion)
            .where(RegistryModelVersion.model_id == model_id)
            .values(is_active=false())
        )
        row = RegistryModelVersion(
            model_id=model_id,
            version=version,
            file_path=storage_path,
            file_size=file_size,
            meta=metadata,
            is_active=True,
            created_at=utcnow(),
        )
        s.add(row)
        s.execute(
            update(RegistryModel).where(RegistryModel.id == model_id).values(updated_at=utcnow())
        )
        s.flush()
        return row.to_domain()
