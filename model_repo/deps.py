# model_repo/deps.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request
from loguru import logger

from .core.config import Settings, get_settings
from .core.database import Catalog
from .core.errors import AuthenticationError
from .core.security import decode_jwt
from .domain import repos, storage
from .domain.archive import ArchiveExporter
from .domain.invites import InviteGate
from .domain.versions import VersionManager


@dataclass(frozen=True)
class CurrentUser:
    id: int
    username: str


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_repo(catalog: Catalog = Depends(get_catalog)) -> repos.CatalogRepo:
    return repos.CatalogRepo(catalog)


def get_store(request: Request) -> storage.LocalModelStore:
    return request.app.state.store


def get_version_manager(
    repo: repos.CatalogRepo = Depends(get_repo),
    store: storage.LocalModelStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> VersionManager:
    return VersionManager(
        repo,
        store,
        default_format=settings.DEFAULT_MODEL_FORMAT,
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
    )


def get_archive_exporter(
    repo: repos.CatalogRepo = Depends(get_repo),
    store: storage.LocalModelStore = Depends(get_store),
) -> ArchiveExporter:
    return ArchiveExporter(repo, store)


def get_invite_gate(
    repo: repos.CatalogRepo = Depends(get_repo),
    settings: Settings = Depends(get_app_settings),
) -> InviteGate:
    return InviteGate(
        repo,
        ttl_days=settings.INVITE_TTL_DAYS,
        registration_disabled=settings.DISABLE_REGISTRATION,
    )


def _bearer(authorization: str | None) -> str | None:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def _user_from_token(token: str, settings: Settings) -> CurrentUser:
    payload = decode_jwt(token, settings)
    try:
        return CurrentUser(id=int(payload["sub"]), username=str(payload.get("username", "")))
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid token") from exc


def require_user(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser:
    token = _bearer(authorization)
    if token is None:
        raise AuthenticationError("Access token required")
    return _user_from_token(token, settings)


def optional_user(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> Optional[CurrentUser]:
    token = _bearer(authorization)
    if token is None:
        return None
    try:
        return _user_from_token(token, settings)
    except AuthenticationError:
        logger.debug("Ignoring invalid bearer token on an anonymous-capable route")
        return None


def viewer_id(user: Optional[CurrentUser] = Depends(optional_user)) -> Optional[int]:
    return user.id if user else None
