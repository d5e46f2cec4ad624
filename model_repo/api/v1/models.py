# model_repo/api/v1/models.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse, StreamingResponse
from loguru import logger

from ... import deps
from ...core.config import Settings
from ...core.errors import NotFound, NotFoundOrUnauthorized, ValidationError
from ...domain import repos, schemas, storage
from ...domain.archive import ARCHIVE_MEDIA_TYPE, ArchiveExporter
from ...domain.models import MAX_ZOOM_LEVEL, MIN_ZOOM_LEVEL, TASK_TYPES, UploadedFile
from ...domain.versions import VersionManager
from ...domain.visibility import Denied, Lookup, Visibility

router = APIRouter()


def found_or_404(lookup: Lookup, user_id: Optional[int]):
    """Collapse a denied lookup into the one external answer: not found."""
    if isinstance(lookup, Denied):
        logger.info(
            "Read of model {} by {} denied ({})",
            lookup.model_id,
            user_id if user_id is not None else "anonymous",
            lookup.reason.value,
        )
        raise NotFoundOrUnauthorized()
    return lookup.record


def _zoom_level(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("Zoom level must be between 8 and 21")
    try:
        zoom = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Zoom level must be between 8 and 21") from None
    if zoom != value and str(zoom) != str(value).strip():
        raise ValidationError("Zoom level must be between 8 and 21")
    if zoom < MIN_ZOOM_LEVEL or zoom > MAX_ZOOM_LEVEL:
        raise ValidationError("Zoom level must be between 8 and 21")
    return zoom


@router.get("", response_model=List[schemas.ModelDetail])
def list_models(
    task_type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    viewer: Optional[int] = Depends(deps.viewer_id),
    settings: Settings = Depends(deps.get_app_settings),
):
    limit = min(limit or settings.DEFAULT_PAGE_LIMIT, settings.MAX_PAGE_SIZE)
    rows = repo.list_models(
        viewer_id=viewer,
        task_type=task_type,
        limit=limit,
        offset=repos.page_offset(page, limit),
    )
    return [schemas.ModelDetail.from_summary(r) for r in rows]


@router.post("", response_model=schemas.ModelOut, status_code=201)
def create_model(
    body: schemas.ModelCreate,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    user: deps.CurrentUser = Depends(deps.require_user),
):
    if not body.name or not body.task_type:
        raise ValidationError("Name and task_type are required")
    if body.task_type not in TASK_TYPES:
        raise ValidationError("Invalid task_type")
    zoom = _zoom_level(body.zoom_level)
    visibility = Visibility.parse(body.visibility)
    model = repo.create_model(
        owner_id=user.id,
        name=body.name,
        description=body.description,
        task_type=body.task_type,
        zoom_level=zoom,
        visibility=visibility,
    )
    logger.info("User {} created model {} ({})", user.id, model.id, model.name)
    return schemas.ModelOut.from_domain(model)


@router.get("/{model_id}", response_model=schemas.ModelDetail)
def get_model(
    model_id: int,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    viewer: Optional[int] = Depends(deps.viewer_id),
):
    summary = found_or_404(repo.find_summary(model_id, viewer), viewer)
    return schemas.ModelDetail.from_summary(summary)


@router.get("/{model_id}/versions", response_model=List[schemas.VersionOut])
def list_versions(
    model_id: int,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    viewer: Optional[int] = Depends(deps.viewer_id),
):
    found_or_404(repo.find_model(model_id, viewer), viewer)
    return [schemas.VersionOut.from_domain(v) for v in repo.list_versions(model_id)]


@router.post("/{model_id}/upload", response_model=schemas.UploadResult)
def upload_version(
    model_id: int,
    files: List[UploadFile] = File(default=[]),
    version: Optional[str] = Form(default=None),
    created_date: Optional[str] = Form(default=None),
    manager: VersionManager = Depends(deps.get_version_manager),
    user: deps.CurrentUser = Depends(deps.require_user),
):
    parts = [UploadedFile(name=f.filename or "", stream=f.file, size=f.size or 0) for f in files]
    new_version = manager.upload(
        model_id=model_id,
        owner_id=user.id,
        files=parts,
        version_label=version,
        created_date=created_date,
    )
    return schemas.UploadResult(
        message="Model uploaded successfully",
        version=schemas.VersionOut.from_domain(new_version),
    )


@router.get("/{model_id}/files", response_model=List[str])
def list_files(
    model_id: int,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    store: storage.LocalModelStore = Depends(deps.get_store),
    viewer: Optional[int] = Depends(deps.viewer_id),
):
    found_or_404(repo.find_model(model_id, viewer), viewer)
    return store.list_files(model_id) or []


@router.get("/{model_id}/download-all")
def download_all(
    model_id: int,
    exporter: ArchiveExporter = Depends(deps.get_archive_exporter),
    viewer: Optional[int] = Depends(deps.viewer_id),
):
    archive = found_or_404(exporter.stream_archive(model_id, viewer), viewer)
    return StreamingResponse(
        archive.iter_bytes(),
        media_type=ARCHIVE_MEDIA_TYPE,
        headers=archive.headers,
    )


@router.get("/{model_id}/download/{filename}")
def download_file(
    model_id: int,
    filename: str,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    store: storage.LocalModelStore = Depends(deps.get_store),
    viewer: Optional[int] = Depends(deps.viewer_id),
):
    found_or_404(repo.find_model(model_id, viewer), viewer)
    path = store.resolve(model_id, filename)
    if path is None:
        raise NotFound(f"File {filename} not found")
    return FileResponse(str(path), filename=filename)


@router.patch("/{model_id}/visibility", response_model=schemas.ModelOut)
def update_visibility(
    model_id: int,
    body: schemas.VisibilityPatch,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    user: deps.CurrentUser = Depends(deps.require_user),
):
    visibility = Visibility.parse(body.visibility)
    model = repo.set_visibility(model_id, user.id, visibility)
    if model is None:
        raise NotFoundOrUnauthorized()
    logger.info("Model {} visibility set to {}", model_id, visibility.value)
    return schemas.ModelOut.from_domain(model)


@router.delete("/{model_id}", response_model=schemas.MessageResult)
def delete_model(
    model_id: int,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    store: storage.LocalModelStore = Depends(deps.get_store),
    user: deps.CurrentUser = Depends(deps.require_user),
):
    model = repo.get_model(model_id)
    if model is None or model.owner_id != user.id:
        raise NotFoundOrUnauthorized()
    store.remove(model_id)
    repo.delete_model(model_id)
    logger.info("Model {} deleted by user {}", model_id, user.id)
    return schemas.MessageResult(message="Model deleted successfully")
