# model_repo/api/v1/auth.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from loguru import logger

from ... import deps
from ...core.config import Settings
from ...core.errors import AuthenticationError, RegistrationDisabled, ValidationError
from ...core.security import create_jwt, hash_password, verify_password
from ...domain import repos, schemas
from ...domain.invites import Invite, InviteGate

router = APIRouter()


def _invite_result(invite: Invite, request: Request, settings: Settings) -> schemas.InviteResult:
    base_url = settings.PUBLIC_BASE_URL or str(request.base_url)
    return schemas.InviteResult(
        token=invite.token, url=invite.url(base_url), expires_at=invite.expires_at
    )


@router.post("/register", response_model=schemas.AuthResult, status_code=201)
def register(
    req: schemas.RegisterRequest,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    gate: InviteGate = Depends(deps.get_invite_gate),
    settings: Settings = Depends(deps.get_app_settings),
):
    if not gate.registration_allowed(req.token):
        raise RegistrationDisabled()
    if not req.username or not req.email or not req.password:
        raise ValidationError("Username, email, and password are required")

    user = repo.create_user(req.username, req.email, hash_password(req.password))
    logger.info("Registered user {} ({})", user.id, "invite" if req.token else "open")
    return schemas.AuthResult(
        user=schemas.UserOut.from_domain(user), token=create_jwt(user.id, user.username, settings)
    )


@router.post("/login", response_model=schemas.AuthResult)
def login(
    req: schemas.LoginRequest,
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    settings: Settings = Depends(deps.get_app_settings),
):
    if not req.username or not req.password:
        raise ValidationError("Username and password are required")
    creds = repo.get_credentials(req.username)
    if not creds or not verify_password(req.password, creds["password_hash"]):
        raise AuthenticationError("Invalid credentials")
    user = creds["user"]
    return schemas.AuthResult(
        user=schemas.UserOut.from_domain(user), token=create_jwt(user.id, user.username, settings)
    )


@router.get("/registration-enabled", response_model=schemas.RegistrationStatus)
def registration_enabled(
    token: Optional[str] = Query(None),
    gate: InviteGate = Depends(deps.get_invite_gate),
):
    return schemas.RegistrationStatus(enabled=gate.registration_allowed(token))


@router.post("/generate-invite-token", response_model=schemas.InviteResult)
def generate_invite_token(
    request: Request,
    gate: InviteGate = Depends(deps.get_invite_gate),
    settings: Settings = Depends(deps.get_app_settings),
    user: deps.CurrentUser = Depends(deps.require_user),
):
    return _invite_result(gate.generate(user.id), request, settings)


@router.post("/reset-invite-token", response_model=schemas.InviteResult)
def reset_invite_token(
    request: Request,
    gate: InviteGate = Depends(deps.get_invite_gate),
    settings: Settings = Depends(deps.get_app_settings),
    user: deps.CurrentUser = Depends(deps.require_user),
):
    return _invite_result(gate.reset(user.id), request, settings)
