# model_repo/api/v1/users.py
from typing import List

from fastapi import APIRouter, Depends

from ... import deps
from ...core.errors import NotFound
from ...domain import repos, schemas

router = APIRouter()


@router.get("/me", response_model=schemas.UserOut)
def me(
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    user: deps.CurrentUser = Depends(deps.require_user),
):
    found = repo.get_user(user.id)
    if found is None:
        raise NotFound("User not found")
    return schemas.UserOut.from_domain(found)


@router.get("/me/models", response_model=List[schemas.ModelDetail])
def my_models(
    repo: repos.CatalogRepo = Depends(deps.get_repo),
    user: deps.CurrentUser = Depends(deps.require_user),
):
    return [schemas.ModelDetail.from_summary(s) for s in repo.list_owned(user.id)]
