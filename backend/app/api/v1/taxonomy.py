"""Taxonomy browsing, task code allocation, and universe/phylum/family/group management."""
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.deps import get_taxonomy_repository
from app.schemas.taxonomy import (
    FamilyCreate,
    FamilyRecord,
    FamilyUpdate,
    GroupCreate,
    GroupRecord,
    GroupUpdate,
    NextTaskCode,
    PhylumCreate,
    PhylumRecord,
    PhylumUpdate,
    TaxonomyTree,
    UniverseCreate,
    UniverseRecord,
    UniverseUpdate,
)
from app.services.task_codes import MAX_GROUP_NUM, derive_base_code, next_task_numbers
from app.services.taxonomy_repo import (
    TaxonomyConflictError,
    TaxonomyNotFoundError,
    TaxonomyRepository,
)
from app.services.taxonomy_tree import build_tree

router = APIRouter()


# ─── GET /taxonomy/tree ───

@router.get("/tree", response_model=TaxonomyTree, summary="Universe → Phylum → Family → Group → Task tree")
async def get_taxonomy_tree(
    repository: Annotated[TaxonomyRepository, Depends(get_taxonomy_repository)],
):
    return build_tree(await repository.load_snapshot())


# ─── GET /taxonomy/next-code ───

@router.get("/next-code", response_model=NextTaskCode, summary="Next free task code in a universe/phylum")
async def get_next_task_code(
    repository: Annotated[TaxonomyRepository, Depends(get_taxonomy_repository)],
    universe: str = Query(..., min_length=1, max_length=1),
    phylum: str = Query(..., min_length=1, max_length=1),
    family: str = Query(default="", max_length=1),
):
    universe, phylum, family = universe.upper(), phylum.upper(), family.upper()

    if await repository.find_phylum(universe, phylum) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Phylum '{universe}{phylum}' not found.",
        )

    group_num, task_num = next_task_numbers(await repository.last_task_numbers(universe, phylum))
    if group_num > MAX_GROUP_NUM:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Phylum '{universe}{phylum}' has no free task numbers left.",
        )

    return NextTaskCode(
        universe_code=universe,
        phylum_code=phylum,
        family_code=family,
        group_num=group_num,
        task_num=task_num,
        base_code=derive_base_code(universe, phylum, family, group_num, task_num),
    )


# ─── Management ───

Repository = Annotated[TaxonomyRepository, Depends(get_taxonomy_repository)]


@contextmanager
def _repository_errors() -> Iterator[None]:
    try:
        yield
    except TaxonomyNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except TaxonomyConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


def _require_updates(body) -> None:
    if not body.model_dump(exclude_unset=True):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update.")


@router.post(
    "/universes",
    response_model=UniverseRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create a universe",
)
async def create_universe(body: UniverseCreate, repository: Repository):
    with _repository_errors():
        return await repository.create_universe(body)


@router.patch("/universes/{universe_id}", response_model=UniverseRecord, summary="Edit a universe")
async def update_universe(universe_id: uuid.UUID, body: UniverseUpdate, repository: Repository):
    _require_updates(body)
    with _repository_errors():
        return await repository.update_universe(universe_id, body)


@router.post(
    "/phyla",
    response_model=PhylumRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create a phylum inside a universe",
)
async def create_phylum(body: PhylumCreate, repository: Repository):
    with _repository_errors():
        return await repository.create_phylum(body)


@router.patch("/phyla/{phylum_id}", response_model=PhylumRecord, summary="Edit a phylum")
async def update_phylum(phylum_id: uuid.UUID, body: PhylumUpdate, repository: Repository):
    _require_updates(body)
    with _repository_errors():
        return await repository.update_phylum(phylum_id, body)


@router.post(
    "/families",
    response_model=FamilyRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create a family inside a phylum",
)
async def create_family(body: FamilyCreate, repository: Repository):
    with _repository_errors():
        return await repository.create_family(body)


@router.patch("/families/{family_id}", response_model=FamilyRecord, summary="Edit a family")
async def update_family(family_id: uuid.UUID, body: FamilyUpdate, repository: Repository):
    _require_updates(body)
    with _repository_errors():
        return await repository.update_family(family_id, body)


@router.post(
    "/groups",
    response_model=GroupRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create a numbered group in a phylum or family",
)
async def create_group(body: GroupCreate, repository: Repository):
    with _repository_errors():
        return await repository.create_group(body)


@router.patch("/groups/{group_id}", response_model=GroupRecord, summary="Rename a group")
async def update_group(group_id: uuid.UUID, body: GroupUpdate, repository: Repository):
    _require_updates(body)
    with _repository_errors():
        return await repository.update_group(group_id, body)
