"""Tests for the taxonomy tree builder and the /api/v1/taxonomy endpoints."""
import pytest
from httpx import ASGITransport, AsyncClient

from app.core.deps import get_taxonomy_repository
from app.main import app
from app.schemas.taxonomy import TaskRecord
from app.services.taxonomy_tree import build_tree

from fakes import FakeTaxonomyRepository, sample_snapshot


# ─── build_tree ───────────────────────────────────────────────────────────────

def test_tree_nests_families_and_familyless_groups():
    tree = build_tree(sample_snapshot())

    universe = tree.universes[0]
    phylum = universe.phyla[0]
    assert (universe.code, phylum.code) == ("W", "R")

    family = phylum.families[0]
    assert family.code == "A"
    assert [g.group_num for g in family.groups] == [1]
    assert [t.base_code for t in family.groups[0].tasks] == ["WRA-01.01", "WRA-01.02"]

    assert [g.group_num for g in phylum.groups] == [2]
    assert phylum.groups[0].tasks[0].status == "D"


def test_task_without_group_row_gets_synthetic_group():
    snapshot = sample_snapshot()
    snapshot.tasks.append(
        TaskRecord(
            id="t-9", base_code="WR-05.01", title="Orphan", current_status="R",
            universe_code="W", phylum_code="R", group_num=5, task_num=1,
        )
    )

    phylum = build_tree(snapshot).universes[0].phyla[0]

    orphan_group = next(g for g in phylum.groups if g.group_num == 5)
    assert orphan_group.name is None
    assert orphan_group.task_count == 1
    assert orphan_group.tasks[0].title == "Orphan"


def test_empty_snapshot_is_empty_tree():
    assert build_tree(FakeTaxonomyRepository().snapshot).universes == []


# ─── Endpoints ────────────────────────────────────────────────────────────────

def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_tree_endpoint():
    app.dependency_overrides[get_taxonomy_repository] = lambda: FakeTaxonomyRepository(sample_snapshot())
    try:
        async with _client() as client:
            resp = await client.get("/api/v1/taxonomy/tree")
        assert resp.status_code == 200
        data = resp.json()
        assert data["universes"][0]["name"] == "Work"
        assert data["universes"][0]["phyla"][0]["families"][0]["groups"][0]["task_count"] == 2
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_next_code_continues_phylum_numbering():
    repo = FakeTaxonomyRepository(sample_snapshot(), last_numbers=(2, 1))
    app.dependency_overrides[get_taxonomy_repository] = lambda: repo
    try:
        async with _client() as client:
            resp = await client.get("/api/v1/taxonomy/next-code", params={"universe": "w", "phylum": "r", "family": "a"})
        assert resp.status_code == 200
        assert resp.json() == {
            "universe_code": "W",
            "phylum_code": "R",
            "family_code": "A",
            "group_num": 2,
            "task_num": 2,
            "base_code": "WRA-02.02",
        }
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_next_code_unknown_phylum_is_404():
    app.dependency_overrides[get_taxonomy_repository] = lambda: FakeTaxonomyRepository(sample_snapshot())
    try:
        async with _client() as client:
            resp = await client.get("/api/v1/taxonomy/next-code", params={"universe": "W", "phylum": "Z"})
        assert resp.status_code == 404
    finally:
        app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_next_code_exhausted_phylum_is_409():
    repo = FakeTaxonomyRepository(sample_snapshot(), last_numbers=(99, 99))
    app.dependency_overrides[get_taxonomy_repository] = lambda: repo
    try:
        async with _client() as client:
            resp = await client.get("/api/v1/taxonomy/next-code", params={"universe": "W", "phylum": "R"})
        assert resp.status_code == 409
    finally:
        app.dependency_overrides.clear()
