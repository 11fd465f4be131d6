"""Build the Universe → Phylum → Family → Group → Task drill-down tree."""
from collections import defaultdict

from app.schemas.taxonomy import (
    FamilyNode,
    GroupNode,
    GroupRecord,
    PhylumNode,
    TaskNode,
    TaxonomySnapshot,
    TaxonomyTree,
    UniverseNode,
)


def _order(display_order: int | None, code: str) -> tuple:
    return (display_order is None, display_order or 0, code)


def build_tree(snapshot: TaxonomySnapshot) -> TaxonomyTree:
    """Nest the flat snapshot.

    Groups without a family hang directly off their phylum. Tasks attach to
    the group with the same universe/phylum/family/group number; tasks whose
    group row is missing get a synthetic, unnamed group so nothing is lost.
    """
    tasks_by_group: dict[tuple, list[TaskNode]] = defaultdict(list)
    for t in sorted(snapshot.tasks, key=lambda t: t.base_code):
        key = (t.universe_code, t.phylum_code, t.family_code, t.group_num)
        tasks_by_group[key].append(
            TaskNode(
                id=t.id,
                base_code=t.base_code,
                title=t.title,
                status=t.effective_status,
                priority=t.priority,
            )
        )

    groups: list[GroupRecord] = list(snapshot.groups)
    known = {(g.universe_code, g.phylum_code, g.family_code, g.group_num) for g in groups}
    for key, tasks in tasks_by_group.items():
        if key not in known and key[3] is not None:
            groups.append(
                GroupRecord(
                    universe_code=key[0],
                    phylum_code=key[1],
                    family_code=key[2],
                    group_num=key[3],
                    task_count=len(tasks),
                )
            )

    groups_by_parent: dict[tuple, list[GroupNode]] = defaultdict(list)
    for g in sorted(groups, key=lambda g: g.group_num):
        key = (g.universe_code, g.phylum_code, g.family_code, g.group_num)
        groups_by_parent[(g.universe_code, g.phylum_code, g.family_code)].append(
            GroupNode(
                group_num=g.group_num,
                name=g.name,
                task_count=g.task_count,
                tasks=tasks_by_group.get(key, []),
            )
        )

    families_by_phylum: dict[tuple, list[FamilyNode]] = defaultdict(list)
    for f in sorted(snapshot.families, key=lambda f: _order(f.display_order, f.code)):
        families_by_phylum[(f.universe_code, f.phylum_code)].append(
            FamilyNode(
                code=f.code,
                name=f.name,
                groups=groups_by_parent.get((f.universe_code, f.phylum_code, f.code), []),
            )
        )

    phyla_by_universe: dict[str, list[PhylumNode]] = defaultdict(list)
    for p in sorted(snapshot.phyla, key=lambda p: _order(p.display_order, p.code)):
        phyla_by_universe[p.universe_code].append(
            PhylumNode(
                code=p.code,
                name=p.name,
                families=families_by_phylum.get((p.universe_code, p.code), []),
                groups=groups_by_parent.get((p.universe_code, p.code, ""), []),
            )
        )

    return TaxonomyTree(
        universes=[
            UniverseNode(code=u.code, name=u.name, phyla=phyla_by_universe.get(u.code, []))
            for u in sorted(snapshot.universes, key=lambda u: _order(u.display_order, u.code))
        ]
    )
