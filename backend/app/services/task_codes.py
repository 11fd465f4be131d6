"""Task code helpers.

A task's base code is ``{U}{P}{F?}-{GG}.{TT}``: the universe, phylum and
optional family letters followed by the zero-padded group and task numbers,
e.g. ``WK-03.12`` or ``WKA-01.01``.
"""
import re

BASE_CODE_RE = re.compile(r"[A-Z]{2,3}-\d{2}\.\d{2}", re.ASCII)

MIN_NUM = 1
MAX_GROUP_NUM = 99
MAX_TASK_NUM = 99


def derive_base_code(
    universe_code: str,
    phylum_code: str,
    family_code: str | None,
    group_num: int,
    task_num: int,
) -> str:
    prefix = f"{universe_code}{phylum_code}{family_code or ''}".upper()
    return f"{prefix}-{group_num:02d}.{task_num:02d}"


def is_valid_base_code(code: str | None) -> bool:
    return bool(code) and BASE_CODE_RE.fullmatch(code) is not None


def next_task_numbers(last: tuple[int, int] | None) -> tuple[int, int]:
    """Next free (group_num, task_num) after the highest existing pair.

    A full group (task 99) rolls over to task 1 of the next group.
    """
    if last is None:
        return MIN_NUM, MIN_NUM
    group_num, task_num = last
    if task_num >= MAX_TASK_NUM:
        return group_num + 1, MIN_NUM
    return group_num, task_num + 1
