"""Ranking table for the final per-user totals."""

import pwd
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from cpu_ledger.accounting import UserTotal

HEADER = "Rank\tUser\tCPU Time (milliseconds)"


@dataclass(frozen=True)
class RankingRow:
    """One output row."""

    rank: int
    name: str
    cpu_ms: int


def lookup_username(uid: int) -> str:
    """Resolve a uid to its login name, falling back to the numeric id."""
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def rank_users(
    totals: Iterable[UserTotal],
    resolve_name: Callable[[int], str] = lookup_username,
) -> list[RankingRow]:
    """Sort users by CPU time, busiest first.

    Users with no accumulated time are left out. Equal totals are ordered
    by ascending uid so output is reproducible.
    """
    ranked = sorted(
        (u for u in totals if u.total_cpu_ms != 0),
        key=lambda u: (-u.total_cpu_ms, u.uid),
    )
    return [
        RankingRow(rank=i, name=resolve_name(u.uid), cpu_ms=int(u.total_cpu_ms))
        for i, u in enumerate(ranked, start=1)
    ]


def render_ranking(rows: Iterable[RankingRow]) -> str:
    """Render the header plus one tab-separated line per row."""
    lines = [HEADER]
    lines.extend(f"{row.rank}\t{row.name}\t{row.cpu_ms}" for row in rows)
    return "\n".join(lines)
