"""Per-user CPU accounting across process-table samples."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

from cpu_ledger.procfs import ProcStat

log = structlog.get_logger()


class ProcessSource(Protocol):
    """What the engine needs from a process table."""

    def list_pids(self) -> set[int]: ...

    def read_stat(self, pid: int) -> ProcStat | None: ...


@dataclass
class TrackedProcess:
    """Accounting state for one process instance, keyed by (pid, start_ticks)."""

    pid: int
    start_ticks: int
    last_cpu_ticks: int
    seen_this_tick: bool = False


@dataclass
class UserTotal:
    """CPU time attributed to one uid so far."""

    uid: int
    total_cpu_ms: float = 0.0


@dataclass
class TickSummary:
    """What one reconciliation pass did."""

    tick: int
    enumerated: int = 0
    vanished: int = 0  # Listed but gone before its stat could be read
    matched: int = 0
    new_preexisting: int = 0  # First seen, started before the monitor
    new_in_window: int = 0  # First seen, started during the window
    pruned: int = 0
    credited_ms: float = 0.0


class AccountingEngine:
    """Reconciles process-table samples into per-user CPU totals.

    Owns both the tracked-process table and the user-total table. Callers
    drive it with tick() and read results with snapshot().
    """

    def __init__(
        self,
        source: ProcessSource,
        clock_ticks: int,
        monitor_start_uptime: float,
    ) -> None:
        if clock_ticks <= 0:
            raise ValueError(f"clock_ticks must be positive, got {clock_ticks}")
        self.source = source
        self.clock_ticks = clock_ticks
        self.monitor_start_uptime = monitor_start_uptime
        self.tracked: dict[tuple[int, int], TrackedProcess] = {}
        self.totals: dict[int, UserTotal] = {}
        self.tick_count = 0

    def ticks_to_ms(self, ticks: int) -> float:
        """Convert CPU ticks to milliseconds."""
        return ticks * 1000 / self.clock_ticks

    def tick(self) -> TickSummary:
        """Run one reconciliation pass over the process table.

        Raises:
            ProcessTableUnavailable: If the table cannot be listed. Raised
                before any state is touched, so the pass can be abandoned.
        """
        pids = self.source.list_pids()

        summary = TickSummary(tick=self.tick_count, enumerated=len(pids))
        self.tick_count += 1

        for tracked in self.tracked.values():
            tracked.seen_this_tick = False

        for pid in pids:
            stat = self.source.read_stat(pid)
            if stat is None:
                summary.vanished += 1
                continue
            summary.credited_ms += self._observe(stat, summary)

        gone = [key for key, tracked in self.tracked.items() if not tracked.seen_this_tick]
        for key in gone:
            del self.tracked[key]
        summary.pruned = len(gone)

        log.debug(
            "tick_complete",
            tick=summary.tick,
            enumerated=summary.enumerated,
            vanished=summary.vanished,
            tracked=len(self.tracked),
            pruned=summary.pruned,
            credited_ms=round(summary.credited_ms, 1),
        )
        return summary

    def _observe(self, stat: ProcStat, summary: TickSummary) -> float:
        """Match one sample against tracked state; return ms credited."""
        total = stat.cpu_ticks
        key = (stat.pid, stat.start_ticks)
        tracked = self.tracked.get(key)

        if tracked is not None:
            # Counter went backwards: credit nothing rather than subtract
            delta = max(0, total - tracked.last_cpu_ticks)
            tracked.last_cpu_ticks = total
            tracked.seen_this_tick = True
            summary.matched += 1
            return self._credit(stat.uid, delta)

        self.tracked[key] = TrackedProcess(
            pid=stat.pid,
            start_ticks=stat.start_ticks,
            last_cpu_ticks=total,
            seen_this_tick=True,
        )
        if stat.start_ticks / self.clock_ticks < self.monitor_start_uptime:
            summary.new_preexisting += 1
            return 0.0
        summary.new_in_window += 1
        return self._credit(stat.uid, total)

    def _credit(self, uid: int, ticks: int) -> float:
        if ticks <= 0:
            return 0.0
        ms = self.ticks_to_ms(ticks)
        user = self.totals.get(uid)
        if user is None:
            user = self.totals[uid] = UserTotal(uid=uid)
        user.total_cpu_ms += ms
        return ms

    def snapshot(self) -> list[UserTotal]:
        """Return copies of the user totals, in first-credited order."""
        return [UserTotal(uid=u.uid, total_cpu_ms=u.total_cpu_ms) for u in self.totals.values()]
