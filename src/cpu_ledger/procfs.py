"""Low-level procfs interface for Linux process accounting.

Reads /proc directly - no subprocess overhead, no third-party wrapper.

This module provides access to:
- list_pids: all current process ids (numeric directories of the proc root)
- read_stat: cumulative user/kernel CPU ticks, start time and real uid
- uptime: host uptime in seconds
- clock_ticks_per_second: the USER_HZ constant used by the tick counters

Per-process functions handle process disappearance gracefully by returning None.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

DEFAULT_PROC_ROOT = Path("/proc")

# Field indexes counted from the first token after the closing paren of comm.
# proc(5) numbers these 14, 15 and 22 (state is field 3, index 0 here).
STAT_UTIME = 11
STAT_STIME = 12
STAT_STARTTIME = 19


class ProcessTableUnavailable(RuntimeError):
    """The proc root (or a host-wide file in it) could not be read."""


class StartupError(RuntimeError):
    """A host constant required before sampling could not be determined."""


@dataclass(frozen=True)
class ProcStat:
    """CPU counters and ownership for one process at one instant."""

    pid: int
    utime: int
    stime: int
    start_ticks: int  # Ticks since boot
    uid: int  # Real uid

    @property
    def cpu_ticks(self) -> int:
        """Cumulative user + kernel ticks."""
        return self.utime + self.stime


def _is_pid_name(name: str) -> bool:
    return name.isascii() and name.isdigit()


def parse_stat_line(line: str) -> tuple[int, int, int] | None:
    """Parse a /proc/<pid>/stat record into (utime, stime, starttime).

    The command name is wrapped in parentheses and may itself contain
    parentheses and whitespace, so fields are located after the last ')'.

    Returns:
        Tuple of ticks, or None if the record is truncated or malformed.
    """
    end = line.rfind(")")
    if end < 0:
        return None
    fields = line[end + 1 :].split()
    if len(fields) <= STAT_STARTTIME:
        return None
    try:
        return (
            int(fields[STAT_UTIME]),
            int(fields[STAT_STIME]),
            int(fields[STAT_STARTTIME]),
        )
    except ValueError:
        return None


def parse_real_uid(status: str) -> int | None:
    """Return the real uid from a /proc/<pid>/status body.

    The Uid line holds real, effective, saved and filesystem ids in that order.
    """
    for line in status.splitlines():
        if line.startswith("Uid:"):
            ids = line[4:].split()
            if ids and ids[0].isdigit():
                return int(ids[0])
            return None
    return None


class ProcFS:
    """Process-table source backed by a procfs mount."""

    def __init__(self, root: Path | str = DEFAULT_PROC_ROOT) -> None:
        self.root = Path(root)

    def list_pids(self) -> set[int]:
        """List current process ids.

        Raises:
            ProcessTableUnavailable: If the proc root cannot be opened.
        """
        try:
            entries = os.scandir(self.root)
        except OSError as e:
            raise ProcessTableUnavailable(f"Cannot open {self.root}: {e}") from e

        pids: set[int] = set()
        with entries:
            for entry in entries:
                if not _is_pid_name(entry.name):
                    continue
                try:
                    if not entry.is_dir():
                        continue
                except OSError:
                    continue  # Vanished while listing
                pids.add(int(entry.name))
        return pids

    def read_stat(self, pid: int) -> ProcStat | None:
        """Read CPU counters, start time and real uid for a process.

        Returns:
            ProcStat on success, None if the process exited (or is unreadable).
        """
        proc_dir = self.root / str(pid)
        # Command names are arbitrary bytes; only the numeric fields matter
        try:
            stat_line = (proc_dir / "stat").read_text(encoding="utf-8", errors="replace")
            status = (proc_dir / "status").read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

        parsed = parse_stat_line(stat_line)
        if parsed is None:
            return None
        uid = parse_real_uid(status)
        if uid is None:
            return None

        utime, stime, start_ticks = parsed
        return ProcStat(pid=pid, utime=utime, stime=stime, start_ticks=start_ticks, uid=uid)

    def uptime(self) -> float:
        """Return host uptime in seconds.

        Raises:
            ProcessTableUnavailable: If the uptime file is missing or malformed.
        """
        path = self.root / "uptime"
        try:
            return float(path.read_text().split()[0])
        except (OSError, ValueError, IndexError) as e:
            raise ProcessTableUnavailable(f"Cannot read uptime from {path}: {e}") from e


def clock_ticks_per_second() -> int:
    """Return the kernel's USER_HZ (SC_CLK_TCK).

    Raises:
        StartupError: If sysconf is unavailable or returns a non-positive value.
    """
    try:
        ticks = os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError) as e:
        raise StartupError(f"sysconf(SC_CLK_TCK) failed: {e}") from e
    if ticks <= 0:
        raise StartupError(f"sysconf(SC_CLK_TCK) returned {ticks}")
    return ticks
