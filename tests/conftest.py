"""Shared test fixtures for cpu-ledger."""

from __future__ import annotations

from pathlib import Path

import pytest

from cpu_ledger.procfs import ProcessTableUnavailable, ProcStat


def stat_line(pid: int, comm: str, utime: int, stime: int, start: int) -> str:
    """Build a /proc/<pid>/stat record with realistic filler fields."""
    after = [
        "S", "1", str(pid), str(pid), "0", "-1", "4194304", "120", "0", "0", "0",
        str(utime), str(stime), "0", "0", "20", "0", "1", "0", str(start),
        "10485760", "512",
    ]  # fmt: skip
    return f"{pid} ({comm}) {' '.join(after)}\n"


def status_body(uid: int, euid: int | None = None) -> str:
    """Build a /proc/<pid>/status body with real and effective uids."""
    e = uid if euid is None else euid
    return (
        "Name:\tworker\n"
        "State:\tS (sleeping)\n"
        f"Uid:\t{uid}\t{e}\t{e}\t{e}\n"
        f"Gid:\t{uid}\t{uid}\t{uid}\t{uid}\n"
    )


class FakeProcRoot:
    """Writes a procfs-shaped directory tree under a temp dir."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.set_uptime(5000.0)

    def set_uptime(self, seconds: float) -> None:
        (self.root / "uptime").write_text(f"{seconds:.2f} 12345.67\n")

    def add(
        self,
        pid: int,
        utime: int = 0,
        stime: int = 0,
        start: int = 0,
        uid: int = 1000,
        comm: str = "worker",
    ) -> Path:
        proc_dir = self.root / str(pid)
        proc_dir.mkdir(exist_ok=True)
        (proc_dir / "stat").write_text(stat_line(pid, comm, utime, stime, start))
        (proc_dir / "status").write_text(status_body(uid))
        return proc_dir


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProcRoot:
    """An empty fake procfs tree with an uptime file."""
    return FakeProcRoot(tmp_path / "proc")


class FakeSource:
    """In-memory process table driven tick by tick from a test."""

    def __init__(self, uptime: float = 1000.0) -> None:
        self.procs: dict[int, ProcStat] = {}
        self.vanishing: set[int] = set()  # Listed, but gone by read time
        self.unavailable = False
        self._uptime = uptime
        self.on_list = None  # Optional hook called during list_pids

    def set(self, pid: int, ticks: int, start: int = 0, uid: int = 1000) -> None:
        """Publish a process with `ticks` total CPU (all in utime)."""
        self.procs[pid] = ProcStat(pid=pid, utime=ticks, stime=0, start_ticks=start, uid=uid)

    def remove(self, pid: int) -> None:
        self.procs.pop(pid, None)

    def list_pids(self) -> set[int]:
        if self.on_list is not None:
            self.on_list()
        if self.unavailable:
            raise ProcessTableUnavailable("proc root gone")
        return set(self.procs) | self.vanishing

    def read_stat(self, pid: int) -> ProcStat | None:
        if pid in self.vanishing:
            return None
        return self.procs.get(pid)

    def uptime(self) -> float:
        return self._uptime


@pytest.fixture
def source() -> FakeSource:
    """Fake source whose monitor start uptime is 1000s (100000 ticks at 100 Hz)."""
    return FakeSource(uptime=1000.0)
