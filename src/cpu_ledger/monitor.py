"""Bounded sampling loop for cpu-ledger."""

import asyncio
import signal
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from cpu_ledger import logging as console
from cpu_ledger.accounting import AccountingEngine, UserTotal
from cpu_ledger.config import Config
from cpu_ledger.procfs import ProcessTableUnavailable, ProcFS, clock_ticks_per_second

log = structlog.get_logger()


@dataclass
class MonitorState:
    """Runtime state of one monitoring run."""

    ticks_run: int = 0
    ticks_skipped: int = 0
    interrupted: bool = False


class Monitor:
    """Drives the accounting engine once per tick for a fixed number of ticks.

    A SIGINT or SIGTERM only requests a stop; the tick in progress always
    finishes, then the loop exits and the totals gathered so far are returned.
    """

    def __init__(
        self,
        duration: int,
        config: Config | None = None,
        source: ProcFS | None = None,
        clock_ticks: int | None = None,
        interval: float | None = None,
    ) -> None:
        if duration <= 0:
            raise ValueError(f"duration must be positive, got {duration}")
        self.config = config or Config()
        self.duration = duration
        self.source = source or ProcFS(self.config.source.proc_root)
        self.interval = self.config.sampling.interval if interval is None else interval
        self.state = MonitorState()

        # Startup failures surface here, before any sampling
        self.clock_ticks = clock_ticks or clock_ticks_per_second()
        self.start_uptime = self.source.uptime()
        self.engine = AccountingEngine(self.source, self.clock_ticks, self.start_uptime)

        self._shutdown_event = asyncio.Event()

    def request_stop(self) -> None:
        """Ask the loop to stop after the current tick."""
        self.state.interrupted = True
        self._shutdown_event.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        log.info("signal_received", signal=sig.name)
        self.request_stop()

    async def run(
        self,
        report: Callable[[list[UserTotal]], None] | None = None,
    ) -> list[UserTotal]:
        """Sample until the duration elapses or a stop is requested.

        Args:
            report: Called with the final totals while the signal handlers are
                still installed, so an interrupt cannot cut the report short.
        """
        loop = asyncio.get_running_loop()
        handled = (signal.SIGINT, signal.SIGTERM)
        for sig in handled:
            loop.add_signal_handler(sig, lambda s=sig: self._handle_signal(s))

        log.info(
            "monitor_starting",
            duration=self.duration,
            interval=self.interval,
            clock_ticks=self.clock_ticks,
            start_uptime=self.start_uptime,
        )
        try:
            await self._main_loop(loop)

            if self.state.interrupted:
                console.interrupted()
            log.info(
                "monitor_finished",
                ticks=self.state.ticks_run,
                skipped=self.state.ticks_skipped,
                users=len(self.engine.totals),
                interrupted=self.state.interrupted,
            )
            totals = self.engine.snapshot()
            if report is not None:
                report(totals)
        finally:
            for sig in handled:
                loop.remove_signal_handler(sig)
        return totals

    async def _main_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        # One baseline sample plus one per elapsed interval: `duration` seconds
        # of deltas take duration + 1 samples.
        last_tick = self.duration
        started = loop.time()
        for tick in range(last_tick + 1):
            if self._shutdown_event.is_set():
                break

            try:
                self.engine.tick()
                self.state.ticks_run += 1
            except ProcessTableUnavailable as e:
                self.state.ticks_skipped += 1
                log.warning("tick_skipped", tick=tick, error=str(e))
                console.tick_skipped(tick, str(e))

            if tick == last_tick:
                break

            # Sleep to the next boundary so scan time does not drift the schedule
            sleep_time = started + (tick + 1) * self.interval - loop.time()
            if sleep_time > 0:
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=sleep_time)
                except asyncio.TimeoutError:
                    pass  # Normal timeout, continue to next tick


async def run_monitor(
    duration: int,
    config: Config | None = None,
    report: Callable[[list[UserTotal]], None] | None = None,
) -> list[UserTotal]:
    """Observe for `duration` seconds and return the user totals.

    Raises:
        ProcessTableUnavailable: If the host uptime cannot be read at startup.
        StartupError: If the clock-tick constant is unavailable.
    """
    monitor = Monitor(duration, config=config)
    return await monitor.run(report=report)
