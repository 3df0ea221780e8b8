"""CLI entry point for cpu-ledger."""

from pathlib import Path

import click


class _UsageExitCommand(click.Command):
    """Command whose usage errors exit with status 1 instead of click's 2."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


@click.command(cls=_UsageExitCommand)
@click.version_option(package_name="cpu-ledger")
@click.argument("seconds", type=click.IntRange(min=1))
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/cpu-ledger/config.toml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every tick to stderr")
def main(seconds: int, config_path: Path | None, verbose: bool) -> None:
    """Report per-user CPU time used over the next SECONDS seconds.

    Prints a tab-separated ranking (rank, user, CPU milliseconds) to stdout.
    Ctrl-C stops early and prints what was gathered so far.
    """
    import asyncio

    from cpu_ledger import logging as console
    from cpu_ledger.config import Config
    from cpu_ledger.monitor import run_monitor
    from cpu_ledger.procfs import ProcessTableUnavailable, StartupError
    from cpu_ledger.report import rank_users, render_ranking

    try:
        config = Config.load(config_path)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    console.configure(config, verbose=verbose)

    def report(totals: list) -> None:
        click.echo(render_ranking(rank_users(totals)))

    try:
        asyncio.run(run_monitor(seconds, config, report=report))
    except (StartupError, ProcessTableUnavailable) as e:
        console.startup_failed(str(e))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
