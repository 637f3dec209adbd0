from __future__ import annotations

import argparse
import logging
from pathlib import Path

import requests
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .clock import FakeClock, SystemClock
from .config import load_config
from .dom import MemoryDocument
from .page import HeadlessPage
from .poller import CountPoller
from .shadow_log import ShadowLog
from .storage import JsonFileStorage
from .tracker import build_tracker
from .transport import Transport
from .widget import CONTAINER_SELECTOR, LiveCountSnapshot, WidgetRenderer

console = Console()

DEFAULT_PROFILE = Path.home() / ".visitor_beacon_profile.json"


def _snapshot_table(snap: LiveCountSnapshot, *, title: str = "Live visitors") -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Online Now", justify="right", style="green")
    table.add_column("Total Visitors", justify="right", style="cyan")
    table.add_column("New Today", justify="right", style="yellow")
    table.add_row(str(snap.live), str(snap.total), str(snap.new_today))
    return table


def _cmd_run(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    if args.simulate and args.duration <= 0:
        raise ValueError("--simulate needs a positive --duration")
    clock = FakeClock() if args.simulate else SystemClock()
    page = HeadlessPage(url=args.url, title=args.title, referrer=args.referrer)
    document = MemoryDocument(selectors=[CONTAINER_SELECTOR])
    tracker = build_tracker(
        cfg,
        page,
        storage=JsonFileStorage(args.profile),
        document=document,
        clock=clock,
    )
    page.beacon = tracker.ctx.transport.send_beacon

    tracker.start()
    ident = tracker.identity
    console.print(Panel.fit(f"[bold cyan]Tracking[/bold cyan] {page.url}", border_style="cyan"))
    console.print(f"Visitor : [green]{ident.visitor_id}[/green]")
    console.print(f"Session : [green]{ident.session_id}[/green]")
    console.print(f"New     : {'yes' if ident.is_new_visitor else 'no'}")
    try:
        if args.duration > 0:
            tracker.ctx.scheduler.run_for(args.duration)
        else:
            tracker.ctx.scheduler.run_forever()
    except KeyboardInterrupt:
        console.print("[dim]Interrupted, tearing down.[/dim]")
    finally:
        tracker.teardown()

    if tracker.renderer.last_snapshot is not None:
        console.print(_snapshot_table(tracker.renderer.last_snapshot))
    console.print(f"[dim]Shadow log: {len(tracker.shadow_log.entries())} entries in {args.profile}[/dim]")
    return 0


def _cmd_counts(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    clock = SystemClock()
    transport = Transport(cfg.endpoint, mode=cfg.delivery_mode, timeout_s=cfg.request_timeout_s)
    poller = CountPoller(transport, WidgetRenderer(MemoryDocument()), clock, method=cfg.count_method)
    console.print(_snapshot_table(poller.poll(), title=f"Live visitors ({cfg.count_method.value.upper()})"))
    return 0


def _cmd_log(args: argparse.Namespace) -> int:
    entries = ShadowLog(JsonFileStorage(args.profile), SystemClock()).entries()
    if not entries:
        console.print("[yellow](shadow log is empty)[/yellow]")
        return 0
    table = Table(title=f"Shadow log ({len(entries)} entries)", show_header=True, header_style="bold magenta")
    table.add_column("Stored at", style="dim")
    table.add_column("Action", style="cyan")
    table.add_column("Session")
    table.add_column("Details", style="white")
    for e in entries[-max(1, args.limit):]:
        skip = {"type", "action", "sessionId", "storedAt", "timestamp", "visitorId"}
        details = ", ".join(f"{k}={v}" for k, v in e.items() if k not in skip)
        table.add_row(str(e.get("storedAt", "")), str(e.get("action", "")), str(e.get("sessionId", "")), details)
    console.print(table)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="visitor-beacon", description="Page analytics beacon with a live visitor counter.")
    p.add_argument("--config", default=None, help="YAML config (default: $VISITOR_BEACON_CONFIG).")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging (shows every payload).")
    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run", help="Track one headless page session against the collection endpoint.")
    r.add_argument("--url", default="http://localhost/", help="Page URL to report.")
    r.add_argument("--title", default="", help="Page title to report.")
    r.add_argument("--referrer", default="", help="Referrer (empty = direct).")
    r.add_argument("--profile", default=str(DEFAULT_PROFILE), help="Browser profile file (local storage).")
    r.add_argument("--duration", type=float, default=60.0, help="Seconds to stay on the page (0 = until Ctrl-C).")
    r.add_argument("--simulate", action="store_true", help="Use a virtual clock: the duration elapses instantly.")
    r.set_defaults(func=_cmd_run)

    c = sub.add_parser("counts", help="Poll the live visitor counts once.")
    c.set_defaults(func=_cmd_counts)

    lg = sub.add_parser("log", help="Show the local shadow log of a profile.")
    lg.add_argument("--profile", default=str(DEFAULT_PROFILE), help="Browser profile file (local storage).")
    lg.add_argument("--limit", type=int, default=20, help="How many recent entries to show.")
    lg.set_defaults(func=_cmd_log)

    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.verbose:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
    try:
        return int(args.func(args))
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 2
    except requests.RequestException as e:
        console.print(f"[bold red]Network error:[/bold red] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
