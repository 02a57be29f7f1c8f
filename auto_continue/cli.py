from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .activity import ActivityLog
from .approver import AutoApprover, poll_loop
from .capture import ScreenCapture
from .clicker import NativeClicker
from .config import AutoContinueOptions, validate_options
from .host import DesktopHost, StaticHost
from .ocr import TargetLocator
from .prompts import PromptMatcher
from .user_activity import UserActivityMonitor
from .windows import foreground_window_title

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _load_options(args: argparse.Namespace) -> AutoContinueOptions:
    root = Path(args.root).resolve()
    path = Path(args.config) if args.config else None
    opts = AutoContinueOptions.load(root, path=path)
    # Safe by default: dry-run unless explicitly live.
    opts.dry_run = not bool(getattr(args, "live", False))
    return opts


def _print_status(status: Dict[str, Any]) -> None:
    table = Table(title="auto_continue status", show_header=False)
    for key in ("enabled", "dry_run", "total_triggers", "last_triggered"):
        table.add_row(key, str(status.get(key)))
    for key, val in (status.get("controller") or {}).items():
        table.add_row(f"controller.{key}", ", ".join(val) if isinstance(val, list) else str(val))
    for key, val in (status.get("failure_counts") or {}).items():
        table.add_row(f"failures.{key}", str(val))
    console.print(table)
    for rec in status.get("recent_activity") or []:
        console.print(f"  [dim]{rec.get('ts')}[/] {rec.get('event')}")


def cmd_watch(args: argparse.Namespace) -> int:
    opts = _load_options(args)
    for issue in validate_options(opts):
        logging.getLogger("auto_continue.cli").warning("config issue: %s", issue)

    monitor: Optional[UserActivityMonitor] = None
    if opts.user_activity.enabled:
        monitor = UserActivityMonitor(window_s=opts.user_activity.window_s)
        monitor.start()

    host = DesktopHost(opts, console=console)
    approver = AutoApprover(opts, host, user_activity=monitor)
    interval = args.interval_s if args.interval_s is not None else opts.poll_interval_s
    console.log(f"watching {opts.text_source or '(no text source)'} every {interval}s (dry_run={opts.dry_run})")
    try:
        for tier in poll_loop(approver, interval_s=interval, max_ticks=args.max_ticks):
            if tier:
                console.log(f"prompt handled via [bold]{tier}[/]")
    except KeyboardInterrupt:
        console.log("stopping")
    finally:
        approver.detector.shutdown(dry_run=opts.dry_run)
        if monitor is not None:
            monitor.stop()
    _print_status(approver.status())
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    """Feed text through a dry-run approver with an in-memory host."""
    opts = _load_options(args)
    opts.dry_run = True
    opts.settle_delay_s = 0.0
    text = Path(args.file).read_text(encoding="utf-8") if args.file else " ".join(args.text or [])
    host = StaticHost(text=text, active=not args.inactive)
    approver = AutoApprover(opts, host, activity=ActivityLog(None))
    tier = approver.on_text_observed(text)
    console.print(f"tier: [bold]{tier or 'none (no prompt)'}[/]")
    for cmd in host.commands:
        console.print(f"  command: {cmd}")
    _print_status(approver.status())
    return 0


def cmd_match(args: argparse.Namespace) -> int:
    opts = _load_options(args)
    matcher = PromptMatcher(extra=opts.prompt_patterns)
    text = " ".join(args.text)
    pattern = matcher.first_match(text)
    console.print_json(data={"match": pattern is not None, "pattern": pattern})
    return 0 if pattern is not None else 1


def cmd_locate(args: argparse.Namespace) -> int:
    opts = _load_options(args)
    locator = TargetLocator(opts.pipeline_config()["locate_target"])
    if not locator.available():
        console.print("[red]pytesseract is not installed[/]")
        return 2
    if args.image:
        from PIL import Image

        image = Image.open(args.image)
        origin = None
    else:
        shot = ScreenCapture(opts.ocr, root=opts.root).capture()
        if not shot.ok:
            console.print(f"[red]{shot.error}[/]")
            return 2
        image, origin = shot.image, shot.bbox
    loc = locator.locate_target(image, origin=origin)
    console.print_json(data={"found": loc is not None, "target": loc.as_dict() if loc else None})
    return 0 if loc is not None else 1


def cmd_click(args: argparse.Namespace) -> int:
    clicker = NativeClicker()
    if not args.live:
        names = [name for name, _ in clicker.strategies()]
        console.print_json(data={"would_click": True, "x": args.x, "y": args.y, "mechanisms": names})
        return 0
    res = clicker.click_at(args.x, args.y)
    console.print_json(data=res.as_dict())
    return 0 if res.succeeded else 2


def cmd_status(args: argparse.Namespace) -> int:
    opts = _load_options(args)
    clicker = NativeClicker()
    rows: List[tuple] = [
        ("config.enabled", str(opts.enabled)),
        ("config.text_source", opts.text_source or "(none)"),
        ("config.window_title_contains", opts.window_title_contains),
        ("capture.available", str(ScreenCapture(opts.ocr).available())),
        ("ocr.available", str(TargetLocator(opts.ocr).available())),
        ("click.platform", clicker.platform),
        ("click.mechanisms", ", ".join(n for n, _ in clicker.strategies()) or "(none)"),
        ("click.requirements", ", ".join(clicker.requirements())),
        ("window.foreground", foreground_window_title() or "(unknown)"),
    ]
    table = Table(title="auto_continue environment", show_header=False)
    for k, v in rows:
        table.add_row(k, v)
    console.print(table)
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    opts = _load_options(args)
    issues = validate_options(opts)
    if not issues:
        console.print("[green]config OK[/]")
        return 0
    for issue in issues:
        console.print(f"[yellow]- {issue}[/]")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="auto-continue", description="Auto-advance coding-agent 'continue' prompts")
    parser.add_argument("--root", type=str, default=".", help="Project root holding config/auto_continue.json")
    parser.add_argument("--config", type=str, default="", help="Explicit config path")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("watch", help="Poll the text source and advance prompts")
    p.add_argument("--live", action="store_true", help="Send real input (default is dry-run)")
    p.add_argument("--interval-s", type=float, default=None)
    p.add_argument("--max-ticks", type=int, default=None)
    p.set_defaults(func=cmd_watch)

    p = sub.add_parser("simulate", help="Dry-run the escalation against some text")
    p.add_argument("text", nargs="*")
    p.add_argument("--file", type=str, default="")
    p.add_argument("--inactive", action="store_true", help="Pretend the target window is not focused")
    p.set_defaults(func=cmd_simulate)

    p = sub.add_parser("match", help="Check whether text contains a continue prompt")
    p.add_argument("text", nargs="+")
    p.set_defaults(func=cmd_match)

    p = sub.add_parser("locate", help="OCR an image (or the screen) for a continue control")
    p.add_argument("--image", type=str, default="")
    p.set_defaults(func=cmd_locate)

    p = sub.add_parser("click", help="Native click at a screen point")
    p.add_argument("x", type=int)
    p.add_argument("y", type=int)
    p.add_argument("--live", action="store_true")
    p.set_defaults(func=cmd_click)

    p = sub.add_parser("status", help="Show environment readiness")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("validate-config", help="Report configuration issues")
    p.set_defaults(func=cmd_validate)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
