from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

import yaml
from pydantic import ValidationError

from .app import MediaLinkerApp
from .commands import preflight as cmd_preflight
from .config import Settings, find_config
from .organizer import RunSummary

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",  # Cyan
    logging.INFO: "\033[37m",  # Light gray
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[35m",  # Magenta
}

WARNING_LOG_NAME = "media-linker-warnings.log"


class ShortPathFormatter(logging.Formatter):
    def __init__(self, fmt: str, roots: list[Path]) -> None:
        super().__init__(fmt)
        self.roots = [str(root) for root in roots if root]

    def _shorten(self, message: str) -> str:
        for root in self.roots:
            if not message:
                break
            message = message.replace(f"{root}/", "")
        return message

    def format(self, record: logging.LogRecord) -> str:
        return self._shorten(super().format(record))


class ColorFormatter(ShortPathFormatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        return f"{color}{message}{C_RESET}"


class WarningBufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.records: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:  # pragma: no cover
            msg = record.getMessage()
        self.records.append(msg)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media-linker",
        description="Classify media files and link them into a Jellyfin/Plex friendly library",
    )
    parser.add_argument(
        "-s", "--source", nargs="+", type=Path, help="One or more source directories"
    )
    parser.add_argument("-t", "--target", type=Path, help="Directory that receives the links")
    parser.add_argument(
        "-l", "--link-type", choices=["soft", "hard"], help="Kind of link to create (default: soft)"
    )
    parser.add_argument(
        "-p",
        "--path-mode",
        choices=["absolute", "relative"],
        help="How symbolic links point at their source (default: absolute)",
    )
    parser.add_argument(
        "-c", "--concurrency", type=int, help="Parallel classification requests (default: 10)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Write the organisation plan as JSON instead of creating links",
    )
    parser.add_argument(
        "--no-cache",
        dest="cache_enabled",
        action="store_false",
        default=None,
        help="Do not read or store cached classifications",
    )
    parser.add_argument(
        "--check", action="store_true", help="Only run the preflight checks and exit"
    )
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    config_path = find_config(args.config)
    settings = Settings.load(config_path) if config_path else Settings()
    return settings.with_overrides(
        sources=args.source,
        target=args.target,
        link_type=args.link_type,
        path_mode=args.path_mode,
        concurrency=args.concurrency,
        debug=args.debug,
        cache_enabled=args.cache_enabled,
    )


def configure_logging(level_name: str, roots: list[Path]) -> WarningBufferHandler:
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    color_handler = logging.StreamHandler()
    color_handler.setFormatter(ColorFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(color_handler)

    warn_buffer = WarningBufferHandler()
    warn_buffer.setFormatter(ShortPathFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(warn_buffer)

    file_handler = logging.FileHandler(Path.cwd() / WARNING_LOG_NAME, mode="w", encoding="utf-8")
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(ShortPathFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(file_handler)
    return warn_buffer


def print_summary(summary: RunSummary) -> None:
    print(
        f"\nClassified {summary.scan.classified} of {summary.scan.groups} video group(s) "
        f"in {summary.scan.directories} director(ies); {summary.scan.dropped} dropped."
    )
    print(f"Titles: {summary.raw_titles} raw -> {summary.titles} consolidated ({summary.items} item(s)).")
    if summary.plan_path:
        print(f"Plan written to {summary.plan_path}")
    if summary.sync:
        print(f"Links: {summary.sync.summary()}")


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = load_settings(args)
    except (OSError, yaml.YAMLError, ValidationError) as exc:
        raise SystemExit(f"Invalid configuration: {exc}")

    display_roots = list(settings.library.roots)
    if settings.links.target_root:
        display_roots.append(settings.links.target_root)
    warn_buffer = configure_logging(args.log_level, display_roots)

    report = cmd_preflight.run(settings, require_target=not settings.debug.enabled)
    for line in report.checks:
        print(line)
    if args.check or not report.ok:
        if not report.ok:
            print("Preflight failed; nothing was scanned.")
        raise SystemExit(0 if report.ok else 1)

    if settings.debug.enabled:
        print("Debug mode: no links will be created.")
    app = MediaLinkerApp.create(settings)
    try:
        summary = asyncio.run(app.get_organizer().run())
        print_summary(summary)
    finally:
        for line in app.stats.report_lines():
            print(line)
        app.close()
        if warn_buffer.records:
            print("\n\033[33mWarnings/Errors summary:\033[0m")
            for line in warn_buffer.records:
                print(f" - {line}")
            print(f"\nFull warning log: {Path.cwd() / WARNING_LOG_NAME}")


if __name__ == "__main__":  # pragma: no cover
    main()
