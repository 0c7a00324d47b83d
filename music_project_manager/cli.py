from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Mapping, Optional

from .config import AgentContext, Settings, load_config
from .models import ProjectManagerError
from .tool import MusicProjectManagerTool

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",  # Cyan
    logging.INFO: "\033[37m",  # Light gray
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[35m",  # Magenta
}


class ProjectPathFormatter(logging.Formatter):
    """Prints paths under the configured directories as ``<projects>/rest`` and ``~/rest``."""

    def __init__(self, fmt: str, aliases: Mapping[str, Path]) -> None:
        super().__init__(fmt)
        # Longest root first so a template dir nested in the project dir wins.
        roots = ((str(root).rstrip(os.sep), label) for label, root in aliases.items() if root)
        self.aliases = sorted(
            ((root, label) for root, label in roots if root),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def shorten(self, message: str) -> str:
        for root, label in self.aliases:
            message = message.replace(f"{root}{os.sep}", f"{label}/")
        return message

    def format(self, record: logging.LogRecord) -> str:
        return self.shorten(super().format(record))


class ColorFormatter(ProjectPathFormatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        return f"{color}{message}{C_RESET}" if color else message


class WarningSummaryHandler(logging.Handler):
    """Keeps warnings raised during one call for the closing summary."""

    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.records: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


def configure_logging(level_name: str, aliases: Mapping[str, Path]) -> WarningSummaryHandler:
    level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    stream_handler = logging.StreamHandler()
    formatter_cls = ColorFormatter if sys.stderr.isatty() else ProjectPathFormatter
    stream_handler.setFormatter(formatter_cls(LOG_FORMAT, aliases))
    root_logger.addHandler(stream_handler)

    summary = WarningSummaryHandler()
    summary.setFormatter(ProjectPathFormatter(LOG_FORMAT, aliases))
    root_logger.addHandler(summary)
    return summary


def _log_aliases(settings: Settings) -> Dict[str, Path]:
    aliases: Dict[str, Path] = {"~": Path.home()}
    if settings.project_dir:
        aliases["<projects>"] = settings.project_dir
    if settings.template_dir:
        aliases["<templates>"] = settings.template_dir
    return aliases


def _agent_context(args: argparse.Namespace) -> Optional[AgentContext]:
    if args.settings:
        settings_path = args.settings.expanduser()
        return AgentContext(
            name=args.agent or "default",
            config_path=settings_path.parent / "config.json",
            settings_path=settings_path,
            agent_dir=settings_path.parent,
        )
    if args.agent:
        return AgentContext.for_agent(args.agents_dir.expanduser(), args.agent)
    return None


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="REAPER music project manager")
    parser.add_argument("--config", type=Path, help="Path to music-project-manager.yaml")
    parser.add_argument(
        "--agents-dir", type=Path, default=Path("agents"), help="Root of per-agent directories"
    )
    parser.add_argument("--agent", help="Agent whose settings file should be used")
    parser.add_argument("--settings", type=Path, help="Explicit agent settings JSON file")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("definition", help="Print the tool definition as JSON")
    call_parser = subparsers.add_parser("call", help="Invoke one operation")
    call_parser.add_argument("arguments", help='JSON arguments, e.g. \'{"operation": "scan"}\'')
    call_parser.add_argument(
        "--wait",
        action="store_true",
        help="Block until a background scan started by this call has finished",
    )
    args = parser.parse_args(argv)

    config = load_config(args.config)
    tool = MusicProjectManagerTool(config, _agent_context(args))
    try:
        settings = tool.app.load_settings()
    except ProjectManagerError:
        settings = Settings()
    warnings = configure_logging(args.log_level, _log_aliases(settings))

    try:
        match args.command:
            case "definition":
                print(json.dumps(tool.definition(), indent=2))
            case "call":
                print(tool.call(args.arguments))
                if args.wait and tool.app.scan_task.is_running():
                    status = tool.app.scan_task.wait()
                    print(json.dumps(status.to_record(), indent=2))
            case _:
                parser.error("Unknown command")
    except ProjectManagerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    finally:
        if warnings.records:
            print("\n\033[33mWarnings/Errors summary:\033[0m", file=sys.stderr)
            for line in warnings.records:
                print(f" - {line}", file=sys.stderr)


if __name__ == "__main__":
    main()
