from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional

from .app import CatalogMetaApp
from .commands import doctor as cmd_doctor
from .commands import layers as cmd_layers
from .commands import show as cmd_show
from .commands.output import field_line
from .config import Settings, find_config
from .errors import CatalogMetaError, NotFoundError, ProviderError, StorageError, ValidationError
from .models import EmbeddedRecord

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}

EXIT_CODES = (
    (ValidationError, 2),
    (NotFoundError, 3),
    (ProviderError, 4),
    (StorageError, 5),
)


class LogFormatter(logging.Formatter):
    """Drops the working directory from messages, optionally colouring by level."""

    def __init__(self, fmt: str, root: Path, *, color: bool = False) -> None:
        super().__init__(fmt)
        self.prefix = f"{root}/"
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record).replace(self.prefix, "")
        if self.color and record.levelno in LEVEL_COLORS:
            return f"{LEVEL_COLORS[record.levelno]}{message}{C_RESET}"
        return message


class WarningCollector(logging.Handler):
    """Keeps warnings and errors for the summary printed on exit."""

    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.lines: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(self.format(record))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Layered catalog metadata with field locking")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")
    parser.add_argument("--user", default=None, help="Recorded as the author of custom field changes")

    subparsers = parser.add_subparsers(dest="command", required=True)

    register_parser = subparsers.add_parser("register", help="Register a catalog item and its media files")
    register_parser.add_argument("item_id")
    register_parser.add_argument("asset_path", type=Path)

    subparsers.add_parser("items", help="List catalog items")

    files_parser = subparsers.add_parser("files", help="List an item's media files in playback order")
    files_parser.add_argument("item_id")

    delete_parser = subparsers.add_parser("delete", help="Remove a catalog item and its embedded/custom tiers")
    delete_parser.add_argument("item_id")

    show_parser = subparsers.add_parser("show", help="Show resolved metadata with provenance")
    show_parser.add_argument("item_id")
    show_parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON to stdout")

    layers_parser = subparsers.add_parser("layers", help="Show the unmerged agent/embedded/custom tiers")
    layers_parser.add_argument("item_id")
    layers_parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON to stdout")

    lock_parser = subparsers.add_parser("lock", help="Lock a field, at its current value unless --value is given")
    lock_parser.add_argument("item_id")
    lock_parser.add_argument("field")
    lock_parser.add_argument("--value", default=None, help="Lock to this value instead of the current one")

    unlock_parser = subparsers.add_parser("unlock", help="Unlock a field and revert it to the tier cascade")
    unlock_parser.add_argument("item_id")
    unlock_parser.add_argument("field")

    edit_parser = subparsers.add_parser("edit", help="Set a custom value (always locks the field)")
    edit_parser.add_argument("item_id")
    edit_parser.add_argument("field")
    edit_parser.add_argument("value")

    clear_parser = subparsers.add_parser("clear", help="Remove every custom field of an item")
    clear_parser.add_argument("item_id")

    apply_parser = subparsers.add_parser(
        "apply", help="Apply a JSON object of {field: {value, locked}} atomically"
    )
    apply_parser.add_argument("item_id")
    apply_parser.add_argument("changes", type=Path, help="JSON file with the field changes")

    embedded_parser = subparsers.add_parser(
        "embedded", help="Store embedded tag values from a JSON file, or run the tag extractor"
    )
    embedded_parser.add_argument("item_id")
    embedded_parser.add_argument("--from-json", type=Path, default=None)

    search_parser = subparsers.add_parser("search", help="Search a provider for matches")
    search_parser.add_argument("title")
    search_parser.add_argument("--author", default=None)
    search_parser.add_argument("--provider", default=None)

    link_parser = subparsers.add_parser("link", help="Link an item to a provider record")
    link_parser.add_argument("item_id")
    link_parser.add_argument("external_id")
    link_parser.add_argument("--provider", default=None)

    unlink_parser = subparsers.add_parser("unlink", help="Remove the provider link of an item")
    unlink_parser.add_argument("item_id")
    unlink_parser.add_argument(
        "--clear-locked",
        action="store_true",
        help="Also clear every custom field instead of keeping locked values",
    )

    subparsers.add_parser("doctor", help="Run basic config/database/provider checks")
    return parser


def configure_logging(level_name: str, root: Path) -> WarningCollector:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level_name.upper(), logging.WARNING))

    console = logging.StreamHandler()
    console.setFormatter(LogFormatter(LOG_FORMAT, root, color=True))
    root_logger.addHandler(console)

    collector = WarningCollector()
    collector.setFormatter(LogFormatter(LOG_FORMAT, root))
    root_logger.addHandler(collector)
    return collector


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    config_path = find_config(args.config)
    settings = Settings.load(config_path) if config_path else Settings()
    warnings = configure_logging(args.log_level, Path.cwd())

    app = CatalogMetaApp.create(settings)
    try:
        dispatch(app, args, parser)
    except CatalogMetaError as exc:
        print(f"error: {exc}")
        raise SystemExit(exit_code_for(exc)) from None
    finally:
        app.close()
        if warnings.lines:
            print("\n\033[33mWarnings/Errors summary:\033[0m")
            for line in warnings.lines:
                print(f" - {line}")


def exit_code_for(exc: CatalogMetaError) -> int:
    for error_type, code in EXIT_CODES:
        if isinstance(exc, error_type):
            return code
    return 1


def dispatch(app: CatalogMetaApp, args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    user = args.user
    match args.command:
        case "register":
            item = app.register_item(args.item_id, args.asset_path)
            print(f"Registered {item.id} with {len(item.media_files)} media file(s)")
        case "items":
            for item in app.list_items():
                resolved = app.get_resolved(item.id)
                print(field_line(item.id, resolved.title, "linked" if item.linked else None, width=24))
        case "files":
            item = app.get_item(args.item_id)
            for index, media in enumerate(item.media_files, start=1):
                print(f"{index:>3}. {media.filename}  ({media.mime_type})")
        case "delete":
            app.delete_item(args.item_id)
            print(f"Deleted {args.item_id}")
        case "show":
            cmd_show.run(app, args.item_id, json_output=args.json)
        case "layers":
            cmd_layers.run(app, args.item_id, json_output=args.json)
        case "lock":
            entry = app.overrides.set_lock(args.item_id, args.field, True, args.value, updated_by=user)
            print(field_line(entry.field, entry.value, "locked") if entry else "unchanged")
        case "unlock":
            app.overrides.set_lock(args.item_id, args.field, False, updated_by=user)
            print(f"Unlocked {args.field}")
        case "edit":
            entry = app.overrides.edit(args.item_id, args.field, args.value, updated_by=user)
            print(field_line(entry.field, entry.value, "locked") if entry else "unchanged")
        case "clear":
            removed = app.overrides.clear_all(args.item_id)
            print(f"Cleared {removed} custom field(s)")
        case "apply":
            changes = _load_json(args.changes)
            custom = app.overrides.batch_apply(args.item_id, changes, updated_by=user)
            for name, entry in custom.items():
                print(field_line(name, entry.value, "locked"))
        case "embedded":
            if args.from_json:
                payload = _load_json(args.from_json)
                if not isinstance(payload, dict):
                    raise ValidationError("embedded", "expected a JSON object of tag values")
                try:
                    record = EmbeddedRecord(**payload)
                except TypeError as exc:
                    raise ValidationError("embedded", str(exc)) from exc
                app.set_embedded(args.item_id, record)
                print(f"Stored embedded tags for {args.item_id}")
            elif app.refresh_embedded(args.item_id) is None:
                print("No embedded tags extracted")
        case "search":
            for result in app.links.search(args.title, args.author, provider=args.provider):
                print(f"{result.provider}:{result.external_id}  {result.title or '-'} / {result.author or '-'}")
        case "link":
            agent = app.links.link_external(args.item_id, args.external_id, provider=args.provider)
            print(f"Linked {args.item_id} to {agent.source}:{agent.external_id}")
        case "unlink":
            cleared = app.links.unlink(args.item_id, preserve_locked=not args.clear_locked)
            print(f"Unlinked {args.item_id}" + (f", cleared {cleared} custom field(s)" if cleared else ""))
        case "doctor":
            report = cmd_doctor.run(app)
            for line in report.checks:
                print(line)
            if not report.ok:
                raise SystemExit(1)
        case _:
            parser.error("Unknown command")


def _load_json(path: Path) -> object:
    try:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except OSError as exc:
        raise ValidationError(str(path), f"unable to read file: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(str(path), f"not valid JSON: {exc}") from exc


if __name__ == "__main__":
    main()
