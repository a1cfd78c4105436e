from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from modelsync.app import (
    build_plans,
    bulk_update,
    check_connection,
    fetch_catalogs,
    load_channels,
    open_state_store,
    rollback,
    search_models,
    select_models,
    select_search_hits,
    sync_plans,
)
from modelsync.config import configure_logging
from modelsync.domain.canonicalization import RULE_TEMPLATES, list_templates
from modelsync.domain.model import UpdateMode
from modelsync.domain.reconciliation import export_mapping, mapping_stats

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from modelsync.adapters.sqlalchemy import SqlAlchemyStateStore
    from modelsync.domain.context import ReconciliationContext
    from modelsync.domain.model import Channel
    from modelsync.domain.reconciliation import ChannelSyncPlan

log = logging.getLogger(__name__)

_OPTION_FLAGS = {
    "keep_date": "keep_date",
    "keep_version": "keep_version",
    "keep_namespace": "keep_namespace",
    "format_name": "format_name",
    "custom_rules": "enable_custom_rules",
    "channel_suffix": "auto_channel_suffix",
}


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile model names across channels")
    parser.add_argument(
        "--state-uri",
        type=str,
        help="SQLAlchemy URI of the local state database (defaults to config)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("test-connection", help="Check the connection settings")

    channels = subparsers.add_parser("channels", help="List channels")
    channels.add_argument(
        "--include-disabled", action="store_true", help="Also list disabled channels"
    )

    fetch = subparsers.add_parser("fetch", help="Fetch catalogs and select models")
    fetch.add_argument(
        "--channel",
        dest="channel_ids",
        type=int,
        action="append",
        default=[],
        help="Only fetch this channel id (repeatable)",
    )
    fetch.add_argument(
        "--select",
        dest="patterns",
        action="append",
        default=[],
        help="Select models containing this text (repeatable)",
    )
    fetch.add_argument("--all", action="store_true", help="Select every fetched model")
    fetch.add_argument(
        "--include-disabled", action="store_true", help="Include disabled channels and models"
    )
    fetch.add_argument(
        "--prefetch", action="store_true", help="Fetch the first channels before the bulk pass"
    )
    fetch.add_argument(
        "--retry-failed", action="store_true", help="Retry failed channels with backoff"
    )

    search = subparsers.add_parser("search", help="Search models across channel catalogs")
    search.add_argument("term", type=str, help="Text the model name must contain")
    search.add_argument("--select", action="store_true", help="Select every hit")
    search.add_argument(
        "--include-disabled", action="store_true", help="Include disabled channels"
    )

    subparsers.add_parser("clear", help="Empty the curated list and its provenance")
    subparsers.add_parser("templates", help="List the built-in rule templates")

    remove = subparsers.add_parser("remove", help="Remove a model from the curated list")
    remove.add_argument("name", type=str, help="Raw model name to remove")

    plan = subparsers.add_parser("plan", help="Show the canonical mapping and channel plans")
    _add_option_arguments(plan)
    plan.add_argument("--export", type=Path, help="Write the mapping as JSON to this file")

    sync = subparsers.add_parser("sync", help="Push channel plans to the service")
    _add_option_arguments(sync)
    sync.add_argument(
        "--mode",
        type=UpdateMode,
        choices=list(UpdateMode),
        default=UpdateMode.APPEND,
        help="How new mappings combine with existing ones (default: %(default)s)",
    )
    sync.add_argument("--dry-run", action="store_true", help="Plan without pushing")
    sync.add_argument(
        "--no-checkpoint",
        action="store_true",
        help="Push without snapshotting the channels first (no rollback possible)",
    )

    rollback_parser = subparsers.add_parser(
        "rollback", help="Restore channels to the checkpoint taken before the last sync"
    )
    rollback_parser.add_argument(
        "--checkpoint",
        dest="checkpoint_id",
        type=str,
        help="Checkpoint id (defaults to the last one)",
    )

    bulk = subparsers.add_parser(
        "bulk-update", help="Find and repair mappings whose target model is gone"
    )
    bulk.add_argument(
        "--apply", action="store_true", help="Apply the repairs instead of previewing them"
    )
    bulk.add_argument(
        "--channel",
        dest="channel_ids",
        type=int,
        action="append",
        default=[],
        help="Only scan this channel id (repeatable)",
    )

    return parser.parse_args(list(argv))


def _add_option_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--keep-date", action="store_true", help="Keep date suffixes")
    parser.add_argument("--keep-version", action="store_true", help="Keep version suffixes")
    parser.add_argument("--keep-namespace", action="store_true", help="Keep vendor/ prefixes")
    parser.add_argument(
        "--format-name", action="store_true", help="Normalise Claude version/variant order"
    )
    parser.add_argument("--custom-rules", action="store_true", help="Apply custom rules")
    parser.add_argument(
        "--channel-suffix", action="store_true", help="Append the channel name to each model"
    )
    parser.add_argument(
        "--no-smart-match", action="store_true", help="Skip smart name matching"
    )
    parser.add_argument(
        "--template",
        dest="templates",
        action="append",
        default=[],
        choices=sorted(RULE_TEMPLATES),
        help="Add the rules of a built-in template (repeatable, implies --custom-rules)",
    )


def _apply_options(context: ReconciliationContext, args: argparse.Namespace) -> None:
    """Replace the saved canonicalization flags with the ones given on the command line."""

    flags = {
        field_name: bool(getattr(args, arg_name)) for arg_name, field_name in _OPTION_FLAGS.items()
    }
    flags["smart_match"] = not args.no_smart_match
    for template_id in args.templates:
        context.config.rules.apply_template(template_id)
        flags["enable_custom_rules"] = True
    context.config = replace(context.config, **flags)


def _log_channels(channels: Sequence[Channel]) -> None:
    for channel in channels:
        log.info(f"{channel.id:>5}  {channel.status.value:<8}  {channel.label}")
    log.info(f"{len(channels)} channel(s)")


def _run_fetch(args: argparse.Namespace, context: ReconciliationContext) -> None:
    channels = load_channels(include_disabled=args.include_disabled)
    if args.channel_ids:
        wanted = set(args.channel_ids)
        channels = [channel for channel in channels if channel.id in wanted]
    context.set_channels(channels)
    report = fetch_catalogs(
        channels,
        include_disabled=args.include_disabled,
        prefetch=args.prefetch,
        retry_failed=args.retry_failed,
    )
    for channel in channels:
        outcome = report.outcomes.get(channel.id)
        if outcome is not None and not outcome.success:
            log.warning(f"Channel {channel.id} ({channel.label}) failed: {outcome.error}")
    if args.all or args.patterns:
        added = select_models(context, channels, patterns=() if args.all else args.patterns)
        log.info(f"Selected {added} model(s); curated list has {len(context.curated)}")


def _run_search(
    args: argparse.Namespace, context: ReconciliationContext, store: SqlAlchemyStateStore
) -> None:
    def _load() -> list[Channel]:
        channels = load_channels(include_disabled=args.include_disabled)
        fetch_catalogs(channels, include_disabled=args.include_disabled)
        context.set_channels(channels)
        return channels

    hits = search_models(args.term, store=store, load_channels=_load)
    for hit in hits:
        log.info(f"{hit.model}  ({hit.channel_label})")
    log.info(f"{len(hits)} hit(s) for {args.term!r}")
    if args.select:
        added = select_search_hits(context, hits)
        log.info(f"Selected {added} model(s)")


def _run_plan(
    args: argparse.Namespace, context: ReconciliationContext
) -> dict[int, ChannelSyncPlan]:
    _apply_options(context, args)
    result, plans = build_plans(context)
    for canonical, raw in result.mapping.items():
        marker = "" if canonical == raw else f" <- {raw}"
        log.info(f"{canonical}{marker}")
    for collision in result.collisions:
        log.warning(
            f"{collision.canonical}: {collision.winning_raw} replaced {collision.previous_raw}"
        )
    stats = mapping_stats(context.curated, result.mapping)
    log.info(f"{stats.total} model(s): {stats.changed} renamed, {stats.unchanged} unchanged")
    for channel_id, plan in sorted(plans.items()):
        name = plan.channel.name if plan.channel else f"Channel {channel_id}"
        log.info(f"Channel {channel_id} ({name}): {len(plan.mappings)} mapping(s)")
    export_path: Path | None = getattr(args, "export", None)
    if export_path is not None:
        export_path.write_text(export_mapping(result.mapping), encoding="utf-8")
        log.info(f"Mapping written to {export_path}")
    return plans


def _run_with_state(args: argparse.Namespace) -> int:
    """Run a command that reads and writes the saved session; returns the exit code."""

    store = open_state_store(database_uri=args.state_uri)
    context = store.load_context()
    exit_code = 0
    try:
        if args.command == "fetch":
            _run_fetch(args, context)
        elif args.command == "search":
            _run_search(args, context, store)
        elif args.command == "remove":
            context.remove(args.name)
            log.info(f"Removed {args.name!r}")
        elif args.command == "clear":
            context.curated.clear()
            context.tracker.clear()
            log.info("Curated list cleared")
        elif args.command == "plan":
            _run_plan(args, context)
        elif args.command == "sync":
            plans = _run_plan(args, context)
            if args.dry_run:
                log.info("Dry run; nothing pushed")
            elif not plans:
                log.info("Nothing to synchronise")
            else:
                stats = sync_plans(
                    plans,
                    update_mode=args.mode,
                    store=store,
                    checkpoint=not args.no_checkpoint,
                )
                exit_code = 1 if stats.failed else 0
        elif args.command == "rollback":
            restored = rollback(store, checkpoint_id=args.checkpoint_id)
            exit_code = 0 if restored is not None and restored.success else 1
        else:
            raise ValueError(f"Unsupported command: {args.command}")
        store.save_context(context)
    finally:
        store.dispose()
    return exit_code


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    exit_code = 0
    try:
        if parsed_args.command == "test-connection":
            result = check_connection()
            for suggestion in result.suggestions:
                log.info(f"  - {suggestion}")
            exit_code = 0 if result.success else 1
        elif parsed_args.command == "channels":
            _log_channels(load_channels(include_disabled=parsed_args.include_disabled))
        elif parsed_args.command == "templates":
            for template in list_templates():
                log.info(f"{template.id}: {template.description} (e.g. {template.example})")
        elif parsed_args.command == "bulk-update":
            outcome = bulk_update(
                preview=not parsed_args.apply,
                channel_ids=parsed_args.channel_ids or None,
            )
            exit_code = 0 if outcome.success else 1
        else:
            exit_code = _run_with_state(parsed_args)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
