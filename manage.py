#!/usr/bin/env python3
"""
Member Data Sync — local management tool.

Preview, clean and sync CSV files from the command line, check schedule
definitions, and run migrations.
Usage: python manage.py <command> [options]
"""

import asyncio
import json
import logging
import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import List

from membersync.core.logging import setup_logging


# ═══════════════════════════════════════════════════════════
#  Logging Setup
# ═══════════════════════════════════════════════════════════

class ColorFormatter(logging.Formatter):
    """Console formatter with ANSI colors and level symbols."""

    COLORS = {
        "INFO": "\033[96m",        # Cyan
        "SUCCESS": "\033[92m",     # Green
        "WARNING": "\033[93m",     # Yellow
        "ERROR": "\033[91m",       # Red
        "CRITICAL": "\033[91m\033[1m",  # Bold Red
        "DEBUG": "\033[94m",       # Blue
        "HEADER": "\033[95m",      # Magenta
        "BOLD": "\033[1m",
        "RESET": "\033[0m",
    }

    SYMBOLS = {
        "INFO": "→",
        "SUCCESS": "✓",
        "WARNING": "⚠",
        "ERROR": "✗",
        "CRITICAL": "☠",
        "DEBUG": "•",
        "STEP": "▶",
    }

    MARKERS = ("SUCCESS", "WARNING", "ERROR", "STEP")

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty() and sys.platform != "win32"

    def _colorize(self, text: str, color_name: str) -> str:
        if not self.use_colors:
            return text
        color = self.COLORS.get(color_name, "")
        return f"{color}{text}{self.COLORS['RESET']}" if color else text

    def format(self, record: logging.LogRecord) -> str:
        msg = str(record.msg)

        symbol, color = self.SYMBOLS.get(record.levelname, ""), record.levelname
        for marker in self.MARKERS:
            tag = f"[{marker}] "
            if msg.startswith(tag):
                msg = msg[len(tag):]
                symbol = self.SYMBOLS[marker]
                color = "INFO" if marker == "STEP" else marker
                break

        if symbol and not msg.startswith(("===", " ")):
            msg = f"{symbol} {msg}"

        record.msg = self._colorize(msg, "HEADER" if msg.startswith("===") else color)
        return super().format(record)


_log_dir = "logs"
os.makedirs(_log_dir, exist_ok=True)
_log_file = os.path.join(_log_dir, f"manage-{datetime.now():%Y%m%d}.log")

_file_handler = logging.FileHandler(_log_file, encoding="utf-8")
_file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))

_console_handler = logging.StreamHandler()
_console_handler.setFormatter(ColorFormatter())

# Own handlers so setup_logging() (which resets the root logger) leaves CLI output alone
logger = logging.getLogger("manage")
logger.setLevel(logging.INFO)
logger.addHandler(_file_handler)
logger.addHandler(_console_handler)
logger.propagate = False


# ═══════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════

def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8-sig")


def _read_json(path: str):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _option(opts: List[str], name: str, default: str | None = None) -> str | None:
    prefix = f"--{name}="
    for o in opts:
        if o.startswith(prefix):
            return o[len(prefix):]
    return default


# ═══════════════════════════════════════════════════════════
#  Commands
# ═══════════════════════════════════════════════════════════

def cmd_preview(csv_path: str, opts: List[str]) -> None:
    """Parse a CSV file and print inferred column types."""
    from membersync.processing.cleaning import generate_default_column_config
    from membersync.processing.parser import generate_preview, parse_csv

    table = parse_csv(_read_text(csv_path))
    preview = generate_preview(table, int(_option(opts, "rows", "5")))

    logger.info(f"=== {csv_path}: {preview.total_rows} rows, {len(preview.headers)} columns ===")
    for column in preview.columns:
        logger.info(
            f"  {column.name:<24} {column.detected_type:<8} "
            f"{column.confidence:>4.0%}  nulls={column.null_count} unique={column.unique_count}"
        )

    if "--config" in opts:
        config = generate_default_column_config(preview.columns)
        print(json.dumps({"columns": [c.model_dump(mode="json") for c in config]}, indent=2))
    logger.info("[SUCCESS] Preview complete")


def cmd_clean(csv_path: str, config_path: str, opts: List[str]) -> None:
    """Apply a column configuration and write the cleaned rows as CSV."""
    from membersync.processing.parser import parse_csv, rows_to_records, to_csv_string
    from membersync.processing.pipeline import process_rows
    from membersync.processing.types import ColumnConfiguration

    config = ColumnConfiguration.model_validate(_read_json(config_path))
    records = rows_to_records(parse_csv(_read_text(csv_path)))

    logger.info(f"[STEP] Cleaning {len(records)} rows")
    processed = process_rows(records, config)

    columns = (
        [c.target_name for c in config.columns if c.included]
        or list(records[0].keys() if records else [])
    )
    output = to_csv_string(processed.cleaned_rows, columns)

    out_path = _option(opts, "out")
    if out_path:
        Path(out_path).write_text(output + "\n", encoding="utf-8")
        logger.info(f"[SUCCESS] Wrote {len(processed.cleaned_rows)} rows to {out_path}")
    else:
        print(output)
    logger.info(f"  skipped={processed.skipped_count}")


def cmd_schedule(schedule_path: str) -> None:
    """Validate a schedule definition and show its next runs."""
    from membersync.processing.types import ScheduleConfiguration
    from membersync.services.schedule import (
        calculate_next_sync_time,
        get_schedule_description,
        validate_schedule_config,
    )

    schedule = ScheduleConfiguration.model_validate(_read_json(schedule_path))
    validation = validate_schedule_config(schedule)
    if not validation.valid:
        for error in validation.errors:
            logger.error(f"[ERROR] {error}")
        sys.exit(1)

    logger.info(f"=== {get_schedule_description(schedule)} ===")
    moment = None
    for _ in range(5):
        moment = calculate_next_sync_time(schedule, moment)
        if moment is None:
            logger.info("  No scheduled runs")
            break
        logger.info(f"  {moment.isoformat()}")
    logger.info("[SUCCESS] Schedule is valid")


async def _sync(data_source_id: str, csv_text: str, database_url: str | None):
    from membersync.core.config import settings
    from membersync.db.session import build_engine, build_session_factory
    from membersync.services.data_source_sync import sync_data_source
    from membersync.store.sql import SqlDataStore

    engine = build_engine(database_url or settings.DATABASE_URL)
    try:
        return await sync_data_source(
            SqlDataStore(engine),
            build_session_factory(engine),
            data_source_id,
            csv_text=csv_text,
        )
    finally:
        await engine.dispose()


def cmd_sync(data_source_id: str, csv_path: str, opts: List[str]) -> None:
    """Run a stored data source against a local CSV file."""
    outcome = asyncio.run(_sync(data_source_id, _read_text(csv_path), _option(opts, "database-url")))
    if outcome is None:
        logger.error(f"[ERROR] Data source not found: {data_source_id}")
        sys.exit(1)

    result = outcome.result
    marker = {"success": "[SUCCESS]", "partial": "[WARNING]"}.get(result.status, "[ERROR]")
    logger.info(
        f"{marker} Sync {result.status}: imported={result.records_imported} "
        f"skipped={result.records_skipped} failed={result.records_failed}"
    )
    for error in result.errors[:10]:
        logger.info(f"  row {error.row}: {error.message}")
    if outcome.next_sync_at:
        logger.info(f"  next run: {outcome.next_sync_at.isoformat()}")


def cmd_init_db() -> None:
    """Run Alembic migrations to head."""
    logger.info("[STEP] Running: alembic upgrade head")
    try:
        subprocess.run(["alembic", "upgrade", "head"], check=True, text=True, cwd="backend")
    except subprocess.CalledProcessError as exc:
        logger.error(f"Command failed (exit {exc.returncode})")
        raise
    logger.info("[SUCCESS] Database migrated")


# ═══════════════════════════════════════════════════════════
#  CLI Entry Point
# ═══════════════════════════════════════════════════════════

USAGE = f"""
{ColorFormatter.COLORS['HEADER']}Member Data Sync — Management{ColorFormatter.COLORS['RESET']}
{'═' * 50}

{ColorFormatter.COLORS['BOLD']}Usage:{ColorFormatter.COLORS['RESET']} python manage.py <command> [options]

{ColorFormatter.COLORS['BOLD']}Commands:{ColorFormatter.COLORS['RESET']}
    {ColorFormatter.COLORS['INFO']}preview <csv>{ColorFormatter.COLORS['RESET']}              Infer column types (--rows=N, --config)
    {ColorFormatter.COLORS['INFO']}clean <csv> <config.json>{ColorFormatter.COLORS['RESET']}  Clean rows and print CSV (--out=PATH)
    {ColorFormatter.COLORS['INFO']}schedule <schedule.json>{ColorFormatter.COLORS['RESET']}   Validate a schedule and list next runs
    {ColorFormatter.COLORS['INFO']}sync <id> <csv>{ColorFormatter.COLORS['RESET']}            Sync a data source from a file (--database-url=URL)
    {ColorFormatter.COLORS['INFO']}init-db{ColorFormatter.COLORS['RESET']}                    Run Alembic migrations

{ColorFormatter.COLORS['BOLD']}Examples:{ColorFormatter.COLORS['RESET']}
    python manage.py preview members.csv --config > columns.json
    python manage.py clean members.csv columns.json --out=clean.csv
    python manage.py schedule weekly.json
"""


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] in ("-h", "--help"):
        print(USAGE)
        sys.exit(0)

    command = sys.argv[1]
    opts = sys.argv[2:]
    args = [o for o in opts if not o.startswith("--")]

    setup_logging("DEBUG" if "--verbose" in opts else "WARNING")

    try:
        if command == "preview" and len(args) >= 1:
            cmd_preview(args[0], opts)
        elif command == "clean" and len(args) >= 2:
            cmd_clean(args[0], args[1], opts)
        elif command == "schedule" and len(args) >= 1:
            cmd_schedule(args[0])
        elif command == "sync" and len(args) >= 2:
            cmd_sync(args[0], args[1], opts)
        elif command == "init-db":
            cmd_init_db()
        else:
            logger.error(f"Unknown command or missing arguments: {command}")
            print(USAGE)
            sys.exit(1)
    except Exception as exc:
        logger.error(f"Operation failed: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
