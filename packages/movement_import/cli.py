# ruff: noqa: I001
"""CLI for the ``movement_import`` package.

This module exposes callable command handlers (e.g., ``cmd_import``) that
return process exit codes, and a Typer-based console interface that wraps
them. Environment variables (notably ``DATABASE_URL``) are loaded from a local
``.env`` using ``python-dotenv`` before delegating to command logic. Business
logic lives in ``movement_import.workflows`` and related modules.
"""

from __future__ import annotations

import sys
import uuid
from pathlib import Path
from collections.abc import Sequence

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .errors import (
    BatchWriteError,
    FileFormatError,
    IntegrityViolationError,
    MappingValidationError,
    MovementImportError,
)
from .ingest.seed_catalog import DEFAULT_SEED_FILE, seed_catalog_from_file
from .logging_setup import configure_logging


# ---- Small module-level helpers used by CLI commands -------------------------


def _env_toggle(name: str) -> bool | None:
    """Parse a 0/1 style env toggle; ``None`` when unset or unrecognized."""

    import os  # defer import to keep module import surface minimal

    env_val = os.getenv(name)
    if env_val is None:
        return None
    v = env_val.strip().lower()
    if v in {"0", "false", "no"}:
        return False
    if v in {"1", "true", "yes"}:
        return True
    return None


def _parse_column_overrides(items: Sequence[str]) -> dict[int, str | None]:
    """Parse ``COL=FIELD`` pairs; an empty FIELD (``3=``) unmaps the column."""

    out: dict[int, str | None] = {}
    for raw in items:
        col, sep, field = raw.partition("=")
        if not sep:
            raise ValueError(f"expected COL=FIELD, got {raw!r}")
        try:
            column = int(col.strip())
        except ValueError as e:
            raise ValueError(f"column must be an integer in {raw!r}") from e
        out[column] = field.strip() or None
    return out


def _parse_rows(value: str | None) -> list[int] | None:
    if value is None or not value.strip():
        return None
    return [int(part) for part in value.split(",") if part.strip()]


def _parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as e:
        raise ValueError(f"{label} is not a valid UUID: {value!r}") from e


# ---- Command handlers --------------------------------------------------------


def cmd_preview(file_path: str, *, limit: int = 5) -> int:
    """Parse a file and print its headers with the auto-assigned target fields.

    Output is one line per column, ``"<index>\\t<header>\\t<field or ->"``,
    followed by the first ``limit`` data rows.
    """

    from .mapping import ColumnMapping
    from .models import FIELD_LABELS
    from .parsing import parse_file, preview_rows

    try:
        parsed = parse_file(file_path)
    except FileFormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    mapping = ColumnMapping(len(parsed.headers))
    mapping.auto_assign(parsed.headers)
    print(f"{parsed.file_name}: {len(parsed.rows)} row(s), {len(parsed.headers)} column(s)")
    for i, header in enumerate(parsed.headers):
        field = mapping.get(i)
        label = f"{field.value} ({FIELD_LABELS[field]})" if field else "-"
        print(f"{i}\t{header}\t{label}")
    rows = list(preview_rows(parsed, limit))
    if rows:
        print()
        for row in rows:
            print("\t".join("" if c is None else str(c) for c in row))
    return 0


def cmd_import(
    file_path: str,
    *,
    organization_id: str,
    created_by: str,
    project_id: str | None = None,
    column_overrides: Sequence[str] = (),
    rows: str | None = None,
    database_url: str | None = None,
    interactive: bool = True,
    allow_create: bool | None = None,
) -> int:
    """Run the full import pipeline for ``file_path`` and print the outcome.

    Requirements
    ------------
    The reference catalog is loaded from the database and the batch is written
    there. Provide a connection via ``--database-url`` or ``DATABASE_URL``.
    Errors are written to stderr and the function returns ``1``.
    """

    # Load .env here too so env-dependent defaults work when called directly.
    load_dotenv(override=False)

    from .models import ImportContext
    from .workflows.import_flow import import_movements_from_file

    try:
        context = ImportContext(
            organization_id=_parse_uuid(organization_id, "organization id"),
            project_id=_parse_uuid(project_id, "project id") if project_id else None,
            created_by=_parse_uuid(created_by, "created-by id"),
        )
        overrides = _parse_column_overrides(column_overrides)
        selected_rows = _parse_rows(rows)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if allow_create is None:
        allow_create = _env_toggle("MI_ALLOW_CONCEPT_CREATE")
    if allow_create is None:
        allow_create = True

    try:
        result = import_movements_from_file(
            file_path,
            context=context,
            database_url=database_url,
            column_overrides=overrides,
            rows=selected_rows,
            allow_create=allow_create,
            interactive=interactive,
            on_progress=print,
        )
    except FileFormatError as e:
        print(f"Error: failed to read file: {e}", file=sys.stderr)
        return 1
    except MappingValidationError as e:
        print("Error: the column mapping is not valid:", file=sys.stderr)
        for problem in e.problems:
            print(f"  - {problem}", file=sys.stderr)
        return 1
    except IntegrityViolationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except BatchWriteError as e:
        print(f"Error: import failed: {e.message}", file=sys.stderr)
        return 1
    except (IndexError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:  # pragma: no cover - defensive
        print(f"Error: unexpected failure: {e}", file=sys.stderr)
        return 1

    if result.invalidated_views:
        print("Refreshed views: " + ", ".join(result.invalidated_views))
    return 0


def cmd_seed_catalog(
    *, organization_id: str, file: Path, database_url: str | None = None
) -> int:
    """Seed currencies, wallets and concepts for an organization from JSON."""

    try:
        org = _parse_uuid(organization_id, "organization id")
        counts = seed_catalog_from_file(database_url=database_url, organization_id=org, file=file)
    except FileNotFoundError:
        print(f"Error: File not found: {file}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: seeding failed: {e}", file=sys.stderr)
        return 1
    print(", ".join(f"{k}={v}" for k, v in counts.items()))
    return 0


def cmd_balances(*, organization_id: str, database_url: str | None = None) -> int:
    """Print per-wallet balances by currency (served from the view cache)."""

    from .views import WALLET_BALANCES_VIEW, get_view

    try:
        org = _parse_uuid(organization_id, "organization id")
        rows = get_view(WALLET_BALANCES_VIEW, org, database_url=database_url)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: failed to load balances: {e}", file=sys.stderr)
        return 1

    if not rows:
        print("No movements.")
        return 0
    for row in rows:
        balances = "  ".join(f"{code} {amount:,.2f}" for code, amount in row["balances"].items())
        print(f"{row['wallet'] or '(sin billetera)'}\t{balances}")
    return 0


def cmd_personnel_batch(
    personnel_ids: Sequence[str],
    *,
    organization_id: str,
    project_id: str,
    on_date: str | None = None,
    database_url: str | None = None,
    max_workers: int | None = None,
) -> int:
    """Print effective rates and pending payments for many personnel as JSON."""

    import json
    from datetime import date

    from .personnel import fetch_personnel_batch

    try:
        effective = date.fromisoformat(on_date) if on_date else None
        batch = fetch_personnel_batch(
            personnel_ids,
            organization_id=_parse_uuid(organization_id, "organization id"),
            project_id=_parse_uuid(project_id, "project id"),
            on_date=effective,
            database_url=database_url,
            max_workers=max_workers,
        )
    except MovementImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: personnel lookup failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(batch.as_dict(), indent=2, ensure_ascii=False))
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import financial movements from spreadsheets or CSV files. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect these when used as default values below.
FILE_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--file",
    help="Path to a .xlsx/.xlsm/.csv/.txt file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler will report nice errors
    readable=True,
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
ORGANIZATION_OPTION: OptionInfo = typer.Option(..., "--organization-id", help="Organization UUID.")
MAP_OPTION: OptionInfo = typer.Option(
    None, "--map", help="Column override as COL=FIELD (repeatable); COL= unmaps the column."
)
ID_OPTION: OptionInfo = typer.Option(..., "--id", help="Personnel UUID (repeatable).")
SEED_FILE_OPTION: OptionInfo = typer.Option(
    DEFAULT_SEED_FILE,
    "--file",
    help="Seed JSON with currencies, wallets and concepts.",
)


@app.command("preview")
def preview_cmd(
    file_path: Path = FILE_OPTION,
    limit: int = typer.Option(5, help="Number of data rows to show."),
) -> None:
    """Show headers, auto-mapped fields and the first rows of a file."""

    raise typer.Exit(cmd_preview(str(file_path), limit=limit))


@app.command("import")
def import_cmd(
    file_path: Path = FILE_OPTION,
    organization_id: str = ORGANIZATION_OPTION,
    created_by: str = typer.Option(..., "--created-by", help="Member UUID recorded as creator."),
    project_id: str | None = typer.Option(None, "--project-id", help="Optional project UUID."),
    column_map: list[str] | None = MAP_OPTION,
    rows: str | None = typer.Option(
        None, "--rows", help="Comma-separated 0-based data rows to import (default: all)."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
    interactive: bool = typer.Option(
        True, "--interactive/--no-interactive", help="Prompt for values without a match."
    ),
    allow_create: bool | None = typer.Option(
        None,
        "--allow-create/--no-allow-create",
        help=(
            "Enable in-flow category creation (default true). "
            "Override with env MI_ALLOW_CONCEPT_CREATE=0."
        ),
    ),
) -> None:
    """Import movements: parse, map, resolve unmatched values, write one batch."""

    raise typer.Exit(
        cmd_import(
            str(file_path),
            organization_id=organization_id,
            created_by=created_by,
            project_id=project_id,
            column_overrides=column_map or (),
            rows=rows,
            database_url=database_url,
            interactive=interactive,
            allow_create=allow_create,
        )
    )


@app.command("seed-catalog")
def seed_catalog_cmd(
    organization_id: str = ORGANIZATION_OPTION,
    file: Path = SEED_FILE_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Seed currencies, wallets and movement concepts for an organization."""

    raise typer.Exit(
        cmd_seed_catalog(organization_id=organization_id, file=file, database_url=database_url)
    )


@app.command("balances")
def balances_cmd(
    organization_id: str = ORGANIZATION_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Print wallet balances by currency."""

    raise typer.Exit(cmd_balances(organization_id=organization_id, database_url=database_url))


@app.command("personnel-batch")
def personnel_batch_cmd(
    personnel_ids: list[str] = ID_OPTION,
    organization_id: str = ORGANIZATION_OPTION,
    project_id: str = typer.Option(..., "--project-id", help="Project UUID."),
    on_date: str | None = typer.Option(
        None, "--date", help="Rate date as YYYY-MM-DD (default: today)."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
    max_workers: int | None = typer.Option(
        None,
        "--max-workers",
        help="Concurrent lookups (default min(8, n); env MI_PERSONNEL_MAX_WORKERS).",
    ),
) -> None:
    """Effective rates and pending payments for many personnel, as JSON."""

    raise typer.Exit(
        cmd_personnel_batch(
            personnel_ids,
            organization_id=organization_id,
            project_id=project_id,
            on_date=on_date,
            database_url=database_url,
            max_workers=max_workers,
        )
    )


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    if ctx.invoked_subcommand is None:
        # No subcommand provided - show help
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m movement_import.cli`
    app()
