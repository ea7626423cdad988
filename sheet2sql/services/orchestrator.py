from __future__ import annotations

import logging
import time
import zipfile
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

from ..config.loader import JobConfig, SheetJobConfig
from ..excel.reader import EmptyWorkbookError, SheetHeaderError, read_workbook
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.lookup import LookupStats, VLookupError
from ..models.processing_result import ProcessingResult, SheetStat, SheetStatus
from ..models.sheet import Sheet
from ..models.validation import ValidationError
from ..schema.inference import build_mappings, infer_schema
from ..sql.dialects import DialectRegistry, default_registry
from ..sql.generator import GenerateOptions, SqlGenerationResult, generate_sql
from ..validate.engine import calculate_quality_score, validate_data
from ..vlookup.engine import apply_vlookups_to_sheets
from .progress import ProgressTracker

"""Conversion orchestration.

One job = one workbook. For every target sheet:

1. apply the configured VLOOKUPs (all lookups read the original sheets)
2. infer the schema and merge it with the configured column overrides
3. validate the rows
4. generate SQL and write ``<output_directory>/<table>.sql``

Problems are collected into the JSON Lines error log. A sheet fails (no file
written) when its lookups fail fast or its configuration cannot produce data
statements; otherwise it succeeds, possibly with reported errors.
"""

__all__ = [
    "ProcessingError",
    "convert_job",
    "convert_sheet",
    "load_sheets",
    "preview_lookups",
]

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Fatal problem that prevents the whole job from running."""


def load_sheets(job: JobConfig, source: Path) -> list[Sheet]:
    if not source.exists():
        raise ProcessingError(f"source file not found: {source}")
    try:
        return read_workbook(
            source,
            header_row=job.header_row,
            max_rows=job.max_rows,
            keep_na_strings=list(job.keep_na_strings) or None,
        )
    except (EmptyWorkbookError, SheetHeaderError, zipfile.BadZipFile, ValueError, OSError) as e:
        raise ProcessingError(f"cannot read workbook {source.name}: {e}") from e


def _target_sheet_names(job: JobConfig, sheets: Sequence[Sheet]) -> list[str]:
    if job.sheets:
        return [s.name for s in job.sheets]
    return [s.name for s in sheets]


def _dedupe(problems: Sequence[ValidationError]) -> list[ValidationError]:
    # validate_data と generate_sql の NOT NULL 検出が重複するため
    seen: dict[tuple[int, str, str], ValidationError] = {}
    for p in problems:
        seen.setdefault((p.row, p.column, p.message), p)
    return list(seen.values())


def _data_statement_count(result: SqlGenerationResult) -> int:
    return sum(1 for s in result.statements if s.startswith(("INSERT", "UPDATE")))


def convert_sheet(
    sheet: Sheet,
    sheet_cfg: SheetJobConfig,
    job: JobConfig,
    *,
    file_name: str,
    registry: DialectRegistry,
    error_log: ErrorLogBuffer,
) -> SheetStat:
    """Infer, validate and generate SQL for one (already enriched) sheet."""
    started = time.perf_counter()

    unknown = sorted(set(sheet_cfg.columns) - set(sheet.headers))
    if unknown:
        logger.warning(f"sheet {sheet.name}: column overrides for unknown headers ignored: {', '.join(unknown)}")

    schema = infer_schema(
        sheet.headers,
        sheet.rows,
        sample_size=job.inference.sample_size,
        confidence_threshold=job.inference.confidence_threshold,
    )
    mappings = build_mappings(
        schema, sheet_cfg.columns, use_suggested_primary_key=job.inference.use_suggested_primary_key
    )

    validation = validate_data(sheet.rows, mappings, job.validation, headers=sheet.headers)
    quality = calculate_quality_score(sheet.rows, mappings, headers=sheet.headers)

    config = sheet_cfg.sql_config(job.database, job.batch_size)
    options = GenerateOptions(
        include_comments=job.include_comments,
        if_not_exists=job.if_not_exists,
        create_table=job.create_table,
        file_name=file_name,
        headers=sheet.headers,
    )
    generated = generate_sql(config.table_name, mappings, sheet.rows, config, options, registry)

    problems = _dedupe([*validation.errors, *generated.errors, *validation.warnings])
    errors = [p for p in problems if p.is_error]
    warnings = [p for p in problems if not p.is_error]
    error_log.extend(ErrorRecord.from_validation_error(file_name, sheet.name, p) for p in problems)

    statement_count = _data_statement_count(generated)
    config_errors = [e for e in generated.errors if e.row == 0]
    failed = bool(config_errors) and statement_count == 0 and bool(sheet.rows)

    output_path: Path | None = None
    if not failed:
        out_dir = Path(job.output_directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        output_path = out_dir / f"{config.table_name}.sql"
        output_path.write_text(generated.sql, encoding="utf-8")

    if failed:
        status = SheetStatus.FAILED
    elif errors:
        status = SheetStatus.PARTIAL
    else:
        status = SheetStatus.SUCCESS

    elapsed = time.perf_counter() - started
    logger.info(
        f"sheet {sheet.name} -> {config.table_name}: status={status.value} rows={len(sheet.rows)} "
        f"statements={statement_count} errors={len(errors)} warnings={len(warnings)} "
        f"quality={quality.score}"
    )
    return SheetStat(
        sheet_name=sheet.name,
        table_name=config.table_name,
        status=status,
        row_count=len(sheet.rows),
        statement_count=statement_count,
        error_count=len(errors),
        warning_count=len(warnings),
        elapsed_seconds=elapsed,
        output_path=output_path,
        quality_score=quality.score,
        error=config_errors[0].message if failed else None,
    )


def _log_lookup_stats(stats: Sequence[LookupStats]) -> None:
    for st in stats:
        logger.info(
            f"lookup {st.lookup_id}: {st.source_column} -> {st.target_column} "
            f"matched={st.matched} unmatched={st.unmatched} null_inputs={st.null_inputs} total={st.total_rows}"
        )


def preview_lookups(job: JobConfig, sheets: Sequence[Sheet]) -> list[Sheet]:
    """Apply the job's VLOOKUPs for display only (``preview_only`` included).

    Lookup errors are logged as warnings and never stop the preview.
    """
    lookups = job.vlookups
    targets = _target_sheet_names(job, sheets)
    if not (lookups.enabled and lookups.lookups and targets):
        return list(sheets)
    routed = apply_vlookups_to_sheets(sheets, targets[0], lookups)
    for err in routed.errors:
        logger.warning(f"lookup {err.lookup_id} ({err.kind.value}): {err.message}")
    _log_lookup_stats(routed.stats)
    return routed.sheets


def _failed_stat(sheet_name: str, table: str, message: str, error_count: int) -> SheetStat:
    return SheetStat(
        sheet_name=sheet_name,
        table_name=table,
        status=SheetStatus.FAILED,
        row_count=0,
        statement_count=0,
        error_count=error_count,
        warning_count=0,
        elapsed_seconds=0.0,
        error=message,
    )


def convert_job(job: JobConfig, registry: DialectRegistry | None = None) -> ProcessingResult:
    """Convert every target sheet of ``job.source_file`` into SQL files.

    Raises:
        ProcessingError: source workbook missing or unreadable
    """
    start_time = datetime.now(UTC)
    registry = registry or default_registry()
    error_log = ErrorLogBuffer(Path(job.error_log_directory))
    source = Path(job.source_file)

    sheets = load_sheets(job, source)
    by_name = {s.name: s for s in sheets}
    targets = _target_sheet_names(job, sheets)
    logger.info(f"workbook {source.name}: sheets={len(sheets)} targets={len(targets)}")

    lookup_errors: dict[str, list[VLookupError]] = {}
    lookups = job.vlookups
    if lookups.enabled and lookups.lookups and targets:
        if lookups.preview_only:
            logger.info("vlookups are preview-only; conversion uses the original rows")
        else:
            active = targets[0]
            routed = apply_vlookups_to_sheets(
                sheets, active, lookups, fail_fast=job.fail_fast_lookups
            )
            by_name = {s.name: s for s in routed.sheets}
            owner = {lk.id: lk.target_sheet or active for lk in lookups.lookups}
            for err in routed.errors:
                sheet_name = owner.get(err.lookup_id, active)
                lookup_errors.setdefault(sheet_name, []).append(err)
                logger.warning(f"lookup {err.lookup_id} ({err.kind.value}): {err.message}")
                error_log.append(ErrorRecord.from_lookup_error(source.name, sheet_name, err))
            _log_lookup_stats(routed.stats)

    stats: list[SheetStat] = []
    with ProgressTracker(len(targets)) as progress:
        for name in targets:
            progress.start_sheet(name)
            sheet_cfg = job.sheet_config(name)
            sheet = by_name.get(name)
            if sheet is None:
                message = f"sheet '{name}' not found in workbook"
                logger.error(message)
                error_log.append(ErrorRecord.create(source.name, name, -1, "SHEET_NOT_FOUND", message))
                stats.append(_failed_stat(name, sheet_cfg.table, message, 1))
                progress.finish_sheet(success=False)
                continue

            sheet_lookup_errors = lookup_errors.get(name, [])
            if sheet_lookup_errors and job.fail_fast_lookups:
                message = f"{len(sheet_lookup_errors)} lookup error(s); sheet skipped"
                logger.error(f"sheet {name}: {message}")
                stats.append(_failed_stat(name, sheet_cfg.table, message, len(sheet_lookup_errors)))
                progress.finish_sheet(success=False)
                continue

            stat = convert_sheet(
                sheet, sheet_cfg, job, file_name=source.name, registry=registry, error_log=error_log
            )
            if sheet_lookup_errors:
                stat = replace(
                    stat,
                    error_count=stat.error_count + len(sheet_lookup_errors),
                    status=SheetStatus.PARTIAL if stat.status is SheetStatus.SUCCESS else stat.status,
                )
            stats.append(stat)
            progress.finish_sheet(success=stat.status is not SheetStatus.FAILED, rows=stat.row_count)

    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")

    end_time = datetime.now(UTC)
    return ProcessingResult(
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        sheet_stats=stats,
    )
