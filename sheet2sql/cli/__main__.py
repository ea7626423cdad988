from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from sheet2sql.config.loader import DEFAULT_CONFIG_PATH, ConfigError, JobConfig, load_config
from sheet2sql.logging.init import log_summary, set_debug, setup_logging
from sheet2sql.models.processing_result import ProcessingResult
from sheet2sql.preview.preview import build_multi_sheet_preview, render_preview
from sheet2sql.services.orchestrator import ProcessingError, convert_job, load_sheets, preview_lookups
from sheet2sql.services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load ``.env`` (python-dotenv) so that SHEET2SQL_CONFIG can be set there
- Load and validate the YAML job
- Convert the workbook (or only preview it with ``--inspect-data``)
- Print the SUMMARY line and exit with the contract exit code
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

CONFIG_ENV_VAR = "SHEET2SQL_CONFIG"


def _load_env_file(path: Path, override: bool = False) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sheet2sql", description="Spreadsheet -> SQL converter")
    p.add_argument("--config", type=Path, default=None, help=f"Job file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print a preview of each sheet then exit")
    return p.parse_args(argv)


def _resolve_config_path(arg: Path | None) -> Path:
    if arg is not None:
        return arg
    env = os.getenv(CONFIG_ENV_VAR)
    return Path(env) if env else DEFAULT_CONFIG_PATH


def _inspect_data(job: JobConfig) -> int:
    source = Path(job.source_file)
    sheets = preview_lookups(job, load_sheets(job, source))
    print(f"FILE: {source.name} sheets={[s.name for s in sheets]}")
    for sheet in sheets:
        preview = build_multi_sheet_preview(sheets, sheet.name)
        for line in render_preview(preview):
            print(f"  {line}")
    return EXIT_SUCCESS_ALL


def _exit_code(result: ProcessingResult) -> int:
    if result.failed_sheets > 0 or result.total_errors > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] はそのまま使う (pytest の引数を拾わないように None の時だけ sys.argv)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"))

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    config_path = _resolve_config_path(args.config)
    try:
        job = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        try:
            return _inspect_data(job)
        except ProcessingError as e:
            logger.error(f"inspect: {e}")
            return EXIT_FATAL

    logger.info(f"Converting {job.source_file} ({job.database.value})")
    try:
        result = convert_job(job)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    # log_summary が "SUMMARY " を付けるので本文だけ渡す
    log_summary(render_summary_line(result).removeprefix("SUMMARY "))
    return _exit_code(result)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
