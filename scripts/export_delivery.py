#!/usr/bin/env python
"""
export_delivery.py - build an electronic delivery package from a manifest

The manifest is the same JSON body the HTTP API accepts, plus project_id
(see src/core/manifest.py).

Usage:
    uv run python scripts/export_delivery.py \\
        --input manifest.json --storage storage/ --output exports/

    # expanded folder, fail on warnings
    uv run python scripts/export_delivery.py --input manifest.json \\
        --storage storage/ --output exports/ --format folder --strict

Environment (.env):
    DELIVERY_CONFIG   settings file (default: default.yaml)

Exit code: 0 completed, 1 failed, 2 bad input
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv  # noqa: E402

from src.core.categories import load_classification_codes  # noqa: E402
from src.core.exporter import run_export  # noqa: E402
from src.core.manifest import build_export_config, parse_snapshot  # noqa: E402
from src.core.storage import LocalBinaryStorage  # noqa: E402
from src.core.validator import format_validation_report  # noqa: E402
from src.domain.errors import PolicyRejectError  # noqa: E402
from src.domain.schemas import ExportJob, ExportProgress, JobResult  # noqa: E402

logger = logging.getLogger(__name__)


def load_settings(config_path: Path) -> dict:
    if not config_path.exists():
        logger.warning(f"settings file not found, using defaults: {config_path}")
        return {}
    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def log_progress(progress: ExportProgress) -> None:
    current = f" {progress.current_file}" if progress.current_file else ""
    logger.info(
        f"[{progress.progress_percent:3d}%] {progress.step.value} "
        f"({progress.processed_files}/{progress.total_files}){current}"
    )


def print_summary(job: ExportJob) -> None:
    print("\n" + "=" * 60)
    print(f"Job:    {job.job_id}")
    print(f"Result: {job.result.value}")
    if job.result == JobResult.SUCCEEDED:
        print(f"Output: {job.archive_path}")
    else:
        step = job.failed_step.value if job.failed_step else "-"
        print(f"Failed: {step} [{job.failure_code}] {job.failure_reason}")
        print(f"Files:  {job.processed_files}/{job.total_files}")
    print("=" * 60)
    if job.validation_report is not None:
        print(format_validation_report(job.validation_report))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build a PHOTO/PIC/DRA delivery package from an export manifest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--input", required=True, help="manifest JSON path")
    parser.add_argument("--storage", required=True, help="binary storage base directory")
    parser.add_argument("--output", required=True, help="exports root directory")
    parser.add_argument("--project", help="project id (overrides manifest project_id)")
    parser.add_argument("--format", choices=["zip", "folder"], help="output format")
    warnings = parser.add_mutually_exclusive_group()
    warnings.add_argument(
        "--allow-warnings",
        dest="allow_warnings",
        action="store_true",
        default=None,
        help="complete the export even when validation reports warnings",
    )
    warnings.add_argument(
        "--strict",
        dest="allow_warnings",
        action="store_false",
        help="fail the export on validation warnings",
    )
    parser.add_argument("--report", action="store_true", help="include REPORT.TXT / CSV / XLSX")
    parser.add_argument(
        "--config",
        default=os.environ.get("DELIVERY_CONFIG", "default.yaml"),
        help="settings file (default: $DELIVERY_CONFIG or default.yaml)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = PROJECT_ROOT / config_path
    settings = load_settings(config_path)

    try:
        payload = json.loads(Path(args.input).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"cannot read manifest {args.input}: {e}")
        return 2

    options = dict(payload.get("options") or {})
    if args.format:
        options["output_format"] = args.format
    if args.allow_warnings is not None:
        options["allow_warnings"] = args.allow_warnings
    if args.report:
        options["include_report"] = True
    payload["options"] = options

    project_id = args.project or payload.get("project_id")
    if not project_id:
        logger.error("project id missing (use --project or manifest project_id)")
        return 2

    try:
        config = build_export_config(project_id, payload, settings)
        photos, drawings = parse_snapshot(payload)
    except PolicyRejectError as e:
        logger.error(f"invalid manifest: {e}")
        return 2

    standard = settings.get("paths", {}).get("standard", "standard.yaml")
    codes = load_classification_codes(PROJECT_ROOT / standard)

    job = asyncio.run(
        run_export(
            config,
            LocalBinaryStorage(Path(args.storage)),
            Path(args.output),
            photos,
            drawings,
            classification_codes=codes,
            on_progress=log_progress,
        )
    )
    print_summary(job)
    return 0 if job.result == JobResult.SUCCEEDED else 1


if __name__ == "__main__":
    sys.exit(main())
