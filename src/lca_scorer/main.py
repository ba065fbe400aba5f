"""
Main entry point for the LCA scorer.

Provides CLI commands for running the API server and for scoring,
exporting and certifying models from the shell:

    lca-scorer api
    lca-scorer score records.csv -o posteriors.csv [--recode] [--policy abort]
    lca-scorer export-model model.json
    lca-scorer certify records.csv [--reference external.csv]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from .batch import ErrorPolicy, score_batch
from .core.config import get_settings
from .exceptions import CertificationError, LCAScorerError
from .models import ModelDefinition, reference_model
from .recoding import recode_clinical
from .serialization import load_model, save_model
from .utils import create_export_zip, summarize_batch
from .validation import certify_model


logger = logging.getLogger(__name__)


def _configure_logging():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _resolve_model(path: Optional[str]) -> ModelDefinition:
    settings = get_settings()
    path = path or settings.model_path
    if path:
        return load_model(path, tol=settings.tolerance)
    return reference_model()


def _read_records(path: str, recode: bool, id_column: Optional[str]) -> pd.DataFrame:
    frame = pd.read_csv(path)
    if id_column is not None:
        frame = frame.set_index(id_column, drop=False)
    if recode:
        frame = recode_clinical(frame)
    return frame


# =============================================================================
# COMMANDS
# =============================================================================

def run_api():
    """Run the FastAPI server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "lca_scorer.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        workers=settings.api_workers if not settings.api_debug else 1,
    )


def run_score(args: argparse.Namespace) -> int:
    """Score a CSV of records and write posteriors to CSV."""
    settings = get_settings()
    model = _resolve_model(args.model)
    frame = _read_records(args.input, args.recode, args.id_column)

    result = score_batch(
        model,
        frame,
        error_policy=args.policy or settings.error_policy,
        max_workers=args.workers or settings.max_workers,
        tol=settings.tolerance,
    )

    result.posteriors.to_csv(args.output, index_label=result.posteriors.index.name or 'record')
    logger.info(f"Wrote {result.n_scored} posteriors to {args.output}")

    if result.errors:
        errors_path = Path(args.output).with_suffix('.errors.csv')
        result.errors_frame().to_csv(errors_path, index=False)
        logger.warning(f"{result.n_failed} record(s) failed; details in {errors_path}")

    if args.export_zip:
        Path(args.export_zip).write_bytes(
            create_export_zip(result, model, original_data=frame)
        )
        logger.info(f"Wrote export archive to {args.export_zip}")

    summary = summarize_batch(result, model)
    for class_name, size in summary['class_sizes'].items():
        logger.info(f"  {class_name}: {size}")
    return 0 if result.ok else 1


def run_export_model(args: argparse.Namespace) -> int:
    """Write the configured (or embedded reference) model to JSON."""
    save_model(_resolve_model(args.model), args.output)
    return 0


def run_certify(args: argparse.Namespace) -> int:
    """Certify a model against reference posteriors."""
    settings = get_settings()
    model = _resolve_model(args.model)
    frame = _read_records(args.input, args.recode, None)
    reference = pd.read_csv(args.reference) if args.reference else None

    try:
        report = certify_model(
            model,
            frame,
            reference=reference,
            decimals=args.decimals or settings.certification_decimals,
            tol=settings.tolerance,
        )
    except CertificationError as e:
        logger.error(str(e))
        if e.report is not None and e.report.confusion is not None:
            logger.error(f"Confusion (reference x scored):\n{e.report.confusion}")
        return 1

    logger.info(f"Model certified on {report.n_records} records")
    return 0


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lca-scorer", description=__doc__.splitlines()[1])
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("api", help="Run the HTTP scoring service")

    score_p = sub.add_parser("score", help="Score a CSV of records")
    score_p.add_argument("input", help="CSV of records (recoded levels, or raw fields with --recode)")
    score_p.add_argument("-o", "--output", required=True, help="Output CSV of posteriors")
    score_p.add_argument("--model", help="Model Definition JSON (default: configured or reference)")
    score_p.add_argument("--recode", action="store_true", help="Recode raw clinical fields first")
    score_p.add_argument("--id-column", help="Column holding record identifiers")
    score_p.add_argument("--policy", choices=[p.value for p in ErrorPolicy], help="Per-record error policy")
    score_p.add_argument("--workers", type=int, help="Thread pool size")
    score_p.add_argument("--export-zip", help="Also write a ZIP export to this path")

    export_p = sub.add_parser("export-model", help="Write the Model Definition to JSON")
    export_p.add_argument("output", help="Output JSON path")
    export_p.add_argument("--model", help="Model Definition JSON to re-export")

    certify_p = sub.add_parser("certify", help="Certify a model against reference posteriors")
    certify_p.add_argument("input", help="CSV of reference records")
    certify_p.add_argument("--reference", help="CSV of external posteriors, row-aligned with input")
    certify_p.add_argument("--model", help="Model Definition JSON")
    certify_p.add_argument("--recode", action="store_true", help="Recode raw clinical fields first")
    certify_p.add_argument("--decimals", type=int, help="Required agreement in decimals")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging()

    if args.command == "api":
        run_api()
        return 0

    commands = {
        "score": run_score,
        "export-model": run_export_model,
        "certify": run_certify,
    }
    try:
        return commands[args.command](args)
    except LCAScorerError as e:
        logger.error(f"{type(e).__name__}: {e} {e.context or ''}".rstrip())
        return 2


if __name__ == "__main__":
    sys.exit(main())
