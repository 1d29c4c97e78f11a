"""
Tabular Import Engine: command-line entry point.

Examples:
  python main.py validate mappings/easypower.json
  python main.py import mappings/easypower.json exports/buses.csv exports/study.xlsx --strict
  python main.py import mappings/easypower.json exports/study.xlsx --sheet "Arc Flash" --verbose
  python main.py audit mappings/easypower.json exports/study.xlsx
  python main.py suggest exports/buses.csv --type Bus
"""

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

import structlog

from config import settings
from exceptions import AppError
from models.data_store import DataStore
from models.import_result import ImportOptions
from models.mapping import MappingConfiguration
from services.import_log import FileImportLog, MemoryImportLog
from services.import_service import get_import_service
from services.mapping_suggestion_service import get_suggestion_service

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def configure_logging() -> None:
    """Configure structured logging (JSON in production, console otherwise)."""
    logging.basicConfig(level=settings.log_level, format="%(message)s", stream=sys.stderr)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer() if settings.is_production
                else structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _suggestion_dict(suggestion) -> dict:
    return {
        "property_name": suggestion.property_name,
        "column_header": suggestion.column_header,
        "score": round(suggestion.score, 4),
        "strategy": suggestion.strategy.value,
    }


# ===================
# COMMANDS
# ===================

def cmd_validate(args: argparse.Namespace) -> int:
    config = MappingConfiguration.load(args.mapping)
    result = config.validate_mapping()
    invalid = get_suggestion_service().find_invalid_entries(config)
    payload = result.to_dict()
    payload["ignored_entries"] = [
        {"target_type": i.entry.target_type, "property_name": i.entry.property_name, "reason": i.reason}
        for i in invalid
    ]
    _print_json(payload)
    return EXIT_FAILED if result.has_errors else EXIT_OK


def cmd_import(args: argparse.Namespace) -> int:
    config = MappingConfiguration.load(args.mapping).to_immutable()
    options = ImportOptions(
        strict_missing_required_headers=args.strict or settings.strict_missing_required_headers,
        worksheet_names=args.sheets or None,
        selected_scenarios=args.scenarios or None,
    )
    log_file = args.log_file or settings.log_file
    verbose = args.verbose or settings.verbose_logging
    log = FileImportLog(log_file, verbose_enabled=verbose) if log_file else MemoryImportLog(verbose_enabled=verbose)

    store = DataStore()
    results = get_import_service().import_files(args.sources, config, store, options, log)
    _print_json({
        "results": [r.to_dict() for r in results],
        "store": {"software_version": store.software_version, "counts": store.counts()},
    })
    return EXIT_OK if all(r.success for r in results) else EXIT_FAILED


def cmd_audit(args: argparse.Namespace) -> int:
    config = MappingConfiguration.load(args.mapping).to_immutable()
    audit = get_import_service().audit_file(args.source, config)
    _print_json(audit.to_dict())
    print(audit.summary(), file=sys.stderr)
    return EXIT_OK if audit.can_import else EXIT_FAILED


def cmd_suggest(args: argparse.Namespace) -> int:
    service = get_suggestion_service()
    existing = MappingConfiguration.load(args.mapping) if args.mapping else None
    columns = service.extract_columns(args.source, existing)
    headers = [h for unit_headers in columns.values() for h in unit_headers]
    report = service.suggest_mappings(args.type, headers, existing)
    _print_json({
        "target_type": report.target_type,
        "columns": columns,
        "mapped": [_suggestion_dict(s) for s in report.mapped],
        "low_confidence": [_suggestion_dict(s) for s in report.low_confidence],
        "unmatched": report.unmatched,
        "entries": [e.model_dump(by_alias=True, mode="json") for e in report.to_entries()],
    })
    return EXIT_OK


# ===================
# MAIN
# ===================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import vendor CSV/Excel exports through a declarative column mapping",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Load and validate a mapping file")
    validate.add_argument("mapping", help="Mapping JSON file")
    validate.set_defaults(handler=cmd_validate)

    run = sub.add_parser("import", help="Import source files into one store")
    run.add_argument("mapping", help="Mapping JSON file")
    run.add_argument("sources", nargs="+", help="CSV/XLS/XLSX files, imported in order")
    run.add_argument(
        "--strict",
        action="store_true",
        help="Fail when a required Error-severity header never appears"
    )
    run.add_argument(
        "--sheet",
        action="append",
        dest="sheets",
        default=[],
        help="Only import this worksheet (repeatable)"
    )
    run.add_argument(
        "--scenario",
        action="append",
        dest="scenarios",
        default=[],
        help="Only import this study scenario (repeatable)"
    )
    run.add_argument("--log-file", help=f"Import log path (default: {settings.log_file})")
    run.add_argument("--verbose", "-v", action="store_true", help="Write VERBOSE entries to the import log")
    run.set_defaults(handler=cmd_import)

    audit = sub.add_parser("audit", help="Preview what a source file would import")
    audit.add_argument("mapping", help="Mapping JSON file")
    audit.add_argument("source", help="CSV/XLS/XLSX file")
    audit.set_defaults(handler=cmd_audit)

    suggest = sub.add_parser("suggest", help="Suggest column mappings for a record type")
    suggest.add_argument("source", help="CSV/XLS/XLSX file to read headers from")
    suggest.add_argument("--type", required=True, help="Record type, e.g. Bus or ArcFlash")
    suggest.add_argument("--mapping", help="Existing mapping; its bindings are kept")
    suggest.set_defaults(handler=cmd_suggest)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging()
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_USAGE if e.code else EXIT_OK

    try:
        return args.handler(args)
    except AppError as e:
        logger.error("command_failed", command=args.command, code=e.code, error=e.message)
        _print_json(e.to_dict())
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
