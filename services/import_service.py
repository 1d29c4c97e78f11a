"""
Import orchestrator.

Runs the section detector over every unit of a source file (the CSV
itself, or each worksheet of a workbook), keys each produced record and
inserts it into the target store. First write wins: a second record with
an existing key is counted as a duplicate and discarded.

After the run the service reports:
    - the union of missing headers
    - duplicates per type
    - imported records per type (delta against the store at call start)
    - a version warning when the store and the mapping disagree

Strict mode turns "required header never seen" into a failure of the
whole call.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence, Union
import structlog

from config import settings
from exceptions import (
    FileNotReadyError,
    SourceFileNotFoundError,
    SourceReadError,
    StrictModeMissingHeadersError,
)
from models.data_store import DataStore
from models.import_result import ImportAuditResult, ImportOptions, ImportResult
from models.mapping import AnyMappingConfiguration, MappingConfiguration
from models.records import RECORD_TYPES, format_key
from parsers.source_reader import SourceUnit, WorkbookReader, read_csv_unit, source_kind
from services.import_log import ImportLog, MemoryImportLog, get_default_log
from services.row_populator import RowPopulator
from services.section_detector import DetectedRecord, SectionDetector
from utils.text_utils import is_blank
from utils.version_util import VersionSeverity, compare_versions

logger = structlog.get_logger(__name__)

CATEGORY = "import"


class ImportService:
    """
    Imports vendor exports into a DataStore.

    The service holds no per-run state, so one instance can run several
    imports, including in parallel when each has its own store.
    """

    def __init__(self, log: Optional[ImportLog] = None):
        self._log = log

    # ===================
    # FILE READINESS
    # ===================

    def ensure_readable(
        self,
        path: Union[str, Path],
        timeout_seconds: Optional[float] = None,
        retry_delay_seconds: Optional[float] = None,
    ) -> None:
        """
        Wait until a file can be opened for reading.

        Exports are often still being written (or held open by a
        spreadsheet program) when an import starts.

        Raises:
            SourceFileNotFoundError: If the file does not exist
            FileNotReadyError: If it stays unreadable past the timeout
        """
        path = Path(path)
        timeout = settings.file_ready_timeout_seconds if timeout_seconds is None else timeout_seconds
        delay = settings.file_ready_retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
        deadline = time.monotonic() + timeout
        attempts = 0

        while True:
            attempts += 1
            try:
                with open(path, "rb") as f:
                    f.read(1)
                if attempts > 1:
                    logger.info("file_ready", path=str(path), attempts=attempts)
                return
            except FileNotFoundError:
                raise SourceFileNotFoundError(str(path))
            except OSError as e:
                if time.monotonic() >= deadline:
                    logger.error("file_not_ready", path=str(path), attempts=attempts, error=str(e))
                    raise FileNotReadyError(str(path), timeout, str(e))
                logger.debug("file_busy_retrying", path=str(path), attempt=attempts)
                time.sleep(delay)

    # ===================
    # IMPORT
    # ===================

    def import_file(
        self,
        source_path: Union[str, Path],
        mapping_config: AnyMappingConfiguration,
        target_store: DataStore,
        options: Optional[ImportOptions] = None,
        log: Optional[ImportLog] = None,
    ) -> ImportResult:
        """
        Import one source file into target_store.

        Args:
            source_path: .csv, .xls or .xlsx file
            mapping_config: Mapping (immutable snapshot for concurrent use)
            target_store: Store to populate; may already hold earlier imports
            options: Strict mode, worksheet allow-list, scenario handling
            log: Diagnostic log for this run (defaults to the configured one)

        Returns:
            ImportResult with per-call deltas and diagnostics

        Raises:
            SourceFileNotFoundError: If the file does not exist
            UnsupportedFileTypeError: If the extension is not importable
            FileNotReadyError: If the file stays locked
            SourceReadError: If a CSV or workbook cannot be read at all
            StrictModeMissingHeadersError: Strict mode and a required header never appeared
        """
        options = options or ImportOptions()
        log = log or self._log or get_default_log()
        path = Path(source_path)

        if not path.exists():
            raise SourceFileNotFoundError(str(path))
        kind = source_kind(path)
        self.ensure_readable(path)

        result = ImportResult(source_path=str(path))
        start_counts = target_store.counts()
        detector = SectionDetector(mapping_config, RowPopulator(log), log)

        log.info(CATEGORY, f"Importing {path.name}", {"strict": options.strict_missing_required_headers})
        logger.info("import_started", path=str(path), kind=kind)

        if kind == ".csv":
            self._import_unit(read_csv_unit(path), detector, target_store, options, result, log)
        else:
            self._import_workbook(path, detector, target_store, options, result, log)

        self._finish(detector, mapping_config, target_store, start_counts, options, result, log)
        return result

    def _import_workbook(
        self,
        path: Path,
        detector: SectionDetector,
        store: DataStore,
        options: ImportOptions,
        result: ImportResult,
        log: ImportLog,
    ) -> None:
        with WorkbookReader(path) as workbook:
            sheet_names = [name for name in workbook.sheet_names if options.wants_worksheet(name)]
            if options.worksheet_names and not sheet_names:
                message = (
                    "None of the requested worksheets were found: "
                    + ", ".join(options.worksheet_names)
                )
                log.error(CATEGORY, message, {"available": workbook.sheet_names})
                result.errors.append(message)
                return

            for sheet_name in sheet_names:
                try:
                    unit = workbook.read_sheet(sheet_name)
                except SourceReadError as e:
                    log.error(CATEGORY, f"Skipping unreadable sheet '{sheet_name}'", e.details)
                    result.errors.append(e.message)
                    continue
                self._import_unit(unit, detector, store, options, result, log)

    def _import_unit(
        self,
        unit: SourceUnit,
        detector: SectionDetector,
        store: DataStore,
        options: ImportOptions,
        result: ImportResult,
        log: ImportLog,
    ) -> None:
        result.units.append(unit.name)
        log.verbose(CATEGORY, f"Scanning {unit.name} ({unit.row_count} rows)")
        for detected in detector.scan(unit):
            result.field_errors += detected.result.field_errors
            self._store_record(detected, store, options, result, log)

    def _store_record(
        self,
        detected: DetectedRecord,
        store: DataStore,
        options: ImportOptions,
        result: ImportResult,
        log: ImportLog,
    ) -> None:
        record_type = detected.record_type
        record = detected.record
        type_name = detected.type_name

        scenario_property = record_type.scenario_property
        if scenario_property is not None:
            spec = record_type.fields[scenario_property]
            scenario = spec.get(record)
            if not is_blank(scenario):
                renamed = options.override_scenario(scenario)
                if renamed != scenario:
                    spec.setter(record, renamed)
                    scenario = renamed
                if not options.is_scenario_selected(scenario):
                    result.filtered[type_name] = result.filtered.get(type_name, 0) + 1
                    return

        key = record_type.key_for(record)
        if key is None:
            log.verbose(
                CATEGORY,
                f"{type_name} at {detected.unit_name} row {detected.row_number} has a blank key value; skipped",
                {"key_properties": list(record_type.key_properties)},
            )
            return

        if not store.add(type_name, key, record):
            result.duplicates[type_name] = result.duplicates.get(type_name, 0) + 1
            log.error(
                CATEGORY,
                f"Duplicate {type_name} key {format_key(key)} at {detected.unit_name} row {detected.row_number} (skipped)",
            )

    def _finish(
        self,
        detector: SectionDetector,
        mapping_config: AnyMappingConfiguration,
        store: DataStore,
        start_counts: dict[str, int],
        options: ImportOptions,
        result: ImportResult,
        log: ImportLog,
    ) -> None:
        result.header_rows = len(detector.sections)
        result.sections = detector.section_counts

        # Missing headers: union across sections, first spelling wins
        missing: dict[str, str] = {}
        for section in detector.sections:
            for header in section.missing_headers:
                missing.setdefault(header.lower(), header)
        result.missing_headers = sorted(missing.values(), key=str.lower)
        if result.missing_headers:
            log.info(CATEGORY, "Missing headers encountered:", ", ".join(result.missing_headers))

        for type_name, count in sorted(result.duplicates.items()):
            log.info(CATEGORY, f"{count} duplicate {type_name} records skipped")
        for type_name, count in sorted(result.filtered.items()):
            log.info(CATEGORY, f"{count} {type_name} records outside the selected scenarios skipped")

        end_counts = store.counts()
        result.imported = {
            name: end_counts.get(name, 0) - start_counts.get(name, 0)
            for name in end_counts
            if end_counts.get(name, 0) != start_counts.get(name, 0)
        }
        for type_name, delta in sorted(result.imported.items()):
            log.info(CATEGORY, f"Imported {delta} {type_name} records", {"total": end_counts[type_name]})

        self._check_version(mapping_config, store, result, log)

        required_missing = detector.missing_required_headers(mapping_config.import_map)
        result.missing_required_headers = required_missing
        if required_missing:
            if options.strict_missing_required_headers:
                log.error(CATEGORY, "Strict mode: required headers missing: " + ", ".join(required_missing))
                logger.error("import_strict_failure", path=result.source_path, missing=required_missing)
                raise StrictModeMissingHeadersError(required_missing)
            result.warnings.append("Required headers never found: " + ", ".join(required_missing))

        logger.info(
            "import_completed",
            path=result.source_path,
            imported=result.total_imported,
            duplicates=result.total_duplicates,
            missing_headers=len(result.missing_headers),
            success=result.success
        )
        log.info(CATEGORY, f"Import finished: {result.summary()}")

    def _check_version(
        self,
        mapping_config: AnyMappingConfiguration,
        store: DataStore,
        result: ImportResult,
        log: ImportLog,
    ) -> None:
        mapping_version = mapping_config.software_version
        if is_blank(store.software_version):
            if not is_blank(mapping_version):
                store.software_version = mapping_version
            return
        if is_blank(mapping_version) or mapping_version.strip() == store.software_version.strip():
            return

        comparison = compare_versions(mapping_version, store.software_version)
        if comparison.is_match:
            return
        result.version_check = comparison
        result.warnings.append(comparison.message)
        if comparison.severity == VersionSeverity.ERROR:
            log.error(CATEGORY, f"Version mismatch: {comparison.message}")
        else:
            log.info(CATEGORY, f"Version mismatch: {comparison.message}")

    # ===================
    # BATCHES
    # ===================

    def import_files(
        self,
        source_paths: Sequence[Union[str, Path]],
        mapping_config: AnyMappingConfiguration,
        target_store: DataStore,
        options: Optional[ImportOptions] = None,
        log: Optional[ImportLog] = None,
    ) -> list[ImportResult]:
        """Import several files one after another into the same store."""
        return [
            self.import_file(path, mapping_config, target_store, options, log)
            for path in source_paths
        ]

    def import_files_parallel(
        self,
        source_paths: Sequence[Union[str, Path]],
        mapping_config: AnyMappingConfiguration,
        options: Optional[ImportOptions] = None,
        max_workers: Optional[int] = None,
        log: Optional[ImportLog] = None,
    ) -> list[tuple[DataStore, ImportResult]]:
        """
        Import files concurrently, each into its own new store.

        The mapping is frozen first; only the immutable snapshot is shared
        between workers. Results come back in input order.
        """
        if isinstance(mapping_config, MappingConfiguration):
            mapping_config = mapping_config.to_immutable()

        def run(path: Union[str, Path]) -> tuple[DataStore, ImportResult]:
            store = DataStore()
            return store, self.import_file(path, mapping_config, store, options, log)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(run, source_paths))

    # ===================
    # AUDIT
    # ===================

    def audit_file(
        self,
        source_path: Union[str, Path],
        mapping_config: AnyMappingConfiguration,
        options: Optional[ImportOptions] = None,
    ) -> ImportAuditResult:
        """
        Preview an import without touching any real store.

        Runs a full import into a scratch store and summarizes what was
        found: data types, scenarios, counts. Scenario selection is ignored
        so every scenario is discovered. Strict-mode failures are reported
        as errors instead of raised.
        """
        options = (options or ImportOptions()).model_copy(update={"selected_scenarios": None})
        scratch = DataStore()
        audit = ImportAuditResult(source_path=str(source_path))
        log = MemoryImportLog(verbose_enabled=False)

        try:
            result = self.import_file(source_path, mapping_config, scratch, options, log)
        except StrictModeMissingHeadersError as e:
            audit.errors.append(e.message)
            result = None

        if result is not None:
            audit.warnings.extend(result.warnings)
            audit.errors.extend(result.errors)
            if result.missing_headers:
                audit.warnings.append("Missing headers: " + ", ".join(result.missing_headers))
            for type_name, count in sorted(result.duplicates.items()):
                audit.warnings.append(f"{count} duplicate {type_name} rows")

        counts = scratch.counts()
        audit.record_counts = {name: count for name, count in counts.items() if count}
        audit.detected_data_types = sorted(audit.record_counts)
        audit.discovered_scenarios = sorted(scratch.scenarios(), key=str.lower)
        audit.scenario_counts = _scenario_counts(scratch)

        logger.info(
            "audit_completed",
            path=str(source_path),
            types=audit.detected_data_types,
            scenarios=len(audit.discovered_scenarios),
            can_import=audit.can_import
        )
        return audit


def _scenario_counts(store: DataStore) -> dict[str, dict[str, int]]:
    counts: dict[str, dict[str, int]] = {}
    for type_name, records in store.entries.items():
        record_type = RECORD_TYPES.get(type_name)
        if record_type is None or record_type.scenario_property is None:
            continue
        spec = record_type.fields[record_type.scenario_property]
        per_type = counts.setdefault(type_name, {})
        for record in records.values():
            scenario = spec.get(record)
            per_type[scenario] = per_type.get(scenario, 0) + 1
    return counts


# Singleton instance
_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create ImportService instance."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
