"""
Ingestion driver: fetch -> checksum gate -> parse -> persist.

One ``Updater`` handles one dataset file. It returns an ``UpdaterResult``
for every outcome that is not an error; failures propagate unchanged so the
calling workflow step can classify them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Type
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from core.exceptions import ParseError
from ingestion.checksum import ChecksumDecision, ChecksumGate
from ingestion.fetcher import ArchiveFetcher, ExtractedFile
from ingestion.loaders.postgres_loader import ConflictPolicy, PostgresLoader
from ingestion.parsers import CSVTransformOptions, parse_car_cost_workbook, parse_csv
from schemas.records import ParsedRecord
from schemas.results import UpdaterResult
import logging

logger = logging.getLogger(__name__)

UNCHANGED_MESSAGE = "File has not changed since last update"
NO_NEW_DATA_MESSAGE = "No new data to insert. The provided data matches the existing records."

XLSX_CHECKSUM_KEY = "car-cost-update-xlsx"


@dataclass(frozen=True)
class DatasetConfig:
    """
    Where a dataset lives and how its rows become table rows.

    Attributes:
        url: Download URL (zip archive, or workbook when ``workbook`` is set)
        model: ORM model of the target table
        record_schema: Pydantic schema each parsed row is validated against
        key_fields: Natural key of the table (conflict target)
        csv_file: Name hint selecting one CSV from a multi-file archive
        csv_options: Header renames and field transforms
        workbook: The URL serves a bare XLSX workbook
        period_field: Reporting-period column of annual datasets (e.g. "year");
            set to log how incoming periods overlap stored ones
    """
    url: str
    model: Type
    record_schema: Type[ParsedRecord]
    key_fields: Sequence[str]
    csv_file: Optional[str] = None
    csv_options: CSVTransformOptions = field(default_factory=CSVTransformOptions)
    workbook: bool = False
    period_field: Optional[str] = None

    @property
    def table_name(self) -> str:
        return self.model.__tablename__


def split_by_period(
    records: Iterable[ParsedRecord],
    period_field: str,
    existing_periods: Set[str]
) -> Tuple[List[ParsedRecord], List[ParsedRecord]]:
    """Split records into those from periods not yet stored and those overlapping stored ones"""
    new_records, overlapping = [], []
    for record in records:
        if getattr(record, period_field) in existing_periods:
            overlapping.append(record)
        else:
            new_records.append(record)
    return new_records, overlapping


class Updater:
    """
    Run one dataset through the ingestion path.

    The cached checksum is committed only after the parsed records were
    persisted, so an interrupted run is retried in full next time.
    """

    def __init__(
        self,
        config: DatasetConfig,
        fetcher: ArchiveFetcher,
        gate: ChecksumGate,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: Optional[int] = None
    ):
        self.config = config
        self.fetcher = fetcher
        self.gate = gate
        self.session_factory = session_factory
        self.batch_size = batch_size

    @property
    def table_name(self) -> str:
        return self.config.table_name

    async def update(self) -> UpdaterResult:
        try:
            if self.config.workbook:
                return await self._update_from_workbook()
            return await self._update_from_archive()
        except Exception as e:
            logger.error(f"Error in updater for {self.table_name}: {e}")
            raise

    async def _update_from_archive(self) -> UpdaterResult:
        extracted = await self.fetcher.fetch_and_extract(self.config.url, self.config.csv_file)
        logger.info(f"Destination path: {extracted.path}")

        decision = await self.gate.check(extracted.name, extracted.source)
        if not decision.changed:
            return self._unchanged()

        rows = parse_csv(extracted.source, self.config.csv_options)
        return await self._persist(rows, decision, extracted)

    async def _update_from_workbook(self) -> UpdaterResult:
        extracted = await self.fetcher.fetch_workbook(self.config.url)

        decision = await self.gate.check(XLSX_CHECKSUM_KEY, extracted.content)
        if not decision.changed:
            return self._unchanged()

        parsed = parse_car_cost_workbook(extracted.content)
        return await self._persist(parsed.records, decision, extracted)

    def _unchanged(self) -> UpdaterResult:
        return UpdaterResult(
            table=self.table_name,
            records_processed=0,
            message=UNCHANGED_MESSAGE,
        )

    def _validate(self, rows: List[Dict[str, Any]], extracted: ExtractedFile) -> List[ParsedRecord]:
        schema = self.config.record_schema
        records = []
        for index, row in enumerate(rows):
            try:
                records.append(schema.model_validate(row))
            except ValidationError as e:
                raise ParseError(
                    f"Invalid {self.table_name} record",
                    context={"file": extracted.name, "record_index": index, "error": str(e)},
                    original_exception=e
                )
        return records

    async def _log_period_overlap(self, session: AsyncSession, records: List[ParsedRecord]) -> None:
        field_name = self.config.period_field
        result = await session.execute(select(getattr(self.config.model, field_name)).distinct())
        existing = {row[0] for row in result.fetchall()}
        incoming = {getattr(record, field_name) for record in records}

        new_records, overlapping = split_by_period(records, field_name, existing)
        logger.info(
            f"{field_name.capitalize()} analysis: {len(incoming)} incoming, {len(existing)} existing, "
            f"{len(incoming - existing)} new"
        )
        logger.info(
            f"Records: {len(new_records)} from new {field_name}s, "
            f"{len(overlapping)} from overlapping {field_name}s"
        )

    async def _persist(
        self,
        rows: List[Dict[str, Any]],
        decision: ChecksumDecision,
        extracted: ExtractedFile
    ) -> UpdaterResult:
        records = self._validate(rows, extracted)

        async with self.session_factory() as session:
            if self.config.period_field:
                await self._log_period_overlap(session, records)

            loader = PostgresLoader(session, batch_size=self.batch_size)
            inserted = await loader.load_batch(
                self.config.model,
                records,
                conflict=ConflictPolicy.DO_NOTHING,
                key_fields=self.config.key_fields
            )

        await self.gate.commit(decision)

        result = UpdaterResult(
            table=self.table_name,
            records_processed=inserted,
            message=f"{inserted} record(s) inserted" if inserted > 0 else NO_NEW_DATA_MESSAGE,
            checksum=decision.checksum,
        )
        logger.info(f"{result.table}: {result.message}")
        return result
