"""
Dataset ingestion: download, change detection, parsing and persistence.

Modules:
    fetcher: Downloads datasets and extracts zip archives
    checksum: Content hashes and the gate that skips unchanged files
    updater: Runs one dataset through fetch -> gate -> parse -> persist
    datasets: Dataset definitions (URLs, natural keys, field transforms)

Subpackages:
    parsers: CSV and XLSX record parsers plus shared value transforms
    loaders: Batched, idempotent PostgreSQL inserts

Architecture:
    1. Fetch - Download the archive or workbook through an injected HTTP client
    2. Gate - Skip the file when its SHA-256 matches the cached one
    3. Parse - Turn rows into typed records
    4. Load - INSERT ... ON CONFLICT in batches, then record the new checksum

    A failure at any stage propagates unchanged; the workflow step that
    called the updater decides whether it is retryable.

Usage:
    from ingestion.datasets import update_cars
    from ingestion.fetcher import ArchiveFetcher
    from ingestion.checksum import ChecksumGate, ChecksumStore

    result = await update_cars(ArchiveFetcher(client), ChecksumGate(ChecksumStore(redis)), session_maker)
    print(result.message)
"""

__all__ = [
    "ArchiveFetcher",
    "ChecksumGate",
    "ChecksumStore",
    "DatasetConfig",
    "Updater",
    "PostgresLoader",
]
