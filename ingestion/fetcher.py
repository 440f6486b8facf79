"""
Dataset downloader and archive extractor.

Upstream datasets are published either as zip archives holding one or more
CSV files, or as a bare XLSX workbook. This module:
- Downloads the full response body through an injected ``httpx.AsyncClient``
- Raises ``FetchError`` (status + truncated body) on non-2xx responses
- Extracts every non-directory zip entry into a working directory
- Keeps workbooks in memory so the spreadsheet path never touches disk

No retry decision is made here; callers classify failures.
"""

import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union
import httpx
from core.config import settings
from core.exceptions import ArchiveError, FetchError
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawArchive:
    """Downloaded response body, owned by one fetch"""
    url: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ExtractedFile:
    """A file produced from a download, either on disk or in memory"""
    name: str
    path: Optional[Path] = None
    content: Optional[bytes] = None

    def read_bytes(self) -> bytes:
        if self.content is not None:
            return self.content
        return self.path.read_bytes()

    @property
    def source(self) -> Union[Path, bytes]:
        """What the checksum gate and parsers consume"""
        return self.path if self.path is not None else self.content


class ArchiveFetcher:
    """
    Download datasets and expose their files.

    Attributes:
        client: HTTP client capability (injected, never global)
        temp_dir: Shared working directory for extracted entries
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        temp_dir: Optional[Union[str, Path]] = None
    ):
        self.client = client
        self.temp_dir = Path(temp_dir or settings.TEMP_DIR)

    async def download(self, url: str) -> RawArchive:
        """
        Download ``url`` in full.

        Raises:
            FetchError: For any non-2xx response
        """
        logger.info(f"Downloading {url}")
        response = await self.client.get(url, follow_redirects=True)

        if not response.is_success:
            body = response.text[:500]
            logger.error(
                f"Download failed: {response.status_code} {response.reason_phrase} for {url}",
                extra={"error_context": {"url": url, "status_code": response.status_code, "error_body": body}}
            )
            raise FetchError(url, response.status_code, body, reason=response.reason_phrase)

        archive = RawArchive(url=url, content=response.content)
        logger.info(f"Downloaded {archive.size} bytes from {url}")
        return archive

    async def fetch_and_extract(self, url: str, target: Optional[str] = None) -> ExtractedFile:
        """
        Download a zip archive and extract it.

        Returns the entry whose name contains ``target`` if given, else the
        first non-directory entry.
        """
        archive = await self.download(url)
        entries = self.extract_archive(archive)
        return select_entry(entries, target)

    async def fetch_and_extract_all(self, url: str) -> Dict[str, Path]:
        """Download a zip archive and return ``{basename: extracted path}``"""
        archive = await self.download(url)
        return {entry.name: entry.path for entry in self.extract_archive(archive)}

    async def fetch_workbook(self, url: str) -> ExtractedFile:
        """Download an XLSX workbook and keep it in memory"""
        archive = await self.download(url)
        name = Path(httpx.URL(url).path).name or "workbook.xlsx"
        return ExtractedFile(name=name, content=archive.content)

    def extract_archive(self, archive: RawArchive) -> List[ExtractedFile]:
        """Extract every non-directory entry of ``archive`` under ``temp_dir``"""
        if not zipfile.is_zipfile(io.BytesIO(archive.content)):
            raise ArchiveError(
                "Downloaded file is not a zip archive",
                context={"url": archive.url, "size": archive.size}
            )

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        root = self.temp_dir.resolve()
        extracted = []

        with zipfile.ZipFile(io.BytesIO(archive.content)) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue

                destination = (root / info.filename).resolve()
                if root not in destination.parents:
                    raise ArchiveError(
                        f"Refusing to extract entry outside working directory: {info.filename}",
                        context={"url": archive.url, "entry": info.filename}
                    )

                logger.info(f"Found file in ZIP: {info.filename}")
                destination.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(destination, "wb") as dst:
                    while True:
                        chunk = src.read(1024 * 1024)
                        if not chunk:
                            break
                        dst.write(chunk)

                extracted.append(ExtractedFile(name=Path(info.filename).name, path=destination))

        if not extracted:
            raise ArchiveError("Archive contains no files", context={"url": archive.url})

        return extracted


def select_entry(entries: List[ExtractedFile], target: Optional[str] = None) -> ExtractedFile:
    """Pick the entry whose name contains ``target``, falling back to the first"""
    if target:
        for entry in entries:
            if target in entry.name:
                return entry
        logger.warning(f"No entry matching '{target}', using {entries[0].name}")
    return entries[0]
