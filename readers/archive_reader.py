"""Streaming reader for Kibela export archives (zip files)."""

import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Union

logger = logging.getLogger('kibela_importer.readers.archive_reader')


@dataclass
class ArchiveEntry:
    """A single file inside an export archive."""

    path: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class ArchiveReader:
    """
    Reads file entries from a zip archive in directory-listing order.

    Entries are decompressed one at a time so that large exports are never
    held in memory as a whole.
    """

    def __init__(self, archive_path: Union[str, Path]):
        """
        Initialize the reader.

        Args:
            archive_path: Path to a zip archive exported from Kibela
        """
        self.archive_path = Path(archive_path)

    def validate(self) -> None:
        """
        Check that the archive exists and is a zip file.

        Raises:
            FileNotFoundError: If the archive does not exist
            ValueError: If the file is not a zip archive
        """
        if not self.archive_path.is_file():
            raise FileNotFoundError(f"Archive not found: {self.archive_path}")
        if not zipfile.is_zipfile(self.archive_path):
            raise ValueError(f"Not a zip archive: {self.archive_path}")

    def list_entries(self) -> List[str]:
        """Return the paths of all file entries in listing order."""
        with zipfile.ZipFile(self.archive_path) as archive:
            return [info.filename for info in archive.infolist() if not info.is_dir()]

    def iter_entries(self) -> Iterator[ArchiveEntry]:
        """Yield each file entry with its decompressed content."""
        logger.debug(f"Opening archive {self.archive_path}")
        with zipfile.ZipFile(self.archive_path) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                with archive.open(info) as fh:
                    data = fh.read()
                yield ArchiveEntry(path=info.filename, data=data)
