"""Readers for exported Kibela archives.

- archive_reader: streams (path, bytes) entries out of zip archives
- front_matter: splits a Markdown document into YAML attributes and body
"""

from .archive_reader import ArchiveEntry, ArchiveReader
from .front_matter import FrontMatterDocument, FrontMatterError, parse_front_matter

__all__ = [
    'ArchiveEntry',
    'ArchiveReader',
    'FrontMatterDocument',
    'FrontMatterError',
    'parse_front_matter',
]
