"""
Content translator for Kibela export archives.

Turns one archive entry into an import intent: an attachment upload, a note
with its pending comments, or nothing for drafts. Dependencies such as the
author, groups and folder are extracted as natural keys only; resolving them
against the destination team is the mutation executor's job.
"""

import logging
import posixpath
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union

from errors import ParseError
from models import AttachmentIntent, CommentIntent, NoteIntent
from readers.front_matter import FrontMatterError, parse_front_matter
from .entity_resolver import normalize_account

logger = logging.getLogger('kibela_importer.importers.content_translator')

# kibela-<team>-<seq>/attachments/...
ATTACHMENT_PATTERN = re.compile(r'^kibela-[\w-]+-\d+/attachments/')
# kibela-<team>-<seq>/(notes|blogs|wikis)/<folder>/<id>-<title>.md
FOLDER_PATTERN = re.compile(r'[^/]+/(?:notes|blogs|wikis)/(?:(.+)/)?[^/]+$', re.IGNORECASE)
SOURCE_ID_PATTERN = re.compile(r'^([^-.]+)')
TITLE_PATTERN = re.compile(r'^# +([^\r\n]*)\r?\n\r?\n(.*)', re.DOTALL)

Intent = Union[AttachmentIntent, NoteIntent]


def is_attachment(path: str) -> bool:
    """Return True if ``path`` lives under the archive's attachments directory."""
    return ATTACHMENT_PATTERN.match(path) is not None


def get_source_id(path: str) -> str:
    """
    Extract the source identifier from an entry path.

    The identifier is the leading run of the file name before the first
    hyphen or dot, e.g. ``123`` for ``.../notes/123-My-Title.md``.

    Raises:
        ParseError: If the file name has no such prefix
    """
    match = SOURCE_ID_PATTERN.match(posixpath.basename(path))
    if not match:
        raise ParseError(path, "cannot derive a source id from the file name")
    return match.group(1)


def extract_folder_name(path: str) -> Optional[str]:
    """
    Extract the folder between the content type directory and the file name.

    >>> extract_folder_name("kibela-acme-1/notes/Eng/123-Title.md")
    'Eng'
    >>> extract_folder_name("kibela-acme-1/notes/123-Title.md") is None
    True
    """
    match = FOLDER_PATTERN.search(path)
    return match.group(1) if match else None


def extract_title_and_content(path: str, body: str) -> tuple:
    """
    Split a note body into its level-1 heading and the remaining content.

    Raises:
        ParseError: If the body does not start with "# <title>" and a blank line
    """
    match = TITLE_PATTERN.match(body)
    if not match:
        raise ParseError(path, "body must start with a level-1 heading followed by a blank line")
    return match.group(1), match.group(2)


def is_present(value: Any) -> bool:
    """True unless ``value`` is missing or renders as an empty string."""
    return value is not None and str(value) != ''


def normalize_timestamp(path: str, value: Any) -> str:
    """
    Convert a front-matter timestamp into an ISO-8601 string.

    YAML may already have parsed the value into a datetime or date; naive
    values are taken as UTC.

    Raises:
        ParseError: If the value is not a recognizable timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            raise ParseError(path, f"invalid timestamp: {text!r}") from None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


class ContentTranslator:
    """Translates archive entries into attachment or note intents."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('kibela_importer.importers.content_translator')
        self.stats = {
            'attachments': 0,
            'notes': 0,
            'drafts': 0
        }

    def translate(self, path: str, data: bytes) -> Optional[Intent]:
        """
        Translate one archive entry.

        Args:
            path: Entry path inside the archive
            data: Raw entry content

        Returns:
            AttachmentIntent, NoteIntent, or None for a draft note

        Raises:
            ParseError: If a content entry is malformed
        """
        if is_attachment(path):
            intent = AttachmentIntent(
                path=path,
                source_id=get_source_id(path),
                name=posixpath.basename(path),
                data=data
            )
            self.stats['attachments'] += 1
            return intent

        intent = self.translate_note(path, data)
        if intent is None:
            self.stats['drafts'] += 1
            self.logger.debug(f"Skipping draft: {path}")
        else:
            self.stats['notes'] += 1
        return intent

    def translate_note(self, path: str, data: bytes) -> Optional[NoteIntent]:
        """Parse a Markdown entry with front-matter into a NoteIntent."""
        try:
            text = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ParseError(path, f"content is not valid UTF-8: {e}") from e

        try:
            document = parse_front_matter(text)
        except FrontMatterError as e:
            raise ParseError(path, str(e)) from e

        attributes = document.attributes
        title, content = extract_title_and_content(path, document.body)

        if not is_present(attributes.get('published_at')):
            return None
        published_at = normalize_timestamp(path, attributes['published_at'])

        author = attributes.get('author')
        if not is_present(author):
            raise ParseError(path, "front-matter has no author")

        return NoteIntent(
            path=path,
            source_id=get_source_id(path),
            title=title,
            content=content,
            author_account=normalize_account(author),
            published_at=published_at,
            group_names=self._extract_group_names(path, attributes),
            folder_name=extract_folder_name(path),
            comments=self._extract_comments(path, attributes)
        )

    @staticmethod
    def _extract_group_names(path: str, attributes: Dict[str, Any]) -> List[str]:
        groups = attributes.get('groups') or []
        if isinstance(groups, str):
            groups = [groups]
        if not isinstance(groups, list):
            raise ParseError(path, "groups must be a list of names")
        return [str(name) for name in groups if is_present(name)]

    @staticmethod
    def _extract_comments(path: str, attributes: Dict[str, Any]) -> List[CommentIntent]:
        raw_comments = attributes.get('comments') or []
        if not isinstance(raw_comments, list):
            raise ParseError(path, "comments must be a list")

        comments = []
        for index, raw in enumerate(raw_comments):
            if not isinstance(raw, dict):
                raise ParseError(path, f"comment #{index + 1} is not a mapping")
            if not is_present(raw.get('author')):
                raise ParseError(path, f"comment #{index + 1} has no author")
            if not is_present(raw.get('published_at')):
                raise ParseError(path, f"comment #{index + 1} has no published_at")

            comments.append(CommentIntent(
                author_account=normalize_account(raw['author']),
                content='' if raw.get('content') is None else str(raw['content']),
                published_at=normalize_timestamp(path, raw['published_at'])
            ))
        return comments
