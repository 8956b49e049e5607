"""YAML front-matter splitting for exported Markdown documents."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict

import yaml

# Opening "---" on the first line, closing "---" or "..." on its own line.
FRONT_MATTER_PATTERN = re.compile(
    r'\A\ufeff?---[ \t]*\r?\n(.*?)^(?:---|\.\.\.)[ \t]*\r?$\n?',
    re.DOTALL | re.MULTILINE
)


class FrontMatterError(ValueError):
    """Front-matter block is present but is not a YAML mapping."""


@dataclass
class FrontMatterDocument:
    """Parsed document: front-matter attributes and the remaining body."""

    attributes: Dict[str, Any] = field(default_factory=dict)
    body: str = ''


def parse_front_matter(text: str) -> FrontMatterDocument:
    """
    Split ``text`` into front-matter attributes and Markdown body.

    A document without a front-matter block yields empty attributes and the
    whole text as body.

    Raises:
        FrontMatterError: If the block is not valid YAML or not a mapping
    """
    match = FRONT_MATTER_PATTERN.match(text)
    if not match:
        return FrontMatterDocument(attributes={}, body=text.lstrip('\ufeff'))

    try:
        attributes = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise FrontMatterError(f"Invalid YAML front-matter: {e}") from e

    if attributes is None:
        attributes = {}
    if not isinstance(attributes, dict):
        raise FrontMatterError(
            f"Front-matter must be a mapping, got {type(attributes).__name__}"
        )

    return FrontMatterDocument(attributes=attributes, body=text[match.end():])
