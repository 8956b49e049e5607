"""Data models for the Kibela archive import pipeline."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Destination identities are opaque tokens assigned by the remote service.
RelayId = Any


class ExecutionMode(Enum):
    """How mutations are carried out for a run."""
    SIMULATE = "simulate"
    APPLY = "apply"

    @property
    def is_apply(self) -> bool:
        return self is ExecutionMode.APPLY


class RecordType(Enum):
    """Kinds of destination entities written to the transaction log."""
    ATTACHMENT = "attachment"
    NOTE = "note"
    COMMENT = "comment"


@dataclass(frozen=True)
class Author:
    """A destination user, looked up or created by account name."""

    id: RelayId
    account: str


@dataclass(frozen=True)
class Group:
    """A destination group, looked up or created by name."""

    id: RelayId
    name: str


@dataclass(frozen=True)
class Attachment:
    """An uploaded attachment."""

    id: RelayId
    path: str


@dataclass
class CommentIntent:
    """A comment parsed from note front-matter, not created yet."""

    author_account: str
    content: str
    published_at: str


@dataclass
class AttachmentIntent:
    """An archive entry that must be uploaded as an attachment."""

    path: str
    source_id: str
    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class NoteIntent:
    """A published note with its pending comments.

    Dependencies (author account, group names, folder name) are carried as
    natural keys; they are resolved only when the intent is materialized.
    """

    path: str
    source_id: str
    title: str
    content: str
    author_account: str
    published_at: str
    group_names: List[str] = field(default_factory=list)
    folder_name: Optional[str] = None
    comments: List[CommentIntent] = field(default_factory=list)


@dataclass
class Comment:
    """A comment on a note; ``id`` and ``path`` are set once created."""

    author_account: str
    content: str
    published_at: str
    id: Optional[RelayId] = None
    path: Optional[str] = None
    author: Optional[Author] = None


@dataclass
class Note:
    """A note created (or simulated) in the destination team."""

    id: RelayId
    path: str
    title: str
    content: str
    author_account: str
    published_at: str
    folder_name: Optional[str] = None
    author: Optional[Author] = None
    group_ids: List[RelayId] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)


@dataclass
class LogRecord:
    """One line of the transaction log: a destination entity and its source."""

    type: RecordType
    source_file: str
    source_id: str
    dest_path: str
    dest_id: RelayId
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the record with the log's field names."""
        data = {
            'type': self.type.value,
            'sourceFile': self.source_file,
            'sourceId': self.source_id,
            'destPath': self.dest_path,
            'destId': self.dest_id,
        }
        if self.content is not None:
            data['content'] = self.content
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogRecord':
        return cls(
            type=RecordType(data['type']),
            source_file=data['sourceFile'],
            source_id=data['sourceId'],
            dest_path=data['destPath'],
            dest_id=data['destId'],
            content=data.get('content'),
        )
