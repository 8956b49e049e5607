"""
Mutation executor: turns import intents into destination entities.

In apply mode every intent is materialized through the Kibela API after its
dependencies are resolved. In simulate mode the same operations return
placeholder identities and paths without touching the network, so a dry run
logs exactly what an apply run would.
"""

import logging
import uuid
from typing import Callable, Optional, Union

from errors import RemoteMutationError
from models import (
    Attachment,
    AttachmentIntent,
    Comment,
    CommentIntent,
    ExecutionMode,
    Note,
    NoteIntent,
)
from .entity_resolver import EntityResolver
from .kibela_client import KibelaClient


logger = logging.getLogger('kibela_importer.importers.mutation_executor')

CreatedCallback = Callable[[Union[Note, Comment]], None]


def generate_placeholder_id() -> str:
    """Unique identity used for simulated entities."""
    return uuid.uuid4().hex


class MutationExecutor:
    """Creates attachments, notes and comments, or simulates their creation."""

    def __init__(
        self,
        mode: ExecutionMode,
        client: Optional[KibelaClient] = None,
        resolver: Optional[EntityResolver] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the executor.

        Args:
            mode: SIMULATE or APPLY, fixed for the whole run
            client: KibelaClient, required in apply mode
            resolver: EntityResolver, required in apply mode
            logger: Logger instance
        """
        if mode.is_apply and (client is None or resolver is None):
            raise ValueError("apply mode requires a client and an entity resolver")

        self.mode = mode
        self.client = client
        self.resolver = resolver
        self.logger = logger or logging.getLogger('kibela_importer.importers.mutation_executor')

        self.stats = {
            'attachments': 0,
            'notes': 0,
            'comments': 0
        }

    @property
    def simulate(self) -> bool:
        return not self.mode.is_apply

    def materialize_attachment(self, intent: AttachmentIntent) -> Attachment:
        """Upload an attachment and return its destination identity."""
        if self.simulate:
            dummy = generate_placeholder_id()
            attachment = Attachment(id=dummy, path=f"/attachments/{dummy}")
        else:
            created = self._call(
                f"upload attachment {intent.name}",
                self.client.upload_attachment, intent.name, intent.data
            )
            attachment = Attachment(id=created['id'], path=created['path'])

        self.stats['attachments'] += 1
        self.logger.debug(f"Attachment {intent.path} -> {attachment.path}")
        return attachment

    def materialize_note(
        self,
        intent: NoteIntent,
        on_created: Optional[CreatedCallback] = None
    ) -> Note:
        """
        Create a note and then its comments, in source order.

        Args:
            intent: Note to create
            on_created: Called with the note right after it is created and with
                each comment right after that comment is created

        Returns:
            The created Note, with created comments attached
        """
        if self.simulate:
            dummy = generate_placeholder_id()
            note = Note(
                id=dummy,
                path=f"/notes/{dummy}",
                title=intent.title,
                content=intent.content,
                author_account=intent.author_account,
                published_at=intent.published_at,
                folder_name=intent.folder_name
            )
        else:
            author = self.resolver.resolve_author(intent.author_account)
            group_ids = self.resolver.resolve_groups(intent.group_names)

            created = self._call(
                f"create note {intent.path}",
                self.client.create_note,
                title=intent.title,
                content=intent.content,
                author_id=author.id,
                published_at=intent.published_at,
                group_ids=group_ids,
                folder_name=intent.folder_name
            )
            note = Note(
                id=created['id'],
                path=created['path'],
                title=intent.title,
                content=intent.content,
                author_account=intent.author_account,
                published_at=intent.published_at,
                folder_name=intent.folder_name,
                author=author,
                group_ids=group_ids
            )

        self.stats['notes'] += 1
        if on_created:
            on_created(note)

        for comment_intent in intent.comments:
            comment = self.materialize_comment(note, comment_intent)
            note.comments.append(comment)
            if on_created:
                on_created(comment)

        return note

    def materialize_comment(self, note: Note, intent: CommentIntent) -> Comment:
        """Create one comment on an already created note."""
        comment = Comment(
            author_account=intent.author_account,
            content=intent.content,
            published_at=intent.published_at
        )

        if self.simulate:
            dummy = generate_placeholder_id()
            comment.id = dummy
            comment.path = f"{note.path}#comment_{dummy}"
        else:
            author = self.resolver.resolve_author(intent.author_account)
            created = self._call(
                f"create comment on {note.path}",
                self.client.create_comment,
                commentable_id=note.id,
                content=intent.content,
                author_id=author.id,
                published_at=intent.published_at
            )
            comment.id = created['id']
            comment.path = created['path']
            comment.author = author

        self.stats['comments'] += 1
        return comment

    def _call(self, description: str, func, *args, **kwargs) -> dict:
        """Invoke a client mutation, normalizing unexpected failures."""
        try:
            result = func(*args, **kwargs)
        except (KeyError, TypeError) as e:
            raise RemoteMutationError(f"Unexpected response while trying to {description}: {e}") from e

        if not result:
            raise RemoteMutationError(f"Empty response while trying to {description}")
        return result
