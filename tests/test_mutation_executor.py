"""Tests for materializing intents in simulate and apply modes."""

from unittest.mock import Mock

import pytest

from errors import RemoteMutationError
from importers.entity_resolver import EntityResolver
from importers.mutation_executor import MutationExecutor
from models import (
    AttachmentIntent,
    Comment,
    CommentIntent,
    ExecutionMode,
    Note,
    NoteIntent,
)


def make_intent(groups=None, comments=2):
    return NoteIntent(
        path="kibela-acme-1/notes/Eng/123-Title.md",
        source_id="123",
        title="Title",
        content="Body\n",
        author_account="alice",
        published_at="2020-01-02T03:04:05+00:00",
        group_names=groups or [],
        folder_name="Eng",
        comments=[
            CommentIntent(author_account="bob", content=f"comment {i}", published_at="2020-01-03T00:00:00+00:00")
            for i in range(comments)
        ]
    )


class TestSimulateMode:
    def test_placeholders_are_unique(self):
        executor = MutationExecutor(ExecutionMode.SIMULATE)
        created = []

        note = executor.materialize_note(make_intent(), on_created=created.append)
        attachment = executor.materialize_attachment(AttachmentIntent(path="a/attachments/1.png", source_id="1", name="1.png", data=b"x"))

        ids = [entity.id for entity in created] + [attachment.id]
        assert len(set(ids)) == len(ids) == 4
        assert note.path == f"/notes/{note.id}"
        assert attachment.path == f"/attachments/{attachment.id}"
        assert note.comments[0].path == f"{note.path}#comment_{note.comments[0].id}"

    def test_no_client_needed(self):
        executor = MutationExecutor(ExecutionMode.SIMULATE)

        assert executor.client is None
        assert executor.resolver is None
        executor.materialize_note(make_intent(groups=["Eng"]))


class TestApplyMode:
    def test_requires_client_and_resolver(self):
        with pytest.raises(ValueError):
            MutationExecutor(ExecutionMode.APPLY)

    def test_note_then_comments_in_order(self, fake_client):
        resolver = EntityResolver(fake_client)
        executor = MutationExecutor(ExecutionMode.APPLY, client=fake_client, resolver=resolver)
        created = []

        note = executor.materialize_note(make_intent(groups=["Eng", "Eng"]), on_created=created.append)

        assert isinstance(created[0], Note)
        assert all(isinstance(entity, Comment) for entity in created[1:])
        assert [comment.content for comment in created[1:]] == ["comment 0", "comment 1"]
        assert note.group_ids == ['group-1', 'group-1']
        assert note.author.id == 'user-alice'

        mutation_names = [call[0] for call in fake_client.calls if call[0].startswith('create_')]
        assert mutation_names == [
            'create_group', 'create_note', 'create_disabled_user', 'create_comment', 'create_comment'
        ]
        for call in fake_client.calls_named('create_comment'):
            assert call[1] == note.id

    def test_failed_comment_keeps_created_note_reported(self, fake_client):
        resolver = EntityResolver(fake_client)
        fake_client.create_comment = Mock(side_effect=RemoteMutationError("boom"))
        executor = MutationExecutor(ExecutionMode.APPLY, client=fake_client, resolver=resolver)
        created = []

        with pytest.raises(RemoteMutationError):
            executor.materialize_note(make_intent(comments=1), on_created=created.append)

        assert len(created) == 1
        assert isinstance(created[0], Note)

    def test_empty_response(self, fake_client):
        fake_client.upload_attachment = Mock(return_value=None)
        executor = MutationExecutor(ExecutionMode.APPLY, client=fake_client, resolver=EntityResolver(fake_client))

        with pytest.raises(RemoteMutationError, match="Empty response"):
            executor.materialize_attachment(AttachmentIntent(path="a/attachments/1.png", source_id="1", name="1.png", data=b"x"))
