"""Shared fixtures for importer tests."""

import zipfile
from pathlib import Path

import pytest

from importers.kibela_client import KibelaApiError


def note_text(
    title="Title",
    body="Body\n",
    author="alice",
    published_at="2020-01-02T03:04:05Z",
    groups=None,
    comments=None
):
    """Build an exported Markdown note with front-matter."""
    lines = ["---"]
    if author is not None:
        lines.append(f'author: "@{author}"')
    if published_at is not None:
        lines.append(f"published_at: {published_at}")
    if groups:
        lines.append("groups:")
        lines.extend(f"  - {name}" for name in groups)
    if comments:
        lines.append("comments:")
        for comment in comments:
            lines.append(f'  - author: "@{comment["author"]}"')
            lines.append(f'    content: "{comment["content"]}"')
            lines.append(f'    published_at: {comment["published_at"]}')
    lines.append("---")
    return "\n".join(lines) + f"\n# {title}\n\n{body}"


def build_archive(path: Path, entries) -> Path:
    """Write a zip archive holding ``entries`` (list of (name, str|bytes)) in order."""
    with zipfile.ZipFile(path, 'w') as archive:
        for name, content in entries:
            if isinstance(content, str):
                content = content.encode('utf-8')
            archive.writestr(name, content)
    return path


class FakeKibelaClient:
    """In-memory stand-in for KibelaClient recording every call."""

    def __init__(self, users=None, groups=None):
        self.users = dict(users or {})
        self.groups = list(groups or [])
        self.calls = []
        self._next_id = 0

    def _new_id(self, prefix):
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def ping(self):
        self.calls.append(('ping',))
        return {'id': 'me', 'account': 'owner'}

    def get_user_by_account(self, account):
        self.calls.append(('get_user_by_account', account))
        if account not in self.users:
            raise KibelaApiError('NOT_FOUND', f'{account} not found', 'get_user_by_account')
        return {'id': self.users[account], 'account': account}

    def create_disabled_user(self, account, real_name, email):
        self.calls.append(('create_disabled_user', account, email))
        user_id = self._new_id('user')
        self.users[account] = user_id
        return {'id': user_id, 'account': account}

    def iter_all_groups(self, page_size=100):
        self.calls.append(('iter_all_groups', page_size))
        for group in list(self.groups):
            yield group

    def create_group(self, name, description, is_private):
        self.calls.append(('create_group', name, is_private))
        group = {'id': self._new_id('group'), 'name': name}
        self.groups.append(group)
        return group

    def upload_attachment(self, name, data, kind="GENERAL"):
        self.calls.append(('upload_attachment', name, len(data)))
        attachment_id = self._new_id('attachment')
        return {'id': attachment_id, 'path': f"/attachments/{attachment_id}"}

    def create_note(self, title, content, author_id, published_at, group_ids=None, folder_name=None, coediting=True):
        self.calls.append(('create_note', title, author_id, tuple(group_ids or []), folder_name))
        note_id = self._new_id('note')
        return {'id': note_id, 'path': f"/notes/{note_id}"}

    def create_comment(self, commentable_id, content, author_id, published_at):
        self.calls.append(('create_comment', commentable_id, content, author_id))
        comment_id = self._new_id('comment')
        return {'id': comment_id, 'path': f"/notes/{commentable_id}#comment_{comment_id}"}

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def fake_client():
    return FakeKibelaClient(users={'alice': 'user-alice'})


@pytest.fixture
def base_config(tmp_path):
    return {
        'kibela': {'team': 'dest', 'token': 'secret', 'verify_ssl': True},
        'migration': {
            'apply': False,
            'exported_from': 'acme',
            'private_groups': False,
            'log_directory': str(tmp_path),
        },
        'advanced': {'request_timeout': 30, 'max_retries': 3, 'rate_limit': 0, 'groups_page_size': 100},
        'export': {'progress_bars': False},
        'logging': {},
    }


@pytest.fixture
def make_note():
    return note_text


@pytest.fixture
def make_archive(tmp_path):
    def _make(entries, name="kibela-acme-1.zip"):
        return build_archive(tmp_path / name, entries)
    return _make
