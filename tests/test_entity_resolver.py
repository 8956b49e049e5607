"""Tests for author and group resolution."""

import pytest

from errors import DependencyResolutionError
from importers.entity_resolver import EntityResolver, GROUP_DESCRIPTION, normalize_account
from importers.kibela_client import KibelaConnectionError
from models import Author


class TestNormalizeAccount:
    def test_strips_single_at(self):
        assert normalize_account("@alice") == "alice"
        assert normalize_account("alice") == "alice"
        assert normalize_account(" @bob ") == "bob"


class TestResolveAuthor:
    def test_existing_author_looked_up_once(self, fake_client):
        resolver = EntityResolver(fake_client)

        first = resolver.resolve_author("@alice")
        second = resolver.resolve_author("alice")

        assert first == second == Author(id='user-alice', account='alice')
        assert len(fake_client.calls_named('get_user_by_account')) == 1
        assert resolver.stats['authors_found'] == 1

    def test_unknown_author_created_as_disabled_user_once(self, fake_client, caplog):
        resolver = EntityResolver(fake_client)

        with caplog.at_level('INFO', logger='kibela_importer'):
            first = resolver.resolve_author("ghost")
            second = resolver.resolve_author("ghost")

        assert first is second
        assert fake_client.calls_named('create_disabled_user') == [
            ('create_disabled_user', 'ghost', 'ghost@dummy.example.com')
        ]
        assert len(fake_client.calls_named('get_user_by_account')) == 1
        assert "Failed to get @ghost, creating it as a disabled user." in caplog.text

    def test_connection_error_is_not_a_missing_user(self, fake_client):
        def unreachable(account):
            raise KibelaConnectionError("timed out")

        fake_client.get_user_by_account = unreachable
        resolver = EntityResolver(fake_client)

        with pytest.raises(DependencyResolutionError):
            resolver.resolve_author("alice")
        assert fake_client.calls_named('create_disabled_user') == []
        assert len(resolver.authors) == 0

    def test_failed_creation(self, fake_client):
        def refuse(account, real_name, email):
            raise KibelaConnectionError("refused")

        fake_client.create_disabled_user = refuse

        with pytest.raises(DependencyResolutionError, match="ghost"):
            EntityResolver(fake_client).resolve_author("ghost")

    def test_empty_account(self, fake_client):
        with pytest.raises(DependencyResolutionError):
            EntityResolver(fake_client).resolve_author("@")


class TestResolveGroup:
    def test_existing_groups_loaded_once(self, fake_client):
        fake_client.groups = [{'id': 'g1', 'name': 'Eng'}, {'id': 'g2', 'name': 'Ops'}]
        resolver = EntityResolver(fake_client, groups_page_size=50)

        assert resolver.resolve_groups(["Ops", "Eng", "Ops"]) == ['g2', 'g1', 'g2']
        assert fake_client.calls_named('iter_all_groups') == [('iter_all_groups', 50)]
        assert fake_client.calls_named('create_group') == []

    def test_missing_group_created_once(self, fake_client):
        resolver = EntityResolver(fake_client, private_groups=True)

        first = resolver.resolve_group("Design")
        second = resolver.resolve_group("Design")

        assert first is second
        assert fake_client.calls_named('create_group') == [('create_group', 'Design', True)]
        # Listing happens once even though the team had no groups
        assert len(fake_client.calls_named('iter_all_groups')) == 1

    def test_group_description(self, fake_client):
        captured = {}
        original = fake_client.create_group

        def create_group(name, description, is_private):
            captured['description'] = description
            return original(name, description, is_private)

        fake_client.create_group = create_group
        EntityResolver(fake_client).resolve_group("Design")

        assert captured['description'] == GROUP_DESCRIPTION

    def test_listing_failure(self, fake_client):
        def broken(page_size=100):
            raise KibelaConnectionError("down")
            yield

        fake_client.iter_all_groups = broken

        with pytest.raises(DependencyResolutionError):
            EntityResolver(fake_client).resolve_group("Eng")

    def test_partial_listing_is_retried(self, fake_client):
        fake_client.groups = [{'id': 'g1', 'name': 'Eng'}, {'id': 'g2', 'name': 'Ops'}]
        original = fake_client.iter_all_groups
        attempts = []

        def flaky(page_size=100):
            attempts.append(page_size)
            if len(attempts) == 1:
                yield fake_client.groups[0]
                raise KibelaConnectionError("page 2 timed out")
            yield from original(page_size)

        fake_client.iter_all_groups = flaky
        resolver = EntityResolver(fake_client)

        with pytest.raises(DependencyResolutionError):
            resolver.resolve_group("Ops")
        assert len(resolver.groups) == 0

        assert resolver.resolve_group("Ops").id == 'g2'
        assert len(attempts) == 2
        assert fake_client.calls_named('create_group') == []
