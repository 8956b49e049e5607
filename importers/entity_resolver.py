"""
Resolution of note dependencies (authors and groups) in the destination team.

Each natural key is resolved through an IdentityCache so that an author or a
group is looked up or created at most once per run. Creating duplicates would
corrupt the destination team.
"""

import logging
from typing import Iterable, List, Optional

from errors import DependencyResolutionError, RemoteMutationError
from models import Author, Group, RelayId
from .identity_cache import IdentityCache
from .kibela_client import DEFAULT_GROUPS_PAGE_SIZE, KibelaApiError, KibelaClient


logger = logging.getLogger('kibela_importer.importers.entity_resolver')

GROUP_DESCRIPTION = "(created by kibela-to-kibela)"
DISABLED_USER_EMAIL_DOMAIN = "dummy.example.com"


def normalize_account(account: str) -> str:
    """Strip the leading '@' used by Kibela exports."""
    account = str(account).strip()
    return account[1:] if account.startswith('@') else account


class EntityResolver:
    """Finds or creates authors and groups, caching every resolution."""

    def __init__(
        self,
        client: KibelaClient,
        private_groups: bool = False,
        groups_page_size: int = DEFAULT_GROUPS_PAGE_SIZE,
        author_cache: Optional[IdentityCache] = None,
        group_cache: Optional[IdentityCache] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the resolver.

        Args:
            client: KibelaClient for the destination team
            private_groups: Visibility of groups created by this run
            groups_page_size: Page size used to list existing groups
            author_cache: Cache of account -> Author (created if omitted)
            group_cache: Cache of name -> Group (created if omitted)
            logger: Logger instance
        """
        self.client = client
        self.private_groups = private_groups
        self.groups_page_size = groups_page_size
        self.authors: IdentityCache[Author] = author_cache or IdentityCache('author')
        self.groups: IdentityCache[Group] = group_cache or IdentityCache('group')
        self.logger = logger or logging.getLogger('kibela_importer.importers.entity_resolver')
        self._groups_loaded = False

        self.stats = {
            'authors_found': 0,
            'authors_created': 0,
            'groups_found': 0,
            'groups_created': 0
        }

    # ========================================================================
    # Authors
    # ========================================================================

    def resolve_author(self, account: str) -> Author:
        """
        Return the destination user for ``account``.

        A user unknown to the destination is created as a disabled user; that
        is the expected path for people who only exist in the source team.

        Raises:
            DependencyResolutionError: If the user can neither be found nor created
        """
        account = normalize_account(account)
        if not account:
            raise DependencyResolutionError("Author account is empty")

        cached = self.authors.get(account)
        if cached is not None:
            return cached

        user = None
        try:
            user = self.client.get_user_by_account(account)
        except KibelaApiError as e:
            self.logger.debug(f"userFromAccount failed for @{account}: {e}")
        except RemoteMutationError as e:
            raise DependencyResolutionError(f"Failed to look up @{account}: {e}") from e

        if user:
            self.stats['authors_found'] += 1
        else:
            self.logger.info(f"    Failed to get @{account}, creating it as a disabled user.")
            user = self._create_disabled_user(account)
            self.stats['authors_created'] += 1

        author = Author(id=user['id'], account=user.get('account') or account)
        return self.authors.put(account, author)

    def _create_disabled_user(self, account: str) -> dict:
        try:
            return self.client.create_disabled_user(
                account=account,
                real_name=account,
                email=f"{account}@{DISABLED_USER_EMAIL_DOMAIN}"
            )
        except RemoteMutationError as e:
            raise DependencyResolutionError(
                f"Failed to create disabled user @{account}: {e}"
            ) from e

    # ========================================================================
    # Groups
    # ========================================================================

    def load_all_groups(self) -> int:
        """
        Fill the group cache with every group of the destination team.

        Nothing is cached unless every page was fetched.

        Returns:
            Number of groups fetched
        """
        try:
            nodes = list(self.client.iter_all_groups(page_size=self.groups_page_size))
        except RemoteMutationError as e:
            raise DependencyResolutionError(f"Failed to list groups: {e}") from e

        for node in nodes:
            self.groups.put(node['name'], Group(id=node['id'], name=node['name']))

        count = len(nodes)
        self._groups_loaded = True
        self.stats['groups_found'] = count
        self.logger.debug(f"Loaded {count} existing groups")
        return count

    def resolve_group(self, name: str) -> Group:
        """
        Return the destination group called ``name``, creating it when missing.

        Raises:
            DependencyResolutionError: If listing or creating groups fails
        """
        if not self._groups_loaded:
            self.load_all_groups()

        cached = self.groups.get(name)
        if cached is not None:
            return cached

        visibility = "private" if self.private_groups else "public"
        self.logger.info(f"    Creating {visibility} group '{name}'")
        try:
            created = self.client.create_group(
                name=name,
                description=GROUP_DESCRIPTION,
                is_private=self.private_groups
            )
        except RemoteMutationError as e:
            raise DependencyResolutionError(f"Failed to create group '{name}': {e}") from e

        self.stats['groups_created'] += 1
        group = Group(id=created['id'], name=created.get('name') or name)
        return self.groups.put(name, group)

    def resolve_groups(self, names: Iterable[str]) -> List[RelayId]:
        """Resolve ``names`` in order and return their destination ids."""
        return [self.resolve_group(name).id for name in names]

    def get_statistics(self) -> dict:
        return {
            **self.stats,
            'authors_cached': len(self.authors),
            'groups_cached': len(self.groups)
        }
