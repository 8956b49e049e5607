"""
Kibela GraphQL API Client for the archive importer.

Provides the queries and mutations needed to recreate notes, comments,
attachments, groups and users in a destination Kibela team.
"""

import base64
import logging
import time
from typing import Any, Dict, Iterator, List, Optional, Tuple

from gql import gql, Client
from gql.transport.requests import RequestsHTTPTransport
from gql.transport.exceptions import (
    TransportServerError,
    TransportQueryError,
    TransportProtocolError
)
from requests.exceptions import RequestException

from errors import ConnectivityError, RemoteMutationError


logger = logging.getLogger('kibela_importer.importers.kibela_client')


# Constants
DEFAULT_TIMEOUT = 30
DEFAULT_MAX_RETRIES = 3
DEFAULT_GROUPS_PAGE_SIZE = 100
ENDPOINT_TEMPLATE = "https://{team}.kibe.la/api/v1"
USER_AGENT = "kibela-importer/1.0.0"


PING = gql("""
    query Ping {
        currentUser {
            id
            account
        }
    }
""")

GET_AUTHOR = gql("""
    query GetAuthor($account: String!) {
        user: userFromAccount(account: $account) {
            id
            account
        }
    }
""")

GET_ALL_GROUPS = gql("""
    query GetAllGroups($first: Int!, $after: String) {
        groups(first: $first, after: $after) {
            pageInfo {
                hasNextPage
                endCursor
            }
            edges {
                node {
                    id
                    name
                }
            }
        }
    }
""")

CREATE_DISABLED_USER = gql("""
    mutation CreateDisabledUser($input: CreateDisabledUserInput!) {
        createDisabledUser(input: $input) {
            user {
                id
                account
            }
        }
    }
""")

CREATE_GROUP = gql("""
    mutation CreateGroup($input: CreateGroupInput!) {
        createGroup(input: $input) {
            group {
                id
                name
            }
        }
    }
""")

UPLOAD_ATTACHMENT = gql("""
    mutation UploadAttachment($input: UploadAttachmentInput!) {
        uploadAttachment(input: $input) {
            attachment {
                id
                path
            }
        }
    }
""")

CREATE_NOTE = gql("""
    mutation CreateNote($input: CreateNoteInput!) {
        createNote(input: $input) {
            note {
                id
                path
            }
        }
    }
""")

CREATE_COMMENT = gql("""
    mutation CreateComment($input: CreateCommentInput!) {
        createComment(input: $input) {
            comment {
                id
                path
            }
        }
    }
""")


class KibelaApiError(RemoteMutationError):
    """The API answered with a GraphQL error."""

    def __init__(self, error_code: str, message: str, operation: str = ''):
        """
        Initialize API error.

        Args:
            error_code: GraphQL error code from the response extensions
            message: Human-readable error message
            operation: Name of the failed operation
        """
        self.error_code = error_code
        self.message = message
        self.operation = operation
        super().__init__(f"[{error_code}] {operation}: {message}")

    def __str__(self) -> str:
        return f"KibelaApiError(code={self.error_code}, operation={self.operation}, message={self.message})"


class KibelaConnectionError(RemoteMutationError):
    """Exception for connection/transport failures."""
    pass


class KibelaClient:
    """Client for Kibela GraphQL API operations."""

    def __init__(
        self,
        team: str,
        token: str,
        endpoint: Optional[str] = None,
        verify_ssl: bool = True,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        rate_limit: float = 0.0
    ):
        """
        Initialize Kibela API client.

        Args:
            team: Destination team subdomain (``<team>.kibe.la``)
            token: Personal access token of a team owner
            endpoint: Explicit GraphQL endpoint, overrides the one derived from ``team``
            verify_ssl: Enable SSL certificate verification (default: True)
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Retries performed by the HTTP transport (default: 3)
            rate_limit: Minimum seconds between requests (default: 0.0, disabled)
        """
        self.team = team
        self.endpoint = (endpoint or ENDPOINT_TEMPLATE.format(team=team)).rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limit = rate_limit
        self._last_request_time = 0.0

        self.transport = RequestsHTTPTransport(
            url=self.endpoint,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": USER_AGENT
            },
            verify=verify_ssl,
            timeout=timeout,
            retries=max_retries
        )

        self.client = Client(
            transport=self.transport,
            fetch_schema_from_transport=False
        )

        logger.info(f"Initialized Kibela client for {self.endpoint} "
                    f"(retries={max_retries}, rate_limit={rate_limit}s)")

    # ========================================================================
    # Queries
    # ========================================================================

    def ping(self) -> Dict[str, Any]:
        """
        Verify that the destination team is reachable with the given token.

        Returns:
            The current user as ``{'id': ..., 'account': ...}``

        Raises:
            ConnectivityError: If the request fails for any reason
        """
        try:
            result = self._execute(PING, {}, 'ping')
        except RemoteMutationError as e:
            raise ConnectivityError(f"Cannot reach {self.endpoint}: {e}") from e

        user = result.get('currentUser')
        if not user:
            raise ConnectivityError(f"Cannot reach {self.endpoint}: no current user in response")

        logger.info(f"Connected to {self.endpoint} as @{user.get('account')}")
        return user

    def get_user_by_account(self, account: str) -> Optional[Dict[str, Any]]:
        """
        Look up a user by account name.

        Returns:
            User dictionary with id and account, or None if the response is empty

        Raises:
            KibelaApiError: If the API reports an error (e.g. unknown account)
        """
        result = self._execute(GET_AUTHOR, {"account": account}, 'get_user_by_account')
        return result.get('user') or None

    def list_groups(
        self,
        first: int = DEFAULT_GROUPS_PAGE_SIZE,
        after: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """
        Fetch one page of groups.

        Args:
            first: Page size
            after: Cursor returned by the previous page (None for the first page)

        Returns:
            Tuple of (group dictionaries, pageInfo dictionary)
        """
        result = self._execute(GET_ALL_GROUPS, {"first": first, "after": after}, 'list_groups')
        connection = result['groups']
        nodes = [edge['node'] for edge in connection.get('edges') or []]
        return nodes, connection['pageInfo']

    def iter_all_groups(self, page_size: int = DEFAULT_GROUPS_PAGE_SIZE) -> Iterator[Dict[str, Any]]:
        """Yield every group of the team, following the pagination cursor."""
        after = None
        while True:
            nodes, page_info = self.list_groups(first=page_size, after=after)
            for node in nodes:
                yield node

            if not page_info.get('hasNextPage'):
                break
            after = page_info.get('endCursor')

    # ========================================================================
    # Mutations
    # ========================================================================

    def create_disabled_user(self, account: str, real_name: str, email: str) -> Dict[str, Any]:
        """Create a user that cannot sign in, used as author of imported content."""
        result = self._execute(
            CREATE_DISABLED_USER,
            {"input": {"account": account, "realName": real_name, "email": email}},
            'create_disabled_user'
        )
        return result['createDisabledUser']['user']

    def create_group(self, name: str, description: str, is_private: bool) -> Dict[str, Any]:
        """Create a group."""
        result = self._execute(
            CREATE_GROUP,
            {"input": {"name": name, "description": description, "isPrivate": is_private}},
            'create_group'
        )
        return result['createGroup']['group']

    def upload_attachment(self, name: str, data: bytes, kind: str = "GENERAL") -> Dict[str, Any]:
        """
        Upload binary data as an attachment.

        Args:
            name: File name shown in Kibela
            data: Raw file content, sent base64 encoded
            kind: Attachment kind (default: GENERAL)

        Returns:
            Attachment dictionary with id and path
        """
        encoded = base64.b64encode(data).decode('ascii')
        result = self._execute(
            UPLOAD_ATTACHMENT,
            {"input": {"name": name, "data": encoded, "kind": kind}},
            'upload_attachment'
        )
        return result['uploadAttachment']['attachment']

    def create_note(
        self,
        title: str,
        content: str,
        author_id: Any,
        published_at: str,
        group_ids: Optional[List[Any]] = None,
        folder_name: Optional[str] = None,
        coediting: bool = True
    ) -> Dict[str, Any]:
        """Create a note on behalf of ``author_id``."""
        result = self._execute(
            CREATE_NOTE,
            {
                "input": {
                    "title": title,
                    "content": content,
                    "coediting": coediting,
                    "groupIds": group_ids or [],
                    "folderName": folder_name,
                    "authorId": author_id,
                    "publishedAt": published_at
                }
            },
            'create_note'
        )
        return result['createNote']['note']

    def create_comment(
        self,
        commentable_id: Any,
        content: str,
        author_id: Any,
        published_at: str
    ) -> Dict[str, Any]:
        """Create a comment on the note ``commentable_id``."""
        result = self._execute(
            CREATE_COMMENT,
            {
                "input": {
                    "commentableId": commentable_id,
                    "content": content,
                    "publishedAt": published_at,
                    "authorId": author_id
                }
            },
            'create_comment'
        )
        return result['createComment']['comment']

    # ========================================================================
    # Internal Helper Methods
    # ========================================================================

    def _execute(self, document, variables: Dict[str, Any], operation: str) -> Dict[str, Any]:
        """Run a GraphQL document and translate transport failures."""
        self._apply_rate_limit()

        try:
            return self.client.execute(document, variable_values=variables)
        except TransportQueryError as e:
            self._handle_graphql_error(e, operation)
        except (TransportServerError, TransportProtocolError, RequestException) as e:
            raise KibelaConnectionError(f"Connection error during {operation}: {e}") from e

    def _apply_rate_limit(self):
        """Apply rate limiting between requests."""
        if self.rate_limit <= 0:
            return

        current_time = time.time()
        time_since_last = current_time - self._last_request_time

        if time_since_last < self.rate_limit:
            sleep_duration = self.rate_limit - time_since_last
            logger.debug(f"Rate limiting: sleeping {sleep_duration:.2f}s")
            time.sleep(sleep_duration)

        self._last_request_time = time.time()

    def _handle_graphql_error(self, error: TransportQueryError, operation: str):
        """Convert GraphQL errors to KibelaApiError."""
        errors = getattr(error, 'errors', None)
        if errors and isinstance(errors, list):
            err = errors[0]
            message = err.get('message', str(error))
            extensions = err.get('extensions') or {}
            code = extensions.get('code', 'GRAPHQL_ERROR')

            logger.debug(f"Kibela GraphQL Error in {operation}: {code} - {message}")
            raise KibelaApiError(code, message, operation) from error

        raise KibelaApiError("GRAPHQL_ERROR", str(error), operation) from error

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'KibelaClient':
        """
        Initialize Kibela client from configuration dictionary.

        Args:
            config: Configuration dictionary with kibela and advanced settings

        Returns:
            KibelaClient instance
        """
        kibela_config = config.get('kibela', {})
        advanced_config = config.get('advanced', {})

        return cls(
            team=kibela_config.get('team'),
            token=kibela_config.get('token'),
            endpoint=kibela_config.get('endpoint'),
            verify_ssl=kibela_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', DEFAULT_TIMEOUT),
            max_retries=advanced_config.get('max_retries', DEFAULT_MAX_RETRIES),
            rate_limit=advanced_config.get('rate_limit', 0)
        )
