"""Import package for recreating a Kibela export in another Kibela team.

Package Structure:
- kibela_client: GraphQL client for the Kibela API
- identity_cache: Natural key -> destination entity cache
- entity_resolver: Finds or creates authors and groups
- content_translator: Turns archive entries into import intents
- mutation_executor: Creates (or simulates) attachments, notes and comments
- transaction_log: Append-only record of every created entity

Key Features:
- At most one lookup/creation per author account and group name per run
- Missing authors recreated as disabled users
- Dry-run (simulate) mode producing the same log shape as a real run
- Crash-safe transaction log for auditing a run
"""

from .kibela_client import KibelaClient, KibelaApiError, KibelaConnectionError
from .identity_cache import IdentityCache
from .entity_resolver import EntityResolver
from .content_translator import (
    ContentTranslator,
    extract_folder_name,
    get_source_id,
    is_attachment,
)
from .mutation_executor import MutationExecutor
from .transaction_log import TransactionLog, generate_run_id, read_transaction_log

__all__ = [
    'KibelaClient',
    'KibelaApiError',
    'KibelaConnectionError',
    'IdentityCache',
    'EntityResolver',
    'ContentTranslator',
    'extract_folder_name',
    'get_source_id',
    'is_attachment',
    'MutationExecutor',
    'TransactionLog',
    'generate_run_id',
    'read_transaction_log',
]
