"""
Migration orchestrator for importing Kibela export archives.

Walks every archive entry in order and sends it through
translate → resolve dependencies → materialize → log. A failing entry is
logged and counted, and the run continues with the next entry.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from errors import LogWriteError
from importers import (
    ContentTranslator,
    EntityResolver,
    KibelaClient,
    MutationExecutor,
    TransactionLog,
    generate_run_id,
)
from logger import LOGGER_NAME, ProgressTracker
from models import (
    AttachmentIntent,
    Comment,
    ExecutionMode,
    LogRecord,
    Note,
    RecordType,
)
from readers import ArchiveEntry, ArchiveReader

logger = logging.getLogger('kibela_importer.orchestrator')


class MigrationOrchestrator:
    """Central coordinator sequencing archive entries through the import pipeline."""

    def __init__(
        self,
        config: Dict[str, Any],
        client: Optional[KibelaClient] = None,
        logger: Optional[logging.Logger] = None,
        run_id: Optional[str] = None
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Configuration dictionary
            client: KibelaClient to use in apply mode (built from config if omitted)
            logger: Optional logger instance
            run_id: Run identifier naming the transaction log (random if omitted)
        """
        self.config = config
        self.logger = logger or logging.getLogger('kibela_importer.orchestrator')

        migration_config = config.get('migration', {})
        self.mode = ExecutionMode.APPLY if migration_config.get('apply', False) else ExecutionMode.SIMULATE
        self.private_groups = bool(migration_config.get('private_groups', False))
        self.log_directory = migration_config.get('log_directory', '.')
        self.show_progress = bool(config.get('export', {}).get('progress_bars', False))
        self.run_id = run_id or generate_run_id()

        self.client = None
        self.resolver = None
        if self.mode.is_apply:
            self.client = client or KibelaClient.from_config(config)
            self.resolver = EntityResolver(
                self.client,
                private_groups=self.private_groups,
                groups_page_size=config.get('advanced', {}).get('groups_page_size', 100)
            )

        self.translator = ContentTranslator()
        self.executor = MutationExecutor(self.mode, client=self.client, resolver=self.resolver)

        self.errors: List[Dict[str, str]] = []
        self._entry_counter = 0

        self.logger.debug(f"MigrationOrchestrator initialized (mode={self.mode.value}, run_id={self.run_id})")

    def run(self, archive_paths: Iterable[Union[str, Path]]) -> Dict[str, Any]:
        """
        Import every entry of every archive, in order.

        Args:
            archive_paths: Zip archives exported from the source team

        Returns:
            Run statistics

        Raises:
            ConnectivityError: In apply mode, when the destination is unreachable
            LogWriteError: When the transaction log cannot be created or written
        """
        start_time = time.time()

        if self.mode.is_apply:
            self.client.ping()

        with TransactionLog.open(self.run_id, self.log_directory, self.mode) as log, \
                ProgressTracker("entries") as tracker:
            for archive_path in archive_paths:
                self._process_archive(Path(archive_path), log, tracker)

        stats = tracker.get_stats()
        stats.update({
            'run_id': self.run_id,
            'mode': self.mode.value,
            'log_file': str(log.path),
            'log_kept': log.kept,
            'records': log.records_written,
            'records_by_type': dict(log.records_by_type),
            'success': log.records_written,
            'failure': tracker.failed_items,
            'errors': list(self.errors),
            'resolver': self.resolver.get_statistics() if self.resolver else {},
            'duration_seconds': time.time() - start_time
        })

        data_size_mib = round(stats['bytes'] / 1024 ** 2)
        self.logger.info(
            f"Uploaded data size={data_size_mib}MiB, success/failure={stats['success']}/{stats['failure']}"
        )
        self.logger.info(f"Initial phase finished (logfile={log.path})")
        return stats

    def _process_archive(self, archive_path: Path, log: TransactionLog, tracker: ProgressTracker) -> None:
        reader = ArchiveReader(archive_path)
        self.logger.debug(f"Reading archive {archive_path}")

        entries = reader.iter_entries()
        if not self.show_progress:
            for entry in entries:
                self._process_entry(entry, log, tracker)
            return

        with logging_redirect_tqdm(loggers=[logging.getLogger(LOGGER_NAME)]):
            for entry in tqdm(entries, total=len(reader.list_entries()), desc=archive_path.name, unit="entry"):
                self._process_entry(entry, log, tracker)

    def _process_entry(self, entry: ArchiveEntry, log: TransactionLog, tracker: ProgressTracker) -> None:
        """Run one entry through the pipeline, isolating its failure."""
        self._entry_counter += 1
        id_tag = f"{self._entry_counter:05d}"
        label = "Processing" if self.mode.is_apply else "Processing (dry-run)"
        self.logger.info(f"{label} [{id_tag}] {entry.path} ({round(entry.size / 1024)} KiB)")
        tracker.add_bytes(entry.size)

        written_before = log.records_written
        try:
            imported = self.import_entry(entry, log)
        except LogWriteError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to request[{id_tag}] {entry.path}: {e}",
                              exc_info=self.logger.isEnabledFor(logging.DEBUG))
            self.errors.append({'entry': id_tag, 'path': entry.path, 'error': str(e)})
            tracker.increment(success=False, created=log.records_written - written_before)
            return

        if imported:
            tracker.increment(success=True, created=log.records_written - written_before)
        else:
            tracker.skip()

    def import_entry(self, entry: ArchiveEntry, log: TransactionLog) -> bool:
        """
        Translate and materialize one entry, logging each created entity.

        Returns:
            False if the entry was a draft and skipped, True otherwise
        """
        intent = self.translator.translate(entry.path, entry.data)
        if intent is None:
            return False

        if isinstance(intent, AttachmentIntent):
            attachment = self.executor.materialize_attachment(intent)
            log.append(LogRecord(
                type=RecordType.ATTACHMENT,
                source_file=entry.path,
                source_id=intent.source_id,
                dest_path=attachment.path,
                dest_id=attachment.id
            ))
            return True

        def record_created(entity) -> None:
            # Comments carry no identifier of their own in the export, so they
            # share the note's source id.
            if isinstance(entity, Note):
                record_type = RecordType.NOTE
            elif isinstance(entity, Comment):
                record_type = RecordType.COMMENT
            else:
                raise TypeError(f"Unexpected entity: {entity!r}")

            log.append(LogRecord(
                type=record_type,
                source_file=entry.path,
                source_id=intent.source_id,
                dest_path=entity.path,
                dest_id=entity.id,
                content=entity.content
            ))

        self.executor.materialize_note(intent, on_created=record_created)
        return True
