"""
Append-only transaction log of entities created by an import run.

Every record is flushed to disk before control returns to the caller, so the
file always reflects what exists in the destination even if the process is
interrupted. The log is an audit artifact: simulated runs and runs that
created nothing leave no file behind.
"""

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Dict, IO, Iterator, List, Optional, Union

from errors import LogWriteError
from models import ExecutionMode, LogRecord

logger = logging.getLogger('kibela_importer.importers.transaction_log')

LOG_FILE_TEMPLATE = "transaction-{run_id}.log"


def generate_run_id() -> str:
    """Random identifier for one run; also names the log file."""
    return uuid.uuid4().hex


class TransactionLog:
    """Newline-delimited JSON log, one record per created destination entity."""

    def __init__(self, path: Path, fh: IO[str], mode: ExecutionMode, run_id: str):
        self.path = path
        self.mode = mode
        self.run_id = run_id
        self._fh: Optional[IO[str]] = fh
        self.records_written = 0
        self.records_by_type: Dict[str, int] = {}

    @classmethod
    def open(
        cls,
        run_id: str,
        directory: Union[str, Path] = '.',
        mode: ExecutionMode = ExecutionMode.SIMULATE
    ) -> 'TransactionLog':
        """
        Create a new log file for ``run_id``.

        Args:
            run_id: Run identifier, must not have been used before
            directory: Directory holding the log file
            mode: Execution mode of the run, decides whether the file is kept

        Raises:
            LogWriteError: If the file already exists or cannot be created
        """
        path = Path(directory) / LOG_FILE_TEMPLATE.format(run_id=run_id)
        try:
            fh = open(path, 'x', encoding='utf-8')
        except FileExistsError as e:
            raise LogWriteError(f"Transaction log already exists: {path}") from e
        except OSError as e:
            raise LogWriteError(f"Cannot create transaction log {path}: {e}") from e

        logger.debug(f"Opened transaction log {path}")
        return cls(path, fh, mode, run_id)

    @property
    def closed(self) -> bool:
        return self._fh is None

    def append(self, record: LogRecord) -> None:
        """
        Write one record and force it to disk.

        Raises:
            LogWriteError: If the log is closed or the write fails
        """
        if self._fh is None:
            raise LogWriteError(f"Transaction log is closed: {self.path}")

        try:
            self._fh.write(record.to_json() + "\n")
            self._fh.flush()
            os.fsync(self._fh.fileno())
        except OSError as e:
            raise LogWriteError(f"Failed to write to {self.path}: {e}") from e

        self.records_written += 1
        kind = record.type.value
        self.records_by_type[kind] = self.records_by_type.get(kind, 0) + 1

    def close(self) -> None:
        """
        Close the file and apply the retention rule.

        The file is deleted for simulated runs and for runs that wrote
        nothing; otherwise it is kept as the audit record of the run.
        """
        if self._fh is None:
            return

        self._fh.close()
        self._fh = None

        if not self.mode.is_apply or self.path.stat().st_size == 0:
            self.path.unlink()
            logger.debug(f"Removed transaction log {self.path}")
        else:
            logger.info(f"Transaction log kept at {self.path}")

    @property
    def kept(self) -> bool:
        """True once closed with the file retained on disk."""
        return self.closed and self.path.exists()

    def __enter__(self) -> 'TransactionLog':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def read_transaction_log(path: Union[str, Path]) -> List[LogRecord]:
    """Load all records of a kept transaction log."""
    return list(iter_transaction_log(path))


def iter_transaction_log(path: Union[str, Path]) -> Iterator[LogRecord]:
    with open(path, 'r', encoding='utf-8') as fh:
        for line in fh:
            line = line.strip()
            if line:
                yield LogRecord.from_dict(json.loads(line))
