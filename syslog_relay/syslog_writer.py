import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from .sink import Sink, SinkError
from .syslog_parser import SEVERITY_MAP

logger = logging.getLogger(__name__)


class SyslogWriter(Sink):
    """Sink writing messages to severity-based JSON-lines files with automatic rotation"""

    SEVERITY_FILES: Dict[str, str] = {
        name: f'{name}.log' for name in SEVERITY_MAP.values()
    }

    def __init__(self,
                 log_dir: str = 'logs',
                 max_bytes: int = 10 * 1024 * 1024,  # 10MB
                 backup_count: int = 5) -> None:
        """
        Initialize the syslog writer.

        Args:
            log_dir: Directory to store log files
            max_bytes: Maximum size per log file before rotation
            backup_count: Number of backup files to keep
        """
        self.log_dir: Path = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.max_bytes: int = max_bytes
        self.backup_count: int = backup_count

        # File handles cache (one per severity)
        self.file_handles: Dict[str, TextIO] = {}

        # Lock per severity for fine-grained concurrency
        self.locks: Dict[str, threading.Lock] = {
            severity: threading.Lock() for severity in self.SEVERITY_FILES
        }

        # Master lock for shutdown operations
        self.master_lock: threading.Lock = threading.Lock()

        self.is_closed: bool = False

    def _get_file_handle(self, severity: str) -> Optional[TextIO]:
        """
        Get or create cached file handle for severity level.
        Returns None if writer is closed.
        """
        if self.is_closed:
            return None

        if severity not in self.file_handles:
            filepath = self.log_dir / self.SEVERITY_FILES[severity]
            self.file_handles[severity] = open(filepath, 'a', buffering=8192, encoding='utf-8')

        return self.file_handles[severity]

    def _rotate_file(self, severity: str) -> None:
        """
        Rotate log file when it exceeds max_bytes.
        Renames: notice.log -> notice.log.1 -> ... -> notice.log.N
        """
        filename = self.SEVERITY_FILES[severity]
        filepath = self.log_dir / filename

        if severity in self.file_handles:
            self.file_handles[severity].close()
            del self.file_handles[severity]

        # N-1 -> N, ... , 1 -> 2
        for i in range(self.backup_count - 1, 0, -1):
            old_backup = self.log_dir / f"{filename}.{i}"
            new_backup = self.log_dir / f"{filename}.{i + 1}"

            if old_backup.exists():
                if new_backup.exists():
                    new_backup.unlink()
                old_backup.rename(new_backup)

        if filepath.exists():
            filepath.replace(self.log_dir / f"{filename}.1")

        logger.info(f"Rotated {filename} (kept {self.backup_count} backups)")

    def _should_rotate(self, severity: str) -> bool:
        filepath = self.log_dir / self.SEVERITY_FILES[severity]
        return filepath.exists() and filepath.stat().st_size >= self.max_bytes

    def send(self, message: str, priority: int, fields: Dict[str, str]) -> None:
        """
        Append one JSON record to the file for the message's severity.
        Thread-safe with per-severity locking.
        """
        if self.is_closed:
            raise SinkError("SyslogWriter is closed")

        severity = SEVERITY_MAP.get(priority)
        if severity is None:
            raise SinkError(f"Invalid priority: {priority!r}")

        record: Dict[str, Any] = {'message': message, 'priority': priority, 'severity': severity}
        record.update(fields)

        with self.locks[severity]:
            # Double-check after acquiring lock
            if self.is_closed:
                raise SinkError("SyslogWriter is closed")

            try:
                if self._should_rotate(severity):
                    self._rotate_file(severity)

                file_handle = self._get_file_handle(severity)
                if file_handle is None:
                    raise SinkError("SyslogWriter is closed")

                json.dump(record, file_handle, ensure_ascii=False)
                file_handle.write('\n')
                file_handle.flush()
            except (OSError, TypeError, ValueError) as e:
                raise SinkError(f"Error writing to {severity}.log: {e}") from e

        logger.debug(f"Wrote message to {severity}.log")

    def flush_all(self) -> None:
        """Flush all open file handles to disk"""
        for severity, lock in self.locks.items():
            with lock:
                if severity in self.file_handles:
                    try:
                        self.file_handles[severity].flush()
                    except OSError as e:
                        logger.error(f"Error flushing {severity}.log: {e}")

    def close(self) -> None:
        """
        Close all open file handles safely.
        Acquires all locks to ensure no concurrent writes.
        """
        with self.master_lock:
            if self.is_closed:
                logger.debug("SyslogWriter already closed")
                return

            self.is_closed = True

            acquired_locks = []
            for lock in self.locks.values():
                lock.acquire()
                acquired_locks.append(lock)

            try:
                for severity, file_handle in list(self.file_handles.items()):
                    try:
                        file_handle.flush()
                        file_handle.close()
                        logger.info(f"Closed {severity}.log")
                    except OSError as e:
                        logger.error(f"Error closing {severity}.log: {e}")

                self.file_handles.clear()

            finally:
                for lock in acquired_locks:
                    lock.release()

    def __enter__(self) -> 'SyslogWriter':
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.close()
        return False  # Don't suppress exceptions
