"""Append-only JSON Lines log of finished chat exchanges."""
import json
import logging
import threading
from pathlib import Path
from typing import Optional, TextIO

from models.usage import UsageRecord

logger = logging.getLogger(__name__)


class UsageLogger:
    """
    Writes one JSON object per line for every completed exchange.

    Each record is serialised up front and written with a single call under a
    lock, so readers never see half a record.
    """

    def __init__(self, log_file_path: str = "logs/usage.jsonl"):
        self.log_file_path = Path(log_file_path)
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._file: Optional[TextIO] = None
        logger.info(f"UsageLogger writing to {self.log_file_path}")

    def write(self, record: UsageRecord) -> bool:
        """
        Append a usage record.

        Args:
            record: The finished exchange to log

        Returns:
            True if the record was written, False otherwise. Failures are
            logged here and never raised.
        """
        try:
            line = json.dumps(record.to_dict(), ensure_ascii=False) + "\n"
            with self._lock:
                if self._file is None or self._file.closed:
                    self._file = open(self.log_file_path, "a", encoding="utf-8")
                self._file.write(line)
                self._file.flush()
        except (OSError, TypeError, ValueError) as e:
            logger.error(
                f"Failed to write usage record for conversation {record.conversation_id}: {e}",
                exc_info=True,
                extra={"conversation_id": record.conversation_id}
            )
            return False

        logger.debug(f"Logged usage for conversation {record.conversation_id}")
        return True

    def close(self) -> None:
        with self._lock:
            if self._file is not None and not self._file.closed:
                self._file.close()
            self._file = None
