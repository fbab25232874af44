"""
Failed Reconciliation Log

Webhook deliveries are acknowledged even when applying them fails, so the
gateway will not redeliver them. Every such failure is appended to a daily
JSONL file (one JSON object per line) so it can be inspected and replayed.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jojo_orders.core.logger import setup_logger

logger = setup_logger(__name__)


class DeadLetterLog:
    """Append-only JSONL log of webhook events that failed to reconcile."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for_date(self, date_str: Optional[str] = None) -> Path:
        """
        Get the log file path for a specific date.

        Args:
            date_str: Date in YYYY-MM-DD format. If None, uses today's date (UTC).
        """
        if date_str is None:
            date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return self.directory / f"failed_reconciliations_{date_str}.jsonl"

    def record(
        self,
        event: Dict[str, Any],
        error: Exception,
        order_id: Optional[str] = None,
    ) -> Optional[Path]:
        """
        Append a failed reconciliation.

        Args:
            event: The verified event payload
            error: The exception raised while applying it
            order_id: Order the event referenced, if known

        Returns:
            Path to the log file, or None if the entry could not be written
        """
        log_file = self.path_for_date()
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_id": event.get("id"),
            "event_type": event.get("type"),
            "order_id": order_id,
            "error": {"type": type(error).__name__, "message": str(error)},
            "event": event,
        }

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry, ensure_ascii=False, default=str) + "\n")
        except OSError as e:
            logger.error(f"Failed to write dead-letter entry for event {event.get('id')}: {e}")
            return None

        logger.info(f"Dead-lettered event {event.get('id')} to {log_file}")
        return log_file

    def read(self, date_str: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Read all failed reconciliations recorded on a date.

        Args:
            date_str: Date in YYYY-MM-DD format. If None, uses today's date.

        Returns:
            List of log entries, oldest first
        """
        log_file = self.path_for_date(date_str)

        if not log_file.exists():
            return []

        entries = []
        with open(log_file, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning(f"Failed to parse line {line_num} in {log_file}: {e}")

        return entries
