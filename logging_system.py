"""
Logging setup with file rotation and structured (JSON) logs, plus the audit
log for ticket lifecycle events and reconciliation gaps.
"""
import logging
import logging.handlers
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any
from enum import Enum

from supabase import Client

logger = logging.getLogger(__name__)


class LogType(str, Enum):
    """Log event types."""
    TICKET_MINTED = "TICKET_MINTED"
    TICKET_BOUGHT = "TICKET_BOUGHT"
    TICKET_LISTED = "TICKET_LISTED"
    SALE_CANCELLED = "SALE_CANCELLED"
    TICKET_PURCHASED = "TICKET_PURCHASED"
    TICKET_VALIDATED = "TICKET_VALIDATED"
    RECONCILIATION_GAP = "RECONCILIATION_GAP"
    SYSTEM_WARNING = "SYSTEM_WARNING"
    SYSTEM_ERROR = "SYSTEM_ERROR"


class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class JSONFormatter(logging.Formatter):
    """Custom formatter for JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "log_data"):
            log_data.update(record.log_data)

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


_configured_dirs = set()


def configure_logging(log_dir: str = "logs", level: int = logging.INFO) -> None:
    """Attach rotating JSON/text/error file handlers to the root logger.

    Calling it again for the same directory is a no-op.
    """
    path = Path(log_dir)
    if str(path.resolve()) in _configured_dirs:
        return
    path.mkdir(parents=True, exist_ok=True)

    # JSON log handler (structured logs)
    json_handler = logging.handlers.RotatingFileHandler(
        filename=path / "app.json.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding='utf-8'
    )
    json_handler.setFormatter(JSONFormatter())
    json_handler.setLevel(level)

    # Plain text log handler
    text_handler = logging.handlers.RotatingFileHandler(
        filename=path / "app.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding='utf-8'
    )
    text_handler.setFormatter(
        logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    )
    text_handler.setLevel(level)

    # Error log handler (errors only; gaps are logged as CRITICAL and land here)
    error_handler = logging.handlers.RotatingFileHandler(
        filename=path / "errors.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=20,  # Keep more error logs
        encoding='utf-8'
    )
    error_handler.setFormatter(JSONFormatter())
    error_handler.setLevel(logging.ERROR)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(json_handler)
    root_logger.addHandler(text_handler)
    root_logger.addHandler(error_handler)
    _configured_dirs.add(str(path.resolve()))


class AuditLog:
    """Lifecycle event log, persisted to Supabase when a client is given."""

    LOGS_TABLE = "application_logs"
    GAPS_TABLE = "reconciliation_gaps"

    def __init__(self, db: Optional[Client] = None):
        self.db = db

    def log_event(
        self,
        log_type: LogType,
        message: str,
        log_level: LogLevel = LogLevel.INFO,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        """Log an event to the log files and, if configured, the database.

        Args:
            log_type: Type of log event
            message: Log message
            log_level: Log level
            metadata: Additional metadata (ticket id, addresses, tx hash)
        """
        log_data = {
            "log_type": log_type.value,
            "log_level": log_level.value,
            "message": message,
            "metadata": metadata or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        logger.log(
            getattr(logging, log_level.value),
            f"[{log_type.value}] {message}",
            extra={"log_data": log_data},
        )

        if self.db is not None:
            self._insert(self.LOGS_TABLE, {
                "log_level": log_data["log_level"],
                "log_type": log_data["log_type"],
                "message": message,
                "metadata": log_data["metadata"],
                "log_data": log_data,
            })

    def record_gap(
        self,
        action: str,
        reason: str,
        transaction: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        """Record a confirmed chain action whose store mirror is missing, for manual repair."""
        gap = {
            "action": action,
            "reason": reason,
            "transaction": transaction or {},
            "payload": payload or {},
            "status": "open",
            "detected_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.critical(
            f"[{LogType.RECONCILIATION_GAP.value}] {action}: {reason}",
            extra={"log_data": gap},
        )
        if self.db is not None:
            self._insert(self.GAPS_TABLE, gap)

    def _insert(self, table: str, record: Dict[str, Any]):
        try:
            self.db.table(table).insert(record).execute()
        except Exception as e:
            # The file log above already holds the record
            logger.error(f"Failed to store record in {table}: {e}")
