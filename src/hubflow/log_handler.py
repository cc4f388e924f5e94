"""
In-memory logging handler keeping a per-flow audit trail.

Records logged with `extra={"flow_id": ...}` are tagged with that flow, so the steps,
validation failures and aborts of a single flow can be read back with
`get_logs(flow_id=...)`.
"""

import logging
import collections
from datetime import datetime
from threading import RLock
import sys


class FlowLogHandler(logging.Handler):
    """
    Logging handler that stores log records in memory.
    Thread-safe, with a bounded buffer for all records and a separate one for alerts.
    """

    def __init__(self, max_records=2000, max_alerts=500):
        super().__init__()
        self.max_records = max_records
        self.max_alerts = max_alerts

        # all log levels
        self.records = collections.deque(maxlen=max_records)
        # WARNING, ERROR, CRITICAL only
        self.alert_records = collections.deque(maxlen=max_alerts)

        # RLock so a log call made while holding the lock cannot deadlock
        self.lock = RLock()
        self._in_emit = False
        self._shutdown = False

        self.alert_levels = {"WARNING", "ERROR", "CRITICAL"}

    def _timestamp(self, record):
        tz = getattr(self.formatter, "tz", None) if self.formatter else None
        if tz:
            return datetime.fromtimestamp(record.created, tz).isoformat()
        return datetime.fromtimestamp(record.created).isoformat()

    def emit(self, record):
        """Store the log record in memory without ever blocking the caller"""
        if self._shutdown or self._in_emit:
            return

        try:
            self._in_emit = True
            if not self.lock.acquire(blocking=False):
                return

            try:
                if self._shutdown:
                    return
                log_entry = {
                    "timestamp": self._timestamp(record),
                    "level": record.levelname,
                    "message": record.getMessage(),
                    "module": record.name,
                    "funcName": record.funcName,
                    "lineno": record.lineno,
                    "flow_id": getattr(record, "flow_id", None),
                }
                self.records.append(log_entry)
                if record.levelname in self.alert_levels:
                    self.alert_records.append(log_entry)
            finally:
                self.lock.release()

        except (TypeError, ValueError):
            # message arguments that do not match the format string
            try:
                sys.stderr.write("FlowLogHandler error: failed to format log entry\n")
                sys.stderr.flush()
            except (RuntimeError, ValueError):
                pass
        finally:
            self._in_emit = False

    def _snapshot(self, buffer, flow_id=None):
        if self._shutdown:
            return []
        with self.lock:
            logs = list(buffer)
        if flow_id:
            logs = [log for log in logs if log.get("flow_id") == flow_id]
        return logs

    def get_logs(self, flow_id=None):
        """Retrieve logs, optionally only those of one flow"""
        return self._snapshot(self.records, flow_id)

    def get_alerts(self, flow_id=None):
        """Retrieve warnings and errors from the alert buffer"""
        return self._snapshot(self.alert_records, flow_id)

    def shutdown(self):
        self._shutdown = True

    def close(self):
        self.shutdown()
        super().close()
