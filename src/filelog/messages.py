"""
In-process message log feeding the file logger
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional

from .records import LogRecord, Severity

MAX_LOG_MESSAGES = 20000

logger = logging.getLogger(__name__)

MessageCallback = Callable[[LogRecord], None]


class MessageLog:
    """
    Bounded, ordered buffer of log records with subscribers

    New subscribers only see messages added after they subscribe; use
    get_messages() to replay what is already buffered.
    """

    def __init__(self, max_messages: int = MAX_LOG_MESSAGES):
        if max_messages <= 0:
            raise ValueError("max_messages must be positive")
        self._messages: Deque[LogRecord] = deque(maxlen=max_messages)
        self._subscribers: List[MessageCallback] = []
        self._lock = threading.RLock()

    def add_message(
        self,
        text: str,
        severity: Severity = Severity.NORMAL,
        timestamp: Optional[int] = None,
    ) -> LogRecord:
        """Buffer a message and hand it to every subscriber"""
        record = LogRecord(
            text=text,
            severity=severity,
            timestamp=int(time.time()) if timestamp is None else timestamp,
        )
        with self._lock:
            self._messages.append(record)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(record)
            except Exception:
                logger.exception("Log message subscriber failed")
        return record

    def get_messages(self) -> List[LogRecord]:
        with self._lock:
            return list(self._messages)

    def subscribe(self, callback: MessageCallback) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: MessageCallback) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()


_message_log: Optional[MessageLog] = None


def get_message_log() -> MessageLog:
    """Get the process-wide message log"""
    global _message_log
    if _message_log is None:
        _message_log = MessageLog()
    return _message_log
