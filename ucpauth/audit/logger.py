"""
Audit logging for the grant negotiation protocol.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from datetime import datetime
import asyncio
import json
import logging
from collections import deque

from ..core.types import AuditEvent

logger = logging.getLogger(__name__)

TICKET_ISSUED = "ticket_issued"
CLAIMS_REQUIRED = "claims_required"
CLAIMS_REJECTED = "claims_rejected"
ACCESS_DENIED = "access_denied"
TOKEN_ISSUED = "token_issued"


class AuditLogger(ABC):
    """Abstract base class for audit logging"""

    @abstractmethod
    async def log(self, event: AuditEvent) -> None:
        """Log an audit event"""
        pass

    @abstractmethod
    async def get_events(
        self,
        subject: Optional[str] = None,
        event_type: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """Retrieve audit events with optional filtering"""
        pass

    async def close(self) -> None:
        """Close the audit logger and release resources"""
        pass


def _matches(event: AuditEvent, subject, event_type, start_time, end_time) -> bool:
    if subject and event.subject != subject:
        return False
    if event_type and event.event_type != event_type:
        return False
    if start_time and event.timestamp < start_time:
        return False
    if end_time and event.timestamp > end_time:
        return False
    return True


class MemoryAuditLogger(AuditLogger):
    """In-memory audit logger for development and testing"""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self.events: deque = deque(maxlen=max_entries)
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        async with self._lock:
            self.events.append(event)

    async def get_events(
        self,
        subject: Optional[str] = None,
        event_type: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        async with self._lock:
            return [e for e in self.events if _matches(e, subject, event_type, start_time, end_time)]


class FileAuditLogger(AuditLogger):
    """File-based audit logger writing one JSON document per line"""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        async with self._lock:
            event_data = {
                "event_id": event.event_id,
                "event_type": event.event_type,
                "subject": event.subject,
                "timestamp": event.timestamp.isoformat(),
                "details": event.details,
                "resource": event.resource,
            }
            try:
                with open(self.file_path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(event_data) + "\n")
            except OSError as e:
                logger.error(f"Failed to write audit log: {e}")

    async def get_events(
        self,
        subject: Optional[str] = None,
        event_type: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        events = []
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                for line in f:
                    try:
                        data = json.loads(line.strip())
                        event = AuditEvent(
                            event_id=data["event_id"],
                            event_type=data["event_type"],
                            subject=data.get("subject"),
                            timestamp=datetime.fromisoformat(data["timestamp"]),
                            details=data.get("details", {}),
                            resource=data.get("resource"),
                        )
                    except (json.JSONDecodeError, KeyError, ValueError):
                        # Skip malformed lines
                        continue
                    if _matches(event, subject, event_type, start_time, end_time):
                        events.append(event)
        except FileNotFoundError:
            pass
        return events


def create_audit_logger(logger_type: str = "memory", **kwargs) -> AuditLogger:
    """
    Factory function to create audit loggers

    Args:
        logger_type: Type of logger ("memory" or "file")
        **kwargs: Additional arguments for the logger

    Returns:
        AuditLogger instance
    """
    if logger_type == "memory":
        return MemoryAuditLogger(kwargs.get("max_entries", 1000))
    elif logger_type == "file":
        return FileAuditLogger(kwargs.get("file_path", "audit.log"))
    else:
        raise ValueError(f"Unknown logger type: {logger_type}")
