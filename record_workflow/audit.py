"""Audit trail of record mutations, kept in its own collection."""

from datetime import datetime, timezone
from typing import Any

import structlog

from record_workflow.errors import WorkflowError
from record_workflow.models import Actor
from record_workflow.store import DocumentStore

logger = structlog.get_logger()

AUDIT_COLLECTION = "audit_logs"


class AuditTrail:
    """Writes one audit_logs document per create, update, and delete.

    A failed audit write is logged and does not fail the action it records.
    """

    def __init__(self, store: DocumentStore, collection: str = AUDIT_COLLECTION) -> None:
        self.store = store
        self.collection = collection

    def record(
        self,
        action: str,
        collection: str,
        record_id: str,
        actor: Actor,
        data: dict[str, Any] | None = None,
    ) -> None:
        entry = {
            "action": action,
            "collection": collection,
            "documentId": record_id,
            "userId": actor.id,
            "timestamp": datetime.now(timezone.utc),
            "createdAt": datetime.now(timezone.utc),
        }
        if data:
            entry["data"] = data
        try:
            self.store.add_document(self.collection, entry)
        except WorkflowError as e:
            logger.error("Failed to write audit entry", action=action, record_id=record_id, error=str(e))
