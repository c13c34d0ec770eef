"""Live, role-scoped record workflows over a document store."""

from record_workflow.filtering import apply_client_filter
from record_workflow.models import Actor, FieldFilter, OrderBy, Outcome, Record
from record_workflow.view import LiveView
from record_workflow.workflow import RecordWorkflow

__all__ = [
    "Actor",
    "FieldFilter",
    "LiveView",
    "OrderBy",
    "Outcome",
    "Record",
    "RecordWorkflow",
    "apply_client_filter",
]
