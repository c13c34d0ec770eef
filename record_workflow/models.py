"""Data models for record workflow."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Document field name -> Record attribute
CORE_FIELDS = {
    "status": "status",
    "assignedTo": "assigned_to",
    "assignedBy": "assigned_by",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


@dataclass
class Record:
    """A document from a shared collection (lead, post, hackathon, registration).

    ``status`` is None when the document has none; the workflow reads that as
    its profile's initial status.
    """

    id: str
    status: str | None = None
    assigned_to: str | None = None
    assigned_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(cls, record_id: str, document: dict[str, Any]) -> "Record":
        """Build a record from a stored document."""
        core = {attr: document[name] for name, attr in CORE_FIELDS.items() if name in document}
        data = {k: v for k, v in document.items() if k not in CORE_FIELDS and k != "id"}
        return cls(id=record_id, data=data, **core)

    def to_document(self) -> dict[str, Any]:
        """Return the stored document form of this record (without the id)."""
        document = dict(self.data)
        for name, attr in CORE_FIELDS.items():
            document[name] = getattr(self, attr)
        return document

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a field by its document name."""
        if name == "id":
            return self.id
        if name in CORE_FIELDS:
            value = getattr(self, CORE_FIELDS[name])
            return default if value is None else value
        return self.data.get(name, default)


@dataclass(frozen=True)
class Actor:
    """The signed-in user acting on records."""

    id: str
    email: str = ""
    display_name: str = ""
    role: str = "student"


@dataclass(frozen=True)
class FieldFilter:
    """A server-side query constraint."""

    field: str
    op: str = "=="
    value: Any = None


@dataclass(frozen=True)
class OrderBy:
    """Query ordering."""

    field: str = "createdAt"
    descending: bool = True


@dataclass
class Outcome:
    """Result of a workflow action."""

    ok: bool
    record_id: str | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    error: Exception | None = None
    message: str = ""
