"""Notion database store implementation using notion-client."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import httpx
import structlog
from notion_client import APIErrorCode, APIResponseError, Client
from notion_client.errors import HTTPResponseError, RequestTimeoutError
from notion_client.helpers import collect_paginated_api

from record_workflow.errors import BackendUnavailable, PermissionDenied, RecordNotFound, ValidationError
from record_workflow.filtering import matches_filters, sort_records
from record_workflow.models import FieldFilter, OrderBy, Record
from record_workflow.polling import PollingSubscription
from record_workflow.store import DocumentStore, ErrorCallback, SnapshotCallback, Subscription

logger = structlog.get_logger()

_PERMISSION_CODES = {APIErrorCode.Unauthorized, APIErrorCode.RestrictedResource}
_TRANSIENT_CODES = {
    APIErrorCode.RateLimited,
    APIErrorCode.ConflictError,
    APIErrorCode.InternalServerError,
    APIErrorCode.ServiceUnavailable,
}

_TEXT_TYPES = {"title", "rich_text"}
_EQUALITY_TYPES = {"title", "rich_text", "select", "status", "email", "phone_number", "url", "checkbox"}
_NUMBER_CONDITIONS = {
    "==": "equals",
    "!=": "does_not_equal",
    "<": "less_than",
    "<=": "less_than_or_equal_to",
    ">": "greater_than",
    ">=": "greater_than_or_equal_to",
}
_DATE_CONDITIONS = {"==": "equals", "<": "before", "<=": "on_or_before", ">": "after", ">=": "on_or_after"}


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class NotionStore(DocumentStore):
    """Document store keeping each collection in a Notion database.

    Database columns are named after document fields; the database's title column
    holds whichever document field it is named after. Live queries poll the database.
    """

    def __init__(self, token: str, databases: dict[str, str], poll_interval: float = 5.0) -> None:
        """Initialize Notion store.

        Args:
            token: Notion integration token
            databases: Collection name -> Notion database ID
            poll_interval: Seconds between polls for live queries
        """
        self.token = token
        self.databases = dict(databases)
        self.poll_interval = poll_interval

        if not self.token:
            raise ValueError("Notion token required")
        if not self.databases:
            raise ValueError("At least one Notion database must be configured")

        logger.debug("Initializing Notion store", collections=list(self.databases.keys()))
        self.client = Client(auth=self.token)
        self._schemas: dict[str, dict[str, str]] = {}
        self._schema_lock = threading.Lock()
        logger.info("Notion store initialized", collections=list(self.databases.keys()))

    @contextmanager
    def _translate_errors(self, operation: str, **context: Any) -> Iterator[None]:
        """Map notion-client and transport errors onto the workflow error taxonomy."""
        try:
            yield
        except APIResponseError as e:
            logger.error("Notion API error", operation=operation, code=str(e.code), error=str(e), **context)
            if e.code in _PERMISSION_CODES:
                raise PermissionDenied(f"Notion refused {operation}: {e}") from e
            if e.code == APIErrorCode.ObjectNotFound:
                raise RecordNotFound(f"Notion object not found during {operation}: {e}") from e
            if e.code in _TRANSIENT_CODES:
                raise BackendUnavailable(f"Notion unavailable during {operation}: {e}") from e
            raise ValidationError(f"Notion rejected {operation}: {e}") from e
        except (RequestTimeoutError, HTTPResponseError, httpx.TransportError) as e:
            logger.error("Notion request failed", operation=operation, error=str(e), **context)
            raise BackendUnavailable(f"Notion request failed during {operation}: {e}") from e

    def _database_id(self, name: str) -> str:
        try:
            return self.databases[name]
        except KeyError:
            raise ValueError(
                f"No Notion database configured for '{name}'. Set it using:\n"
                f"  rw config set notion.database.{name} <database-id>"
            ) from None

    def _schema(self, name: str) -> dict[str, str]:
        """Return property name -> property type for a collection's database."""
        with self._schema_lock:
            if name not in self._schemas:
                database_id = self._database_id(name)
                with self._translate_errors("retrieve schema", collection=name):
                    database = self.client.databases.retrieve(database_id=database_id)
                self._schemas[name] = {
                    prop_name: prop.get("type", "") for prop_name, prop in database.get("properties", {}).items()
                }
                logger.debug("Loaded Notion schema", collection=name, properties=list(self._schemas[name].keys()))
            return self._schemas[name]

    def _parse_properties(self, properties: dict[str, Any]) -> dict[str, Any]:
        """Parse Notion properties into simple values."""
        parsed: dict[str, Any] = {}
        for key, value in properties.items():
            prop_type = value.get("type")

            if prop_type in _TEXT_TYPES:
                parsed[key] = "".join([t.get("plain_text", "") for t in value.get(prop_type, [])]) or None
            elif prop_type in ("select", "status"):
                option = value.get(prop_type)
                parsed[key] = option.get("name") if option else None
            elif prop_type == "multi_select":
                parsed[key] = [item.get("name") for item in value.get("multi_select", [])]
            elif prop_type == "date":
                date = value.get("date")
                parsed[key] = _parse_date(date.get("start")) if date else None
            elif prop_type in ("number", "checkbox", "email", "phone_number", "url"):
                parsed[key] = value.get(prop_type)
            elif prop_type == "people":
                parsed[key] = [person.get("name", person.get("id")) for person in value.get("people", [])]
            elif prop_type == "relation":
                parsed[key] = [rel.get("id") for rel in value.get("relation", [])]
            else:
                parsed[key] = value

        return parsed

    def _page_to_record(self, page: dict[str, Any]) -> Record:
        """Convert Notion page to Record."""
        logger.debug("Converting Notion page to record", page_id=page["id"])
        document = self._parse_properties(page.get("properties", {}))
        # Fall back to Notion's own timestamps when the database has no such column
        for field, page_key in (("createdAt", "created_time"), ("updatedAt", "last_edited_time")):
            if document.get(field) is None:
                document[field] = _parse_date(page.get(page_key))
        return Record.from_document(page["id"], document)

    def _build_properties(self, name: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Build a Notion properties object for the columns the database has."""
        schema = self._schema(name)
        properties: dict[str, Any] = {}

        for key, value in payload.items():
            prop_type = schema.get(key)
            if prop_type is None:
                logger.debug("Skipping field without Notion column", collection=name, field=key)
                continue

            if prop_type in _TEXT_TYPES:
                text = "" if value is None else str(value)
                properties[key] = {prop_type: [{"text": {"content": text}}] if text else []}
            elif prop_type in ("select", "status"):
                properties[key] = {prop_type: {"name": str(value)} if value is not None else None}
            elif prop_type == "multi_select":
                properties[key] = {"multi_select": [{"name": str(item)} for item in value or []]}
            elif prop_type == "date":
                start = value.isoformat() if isinstance(value, datetime) else value
                properties[key] = {"date": {"start": start} if start else None}
            elif prop_type in ("number", "checkbox", "email", "phone_number", "url"):
                properties[key] = {prop_type: value}
            else:
                logger.warning("Unsupported Notion column type", collection=name, field=key, type=prop_type)

        return properties

    def _build_filter(
        self, name: str, filters: list[FieldFilter] | None
    ) -> tuple[dict[str, Any] | None, list[FieldFilter]]:
        """Translate constraints to a Notion filter.

        Returns:
            The Notion filter (or None) and the constraints left to apply client-side
        """
        schema = self._schema(name)
        conditions: list[dict[str, Any]] = []
        residual: list[FieldFilter] = []

        for constraint in filters or []:
            condition = self._condition(schema.get(constraint.field), constraint)
            if condition is None:
                residual.append(constraint)
            else:
                conditions.append(condition)

        if not conditions:
            return None, residual
        if len(conditions) == 1:
            return conditions[0], residual
        return {"and": conditions}, residual

    def _condition(self, prop_type: str | None, constraint: FieldFilter) -> dict[str, Any] | None:
        if prop_type is None:
            return None
        prop = constraint.field
        op = constraint.op
        value = constraint.value

        if op in ("in", "not-in") and prop_type in _EQUALITY_TYPES and prop_type != "checkbox":
            key = "equals" if op == "in" else "does_not_equal"
            parts = [{"property": prop, prop_type: {key: item}} for item in value]
            if not parts:
                return None
            return {"or" if op == "in" else "and": parts}
        if value is None and op in ("==", "!="):
            return {"property": prop, prop_type: {"is_empty" if op == "==" else "is_not_empty": True}}
        if prop_type in _EQUALITY_TYPES and op in ("==", "!="):
            return {"property": prop, prop_type: {"equals" if op == "==" else "does_not_equal": value}}
        if prop_type == "number" and op in _NUMBER_CONDITIONS:
            return {"property": prop, "number": {_NUMBER_CONDITIONS[op]: value}}
        if prop_type == "date" and op in _DATE_CONDITIONS:
            start = value.isoformat() if isinstance(value, datetime) else value
            return {"property": prop, "date": {_DATE_CONDITIONS[op]: start}}
        return None

    def subscribe_collection(
        self,
        name: str,
        filters: list[FieldFilter] | None,
        order_by: OrderBy | None,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Open a live query by polling the collection's database."""
        logger.info("Subscribing to Notion collection", collection=name, interval=self.poll_interval)
        subscription = PollingSubscription(
            name,
            fetch=lambda: self.query(name, filters, order_by),
            on_snapshot=on_snapshot,
            on_error=on_error,
            interval=self.poll_interval,
        )
        return subscription.start()

    def add_document(self, name: str, payload: dict[str, Any]) -> str:
        """Create a new page in the collection's database."""
        logger.info("Creating Notion page", collection=name)
        database_id = self._database_id(name)
        properties = self._build_properties(name, payload)
        with self._translate_errors("create", collection=name):
            response = self.client.pages.create(parent={"database_id": database_id}, properties=properties)
        logger.info("Notion page created", collection=name, doc_id=response["id"])
        return response["id"]

    def get_document(self, name: str, doc_id: str) -> Record:
        """Read a Notion page by ID."""
        logger.info("Reading Notion page", collection=name, doc_id=doc_id)
        with self._translate_errors("read", collection=name, doc_id=doc_id):
            page = self.client.pages.retrieve(page_id=doc_id)
        if page.get("archived") or page.get("in_trash"):
            raise RecordNotFound(f"Notion page '{doc_id}' has been deleted")
        return self._page_to_record(page)

    def update_document(self, name: str, doc_id: str, changes: dict[str, Any]) -> None:
        """Update a Notion page's properties."""
        logger.info("Updating Notion page", collection=name, doc_id=doc_id, fields=list(changes.keys()))
        properties = self._build_properties(name, changes)
        with self._translate_errors("update", collection=name, doc_id=doc_id):
            self.client.pages.update(page_id=doc_id, properties=properties)
        logger.debug("Notion page updated", doc_id=doc_id)

    def delete_document(self, name: str, doc_id: str) -> None:
        """Delete (archive) a Notion page."""
        logger.info("Archiving Notion page", collection=name, doc_id=doc_id)
        with self._translate_errors("delete", collection=name, doc_id=doc_id):
            self.client.pages.update(page_id=doc_id, archived=True)

    def query(
        self,
        name: str,
        filters: list[FieldFilter] | None = None,
        order_by: OrderBy | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        """Query the collection's database."""
        logger.debug("Querying Notion database", collection=name, filters=filters, order_by=order_by)
        database_id = self._database_id(name)
        notion_filter, residual = self._build_filter(name, filters)

        query_params: dict[str, Any] = {"database_id": database_id}
        if notion_filter is not None:
            query_params["filter"] = notion_filter
        if order_by is not None and order_by.field in self._schema(name):
            direction = "descending" if order_by.descending else "ascending"
            query_params["sorts"] = [{"property": order_by.field, "direction": direction}]

        with self._translate_errors("query", collection=name):
            pages = collect_paginated_api(self.client.databases.query, **query_params)

        records = [self._page_to_record(page) for page in pages]
        records = sort_records([r for r in records if matches_filters(r, residual)], order_by)
        if limit:
            records = records[:limit]
        logger.debug("Queried Notion database", collection=name, count=len(records))
        return records
