"""Live filtered record workflow: role-scoped subscriptions and status actions."""

import random
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, TypeVar

import structlog

from record_workflow.audit import AuditTrail
from record_workflow.errors import PermissionDenied, ValidationError, WorkflowError
from record_workflow.filtering import ALL_STATUSES, apply_client_filter, matches_filters
from record_workflow.models import Actor, FieldFilter, Outcome, Record
from record_workflow.notices import LogNotifier, Notifier
from record_workflow.profiles import CollectionProfile
from record_workflow.retry import RetryPolicy, call_with_retry
from record_workflow.roles import Scope, assign_status, can_assign, can_delete, scope_for
from record_workflow.store import DocumentStore, Subscription

logger = structlog.get_logger()

T = TypeVar("T")

ConfirmCallback = Callable[[Record], bool]


def generate_ticket_number(prefix: str) -> str:
    """Return a ticket number like ``TKT-482913-057``."""
    stamp = int(time.time() * 1000) % 1_000_000
    return f"{prefix}-{stamp:06d}-{random.randrange(1000):03d}"


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class RecordWorkflow:
    """One dashboard's view of a shared collection, and the actions it offers.

    Every action catches workflow errors at the call site: the failure is logged,
    the notifier shows a generic notice, and a failed Outcome comes back.
    Local state is never patched; callers see their writes through the live
    subscription's next snapshot.
    """

    def __init__(
        self,
        store: DocumentStore,
        profile: CollectionProfile,
        actor: Actor,
        notifier: Notifier | None = None,
        retry: RetryPolicy | None = None,
        audit: AuditTrail | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize workflow.

        Args:
            store: Document store holding the collection
            profile: Collection parameters (statuses, search fields, scope)
            actor: Signed-in user
            notifier: Receives user-visible failure notices
            retry: Backoff policy for BackendUnavailable
            audit: Optional audit trail for mutations
            clock: Source of write timestamps
        """
        self.store = store
        self.profile = profile
        self.actor = actor
        self.notifier = notifier or LogNotifier()
        self.retry = retry or RetryPolicy()
        self.audit = audit
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def collection(self) -> str:
        return self.profile.collection

    def _call(self, operation: Callable[[], T], description: str) -> T:
        return call_with_retry(operation, self.retry, description=f"{description} {self.collection}")

    def _fail(self, action: str, error: WorkflowError, record_id: str | None = None) -> Outcome:
        logger.error(
            "Record action failed",
            action=action,
            collection=self.collection,
            record_id=record_id,
            error_type=type(error).__name__,
            error=str(error),
        )
        self.notifier.notify(error.notice)
        return Outcome(ok=False, record_id=record_id, error=error, message=error.notice)

    def _report_stream_error(self, error: Exception) -> None:
        logger.error("Live query failed", collection=self.collection, error=str(error))
        notice = error.notice if isinstance(error, WorkflowError) else WorkflowError.notice
        self.notifier.notify(notice)

    def _now(self, prior: datetime | None = None) -> datetime:
        now = _as_utc(self.clock())
        if prior is not None and _as_utc(prior) > now:
            return _as_utc(prior)
        return now

    def _with_default_status(self, record: Record) -> Record:
        if record.status is None:
            return replace(record, status=self.profile.initial_status)
        return record

    def _check_visible(self, scope: Scope, record: Record) -> None:
        if not (matches_filters(record, scope.filters) and scope.admits(record)):
            raise PermissionDenied(f"Record '{record.id}' is outside the scope of {self.actor.email or self.actor.id}")

    def _write(self, action: str, record_id: str, build: Callable[[Record], dict[str, Any]]) -> Outcome:
        """Read the record, check scope, and write the partial update ``build`` returns."""
        try:
            scope = scope_for(self.profile, self.actor)
            record = self._call(lambda: self.store.get_document(self.collection, record_id), "read")
            record = self._with_default_status(record)
            self._check_visible(scope, record)
            changes = build(record)
            changes["updatedAt"] = self._now(record.updated_at)
            self._call(lambda: self.store.update_document(self.collection, record_id, changes), action)
        except WorkflowError as e:
            return self._fail(action, e, record_id)

        if self.audit is not None:
            self.audit.record(action, self.collection, record_id, self.actor, data=changes)
        logger.info("Record updated", action=action, collection=self.collection, record_id=record_id)
        return Outcome(ok=True, record_id=record_id, changes=changes, message=f"Updated {record_id}")

    def scope(self) -> Scope:
        """Return the actor's scope on this collection."""
        return scope_for(self.profile, self.actor)

    def subscribe(
        self,
        on_change: Callable[[list[Record]], None],
        filters: list[FieldFilter] | None = None,
    ) -> Subscription | None:
        """Open a role-scoped live query.

        ``on_change`` receives the full in-scope list on every remote change. The
        caller owns the returned handle and must unsubscribe it. A run of stream
        failures raises one notice; the next snapshot ends the run.

        Returns:
            The subscription handle, or None if the query could not be opened
        """
        try:
            scope = scope_for(self.profile, self.actor)
        except PermissionDenied as e:
            self._fail("subscribe", e)
            return None

        server_filters = list(scope.filters) + list(filters or [])
        failing = False

        def on_snapshot(records: list[Record]) -> None:
            nonlocal failing
            failing = False
            records = [self._with_default_status(record) for record in records]
            on_change([record for record in records if scope.admits(record)])

        def on_error(error: Exception) -> None:
            nonlocal failing
            if failing:
                logger.debug("Live query still failing", collection=self.collection, error=str(error))
                return
            failing = True
            self._report_stream_error(error)

        logger.info(
            "Opening live query",
            collection=self.collection,
            role=self.actor.role,
            filters=server_filters,
            client_scoped=scope.predicate is not None,
        )
        try:
            return self._call(
                lambda: self.store.subscribe_collection(
                    self.collection, server_filters, self.profile.order_by, on_snapshot, on_error
                ),
                "subscribe",
            )
        except WorkflowError as e:
            self._fail("subscribe", e)
            return None

    def fetch(self, search_term: str = "", status_filter: str = ALL_STATUSES, limit: int | None = None) -> list[Record]:
        """Run the scoped query once and apply the client filter."""
        try:
            scope = scope_for(self.profile, self.actor)
            records = self._call(
                lambda: self.store.query(self.collection, scope.filters, self.profile.order_by), "query"
            )
        except WorkflowError as e:
            self._fail("fetch", e)
            return []
        records = [self._with_default_status(record) for record in records]
        records = [record for record in records if scope.admits(record)]
        records = apply_client_filter(records, search_term, status_filter, self.profile.search_fields)
        return records[:limit] if limit else records

    def create_record(self, payload: dict[str, Any]) -> Outcome:
        """Submit a new record as the form would."""
        logger.info("Creating record", collection=self.collection, actor=self.actor.id)
        try:
            missing = [name for name in self.profile.required_fields if payload.get(name) in (None, "")]
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}")

            document = dict(payload)
            document.setdefault("status", self.profile.initial_status)
            if not self.profile.allows_status(document["status"]):
                raise ValidationError(f"Unknown status '{document['status']}' for {self.profile.name}")
            if self.profile.owner_field:
                document.setdefault(self.profile.owner_field, self.actor.id)
            if self.profile.ticket_prefix and not document.get("ticketNumber"):
                document["ticketNumber"] = generate_ticket_number(self.profile.ticket_prefix)
            document.setdefault("assignedTo", None)
            document.setdefault("assignedBy", None)

            now = self._now()
            document["createdAt"] = now
            document["updatedAt"] = now
            document.setdefault(self.profile.order_by.field, now)

            record_id = self._call(lambda: self.store.add_document(self.collection, document), "create")
        except WorkflowError as e:
            return self._fail("create", e)

        if self.audit is not None:
            self.audit.record("create", self.collection, record_id, self.actor, data=document)
        logger.info("Record created", collection=self.collection, record_id=record_id)
        return Outcome(ok=True, record_id=record_id, changes=document, message=f"Created {record_id}")

    def update_status(self, record_id: str, new_status: str, assign_to: str | None = None) -> Outcome:
        """Move a record to a new status.

        Any declared status may follow any other. When ``assign_to`` is given the
        record is also handed to that user, which needs the same role as ``assign``.
        """
        logger.info("Updating record status", collection=self.collection, record_id=record_id, status=new_status)
        if not self.profile.allows_status(new_status):
            return self._fail(
                "update_status", ValidationError(f"Unknown status '{new_status}' for {self.profile.name}"), record_id
            )
        if assign_to is not None and not can_assign(self.actor):
            return self._fail("update_status", PermissionDenied(f"Role '{self.actor.role}' cannot assign"), record_id)

        def build(record: Record) -> dict[str, Any]:
            changes: dict[str, Any] = {"status": new_status}
            if assign_to is not None:
                changes["assignedTo"] = assign_to
                changes["assignedBy"] = self.actor.display_name or self.actor.email
            return changes

        return self._write("update_status", record_id, build)

    def update_record(self, record_id: str, fields: dict[str, Any]) -> Outcome:
        """Edit a record's fields, as the post and hackathon edit forms do.

        The id cannot change and required fields cannot be cleared. A new
        ``status`` must be declared by the profile, and owner fields go through
        the same role check as ``assign``.
        """
        logger.info("Editing record", collection=self.collection, record_id=record_id, fields=list(fields))
        changes = dict(fields)
        changes.pop("updatedAt", None)
        if not changes:
            return self._fail("update", ValidationError("No fields to update"), record_id)
        if "id" in changes:
            return self._fail("update", ValidationError("The record id cannot be changed"), record_id)
        cleared = [name for name in self.profile.required_fields if name in changes and changes[name] in (None, "")]
        if cleared:
            return self._fail(
                "update", ValidationError(f"Required fields cannot be empty: {', '.join(cleared)}"), record_id
            )
        if "status" in changes and not self.profile.allows_status(changes["status"]):
            return self._fail(
                "update", ValidationError(f"Unknown status '{changes['status']}' for {self.profile.name}"), record_id
            )
        if {"assignedTo", "assignedBy"} & changes.keys() and not can_assign(self.actor):
            return self._fail("update", PermissionDenied(f"Role '{self.actor.role}' cannot assign"), record_id)

        return self._write("update", record_id, lambda record: dict(changes))

    def assign(self, record_id: str, assignee: str) -> Outcome:
        """Hand a record to another user."""
        logger.info("Assigning record", collection=self.collection, record_id=record_id, assignee=assignee)
        if not can_assign(self.actor):
            return self._fail("assign", PermissionDenied(f"Role '{self.actor.role}' cannot assign"), record_id)

        def build(record: Record) -> dict[str, Any]:
            changes: dict[str, Any] = {
                "assignedTo": assignee,
                "assignedBy": self.actor.display_name or self.actor.email,
            }
            status = assign_status(self.profile, self.actor)
            if status is not None:
                changes["status"] = status
            return changes

        return self._write("assign", record_id, build)

    def revoke(self, record_id: str) -> Outcome:
        """Take a record back from its assignee and reopen it."""
        logger.info("Revoking record", collection=self.collection, record_id=record_id)
        if not can_assign(self.actor):
            return self._fail("revoke", PermissionDenied(f"Role '{self.actor.role}' cannot revoke"), record_id)

        def build(record: Record) -> dict[str, Any]:
            changes: dict[str, Any] = {"assignedTo": None, "assignedBy": None}
            if self.profile.open_status is not None:
                changes["status"] = self.profile.open_status
            return changes

        return self._write("revoke", record_id, build)

    def delete_record(self, record_id: str, confirm: ConfirmCallback) -> Outcome:
        """Delete a record once ``confirm`` approves it. Irreversible."""
        logger.info("Deleting record", collection=self.collection, record_id=record_id)
        try:
            record = self._with_default_status(
                self._call(lambda: self.store.get_document(self.collection, record_id), "read")
            )
            if not can_delete(self.profile, self.actor, record):
                raise PermissionDenied(f"Role '{self.actor.role}' cannot delete '{record_id}'")
            if not confirm(record):
                logger.info("Deletion cancelled", collection=self.collection, record_id=record_id)
                return Outcome(ok=False, record_id=record_id, message="Deletion cancelled")
            self._call(lambda: self.store.delete_document(self.collection, record_id), "delete")
        except WorkflowError as e:
            return self._fail("delete", e, record_id)

        if self.audit is not None:
            self.audit.record("delete", self.collection, record_id, self.actor)
        logger.info("Record deleted", collection=self.collection, record_id=record_id)
        return Outcome(ok=True, record_id=record_id, message=f"Deleted {record_id}")
