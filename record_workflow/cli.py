"""CLI for record workflow."""

import sys
import time
from typing import Annotated, Literal

import structlog
import yaml
from cyclopts import App, Parameter

from record_workflow.audit import AUDIT_COLLECTION, AuditTrail
from record_workflow.config import CONFIG_DIR_NAME, get_config
from record_workflow.config_commands import config_app
from record_workflow.filtering import ALL_STATUSES
from record_workflow.models import Actor, Outcome, Record
from record_workflow.notices import ConsoleNotifier
from record_workflow.profiles import CollectionProfile, get_profile
from record_workflow.store import DocumentStore
from record_workflow.stores import MemoryStore, NotionStore
from record_workflow.view import LiveView
from record_workflow.workflow import RecordWorkflow

logger = structlog.get_logger()

app = App(
    help="Record Workflow - live, role-scoped record dashboards",
)

app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_store() -> DocumentStore:
    """Get the configured document store."""
    config = get_config()
    store_type = config.get("store", "local")

    if store_type == "local":
        path = config.get("local.path", f"{CONFIG_DIR_NAME}/records.yaml")
        return MemoryStore(path=path)
    elif store_type == "notion":
        token = config.get("notion.token")
        databases = config.section("notion.database")
        if not token or not databases:
            raise ValueError(
                "Notion token and databases not configured. Set them using:\n"
                "  rw config set notion.token <token>\n"
                "  rw config set notion.database.<collection> <database-id>"
            )
        poll_interval = config.get_float("notion.poll_interval", 5.0)
        return NotionStore(token=token, databases=databases, poll_interval=poll_interval)
    else:
        raise ValueError(f"Unknown store: {store_type}")


def get_actor() -> Actor:
    """Get the signed-in user from configuration."""
    config = get_config()
    user_id = config.get("user.id")
    role = config.get("user.role")
    if not user_id or not role:
        raise ValueError(
            "User not configured. Set it using:\n"
            "  rw config set user.id <uid>\n"
            "  rw config set user.role <role>\n"
            "  rw config set user.email <email>"
        )
    return Actor(
        id=str(user_id),
        email=config.get("user.email", ""),
        display_name=config.get("user.name", ""),
        role=role,
    )


def get_workflow(profile_name: str) -> RecordWorkflow:
    """Build the workflow for a profile from configuration."""
    config = get_config()
    store = get_store()
    audit = None
    if config.get("store", "local") == "local" or config.get(f"notion.database.{AUDIT_COLLECTION}"):
        audit = AuditTrail(store)
    return RecordWorkflow(store, get_profile(profile_name), get_actor(), notifier=ConsoleNotifier(), audit=audit)


def parse_fields(fields: tuple[str, ...]) -> dict[str, object]:
    """Parse ``key=value`` tokens; values are read as YAML scalars."""
    payload: dict[str, object] = {}
    for token in fields:
        if "=" not in token:
            raise ValueError(f"Expected key=value, got '{token}'")
        key, value = token.split("=", 1)
        payload[key.strip()] = yaml.safe_load(value) if value.strip() else ""
    return payload


def format_record(record: Record, profile: CollectionProfile) -> str:
    """One-line summary of a record."""
    status_marker = "○" if record.status in (profile.open_status, profile.initial_status) else "●"
    summary = " | ".join(str(record.get(name)) for name in profile.search_fields if record.get(name) is not None)
    assignee = f" -> {record.assigned_to}" if record.assigned_to else ""
    return f"{status_marker} {record.id} [{record.status}] {summary}{assignee}"


def _finish(outcome: Outcome) -> None:
    # Failures were already reported by the notifier
    if outcome.error is not None:
        sys.exit(1)
    print(outcome.message)


@app.command
def create(profile: str, *fields: str) -> None:
    """Create a record from key=value fields."""
    workflow = get_workflow(profile)
    outcome = workflow.create_record(parse_fields(fields))
    _finish(outcome)


@app.command
def show(profile: str, record_id: str) -> None:
    """Show a record by ID."""
    workflow = get_workflow(profile)
    records = [record for record in workflow.fetch() if record.id == record_id]
    if not records:
        print(f"Record {record_id} not found")
        sys.exit(1)

    record = records[0]
    print(f"Record: {record.id}")
    print(f"Status: {record.status}")
    if record.assigned_to:
        print(f"Assigned to: {record.assigned_to} (by {record.assigned_by})")
    print(f"Created: {record.created_at}")
    print(f"Updated: {record.updated_at}")
    for key, value in record.data.items():
        print(f"{key}: {value}")


@app.command(name="list")
def list_records(
    profile: str,
    search: str = "",
    status: str = ALL_STATUSES,
    limit: int | None = None,
) -> None:
    """List records in scope, filtered by search term and status."""
    workflow = get_workflow(profile)
    records = workflow.fetch(search_term=search, status_filter=status, limit=limit)

    print(f"Found {len(records)} record(s):\n")
    for record in records:
        print(format_record(record, workflow.profile))


@app.command
def watch(profile: str, search: str = "", status: str = ALL_STATUSES) -> None:
    """Follow records in scope live until interrupted."""
    workflow = get_workflow(profile)

    def render(rows: list[Record]) -> None:
        counts = ", ".join(f"{name}: {count}" for name, count in sorted(view.counts().items()))
        print(f"\n{len(rows)} record(s) shown ({counts or 'empty'})")
        for record in rows:
            print(format_record(record, workflow.profile))

    view = LiveView(workflow, on_update=render)
    view.set_search(search)
    view.set_status_filter(status)
    with view:
        if not view.is_open:
            sys.exit(1)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            print("\nStopped watching")


@app.command(name="set-status")
def set_status(profile: str, record_id: str, status: str, assign_to: str | None = None) -> None:
    """Move a record to a new status."""
    workflow = get_workflow(profile)
    _finish(workflow.update_status(record_id, status, assign_to=assign_to))


@app.command
def edit(profile: str, record_id: str, *fields: str) -> None:
    """Change a record's fields from key=value pairs."""
    workflow = get_workflow(profile)
    _finish(workflow.update_record(record_id, parse_fields(fields)))


@app.command
def assign(profile: str, record_id: str, assignee: str) -> None:
    """Assign a record to a user."""
    workflow = get_workflow(profile)
    _finish(workflow.assign(record_id, assignee))


@app.command
def revoke(profile: str, record_id: str) -> None:
    """Take a record back from its assignee."""
    workflow = get_workflow(profile)
    _finish(workflow.revoke(record_id))


@app.command
def delete(profile: str, record_id: str, yes: bool = False) -> None:
    """Delete a record after confirmation."""
    workflow = get_workflow(profile)

    def confirm(record: Record) -> bool:
        if yes:
            return True
        answer = input(f"Are you sure you want to delete {format_record(record, workflow.profile)}? [y/N] ")
        return answer.strip().lower() in ("y", "yes")

    _finish(workflow.delete_record(record_id, confirm))


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


if __name__ == "__main__":
    app.meta()
