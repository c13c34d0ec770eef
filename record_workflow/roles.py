"""Role-scoped queries and action permissions."""

from collections.abc import Callable
from dataclasses import dataclass, field

from record_workflow.errors import PermissionDenied
from record_workflow.models import Actor, FieldFilter, Record
from record_workflow.profiles import SCOPE_ADMIN, SCOPE_ASSIGNEE, SCOPE_OWNER, CollectionProfile

ADMIN = "admin"
MANAGER = "manager"
VERTICAL_HEAD = "vertical_head"
TEAM_LEADER = "team_leader"
TUTOR = "tutor"
SALES = "sales"
BDA = "bda"
FREELANCER = "freelancer"
STUDENT = "student"

ROLES = (ADMIN, MANAGER, VERTICAL_HEAD, TEAM_LEADER, TUTOR, SALES, BDA, FREELANCER, STUDENT)

# Roles allowed to hand records to someone else
ASSIGNERS = frozenset({ADMIN, MANAGER, VERTICAL_HEAD, TEAM_LEADER})

# assignedBy value written by the admin dashboard; vertical heads pick these up
ADMIN_DISPLAY_NAME = "Admin"


@dataclass(frozen=True)
class Scope:
    """What one actor may see of a collection.

    ``filters`` go to the store. ``predicate`` covers what the store cannot
    express (OR across fields) and runs on every snapshot before user filters.
    """

    filters: list[FieldFilter] = field(default_factory=list)
    predicate: Callable[[Record], bool] | None = None

    def admits(self, record: Record) -> bool:
        """Return True if the record is inside the scope."""
        return self.predicate is None or self.predicate(record)


def _handed_over_by(actor: Actor, assigner: str) -> Callable[[Record], bool]:
    def predicate(record: Record) -> bool:
        return record.assigned_to == actor.email or (record.status == "assigned" and record.assigned_by == assigner)

    return predicate


def scope_for(profile: CollectionProfile, actor: Actor) -> Scope:
    """Build the query scope for an actor on a profile's collection.

    Raises:
        PermissionDenied: If the actor may not see the collection at all
    """
    if actor.role not in ROLES:
        raise PermissionDenied(f"Unknown role: '{actor.role}'")
    if actor.role == ADMIN:
        return Scope()

    if profile.scope == SCOPE_ADMIN:
        raise PermissionDenied(f"Role '{actor.role}' cannot view {profile.collection}")

    if profile.scope == SCOPE_OWNER:
        return Scope(filters=[FieldFilter(profile.owner_field, "==", actor.id)])

    if profile.scope == SCOPE_ASSIGNEE:
        if actor.role == MANAGER:
            return Scope(predicate=_handed_over_by(actor, actor.display_name))
        if actor.role == VERTICAL_HEAD:
            return Scope(predicate=_handed_over_by(actor, ADMIN_DISPLAY_NAME))
        if actor.role == STUDENT:
            if profile.requester_field is None:
                raise PermissionDenied(f"Students cannot view {profile.collection}")
            return Scope(filters=[FieldFilter(profile.requester_field, "==", actor.id)])
        return Scope(filters=[FieldFilter("assignedTo", "==", actor.email)])

    raise ValueError(f"Unknown scope kind: '{profile.scope}'")


def can_assign(actor: Actor) -> bool:
    """Return True if the actor may assign or revoke records."""
    return actor.role in ASSIGNERS


def can_delete(profile: CollectionProfile, actor: Actor, record: Record) -> bool:
    """Admins may delete anything; everyone else only records they own."""
    if actor.role == ADMIN:
        return True
    return profile.owner_field is not None and record.get(profile.owner_field) == actor.id


def assign_status(profile: CollectionProfile, actor: Actor) -> str | None:
    """Status written when the actor assigns a record.

    A team leader's assignment puts the record in progress.
    """
    if profile.assigned_status is None:
        return None
    if actor.role == TEAM_LEADER and profile.allows_status("in_progress"):
        return "in_progress"
    return profile.assigned_status
