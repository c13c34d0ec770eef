"""Collection profiles: the per-dashboard parameters of the record workflow."""

from dataclasses import dataclass, field

from record_workflow.models import OrderBy

# How a collection is scoped per role
SCOPE_ASSIGNEE = "assignee"
SCOPE_OWNER = "owner"
SCOPE_ADMIN = "admin"


@dataclass(frozen=True)
class CollectionProfile:
    """Parameters for one workflow over one collection.

    Statuses are plain tags. Any declared status may follow any other; the profile
    only fixes which values exist.
    """

    name: str
    collection: str
    statuses: tuple[str, ...]
    initial_status: str
    search_fields: tuple[str, ...]
    scope: str = SCOPE_ASSIGNEE
    order_by: OrderBy = field(default_factory=OrderBy)
    required_fields: tuple[str, ...] = ()
    owner_field: str | None = None
    requester_field: str | None = None
    open_status: str | None = None
    assigned_status: str | None = None
    ticket_prefix: str | None = None

    def allows_status(self, status: str) -> bool:
        """Return True if the status is one of the profile's tags."""
        return not self.statuses or status in self.statuses


LEADS = CollectionProfile(
    name="leads",
    collection="leads",
    statuses=("open", "assigned", "in_progress", "resolved", "closed"),
    initial_status="open",
    search_fields=("ticketNumber", "studentName", "subject"),
    required_fields=("studentName", "studentEmail", "subject"),
    owner_field="createdBy",
    requester_field="studentId",
    open_status="open",
    assigned_status="assigned",
    ticket_prefix="TKT",
)

SALES_LEADS = CollectionProfile(
    name="sales_leads",
    collection="leads",
    statuses=(
        "new",
        "contacted",
        "interested",
        "demo_scheduled",
        "demo_completed",
        "negotiation",
        "bought",
        "lost",
    ),
    initial_status="new",
    search_fields=("studentName", "studentEmail", "subject"),
    required_fields=("studentName", "studentEmail", "subject"),
    owner_field="createdBy",
    requester_field="studentId",
    open_status="new",
    ticket_prefix="TKT",
)

POSTS = CollectionProfile(
    name="posts",
    collection="posts",
    statuses=("draft", "published", "scheduled"),
    initial_status="draft",
    search_fields=("title", "description"),
    scope=SCOPE_OWNER,
    required_fields=("title", "description"),
    owner_field="authorId",
)

HACKATHONS = CollectionProfile(
    name="hackathons",
    collection="hackathons",
    statuses=("draft", "published", "ongoing", "completed"),
    initial_status="draft",
    search_fields=("title", "description"),
    scope=SCOPE_OWNER,
    required_fields=("title", "description", "startDate"),
    owner_field="authorId",
)

EVENT_REGISTRATIONS = CollectionProfile(
    name="event_registrations",
    collection="event_registrations",
    statuses=("pending", "approved", "rejected"),
    initial_status="pending",
    search_fields=("name", "email", "eventTitle"),
    scope=SCOPE_ADMIN,
    order_by=OrderBy("registrationDate"),
    required_fields=("name", "email", "eventId"),
)

APPLICATIONS = CollectionProfile(
    name="applications",
    collection="applications",
    statuses=("pending", "approved", "rejected"),
    initial_status="pending",
    search_fields=("name", "email", "organizationName"),
    scope=SCOPE_ADMIN,
    order_by=OrderBy("submittedAt"),
    required_fields=("email", "type"),
)

PROFILES: dict[str, CollectionProfile] = {
    profile.name: profile for profile in (LEADS, SALES_LEADS, POSTS, HACKATHONS, EVENT_REGISTRATIONS, APPLICATIONS)
}


def get_profile(name: str) -> CollectionProfile:
    """Look up a built-in profile by name."""
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown profile: '{name}'. Available: {', '.join(sorted(PROFILES))}") from None
