"""Tests for role-scoped queries and permissions."""

import pytest

from record_workflow.errors import PermissionDenied
from record_workflow.models import Actor, FieldFilter, Record
from record_workflow.profiles import EVENT_REGISTRATIONS, HACKATHONS, LEADS, SALES_LEADS
from record_workflow.roles import assign_status, can_assign, can_delete, scope_for


def actor(role: str) -> Actor:
    return Actor(id=f"{role}-uid", email=f"{role}@example.com", display_name=role.title(), role=role)


def test_admin_sees_everything() -> None:
    """Test that admins get an unconstrained scope."""
    scope = scope_for(LEADS, actor("admin"))
    assert scope.filters == []
    assert scope.predicate is None
    assert scope_for(EVENT_REGISTRATIONS, actor("admin")).filters == []


@pytest.mark.parametrize("role", ["tutor", "sales", "team_leader", "bda", "freelancer"])
def test_assignee_roles_filter_server_side(role: str) -> None:
    """Test that assignee roles query on assignedTo."""
    scope = scope_for(LEADS, actor(role))
    assert scope.filters == [FieldFilter("assignedTo", "==", f"{role}@example.com")]
    assert scope.predicate is None


def test_manager_sees_own_and_handed_over_leads() -> None:
    """Test the manager's OR scope."""
    manager = actor("manager")
    scope = scope_for(LEADS, manager)
    assert scope.filters == []

    assert scope.admits(Record(id="1", assigned_to="manager@example.com"))
    assert scope.admits(Record(id="2", status="assigned", assigned_to="tl@example.com", assigned_by="Manager"))
    assert not scope.admits(Record(id="3", status="in_progress", assigned_to="tl@example.com", assigned_by="Manager"))
    assert not scope.admits(Record(id="4", status="assigned", assigned_to="x@example.com", assigned_by="Other"))


def test_vertical_head_picks_up_admin_assignments() -> None:
    """Test that vertical heads see leads the admin handed out."""
    scope = scope_for(LEADS, actor("vertical_head"))
    assert scope.admits(Record(id="1", status="assigned", assigned_by="Admin"))
    assert scope.admits(Record(id="2", assigned_to="vertical_head@example.com"))
    assert not scope.admits(Record(id="3", status="open"))


def test_student_sees_own_requests() -> None:
    """Test the student scope on requester id."""
    scope = scope_for(SALES_LEADS, actor("student"))
    assert scope.filters == [FieldFilter("studentId", "==", "student-uid")]


def test_owner_scope_filters_on_author() -> None:
    """Test owner-scoped collections."""
    scope = scope_for(HACKATHONS, actor("tutor"))
    assert scope.filters == [FieldFilter("authorId", "==", "tutor-uid")]


def test_admin_only_collection_denied() -> None:
    """Test that non-admins cannot view admin collections."""
    with pytest.raises(PermissionDenied):
        scope_for(EVENT_REGISTRATIONS, actor("manager"))


def test_unknown_role_denied() -> None:
    """Test that unknown roles are rejected."""
    with pytest.raises(PermissionDenied, match="Unknown role"):
        scope_for(LEADS, actor("guest"))


def test_can_assign() -> None:
    """Test which roles may assign."""
    assert can_assign(actor("admin"))
    assert can_assign(actor("team_leader"))
    assert not can_assign(actor("tutor"))
    assert not can_assign(actor("sales"))


def test_can_delete_admin_or_owner() -> None:
    """Test delete permissions."""
    record = Record(id="1", status="draft", data={"authorId": "tutor-uid"})
    assert can_delete(HACKATHONS, actor("admin"), record)
    assert can_delete(HACKATHONS, actor("tutor"), record)
    assert not can_delete(HACKATHONS, actor("manager"), record)
    assert not can_delete(EVENT_REGISTRATIONS, actor("manager"), Record(id="2"))


def test_assign_status_by_role() -> None:
    """Test the status written on assignment."""
    assert assign_status(LEADS, actor("manager")) == "assigned"
    assert assign_status(LEADS, actor("vertical_head")) == "assigned"
    assert assign_status(LEADS, actor("team_leader")) == "in_progress"
    assert assign_status(SALES_LEADS, actor("manager")) is None
