"""
Synergy Backend: Role Workflow Unit Tests
==========================================

What:  Tests for ProjectAggregate on in-memory (transient) ORM objects.
How:   No database: projects are built directly and every transition is
       checked against the aggregate invariants afterwards.

What we test:
    ✅ Submission preconditions and resubmission rules
    ✅ Accept / reject, capacity and team-size limits
    ✅ In-project cancellation and automatic rejection on fill
    ✅ Leave / remove checks and filled_count bookkeeping
    ✅ Idempotent sweep helpers (cancel_pending_for, release_member)
    ✅ Founder edits: capacity conflicts, role replacement, closed applications
    ✅ Dissolve reports who a deletion affects
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from synergy.exceptions import (
    AlreadyEngagedError,
    CapacityConflictError,
    DuplicateApplicationError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    RoleUnavailableError,
    TeamFullError,
    ValidationError,
)
from synergy.models.enums import (
    FOUNDER_ROLE_TITLE,
    ApplicationDecision,
    ApplicationStatus,
)
from synergy.models.project import Project, ProjectMember, ProjectRole
from synergy.schemas.project import RoleCreate
from synergy.services.role_workflow import ProjectAggregate

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
ACCEPT = ApplicationDecision.ACCEPTED
REJECT = ApplicationDecision.REJECTED


def build_project(roles=(("Engineer", 1),), team_size=5) -> Project:
    founder_id = uuid4()
    project = Project(
        id=uuid4(),
        name="Acme",
        description="Robots",
        category="Software",
        stage="idea",
        website="",
        founder_id=founder_id,
        team_size=team_size,
        created_at=NOW,
        updated_at=NOW,
    )
    project.roles = [
        ProjectRole(
            id=uuid4(), position=i, title=title, description="", capacity=capacity, filled_count=0
        )
        for i, (title, capacity) in enumerate(roles)
    ]
    project.members = [
        ProjectMember(id=uuid4(), user_id=founder_id, role_title=FOUNDER_ROLE_TITLE, join_date=NOW)
    ]
    project.applications = []
    return project


class TestSubmission:

    def setup_method(self):
        self.project = build_project(roles=(("Engineer", 1), ("Designer", 2)))
        self.aggregate = ProjectAggregate(self.project)
        self.founder = self.project.founder_id
        self.user = uuid4()

    def test_submit_creates_pending_application(self):
        application, resubmitted = self.aggregate.submit_application(
            self.user, "Engineer", "hi", None, NOW
        )
        assert resubmitted is False
        assert application.status == ApplicationStatus.PENDING.value
        assert application.project_id == self.project.id
        assert self.project.applications == [application]

    def test_submission_does_not_touch_roles_or_members(self):
        self.aggregate.submit_application(self.user, "Engineer", "", None, NOW)
        assert self.aggregate.role("Engineer").filled_count == 0
        assert len(self.project.members) == 1

    def test_unknown_role_is_not_found(self):
        with pytest.raises(NotFoundError):
            self.aggregate.submit_application(self.user, "CFO", "", None, NOW)

    def test_full_role_is_unavailable(self):
        self.aggregate.role("Engineer").filled_count = 1
        with pytest.raises(RoleUnavailableError):
            self.aggregate.submit_application(self.user, "Engineer", "", None, NOW)

    def test_existing_member_is_already_engaged(self):
        with pytest.raises(AlreadyEngagedError):
            self.aggregate.submit_application(self.founder, "Engineer", "", None, NOW)

    def test_engagement_elsewhere_is_already_engaged(self):
        with pytest.raises(AlreadyEngagedError):
            self.aggregate.submit_application(self.user, "Engineer", "", uuid4(), NOW)
        assert self.project.applications == []

    def test_second_pending_application_is_duplicate(self):
        self.aggregate.submit_application(self.user, "Engineer", "", None, NOW)
        with pytest.raises(DuplicateApplicationError):
            self.aggregate.submit_application(self.user, "Engineer", "again", None, NOW)

    def test_same_user_may_apply_for_two_roles(self):
        self.aggregate.submit_application(self.user, "Engineer", "", None, NOW)
        self.aggregate.submit_application(self.user, "Designer", "", None, NOW)
        assert len(self.aggregate.pending_for(self.user)) == 2

    def test_resubmit_after_cancel_reuses_record(self):
        first, _ = self.aggregate.submit_application(self.user, "Engineer", "v1", None, NOW)
        self.aggregate.cancel_pending_for(self.user, NOW)
        later = NOW + timedelta(days=1)

        again, resubmitted = self.aggregate.submit_application(
            self.user, "Engineer", "v2", None, later
        )

        assert resubmitted is True
        assert again.id == first.id
        assert again.status == ApplicationStatus.PENDING.value
        assert again.message == "v2"
        assert again.applied_date == later
        assert again.decided_at is None
        assert len(self.project.applications) == 1

    def test_resubmit_after_reject_creates_new_record(self):
        first, _ = self.aggregate.submit_application(self.user, "Engineer", "", None, NOW)
        self.aggregate.decide(first.id, REJECT, self.founder, NOW)

        again, resubmitted = self.aggregate.submit_application(self.user, "Engineer", "", None, NOW)

        assert resubmitted is False
        assert again.id != first.id
        assert first.status == ApplicationStatus.REJECTED.value
        assert len(self.project.applications) == 2


class TestDecision:

    def setup_method(self):
        self.project = build_project(roles=(("Engineer", 1), ("Designer", 2)), team_size=3)
        self.aggregate = ProjectAggregate(self.project)
        self.founder = self.project.founder_id

    def apply(self, role="Engineer", user=None):
        application, _ = self.aggregate.submit_application(user or uuid4(), role, "", None, NOW)
        return application

    def test_only_founder_decides(self):
        application = self.apply()
        with pytest.raises(ForbiddenError):
            self.aggregate.decide(application.id, ACCEPT, uuid4(), NOW)
        assert application.is_pending

    def test_unknown_application_is_not_found(self):
        with pytest.raises(NotFoundError):
            self.aggregate.decide(uuid4(), ACCEPT, self.founder, NOW)

    def test_reject_changes_only_status(self):
        application = self.apply()
        outcome = self.aggregate.decide(application.id, REJECT, self.founder, NOW)
        assert outcome.status == ApplicationStatus.REJECTED
        assert application.status == ApplicationStatus.REJECTED.value
        assert len(self.project.members) == 1
        assert self.aggregate.role("Engineer").filled_count == 0

    def test_decided_application_is_invalid_state(self):
        application = self.apply()
        self.aggregate.decide(application.id, REJECT, self.founder, NOW)
        with pytest.raises(InvalidStateError):
            self.aggregate.decide(application.id, ACCEPT, self.founder, NOW)

    def test_accept_adds_member_and_fills_role(self):
        application = self.apply()
        outcome = self.aggregate.decide(application.id, ACCEPT, self.founder, NOW)

        assert outcome.status == ApplicationStatus.ACCEPTED
        assert application.status == ApplicationStatus.ACCEPTED.value
        assert outcome.membership.user_id == application.user_id
        assert outcome.membership.role_title == "Engineer"
        assert self.aggregate.role("Engineer").filled_count == 1
        assert self.aggregate.invariant_violations() == []

    def test_accept_into_full_role_leaves_application_pending(self):
        winner = self.apply()
        loser = self.apply()
        self.aggregate.decide(winner.id, ACCEPT, self.founder, NOW)
        # Reopen the auto-rejected application to reach a full role with a pending one
        loser.status = ApplicationStatus.PENDING.value

        with pytest.raises(RoleUnavailableError):
            self.aggregate.decide(loser.id, ACCEPT, self.founder, NOW)
        assert loser.is_pending
        assert self.aggregate.role("Engineer").filled_count == 1

    def test_accept_for_removed_role_is_unavailable(self):
        application = self.apply()
        self.project.roles.remove(self.aggregate.role("Engineer"))
        with pytest.raises(RoleUnavailableError):
            self.aggregate.decide(application.id, ACCEPT, self.founder, NOW)
        assert application.is_pending

    def test_accept_beyond_team_size_is_team_full(self):
        first = self.apply("Designer")
        second = self.apply("Designer")
        third = self.apply("Engineer")
        self.aggregate.decide(first.id, ACCEPT, self.founder, NOW)
        self.aggregate.decide(second.id, ACCEPT, self.founder, NOW)

        with pytest.raises(TeamFullError):
            self.aggregate.decide(third.id, ACCEPT, self.founder, NOW)
        assert third.is_pending
        assert len(self.project.members) == self.project.team_size

    def test_same_user_cannot_be_accepted_twice(self):
        user = uuid4()
        engineer = self.apply("Engineer", user)
        designer = self.apply("Designer", user)
        self.aggregate.decide(engineer.id, ACCEPT, self.founder, NOW)
        designer.status = ApplicationStatus.PENDING.value

        with pytest.raises(AlreadyEngagedError):
            self.aggregate.decide(designer.id, ACCEPT, self.founder, NOW)
        assert [m.user_id for m in self.project.members].count(user) == 1

    def test_accept_cancels_applicants_other_pending_in_project(self):
        user = uuid4()
        engineer = self.apply("Engineer", user)
        designer = self.apply("Designer", user)

        outcome = self.aggregate.decide(engineer.id, ACCEPT, self.founder, NOW)

        assert outcome.cancelled == [designer]
        assert designer.status == ApplicationStatus.CANCELLED.value

    def test_filling_role_auto_rejects_other_applicants(self):
        winner = self.apply()
        others = [self.apply(), self.apply()]
        designer = self.apply("Designer")

        outcome = self.aggregate.decide(winner.id, ACCEPT, self.founder, NOW)

        assert set(a.id for a in outcome.auto_rejected) == set(a.id for a in others)
        assert all(a.status == ApplicationStatus.REJECTED.value for a in others)
        assert designer.is_pending

    def test_role_with_spare_capacity_keeps_other_applicants_pending(self):
        first = self.apply("Designer")
        second = self.apply("Designer")
        outcome = self.aggregate.decide(first.id, ACCEPT, self.founder, NOW)
        assert outcome.auto_rejected == []
        assert second.is_pending


class TestDeparture:

    def setup_method(self):
        self.project = build_project(roles=(("Engineer", 2),))
        self.aggregate = ProjectAggregate(self.project)
        self.founder = self.project.founder_id
        self.member = uuid4()
        application, _ = self.aggregate.submit_application(self.member, "Engineer", "", None, NOW)
        self.aggregate.decide(application.id, ACCEPT, self.founder, NOW)

    def test_leave_frees_seat(self):
        member = self.aggregate.leave(self.member, NOW)
        assert member.role_title == "Engineer"
        assert self.aggregate.membership(self.member) is None
        assert self.aggregate.role("Engineer").filled_count == 0
        assert self.aggregate.invariant_violations() == []

    def test_leave_by_non_member_is_not_found(self):
        with pytest.raises(NotFoundError):
            self.aggregate.leave(uuid4(), NOW)

    def test_leave_by_founder_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            self.aggregate.leave(self.founder, NOW)
        assert self.aggregate.membership(self.founder) is not None

    def test_remove_by_non_founder_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            self.aggregate.remove_member(self.member, uuid4(), NOW)

    def test_founder_cannot_remove_self(self):
        with pytest.raises(ForbiddenError):
            self.aggregate.remove_member(self.founder, self.founder, NOW)

    def test_remove_unknown_member_is_not_found(self):
        with pytest.raises(NotFoundError):
            self.aggregate.remove_member(uuid4(), self.founder, NOW)

    def test_remove_frees_seat(self):
        self.aggregate.remove_member(self.member, self.founder, NOW)
        assert self.aggregate.membership(self.member) is None
        assert self.aggregate.role("Engineer").filled_count == 0

    def test_filled_count_never_goes_negative(self):
        self.aggregate.role("Engineer").filled_count = 0
        self.aggregate.leave(self.member, NOW)
        assert self.aggregate.role("Engineer").filled_count == 0

    def test_release_member_is_idempotent(self):
        assert self.aggregate.release_member(self.member, NOW) is not None
        assert self.aggregate.release_member(self.member, NOW) is None
        assert self.aggregate.role("Engineer").filled_count == 0

    def test_release_never_drops_founder(self):
        assert self.aggregate.release_member(self.founder, NOW) is None
        assert self.aggregate.membership(self.founder) is not None


class TestSweepHelpers:

    def test_cancel_pending_for_is_idempotent(self):
        project = build_project(roles=(("Engineer", 1), ("Designer", 1)))
        aggregate = ProjectAggregate(project)
        user = uuid4()
        aggregate.submit_application(user, "Engineer", "", None, NOW)
        aggregate.submit_application(user, "Designer", "", None, NOW)

        assert len(aggregate.cancel_pending_for(user, NOW)) == 2
        assert aggregate.cancel_pending_for(user, NOW) == []
        assert all(a.status == ApplicationStatus.CANCELLED.value for a in project.applications)

    def test_cancel_pending_for_respects_exclude(self):
        project = build_project(roles=(("Engineer", 1), ("Designer", 1)))
        aggregate = ProjectAggregate(project)
        user = uuid4()
        keep, _ = aggregate.submit_application(user, "Engineer", "", None, NOW)
        aggregate.submit_application(user, "Designer", "", None, NOW)

        aggregate.cancel_pending_for(user, NOW, exclude=keep.id)

        assert keep.is_pending

    def test_touch_advances_updated_at(self):
        project = build_project()
        later = NOW + timedelta(minutes=5)
        ProjectAggregate(project).touch(later)
        assert project.updated_at == later


class TestEditing:

    def setup_method(self):
        self.project = build_project(roles=(("Engineer", 2), ("Designer", 1)), team_size=4)
        self.aggregate = ProjectAggregate(self.project)
        self.founder = self.project.founder_id
        self.member = uuid4()
        application, _ = self.aggregate.submit_application(self.member, "Engineer", "", None, NOW)
        self.aggregate.decide(application.id, ACCEPT, self.founder, NOW)

    def roles(self, *specs):
        return [RoleCreate(title=title, capacity=capacity) for title, capacity in specs]

    def test_details_and_team_size_change(self):
        closed = self.aggregate.revise(
            self.founder, NOW, details={"name": "Acme 2", "stage": "MVP"}, team_size=2
        )
        assert closed == []
        assert self.project.name == "Acme 2"
        assert self.project.stage == "MVP"
        assert self.project.team_size == 2

    def test_only_founder_edits(self):
        with pytest.raises(ForbiddenError):
            self.aggregate.revise(uuid4(), NOW, details={"name": "Mine now"})
        assert self.project.name == "Acme"

    def test_team_size_below_current_team_is_rejected(self):
        with pytest.raises(CapacityConflictError):
            self.aggregate.revise(self.founder, NOW, team_size=1)
        assert self.project.team_size == 4

    def test_dropping_role_with_members_is_rejected(self):
        with pytest.raises(CapacityConflictError):
            self.aggregate.revise(self.founder, NOW, open_roles=self.roles(("Designer", 1)))
        assert [r.title for r in self.project.roles] == ["Engineer", "Designer"]

    def test_capacity_below_filled_count_is_rejected(self):
        self.aggregate.submit_application(uuid4(), "Engineer", "", None, NOW)
        second = self.project.applications[-1]
        self.aggregate.decide(second.id, ACCEPT, self.founder, NOW)

        with pytest.raises(CapacityConflictError):
            self.aggregate.revise(self.founder, NOW, open_roles=self.roles(("Engineer", 1)))
        assert self.aggregate.role("Engineer").capacity == 2

    def test_reserved_or_duplicate_title_is_rejected(self):
        with pytest.raises(ValidationError):
            self.aggregate.revise(
                self.founder, NOW, open_roles=self.roles(("Engineer", 2), ("founder", 1))
            )
        with pytest.raises(ValidationError):
            self.aggregate.revise(
                self.founder, NOW, open_roles=self.roles(("Engineer", 2), ("engineer", 1))
            )

    def test_kept_role_keeps_its_members(self):
        self.aggregate.revise(
            self.founder, NOW, open_roles=self.roles(("Engineer", 3), ("Designer", 1), ("PM", 1))
        )
        engineer = self.aggregate.role("Engineer")
        assert engineer.capacity == 3
        assert engineer.filled_count == 1
        assert self.aggregate.role("PM").filled_count == 0
        assert self.aggregate.invariant_violations() == []

    def test_dropped_role_rejects_pending_applications(self):
        pending, _ = self.aggregate.submit_application(uuid4(), "Designer", "", None, NOW)

        closed = self.aggregate.revise(self.founder, NOW, open_roles=self.roles(("Engineer", 2)))

        assert closed == [pending]
        assert pending.status == ApplicationStatus.REJECTED.value
        assert pending.decided_at == NOW
        assert self.aggregate.role("Designer") is None

    def test_capacity_lowered_to_filled_count_rejects_pending(self):
        pending, _ = self.aggregate.submit_application(uuid4(), "Engineer", "", None, NOW)
        designer, _ = self.aggregate.submit_application(uuid4(), "Designer", "", None, NOW)

        closed = self.aggregate.revise(
            self.founder, NOW, open_roles=self.roles(("Engineer", 1), ("Designer", 1))
        )

        assert closed == [pending]
        assert designer.is_pending
        assert self.aggregate.invariant_violations() == []

    def test_roles_follow_the_new_order(self):
        self.aggregate.revise(
            self.founder, NOW, open_roles=self.roles(("Designer", 1), ("Engineer", 2))
        )
        assert [(r.title, r.position) for r in self.project.roles] == [
            ("Designer", 0),
            ("Engineer", 1),
        ]


class TestDissolve:

    def test_reports_members_and_pending_applicants(self):
        project = build_project(roles=(("Engineer", 1), ("Designer", 1)))
        aggregate = ProjectAggregate(project)
        founder = project.founder_id
        member, waiting = uuid4(), uuid4()
        accepted, _ = aggregate.submit_application(member, "Engineer", "", None, NOW)
        aggregate.decide(accepted.id, ACCEPT, founder, NOW)
        aggregate.submit_application(waiting, "Designer", "", None, NOW)

        members, pending = aggregate.dissolve(founder)

        assert [m.user_id for m in members] == [member]
        assert [a.user_id for a in pending] == [waiting]

    def test_only_founder_dissolves(self):
        project = build_project()
        with pytest.raises(ForbiddenError):
            ProjectAggregate(project).dissolve(uuid4())


class TestInvariants:

    def test_reports_drifted_filled_count(self):
        project = build_project(roles=(("Engineer", 2),))
        ProjectAggregate(project).role("Engineer").filled_count = 1
        problems = ProjectAggregate(project).invariant_violations()
        assert len(problems) == 1
        assert "Engineer" in problems[0]

    def test_reports_oversized_team(self):
        project = build_project(team_size=1)
        project.members.append(
            ProjectMember(id=uuid4(), user_id=uuid4(), role_title="Advisor", join_date=NOW)
        )
        assert any("team_size" in p for p in ProjectAggregate(project).invariant_violations())
