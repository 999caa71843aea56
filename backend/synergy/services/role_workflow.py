"""
Synergy Backend: Role Workflow (Project Aggregate)
===================================================

What:  Every in-project state transition of the role-application lifecycle,
       applied to an already loaded Project and its collections.
How:   ProjectAggregate wraps one Project ORM instance. Methods validate
       preconditions against the in-memory tree, then mutate it. No queries,
       no commits and no notifications happen here; the lifecycle service
       does the loading, the version-checked commit and the delivery.
Who:   Used by LifecycleService for primary operations and for each step
       of the cross-project sweep.

State Machine (application status):
    pending ──decide(accepted)──▶ accepted
       │    ──decide(rejected)──▶ rejected
       │    ──role filled───────▶ rejected   (automatic)
       └────applicant accepted──▶ cancelled
    cancelled ──submit again──▶ pending      (same record, same id)
    rejected  ──submit again──▶ new pending record
    pending ──role dropped or filled by an edit──▶ rejected

Aggregate Invariants (see invariant_violations()):
    1. role.filled_count == members holding role.title, <= role.capacity
    2. len(members) <= project.team_size
    3. one membership per user
    4. one pending application per (user, role)

A failed precondition raises before anything is mutated, so a rejected
call leaves the aggregate exactly as it was loaded.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm.attributes import flag_modified

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
from synergy.models.enums import FOUNDER_ROLE_TITLE, ApplicationDecision, ApplicationStatus
from synergy.models.project import (
    Project,
    ProjectApplication,
    ProjectMember,
    ProjectRole,
)
from synergy.schemas.project import RoleCreate


def check_role_titles(roles: Sequence[RoleCreate]) -> None:
    """
    Open role titles are unique within a project (case-insensitive) and
    may not be the founder's reserved title.

    Raises:
        ValidationError: duplicate or reserved title
    """
    seen = set()
    for role in roles:
        key = role.title.casefold()
        if key == FOUNDER_ROLE_TITLE.casefold():
            raise ValidationError(
                message=f"'{FOUNDER_ROLE_TITLE}' is reserved and cannot be an open role",
                field="open_roles",
            )
        if key in seen:
            raise ValidationError(
                message=f"Duplicate role title '{role.title}'",
                field="open_roles",
            )
        seen.add(key)


@dataclass
class DecisionOutcome:
    """Everything a decision changed, for notification fan-out."""

    application: ProjectApplication
    status: ApplicationStatus
    membership: Optional[ProjectMember] = None
    # Applicant's other pending applications in this project
    cancelled: List[ProjectApplication] = field(default_factory=list)
    # Other applicants' pending applications for the role that just filled
    auto_rejected: List[ProjectApplication] = field(default_factory=list)


class ProjectAggregate:
    """In-memory consistency boundary around one loaded project."""

    def __init__(self, project: Project):
        self.project = project

    # ── Lookups ───────────────────────────────────────────────────────────

    @property
    def project_id(self) -> uuid.UUID:
        return self.project.id

    def role(self, title: str) -> Optional[ProjectRole]:
        for role in self.project.roles:
            if role.title == title:
                return role
        return None

    def membership(self, user_id: uuid.UUID) -> Optional[ProjectMember]:
        for member in self.project.members:
            if member.user_id == user_id:
                return member
        return None

    def application(self, application_id: uuid.UUID) -> ProjectApplication:
        for application in self.project.applications:
            if application.id == application_id:
                return application
        raise NotFoundError(resource="application", resource_id=str(application_id))

    def is_founder(self, user_id: uuid.UUID) -> bool:
        return self.project.founder_id == user_id

    def require_founder(self, user_id: uuid.UUID) -> None:
        if not self.is_founder(user_id):
            raise ForbiddenError(
                message="Only the project founder can perform this action",
                context={"project_id": str(self.project_id)},
            )

    def pending_for(self, user_id: uuid.UUID) -> List[ProjectApplication]:
        return [
            a for a in self.project.applications if a.user_id == user_id and a.is_pending
        ]

    def touch(self, now: datetime) -> None:
        """
        Marks the project row dirty so its versioned UPDATE is part of the flush.

        Child-row changes alone do not update the parent row, and without a
        parent UPDATE there is no version check.
        """
        self.project.updated_at = now
        flag_modified(self.project, "updated_at")

    # ── Submission ────────────────────────────────────────────────────────

    def submit_application(
        self,
        user_id: uuid.UUID,
        role_title: str,
        message: str,
        engagement_project_id: Optional[uuid.UUID],
        now: datetime,
    ) -> Tuple[ProjectApplication, bool]:
        """
        Files (or re-files) an application for a role.

        Args:
            user_id: Applicant. Capability class is checked by the caller.
            role_title: Title of an open role in this project.
            message: Free-text pitch from the applicant.
            engagement_project_id: Project of the applicant's current
                engagement, or None when not engaged.
            now: Transition timestamp.

        Returns:
            (application, resubmitted). `resubmitted` is True when a
            cancelled application was reset to pending instead of a new
            record being created.

        Raises:
            NotFoundError: role does not exist
            RoleUnavailableError: role is at capacity
            AlreadyEngagedError: applicant is on this team, or engaged on
                a different project
            DuplicateApplicationError: a pending application for this role
                already exists
        """
        role = self.role(role_title)
        if role is None:
            raise NotFoundError(resource="role", resource_id=role_title)
        if role.is_full:
            raise RoleUnavailableError(context={"role": role_title})
        if self.membership(user_id) is not None:
            raise AlreadyEngagedError(
                message="You are already a member of this project",
                context={"project_id": str(self.project_id)},
            )
        if engagement_project_id is not None and engagement_project_id != self.project_id:
            raise AlreadyEngagedError(
                context={"current_project_id": str(engagement_project_id)},
            )

        previous = [
            a
            for a in self.project.applications
            if a.user_id == user_id and a.role_title == role_title
        ]
        if any(a.is_pending for a in previous):
            raise DuplicateApplicationError(context={"role": role_title})

        # Most recent cancelled record wins; the collection is in creation order
        for application in reversed(previous):
            if application.status == ApplicationStatus.CANCELLED.value:
                application.status = ApplicationStatus.PENDING.value
                application.message = message
                application.applied_date = now
                application.decided_at = None
                self.touch(now)
                return application, True

        application = ProjectApplication(
            id=uuid.uuid4(),
            project_id=self.project_id,
            user_id=user_id,
            role_title=role_title,
            message=message,
            status=ApplicationStatus.PENDING.value,
            applied_date=now,
            created_at=now,
        )
        self.project.applications.append(application)
        self.touch(now)
        return application, False

    # ── Decision ──────────────────────────────────────────────────────────

    def decide(
        self,
        application_id: uuid.UUID,
        decision: ApplicationDecision,
        acting_user_id: uuid.UUID,
        now: datetime,
    ) -> DecisionOutcome:
        """
        Applies the founder's verdict on a pending application.

        Acceptance fills a seat and then settles the side effects inside
        this project: the applicant's other pending applications here are
        cancelled, and once the role reaches capacity every other pending
        application for it is rejected automatically. The applicant's user
        row and other projects are the lifecycle service's job.

        Raises:
            ForbiddenError: acting user is not the founder
            NotFoundError: no such application
            InvalidStateError: application is not pending
            RoleUnavailableError: role removed or at capacity (stays pending)
            TeamFullError: team_size reached (stays pending)
            AlreadyEngagedError: applicant already on this team (stays pending)
        """
        self.require_founder(acting_user_id)
        application = self.application(application_id)
        if not application.is_pending:
            raise InvalidStateError(
                context={"application_id": str(application_id), "status": application.status},
            )

        if decision == ApplicationDecision.REJECTED:
            application.status = ApplicationStatus.REJECTED.value
            application.decided_at = now
            self.touch(now)
            return DecisionOutcome(application=application, status=ApplicationStatus.REJECTED)

        role = self.role(application.role_title)
        if role is None or role.is_full:
            raise RoleUnavailableError(context={"role": application.role_title})
        if len(self.project.members) >= self.project.team_size:
            raise TeamFullError(context={"team_size": self.project.team_size})
        if self.membership(application.user_id) is not None:
            raise AlreadyEngagedError(
                message="This applicant is already a member of the team",
                context={"user_id": str(application.user_id)},
            )

        membership = ProjectMember(
            id=uuid.uuid4(),
            project_id=self.project_id,
            user_id=application.user_id,
            role_title=role.title,
            join_date=now,
        )
        self.project.members.append(membership)
        role.filled_count += 1

        cancelled = self.cancel_pending_for(
            application.user_id, now, exclude=application.id
        )

        auto_rejected: List[ProjectApplication] = []
        if role.is_full:
            for other in self.project.applications:
                if (
                    other.id != application.id
                    and other.role_title == role.title
                    and other.is_pending
                ):
                    other.status = ApplicationStatus.REJECTED.value
                    other.decided_at = now
                    auto_rejected.append(other)

        application.status = ApplicationStatus.ACCEPTED.value
        application.decided_at = now
        self.touch(now)
        return DecisionOutcome(
            application=application,
            status=ApplicationStatus.ACCEPTED,
            membership=membership,
            cancelled=cancelled,
            auto_rejected=auto_rejected,
        )

    def cancel_pending_for(
        self,
        user_id: uuid.UUID,
        now: datetime,
        exclude: Optional[uuid.UUID] = None,
    ) -> List[ProjectApplication]:
        """
        Cancels every pending application by `user_id`, except `exclude`.

        Idempotent: only applications that are pending right now change, so
        repeating the call (a retried sweep) returns an empty list.
        """
        cancelled = []
        for application in self.pending_for(user_id):
            if application.id == exclude:
                continue
            application.status = ApplicationStatus.CANCELLED.value
            application.decided_at = now
            cancelled.append(application)
        if cancelled:
            self.touch(now)
        return cancelled

    # ── Departure ─────────────────────────────────────────────────────────

    def leave(self, user_id: uuid.UUID, now: datetime) -> ProjectMember:
        """Self-initiated departure. The founder cannot leave their own project."""
        if self.is_founder(user_id):
            raise ForbiddenError(
                message="The founder cannot leave their own project",
                context={"project_id": str(self.project_id)},
            )
        member = self.membership(user_id)
        if member is None:
            raise NotFoundError(resource="team member", resource_id=str(user_id))
        self._drop(member, now)
        return member

    def remove_member(
        self,
        member_user_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        now: datetime,
    ) -> ProjectMember:
        """Founder-initiated removal of another team member."""
        self.require_founder(acting_user_id)
        if member_user_id == acting_user_id or self.is_founder(member_user_id):
            raise ForbiddenError(
                message="The founder cannot be removed from the project",
                context={"project_id": str(self.project_id)},
            )
        member = self.membership(member_user_id)
        if member is None:
            raise NotFoundError(resource="team member", resource_id=str(member_user_id))
        self._drop(member, now)
        return member

    def release_member(self, user_id: uuid.UUID, now: datetime) -> Optional[ProjectMember]:
        """
        Frees the seat of a user whose engagement moved to another project.

        Idempotent: returns None when the user is no longer a member. The
        founder's own membership is never released.
        """
        if self.is_founder(user_id):
            return None
        member = self.membership(user_id)
        if member is None:
            return None
        self._drop(member, now)
        return member

    def _drop(self, member: ProjectMember, now: datetime) -> None:
        self.project.members.remove(member)
        role = self.role(member.role_title)
        if role is not None:
            role.filled_count = max(0, role.filled_count - 1)
        self.touch(now)

    # ── Editing ───────────────────────────────────────────────────────────

    def revise(
        self,
        acting_user_id: uuid.UUID,
        now: datetime,
        details: Optional[Dict[str, Any]] = None,
        team_size: Optional[int] = None,
        open_roles: Optional[Sequence[RoleCreate]] = None,
    ) -> List[ProjectApplication]:
        """
        Founder edit of the project's details, team size and open roles.

        `open_roles` replaces the whole role list. Roles are matched to the
        existing ones by exact title, so a kept role keeps its filled_count.
        Pending applications for a role that was dropped, or that the new
        capacity leaves full, are rejected.

        Returns:
            The applications rejected by the edit.

        Raises:
            ForbiddenError: acting user is not the founder
            ValidationError: duplicate or reserved role title
            CapacityConflictError: team_size below the current team, a
                dropped role that still has members, or a capacity below
                the role's filled_count
        """
        self.require_founder(acting_user_id)
        members = len(self.project.members)
        if team_size is not None and team_size < members:
            raise CapacityConflictError(
                message=f"The team already has {members} members",
                context={"team_size": team_size, "members": members},
            )
        if open_roles is not None:
            check_role_titles(open_roles)
            wanted = {role_spec.title: role_spec for role_spec in open_roles}
            for role in self.project.roles:
                role_spec = wanted.get(role.title)
                if role_spec is None and role.filled_count > 0:
                    raise CapacityConflictError(
                        message=f"The {role.title} role still has team members",
                        context={"role": role.title, "filled_count": role.filled_count},
                    )
                if role_spec is not None and role_spec.capacity < role.filled_count:
                    raise CapacityConflictError(
                        message=f"The {role.title} role already has {role.filled_count} members",
                        context={"role": role.title, "filled_count": role.filled_count},
                    )

        for name, value in (details or {}).items():
            setattr(self.project, name, value)
        if team_size is not None:
            self.project.team_size = team_size

        closed: List[ProjectApplication] = []
        if open_roles is not None:
            self._replace_roles(open_roles)
            still_open = {role.title for role in self.project.roles if not role.is_full}
            for application in self.project.applications:
                if application.is_pending and application.role_title not in still_open:
                    application.status = ApplicationStatus.REJECTED.value
                    application.decided_at = now
                    closed.append(application)

        self.touch(now)
        return closed

    def _replace_roles(self, open_roles: Sequence[RoleCreate]) -> None:
        kept = {role.title: role for role in self.project.roles}
        roles = []
        for position, role_spec in enumerate(open_roles):
            role = kept.get(role_spec.title)
            if role is None:
                role = ProjectRole(title=role_spec.title, filled_count=0)
            role.position = position
            role.description = role_spec.description
            role.capacity = role_spec.capacity
            roles.append(role)
        # delete-orphan removes the dropped rows at flush
        self.project.roles = roles

    def dissolve(
        self, acting_user_id: uuid.UUID
    ) -> Tuple[List[ProjectMember], List[ProjectApplication]]:
        """
        Checks that the founder may delete the project and reports who is
        affected: the members other than the founder, and the applicants
        still pending. Deleting the row is the caller's job.
        """
        self.require_founder(acting_user_id)
        members = [m for m in self.project.members if not self.is_founder(m.user_id)]
        pending = [a for a in self.project.applications if a.is_pending]
        return members, pending

    # ── Invariants ────────────────────────────────────────────────────────

    def invariant_violations(self) -> List[str]:
        """
        Returns a description of every broken aggregate invariant (empty when sound).

        Checked by the lifecycle service before every commit.
        """
        problems = []
        members = self.project.members
        for role in self.project.roles:
            holders = sum(1 for m in members if m.role_title == role.title)
            if role.filled_count != holders:
                problems.append(
                    f"role '{role.title}' filled_count={role.filled_count} but {holders} members hold it"
                )
            if role.filled_count > role.capacity:
                problems.append(
                    f"role '{role.title}' filled_count={role.filled_count} exceeds capacity={role.capacity}"
                )
        if len(members) > self.project.team_size:
            problems.append(
                f"{len(members)} members exceed team_size={self.project.team_size}"
            )
        user_ids = [m.user_id for m in members]
        if len(user_ids) != len(set(user_ids)):
            problems.append("a user holds more than one membership")
        pending = [(a.user_id, a.role_title) for a in self.project.applications if a.is_pending]
        if len(pending) != len(set(pending)):
            problems.append("more than one pending application for the same user and role")
        return problems
