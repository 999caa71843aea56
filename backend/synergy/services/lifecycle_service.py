"""
Synergy Backend: Role-Application Lifecycle Service
====================================================

What:  Orchestrates submit / decide / leave / remove, and the founder's
       project edits and deletion, against the database.
How:   Each operation is one load → mutate → commit cycle around a single
       project aggregate (plus the affected user row). The in-project rules
       live in role_workflow.ProjectAggregate; this module adds loading,
       the version-checked commit, the cross-project sweep and
       notification delivery.
Who:   Called by the lifecycle routes in routes/applications.py and by the
       edit and delete routes in routes/projects.py.

Orchestration Flow (accept):
    ┌───────────┐   ┌─────────────┐   ┌────────────┐   ┌──────────┐   ┌──────────┐
    │ Load      │──▶│ Aggregate   │──▶│ Commit     │──▶│ Sweep    │──▶│ Dispatch │
    │ project + │   │ decide()    │   │ (version   │   │ other    │   │ notifi-  │
    │ applicant │   │ + user row  │   │  checked)  │   │ projects │   │ cations  │
    └───────────┘   └─────────────┘   └────────────┘   └──────────┘   └──────────┘

Failure Semantics:
    - Any precondition failure raises before mutation; nothing is written.
    - A stale version or a racing unique-index insert at commit rolls the
      whole transaction back and raises ConcurrentModificationError. The
      client decides whether to retry; this service never retries a
      primary operation.
    - The sweep runs after the primary commit. Each swept project is its
      own transaction, retried with tenacity on concurrent modification,
      and skipped (logged) once retries are exhausted. Every step checks
      current state first, so re-running it never transitions twice.
    - Notifications are dispatched last; sink errors are logged only.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from synergy.config import settings
from synergy.database import async_session_factory
from synergy.exceptions import (
    ConcurrentModificationError,
    DatabaseError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    SynergyError,
)
from synergy.models.enums import (
    ApplicationDecision,
    ApplicationStatus,
    NotificationKind,
)
from synergy.models.project import Project, ProjectApplication
from synergy.models.user import User
from synergy.schemas.project import ProjectUpdate
from synergy.services.notification_base import NotificationEvent, NotificationSink
from synergy.services.notification_service import DatabaseNotificationSink
from synergy.services.role_workflow import ProjectAggregate

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LifecycleService:
    """
    Persistence and side-effect layer of the role-application lifecycle.

    Args:
        sink: Where notification events go after commit.
        clock: Source of transition timestamps (overridable in tests).
    """

    def __init__(
        self,
        sink: NotificationSink,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.sink = sink
        self.clock = clock

    # ══════════════════════════════════════════════════════════════════════
    # Operations
    # ══════════════════════════════════════════════════════════════════════

    async def submit_application(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        role_title: str,
        message: str = "",
    ) -> Tuple[ProjectApplication, bool]:
        """
        Files an application (or reopens a cancelled one) and notifies the founder.

        Check order: applicant exists → applicant may apply → project exists
        → aggregate checks (role, capacity, membership, engagement,
        duplicate).

        Returns:
            (application, resubmitted)
        """
        now = self.clock()
        applicant = await self._load_user(db, user_id)
        if not applicant.role.can_apply_for_roles:
            raise ForbiddenError(
                message="Only job seekers can apply for project roles",
                context={"user_role": applicant.user_role},
            )
        project = await self._load_project(db, project_id)
        aggregate = ProjectAggregate(project)

        application, resubmitted = aggregate.submit_application(
            user_id=applicant.id,
            role_title=role_title,
            message=message,
            engagement_project_id=applicant.current_project_id,
            now=now,
        )
        # The engagement check above read the user row; a concurrent
        # acceptance must fail this commit's version check
        applicant.touch(now)
        await self._commit(db, project_id, aggregate)

        logger.info(
            "Application %s %s: user=%s project=%s role=%s",
            application.id,
            "resubmitted" if resubmitted else "submitted",
            applicant.id,
            project.id,
            role_title,
        )
        await self._dispatch([
            NotificationEvent(
                recipient_id=project.founder_id,
                kind=NotificationKind.PROJECT_APPLICATION,
                content=f'{applicant.name} applied for the {role_title} role in "{project.name}"',
                sender_id=applicant.id,
                project_id=project.id,
                application_id=application.id,
                role_title=role_title,
            )
        ])
        return application, resubmitted

    async def process_application(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        application_id: uuid.UUID,
        decision: ApplicationDecision,
        acting_user_id: uuid.UUID,
    ) -> ApplicationStatus:
        """
        Accepts or rejects a pending application.

        On acceptance the applicant's user row changes in the same
        transaction as the project: a previous engagement is closed into
        past engagements and the new engagement starts now. After the
        commit, a sweep cancels the applicant's pending applications in
        other projects and frees their seat in the previous project.

        Returns:
            The application's new status.
        """
        now = self.clock()
        project = await self._load_project(db, project_id)
        aggregate = ProjectAggregate(project)
        aggregate.require_founder(acting_user_id)
        application = aggregate.application(application_id)
        if not application.is_pending:
            raise InvalidStateError(
                context={"application_id": str(application_id), "status": application.status},
            )

        # Loaded before any mutation so no autoflush happens mid-change
        applicant: Optional[User] = None
        if decision == ApplicationDecision.ACCEPTED:
            applicant = await self._load_user(db, application.user_id)

        outcome = aggregate.decide(application_id, decision, acting_user_id, now)

        prior_project_id: Optional[uuid.UUID] = None
        if applicant is not None:
            if applicant.current_project_id is not None and applicant.current_project_id != project.id:
                prior_project_id = applicant.current_project_id
            applicant.close_engagement(now)
            applicant.start_engagement(project.id, outcome.application.role_title, now)

        await self._commit(db, project_id, aggregate)

        # Events are built now: a failed sweep step rolls back and expires
        # everything loaded in this session.
        events = self._decision_events(project, outcome.application, outcome.status, acting_user_id)
        for cancelled in outcome.cancelled:
            events.append(self._cancellation_event(project.name, project.id, cancelled, acting_user_id))
        for rejected in outcome.auto_rejected:
            events.append(
                NotificationEvent(
                    recipient_id=rejected.user_id,
                    kind=NotificationKind.APPLICATION_REJECTED_AUTO,
                    content=(
                        f'Your application for the {rejected.role_title} role in "{project.name}" '
                        "was automatically rejected because the position has been filled."
                    ),
                    sender_id=acting_user_id,
                    project_id=project.id,
                    application_id=rejected.id,
                    role_title=rejected.role_title,
                )
            )

        logger.info(
            "Application %s %s by founder %s (project=%s, auto_rejected=%d, cancelled=%d)",
            application_id,
            outcome.status.value,
            acting_user_id,
            project_id,
            len(outcome.auto_rejected),
            len(outcome.cancelled),
        )
        status = outcome.status

        if applicant is not None:
            events.extend(
                await self._sweep_after_acceptance(
                    db,
                    user_id=applicant.id,
                    accepted_project_id=project.id,
                    prior_project_id=prior_project_id,
                    acting_user_id=acting_user_id,
                )
            )

        await self._dispatch(events)
        return status

    async def leave_engagement(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        """Removes `user_id` from the team at their own request and tells the founder."""
        now = self.clock()
        project = await self._load_project(db, project_id)
        user = await self._load_user(db, user_id)
        aggregate = ProjectAggregate(project)

        member = aggregate.leave(user.id, now)
        if user.current_project_id == project.id:
            user.close_engagement(now)
        await self._commit(db, project_id, aggregate)

        logger.info("User %s left project %s (role=%s)", user.id, project.id, member.role_title)
        await self._dispatch([
            NotificationEvent(
                recipient_id=project.founder_id,
                kind=NotificationKind.TEAM_MEMBER_LEFT,
                content=f'A team member has left your project "{project.name}"',
                sender_id=user.id,
                project_id=project.id,
                role_title=member.role_title,
            )
        ])

    async def remove_member(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        member_user_id: uuid.UUID,
        acting_user_id: uuid.UUID,
    ) -> None:
        """Founder removes another member from the team; the removed user is told."""
        now = self.clock()
        project = await self._load_project(db, project_id)
        # May be None for an unknown id; the aggregate then reports NotFound
        member_user = await db.get(User, member_user_id)
        aggregate = ProjectAggregate(project)

        member = aggregate.remove_member(member_user_id, acting_user_id, now)
        if member_user is not None and member_user.current_project_id == project.id:
            member_user.close_engagement(now)
        await self._commit(db, project_id, aggregate)

        logger.info(
            "User %s removed from project %s by founder %s",
            member_user_id,
            project.id,
            acting_user_id,
        )
        await self._dispatch([
            NotificationEvent(
                recipient_id=member_user_id,
                kind=NotificationKind.TEAM_MEMBER_REMOVED,
                content=f'You have been removed from the project "{project.name}"',
                sender_id=acting_user_id,
                project_id=project.id,
                role_title=member.role_title,
            )
        ])

    async def update_project(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        data: ProjectUpdate,
    ) -> Project:
        """
        Founder edits the project. Applicants whose role was dropped, or
        filled up by a lower capacity, have their application rejected and
        are told.

        Raises:
            ForbiddenError, ValidationError, CapacityConflictError (see
            ProjectAggregate.revise), ConcurrentModificationError
        """
        now = self.clock()
        project = await self._load_project(db, project_id)
        aggregate = ProjectAggregate(project)

        closed = aggregate.revise(
            acting_user_id,
            now,
            details=data.details(),
            team_size=data.team_size,
            open_roles=data.open_roles,
        )
        await self._commit(db, project_id, aggregate)

        logger.info(
            "Project %s updated by founder %s (closed applications=%d)",
            project_id,
            acting_user_id,
            len(closed),
        )
        await self._dispatch([
            NotificationEvent(
                recipient_id=application.user_id,
                kind=NotificationKind.APPLICATION_REJECTED,
                content=(
                    f'Your application for the {application.role_title} role in "{project.name}" '
                    "was closed because the role is no longer open."
                ),
                sender_id=acting_user_id,
                project_id=project.id,
                application_id=application.id,
                role_title=application.role_title,
            )
            for application in closed
        ])
        return project

    async def delete_project(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        acting_user_id: uuid.UUID,
    ) -> None:
        """
        Founder deletes the project with its roles, members and applications.

        Members whose current engagement is this project have it closed into
        past engagements in the same transaction. Members and applicants
        still pending are told once the delete has committed.
        """
        now = self.clock()
        project = await self._load_project(db, project_id)
        aggregate = ProjectAggregate(project)
        members, pending = aggregate.dissolve(acting_user_id)

        member_ids = [m.user_id for m in members]
        if member_ids:
            result = await db.execute(
                select(User)
                .where(User.id.in_(member_ids))
                .execution_options(populate_existing=True)
            )
            for user in result.scalars().all():
                if user.current_project_id == project.id:
                    user.close_engagement(now)

        # Built before the delete: the commit detaches the project tree
        recipients = list(dict.fromkeys(member_ids + [a.user_id for a in pending]))
        events = [
            NotificationEvent(
                recipient_id=recipient_id,
                kind=NotificationKind.PROJECT_DELETED,
                content=f'The project "{project.name}" has been deleted by its founder',
                sender_id=acting_user_id,
                project_id=project.id,
            )
            for recipient_id in recipients
        ]

        await db.delete(project)
        await self._commit(db, project_id)

        logger.info(
            "Project %s deleted by founder %s (members=%d, pending applications=%d)",
            project_id,
            acting_user_id,
            len(members),
            len(pending),
        )
        await self._dispatch(events)

    # ══════════════════════════════════════════════════════════════════════
    # Cross-Project Sweep
    # ══════════════════════════════════════════════════════════════════════

    async def _sweep_after_acceptance(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        accepted_project_id: uuid.UUID,
        prior_project_id: Optional[uuid.UUID],
        acting_user_id: uuid.UUID,
    ) -> List[NotificationEvent]:
        """
        Settles the accepted user's state in every other project.

        Targets:
            - every project (other than the accepted one) holding a pending
              application by the user: those applications are cancelled
            - the project of the engagement that was just closed: the
              user's seat is released and its founder is told

        A target that still fails after the retries, or whose lookup hits a
        database error, is logged and skipped; the acceptance itself is
        already committed.
        """
        try:
            result = await db.execute(
                select(ProjectApplication.project_id)
                .where(
                    ProjectApplication.user_id == user_id,
                    ProjectApplication.status == ApplicationStatus.PENDING.value,
                    ProjectApplication.project_id != accepted_project_id,
                )
                .distinct()
            )
            targets = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Sweep lookup failed for user %s: %s", user_id, str(e), exc_info=True)
            return []

        if prior_project_id is not None and prior_project_id not in targets:
            targets.append(prior_project_id)

        events: List[NotificationEvent] = []
        for target_id in targets:
            try:
                events.extend(
                    await self._sweep_project(
                        db,
                        project_id=target_id,
                        user_id=user_id,
                        release_seat=target_id == prior_project_id,
                        acting_user_id=acting_user_id,
                    )
                )
            except SynergyError as e:
                logger.error(
                    "Sweep of project %s for user %s abandoned: %s",
                    target_id,
                    user_id,
                    e.message,
                )
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(
                    "Sweep of project %s for user %s abandoned: %s",
                    target_id,
                    user_id,
                    str(e),
                    exc_info=True,
                )
        return events

    @retry(
        # Only optimistic-lock conflicts are worth another attempt
        retry=retry_if_exception_type(ConcurrentModificationError),
        stop=stop_after_attempt(settings.sweep_retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.sweep_retry_initial_wait,
            max=settings.sweep_retry_max_wait,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _sweep_project(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        release_seat: bool,
        acting_user_id: uuid.UUID,
    ) -> List[NotificationEvent]:
        """
        One sweep step: reload, transition what is still pending, commit.

        Each attempt reloads the project, so a retry sees the state the
        conflicting writer left behind.
        """
        now = self.clock()
        project = await self._find_project(db, project_id)
        if project is None:
            return []
        aggregate = ProjectAggregate(project)

        cancelled = aggregate.cancel_pending_for(user_id, now)
        released = aggregate.release_member(user_id, now) if release_seat else None
        if not cancelled and released is None:
            return []
        await self._commit(db, project_id, aggregate)

        logger.info(
            "Sweep of project %s for user %s: cancelled=%d released=%s",
            project_id,
            user_id,
            len(cancelled),
            released is not None,
        )
        events = [
            self._cancellation_event(project.name, project.id, a, acting_user_id)
            for a in cancelled
        ]
        if released is not None:
            events.append(
                NotificationEvent(
                    recipient_id=project.founder_id,
                    kind=NotificationKind.TEAM_MEMBER_LEFT,
                    content=f'A team member has left your project "{project.name}"',
                    sender_id=user_id,
                    project_id=project.id,
                    role_title=released.role_title,
                )
            )
        return events

    # ══════════════════════════════════════════════════════════════════════
    # Helpers
    # ══════════════════════════════════════════════════════════════════════

    async def _find_project(self, db: AsyncSession, project_id: uuid.UUID) -> Optional[Project]:
        # populate_existing: after a rollback the identity map holds stale state
        result = await db.execute(
            select(Project)
            .where(Project.id == project_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _load_project(self, db: AsyncSession, project_id: uuid.UUID) -> Project:
        project = await self._find_project(db, project_id)
        if project is None:
            raise NotFoundError(resource="project", resource_id=str(project_id))
        return project

    async def _load_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        result = await db.execute(
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def _commit(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        aggregate: Optional[ProjectAggregate] = None,
    ) -> None:
        """
        Commits the unit of work, translating lock conflicts.

        The aggregate's invariants are checked first; a violation is a bug
        in a transition and is logged at ERROR with the broken rules.

        Raises:
            ConcurrentModificationError: version mismatch or unique-index
                race; the transaction has been rolled back.
            DatabaseError: any other database failure; rolled back.
        """
        if aggregate is not None:
            problems = aggregate.invariant_violations()
            if problems:
                logger.error(
                    "Project %s breaks aggregate invariants before commit: %s",
                    project_id,
                    "; ".join(problems),
                )
        try:
            await db.commit()
        except (StaleDataError, IntegrityError) as e:
            await db.rollback()
            logger.warning(
                "Concurrent modification of project %s: %s",
                project_id,
                type(e).__name__,
            )
            raise ConcurrentModificationError(
                context={"project_id": str(project_id)},
            ) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Commit failed for project %s: %s", project_id, str(e), exc_info=True)
            raise DatabaseError(
                context={"project_id": str(project_id), "error_type": type(e).__name__},
            ) from e

    def _decision_events(
        self,
        project: Project,
        application: ProjectApplication,
        status: ApplicationStatus,
        acting_user_id: uuid.UUID,
    ) -> List[NotificationEvent]:
        if status == ApplicationStatus.ACCEPTED:
            kind = NotificationKind.APPLICATION_ACCEPTED
            content = (
                f'Your application for the {application.role_title} role in "{project.name}" '
                "has been accepted!"
            )
        else:
            kind = NotificationKind.APPLICATION_REJECTED
            content = (
                f'Your application for the {application.role_title} role in "{project.name}" '
                "has been rejected."
            )
        return [
            NotificationEvent(
                recipient_id=application.user_id,
                kind=kind,
                content=content,
                sender_id=acting_user_id,
                project_id=project.id,
                application_id=application.id,
                role_title=application.role_title,
            )
        ]

    def _cancellation_event(
        self,
        project_name: str,
        project_id: uuid.UUID,
        application: ProjectApplication,
        acting_user_id: uuid.UUID,
    ) -> NotificationEvent:
        return NotificationEvent(
            recipient_id=application.user_id,
            kind=NotificationKind.APPLICATION_CANCELLED,
            content=(
                f'Your application for the {application.role_title} role in "{project_name}" '
                "was cancelled because you were accepted for another role."
            ),
            sender_id=acting_user_id,
            project_id=project_id,
            application_id=application.id,
            role_title=application.role_title,
        )

    async def _dispatch(self, events: Sequence[NotificationEvent]) -> None:
        for event in events:
            try:
                await self.sink.emit(event.recipient_id, event.kind, event.payload())
            except Exception as e:
                logger.error(
                    "Notification %s to %s failed: %s",
                    event.kind.value,
                    event.recipient_id,
                    str(e),
                    exc_info=True,
                )


# ── Singleton Instance ────────────────────────────────────────────────────
lifecycle_service = LifecycleService(sink=DatabaseNotificationSink(async_session_factory))
