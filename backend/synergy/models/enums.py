"""
Synergy Backend: Domain Enumerations
=====================================

String enums shared by models, schemas and services. Columns store the
`.value`; comparisons against loaded strings work because every enum here
subclasses `str`.
"""

import enum

# Role title of the founder's own membership row. Reserved: an open role
# may not use it, so it never counts toward any role's filled_count.
FOUNDER_ROLE_TITLE = "Founder"


class UserRole(str, enum.Enum):
    """Capability class of a user account."""

    FOUNDER = "founder"
    INVESTOR = "investor"
    JOBSEEKER = "jobseeker"

    @property
    def can_apply_for_roles(self) -> bool:
        return self is UserRole.JOBSEEKER

    @property
    def can_found_projects(self) -> bool:
        return self is UserRole.FOUNDER


class ApplicationStatus(str, enum.Enum):
    """
    Lifecycle of a role application.

        pending ──accept──▶ accepted
           │  ──reject──▶ rejected   (manual or automatic when the role fills)
           └──cancel──▶ cancelled   (applicant accepted elsewhere)

    cancelled ──resubmit──▶ pending (same record)
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ApplicationStatus.PENDING


class ApplicationDecision(str, enum.Enum):
    """Founder's verdict on a pending application."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


class NotificationKind(str, enum.Enum):
    PROJECT_APPLICATION = "project_application"
    APPLICATION_ACCEPTED = "application_accepted"
    APPLICATION_REJECTED = "application_rejected"
    APPLICATION_REJECTED_AUTO = "application_rejected_auto"
    APPLICATION_CANCELLED = "application_cancelled"
    TEAM_MEMBER_LEFT = "team_member_left"
    TEAM_MEMBER_REMOVED = "team_member_removed"
    PROJECT_DELETED = "project_deleted"


class ProjectStage(str, enum.Enum):
    IDEA = "idea"
    BUILDING_MVP = "buildingMVP"
    MVP = "MVP"
    PROTOTYPE = "prototype"
    FUNDRAISING = "fundraising"
    GROWTH = "growth"
    EXIT = "exit"


class ProjectCategory(str, enum.Enum):
    ARTIFICIAL_INTELLIGENCE = "Artificial Intelligence"
    CREATIVITY = "Creativity"
    CYBER_SECURITY = "Cyber Security"
    E_COMMERCE = "E-Commerce"
    EDUCATION = "Education"
    FINANCE = "Finance"
    FITNESS = "Fitness"
    GAMING = "Gaming"
    MARKETING = "Marketing"
    NONPROFITS = "Nonprofits"
    REAL_ESTATE = "Real Estate"
    SOFTWARE = "Software"
    TRAVEL = "Travel"
    WEB3 = "Web 3"
