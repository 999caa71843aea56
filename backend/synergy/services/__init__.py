"""
Synergy Backend: Services Layer
================================

What:  Business logic between routes (HTTP) and the database (persistence).
How:   Services take an AsyncSession per call and are exposed as module-level
       singletons; routes receive the session through FastAPI dependencies.

Service Inventory:
    - ProjectAggregate (role_workflow): in-memory rules of one project's
      roles, members and applications
    - LifecycleService: submit / decide / leave / remove with version-checked
      commits, the cross-project sweep and notification dispatch
    - NotificationSink (abstract): delivery contract for lifecycle events
    - DatabaseNotificationSink / NotificationService: stored notifications
    - ProjectService: project creation, detail and listings
    - UserService: account creation and lookup
"""
