"""
Synergy Backend: API Routes Package
====================================

What:  HTTP route handlers. Thin: extract input, resolve the acting user,
       call a service, shape the response.

Route Inventory:
    - users.py:         POST /api/users, GET /api/users/me, GET /api/users/{id}
    - projects.py:      POST/GET /api/projects, GET /api/projects/{id},
                        GET /api/projects/user/{user_id}
    - applications.py:  POST   /api/projects/{id}/apply
                        PUT    /api/projects/{id}/applications/{application_id}
                        POST   /api/projects/{id}/leave
                        DELETE /api/projects/{id}/members/{member_id}
    - notifications.py: GET /api/notifications, PUT .../{id}/read,
                        PUT .../read-all, DELETE .../{id}
    - health.py:        GET /health
    - deps.py:          acting-user dependencies (X-User-ID header)
"""
