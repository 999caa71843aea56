"""
Synergy Backend: Middleware Package
====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters):
    Request → [Request ID] → [Rate Limit] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID first: correlation ID and acting user are in context
       for everything below, including the 429 body
    2. Rate Limit: rejects abusive writes before any database work
    3. Logging: one access line per request with status and duration
    4. GZip / CORS: Starlette's own middleware
"""
