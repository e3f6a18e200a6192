"""
FastAPI service for the vitalwatch alerting pipeline.

Provides:
- POST /metrics - Log a reading (persist, evaluate, alert, notify)
- GET/PATCH/POST/DELETE /alerts - Alert dashboard operations
- WS /ws - Real-time alert channel per user
- GET /health - Service health check
"""

from vitalwatch.api.app import create_app

__all__ = ["create_app"]
