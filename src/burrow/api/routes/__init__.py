"""
API routes package.

Contains the auth and invitation routers mounted by the application.
"""

from burrow.api.routes.auth import router as auth_router
from burrow.api.routes.invitations import router as invitations_router

__all__ = ["auth_router", "invitations_router"]
