"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from bandroom.api.routes.auth import router as auth_router  # noqa: E402
from bandroom.api.routes.profile import router as profile_router  # noqa: E402
from bandroom.api.routes.admin import router as admin_router  # noqa: E402
from bandroom.api.routes.capabilities import router as capabilities_router  # noqa: E402
from bandroom.api.routes.sessions import router as sessions_router  # noqa: E402
from bandroom.api.routes.commitments import router as commitments_router  # noqa: E402
from bandroom.api.routes.songs import router as songs_router  # noqa: E402
from bandroom.api.routes.chat import router as chat_router  # noqa: E402
from bandroom.api.routes.feedback import router as feedback_router  # noqa: E402
from bandroom.api.routes.media import router as media_router  # noqa: E402
from bandroom.api.routes.notifications import router as notifications_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(profile_router)
router.include_router(admin_router)
router.include_router(capabilities_router)
router.include_router(sessions_router)
router.include_router(commitments_router)
router.include_router(songs_router)
router.include_router(chat_router)
router.include_router(feedback_router)
router.include_router(media_router)
router.include_router(notifications_router)
