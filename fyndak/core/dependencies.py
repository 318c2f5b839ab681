"""
FastAPI Dependencies
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from fyndak.core.context import AppContext
from fyndak.core.errors import Unauthorized
from fyndak.infrastructure.notifier import ChangeNotifier
from fyndak.models import Profile
from fyndak.services import ProfileService


def get_context(request: Request) -> AppContext:
    """Application context built by create_app"""
    return request.app.state.context


def get_db(context: AppContext = Depends(get_context)):
    """Get database session"""
    db = context.session()
    try:
        yield db
    finally:
        db.close()


def get_notifier(context: AppContext = Depends(get_context)) -> ChangeNotifier:
    return context.notifier


def get_current_profile(
    request: Request,
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> Profile:
    """Profile of the identity asserted by the upstream identity service"""
    identity = request.headers.get(context.settings.IDENTITY_HEADER)
    return ProfileService.resolve_identity(db, identity)


def require_admin(profile: Profile = Depends(get_current_profile)) -> Profile:
    if not profile.is_admin:
        raise Unauthorized("Administrator access required")
    return profile
