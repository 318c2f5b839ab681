"""
Profile Service

Profiles are created by the sign-up flow alongside the identity held by
the upstream identity service. Admin rights are granted outside the
exposed operations.
"""
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from fyndak.core.errors import InvalidState, NotFound, Unauthenticated
from fyndak.infrastructure.database import store_operation
from fyndak.models import Profile

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("full_name", "avatar_url", "phone", "address")


class ProfileService:
    """Profile reads and self-service updates"""

    @staticmethod
    def create_profile(
        db: Session,
        profile_id: str,
        email: str,
        full_name: str,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Profile:
        """
        Create the profile for a newly signed-up identity

        Raises:
            InvalidState: If a profile already exists for the id or email
        """
        with store_operation(db, "Could not save profile"):
            existing = db.query(Profile).filter(
                (Profile.id == profile_id) | (Profile.email == email)
            ).first()
            if existing:
                raise InvalidState("A profile already exists for this account")

            profile = Profile(
                id=profile_id,
                email=email,
                full_name=full_name,
                phone=phone,
                address=address,
                is_admin=False,
            )
            db.add(profile)
            db.commit()
            db.refresh(profile)

        logger.info("Profile created", extra={"user_id": profile.id})
        return profile

    @staticmethod
    def get_profile(db: Session, profile_id: str) -> Profile:
        with store_operation(db, "Could not load profile"):
            profile = db.query(Profile).filter(Profile.id == profile_id).first()

        if not profile:
            raise NotFound("Profile not found")
        return profile

    @staticmethod
    def update_profile(db: Session, profile_id: str, fields: Dict) -> Profile:
        """Update editable fields; anything else (is_admin) is ignored"""
        with store_operation(db, "Could not save profile"):
            profile = db.query(Profile).filter(Profile.id == profile_id).first()
            if not profile:
                raise NotFound("Profile not found")

            if "full_name" in fields and not fields["full_name"]:
                raise InvalidState("Full name is required")

            for key in EDITABLE_FIELDS:
                if key in fields:
                    setattr(profile, key, fields[key])

            db.commit()
            db.refresh(profile)

        return profile

    @staticmethod
    def resolve_identity(db: Session, identity: Optional[str]) -> Profile:
        """
        Map the asserted identity to its profile

        Raises:
            Unauthenticated: If no identity was asserted or it has no profile
        """
        if not identity:
            raise Unauthenticated("Sign in required")

        try:
            return ProfileService.get_profile(db, identity)
        except NotFound:
            raise Unauthenticated("Unknown account")
