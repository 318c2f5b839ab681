"""
Profile Model
"""
from sqlalchemy import Boolean, Column, DateTime, String

from fyndak.models import Base
from fyndak.utils import isoformat, utcnow


class Profile(Base):
    """Account profile, one per authenticated identity"""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    full_name = Column(String, nullable=False)
    avatar_url = Column(String)
    phone = Column(String)
    address = Column(String)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self, include_email: bool = True):
        data = {
            "id": self.id,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
            "phone": self.phone,
            "address": self.address,
            "is_admin": bool(self.is_admin),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_email:
            data["email"] = self.email
        return data
