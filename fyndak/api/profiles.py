"""
Profile API Routes
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from fyndak.core.dependencies import get_current_profile, get_db
from fyndak.models import Profile
from fyndak.services import ProfileService

router = APIRouter(prefix="/profiles", tags=["profiles"])


class CreateProfileRequest(BaseModel):
    """Sent by the sign-up flow once the identity exists"""
    id: str
    email: EmailStr
    full_name: str
    phone: Optional[str] = None
    address: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


@router.post("", status_code=201)
async def create_profile(request: CreateProfileRequest, db: Session = Depends(get_db)):
    profile = ProfileService.create_profile(
        db,
        profile_id=request.id,
        email=request.email,
        full_name=request.full_name,
        phone=request.phone,
        address=request.address
    )

    return {
        "success": True,
        "message": "Profile created successfully",
        "profile": profile.to_dict()
    }


@router.get("/me")
async def get_my_profile(profile: Profile = Depends(get_current_profile)):
    return {"profile": profile.to_dict()}


@router.patch("/me")
async def update_my_profile(
    request: UpdateProfileRequest,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    updated = ProfileService.update_profile(db, profile.id, request.model_dump(exclude_unset=True))

    return {
        "success": True,
        "message": "Profile updated successfully",
        "profile": updated.to_dict()
    }
