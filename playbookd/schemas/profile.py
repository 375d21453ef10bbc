from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr


class SocialLinks(BaseModel):
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    youtube: Optional[str] = None
    tiktok: Optional[str] = None
    website: Optional[str] = None


class CoachProfileUpdate(BaseModel):
    # null is meaningful here (clears the field); unset means "leave alone"
    model_config = ConfigDict(extra="ignore")

    uid: Optional[str] = None
    displayName: Optional[str] = None
    bio: Optional[str] = None
    tagline: Optional[str] = None
    location: Optional[str] = None
    sport: Optional[str] = None
    philosophy: Optional[str] = None
    credentials: Optional[str] = None
    experience: Optional[str] = None
    specialties: Optional[List[str]] = None
    achievements: Optional[List[str]] = None
    profileImageUrl: Optional[str] = None
    heroImageUrl: Optional[str] = None
    showcasePhoto1: Optional[str] = None
    showcasePhoto2: Optional[str] = None
    galleryPhotos: Optional[List[str]] = None
    highlightVideo: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    youtube: Optional[str] = None
    tiktok: Optional[str] = None
    website: Optional[str] = None
    socialLinks: Optional[SocialLinks] = None
    visibility: Optional[Dict[str, bool]] = None


class BakedProfileCreate(BaseModel):
    targetEmail: EmailStr
    displayName: str
    sport: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    bio: Optional[str] = None
    tagline: Optional[str] = None
    specialties: List[str] = []
    achievements: List[str] = []
    credentials: Optional[str] = None
    experience: Optional[str] = None
    profileImageUrl: Optional[str] = None
    heroImageUrl: Optional[str] = None
