from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class CoachInvitationCreate(BaseModel):
    coachEmail: EmailStr
    coachName: str = Field(min_length=1)
    sport: str = Field(min_length=1)
    customMessage: Optional[str] = None
    expiresInDays: int = Field(7, ge=1, le=90)


class AthleteInvitationCreate(BaseModel):
    athleteEmail: EmailStr
    athleteName: str = Field(min_length=1)
    sport: str = ""
    coachId: Optional[str] = None  # admins may invite on a coach's behalf
    customMessage: Optional[str] = None
    expiresInDays: int = Field(7, ge=1, le=90)


class AdminInvitationCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1)
    role: Literal["admin", "superadmin"] = "admin"
    expiresInDays: int = Field(7, ge=1, le=90)


class InvitationStatusUpdate(BaseModel):
    invitationId: str
    status: str
    reason: Optional[str] = None


class ResendInvitation(BaseModel):
    expiresInDays: int = Field(7, ge=1, le=90)
