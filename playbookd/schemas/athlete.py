from pydantic import BaseModel, Field


class FollowCoach(BaseModel):
    coachId: str = Field(min_length=1)
