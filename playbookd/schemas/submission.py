from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadUrlRequest(BaseModel):
    videoFileName: str = Field(min_length=1)


class SubmissionCreate(BaseModel):
    videoFileName: str = Field(min_length=1)
    videoFileSize: int = Field(0, ge=0)
    videoDuration: float = Field(0, ge=0)
    videoStoragePath: Optional[str] = None
    teamId: Optional[str] = None
    athleteContext: str = ""
    athleteGoals: Optional[str] = None
    specificQuestions: Optional[str] = None


class SubmissionPatch(BaseModel):
    # anything not listed here is dropped
    model_config = ConfigDict(extra="ignore")

    athleteContext: Optional[str] = None
    athleteGoals: Optional[str] = None
    specificQuestions: Optional[str] = None
    videoStoragePath: Optional[str] = None
    videoDuration: Optional[float] = None
    uploadComplete: Optional[bool] = None


class ReviewCreate(BaseModel):
    summary: str = Field(min_length=1)
    strengths: List[str] = []
    improvements: List[str] = []
    drills: List[str] = []
    nextSteps: List[str] = []
    rating: Optional[int] = Field(None, ge=1, le=5)
