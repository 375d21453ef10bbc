from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


class AssistRequest(BaseModel):
    text: str = Field(min_length=1)
    action: Literal["transform", "polish"]
    context: Literal["summary", "nextSteps", "strength", "improvement"]


class GenerateLessonRequest(BaseModel):
    topic: str = Field(min_length=1)
    sport: str = Field(min_length=1)
    level: str = "intermediate"
    duration: Union[int, str] = "45 minutes"
    detailedInstructions: Optional[str] = None
