from pydantic import BaseModel, Field, field_validator


class ContactCoach(BaseModel):
    coachId: str = Field(min_length=1)
    subject: str
    message: str

    @field_validator("subject")
    @classmethod
    def _subject_length(cls, v: str) -> str:
        v = v.strip()
        if not 3 <= len(v) <= 100:
            raise ValueError("Subject must be between 3 and 100 characters")
        return v

    @field_validator("message")
    @classmethod
    def _message_length(cls, v: str) -> str:
        v = v.strip()
        if not 10 <= len(v) <= 1000:
            raise ValueError("Message must be between 10 and 1000 characters")
        return v


class ReplyMessage(BaseModel):
    messageId: str = Field(min_length=1)
    reply: str

    @field_validator("reply")
    @classmethod
    def _reply_length(cls, v: str) -> str:
        v = v.strip()
        if not 5 <= len(v) <= 2000:
            raise ValueError("Reply must be between 5 and 2000 characters")
        return v
