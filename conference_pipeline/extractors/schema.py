"""Extraction schema - structured output requested from the LLM."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

TOOL_NAME = "extract_conferences"

# Candidate fields, in prompt order, with the instruction given to the model
CANDIDATE_FIELDS: dict[str, str] = {
    "title": "название конференции",
    "date": "дата начала (YYYY-MM-DD)",
    "end_date": "дата окончания (YYYY-MM-DD, если указана)",
    "location": "город или место проведения",
    "description": "краткое описание (1-2 предложения)",
    "format": "формат проведения",
    "topic": "тема",
    "registration_url": "ссылка на регистрацию",
    "registration_deadline": "крайний срок регистрации (YYYY-MM-DD)",
    "contact_email": "контактный email",
    "contact_phone": "контактный телефон",
    "venue": "адрес или здание проведения",
    "fee": "стоимость участия",
}

REQUIRED_FIELDS = ["title", "date", "location", "description", "format", "topic"]


class RawCandidate(BaseModel):
    """A conference as returned by the model. Nothing here is trusted."""

    title: Optional[str] = None
    date: Optional[str] = None
    end_date: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    format: Optional[str] = None
    topic: Optional[str] = None
    registration_url: Optional[str] = None
    registration_deadline: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    venue: Optional[str] = None
    fee: Optional[str] = Field(default=None, description="Free text, e.g. 'бесплатно' or '3000 руб.'")

    class Config:
        extra = "ignore"

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        """Treat empty strings as missing; stringify bare numbers (fee: 3000).

        Objects, arrays and booleans are dropped to None so one odd field
        never costs the whole candidate.
        """
        if isinstance(value, str):
            value = value.strip()
            return value or None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None


def build_tool_schema() -> dict:
    """Function-calling tool that forces an array of candidate objects."""
    return {
        "type": "function",
        "function": {
            "name": TOOL_NAME,
            "description": "Extract conference information",
            "parameters": {
                "type": "object",
                "properties": {
                    "conferences": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                field: {"type": "string"} for field in CANDIDATE_FIELDS
                            },
                            "required": REQUIRED_FIELDS,
                        },
                    }
                },
                "required": ["conferences"],
            },
        },
    }


def build_tool_choice() -> dict:
    """Force the model to answer through the extraction tool."""
    return {"type": "function", "function": {"name": TOOL_NAME}}
