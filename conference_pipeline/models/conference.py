"""Source and conference models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

# Closed vocabularies shared by the extraction prompt and the normalizer
FORMATS = ("Очно", "Онлайн", "Гибридный")
DEFAULT_FORMAT = "Очно"

TOPICS = (
    "Железнодорожный транспорт",
    "Автомобильный транспорт",
    "Водный транспорт",
    "Авиационный транспорт",
    "Логистика",
    "Цифровые технологии",
    "Экология",
    "Транспортные системы",
)
DEFAULT_TOPIC = "Транспортные системы"

# Universities currently tracked (labels used as Source.name)
UNIVERSITIES = (
    "МИИТ (РУТ)",
    "ПГУПС",
    "РГУПС",
    "СибГУПС",
    "УрГУПС",
    "МГАВТ",
    "ДВГУПС",
    "СамГУПС",
    "ВГУВТ",
    "МАДИ",
    "ИрГУПС",
)

# Fields that are absent rather than empty in the display shape
OPTIONAL_FIELDS = (
    "end_date",
    "registration_url",
    "registration_deadline",
    "contact_email",
    "contact_phone",
    "venue",
    "fee",
)

# Storage column -> display key, in display order
DISPLAY_FIELDS = {
    "title": "title",
    "university": "university",
    "date": "date",
    "end_date": "endDate",
    "location": "location",
    "topic": "topic",
    "description": "description",
    "format": "format",
    "registration_url": "registrationUrl",
    "registration_deadline": "registrationDeadline",
    "contact_email": "contactEmail",
    "contact_phone": "contactPhone",
    "venue": "venue",
    "fee": "fee",
    "source_url": "sourceUrl",
}


class Source(BaseModel):
    """A university website scraped for conference announcements."""

    id: int | str
    name: str  # University label, e.g. "ПГУПС"
    url: str
    is_active: bool = True
    last_scraped_at: Optional[datetime] = None

    class Config:
        extra = "ignore"  # Store rows carry created_at etc.


class Conference(BaseModel):
    """Canonical conference record, as persisted."""

    # Identity: (title, university, date) is the uniqueness key
    title: str
    university: str
    date: str  # YYYY-MM-DD
    end_date: Optional[str] = None

    location: str
    description: str = ""
    format: str = DEFAULT_FORMAT
    topic: str = DEFAULT_TOPIC

    # Registration / contacts
    registration_url: Optional[str] = None
    registration_deadline: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    venue: Optional[str] = None
    fee: Optional[str] = None

    source_url: str

    # Set by the store on read, never by the pipeline
    id: Optional[int | str] = Field(default=None, exclude=True)

    class Config:
        extra = "ignore"

    @property
    def key(self) -> tuple[str, str, str]:
        """Uniqueness triple used for deduplication."""
        return (self.title, self.university, self.date)

    def to_row(self) -> dict:
        """Convert to a storage row (snake_case, missing optionals as None)."""
        return self.model_dump()

    def to_display(self) -> dict:
        """Convert to the consumer-facing shape (camelCase, missing optionals omitted)."""
        row = self.to_row()
        record = {}
        if self.id is not None:
            record["id"] = self.id
        for column, key in DISPLAY_FIELDS.items():
            value = row.get(column)
            if value is None or (value == "" and column in OPTIONAL_FIELDS):
                continue
            record[key] = value
        return record
