"""Key-value row: the durable storage every cache entry and credential lives in."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlmodel import Column, Field, SQLModel

from deploydeck.models.base import utcnow


class KeyValue(SQLModel, table=True):
    __tablename__ = "kv_store"

    key: str = Field(primary_key=True, max_length=512)
    value: str = Field(sa_column=Column(Text, nullable=False))  # serialized text payload
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
