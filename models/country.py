"""SQLAlchemy model for countries.

Part of the schema but not populated by any ingestion path; headline requests
take the country code directly.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Column, String

from core.database import Base


class Country(Base):
    __tablename__ = "countries"

    id = Column(String(36), primary_key=True)
    name = Column(String(128), nullable=False)
    code = Column(String(2), nullable=False, unique=True)

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("id", str(uuid.uuid4()))
        super().__init__(**kwargs)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}
