"""
Pydantic models for legislation context requests.
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

from .errors import InvalidQuery
from .retriever import clamp_limit


class LegislationQuery(BaseModel):
    """A request for legislation context. Limit is clamped to 1..100."""
    query: str = Field(..., max_length=2000)
    limit: Optional[int] = None
    language: Optional[Literal["en", "fr"]] = None

    @field_validator("query")
    @classmethod
    def _strip_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise InvalidQuery(query=value)
        return value

    @field_validator("limit")
    @classmethod
    def _clamp_limit(cls, value: Optional[int]) -> Optional[int]:
        return None if value is None else clamp_limit(value)

    def execute(self, builder):
        """Run the query through a ContextBuilder."""
        return builder.get_context(self.query, limit=self.limit, language=self.language)
