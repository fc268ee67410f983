"""
Base schemas and mixins for all models.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class TimestampMixin(BaseModel):
    """Add timestamps to response models."""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaginationParams(BaseModel):
    """Standard pagination parameters."""
    page: int = 1
    per_page: int = 50

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page


class PageMeta(BaseModel):
    """Pagination metadata attached to paged responses."""
    page: int
    per_page: int
    total: int
    last_page: int

    @classmethod
    def create(cls, total: int, page: int, per_page: int) -> "PageMeta":
        """Build metadata; last_page is never below 1."""
        last_page = (total + per_page - 1) // per_page  # Ceiling division
        return cls(
            page=page,
            per_page=per_page,
            total=total,
            last_page=max(1, last_page)
        )
