"""
Shop schemas.

A shop is either the single master (ground-truth catalog) or a target
whose catalog is kept consistent with the master.
"""

from pydantic import Field
from typing import Any, Optional

from models.base import BaseSchema, TimestampMixin


class Shop(BaseSchema, TimestampMixin):
    """Shop record as stored in the shops table."""

    id: int = Field(..., description="Shop ID")
    name: str = Field(..., description="Display name")
    is_master: bool = Field(default=False, description="Whether this is the master shop")
    locale: Optional[str] = Field(None, description="Primary content locale (e.g., cs, sk)")
    settings: dict[str, Any] = Field(
        default_factory=dict,
        description="Shop-scoped settings document (holds attribute_cache)"
    )
    api_access_token: Optional[str] = Field(
        None,
        description="Shoptet API access token",
        repr=False,
        exclude=True
    )

    def summary(self) -> dict:
        """Short public representation used in responses."""
        return {"id": self.id, "name": self.name, "is_master": self.is_master}
