"""Base class for partial-update (PATCH) payloads."""
from typing import ClassVar, Tuple
from pydantic import BaseModel, model_validator


class PatchModel(BaseModel):
    """Every field is optional, but fields backed by NOT NULL columns may be
    omitted and never sent as an explicit null."""

    non_nullable: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode='after')
    def reject_null_for_required_columns(self):
        nulled = [
            name for name in self.non_nullable
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self
