from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model whose stored/serialized field names are camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore"
    )


class DocumentModel(CamelModel):
    """Base for models that map one-to-one onto an ArangoDB document."""

    key: str = Field(alias="_key")
    rev: Optional[str] = Field(default=None, alias="_rev", exclude=True)

    def to_document(self) -> dict:
        """Plain JSON-compatible document, without ArangoDB system fields."""
        data = self.model_dump(mode="json", by_alias=True, exclude={"key", "rev"})
        return data
