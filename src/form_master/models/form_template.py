"""
Form template models.

A form template is an ordered list of cards; each card holds an ordered list
of field instances. A field instance is an overlay on one (table, column)
pair and never owns the column's canonical definition.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import Field

from form_master.models.schema import CamelModel


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_id(prefix: str) -> str:
    """Generate a designer-side identifier such as ``card_1f3a9c2b7``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class CardType(str, Enum):
    NORMAL = "normal"
    DOCUMENT = "document"


class ValidationRule(CamelModel):
    """Designer-defined extra rule attached to a field."""

    type: str
    value: Any = None
    message: str


class FieldValidation(CamelModel):
    """The designer-configurable subset of a column's constraints."""

    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    custom_rules: list[ValidationRule] = Field(default_factory=list)


class FieldStyling(CamelModel):
    width: Literal["full", "half", "third"] = "full"
    label_position: Literal["top", "left", "hidden"] = "top"
    variant: Literal["default", "outlined", "filled"] = "default"


class CardStyling(CamelModel):
    background_color: str | None = None
    border_color: str | None = None
    columns: int = Field(default=2, ge=1, le=3)


class FieldInstance(CamelModel):
    """A field placed on a card."""

    id: str = Field(default_factory=lambda: new_id("field"))
    field_id: str = Field(..., description="Id of the palette field this was created from")
    table_name: str
    column_name: str
    display_name: str
    placeholder: str | None = None
    help_text: str | None = None
    is_required: bool = False
    is_readonly: bool = False
    enable_copy: bool = True
    order: int = 0
    validation: FieldValidation = Field(default_factory=FieldValidation)
    styling: FieldStyling = Field(default_factory=FieldStyling)

    @property
    def field_key(self) -> str:
        return f"{self.table_name}.{self.column_name}"


class CardTemplate(CamelModel):
    """A titled group of fields."""

    id: str = Field(default_factory=lambda: new_id("card"))
    title: str
    description: str | None = None
    order: int = 0
    card_type: CardType = CardType.NORMAL
    is_collapsible: bool = False
    is_required: bool = False
    fields: list[FieldInstance] = Field(default_factory=list)
    styling: CardStyling = Field(default_factory=CardStyling)

    @property
    def is_document_card(self) -> bool:
        return self.card_type == CardType.DOCUMENT

    def get_field(self, field_id: str) -> FieldInstance | None:
        for instance in self.fields:
            if instance.id == field_id:
                return instance
        return None


class FormMetadata(CamelModel):
    usage_count: int = 0
    last_used: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_active: bool = True


class FormTemplate(CamelModel):
    """A named, versioned, ordered collection of cards."""

    id: str = Field(default_factory=lambda: new_id("form"))
    name: str
    description: str | None = None
    version: int = 1
    cards: list[CardTemplate] = Field(default_factory=list)
    metadata: FormMetadata = Field(default_factory=FormMetadata)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    created_by: str = "system"

    def get_card(self, card_id: str) -> CardTemplate | None:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def card_index(self, card_id: str) -> int:
        """Position of a card, or -1 if absent."""
        for index, card in enumerate(self.cards):
            if card.id == card_id:
                return index
        return -1
