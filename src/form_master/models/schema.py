"""
Table schema models.

These mirror the backend's schema-introspection payloads. The backend owns
them; the engine treats every fetched set as an immutable snapshot.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes the backend's camelCase keys."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    def to_payload(self) -> dict[str, Any]:
        """Dump with backend key names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class TableRelationship(CamelModel):
    """Foreign key relationship between two tables."""

    from_column: str = Field(..., description="Column on the owning table")
    to_table: str = Field(..., description="Referenced table")
    to_column: str = Field(..., description="Referenced column")


class ColumnDefinition(CamelModel):
    """
    A column and the declarative constraints attached to it.

    Exact constraints win over range constraints, and an active dropdown
    replaces length checks entirely.
    """

    name: str = Field(..., description="Column name")
    type: str = Field(default="TEXT", description="Declared SQL type")
    nullable: bool = Field(default=True)
    primary_key: bool = Field(default=False)
    foreign_key: str | dict[str, Any] | None = Field(default=None)
    constraints: list[str] = Field(default_factory=list)

    # Metadata-driven validation
    required: bool | None = Field(default=None)
    is_email: bool | None = Field(default=None)
    min_length: int | None = Field(default=None)
    max_length: int | None = Field(default=None)
    exact_length: int | None = Field(default=None)
    has_dropdown: bool | None = Field(default=None)
    dropdown_options: list[str] | None = Field(default=None)
    min_value: int | float | None = Field(default=None)
    max_value: int | float | None = Field(default=None)
    exact_value: int | float | None = Field(default=None)

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, value: Any) -> str:
        if value is None:
            return "TEXT"
        return str(value).upper()

    @property
    def has_active_dropdown(self) -> bool:
        """True when dropdown membership governs this column."""
        return bool(self.has_dropdown and self.dropdown_options)


class TableSchema(CamelModel):
    """Schema of one table as returned by the introspection endpoint."""

    table_name: str = Field(..., description="Unique table name")
    display_name: str | None = Field(default=None)
    columns: list[ColumnDefinition] = Field(default_factory=list)
    is_required: bool = Field(default=False)
    relationships: list[TableRelationship] = Field(default_factory=list)

    def get_column(self, name: str) -> ColumnDefinition | None:
        """Find a column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]


class FieldConstraints(CamelModel):
    """Constraints of a palette field, as reported by field discovery."""

    max_length: int | None = None
    min_value: int | float | None = None
    max_value: int | float | None = None
    enum_values: list[str] | None = None
    pattern: str | None = None
    is_required: bool = False
    is_primary_key: bool = False
    is_foreign_key: bool = False
    foreign_key_reference: dict[str, str] | None = None


class FieldMetadata(CamelModel):
    """Descriptive metadata of a palette field."""

    description: str | None = None
    category: str = "general"
    is_system_field: bool = False
    last_modified: str | None = None
    table_display_name: str | None = None


class AvailableField(CamelModel):
    """A (table, column) pair the form designer can drop into a card."""

    id: str
    table_name: str
    column_name: str
    display_name: str
    data_type: str = "TEXT"
    is_nullable: bool = True
    default_value: Any | None = None
    constraints: FieldConstraints = Field(default_factory=FieldConstraints)
    metadata: FieldMetadata = Field(default_factory=FieldMetadata)
