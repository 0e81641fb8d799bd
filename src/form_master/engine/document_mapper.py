"""
Document-to-Field Mapper.

Places AI-extracted key/value pairs under the (table, column) that owns each
key, producing form data shaped ``{table: {column: value}}``.
"""

import logging
from typing import Any, Iterable, Mapping

from form_master.models.documents import DocumentParsingConfig
from form_master.models.schema import TableSchema

logger = logging.getLogger("form-master.mapper")


class DocumentFieldMapper:
    """
    Maps extracted document data onto table columns.

    Each extracted key is looked up as a column name across all schemas. When
    two tables share a column name, the later schema owns it. Extraction
    schemas from the parsing config name their destination table explicitly;
    those destinations win for their own document type.
    """

    def __init__(
        self,
        schemas: Iterable[TableSchema],
        parsing_config: DocumentParsingConfig | None = None,
        documents_table: str = "documents",
    ):
        self.documents_table = documents_table
        self.column_owners: dict[str, str] = {}
        for table in schemas:
            for column in table.columns:
                self.column_owners[column.name] = table.table_name

        self.explicit_destinations: dict[str, dict[str, str]] = {}
        if parsing_config is not None:
            for schema in parsing_config.schemas:
                self.explicit_destinations[schema.document_type] = {
                    field.column_name: field.table_name for field in schema.fields
                }

    def resolve_table(self, column_name: str, document_type: str | None = None) -> str | None:
        """Owning table of an extracted key, or None when no schema has it."""
        if document_type is not None:
            explicit = self.explicit_destinations.get(document_type, {})
            if column_name in explicit:
                return explicit[column_name]
        return self.column_owners.get(column_name)

    def map_document(
        self,
        document_type: str,
        extracted: Mapping[str, Any],
        into: dict[str, dict[str, Any]] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Map one document's extracted data."""
        mapped = into if into is not None else {}
        for column_name, value in extracted.items():
            if value is None or value == "":
                continue
            table_name = self.resolve_table(column_name, document_type)
            if table_name is None:
                logger.warning(f"No mapping found for extracted field: {column_name}")
                continue
            mapped.setdefault(table_name, {})[column_name] = value
            logger.debug(f"Mapped {column_name} to {table_name}.{column_name} from {document_type}")
        return mapped

    def map(
        self,
        extracted_data: Mapping[str, Mapping[str, Any]],
        document_files: Mapping[str, str] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """
        Map all extracted data into pre-fill form data.

        Args:
            extracted_data: Document type to its extracted key/value pairs.
            document_files: Document type to stored file path; these land
                under the documents table.

        Returns:
            Form data keyed by table, then column.
        """
        mapped: dict[str, dict[str, Any]] = {}
        for document_type, extracted in extracted_data.items():
            self.map_document(document_type, extracted, into=mapped)

        if document_files:
            documents = mapped.setdefault(self.documents_table, {})
            for document_type, file_path in document_files.items():
                documents[document_type] = file_path

        return mapped
