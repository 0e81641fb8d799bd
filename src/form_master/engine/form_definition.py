"""
Form Definition Model.

Structural edits on a FormTemplate. Every mutation returns a new, fully
re-ranked template and leaves its input untouched. A rejected edit returns
the input object itself and logs a warning, so callers can detect rejection
with an identity check (``result is form``).

Card ordering invariant: every document card sits after every normal card.
"""

import logging
from typing import Iterable, Literal

from form_master.models.form_template import (
    CardStyling,
    CardTemplate,
    CardType,
    FieldInstance,
    FieldStyling,
    FieldValidation,
    FormTemplate,
    new_id,
    utc_now_iso,
)
from form_master.models.schema import AvailableField

logger = logging.getLogger("form-master.designer")

Direction = Literal["up", "down"]

PROTECTED_TABLES = frozenset({"form_templates", "column_metadata"})

DOCUMENT_CARD_TITLE = "Documents"
DOCUMENT_CARD_DESCRIPTION = "Upload required documents and files"


def _rerank_cards(cards: list[CardTemplate]) -> list[CardTemplate]:
    for index, card in enumerate(cards):
        card.order = index
    return cards


def _rerank_fields(fields: list[FieldInstance]) -> list[FieldInstance]:
    for index, instance in enumerate(fields):
        instance.order = index
    return fields


def _copy(form: FormTemplate) -> FormTemplate:
    updated = form.model_copy(deep=True)
    updated.updated_at = utc_now_iso()
    return updated


def _step(direction: str) -> int | None:
    if direction == "up":
        return -1
    if direction == "down":
        return 1
    return None


def cards_in_valid_order(form: FormTemplate) -> bool:
    """True when no normal card follows a document card."""
    seen_document = False
    for card in form.cards:
        if card.is_document_card:
            seen_document = True
        elif seen_document:
            return False
    return True


def new_form(name: str, created_by: str = "system", description: str | None = None) -> FormTemplate:
    """Create an empty form template."""
    return FormTemplate(name=name, description=description, created_by=created_by)


def field_from_palette(field: AvailableField, order: int = 0) -> FieldInstance:
    """
    Build a field instance from a palette entry.

    System fields come in read-only and without a copy button.
    """
    is_system = field.metadata.is_system_field
    return FieldInstance(
        field_id=field.id,
        table_name=field.table_name,
        column_name=field.column_name,
        display_name=field.display_name,
        placeholder=f"Enter {field.display_name.lower()}",
        help_text=field.metadata.description,
        is_required=field.constraints.is_required,
        is_readonly=is_system,
        enable_copy=not is_system,
        order=order,
        validation=FieldValidation(
            required=field.constraints.is_required,
            max_length=field.constraints.max_length,
            pattern=field.constraints.pattern,
        ),
        styling=FieldStyling(),
    )


def create_card(
    title: str | None,
    card_type: CardType = CardType.NORMAL,
    document_fields: Iterable[FieldInstance] = (),
    documents_table: str = "documents",
) -> CardTemplate:
    """
    Build a new card.

    Document cards get the standard document styling and are pre-filled with
    copies of ``document_fields`` (only fields of the documents table).
    """
    if card_type == CardType.DOCUMENT:
        fields = [
            instance.model_copy(update={"id": new_id("field")}, deep=True)
            for instance in document_fields
            if instance.table_name == documents_table
        ]
        return CardTemplate(
            title=title or DOCUMENT_CARD_TITLE,
            description=DOCUMENT_CARD_DESCRIPTION,
            card_type=CardType.DOCUMENT,
            is_required=True,
            fields=_rerank_fields(fields),
            styling=CardStyling(
                background_color="#f8fafc",
                border_color="#e2e8f0",
                columns=1,
            ),
        )

    return CardTemplate(
        title=title or "New Card",
        card_type=CardType.NORMAL,
        styling=CardStyling(columns=2),
    )


def add_card(
    form: FormTemplate,
    title: str | None,
    card_type: CardType = CardType.NORMAL,
    document_fields: Iterable[FieldInstance] = (),
    documents_table: str = "documents",
) -> FormTemplate:
    """
    Add a card.

    Document cards are appended. A normal card is appended too unless a
    document card already exists, in which case it goes right before the
    first document card.
    """
    card = create_card(title, card_type, document_fields, documents_table)
    updated = _copy(form)

    position = len(updated.cards)
    if card.card_type == CardType.NORMAL:
        for index, existing in enumerate(updated.cards):
            if existing.is_document_card:
                position = index
                break

    updated.cards.insert(position, card)
    _rerank_cards(updated.cards)
    logger.info(f"Added {card.card_type.value} card '{card.title}' at position {position}")
    return updated


def remove_card(form: FormTemplate, card_id: str) -> FormTemplate:
    """Remove a card and re-rank its siblings."""
    if form.card_index(card_id) < 0:
        logger.warning(f"Cannot remove card {card_id}: not found")
        return form

    updated = _copy(form)
    updated.cards = _rerank_cards([card for card in updated.cards if card.id != card_id])
    return updated


def move_card(form: FormTemplate, card_id: str, direction: Direction) -> FormTemplate:
    """
    Swap a card with its neighbour.

    No-op at either boundary. Rejected when the neighbour has a different
    card type, since the swap would put a normal card after a document card.
    """
    step = _step(direction)
    index = form.card_index(card_id)
    if step is None or index < 0:
        logger.warning(f"Cannot move card {card_id} {direction}")
        return form

    target = index + step
    if target < 0 or target >= len(form.cards):
        return form

    if form.cards[target].card_type != form.cards[index].card_type:
        logger.warning(
            f"Rejected moving card {card_id} {direction}: "
            "document cards must stay after all normal cards"
        )
        return form

    updated = _copy(form)
    cards = updated.cards
    cards[index], cards[target] = cards[target], cards[index]
    _rerank_cards(cards)
    return updated


def _field_rejection(card: CardTemplate, table_name: str, documents_table: str) -> str | None:
    """Why a field of ``table_name`` may not sit on ``card``, or None."""
    if table_name in PROTECTED_TABLES:
        return "protected system table"
    is_document_field = table_name == documents_table
    if card.is_document_card and not is_document_field:
        return "document cards only accept document fields"
    if not card.is_document_card and is_document_field:
        return "document fields belong on a document card"
    return None


def update_card(form: FormTemplate, card: CardTemplate, documents_table: str = "documents") -> FormTemplate:
    """
    Replace a card by id, keeping its position.

    The card type cannot change, and every field of the replacement must be
    allowed on it by the same rules as ``add_field_to_card``.
    """
    index = form.card_index(card.id)
    if index < 0:
        logger.warning(f"Cannot update card {card.id}: not found")
        return form
    if card.card_type != form.cards[index].card_type:
        logger.warning(f"Rejected changing the type of card {card.id}")
        return form
    for instance in card.fields:
        reason = _field_rejection(card, instance.table_name, documents_table)
        if reason:
            logger.warning(f"Rejected update of card {card.id}: {instance.field_key}: {reason}")
            return form

    updated = _copy(form)
    replacement = card.model_copy(deep=True)
    _rerank_fields(replacement.fields)
    updated.cards[index] = replacement
    _rerank_cards(updated.cards)
    return updated


def add_field_to_card(
    form: FormTemplate,
    card_id: str,
    field: AvailableField | FieldInstance,
    documents_table: str = "documents",
) -> FormTemplate:
    """
    Append a field to a card.

    Rejected when the field belongs to a protected system table, when a
    document card is given a field from another table, or when a normal card
    is given a documents-table field.
    """
    card = form.get_card(card_id)
    if card is None:
        logger.warning(f"Cannot add field to card {card_id}: not found")
        return form

    reason = _field_rejection(card, field.table_name, documents_table)
    if reason:
        logger.warning(f"Rejected field {field.table_name}.{field.column_name}: {reason}")
        return form

    if isinstance(field, AvailableField):
        instance = field_from_palette(field)
    else:
        instance = field.model_copy(update={"id": new_id("field")}, deep=True)

    updated = _copy(form)
    target = updated.get_card(card_id)
    target.fields.append(instance)
    _rerank_fields(target.fields)
    return updated


def remove_field(form: FormTemplate, card_id: str, field_id: str) -> FormTemplate:
    """Remove a field instance from a card."""
    card = form.get_card(card_id)
    if card is None or card.get_field(field_id) is None:
        logger.warning(f"Cannot remove field {field_id} from card {card_id}: not found")
        return form

    updated = _copy(form)
    target = updated.get_card(card_id)
    target.fields = _rerank_fields([f for f in target.fields if f.id != field_id])
    return updated


def move_field(form: FormTemplate, card_id: str, field_id: str, direction: Direction) -> FormTemplate:
    """Swap a field with its neighbour inside the same card."""
    card = form.get_card(card_id)
    step = _step(direction)
    if card is None or step is None:
        logger.warning(f"Cannot move field {field_id} in card {card_id} {direction}")
        return form

    index = next((i for i, f in enumerate(card.fields) if f.id == field_id), -1)
    if index < 0:
        logger.warning(f"Cannot move field {field_id}: not in card {card_id}")
        return form

    target = index + step
    if target < 0 or target >= len(card.fields):
        return form

    updated = _copy(form)
    fields = updated.get_card(card_id).fields
    fields[index], fields[target] = fields[target], fields[index]
    _rerank_fields(fields)
    return updated


def ensure_document_cards_last(form: FormTemplate) -> FormTemplate:
    """Normalize a loaded template: stable-move document cards to the end."""
    if cards_in_valid_order(form) and all(c.order == i for i, c in enumerate(form.cards)):
        return form

    updated = _copy(form)
    normal = [card for card in updated.cards if not card.is_document_card]
    documents = [card for card in updated.cards if card.is_document_card]
    updated.cards = _rerank_cards(normal + documents)
    return updated


class FormDesigner:
    """
    One designer session over a form template.

    Wraps the pure mutations above; each method returns True when the edit
    was applied and False when it was rejected or had no effect.
    """

    def __init__(
        self,
        form: FormTemplate | None = None,
        documents_table: str = "documents",
        created_by: str = "system",
    ):
        self._persisted = form is not None
        self._form = ensure_document_cards_last(form) if form else new_form("Untitled Form", created_by)
        self.documents_table = documents_table
        self.has_unsaved_changes = False
        self._document_fields: list[FieldInstance] | None = None

    @property
    def form(self) -> FormTemplate:
        return self._form

    @property
    def document_fields(self) -> list[FieldInstance]:
        return list(self._document_fields or [])

    async def load_document_fields(self, client) -> list[FieldInstance]:
        """
        Fetch the documents-table field set once per session.

        Document cards that are still empty, because they were added or
        loaded before the fields arrived, are filled in.
        """
        if self._document_fields is None:
            self._document_fields = await client.get_document_fields()
            logger.info(f"Loaded {len(self._document_fields)} document fields")
            self._fill_empty_document_cards()
        return self.document_fields

    def _fill_empty_document_cards(self) -> None:
        updated = self._form
        for card in self._form.cards:
            if not card.is_document_card or card.fields:
                continue
            fields = create_card(None, CardType.DOCUMENT, self.document_fields, self.documents_table).fields
            if not fields:
                return
            updated = update_card(updated, card.model_copy(update={"fields": fields}), self.documents_table)
            logger.info(f"Filled document card '{card.title}' with {len(fields)} fields")
        self._apply(updated)

    def _apply(self, updated: FormTemplate) -> bool:
        if updated is self._form:
            return False
        self._form = updated
        self.has_unsaved_changes = True
        return True

    def add_card(self, title: str | None = None, card_type: CardType = CardType.NORMAL) -> bool:
        if card_type == CardType.DOCUMENT and self._document_fields is None:
            logger.warning("Document fields not loaded yet; the document card stays empty until they are")
        return self._apply(
            add_card(self._form, title, card_type, self.document_fields, self.documents_table)
        )

    def remove_card(self, card_id: str) -> bool:
        return self._apply(remove_card(self._form, card_id))

    def move_card(self, card_id: str, direction: Direction) -> bool:
        return self._apply(move_card(self._form, card_id, direction))

    def update_card(self, card: CardTemplate) -> bool:
        return self._apply(update_card(self._form, card, self.documents_table))

    def add_field_to_card(self, card_id: str, field: AvailableField | FieldInstance) -> bool:
        return self._apply(add_field_to_card(self._form, card_id, field, self.documents_table))

    def remove_field(self, card_id: str, field_id: str) -> bool:
        return self._apply(remove_field(self._form, card_id, field_id))

    def move_field(self, card_id: str, field_id: str, direction: Direction) -> bool:
        return self._apply(move_field(self._form, card_id, field_id, direction))

    def rename(self, name: str, description: str | None = None) -> bool:
        if name == self._form.name and description == self._form.description:
            return False
        return self._apply(
            self._form.model_copy(
                update={"name": name, "description": description, "updated_at": utc_now_iso()}
            )
        )

    def mark_saved(self, form: FormTemplate | None = None) -> None:
        if form is not None:
            self._form = ensure_document_cards_last(form)
        self._persisted = True
        self.has_unsaved_changes = False

    async def save(self, client) -> FormTemplate:
        """Create or update the template on the backend."""
        if self._persisted:
            saved = await client.update_form(self._form)
        else:
            saved = await client.create_form(self._form)
        self.mark_saved(saved)
        logger.info(f"Saved form '{saved.name}' ({saved.id})")
        return saved
