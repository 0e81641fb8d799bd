"""Tests for form definition editing."""

import itertools

import pytest

from form_master.engine.form_definition import (
    FormDesigner,
    add_card,
    add_field_to_card,
    cards_in_valid_order,
    ensure_document_cards_last,
    move_card,
    move_field,
    new_form,
    remove_card,
    remove_field,
    update_card,
)
from form_master.models import (
    AvailableField,
    CardTemplate,
    CardType,
    FieldInstance,
    FormTemplate,
)
from form_master.models.schema import FieldConstraints, FieldMetadata


def palette_field(table: str, column: str, **kwargs) -> AvailableField:
    return AvailableField(
        id=f"{table}_{column}",
        table_name=table,
        column_name=column,
        display_name=column.replace("_", " ").title(),
        **kwargs,
    )


def document_field(column: str) -> FieldInstance:
    return FieldInstance(
        field_id=f"documents_{column}",
        table_name="documents",
        column_name=column,
        display_name=column.replace("_", " ").title(),
    )


def structure(form: FormTemplate) -> list[tuple]:
    """Form shape without ids and timestamps."""
    return [
        (card.title, card.card_type, card.order, [(f.field_key, f.order) for f in card.fields])
        for card in form.cards
    ]


@pytest.fixture
def form() -> FormTemplate:
    form = new_form("Admission")
    form = add_card(form, "Personal")
    form = add_card(form, "Address")
    form = add_card(form, None, CardType.DOCUMENT, [document_field("aadhar_card")])
    return form


class TestAddCard:
    """Tests for adding cards."""

    def test_normal_card_defaults(self):
        """Test a new normal card."""
        form = add_card(new_form("F"), None)
        card = form.cards[0]
        assert card.title == "New Card"
        assert card.card_type == CardType.NORMAL
        assert card.styling.columns == 2

    def test_document_card_defaults(self):
        """Test a new document card is pre-filled with document fields."""
        fields = [document_field("aadhar_card"), document_field("photo")]
        foreign = FieldInstance(
            field_id="x", table_name="personal_details", column_name="email", display_name="Email"
        )
        form = add_card(new_form("F"), None, CardType.DOCUMENT, fields + [foreign])
        card = form.cards[0]
        assert card.title == "Documents"
        assert card.description == "Upload required documents and files"
        assert card.is_required
        assert card.styling.columns == 1
        assert card.styling.background_color == "#f8fafc"
        assert [f.column_name for f in card.fields] == ["aadhar_card", "photo"]
        assert [f.order for f in card.fields] == [0, 1]
        assert card.fields[0].id != fields[0].id

    def test_normal_card_goes_before_documents(self, form):
        """Test normal cards are inserted before the first document card."""
        updated = add_card(form, "Education")
        assert [c.title for c in updated.cards] == ["Personal", "Address", "Education", "Documents"]
        assert [c.order for c in updated.cards] == [0, 1, 2, 3]

    def test_input_is_untouched(self, form):
        """Test edits return a new template."""
        before = structure(form)
        updated = add_card(form, "Education")
        assert updated is not form
        assert structure(form) == before

    def test_add_then_remove_restores_structure(self, form):
        """Test adding a card and removing it again."""
        for card_type in (CardType.NORMAL, CardType.DOCUMENT):
            added = add_card(form, "Extra", card_type)
            new_ids = {c.id for c in added.cards} - {c.id for c in form.cards}
            assert len(new_ids) == 1
            restored = remove_card(added, new_ids.pop())
            assert structure(restored) == structure(form)
            assert [c.id for c in restored.cards] == [c.id for c in form.cards]


class TestRemoveCard:
    """Tests for removing cards."""

    def test_remove_reranks(self, form):
        """Test remaining cards are re-ranked."""
        updated = remove_card(form, form.cards[0].id)
        assert [c.title for c in updated.cards] == ["Address", "Documents"]
        assert [c.order for c in updated.cards] == [0, 1]

    def test_unknown_card_is_rejected(self, form):
        """Test removing a missing card returns the input."""
        assert remove_card(form, "card_missing") is form


class TestMoveCard:
    """Tests for moving cards."""

    def test_swap_with_neighbour(self, form):
        """Test moving a card down."""
        updated = move_card(form, form.cards[0].id, "down")
        assert [c.title for c in updated.cards] == ["Address", "Personal", "Documents"]
        assert [c.order for c in updated.cards] == [0, 1, 2]

    def test_boundaries_are_no_ops(self, form):
        """Test moving past either end does nothing."""
        assert move_card(form, form.cards[0].id, "up") is form
        assert move_card(form, form.cards[-1].id, "down") is form

    def test_cannot_cross_card_types(self, form):
        """Test normal and document cards never swap."""
        assert move_card(form, form.cards[1].id, "down") is form
        assert move_card(form, form.cards[2].id, "up") is form

    def test_invalid_direction(self, form):
        """Test unknown directions are rejected."""
        assert move_card(form, form.cards[0].id, "left") is form

    def test_document_cards_stay_last_after_any_moves(self, form):
        """Test every move sequence keeps document cards after normal cards."""
        form = add_card(form, "Education")
        form = add_card(form, "Certificates", CardType.DOCUMENT)
        moves = list(itertools.product(range(len(form.cards)), ("up", "down")))

        for sequence in itertools.product(moves, repeat=3):
            current = form
            for index, direction in sequence:
                current = move_card(current, current.cards[index].id, direction)
                assert cards_in_valid_order(current)
                last_normal = max(c.order for c in current.cards if not c.is_document_card)
                first_document = min(c.order for c in current.cards if c.is_document_card)
                assert last_normal < first_document


class TestUpdateCard:
    """Tests for updating cards."""

    def test_update_keeps_position(self, form):
        """Test a card is replaced in place."""
        card = form.cards[1].model_copy(update={"title": "Home Address"})
        updated = update_card(form, card)
        assert updated.cards[1].title == "Home Address"
        assert updated.cards[1].order == 1

    def test_type_change_rejected(self, form):
        """Test a card cannot change between normal and document."""
        card = form.cards[0].model_copy(update={"card_type": CardType.DOCUMENT})
        assert update_card(form, card) is form

    def test_unknown_card(self, form):
        """Test updating a missing card."""
        assert update_card(form, CardTemplate(title="Ghost")) is form

    def test_document_card_rejects_other_tables(self, form):
        """Test a document card cannot be saved holding profile fields."""
        card = form.cards[2]
        email = FieldInstance(
            field_id="personal_details_email",
            table_name="personal_details",
            column_name="email",
            display_name="Email",
        )
        assert update_card(form, card.model_copy(update={"fields": card.fields + [email]})) is form

    def test_normal_card_rejects_document_fields(self, form):
        """Test a normal card cannot be saved holding documents-table fields."""
        card = form.cards[0].model_copy(update={"fields": [document_field("photo")]})
        assert update_card(form, card) is form

    def test_protected_table_fields_rejected(self, form):
        """Test system tables cannot be smuggled in through an update."""
        template_field = FieldInstance(
            field_id="form_templates_name",
            table_name="form_templates",
            column_name="name",
            display_name="Name",
        )
        card = form.cards[0].model_copy(update={"fields": [template_field]})
        assert update_card(form, card) is form

    def test_matching_fields_accepted(self, form):
        """Test a document card may gain more document fields."""
        card = form.cards[2]
        card = card.model_copy(update={"fields": card.fields + [document_field("photo")]})
        updated = update_card(form, card)
        assert [f.column_name for f in updated.cards[2].fields] == ["aadhar_card", "photo"]
        assert [f.order for f in updated.cards[2].fields] == [0, 1]


class TestFields:
    """Tests for adding, removing and moving fields."""

    def test_add_palette_field(self, form):
        """Test a palette field becomes a field instance."""
        field = palette_field(
            "personal_details", "email",
            constraints=FieldConstraints(is_required=True, max_length=120),
        )
        updated = add_field_to_card(form, form.cards[0].id, field)
        instance = updated.cards[0].fields[0]
        assert instance.field_key == "personal_details.email"
        assert instance.field_id == "personal_details_email"
        assert instance.is_required
        assert instance.validation.max_length == 120
        assert instance.placeholder == "Enter email"
        assert instance.enable_copy

    def test_system_fields_are_readonly(self, form):
        """Test system palette fields are read-only."""
        field = palette_field(
            "personal_details", "created_at", metadata=FieldMetadata(is_system_field=True)
        )
        instance = add_field_to_card(form, form.cards[0].id, field).cards[0].fields[0]
        assert instance.is_readonly
        assert not instance.enable_copy

    def test_protected_tables_rejected(self, form):
        """Test system tables can never be placed on a form."""
        for table in ("form_templates", "column_metadata"):
            assert add_field_to_card(form, form.cards[0].id, palette_field(table, "name")) is form

    def test_document_card_only_accepts_document_fields(self, form):
        """Test card and field kinds must agree."""
        document_card = form.cards[2].id
        assert add_field_to_card(form, document_card, palette_field("personal_details", "email")) is form
        assert add_field_to_card(form, form.cards[0].id, palette_field("documents", "photo")) is form

        updated = add_field_to_card(form, document_card, palette_field("documents", "photo"))
        assert [f.column_name for f in updated.cards[2].fields] == ["aadhar_card", "photo"]

    def test_field_orders_are_dense(self, form):
        """Test fields are re-ranked after removal."""
        card_id = form.cards[0].id
        for column in ("first_name", "last_name", "email"):
            form = add_field_to_card(form, card_id, palette_field("personal_details", column))
        middle = form.cards[0].fields[1].id

        updated = remove_field(form, card_id, middle)
        assert [(f.column_name, f.order) for f in updated.cards[0].fields] == [
            ("first_name", 0), ("email", 1)
        ]
        assert remove_field(form, card_id, "field_missing") is form

    def test_move_field(self, form):
        """Test moving a field within its card."""
        card_id = form.cards[0].id
        for column in ("first_name", "email"):
            form = add_field_to_card(form, card_id, palette_field("personal_details", column))
        first = form.cards[0].fields[0].id

        updated = move_field(form, card_id, first, "down")
        assert [f.column_name for f in updated.cards[0].fields] == ["email", "first_name"]
        assert move_field(form, card_id, first, "up") is form


class TestEnsureDocumentCardsLast:
    """Tests for normalizing loaded templates."""

    def test_reorders_loaded_template(self):
        """Test a template with misplaced document cards is fixed."""
        form = FormTemplate(
            name="Loaded",
            cards=[
                CardTemplate(title="Docs", card_type=CardType.DOCUMENT, order=0),
                CardTemplate(title="Personal", order=1),
            ],
        )
        fixed = ensure_document_cards_last(form)
        assert [c.title for c in fixed.cards] == ["Personal", "Docs"]
        assert [c.order for c in fixed.cards] == [0, 1]

    def test_valid_template_unchanged(self, form):
        """Test a valid template is returned as is."""
        assert ensure_document_cards_last(form) is form


class FakeFormsClient:
    """Records designer calls to the forms endpoints."""

    def __init__(self, document_fields=()):
        self.document_fields = list(document_fields)
        self.created: list[FormTemplate] = []
        self.updated: list[FormTemplate] = []
        self.document_field_calls = 0

    async def get_document_fields(self):
        self.document_field_calls += 1
        return self.document_fields

    async def create_form(self, form):
        self.created.append(form)
        return form.model_copy(update={"id": "form_saved"})

    async def update_form(self, form):
        self.updated.append(form)
        return form


class TestFormDesigner:
    """Tests for the FormDesigner session wrapper."""

    def test_tracks_unsaved_changes(self):
        """Test applied edits mark the designer dirty."""
        designer = FormDesigner()
        assert not designer.has_unsaved_changes
        assert designer.add_card("Personal")
        assert designer.has_unsaved_changes

    def test_rejected_edit_returns_false(self):
        """Test a rejected edit leaves state alone."""
        designer = FormDesigner()
        designer.add_card("Personal")
        before = designer.form
        assert not designer.move_card(before.cards[0].id, "up")
        assert designer.form is before

    def test_loaded_form_is_normalized(self):
        """Test opening a stored template puts document cards last."""
        form = FormTemplate(
            name="Stored",
            cards=[CardTemplate(title="Docs", card_type=CardType.DOCUMENT), CardTemplate(title="A")],
        )
        designer = FormDesigner(form)
        assert [c.title for c in designer.form.cards] == ["A", "Docs"]

    def test_rename(self):
        """Test renaming the template."""
        designer = FormDesigner()
        assert designer.rename("Admission 2026", "Undergraduate intake")
        assert designer.form.name == "Admission 2026"
        assert not designer.rename("Admission 2026", "Undergraduate intake")

    @pytest.mark.asyncio
    async def test_document_fields_fetched_once(self):
        """Test document fields are cached for the session."""
        client = FakeFormsClient([document_field("aadhar_card")])
        designer = FormDesigner()
        await designer.load_document_fields(client)
        await designer.load_document_fields(client)
        assert client.document_field_calls == 1

        designer.add_card(None, CardType.DOCUMENT)
        assert [f.column_name for f in designer.form.cards[0].fields] == ["aadhar_card"]

    @pytest.mark.asyncio
    async def test_early_document_card_filled_on_load(self):
        """Test a document card added before the fields arrive is filled later."""
        client = FakeFormsClient([document_field("aadhar_card"), document_field("photo")])
        designer = FormDesigner()
        assert designer.add_card(None, CardType.DOCUMENT)
        assert designer.form.cards[0].fields == []

        await designer.load_document_fields(client)

        card = designer.form.cards[0]
        assert [f.column_name for f in card.fields] == ["aadhar_card", "photo"]
        assert [f.order for f in card.fields] == [0, 1]
        assert designer.has_unsaved_changes

    @pytest.mark.asyncio
    async def test_filled_document_cards_left_alone(self, form):
        """Test document cards that already have fields are not touched."""
        designer = FormDesigner(form)
        await designer.load_document_fields(FakeFormsClient([document_field("photo")]))
        assert [f.column_name for f in designer.form.cards[2].fields] == ["aadhar_card"]
        assert not designer.has_unsaved_changes

    @pytest.mark.asyncio
    async def test_save_creates_then_updates(self):
        """Test the first save creates and later saves update."""
        client = FakeFormsClient()
        designer = FormDesigner()
        designer.add_card("Personal")

        saved = await designer.save(client)
        assert saved.id == "form_saved"
        assert not designer.has_unsaved_changes
        assert len(client.created) == 1

        designer.add_card("Address")
        await designer.save(client)
        assert len(client.updated) == 1
        assert client.updated[0].id == "form_saved"
