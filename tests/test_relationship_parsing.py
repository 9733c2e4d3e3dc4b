"""
Relationship declaration parsing tests.
"""

import pytest

from formactions.api.schemas import ActionDefinition, ActionSettings, RelationshipDeclaration
from formactions.core.mapping import TagMapper
from formactions.core.relationships import (
    build_relationship_specs,
    inverse_direction,
    parse_relationship_spec,
    parse_relationship_type,
)
from formactions.core.schema import RelationshipSpec


class TestRelationshipTypeToken:
    """Test `{type_id}_{direction}` parsing."""

    @pytest.mark.parametrize("token,expected", [
        ("5_ab", (5, "ab")),
        ("1_ba", (1, "ba")),
        ("12_equal", (12, "equal")),
    ])
    def test_valid_tokens(self, token, expected):
        assert parse_relationship_type(token) == expected

    @pytest.mark.parametrize("token", ["", "5", "x_ab", "5_xy", "0_ab", None, 5])
    def test_malformed_tokens(self, token):
        assert parse_relationship_type(token) is None

    def test_inverse_direction(self):
        assert inverse_direction("ab") == "ba"
        assert inverse_direction("ba") == "ab"
        assert inverse_direction("equal") == "equal"


class TestRelationshipSpec:
    """Test normalizing a declaration into a RelationshipSpec."""

    def test_spec_from_declaration(self):
        declaration = RelationshipDeclaration(
            relationship_action_ref="parent",
            relationship_type="1_ab",
            fields={"description": "{field:rel_note}", "start_date": "2024-01-01"},
            is_current_employee="{field:current}",
        )

        spec = parse_relationship_spec(declaration, 2, TagMapper(), {"rel_note": "adopted", "current": "1"})

        assert spec.related_action_name == "parent"
        assert spec.relationship_type_id == 1
        assert spec.direction == "ab"
        assert spec.inverse == "ba"
        assert spec.attributes == {"description": "adopted", "start_date": "2024-01-01"}
        assert spec.is_current_employee is True
        assert spec.is_current
        assert spec.position == 2

    def test_flag_zero_is_false(self):
        declaration = RelationshipDeclaration(
            relationship_action_ref="org", relationship_type="5_ab", is_current_employer="0"
        )

        spec = parse_relationship_spec(declaration, 0, TagMapper(), {})

        assert spec.is_current is False

    def test_declaration_without_reference_is_skipped(self):
        declaration = RelationshipDeclaration(relationship_type="1_ab")

        assert parse_relationship_spec(declaration, 0, TagMapper(), {}) is None

    def test_declaration_without_type_is_skipped(self):
        declaration = RelationshipDeclaration(relationship_action_ref="parent")

        assert parse_relationship_spec(declaration, 0, TagMapper(), {}) is None

    def test_mismatched_inverse_rejected(self):
        with pytest.raises(ValueError):
            RelationshipSpec(
                related_action_name="x",
                relationship_type="1_ab",
                relationship_type_id=1,
                direction="ab",
                inverse="ab",
            )


class TestBuildRelationshipSpecs:
    """Test parsing every declaration of an Action."""

    def test_keeps_authoring_order_and_positions(self):
        action = ActionDefinition(name="child", kind="contact", relationship=[
            RelationshipDeclaration(relationship_action_ref="mum", relationship_type="1_ab"),
            RelationshipDeclaration(relationship_action_ref="", relationship_type="1_ab"),
            RelationshipDeclaration(relationship_action_ref="dad", relationship_type="1_ab"),
        ])

        specs = build_relationship_specs(action, TagMapper(), {})

        assert [s.related_action_name for s in specs] == ["mum", "dad"]
        assert [s.position for s in specs] == [0, 2]

    def test_submitter_contact_has_no_relationships(self):
        action = ActionDefinition(
            name="me",
            kind="contact",
            settings=ActionSettings(submitting_contact=True),
            relationship=[RelationshipDeclaration(relationship_action_ref="mum", relationship_type="1_ab")],
        )

        assert build_relationship_specs(action, TagMapper(), {}) == []
