"""
Offset disambiguation and record-building tests. These exercise the pure
helpers without a CRM.
"""

from unittest.mock import MagicMock

from formactions.core.outputs import ActionOutputStore
from formactions.core.relationships import (
    fill_relationship,
    new_relationship,
    prior_relationships_for,
    related_slot_matches,
    relationship_offset,
    select_by_offset,
    select_current_employer,
)
from formactions.core.schema import Relationship, RelationshipSpec


def _spec(type_id=1, direction="ab", **kwargs):
    inverse = {"ab": "ba", "ba": "ab"}.get(direction, "equal")
    return RelationshipSpec(
        related_action_name="related",
        relationship_type=f"{type_id}_{direction}",
        relationship_type_id=type_id,
        direction=direction,
        inverse=inverse,
        **kwargs
    )


class TestRelationshipOffset:
    """Test counting prior Relationships to the same related Contact."""

    def test_counts_same_type_and_slot(self):
        prior = [
            Relationship(1, contact_id_a=10, contact_id_b=99, id=1),
            Relationship(1, contact_id_a=11, contact_id_b=99, id=2),
            Relationship(2, contact_id_a=12, contact_id_b=99, id=3),
            Relationship(1, contact_id_a=13, contact_id_b=50, id=4),
        ]

        assert relationship_offset(prior, 1, 99, "ba") == 2

    def test_slot_must_match_inverse(self):
        prior = [Relationship(1, contact_id_a=99, contact_id_b=10, id=1)]

        assert relationship_offset(prior, 1, 99, "ba") == 0
        assert relationship_offset(prior, 1, 99, "ab") == 1

    def test_equal_counts_either_side(self):
        prior = [
            Relationship(3, contact_id_a=99, contact_id_b=10, id=1),
            Relationship(3, contact_id_a=11, contact_id_b=99, id=2),
        ]

        assert relationship_offset(prior, 3, 99, "equal") == 2

    def test_unsaved_relationship_counts_by_related_slot(self):
        prior = [Relationship(1, contact_id_a=None, contact_id_b=99)]

        assert relationship_offset(prior, 1, 99, "ba") == 1

    def test_related_slot_matches(self):
        rel = Relationship(1, contact_id_a=5, contact_id_b=6)

        assert related_slot_matches(rel, 5, "ab")
        assert related_slot_matches(rel, 6, "ba")
        assert related_slot_matches(rel, 6, "equal")
        assert not related_slot_matches(rel, 5, "ba")

    def test_select_by_offset(self):
        discovered = [Relationship(1, id=1), Relationship(1, id=2)]

        assert select_by_offset(discovered, 1).id == 2
        assert select_by_offset(discovered, 2) is None
        assert select_by_offset([], 0) is None


class TestPriorRelationships:
    """Test gathering Relationships recorded by earlier Actions."""

    def test_excludes_self_later_and_other_kinds(self):
        store = ActionOutputStore()
        store.record_output("first", "contact", {"relationship": [
            {"id": 1, "relationship_type_id": 1, "contact_id_a": 10, "contact_id_b": 99},
        ]}, order=0)
        store.record_output("me", "contact", {"relationship": [
            {"id": 2, "relationship_type_id": 1, "contact_id_a": 11, "contact_id_b": 99},
        ]}, order=1)
        store.record_output("visit", "case", {"relationship": [
            {"id": 3, "relationship_type_id": 1, "contact_id_a": 12, "contact_id_b": 99},
        ]}, order=0)
        store.record_output("later", "contact", {"relationship": [
            {"id": 4, "relationship_type_id": 1, "contact_id_a": 13, "contact_id_b": 99},
        ]}, order=5)

        prior = prior_relationships_for(store, "contact", "me", order=2)

        assert [r.id for r in prior] == [1]

    def test_skipped_action_contributes_nothing(self):
        store = ActionOutputStore()
        store.record_output("skipped", "contact", {"form_action": "contact", "name": "skipped"}, order=0)

        assert prior_relationships_for(store, "contact", "me", order=1) == []


class TestEmployerOverride:
    """Test selecting the current Employer/Employee record."""

    def test_picks_current_record(self):
        crm = MagicMock()
        crm.is_current_employer.side_effect = lambda r: r.id == 2
        discovered = [Relationship(5, id=1), Relationship(5, id=2)]

        chosen = select_current_employer(discovered, _spec(5, is_current_employee=True), crm, 5)

        assert chosen.id == 2

    def test_ignored_without_current_flag(self):
        crm = MagicMock()
        discovered = [Relationship(5, id=1)]

        assert select_current_employer(discovered, _spec(5), crm, 5) is None
        crm.is_current_employer.assert_not_called()

    def test_ignored_for_other_types(self):
        crm = MagicMock()

        assert select_current_employer([Relationship(1, id=1)], _spec(1, is_current_employer=True), crm, 5) is None


class TestBuildingRecords:
    """Test filling matched records and building new ones."""

    def test_fill_incoming_non_empty_wins(self):
        existing = Relationship(1, contact_id_a=10, contact_id_b=99, id=7,
                                attributes={"description": "old", "start_date": "2020-01-01"})
        spec = _spec(1, attributes={"description": "new", "start_date": "", "end_date": None})

        filled = fill_relationship(existing, spec)

        assert filled.id == 7
        assert filled.attributes["description"] == "new"
        assert filled.attributes["start_date"] == "2020-01-01"
        assert filled.attributes["end_date"] is None
        assert existing.attributes["description"] == "old"

    def test_fill_marks_current_employer(self):
        existing = Relationship(5, contact_id_a=10, contact_id_b=20, id=3)

        filled = fill_relationship(existing, _spec(5, is_current_employer=True), employer_type_id=5)

        assert filled.is_current_employer is True

    def test_new_relationship_slots(self):
        # Declared 'ab': this Contact is A, so the related Contact is B
        rel = new_relationship(_spec(1, "ab"), related_contact_id=99, contact_id=10)
        assert (rel.contact_id_a, rel.contact_id_b) == (10, 99)

        rel = new_relationship(_spec(1, "ba"), related_contact_id=99, contact_id=10)
        assert (rel.contact_id_a, rel.contact_id_b) == (99, 10)

        rel = new_relationship(_spec(3, "equal"), related_contact_id=99, contact_id=10)
        assert (rel.contact_id_a, rel.contact_id_b) == (10, 99)

    def test_new_relationship_without_contact(self):
        rel = new_relationship(_spec(1, "ab", attributes={"description": "x", "end_date": ""}), 99)

        assert rel.id is None
        assert rel.contact_id_a is None
        assert rel.contact_id_b == 99
        assert rel.attributes == {"description": "x"}
