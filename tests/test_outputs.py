"""
Action output store and reference resolver tests.
"""

import pytest

from formactions.core.outputs import ActionOutputStore, ReferenceResolver, NOT_FOUND


@pytest.fixture
def store():
    return ActionOutputStore()


@pytest.fixture
def resolver(store):
    return ReferenceResolver(store)


class TestActionOutputStore:
    """Test recording and looking up Action outputs."""

    def test_record_and_get(self, store):
        store.record_output("parent", "contact", {"contact": {"id": 7}})

        assert store.get_output("parent") == {"contact": {"id": 7}}
        assert "parent" in store
        assert len(store) == 1

    def test_missing_output_is_not_found(self, store):
        assert store.get_output("nobody") is NOT_FOUND
        assert not store.get_output("nobody")

    def test_kind_mismatch_is_not_found(self, store):
        store.record_output("intake", "activity", {"activity": {"id": 3}})

        assert store.get_output("intake", "contact") is NOT_FOUND
        assert store.get_output("intake", "activity") == {"activity": {"id": 3}}

    def test_empty_name_rejected(self, store):
        with pytest.raises(ValueError):
            store.record_output("", "contact", {})

    def test_rerecord_overwrites_and_moves_to_end(self, store):
        store.record_output("a", "contact", {"contact": {"id": 1}}, order=0)
        store.record_output("b", "contact", {"contact": {"id": 2}}, order=1)
        store.record_output("a", "contact", {"contact": {"id": 3}}, order=2)

        names = [o.name for o in store.outputs()]
        assert names == ["b", "a"]
        assert store.get_output("a") == {"contact": {"id": 3}}

    def test_outputs_filtered_by_kind(self, store):
        store.record_output("a", "contact", {})
        store.record_output("b", "case", {})

        assert [o.name for o in store.outputs("case")] == ["b"]

    def test_clear(self, store):
        store.record_output("a", "contact", {})
        store.clear()

        assert len(store) == 0


class TestReferenceResolver:
    """Test resolving entities by Action name."""

    def test_contact_id_resolves(self, store, resolver):
        store.record_output("parent", "contact", {"contact": {"id": "12"}})

        assert resolver.contact_id("parent") == 12

    def test_reference_before_output_is_unresolved(self, store, resolver):
        """Order matters: a later Action's output is not visible yet."""
        assert resolver.contact_id("later") is None

        store.record_output("later", "contact", {"contact": {"id": 4}})
        assert resolver.contact_id("later") == 4

    def test_skipped_action_resolves_to_nothing(self, store, resolver):
        store.record_output("skipped", "contact", {"form_action": "contact", "name": "skipped"})

        assert resolver.get_entity("skipped", "contact") is NOT_FOUND
        assert resolver.contact_id("skipped") is None

    def test_wrong_kind_resolves_to_nothing(self, store, resolver):
        store.record_output("visit", "case", {"case": {"id": 9}})

        assert resolver.contact_id("visit") is None
        assert resolver.case_id("visit") == 9

    def test_participant_id(self, store, resolver):
        store.record_output("reg", "participant", {"participant": {"id": 21}})

        assert resolver.participant_id("reg") == 21
