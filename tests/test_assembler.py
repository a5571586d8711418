"""Tests for the result assembler."""

from spatial_query.assembler import ResultAssembler
from spatial_query.models import EvaluatedFeature, RawFeature


def _feature(fid, miles, containing=False, name=None):
    return EvaluatedFeature(
        id=fid,
        layer_key="test",
        raw=RawFeature(attributes={"OBJECTID": fid}, geometry=None),
        properties={"name": name or fid},
        distance_miles=miles,
        is_containing=containing
    )


# =============================================================================
# Test: Deduplication
# =============================================================================


class TestDeduplication:
    """Tests for id-keyed merging."""

    def test_containing_entry_beats_later_proximity_duplicate(self):
        assembler = ResultAssembler(capped_miles=10)
        assembler.add(_feature("1", 0.0, containing=True))
        assert not assembler.add(_feature("1", 0.0, containing=False))

        result = assembler.assemble()
        assert len(result) == 1
        assert result[0].is_containing

    def test_containing_entry_replaces_earlier_proximity_entry(self):
        assembler = ResultAssembler(capped_miles=10)
        assembler.add(_feature("1", 2.0))
        assert assembler.add(_feature("1", 0.0, containing=True))

        result = assembler.assemble()
        assert len(result) == 1
        assert result[0].is_containing
        assert result[0].distance_miles == 0.0

    def test_first_proximity_duplicate_wins(self):
        assembler = ResultAssembler(capped_miles=10)
        assembler.add(_feature("1", 2.0, name="first"))
        assembler.add(_feature("1", 1.0, name="second"))

        result = assembler.assemble()
        assert [f.properties["name"] for f in result] == ["first"]

    def test_containing_ids(self):
        assembler = ResultAssembler(capped_miles=10)
        assembler.add_all([_feature("1", 0.0, True), _feature("2", 3.0)])
        assert assembler.containing_ids() == {"1"}
        assert "2" in assembler
        assert len(assembler) == 2


# =============================================================================
# Test: Ordering & Cap
# =============================================================================


class TestOrdering:
    """Tests for final ordering and the radius cap."""

    def test_containing_first_then_ascending_distance(self):
        assembler = ResultAssembler(capped_miles=10)
        assembler.add_all([
            _feature("a", 5.0),
            _feature("b", 0.0, containing=True),
            _feature("c", 1.0),
            _feature("d", 0.0, containing=True),
            _feature("e", 3.0),
        ])

        result = assembler.assemble()
        assert [f.id for f in result] == ["b", "d", "c", "e", "a"]
        for a, b in zip(result, result[1:]):
            assert a.is_containing >= b.is_containing
            if a.is_containing == b.is_containing:
                assert a.distance_miles <= b.distance_miles

    def test_ties_keep_encounter_order(self):
        assembler = ResultAssembler(capped_miles=10)
        assembler.add_all([_feature("x", 2.0), _feature("y", 2.0), _feature("z", 2.0)])
        assert [f.id for f in assembler.assemble()] == ["x", "y", "z"]

    def test_cap_is_enforced(self):
        assembler = ResultAssembler(capped_miles=2.5)
        added = assembler.add_all([_feature("near", 2.5), _feature("far", 2.6)])

        assert added == 1
        assert [f.id for f in assembler.assemble()] == ["near"]

    def test_containing_kept_with_zero_radius(self):
        assembler = ResultAssembler(capped_miles=0)
        assembler.add(_feature("1", 0.0, containing=True))
        assert len(assembler.assemble()) == 1
