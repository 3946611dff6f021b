"""
Unit tests for the segment model.
"""

import pytest

from scene_filter.segments.models import (
    Segment,
    ScoredSegment,
    SegmentType,
    SourceType,
    sort_segments,
)


class TestSegment:
    """Tests for Segment identity and interval predicates."""

    def test_segment_id(self):
        segment = Segment(10.0, 20.5, SegmentType.NUDITY, SourceType.COMMUNITY)
        assert segment.segment_id == "nudity|10.000|20.500|community"

    def test_duration(self):
        assert Segment(1.0, 3.5, SegmentType.SEXUAL).duration == 2.5

    def test_same_as_within_tolerance(self):
        a = Segment(10.0, 20.0, SegmentType.SEXUAL)
        b = Segment(10.005, 19.995, SegmentType.SEXUAL, SourceType.LOCAL_AI)
        assert a.same_as(b)
        assert b.same_as(a)

    def test_same_as_requires_type(self):
        a = Segment(10.0, 20.0, SegmentType.SEXUAL)
        b = Segment(10.0, 20.0, SegmentType.NUDITY)
        assert not a.same_as(b)

    def test_same_as_outside_tolerance(self):
        a = Segment(10.0, 20.0, SegmentType.SEXUAL)
        b = Segment(10.02, 20.0, SegmentType.SEXUAL)
        assert not a.same_as(b)

    def test_conflicts_on_overlap(self):
        a = Segment(10.0, 20.0, SegmentType.SEXUAL)
        b = Segment(15.0, 25.0, SegmentType.SEXUAL)
        assert a.conflicts_with(b)
        assert b.conflicts_with(a)

    def test_adjacent_segments_do_not_conflict(self):
        a = Segment(10.0, 20.0, SegmentType.SEXUAL)
        b = Segment(20.0, 25.0, SegmentType.SEXUAL)
        assert not a.conflicts_with(b)

    def test_different_types_do_not_conflict(self):
        a = Segment(10.0, 20.0, SegmentType.SEXUAL)
        b = Segment(15.0, 25.0, SegmentType.NUDITY)
        assert not a.conflicts_with(b)

    def test_to_dict_uses_plain_values(self):
        data = Segment(1.0, 2.0, SegmentType.NUDITY, SourceType.LOCAL_AI).to_dict()
        assert data["type"] == "nudity"
        assert data["source_type"] == "local_ai"
        assert "segment_id" not in data


class TestScoredSegment:
    """Tests for the scored variant."""

    def test_to_dict_includes_metrics(self):
        scored = ScoredSegment(1.0, 2.0, SegmentType.SEXUAL, effective_confidence=88)
        data = scored.to_dict()
        assert data["effective_confidence"] == 88
        assert data["ignored_by_trust"] is False
        assert data["segment_id"] == "sexual|1.000|2.000|manual"

    def test_without_metrics(self):
        scored = ScoredSegment(1.0, 2.0, SegmentType.SEXUAL, confirmations=4, effective_confidence=88)
        plain = scored.without_metrics()
        assert type(plain) is Segment
        assert plain.confirmations == 4
        assert plain == Segment(1.0, 2.0, SegmentType.SEXUAL, confirmations=4)


class TestSourceType:
    @pytest.mark.parametrize("source_type,expected", [
        (SourceType.MANUAL, 95),
        (SourceType.COMMUNITY, 80),
        (SourceType.LOCAL_AI, 45),
        (SourceType.BUNDLED, 95),
    ])
    def test_default_confidence(self, source_type, expected):
        assert source_type.default_confidence == expected


def test_sort_segments_by_start_then_end():
    segments = [
        Segment(5.0, 9.0, SegmentType.SEXUAL),
        Segment(1.0, 4.0, SegmentType.NUDITY),
        Segment(1.0, 2.0, SegmentType.SEXUAL),
    ]
    ordered = sort_segments(segments)
    assert [(s.start, s.end) for s in ordered] == [(1.0, 2.0), (1.0, 4.0), (5.0, 9.0)]
