"""
Tests for segment reconciliation and merge policies.
"""

import pytest

from scene_filter.error_handler import InvalidPolicyError
from scene_filter.segments import (
    MergePolicy,
    Segment,
    SegmentType,
    SourceType,
    cap_recent,
    merge_into,
    reconcile,
    resolve_policy,
)


def seg(start, end, segment_type=SegmentType.SEXUAL, source_type=SourceType.MANUAL, **kwargs):
    return Segment(start, end, segment_type, source_type, **kwargs)


class TestReconcile:
    """Tests for the per-movie multi-source merge."""

    def test_sorted_union(self):
        remote = [seg(50, 60, source_type=SourceType.COMMUNITY, confidence_score=80, confirmations=3, votes_up=3)]
        user = [seg(10, 20)]
        ai = [seg(30, 35, SegmentType.NUDITY, SourceType.LOCAL_AI, confidence_score=45)]

        merged = reconcile(remote, user, ai)

        assert [s.start for s in merged] == [10, 30, 50]
        assert [s.effective_confidence for s in merged] == [95, 40, 80 + 9 + 6]

    def test_first_occurrence_wins_on_identical_key(self):
        remote = [seg(10, 20, source="remote", confidence_score=90)]
        user = [seg(10, 20, source="user", confidence_score=60)]

        merged = reconcile(remote, user, [])

        assert len(merged) == 1
        assert merged[0].source == "remote"

    def test_different_source_types_both_kept(self):
        merged = reconcile([], [seg(10, 20)], [seg(10, 20, source_type=SourceType.LOCAL_AI)])
        assert len(merged) == 2

    def test_ignored_segments_dropped(self):
        remote = [seg(10, 20, source_type=SourceType.COMMUNITY, votes_up=1, votes_down=5)]
        assert reconcile(remote, [], []) == []

    def test_no_duplicate_ids(self):
        user = [seg(10, 20), seg(10, 20), seg(30, 40)]
        merged = reconcile(user, user, user)
        ids = [s.segment_id for s in merged]
        assert len(ids) == len(set(ids)) == 2

    def test_deterministic(self):
        remote = [seg(50, 60, source_type=SourceType.COMMUNITY, confidence_score=80, votes_up=2)]
        user = [seg(10, 20), seg(10, 20)]
        ai = [seg(30, 35, SegmentType.NUDITY, SourceType.LOCAL_AI, confidence_score=45)]

        assert reconcile(remote, user, ai) == reconcile(remote, user, ai)

    def test_idempotent_on_own_output(self):
        remote = [
            seg(50, 60, source_type=SourceType.COMMUNITY, confidence_score=80, confirmations=1),
            seg(70, 80, source_type=SourceType.COMMUNITY, votes_up=1, votes_down=4),
        ]
        user = [seg(10, 20), seg(10, 20), seg(5, 8, SegmentType.NUDITY)]
        ai = [seg(30, 35, SegmentType.NUDITY, SourceType.LOCAL_AI, confidence_score=45)]

        first = reconcile(remote, user, ai)
        second = reconcile(first, [], [])

        assert second == first
        assert reconcile(first, first, first) == first


class TestMergeInto:
    """Tests for import/update merge policies."""

    def test_equal_segment_is_skipped(self):
        summary = merge_into([seg(10, 20)], [seg(10.005, 20.0)], MergePolicy.KEEP_BOTH)
        assert summary.counts() == {"added": 0, "replaced": 0, "skipped": 1}
        assert len(summary.segments) == 1

    def test_prefer_existing_skips_conflicts(self):
        summary = merge_into([seg(10, 20)], [seg(15, 25)], MergePolicy.PREFER_EXISTING)
        assert summary.counts() == {"added": 0, "replaced": 0, "skipped": 1}
        assert [(s.start, s.end) for s in summary.segments] == [(10, 20)]

    def test_prefer_imported_replaces_all_conflicts(self):
        existing = [seg(10, 20), seg(22, 30), seg(40, 50)]
        summary = merge_into(existing, [seg(15, 25)], MergePolicy.PREFER_IMPORTED)

        assert summary.counts() == {"added": 1, "replaced": 2, "skipped": 0}
        assert [(s.start, s.end) for s in summary.segments] == [(15, 25), (40, 50)]

    def test_keep_both_keeps_overlap(self):
        summary = merge_into([seg(10, 20)], [seg(15, 25)], MergePolicy.KEEP_BOTH)
        assert summary.counts() == {"added": 1, "replaced": 0, "skipped": 0}
        assert len(summary.segments) == 2

    def test_other_type_never_conflicts(self):
        summary = merge_into([seg(10, 20)], [seg(15, 25, SegmentType.NUDITY)], MergePolicy.PREFER_EXISTING)
        assert summary.added == 1

    def test_incoming_checked_against_growing_base(self):
        incoming = [seg(10, 20), seg(15, 25)]
        summary = merge_into([], incoming, MergePolicy.PREFER_EXISTING)
        assert summary.counts() == {"added": 1, "replaced": 0, "skipped": 1}

    def test_result_is_sorted(self):
        summary = merge_into([seg(50, 60)], [seg(1, 2), seg(30, 31)], MergePolicy.KEEP_BOTH)
        assert [s.start for s in summary.segments] == [1, 30, 50]

    def test_existing_not_modified(self):
        existing = [seg(10, 20)]
        merge_into(existing, [seg(15, 25)], MergePolicy.PREFER_IMPORTED)
        assert existing == [seg(10, 20)]

    def test_policy_by_name(self):
        summary = merge_into([seg(10, 20)], [seg(15, 25)], "keep-both")
        assert summary.added == 1


class TestResolvePolicy:
    @pytest.mark.parametrize("name,expected", [
        ("prefer-existing", MergePolicy.PREFER_EXISTING),
        ("PREFER-IMPORTED", MergePolicy.PREFER_IMPORTED),
        (" keep-both ", MergePolicy.KEEP_BOTH),
        (MergePolicy.KEEP_BOTH, MergePolicy.KEEP_BOTH),
    ])
    def test_known_policies(self, name, expected):
        assert resolve_policy(name) == expected

    def test_unknown_policy_falls_back(self):
        assert resolve_policy("merge-everything") == MergePolicy.PREFER_EXISTING
        assert resolve_policy(None) == MergePolicy.PREFER_EXISTING

    def test_unknown_policy_strict(self):
        with pytest.raises(InvalidPolicyError):
            resolve_policy("merge-everything", strict=True)


class TestCapRecent:
    def test_keeps_last_entries(self):
        segments = [seg(i, i + 0.5) for i in range(10)]
        capped = cap_recent(segments, 3)
        assert [s.start for s in capped] == [7, 8, 9]

    def test_under_limit_unchanged(self):
        segments = [seg(1, 2)]
        assert cap_recent(segments, 300) == segments

    def test_zero_limit(self):
        assert cap_recent([seg(1, 2)], 0) == []
