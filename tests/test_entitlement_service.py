import threading

import pytest

from eduvox.services import entitlement_service as es
from eduvox.services.entitlement_service import (
    UNLIMITED,
    Action,
    EntitlementContext,
    UnknownActionError,
    can_perform,
    remaining,
    track_usage,
)

COUNTED_ACTIONS = [
    Action.GENERATE_PATHWAY,
    Action.USE_UNIGUIDE_PRO,
    Action.COMPARE_UNIVERSITIES,
    Action.EXPORT_PDF,
]


@pytest.mark.parametrize("tier", ["free", "premium", "pro"])
@pytest.mark.parametrize("action", COUNTED_ACTIONS)
@pytest.mark.parametrize("limit,used", [(0, 0), (3, 2), (3, 3), (3, 7), (UNLIMITED, 0), (UNLIMITED, 999)])
def test_numeric_check_matches_limit_rule(tier, action, limit, used):
    allowed = can_perform(action.value, tier, {action.value: limit}, {action.value: used})

    assert allowed == (limit == UNLIMITED or used < limit)


def test_store_field_names_are_used_for_limits_and_usage():
    limits = es.complete_limits("free")
    usage = {"pathwaysGenerated": 1}

    assert can_perform(Action.GENERATE_PATHWAY, "free", limits, usage) is False
    assert can_perform(Action.GENERATE_PATHWAY, "free", limits, {"pathwaysGenerated": 0}) is True


@pytest.mark.parametrize("limit", [0, 1, 50, UNLIMITED, "unlimited"])
def test_my_study_path_forbidden_on_free_regardless_of_limit(limit):
    assert can_perform("useMyStudyPath", "free", {"myStudyPathUsage": limit}, {"myStudyPathUsage": 0}) is False


@pytest.mark.parametrize("tier", ["premium", "pro"])
def test_my_study_path_allowed_on_paid_tiers_even_with_zero_limit(tier):
    assert can_perform("useMyStudyPath", tier, {"myStudyPathUsage": 0}, {"myStudyPathUsage": 12}) is True
    assert remaining("useMyStudyPath", tier, {"myStudyPathUsage": 0}, {"myStudyPathUsage": 12}) == UNLIMITED


def test_export_pdf_concrete_cases():
    assert can_perform("exportPdf", "free", {"pdfExports": 0}, {"pdfExports": 0}) is False
    assert can_perform("exportPdf", "pro", {"pdfExports": UNLIMITED}, {"pdfExports": 999}) is True


@pytest.mark.parametrize("action", COUNTED_ACTIONS)
def test_remaining_is_non_increasing_as_usage_grows(action):
    limits = {action.value: 5}
    values = [remaining(action, "free", limits, {action.value: used}) for used in range(0, 9)]

    assert values == sorted(values, reverse=True)
    assert values[0] == 5
    assert values[-1] == 0


def test_remaining_is_unlimited_for_unlimited_limit():
    assert remaining("compareUniversities", "pro", {"universityComparisons": UNLIMITED}, {"universityComparisons": 40}) == UNLIMITED


def test_loading_phase_paid_tier_is_optimistic_for_counted_actions():
    assert can_perform("exportPdf", "premium", None, None) is True
    assert remaining("exportPdf", "premium", None, None) == UNLIMITED


@pytest.mark.parametrize("tier", ["free", "premium", "pro"])
def test_loading_phase_denies_capability_flags(tier):
    assert can_perform("useAdvancedFilters", tier, None, None) is False
    assert can_perform("viewAnalytics", tier, None, None) is False


def test_loading_phase_free_tier_uses_fallback_limits_with_partial_usage():
    assert can_perform("useUniGuidePro", "free", None, {"uniGuideProUsage": 4}) is True
    assert can_perform("useUniGuidePro", "free", None, {"uniGuideProUsage": 5}) is False
    assert remaining("useUniGuidePro", "free", None, {"uniGuideProUsage": 4}) == 1
    assert can_perform("exportPdf", "free", None, None) is False
    assert can_perform("useMyStudyPath", "free", None, None) is False


def test_loading_phase_reads_action_name_usage_keys_like_the_loaded_phase():
    usage = {"useUniGuidePro": 5}

    assert can_perform("useUniGuidePro", "free", {"useUniGuidePro": 5}, usage) is False
    assert can_perform("useUniGuidePro", "free", None, usage) is False
    assert remaining("useUniGuidePro", "free", None, {"useUniGuidePro": 3}) == 2


def test_field_name_keys_win_over_action_name_keys():
    usage = es.complete_usage({"pdfExports": 1, "exportPdf": 7, "compareUniversities": 2})

    assert usage["pdfExports"] == 1
    assert usage["universityComparisons"] == 2
    assert es.complete_limits("free", {"compareUniversities": 10})["universityComparisons"] == 10


def test_capability_flags_follow_plan_limits():
    assert can_perform("useAdvancedFilters", "premium", es.complete_limits("premium"), es.zero_usage()) is True
    assert can_perform("viewAnalytics", "premium", es.complete_limits("premium"), es.zero_usage()) is False
    assert can_perform("viewAnalytics", "pro", es.complete_limits("pro"), es.zero_usage()) is True


def test_unknown_action_raises():
    with pytest.raises(UnknownActionError):
        can_perform("teleport", "free", {}, {})


def test_unknown_plan_tier_is_treated_as_free():
    limits = es.complete_limits("platinum")

    assert limits == es.PLAN_LIMITS["free"]
    assert can_perform("exportPdf", "platinum", limits, es.zero_usage()) is False


def test_complete_usage_defaults_missing_counters_to_zero():
    usage = es.complete_usage({"pdfExports": 2, "unrelated": 9})

    assert usage["pdfExports"] == 2
    assert usage["pathwaysGenerated"] == 0
    assert "unrelated" not in usage
    assert set(usage) == set(es.USAGE_FIELDS)


def test_every_plan_tier_has_a_complete_limit_set():
    expected = set(es.COUNTED_LIMIT_FIELDS) | set(es.FLAG_LIMIT_FIELDS)
    for limits in es.PLAN_LIMITS.values():
        assert set(limits) == expected


def test_context_snapshot_and_decision_payload():
    context = EntitlementContext(user_id="u1")
    assert context.can_perform("exportPdf") is False

    context.apply_snapshot({"planId": "premium", "usage": {"universityComparisons": 9}}, now_ts=10.0)

    assert context.loaded is True
    assert context.plan_tier == "premium"
    assert context.decide("compareUniversities").to_dict() == {"allowed": True, "remaining": 1}
    assert context.decide("exportPdf").to_dict() == {"allowed": True, "remaining": "unlimited"}
    summary = context.summary()
    assert summary["actions"]["viewAnalytics"]["allowed"] is False


def test_track_usage_increments_remote_and_local_counters():
    calls = []
    context = EntitlementContext(user_id="u1").apply_snapshot({"planId": "free"}, now_ts=1.0)

    ok = track_usage(context, "compareUniversities", increment_usage=lambda uid, field: calls.append((uid, field)))

    assert ok is True
    assert calls == [("u1", "universityComparisons")]
    assert context.usage["universityComparisons"] == 1
    assert context.remaining("compareUniversities") == 2


def test_track_usage_reports_store_failure_as_false():
    def _failing_increment(_uid, _field):
        raise RuntimeError("store offline")

    context = EntitlementContext(user_id="u1").apply_snapshot({"planId": "free"}, now_ts=1.0)

    assert track_usage(context, "generatePathway", increment_usage=_failing_increment) is False
    assert context.usage["pathwaysGenerated"] == 0


def test_track_usage_without_user_or_for_flags_is_a_no_op():
    calls = []

    assert track_usage(None, "exportPdf", increment_usage=lambda *args: calls.append(args)) is False
    assert track_usage(EntitlementContext(user_id=""), "exportPdf", increment_usage=lambda *args: calls.append(args)) is False
    context = EntitlementContext(user_id="u1").apply_snapshot({"planId": "pro"}, now_ts=1.0)
    assert track_usage(context, "viewAnalytics", increment_usage=lambda *args: calls.append(args)) is False
    assert calls == []


def test_concurrent_tracking_keeps_every_local_increment():
    context = EntitlementContext(user_id="u1").apply_snapshot({"planId": "pro"}, now_ts=1.0)

    def _track_many():
        for _ in range(200):
            track_usage(context, "compareUniversities", increment_usage=lambda _uid, _field: None)

    workers = [threading.Thread(target=_track_many) for _ in range(8)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    assert context.usage["universityComparisons"] == 1600
