import threading

import pytest

from conftest import COMPLETE_PROFILE, FakeTime

from eduvox.services import pathway_service
from eduvox.services.entitlement_service import EntitlementContext
from eduvox.services.gemini_service import GenerationUnavailableError, PathwayGenerationError
from eduvox.services.profile_service import compute_profile_fingerprint


def _context(plan_id="premium", usage=None):
    return EntitlementContext(user_id="u1").apply_snapshot({"planId": plan_id, "usage": usage or {}}, now_ts=1.0)


def _run(build_fn, context=None, states=None, saved=None, increments=None):
    saved = saved if saved is not None else []
    increments = increments if increments is not None else []
    return pathway_service.generate_pathway(
        "u1",
        "useMyStudyPath",
        build_fn,
        context=context or _context(),
        save_fn=saved.append,
        increment_usage=lambda uid, field: increments.append((uid, field)),
        states_store=states if states is not None else {},
        lock=threading.RLock(),
        time_module=FakeTime(),
    )


def test_state_resolution():
    fingerprint = compute_profile_fingerprint(COMPLETE_PROFILE)
    ready = {"profileFingerprint": fingerprint}

    assert pathway_service.resolve_pathway_state({}, None) == pathway_service.STATE_PROFILE_INCOMPLETE
    assert pathway_service.resolve_pathway_state(COMPLETE_PROFILE, None) == pathway_service.STATE_NO_PATHWAY
    assert pathway_service.resolve_pathway_state(COMPLETE_PROFILE, ready) == pathway_service.STATE_READY
    assert pathway_service.resolve_pathway_state(dict(COMPLETE_PROFILE, nationality="Kenyan"), ready) == pathway_service.STATE_STALE
    assert pathway_service.resolve_pathway_state(COMPLETE_PROFILE, ready, {"status": "generating"}) == pathway_service.STATE_GENERATING
    assert pathway_service.resolve_pathway_state(COMPLETE_PROFILE, ready, {"status": "failed"}) == pathway_service.STATE_FAILED


def test_should_regenerate_only_when_missing_stale_or_forced():
    current = {"profileFingerprint": compute_profile_fingerprint(COMPLETE_PROFILE)}

    assert pathway_service.should_regenerate(COMPLETE_PROFILE, None) is True
    assert pathway_service.should_regenerate(COMPLETE_PROFILE, current) is False
    assert pathway_service.should_regenerate(COMPLETE_PROFILE, current, force=True) is True
    assert pathway_service.should_regenerate(dict(COMPLETE_PROFILE, budget_max=1), current) is True


def test_my_study_path_uses_timeline_template_without_generator():
    pathway = pathway_service.build_my_study_path("u1", COMPLETE_PROFILE)

    assert pathway["source"] == "timeline_template"
    assert pathway["id"] == "germany_data_science_bachelor"
    assert pathway["userId"] == "u1"
    assert pathway["profileFingerprint"] == compute_profile_fingerprint(COMPLETE_PROFILE)


def test_my_study_path_parses_generated_text_and_stamps_identity():
    prompts = []

    def _generate(prompt_text):
        prompts.append(prompt_text)
        return '```json\n{"steps": [{"title": "Book IELTS"}]}\n```'

    pathway = pathway_service.build_my_study_path("u1", COMPLETE_PROFILE, generate_fn=_generate)

    assert "Germany" in prompts[0]
    assert pathway["id"] == "germany_data_science_bachelor"
    assert pathway["steps"][0]["title"] == "Book IELTS"
    assert pathway["source"] == "gemini_direct"


def test_generate_pathway_saves_then_tracks_usage():
    saved, increments, states = [], [], {}

    pathway, tracked = _run(lambda: {"id": "p1", "source": "gemini_direct"}, states=states, saved=saved, increments=increments)

    assert tracked is True
    assert saved == [pathway]
    assert increments == [("u1", "myStudyPathUsage")]
    assert states == {}


def test_generate_pathway_denied_for_free_tier():
    saved = []

    with pytest.raises(pathway_service.EntitlementDeniedError) as excinfo:
        _run(lambda: {"id": "p1"}, context=_context("free"), saved=saved)

    assert excinfo.value.action == "useMyStudyPath"
    assert excinfo.value.plan_tier == "free"
    assert saved == []


def test_duplicate_generation_is_rejected():
    states = {"u1": {"status": "generating", "started_at": FakeTime().time()}}

    with pytest.raises(pathway_service.GenerationInProgressError):
        _run(lambda: {"id": "p1"}, states=states)


def test_transport_error_marks_failed_and_skips_usage():
    states, increments = {}, []

    def _broken():
        raise PathwayGenerationError("timeout")

    with pytest.raises(PathwayGenerationError):
        _run(_broken, states=states, increments=increments)

    assert states["u1"]["status"] == "failed"
    assert increments == []

    # Retry from failed is allowed.
    _run(lambda: {"id": "p2"}, states=states)
    assert states == {}


def test_unavailable_generator_does_not_leave_failed_state():
    states = {}

    def _unavailable():
        raise GenerationUnavailableError("not configured")

    with pytest.raises(GenerationUnavailableError):
        _run(_unavailable, states=states)

    assert states == {}


def test_usage_tracking_failure_keeps_saved_pathway():
    saved = []

    def _failing_increment(_uid, _field):
        raise RuntimeError("store offline")

    pathway, tracked = pathway_service.generate_pathway(
        "u1",
        "generatePathway",
        lambda: {"id": "p1"},
        context=_context("free"),
        save_fn=saved.append,
        increment_usage=_failing_increment,
        states_store={},
        lock=threading.RLock(),
        time_module=FakeTime(),
    )

    assert tracked is False
    assert saved == [pathway]


def test_completion_percentage():
    steps = [{"status": "completed"}, {"status": "pending"}, {"status": "completed"}, {"status": "in-progress"}]

    assert pathway_service.completion_percentage({"steps": steps}) == 50
    assert pathway_service.completion_percentage(None) == 0
