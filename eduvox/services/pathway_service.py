"""Pathway lifecycle: generation state tracking, staleness, record building.

Lifecycle as seen by the client:
no_pathway -> generating -> ready <-> stale -> generating -> ready, with
generating -> failed on transport errors and failed -> generating on retry.
`stale` is advisory only; nothing here regenerates on its own.
"""

import logging
import re

from eduvox.logging_config import log_event
from eduvox.services import prompt_registry
from eduvox.services.entitlement_service import coerce_action, track_usage
from eduvox.services.gemini_service import GenerationUnavailableError
from eduvox.services.pathway_parser import (
    DEFAULT_IDENTITY,
    build_pathway_from_timeline,
    parse_pathway_response,
    timeline_template_for_level,
)
from eduvox.services.profile_service import (
    build_generation_request,
    compute_profile_fingerprint,
    is_profile_complete,
    is_stale,
)

STATE_PROFILE_INCOMPLETE = 'profile_incomplete'
STATE_NO_PATHWAY = 'no_pathway'
STATE_GENERATING = 'generating'
STATE_READY = 'ready'
STATE_STALE = 'stale'
STATE_FAILED = 'failed'

# A generation record older than this is treated as abandoned.
GENERATION_TIMEOUT_SECONDS = 180


class EntitlementDeniedError(PermissionError):
    def __init__(self, action, plan_tier):
        super().__init__(f"Plan {plan_tier} does not allow {action}")
        self.action = action
        self.plan_tier = plan_tier


class GenerationInProgressError(RuntimeError):
    pass


def get_generation_record(uid, *, states_store, lock):
    with lock:
        record = states_store.get(uid)
        return dict(record) if isinstance(record, dict) else None


def begin_generation(uid, kind, *, states_store, lock, time_module):
    """Mark a generation as running; False when one is already in flight."""
    now_ts = time_module.time()
    with lock:
        record = states_store.get(uid)
        if (
            isinstance(record, dict)
            and record.get('status') == STATE_GENERATING
            and now_ts - record.get('started_at', 0) < GENERATION_TIMEOUT_SECONDS
        ):
            return False
        states_store[uid] = {'status': STATE_GENERATING, 'kind': kind, 'started_at': now_ts}
        return True


def finish_generation(uid, *, states_store, lock):
    with lock:
        return states_store.pop(uid, None)


def fail_generation(uid, error_message, *, states_store, lock, time_module):
    with lock:
        record = dict(states_store.get(uid) or {})
        record.update({
            'status': STATE_FAILED,
            'error': str(error_message or 'Generation failed')[:300],
            'failed_at': time_module.time(),
        })
        states_store[uid] = record
        return dict(record)


def resolve_pathway_state(profile, pathway, generation_record=None):
    generation_status = (generation_record or {}).get('status')
    if generation_status == STATE_GENERATING:
        return STATE_GENERATING
    if not is_profile_complete(profile):
        return STATE_PROFILE_INCOMPLETE
    if generation_status == STATE_FAILED:
        return STATE_FAILED
    if not pathway:
        return STATE_NO_PATHWAY
    if is_stale(profile, pathway.get('profileFingerprint')):
        return STATE_STALE
    return STATE_READY


def should_regenerate(profile, pathway, force=False):
    return bool(force) or not pathway or is_stale(profile, pathway.get('profileFingerprint'))


def pathway_id_for(country, course, academic_level):
    raw = f"{country}_{course}_{academic_level}".lower()
    return re.sub(r'[^a-z0-9_]+', '_', raw).strip('_') or DEFAULT_IDENTITY['id']


def _stamp_identity(pathway, country, course, academic_level):
    if pathway.get('id') == DEFAULT_IDENTITY['id']:
        pathway['id'] = pathway_id_for(country, course, academic_level)
    return pathway


def build_my_study_path(uid, profile, *, generate_fn=None, logger=None, now=None):
    """Generate the user's personalised pathway from their profile.

    With no `generate_fn` the academic-level timeline template is used.
    Transport errors from `generate_fn` propagate to the caller.
    """
    request = build_generation_request(uid, profile)
    country = request['preferredCountry']
    course = request['desiredCourse']
    level = request['academicLevel']
    if generate_fn is None:
        pathway = build_pathway_from_timeline(
            timeline_template_for_level(level),
            country=country,
            course=course,
            academic_level=level,
            pathway_id=pathway_id_for(country, course, level),
            now=now,
        )
    else:
        raw_text = generate_fn(prompt_registry.build_prompt('my_study_path', request=request))
        pathway = _stamp_identity(parse_pathway_response(raw_text, logger=logger, now=now), country, course, level)
    pathway['userId'] = uid
    pathway['profileFingerprint'] = compute_profile_fingerprint(profile)
    return pathway


def build_edvisor_pathway(uid, country, course, academic_level, nationality='', *, generate_fn, logger=None, now=None):
    prompt_text = prompt_registry.build_prompt(
        'edvisor_pathway', country=country, course=course, academic_level=academic_level, nationality=nationality,
    )
    pathway = parse_pathway_response(generate_fn(prompt_text), logger=logger, now=now)
    pathway = _stamp_identity(pathway, country, course, academic_level)
    pathway['userId'] = uid
    pathway['kind'] = 'edvisor'
    return pathway


def build_uniguide_analysis(uid, request_text, country='', course='', academic_level='', *, generate_fn, logger=None, now=None):
    prompt_text = prompt_registry.build_prompt(
        'uniguide_analysis', request_text=request_text, country=country, course=course, academic_level=academic_level,
    )
    pathway = parse_pathway_response(generate_fn(prompt_text), logger=logger, now=now)
    pathway['userId'] = uid
    pathway['kind'] = 'uniguide_pro'
    return pathway


def completion_percentage(pathway):
    steps = (pathway or {}).get('steps') or []
    if not steps:
        return 0
    completed = sum(1 for step in steps if step.get('status') == 'completed')
    return round((completed / len(steps)) * 100)


def history_summary(doc_id, data):
    return {
        'id': doc_id,
        'kind': data.get('kind', ''),
        'country': data.get('country', ''),
        'course': data.get('course', ''),
        'academicLevel': data.get('academicLevel', ''),
        'isFallback': bool(data.get('isFallback')),
        'steps_count': len(data.get('steps') or []),
        'createdAt': data.get('createdAt', ''),
    }


def generate_pathway(uid, action, build_fn, *, context, save_fn, increment_usage, states_store, lock, time_module, logger=None):
    """Gate, build, persist and meter one pathway generation.

    `build_fn()` returns the finished pathway record and `save_fn(pathway)`
    persists it. Usage is tracked only after the save succeeded; a failed
    tracking call is logged and does not undo the saved pathway.
    Returns `(pathway, usage_tracked)`.
    """
    action = coerce_action(action)
    if not context.can_perform(action):
        raise EntitlementDeniedError(action.value, context.plan_tier)
    if not begin_generation(uid, action.value, states_store=states_store, lock=lock, time_module=time_module):
        raise GenerationInProgressError('A pathway is already being generated')

    started_at = time_module.time()
    try:
        pathway = build_fn()
        save_fn(pathway)
    except GenerationUnavailableError:
        finish_generation(uid, states_store=states_store, lock=lock)
        raise
    except Exception as exc:
        fail_generation(uid, exc, states_store=states_store, lock=lock, time_module=time_module)
        raise

    usage_tracked = track_usage(context, action, increment_usage=increment_usage, logger=logger)
    finish_generation(uid, states_store=states_store, lock=lock)
    log_event(
        logger,
        logging.INFO,
        'pathway_generated',
        uid=uid,
        action=action.value,
        source=pathway.get('source', ''),
        is_fallback=bool(pathway.get('isFallback')),
        usage_tracked=usage_tracked,
        duration_ms=int((time_module.time() - started_at) * 1000),
    )
    return pathway, usage_tracked
