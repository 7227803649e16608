"""Tolerant parsing of generated pathway text into normalized pathway records.

`extract_structured_payload` never raises: decorated, commented or broken
JSON degrades to a fallback payload built from the raw text.
`normalize_pathway` is total over dicts and guarantees the identity fields,
the timeline, and a well-formed `steps` list.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from eduvox.logging_config import log_event

PATHWAY_SCHEMA_VERSION = '2.0'
FALLBACK_EXCERPT_CHARS = 200
FALLBACK_TIP_CHARS = 300
MAX_PAYLOAD_DEPTH = 32

SOURCE_DIRECT = 'gemini_direct'
SOURCE_FALLBACK = 'gemini_fallback'
SOURCE_TIMELINE = 'timeline_template'

STEP_STATUSES = ('pending', 'in-progress', 'completed')
STEP_PRIORITIES = ('low', 'medium', 'high')

DEFAULT_IDENTITY = {
    'id': 'detailed_ai_analysis',
    'country': 'Target Country',
    'course': 'Selected Field',
    'academicLevel': 'Graduate',
}
DEFAULT_TOTAL_DURATION = '18-24 months'
LIST_BLOCKS = ('universities', 'scholarships', 'tips', 'alternatives')

JSON_FENCE_RE = re.compile(r'```json\s*(.*?)```', re.IGNORECASE | re.DOTALL)
TRAILING_COMMA_LOOKAHEAD_RE = re.compile(r'\s*[}\]]')


def utc_now_iso(now=None):
    moment = now or datetime.now(timezone.utc)
    return moment.isoformat()


def _fenced_block(text):
    match = JSON_FENCE_RE.search(text)
    if not match:
        return None
    return match.group(1).strip()


def _balanced_object_span(text):
    """First top-level {...} span, skipping braces inside strings and comments."""
    start = text.find('{')
    if start == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    i = start
    length = len(text)
    while i < length:
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif text.startswith('//', i):
            newline = text.find('\n', i)
            if newline == -1:
                return None
            i = newline
            continue
        elif text.startswith('/*', i):
            close = text.find('*/', i + 2)
            if close == -1:
                return None
            i = close + 2
            continue
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
        i += 1
    return None


def strip_json_comments(text):
    """Drop // line comments and /* */ block comments outside string literals."""
    out = []
    in_string = False
    escaped = False
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
            continue
        if text.startswith('//', i):
            newline = text.find('\n', i)
            if newline == -1:
                break
            i = newline
            continue
        if text.startswith('/*', i):
            close = text.find('*/', i + 2)
            i = length if close == -1 else close + 2
            continue
        out.append(ch)
        i += 1
    return ''.join(out)


def strip_trailing_commas(text):
    out = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == ',' and TRAILING_COMMA_LOOKAHEAD_RE.match(text, i + 1):
            continue
        out.append(ch)
    return ''.join(out)


def _candidate_texts(text):
    seen = set()
    for candidate in (_fenced_block(text), _balanced_object_span(text), text):
        if candidate is None or candidate in seen:
            continue
        seen.add(candidate)
        yield candidate


def _nesting_depth(value):
    depth = 0
    frontier = [value]
    while frontier:
        depth += 1
        if depth > MAX_PAYLOAD_DEPTH:
            return depth
        children = []
        for item in frontier:
            if isinstance(item, dict):
                children.extend(v for v in item.values() if isinstance(v, (dict, list)))
            elif isinstance(item, list):
                children.extend(v for v in item if isinstance(v, (dict, list)))
        frontier = children
    return depth


def _parse_candidate(candidate):
    cleaned = strip_trailing_commas(strip_json_comments(candidate)).strip()
    if not cleaned:
        return None
    try:
        parsed = json.loads(cleaned)
    except (ValueError, RecursionError):
        return None
    if not isinstance(parsed, dict) or _nesting_depth(parsed) > MAX_PAYLOAD_DEPTH:
        return None
    return parsed


def extract_structured_payload(raw_text, *, logger=None) -> Dict[str, Any]:
    text = raw_text if isinstance(raw_text, str) else ('' if raw_text is None else str(raw_text))
    for candidate in _candidate_texts(text):
        parsed = _parse_candidate(candidate)
        if parsed is not None:
            return parsed
    log_event(logger, logging.WARNING, 'pathway_fallback_used', raw_length=len(text))
    return build_fallback_payload(text)


def _excerpt(text, limit=FALLBACK_EXCERPT_CHARS):
    if len(text) <= limit:
        return text
    return text[:limit] + '...'


def build_fallback_payload(raw_text) -> Dict[str, Any]:
    text = raw_text if isinstance(raw_text, str) else ('' if raw_text is None else str(raw_text))
    digest = hashlib.sha256(text.encode('utf-8', errors='replace')).hexdigest()
    excerpt = _excerpt(text)
    return {
        'id': f"fallback_{digest[:16]}",
        'country': 'Target Country',
        'course': 'Selected Field of Study',
        'academicLevel': 'Graduate/Undergraduate',
        'timeline': {
            'totalDuration': DEFAULT_TOTAL_DURATION,
            'phases': [
                {'phase': 'Preparation', 'duration': '6 months', 'description': 'Initial preparation and documentation'},
                {'phase': 'Application', 'duration': '6 months', 'description': 'University applications and visa process'},
                {'phase': 'Departure', 'duration': '3 months', 'description': 'Final preparations and travel arrangements'},
            ],
        },
        'steps': [
            {
                'step': 1,
                'title': 'Document Preparation',
                'description': excerpt,
                'duration': '2-4 weeks',
                'status': 'pending',
                'priority': 'medium',
                'tasks': ['Gather required documents', 'Get translations if needed'],
            }
        ],
        'universities': [],
        'costs': {
            'tuition': 'As per AI analysis',
            'living': 'As per AI analysis',
            'total': 'Contact admissions for exact figures',
        },
        'visaRequirements': {
            'type': 'Student Visa',
            'requirements': ['Passport', 'Acceptance Letter', 'Financial Proof'],
            'processingTime': '4-8 weeks',
        },
        'scholarships': [],
        'alternatives': [],
        'tips': [f"Based on AI analysis: {_excerpt(text, FALLBACK_TIP_CHARS)}"] if text.strip() else [],
        'isFallback': True,
        'rawResponse': text,
    }


def _text_or_default(value, default):
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return default
    value = str(value).strip()
    return value or default


def _positive_int(value):
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _normalize_timeline(timeline):
    if not isinstance(timeline, dict):
        return {'totalDuration': DEFAULT_TOTAL_DURATION, 'phases': []}
    normalized = dict(timeline)
    normalized['totalDuration'] = _text_or_default(timeline.get('totalDuration'), DEFAULT_TOTAL_DURATION)
    phases = timeline.get('phases')
    normalized['phases'] = [phase for phase in phases if isinstance(phase, dict)] if isinstance(phases, list) else []
    return normalized


def normalize_step(raw_step, index, now=None):
    if isinstance(raw_step, str):
        raw_step = {'title': raw_step}
    step = dict(raw_step)
    step['step'] = _positive_int(step.get('step')) or index + 1
    step['title'] = _text_or_default(step.get('title'), f"Step {step['step']}")
    step['description'] = _text_or_default(step.get('description'), '')
    step['duration'] = _text_or_default(step.get('duration'), '')
    status = str(step.get('status') or '').strip().lower()
    step['status'] = status if status in STEP_STATUSES else 'pending'
    priority = str(step.get('priority') or '').strip().lower()
    step['priority'] = priority if priority in STEP_PRIORITIES else 'medium'
    tasks = step.get('tasks')
    if isinstance(tasks, list):
        step['tasks'] = [str(task).strip() for task in tasks if isinstance(task, (str, int, float)) and str(task).strip()]
    else:
        step['tasks'] = []
    if step['status'] == 'completed':
        completed_at = step.get('completedAt')
        step['completedAt'] = completed_at if isinstance(completed_at, str) and completed_at else utc_now_iso(now)
    else:
        step['completedAt'] = None
    return step


def _normalize_steps(steps, now=None) -> List[dict]:
    if not isinstance(steps, list):
        return []
    usable = [item for item in steps if isinstance(item, (dict, str))]
    return [normalize_step(item, index, now) for index, item in enumerate(usable)]


def normalize_pathway(payload, *, source: Optional[str] = None, now=None) -> Dict[str, Any]:
    pathway = dict(payload) if isinstance(payload, dict) else {}
    for key, default in DEFAULT_IDENTITY.items():
        pathway[key] = _text_or_default(pathway.get(key), default)
    pathway['timeline'] = _normalize_timeline(pathway.get('timeline'))
    pathway['steps'] = _normalize_steps(pathway.get('steps'), now)
    for key in LIST_BLOCKS:
        if key in pathway and not isinstance(pathway[key], list):
            pathway[key] = []

    is_fallback = pathway.get('isFallback') is True
    stamp = utc_now_iso(now)
    pathway['isFallback'] = is_fallback
    pathway['source'] = source or (SOURCE_FALLBACK if is_fallback else SOURCE_DIRECT)
    pathway['schemaVersion'] = PATHWAY_SCHEMA_VERSION
    pathway['generatedAt'] = stamp
    if not isinstance(pathway.get('createdAt'), str) or not pathway.get('createdAt'):
        pathway['createdAt'] = stamp
    pathway['updatedAt'] = stamp
    return pathway


def parse_pathway_response(raw_text, *, logger=None, now=None) -> Dict[str, Any]:
    return normalize_pathway(extract_structured_payload(raw_text, logger=logger), now=now)


TIMELINE_TEMPLATES = {
    'undergraduate': {
        'totalDuration': '18-24 months',
        'phases': [
            {'phase': 'Preparation', 'duration': '12-18 months', 'description': 'Academic prep, tests, research'},
            {'phase': 'Application', 'duration': '3-6 months', 'description': 'Apply to universities'},
            {'phase': 'Decision & Visa', 'duration': '3-4 months', 'description': 'Accept offers, visa process'},
        ],
    },
    'graduate': {
        'totalDuration': '15-20 months',
        'phases': [
            {'phase': 'Preparation', 'duration': '9-12 months', 'description': 'Tests, research, networking'},
            {'phase': 'Application', 'duration': '3-4 months', 'description': 'Apply to universities'},
            {'phase': 'Decision & Visa', 'duration': '3-4 months', 'description': 'Accept offers, visa process'},
        ],
    },
    'doctorate': {
        'totalDuration': '18-24 months',
        'phases': [
            {'phase': 'Research Proposal', 'duration': '6-9 months', 'description': 'Identify supervisors, draft proposal'},
            {'phase': 'Application', 'duration': '4-6 months', 'description': 'Apply and interview'},
            {'phase': 'Funding & Visa', 'duration': '3-6 months', 'description': 'Secure funding, visa process'},
        ],
    },
}

PHASE_TASKS = {
    'preparation': ['Research universities and programs', 'Book language and entrance tests', 'Collect academic transcripts'],
    'application': ['Write statement of purpose', 'Request recommendation letters', 'Submit applications'],
    'decision & visa': ['Compare offers and accept one', 'Prepare financial documents', 'Apply for student visa'],
    'research proposal': ['Shortlist potential supervisors', 'Draft research proposal'],
    'funding & visa': ['Apply for scholarships and assistantships', 'Apply for student visa'],
}


def timeline_template_for_level(academic_level):
    level = str(academic_level or '').strip().lower()
    if any(token in level for token in ('phd', 'doctor')):
        return copy.deepcopy(TIMELINE_TEMPLATES['doctorate'])
    if any(token in level for token in ('master', 'graduate', 'mba', 'postgrad')) and 'undergrad' not in level:
        return copy.deepcopy(TIMELINE_TEMPLATES['graduate'])
    return copy.deepcopy(TIMELINE_TEMPLATES['undergraduate'])


def build_pathway_from_timeline(timeline, *, country='', course='', academic_level='', pathway_id='', now=None):
    """Turn timeline phases into ordered pending steps."""
    timeline = _normalize_timeline(timeline)
    steps = []
    for index, phase in enumerate(timeline['phases']):
        name = _text_or_default(phase.get('phase'), f"Phase {index + 1}")
        steps.append({
            'step': index + 1,
            'title': name,
            'description': _text_or_default(phase.get('description'), ''),
            'duration': _text_or_default(phase.get('duration'), ''),
            'status': 'pending',
            'priority': 'high' if index == 0 else 'medium',
            'tasks': list(PHASE_TASKS.get(name.lower(), [])),
        })
    payload = {
        'id': pathway_id,
        'country': country,
        'course': course,
        'academicLevel': academic_level,
        'timeline': timeline,
        'steps': steps,
        'universities': [],
        'scholarships': [],
    }
    return normalize_pathway(payload, source=SOURCE_TIMELINE, now=now)


def apply_step_status(pathway, step_number, status, notes=None, now=None):
    """Return a copy of the pathway with one step moved to a new status."""
    status = str(status or '').strip().lower()
    if status not in STEP_STATUSES:
        raise ValueError(f"Invalid step status: {status!r}")
    updated = dict(pathway)
    updated['steps'] = [dict(step) for step in pathway.get('steps', []) if isinstance(step, dict)]
    stamp = utc_now_iso(now)
    for step in updated['steps']:
        if step.get('step') != step_number:
            continue
        was_completed = step.get('status') == 'completed'
        step['status'] = status
        if status != 'completed':
            step['completedAt'] = None
        elif not (was_completed and step.get('completedAt')):
            step['completedAt'] = stamp
        if notes is not None:
            step['notes'] = str(notes).strip()[:2000]
        updated['updatedAt'] = stamp
        return updated
    raise KeyError(step_number)
