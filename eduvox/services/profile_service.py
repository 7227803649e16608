"""Academic profile helpers: fingerprinting, staleness, completeness."""

import hashlib
import json

FINGERPRINT_FIELDS = (
    ('preferred_countries', list),
    ('preferred_fields_of_study', list),
    ('education_level', str),
    ('nationality', str),
    ('budget_min', int),
    ('budget_max', int),
)

REQUIRED_PROFILE_FIELDS = (
    'full_name',
    'nationality',
    'education_level',
    'preferred_countries',
    'preferred_fields_of_study',
    'target_intake',
    'target_year',
)

EDITABLE_PROFILE_FIELDS = {
    'full_name': str,
    'nationality': str,
    'education_level': str,
    'preferred_countries': list,
    'preferred_fields_of_study': list,
    'target_intake': str,
    'target_year': str,
    'budget_min': int,
    'budget_max': int,
    'cgpa': float,
    'ielts_score': float,
    'toefl_score': float,
    'gre_score': float,
    'target_company': str,
    'work_experience': str,
}

MAX_LIST_ITEMS = 10
MAX_TEXT_CHARS = 200


def _canonical_number(value):
    if isinstance(value, bool) or value in (None, ''):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


def _canonical_value(value, kind):
    if kind is list:
        if not value:
            return []
        if not isinstance(value, (list, tuple)):
            value = [value]
        return [str(item).strip() for item in value if str(item).strip()]
    if kind is int:
        return _canonical_number(value)
    return str(value or '').strip()


def compute_profile_fingerprint(profile):
    """Deterministic digest of the profile fields that shape a pathway."""
    profile = profile or {}
    relevant = [[name, _canonical_value(profile.get(name), kind)] for name, kind in FINGERPRINT_FIELDS]
    serialized = json.dumps(relevant, ensure_ascii=True, separators=(',', ':'))
    return hashlib.sha256(serialized.encode('utf-8')).hexdigest()


def is_stale(current_profile, previous_fingerprint):
    if not previous_fingerprint:
        return True
    return compute_profile_fingerprint(current_profile) != previous_fingerprint


def missing_profile_fields(profile):
    profile = profile or {}
    missing = []
    for name in REQUIRED_PROFILE_FIELDS:
        value = profile.get(name)
        if isinstance(value, (list, tuple)):
            present = any(str(item).strip() for item in value)
        elif isinstance(value, str):
            present = bool(value.strip())
        else:
            present = value is not None and value is not False
        if not present:
            missing.append(name)
    return missing


def is_profile_complete(profile):
    if not profile:
        return False
    return not missing_profile_fields(profile)


def _first(values):
    values = _canonical_value(values, list)
    return values[0] if values else ''


def has_major_change(pathway, profile):
    """True when the pathway no longer targets the profile's first country or field."""
    if not pathway:
        return True
    country = _first((profile or {}).get('preferred_countries'))
    course = _first((profile or {}).get('preferred_fields_of_study'))
    return (
        str(pathway.get('country', '')).strip().lower() != country.lower()
        or str(pathway.get('course', '')).strip().lower() != course.lower()
    )


def build_generation_request(uid, profile):
    profile = profile or {}
    return {
        'userId': uid,
        'fullName': str(profile.get('full_name', '') or '').strip(),
        'preferredCountry': _first(profile.get('preferred_countries')) or 'USA',
        'desiredCourse': _first(profile.get('preferred_fields_of_study')) or 'Computer Science',
        'academicLevel': str(profile.get('education_level', '') or '').strip() or 'Bachelor',
        'nationality': str(profile.get('nationality', '') or '').strip(),
        'budgetMin': _canonical_number(profile.get('budget_min')),
        'budgetMax': _canonical_number(profile.get('budget_max')) or 100000,
        'currentGPA': _canonical_number(profile.get('cgpa')),
        'ieltsScore': _canonical_number(profile.get('ielts_score')),
        'toeflScore': _canonical_number(profile.get('toefl_score')),
        'greScore': _canonical_number(profile.get('gre_score')),
        'targetIntake': str(profile.get('target_intake', '') or '').strip(),
        'targetYear': str(profile.get('target_year', '') or '').strip(),
        'targetCompany': str(profile.get('target_company', '') or '').strip(),
    }


def sanitize_profile_updates(payload):
    """Keep only known profile fields, coerced to their expected shapes."""
    if not isinstance(payload, dict):
        return {}
    cleaned = {}
    for name, kind in EDITABLE_PROFILE_FIELDS.items():
        if name not in payload:
            continue
        raw_value = payload.get(name)
        if kind is list:
            cleaned[name] = _canonical_value(raw_value, list)[:MAX_LIST_ITEMS]
            cleaned[name] = [item[:MAX_TEXT_CHARS] for item in cleaned[name]]
        elif kind is int:
            cleaned[name] = max(0, int(_canonical_number(raw_value)))
        elif kind is float:
            cleaned[name] = max(0.0, float(_canonical_number(raw_value)))
        else:
            cleaned[name] = str(raw_value or '').strip()[:MAX_TEXT_CHARS]
    return cleaned
