"""Plan-tier entitlement evaluation and usage tracking.

The decision functions (`can_perform`, `remaining`, `decide`) are pure: they
only look at the plan tier, limits and usage snapshot they are handed. The
only mutation lives in `track_usage`, which performs one remote increment and
then bumps the cached counter of the `EntitlementContext` it was given.

`can_perform` and `track_usage` are not atomic with respect to each other.
Two concurrent requests for the same user can both pass the check before
either increments, so a limit can be exceeded by (concurrent requests - 1).
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional

from eduvox.logging_config import log_event

UNLIMITED = -1

PLAN_FREE = 'free'
PLAN_PREMIUM = 'premium'
PLAN_PRO = 'pro'
PLAN_TIER_IDS = (PLAN_FREE, PLAN_PREMIUM, PLAN_PRO)
PAID_PLAN_TIERS = frozenset({PLAN_PREMIUM, PLAN_PRO})


class Action(str, Enum):
    GENERATE_PATHWAY = 'generatePathway'
    USE_UNIGUIDE_PRO = 'useUniGuidePro'
    USE_MY_STUDY_PATH = 'useMyStudyPath'
    COMPARE_UNIVERSITIES = 'compareUniversities'
    EXPORT_PDF = 'exportPdf'
    USE_ADVANCED_FILTERS = 'useAdvancedFilters'
    VIEW_ANALYTICS = 'viewAnalytics'


class UnknownActionError(ValueError):
    pass


@dataclass(frozen=True)
class ActionRule:
    limit_field: str
    usage_field: Optional[str] = None

    @property
    def is_flag(self):
        return self.usage_field is None


ACTION_RULES: Dict[Action, ActionRule] = {
    Action.GENERATE_PATHWAY: ActionRule('pathwaysPerMonth', 'pathwaysGenerated'),
    Action.USE_UNIGUIDE_PRO: ActionRule('uniGuideProUsage', 'uniGuideProUsage'),
    Action.USE_MY_STUDY_PATH: ActionRule('myStudyPathUsage', 'myStudyPathUsage'),
    Action.COMPARE_UNIVERSITIES: ActionRule('universityComparisons', 'universityComparisons'),
    Action.EXPORT_PDF: ActionRule('pdfExports', 'pdfExports'),
    Action.USE_ADVANCED_FILTERS: ActionRule('advancedFilters'),
    Action.VIEW_ANALYTICS: ActionRule('analytics'),
}

USAGE_FIELDS = tuple(rule.usage_field for rule in ACTION_RULES.values() if not rule.is_flag)
COUNTED_LIMIT_FIELDS = tuple(rule.limit_field for rule in ACTION_RULES.values() if not rule.is_flag)
FLAG_LIMIT_FIELDS = tuple(rule.limit_field for rule in ACTION_RULES.values() if rule.is_flag)
USAGE_FIELD_BY_ACTION = {action.value: rule.usage_field for action, rule in ACTION_RULES.items() if not rule.is_flag}
LIMIT_FIELD_BY_ACTION = {action.value: rule.limit_field for action, rule in ACTION_RULES.items()}

PLAN_LIMITS = {
    PLAN_FREE: {
        'pathwaysPerMonth': 1,
        'uniGuideProUsage': 3,
        'myStudyPathUsage': 0,
        'universityComparisons': 3,
        'pdfExports': 0,
        'advancedFilters': False,
        'analytics': False,
    },
    PLAN_PREMIUM: {
        'pathwaysPerMonth': UNLIMITED,
        'uniGuideProUsage': UNLIMITED,
        'myStudyPathUsage': UNLIMITED,
        'universityComparisons': 10,
        'pdfExports': UNLIMITED,
        'advancedFilters': True,
        'analytics': False,
    },
    PLAN_PRO: {
        'pathwaysPerMonth': UNLIMITED,
        'uniGuideProUsage': UNLIMITED,
        'myStudyPathUsage': UNLIMITED,
        'universityComparisons': UNLIMITED,
        'pdfExports': UNLIMITED,
        'advancedFilters': True,
        'analytics': True,
    },
}

# Applied to the free tier while the subscription snapshot is still loading.
FREE_FALLBACK_LIMITS = {
    'pathwaysPerMonth': 1,
    'uniGuideProUsage': 5,
    'myStudyPathUsage': 0,
    'universityComparisons': 3,
    'pdfExports': 0,
    'advancedFilters': False,
    'analytics': False,
}

# Per-action predicates that replace the generic numeric check.
POLICY_OVERRIDES: Dict[Action, Callable[[str, Optional[dict], Optional[dict]], bool]] = {
    Action.USE_MY_STUDY_PATH: lambda plan_tier, _limits, _usage: plan_tier in PAID_PLAN_TIERS,
}


def coerce_action(action) -> Action:
    if isinstance(action, Action):
        return action
    try:
        return Action(str(action or '').strip())
    except ValueError:
        raise UnknownActionError(f"Unknown action: {action!r}") from None


def normalize_plan_tier(plan_tier):
    tier = str(plan_tier or '').strip().lower()
    return tier if tier in PLAN_LIMITS else PLAN_FREE


def zero_usage():
    return {usage_field: 0 for usage_field in USAGE_FIELDS}


def _as_count(value):
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(0, count)


def _field_keyed(values, field_by_action):
    """Map action-name keys onto store field names; field-name keys win."""
    keyed = {}
    for key, value in values.items():
        field_name = field_by_action.get(key, key)
        if field_name != key and field_name in values:
            continue
        keyed[field_name] = value
    return keyed


def complete_usage(usage):
    """Return a full UsageCounters mapping, defaulting missing counters to 0."""
    merged = zero_usage()
    for usage_field, value in _field_keyed(usage if isinstance(usage, dict) else {}, USAGE_FIELD_BY_ACTION).items():
        if usage_field in merged:
            merged[usage_field] = _as_count(value)
    return merged


def _as_limit(value, default):
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str) and value.strip().lower() == 'unlimited':
        return UNLIMITED
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    if limit < 0:
        return UNLIMITED
    return limit


def complete_limits(plan_tier, limits=None):
    """Merge store-supplied limits over the tier defaults."""
    merged = dict(PLAN_LIMITS[normalize_plan_tier(plan_tier)])
    for limit_field, value in _field_keyed(limits if isinstance(limits, dict) else {}, LIMIT_FIELD_BY_ACTION).items():
        if limit_field in COUNTED_LIMIT_FIELDS:
            merged[limit_field] = _as_limit(value, merged[limit_field])
        elif limit_field in FLAG_LIMIT_FIELDS:
            merged[limit_field] = value is True
    return merged


def _limit_value(rule, action, limits):
    if rule.limit_field in limits:
        return limits.get(rule.limit_field)
    return limits.get(action.value)


def _usage_value(rule, action, usage):
    if rule.usage_field in usage:
        return usage.get(rule.usage_field)
    return usage.get(action.value, 0)


def _is_loading(limits, usage):
    return limits is None or usage is None


def _numeric_allowed(limit, used):
    return limit == UNLIMITED or used < limit


def can_perform(action, plan_tier, limits, usage) -> bool:
    action = coerce_action(action)
    plan_tier = normalize_plan_tier(plan_tier)
    rule = ACTION_RULES[action]

    if _is_loading(limits, usage):
        if rule.is_flag:
            return False
        if plan_tier != PLAN_FREE:
            return True
        limits = FREE_FALLBACK_LIMITS
        usage = complete_usage(usage)

    override = POLICY_OVERRIDES.get(action)
    if override is not None:
        return bool(override(plan_tier, limits, usage))

    if rule.is_flag:
        return _limit_value(rule, action, limits) is True

    limit = _as_limit(_limit_value(rule, action, limits), 0)
    used = _as_count(_usage_value(rule, action, usage))
    return _numeric_allowed(limit, used)


def remaining(action, plan_tier, limits, usage) -> int:
    """Remaining uses for the action, or UNLIMITED."""
    action = coerce_action(action)
    plan_tier = normalize_plan_tier(plan_tier)
    rule = ACTION_RULES[action]

    if _is_loading(limits, usage):
        if rule.is_flag:
            return 0
        if plan_tier != PLAN_FREE:
            return UNLIMITED
        limits = FREE_FALLBACK_LIMITS
        usage = complete_usage(usage)

    override = POLICY_OVERRIDES.get(action)
    if override is not None:
        return UNLIMITED if override(plan_tier, limits, usage) else 0

    if rule.is_flag:
        return UNLIMITED if _limit_value(rule, action, limits) is True else 0

    limit = _as_limit(_limit_value(rule, action, limits), 0)
    if limit == UNLIMITED:
        return UNLIMITED
    used = _as_count(_usage_value(rule, action, usage))
    return max(0, limit - used)


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    remaining: int

    @property
    def unlimited(self):
        return self.remaining == UNLIMITED

    def to_dict(self):
        return {
            'allowed': self.allowed,
            'remaining': 'unlimited' if self.unlimited else self.remaining,
        }


def decide(action, plan_tier, limits, usage) -> EntitlementDecision:
    return EntitlementDecision(
        allowed=can_perform(action, plan_tier, limits, usage),
        remaining=remaining(action, plan_tier, limits, usage),
    )


@dataclass
class EntitlementContext:
    """Cached entitlement state for one user.

    `limits`/`usage` stay None until the first successful load; after that the
    context never returns to the loading phase.
    """

    user_id: str
    plan_tier: str = PLAN_FREE
    limits: Optional[dict] = None
    usage: Optional[dict] = None
    loaded: bool = False
    loaded_at: float = 0.0
    status: str = ''
    extra: dict = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False, compare=False)

    def apply_snapshot(self, subscription, now_ts=None):
        subscription = subscription or {}
        plan_tier = normalize_plan_tier(subscription.get('planType') or subscription.get('planId'))
        with self._lock:
            self.plan_tier = plan_tier
            self.limits = complete_limits(plan_tier, subscription.get('limits'))
            self.usage = complete_usage(subscription.get('usage'))
            self.status = str(subscription.get('status', '') or '')
            self.loaded = True
            self.loaded_at = now_ts if now_ts is not None else time.time()
        return self

    def can_perform(self, action):
        return can_perform(action, self.plan_tier, self.limits, self.usage)

    def remaining(self, action):
        return remaining(action, self.plan_tier, self.limits, self.usage)

    def decide(self, action):
        return decide(action, self.plan_tier, self.limits, self.usage)

    def mark_used(self, usage_field):
        with self._lock:
            usage = dict(self.usage or {})
            usage[usage_field] = _as_count(usage.get(usage_field, 0)) + 1
            self.usage = usage

    def summary(self):
        return {
            'plan_tier': self.plan_tier,
            'loaded': self.loaded,
            'status': self.status,
            'limits': dict(self.limits) if self.limits is not None else None,
            'usage': complete_usage(self.usage),
            'actions': {action.value: self.decide(action).to_dict() for action in Action},
        }


def track_usage(context, action, *, increment_usage, logger=None) -> bool:
    """Record one use of a counted action.

    `increment_usage(user_id, usage_field)` performs the remote atomic
    increment. Any exception from it is a transport/store failure: it is
    logged and reported as False, and the cached usage is left untouched.
    """
    action = coerce_action(action)
    rule = ACTION_RULES[action]
    if rule.is_flag or context is None or not context.user_id:
        return False
    try:
        increment_usage(context.user_id, rule.usage_field)
    except Exception as exc:
        if logger is not None:
            logger.warning(f"Could not track {action.value} usage for user {context.user_id}: {exc}")
        return False
    context.mark_used(rule.usage_field)
    if logger is not None:
        log_event(logger, logging.INFO, 'usage_tracked', uid=context.user_id, action=action.value)
    return True
