"""Process-wide application context handed to the API services.

`eduvox.extensions.init_extensions` fills in the external clients; tests
monkeypatch the attributes they need.
"""

import logging
import threading
import time

from flask import jsonify, send_file

from eduvox.config import AppConfig
from eduvox.logging_config import LOGGER_NAME
from eduvox.repositories import pathways_repo, profiles_repo
from eduvox.services import (
    auth_service,
    entitlement_cache,
    gemini_service,
    pathway_service,
    subscription_service,
)

logger = logging.getLogger(LOGGER_NAME)
config = AppConfig()

db = None
firebase_init_error = ''
auth = None
firestore = None
gemini_client = None

ENTITLEMENT_CONTEXTS = {}
ENTITLEMENT_LOCK = threading.RLock()
GENERATION_STATES = {}
GENERATION_LOCK = threading.RLock()

MAX_HISTORY_ITEMS = 50
MAX_TRANSACTIONS = 50
MAX_UNIGUIDE_REQUEST_CHARS = 4000


def verify_firebase_token(request):
    return auth_service.verify_firebase_token(request, auth_module=auth, logger=logger)


def is_admin_user(decoded_token):
    return auth_service.is_admin_user(decoded_token, config.admin_uids, config.admin_emails)


def load_subscription(uid):
    return subscription_service.get_or_create_subscription(uid, db=db, time_module=time, logger=logger)


def load_entitlement_context(uid, force=False):
    return entitlement_cache.refresh_context(
        uid,
        load_subscription,
        contexts_store=ENTITLEMENT_CONTEXTS,
        lock=ENTITLEMENT_LOCK,
        ttl_seconds=config.entitlement_cache_ttl_seconds,
        time_module=time,
        logger=logger,
        force=force,
    )


def evict_entitlement_context(uid):
    return entitlement_cache.evict_context(uid, contexts_store=ENTITLEMENT_CONTEXTS, lock=ENTITLEMENT_LOCK)


def increment_usage(uid, usage_field):
    subscription_service.increment_usage(uid, usage_field, db=db, firestore_module=firestore, time_module=time)


def generate_text(prompt_text):
    return gemini_service.generate_text(gemini_client, config.gemini_model, prompt_text)


def get_generation_record(uid):
    return pathway_service.get_generation_record(uid, states_store=GENERATION_STATES, lock=GENERATION_LOCK)


def run_generation(uid, action, build_fn, save_fn, context):
    return pathway_service.generate_pathway(
        uid,
        action,
        build_fn,
        context=context,
        save_fn=save_fn,
        increment_usage=increment_usage,
        states_store=GENERATION_STATES,
        lock=GENERATION_LOCK,
        time_module=time,
        logger=logger,
    )


def load_profile(uid):
    snapshot = profiles_repo.get_doc(db, uid)
    return (snapshot.to_dict() or {}) if snapshot.exists else {}


def load_current_pathway(uid):
    snapshot = pathways_repo.get_user_pathway_doc(db, uid)
    return (snapshot.to_dict() or None) if snapshot.exists else None


def build_upgrade_required_response(action, plan_tier):
    return jsonify({
        'error': 'Your current plan does not include this feature. Upgrade to continue.',
        'upgrade_required': True,
        'action': action,
        'plan_tier': plan_tier,
    }), 403


def build_profile_incomplete_response(missing_fields):
    return jsonify({
        'error': 'Complete your profile before generating a pathway.',
        'profile_incomplete': True,
        'missing_fields': list(missing_fields),
    }), 422
