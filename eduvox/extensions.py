import json
import os

import firebase_admin
import sentry_sdk
from firebase_admin import auth, credentials, firestore
from google import genai
from sentry_sdk.integrations.flask import FlaskIntegration

from eduvox import runtime


def init_sentry(config) -> bool:
    if not config.sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=config.sentry_traces_sample_rate,
        send_default_pii=False,
        environment=config.sentry_environment,
        release=config.sentry_release,
    )
    return True


def init_firestore(config, logger):
    """Return a Firestore client, or None when credentials are unavailable."""
    try:
        if os.path.exists(config.firebase_credentials_path):
            cred = credentials.Certificate(config.firebase_credentials_path)
        else:
            firebase_creds_raw = (os.getenv('FIREBASE_CREDENTIALS', '') or '').strip()
            if not firebase_creds_raw:
                raise ValueError(
                    f"FIREBASE_CREDENTIALS is not set and {config.firebase_credentials_path} was not found."
                )
            cred = credentials.Certificate(json.loads(firebase_creds_raw))
        if not firebase_admin._apps:
            firebase_admin.initialize_app(cred)
        return firestore.client(), ''
    except Exception as e:
        logger.info(f"Firebase initialization skipped: {e}")
        return None, str(e)


def init_gemini(config, logger):
    if not config.gemini_api_key:
        logger.info("GEMINI_API_KEY not set; AI pathway generation is disabled.")
        return None
    try:
        return genai.Client(api_key=config.gemini_api_key)
    except Exception as e:
        logger.info(f"Gemini client disabled: {e}")
        return None


def init_extensions(app, config) -> None:
    runtime.config = config
    runtime.auth = auth
    runtime.firestore = firestore
    runtime.db, runtime.firebase_init_error = init_firestore(config, runtime.logger)
    runtime.gemini_client = init_gemini(config, runtime.logger)
    sentry_enabled = init_sentry(config)

    app.extensions.setdefault('eduvox', {})
    app.extensions['eduvox'].update({
        'firestore_ready': runtime.db is not None,
        'gemini_ready': runtime.gemini_client is not None,
        'sentry_enabled': sentry_enabled,
    })
