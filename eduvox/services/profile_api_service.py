"""Business logic handlers for profile APIs."""

from eduvox.services.profile_service import (
    has_major_change,
    is_stale,
    missing_profile_fields,
    sanitize_profile_updates,
)


def get_profile(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Profile store is not configured'}), 503
    uid = decoded_token['uid']
    try:
        profile = app_ctx.load_profile(uid)
    except Exception as e:
        app_ctx.logger.error(f"Error fetching profile for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load profile'}), 500
    missing = missing_profile_fields(profile)
    return app_ctx.jsonify({
        'profile': profile,
        'complete': not missing,
        'missing_fields': missing,
    })


def update_profile(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    updates = sanitize_profile_updates(payload)
    if not updates:
        return app_ctx.jsonify({'error': 'No editable profile fields in payload'}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Profile store is not configured'}), 503

    uid = decoded_token['uid']
    try:
        updates['updatedAt'] = app_ctx.time.time()
        app_ctx.profiles_repo.set_doc(app_ctx.db, uid, updates, merge=True)
        profile = app_ctx.load_profile(uid)
        pathway = app_ctx.load_current_pathway(uid)
    except Exception as e:
        app_ctx.logger.error(f"Error updating profile for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not update profile'}), 500

    # Notify only; regeneration is the user's call.
    missing = missing_profile_fields(profile)
    return app_ctx.jsonify({
        'profile': profile,
        'complete': not missing,
        'missing_fields': missing,
        'pathway_stale': bool(pathway) and is_stale(profile, pathway.get('profileFingerprint')),
        'major_change': bool(pathway) and has_major_change(pathway, profile),
    })
