"""Business logic handlers for subscription and usage APIs."""

from eduvox.services import subscription_service
from eduvox.services.entitlement_service import UnknownActionError, coerce_action, track_usage


def get_subscription(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Subscription store is not configured'}), 503
    uid = decoded_token['uid']
    force = str(request.args.get('refresh', '0')).strip().lower() in {'1', 'true', 'yes', 'on'}
    context = app_ctx.load_entitlement_context(uid, force=force)
    return app_ctx.jsonify(context.summary())


def get_plans(app_ctx, request):
    return app_ctx.jsonify({'plans': subscription_service.plan_catalogue()})


def cancel_subscription(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Subscription store is not configured'}), 503
    uid = decoded_token['uid']
    try:
        result = subscription_service.cancel_subscription(uid, db=app_ctx.db, time_module=app_ctx.time)
    except Exception as e:
        app_ctx.logger.error(f"Error cancelling subscription for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not cancel subscription'}), 500
    app_ctx.evict_entitlement_context(uid)
    return app_ctx.jsonify({'ok': True, **result})


def list_transactions(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Subscription store is not configured'}), 503
    uid = decoded_token['uid']
    try:
        transactions = subscription_service.list_transactions(uid, db=app_ctx.db, limit=app_ctx.MAX_TRANSACTIONS)
    except Exception as e:
        app_ctx.logger.error(f"Error listing transactions for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load transactions'}), 500
    return app_ctx.jsonify({'transactions': transactions})


def track_action_usage(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    try:
        action = coerce_action(payload.get('action'))
    except UnknownActionError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Subscription store is not configured'}), 503

    uid = decoded_token['uid']
    context = app_ctx.load_entitlement_context(uid)
    if not context.can_perform(action):
        return app_ctx.build_upgrade_required_response(action.value, context.plan_tier)
    tracked = track_usage(context, action, increment_usage=app_ctx.increment_usage, logger=app_ctx.logger)
    return app_ctx.jsonify({
        'allowed': True,
        'tracked': tracked,
        'action': action.value,
        'remaining': context.decide(action).to_dict()['remaining'],
    })


def logout_session(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if decoded_token:
        app_ctx.evict_entitlement_context(decoded_token['uid'])
    return app_ctx.jsonify({'ok': True})
