"""Business logic handlers for admin APIs."""

from eduvox.services import prompt_registry, subscription_service


def update_user_subscription(app_ctx, request, target_uid):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if not app_ctx.is_admin_user(decoded_token):
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    plan_id = str(payload.get('planId', '') or '').strip().lower()
    if plan_id not in subscription_service.PLAN_TIERS:
        return app_ctx.jsonify({'error': 'Invalid subscription plan'}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Subscription store is not configured'}), 503

    payment_data = dict(payload.get('payment')) if isinstance(payload.get('payment'), dict) else {}
    payment_data.setdefault('transactionId', f"admin_{target_uid}_{int(app_ctx.time.time())}")
    payment_data.setdefault('paymentMethod', 'admin')
    try:
        record = subscription_service.upgrade_subscription(
            target_uid, plan_id, payment_data, db=app_ctx.db, time_module=app_ctx.time,
        )
    except ValueError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Error updating subscription for user {target_uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not update subscription'}), 500

    app_ctx.evict_entitlement_context(target_uid)
    app_ctx.logger.info(f"Admin {decoded_token.get('uid', '')} set plan {plan_id} for user {target_uid}")
    return app_ctx.jsonify({'ok': True, 'subscription': record})


def subscription_analytics(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if not app_ctx.is_admin_user(decoded_token):
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Subscription store is not configured'}), 503
    try:
        analytics = subscription_service.subscription_analytics(db=app_ctx.db)
    except Exception as e:
        app_ctx.logger.error(f"Error building subscription analytics: {e}")
        return app_ctx.jsonify({'error': 'Could not load analytics'}), 500
    return app_ctx.jsonify(analytics)


def prompt_inventory(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if not app_ctx.is_admin_user(decoded_token):
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    return app_ctx.jsonify({
        'metadata': prompt_registry.get_prompt_metadata(),
        'prompts': prompt_registry.get_prompt_inventory(),
    })
