from flask import Blueprint, request

subscription_bp = Blueprint('subscription_api', __name__)


@subscription_bp.route('/api/subscription', methods=['GET'])
def get_subscription():
    from eduvox import runtime
    from eduvox.services import subscription_api_service

    return subscription_api_service.get_subscription(runtime, request)


@subscription_bp.route('/api/subscription/plans', methods=['GET'])
def get_plans():
    from eduvox import runtime
    from eduvox.services import subscription_api_service

    return subscription_api_service.get_plans(runtime, request)


@subscription_bp.route('/api/subscription/cancel', methods=['POST'])
def cancel_subscription():
    from eduvox import runtime
    from eduvox.services import subscription_api_service

    return subscription_api_service.cancel_subscription(runtime, request)


@subscription_bp.route('/api/subscription/transactions', methods=['GET'])
def list_transactions():
    from eduvox import runtime
    from eduvox.services import subscription_api_service

    return subscription_api_service.list_transactions(runtime, request)


@subscription_bp.route('/api/usage/track', methods=['POST'])
def track_usage():
    from eduvox import runtime
    from eduvox.services import subscription_api_service

    return subscription_api_service.track_action_usage(runtime, request)
