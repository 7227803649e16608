from flask import Blueprint, request

admin_bp = Blueprint('admin_api', __name__)


@admin_bp.route('/api/admin/subscriptions/<uid>', methods=['PUT'])
def update_user_subscription(uid):
    from eduvox import runtime
    from eduvox.services import admin_api_service

    return admin_api_service.update_user_subscription(runtime, request, uid)


@admin_bp.route('/api/admin/subscriptions/analytics', methods=['GET'])
def subscription_analytics():
    from eduvox import runtime
    from eduvox.services import admin_api_service

    return admin_api_service.subscription_analytics(runtime, request)


@admin_bp.route('/api/admin/prompts', methods=['GET'])
def prompt_inventory():
    from eduvox import runtime
    from eduvox.services import admin_api_service

    return admin_api_service.prompt_inventory(runtime, request)
