from flask import Blueprint, request

session_bp = Blueprint('session_api', __name__)


@session_bp.route('/api/session/logout', methods=['POST'])
def logout_session():
    from eduvox import runtime
    from eduvox.services import subscription_api_service

    return subscription_api_service.logout_session(runtime, request)
