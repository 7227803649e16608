from flask import Blueprint, request

profile_bp = Blueprint('profile_api', __name__)


@profile_bp.route('/api/profile', methods=['GET'])
def get_profile():
    from eduvox import runtime
    from eduvox.services import profile_api_service

    return profile_api_service.get_profile(runtime, request)


@profile_bp.route('/api/profile', methods=['PUT'])
def update_profile():
    from eduvox import runtime
    from eduvox.services import profile_api_service

    return profile_api_service.update_profile(runtime, request)
