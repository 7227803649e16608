from flask import Blueprint, request

pathways_bp = Blueprint('pathways_api', __name__)


@pathways_bp.route('/api/pathway', methods=['GET'])
def get_pathway():
    from eduvox import runtime
    from eduvox.services import pathway_api_service

    return pathway_api_service.get_pathway(runtime, request)


@pathways_bp.route('/api/pathway/generate', methods=['POST'])
def generate_pathway():
    from eduvox import runtime
    from eduvox.services import pathway_api_service

    return pathway_api_service.generate_my_study_path(runtime, request)


@pathways_bp.route('/api/pathway/steps/<int:step_number>', methods=['PATCH'])
def update_step(step_number):
    from eduvox import runtime
    from eduvox.services import pathway_api_service

    return pathway_api_service.update_step_status(runtime, request, step_number)


@pathways_bp.route('/api/pathway/export-pdf', methods=['GET'])
def export_pathway_pdf():
    from eduvox import runtime
    from eduvox.services import pathway_api_service

    return pathway_api_service.export_pathway_pdf(runtime, request)


@pathways_bp.route('/api/pathways/edvisor', methods=['POST'])
def generate_edvisor_pathway():
    from eduvox import runtime
    from eduvox.services import pathway_api_service

    return pathway_api_service.generate_edvisor_pathway(runtime, request)


@pathways_bp.route('/api/uniguide/analysis', methods=['POST'])
def generate_uniguide_analysis():
    from eduvox import runtime
    from eduvox.services import pathway_api_service

    return pathway_api_service.generate_uniguide_analysis(runtime, request)


@pathways_bp.route('/api/pathways/history', methods=['GET'])
def list_history():
    from eduvox import runtime
    from eduvox.services import pathway_api_service

    return pathway_api_service.list_history(runtime, request)


@pathways_bp.route('/api/pathways/history/<entry_id>', methods=['DELETE'])
def delete_history_entry(entry_id):
    from eduvox import runtime
    from eduvox.services import pathway_api_service

    return pathway_api_service.delete_history_entry(runtime, request, entry_id)
