"""Business logic handlers for pathway APIs."""

from eduvox.services import pathway_export_service, pathway_service
from eduvox.services.entitlement_service import Action, track_usage
from eduvox.services.gemini_service import GenerationUnavailableError, PathwayGenerationError
from eduvox.services.pathway_parser import apply_step_status
from eduvox.services.profile_service import has_major_change, missing_profile_fields


def _generation_error_response(app_ctx, uid, exc):
    if isinstance(exc, pathway_service.EntitlementDeniedError):
        return app_ctx.build_upgrade_required_response(exc.action, exc.plan_tier)
    if isinstance(exc, pathway_service.GenerationInProgressError):
        return app_ctx.jsonify({'error': str(exc)}), 409
    if isinstance(exc, GenerationUnavailableError):
        return app_ctx.jsonify({'error': str(exc)}), 503
    if isinstance(exc, PathwayGenerationError):
        app_ctx.logger.warning(f"Pathway generation failed for user {uid}: {exc}")
        return app_ctx.jsonify({'error': 'Pathway generation failed. Please try again.', 'retryable': True}), 502
    app_ctx.logger.error(f"Error generating pathway for user {uid}: {exc}")
    return app_ctx.jsonify({'error': 'Could not save pathway. Please try again.', 'retryable': True}), 500


def get_pathway(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Pathway store is not configured'}), 503
    uid = decoded_token['uid']
    try:
        profile = app_ctx.load_profile(uid)
        pathway = app_ctx.load_current_pathway(uid)
    except Exception as e:
        app_ctx.logger.error(f"Error fetching pathway for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load pathway'}), 500

    generation_record = app_ctx.get_generation_record(uid) or {}
    state = pathway_service.resolve_pathway_state(profile, pathway, generation_record)
    return app_ctx.jsonify({
        'state': state,
        'pathway': pathway,
        'missing_fields': missing_profile_fields(profile),
        'completion': pathway_service.completion_percentage(pathway),
        'major_change': bool(pathway) and has_major_change(pathway, profile),
        'error': generation_record.get('error', '') if state == pathway_service.STATE_FAILED else '',
    })


def generate_my_study_path(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Pathway store is not configured'}), 503

    uid = decoded_token['uid']
    force = payload.get('force') is True
    try:
        profile = app_ctx.load_profile(uid)
        current_pathway = app_ctx.load_current_pathway(uid)
    except Exception as e:
        app_ctx.logger.error(f"Error loading pathway inputs for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load profile'}), 500

    missing = missing_profile_fields(profile)
    if missing:
        return app_ctx.build_profile_incomplete_response(missing)
    if not pathway_service.should_regenerate(profile, current_pathway, force=force):
        return app_ctx.jsonify({
            'state': pathway_service.STATE_READY,
            'pathway': current_pathway,
            'generated': False,
            'usage_tracked': False,
        })

    generate_fn = app_ctx.generate_text if app_ctx.gemini_client is not None else None
    context = app_ctx.load_entitlement_context(uid)
    try:
        pathway, usage_tracked = app_ctx.run_generation(
            uid,
            Action.USE_MY_STUDY_PATH,
            lambda: pathway_service.build_my_study_path(uid, profile, generate_fn=generate_fn, logger=app_ctx.logger),
            lambda record: app_ctx.pathways_repo.replace_user_pathway(app_ctx.db, uid, record),
            context,
        )
    except Exception as e:
        return _generation_error_response(app_ctx, uid, e)

    return app_ctx.jsonify({
        'state': pathway_service.STATE_READY,
        'pathway': pathway,
        'generated': True,
        'usage_tracked': usage_tracked,
    })


def update_step_status(app_ctx, request, step_number):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Pathway store is not configured'}), 503

    uid = decoded_token['uid']
    try:
        pathway = app_ctx.load_current_pathway(uid)
    except Exception as e:
        app_ctx.logger.error(f"Error fetching pathway for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load pathway'}), 500
    if not pathway:
        return app_ctx.jsonify({'error': 'Pathway not found'}), 404

    try:
        updated = apply_step_status(pathway, step_number, payload.get('status'), payload.get('notes'))
    except ValueError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except KeyError:
        return app_ctx.jsonify({'error': 'Step not found'}), 404

    try:
        app_ctx.pathways_repo.replace_user_pathway(app_ctx.db, uid, updated)
    except Exception as e:
        app_ctx.logger.error(f"Error saving step {step_number} for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not update step'}), 500
    return app_ctx.jsonify({
        'pathway': updated,
        'completion': pathway_service.completion_percentage(updated),
    })


def export_pathway_pdf(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Pathway store is not configured'}), 503

    uid = decoded_token['uid']
    try:
        pathway = app_ctx.load_current_pathway(uid)
    except Exception as e:
        app_ctx.logger.error(f"Error fetching pathway for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load pathway'}), 500
    if not pathway:
        return app_ctx.jsonify({'error': 'Pathway not found'}), 404

    context = app_ctx.load_entitlement_context(uid)
    if not context.can_perform(Action.EXPORT_PDF):
        return app_ctx.build_upgrade_required_response(Action.EXPORT_PDF.value, context.plan_tier)
    try:
        pdf_io = pathway_export_service.build_pathway_pdf(pathway)
    except Exception as e:
        app_ctx.logger.info(f"Error exporting pathway PDF for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not export PDF'}), 500

    track_usage(context, Action.EXPORT_PDF, increment_usage=app_ctx.increment_usage, logger=app_ctx.logger)
    return app_ctx.send_file(
        pdf_io,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"pathway-{pathway.get('id') or uid}.pdf",
    )


def _save_history(app_ctx, record):
    doc_ref = app_ctx.pathways_repo.create_history_doc_ref(app_ctx.db)
    record['historyId'] = doc_ref.id
    doc_ref.set(record)


def generate_edvisor_pathway(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    country = str(payload.get('country', '') or '').strip()[:120]
    course = str(payload.get('course', '') or '').strip()[:120]
    academic_level = str(payload.get('academicLevel', '') or '').strip()[:60] or 'Graduate'
    nationality = str(payload.get('nationality', '') or '').strip()[:120]
    if not country or not course:
        return app_ctx.jsonify({'error': 'country and course are required'}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Pathway store is not configured'}), 503

    uid = decoded_token['uid']
    context = app_ctx.load_entitlement_context(uid)
    try:
        pathway, usage_tracked = app_ctx.run_generation(
            uid,
            Action.GENERATE_PATHWAY,
            lambda: pathway_service.build_edvisor_pathway(
                uid, country, course, academic_level, nationality,
                generate_fn=app_ctx.generate_text, logger=app_ctx.logger,
            ),
            lambda record: _save_history(app_ctx, record),
            context,
        )
    except Exception as e:
        return _generation_error_response(app_ctx, uid, e)
    return app_ctx.jsonify({'pathway': pathway, 'usage_tracked': usage_tracked})


def generate_uniguide_analysis(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    request_text = str(payload.get('request', '') or '').strip()[:app_ctx.MAX_UNIGUIDE_REQUEST_CHARS]
    if not request_text:
        return app_ctx.jsonify({'error': 'request is required'}), 400
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Pathway store is not configured'}), 503

    uid = decoded_token['uid']
    context = app_ctx.load_entitlement_context(uid)
    try:
        pathway, usage_tracked = app_ctx.run_generation(
            uid,
            Action.USE_UNIGUIDE_PRO,
            lambda: pathway_service.build_uniguide_analysis(
                uid,
                request_text,
                str(payload.get('country', '') or '').strip()[:120],
                str(payload.get('course', '') or '').strip()[:120],
                str(payload.get('academicLevel', '') or '').strip()[:60],
                generate_fn=app_ctx.generate_text,
                logger=app_ctx.logger,
            ),
            lambda record: _save_history(app_ctx, record),
            context,
        )
    except Exception as e:
        return _generation_error_response(app_ctx, uid, e)
    return app_ctx.jsonify({'pathway': pathway, 'usage_tracked': usage_tracked})


def list_history(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Pathway store is not configured'}), 503
    uid = decoded_token['uid']
    try:
        docs = app_ctx.pathways_repo.list_history_by_uid(app_ctx.db, uid, app_ctx.MAX_HISTORY_ITEMS)
    except Exception as e:
        app_ctx.logger.error(f"Error listing pathway history for user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load pathway history'}), 500
    items = [pathway_service.history_summary(doc.id, doc.to_dict() or {}) for doc in docs]
    items.sort(key=lambda item: str(item.get('createdAt') or ''), reverse=True)
    return app_ctx.jsonify({'history': items})


def delete_history_entry(app_ctx, request, entry_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if app_ctx.db is None:
        return app_ctx.jsonify({'error': 'Pathway store is not configured'}), 503
    uid = decoded_token['uid']
    try:
        snapshot = app_ctx.pathways_repo.get_history_doc(app_ctx.db, entry_id)
        if not snapshot.exists:
            return app_ctx.jsonify({'error': 'Pathway not found'}), 404
        if (snapshot.to_dict() or {}).get('userId', '') != uid:
            return app_ctx.jsonify({'error': 'Forbidden'}), 403
        app_ctx.pathways_repo.history_doc_ref(app_ctx.db, entry_id).delete()
    except Exception as e:
        app_ctx.logger.error(f"Error deleting pathway history {entry_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete pathway'}), 500
    return app_ctx.jsonify({'ok': True})
