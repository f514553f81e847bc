from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from ..errors import BackendGenerationError, GenerationGateError
from ..extensions import db
from ..services.generation_gate import handle_generation_request
from ..services.plans import get_subscription_snapshot
from . import bp


@bp.route("/generate-story", methods=["POST"])
def generate_story():
    payload = request.get_json(silent=True)
    try:
        output = handle_generation_request(request.headers.get("Authorization"), payload)
    except GenerationGateError as exc:
        current_app.logger.info("Generation request rejected (%s): %s", exc.status_code, exc)
        return jsonify(exc.to_dict()), exc.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Unexpected error while generating story content")
        return jsonify(BackendGenerationError().to_dict()), BackendGenerationError.status_code

    return jsonify({"text": output.text})


@bp.route("/subscription")
@login_required
def subscription():
    return jsonify(get_subscription_snapshot(current_user))
