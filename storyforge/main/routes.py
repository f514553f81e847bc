from flask import jsonify
from flask_login import current_user, login_required

from ..models import Project
from ..services.plans import get_plan_catalog, get_subscription_snapshot
from . import bp


@bp.route("/")
def index():
    return jsonify({"name": "StoryForge", "status": "ok"})


@bp.route("/plans")
def plans():
    return jsonify({"plans": get_plan_catalog()})


@bp.route("/dashboard")
@login_required
def dashboard():
    projects = (
        Project.query.filter_by(owner_id=current_user.id)
        .order_by(Project.updated_at.desc())
        .all()
    )
    return jsonify(
        {
            "user": current_user.to_dict(),
            "subscription": get_subscription_snapshot(current_user),
            "projects": [project.to_dict() for project in projects],
        }
    )
