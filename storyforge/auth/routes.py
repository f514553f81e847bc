from flask import current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ..extensions import db, login_manager
from ..json_forms import bind_json_form, form_error_details
from ..models import User
from ..services.plans import apply_tier, get_subscription_snapshot
from . import bp
from .forms import LoginForm, RegistrationForm
from .tokens import issue_access_token, load_user_from_authorization


@login_manager.request_loader
def load_user_from_request(req):
    return load_user_from_authorization(req.headers.get("Authorization"))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


@bp.route("/register", methods=["POST"])
def register():
    form = bind_json_form(RegistrationForm)
    if not form.validate():
        return jsonify({"error": "Invalid registration details", "details": form_error_details(form)}), 400

    user = User(email=form.email.data.lower(), display_name=form.display_name.data.strip())
    user.set_password(form.password.data)
    apply_tier(user, "free")
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("Registered account %s", user.id)
    return jsonify({"user": user.to_dict()}), 201


@bp.route("/login", methods=["POST"])
def login():
    form = bind_json_form(LoginForm)
    if not form.validate():
        return jsonify({"error": "Invalid login details", "details": form_error_details(form)}), 400

    user = User.query.filter_by(email=form.email.data.lower()).first()
    if not user or not user.check_password(form.password.data):
        current_app.logger.info("Failed sign-in for %s from %s", form.email.data.lower(), request.remote_addr)
        return jsonify({"error": "Invalid email or password."}), 401

    login_user(user)
    return jsonify(
        {
            "access_token": issue_access_token(user),
            "token_type": "bearer",
            "expires_in": current_app.config["ACCESS_TOKEN_TTL_SECONDS"],
            "user": user.to_dict(),
        }
    )


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"status": "signed_out"})


@bp.route("/me")
@login_required
def me():
    return jsonify({"user": current_user.to_dict(), "subscription": get_subscription_snapshot(current_user)})


@bp.route("/csrf-token")
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})
