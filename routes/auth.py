"""Authentication blueprint: a single shared inspector login."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import UserMixin, current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from flask_wtf.csrf import generate_csrf
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Length

from extensions import login_manager
from utils.security import credentials_match, reset_attempts, track_attempt

auth_bp = Blueprint("auth", __name__)


class InspectorUser(UserMixin):
    def __init__(self, username: str):
        self.id = username
        self.username = username


class LoginForm(FlaskForm):
    username = StringField("Username", validators=[DataRequired(), Length(max=150)])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember me")


@login_manager.user_loader
def load_user(user_id):
    if user_id and user_id == current_app.config.get("ADMIN_USERNAME"):
        return InspectorUser(user_id)
    return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Authentication required"}), 401


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@auth_bp.route("/login", methods=["POST"])
def login():
    if current_user.is_authenticated:
        return jsonify({"username": current_user.username})

    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({"error": "Username and password are required", "fields": form.errors}), 400

    attempt_key = f"login:{request.remote_addr}"
    if not track_attempt(
        attempt_key,
        limit=int(current_app.config.get("LOGIN_ATTEMPT_LIMIT", 10)),
        window_seconds=int(current_app.config.get("LOGIN_ATTEMPT_WINDOW", 15 * 60)),
    ):
        current_app.logger.warning("Login rate limit reached", extra={"ip": request.remote_addr})
        return jsonify({"error": "Too many attempts. Try again later."}), 429

    if not credentials_match(
        form.username.data,
        form.password.data,
        current_app.config.get("ADMIN_USERNAME", ""),
        current_app.config.get("ADMIN_PASSWORD", ""),
    ):
        current_app.logger.warning("Failed login", extra={"ip": request.remote_addr})
        return jsonify({"error": "Invalid credentials"}), 401

    reset_attempts(attempt_key)
    login_user(InspectorUser(form.username.data), remember=bool(form.remember_me.data))
    current_app.logger.info("Inspector logged in", extra={"ip": request.remote_addr})
    return jsonify({"username": form.username.data})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"logged_out": True})
