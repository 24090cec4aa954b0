"""Registration, login, profile and bearer-token authentication."""
import logging

from flask import Blueprint, jsonify
from flask_jwt_extended import JWTManager, create_access_token, get_jwt_identity, verify_jwt_in_request
from flask_login import LoginManager, current_user, login_required

from forms import LoginForm, ProfileForm, RegisterForm
from models import db, User
from repository import UserRepository

logger = logging.getLogger(__name__)

login_manager = LoginManager()
jwt = JWTManager()

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def init_auth(app):
    login_manager.init_app(app)
    jwt.init_app(app)


@login_manager.request_loader
def load_user_from_request(request):
    # Requests without a header fall through to unauthorized_handler;
    # bad or expired tokens are answered by the JWT error callbacks below.
    if not request.headers.get("Authorization"):
        return None
    verify_jwt_in_request()
    return db.session.get(User, int(get_jwt_identity()))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"message": "Authentication required", "code": "auth_required"}), 401


@jwt.unauthorized_loader
def missing_token(reason):
    return jsonify({"message": "Authentication required", "code": "auth_required"}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    logger.warning("Rejected token: %s", reason)
    return jsonify({"message": "Invalid or expired token", "code": "invalid_token"}), 401


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return jsonify({"message": "Invalid or expired token", "code": "invalid_token"}), 401


def issue_token(user):
    return create_access_token(identity=str(user.id))


@auth_bp.route("/register", methods=["POST"])
def register():
    form = RegisterForm().validated()
    user = UserRepository(db.session).register(
        username=form.username.data,
        email=form.email.data,
        password=form.password.data,
        first_name=form.first_name.data or None,
        last_name=form.last_name.data or None,
    )
    return jsonify({"message": "User registered successfully", "user": user.to_dict(),
                    "token": issue_token(user)}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    form = LoginForm().validated()
    user = UserRepository(db.session).authenticate(form.email.data, form.password.data)
    return jsonify({"message": "Login successful", "user": user.to_dict(), "token": issue_token(user)})


@users_bp.route("/me", methods=["GET"])
@login_required
def profile():
    return jsonify({"user": current_user.to_dict()})


@users_bp.route("/me", methods=["PATCH"])
@login_required
def update_profile():
    form = ProfileForm().validated()
    user = UserRepository(db.session).update(current_user.id, form.patch())
    return jsonify({"message": "Profile updated successfully", "user": user.to_dict()})
