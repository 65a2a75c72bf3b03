# hospital_app_pkg/auth/routes.py
from flask import Blueprint, jsonify, current_app, g
from .. import db
from ..models import User, UserRole, TokenBlacklist
from ..utils import create_access_token, permission_required, get_json_body
from ..validation import Field, validate_payload
from ..permissions import FIRST_USER_ROLE, DEFAULT_ROLE
from ..activities.services import record_activity
from sqlalchemy.exc import IntegrityError
import datetime

auth_bp = Blueprint('auth_bp', __name__)

MIN_PASSWORD_LENGTH = 8

SIGNUP_SCHEMA = {
    'email': Field('email', required=True),
    'password': Field('string', required=True, min_length=MIN_PASSWORD_LENGTH),
    'first_name': Field('string', required=True, min_length=1),
    'last_name': Field('string', required=True, min_length=1),
    'employee_id': Field('string'),
    'department': Field('string'),
    'phone': Field('string'),
}

SIGNIN_SCHEMA = {
    'email': Field('email', required=True),
    'password': Field('string', required=True, min_length=1),
}


def create_user(email, password, first_name, last_name, roles=None, **profile):
    """
    Creates a staff account. Without explicit `roles` the first account in the
    system becomes admin and every later one receptionist.
    """
    if roles is None:
        roles = [FIRST_USER_ROLE] if User.query.count() == 0 else [DEFAULT_ROLE]
    user = User(email=email, first_name=first_name, last_name=last_name, **profile)
    user.set_password(password)
    user.roles = [UserRole(role=role) for role in roles]
    db.session.add(user)
    db.session.commit()
    return user


@auth_bp.route('/signup', methods=['POST'])
def signup():
    data, errors = validate_payload(get_json_body(), SIGNUP_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    if User.query.filter_by(email=data['email']).first():
        return jsonify({"error": "Email already registered."}), 409

    try:
        user = create_user(**data)
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning(f"Signup rejected for {data['email']}: duplicate email or employee id")
        return jsonify({"error": "Email or employee id already registered."}), 409

    current_app.logger.info(f"New user registered: {user.email} ({', '.join(user.role_names)})")
    return jsonify({
        "user": user.to_dict(include_permissions=True),
        "token": create_access_token(user.id),
    }), 201


@auth_bp.route('/signin', methods=['POST'])
def signin():
    data, errors = validate_payload(get_json_body(), SIGNIN_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    user = User.query.filter_by(email=data['email']).first()
    if not user or not user.check_password(data['password']):
        current_app.logger.warning(f"Failed sign-in attempt for: {data['email']}")
        return jsonify({"error": "Invalid credentials."}), 401
    if not user.is_active:
        current_app.logger.warning(f"Inactive user sign-in attempt: {data['email']}")
        return jsonify({"error": "User account is inactive."}), 403

    record_activity('user_login', f"{user.full_name} signed in.",
                    entity_type='user', entity_id=user.id, user_id=user.id)
    db.session.commit()

    current_app.logger.info(f"User '{user.email}' signed in.")
    return jsonify({
        "user": user.to_dict(include_permissions=True),
        "token": create_access_token(user.id),
    }), 200


@auth_bp.route('/me', methods=['GET'])
@permission_required('user:profile:read')
def me():
    return jsonify({"user": g.current_user.to_dict(include_permissions=True)}), 200


@auth_bp.route('/signout', methods=['POST'])
@permission_required('user:profile:read')
def signout():
    jti = g.current_token_jti
    token_exp = g.current_token_exp
    if not jti or token_exp is None:
        return jsonify({"error": "Token information unavailable for sign-out."}), 400

    db.session.add(TokenBlacklist(
        jti=jti,
        expires_at=datetime.datetime.fromtimestamp(token_exp, datetime.timezone.utc).replace(tzinfo=None),
    ))
    record_activity('user_logout', f"{g.current_user.full_name} signed out.",
                    entity_type='user', entity_id=g.current_user.id, user_id=g.current_user.id)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning(f"IntegrityError: attempt to re-blacklist token JTI: {jti}")
        return jsonify({"error": "Token already revoked."}), 409

    current_app.logger.info(f"User {g.current_user.id} signed out. Token JTI {jti} blacklisted.")
    return jsonify({"success": True}), 200
