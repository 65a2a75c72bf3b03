# hospital_app_pkg/utils.py
import jwt
import datetime
import uuid
from functools import wraps
from flask import request, jsonify, current_app, g
from . import db
from .models import User, TokenBlacklist

# --- Tokens ---
def create_access_token(user_id):
    """Signed access token for `user_id`; the jti lets sign-out revoke it."""
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        'exp': now + datetime.timedelta(minutes=current_app.config['JWT_EXPIRATION_MINUTES']),
        'iat': now,
        'sub': str(user_id),
        'jti': str(uuid.uuid4()), # JWT ID, used for revocation on sign-out
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=current_app.config['JWT_ALGORITHM'])

def decode_access_token(token):
    """
    Verifies signature, expiry and revocation.
    Returns the claims dict, or a message string describing why the token was refused.
    """
    try:
        payload = jwt.decode(
            token,
            current_app.config['JWT_SECRET_KEY'],
            algorithms=[current_app.config['JWT_ALGORITHM']],
        )
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Rejected expired access token")
        return "Token has expired. Please sign in again."
    except jwt.InvalidSignatureError:
        current_app.logger.warning("Rejected access token with a bad signature")
        return "Invalid token signature. Please sign in again."
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Token decode failed: {e}")
        return "Invalid token. Please sign in again."

    if TokenBlacklist.query.filter_by(jti=payload.get('jti')).first():
        current_app.logger.info(f"Attempt to use revoked token (jti: {payload.get('jti')})")
        return "Token has been revoked (signed out)."
    return payload

# --- Authentication and permissions ---
def get_current_user_from_token():
    auth_header = request.headers.get('Authorization')
    token = None
    if auth_header and auth_header.startswith('Bearer '):
        token = auth_header[len('Bearer '):].strip()

    if not token:
        g.authentication_error = "No token provided."
        return None

    payload = decode_access_token(token)
    if isinstance(payload, str):
        g.authentication_error = payload
        return None

    try:
        user_id = int(payload.get('sub'))
    except (TypeError, ValueError):
        g.authentication_error = "Invalid token payload."
        return None

    # The user is re-fetched on every request; a deleted or deactivated
    # account loses access immediately.
    user = db.session.get(User, user_id)
    if not user:
        g.authentication_error = "User not found."
        return None
    if not user.is_active:
        g.authentication_error = "User account is inactive."
        return None

    g.current_token_jti = payload.get('jti')
    g.current_token_exp = payload.get('exp')
    return user

def permission_required(required_permission):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            current_user = get_current_user_from_token()

            if not current_user:
                error_message = getattr(g, 'authentication_error', "Authentication required.")
                return jsonify({"error": error_message}), 401

            g.current_user = current_user
            g.user_permissions = current_user.get_permissions()

            if required_permission not in g.user_permissions:
                return jsonify({"error": f"Permission '{required_permission}' required."}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator

# --- Request helpers ---
def get_json_body():
    """Returns the parsed JSON body, or None when the body is missing or not JSON."""
    return request.get_json(silent=True)

def get_limit_offset():
    """Reads limit/offset query parameters, clamped to the configured bounds."""
    limit = request.args.get('limit', current_app.config['DEFAULT_LIST_LIMIT'], type=int)
    offset = request.args.get('offset', 0, type=int)
    limit = max(1, min(limit, current_app.config['MAX_LIST_LIMIT']))
    return limit, max(0, offset)

def utc_day_bounds(day):
    """[start, end) naive UTC datetimes covering the calendar day `day`."""
    start = datetime.datetime.combine(day, datetime.time.min)
    return start, start + datetime.timedelta(days=1)

def utc_today():
    return datetime.datetime.utcnow().date()
