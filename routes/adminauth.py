import logging
from functools import wraps

from flask import Blueprint, request, session, jsonify
from supabase import AuthError

import store
from contributions import Actor
from models import Role
from schemas import LoginRequest
from supabase_client import get_auth_client

logger = logging.getLogger(__name__)

# Create Blueprint
adminauth_bp = Blueprint('adminauth', __name__, url_prefix='/admin')


# Admin required decorator
def admin_login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('admin_logged_in'):
            return jsonify({'success': False, 'message': 'Please login to access this page'}), 401
        if session.get('admin_role') != Role.ADMIN.value:
            return jsonify({'success': False, 'message': 'Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated_function


def current_admin():
    """Actor for the signed-in admin, or None"""
    if not session.get('admin_logged_in'):
        return None
    return Actor(user_id=session['admin_id'], role=Role(session.get('admin_role', Role.MEMBER.value)))


def sign_in(email, password):
    """Check credentials with Supabase Auth and load the caller's profile.

    Returns the profile, or None when the credentials are rejected.
    """
    try:
        response = get_auth_client().auth.sign_in_with_password({'email': email, 'password': password})
    except AuthError as e:
        logger.info("Sign-in rejected for %s: %s", email, e)
        return None

    if response is None or response.user is None:
        return None
    return store.get_profile(response.user.id)


# Routes
@adminauth_bp.route('/login', methods=['POST'])
def admin_login():
    credentials = LoginRequest.model_validate(request.get_json(silent=True) or request.form.to_dict())

    profile = sign_in(credentials.email, credentials.password)
    if profile is None:
        return jsonify({'success': False, 'message': 'Invalid email or password'}), 401

    # Role comes from the profile row, never from the email address
    if profile.role != Role.ADMIN:
        logger.warning("Non-admin %s tried the admin portal", credentials.email)
        return jsonify({'success': False, 'message': 'Admin account not found'}), 403

    session.clear()
    session['admin_logged_in'] = True
    session['admin_id'] = profile.id
    session['admin_email'] = profile.email or credentials.email
    session['admin_name'] = profile.full_name or 'Admin'
    session['admin_role'] = profile.role.value

    logger.info("Admin %s logged in", profile.id)
    return jsonify({'success': True, 'message': 'Login successful!', 'admin': profile.model_dump(mode='json')})


@adminauth_bp.route('/logout')
@admin_login_required
def admin_logout():
    logger.info("Admin %s logged out", session.get('admin_id'))
    session.clear()
    return jsonify({'success': True, 'message': 'You have been logged out successfully'})
