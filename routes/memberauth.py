# memberauth.py
import logging
from functools import wraps

from flask import Blueprint, request, session, jsonify

import store
from contributions import Actor
from models import Role
from routes.adminauth import sign_in
from schemas import LoginRequest
from supabase_client import get_supabase
from utils import utcnow

logger = logging.getLogger(__name__)

# Create Blueprint
memberauth_bp = Blueprint('memberauth', __name__, url_prefix='/member')


# Member login required decorator
def member_login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('member_logged_in'):
            return jsonify({'success': False, 'message': 'Please login to access this page'}), 401
        return f(*args, **kwargs)
    return decorated_function


def current_member():
    if not session.get('member_logged_in'):
        return None
    return Actor(user_id=session['member_id'], role=Role.MEMBER)


@memberauth_bp.route('/login', methods=['POST'])
def member_login():
    """Login with email and password"""
    credentials = LoginRequest.model_validate(request.get_json(silent=True) or request.form.to_dict())

    profile = sign_in(credentials.email, credentials.password)
    if profile is None or profile.role != Role.MEMBER:
        # Don't reveal whether the email exists
        return jsonify({'success': False, 'message': 'Invalid email or password'}), 401

    # Create login session
    session.clear()
    session['member_logged_in'] = True
    session['member_id'] = profile.id
    session['member_email'] = profile.email or credentials.email
    session['member_name'] = profile.full_name
    session['last_login'] = utcnow().isoformat()

    return jsonify({'success': True, 'message': f'Welcome {profile.full_name}'})


@memberauth_bp.route('/logout')
def member_logout():
    """Logout member"""
    session.clear()
    return jsonify({'success': True, 'message': 'Logged out successfully'})


@memberauth_bp.route('/me')
@member_login_required
def me():
    """Signed-in member's profile"""
    profile = store.require_profile(session['member_id'])
    return jsonify({'success': True, 'member': profile.model_dump(mode='json')})


# Health check endpoint
@memberauth_bp.route('/health')
def health_check():
    """Health check endpoint for monitoring."""
    try:
        get_supabase().table('profiles').select('id').limit(1).execute()
        return jsonify({
            'status': 'healthy',
            'timestamp': utcnow().isoformat(),
            'database': 'connected',
        }), 200
    except Exception as e:
        logger.exception("Health check failed")
        return jsonify({
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': utcnow().isoformat(),
        }), 503
