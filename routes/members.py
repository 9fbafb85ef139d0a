import logging
import math
import re

from flask import Blueprint, current_app, request, jsonify
from postgrest.exceptions import APIError
from supabase import AuthError

import store
from models import Role
from routes.adminauth import admin_login_required
from schemas import CreateMemberRequest, UpdateMemberRequest
from supabase_client import get_supabase

logger = logging.getLogger(__name__)

# Create Blueprint
members_bp = Blueprint('members', __name__, url_prefix='/admin/members')


def generated_email(phone_number):
    """Placeholder login email for members who have none"""
    digits = re.sub(r'\D', '', phone_number)
    return f"{digits}@{current_app.config['MEMBER_EMAIL_DOMAIN']}"


# Routes
@members_bp.route('', methods=['GET'])
@admin_login_required
def members_list():
    """Members, searchable by name"""
    search = request.args.get('query', '').strip()
    page = max(request.args.get('page', 1, type=int), 1)
    page_size = max(request.args.get('pageSize', current_app.config['PAGE_SIZE'], type=int), 1)

    members, total = store.list_profiles(Role.MEMBER, search=search or None, page=page, page_size=page_size)
    return jsonify({
        'success': True,
        'members': [m.model_dump(mode='json') for m in members],
        'total': total,
        'page': page,
        'page_size': page_size,
        'total_pages': math.ceil(total / page_size),
    })


@members_bp.route('', methods=['POST'])
@admin_login_required
def add_member():
    """Create a member login; email and password fall back to the phone number"""
    form = CreateMemberRequest.model_validate(request.get_json(silent=True) or {})

    email = (form.email or '').lower() or generated_email(form.phone_number)
    password = form.password or form.phone_number

    try:
        response = get_supabase().auth.admin.create_user({
            'email': email,
            'password': password,
            'email_confirm': True,
            'user_metadata': {
                'full_name': form.full_name,
                'phone_number': form.phone_number,
                'alt_phone_number': form.alt_phone_number,
                'home_address': form.home_address,
                'role': Role.MEMBER.value,
            },
        })
    except AuthError as e:
        logger.error("Error creating member %s: %s", email, e)
        return jsonify({'success': False, 'message': str(e)}), 400

    logger.info("Member %s created as %s", response.user.id, email)
    return jsonify({
        'success': True,
        'user_id': response.user.id,
        'generated_email': email,
        'temp_password': password,
    }), 201


@members_bp.route('/<user_id>', methods=['GET'])
@admin_login_required
def member_details(user_id):
    """Member profile with scheme memberships"""
    profile = store.require_profile(user_id)
    memberships = store.list_memberships(user_id=user_id)
    return jsonify({
        'success': True,
        'member': profile.model_dump(mode='json'),
        'memberships': [m.model_dump(mode='json') for m in memberships],
    })


@members_bp.route('/<user_id>/edit', methods=['POST'])
@admin_login_required
def edit_member(user_id):
    form = UpdateMemberRequest.model_validate(request.get_json(silent=True) or {})
    fields = form.model_dump(exclude_unset=True)
    if not fields:
        return jsonify({'success': False, 'message': 'Nothing to update'}), 400

    store.require_profile(user_id)
    profile = store.update_profile(user_id, fields)
    return jsonify({'success': True, 'message': 'Member updated successfully',
                    'member': profile.model_dump(mode='json') if profile else None})


@members_bp.route('/<user_id>/delete', methods=['POST'])
@admin_login_required
def delete_member(user_id):
    """Remove a member login; storage refuses while transactions reference it"""
    store.require_profile(user_id)
    try:
        get_supabase().auth.admin.delete_user(user_id)
    except (AuthError, APIError) as e:
        logger.error("Error deleting member %s: %s", user_id, e)
        return jsonify({'success': False, 'message': f'Failed to delete member: {e}'}), 400

    logger.info("Member %s deleted", user_id)
    return jsonify({'success': True, 'message': 'Member deleted successfully'})
