import logging
from collections import Counter
from decimal import Decimal

from flask import Blueprint, request, session, jsonify

import store
from models import MembershipStatus, SchemeType, TransactionType
from routes.adminauth import admin_login_required
from schemas import AssignMembersRequest, CreateSchemeRequest, MemberStatusRequest, PayoutOrderRequest
from utils import app_timezone, local_date, local_day_bounds, utcnow

logger = logging.getLogger(__name__)

# Create Blueprint
schemes_bp = Blueprint('schemes', __name__, url_prefix='/admin/schemes')


def _status_counts(memberships):
    counts = Counter(m.status.value for m in memberships)
    return {status.value: counts.get(status.value, 0) for status in MembershipStatus}


def _json_rules(rules):
    # JSONB keeps numbers as numbers
    return {
        key: float(value) if isinstance(value, Decimal) else value
        for key, value in rules.model_dump(exclude_none=True).items()
    }


# Routes
@schemes_bp.route('', methods=['GET'])
@admin_login_required
def schemes_list():
    """All schemes with member counts"""
    schemes = store.list_schemes()
    memberships = store.list_memberships()

    by_scheme = {}
    for membership in memberships:
        by_scheme.setdefault(membership.scheme_id, []).append(membership)

    return jsonify({
        'success': True,
        'schemes': [
            dict(scheme.model_dump(mode='json'),
                 member_count=len(by_scheme.get(scheme.id, [])),
                 status_counts=_status_counts(by_scheme.get(scheme.id, [])))
            for scheme in schemes
        ],
    })


@schemes_bp.route('', methods=['POST'])
@admin_login_required
def create_scheme():
    form = CreateSchemeRequest.model_validate(request.get_json(silent=True) or {})

    scheme_data = {
        'name': form.name,
        'type': form.type.value,
        'admin_id': session['admin_id'],
        'contribution_amount': str(form.contribution_amount),
        'frequency': form.frequency.value,
        'description': form.description,
        'rules': _json_rules(form.rules),
    }
    if form.start_date:
        scheme_data['start_date'] = form.start_date.isoformat()
    if form.end_date:
        scheme_data['end_date'] = form.end_date.isoformat()

    scheme = store.insert_scheme(scheme_data)
    logger.info("Scheme %s (%s) created by %s", scheme.id, scheme.type.value, session['admin_id'])
    return jsonify({'success': True, 'message': 'Scheme created successfully',
                    'scheme': scheme.model_dump(mode='json')}), 201


@schemes_bp.route('/<scheme_id>', methods=['GET'])
@admin_login_required
def scheme_details(scheme_id):
    """Scheme with its members and status counts"""
    scheme = store.require_scheme(scheme_id)
    memberships = store.list_memberships(scheme_id=scheme_id)
    profiles = store.get_profiles({m.user_id for m in memberships})

    members = []
    for membership in memberships:
        profile = profiles.get(membership.user_id)
        members.append(dict(
            membership.model_dump(mode='json'),
            full_name=profile.full_name if profile else None,
            phone_number=profile.phone_number if profile else None,
        ))

    return jsonify({
        'success': True,
        'scheme': scheme.model_dump(mode='json'),
        'status_counts': _status_counts(memberships),
        'members': members,
    })


@schemes_bp.route('/<scheme_id>/assign', methods=['POST'])
@admin_login_required
def assign_members(scheme_id):
    """Make the scheme's membership match the submitted selection"""
    scheme = store.require_scheme(scheme_id)
    form = AssignMembersRequest.model_validate(request.get_json(silent=True) or {})

    current = store.list_memberships(scheme_id=scheme_id)
    current_ids = {m.user_id for m in current}
    selected = list(dict.fromkeys(form.user_ids))

    to_remove = current_ids - set(selected)
    to_add = [user_id for user_id in selected if user_id not in current_ids]

    store.delete_memberships(scheme_id, to_remove)

    rows = [{'scheme_id': scheme_id, 'user_id': user_id, 'status': MembershipStatus.ACTIVE.value}
            for user_id in to_add]
    if scheme.type == SchemeType.KWANTA:
        # Rotation continues after the highest order still in the scheme
        orders = [m.payout_order for m in current if m.user_id not in to_remove and m.payout_order]
        next_order = max(orders, default=0) + 1
        for offset, row in enumerate(rows):
            row['payout_order'] = next_order + offset
    added = store.insert_memberships(rows)

    logger.info("Scheme %s assignments: %d added, %d removed", scheme_id, len(to_add), len(to_remove))
    return jsonify({
        'success': True,
        'message': 'Assignments updated successfully!',
        'added': [m.user_id for m in added],
        'removed': sorted(to_remove),
    })


@schemes_bp.route('/<scheme_id>/members/<user_id>/status', methods=['POST'])
@admin_login_required
def update_member_status(scheme_id, user_id):
    form = MemberStatusRequest.model_validate(request.get_json(silent=True) or {})
    store.require_membership(scheme_id, user_id)
    membership = store.update_membership(scheme_id, user_id, {'status': form.status.value})
    return jsonify({'success': True, 'message': 'Status updated successfully!',
                    'membership': membership.model_dump(mode='json') if membership else None})


@schemes_bp.route('/<scheme_id>/members/<user_id>/payout-order', methods=['POST'])
@admin_login_required
def set_payout_order(scheme_id, user_id):
    """Display-only rotation slot; duplicates are allowed"""
    form = PayoutOrderRequest.model_validate(request.get_json(silent=True) or {})
    store.require_membership(scheme_id, user_id)
    membership = store.update_membership(scheme_id, user_id, {'payout_order': form.payout_order})
    return jsonify({'success': True, 'membership': membership.model_dump(mode='json') if membership else None})


@schemes_bp.route('/<scheme_id>/collect', methods=['GET'])
@admin_login_required
def collection_sheet(scheme_id):
    """Active members in join order, marked if they paid today"""
    scheme = store.require_scheme(scheme_id)
    memberships = store.list_memberships(scheme_id=scheme_id, status=MembershipStatus.ACTIVE.value)
    profiles = store.get_profiles({m.user_id for m in memberships})

    # One query for everyone who deposited today
    tz = app_timezone()
    start, end = local_day_bounds(local_date(utcnow(), tz), tz)
    deposits, _ = store.list_transactions(scheme_id=scheme_id, type=TransactionType.DEPOSIT.value,
                                          since=start, until=end)
    paid_today = {t.user_id for t in deposits}

    rows = []
    for membership in memberships:
        profile = profiles.get(membership.user_id)
        rows.append({
            'user_id': membership.user_id,
            'full_name': profile.full_name if profile else None,
            'phone_number': profile.phone_number if profile else None,
            'payout_order': membership.payout_order,
            'joined_at': membership.joined_at.isoformat(),
            'paid_today': membership.user_id in paid_today,
        })

    paid = sum(1 for row in rows if row['paid_today'])
    return jsonify({
        'success': True,
        'scheme': scheme.model_dump(mode='json'),
        'members': rows,
        'total_members': len(rows),
        'paid_today': paid,
        'pending_today': len(rows) - paid,
    })
