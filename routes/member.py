from flask import Blueprint, current_app, request, session, jsonify

import store
from contributions import load_cycle
from models import MembershipStatus, TransactionType
from routes.memberauth import member_login_required
from routes.transactions import passbook_payload

# Create Blueprint
member_bp = Blueprint('member', __name__, url_prefix='/member')


@member_bp.route('/')
@member_login_required
def dashboard():
    """Member dashboard"""
    member_id = session['member_id']

    memberships = store.list_memberships(user_id=member_id)
    schemes = {s.id: s for s in store.list_schemes()}

    recent, _ = store.list_transactions(user_id=member_id, limit=5)
    totals = store.transaction_totals(user_id=member_id)

    return jsonify({
        'success': True,
        'memberships': [
            dict(m.model_dump(mode='json'),
                 scheme=schemes[m.scheme_id].model_dump(mode='json') if m.scheme_id in schemes else None)
            for m in memberships
        ],
        'active_schemes': sum(1 for m in memberships if m.status == MembershipStatus.ACTIVE),
        'total_deposits': totals[TransactionType.DEPOSIT],
        'total_withdrawals': totals[TransactionType.WITHDRAWAL],
        'recent_transactions': [t.model_dump(mode='json') for t in recent],
    })


@member_bp.route('/schemes/<scheme_id>')
@member_login_required
def scheme_passbook(scheme_id):
    """Passbook for one of the member's schemes, scoped to the current cycle"""
    scheme, membership, transactions = load_cycle(session['member_id'], scheme_id)
    months = request.args.get('months', current_app.config['PASSBOOK_MONTHS'], type=int)

    return jsonify(dict(
        passbook_payload(transactions, membership.joined_at, months),
        success=True,
        scheme=scheme.model_dump(mode='json'),
        membership=membership.model_dump(mode='json'),
        ledger=[t.model_dump(mode='json') for t in transactions],
    ))


@member_bp.route('/history')
@member_login_required
def history():
    """Every transaction on the member's account, newest first"""
    transactions, total = store.list_transactions(user_id=session['member_id'])
    schemes = {s.id: s for s in store.list_schemes()}
    return jsonify({
        'success': True,
        'total': total,
        'transactions': [
            dict(t.model_dump(mode='json'),
                 scheme_name=schemes[t.scheme_id].name if t.scheme_id in schemes else None)
            for t in transactions
        ],
    })
