import math

from flask import Blueprint, current_app, request, jsonify

import store
from contributions import calculate_payout, has_contributed_today, load_cycle, process_payout, record_contribution
from ledger import compute_balance
from models import TransactionType
from passbook import project_months, render_summary
from routes.adminauth import admin_login_required, current_admin
from schemas import PayoutRequest, RecordContributionRequest
from utils import app_timezone, local_date, utcnow

# Create Blueprint
transactions_bp = Blueprint('transactions', __name__, url_prefix='/admin/transactions')


def _result_response(result, created=False):
    status = result.status_code
    if created and result.success:
        status = 201
    return jsonify(result.to_dict()), status


def passbook_payload(transactions, joined_at, months=None):
    """Passbook grid, summary and balance for one member's cycle"""
    tz = app_timezone()
    months = months or current_app.config['PASSBOOK_MONTHS']
    start_date = local_date(joined_at, tz)
    today = local_date(utcnow(), tz)
    return {
        'start_date': start_date.isoformat(),
        'today': today.isoformat(),
        'months': [m.to_dict() for m in project_months(start_date, months, today, transactions, tz)],
        'summary': render_summary(transactions, start_date, months, tz).to_dict(),
        'balance': compute_balance(transactions).to_dict(),
    }


# Routes
@transactions_bp.route('', methods=['GET'])
@admin_login_required
def transactions_list():
    """All transactions: overall totals plus one filtered page"""
    type_filter = request.args.get('type', 'all')
    search = request.args.get('query', '').strip()
    page = max(request.args.get('page', 1, type=int), 1)
    page_size = max(request.args.get('pageSize', current_app.config['PAGE_SIZE'], type=int), 1)

    # Summary stats cover everything, not just the page
    totals = store.transaction_totals()
    stats = {
        'total': sum(totals.values()),
        'deposits': totals[TransactionType.DEPOSIT],
        'withdrawals': totals[TransactionType.WITHDRAWAL],
        'fees': totals[TransactionType.FEE],
    }

    transactions, total = store.list_transactions(
        type=type_filter if type_filter != 'all' else None,
        search=search or None,
        page=page,
        page_size=page_size,
    )
    profiles = store.get_profiles({t.user_id for t in transactions if t.user_id})

    return jsonify({
        'success': True,
        'stats': stats,
        'transactions': [
            dict(t.model_dump(mode='json'),
                 member_name=profiles[t.user_id].full_name if t.user_id in profiles else None)
            for t in transactions
        ],
        'total': total,
        'page': page,
        'page_size': page_size,
        'total_pages': math.ceil(total / page_size),
    })


@transactions_bp.route('/schemes/<scheme_id>/record', methods=['POST'])
@admin_login_required
def record(scheme_id):
    """Record a contribution; omit `date` for today, pass one to backdate"""
    form = RecordContributionRequest.model_validate(request.get_json(silent=True) or {})
    scheme = store.require_scheme(scheme_id)

    when = form.date
    if when is not None and when.tzinfo is None:
        when = when.replace(tzinfo=app_timezone())

    if form.notes:
        notes = form.notes
    elif when is not None:
        notes = f"Manual contribution for {when.date().isoformat()} recorded by Admin"
    else:
        notes = f"Daily contribution - {local_date(utcnow(), app_timezone()).isoformat()}"

    result = record_contribution(
        current_admin(),
        user_id=form.user_id,
        scheme_id=scheme_id,
        amount=form.amount if form.amount is not None else scheme.contribution_amount,
        type=form.type,
        date=when,
        notes=notes,
    )
    return _result_response(result, created=True)


@transactions_bp.route('/schemes/<scheme_id>/members/<user_id>', methods=['GET'])
@admin_login_required
def member_card(scheme_id, user_id):
    """Member's passbook, balance and cycle ledger in one scheme"""
    scheme, membership, transactions = load_cycle(user_id, scheme_id)
    profile = store.get_profile(user_id)
    months = request.args.get('months', current_app.config['PASSBOOK_MONTHS'], type=int)

    return jsonify(dict(
        passbook_payload(transactions, membership.joined_at, months),
        success=True,
        member=profile.model_dump(mode='json') if profile else None,
        scheme=scheme.model_dump(mode='json'),
        membership=membership.model_dump(mode='json'),
        ledger=[t.model_dump(mode='json') for t in transactions],
    ))


@transactions_bp.route('/schemes/<scheme_id>/members/<user_id>/today', methods=['GET'])
@admin_login_required
def contributed_today(scheme_id, user_id):
    return jsonify({
        'success': True,
        'contributed_today': has_contributed_today(user_id, scheme_id, app_timezone()),
    })


@transactions_bp.route('/schemes/<scheme_id>/members/<user_id>/payout', methods=['GET'])
@admin_login_required
def payout_preview(scheme_id, user_id):
    """Payout breakdown before anything is written"""
    result = calculate_payout(
        user_id, scheme_id,
        strategy=request.args.get('strategy') or None,
        default_strategy=current_app.config['CHARGE_STRATEGY'],
        tz=app_timezone(),
    )
    return _result_response(result)


@transactions_bp.route('/schemes/<scheme_id>/members/<user_id>/payout', methods=['POST'])
@admin_login_required
def payout(scheme_id, user_id):
    form = PayoutRequest.model_validate(request.get_json(silent=True) or {})
    result = process_payout(
        current_admin(),
        user_id=user_id,
        scheme_id=scheme_id,
        notes=form.notes,
        amount_mode=form.amount_mode,
        custom_amount=form.amount,
        strategy=form.strategy,
        default_strategy=current_app.config['CHARGE_STRATEGY'],
        tz=app_timezone(),
    )
    return _result_response(result, created=True)
