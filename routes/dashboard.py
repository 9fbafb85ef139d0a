from flask import Blueprint, jsonify

import store
from models import Role, TransactionType
from routes.adminauth import admin_login_required
from utils import app_timezone, local_date, local_day_bounds, utcnow

# Create Blueprint
dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/admin')


@dashboard_bp.route('/dashboard')
@admin_login_required
def admin_dashboard():
    """Headline figures for the admin home page"""
    member_count = store.count_profiles(Role.MEMBER)

    recent, _ = store.list_transactions(limit=5)
    profiles = store.get_profiles({t.user_id for t in recent if t.user_id})
    schemes = {s.id: s for s in store.list_schemes()}

    # Portfolio: money collected minus money paid out
    totals = store.transaction_totals()
    portfolio = totals[TransactionType.DEPOSIT] - totals[TransactionType.WITHDRAWAL]

    tz = app_timezone()
    start, _ = local_day_bounds(local_date(utcnow(), tz), tz)
    deposits_today = store.transaction_totals(type=TransactionType.DEPOSIT.value, since=start)
    daily_collection = deposits_today[TransactionType.DEPOSIT]

    return jsonify({
        'success': True,
        'member_count': member_count,
        'total_portfolio': portfolio,
        'daily_collection': daily_collection,
        'recent_transactions': [
            dict(t.model_dump(mode='json'),
                 member_name=profiles[t.user_id].full_name if t.user_id in profiles else None,
                 scheme_name=schemes[t.scheme_id].name if t.scheme_id in schemes else None)
            for t in recent
        ],
    })
