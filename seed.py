"""Load demo data: one admin, five members, a scheme of each type."""

import logging
from datetime import timedelta

from supabase import AuthError, create_client

from config import Config
from utils import utcnow

logger = logging.getLogger(__name__)

ADMIN = {'email': 'admin@adashi.com', 'name': 'Adashi Admin', 'phone': '08012345678',
         'address': '123 Admin St, Abuja'}

MEMBERS = [
    {'email': 'member1@test.com', 'name': 'Musa Ibrahim', 'phone': '07011111111', 'address': '12 Market Road, Kano'},
    {'email': 'member2@test.com', 'name': 'Zainab Bello', 'phone': '07022222222', 'address': '45 GRA, Kaduna'},
    {'email': 'member3@test.com', 'name': 'Chidi Okafor', 'phone': '07033333333', 'address': '88 Wuse 2, Abuja'},
    {'email': 'member4@test.com', 'name': 'Fatima Yusuf', 'phone': '07044444444', 'address': '101 Emir Palace Rd, Sokoto'},
    {'email': 'member5@test.com', 'name': 'Emeka Nnamdi', 'phone': '07055555555', 'address': '22 Alaba Int, Lagos'},
]


def ensure_user(supabase, person, role):
    """Create the login, or find the existing profile by phone number"""
    try:
        response = supabase.auth.admin.create_user({
            'email': person['email'],
            'password': 'password',
            'email_confirm': True,
            'user_metadata': {
                'full_name': person['name'],
                'role': role,
                'phone_number': person['phone'],
                'home_address': person['address'],
            },
        })
        return response.user.id
    except AuthError as e:
        logger.info("%s already exists (%s), reusing", person['email'], e)

    existing = supabase.table('profiles')\
        .select('id')\
        .eq('phone_number', person['phone'])\
        .limit(1)\
        .execute()
    return existing.data[0]['id'] if existing.data else None


def seed(supabase):
    admin_id = ensure_user(supabase, ADMIN, 'admin')
    member_ids = [mid for mid in (ensure_user(supabase, m, 'member') for m in MEMBERS) if mid]
    if not admin_id or not member_ids:
        raise RuntimeError('Could not create seed users')

    schemes = supabase.table('schemes').insert([
        {
            'name': 'Main Market Akawo',
            'type': 'akawo',
            'admin_id': admin_id,
            'contribution_amount': 1000,
            'frequency': 'daily',
            'rules': {'service_charge_percent': 5},
        },
        {
            'name': 'Kano Rotating Savings',
            'type': 'kwanta',
            'admin_id': admin_id,
            'contribution_amount': 5000,
            'frequency': 'weekly',
            'rules': {'payout_order': 'random'},
        },
        {
            'name': 'Sallah 2026 Ajita',
            'type': 'ajita',
            'admin_id': admin_id,
            'contribution_amount': 0,
            'frequency': 'monthly',
            'end_date': '2026-06-20',
            'rules': {'locked': True},
        },
    ]).execute().data
    akawo, kwanta, ajita = schemes

    memberships = (
        [{'scheme_id': akawo['id'], 'user_id': mid, 'status': 'active'} for mid in member_ids[:3]]
        + [{'scheme_id': kwanta['id'], 'user_id': mid, 'status': 'active', 'payout_order': i + 1}
           for i, mid in enumerate(member_ids)]
        + [{'scheme_id': ajita['id'], 'user_id': mid, 'status': 'active'} for mid in member_ids[2:5]]
    )
    supabase.table('scheme_members').upsert(memberships, on_conflict='scheme_id,user_id').execute()

    # Two recent Akawo deposits for each member; joined_at defaults to now,
    # so backdate it to keep them inside the cycle.
    now = utcnow()
    for mid in member_ids[:3]:
        supabase.table('scheme_members')\
            .update({'joined_at': (now - timedelta(days=7)).isoformat()})\
            .eq('scheme_id', akawo['id'])\
            .eq('user_id', mid)\
            .execute()

    transactions = []
    for mid in member_ids[:3]:
        for days_ago, note in ((5, 'Initial deposit'), (4, 'Day 2 deposit')):
            transactions.append({
                'user_id': mid,
                'scheme_id': akawo['id'],
                'admin_id': admin_id,
                'amount': 1000,
                'type': 'deposit',
                'notes': note,
                'date': (now - timedelta(days=days_ago)).isoformat(),
            })
    supabase.table('transactions').insert(transactions).execute()

    logger.info("Seeded %d members, %d schemes, %d transactions", len(member_ids), len(schemes), len(transactions))


if __name__ == '__main__':
    logging.basicConfig(level=Config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    seed(create_client(Config.SUPABASE_URL, Config.SUPABASE_KEY))
    logger.info("Database seeded. Admin: %s / password, members: member1..5@test.com / password", ADMIN['email'])
