"""Reads and writes against the Supabase tables.

Tables: profiles, schemes, scheme_members, transactions. Storage errors
(postgrest APIError) propagate to the caller.
"""

from decimal import Decimal

from models import Membership, Profile, Scheme, Transaction, TransactionType, Role
from supabase_client import get_supabase
from utils import to_decimal

# PostgREST max-rows default
BATCH_SIZE = 1000


class RecordNotFound(LookupError):
    pass


def _first(response):
    if response.data and len(response.data) > 0:
        return response.data[0]
    return None


# Profiles
def get_profile(user_id):
    row = _first(get_supabase().table('profiles')
                 .select('*')
                 .eq('id', user_id)
                 .limit(1)
                 .execute())
    return Profile.model_validate(row) if row else None


def require_profile(user_id):
    profile = get_profile(user_id)
    if profile is None:
        raise RecordNotFound(f"Member {user_id} not found")
    return profile


def get_profiles(user_ids):
    """Profiles keyed by id"""
    if not user_ids:
        return {}
    response = get_supabase().table('profiles')\
        .select('*')\
        .in_('id', list(user_ids))\
        .execute()
    return {row['id']: Profile.model_validate(row) for row in response.data or []}


def list_profiles(role=Role.MEMBER, search=None, page=1, page_size=10):
    """One page of profiles with the total match count"""
    query = get_supabase().table('profiles')\
        .select('*', count='exact')\
        .eq('role', Role(role).value)

    if search:
        query = query.ilike('full_name', f'%{search}%')

    start = (page - 1) * page_size
    response = query.order('full_name').range(start, start + page_size - 1).execute()
    profiles = [Profile.model_validate(row) for row in response.data or []]
    return profiles, response.count or 0


def count_profiles(role=Role.MEMBER):
    response = get_supabase().table('profiles')\
        .select('id', count='exact')\
        .eq('role', Role(role).value)\
        .execute()
    return response.count or 0


def update_profile(user_id, fields):
    response = get_supabase().table('profiles')\
        .update(fields)\
        .eq('id', user_id)\
        .execute()
    row = _first(response)
    return Profile.model_validate(row) if row else None


# Schemes
def get_scheme(scheme_id):
    row = _first(get_supabase().table('schemes')
                 .select('*')
                 .eq('id', scheme_id)
                 .limit(1)
                 .execute())
    return Scheme.model_validate(row) if row else None


def require_scheme(scheme_id):
    scheme = get_scheme(scheme_id)
    if scheme is None:
        raise RecordNotFound(f"Scheme {scheme_id} not found")
    return scheme


def list_schemes():
    response = get_supabase().table('schemes')\
        .select('*')\
        .order('created_at', desc=True)\
        .execute()
    return [Scheme.model_validate(row) for row in response.data or []]


def insert_scheme(data):
    response = get_supabase().table('schemes').insert(data).execute()
    return Scheme.model_validate(response.data[0])


# Memberships
def get_membership(scheme_id, user_id):
    row = _first(get_supabase().table('scheme_members')
                 .select('*')
                 .eq('scheme_id', scheme_id)
                 .eq('user_id', user_id)
                 .limit(1)
                 .execute())
    return Membership.model_validate(row) if row else None


def require_membership(scheme_id, user_id):
    membership = get_membership(scheme_id, user_id)
    if membership is None:
        raise RecordNotFound(f"Member {user_id} is not assigned to scheme {scheme_id}")
    return membership


def list_memberships(scheme_id=None, user_id=None, status=None):
    query = get_supabase().table('scheme_members').select('*')
    if scheme_id:
        query = query.eq('scheme_id', scheme_id)
    if user_id:
        query = query.eq('user_id', user_id)
    if status:
        query = query.eq('status', status)
    response = query.order('joined_at').execute()
    return [Membership.model_validate(row) for row in response.data or []]


def insert_memberships(rows):
    if not rows:
        return []
    response = get_supabase().table('scheme_members').insert(rows).execute()
    return [Membership.model_validate(row) for row in response.data or []]


def delete_memberships(scheme_id, user_ids):
    if not user_ids:
        return
    get_supabase().table('scheme_members')\
        .delete()\
        .eq('scheme_id', scheme_id)\
        .in_('user_id', list(user_ids))\
        .execute()


def update_membership(scheme_id, user_id, fields):
    response = get_supabase().table('scheme_members')\
        .update(fields)\
        .eq('scheme_id', scheme_id)\
        .eq('user_id', user_id)\
        .execute()
    row = _first(response)
    return Membership.model_validate(row) if row else None


# Transactions
def fetch_cycle_transactions(user_id, scheme_id, since):
    """A member's transactions in a scheme dated on or after `since`, newest first"""
    response = get_supabase().table('transactions')\
        .select('*')\
        .eq('user_id', user_id)\
        .eq('scheme_id', scheme_id)\
        .gte('date', since.isoformat())\
        .order('date', desc=True)\
        .execute()
    return [Transaction.model_validate(row) for row in response.data or []]


def insert_transactions(rows):
    """Append rows in a single insert statement"""
    response = get_supabase().table('transactions').insert(rows).execute()
    return [Transaction.model_validate(row) for row in response.data or []]


def list_transactions(user_id=None, scheme_id=None, type=None, search=None,
                      since=None, until=None, page=None, page_size=None, limit=None):
    """Filtered transactions, newest first, with the total match count"""
    query = get_supabase().table('transactions').select('*', count='exact')
    if user_id:
        query = query.eq('user_id', user_id)
    if scheme_id:
        query = query.eq('scheme_id', scheme_id)
    if type:
        query = query.eq('type', type)
    if search:
        query = query.ilike('notes', f'%{search}%')
    if since:
        query = query.gte('date', since.isoformat())
    if until:
        query = query.lt('date', until.isoformat())

    query = query.order('date', desc=True)
    if page and page_size:
        start = (page - 1) * page_size
        query = query.range(start, start + page_size - 1)
    elif limit:
        query = query.limit(limit)

    response = query.execute()
    transactions = [Transaction.model_validate(row) for row in response.data or []]
    return transactions, response.count or len(transactions)


def transaction_totals(user_id=None, type=None, since=None, batch_size=BATCH_SIZE):
    """Amount per transaction type over every matching row.

    Reads a page at a time so totals are not cut off by the server's row cap.
    """
    totals = {kind: Decimal('0') for kind in TransactionType}
    start = 0
    while True:
        query = get_supabase().table('transactions').select('id, amount, type')
        if user_id:
            query = query.eq('user_id', user_id)
        if type:
            query = query.eq('type', type)
        if since:
            query = query.gte('date', since.isoformat())

        response = query.order('date').order('id').range(start, start + batch_size - 1).execute()
        batch = response.data or []
        for row in batch:
            totals[TransactionType(row['type'])] += to_decimal(row['amount'])
        if len(batch) < batch_size:
            return totals
        start += batch_size
