"""In-memory stand-in for the Supabase client, plus app and client fixtures.

FakeSupabase implements only the slice of the postgrest query builder and
auth admin API the app calls: select/insert/update/delete/upsert, the
eq/neq/gte/lt/lte/ilike/in_ filters, order, range, limit and execute.
"""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from flask.testing import FlaskClient
from postgrest.exceptions import APIError
from supabase import AuthError

from app import create_app

TIMESTAMP_COLUMNS = {'date', 'joined_at', 'created_at', 'start_date', 'end_date'}


class FakeAuthError(AuthError):
    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message


def _comparable(column, value):
    if column in TIMESTAMP_COLUMNS and isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _now():
    return datetime.now(timezone.utc).isoformat()


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = 'select'
        self.payload = None
        self.columns = '*'
        self.count = None
        self.filters = []
        self.ordering = []
        self.window = None
        self.max_rows = None
        self.on_conflict = None

    # Actions
    def select(self, columns='*', count=None):
        self.columns = columns
        self.count = count
        return self

    def insert(self, rows):
        self.action = 'insert'
        self.payload = rows
        return self

    def upsert(self, rows, on_conflict=None):
        self.action = 'upsert'
        self.payload = rows
        self.on_conflict = on_conflict
        return self

    def update(self, fields):
        self.action = 'update'
        self.payload = fields
        return self

    def delete(self):
        self.action = 'delete'
        return self

    # Filters
    def _filter(self, column, test):
        self.filters.append(lambda row: test(_comparable(column, row.get(column))))
        return self

    def eq(self, column, value):
        return self._filter(column, lambda v: v == _comparable(column, value))

    def neq(self, column, value):
        return self._filter(column, lambda v: v != _comparable(column, value))

    def gte(self, column, value):
        return self._filter(column, lambda v: v is not None and v >= _comparable(column, value))

    def lt(self, column, value):
        return self._filter(column, lambda v: v is not None and v < _comparable(column, value))

    def lte(self, column, value):
        return self._filter(column, lambda v: v is not None and v <= _comparable(column, value))

    def ilike(self, column, pattern):
        needle = pattern.strip('%').lower()
        return self._filter(column, lambda v: v is not None and needle in str(v).lower())

    def in_(self, column, values):
        values = list(values)
        return self._filter(column, lambda v: v in values)

    # Shaping
    def order(self, column, desc=False):
        self.ordering.append((column, desc))
        return self

    def range(self, start, end):
        self.window = (start, end)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def execute(self):
        if self.table in self.db.fail_tables:
            raise APIError({'message': f'{self.table} unavailable', 'code': '500', 'hint': None, 'details': None})
        self.db.calls.append((self.table, self.action))
        return getattr(self, f'_execute_{self.action}')()

    def _matches(self):
        return [row for row in self.db.tables[self.table] if all(f(row) for f in self.filters)]

    def _execute_select(self):
        rows = self._matches()
        for column, desc in reversed(self.ordering):
            present = [r for r in rows if r.get(column) is not None]
            present.sort(key=lambda row: _comparable(column, row[column]), reverse=desc)
            rows = present + [r for r in rows if r.get(column) is None]
        total = len(rows)
        if self.window:
            rows = rows[self.window[0]:self.window[1] + 1]
        if self.max_rows is not None:
            rows = rows[:self.max_rows]
        if self.columns != '*':
            keep = [c.strip() for c in self.columns.split(',')]
            rows = [{c: row.get(c) for c in keep} for row in rows]
        return SimpleNamespace(data=copy.deepcopy(rows), count=total if self.count else None)

    def _execute_insert(self):
        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = [self.db.add(self.table, row) for row in rows]
        return SimpleNamespace(data=copy.deepcopy(inserted), count=None)

    def _execute_upsert(self):
        rows = self.payload if isinstance(self.payload, list) else [self.payload]
        keys = [k.strip() for k in (self.on_conflict or 'id').split(',')]
        result = []
        for row in rows:
            existing = next((r for r in self.db.tables[self.table]
                             if all(r.get(k) == row.get(k) for k in keys)), None)
            if existing is not None:
                existing.update(row)
                result.append(existing)
            else:
                result.append(self.db.add(self.table, row))
        return SimpleNamespace(data=copy.deepcopy(result), count=None)

    def _execute_update(self):
        rows = self._matches()
        for row in rows:
            row.update(self.payload)
        return SimpleNamespace(data=copy.deepcopy(rows), count=None)

    def _execute_delete(self):
        rows = self._matches()
        self.db.tables[self.table] = [r for r in self.db.tables[self.table] if r not in rows]
        return SimpleNamespace(data=copy.deepcopy(rows), count=None)


class FakeAuthAdmin:
    def __init__(self, db):
        self.db = db

    def create_user(self, attributes):
        email = attributes['email'].lower()
        if any(u['email'] == email for u in self.db.users.values()):
            raise FakeAuthError('A user with this email address has already been registered')

        user_id = str(uuid.uuid4())
        self.db.users[user_id] = {'id': user_id, 'email': email, 'password': attributes['password']}

        # Mirrors the on-signup trigger that fills profiles from user metadata
        metadata = attributes.get('user_metadata') or {}
        self.db.add('profiles', {
            'id': user_id,
            'email': email,
            'full_name': metadata.get('full_name'),
            'phone_number': metadata.get('phone_number'),
            'alt_phone_number': metadata.get('alt_phone_number'),
            'home_address': metadata.get('home_address'),
            'role': metadata.get('role', 'member'),
        })
        return SimpleNamespace(user=SimpleNamespace(id=user_id, email=email))

    def delete_user(self, user_id):
        if user_id not in self.db.users:
            raise FakeAuthError('User not found')
        if any(t['user_id'] == user_id for t in self.db.tables['transactions']):
            raise APIError({'message': 'violates foreign key constraint', 'code': '23503',
                            'hint': None, 'details': None})
        del self.db.users[user_id]
        for table in ('profiles', 'scheme_members'):
            key = 'id' if table == 'profiles' else 'user_id'
            self.db.tables[table] = [r for r in self.db.tables[table] if r.get(key) != user_id]


class FakePasswordAuth:
    def __init__(self, db):
        self.db = db

    def sign_in_with_password(self, credentials):
        email = credentials['email'].lower()
        for user in self.db.users.values():
            if user['email'] == email and user['password'] == credentials['password']:
                return SimpleNamespace(user=SimpleNamespace(id=user['id'], email=email))
        raise FakeAuthError('Invalid login credentials')


class FakeSupabase:
    DEFAULTS = {
        'schemes': lambda: {'created_at': _now(), 'rules': {}, 'frequency': 'daily'},
        'scheme_members': lambda: {'joined_at': _now(), 'status': 'active', 'payout_order': None},
        'transactions': lambda: {'date': _now(), 'notes': None},
        'profiles': lambda: {'role': 'member'},
    }

    def __init__(self):
        self.tables = {name: [] for name in ('profiles', 'schemes', 'scheme_members', 'transactions')}
        self.users = {}
        self.calls = []
        self.fail_tables = set()
        self.auth = SimpleNamespace(admin=FakeAuthAdmin(self))

    def table(self, name):
        return FakeQuery(self, name)

    def add(self, table, row):
        stored = dict(self.DEFAULTS.get(table, dict)(), **row)
        stored.setdefault('id', str(uuid.uuid4()))
        self.tables[table].append(stored)
        return stored

    def password_client(self):
        return SimpleNamespace(auth=FakePasswordAuth(self))

    # Helpers for arranging test data
    def create_user(self, full_name, email, role='member', password='password', phone_number=None):
        response = self.auth.admin.create_user({
            'email': email,
            'password': password,
            'user_metadata': {'full_name': full_name, 'role': role, 'phone_number': phone_number},
        })
        return response.user.id

    def create_scheme(self, **fields):
        row = {'name': 'Main Market Akawo', 'type': 'akawo', 'contribution_amount': 1000,
               'frequency': 'daily', 'rules': {}}
        row.update(fields)
        return self.add('schemes', row)

    def join(self, scheme_id, user_id, joined_at, **fields):
        return self.add('scheme_members', dict(scheme_id=scheme_id, user_id=user_id,
                                               joined_at=joined_at, **fields))

    def deposit(self, scheme_id, user_id, amount, date, type='deposit', admin_id=None):
        return self.add('transactions', {'scheme_id': scheme_id, 'user_id': user_id, 'admin_id': admin_id,
                                         'amount': amount, 'type': type, 'date': date})

    def rows(self, table, **match):
        return [r for r in self.tables[table] if all(r.get(k) == v for k, v in match.items())]


@pytest.fixture()
def fake():
    return FakeSupabase()


@pytest.fixture()
def app(fake):
    flask_app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'APP_TIMEZONE': 'UTC',
        'CHARGE_STRATEGY': 'month_bucket_first_deposit',
        'PASSBOOK_MONTHS': 3,
        'PAGE_SIZE': 10,
        'MEMBER_EMAIL_DOMAIN': 'adashi.local',
    })
    flask_app.extensions['supabase'] = fake
    flask_app.extensions['supabase_auth_factory'] = fake.password_client
    return flask_app


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture()
def client(app) -> FlaskClient:
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture()
def admin_id(fake):
    return fake.create_user('Adashi Admin', 'admin@adashi.com', role='admin')


@pytest.fixture()
def member_id(fake):
    return fake.create_user('Musa Ibrahim', 'member1@test.com', phone_number='07011111111')


@pytest.fixture()
def admin_client(client, admin_id) -> FlaskClient:
    with client.session_transaction() as session:
        session['admin_logged_in'] = True
        session['admin_id'] = admin_id
        session['admin_role'] = 'admin'
    return client


@pytest.fixture()
def member_client(client, member_id) -> FlaskClient:
    with client.session_transaction() as session:
        session['member_logged_in'] = True
        session['member_id'] = member_id
    return client
