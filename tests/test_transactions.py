from datetime import timedelta
from decimal import Decimal

import pytest
from flask.testing import FlaskClient

from utils import utcnow


@pytest.fixture()
def scheme(fake, member_id):
    scheme = fake.create_scheme(contribution_amount=1000)
    fake.join(scheme['id'], member_id, (utcnow() - timedelta(days=3)).isoformat())
    return scheme


def url(scheme, member_id=None, suffix=''):
    base = f"/admin/transactions/schemes/{scheme['id']}"
    if member_id:
        base += f"/members/{member_id}"
    return base + suffix


def test_record_defaults_to_scheme_amount_and_today(admin_client: FlaskClient, fake, scheme, member_id, admin_id):
    resp = admin_client.post(url(scheme, suffix='/record'), json={'user_id': member_id})

    assert resp.status_code == 201
    [row] = fake.rows('transactions', user_id=member_id)
    assert Decimal(row['amount']) == Decimal('1000')
    assert row['admin_id'] == admin_id
    assert row['notes'] == f"Daily contribution - {utcnow().date().isoformat()}"


def test_record_backdated_entry(admin_client: FlaskClient, fake, scheme, member_id):
    resp = admin_client.post(url(scheme, suffix='/record'), json={
        'user_id': member_id, 'amount': 2000, 'date': '2026-01-03T10:00:00',
    })

    assert resp.status_code == 201
    [row] = fake.rows('transactions', user_id=member_id)
    assert row['date'] == '2026-01-03T10:00:00+00:00'
    assert row['notes'] == 'Manual contribution for 2026-01-03 recorded by Admin'


def test_record_rejects_zero_amount(admin_client: FlaskClient, fake, scheme, member_id):
    resp = admin_client.post(url(scheme, suffix='/record'), json={'user_id': member_id, 'amount': 0})

    assert resp.status_code == 400
    assert resp.get_json()['success'] is False
    assert fake.rows('transactions') == []


def test_record_rejects_unknown_fields(admin_client: FlaskClient, scheme, member_id):
    resp = admin_client.post(url(scheme, suffix='/record'), json={'user_id': member_id, 'bonus': True})

    assert resp.status_code == 400


def test_record_for_missing_scheme(admin_client: FlaskClient, member_id):
    resp = admin_client.post('/admin/transactions/schemes/nope/record', json={'user_id': member_id})

    assert resp.status_code == 404


def test_member_card(admin_client: FlaskClient, fake, scheme, member_id):
    now = utcnow()
    fake.deposit(scheme['id'], member_id, 1000, (now - timedelta(days=2)).isoformat())
    fake.deposit(scheme['id'], member_id, 1000, (now - timedelta(days=2)).isoformat())
    fake.deposit(scheme['id'], member_id, 1000, now.isoformat())
    fake.deposit(scheme['id'], member_id, 400, (now - timedelta(days=1)).isoformat(), type='withdrawal')

    body = admin_client.get(url(scheme, member_id, '?months=2')).get_json()

    assert body['member']['full_name'] == 'Musa Ibrahim'
    assert len(body['months']) == 2
    assert body['summary']['contribution_count'] == 3
    assert Decimal(body['balance']['balance']) == Decimal('2600')
    assert len(body['ledger']) == 4

    days = {cell['date']: cell for month in body['months'] for cell in month['days']}
    double = days[(now - timedelta(days=2)).date().isoformat()]
    assert double['multiple'] is True
    assert days[(now - timedelta(days=1)).date().isoformat()]['status'] == 'covered'


def test_member_card_for_unassigned_member(admin_client: FlaskClient, fake, scheme):
    stranger = fake.create_user('Emeka Nnamdi', 'member5@test.com')

    assert admin_client.get(url(scheme, stranger)).status_code == 404


def test_contributed_today(admin_client: FlaskClient, fake, scheme, member_id):
    assert admin_client.get(url(scheme, member_id, '/today')).get_json()['contributed_today'] is False

    fake.deposit(scheme['id'], member_id, 1000, utcnow().isoformat())
    assert admin_client.get(url(scheme, member_id, '/today')).get_json()['contributed_today'] is True


def test_payout_preview_and_process(admin_client: FlaskClient, fake, scheme, member_id):
    # Same instant so both land in one month
    paid_at = utcnow().isoformat()
    fake.deposit(scheme['id'], member_id, 1000, paid_at)
    fake.deposit(scheme['id'], member_id, 1000, paid_at)

    preview = admin_client.get(url(scheme, member_id, '/payout')).get_json()
    assert preview['payout']['strategy'] == 'month_bucket_first_deposit'
    assert fake.rows('transactions', type='withdrawal') == []

    resp = admin_client.post(url(scheme, member_id, '/payout'), json={})

    body = resp.get_json()
    assert resp.status_code == 201
    assert Decimal(body['receipt']['amount_paid']) == Decimal(preview['payout']['net_payout'])
    assert len(body['transactions']) == len(fake.rows('transactions', type='withdrawal')) + \
        len(fake.rows('transactions', type='fee'))


def test_payout_preview_with_percent_strategy(admin_client: FlaskClient, fake, member_id):
    scheme = fake.create_scheme(rules={'service_charge_percent': 5})
    fake.join(scheme['id'], member_id, (utcnow() - timedelta(days=3)).isoformat())
    fake.deposit(scheme['id'], member_id, 10000, utcnow().isoformat())

    body = admin_client.get(url(scheme, member_id, '/payout?strategy=percent_of_balance')).get_json()

    assert Decimal(body['payout']['service_charge']) == Decimal('500')
    assert Decimal(body['payout']['net_payout']) == Decimal('9500')


def test_payout_with_nothing_saved(admin_client: FlaskClient, scheme, member_id):
    resp = admin_client.post(url(scheme, member_id, '/payout'), json={'amount_mode': 'gross'})

    assert resp.status_code == 200
    assert resp.get_json()['noop'] is True


def test_custom_payout_needs_amount(admin_client: FlaskClient, scheme, member_id):
    resp = admin_client.post(url(scheme, member_id, '/payout'), json={'amount_mode': 'custom'})

    assert resp.status_code == 400


def test_transactions_listing(admin_client: FlaskClient, fake, scheme, member_id):
    now = utcnow()
    for day in range(3):
        fake.deposit(scheme['id'], member_id, 1000, (now - timedelta(days=day)).isoformat())
    fake.add('transactions', {'scheme_id': scheme['id'], 'user_id': member_id, 'amount': 500,
                              'type': 'withdrawal', 'date': now.isoformat(), 'notes': 'Payout for Musa'})

    body = admin_client.get('/admin/transactions?type=deposit&pageSize=2').get_json()

    assert Decimal(body['stats']['total']) == Decimal('3500')
    assert Decimal(body['stats']['withdrawals']) == Decimal('500')
    assert body['total'] == 3
    assert body['total_pages'] == 2
    assert len(body['transactions']) == 2
    assert body['transactions'][0]['member_name'] == 'Musa Ibrahim'

    searched = admin_client.get('/admin/transactions?query=payout').get_json()
    assert [t['type'] for t in searched['transactions']] == ['withdrawal']


def test_record_for_unassigned_member(admin_client: FlaskClient, fake, scheme):
    stranger = fake.create_user('Emeka Nnamdi', 'member5@test.com')

    resp = admin_client.post(url(scheme, suffix='/record'), json={'user_id': stranger})

    assert resp.status_code == 400
    assert fake.rows('transactions') == []


def test_payout_twice_pays_once(admin_client: FlaskClient, fake, scheme, member_id):
    paid_at = utcnow().isoformat()
    for _ in range(5):
        fake.deposit(scheme['id'], member_id, 1000, paid_at)

    first = admin_client.post(url(scheme, member_id, '/payout'), json={})
    second = admin_client.post(url(scheme, member_id, '/payout'), json={})

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.get_json()['noop'] is True
    card = admin_client.get(url(scheme, member_id)).get_json()
    assert Decimal(card['balance']['balance']) == 0
