"""Pages and JSON endpoints through the test client"""
from datetime import date
from decimal import Decimal
from loantrack import db, ledger
from loantrack.loans import services
from loantrack.models import Loan, OneTimeCode, PersonalPayment, ActivityLog


def create_loan(store, principal='10000', rate='12'):
    return services.create_loan(store, 'Meera', 'Iyer', Decimal(principal), Decimal(rate), 12,
                                date(2024, 1, 1))


def test_pages_require_sign_in(client):
    response = client.get('/dashboard')
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']


def test_sign_in_with_emailed_code(client, fake_mailer):
    response = client.post('/auth/login', data={'email': 'Owner@Example.com'})
    assert response.status_code == 302
    assert '/auth/verify' in response.headers['Location']
    assert len(fake_mailer.sent) == 1

    code = OneTimeCode.query.filter_by(email='owner@example.com').one().code
    response = client.post('/auth/verify', data={'email': 'owner@example.com', 'code': code})
    assert response.status_code == 302

    assert client.get('/dashboard').status_code == 200
    assert client.get('/auth/check-session').get_json()['authenticated'] is True


def test_wrong_code_is_refused(client, fake_mailer):
    client.post('/auth/login', data={'email': 'owner@example.com'})
    code = OneTimeCode.query.filter_by(email='owner@example.com').one().code
    wrong = '123456' if code != '123456' else '654321'

    response = client.post('/auth/verify', data={'email': 'owner@example.com', 'code': wrong})
    assert response.status_code == 401
    assert client.get('/auth/check-session').get_json()['authenticated'] is False


def test_unlisted_email_is_sent_to_unauthorized_page(client, fake_mailer):
    response = client.post('/auth/login', data={'email': 'stranger@example.com'})
    assert response.status_code == 302
    assert '/auth/unauthorized' in response.headers['Location']
    assert fake_mailer.sent == []


def test_json_sign_in(client, fake_mailer):
    response = client.post('/auth/api/otp/request', json={'email': 'partner@example.com'})
    assert response.status_code == 200
    assert response.get_json()['success'] is True

    code = OneTimeCode.query.filter_by(email='partner@example.com').one().code
    response = client.post('/auth/api/otp/verify', json={'email': 'partner@example.com', 'otp': code})
    assert response.status_code == 200
    assert response.get_json()['session']['email'] == 'partner@example.com'

    response = client.post('/auth/api/otp/request', json={'email': 'nobody@example.com'})
    assert response.status_code == 403


def test_logout(logged_in_client):
    response = logged_in_client.get('/auth/logout')
    assert response.status_code == 302
    assert logged_in_client.get('/dashboard').status_code == 302


def test_dashboard_lists_loans_and_totals(logged_in_client, store):
    create_loan(store)
    response = logged_in_client.get('/dashboard')
    assert response.status_code == 200
    assert b'Meera Iyer' in response.data
    assert '₹10,000.00'.encode() in response.data

    response = logged_in_client.get('/?search=nobody')
    assert b'Meera Iyer' not in response.data


def test_add_loan(logged_in_client):
    response = logged_in_client.post('/loans/add', data={
        'first_name': 'Ravi', 'last_name': 'Kumar', 'principal': '25000',
        'interest_rate': '18', 'term_months': '6', 'start_date': '2024-02-01',
        'payment_method': 'UPI', 'notes': 'Wedding',
    })
    assert response.status_code == 302

    loan = Loan.query.filter_by(first_name='Ravi').one()
    assert loan.status == ledger.STATUS_ACTIVE
    assert loan.principal == Decimal('25000.00')
    assert ActivityLog.query.filter_by(action='create_loan').count() == 1


def test_record_payment(logged_in_client, store):
    loan = create_loan(store)
    response = logged_in_client.post(f'/loans/{loan.id}/payment', data={
        'repayment_date': '2024-01-31', 'amount_paid': '2000', 'payment_method': 'Cash',
    })
    assert response.status_code == 302

    latest = store.latest_repayment(loan.id)
    assert latest.interest_amount == Decimal('98.63')
    assert latest.remaining_balance == Decimal('8098.63')


def test_overpayment_is_shown_on_the_form(logged_in_client, store):
    loan = create_loan(store, principal='1000')
    response = logged_in_client.post(f'/loans/{loan.id}/payment', data={
        'repayment_date': '2024-01-31', 'amount_paid': '5000', 'payment_method': 'Cash',
    })
    assert response.status_code == 400
    assert b'cannot exceed remaining balance' in response.data
    assert store.repayments(loan.id) == []


def test_loan_details_and_series(logged_in_client, store):
    loan = create_loan(store)
    services.submit_repayment(store, loan.id, date(2024, 1, 31), Decimal('2000'))

    response = logged_in_client.get(f'/loans/{loan.id}')
    assert response.status_code == 200
    assert '₹8,098.63'.encode() in response.data

    series = logged_in_client.get(f'/loans/{loan.id}/series').get_json()
    assert [p['balance'] for p in series['points']] == [10000.0, 8098.63]
    assert series['points'][1]['interest'] == 98.63


def test_unknown_loan_is_404(logged_in_client):
    assert logged_in_client.get('/loans/404').status_code == 404


def test_finish_small_balance(logged_in_client, store):
    loan = create_loan(store, principal='1000')
    services.submit_repayment(store, loan.id, date(2024, 1, 1), Decimal('950'))

    response = logged_in_client.post(f'/loans/{loan.id}/finish')
    assert response.status_code == 302

    loan = store.get_loan(loan.id)
    assert loan.status == ledger.STATUS_FINISHED
    assert loan.current_balance() == Decimal('0.00')


def test_finish_refused_for_large_balance(logged_in_client, store):
    loan = create_loan(store)
    logged_in_client.post(f'/loans/{loan.id}/finish')
    assert store.get_loan(loan.id).status == ledger.STATUS_ACTIVE


def test_update_notes(logged_in_client, store):
    loan = create_loan(store)
    logged_in_client.post(f'/loans/{loan.id}/notes', data={'notes': 'Call on Fridays'})
    assert store.get_loan(loan.id).notes == 'Call on Fridays'


def test_personal_payments(logged_in_client):
    response = logged_in_client.post('/payments/add', data={
        'name': 'Internet', 'amount': '999', 'start_date': '2024-03-01', 'due_date': '2024-03-15',
    })
    assert response.status_code == 302

    payment = PersonalPayment.query.filter_by(name='Internet').one()
    response = logged_in_client.get('/payments/')
    assert b'Internet' in response.data

    logged_in_client.post(f'/payments/{payment.id}/finish')
    assert db.session.get(PersonalPayment, payment.id).status == 'finished'


def test_due_date_before_start_is_rejected(logged_in_client):
    response = logged_in_client.post('/payments/add', data={
        'name': 'Internet', 'amount': '999', 'start_date': '2024-03-15', 'due_date': '2024-03-01',
    })
    assert response.status_code == 200
    assert PersonalPayment.query.count() == 0


def test_analytics_page(logged_in_client, store):
    create_loan(store)
    response = logged_in_client.get('/analytics')
    assert response.status_code == 200
    assert b'Meera Iyer' in response.data


def test_totals_after_several_payments(logged_in_client, store):
    loan = create_loan(store)
    services.submit_repayment(store, loan.id, date(2024, 1, 31), Decimal('2000'))
    services.submit_repayment(store, loan.id, date(2024, 3, 1), Decimal('1000'))

    dashboard = logged_in_client.get('/dashboard')
    assert '₹7,178.51'.encode() in dashboard.data
    assert '₹8,098.63'.encode() not in dashboard.data

    analytics = logged_in_client.get('/analytics')
    assert '₹7,178.51'.encode() in analytics.data
    assert '₹3,000.00'.encode() in analytics.data
    assert '₹70.80'.encode() in analytics.data

    payment_page = logged_in_client.get(f'/loans/{loan.id}/payment')
    assert 'balance ₹7,178.51'.encode() in payment_page.data
