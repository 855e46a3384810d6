"""Weekly payment reminder job and endpoint"""
from datetime import date
from loantrack.reminders.tasks import send_payment_reminders, pending_reminder_rows

TODAY = date(2024, 3, 10)


def add_payments(store):
    store.add_personal_payment(name='Rent', amount='15000', start_date=date(2024, 3, 1),
                               due_date=date(2024, 3, 20))
    store.add_personal_payment(name='Electricity', amount='1800', start_date=date(2024, 3, 1),
                               due_date=date(2024, 3, 11))
    store.add_personal_payment(name='Car Loan EMI', amount='9000', start_date=date(2024, 2, 1),
                               due_date=date(2024, 3, 5))
    paid = store.add_personal_payment(name='Gym', amount='1200', start_date=date(2024, 3, 1),
                                      due_date=date(2024, 3, 12))
    paid.status = 'finished'
    store.commit()


def test_rows_are_pending_and_soonest_first(store):
    add_payments(store)
    rows = pending_reminder_rows(store, TODAY)

    assert [r['payment'].name for r in rows] == ['Car Loan EMI', 'Electricity', 'Rent']
    assert [r['remaining_days'] for r in rows] == [-5, 1, 10]
    assert [r['urgent'] for r in rows] == [True, True, False]


def test_reminder_goes_to_every_allowlisted_address(app, store, fake_mailer):
    add_payments(store)
    report = send_payment_reminders(today=TODAY)

    assert report.pending == 3
    assert report.sent == 2
    assert sorted(m['to'] for m in fake_mailer.sent) == ['owner@example.com', 'partner@example.com']
    message = fake_mailer.sent[0]
    assert message['subject'] == 'Payment Reminder - 3 Pending Payments'
    assert 'Electricity' in message['html']
    assert 'Gym' not in message['html']


def test_configured_subject_is_used(app, store, fake_mailer):
    add_payments(store)
    app.config['PAYMENT_REMINDER_SUBJECT'] = 'Bills due'
    send_payment_reminders(today=TODAY)
    assert fake_mailer.sent[0]['subject'] == 'Bills due'


def test_nothing_pending_sends_nothing(app, store, fake_mailer):
    report = send_payment_reminders(today=TODAY)
    assert report.pending == 0
    assert fake_mailer.sent == []


def test_no_allowlist_sends_nothing(app, store, fake_mailer):
    add_payments(store)
    app.config['AUTHORIZED_EMAILS'] = ''
    report = send_payment_reminders(today=TODAY)
    assert report.pending == 3
    assert report.sent == 0
    assert fake_mailer.sent == []


def test_endpoint_accepts_scheduler_token(app, client, store, fake_mailer):
    add_payments(store)
    response = client.post('/reminders/send', headers={'X-Reminder-Token': 'test-reminder-token'})

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['sent'] == 2


def test_endpoint_refuses_anonymous_callers(client, fake_mailer):
    response = client.post('/reminders/send', headers={'X-Reminder-Token': 'wrong'})
    assert response.status_code == 403
    assert fake_mailer.sent == []


def test_endpoint_reports_failed_delivery(app, logged_in_client, store, fake_mailer):
    add_payments(store)
    fake_mailer.succeed = False
    response = logged_in_client.post('/reminders/send')

    assert response.status_code == 500
    assert response.get_json()['success'] is False


def test_signed_in_get_does_not_send(app, logged_in_client, store, fake_mailer):
    add_payments(store)
    response = logged_in_client.get('/reminders/send')

    assert response.status_code == 405
    assert fake_mailer.sent == []


def test_scheduler_may_use_get(app, client, store, fake_mailer):
    add_payments(store)
    response = client.get('/reminders/send', headers={'X-Reminder-Token': 'test-reminder-token'})
    assert response.status_code == 200
    assert len(fake_mailer.sent) == 2


def test_job_failure_is_not_leaked(app, client, store, monkeypatch):
    def broken_mailer():
        raise RuntimeError('smtp password rejected for owner@example.com')

    monkeypatch.setattr('loantrack.reminders.tasks.get_mailer', broken_mailer)
    add_payments(store)
    response = client.post('/reminders/send', headers={'X-Reminder-Token': 'test-reminder-token'})

    assert response.status_code == 500
    body = response.get_json()
    assert body['error'] == 'Reminder job failed'
    assert 'password' not in response.get_data(as_text=True)
