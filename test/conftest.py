"""Shared fixtures"""
import pytest
from loantrack import create_app, db
from loantrack.store import LedgerStore
from loantrack.auth.otp import open_session


class FakeMailer:
    """Records messages instead of sending them"""

    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def send(self, to, subject, html, sender=None, text=None):
        self.sent.append({'to': to, 'subject': subject, 'html': html,
                          'sender': sender, 'text': text})
        return self.succeed


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return LedgerStore(db.session)


@pytest.fixture
def fake_mailer(app):
    mailer = FakeMailer()
    app.extensions['mailer'] = mailer
    return mailer


@pytest.fixture
def logged_in_client(app, client):
    record = open_session('owner@example.com')
    with client.session_transaction() as sess:
        sess['_user_id'] = record.session_id
        sess['_fresh'] = True
    return client
