import os

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['START_SCHEDULER'] = 'false'
os.environ['CRON_SECRET'] = 'test-cron-secret'
os.environ['ADMIN_KEY'] = 'test-admin-key'

import pytest

from clawg.models import db
from main import create_app


@pytest.fixture
def app():
    """Fresh in-memory database per test."""
    app = create_app('sqlite://')
    app.config['TESTING'] = True
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()
