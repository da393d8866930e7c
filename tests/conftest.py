"""
Pytest configuration and shared fixtures for test suite

Provides Flask app, database, client and provider fixtures for testing.
"""
import os
import socket
import sys
from pathlib import Path

import pytest

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test database URI BEFORE importing app
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

# Import app and models AFTER setting environment
import app as app_module
from models import Provider
from models import db as _db


@pytest.fixture(scope='function')
def app():
    """
    Create Flask app configured for testing

    Uses in-memory SQLite database that's reset between tests.
    """
    flask_app = app_module.app
    flask_app.config['TESTING'] = True

    with flask_app.app_context():
        _db.create_all()
        yield flask_app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Flask test client for making HTTP requests"""
    return app.test_client()


@pytest.fixture(scope='function')
def db(app):
    """Database fixture; the app fixture already holds the app context"""
    yield _db


@pytest.fixture
def provider(db):
    """https provider on example.com:8443 with credentials u/p"""
    record = Provider(
        name="Example",
        protocol="https",
        host="example.com",
        server_port=8080,
        https_port=8443,
        username="u",
        password="p",
    )
    db.session.add(record)
    db.session.commit()
    return record


@pytest.fixture
def unused_port():
    """A local TCP port with nothing listening on it"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
