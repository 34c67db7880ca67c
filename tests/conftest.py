import pytest

from promo_engine import create_app
from promo_engine.extensions import db


@pytest.fixture
def app():
    """Flask app on a private in-memory SQLite database."""
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "DISCOUNTS_ENABLED": True,
        "DISCOUNTS_MAX_PER_ORDER": 5,
        "DISCOUNTS_STACKING": True,
        "DISCOUNTS_COMMIT_RETRIES": 3,
    })
    yield app


@pytest.fixture
def db_session(app):
    with app.app_context():
        yield db.session
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()
