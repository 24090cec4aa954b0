from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app import create_app
from config import TestingConfig
from models import db, User, Category, Expense, Budget


@pytest.fixture(scope="function")
def engine():
    """
    Fresh in-memory SQLite engine with the schema created.
    """
    engine = create_engine("sqlite://")
    db.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session(engine):
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def user(session):
    u = User(username="alice", email="alice@example.com", password_hash="x")
    session.add(u)
    session.commit()
    return u


@pytest.fixture
def make_category(session, user):
    def _make(name, owner=None):
        cat = Category(name=name, user_id=(owner or user).id)
        session.add(cat)
        session.commit()
        return cat
    return _make


@pytest.fixture
def make_expense(session, user):
    def _make(category, amount, day, owner=None, description="expense"):
        exp = Expense(amount=Decimal(amount), date=day, description=description,
                      category_id=category.id, user_id=(owner or user).id)
        session.add(exp)
        session.commit()
        return exp
    return _make


@pytest.fixture
def make_budget(session, user):
    def _make(category, amount, start, end, owner=None):
        budget = Budget(amount=Decimal(amount), start_date=start, end_date=end,
                        category_id=category.id, user_id=(owner or user).id)
        session.add(budget)
        session.commit()
        return budget
    return _make


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(client):
    def _register(username="alice", email="alice@example.com", password="secret123"):
        resp = client.post("/api/auth/register", json={
            "username": username, "email": email, "password": password,
        })
        assert resp.status_code == 201, resp.get_json()
        return {"Authorization": f"Bearer {resp.get_json()['token']}"}
    return _register


@pytest.fixture
def auth_headers(register):
    return register()
