import pytest

from dailyhistory import create_app
from dailyhistory.extensions import db
from dailyhistory.models import Event, User


def seed_events():
    """Three years with seven events each, plus a spread of single events."""
    events = []
    for year in (1815, 1914, 1969):
        for i in range(7):
            events.append(Event(year=year, text=f"{year} clue {i}"))
    for year in range(1000, 2000, 25):
        events.append(Event(year=year, text=f"Something happened in {year}"))
    db.session.add_all(events)
    db.session.commit()
    return events


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def events(app):
    return seed_events()


@pytest.fixture
def user(app):
    user = User(username="ada", email="ada@example.com")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(user):
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user.id)
            sess["_fresh"] = True
        return client
    return _login
