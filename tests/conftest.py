"""
Pytest configuration and fixtures
"""
import os
import sys
import tempfile
from pathlib import Path
import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# The app reads its configuration at import time
_db_dir = tempfile.mkdtemp(prefix="treasurehunt-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'hunt.db')}"
os.environ["SESSION_SECRET"] = "test-secret"
os.environ["HUNT_DEADLINE"] = "2099-01-01T00:00:00-04:00"
os.environ["HUNT_HOSTED_DOMAIN"] = "yorku.ca"
os.environ["HUNT_MAX_TEAM_SIZE"] = "2"
os.environ.pop("HUNT_OPEN_HOUR", None)
os.environ.pop("HUNT_CLOSE_HOUR", None)

from app import app as flask_app, db  # noqa: E402
from models import User, Team, Challenge  # noqa: E402


@pytest.fixture
def app():
    flask_app.config["TESTING"] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_challenge(app):
    def _make(num, code, points=100, **kwargs):
        challenge = Challenge(num=num, code=code, name=f"Challenge {num}", detail="", points=points, **kwargs)
        db.session.add(challenge)
        db.session.commit()
        return challenge
    return _make


@pytest.fixture
def make_team(app):
    def _make(name, *emails):
        team = Team(name=name)
        db.session.add(team)
        db.session.flush()
        for email in emails:
            db.session.add(User(email=email, name=email.split("@")[0], team_id=team.id))
        db.session.commit()
        return team
    return _make


@pytest.fixture
def challenges(make_challenge):
    return [
        make_challenge(1, "VARI HALL", points=100, depletion_left=100, depletion_by=10, depletion_floor=50),
        make_challenge(2, "BERGERON", points=150),
        make_challenge(3, "LASSONDE", points=200),
    ]


def _sign_in(client, email, name="Player"):
    return client.get("/auth/dev/callback", query_string={"email": email, "name": name})


@pytest.fixture
def sign_in():
    return _sign_in


@pytest.fixture
def player(client):
    """Client signed in as a user without a team"""
    _sign_in(client, "alice@yorku.ca", "Alice")
    return client


@pytest.fixture
def team_player(player):
    """Client signed in as a user on team Pathfinders"""
    player.post("/create", data={"name": "Pathfinders"})
    # Show the "team created" notice so it does not leak into later pages
    player.get("/")
    return player
