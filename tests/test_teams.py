import pytest

from app import db
from models import User, Team
from teams import TeamError, create_team, join_team


@pytest.fixture
def users(app):
    users = [User(email=f"user{i}@yorku.ca", name=f"User {i}") for i in range(4)]
    db.session.add_all(users)
    db.session.commit()
    return users


def test_create_team_makes_creator_a_member(users):
    team = create_team(users[0], "  Map   Readers ")
    assert team.name == "Map Readers"
    assert users[0].team_id == team.id
    assert team.score == 0


def test_team_names_are_unique_ignoring_case(users):
    create_team(users[0], "Compass")
    with pytest.raises(TeamError, match="taken"):
        create_team(users[1], "COMPASS")


@pytest.mark.parametrize("name", ["", "  ", "ab", "x" * 41])
def test_team_name_length_is_checked(users, name):
    with pytest.raises(TeamError):
        create_team(users[0], name)
    assert Team.query.count() == 0


def test_user_can_only_be_on_one_team(users):
    create_team(users[0], "Compass")
    with pytest.raises(TeamError, match="already on a team"):
        create_team(users[0], "Sextant")
    with pytest.raises(TeamError, match="already on a team"):
        join_team(users[0], "Compass")


def test_join_team(users):
    team = create_team(users[0], "Compass")
    assert join_team(users[1], "compass").id == team.id
    assert {member.email for member in team.members} == {"user0@yorku.ca", "user1@yorku.ca"}


def test_join_unknown_team(users):
    with pytest.raises(TeamError, match="No team"):
        join_team(users[0], "Nobody")


def test_join_full_team(users):
    create_team(users[0], "Compass")
    join_team(users[1], "Compass")
    with pytest.raises(TeamError, match="already has 2 members"):
        join_team(users[2], "Compass")
    assert users[2].team_id is None


def test_concurrent_join_cannot_overfill_team(users, monkeypatch):
    import teams

    create_team(users[0], "Compass")
    join_team(users[1], "Compass")
    real_count = teams.member_count
    calls = []

    def stale_count(team_id):
        # The first read comes from before another player took the last seat
        calls.append(team_id)
        return 0 if len(calls) == 1 else real_count(team_id)

    monkeypatch.setattr(teams, "member_count", stale_count)
    with pytest.raises(TeamError, match="already has 2 members"):
        join_team(users[2], "Compass")
    assert db.session.get(User, users[2].id).team_id is None
    assert User.query.filter_by(team_id=users[0].team_id).count() == 2
