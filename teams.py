import logging
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from app import app, db
from models import User, Team

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 40


class TeamError(Exception):
    """Raised when a user cannot create or join a team; the message is shown to the user"""


def clean_team_name(name):
    name = ' '.join((name or '').split())
    if len(name) < MIN_NAME_LENGTH:
        raise TeamError(f'Team name must be at least {MIN_NAME_LENGTH} characters.')
    if len(name) > MAX_NAME_LENGTH:
        raise TeamError(f'Team name must be at most {MAX_NAME_LENGTH} characters.')
    return name


def find_team(name):
    return Team.query.filter(func.lower(Team.name) == name.lower()).first()


def create_team(user, name):
    if user.team_id is not None:
        raise TeamError('You are already on a team.')
    name = clean_team_name(name)
    if find_team(name):
        raise TeamError('That team name is taken.')

    team = Team(name=name)
    db.session.add(team)
    try:
        db.session.flush()
        user.team_id = team.id
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise TeamError('That team name is taken.')
    logging.info(f"User {user.email} created team {team.name}")
    return team


def member_count(team_id):
    return User.query.filter_by(team_id=team_id).count()


def join_team(user, name):
    if user.team_id is not None:
        raise TeamError('You are already on a team.')
    team = find_team(' '.join((name or '').split()))
    if team is None:
        raise TeamError('No team goes by that name.')
    max_size = app.config['HUNT_MAX_TEAM_SIZE']
    if member_count(team.id) >= max_size:
        raise TeamError(f'That team already has {max_size} members.')

    user.team_id = team.id
    db.session.flush()
    # A concurrent join may have filled the last seat since the check above
    if member_count(team.id) > max_size:
        db.session.rollback()
        raise TeamError(f'That team already has {max_size} members.')
    db.session.commit()
    logging.info(f"User {user.email} joined team {team.name}")
    return team
