import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from app import db
from models import Team, Challenge, Solve

# Attempts at claiming from a depletion pool before giving up on contention
MAX_POOL_RETRIES = 10


class SubmissionStatus(str, Enum):
    SOLVED = 'solved'
    WRONG = 'wrong'
    ALREADY_SOLVED = 'already_solved'


@dataclass
class SubmissionResult:
    status: SubmissionStatus
    points_awarded: int = 0

    @property
    def success(self):
        return self.status == SubmissionStatus.SOLVED


class PoolContentionError(RuntimeError):
    pass


def normalize_answer(text):
    """Case-fold and strip every whitespace character"""
    return ''.join((text or '').split()).casefold()


def award_for(challenge):
    if challenge.depletion_left is None:
        return challenge.points
    return min(challenge.depletion_left, challenge.points)


def next_pool_value(challenge):
    if challenge.depletion_left is None:
        return None
    left = challenge.depletion_left
    return min(left, max(left - challenge.depletion_by, challenge.depletion_floor))


def _claim_award(challenge_id):
    """Take the current award from the challenge pool with compare-and-set.

    The pool row is only updated if it still holds the value we read, so two
    teams solving at once can never both claim the same pool value.
    """
    for _ in range(MAX_POOL_RETRIES):
        challenge = db.session.get(Challenge, challenge_id, populate_existing=True)
        award = award_for(challenge)
        if challenge.depletion_left is None:
            return award
        observed = challenge.depletion_left
        if next_pool_value(challenge) == observed:
            # Pool already sits on its floor
            return award
        result = db.session.execute(
            update(Challenge)
            .where(Challenge.id == challenge_id, Challenge.depletion_left == observed)
            .values(depletion_left=next_pool_value(challenge))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return award
        logging.debug(f"Depletion pool for challenge {challenge_id} moved under us, retrying")
    raise PoolContentionError(f"Could not claim points from challenge {challenge_id}")


def already_solved(team_id, challenge_id):
    return Solve.query.filter_by(team_id=team_id, challenge_id=challenge_id).first() is not None


def submit_answer(team, challenge, answer):
    """Check an answer for a team and award points on the first correct solve"""
    if normalize_answer(answer) != normalize_answer(challenge.code):
        logging.info(f"Team {team.name} submitted a wrong answer for challenge {challenge.num}")
        return SubmissionResult(SubmissionStatus.WRONG)

    if already_solved(team.id, challenge.id):
        return SubmissionResult(SubmissionStatus.ALREADY_SOLVED)

    team_id, challenge_id, challenge_num = team.id, challenge.id, challenge.num
    try:
        solve = Solve(team_id=team_id, challenge_id=challenge_id, solved_at=datetime.utcnow())
        db.session.add(solve)
        # The unique (team, challenge) constraint fires here for a racing duplicate
        db.session.flush()

        award = _claim_award(challenge_id)
        solve.points_awarded = award
        db.session.execute(
            update(Team)
            .where(Team.id == team_id)
            .values(score=Team.score + award)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logging.info(f"Duplicate solve of challenge {challenge_num} by team {team_id} ignored")
        return SubmissionResult(SubmissionStatus.ALREADY_SOLVED)
    except Exception:
        db.session.rollback()
        raise

    logging.info(f"Team {team_id} solved challenge {challenge_num} for {award} points")
    return SubmissionResult(SubmissionStatus.SOLVED, award)

