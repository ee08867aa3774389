from dataclasses import dataclass
from enum import Enum
from typing import Optional


class HuntStatus(str, Enum):
    OPEN = 'open'
    CLOSED = 'closed'
    FINISHED = 'finished'


def hunt_status(now, deadline, open_hour=None, close_hour=None):
    """Whether challenge pages may render; the daily window runs on the deadline's clock"""
    if now >= deadline:
        return HuntStatus.FINISHED
    if open_hour is not None and close_hour is not None:
        local_hour = now.astimezone(deadline.tzinfo).hour
        if not open_hour <= local_hour < close_hour:
            return HuntStatus.CLOSED
    return HuntStatus.OPEN


def seconds_remaining(now, deadline):
    return max(0, int((deadline - now).total_seconds()))


@dataclass
class AccessDecision:
    allowed: bool
    reason: str = ''
    next_num: Optional[int] = None


def next_unsolved(solved_numbers, required_numbers):
    remaining = sorted(required_numbers - solved_numbers)
    return remaining[0] if remaining else None


def check_access(challenge, solved_numbers, required_numbers):
    """Every valid challenge below this one must be solved first"""
    if challenge is None or not challenge.is_valid:
        return AccessDecision(False, 'not_found', next_unsolved(solved_numbers, required_numbers))
    missing = {num for num in required_numbers if num < challenge.num} - solved_numbers
    if missing:
        return AccessDecision(False, 'locked', min(missing))
    return AccessDecision(True)
