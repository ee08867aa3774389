from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps
from typing import Optional
from flask import request, redirect, url_for, flash, session, jsonify, abort, get_flashed_messages
from sqlalchemy import func, text
from app import app, db
from models import User, Team, Challenge, Solve
from gating import HuntStatus, hunt_status, seconds_remaining, check_access, next_unsolved
from scoring import SubmissionStatus, submit_answer
from teams import TeamError, create_team, join_team
from identity import IdentityError, Identity, available_providers, allowed_domain
from codes import num_from_token

import logging


@dataclass
class HuntContext:
    """Everything a handler needs to know about the request's player"""
    user: User
    team: Optional[Team]
    now: datetime


def current_time():
    return datetime.now(timezone.utc)

def get_current_user():
    user_id = session.get('user_id')
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if user is None:
        session.pop('user_id', None)
    return user

def _hunt_context_required(require_team):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            user = get_current_user()
            if user is None:
                session['return_to'] = request.path
                flash('Please sign in first.', 'errors')
                return redirect(url_for('login'))
            if require_team and user.team is None:
                flash('You need to create or join a team first.', 'errors')
                return redirect(url_for('join'))
            return view(HuntContext(user=user, team=user.team, now=current_time()), *args, **kwargs)
        return wrapped
    return decorator

login_required = _hunt_context_required(require_team=False)
team_required = _hunt_context_required(require_team=True)

def current_status(now):
    return hunt_status(now, app.config['HUNT_DEADLINE'],
                       app.config['HUNT_OPEN_HOUR'], app.config['HUNT_CLOSE_HOUR'])

def valid_challenge_numbers():
    return {num for (num,) in db.session.query(Challenge.num).filter_by(is_valid=True).all()}

def messages():
    return [{'category': category, 'message': message}
            for category, message in get_flashed_messages(with_categories=True)]

def team_summary(team):
    if team is None:
        return None
    return {
        'name': team.name,
        'score': team.score,
        'members': [member.name or member.email for member in team.members],
        'solved': sorted(team.solved_numbers()),
    }

def redirect_for_status(status):
    if status == HuntStatus.FINISHED:
        return redirect(url_for('finish'))
    if status == HuntStatus.CLOSED:
        return redirect(url_for('closed'))
    return None

def redirect_to_challenge(num):
    if num is None:
        return redirect(url_for('index'))
    return redirect(url_for('challenge_page', num=num))

@app.route('/')
def index():
    user = get_current_user()
    now = current_time()
    return jsonify({
        'status': current_status(now).value,
        'seconds_remaining': seconds_remaining(now, app.config['HUNT_DEADLINE']),
        'user': {'email': user.email, 'name': user.name} if user else None,
        'team': team_summary(user.team) if user else None,
        'messages': messages(),
    })

@app.route('/faqs')
def faqs():
    return jsonify({'faqs': [
        {'question': 'How many people can be on a team?',
         'answer': f"Up to {app.config['HUNT_MAX_TEAM_SIZE']}."},
        {'question': 'Do challenges have to be solved in order?',
         'answer': 'Yes. Each challenge unlocks once your team has solved the one before it.'},
        {'question': 'Why did we get fewer points than the team before us?',
         'answer': 'Some challenges reward early solvers; their points shrink with every solve.'},
    ]})

@app.route('/scoreboard')
def scoreboard():
    rows = (db.session.query(Team, func.count(Solve.id), func.max(Solve.solved_at))
            .outerjoin(Solve, Solve.team_id == Team.id)
            .group_by(Team.id)
            .all())
    # Ties go to the team that reached its score first
    rows.sort(key=lambda row: (-row[0].score, row[2] or datetime.max, row[0].name.lower()))
    return jsonify({'teams': [
        {'rank': rank, 'name': team.name, 'score': team.score, 'solved': solved}
        for rank, (team, solved, _) in enumerate(rows, start=1)
    ]})

@app.route('/challenge/<int:num>', methods=['GET', 'POST'])
@team_required
def challenge_page(ctx, num):
    gated = redirect_for_status(current_status(ctx.now))
    if gated:
        return gated

    challenge = Challenge.query.filter_by(num=num).first()
    solved = ctx.team.solved_numbers()
    required = valid_challenge_numbers()
    decision = check_access(challenge, solved, required)
    if not decision.allowed:
        if decision.reason == 'locked':
            flash(f'Solve challenge {decision.next_num} before moving on.', 'errors')
        else:
            flash('That challenge does not exist.', 'errors')
        return redirect_to_challenge(decision.next_num)

    if request.method == 'GET':
        return jsonify({
            'num': challenge.num,
            'name': challenge.name,
            'detail': challenge.detail,
            'points': challenge.points,
            'solved': challenge.num in solved,
            'solves': challenge.solve_count(),
            'seconds_remaining': seconds_remaining(ctx.now, app.config['HUNT_DEADLINE']),
            'messages': messages(),
        })

    # Handle POST submission
    result = submit_answer(ctx.team, challenge, request.form.get('code', ''))
    if result.status == SubmissionStatus.WRONG:
        flash('That code is not correct. Keep looking!', 'errors')
        return redirect_to_challenge(num)
    if result.status == SubmissionStatus.ALREADY_SOLVED:
        flash('Your team has already solved this challenge.', 'info')
        return redirect_to_challenge(num)

    flash(f'Correct! Your team earned {result.points_awarded} points.', 'success')
    team = db.session.get(Team, ctx.team.id)
    return redirect_to_challenge(next_unsolved(team.solved_numbers(), required))

@app.route('/join', methods=['GET', 'POST'])
@login_required
def join(ctx):
    if request.method == 'GET':
        return jsonify({'team': team_summary(ctx.team), 'messages': messages()})
    try:
        team = join_team(ctx.user, request.form.get('name', ''))
    except TeamError as e:
        flash(str(e), 'errors')
        return redirect(url_for('join'))
    flash(f'Welcome to {team.name}!', 'success')
    return redirect(url_for('index'))

@app.route('/create', methods=['GET', 'POST'])
@login_required
def create(ctx):
    if request.method == 'GET':
        return jsonify({'team': team_summary(ctx.team), 'messages': messages()})
    try:
        team = create_team(ctx.user, request.form.get('name', ''))
    except TeamError as e:
        flash(str(e), 'errors')
        return redirect(url_for('create'))
    flash(f'Team {team.name} created. Share the name so your teammates can join.', 'success')
    return redirect(url_for('index'))

def enabled_providers():
    return available_providers(app.testing or app.debug or app.config['HUNT_DEV_LOGIN'])

@app.route('/login')
def login():
    if get_current_user():
        return redirect(url_for('index'))
    return jsonify({
        'providers': {name: url_for('auth', provider=name) for name in enabled_providers()},
        'messages': messages(),
    })

@app.route('/logout')
def logout():
    session.pop('user_id', None)
    return redirect(url_for('index'))

@app.route('/auth/<provider>')
def auth(provider):
    providers = enabled_providers()
    if provider not in providers:
        abort(404)
    callback_url = url_for('auth_callback', provider=provider, _external=True)
    return redirect(providers[provider].authorize_redirect(callback_url, app.config['HUNT_HOSTED_DOMAIN']))

@app.route('/auth/<provider>/callback')
def auth_callback(provider):
    providers = enabled_providers()
    if provider not in providers:
        abort(404)
    try:
        identity = providers[provider].identity_from_callback(request)
    except IdentityError as e:
        flash(str(e), 'errors')
        return redirect(url_for('login'))
    if not allowed_domain(identity, app.config['HUNT_HOSTED_DOMAIN']):
        logging.warning(f"Rejected sign-in from {identity.email}")
        flash(f"Please sign in with your {app.config['HUNT_HOSTED_DOMAIN']} account.", 'errors')
        return redirect(url_for('login'))

    user = sign_in(identity)
    session['user_id'] = user.id
    return redirect(session.pop('return_to', None) or url_for('index'))

def sign_in(identity: Identity) -> User:
    user = User.query.filter_by(email=identity.email).first()
    if user is None:
        user = User(email=identity.email, name=identity.name)
        db.session.add(user)
        logging.info(f"Created new user: {identity.email}")
    elif identity.name:
        user.name = identity.name
    db.session.commit()
    return user

@app.route('/account')
@login_required
def account(ctx):
    solves = []
    if ctx.team is not None:
        rows = (db.session.query(Solve, Challenge).join(Challenge, Solve.challenge_id == Challenge.id)
                .filter(Solve.team_id == ctx.team.id).order_by(Challenge.num).all())
        solves = [{'num': challenge.num, 'name': challenge.name, 'points': solve.points_awarded,
                   'solved_at': solve.solved_at.isoformat()} for solve, challenge in rows]
    return jsonify({
        'user': {'email': ctx.user.email, 'name': ctx.user.name},
        'team': team_summary(ctx.team),
        'solves': solves,
        'messages': messages(),
    })

@app.route('/account/profile', methods=['POST'])
@login_required
def update_profile(ctx):
    name = ' '.join(request.form.get('name', '').split())
    if not name or len(name) > 120:
        flash('Please enter a display name of at most 120 characters.', 'errors')
        return redirect(url_for('account'))
    ctx.user.name = name
    db.session.commit()
    flash('Profile information has been updated.', 'success')
    return redirect(url_for('account'))

@app.route('/account/delete', methods=['POST'])
@login_required
def delete_account(ctx):
    email = ctx.user.email
    # The team keeps its score and solves when a member leaves
    db.session.delete(ctx.user)
    db.session.commit()
    session.pop('user_id', None)
    logging.info(f"Deleted user: {email}")
    flash('Your account has been deleted.', 'info')
    return redirect(url_for('index'))

@app.route('/finish')
@login_required
def finish(ctx):
    return jsonify({'message': 'The hunt is over. Thanks for playing!',
                    'team': team_summary(ctx.team)})

@app.route('/closed')
@login_required
def closed(ctx):
    return jsonify({'message': 'The hunt is closed right now. Come back during opening hours.',
                    'open_hour': app.config['HUNT_OPEN_HOUR'],
                    'close_hour': app.config['HUNT_CLOSE_HOUR']})

@app.route('/code/<token>')
def challenge_code(token):
    num = num_from_token(token)
    challenge = Challenge.query.filter_by(num=num, is_valid=True).first() if num is not None else None
    if challenge is None:
        abort(404)
    return jsonify({'num': challenge.num, 'name': challenge.name, 'code': challenge.code})

@app.route("/status")
def status():
    try:
        db.session.execute(text('SELECT 1'))
        database = 'ok'
    except Exception as e:
        logging.error(f"Database check failed: {e}")
        database = 'unavailable'
    return {"status": "running", "database": database}
