from app import db
from datetime import datetime

class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False, default='')
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

class Team(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(40), unique=True, nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    members = db.relationship('User', backref='team', lazy=True)
    solves = db.relationship('Solve', backref='team', lazy=True)

    def solved_numbers(self):
        """Ordinals of every challenge this team has solved"""
        rows = db.session.query(Challenge.num).join(Solve).filter(Solve.team_id == self.id).all()
        return {num for (num,) in rows}

class Challenge(db.Model):
    __table_args__ = (
        db.CheckConstraint('depletion_by >= 0', name='ck_challenge_depletion_by'),
        db.CheckConstraint('depletion_left IS NULL OR depletion_left >= depletion_floor',
                           name='ck_challenge_depletion_floor'),
    )

    id = db.Column(db.Integer, primary_key=True)
    num = db.Column(db.Integer, unique=True, nullable=False)
    code = db.Column(db.String(100), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    detail = db.Column(db.Text, nullable=False, default='')
    points = db.Column(db.Integer, nullable=False)
    is_valid = db.Column(db.Boolean, nullable=False, default=True)
    # Shrinking reward pool; None means every solver gets the full points
    depletion_left = db.Column(db.Integer, nullable=True)
    depletion_by = db.Column(db.Integer, nullable=False, default=0)
    depletion_floor = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    solves = db.relationship('Solve', backref='challenge', lazy=True)

    def solve_count(self):
        """Get number of teams that solved this challenge"""
        return Solve.query.filter_by(challenge_id=self.id).count()

class Solve(db.Model):
    __table_args__ = (db.UniqueConstraint('team_id', 'challenge_id', name='uq_solve_team_challenge'),)

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    challenge_id = db.Column(db.Integer, db.ForeignKey('challenge.id'), nullable=False)
    points_awarded = db.Column(db.Integer, nullable=False, default=0)
    solved_at = db.Column(db.DateTime, default=datetime.utcnow)
