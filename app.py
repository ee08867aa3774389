import os
import sys
import logging
from datetime import datetime
from flask import Flask, flash, redirect, url_for, jsonify
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

# Configure logging
logging.basicConfig(level=logging.DEBUG)

class Base(DeclarativeBase):
    pass

db = SQLAlchemy(model_class=Base)

# Create the app
app = Flask(__name__)
app.secret_key = os.environ.get("SESSION_SECRET", "dev-secret-key-change-in-production")
app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)


def _optional_int(name):
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else None


# Configure the hunt
app.config['HUNT_DEADLINE'] = datetime.fromisoformat(
    os.environ.get("HUNT_DEADLINE", "2017-03-22T00:00:00-04:00"))
app.config['HUNT_OPEN_HOUR'] = _optional_int("HUNT_OPEN_HOUR")
app.config['HUNT_CLOSE_HOUR'] = _optional_int("HUNT_CLOSE_HOUR")
app.config['HUNT_HOSTED_DOMAIN'] = os.environ.get("HUNT_HOSTED_DOMAIN", "yorku.ca")
app.config['HUNT_MAX_TEAM_SIZE'] = int(os.environ.get("HUNT_MAX_TEAM_SIZE", 4))
# Sign-in that trusts the callback e-mail; always on under TESTING or DEBUG
app.config['HUNT_DEV_LOGIN'] = os.environ.get("HUNT_DEV_LOGIN", "").lower() in ("1", "true", "yes")

if app.config['HUNT_DEADLINE'].tzinfo is None:
    sys.exit("HUNT_DEADLINE must carry a UTC offset, e.g. 2017-03-22T00:00:00-04:00")

# Configure the database
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///treasurehunt.db")
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
    "pool_recycle": 300,
    "pool_pre_ping": True,
}

# Initialize the app with the extension
db.init_app(app)

# Import routes after app creation to avoid circular imports
from routes import *


@app.errorhandler(404)
def not_found(e):
    flash('Error 404 - Not Found', 'errors')
    return redirect(url_for('index'))


@app.errorhandler(Exception)
def internal_error(e):
    if isinstance(e, HTTPException):
        return e
    logging.exception("Unhandled error")
    db.session.rollback()
    return jsonify({'success': False, 'message': 'Something went wrong. Please try again later.'}), 500


default_challenges = [
    {
        'num': 1,
        'code': 'VARI HALL',
        'name': 'Where It All Begins',
        'detail': 'Find the plaque under the rotunda clock.',
        'points': 100,
        'depletion_left': 100,
        'depletion_by': 10,
        'depletion_floor': 50,
    },
    {
        'num': 2,
        'code': 'BERGERON',
        'name': 'Glass and Steel',
        'detail': 'The newest engineering building keeps a code by its front doors.',
        'points': 150,
        'depletion_left': 150,
        'depletion_by': 15,
        'depletion_floor': 75,
    },
    {
        'num': 3,
        'code': 'LASSONDE',
        'name': 'Quiet Floor',
        'detail': 'Ask for the code at the Scott Library reference desk.',
        'points': 200,
    },
]


def seed_default_challenges():
    """Insert the default challenges when none exist yet"""
    import models

    if models.Challenge.query.count() > 0:
        return
    for challenge_data in default_challenges:
        db.session.add(models.Challenge(**challenge_data))
    db.session.commit()
    logging.info("Default challenges created")


with app.app_context():
    # Import models to ensure tables are created
    import models
    try:
        db.create_all()
        seed_default_challenges()
    except OperationalError as e:
        logging.critical(f"Database connection error, make sure the database is running: {e}")
        sys.exit(1)
