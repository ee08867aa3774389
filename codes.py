import click
from flask import url_for
from itsdangerous import BadSignature, URLSafeSerializer
from app import app
from models import Challenge

CODE_SALT = 'challenge-code'


def _serializer():
    return URLSafeSerializer(app.secret_key, salt=CODE_SALT)


def code_token(num):
    """Opaque URL token that reveals the code of challenge `num`"""
    return _serializer().dumps(num)


def num_from_token(token):
    try:
        num = _serializer().loads(token)
    except BadSignature:
        return None
    return num if isinstance(num, int) else None


@app.cli.command('code-urls')
@click.option('--base-url', default='http://localhost:5000', help='Public address of the hunt.')
def code_urls(base_url):
    """Print the link that reveals each valid challenge's code"""
    challenges = Challenge.query.filter_by(is_valid=True).order_by(Challenge.num).all()
    with app.test_request_context(base_url=base_url):
        for challenge in challenges:
            url = url_for('challenge_code', token=code_token(challenge.num), _external=True)
            click.echo(f"{challenge.num}\t{challenge.name}\t{url}")
