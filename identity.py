from dataclasses import dataclass
from urllib.parse import urlencode


class IdentityError(Exception):
    pass


@dataclass
class Identity:
    email: str
    name: str = ''

    @property
    def domain(self):
        return self.email.rsplit('@', 1)[-1].lower()


class IdentityProvider:
    name = None

    def authorize_redirect(self, callback_url, hosted_domain=None):
        """URL the browser is sent to in order to sign in"""
        raise NotImplementedError

    def identity_from_callback(self, request):
        raise NotImplementedError


class DevIdentityProvider(IdentityProvider):
    """Trusts the e-mail passed on the callback. For local runs and tests only."""

    name = 'dev'

    def authorize_redirect(self, callback_url, hosted_domain=None):
        params = {'hd': hosted_domain} if hosted_domain else {}
        return f"{callback_url}?{urlencode(params)}" if params else callback_url

    def identity_from_callback(self, request):
        email = (request.args.get('email') or '').strip().lower()
        if '@' not in email:
            raise IdentityError('No e-mail address was returned by the sign-in provider.')
        return Identity(email=email, name=(request.args.get('name') or '').strip())


dev_provider = DevIdentityProvider()

# Production providers, keyed by the name used in /auth/<name>
providers = {}


def register_provider(provider):
    providers[provider.name] = provider


def available_providers(dev_login=False):
    found = dict(providers)
    if dev_login:
        found.setdefault(dev_provider.name, dev_provider)
    return found


def allowed_domain(identity, hosted_domain):
    return not hosted_domain or identity.domain == hosted_domain.lower()
