from enum import Enum


class Action(str, Enum):
    VALIDATE = 'validate'
    POST = 'post'


class Environment(str, Enum):
    PRODUCTION = 'production'
    SANDBOX = 'sandbox'


def parse_environment(value):
    """Anything other than 'sandbox' means production"""
    if value is None:
        return Environment.PRODUCTION
    if str(value).strip().lower() == Environment.SANDBOX.value:
        return Environment.SANDBOX
    return Environment.PRODUCTION


def resolve_target(config, action, environment=None):
    """Return the FBR URL for an (action, environment) pair"""
    action = Action(action)
    if not isinstance(environment, Environment):
        environment = parse_environment(environment)

    urls = {
        (Action.VALIDATE, Environment.PRODUCTION): config.validate_url,
        (Action.POST, Environment.PRODUCTION): config.post_url,
        (Action.VALIDATE, Environment.SANDBOX): config.validate_url_sandbox,
        (Action.POST, Environment.SANDBOX): config.post_url_sandbox,
    }
    return urls[(action, environment)]
