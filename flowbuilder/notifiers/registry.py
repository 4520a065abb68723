from typing import Callable, Dict

from .base import Notifier

_NOTIFIERS: Dict[str, Callable[..., Notifier]] = {}


def register_notifier(name: str):
    def _wrap(factory):
        _NOTIFIERS[name] = factory
        return factory
    return _wrap


def get_notifier(name: str) -> Callable[..., Notifier]:
    if name not in _NOTIFIERS:
        raise ValueError(f"Notifier not found: {name}")
    return _NOTIFIERS[name]


def build_notifier(settings) -> Notifier:
    """ Instantiate the notifier named in the settings. """
    # import for registration side effects
    from . import console, smtp  # noqa: F401

    factory = get_notifier(settings.notifier)
    if settings.notifier == "smtp":
        return factory(settings.smtp)
    return factory()
