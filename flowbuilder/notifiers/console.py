import logging
from email.utils import make_msgid

from .base import Notifier
from .registry import register_notifier

logger = logging.getLogger(__name__)


@register_notifier("log")
class LogNotifier(Notifier):
    """ Development notifier: writes deliveries to the application log. """

    def __init__(self, domain: str = "flowbuilder.local"):
        self.domain = domain

    async def send(self, subject: str, message: str) -> str:
        message_id = make_msgid(domain=self.domain)
        logger.info(f"Delivered message {message_id} to {subject}: {message}")
        return message_id
