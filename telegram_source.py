# telegram_source.py
import logging
from typing import Callable, Dict, Optional

from telethon.errors import RPCError
from telethon.sessions import StringSession
from telethon.sync import TelegramClient
from telethon.tl.types import InputMessagesFilterUrl

from config import TelegramConfig
from datastructures import DownloadTarget
from errors import SourceMessageNotFound, TelegramConfigError
import config

logger = logging.getLogger(__name__)

# Which channel post announces each target
MESSAGE_PREDICATES: Dict[DownloadTarget, Callable[[str], bool]] = {
    DownloadTarget.MOD: lambda text: text.startswith("TikTokMod") and "(Asia)" not in text,
    DownloadTarget.PLUGIN: lambda text: text.startswith("TikTok Plugin"),
}


class TelegramSource:
    """
    Finds the start URL for a target in the release channel: the last
    inline button of the newest matching post.
    """

    def __init__(self, telegram_config: TelegramConfig, client_factory=TelegramClient):
        self.config = telegram_config
        self.client_factory = client_factory

    def authenticate(self):
        client = self.client_factory(
            StringSession(self.config.session),
            self.config.app_id,
            self.config.api_hash,
            connection_retries=config.TELEGRAM_CONNECTION_RETRIES,
        )
        client.connect()
        if not client.is_user_authorized():
            client.disconnect()
            raise TelegramConfigError("Telegram session string is not authorized; generate a new SESSION")
        return client

    def list_recent_messages(self, client, channel: str, limit: int = config.TELEGRAM_MESSAGE_LIMIT):
        entity = client.get_entity(channel)
        return client.get_messages(entity, filter=InputMessagesFilterUrl, limit=limit)

    @staticmethod
    def extract_button_url(message) -> Optional[str]:
        rows = message.buttons or []
        if not rows or not rows[-1]:
            return None
        return getattr(rows[-1][0], "url", None)

    def find_start_url(self, target: DownloadTarget) -> str:
        try:
            client = self.authenticate()
            try:
                messages = self.list_recent_messages(client, self.config.channel)
            finally:
                client.disconnect()
        except (OSError, ValueError, RPCError) as e:
            raise SourceMessageNotFound(f"Could not read {self.config.channel} from Telegram: {e}") from e

        matches = MESSAGE_PREDICATES[target]
        message = next((m for m in messages if m.message and matches(m.message)), None)
        if message is None:
            raise SourceMessageNotFound(f"No {target.value} post among the last {len(messages)} messages of {self.config.channel}")

        url = self.extract_button_url(message)
        if not url:
            raise SourceMessageNotFound(f"Post {message.id} in {self.config.channel} has no link button")
        logger.info(f"URL shortener from channel post {message.id}: {url}")
        return url
