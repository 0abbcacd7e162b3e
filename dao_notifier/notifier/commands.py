"""DAO Notifier — Telegram Command Handlers.

Handles Telegram webhook updates and answers them with a webhook reply
(a sendMessage payload in the HTTP response body):
  /start  — welcome message
  /help   — command overview
  /list   — DAOs tracked in this chat/topic
  /add    — start tracking a DAO (address or daodao.zone link)
  /remove — stop tracking a DAO

A reply to the bot's add/remove prompt counts as the matching command.
In groups only administrators and the owner are answered. When the bot
leaves or is kicked from a chat, every registration of that chat is
removed.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Optional

from telegram import ChatMember, ChatMemberUpdated, Message, Update
from telegram.constants import ChatMemberStatus, ChatType

from dao_notifier.config import TelegramConfig
from dao_notifier.dao_info.client import DaoInfo, DaoInfoClient
from dao_notifier.database import queries
from dao_notifier.database.db import Database
from dao_notifier.database.models import Registration, to_id_string
from dao_notifier.notifier.formatters import escape_markdown_v2 as _e
from dao_notifier.notifier.formatters import escape_link_url
from dao_notifier.notifier.telegram_bot import TelegramNotifier
from dao_notifier.utils.health import HealthMonitor
from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)

REPLY_ADD_INSTRUCTIONS = (
    "Reply to this message with the DAO's address or a link to its page to start tracking it."
)
REPLY_REMOVE_INSTRUCTIONS = (
    "Reply to this message with the DAO's address or a link to its page to stop tracking it."
)
UNRECOGNIZED_DAO = (
    "I don't recognize the DAO address or link provided. Try replying to the "
    "original message with the URL copied from your browser."
)
UNEXPECTED_ERROR = (
    "An unexpected error occurred. Please try again or contact the team for support."
)

_DAO_ADDRESS = re.compile(
    r"(?:https://)?(?:testnet\.)?(?:daodao\.zone/dao/)?([a-zA-Z0-9]+)"
)

_GONE_STATUSES = (ChatMemberStatus.LEFT, ChatMemberStatus.BANNED)
_PRESENT_STATUSES = (
    ChatMemberStatus.MEMBER,
    ChatMemberStatus.ADMINISTRATOR,
    ChatMemberStatus.OWNER,
)


@dataclass(frozen=True)
class _ReplyTarget:
    """Where a webhook reply goes."""

    chat_id: int
    message_thread_id: Optional[int]
    is_private: bool

    def _payload(self, text: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "method": "sendMessage",
            "chat_id": self.chat_id,
            "text": text,
        }
        if self.message_thread_id is not None:
            payload["message_thread_id"] = self.message_thread_id
        return payload

    def plain(self, text: str) -> dict[str, Any]:
        return self._payload(text)

    def markdown(self, text: str) -> dict[str, Any]:
        payload = self._payload(text)
        payload["parse_mode"] = "MarkdownV2"
        payload["link_preview_options"] = {"is_disabled": True}
        return payload


class CommandHandler:
    """Turns Telegram webhook updates into registration changes and replies.

    Attributes:
        config: TelegramConfig (bot username for mentions and replies).
        db: Registration store.
        telegram: Bot client, used for update parsing and admin checks.
        dao_info: Indexer client resolving DAO addresses.
    """

    def __init__(
        self,
        config: TelegramConfig,
        db: Database,
        telegram: TelegramNotifier,
        dao_info: DaoInfoClient,
        health: Optional[HealthMonitor] = None,
    ) -> None:
        self.config = config
        self.db = db
        self.telegram = telegram
        self.dao_info = dao_info
        self.health = health
        self._command_prefix = re.compile(
            rf"^(/add|/remove)(@{re.escape(config.bot_username)})?\s*",
            re.IGNORECASE,
        )

    async def handle_update(self, data: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Process one webhook update.

        Args:
            data: The decoded JSON update from Telegram.

        Returns:
            A sendMessage payload to return as the webhook reply, or
            None when there is nothing to say.
        """
        try:
            update = Update.de_json(data, self.telegram.bot)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Could not parse Telegram update: %s", e)
            return None

        membership = update.my_chat_member if update else None
        message = update.message if update else None
        if message is not None and not message.text:
            message = None

        if membership is not None:
            chat = membership.chat
            thread_id = None
        elif message is not None:
            chat = message.chat
            thread_id = message.message_thread_id
        else:
            logger.debug("Ignoring update without chat membership change or text message")
            return None

        target = _ReplyTarget(
            chat_id=chat.id,
            message_thread_id=thread_id,
            is_private=chat.type == ChatType.PRIVATE,
        )

        try:
            if membership is not None:
                return await self._handle_membership(membership, target)
            return await self._handle_message(message, target)
        except Exception as e:
            logger.exception("Failed to process update %s: %s", data.get("update_id"), e)
            if self.health:
                self.health.record_error("webhook", str(e))
            return target.plain(UNEXPECTED_ERROR)

    # ── Texts ────────────────────────────────────────────

    def _suffix(self, target: _ReplyTarget) -> str:
        """Commands in groups must mention the bot."""
        return "" if target.is_private else "@" + _e(self.config.bot_username)

    def _help_text(self, target: _ReplyTarget) -> str:
        suffix = self._suffix(target)
        return "Here's how to use me:\n\n" + "\n".join([
            f"/add{suffix} \\- start tracking a DAO",
            f"/remove{suffix} \\- stop tracking a DAO",
            f"/list{suffix} \\- list your tracked DAOs",
            f"/help{suffix} \\- see this message again",
        ])

    def _welcome_text(self, target: _ReplyTarget) -> str:
        intro = "Hello\\! I'll send a message when there are new proposals in DAOs you track\\."
        if target.is_private:
            return (
                f"{intro} You can add me to group chats to track proposals with "
                f"others, or just use me in private\\. {self._help_text(target)}"
            )
        return (
            f"{intro} {self._help_text(target)}\n\n"
            "_Only admins or owners can use the commands above_\\."
        )

    # ── Membership changes ───────────────────────────────

    async def _handle_membership(
        self, membership: ChatMemberUpdated, target: _ReplyTarget,
    ) -> Optional[dict[str, Any]]:
        old: ChatMember = membership.old_chat_member
        new: ChatMember = membership.new_chat_member

        if new.status in _GONE_STATUSES:
            removed = await queries.delete_registrations_for_chat(
                self.db, to_id_string(target.chat_id),
            )
            logger.info(
                "Removed %d registrations for chat %s since bot now has %s status",
                removed, target.chat_id, new.status,
            )
            return None

        if new.status == ChatMemberStatus.RESTRICTED and not getattr(
            new, "can_send_messages", True
        ):
            logger.info("Bot is restricted and cannot send messages in chat %s", target.chat_id)
            return None

        if old.status in _GONE_STATUSES and new.status in _PRESENT_STATUSES:
            logger.info("Bot was added to chat %s", target.chat_id)
            return target.markdown(self._welcome_text(target))

        return None

    # ── Messages ─────────────────────────────────────────

    async def _handle_message(
        self, message: Message, target: _ReplyTarget,
    ) -> Optional[dict[str, Any]]:
        text = message.text or ""

        # Ignore non-admins silently so they can't spam the chat with errors.
        if not target.is_private:
            sender = message.from_user
            if sender is None or not await self.telegram.is_chat_admin(
                target.chat_id, sender.id,
            ):
                return None

        if text.startswith("/start"):
            return target.markdown(self._welcome_text(target))
        if text.startswith("/help"):
            return target.markdown(self._help_text(target))
        if text.startswith("/list"):
            return await self._list(target)

        is_add = text.startswith("/add")
        is_remove = text.startswith("/remove")

        if not is_add and not is_remove:
            reply_to = message.reply_to_message
            if (
                reply_to is None
                or reply_to.from_user is None
                or reply_to.from_user.username != self.config.bot_username
            ):
                return None
            reply_text = reply_to.text or ""
            is_add = reply_text.startswith("/add") or reply_text == REPLY_ADD_INSTRUCTIONS
            is_remove = (
                reply_text.startswith("/remove") or reply_text == REPLY_REMOVE_INSTRUCTIONS
            )
            if not is_add and not is_remove:
                return None

        dao = self.parse_dao_address(text)
        if not dao:
            return target.plain(REPLY_ADD_INSTRUCTIONS if is_add else REPLY_REMOVE_INSTRUCTIONS)

        info = await self.dao_info.get_dao_info(dao)
        if info is None:
            return target.plain(UNRECOGNIZED_DAO)

        if is_add:
            return await self._add(info, target)
        return await self._remove(info, target)

    def parse_dao_address(self, text: str) -> Optional[str]:
        """Extract a DAO address from command text or a daodao.zone link.

        Args:
            text: Message text, with or without the /add or /remove prefix.

        Returns:
            The address, or None if the text holds none.
        """
        remainder = self._command_prefix.sub("", text, count=1)
        match = _DAO_ADDRESS.search(remainder)
        return match.group(1) if match else None

    async def _list(self, target: _ReplyTarget) -> dict[str, Any]:
        registrations = await queries.list_registrations_for_destination(
            self.db,
            to_id_string(target.chat_id),
            to_id_string(target.message_thread_id),
        )
        suffix = self._suffix(target)

        if not registrations:
            return target.markdown(
                f"You're not tracking any DAOs\\.\n\nSend /add{suffix} to start tracking a DAO\\."
            )

        infos = await asyncio.gather(
            *(self.dao_info.get_dao_info(r.dao) for r in registrations)
        )
        lines = [
            f"– {_dao_link(info)}" if info else f"– {_e(registration.dao)}"
            for registration, info in zip(registrations, infos)
        ]
        return target.markdown(
            "You're tracking the following DAOs:\n\n" + "\n".join(lines)
        )

    async def _add(self, info: DaoInfo, target: _ReplyTarget) -> dict[str, Any]:
        suffix = self._suffix(target)
        registration = Registration(
            chain_id=info.chain_id,
            dao=info.address,
            chat_id=to_id_string(target.chat_id),
            message_thread_id=to_id_string(target.message_thread_id),
        )

        inserted = await queries.insert_registration(self.db, registration)
        if not inserted:
            return target.markdown(
                f"You're already tracking {_dao_link(info)}\\! I'll notify you when "
                f"there are new proposals\\.\n\nSend `/remove{suffix} {info.address}` "
                f"to stop tracking it\\."
            )

        logger.info(
            "Chat %s now tracks %s/%s", registration.destination, info.chain_id, info.address,
        )
        return target.markdown(
            f"Got it\\! I'll notify you when there are new proposals in "
            f"{_dao_link(info)}\\.\n\nSend `/remove{suffix} {info.address}` "
            f"to stop tracking it\\."
        )

    async def _remove(self, info: DaoInfo, target: _ReplyTarget) -> dict[str, Any]:
        suffix = self._suffix(target)
        chat_id = to_id_string(target.chat_id)
        thread_id = to_id_string(target.message_thread_id)

        existing = await queries.get_registration(
            self.db, info.chain_id, info.address, chat_id, thread_id,
        )
        if existing is None:
            return target.markdown(
                f"You're not tracking {_dao_link(info)}\\.\n\n"
                f"Send `/add{suffix} {info.address}` to track it\\."
            )

        await queries.delete_registration(self.db, info.address, chat_id, thread_id)
        logger.info("Chat %s/%s stopped tracking %s", chat_id, thread_id, info.address)
        return target.markdown(
            f"Ok, you're no longer tracking {_dao_link(info)}\\.\n\n"
            f"Send `/add{suffix} {info.address}` to track it again\\."
        )


def _dao_link(info: DaoInfo) -> str:
    return f"[{_e(info.name)}]({escape_link_url(info.url)})"
