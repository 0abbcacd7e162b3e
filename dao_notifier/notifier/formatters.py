"""DAO Notifier — Telegram Message Formatters.

Renders governance events into Telegram MarkdownV2 messages. The output
does not depend on the destination, so one render serves a whole fan-out.

Design principles:
  - Every interpolated DAO or proposal string is escaped; the template
    scaffolding (links, bold, quote markers) is not.
  - Descriptions are stripped of their own markdown before truncation,
    so truncation never splits an escape sequence or a link.
  - Multi-line descriptions are quoted line by line.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from dao_notifier.notifier.events import EventKind, NotificationEvent
from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)

DESCRIPTION_MAX_LENGTH = 500
ELLIPSIS = "..."

# Characters reserved by MarkdownV2 outside of code and link URLs.
_MARKDOWN_V2_RESERVED = re.compile(r"([\\_*\[\]()~`>#+\-=|{}.!])")

# ── Markdown stripping patterns ──────────────────────────
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_HTML_TAG = re.compile(r"<[^>]+>")
_CODE_FENCE = re.compile(r"^[ \t]*(```|~~~).*$", re.MULTILINE)
_HEADING = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+", re.MULTILINE)
_BLOCKQUOTE = re.compile(r"^[ \t]*>+[ \t]?", re.MULTILINE)
_RULE = re.compile(r"^[ \t]*([-*_])([ \t]*\1){2,}[ \t]*$", re.MULTILINE)
_STRONG = re.compile(r"(\*\*|__)(.+?)\1", re.DOTALL)
_EMPHASIS = re.compile(r"(?<!\w)([*_])(?!\s)(.+?)(?<!\s)\1(?!\w)")
_STRIKE = re.compile(r"~~(.+?)~~", re.DOTALL)
_INLINE_CODE = re.compile(r"`([^`]*)`")
_BLANK_RUN = re.compile(r"\n{3,}")


class RenderError(ValueError):
    """Raised when an event cannot be turned into a message."""


# ═══════════════════════════════════════════════════════════
# Escaping & Text Helpers
# ═══════════════════════════════════════════════════════════


def escape_markdown_v2(text: Optional[str]) -> str:
    """Backslash-escape every MarkdownV2 reserved character.

    Args:
        text: Raw text, or None.

    Returns:
        Text safe to embed anywhere in a MarkdownV2 message.
    """
    if not text:
        return ""
    return _MARKDOWN_V2_RESERVED.sub(r"\\\1", str(text))


def escape_link_url(url: str) -> str:
    """Escape the characters MarkdownV2 reserves inside a link target.

    Only ``\\`` and ``)`` need escaping between the parentheses of an
    inline link.
    """
    return url.replace("\\", "\\\\").replace(")", "\\)")


def strip_markdown(text: str) -> str:
    """Reduce markdown/HTML-formatted text to plain text.

    Links and images keep their label, emphasis/code/strike markers,
    heading and quote prefixes, rules and HTML tags are dropped, and
    runs of blank lines are collapsed.

    Args:
        text: Description as written by the proposal author.

    Returns:
        Plain text, stripped of leading/trailing whitespace.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _IMAGE.sub(r"\1", text)
    text = _LINK.sub(r"\1", text)
    text = _HTML_TAG.sub("", text)
    text = _CODE_FENCE.sub("", text)
    text = _RULE.sub("", text)
    text = _HEADING.sub("", text)
    text = _BLOCKQUOTE.sub("", text)
    text = _STRONG.sub(r"\2", text)
    text = _STRIKE.sub(r"\1", text)
    text = _EMPHASIS.sub(r"\2", text)
    text = _INLINE_CODE.sub(r"\1", text)
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()


def truncate_description(text: str, limit: int = DESCRIPTION_MAX_LENGTH) -> str:
    """Cut text to ``limit`` characters, marking the cut with an ellipsis.

    Args:
        text: Plain (already stripped) text.
        limit: Maximum number of characters kept.

    Returns:
        The text unchanged if it fits, otherwise its first ``limit``
        characters followed by "...".
    """
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def quote_block(text: str) -> str:
    """Prefix every line with the MarkdownV2 block quote marker."""
    return "\n".join(f">{line}" for line in text.split("\n"))


def _link(label: str, url: str) -> str:
    """Build an inline link with an escaped label and target."""
    return f"[{escape_markdown_v2(label)}]({escape_link_url(url)})"


def _proposal_and_dao(event: NotificationEvent) -> tuple[str, str]:
    """Links to the proposal and to the DAO, as used by every template."""
    return (
        _link(f"Proposal {event.proposal_id}", event.url),
        _link(event.dao_name, event.dao_url),
    )


def _title_line(event: NotificationEvent) -> list[str]:
    if not event.proposal_title:
        return []
    return ["", f"*{escape_markdown_v2(event.proposal_title)}*"]


def _outcome_line(event: NotificationEvent) -> list[str]:
    if not event.winning_choice:
        return []
    return ["", f"*Outcome:* {escape_markdown_v2(event.winning_choice)}"]


# ═══════════════════════════════════════════════════════════
# Templates
# ═══════════════════════════════════════════════════════════


def _format_proposal_created(event: NotificationEvent, description_limit: int) -> list[str]:
    proposal, dao = _proposal_and_dao(event)
    lines = [f"🎉🎉 {proposal} is open for voting in {dao} 🎉🎉"]
    lines.extend(_title_line(event))

    description = truncate_description(
        strip_markdown(event.proposal_description or ""), description_limit,
    )
    if description:
        if not event.proposal_title:
            lines.append("")
        lines.append(quote_block(escape_markdown_v2(description)))

    return lines


def _format_proposal_executed(event: NotificationEvent, description_limit: int) -> list[str]:
    proposal, dao = _proposal_and_dao(event)
    lines = [f"✅ {proposal} in {dao} passed and was executed\\."]
    lines.extend(_title_line(event))
    lines.extend(_outcome_line(event))
    return lines


def _format_proposal_execution_failed(
    event: NotificationEvent, description_limit: int,
) -> list[str]:
    proposal, dao = _proposal_and_dao(event)
    lines = [f"⚠️ {proposal} in {dao} passed, but its execution failed\\."]
    lines.extend(_title_line(event))
    lines.extend(_outcome_line(event))
    return lines


def _format_proposal_closed(event: NotificationEvent, description_limit: int) -> list[str]:
    proposal, dao = _proposal_and_dao(event)
    lines = [f"❌ {proposal} in {dao} was rejected\\."]
    lines.extend(_title_line(event))
    return lines


_TEMPLATES: dict[EventKind, Callable[[NotificationEvent, int], list[str]]] = {
    EventKind.PROPOSAL_CREATED: _format_proposal_created,
    EventKind.PROPOSAL_EXECUTED: _format_proposal_executed,
    EventKind.PROPOSAL_EXECUTION_FAILED: _format_proposal_execution_failed,
    EventKind.PROPOSAL_CLOSED: _format_proposal_closed,
}


def render(
    event: NotificationEvent,
    description_max_length: int = DESCRIPTION_MAX_LENGTH,
) -> str:
    """Render an event into a MarkdownV2 message body.

    Args:
        event: The governance event.
        description_max_length: Maximum characters of description kept
            after markdown stripping.

    Returns:
        The message text, ready to send with parse_mode=MarkdownV2.

    Raises:
        RenderError: If the event kind has no template.
    """
    try:
        kind = EventKind(event.kind)
    except ValueError:
        raise RenderError(f"Unknown notification type: {event.kind!r}") from None

    template = _TEMPLATES.get(kind)
    if template is None:
        raise RenderError(f"No template for notification type: {kind.value}")

    text = "\n".join(template(event, description_max_length))
    logger.debug(
        "Rendered %s for proposal %s (%d chars)",
        kind.value, event.proposal_id, len(text),
    )
    return text
