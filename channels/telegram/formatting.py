"""Wizard reply text -> Telegram HTML.

Replies use Telegram's classic Markdown flavour: *bold*, `code` and
[links](url). Everything else is escaped, so model names and user agents
with underscores or angle brackets come through verbatim.
"""

import html
import re

MAX_TG_MESSAGE_LEN = 4096

_TOKEN = re.compile(
    r"`(?P<code>[^`\n]+)`"
    r"|\*(?P<bold>[^*\n]+)\*"
    r"|\[(?P<label>[^\]\n]+)\]\((?P<url>[^)\s]+)\)"
)


def _render(m: re.Match[str]) -> str:
    if m.group("code") is not None:
        return f"<code>{html.escape(m.group('code'))}</code>"
    if m.group("bold") is not None:
        return f"<b>{html.escape(m.group('bold'), quote=False)}</b>"
    return f'<a href="{html.escape(m.group("url"))}">{html.escape(m.group("label"), quote=False)}</a>'


def md_to_tg_html(text: str) -> str:
    """Convert reply Markdown to Telegram-compatible HTML in one left-to-right pass.

    Text between markup tokens is escaped; code spans are not scanned for bold.
    """
    out: list[str] = []
    pos = 0
    for m in _TOKEN.finditer(text):
        out.append(html.escape(text[pos:m.start()], quote=False))
        out.append(_render(m))
        pos = m.end()
    out.append(html.escape(text[pos:], quote=False))
    return "".join(out)


def split_message(text: str, limit: int = MAX_TG_MESSAGE_LEN) -> list[str]:
    """Split into chunks of at most limit chars, preferring paragraph breaks."""
    chunks: list[str] = []
    while len(text) > limit:
        cut = text.rfind("\n\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    if text or not chunks:
        chunks.append(text)
    return chunks
