"""Resolution of ``@name`` references in free text.

Tokens are an ``@`` followed by one or more word characters. Each token is
matched against the user directory by case-insensitive prefix: the longest
display name that prefixes the token wins, ties going to the smallest user id.
The mention span covers ``@`` plus the matched name, and scanning resumes at
its end, so spans never overlap and come out in ascending order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence

from bookclub_stage.schemas.mention import DirectoryEntry, Mention
from bookclub_stage.services.directory import UserDirectory

MENTION_TOKEN = re.compile(r"@(\w+)")


class MentionIndex:
    """Directory entries ordered for longest-prefix lookup."""

    def __init__(self, entries: Iterable[DirectoryEntry]) -> None:
        usable = [entry for entry in entries if entry.display_name]
        # Longest names first; equal lengths fall back to user id order.
        self._entries: list[tuple[str, DirectoryEntry]] = sorted(
            ((entry.display_name.lower(), entry) for entry in usable),
            key=lambda item: (-len(item[1].display_name), item[1].user_id),
        )

    def match(self, token: str) -> DirectoryEntry | None:
        """Return the entry whose display name is the longest prefix of ``token``."""
        for lowered, entry in self._entries:
            size = len(entry.display_name)
            if size <= len(token) and token[:size].lower() == lowered:
                return entry
        return None


def iter_mentions(text: str, index: MentionIndex) -> Iterator[Mention]:
    """Yield mentions in ``text`` left to right without backtracking."""
    position = 0
    while True:
        found = MENTION_TOKEN.search(text, position)
        if found is None:
            return
        entry = index.match(found.group(1))
        if entry is None:
            # Unresolved tokens stay literal; continue after the ``@``.
            position = found.start() + 1
            continue
        start = found.start()
        end = start + 1 + len(entry.display_name)
        yield Mention(
            user_id=entry.user_id,
            display_name=entry.display_name,
            start_index=start,
            end_index=end,
        )
        position = end


class MentionResolver:
    """Pure resolver from text to position-tagged mentions."""

    def __init__(self, directory: UserDirectory) -> None:
        self._directory = directory

    def resolve(self, text: str) -> list[Mention]:
        """Return the mentions in ``text`` sorted by ``start_index``."""
        if "@" not in text:
            return []
        return list(iter_mentions(text, MentionIndex(self._directory.entries())))


def resolve_mentions(text: str, directory: UserDirectory) -> list[Mention]:
    """Convenience wrapper around :class:`MentionResolver`."""
    return MentionResolver(directory).resolve(text)


def distinct_user_ids(mentions: Sequence[Mention]) -> list[str]:
    """Return mentioned user ids once each, in first-mention order."""
    seen: dict[str, None] = {}
    for mention in mentions:
        seen.setdefault(mention.user_id, None)
    return list(seen)
