from __future__ import annotations

import re

from issuebridge.errors import InvalidLinkFormat, NotAuthenticated, NotOwner
from issuebridge.models import RepositoryLink

_LINK_RE = re.compile(r"^https://github\.com/([^/?#]+)/([^/?#]+)$")


def normalize_link(raw: str) -> RepositoryLink:
    """Parse ``https://github.com/<owner>/<repo>`` into a :class:`RepositoryLink`.

    Surrounding whitespace, one trailing slash and then one ``.git`` suffix are
    dropped before matching. Case is preserved.
    """
    cleaned = raw.strip()
    if cleaned.endswith("/"):
        cleaned = cleaned[:-1]
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]

    match = _LINK_RE.match(cleaned)
    # "repo.git.git" would otherwise normalize to a name with a .git suffix.
    if not match or match.group(2).endswith(".git"):
        raise InvalidLinkFormat()
    return RepositoryLink(owner=match.group(1), name=match.group(2))


def require_username(username: str | None) -> str:
    """Return the signed-in username, stripped, or raise :class:`NotAuthenticated`."""
    if not username or not username.strip():
        raise NotAuthenticated()
    return username.strip()


def check_ownership(link: RepositoryLink, username: str | None) -> None:
    """Reject links whose owner is not the signed-in user (case-insensitive).

    This only gates the UI; the backend has to verify ownership on its own.
    """
    if link.owner.casefold() != require_username(username).casefold():
        raise NotOwner()
