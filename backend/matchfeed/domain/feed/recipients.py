"""Recipient resolution per post visibility."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from matchfeed.domain import geo, matching
from matchfeed.domain.blocks import BlockRegistry
from matchfeed.domain.feed.models import FeedReason, Post, PostVisibility
from matchfeed.settings import settings
from matchfeed.store import Store

_REASON_BY_VISIBILITY = {
    PostVisibility.PUBLIC: FeedReason.PUBLIC,
    PostVisibility.CONNECTIONS: FeedReason.CONNECTION,
    PostVisibility.PRIVATE: FeedReason.APPROVED,
}


@dataclass(slots=True)
class RecipientSet:
    reason: FeedReason
    user_ids: list[str] = field(default_factory=list)
    scanned: int = 0
    truncated: bool = False

    def pairs(self) -> list[tuple[str, FeedReason]]:
        return [(user_id, self.reason) for user_id in self.user_ids]


async def resolve_recipients(
    post: Post,
    *,
    store: Store,
    registry: BlockRegistry,
    max_recipients: Optional[int] = None,
    radius_miles: Optional[float] = None,
    page_size: Optional[int] = None,
) -> RecipientSet:
    """Compute who receives ``post``, excluding the author and blocked users.

    Raises ``BlockLookupError`` when the author's exclusion set is unavailable.
    """

    excluded = await registry.load_exclusion_set(post.author_id)
    reason = _REASON_BY_VISIBILITY[post.visibility]
    if post.visibility == PostVisibility.CONNECTIONS:
        partner_ids = await store.list_match_partner_ids(post.author_id)
        return RecipientSet(reason=reason, user_ids=_filtered(partner_ids, post.author_id, excluded))
    if post.visibility == PostVisibility.PRIVATE:
        grants = await store.list_private_access(post.author_id)
        viewer_ids = [grant.viewer_id for grant in grants]
        return RecipientSet(reason=reason, user_ids=_filtered(viewer_ids, post.author_id, excluded))
    return await _resolve_public(
        post,
        store=store,
        excluded=excluded,
        cap=max_recipients or settings.fanout_max_recipients,
        radius=radius_miles or settings.fanout_radius_miles,
        page_size=page_size or settings.fanout_scan_page_size,
    )


def _filtered(user_ids: list[str], author_id: str, excluded: frozenset[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for user_id in user_ids:
        if user_id == author_id or user_id in excluded or user_id in seen:
            continue
        seen.add(user_id)
        result.append(user_id)
    return result


async def _resolve_public(
    post: Post,
    *,
    store: Store,
    excluded: frozenset[str],
    cap: int,
    radius: float,
    page_size: int,
) -> RecipientSet:
    recipients = RecipientSet(reason=FeedReason.PUBLIC)
    after: Optional[str] = None
    while True:
        page = await store.scan_searchable_profiles(after_user_id=after, limit=page_size)
        if not page:
            return recipients
        for profile in page:
            recipients.scanned += 1
            if profile.user_id == post.author_id or profile.user_id in excluded:
                continue
            if not matching.is_base_match(post.author, profile):
                continue
            # Missing coordinates on either side never exclude.
            if not geo.within_radius(post.author.location, profile.location, radius):
                continue
            if len(recipients.user_ids) >= cap:
                # Truncated only when an eligible recipient is left out.
                recipients.truncated = True
                return recipients
            recipients.user_ids.append(profile.user_id)
        if len(page) < page_size:
            return recipients
        after = page[-1].user_id
