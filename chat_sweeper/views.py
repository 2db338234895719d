"""
Cache views - filtering, pagination, grouping and stats over the local cache.

Nothing here touches the network or raises on odd input; bad offsets and
empty caches simply produce empty pages.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from chat_sweeper.models import CategoryAssignment, Conversation, parse_timestamp


SORT_FIELDS = ("update_time", "create_time")
RECENT_COUNT = 5


@dataclass
class PageView:
    """A slice of a list plus the bounds a pager needs to render"""
    items: List[Any]
    offset: int
    limit: int
    total: int

    @property
    def start(self) -> int:
        return self.offset + 1 if self.total > 0 else 0

    @property
    def end(self) -> int:
        return min(self.offset + self.limit, self.total)

    @property
    def has_previous(self) -> bool:
        return self.offset > 0

    @property
    def has_next(self) -> bool:
        return self.offset + self.limit < self.total

    @property
    def previous_offset(self) -> int:
        return max(0, self.offset - self.limit)

    @property
    def next_offset(self) -> int:
        return self.offset + self.limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() if hasattr(item, "to_dict") else item for item in self.items],
            "offset": self.offset,
            "limit": self.limit,
            "total": self.total,
            "start": self.start,
            "end": self.end,
            "has_previous": self.has_previous,
            "has_next": self.has_next,
        }


@dataclass
class CategorySection:
    """The part of one category that falls on the current page"""
    category: str
    titles: List[str]
    start_index: int
    total_in_category: int

    @property
    def remaining(self) -> int:
        """Titles of this category pushed to later pages"""
        return self.total_in_category - (self.start_index + len(self.titles))

    @property
    def label(self) -> str:
        if self.remaining > 0:
            return (f"{self.category} ({len(self.titles)} of {self.total_in_category}, "
                    f"{self.remaining} more on next page)")
        return f"{self.category} ({self.total_in_category})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "titles": list(self.titles),
            "start_index": self.start_index,
            "total_in_category": self.total_in_category,
            "remaining": self.remaining,
            "label": self.label,
        }


@dataclass
class GroupedPage:
    """A page of the grouped-by-category view"""
    sections: List[CategorySection]
    page: PageView = field(repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data = self.page.to_dict()
        data["items"] = [section.to_dict() for section in self.sections]
        return data


@dataclass
class ConversationStats:
    """Summary numbers for the stats panel"""
    total: int
    first_created: Optional[str]
    latest_updated: Optional[str]
    recent: List[Conversation]
    category_count: int
    category_counts: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "first_created": self.first_created,
            "latest_updated": self.latest_updated,
            "recent": [conversation.to_dict() for conversation in self.recent],
            "category_count": self.category_count,
            "category_counts": dict(self.category_counts),
        }


# === Filtering & Sorting ===

def filter_by_category(conversations: List[Conversation], category: Optional[str]) -> List[Conversation]:
    """Conversations whose category contains `category`; everything when no filter is set"""
    if not category:
        return list(conversations)
    return [
        conversation for conversation in conversations
        if conversation.category and category in conversation.category
    ]


def sort_conversations(conversations: List[Conversation], sort_field: str = "update_time") -> List[Conversation]:
    """Newest first by update or creation time"""
    if sort_field == "create_time":
        return sorted(conversations, key=lambda conversation: conversation.created_at, reverse=True)
    return sorted(conversations, key=lambda conversation: conversation.updated_at, reverse=True)


# === Pagination ===

def paginate(items: List[Any], offset: int, limit: int) -> PageView:
    offset = max(0, offset)
    limit = max(0, limit)
    return PageView(items=list(items[offset:offset + limit]), offset=offset, limit=limit, total=len(items))


def group_by_category(assignments: List[CategoryAssignment]) -> Dict[str, List[str]]:
    """Titles per category, categories in lexicographic order"""
    groups: Dict[str, List[str]] = {}
    for assignment in assignments:
        groups.setdefault(assignment.category, []).append(assignment.title)
    return {category: groups[category] for category in sorted(groups)}


def group_and_paginate(assignments: List[CategoryAssignment], offset: int, limit: int) -> GroupedPage:
    """
    Page through classification results grouped by category.

    Categories are walked in sorted order with a running count; the page
    takes titles from `[offset, offset + limit)` and may straddle a
    category boundary, in which case the partially shown category reports
    how many of its titles remain for the next page.
    """
    offset = max(0, offset)
    limit = max(0, limit)
    groups = group_by_category(assignments)
    total = sum(len(titles) for titles in groups.values())

    sections: List[CategorySection] = []
    position = 0
    on_page = 0

    for category, titles in groups.items():
        if position + len(titles) <= offset:
            position += len(titles)
            continue

        start_index = max(0, offset - position)
        take = min(len(titles) - start_index, limit - on_page)
        if take <= 0:
            break

        sections.append(CategorySection(
            category=category,
            titles=titles[start_index:start_index + take],
            start_index=start_index,
            total_in_category=len(titles)
        ))
        on_page += take
        position += len(titles)

        if on_page >= limit:
            break

    return GroupedPage(sections=sections, page=PageView(items=[], offset=offset, limit=limit, total=total))


def available_categories(assignments: List[CategoryAssignment]) -> List[str]:
    return sorted({assignment.category for assignment in assignments if assignment.category})


# === Stats ===

def compute_stats(
    conversations: List[Conversation],
    assignments: Optional[List[CategoryAssignment]] = None
) -> ConversationStats:
    """Totals, date range, most recent conversations and category counts"""
    counts: Dict[str, int] = {}
    for assignment in assignments or []:
        counts[assignment.category] = counts.get(assignment.category, 0) + 1

    if not conversations:
        return ConversationStats(
            total=0, first_created=None, latest_updated=None, recent=[],
            category_count=len(counts), category_counts=counts
        )

    by_update = sort_conversations(conversations, "update_time")
    oldest = min(conversations, key=lambda conversation: conversation.created_at)

    return ConversationStats(
        total=len(conversations),
        first_created=oldest.create_time,
        latest_updated=by_update[0].update_time,
        recent=by_update[:RECENT_COUNT],
        category_count=len(counts),
        category_counts=counts
    )


def format_days_ago(timestamp: Any, now: Optional[datetime] = None) -> str:
    """Relative label such as "Just now", "3 hours ago" or "Yesterday" """
    moment = parse_timestamp(timestamp)
    if moment is None:
        return "N/A"

    now = now or datetime.now(timezone.utc)
    seconds = int((now - moment).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if seconds < 60:
        return "Just now" if seconds <= 1 else f"{seconds} seconds ago"
    if minutes < 60:
        return "1 minute ago" if minutes == 1 else f"{minutes} minutes ago"
    if hours < 24:
        return "1 hour ago" if hours == 1 else f"{hours} hours ago"
    if days == 1:
        return "Yesterday"
    return f"{days} days ago"
