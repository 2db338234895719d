"""
Shared data models for Chat Sweeper
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Optional, Any


UNTITLED = "Untitled conversation"
DEFAULT_CATEGORY = "Other"

# Header name -> header value, as captured from the browser
CredentialSet = Dict[str, str]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _from_epoch(seconds: float) -> Optional[datetime]:
    # Out-of-range epochs (and NaN/inf) raise OverflowError/OSError/ValueError
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an API timestamp (ISO string or epoch seconds) into an aware datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            return _from_epoch(float(text))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Conversation:
    """A single remote conversation held in the local cache"""
    id: str
    title: Optional[str] = None
    create_time: Optional[str] = None
    update_time: Optional[str] = None
    category: Optional[str] = None

    @property
    def display_title(self) -> str:
        return self.title or UNTITLED

    @property
    def created_at(self) -> datetime:
        return parse_timestamp(self.create_time) or _EPOCH

    @property
    def updated_at(self) -> datetime:
        return parse_timestamp(self.update_time) or _EPOCH

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(
            id=str(data["id"]),
            title=data.get("title"),
            create_time=data.get("create_time"),
            update_time=data.get("update_time"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.display_title,
            "create_time": self.create_time,
            "update_time": self.update_time,
            "category": self.category,
        }


@dataclass
class ConversationPage:
    """One page of the remote list endpoint"""
    items: List[Conversation]
    total: int
    offset: int
    limit: int


@dataclass
class CategoryAssignment:
    """One (title, category) pair returned by the classifier"""
    title: str
    category: str = DEFAULT_CATEGORY

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "category": self.category}


@dataclass
class ProgressEvent:
    """Progress of a batch operation after `current` of `total` units"""
    current: int
    total: int
    percent: int

    @classmethod
    def of(cls, current: int, total: int) -> "ProgressEvent":
        percent = round(current / total * 100) if total else 100
        return cls(current=current, total=total, percent=percent)

    def to_dict(self) -> Dict[str, int]:
        return {"current": self.current, "total": self.total, "percent": self.percent}


class MutationKind(str, Enum):
    """Bulk mutations supported by the per-conversation PATCH endpoint"""
    ARCHIVE = "archive"
    DELETE = "delete"

    @property
    def payload(self) -> Dict[str, bool]:
        if self is MutationKind.ARCHIVE:
            return {"is_archived": True}
        return {"is_visible": False}

    @property
    def past_tense(self) -> str:
        return "Archived" if self is MutationKind.ARCHIVE else "Deleted"


@dataclass
class MutationFailure:
    """A conversation id whose mutation failed, with the reason"""
    id: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "error": self.error}


@dataclass
class MutationResult:
    """Aggregated outcome of a bulk archive/delete run"""
    kind: MutationKind
    success: List[str] = field(default_factory=list)
    failed: List[MutationFailure] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.success) + len(self.failed)

    @property
    def is_partial(self) -> bool:
        return bool(self.success) and bool(self.failed)

    @property
    def summary(self) -> str:
        message = f"{self.kind.past_tense} {len(self.success)} of {self.attempted} conversations"
        if self.failed:
            message += f" ({len(self.failed)} failed)"
        return message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "success": list(self.success),
            "failed": [failure.to_dict() for failure in self.failed],
            "summary": self.summary,
        }


@dataclass
class SelectionSet:
    """Conversation ids marked for archive or delete; an id lives in at most one list"""
    archive: List[str] = field(default_factory=list)
    delete: List[str] = field(default_factory=list)

    def mark_for_archive(self, conversation_id: str) -> None:
        self._discard(self.delete, conversation_id)
        if conversation_id not in self.archive:
            self.archive.append(conversation_id)

    def mark_for_delete(self, conversation_id: str) -> None:
        self._discard(self.archive, conversation_id)
        if conversation_id not in self.delete:
            self.delete.append(conversation_id)

    def unmark(self, conversation_id: str) -> None:
        self._discard(self.archive, conversation_id)
        self._discard(self.delete, conversation_id)

    def ids_for(self, kind: MutationKind) -> List[str]:
        return list(self.archive if kind is MutationKind.ARCHIVE else self.delete)

    def clear(self) -> None:
        self.archive.clear()
        self.delete.clear()

    def is_empty(self) -> bool:
        return not self.archive and not self.delete

    def to_dict(self) -> Dict[str, List[str]]:
        return {"archive": list(self.archive), "delete": list(self.delete)}

    @staticmethod
    def _discard(ids: List[str], conversation_id: str) -> None:
        if conversation_id in ids:
            ids.remove(conversation_id)


@dataclass
class ViewState:
    """Current pagination/filter/grouping of the conversation view"""
    offset: int = 0
    page_size: int = 20
    category_filter: Optional[str] = None
    group_by_category: bool = False
    sort_field: str = "update_time"


@dataclass
class SyncConfig:
    """Configuration for the full-collection sync"""
    batch_size: int = 100


@dataclass
class ClassificationConfig:
    """Configuration for the classification pipeline"""
    batch_size: int = 100
    offline: bool = False  # keyword rules instead of the remote classifier
