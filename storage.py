"""
Storage Module for SearchScope

Repository interface for users, websites, cached search data and insights,
an in-memory implementation, and the Insight Store that owns the
replace-on-refresh semantics for a website's insights.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from config import INSIGHT_LOCK_STRIPES
from errors import NotFoundError, ValidationError
from logger import log
from models import (
    Insight, InsightCreate, SearchAnalytics, SearchDataSnapshot, User,
    Website, WebsiteCreate
)


class Storage(ABC):
    """Persistence boundary; pass an implementation in, never import one"""

    # User operations
    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_google_id(self, google_id: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, username: str, email: Optional[str] = None) -> User: ...

    @abstractmethod
    def update_user_google_credentials(self, user_id: int, google_id: str,
                                       access_token: str, refresh_token: str) -> User: ...

    # Website operations
    @abstractmethod
    def get_websites(self, user_id: int) -> List[Website]: ...

    @abstractmethod
    def get_website(self, website_id: int) -> Optional[Website]: ...

    @abstractmethod
    def create_website(self, website: WebsiteCreate) -> Website: ...

    # Search data operations
    @abstractmethod
    def get_search_data(self, website_id: int, start_date: date, end_date: date) -> Optional[SearchDataSnapshot]: ...

    @abstractmethod
    def create_search_data(self, website_id: int, data: SearchAnalytics) -> SearchDataSnapshot: ...

    # Insight operations
    @abstractmethod
    def get_insights(self, website_id: int) -> List[Insight]: ...

    @abstractmethod
    def create_insight(self, insight: InsightCreate) -> Insight: ...

    @abstractmethod
    def delete_insights(self, website_id: int) -> None: ...


class MemStorage(Storage):
    """Dictionary-backed storage with auto-increment ids"""

    def __init__(self):
        self.users: Dict[int, User] = {}
        self.websites: Dict[int, Website] = {}
        self.search_data: Dict[int, SearchDataSnapshot] = {}
        self.insights: Dict[int, Insight] = {}

        self._user_ids = itertools.count(1)
        self._website_ids = itertools.count(1)
        self._search_data_ids = itertools.count(1)
        self._insight_ids = itertools.count(1)
        self._id_lock = threading.Lock()

    def _next_id(self, counter) -> int:
        with self._id_lock:
            return next(counter)

    # User methods
    def get_user(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in list(self.users.values()) if u.username == username), None)

    def get_user_by_google_id(self, google_id: str) -> Optional[User]:
        return next((u for u in list(self.users.values()) if u.google_id == google_id), None)

    def create_user(self, username: str, email: Optional[str] = None) -> User:
        user = User(id=self._next_id(self._user_ids), username=username, email=email)
        self.users[user.id] = user
        return user

    def update_user_google_credentials(self, user_id: int, google_id: str,
                                       access_token: str, refresh_token: str) -> User:
        user = self.get_user(user_id)
        if not user:
            raise NotFoundError(f"User with ID {user_id} not found")

        user.google_id = google_id
        user.google_access_token = access_token
        # Google only returns a refresh token on first consent
        if refresh_token:
            user.google_refresh_token = refresh_token
        return user

    # Website methods
    def get_websites(self, user_id: int) -> List[Website]:
        return [w for w in list(self.websites.values()) if w.user_id == user_id]

    def get_website(self, website_id: int) -> Optional[Website]:
        return self.websites.get(website_id)

    def create_website(self, website: WebsiteCreate) -> Website:
        created = Website(
            id=self._next_id(self._website_ids),
            user_id=website.user_id,
            url=website.url,
            site_url=website.site_url,
            permission_level=website.permission_level
        )
        self.websites[created.id] = created
        return created

    # Search data methods
    def get_search_data(self, website_id: int, start_date: date, end_date: date) -> Optional[SearchDataSnapshot]:
        matches = [
            s for s in list(self.search_data.values())
            if s.website_id == website_id and s.start_date == start_date and s.end_date == end_date
        ]
        return max(matches, key=lambda s: s.id) if matches else None

    def create_search_data(self, website_id: int, data: SearchAnalytics) -> SearchDataSnapshot:
        snapshot = SearchDataSnapshot(
            id=self._next_id(self._search_data_ids),
            website_id=website_id,
            data=data,
            start_date=data.start_date,
            end_date=data.end_date
        )
        self.search_data[snapshot.id] = snapshot
        return snapshot

    # Insight methods
    def get_insights(self, website_id: int) -> List[Insight]:
        return [i for i in list(self.insights.values()) if i.website_id == website_id]

    def create_insight(self, insight: InsightCreate) -> Insight:
        created = Insight(
            id=self._next_id(self._insight_ids),
            website_id=insight.website_id,
            type=insight.type,
            title=insight.title,
            description=insight.description
        )
        self.insights[created.id] = created
        return created

    def delete_insights(self, website_id: int) -> None:
        for insight_id in [i.id for i in list(self.insights.values()) if i.website_id == website_id]:
            del self.insights[insight_id]


class InsightStore:
    """
    Insights for a website, replaced as a whole on every refresh

    Reads and replacements for the same website are serialised with a
    per-website lock, so a reader never sees a half-replaced set and
    concurrent refreshes never interleave their delete and insert steps.
    Locks are striped by website id, which keeps their number fixed.
    """

    def __init__(self, storage: Storage, lock_stripes: int = INSIGHT_LOCK_STRIPES):
        self.storage = storage
        self._locks = [threading.Lock() for _ in range(lock_stripes)]

    def _lock_for(self, website_id: int) -> threading.Lock:
        return self._locks[hash(website_id) % len(self._locks)]

    def replace_insights(self, website_id: int, insights: Iterable[Dict]) -> List[Insight]:
        """
        Delete every insight for the website, then insert the new batch

        Args:
            website_id: Owning website
            insights: Payloads with type, title and description

        Returns:
            The stored insights

        Raises:
            ValidationError: any payload is invalid; nothing is deleted then
        """
        payloads = []
        for index, insight in enumerate(insights):
            try:
                payloads.append(InsightCreate.model_validate({**dict(insight), 'websiteId': website_id}))
            except PydanticValidationError as e:
                error = ValidationError.from_pydantic(e, f"Invalid insight at index {index}")
                for item in error.errors:
                    item['field'] = f"insights.{index}.{item['field']}"
                raise error from e
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f"Invalid insight at index {index}",
                    [{'field': f"insights.{index}", 'message': 'must be an object', 'type': 'dict_type'}]
                ) from e

        with self._lock_for(website_id):
            self.storage.delete_insights(website_id)
            saved = [self.storage.create_insight(payload) for payload in payloads]

        log.info(f"Replaced insights for website {website_id}: {len(saved)} stored")
        return saved

    def list_insights(self, website_id: int) -> List[Insight]:
        with self._lock_for(website_id):
            return self.storage.get_insights(website_id)
