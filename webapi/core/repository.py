"""User storage.

The controller only depends on the ``UserRepository`` interface; the in-memory
implementation backs the default application and the tests.
"""
from __future__ import annotations
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, Optional

from webapi.core.models import PageList, UserEntity

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base exception for all repository operations."""
    pass


class UserNotFoundError(RepositoryError):
    """Update or delete targeted an identity that does not exist."""
    pass


class UserAlreadyExistsError(RepositoryError):
    """Insert targeted an identity that is already taken."""
    pass


class UserRepository(ABC):
    """CRUD and paged listing over user entities."""

    @abstractmethod
    def find_by_id(self, user_id: uuid.UUID) -> Optional[UserEntity]:
        ...

    @abstractmethod
    def insert(self, user: UserEntity) -> UserEntity:
        """Store a new user. Assigns an identity when ``user.id`` is None."""

    @abstractmethod
    def update(self, user: UserEntity) -> None:
        ...

    @abstractmethod
    def delete(self, user_id: uuid.UUID) -> None:
        ...

    @abstractmethod
    def get_page(self, page_number: int, page_size: int) -> PageList[UserEntity]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...


class InMemoryUserRepository(UserRepository):
    """Thread-safe dict-backed repository.

    Entities are copied on the way in and on the way out, so callers never
    hold a reference into storage.
    """

    def __init__(self):
        self._entities: Dict[uuid.UUID, UserEntity] = {}
        self._lock = threading.Lock()

    def find_by_id(self, user_id: uuid.UUID) -> Optional[UserEntity]:
        with self._lock:
            entity = self._entities.get(user_id)
            return replace(entity) if entity else None

    def insert(self, user: UserEntity) -> UserEntity:
        with self._lock:
            user_id = user.id or uuid.uuid4()
            if user_id in self._entities:
                raise UserAlreadyExistsError(f"User with id '{user_id}' already exists")
            entity = replace(user, id=user_id)
            self._entities[user_id] = entity
            logger.debug(f"Inserted user {user_id}")
            return replace(entity)

    def update(self, user: UserEntity) -> None:
        with self._lock:
            if user.id not in self._entities:
                raise UserNotFoundError(f"User with id '{user.id}' not found")
            self._entities[user.id] = replace(user)
            logger.debug(f"Updated user {user.id}")

    def delete(self, user_id: uuid.UUID) -> None:
        with self._lock:
            if self._entities.pop(user_id, None) is None:
                raise UserNotFoundError(f"User with id '{user_id}' not found")
            logger.debug(f"Deleted user {user_id}")

    def get_page(self, page_number: int, page_size: int) -> PageList[UserEntity]:
        with self._lock:
            ordered = sorted(self._entities.values(), key=lambda u: (u.login, str(u.id)))
        start = (page_number - 1) * page_size
        items = [replace(u) for u in ordered[start:start + page_size]]
        return PageList(items=items, total_count=len(ordered), current_page=page_number, page_size=page_size)

    def count(self) -> int:
        with self._lock:
            return len(self._entities)
