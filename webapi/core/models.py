"""Entities and transfer objects for the users resource.

Wire names (camelCase) live here next to the fields they describe so that the
mapper, the patch engine and the validators all agree on them.
"""
from __future__ import annotations
import math
import uuid
from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class UserEntity:
    """Persisted user, owned by the repository."""
    id: Optional[uuid.UUID] = None
    login: str = ""
    first_name: str = ""
    last_name: str = ""
    games_played: int = 0
    current_game_id: Optional[uuid.UUID] = None


@dataclass
class CreateUserDto:
    """Body of POST /users."""
    login: Optional[str] = None
    first_name: str = "John"
    last_name: str = "Doe"

    WIRE_NAMES = {"login": "login", "firstName": "first_name", "lastName": "last_name"}


@dataclass
class UpdateUserDto:
    """Body of PUT /users/{id} and target of PATCH documents."""
    login: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    WIRE_NAMES = {"login": "login", "firstName": "first_name", "lastName": "last_name"}


@dataclass
class UserDto:
    """Response representation of a user."""
    id: uuid.UUID
    login: str
    full_name: str
    games_played: int = 0
    current_game_id: Optional[uuid.UUID] = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "login": self.login,
            "fullName": self.full_name,
            "gamesPlayed": self.games_played,
            "currentGameId": str(self.current_game_id) if self.current_game_id else None,
        }


@dataclass
class PageList(Generic[T]):
    """One page of results plus the counts needed to navigate the rest."""
    items: List[T]
    total_count: int
    current_page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages


@dataclass
class PaginationHeader:
    """Payload of the X-Pagination response header."""
    previous_page_link: Optional[str]
    next_page_link: Optional[str]
    total_count: int
    page_size: int
    current_page: int
    total_pages: int

    def to_dict(self) -> dict:
        return {
            "previousPageLink": self.previous_page_link,
            "nextPageLink": self.next_page_link,
            "totalCount": self.total_count,
            "pageSize": self.page_size,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
        }


class ValidationErrors(dict):
    """Field name -> list of messages. Errors accumulate, never short-circuit."""

    def add(self, field_name: str, message: str) -> None:
        self.setdefault(field_name, []).append(message)

    @property
    def is_valid(self) -> bool:
        return not self
