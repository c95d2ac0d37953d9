"""Entity <-> transfer object projections.

Usage:
    # Entity -> response
    user_dto = UserMapper.to_user_dto(entity)

    # Request payload -> entity
    create_dto = UserMapper.create_dto_from_payload({"login": "bob1"})
    entity = UserMapper.create_dto_to_entity(create_dto)
"""
from __future__ import annotations
import uuid
from dataclasses import replace
from typing import Any, Dict, Optional

from webapi.core.models import CreateUserDto, UpdateUserDto, UserDto, UserEntity


class UserMapper:
    """Field copy between UserEntity and its transfer objects."""

    @staticmethod
    def to_user_dto(entity: UserEntity) -> UserDto:
        """Convert a stored entity to its response representation.

        Example:
            >>> entity = UserEntity(id=uuid.UUID(int=1), login="alice",
            ...                     first_name="Alice", last_name="Smith")
            >>> UserMapper.to_user_dto(entity).full_name
            'Smith Alice'
        """
        return UserDto(
            id=entity.id,
            login=entity.login,
            full_name=f"{entity.last_name} {entity.first_name}",
            games_played=entity.games_played,
            current_game_id=entity.current_game_id,
        )

    @staticmethod
    def create_dto_to_entity(dto: CreateUserDto) -> UserEntity:
        return UserEntity(login=dto.login, first_name=dto.first_name, last_name=dto.last_name)

    @staticmethod
    def update_dto_to_entity(
        dto: UpdateUserDto,
        user_id: uuid.UUID,
        existing: Optional[UserEntity] = None,
    ) -> UserEntity:
        """Project an update payload onto an entity with the given identity.

        Args:
            dto: Validated update payload
            user_id: Identity to carry; never taken from the payload
            existing: Entity whose untouched fields (games, current game)
                survive; omit for a full replacement

        Returns:
            New UserEntity instance
        """
        base = replace(existing) if existing else UserEntity()
        return replace(
            base,
            id=user_id,
            login=dto.login,
            first_name=dto.first_name,
            last_name=dto.last_name,
        )

    @staticmethod
    def to_update_dto(entity: UserEntity) -> UpdateUserDto:
        return UpdateUserDto(login=entity.login, first_name=entity.first_name, last_name=entity.last_name)

    @staticmethod
    def create_dto_from_payload(payload: Dict[str, Any]) -> CreateUserDto:
        """Bind a decoded request body to CreateUserDto.

        Keys are matched case-insensitively against the wire names; unknown
        keys are ignored. Absent or null optional fields keep their defaults.
        """
        bound = _bind(payload, CreateUserDto.WIRE_NAMES)
        return CreateUserDto(**{attr: value for attr, value in bound.items() if value is not None})

    @staticmethod
    def update_dto_from_payload(payload: Dict[str, Any]) -> UpdateUserDto:
        return UpdateUserDto(**_bind(payload, UpdateUserDto.WIRE_NAMES))


def _bind(payload: Dict[str, Any], wire_names: Dict[str, str]) -> Dict[str, Any]:
    lookup = {wire.lower(): attr for wire, attr in wire_names.items()}
    bound = {}
    for key, value in payload.items():
        attr = lookup.get(str(key).lower())
        if attr is not None:
            bound[attr] = value
    return bound
