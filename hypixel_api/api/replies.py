"""
Ready-to-use payload models for common Hypixel API endpoints.

Any of these can be passed as the response type of
`RequestHandler.request`; the request handler itself never depends on
them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from . import leveling
from .exceptions import DecodeError

T = TypeVar("T")


class PackageRank(Enum):
    """Purchasable ranks, lowest to highest."""
    NONE = "NONE"
    VIP = "VIP"
    VIP_PLUS = "VIP_PLUS"
    MVP = "MVP"
    MVP_PLUS = "MVP_PLUS"
    MVP_PLUS_PLUS = "MVP_PLUS_PLUS"


class MonthlyPackageRank(Enum):
    NONE = "NONE"
    SUPERSTAR = "SUPERSTAR"


class StaffLevel(Enum):
    NORMAL = "NORMAL"
    HELPER = "HELPER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class ColorCode(Enum):
    """Minecraft formatting color names."""
    BLACK = "BLACK"
    DARK_BLUE = "DARK_BLUE"
    DARK_GREEN = "DARK_GREEN"
    DARK_AQUA = "DARK_AQUA"
    DARK_RED = "DARK_RED"
    DARK_PURPLE = "DARK_PURPLE"
    GOLD = "GOLD"
    GRAY = "GRAY"
    DARK_GRAY = "DARK_GRAY"
    BLUE = "BLUE"
    GREEN = "GREEN"
    AQUA = "AQUA"
    RED = "RED"
    LIGHT_PURPLE = "LIGHT_PURPLE"
    YELLOW = "YELLOW"
    WHITE = "WHITE"


class ErrorReply(BaseModel):
    """Body the API sends along with non-success statuses."""
    success: bool = False
    cause: str | None = None


class KeyData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: UUID
    owner: UUID
    limit: int
    queries_in_past_min: int = Field(alias="queriesInPastMin")
    total_queries: int = Field(alias="totalQueries")


class KeyReply(BaseModel):
    """Reply of the `key` endpoint."""
    success: bool
    record: KeyData


class SessionData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    online: bool
    game_type: str | None = Field(default=None, alias="gameType")
    mode: str | None = None
    map: str | None = None


class StatusReply(BaseModel):
    """Reply of the `status` endpoint."""
    success: bool
    uuid: UUID
    session: SessionData

    @property
    def online(self) -> bool:
        """False means offline, or online with the status hidden."""
        return self.session.online


class PlayerData(BaseModel):
    """
    Player record of the `player` endpoint.

    Fields not modelled here stay available through `property_value`.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    uuid: UUID
    display_name: str | None = Field(default=None, alias="displayname")
    known_aliases: list[str] | None = Field(default=None, alias="knownAliases")
    player_name: str | None = Field(default=None, alias="playername")
    user_name: str | None = Field(default=None, alias="username")
    rank: str | None = None
    package_rank_raw: PackageRank | None = Field(default=None, alias="packageRank")
    new_package_rank: PackageRank | None = Field(default=None, alias="newPackageRank")
    monthly_package_rank: MonthlyPackageRank | None = Field(
        default=None, alias="monthlyPackageRank"
    )
    rank_plus_color: ColorCode | None = Field(default=None, alias="rankPlusColor")
    monthly_rank_color: ColorCode | None = Field(default=None, alias="monthlyRankColor")
    build_team: bool = Field(default=False, alias="buildTeam")
    build_team_admin: bool = Field(default=False, alias="buildTeamAdmin")
    first_login_ms: int | None = Field(default=None, alias="firstLogin")
    last_login_ms: int | None = Field(default=None, alias="lastLogin")
    last_logout_ms: int | None = Field(default=None, alias="lastLogout")
    network_exp: float = Field(default=0.0, alias="networkExp")
    network_lvl: float = Field(default=0.0, alias="networkLevel")
    karma: int = 0
    stats: dict[str, Any] | None = None

    @property
    def name(self) -> str | None:
        """Display name, else most recent alias, else player/user name."""
        if self.display_name is not None:
            return self.display_name
        if self.known_aliases:
            return self.known_aliases[-1]
        if self.player_name is not None:
            return self.player_name
        return self.user_name

    @property
    def network_xp(self) -> int:
        return int(self.network_exp + leveling.total_xp_to_full_level(self.network_lvl + 1.0))

    @property
    def network_level(self) -> float:
        xp = self.network_exp + leveling.total_xp_to_full_level(self.network_lvl + 1.0)
        return leveling.exact_level(xp)

    @property
    def staff_level(self) -> StaffLevel | str:
        """Known staff level, or the raw value for levels this client does not know."""
        if self.rank is None:
            return StaffLevel.NORMAL
        try:
            return StaffLevel(self.rank)
        except ValueError:
            return self.rank

    @property
    def package_rank(self) -> PackageRank:
        """Highest purchased rank, respecting the API's precedence rules."""
        if self.monthly_package_rank not in (None, MonthlyPackageRank.NONE):
            return PackageRank.MVP_PLUS_PLUS
        if self.new_package_rank not in (None, PackageRank.NONE):
            return self.new_package_rank
        if self.package_rank_raw not in (None, PackageRank.NONE):
            return self.package_rank_raw
        return PackageRank.NONE

    @property
    def has_rank(self) -> bool:
        return self.staff_level != StaffLevel.NORMAL or self.package_rank != PackageRank.NONE

    @property
    def on_build_team(self) -> bool:
        return self.build_team or self.build_team_admin

    @property
    def selected_plus_color(self) -> ColorCode:
        return self.rank_plus_color or ColorCode.RED

    @property
    def superstar_tag_color(self) -> ColorCode:
        return self.monthly_rank_color or ColorCode.GOLD

    @property
    def first_login(self) -> datetime | None:
        return _from_millis(self.first_login_ms)

    @property
    def last_login(self) -> datetime | None:
        return _from_millis(self.last_login_ms)

    @property
    def last_logout(self) -> datetime | None:
        return _from_millis(self.last_logout_ms)

    def stat_value(self, name: str) -> Any | None:
        if self.stats is None:
            return None
        return self.stats.get(name)

    def stat_json(self, name: str, shape: type[T]) -> T | None:
        """
        Game stats entry `name` validated into `shape`, if present.

        Raises:
            DecodeError: If the entry does not match `shape`
        """
        return _validate_entry(f"stats.{name}", self.stat_value(name), shape)

    def property_value(self, name: str) -> Any | None:
        """Any field this model does not capture explicitly."""
        return (self.model_extra or {}).get(name)

    def property_json(self, name: str, shape: type[T]) -> T | None:
        """
        Uncaptured field `name` validated into `shape`, if present.

        Raises:
            DecodeError: If the field does not match `shape`
        """
        return _validate_entry(name, self.property_value(name), shape)


class PlayerReply(BaseModel):
    """Reply of the `player` endpoint. `player` is None for unknown players."""
    success: bool
    player: PlayerData | None = None


def _from_millis(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _validate_entry(name: str, value: Any | None, shape: type[T]) -> T | None:
    if value is None:
        return None
    try:
        return TypeAdapter(shape).validate_python(value)
    except ValidationError as e:
        raise DecodeError(f"Player entry '{name}' does not match {shape!r}: {e}") from e
