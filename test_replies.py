#!/usr/bin/env python3
"""
Tests for the reply models and network leveling helpers.
"""

from datetime import UTC, datetime
from uuid import UUID

import pytest

from hypixel_api.api import leveling
from hypixel_api.api.exceptions import DecodeError
from hypixel_api.api.replies import (
    ColorCode,
    ErrorReply,
    KeyReply,
    PackageRank,
    PlayerReply,
    StaffLevel,
    StatusReply,
)

PLAYER_BODY = b"""{
  "success": true,
  "player": {
    "uuid": "3fa85f6457174562b3fc2c963f66afa6",
    "displayname": "string",
    "rank": "ADMIN",
    "packageRank": "MVP_PLUS",
    "newPackageRank": "MVP_PLUS",
    "monthlyPackageRank": "SUPERSTAR",
    "firstLogin": 0,
    "lastLogin": 1600000000000,
    "lastLogout": 0,
    "networkExp": 0,
    "networkLevel": 0,
    "achievementPoints": 250,
    "stats": {"Bedwars": {"wins_bedwars": 12, "coins": 900}}
  }
}"""


class TestLeveling:
    """Network experience conversions."""

    @pytest.mark.parametrize("exp, level", [
        (0, 1.0), (-5, 1.0), (9999, 1.0), (10000, 2.0), (50000, 4.0), (79342431, 249.0),
    ])
    def test_calculate_level(self, exp, level):
        assert leveling.calculate_level(exp) == level

    def test_xp_to_next_level(self):
        assert leveling.xp_to_next_level(0.5) == 10000
        assert leveling.xp_to_next_level(1) == 10000
        assert leveling.xp_to_next_level(5) == 20000

    def test_total_xp_to_level(self):
        assert leveling.total_xp_to_level(2.0) == 10000
        assert leveling.total_xp_to_level(3.0) == 22500
        assert leveling.total_xp_to_level(5.0) == 55000
        assert leveling.total_xp_to_level(5.764) == pytest.approx(70280)

    def test_progress(self):
        assert leveling.percentage_to_next_level(5000) == pytest.approx(0.5)
        assert leveling.exact_level(5000) == pytest.approx(1.5)


class TestPlayerReply:
    """Decoding and derived properties of player records."""

    def test_decodes_player(self):
        player = PlayerReply.model_validate_json(PLAYER_BODY).player

        assert player.uuid == UUID("3fa85f64-5717-4562-b3fc-2c963f66afa6")
        assert player.name == "string"
        assert player.staff_level == StaffLevel.ADMIN
        assert player.package_rank == PackageRank.MVP_PLUS_PLUS
        assert player.has_rank
        assert player.network_level == 1.0
        assert player.first_login == datetime(1970, 1, 1, tzinfo=UTC)
        assert player.last_login.year == 2020

    def test_stats_and_extra_properties(self):
        player = PlayerReply.model_validate_json(PLAYER_BODY).player

        assert player.stat_value("Bedwars") == {"wins_bedwars": 12, "coins": 900}
        assert player.stat_json("Bedwars", dict[str, int])["coins"] == 900
        assert player.stat_value("SkyWars") is None
        assert player.property_value("achievementPoints") == 250
        assert player.property_value("missing") is None
        assert player.property_json("achievementPoints", int) == 250
        assert player.property_json("missing", int) is None

    def test_mismatched_entries_raise_decode_error(self):
        player = PlayerReply.model_validate_json(PLAYER_BODY).player

        with pytest.raises(DecodeError):
            player.stat_json("Bedwars", list[str])
        with pytest.raises(DecodeError):
            player.property_json("achievementPoints", dict[str, int])

    def test_defaults_for_sparse_player(self):
        reply = PlayerReply.model_validate({
            "success": True,
            "player": {"uuid": "3fa85f6457174562b3fc2c963f66afa6", "knownAliases": ["a", "b"]},
        })
        player = reply.player

        assert player.name == "b"
        assert player.staff_level == StaffLevel.NORMAL
        assert player.package_rank == PackageRank.NONE
        assert not player.has_rank
        assert player.selected_plus_color == ColorCode.RED
        assert player.superstar_tag_color == ColorCode.GOLD
        assert player.first_login is None

    def test_unknown_staff_rank_kept_raw(self):
        reply = PlayerReply.model_validate({
            "success": True,
            "player": {"uuid": "3fa85f6457174562b3fc2c963f66afa6", "rank": "YOUTUBER"},
        })
        assert reply.player.staff_level == "YOUTUBER"

    def test_unknown_player(self):
        assert PlayerReply.model_validate_json(b'{"success": true, "player": null}').player is None


class TestOtherReplies:
    """Key, status and error bodies."""

    def test_key_reply(self):
        reply = KeyReply.model_validate({
            "success": True,
            "record": {
                "key": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
                "owner": "069a79f4-44e9-4726-a5be-fca90e38aaf5",
                "limit": 120,
                "queriesInPastMin": 3,
                "totalQueries": 42,
            },
        })
        assert reply.record.limit == 120
        assert reply.record.total_queries == 42

    def test_status_reply_offline(self):
        reply = StatusReply.model_validate({
            "success": True,
            "uuid": "069a79f444e94726a5befca90e38aaf5",
            "session": {"online": False},
        })
        assert not reply.online
        assert reply.session.game_type is None

    def test_error_reply(self):
        reply = ErrorReply.model_validate_json(b'{"success": false, "cause": "Invalid API key"}')
        assert reply.cause == "Invalid API key"
