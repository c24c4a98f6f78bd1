"""Schema migration tests."""

from __future__ import annotations

import copy

import pytest

from watchquest.errors import MigrationError
from watchquest.migrations import (
    CURRENT_SCHEMA_VERSION,
    migrate,
    migrate_v0_to_v1,
    migrate_v1_to_v2,
)
from watchquest.models import Document, MovieProgress, PrivacyLevel, WatchStatus


def _legacy_document() -> dict:
    """A document as written by the first release, before schema versions existed."""

    return {
        "users": [
            {
                "id": "u1",
                "name": "Michael Scott",
                "handle": "@worlds_best_boss",
                "email": "michael@example.com",
                "password": "123",
                "role": "user",
                "privacy": "Public",
                "followers": 1,
                "following": 0,
                "watchedMovieIds": ["m3"],
                "watchingMovieIds": ["m4"],
                "watchProgress": {"m4": 30},
            },
            {
                "id": "u2",
                "name": "Jim Halpert",
                "handle": "@big_tuna",
                "email": "jim@example.com",
                "followingIds": ["u1"],
                "following": 1,
            },
        ],
        "lists": [
            {
                "id": "l1",
                "creatorId": "u1",
                "creatorName": "Michael Scott",
                "title": "Screenplays",
                "privacy": "Followers Only",
                "items": [
                    {
                        "movie": {"id": "m1", "title": "Threat Level Midnight", "duration": "120 min"},
                        "status": "Watching",
                        "progressMinutes": 45,
                    },
                    {"movie": {"id": "m3", "title": "The Devil Wears Prada", "duration": "109 min"}},
                    {"movie": {"id": "m4", "title": "Million Dollar Baby", "duration": "132 min"}},
                ],
                "comments": [
                    {
                        "id": "c1",
                        "userId": "u2",
                        "userName": "Jim Halpert",
                        "text": "Classic",
                        "timestamp": 1,
                    }
                ],
                "badgeReward": {
                    "id": "b_scarn",
                    "name": "Agent Scarn",
                    "earnedDate": "",
                },
            },
            {
                "id": "l_1700000000000",
                "creatorId": "u2",
                "creatorName": "Jim Halpert",
                "title": "Pranks",
                "items": [
                    {
                        "movie": {
                            "id": "tt0386676",
                            "title": "The Office",
                            "duration": "9 Seasons",
                            "type": "Series",
                        },
                        "status": "Watching",
                        "currentSeason": 2,
                        "currentEpisode": 3,
                        "watchedHistory": ["S2E1", "S2E2", "S2E3"],
                    }
                ],
            },
        ],
    }


def test_legacy_document_reaches_current_version() -> None:
    migrated, applied = migrate(_legacy_document())

    assert applied == list(range(1, CURRENT_SCHEMA_VERSION + 1))
    assert migrated["schemaVersion"] == CURRENT_SCHEMA_VERSION
    document = Document.model_validate(migrated)
    assert len(document.global_badges) == 6
    assert document.reports == [] and document.blacklist == []


def test_item_watch_state_moves_to_creator_tracking() -> None:
    document = Document.model_validate(migrate(_legacy_document())[0])
    screenplays = document.find_list("l1")
    assert screenplays is not None

    first = screenplays.items[0]
    assert first.media.id == "m1"
    assert first.tracking["u1"] == MovieProgress(status=WatchStatus.WATCHING, progress_minutes=45)


def test_user_watch_mirrors_are_folded_into_tracking() -> None:
    migrated, _ = migrate(_legacy_document())
    user = migrated["users"][0]
    assert "watchedMovieIds" not in user
    assert "watchProgress" not in user

    document = Document.model_validate(migrated)
    items = {item.media.id: item for item in document.find_list("l1").items}
    assert items["m3"].tracking["u1"].status is WatchStatus.WATCHED
    assert items["m3"].tracking["u1"].progress_minutes == 109
    assert items["m4"].tracking["u1"].status is WatchStatus.WATCHING
    assert items["m4"].tracking["u1"].progress_minutes == 30


def test_series_items_gain_season_skeleton() -> None:
    document = Document.model_validate(migrate(_legacy_document())[0])
    pranks = document.find_list("l_1700000000000")

    media = pranks.items[0].media
    assert media.total_seasons == 9
    assert [season.season_number for season in media.seasons_data] == list(range(1, 10))
    assert all(season.episodes_count == 0 for season in media.seasons_data)
    progress = pranks.items[0].tracking["u2"]
    assert progress.watched_history == ["S2E1", "S2E2", "S2E3"]
    assert progress.current_season == 2
    assert pranks.created_at == 1_700_000_000_000


def test_legacy_enums_and_rewards_are_normalised() -> None:
    document = Document.model_validate(migrate(_legacy_document())[0])
    screenplays = document.find_list("l1")

    assert screenplays.privacy is PrivacyLevel.FOLLOWERS
    assert document.find_user("u1").privacy is PrivacyLevel.PUBLIC
    assert screenplays.badge_reward.related_list_id == "l1"
    assert screenplays.badge_reward.earned_date is None
    assert screenplays.comments[0].replies == []


def test_missing_user_fields_are_backfilled() -> None:
    document = Document.model_validate(migrate(_legacy_document())[0])
    jim = document.find_user("u2")

    assert jim.strikes == []
    assert jim.is_permanently_banned is False
    assert jim.notification_settings.mentions is True
    assert jim.following_ids == ["u1"]


def test_migrations_do_not_mutate_their_input() -> None:
    legacy = _legacy_document()
    original = copy.deepcopy(legacy)

    migrate_v1_to_v2(migrate_v0_to_v1(legacy))

    assert legacy == original


def test_current_document_is_left_untouched() -> None:
    migrated, _ = migrate(_legacy_document())

    again, applied = migrate(copy.deepcopy(migrated))

    assert applied == []
    assert again == migrated


def test_newer_schema_version_is_rejected() -> None:
    with pytest.raises(MigrationError, match="newer than supported"):
        migrate({"schemaVersion": CURRENT_SCHEMA_VERSION + 1})


@pytest.mark.parametrize("payload", [[], "document", None])
def test_non_object_documents_are_rejected(payload) -> None:
    with pytest.raises(MigrationError):
        migrate(payload)


def test_join_date_is_backfilled_from_earliest_activity() -> None:
    legacy = {
        "users": [
            {"id": "u7", "name": "Kevin Malone", "handle": "@kev", "email": "kevin@example.com"},
            {"id": "u8", "name": "Creed Bratton", "handle": "@creed", "email": "creed@example.com"},
        ],
        "lists": [
            {
                "id": "l_1600000000000",
                "creatorId": "u7",
                "creatorName": "Kevin Malone",
                "title": "Chili Nights",
                "reactions": [
                    {"id": "re1", "userId": "u7", "emoji": "🌶️", "timestamp": 1_650_000_000_000}
                ],
                "comments": [
                    {
                        "id": "c1",
                        "userId": "u8",
                        "userName": "Creed Bratton",
                        "text": "Nice",
                        "timestamp": 1_650_000_000_000,
                        "replies": [
                            {
                                "id": "c2",
                                "userId": "u7",
                                "userName": "Kevin Malone",
                                "text": "Thanks",
                                "timestamp": 1_550_000_000_000,
                            }
                        ],
                    }
                ],
            }
        ],
    }

    document = Document.model_validate(migrate(legacy)[0])

    assert document.find_user("u7").joined_at == 1_550_000_000_000
    assert document.find_user("u8").joined_at == 1_650_000_000_000


def test_user_without_activity_keeps_unknown_join_date() -> None:
    legacy = {"users": [{"id": "x1", "name": "Old", "handle": "@old", "email": "o@x.io"}]}

    document = Document.model_validate(migrate(legacy)[0])

    assert document.find_user("x1").joined_at == 0


def test_legacy_watch_history_is_deduplicated_in_order() -> None:
    legacy = _legacy_document()
    legacy["lists"][1]["items"][0]["watchedHistory"] = ["S2E2", "S2E1", "S2E2", "S2E3", "S2E1"]

    document = Document.model_validate(migrate(legacy)[0])

    progress = document.find_list("l_1700000000000").items[0].tracking["u2"]
    assert progress.watched_history == ["S2E2", "S2E1", "S2E3"]
