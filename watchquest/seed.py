"""Local seed catalog and the demo document created on first run."""

from __future__ import annotations

from .models import (
    Badge,
    BadgeType,
    Document,
    Episode,
    ListCategory,
    ListItem,
    Media,
    MediaList,
    MediaType,
    MovieProgress,
    PrivacyLevel,
    Reaction,
    Season,
    User,
    UserRole,
    WatchStatus,
)
from .official_badges import OFFICIAL_BADGES
from .utils import DAY_MS


def _poster(text: str, colour: str) -> str:
    return f"https://placehold.co/300x450/{colour}/FFFFFF/png?text={text}"


def _avatar(name: str, colour: str) -> str:
    return f"https://ui-avatars.com/api/?name={name}&background={colour}&color=fff"


LOCAL_CATALOG: tuple[Media, ...] = (
    Media(
        id="m1",
        title="Threat Level Midnight",
        year=2011,
        duration="120 min",
        rating=10.0,
        poster=_poster("Threat+Level+Midnight", "000000"),
        synopsis=(
            "After secret agent Michael Scarn is forced into retirement, he is "
            "brought back to prevent Goldenface from blowing up the All-Star Game."
        ),
        available_on=["YouTube"],
    ),
    Media(
        id="m2",
        title="Die Hard",
        year=1988,
        duration="132 min",
        rating=8.2,
        poster=_poster("Die+Hard", "7f1d1d"),
        synopsis=(
            "An NYPD officer tries to save his wife and several others taken "
            "hostage during a Christmas party."
        ),
        available_on=["HBO Max"],
    ),
    Media(
        id="m3",
        title="The Devil Wears Prada",
        year=2006,
        duration="109 min",
        rating=6.9,
        poster=_poster("Devil+Wears+Prada", "be185d"),
        synopsis="A new graduate lands a job assisting a demanding magazine editor.",
        available_on=["Disney+", "Hulu"],
    ),
    Media(
        id="m4",
        title="Million Dollar Baby",
        year=2004,
        duration="132 min",
        rating=8.1,
        poster=_poster("Million+Dollar+Baby", "1e293b"),
        synopsis="A determined woman works with a hardened boxing trainer.",
        available_on=["Netflix"],
    ),
    Media(
        id="m5",
        title="Varsity Blues",
        year=1999,
        duration="106 min",
        rating=6.5,
        poster=_poster("Varsity+Blues", "1d4ed8"),
        synopsis="A backup quarterback is chosen to lead a Texas football team.",
        available_on=["Prime Video"],
    ),
    Media(
        id="m6",
        title="Weekend at Bernie's",
        year=1989,
        duration="97 min",
        rating=6.4,
        poster=_poster("Weekend+at+Bernies", "f59e0b"),
        synopsis="Two losers try to pretend that their murdered employer is alive.",
        available_on=["HBO Max"],
    ),
    Media(
        id="s1",
        title="Scranton Strangler Files",
        year=2009,
        duration="2 Seasons",
        rating=7.4,
        poster=_poster("Scranton+Strangler", "374151"),
        synopsis="A true-crime series revisiting the case that gripped Scranton.",
        available_on=["Peacock"],
        type=MediaType.SERIES,
        total_seasons=2,
        seasons_data=[
            Season(
                season_number=1,
                episodes_count=6,
                episodes=[Episode(episode_number=number) for number in range(1, 7)],
            ),
            Season(
                season_number=2,
                episodes_count=8,
                episodes=[Episode(episode_number=number) for number in range(1, 9)],
            ),
        ],
    ),
)


def local_media(media_id: str) -> Media:
    """Return a fresh copy of a local catalog entry."""

    for media in LOCAL_CATALOG:
        if media.id == media_id:
            return media.model_copy(deep=True)
    raise KeyError(media_id)


def official_badge_registry() -> list[Badge]:
    return [Badge.model_validate(badge.as_payload()) for badge in OFFICIAL_BADGES]


def _demo_users(now: int) -> list[User]:
    people = [
        ("u1", "Michael Scott", "@worlds_best_boss", "michael.scott@dundermifflin.com",
         "123", UserRole.USER, "000", ["u2", "u3", "u4"], 365 * 10),
        ("admin1", "Dwight Schrute", "@beet_king", "dwight@badgepatch.com",
         "admin", UserRole.ADMIN, "d97706", [], 400),
        ("u2", "Jim Halpert", "@big_tuna", "jim@dundermifflin.com",
         "123", UserRole.USER, "3b82f6", ["u1", "u3"], 60),
        ("u3", "Pam Beesly", "@pamcasso", "pam@dundermifflin.com",
         "123", UserRole.USER, "ec4899", ["u2"], 0),
        ("u4", "Ryan Howard", "@wunderkind", "ryan@dundermifflin.com",
         "123", UserRole.USER, "6366f1", [], 0),
        ("u5", "Kelly Kapoor", "@kelly_kapoor", "kelly@dundermifflin.com",
         "123", UserRole.USER, "f472b6", ["u4"], 0),
        ("u9", "Angela Martin", "@sprinkles_mom", "angela@dundermifflin.com",
         "123", UserRole.USER, "fcd34d", ["admin1"], 0),
    ]
    users = [
        User(
            id=user_id,
            name=name,
            handle=handle,
            email=email,
            password=password,
            role=role,
            avatar=_avatar(name.replace(" ", "+"), colour),
            following_ids=list(following),
            joined_at=now - days * DAY_MS,
        )
        for user_id, name, handle, email, password, role, colour, following, days in people
    ]
    # Counters are derived from the relation so the demo data starts consistent.
    for user in users:
        user.following = len(user.following_ids)
        user.followers = sum(1 for other in users if user.id in other.following_ids)

    michael = users[0]
    michael.followed_list_ids = ["l1"]
    michael.bio = "Regional Manager. Philanthropist. Screenwriter. Improv Student."
    michael.badges.append(
        Badge(
            id="b1",
            name="World's Best Boss",
            description="Bought the mug himself.",
            icon="fa-mug-hot",
            type=BadgeType.OFFICIAL,
            earned_date="2005-03-24",
        )
    )
    return users


def _movie_item(media_id: str, tracker: str, status: WatchStatus, minutes: int) -> ListItem:
    return ListItem(
        media=local_media(media_id),
        tracking={tracker: MovieProgress(status=status, progress_minutes=minutes)},
    )


def build_seed_document(now: int) -> Document:
    """Return the demo document written on first run."""

    users = _demo_users(now)
    by_id = {user.id: user for user in users}

    def creator(user_id: str) -> dict[str, str]:
        user = by_id[user_id]
        return {
            "creator_id": user.id,
            "creator_name": user.name,
            "creator_avatar": user.avatar,
        }

    lists = [
        MediaList(
            id="l1",
            **creator("u1"),
            title="Michael's Screenplays",
            description="The greatest stories ever told. Better than Shakespeare.",
            category=ListCategory.ART_DIRECTOR,
            privacy=PrivacyLevel.PUBLIC,
            badge_reward=Badge(
                id="b_scarn",
                name="Agent Scarn",
                description="Completed Michael's masterpiece.",
                icon="fa-gun",
                type=BadgeType.COMMUNITY,
                related_list_id="l1",
            ),
            items=[
                _movie_item("m1", "u1", WatchStatus.WATCHED, 120),
                _movie_item("m2", "u1", WatchStatus.WATCHING, 45),
            ],
            reactions=[
                Reaction(id="r1", user_id="admin1", emoji="🔥", timestamp=now),
                Reaction(id="r2", user_id="u2", emoji="😂", timestamp=now - 100_000),
            ],
            created_at=now - 3 * DAY_MS,
        ),
        MediaList(
            id="l2",
            **creator("admin1"),
            title="Schrute Approved Films",
            description="Movies that teach survival, authority, and bear safety.",
            category=ListCategory.GENERAL,
            privacy=PrivacyLevel.PUBLIC,
            badge_reward=Badge(
                id="b_beets",
                name="Beet Master",
                description="You have learned the way of the Schrute.",
                icon="fa-leaf",
                type=BadgeType.COMMUNITY,
                related_list_id="l2",
            ),
            items=[_movie_item("m6", "admin1", WatchStatus.WATCHED, 97)],
            reactions=[Reaction(id="r3", user_id="u9", emoji="❤️", timestamp=now)],
            created_at=now - 2 * DAY_MS,
        ),
        MediaList(
            id="l3",
            **creator("u5"),
            title="Movies Ryan Hates",
            description="We are going to watch these and he is going to like it.",
            category=ListCategory.GENRE,
            privacy=PrivacyLevel.FOLLOWERS,
            items=[_movie_item("m3", "u5", WatchStatus.WATCHED, 109)],
            reactions=[Reaction(id="r4", user_id="u3", emoji="👏", timestamp=now)],
            created_at=now - DAY_MS,
        ),
    ]

    return Document(
        users=users,
        lists=lists,
        global_badges=official_badge_registry(),
    )


def build_empty_document() -> Document:
    return Document(global_badges=official_badge_registry())
