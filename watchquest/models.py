"""Pydantic models describing the persisted WatchQuest document."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .migrations import CURRENT_SCHEMA_VERSION


class DocumentModel(BaseModel):
    """Base model serialising field names in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MediaType(str, Enum):
    MOVIE = "Movie"
    SERIES = "Series"
    ANIME = "Anime"
    CARTOON = "Cartoon"


class PrivacyLevel(str, Enum):
    PUBLIC = "public"
    FOLLOWERS = "followers"
    PRIVATE = "private"


class WatchStatus(str, Enum):
    UNWATCHED = "Unwatched"
    WATCHING = "Watching"
    WATCHED = "Watched"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class BadgeType(str, Enum):
    OFFICIAL = "official"
    COMMUNITY = "community"


class ListCategory(str, Enum):
    GENERAL = "General"
    GENRE = "Genre Based"
    ART_DIRECTOR = "Art Director Focus"
    ACTOR_FOCUS = "Actor Focus"
    CHALLENGE = "Challenge"


class ReportReason(str, Enum):
    INAPPROPRIATE_CONTENT = "INAPPROPRIATE_CONTENT"
    INCORRECT_INFO = "INCORRECT_INFO"
    SPAM = "SPAM"
    OTHER = "OTHER"


NotificationType = Literal[
    "like",
    "comment",
    "reply",
    "follow",
    "mention",
    "admin_response",
    "strike_alert",
    "achievement",
]


class Episode(DocumentModel):
    episode_number: int
    title: str | None = None
    rating: float | None = None


class Season(DocumentModel):
    """A season entry; ``episodes_count`` stays 0 until the season is resolved."""

    season_number: int
    episodes_count: int = 0
    episodes: list[Episode] | None = None

    @property
    def is_resolved(self) -> bool:
        return self.episodes_count > 0 and bool(self.episodes)


class Media(DocumentModel):
    """A movie or an episodic title."""

    id: str
    title: str
    year: int | None = None
    duration: str = ""
    rating: float = 0.0
    poster: str = ""
    synopsis: str = ""
    available_on: list[str] = Field(default_factory=list)
    type: MediaType = MediaType.MOVIE
    total_seasons: int | None = None
    seasons_data: list[Season] | None = None

    @property
    def is_episodic(self) -> bool:
        return self.type is not MediaType.MOVIE

    def season(self, season_number: int) -> Season | None:
        for season in self.seasons_data or []:
            if season.season_number == season_number:
                return season
        return None


class MovieProgress(DocumentModel):
    """Minute-based tracking for a movie."""

    kind: Literal["movie"] = "movie"
    status: WatchStatus = WatchStatus.UNWATCHED
    progress_minutes: int = 0

    @model_validator(mode="after")
    def _unwatched_has_no_minutes(self) -> "MovieProgress":
        if self.status is WatchStatus.UNWATCHED and self.progress_minutes:
            self.progress_minutes = 0
        return self


class SeriesProgress(DocumentModel):
    """Episode-based tracking; ``watched_history`` is the source of truth."""

    kind: Literal["series"] = "series"
    status: WatchStatus = WatchStatus.UNWATCHED
    current_season: int = 1
    current_episode: int = 0
    watched_history: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unwatched_has_no_history(self) -> "SeriesProgress":
        if self.status is WatchStatus.UNWATCHED and self.watched_history:
            self.watched_history = []
        return self


ItemProgress = Annotated[MovieProgress | SeriesProgress, Field(discriminator="kind")]


class ListItem(DocumentModel):
    """One media entry of a list with independent progress for each tracking user."""

    media: Media
    tracking: dict[str, ItemProgress] = Field(default_factory=dict)


class Reaction(DocumentModel):
    id: str
    user_id: str
    emoji: str
    timestamp: int


class Comment(DocumentModel):
    id: str
    user_id: str
    user_name: str
    user_avatar: str = ""
    text: str
    timestamp: int
    replies: list["Comment"] = Field(default_factory=list)


class Badge(DocumentModel):
    id: str
    name: str
    description: str = ""
    icon: str = ""
    type: BadgeType = BadgeType.OFFICIAL
    earned_date: str | None = None
    related_list_id: str | None = None


class MediaList(DocumentModel):
    id: str
    creator_id: str
    creator_name: str
    creator_avatar: str = ""
    title: str
    description: str = ""
    category: ListCategory = ListCategory.GENERAL
    privacy: PrivacyLevel = PrivacyLevel.PUBLIC
    items: list[ListItem] = Field(default_factory=list)
    reactions: list[Reaction] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    badge_reward: Badge | None = None
    created_at: int = 0

    def find_item(self, media_id: str) -> ListItem | None:
        for item in self.items:
            if item.media.id == media_id:
                return item
        return None


class NotificationSettings(DocumentModel):
    likes: bool = True
    comments: bool = True
    follows: bool = True
    mentions: bool = True


class Strike(DocumentModel):
    id: str
    reason: str
    timestamp: int
    expires_at: int
    issued_by_admin_id: str


class User(DocumentModel):
    id: str
    name: str
    handle: str
    email: str
    password: str | None = None
    role: UserRole = UserRole.USER
    avatar: str = ""
    cover_image: str | None = None
    bio: str = ""
    country: str = ""
    privacy: PrivacyLevel = PrivacyLevel.PUBLIC
    followers: int = 0
    following: int = 0
    following_ids: list[str] = Field(default_factory=list)
    followed_list_ids: list[str] = Field(default_factory=list)
    joined_at: int = 0
    badges: list[Badge] = Field(default_factory=list)
    notification_settings: NotificationSettings = Field(
        default_factory=NotificationSettings
    )
    strikes: list[Strike] = Field(default_factory=list)
    is_permanently_banned: bool = False
    ban_reason: str | None = None
    hidden_patch_ids: list[str] = Field(default_factory=list)
    hidden_badge_ids: list[str] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    def has_badge(self, badge_id: str) -> bool:
        return any(badge.id == badge_id for badge in self.badges)


class Report(DocumentModel):
    id: str
    reporter_id: str
    reporter_name: str
    target_id: str
    target_type: Literal["list", "user"]
    reason: str
    details: str = ""
    timestamp: int
    status: Literal["pending", "resolved"] = "pending"
    admin_response: str | None = None
    responded_at: int | None = None


class Notification(DocumentModel):
    id: str
    user_id: str
    type: NotificationType
    actor_id: str
    actor_name: str
    actor_avatar: str = ""
    target_id: str | None = None
    target_preview: str | None = None
    is_read: bool = False
    timestamp: int


class AdminLog(DocumentModel):
    id: str
    action_type: str
    admin_id: str
    admin_name: str
    target_user_id: str
    timestamp: int


class BannedEmail(DocumentModel):
    email: str
    banned_at: int
    reason: str


class Document(DocumentModel):
    """The single persisted root record."""

    schema_version: int = CURRENT_SCHEMA_VERSION
    users: list[User] = Field(default_factory=list)
    lists: list[MediaList] = Field(default_factory=list)
    reports: list[Report] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
    admin_logs: list[AdminLog] = Field(default_factory=list)
    blacklist: list[BannedEmail] = Field(default_factory=list)
    global_badges: list[Badge] = Field(default_factory=list)

    def find_user(self, user_id: str | None) -> User | None:
        if user_id is None:
            return None
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def find_list(self, list_id: str) -> MediaList | None:
        for media_list in self.lists:
            if media_list.id == list_id:
                return media_list
        return None

    def to_json(self) -> str:
        """Serialize the whole document to its canonical JSON form."""

        return self.model_dump_json(by_alias=True, exclude_none=True)
