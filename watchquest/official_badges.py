"""Official badge registry and the achievement rules that unlock it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

StatisticKey = Literal[
    "lists_created",
    "items_added",
    "lists_reacted",
    "followers",
    "days_joined",
]


@dataclass(frozen=True)
class BadgeDefinition:
    """Describes a system badge stored in the global registry."""

    id: str
    name: str
    description: str
    icon: str

    def as_payload(self) -> dict[str, str]:
        """Return the camelCase document payload for the registry entry."""

        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "type": "official",
        }


@dataclass(frozen=True)
class AchievementRule:
    """Grants ``badge_id`` once ``statistic`` reaches ``threshold``."""

    badge_id: str
    statistic: StatisticKey
    threshold: int


OFFICIAL_BADGES: tuple[BadgeDefinition, ...] = (
    BadgeDefinition(
        id="ach_creator_1",
        name="Novice Creator",
        description="Created your first list. Welcome to the club!",
        icon="fa-plus-circle",
    ),
    BadgeDefinition(
        id="ach_creator_5",
        name="Master Curator",
        description="Created 5 lists. You have an eye for quality.",
        icon="fa-layer-group",
    ),
    BadgeDefinition(
        id="ach_lib_10",
        name="Library Builder",
        description="Added 10 titles to your lists.",
        icon="fa-film",
    ),
    BadgeDefinition(
        id="ach_social_5",
        name="Social Fan",
        description="Reacted to 5 different lists. Spread the love!",
        icon="fa-heart",
    ),
    BadgeDefinition(
        id="ach_inf_10",
        name="Influencer",
        description="Reached 10 followers. People are watching!",
        icon="fa-star",
    ),
    BadgeDefinition(
        id="ach_vet_1y",
        name="Veteran",
        description="Member for over 1 year. Thank you for staying.",
        icon="fa-medal",
    ),
)

ACHIEVEMENT_RULES: tuple[AchievementRule, ...] = (
    AchievementRule(badge_id="ach_creator_1", statistic="lists_created", threshold=1),
    AchievementRule(badge_id="ach_creator_5", statistic="lists_created", threshold=5),
    AchievementRule(badge_id="ach_lib_10", statistic="items_added", threshold=10),
    AchievementRule(badge_id="ach_social_5", statistic="lists_reacted", threshold=5),
    AchievementRule(badge_id="ach_inf_10", statistic="followers", threshold=10),
    AchievementRule(badge_id="ach_vet_1y", statistic="days_joined", threshold=365),
)
