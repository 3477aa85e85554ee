"""Achievement catalog.

Code-defined and immutable at runtime; the same list is served to clients.
Unlocks reference entries by ``id``.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

CATEGORIES = ("milestone", "streak", "social", "special")
RARITIES = ("common", "uncommon", "rare", "epic", "legendary")


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    icon: str
    category: str
    rarity: str


@dataclass(frozen=True)
class MilestoneThreshold:
    count: int
    id: str


TOTAL_BETS_THRESHOLDS: tuple[MilestoneThreshold, ...] = (
    MilestoneThreshold(1, "first_bet"),
    MilestoneThreshold(25, "bets_25"),
    MilestoneThreshold(75, "bets_75"),
    MilestoneThreshold(150, "bets_150"),
)

WINS_THRESHOLDS: tuple[MilestoneThreshold, ...] = (
    MilestoneThreshold(5, "wins_5"),
    MilestoneThreshold(10, "wins_10"),
    MilestoneThreshold(25, "wins_25"),
    MilestoneThreshold(50, "wins_50"),
    MilestoneThreshold(100, "wins_100"),
)

STREAK_THRESHOLDS: tuple[MilestoneThreshold, ...] = (
    MilestoneThreshold(3, "streak_3"),
    MilestoneThreshold(5, "streak_5"),
    MilestoneThreshold(10, "streak_10"),
)

FIRST_FRIEND_BET = "first_friend_bet"
SOCIAL_BREADTH = "bet_5_friends"
HIGH_ROLLER = "high_roller"
COMEBACK = "comeback_kid"
PERFECT_MONTH = "perfect_month"

ACHIEVEMENTS: tuple[Achievement, ...] = (
    # Milestone - total bets
    Achievement("first_bet", "First Steps", "Complete your first bet", "\U0001f3b2", "milestone", "common"),
    Achievement("bets_25", "Active Bettor", "Complete 25 total bets", "\U0001f4ca", "milestone", "common"),
    Achievement("bets_75", "Dedicated Bettor", "Complete 75 total bets", "\U0001f4c8", "milestone", "uncommon"),
    Achievement("bets_150", "Bet Enthusiast", "Complete 150 total bets", "\U0001f525", "milestone", "rare"),
    # Milestone - wins
    Achievement("wins_5", "Getting Started", "Win 5 bets", "\U0001f31f", "milestone", "common"),
    Achievement("wins_10", "Winner", "Win 10 bets", "\U0001f3c6", "milestone", "uncommon"),
    Achievement("wins_25", "Champion", "Win 25 bets", "\U0001f451", "milestone", "rare"),
    Achievement("wins_50", "Legend", "Win 50 bets", "\U0001f396️", "milestone", "epic"),
    Achievement("wins_100", "Betting Master", "Win 100 bets", "\U0001f48e", "milestone", "legendary"),
    # Streak
    Achievement("streak_3", "Hot Streak", "Win 3 bets in a row", "⚡", "streak", "uncommon"),
    Achievement("streak_5", "On Fire", "Win 5 bets in a row", "\U0001f525", "streak", "rare"),
    Achievement("streak_10", "Unstoppable", "Win 10 bets in a row", "\U0001f4ab", "streak", "legendary"),
    # Social
    Achievement(FIRST_FRIEND_BET, "Friendly Wager", "Complete a bet with a friend", "\U0001f91d", "social", "common"),
    Achievement(SOCIAL_BREADTH, "Social Bettor", "Bet with 5 different friends", "\U0001f465", "social", "uncommon"),
    # Special
    Achievement(HIGH_ROLLER, "High Roller", "Win a bet worth $100 or more", "\U0001f4b0", "special", "rare"),
    Achievement(COMEBACK, "Comeback Kid", "Win a bet after losing 3 in a row", "\U0001f985", "special", "rare"),
    Achievement(
        PERFECT_MONTH, "Perfect Month", "Win all bets in a calendar month (min 5)", "\U0001f4c5", "special", "epic",
    ),
)

ACHIEVEMENT_MAP: MappingProxyType[str, Achievement] = MappingProxyType({a.id: a for a in ACHIEVEMENTS})


def get_achievement(achievement_id: str) -> Achievement | None:
    return ACHIEVEMENT_MAP.get(achievement_id)


def rarity_label(rarity: str) -> str:
    """``legendary`` -> ``Legendary``."""
    return rarity[:1].upper() + rarity[1:]


def list_catalog() -> tuple[Achievement, ...]:
    """All achievements in display order."""
    return ACHIEVEMENTS
