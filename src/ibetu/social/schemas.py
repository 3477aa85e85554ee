"""Pydantic response models for leaderboard and social endpoints."""

from __future__ import annotations

from pydantic import BaseModel

from ibetu.bets.schemas import BetResponse
from ibetu.users.schemas import UserSummary


class LeaderboardEntry(BaseModel):
    rank: int
    user: UserSummary
    wins: int
    losses: int
    total_bets: int
    win_rate: int


class UserRankResponse(BaseModel):
    rank: int | None = None
    total_players: int


class HistoryStats(BaseModel):
    total_bets: int
    completed_bets: int
    user_wins: int
    friend_wins: int
    active_bets: int


class BetHistoryResponse(BaseModel):
    bets: list[BetResponse]
    stats: HistoryStats


class ComparedUser(BaseModel):
    user: UserSummary
    total_bets: int
    bets_won: int
    bets_lost: int
    win_rate: int


class HeadToHead(BaseModel):
    total_games: int
    user_wins: int
    friend_wins: int


class FriendComparisonResponse(BaseModel):
    current_user: ComparedUser
    friend: ComparedUser
    head_to_head: HeadToHead


class TopFriendEntry(BaseModel):
    user_id: str
    user: UserSummary | None = None
    total_bets: int
    wins_against: int
