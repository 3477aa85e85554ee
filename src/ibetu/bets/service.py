"""Bet lifecycle service.

Every state change is a conditional UPDATE that also re-checks ownership and
the expected status, so a repeated or concurrent call no-ops with the same
"not found or already processed" signal instead of moving the bet twice.
Resolution (status, outcome and both users' counters) commits as one
transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ibetu.achievements.engine import AchievementContext, check_and_award_achievements
from ibetu.auth.service import get_user_by_id
from ibetu.bets.lifecycle import (
    ACTIVE,
    COMPLETED,
    DECLINED,
    DISPUTED,
    EXPIRED,
    OUTCOME_DISPUTED,
    PENDING,
    STORED_STATUSES,
    VERIFICATION_METHODS,
    VOTING_STATUSES,
    both_approved,
    other_party,
    outcome_for,
    validate_transition,
    votes_agree,
)
from ibetu.bets.notifier import BetNotifier
from ibetu.db.models import Bet, User
from ibetu.errors import AuthorizationError, NotFoundError, ValidationError
from ibetu.friends.service import are_friends

logger = structlog.get_logger()

BET_NOT_FOUND = "Bet not found or already processed"
BET_NOT_ACTIVE = "Bet not found or not active"


def _involving(user_id: str):
    return or_(Bet.creator_id == user_id, Bet.opponent_id == user_id)


async def _reload(db: AsyncSession, bet_id: int) -> Bet:
    bet = await db.get(Bet, bet_id, populate_existing=True)
    if bet is None:
        raise NotFoundError(BET_NOT_FOUND)
    return bet


# ---------------------------------------------------------------------------
# Creation and pending-state transitions
# ---------------------------------------------------------------------------


async def create_bet(
    db: AsyncSession,
    creator: User,
    opponent_id: str,
    title: str,
    description: str,
    amount: Decimal,
    deadline: datetime,
    verification_method: str = "mutual_agreement",
    notifier: BetNotifier | None = None,
) -> Bet:
    """Create a pending bet against an accepted friend and email the invitation."""
    if opponent_id == creator.id:
        raise ValidationError("Cannot bet against yourself")
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    if verification_method not in VERIFICATION_METHODS:
        raise ValidationError(f"verification_method must be one of {', '.join(VERIFICATION_METHODS)}")
    if not await are_friends(db, creator.id, opponent_id):
        raise AuthorizationError("You can only bet with friends")

    now = datetime.now(timezone.utc)
    bet = Bet(
        title=title,
        description=description,
        amount=amount,
        creator_id=creator.id,
        opponent_id=opponent_id,
        status=PENDING,
        verification_method=verification_method,
        deadline=deadline,
        created_at=now,
        updated_at=now,
    )
    db.add(bet)
    await db.commit()
    logger.info("bet_created", bet_id=bet.id, creator_id=creator.id, opponent_id=opponent_id)

    if notifier is not None:
        opponent = await get_user_by_id(db, opponent_id)
        if opponent is not None:
            notifier.bet_invitation(bet, creator, opponent)
    return bet


async def _transition_pending(
    db: AsyncSession,
    bet_id: int,
    owner_clause: Any,
    target: str,
    **values: Any,
) -> Bet:
    """Move a pending bet owned per ``owner_clause`` to ``target``."""
    validate_transition(PENDING, target)
    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(Bet)
        .where(Bet.id == bet_id, owner_clause, Bet.status == PENDING)
        .values(status=target, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError(BET_NOT_FOUND)
    await db.commit()
    logger.info("bet_transition", bet_id=bet_id, status=target)
    return await _reload(db, bet_id)


async def accept_bet(
    db: AsyncSession, bet_id: int, user: User, notifier: BetNotifier | None = None,
) -> Bet:
    """Opponent accepts a pending bet. The deadline is not checked."""
    bet = await _transition_pending(
        db, bet_id, Bet.opponent_id == user.id, ACTIVE, accepted_at=datetime.now(timezone.utc),
    )
    if notifier is not None:
        creator = await get_user_by_id(db, bet.creator_id)
        if creator is not None:
            notifier.bet_accepted(bet, creator, user)
    return bet


async def decline_bet(db: AsyncSession, bet_id: int, user: User) -> Bet:
    """Opponent declines a pending bet."""
    return await _transition_pending(db, bet_id, Bet.opponent_id == user.id, DECLINED)


async def cancel_bet(db: AsyncSession, bet_id: int, user: User) -> Bet:
    """Creator withdraws a bet that has not been accepted yet."""
    return await _transition_pending(db, bet_id, Bet.creator_id == user.id, EXPIRED)


# ---------------------------------------------------------------------------
# Approval, disputes and resolution
# ---------------------------------------------------------------------------


async def resolve_bet(db: AsyncSession, bet: Bet, winner_id: str) -> bool:
    """Complete ``bet`` with ``winner_id`` and bump both users' counters.

    The status update only matches while the bet is still open for voting, so
    concurrent resolvers complete it at most once. Returns False when another
    call got there first. Commits the caller's pending changes together with
    the resolution.
    """
    validate_transition(bet.status, COMPLETED)
    loser_id = other_party(bet, winner_id)
    now = datetime.now(timezone.utc)

    result = await db.execute(
        update(Bet)
        .where(Bet.id == bet.id, Bet.status.in_(VOTING_STATUSES))
        .values(
            status=COMPLETED,
            outcome=outcome_for(bet, winner_id),
            winner_id=winner_id,
            resolved_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        return False

    await db.execute(
        update(User)
        .where(User.id == winner_id)
        .values(total_bets=User.total_bets + 1, bets_won=User.bets_won + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(User)
        .where(User.id == loser_id)
        .values(total_bets=User.total_bets + 1, bets_lost=User.bets_lost + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("bet_resolved", bet_id=bet.id, winner_id=winner_id, loser_id=loser_id)
    return True


async def _mark_disputed(db: AsyncSession, bet: Bet) -> None:
    """Both sides approved different winners: clear the result and reopen voting."""
    if bet.status != DISPUTED:
        validate_transition(bet.status, DISPUTED)
    await db.execute(
        update(Bet)
        .where(Bet.id == bet.id, Bet.status.in_(VOTING_STATUSES))
        .values(
            status=DISPUTED,
            outcome=OUTCOME_DISPUTED,
            winner_id=None,
            creator_approved=False,
            opponent_approved=False,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info(
        "bet_disputed",
        bet_id=bet.id,
        creator_vote=bet.creator_winner_id,
        opponent_vote=bet.opponent_winner_id,
    )


async def _run_achievements(db: AsyncSession, bet: Bet) -> dict[str, list[str]]:
    """Evaluate both parties after a resolution. Failures are logged only."""
    winner_id = bet.winner_id
    loser_id = other_party(bet, winner_id)
    contexts = {
        winner_id: AchievementContext(just_won=True, bet_amount=bet.amount, opponent_id=loser_id),
        loser_id: AchievementContext(just_won=False),
    }
    unlocked: dict[str, list[str]] = {}
    for user_id, context in contexts.items():
        try:
            unlocked[user_id] = await check_and_award_achievements(db, user_id, context)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("achievement_check_failed", bet_id=bet.id, user_id=user_id)
            unlocked[user_id] = []
    return unlocked


async def approve_bet_result(
    db: AsyncSession,
    bet_id: int,
    user: User,
    winner_id: str,
    notifier: BetNotifier | None = None,
) -> tuple[Bet, list[str]]:
    """Record the caller's vote for ``winner_id``.

    Returns the bet and the achievement ids newly unlocked for the caller
    (non-empty only when this vote resolved the bet).
    """
    caller_id = user.id
    result = await db.execute(
        select(Bet).where(
            Bet.id == bet_id,
            _involving(caller_id),
            Bet.status.in_(VOTING_STATUSES),
        ).execution_options(populate_existing=True)
    )
    bet = result.scalar_one_or_none()
    if bet is None:
        raise NotFoundError(BET_NOT_ACTIVE)
    if winner_id not in (bet.creator_id, bet.opponent_id):
        raise ValidationError("Invalid winner")

    if caller_id == bet.creator_id:
        vote = {"creator_approved": True, "creator_winner_id": winner_id}
    else:
        vote = {"opponent_approved": True, "opponent_winner_id": winner_id}

    result = await db.execute(
        update(Bet)
        .where(Bet.id == bet_id, Bet.status.in_(VOTING_STATUSES))
        .values(winner_id=winner_id, updated_at=datetime.now(timezone.utc), **vote)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError(BET_NOT_ACTIVE)
    bet = await _reload(db, bet_id)

    if not both_approved(bet):
        await db.commit()
        logger.info("bet_vote_recorded", bet_id=bet_id, user_id=caller_id, winner_id=winner_id)
        if notifier is not None:
            await _notify_other_party(db, notifier, bet, user, winner_id)
        return bet, []

    if not votes_agree(bet):
        await _mark_disputed(db, bet)
        return await _reload(db, bet_id), []

    resolved = await resolve_bet(db, bet, winner_id)
    bet = await _reload(db, bet_id)
    if not resolved:
        return bet, []

    unlocked = await _run_achievements(db, bet)
    return bet, unlocked.get(caller_id, [])


async def _notify_other_party(
    db: AsyncSession, notifier: BetNotifier, bet: Bet, declarer: User, winner_id: str,
) -> None:
    recipient = await get_user_by_id(db, other_party(bet, declarer.id))
    winner = declarer if winner_id == declarer.id else recipient
    if recipient is not None and winner is not None:
        notifier.winner_confirmation(bet, declarer, recipient, winner)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_user_bets(
    db: AsyncSession,
    user_id: str,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[Bet]:
    """The user's bets as creator or opponent, newest first."""
    if status is not None and status not in STORED_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(STORED_STATUSES)}")
    stmt = select(Bet).where(_involving(user_id))
    if status is not None:
        stmt = stmt.where(Bet.status == status)
    stmt = stmt.order_by(Bet.created_at.desc(), Bet.id.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return result.scalars().all()


async def get_bet(db: AsyncSession, bet_id: int, user_id: str) -> Bet:
    """A bet visible to ``user_id``; non-participants get the generic not-found."""
    result = await db.execute(select(Bet).where(Bet.id == bet_id, _involving(user_id)))
    bet = result.scalar_one_or_none()
    if bet is None:
        raise NotFoundError("Bet not found")
    return bet


async def list_pending_invites(db: AsyncSession, user_id: str) -> Sequence[Bet]:
    """Pending bets waiting on ``user_id`` to accept or decline."""
    result = await db.execute(
        select(Bet)
        .where(Bet.opponent_id == user_id, Bet.status == PENDING)
        .order_by(Bet.created_at.desc(), Bet.id.desc())
    )
    return result.scalars().all()


async def count_active_bets(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Bet).where(_involving(user_id), Bet.status == ACTIVE)
    )
    return result.scalar_one()


async def load_users(db: AsyncSession, user_ids: set[str]) -> dict[str, User]:
    """Users by id, for attaching participant summaries to bet rows."""
    if not user_ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(user_ids)))
    return {u.id: u for u in result.scalars()}


async def get_amounts_owed_summary(db: AsyncSession, user_id: str) -> dict[str, Any]:
    """Totals won and lost over completed bets, plus the net balance per friend.

    A positive friend balance means the friend owes the user. Friends are
    sorted by absolute balance, largest first.
    """
    result = await db.execute(select(Bet).where(_involving(user_id), Bet.status == COMPLETED))
    bets = result.scalars().all()

    total_won = Decimal("0")
    total_lost = Decimal("0")
    balances: dict[str, Decimal] = {}
    for bet in bets:
        friend_id = other_party(bet, user_id)
        amount = Decimal(bet.amount)
        if bet.winner_id == user_id:
            total_won += amount
            balances[friend_id] = balances.get(friend_id, Decimal("0")) + amount
        else:
            total_lost += amount
            balances[friend_id] = balances.get(friend_id, Decimal("0")) - amount

    friends = await load_users(db, set(balances))
    friend_balances = sorted(
        ({"friend": friends.get(fid), "amount": amount} for fid, amount in balances.items()),
        key=lambda item: abs(item["amount"]),
        reverse=True,
    )
    return {
        "total_won": total_won,
        "total_lost": total_lost,
        "net_balance": total_won - total_lost,
        "friend_balances": friend_balances,
    }


async def get_balance_with(db: AsyncSession, user_id: str, friend_id: str) -> Decimal:
    """Net amount ``friend_id`` owes ``user_id`` over their completed bets; negative when the user owes."""
    result = await db.execute(
        select(Bet.amount, Bet.winner_id).where(
            Bet.status == COMPLETED,
            or_(
                and_(Bet.creator_id == user_id, Bet.opponent_id == friend_id),
                and_(Bet.creator_id == friend_id, Bet.opponent_id == user_id),
            ),
        )
    )
    balance = Decimal("0")
    for amount, winner_id in result:
        balance += Decimal(amount) if winner_id == user_id else -Decimal(amount)
    return balance
