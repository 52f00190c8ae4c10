"""
Riddle engine core logic for the Egyptian History Riddle Bot.
Handles option ordering, scoring, hint selection, ranks and the answer cooldown.
"""
import asyncio
import inspect
import logging
import random
import time
from typing import Any, Callable, Optional, Sequence, Tuple

from .models import Rank, Riddle

# Set up logger for cooldown operations
logger = logging.getLogger(__name__)

MAX_REWARD = 10
MIN_REWARD = 2
ATTEMPT_PENALTY = 3

EXPERT_THRESHOLD = 100
RESEARCHER_THRESHOLD = 50


class TimerLifecycleLogger:
    """Structured logging for cooldown timer lifecycle events."""

    @staticmethod
    def log_timer_created(channel_id: str, delay: float) -> None:
        """Log cooldown creation."""
        logger.debug(
            f"Cooldown lifecycle: CREATED - Channel {channel_id}, Delay {delay:.2f}s",
            extra={
                'event_type': 'cooldown_created',
                'channel_id': channel_id,
                'delay': delay,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_completion(channel_id: str, completion_type: str, delay: float) -> None:
        """Log cooldown completion (natural expiry or cancellation)."""
        logger.debug(
            f"Cooldown lifecycle: COMPLETED - Channel {channel_id}, Type {completion_type}, Delay {delay:.2f}s",
            extra={
                'event_type': 'cooldown_completed',
                'channel_id': channel_id,
                'completion_type': completion_type,
                'delay': delay,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(channel_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log cooldown state transitions."""
        logger.debug(
            f"Cooldown lifecycle: STATE_TRANSITION - Channel {channel_id}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'cooldown_state_transition',
                'channel_id': channel_id,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(channel_id: str, error_type: str, error_message: str, operation: str) -> None:
        """Log cooldown errors with context."""
        logger.error(
            f"Cooldown lifecycle: ERROR - Channel {channel_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'cooldown_error',
                'channel_id': channel_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class CooldownTimer:
    """Single-shot cancellable delay used after an incorrect answer."""

    def __init__(self, channel_id: str = None):
        """Initialize the timer."""
        self._task: Optional[asyncio.Task] = None
        self._is_cancelled = False
        self._channel_id = channel_id
        self._delay = 0.0

    def start(self, delay: float, completion_callback: Callable[[], Any]) -> asyncio.Task:
        """
        Schedule completion_callback to run after delay seconds.

        Any cooldown still pending is cancelled first. Must be called from
        within a running event loop.

        Args:
            delay: Delay in seconds
            completion_callback: Called (and awaited if it returns an awaitable)
                when the delay expires without cancellation

        Returns:
            The asyncio task running the cooldown
        """
        if self.is_active:
            self.cancel()

        self._is_cancelled = False
        self._delay = delay
        TimerLifecycleLogger.log_timer_created(self._channel_id, delay)
        self._task = asyncio.create_task(self._run(delay, completion_callback))
        return self._task

    async def _run(self, delay: float, completion_callback: Callable[[], Any]) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._channel_id, "asyncio_cancelled", delay)
            raise

        if self._is_cancelled:
            TimerLifecycleLogger.log_timer_completion(self._channel_id, "cancelled", delay)
            return

        TimerLifecycleLogger.log_timer_completion(self._channel_id, "natural_expiry", delay)
        try:
            result = completion_callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._channel_id,
                "completion_callback_error",
                str(e),
                "cooldown_completion"
            )

    def cancel(self) -> bool:
        """
        Cancel the pending cooldown.

        Returns:
            True if a pending cooldown was cancelled, False if none was active
        """
        if not self.is_active:
            return False

        TimerLifecycleLogger.log_timer_state_transition(
            self._channel_id,
            "waiting",
            "cancelled",
            "cancel requested"
        )
        self._is_cancelled = True
        # A task cannot cancel itself mid-callback; the flag is enough there.
        if self._task is not asyncio.current_task():
            self._task.cancel()
        return True

    @property
    def is_active(self) -> bool:
        """Check if a cooldown is pending."""
        return self._task is not None and not self._task.done() and not self._is_cancelled

    @property
    def is_cancelled(self) -> bool:
        """Check if the last cooldown was cancelled."""
        return self._is_cancelled


class RiddleEngine:
    """Pure game rules: option ordering, rewards, hints and ranks."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the riddle engine.

        Args:
            rng: Optional random generator, seeded generators give repeatable shuffles
        """
        self._rng = rng or random.Random()

    def shuffle_options(self, options: Sequence[str]) -> Tuple[str, ...]:
        """
        Shuffle options so the answer position is not predictable.

        Args:
            options: Options to shuffle

        Returns:
            New tuple with options in random order
        """
        shuffled = list(options)
        self._rng.shuffle(shuffled)
        return tuple(shuffled)

    def calculate_reward(self, attempts: int) -> int:
        """
        Points awarded for a correct answer after a number of wrong attempts.

        Each wrong attempt costs 3 points off the maximum of 10, never going
        below 2.
        """
        return max(MIN_REWARD, MAX_REWARD - attempts * ATTEMPT_PENALTY)

    def hint_index(self, attempts: int) -> Optional[int]:
        """
        Index of the hint to show for the number of wrong attempts made.

        Returns:
            None before the first wrong attempt, otherwise an index capped at
            the last hint
        """
        if attempts < 1:
            return None
        return min(attempts - 1, 2)

    def select_hint(self, riddle: Riddle, attempts: int) -> Optional[str]:
        """Hint text for the given number of wrong attempts, if any."""
        index = self.hint_index(attempts)
        if index is None or not riddle.hints:
            return None
        return riddle.hints[min(index, len(riddle.hints) - 1)]

    def rank_for_score(self, score: int) -> Rank:
        """Derive the player's rank, thresholds checked highest first."""
        if score >= EXPERT_THRESHOLD:
            return Rank.EXPERT
        if score >= RESEARCHER_THRESHOLD:
            return Rank.RESEARCHER
        return Rank.BEGINNER
