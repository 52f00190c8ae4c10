"""
Game session controller for the Egyptian History Riddle Bot.
Drives one player's riddle session through era selection, riddle fetching,
answer grading and the post-mistake cooldown.
"""
import asyncio
import inspect
import logging
import time
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from .models import Era, Feedback, GameSession, GameSettings, HistoryEntry, Rank, Riddle
from .riddle_engine import CooldownTimer, RiddleEngine
from .riddle_provider import ProviderUnavailable, RiddleProvider, RiddleProviderError, RiddlesExhausted, answers_match

StateListener = Callable[[GameSession], Any]

FETCH_FAILED_MESSAGE = "Could not load the riddle. Please try again."
RIDDLES_EXHAUSTED_MESSAGE = "No new riddles are left for this era."


class GamePhase(Enum):
    """Enumeration of possible game session phases."""
    NO_ERA_SELECTED = "no_era_selected"
    FETCHING_RIDDLE = "fetching_riddle"
    AWAITING_ANSWER = "awaiting_answer"
    GRADING = "grading"
    CORRECT = "correct"
    INCORRECT_COOLDOWN = "incorrect_cooldown"
    IDLE = "idle"


class GameController:
    """
    Owns a single GameSession and applies every state transition to it.

    Provider calls are awaited inline by the action that triggers them. The
    loading flag rejects overlapping actions, and an epoch counter bumped on
    reset() makes any result that arrives for a discarded session a no-op.
    """

    def __init__(
        self,
        provider: RiddleProvider,
        settings: Optional[GameSettings] = None,
        engine: Optional[RiddleEngine] = None,
        channel_id: Optional[int] = None
    ):
        """
        Initialize the game controller.

        Args:
            provider: Backend used to generate riddles and judge answers
            settings: Cooldown and timeout settings, defaults if None
            engine: Game rules, defaults if None
            channel_id: Identifier used in log records
        """
        self.logger = logging.getLogger(__name__)
        self.provider = provider
        self.settings = settings or GameSettings()
        self.engine = engine or RiddleEngine()
        self.channel_id = channel_id

        self._session = GameSession()
        self._epoch = 0
        self._cooldown = CooldownTimer(str(channel_id))
        self._listeners: List[StateListener] = []
        self._listener_tasks: Set[asyncio.Future] = set()

    # State access

    def get_state(self) -> GameSession:
        """
        Get a snapshot of the current session.

        Returns:
            Copy of the session; mutating it does not affect the game
        """
        return replace(
            self._session,
            history=list(self._session.history),
            asked_questions=list(self._session.asked_questions)
        )

    def get_phase(self) -> GamePhase:
        """Derive the current phase from the session flags."""
        session = self._session

        if session.loading:
            return GamePhase.FETCHING_RIDDLE if session.current_riddle is None else GamePhase.GRADING

        if session.current_riddle is None:
            return GamePhase.NO_ERA_SELECTED if session.selected_era is None else GamePhase.IDLE

        if session.feedback is Feedback.CORRECT:
            return GamePhase.CORRECT

        if session.feedback is Feedback.INCORRECT:
            return GamePhase.INCORRECT_COOLDOWN

        return GamePhase.AWAITING_ANSWER

    def current_hint(self) -> Optional[str]:
        """Hint to display, or None while no hint is visible."""
        session = self._session
        if not session.show_hint or session.current_riddle is None or session.feedback is Feedback.CORRECT:
            return None
        return self.engine.select_hint(session.current_riddle, session.attempts)

    def rank(self) -> Rank:
        """Rank for the current score."""
        return self.engine.rank_for_score(self._session.score)

    @property
    def epoch(self) -> int:
        return self._epoch

    def get_session_progress(self) -> Dict[str, Any]:
        """
        Get progress information for the session.

        Returns:
            Dictionary with era, score, rank and riddle counters
        """
        session = self._session
        rank = self.rank()
        return {
            'phase': self.get_phase().value,
            'era': session.selected_era.label if session.selected_era else None,
            'score': session.score,
            'rank': rank.value,
            'rank_title': rank.title,
            'solved': len(session.history),
            'asked': len(session.asked_questions),
            'attempts': session.attempts,
            'last_error': session.last_error
        }

    # Subscriptions

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called with a state snapshot after every change.

        Coroutine listeners are scheduled on the running loop.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.get_state()
        for listener in list(self._listeners):
            try:
                result = listener(snapshot)
            except Exception as e:
                self.logger.error(f"State listener failed for channel {self.channel_id}: {e}", exc_info=True)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._listener_tasks.add(task)
                task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Future) -> None:
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(
                f"State listener failed for channel {self.channel_id}: {task.exception()}",
                exc_info=task.exception()
            )

    def _log_transition(self, event_type: str, message: str, **details: Any) -> None:
        self.logger.info(
            f"{message} (channel {self.channel_id})",
            extra={
                'event_type': event_type,
                'channel_id': self.channel_id,
                'phase': self.get_phase().value,
                'epoch': self._epoch,
                'timestamp': time.time(),
                **details
            }
        )

    # Actions

    async def select_era(self, era: Era) -> bool:
        """
        Choose an era and fetch the first riddle for it.

        Only valid when no riddle is on the table and nothing is loading.

        Returns:
            True if a riddle was loaded, False if the action was ignored or the
            fetch failed
        """
        if self.get_phase() not in (GamePhase.NO_ERA_SELECTED, GamePhase.IDLE):
            self.logger.debug(f"Ignoring era selection in phase {self.get_phase().value} for channel {self.channel_id}")
            return False
        return await self._fetch_riddle(era)

    async def next_riddle(self) -> bool:
        """Fetch another riddle for the same era after a correct answer."""
        if self.get_phase() is not GamePhase.CORRECT:
            self.logger.debug(f"Ignoring next riddle request in phase {self.get_phase().value} for channel {self.channel_id}")
            return False
        return await self._fetch_riddle(self._session.selected_era)

    async def retry(self) -> bool:
        """Fetch again for the kept era after a failed fetch."""
        if self.get_phase() is not GamePhase.IDLE:
            self.logger.debug(f"Ignoring retry in phase {self.get_phase().value} for channel {self.channel_id}")
            return False
        return await self._fetch_riddle(self._session.selected_era)

    async def select_option(self, option: str) -> bool:
        """
        Submit an option for grading.

        A no-op while loading, without a riddle, or once the riddle is solved.

        Returns:
            True if the option was judged correct, False otherwise (including
            when the selection was ignored)
        """
        session = self._session
        if session.current_riddle is None or session.feedback is Feedback.CORRECT or session.loading:
            self.logger.debug(f"Ignoring option selection in phase {self.get_phase().value} for channel {self.channel_id}")
            return False

        riddle = session.current_riddle
        epoch = self._epoch
        self._cooldown.cancel()

        session.selected_option = option
        session.loading = True
        self._notify()

        is_correct = await self._grade(option, riddle)

        if epoch != self._epoch:
            self._log_transition('stale_grading_discarded', "Discarded grading result for a reset session")
            return False

        if is_correct:
            self._apply_correct(session, riddle)
        else:
            self._apply_incorrect(session, epoch)

        self._notify()
        return is_correct

    def reset(self) -> None:
        """Discard the session and return to era selection."""
        self._cooldown.cancel()
        self._epoch += 1
        self._session = GameSession()
        self._log_transition('session_reset', "Session reset")
        self._notify()

    # Transitions

    async def _fetch_riddle(self, era: Era) -> bool:
        session = self._session
        epoch = self._epoch
        self._cooldown.cancel()

        session.selected_era = era
        session.loading = True
        session.feedback = Feedback.NEUTRAL
        session.attempts = 0
        session.show_hint = False
        session.selected_option = None
        session.show_fun_fact = False
        session.current_riddle = None
        session.last_error = None
        self._log_transition('riddle_fetch_started', f"Fetching riddle for era {era.value}", era=era.value)
        self._notify()

        limit = self.settings.max_asked_questions
        asked = session.asked_questions[-limit:] if limit > 0 else []

        riddle = None
        error: Optional[Exception] = None
        try:
            riddle = await asyncio.wait_for(
                self.provider.generate_riddle(era, list(asked)),
                timeout=self.settings.provider_timeout
            )
        except asyncio.TimeoutError:
            error = ProviderUnavailable(f"Riddle generation timed out after {self.settings.provider_timeout}s")
        except RiddleProviderError as e:
            error = e
        except Exception as e:
            self.logger.error(f"Unexpected provider error for channel {self.channel_id}: {e}", exc_info=True)
            error = e

        if epoch != self._epoch:
            self._log_transition('stale_riddle_discarded', "Discarded riddle fetched for a reset session")
            return False

        session.loading = False
        if error is not None:
            session.last_error = RIDDLES_EXHAUSTED_MESSAGE if isinstance(error, RiddlesExhausted) else FETCH_FAILED_MESSAGE
            self.logger.warning(
                f"Riddle fetch failed for channel {self.channel_id}: {error}",
                extra={
                    'event_type': 'riddle_fetch_failed',
                    'channel_id': self.channel_id,
                    'era': era.value,
                    'error_type': type(error).__name__,
                    'timestamp': time.time()
                }
            )
            self._notify()
            return False

        session.current_riddle = riddle
        session.feedback = Feedback.NEUTRAL
        session.asked_questions.append(riddle.question)
        session.asked_questions = session.asked_questions[-limit:] if limit > 0 else []
        self._log_transition('riddle_loaded', f"Riddle loaded for era {era.value}", era=era.value)
        self._notify()
        return True

    async def _grade(self, option: str, riddle: Riddle) -> bool:
        try:
            verdict = await asyncio.wait_for(
                self.provider.judge_answer(option, riddle.answer, riddle.question),
                timeout=self.settings.provider_timeout
            )
            if isinstance(verdict, bool):
                return verdict
            reason = f"non-boolean verdict {verdict!r}"
        except asyncio.TimeoutError:
            reason = f"timed out after {self.settings.provider_timeout}s"
        except RiddleProviderError as e:
            reason = str(e)
        except Exception as e:
            self.logger.error(f"Unexpected judgment error for channel {self.channel_id}: {e}", exc_info=True)
            reason = f"unexpected error {type(e).__name__}"

        self.logger.warning(
            f"Answer judgment unavailable for channel {self.channel_id}, using exact match: {reason}",
            extra={
                'event_type': 'judgment_fallback',
                'channel_id': self.channel_id,
                'reason': reason,
                'timestamp': time.time()
            }
        )
        return answers_match(option, riddle.answer)

    def _apply_correct(self, session: GameSession, riddle: Riddle) -> None:
        reward = self.engine.calculate_reward(session.attempts)
        session.score += reward
        session.feedback = Feedback.CORRECT
        session.history.insert(0, HistoryEntry(question=riddle.question, correct=True))
        session.show_fun_fact = True
        session.loading = False
        self._log_transition('answer_correct', f"Correct answer, +{reward} points", reward=reward, score=session.score)

    def _apply_incorrect(self, session: GameSession, epoch: int) -> None:
        session.feedback = Feedback.INCORRECT
        session.attempts += 1
        session.show_hint = True
        session.loading = False
        self._log_transition('answer_incorrect', "Incorrect answer", attempts=session.attempts)
        self._cooldown.start(self.settings.cooldown_seconds, lambda: self._end_cooldown(epoch))

    def _end_cooldown(self, epoch: int) -> None:
        session = self._session
        if epoch != self._epoch or session.feedback is not Feedback.INCORRECT or session.loading:
            return
        session.feedback = Feedback.NEUTRAL
        session.selected_option = None
        self._log_transition('cooldown_finished', "Cooldown finished")
        self._notify()
