"""Business logic for win/loss tallies."""
import enum
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from ..errors import (
    DuplicateMatchup, GameNotFound, MatchupNotFound, NoStatsFound,
    ParticipantNotFound,
)
from ..models import (
    AggregateStats, Matchup, Outcome, find_key_ignore_case, format_win_rate,
    iter_matchups, matchup_id_for,
)
from ..repositories.tally_repository import TallyRepository

logger = logging.getLogger('tally.service')

AUTOCOMPLETE_LIMIT = 25
# Discord rejects choice names and values longer than this.
CHOICE_MAX_LENGTH = 100


class RefStrategy(enum.Enum):
    """How a ``tally`` option is split into game and matchup id.

    ``STRICT_SPLIT``
        The matchup is whatever follows the first ``|``; a token without a
        ``|`` yields the empty string.
    ``DIRECT_SEARCH``
        Same split, but a token without a ``|`` yields no matchup at all.
    """
    STRICT_SPLIT = 'strict_split'
    DIRECT_SEARCH = 'direct_search'


def parse_tally_ref(token: str,
                    strategy: RefStrategy = RefStrategy.DIRECT_SEARCH
                    ) -> Tuple[str, Optional[str]]:
    """Split a ``"game|matchup"`` token into ``(game, matchup_id)``."""
    game, sep, matchup = token.partition('|')
    if sep:
        return game, matchup
    if strategy is RefStrategy.STRICT_SPLIT:
        return token, ''
    return token, None


def win_rate(wins: int, losses: int) -> str:
    return format_win_rate(wins, losses)


class TallyService:
    """Owns the in-memory tally store and applies every tally rule.

    Persistence is delegated to
    :class:`~app.repositories.tally_repository.TallyRepository`; every
    mutation is followed by a full save.

    Rules
    -----
    * ``"A vs B"`` and ``"B vs A"`` never coexist under one game.  The check
      compares ids exactly (case-sensitive).
    * Matchup ids and participant names are otherwise matched ignoring case;
      the stored spelling is what gets displayed.
    * A win for one participant is a loss for every other participant of the
      matchup, and vice versa.
    * Deleting the last matchup of a game deletes the game.

    All public methods hold a lock so the web thread can take snapshots while
    the bot mutates the store.
    """

    def __init__(self, repository: TallyRepository) -> None:
        self._repo = repository
        self._lock = threading.RLock()

    @property
    def data(self) -> Dict[str, Dict[str, Any]]:
        return self._repo.data

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _game(self, game: str) -> Dict[str, Any]:
        entries = self.data.get(game)
        if entries is None:
            raise GameNotFound(game)
        return entries

    def _find_matchup(self, game: str, matchup_id: Optional[str]) -> Tuple[str, Matchup]:
        entries = self._game(game)
        matchups = dict(iter_matchups(entries))
        actual = find_key_ignore_case(matchups, matchup_id)
        if actual is None:
            raise MatchupNotFound(game, matchup_id)
        return actual, matchups[actual]

    def _aggregate_all(self) -> Dict[str, AggregateStats]:
        totals: Dict[str, AggregateStats] = {}
        for game, matchup_id, matchup in self._iter_all():
            for name, record in matchup.participants.items():
                key = name.lower()
                if key not in totals:
                    totals[key] = AggregateStats(name)
                totals[key].add(game, matchup_id, record)
        return totals

    def _iter_all(self):
        for game, entries in self.data.items():
            for matchup_id, matchup in iter_matchups(entries):
                yield game, matchup_id, matchup

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_matchup(self, game: str, participant_a: str,
                       participant_b: str) -> Tuple[str, Matchup]:
        """Create ``"<a> vs <b>"`` under *game* with both records at 0-0.

        Raises:
            DuplicateMatchup: The id or its reverse already exists.
        """
        matchup_id = matchup_id_for(participant_a, participant_b)
        reversed_id = matchup_id_for(participant_b, participant_a)
        with self._lock:
            entries = self.data.get(game, {})
            if matchup_id in entries:
                raise DuplicateMatchup(game, matchup_id)
            if reversed_id in entries:
                raise DuplicateMatchup(game, reversed_id, reversed_=True)

            matchup = Matchup.new(participant_a, participant_b)
            self.data.setdefault(game, {})[matchup_id] = matchup
            self._repo.save()
        logger.info('Created matchup %r in %r', matchup_id, game)
        return matchup_id, matchup

    def record_outcome(self, game: str, matchup_id: Optional[str],
                       participant: str,
                       outcome: Outcome) -> Tuple[str, str, Matchup]:
        """Record a win or loss for *participant*.

        Returns:
            ``(matchup_id, participant, matchup)`` using the stored spellings.

        Raises:
            GameNotFound, MatchupNotFound, ParticipantNotFound
        """
        with self._lock:
            actual_id, matchup = self._find_matchup(game, matchup_id)
            actual_name = matchup.find_participant(participant)
            if actual_name is None:
                raise ParticipantNotFound(participant)
            matchup.apply(actual_name, outcome)
            self._repo.save()
        logger.info('Recorded %s for %r in %r / %r', outcome.value,
                    actual_name, game, actual_id)
        return actual_id, actual_name, matchup

    def get_record(self, game: str, matchup_id: Optional[str]) -> Tuple[str, Matchup]:
        """Return ``(matchup_id, matchup)`` without modifying anything."""
        with self._lock:
            return self._find_matchup(game, matchup_id)

    def list_all(self) -> List[Tuple[str, str, Matchup]]:
        """Return every ``(game, matchup_id, matchup)`` in insertion order."""
        with self._lock:
            return list(self._iter_all())

    def delete_matchup(self, game: str, matchup_id: Optional[str]) -> str:
        """Delete a matchup, and its game if nothing else is left in it.

        Returns:
            The stored id of the deleted matchup.
        """
        with self._lock:
            actual_id, _ = self._find_matchup(game, matchup_id)
            entries = self.data[game]
            del entries[actual_id]
            if not entries:
                del self.data[game]
            self._repo.save()
        logger.info('Deleted matchup %r from %r', actual_id, game)
        return actual_id

    def aggregate_participant(self, name: str) -> AggregateStats:
        """Sum *name*'s records over every matchup of every game.

        A participant who exists but has no games yet is reported the same
        way as an unknown name.

        Raises:
            NoStatsFound: The summed wins and losses are zero.
        """
        wanted = name.lower()
        stats: Optional[AggregateStats] = None
        with self._lock:
            for game, matchup_id, matchup in self._iter_all():
                for participant, record in matchup.participants.items():
                    if participant.lower() != wanted:
                        continue
                    if stats is None:
                        stats = AggregateStats(participant)
                    stats.add(game, matchup_id, record)
        if stats is None or stats.wins + stats.losses == 0:
            raise NoStatsFound(name)
        return stats

    def leaderboard(self, top: int = 3) -> List[AggregateStats]:
        """Rank participants by total wins; ties keep first-seen order."""
        with self._lock:
            totals = list(self._aggregate_all().values())
        totals.sort(key=lambda s: s.wins, reverse=True)
        return totals[:top]

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Return a JSON-ready copy of the whole store."""
        with self._lock:
            return self._repo.to_dict()

    def autocomplete(self, current: str,
                     limit: int = AUTOCOMPLETE_LIMIT) -> List[Tuple[str, str]]:
        """Return ``(display, "game|matchup")`` pairs matching *current*."""
        query = (current or '').lower()
        choices: List[Tuple[str, str]] = []
        with self._lock:
            for game, matchup_id, _ in self._iter_all():
                display = f'{game} - {matchup_id}'
                value = f'{game}|{matchup_id}'
                if query not in display.lower() or len(value) > CHOICE_MAX_LENGTH:
                    continue
                choices.append((display[:CHOICE_MAX_LENGTH], value))
                if len(choices) >= limit:
                    break
        return choices
