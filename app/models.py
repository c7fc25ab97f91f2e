"""Domain objects for win/loss tallies.

Stored schema (one JSON document)::

    {
        "<game>": {
            "<A> vs <B>": {
                "<A>": {"wins": <int>, "losses": <int>},
                "<B>": {"wins": <int>, "losses": <int>},
                "createdAt": <ISO-8601 str>
            }
        }
    }

Values under a game that carry no ``createdAt`` are not matchups.  They are
wrapped in :class:`StrayEntry` when loaded so that they survive a save but
are invisible to every query.
"""
import datetime
import enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

CREATED_AT_KEY = 'createdAt'


class Outcome(enum.Enum):
    WIN = 'win'
    LOSS = 'loss'


def format_win_rate(wins: int, losses: int) -> str:
    """Return the win percentage with one decimal, ``"0.0"`` when no games."""
    total = wins + losses
    if total <= 0:
        return '0.0'
    return f'{wins / total * 100:.1f}'


def matchup_id_for(participant_a: str, participant_b: str) -> str:
    return f'{participant_a} vs {participant_b}'


def find_key_ignore_case(keys, search: Optional[str]) -> Optional[str]:
    """Return the first key equal to *search* ignoring case, or ``None``."""
    if search is None:
        return None
    wanted = search.lower()
    for key in keys:
        if key.lower() == wanted:
            return key
    return None


class Record:
    """Cumulative wins and losses of one participant within one matchup."""

    __slots__ = ['wins', 'losses']

    def __init__(self, wins: int = 0, losses: int = 0) -> None:
        self.wins = wins
        self.losses = losses

    @property
    def win_rate(self) -> str:
        return format_win_rate(self.wins, self.losses)

    def to_dict(self) -> Dict[str, int]:
        return {'wins': self.wins, 'losses': self.losses}

    @classmethod
    def from_dict(cls, data: Dict) -> 'Record':
        return cls(wins=int(data.get('wins', 0)), losses=int(data.get('losses', 0)))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.wins == other.wins and self.losses == other.losses

    def __repr__(self) -> str:
        return f'Record(wins={self.wins}, losses={self.losses})'


class Matchup:
    """A fixed set of participants tracked together under one game."""

    def __init__(self, participants: Dict[str, Record], created_at: str,
                 extra: Optional[Dict[str, Any]] = None) -> None:
        self.participants: Dict[str, Record] = participants
        self.created_at = created_at
        # stored keys that are neither records nor createdAt, written back as-is
        self.extra: Dict[str, Any] = extra or {}

    @classmethod
    def new(cls, participant_a: str, participant_b: str) -> 'Matchup':
        """Create a matchup with both records at 0-0, stamped now (UTC)."""
        now = datetime.datetime.now(datetime.timezone.utc)
        participants = {participant_a: Record(), participant_b: Record()}
        return cls(participants, now.isoformat().replace('+00:00', 'Z'))

    def find_participant(self, name: str) -> Optional[str]:
        """Return the stored participant key matching *name* ignoring case."""
        return find_key_ignore_case(self.participants, name)

    def apply(self, participant: str, outcome: Outcome) -> None:
        """Credit *outcome* to *participant* and the opposite to everyone else."""
        for name, record in self.participants.items():
            if (name == participant) == (outcome is Outcome.WIN):
                record.wins += 1
            else:
                record.losses += 1

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: rec.to_dict() for name, rec in self.participants.items()}
        data[CREATED_AT_KEY] = self.created_at
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Matchup':
        """Build a matchup from its stored shape.

        Raises:
            TypeError, ValueError: A record holds a non-numeric count.
        """
        participants: Dict[str, Record] = {}
        extra: Dict[str, Any] = {}
        for name, value in data.items():
            if name == CREATED_AT_KEY:
                continue
            if isinstance(value, dict):
                participants[name] = Record.from_dict(value)
            else:
                extra[name] = value
        return cls(participants, str(data[CREATED_AT_KEY]), extra)

    @staticmethod
    def is_stored_matchup(value: Any) -> bool:
        """``True`` if a raw stored value has the shape of a matchup."""
        return isinstance(value, dict) and bool(value.get(CREATED_AT_KEY))

    def __repr__(self) -> str:
        return f'Matchup({self.participants!r}, created_at={self.created_at!r})'


class StrayEntry:
    """A stored value under a game that is not a matchup, kept verbatim."""

    __slots__ = ['raw']

    def __init__(self, raw: Any) -> None:
        self.raw = raw

    def to_dict(self) -> Any:
        return self.raw


def parse_entry(value: Any):
    """Tag a raw stored value as :class:`Matchup` or :class:`StrayEntry`."""
    if Matchup.is_stored_matchup(value):
        return Matchup.from_dict(value)
    return StrayEntry(value)


def iter_matchups(game_entries: Dict[str, Any]) -> Iterator[Tuple[str, Matchup]]:
    """Yield ``(matchup_id, Matchup)`` pairs, skipping stray entries."""
    for matchup_id, entry in game_entries.items():
        if isinstance(entry, Matchup):
            yield matchup_id, entry


class AggregateStats:
    """A participant's totals across many matchups.

    ``games`` maps game name to the per-matchup rows that contributed, in
    first-seen order: ``{"<game>": [{"matchup", "wins", "losses"}, ...]}``.
    """

    def __init__(self, display_name: str) -> None:
        self.display_name = display_name
        self.wins = 0
        self.losses = 0
        self.games: Dict[str, List[Dict[str, Any]]] = {}

    def add(self, game: str, matchup_id: str, record: Record) -> None:
        self.wins += record.wins
        self.losses += record.losses
        self.games.setdefault(game, []).append({
            'matchup': matchup_id,
            'wins': record.wins,
            'losses': record.losses,
        })

    def game_totals(self, game: str) -> Tuple[int, int]:
        rows = self.games.get(game, [])
        return sum(r['wins'] for r in rows), sum(r['losses'] for r in rows)

    @property
    def win_rate(self) -> str:
        return format_win_rate(self.wins, self.losses)

    def __repr__(self) -> str:
        return (f'AggregateStats({self.display_name!r}, wins={self.wins}, '
                f'losses={self.losses})')
