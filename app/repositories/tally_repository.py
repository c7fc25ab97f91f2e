"""Repository for the tally store ({game: {matchup_id: matchup}})."""
from typing import Any, Dict

from ..errors import PersistenceFailure
from ..models import parse_entry
from .base import BaseRepository


class TallyRepository(BaseRepository):
    """Persists every game, matchup and record to one JSON file.

    ``self.data`` maps game name to an ordered ``{matchup_id: entry}`` dict
    where each entry is a :class:`~app.models.Matchup` or a
    :class:`~app.models.StrayEntry`.  Load and save failures are logged and
    never raised: a broken file yields an empty store, a failed save leaves
    the in-memory data untouched.
    """

    def __init__(self, file_path: str = 'tallies-data.json') -> None:
        super().__init__(file_path)
        # top-level values that are not games; written back unless shadowed
        self.stray_games: Dict[str, Any] = {}
        self.data: Dict[str, Dict[str, Any]] = self.load()

    def load(self) -> Dict[str, Dict[str, Any]]:
        self.stray_games = {}
        try:
            raw = self._read({})
        except PersistenceFailure as exc:
            self._log.error('Error loading tallies: %s', exc.message)
            return {}
        if not isinstance(raw, dict):
            self._log.error('Error loading tallies: %s is not a JSON object', self._path)
            return {}

        store: Dict[str, Dict[str, Any]] = {}
        stray_games: Dict[str, Any] = {}
        try:
            for game, entries in raw.items():
                if not isinstance(entries, dict):
                    self._log.warning('Keeping malformed game entry %r as-is', game)
                    stray_games[game] = entries
                    continue
                store[game] = {key: parse_entry(value) for key, value in entries.items()}
        except (TypeError, ValueError, AttributeError) as exc:
            self._log.error('Error loading tallies: malformed record in %s: %s',
                            self._path, exc)
            return {}
        self.stray_games = stray_games
        self._log.info('Loaded %d game(s) from %s', len(store), self._path)
        return store

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Return the store in its stored JSON shape."""
        result: Dict[str, Any] = {
            game: {key: entry.to_dict() for key, entry in entries.items()}
            for game, entries in self.data.items()
        }
        for game, raw in self.stray_games.items():
            result.setdefault(game, raw)
        return result

    def save(self) -> bool:
        """Persist the whole store.  Returns ``False`` if the write failed."""
        try:
            self._write(self.to_dict())
        except PersistenceFailure as exc:
            self._log.error('Error saving tallies: %s', exc.message)
            return False
        return True
