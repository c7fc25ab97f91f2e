"""Errors raised by the tally services.

Every error carries a short, user-facing ``message`` that the command layer
sends back as an ephemeral reply.
"""
from typing import Optional


class TallyError(Exception):
    """Base class for all tally errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class GameNotFound(TallyError):
    """Raised when no game with the requested name exists."""

    def __init__(self, game: str) -> None:
        super().__init__(f'Game "{game}" not found!')
        self.game = game


class MatchupNotFound(TallyError):
    """Raised when a game has no matchup matching the requested id."""

    def __init__(self, game: str, matchup_id: Optional[str] = None) -> None:
        if matchup_id:
            message = f'Matchup "{matchup_id}" not found in "{game}"!'
        else:
            message = f'Matchup not found in "{game}"!'
        super().__init__(message)
        self.game = game
        self.matchup_id = matchup_id


class ParticipantNotFound(TallyError):
    """Raised when a matchup has no participant with the requested name."""

    def __init__(self, participant: str) -> None:
        super().__init__(f'Participant "{participant}" not found in this matchup!')
        self.participant = participant


class DuplicateMatchup(TallyError):
    """Raised when a matchup (or its reverse) already exists in a game."""

    def __init__(self, game: str, existing_id: str, reversed_: bool = False) -> None:
        if reversed_:
            message = f'This matchup already exists in "{game}" (as "{existing_id}")!'
        else:
            message = f'This matchup already exists in "{game}"!'
        super().__init__(message)
        self.game = game
        self.existing_id = existing_id
        self.reversed = reversed_


class NoStatsFound(TallyError):
    """Raised when a participant has no recorded games anywhere."""

    def __init__(self, participant: str) -> None:
        super().__init__(f'No stats found for "{participant}".')
        self.participant = participant


class PersistenceFailure(TallyError):
    """Raised by the repository when the data file cannot be read or written.

    Never reaches users: the repository logs it and degrades.
    """


class MediaUnavailable(TallyError):
    """Raised when no media file can be picked.

    Never reaches users: the media picker logs it and returns ``None``.
    """
