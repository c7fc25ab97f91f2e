"""Turns ``/tally`` subcommands into replies.

This layer knows nothing about Discord: it returns :class:`Reply` values that
``discord_bot.py`` renders as embeds or ephemeral messages.
"""
import logging
from typing import Callable, Dict, List, Optional

from ..errors import MatchupNotFound, TallyError
from ..models import AggregateStats, Outcome, format_win_rate
from .tally_service import RefStrategy, TallyService, parse_tally_ref

logger = logging.getLogger('tally.commands')

COLOR_CREATED = 0x00FF00
COLOR_WIN = 0x00FF00
COLOR_LOSS = 0xFF6600
COLOR_RECORD = 0x0099FF
COLOR_LIST = 0x9900FF
COLOR_STATS = 0x9B59B6

GENERIC_ERROR = '❌ An error occurred while processing your command.'
EMPTY_LIST = '📊 No tallies created yet! Use `/tally create` to get started.'
LEADERBOARD_TITLE = '🏆 Top 3 Overall'

# Discord refuses embeds with more fields than this.
EMBED_FIELD_LIMIT = 25


class ReplyField:
    __slots__ = ['name', 'value', 'inline']

    def __init__(self, name: str, value: str, inline: bool = False) -> None:
        self.name = name
        self.value = value
        self.inline = inline

    def __repr__(self) -> str:
        return f'ReplyField({self.name!r}, {self.value!r})'


class Reply:
    """A platform-neutral reply.

    Either an embed (``title`` set, optional ``fields``) or plain ``content``.
    ``attach_media`` asks the caller to follow up with a random media file.
    """

    def __init__(self, title: Optional[str] = None, color: Optional[int] = None,
                 content: Optional[str] = None, ephemeral: bool = False,
                 timestamp: bool = False, attach_media: bool = False) -> None:
        self.title = title
        self.color = color
        self.content = content
        self.ephemeral = ephemeral
        self.timestamp = timestamp
        self.attach_media = attach_media
        self.fields: List[ReplyField] = []

    @classmethod
    def error(cls, message: str) -> 'Reply':
        return cls(content=f'❌ {message}', ephemeral=True)

    @property
    def is_embed(self) -> bool:
        return self.title is not None

    def add_field(self, name: str, value: str, inline: bool = False) -> 'Reply':
        self.fields.append(ReplyField(name, value, inline))
        return self

    def field(self, name: str) -> Optional[str]:
        """Return the value of the first field called *name*."""
        for f in self.fields:
            if f.name == name:
                return f.value
        return None


def format_ranking(rankings: List[AggregateStats]) -> str:
    return '\n'.join(
        f'{idx}. {p.display_name} - {p.wins}W {p.losses}L ({p.win_rate}%)'
        for idx, p in enumerate(rankings, start=1)
    )


class TallyCommandService:
    """Dispatches the seven ``/tally`` subcommands to :class:`TallyService`.

    Store errors come back as ephemeral ``❌`` replies; anything unexpected is
    logged and answered with a generic failure message.
    """

    def __init__(self, tally_service: TallyService) -> None:
        self._tallies = tally_service
        self._handlers: Dict[str, Callable[..., Reply]] = {
            'create': self.create,
            'add-win': self.add_win,
            'add-loss': self.add_loss,
            'record': self.record,
            'list': self.list_tallies,
            'delete': self.delete,
            'stats': self.stats,
        }

    def dispatch(self, subcommand: str, **options) -> Reply:
        try:
            handler = self._handlers[subcommand]
            return handler(**options)
        except TallyError as exc:
            return Reply.error(exc.message)
        except Exception:
            logger.exception('Error handling /tally %s', subcommand)
            return Reply(content=GENERIC_ERROR, ephemeral=True)

    def autocomplete(self, current: str):
        return self._tallies.autocomplete(current)

    # ------------------------------------------------------------------
    # Subcommands
    # ------------------------------------------------------------------

    def create(self, name: str, participant1: str, participant2: str) -> Reply:
        matchup_id, _ = self._tallies.create_matchup(name, participant1, participant2)
        reply = Reply(title='✓ Tally Created', color=COLOR_CREATED)
        reply.add_field('Game', name)
        reply.add_field('Matchup', matchup_id)
        return reply

    def add_win(self, tally: str, participant: str) -> Reply:
        game, matchup = parse_tally_ref(tally, RefStrategy.STRICT_SPLIT)
        try:
            return self._outcome_reply(game, matchup, participant, Outcome.WIN)
        except MatchupNotFound:
            # add-win never names the matchup it could not find
            raise MatchupNotFound(game) from None

    def add_loss(self, tally: str, participant: str) -> Reply:
        game, matchup = parse_tally_ref(tally, RefStrategy.DIRECT_SEARCH)
        return self._outcome_reply(game, matchup, participant, Outcome.LOSS)

    def _outcome_reply(self, game: str, matchup: Optional[str],
                       participant: str, outcome: Outcome) -> Reply:
        matchup_id, name, result = self._tallies.record_outcome(
            game, matchup, participant, outcome)
        record = result.participants[name]
        if outcome is Outcome.WIN:
            reply = Reply(title='✓ Win Added', color=COLOR_WIN, attach_media=True)
            role = 'Winner'
        else:
            reply = Reply(title='✓ Loss Added', color=COLOR_LOSS, attach_media=True)
            role = 'Loser'
        reply.add_field('Game', game)
        reply.add_field('Matchup', matchup_id)
        reply.add_field(role, name)
        reply.add_field(f"{name}'s Record", f'W: {record.wins} | L: {record.losses}')
        return reply

    def record(self, tally: str) -> Reply:
        game, matchup = parse_tally_ref(tally, RefStrategy.DIRECT_SEARCH)
        matchup_id, result = self._tallies.get_record(game, matchup)
        reply = Reply(title=f'📊 {game} - {matchup_id}', color=COLOR_RECORD,
                      timestamp=True, attach_media=True)
        for name, stats in result.participants.items():
            reply.add_field(
                name,
                f'W: **{stats.wins}** | L: **{stats.losses}** | Win Rate: **{stats.win_rate}%**',
            )
        return reply

    def list_tallies(self) -> Reply:
        if not self._tallies.data:
            return Reply(content=EMPTY_LIST, ephemeral=True)

        reply = Reply(title='📊 All Tallies by Game', color=COLOR_LIST,
                      timestamp=True, attach_media=True)
        matchups = [m for m in self._tallies.list_all() if m[2].participants]
        shown = matchups[:EMBED_FIELD_LIMIT - 1]
        if len(shown) < len(matchups):
            logger.warning('Listing %d of %d matchups', len(shown), len(matchups))
        for game, matchup_id, matchup in shown:
            parts = [f'{name} ({rec.wins}-{rec.losses})'
                     for name, rec in matchup.participants.items()]
            reply.add_field(f'{game} - {matchup_id}', ' vs '.join(parts))

        rankings = self._tallies.leaderboard(top=3)
        if rankings:
            reply.add_field(LEADERBOARD_TITLE, format_ranking(rankings))
        return reply

    def delete(self, tally: str) -> Reply:
        game, matchup = parse_tally_ref(tally, RefStrategy.DIRECT_SEARCH)
        matchup_id = self._tallies.delete_matchup(game, matchup)
        return Reply(
            content=f'✓ Matchup "{matchup_id}" in "{game}" has been deleted.',
            ephemeral=True,
        )

    def stats(self, participant: str) -> Reply:
        totals = self._tallies.aggregate_participant(participant)
        reply = Reply(title=f"📈 {participant}'s Overall Stats",
                      color=COLOR_STATS, attach_media=True)
        reply.add_field(
            'Overall Record',
            f'W: **{totals.wins}** | L: **{totals.losses}** | Win Rate: **{totals.win_rate}%**',
        )
        for game in totals.games:
            wins, losses = totals.game_totals(game)
            reply.add_field(
                game,
                f'W: {wins} | L: {losses} | Win Rate: {format_win_rate(wins, losses)}%',
            )
        rankings = self._tallies.leaderboard(top=3)
        reply.add_field(LEADERBOARD_TITLE, format_ranking(rankings) or 'No data')
        return reply
