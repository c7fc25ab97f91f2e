#!/usr/bin/env python3
"""
Tally Discord Bot
Slash-command front end for win/loss tallies: ``/tally create``,
``add-win``, ``add-loss``, ``record``, ``list``, ``delete`` and ``stats``.
"""

import logging
from typing import List, Optional

import discord
from discord import app_commands

from app.services import MediaPicker, Reply, TallyCommandService
from app.services.command_service import GENERIC_ERROR

logger = logging.getLogger('tally.bot')


def build_embed(reply: Reply) -> discord.Embed:
    """Render an embed-style :class:`Reply` as a ``discord.Embed``."""
    embed = discord.Embed(
        title=reply.title,
        color=discord.Color(reply.color) if reply.color is not None else None,
    )
    if reply.timestamp:
        embed.timestamp = discord.utils.utcnow()
    for field in reply.fields:
        embed.add_field(name=field.name, value=field.value, inline=field.inline)
    return embed


async def send_media(interaction: discord.Interaction, media: MediaPicker) -> bool:
    """Follow up with a random media file.  Returns ``True`` if one was sent."""
    path = media.pick_random()
    if not path:
        return False
    try:
        await interaction.followup.send(file=discord.File(path))
    except (discord.HTTPException, OSError) as e:
        logger.warning('Error sending GIF %s: %s', path, e)
        return False
    return True


async def send_reply(interaction: discord.Interaction, reply: Reply,
                     media: Optional[MediaPicker] = None) -> None:
    """Answer *interaction* with *reply*, then the media follow-up if asked."""
    if reply.is_embed:
        await interaction.response.send_message(embed=build_embed(reply),
                                                ephemeral=reply.ephemeral)
    else:
        await interaction.response.send_message(reply.content,
                                                ephemeral=reply.ephemeral)
    if reply.attach_media and media is not None:
        await send_media(interaction, media)


class TallyBot(discord.Client):
    """Discord bot for win/loss tallies"""

    def __init__(self, command_service: TallyCommandService, media: MediaPicker,
                 guild_id: Optional[int] = None):
        intents = discord.Intents.default()
        intents.message_content = False

        super().__init__(intents=intents)

        self.tree = app_commands.CommandTree(self)
        self.command_service = command_service
        self.media = media
        self.guild_id = guild_id

        self.setup_commands()

    async def respond(self, interaction: discord.Interaction, subcommand: str, **options):
        reply = self.command_service.dispatch(subcommand, **options)
        await send_reply(interaction, reply, self.media)

    async def tally_autocomplete(self, interaction: discord.Interaction,
                                 current: str) -> List[app_commands.Choice[str]]:
        return [app_commands.Choice(name=name, value=value)
                for name, value in self.command_service.autocomplete(current)]

    def setup_commands(self):
        """Register the ``/tally`` command group"""
        group = app_commands.Group(name='tally', description='Manage win/loss tallies')

        async def autocomplete_tally(interaction: discord.Interaction, current: str):
            return await self.tally_autocomplete(interaction, current)

        @group.command(name='create', description='Create a new tally')
        @app_commands.describe(
            name='Name of the tally (e.g., "Chess", "Valorant")',
            participant1='First person/team (comma-separated for teams: Alice,Bob,Charlie)',
            participant2='Second person/team (can be "Randoms" for team type)',
        )
        async def create(interaction: discord.Interaction, name: str,
                         participant1: str, participant2: str):
            await self.respond(interaction, 'create', name=name,
                               participant1=participant1, participant2=participant2)

        @group.command(name='add-win', description='Add a win to a tally')
        @app_commands.describe(
            tally='Name and type of the tally (autocomplete available)',
            participant='Participant/team that won',
        )
        @app_commands.autocomplete(tally=autocomplete_tally)
        async def add_win(interaction: discord.Interaction, tally: str, participant: str):
            await self.respond(interaction, 'add-win', tally=tally, participant=participant)

        @group.command(name='add-loss', description='Add a loss to a tally')
        @app_commands.describe(
            tally='Name and type of the tally (autocomplete available)',
            participant='Participant/team that lost',
        )
        @app_commands.autocomplete(tally=autocomplete_tally)
        async def add_loss(interaction: discord.Interaction, tally: str, participant: str):
            await self.respond(interaction, 'add-loss', tally=tally, participant=participant)

        @group.command(name='record', description='View the record for a tally')
        @app_commands.describe(tally='Name of the tally')
        @app_commands.autocomplete(tally=autocomplete_tally)
        async def record(interaction: discord.Interaction, tally: str):
            await self.respond(interaction, 'record', tally=tally)

        @group.command(name='list', description='List all tallies')
        async def list_tallies(interaction: discord.Interaction):
            await self.respond(interaction, 'list')

        @group.command(name='delete', description='Delete a tally')
        @app_commands.describe(tally='Name of the tally to delete')
        @app_commands.autocomplete(tally=autocomplete_tally)
        async def delete(interaction: discord.Interaction, tally: str):
            await self.respond(interaction, 'delete', tally=tally)

        @group.command(name='stats',
                       description='View overall stats for a participant across all games')
        @app_commands.describe(participant='Name of the participant')
        async def stats(interaction: discord.Interaction, participant: str):
            await self.respond(interaction, 'stats', participant=participant)

        self.tree.add_command(group)

        @self.tree.error
        async def on_app_command_error(interaction: discord.Interaction,
                                       error: app_commands.AppCommandError):
            logger.error('Error handling command: %s', error, exc_info=error)
            try:
                if interaction.response.is_done():
                    await interaction.followup.send(GENERIC_ERROR, ephemeral=True)
                else:
                    await interaction.response.send_message(GENERIC_ERROR, ephemeral=True)
            except discord.HTTPException as e:
                logger.warning('Could not report command error: %s', e)

    async def sync_commands(self) -> int:
        """Push the command tree to Discord; guild-scoped when a guild is set."""
        if self.guild_id:
            guild = discord.Object(id=self.guild_id)
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
        else:
            synced = await self.tree.sync()
        return len(synced)


def run_bot(token: str, command_service: TallyCommandService, media: MediaPicker,
            guild_id: Optional[int] = None):
    """Run the Discord bot"""
    bot = TallyBot(command_service, media, guild_id=guild_id)

    @bot.event
    async def on_ready():
        logger.info('✓ Bot logged in as %s', bot.user)
        await bot.change_presence(
            activity=discord.Activity(type=discord.ActivityType.watching, name='tallies'))

        try:
            count = await bot.sync_commands()
            logger.info('✓ Synced %d slash command(s)', count)
        except discord.HTTPException as e:
            logger.error('Error registering commands: %s', e)

    try:
        bot.run(token, log_handler=None)
    except discord.LoginFailure as e:
        logger.error('Failed to login Discord bot: %s', e)
