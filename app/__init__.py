"""
Tally Bot application package.

Uses a layered architecture:

  app/repositories/  — pure I/O: loading from and persisting to the JSON file.
  app/services/      — business logic: tally rules, command replies, media.

``tally.py`` is the integration point: it builds the repository and service
instances once per process and hands them to the Discord bot
(``discord_bot.py``) and to the read-only web API (``tally_web.py``).
"""
