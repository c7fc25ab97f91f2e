#!/usr/bin/env python3
"""
Tally Bot - win/loss tallies for Discord
Runs the ``/tally`` Discord bot and a small read-only web API over the same
in-memory tally store.
"""

import argparse
import json
import logging
import os
import sys
import threading
from typing import Dict, Optional, Tuple

from colorama import init, Fore
from dotenv import load_dotenv

from app.repositories import TallyRepository
from app.services import MediaPicker, TallyCommandService, TallyService
import discord_bot
from tally_web import create_app

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

LOG_FORMAT = '[%(levelname)s] %(name)s: %(message)s'


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root ``tally`` logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of an extra log file.  Its directory is
                  created if needed; failure to open it is only a warning.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger('tally')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        if log_file:
            try:
                os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)
                fh = logging.FileHandler(log_file, encoding='utf-8')
                fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
                logger.addHandler(fh)
            except OSError:
                logger.warning('Could not create log file handler for %s', log_file)
    logger.setLevel(numeric)
    return logger


logger = logging.getLogger('tally')

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: Dict = {
    'discord_bot_token': '',
    'discord_guild_id': None,
    'port': 5000,
    'host': '0.0.0.0',
    'data_file': 'tallies-data.json',
    'gifs_folder': 'gifs',
    'log_level': 'INFO',
    'log_file': 'logs/tally.log',
}

# environment variable -> config key
ENV_OVERRIDES = {
    'DISCORD_BOT_TOKEN': 'discord_bot_token',
    'DISCORD_GUILD_ID': 'discord_guild_id',
    'PORT': 'port',
    'TALLY_DATA_FILE': 'data_file',
    'TALLY_GIFS_FOLDER': 'gifs_folder',
    'TALLY_LOG_LEVEL': 'log_level',
}


def is_placeholder_value(value) -> bool:
    """Check if a value is empty or a template placeholder such as ``YOUR_...``."""
    if not value or not isinstance(value, str):
        return True
    return value.startswith('YOUR_')


class ConfigError(ValueError):
    """Raised when a configuration value cannot be used."""


def _as_int(config: Dict, key: str) -> Optional[int]:
    value = config.get(key)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")


def load_config(config_path: str = 'config.json') -> Dict:
    """Load configuration from an optional JSON file plus the environment.

    ``.env`` is read first; environment variables take precedence over
    config file values:

    - DISCORD_BOT_TOKEN overrides discord_bot_token
    - DISCORD_GUILD_ID overrides discord_guild_id
    - PORT overrides port (default 5000)
    - TALLY_DATA_FILE overrides data_file
    - TALLY_GIFS_FOLDER overrides gifs_folder
    - TALLY_LOG_LEVEL overrides log_level

    Raises:
        ConfigError: The file is not valid JSON or a number is malformed.
    """
    load_dotenv()
    config = dict(DEFAULT_CONFIG)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config.update(json.load(f))
        except json.JSONDecodeError as e:
            raise ConfigError(f'Error parsing config file {config_path}: {e}')

    for env_name, key in ENV_OVERRIDES.items():
        if os.getenv(env_name):
            config[key] = os.getenv(env_name)

    config['port'] = _as_int(config, 'port') or DEFAULT_CONFIG['port']
    config['discord_guild_id'] = _as_int(config, 'discord_guild_id')
    return config


def build_services(config: Dict) -> Tuple[TallyService, TallyCommandService, MediaPicker]:
    """Create the process-wide store, command dispatcher and media picker."""
    repository = TallyRepository(config['data_file'])
    tally_service = TallyService(repository)
    media = MediaPicker(config['gifs_folder'])
    media.ensure_folder()
    return tally_service, TallyCommandService(tally_service), media


def start_web_thread(app, host: str, port: int) -> threading.Thread:
    """Serve *app* from a daemon thread so the bot can own the main thread."""
    thread = threading.Thread(
        target=app.run,
        kwargs={'host': host, 'port': port, 'debug': False, 'use_reloader': False},
        name='tally-web',
        daemon=True,
    )
    thread.start()
    logger.info('Server running on http://localhost:%d', port)
    return thread


def main(argv=None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Tally Bot - Discord win/loss tallies')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    parser.add_argument('--port', type=int, help='HTTP port for the web API')
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--web-only', action='store_true', help='Run the web API without the Discord bot')
    group.add_argument('--no-web', action='store_true', help='Run the Discord bot without the web API')
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"{Fore.RED}Error: {e}")
        return 1
    if args.port:
        config['port'] = args.port

    token = config.get('discord_bot_token')
    if is_placeholder_value(token) and not args.web_only:
        print(f"{Fore.RED}Error: discord_bot_token not found in config.json")
        print(f"{Fore.YELLOW}Set DISCORD_BOT_TOKEN in .env or run with --web-only")
        return 1

    setup_logging(config['log_level'], config.get('log_file'))

    tally_service, command_service, media = build_services(config)

    app = create_app(tally_service, media.folder)
    if args.web_only:
        logger.info('Server running on http://localhost:%d', config['port'])
        app.run(host=config['host'], port=config['port'], debug=False)
        return 0

    if not args.no_web:
        start_web_thread(app, config['host'], config['port'])

    discord_bot.run_bot(token, command_service, media, guild_id=config['discord_guild_id'])
    return 0


if __name__ == "__main__":
    sys.exit(main())
