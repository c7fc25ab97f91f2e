"""Services package — expose all concrete services from one import."""
from .tally_service import TallyService, RefStrategy, parse_tally_ref, win_rate
from .command_service import TallyCommandService, Reply, ReplyField
from .media_service import MediaPicker

__all__ = [
    'TallyService',
    'RefStrategy',
    'parse_tally_ref',
    'win_rate',
    'TallyCommandService',
    'Reply',
    'ReplyField',
    'MediaPicker',
]
