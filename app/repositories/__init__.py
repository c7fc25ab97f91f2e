"""Repository package — expose all concrete repositories from one import."""
from .tally_repository import TallyRepository

__all__ = [
    'TallyRepository',
]
