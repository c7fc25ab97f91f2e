"""Random celebratory media selection."""
import logging
import os
import random
from typing import Optional

from ..errors import MediaUnavailable

MEDIA_EXTENSIONS = ('.gif', '.mp4', '.webm')

logger = logging.getLogger('tally.media')


class MediaPicker:
    """Picks a random ``.gif``/``.mp4``/``.webm`` file from *folder*.

    Failures never propagate: an empty or unreadable folder is logged and
    :meth:`pick_random` returns ``None``.
    """

    def __init__(self, folder: str = 'gifs', rng: Optional[random.Random] = None) -> None:
        self.folder = folder
        self._rng = rng or random.Random()

    def ensure_folder(self) -> None:
        try:
            os.makedirs(self.folder, exist_ok=True)
        except OSError as exc:
            logger.warning('Could not create media folder %s: %s', self.folder, exc)

    def list_media(self):
        """Return eligible file names, sorted.

        Raises:
            MediaUnavailable: The folder cannot be listed.
        """
        try:
            names = os.listdir(self.folder)
        except OSError as exc:
            raise MediaUnavailable(f'Error reading media folder {self.folder}: {exc}') from exc
        return sorted(n for n in names if os.path.splitext(n)[1].lower() in MEDIA_EXTENSIONS)

    def pick_random(self) -> Optional[str]:
        """Return the full path of a random media file, or ``None``."""
        try:
            files = self.list_media()
            if not files:
                raise MediaUnavailable(f'No GIFs found in {self.folder}')
        except MediaUnavailable as exc:
            logger.info(exc.message)
            return None
        return os.path.join(self.folder, self._rng.choice(files))
