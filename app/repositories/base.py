"""Repository base class for JSON-file persistence."""
import json
import logging
import os
import tempfile
from typing import Any

from ..errors import PersistenceFailure


class BaseRepository:
    """Reads and writes a single JSON document at *file_path*.

    Sub-classes keep their in-memory copy and decide what to do with a
    :class:`~app.errors.PersistenceFailure`; the helpers here only translate
    OS and decoding errors into that one exception type.

    Writes go to a sibling temp file that is then renamed over the target, so
    a crash mid-write never leaves half a document behind.
    """

    def __init__(self, file_path: str) -> None:
        self._path = file_path
        self._log = logging.getLogger(f'tally.repository.{type(self).__name__}')

    @property
    def path(self) -> str:
        return self._path

    def _read(self, default: Any) -> Any:
        """Return the decoded document, or *default* when the file is absent.

        Raises:
            PersistenceFailure: The file exists but cannot be read or parsed.
        """
        if not os.path.exists(self._path):
            return default
        try:
            with open(self._path, 'r', encoding='utf-8') as fh:
                return json.load(fh)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
            raise PersistenceFailure(f'Could not load {self._path}: {exc}') from exc

    def _write(self, data: Any) -> None:
        """Pretty-print *data* over the whole file.

        Raises:
            PersistenceFailure: The document could not be written.
        """
        dir_name = os.path.dirname(os.path.abspath(self._path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix='.tmp')
        except OSError as exc:
            raise PersistenceFailure(f'Could not save {self._path}: {exc}') from exc
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self._path)
        except (OSError, TypeError, ValueError) as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise PersistenceFailure(f'Could not save {self._path}: {exc}') from exc
