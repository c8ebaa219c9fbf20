"""
Client-local persistence for the saved game.

`LocalStorage` is a tiny file-backed key/value store with browser
localStorage semantics (string values, one file per key, last write wins).
Writes go to a temp file in the same directory and are moved into place with
`os.replace`, so readers never see a half-written value.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from shqip_guessr.src.schemas import SavedGame

logger = logging.getLogger(__name__)

SAVED_GAME_KEY = "geo:lastGame"


class LocalStorage:
    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def remove_item(self, key: str) -> None:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError:
            pass


def load_saved_game(storage: LocalStorage) -> Optional[SavedGame]:
    """Read and validate the saved game; anything unreadable counts as no game."""
    try:
        raw = storage.get_item(SAVED_GAME_KEY)
    except (OSError, UnicodeDecodeError):
        logger.warning("Could not read saved game", exc_info=True)
        return None
    if not raw:
        return None
    try:
        return SavedGame.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.info("Ignoring invalid saved game: %s", e)
        return None


def save_game(storage: LocalStorage, game: SavedGame) -> None:
    storage.set_item(SAVED_GAME_KEY, json.dumps(game.to_json_dict(), ensure_ascii=False))


def clear_saved_game(storage: LocalStorage) -> None:
    storage.remove_item(SAVED_GAME_KEY)
