"""Sound file lookup by user-typed name fragment.

A fragment matches a file when the canonical form of the file name starts
with the canonical form of the fragment. Candidates are tried in lexical
file-name order and the first match wins. The directory is listed again on
every lookup, so added or renamed files are picked up without a restart.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import anyio

from .logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "SoundFile",
    "canonicalize",
    "list_sounds",
    "matches",
    "resolve",
    "resolve_async",
]

_FOLD = str.maketrans(
    {
        "ű": "u",
        "ü": "u",
        "ú": "u",
        "ö": "o",
        "ő": "o",
        "ó": "o",
        "á": "a",
        "í": "i",
        "é": "e",
        " ": None,
    }
)


@dataclass(frozen=True, slots=True)
class SoundFile:
    path: Path
    name: str

    @classmethod
    def from_path(cls, path: Path) -> SoundFile:
        return cls(path=path.absolute(), name=path.name)


def canonicalize(text: str) -> str:
    """Lowercase, fold accented vowels to ASCII and drop spaces."""
    return text.lower().translate(_FOLD)


def matches(file_name: str, fragment: str) -> bool:
    return canonicalize(file_name).startswith(canonicalize(fragment))


def list_sounds(directory: Path) -> list[SoundFile]:
    """Regular files directly under ``directory``, sorted by file name."""
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        logger.warning("sounds.list_failed", directory=str(directory), error=str(exc))
        return []
    files = [entry for entry in entries if entry.is_file()]
    files.sort(key=lambda entry: entry.name)
    return [SoundFile.from_path(entry) for entry in files]


def resolve(fragment: str, directory: Path) -> SoundFile | None:
    if not canonicalize(fragment):
        return None
    for sound in list_sounds(directory):
        if matches(sound.name, fragment):
            return sound
    return None


async def resolve_async(fragment: str, directory: Path) -> SoundFile | None:
    return await anyio.to_thread.run_sync(resolve, fragment, directory)
