from pathlib import Path

import pytest


@pytest.fixture
def anyio_backend() -> str:
    # Pycord only runs on asyncio
    return "asyncio"


@pytest.fixture
def sounds_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "sounds"
    directory.mkdir()
    for name in ("applause.wav", "Kutya Ugatás.mp3", "kutya2.ogg", "Öröm.mp3"):
        (directory / name).write_bytes(b"RIFF")
    (directory / "kutyak").mkdir()
    (directory / "kutyak" / "nested.mp3").write_bytes(b"RIFF")
    return directory
