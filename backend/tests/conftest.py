"""
Pytest configuration and shared fixtures for the importer test suite.
"""

import io
import sys
import threading
import zipfile
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import pytest
from PIL import Image

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
if str(backend_path) not in sys.path:
    sys.path.insert(0, str(backend_path))

from beatmap_importer.config.settings import ImporterConfig, StabilitySettings  # noqa: E402


def osu_text(
    title: str = "Song",
    artist: str = "Someone",
    creator: str = "Mapper",
    version: str = "Normal",
    set_id: Optional[int] = 12345,
    beatmap_id: Optional[int] = None,
    background: Optional[str] = "bg.jpg",
    audio: str = "audio.mp3",
) -> str:
    """Build the text of a minimal difficulty file."""
    lines = [
        "osu file format v14",
        "",
        "[General]",
        f"AudioFilename: {audio}",
        "Mode: 0",
        "",
        "[Metadata]",
        f"Title:{title}",
        f"Artist:{artist}",
        f"Creator:{creator}",
        f"Version:{version}",
    ]
    if set_id is not None:
        lines.append(f"BeatmapSetID:{set_id}")
    if beatmap_id is not None:
        lines.append(f"BeatmapID:{beatmap_id}")
    lines += ["", "[Events]", "//Background and Video events"]
    if background is not None:
        lines.append(f'0,0,"{background}",0,0')
    lines += ["", "[HitObjects]", "256,192,1000,1,0,0:0:0:0:"]
    return "\n".join(lines) + "\n"


def png_bytes(size=(640, 480), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def zip_bytes(entries: Dict[str, Union[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def build_osz(tmp_path: Path) -> Callable[..., Path]:
    """
    Factory for .osz archives.

    Without explicit entries, builds a valid set with one difficulty and a
    PNG background named bg.jpg.
    """

    def _build(
        name: str = "set.osz",
        entries: Optional[Dict[str, Union[str, bytes]]] = None,
        directory: Optional[Path] = None,
        **osu_fields,
    ) -> Path:
        if entries is None:
            entries = {
                "Someone - Song (Mapper) [Normal].osu": osu_text(**osu_fields),
                "bg.jpg": png_bytes(),
                "audio.mp3": b"ID3fake-audio",
            }
        target_dir = directory or (tmp_path / "downloads")
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        path.write_bytes(zip_bytes(entries))
        return path

    return _build


class FakeClock:
    """
    Deterministic clock for stability polling.

    sleep() advances time instantly and runs an optional hook, so tests can
    mutate a file between polls.
    """

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = 0
        self.on_sleep: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    def monotonic(self) -> float:
        with self._lock:
            return self.now

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> None:
        with self._lock:
            self.now += seconds
            self.sleeps += 1
        if self.on_sleep is not None:
            self.on_sleep()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., ImporterConfig]:
    """Factory for configs rooted in tmp_path with fast stability settings."""

    def _make(**overrides) -> ImporterConfig:
        downloads = tmp_path / "downloads"
        library = tmp_path / "library"
        downloads.mkdir(parents=True, exist_ok=True)
        library.mkdir(parents=True, exist_ok=True)
        values = {
            "downloads_dir": downloads,
            "library_dir": library,
            "data_dir": tmp_path / "data",
            "max_workers": 2,
            "stability": StabilitySettings(consecutive_checks=3, interval_ms=10, timeout_secs=5),
        }
        values.update(overrides)
        return ImporterConfig(**values)

    return _make
