"""
Difficulty file parser.

Difficulty files are line-oriented text split into bracketed sections:

    [General]
    AudioFilename: audio.mp3

    [Metadata]
    Title:Song
    Artist:Someone
    Creator:Mapper
    Version:Hard
    BeatmapSetID:12345

    [Events]
    0,0,"bg.jpg",0,0

Only [General], [Metadata] and [Events] are read. Unknown keys and sections
are ignored. A missing section or field yields an empty value, never an error.
"""

import re
from typing import Dict, List, Optional

from .models import ParsedDifficulty

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp")

# Key:Value or Key=Value
_KEY_VALUE = re.compile(r"^([A-Za-z]+)\s*[:=]\s*(.*)$")

# Only type 0 events name the background
_BACKGROUND_EVENTS = ("0,", "Background")


def split_sections(content: str) -> Dict[str, List[str]]:
    """Group non-empty, non-comment lines by their section name."""
    sections: Dict[str, List[str]] = {}
    current = ""
    for raw in content.splitlines():
        line = raw.strip()
        if line.startswith("[") and line.endswith("]"):
            current = line[1:-1].strip()
            continue
        if not current or not line or line.startswith("//"):
            continue
        sections.setdefault(current, []).append(line)
    return sections


def _key_values(lines: List[str]) -> Dict[str, str]:
    """First occurrence of each key wins."""
    values: Dict[str, str] = {}
    for line in lines:
        match = _KEY_VALUE.match(line)
        if match:
            values.setdefault(match.group(1), match.group(2).strip())
    return values


def _parse_id(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    # -1 and 0 mean "not submitted"
    return parsed if parsed > 0 else None


def find_background(event_lines: List[str]) -> Optional[str]:
    """Return the first image file referenced by a background event."""
    for line in event_lines:
        if not line.startswith(_BACKGROUND_EVENTS):
            continue
        for part in line.split(","):
            cleaned = part.strip().strip('"').strip()
            if cleaned.lower().endswith(IMAGE_EXTENSIONS):
                return cleaned.replace("\\", "/")
    return None


def parse_difficulty(content: str) -> ParsedDifficulty:
    """Parse the text of one difficulty file."""
    sections = split_sections(content)
    metadata = _key_values(sections.get("Metadata", []))
    general = _key_values(sections.get("General", []))

    audio = general.get("AudioFilename") or None

    return ParsedDifficulty(
        title=metadata.get("Title") or metadata.get("TitleUnicode", ""),
        artist=metadata.get("Artist") or metadata.get("ArtistUnicode", ""),
        creator=metadata.get("Creator", ""),
        version=metadata.get("Version", ""),
        beatmap_set_id=_parse_id(metadata.get("BeatmapSetID")),
        beatmap_id=_parse_id(metadata.get("BeatmapID")),
        background_file=find_background(sections.get("Events", [])),
        audio_file=audio,
    )
