"""
Transition Scoring Primitives - Score point-to-point compatibility.

Pure functions for scoring transitions between two tracks:
- Key notation (standard -> Camelot)
- Harmonic compatibility (Camelot wheel distance)
- Tempo closeness
- Chroma similarity

All functions are stateless and operate on simple inputs.
"""

import re
import numpy as np
from typing import List, Optional, Tuple

from .filtering import cosine_similarity
from .harmonic import average_chroma


# ============== Camelot Wheel Logic ==============

# Standard notation -> Camelot code (A = minor, B = major)
CAMELOT_WHEEL = {
    'C': '8B', 'Cm': '5A', 'C#': '3B', 'C#m': '12A',
    'D': '10B', 'Dm': '7A', 'D#': '5B', 'D#m': '2A',
    'E': '12B', 'Em': '9A', 'F': '7B', 'Fm': '4A',
    'F#': '2B', 'F#m': '11A', 'G': '9B', 'Gm': '6A',
    'G#': '4B', 'G#m': '1A', 'A': '11B', 'Am': '8A',
    'A#': '6B', 'A#m': '3A', 'B': '1B', 'Bm': '10A',
}

# Enharmonic spellings
FLAT_TO_SHARP = {
    'Db': 'C#', 'Eb': 'D#', 'Gb': 'F#', 'Ab': 'G#', 'Bb': 'A#',
}

_CAMELOT_RE = re.compile(r'(\d+)([AB])')

# Relative major/minor pairs are a fixed distance apart
RELATIVE_KEY_DISTANCE = 7
UNKNOWN_KEY_DISTANCE = 12


def key_to_camelot(key: Optional[str]) -> Optional[str]:
    """
    Normalize a key to Camelot notation.

    Accepts Camelot codes ('8A', '12B') and standard names ('Am', 'F#',
    'Bbm', 'A minor'). Returns None when the key cannot be read.
    """
    if not key:
        return None
    key = key.strip()

    match = _CAMELOT_RE.fullmatch(key.upper())
    if match and 1 <= int(match.group(1)) <= 12:
        return f"{int(match.group(1))}{match.group(2)}"

    normalized = key.replace(' minor', 'm').replace(' major', '').replace('min', 'm').replace('maj', '')
    if normalized.endswith('mm'):
        normalized = normalized[:-1]
    root, minor = (normalized[:-1], 'm') if normalized.endswith('m') else (normalized, '')
    if root:
        root = root[0].upper() + root[1:]
    root = FLAT_TO_SHARP.get(root, root)
    return CAMELOT_WHEEL.get(f"{root}{minor}")


def parse_camelot(key: Optional[str]) -> Optional[Tuple[int, str]]:
    """'8A' -> (8, 'A'); standard notation is converted first; None if unreadable."""
    camelot = key_to_camelot(key)
    if camelot is None:
        return None
    match = _CAMELOT_RE.fullmatch(camelot)
    return int(match.group(1)), match.group(2)


def camelot_distance(key_a: Optional[str], key_b: Optional[str]) -> int:
    """
    Calculate Camelot wheel distance between two keys.

    - Same key: 0
    - Same number, A<->B (relative major/minor): 7
    - Otherwise circular number distance (<= 6), +1 when modes differ
    - Unreadable key: 12

    Args:
        key_a: First key ('8A', 'Am', ...)
        key_b: Second key

    Returns:
        Distance on the Camelot wheel
    """
    a = parse_camelot(key_a)
    b = parse_camelot(key_b)
    if a is None or b is None:
        return UNKNOWN_KEY_DISTANCE

    num_a, mode_a = a
    num_b, mode_b = b

    if num_a == num_b and mode_a == mode_b:
        return 0

    if num_a == num_b:
        return RELATIVE_KEY_DISTANCE

    diff = abs(num_a - num_b)
    circular_dist = 12 - diff if diff > 6 else diff

    if mode_a != mode_b:
        circular_dist += 1

    return circular_dist


def score_key_distance(distance: int) -> float:
    """
    Map Camelot distance to a harmonic score.

    0 -> 1.0, 1 -> 0.9, 2 -> 0.7, 7 (relative) -> 0.8, else 0.4 - 0.05 * d.
    """
    scores = {0: 1.0, 1: 0.9, 2: 0.7, RELATIVE_KEY_DISTANCE: 0.8}
    if distance in scores:
        return scores[distance]
    return 0.4 - 0.05 * distance


def compatible_keys(key: Optional[str]) -> List[str]:
    """
    Camelot keys that mix harmonically with `key`.

    Order: same key, one step down, one step up (same ring), relative
    major/minor. Empty for unreadable keys.
    """
    parsed = parse_camelot(key)
    if parsed is None:
        return []
    number, letter = parsed
    prev_number = 12 if number == 1 else number - 1
    next_number = 1 if number == 12 else number + 1
    other = 'B' if letter == 'A' else 'A'
    return [
        f"{number}{letter}",
        f"{prev_number}{letter}",
        f"{next_number}{letter}",
        f"{number}{other}",
    ]


# ============== Chroma Similarity ==============

def chroma_similarity(chroma_a: Optional[np.ndarray], chroma_b: Optional[np.ndarray]) -> float:
    """
    Cosine similarity of two tracks' time-averaged chroma.

    0.5 when either chromagram is missing or empty, 0 when an average is
    the zero vector.
    """
    avg_a = average_chroma(chroma_a)
    avg_b = average_chroma(chroma_b)
    if avg_a is None or avg_b is None:
        return 0.5
    return cosine_similarity(avg_a, avg_b)


# ============== Tempo Scoring ==============

def score_tempo_match(tempo_a: float, tempo_b: float) -> float:
    """
    Score tempo closeness.

    |diff| < 1 -> 1.0, < 3 -> 0.9, < 5 -> 0.8, exact 2x ratio -> 0.7,
    < 10 -> 0.6, else 0.3.
    """
    diff = abs(tempo_a - tempo_b)
    if diff < 1:
        return 1.0
    if diff < 3:
        return 0.9
    if diff < 5:
        return 0.8

    low, high = min(tempo_a, tempo_b), max(tempo_a, tempo_b)
    if low > 0 and high / low == 2:
        return 0.7

    if diff < 10:
        return 0.6
    return 0.3
