from functools import cache
from pathlib import Path
import json
import logging
import os
import re
import unicodedata

logger = logging.getLogger(__name__)

NAME_TABLE_PATH = Path(os.environ.get(
    'TX_NAME_TABLE_PATH',
    str(Path(__file__).parent / 'forename_male_probs.json'),
))

_split_pattern = re.compile(r'[-\s]')


@cache
def load_name_table(path: Path = NAME_TABLE_PATH) -> dict[str, float]:
    """
    Load the static lowercase-first-name -> male-probability table. Loaded
    once per path; a missing or unreadable table yields an empty one, which
    makes the name estimator return no signal.
    """
    try:
        with open(path, encoding='utf-8') as f:
            table = json.load(f)
    except (OSError, ValueError):
        logger.exception(f'First-name male-probabilities not loaded from {path}!')
        return {}

    logger.info(f'loaded {len(table)} first-name male-probabilities')

    return {
        str(name).lower(): float(p)
        for name, p in table.items()
    }


def strip_diacritics(s: str) -> str:
    # Normalize the string to NFD (Normalization Form Decomposition) and filter
    # out combining diacritical marks (e.g., accents)
    normalized_input = unicodedata.normalize('NFD', s)
    return ''.join(
        char for char in normalized_input if not unicodedata.combining(char)
    )


def _lookup(name: str, table: dict[str, float]) -> float | None:
    if name in table:
        return table[name]

    plain_name = strip_diacritics(name)
    if plain_name in table:
        logger.debug(f'found unplain name {name} as {plain_name} in gender lookup')
        return table[plain_name]

    return None


def get_gender_by_name(
    raw_name: str,
    table: dict[str, float] | None = None,
) -> float | None:
    """
    Male probability for a display name, or None when the table has nothing
    to say about it. Multi-part names ("Anne-Marie", "Jean Luc") fall back to
    the mean of whichever parts are known.
    """
    if table is None:
        table = load_name_table()

    name = raw_name.strip().lower()
    if not name:
        return None

    p = _lookup(name, table)
    if p is not None:
        return p

    name_toks = [tok for tok in _split_pattern.split(name) if tok]
    probs = [
        p
        for p in (_lookup(tok, table) for tok in name_toks)
        if p is not None
    ]

    if probs:
        logger.debug(
            f'found multi-name {raw_name} in gender lookup with toks '
            f'{name_toks}, probs={probs}')
        return sum(probs) / len(probs)

    return None


def get_first_name_male_prob(first_name: str) -> float | None:
    """Raw table lookup, without the normalisation get_gender_by_name does."""
    return load_name_table().get(first_name)
