import logging
import random
import uuid
from typing import List, Optional, Sequence

from tunebuzz.errors import InvalidInput
from tunebuzz.store import CATALOG, KeyedStore
from .records import SongEntry

logger = logging.getLogger(__name__)


def sample_indices(population: int, count: int, rng: Optional[random.Random] = None) -> List[int]:
    """Distinct indices in ``[0, population)``, in the order they were drawn."""
    rng = rng or random
    return rng.sample(range(population), count)


def sample(catalog: Sequence[SongEntry], requested: int, rng: Optional[random.Random] = None) -> List[SongEntry]:
    """Pick up to ``requested`` distinct catalog entries; draw order is round order."""
    if not catalog:
        raise InvalidInput('catalog is empty')
    if not isinstance(requested, int) or isinstance(requested, bool) or requested < 1:
        raise InvalidInput(f'number of rounds must be a positive integer, got {requested!r}')
    count = min(requested, len(catalog))
    return [catalog[i] for i in sample_indices(len(catalog), count, rng)]


def load_catalog(store: KeyedStore, genre: str) -> List[SongEntry]:
    entries = [SongEntry.from_dict(doc) for doc in store.query(CATALOG, 'genre', genre)]
    logger.debug(f"[catalog] genre={genre} songs={len(entries)}")
    return entries


def seed_catalog(store: KeyedStore, entries: Sequence[dict], genre: Optional[str] = None) -> int:
    """Write catalog songs; each entry needs a ``genre`` unless one is given."""
    count = 0
    for entry in entries:
        song = SongEntry.from_dict(entry)
        entry_genre = genre or entry.get('genre')
        if not entry_genre:
            raise InvalidInput(f'catalog entry {song.name!r} has no genre')
        store.put(CATALOG, uuid.uuid4().hex, {**song.to_dict(), 'genre': entry_genre})
        count += 1
    return count
