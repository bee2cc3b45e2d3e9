from typing import Iterable, NamedTuple


class MatchResult(NamedTuple):
    song_correct: bool
    artist_correct: bool

    @property
    def correct(self) -> bool:
        return self.song_correct and self.artist_correct


def _bounded_at(text: str, start: int, end: int) -> bool:
    before_ok = start == 0 or text[start - 1] == ' '
    after_ok = end == len(text) or text[end] == ' '
    return before_ok and after_ok


def contains_phrase(text: str, phrase: str) -> bool:
    """True if ``phrase`` occurs in ``text`` with a space (or the string edge) on both sides."""
    if not phrase:
        return False
    start = text.find(phrase)
    while start >= 0:
        if _bounded_at(text, start, start + len(phrase)):
            return True
        start = text.find(phrase, start + 1)
    return False


def is_accepted(guess: str, candidates: Iterable[str]) -> bool:
    """Whether any accepted name appears in the guess as a whole-word phrase.

    "no" is accepted in "no way" but not in "a piano piece".
    """
    text = (guess or '').lower()
    for candidate in candidates or ():
        if contains_phrase(text, (candidate or '').lower()):
            return True
    return False


def score_guess(guess: str, accepted_song_names: Iterable[str], accepted_artist_names: Iterable[str]) -> MatchResult:
    song_correct = is_accepted(guess, accepted_song_names)
    # A wrong song is never checked for the artist.
    artist_correct = song_correct and is_accepted(guess, accepted_artist_names)
    return MatchResult(song_correct, artist_correct)
