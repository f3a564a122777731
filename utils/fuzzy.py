import logging
import math
import re
import unicodedata
from config import FUZZY_MATCH_THRESHOLD, MIN_SUBSTRING_LENGTH, WORD_SIMILARITY_THRESHOLD
from dataclasses import dataclass
from rapidfuzz.distance import Levenshtein
from utils.venue_names import extract_core_venue_name

logger = logging.getLogger(__name__)

PREFIX_PATTERN = re.compile(r'^(william randolph hearst|the)\s+')
AT_PLACE_PATTERN = re.compile(r'\s+(at|@)\s+(the\s+)?[\w\s]+$')
VENUE_TYPE_PATTERN = re.compile(
    r'\b(amphitheatre|amphitheater|theater|theatre|venue|winery|arena|stadium|hall|center|centre|auditorium|pavilion)\b'
)
PUNCTUATION_PATTERN = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()'\"‘’“”\[\]<>|\\@]")
WHITESPACE_PATTERN = re.compile(r'\s+')

# Generic words that appear in unrelated venue names and never prove two names refer to the same place
GENERIC_VENUE_WORDS = {
    'the', 'and', 'lounge', 'center', 'centre', 'hall', 'theater', 'theatre',
    'amphitheatre', 'amphitheater', 'arena', 'stadium', 'ballroom', 'club',
    'bar', 'cafe', 'room', 'house', 'park',
}


@dataclass
class BestMatch:
    name: str
    score: int


def similarity(a: str, b: str) -> int:
    """Levenshtein similarity on a 0-100 scale, case-insensitive"""
    if not a or not b:
        return 0

    lower_a = a.lower()
    lower_b = b.lower()
    if lower_a == lower_b:
        return 100

    distance = Levenshtein.distance(lower_a, lower_b)
    max_length = max(len(a), len(b))
    return math.floor((max_length - distance) / max_length * 100 + 0.5)


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize('NFD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_venue_name(name: str) -> str:
    """Lowercase, accent-free venue name without articles, "at the X" clauses, venue-type words or punctuation"""
    text = strip_accents(name.lower())
    text = PREFIX_PATTERN.sub('', text)
    text = AT_PLACE_PATTERN.sub('', text)
    text = VENUE_TYPE_PATTERN.sub('', text)
    text = PUNCTUATION_PATTERN.sub('', text)
    return WHITESPACE_PATTERN.sub(' ', text).strip()


def _significant_words(normalized: str) -> list[str]:
    return [w for w in normalized.split() if len(w) > 2 and w not in GENERIC_VENUE_WORDS]


def _contains(haystack: str, needle: str) -> bool:
    return bool(needle) and needle in haystack


def _words_overlap(words_a: list[str], words_b: list[str]) -> bool:
    for word_a in words_a:
        for word_b in words_b:
            if word_a in word_b or word_b in word_a:
                return True
            if similarity(word_a, word_b) >= WORD_SIMILARITY_THRESHOLD:
                return True
    return False


def is_fuzzy_match(name1: str, name2: str, threshold: int = FUZZY_MATCH_THRESHOLD) -> bool:
    """
    Decide whether two venue names refer to the same place

    Stages run from cheapest to loosest and stop at the first success:
    exact match, raw substring, normalized substring, core-name match,
    then a significant-word gate before the final similarity threshold.
    """
    if not name1 or not name2:
        return False

    lower1 = name1.lower().strip()
    lower2 = name2.lower().strip()

    if lower1 == lower2:
        return True

    # Raw containment runs before normalization, which would drop "Mann" from "TD Pavilion at the Mann"
    if len(lower1) >= MIN_SUBSTRING_LENGTH and lower1 in lower2:
        logger.debug(f"Fuzzy match: '{name1}' is a substring of '{name2}'")
        return True
    if len(lower2) >= MIN_SUBSTRING_LENGTH and lower2 in lower1:
        logger.debug(f"Fuzzy match: '{name2}' is a substring of '{name1}'")
        return True

    normalized1 = normalize_venue_name(name1)
    normalized2 = normalize_venue_name(name2)

    if _contains(normalized2, normalized1) or _contains(normalized1, normalized2):
        return True

    core1 = normalize_venue_name(extract_core_venue_name(name1))
    core2 = normalize_venue_name(extract_core_venue_name(name2))

    if core1 == core2 and len(core1) >= MIN_SUBSTRING_LENGTH:
        logger.debug(f"Fuzzy match: core name '{core1}' shared by '{name1}' and '{name2}'")
        return True

    if (len(core1) >= MIN_SUBSTRING_LENGTH and core1 in normalized2) or (
        len(core2) >= MIN_SUBSTRING_LENGTH and core2 in normalized1
    ):
        logger.debug(f"Fuzzy match: core name substring between '{name1}' and '{name2}'")
        return True

    words1 = _significant_words(normalized1)
    words2 = _significant_words(normalized2)
    if words1 and words2 and not _words_overlap(words1, words2):
        logger.debug(f"Fuzzy match rejected: no significant word overlap between '{name1}' {words1} and '{name2}' {words2}")
        return False

    score = similarity(normalized1, normalized2)
    logger.debug(f"Fuzzy match: '{name1}' vs '{name2}' scored {score}% (threshold {threshold}%)")
    return score >= threshold


def best_match(target: str, candidates: list[str], threshold: int = FUZZY_MATCH_THRESHOLD) -> BestMatch | None:
    """Highest-scoring candidate at or above threshold, compared on normalized names"""
    if not target or not candidates:
        return None

    normalized_target = normalize_venue_name(target)
    best = None

    for candidate in candidates:
        score = similarity(normalized_target, normalize_venue_name(candidate))
        if score >= threshold and (best is None or score > best.score):
            best = BestMatch(name=candidate, score=score)

    return best
