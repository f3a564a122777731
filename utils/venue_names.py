import logging
import re

logger = logging.getLogger(__name__)

LEADING_ARTICLE_PATTERN = re.compile(r'^(the|a|an)\s+', re.IGNORECASE)
AT_PLACE_PREFIX_PATTERN = re.compile(r'^(.+?)\s+at\s+(the\s+)?', re.IGNORECASE)
AT_PLACE_SUFFIX_PATTERN = re.compile(r'\s+(at|@)\s+(the\s+)?[\w\s]+$', re.IGNORECASE)
VENUE_TYPE_SUFFIX_PATTERN = re.compile(
    r'\s+(amphitheatre|amphitheater|theater|theatre|arena|stadium|center|centre|pavilion|pavillion|hall|ballroom)$',
    re.IGNORECASE,
)

# Sponsor prefixes and connectors that never identify a venue on their own
CORE_NAME_COMMON_WORDS = {'the', 'at', 'of', 'and', 'in', 'td', 'bank', 'center', 'centre'}
LEADING_FILLER_WORDS = {'the', 'a', 'an', 'at'}


def extract_core_venue_name(venue_name: str) -> str:
    """
    Reduce a venue title to its most distinctive word

    Examples:
        "Sphere at The Venetian Resort" -> "Sphere"
        "Red Rocks Amphitheatre" -> "Rocks"
        "The Mann Center" -> "Mann"

    Falls back to the original name when stripping leaves nothing.
    """
    if not venue_name:
        return venue_name

    name = LEADING_ARTICLE_PATTERN.sub('', venue_name).strip()

    at_match = AT_PLACE_PREFIX_PATTERN.match(name)
    if at_match:
        name = at_match.group(1).strip()

    name = VENUE_TYPE_SUFFIX_PATTERN.sub('', name).strip()

    words = name.split()
    if not words:
        logger.debug(f"Core name of '{venue_name}' came out empty, keeping original")
        return venue_name

    significant = [w for w in words if w.lower() not in CORE_NAME_COMMON_WORDS and not w.isdigit()]
    if significant:
        return significant[-1]

    return name


def simplify_venue_name(venue_name: str) -> str:
    """Drop a trailing "at the X" / "@ X" clause: "Showbox at the Market" -> "Showbox" """
    return AT_PLACE_SUFFIX_PATTERN.sub('', venue_name).strip()


def first_word(venue_name: str) -> str:
    words = venue_name.split()
    return words[0] if words else venue_name


def first_significant_word(venue_name: str) -> str:
    """First word that is not an article or connector, or the first word if all are"""
    words = venue_name.split()
    if not words:
        return venue_name
    return next((w for w in words if w.lower() not in LEADING_FILLER_WORDS), words[0])
