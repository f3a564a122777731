import pytest
from utils.fuzzy import best_match, is_fuzzy_match, normalize_venue_name, similarity
from utils.venue_names import extract_core_venue_name, first_significant_word, first_word, simplify_venue_name


class TestSimilarity:
    """Test suite for the Levenshtein similarity score"""

    def test_identical_ignoring_case(self):
        assert similarity('Neumos', 'NEUMOS') == 100

    def test_empty_strings_score_zero(self):
        assert similarity('', 'Neumos') == 0
        assert similarity('Neumos', '') == 0

    def test_partial_similarity(self):
        # kitten -> sitting is three edits over seven characters
        assert similarity('kitten', 'sitting') == 57

    def test_score_is_bounded(self):
        score = similarity('abc', 'xyz')
        assert 0 <= score <= 100


class TestNormalizeVenueName:
    """Test suite for venue name normalization"""

    def test_strips_article_and_venue_type(self):
        assert normalize_venue_name('The Gorge Amphitheatre') == 'gorge'

    def test_strips_at_clause(self):
        assert normalize_venue_name('Showbox at the Market') == 'showbox'

    def test_strips_accents_and_punctuation(self):
        assert normalize_venue_name("Café Nine's Hall") == 'cafe nines'

    def test_strips_sponsor_prefix(self):
        assert normalize_venue_name('William Randolph Hearst Greek Theatre') == 'greek'


class TestIsFuzzyMatch:
    """Test suite for multi-stage venue name matching"""

    def test_article_and_venue_type_variants_match(self):
        assert is_fuzzy_match('The Gorge', 'Gorge Amphitheatre', 70)

    def test_unrelated_venues_do_not_match(self):
        assert not is_fuzzy_match('Madison Square Garden', 'The Gorge', 70)

    @pytest.mark.parametrize('name', ['Neumos', 'The Crocodile', 'Red Rocks Amphitheatre', 'X'])
    def test_name_matches_itself(self, name):
        assert is_fuzzy_match(name, name, 100)

    def test_raw_substring(self):
        assert is_fuzzy_match('Paramount', 'Paramount Theatre Seattle')

    def test_at_clause_is_ignored(self):
        assert is_fuzzy_match('Showbox at the Market', 'The Showbox')

    def test_resort_clause_matches_listing_name(self):
        assert is_fuzzy_match('Sphere at The Venetian Resort', 'The Sphere Las Vegas')

    def test_significant_word_gate_rejects_lookalikes(self):
        assert not is_fuzzy_match('Neumos', 'Moore Theatre')

    def test_empty_names_never_match(self):
        assert not is_fuzzy_match('', 'Neumos')
        assert not is_fuzzy_match('Neumos', '')


class TestBestMatch:
    """Test suite for picking the closest candidate"""

    def test_picks_highest_score(self):
        result = best_match('The Showbox', ['Showbox SoDo', 'The Showbox', 'Neumos'])
        assert result.name == 'The Showbox'
        assert result.score == 100

    def test_returns_none_below_threshold(self):
        assert best_match('Neumos', ['Paramount Theatre', 'Climate Pledge Arena']) is None

    def test_returns_none_without_candidates(self):
        assert best_match('Neumos', []) is None


class TestVenueNames:
    """Test suite for venue name primitives"""

    @pytest.mark.parametrize(
        'venue_name,expected',
        [
            ('Sphere at The Venetian Resort', 'Sphere'),
            ('Red Rocks Amphitheatre', 'Rocks'),
            ('The Mann Center', 'Mann'),
            ('TD Bank Center', 'TD Bank'),
        ],
    )
    def test_extract_core_venue_name(self, venue_name, expected):
        assert extract_core_venue_name(venue_name) == expected

    def test_extract_core_keeps_empty_input(self):
        assert extract_core_venue_name('') == ''

    def test_simplify_venue_name(self):
        assert simplify_venue_name('Showbox at the Market') == 'Showbox'
        assert simplify_venue_name('Neumos') == 'Neumos'

    def test_first_word(self):
        assert first_word('The Gorge Amphitheatre') == 'The'

    def test_first_significant_word(self):
        assert first_significant_word('The Crocodile') == 'Crocodile'
        assert first_significant_word('At The') == 'At'
