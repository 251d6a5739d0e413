"""Text normalization, directions detection and distance parsing."""

import math

import pytest

from backend.app.concierge.normalize import (
    WALKING_METRES_PER_MINUTE,
    distance_to_metres,
    is_directions_intent,
    normalise_category,
    normalize,
)


class TestNormalize:
    def test_lowercases_and_strips_punctuation(self):
        assert normalize("  Hello, World!! ") == "hello world"

    def test_none_and_empty(self):
        assert normalize(None) == ""
        assert normalize("") == ""
        assert normalize("?!...") == ""

    def test_non_ascii_letters_become_spaces(self):
        assert normalize("Déjà-vu!!  123") == "d j vu 123"

    def test_collapses_whitespace(self):
        assert normalize("a\t\tb\n\nc") == "a b c"

    def test_idempotent(self):
        once = normalize("Keells  Super - Kollupitiya")
        assert normalize(once) == once


class TestDirectionsIntent:
    @pytest.mark.parametrize(
        "message",
        [
            "How do I get to Galle Face Green?",
            "directions to the beach please",
            "What's the best way to the station",
            "how can i go there",
        ],
    )
    def test_positive(self, message):
        assert is_directions_intent(message)

    @pytest.mark.parametrize(
        "message",
        ["What is the wifi password?", "We go tomorrow", "", None],
    )
    def test_negative(self, message):
        assert not is_directions_intent(message)


class TestDistance:
    def test_kilometres(self):
        assert distance_to_metres("1.2 km") == pytest.approx(1200)

    def test_metres(self):
        assert distance_to_metres("400 m") == 400
        assert distance_to_metres("400m") == 400

    def test_minutes_use_walking_pace(self):
        assert distance_to_metres("5 min") == 5 * WALKING_METRES_PER_MINUTE
        assert distance_to_metres("3 minutes walk") == 3 * WALKING_METRES_PER_MINUTE

    def test_bare_number_is_metres(self):
        assert distance_to_metres("about 250") == 250

    def test_unparsable_sorts_last(self):
        assert distance_to_metres("") == math.inf
        assert distance_to_metres(None) == math.inf
        assert distance_to_metres("next door") == math.inf

    def test_reference_values(self):
        assert distance_to_metres("0.5 km") == 500
        assert distance_to_metres("500 m") == 500
        assert distance_to_metres("2 mins") == 160

    def test_km_before_minutes(self):
        assert distance_to_metres("2 km / 25 min") == 2000


def test_normalise_category():
    assert normalise_category("  Pharmacy ") == "pharmacy"
    assert normalise_category(None) == ""
