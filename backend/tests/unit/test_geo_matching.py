from __future__ import annotations

import pytest

from matchfeed.domain import geo, matching
from matchfeed.domain.profiles import Coordinates, Profile

DETROIT = Coordinates(latitude=42.33, longitude=-83.05)
ANN_ARBOR = Coordinates(latitude=42.28, longitude=-83.74)


def test_distance_between_detroit_and_ann_arbor():
    distance = geo.distance_miles(DETROIT, ANN_ARBOR)
    assert distance is not None
    assert 30 <= distance <= 45
    assert geo.distance_miles(ANN_ARBOR, DETROIT) == distance


def test_distance_rounds_to_whole_miles():
    assert geo.distance_miles(DETROIT, DETROIT) == 0
    assert isinstance(geo.distance_miles(DETROIT, ANN_ARBOR), int)


def test_distance_unknown_when_either_side_missing():
    assert geo.distance_miles(None, ANN_ARBOR) is None
    assert geo.distance_miles(DETROIT, None) is None


def test_within_radius_is_permissive_for_unknown_locations():
    far = Coordinates(latitude=42.33, longitude=-86.0)
    assert geo.within_radius(DETROIT, ANN_ARBOR, 100)
    assert not geo.within_radius(DETROIT, far, 100)
    assert geo.within_radius(None, far, 100)
    assert geo.within_radius(DETROIT, None, 1)


def _profile(user_id: str, *, gender=None, orientation=None, interested_in=()) -> Profile:
    return Profile(
        user_id=user_id,
        gender_identity=gender,
        support_orientation=orientation,
        interested_in=frozenset(interested_in),
    )


@pytest.mark.parametrize(
    ("author", "viewer", "expected"),
    [
        ("providing", "receiving", True),
        ("receiving", "providing", True),
        ("providing", "providing", False),
        ("receiving", "receiving", False),
        ("either", "providing", True),
        ("providing", "either", True),
        ("private", "receiving", True),
        (None, "providing", True),
        ("providing", None, True),
    ],
)
def test_support_orientation_compatibility(author, viewer, expected):
    assert matching.matches_support_orientation(author, viewer) is expected


def test_gender_preference_maps_identity_to_interest():
    assert matching.matches_gender_preference("woman", {"women"})
    assert matching.matches_gender_preference("Man", {"men"})
    assert not matching.matches_gender_preference("man", {"women"})
    assert matching.matches_gender_preference("nonbinary", {"nonbinary"})


def test_gender_preference_is_lenient_when_unset():
    assert matching.matches_gender_preference(None, {"women"})
    assert matching.matches_gender_preference("man", set())


def test_base_match_is_directional():
    woman = _profile("w", gender="woman", orientation="providing", interested_in={"men"})
    man = _profile("m", gender="man", orientation="receiving", interested_in={"nonbinary"})
    # man is interested in nonbinary only, so the woman is not shown to him
    assert not matching.is_base_match(woman, man)
    # the woman is interested in men and orientations pair up
    assert matching.is_base_match(man, woman)


def test_base_match_requires_both_checks():
    author = _profile("a", gender="woman", orientation="providing")
    viewer = _profile("v", orientation="providing", interested_in={"women"})
    assert not matching.is_base_match(author, viewer)
