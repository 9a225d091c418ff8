"""Base match: the directional compatibility test gating visibility.

``is_base_match(author, viewer)`` answers "may ``viewer`` be shown ``author``?".
It combines two checks:

* gender reciprocity, one way only: the author's gender identity must be in
  the viewer's interested-in set;
* support-orientation compatibility: ``providing`` pairs with ``receiving``;
  ``either``, ``private`` and unset pair with everything.

Block relationships are not considered here; callers exclude blocked ids
separately.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from matchfeed.domain.profiles import SupportOrientation

# Profiles store the identity ("woman"); interested-in stores the plural ("women").
GENDER_TO_INTEREST = {
	"man": "men",
	"woman": "women",
	"nonbinary": "nonbinary",
}

_WILDCARD_ORIENTATIONS = {None, "", SupportOrientation.EITHER.value, SupportOrientation.PRIVATE.value}


class Matchable(Protocol):
	gender_identity: Optional[str]
	support_orientation: Optional[str]


class MatchableViewer(Matchable, Protocol):
	interested_in: frozenset[str]


def _normalise(value: Optional[str]) -> Optional[str]:
	if value is None:
		return None
	text = str(value).strip().lower()
	return text or None


def matches_gender_preference(author_gender: Optional[str], viewer_interested_in: Iterable[str]) -> bool:
	interests = {_normalise(item) for item in viewer_interested_in or ()} - {None}
	if not interests:
		return True
	gender = _normalise(author_gender)
	if gender is None:
		return True
	return GENDER_TO_INTEREST.get(gender, gender) in interests or gender in interests


def matches_support_orientation(author_orientation: Optional[str], viewer_orientation: Optional[str]) -> bool:
	author = _normalise(author_orientation)
	viewer = _normalise(viewer_orientation)
	if author in _WILDCARD_ORIENTATIONS or viewer in _WILDCARD_ORIENTATIONS:
		return True
	if viewer == SupportOrientation.PROVIDING.value:
		return author == SupportOrientation.RECEIVING.value
	if viewer == SupportOrientation.RECEIVING.value:
		return author == SupportOrientation.PROVIDING.value
	# Unknown values stay lenient.
	return True


def is_base_match(author: Matchable, viewer: MatchableViewer) -> bool:
	if not matches_gender_preference(author.gender_identity, viewer.interested_in):
		return False
	return matches_support_orientation(author.support_orientation, viewer.support_orientation)

