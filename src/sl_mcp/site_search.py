"""Site search over the SL site catalog.

Scores each site name against the query (exact > prefix > contains) after
normalizing both sides, then orders ties by name length and Swedish
alphabetical order.
"""

import unicodedata
from typing import Sequence

from .models import Site, SiteAmbiguous, SiteMatch, SiteNotFound, SiteResolved
from .normalizers import normalize_text

EXACT, PREFIX, CONTAINS = 3, 2, 1
AMBIGUITY_THRESHOLD = PREFIX

# Swedish alphabet: å, ä, ö sort after z; æ/ø are treated as ä/ö.
_SWEDISH_TAIL = {"å": 27, "ä": 28, "æ": 28, "ö": 29, "ø": 29}


def _strip_accents(char: str) -> str:
    """Remove diacritics from a single character via NFKD decomposition."""
    nfkd = unicodedata.normalize("NFKD", char)
    return "".join(c for c in nfkd if not unicodedata.combining(c))


def _collation_key(name: str) -> tuple:
    """Sort key approximating Swedish locale collation.

    Primary order is case-insensitive with the Swedish letters after z and
    other accented letters folded to their base letter. Punctuation, spaces
    and digits sort before letters. The original name breaks remaining ties.
    """
    primary = []
    for char in name.casefold():
        if char in _SWEDISH_TAIL:
            primary.append(1000 + _SWEDISH_TAIL[char])
            continue
        for base in _strip_accents(char):
            if "a" <= base <= "z":
                primary.append(1000 + ord(base) - ord("a") + 1)
            else:
                primary.append(ord(base))
    return (tuple(primary), name)


def _score(normalized_name: str, normalized_query: str) -> int:
    if normalized_name == normalized_query:
        return EXACT
    if normalized_name.startswith(normalized_query):
        return PREFIX
    if normalized_query in normalized_name:
        return CONTAINS
    return 0


def _rank(sites: Sequence[Site], query: str) -> list[tuple[int, Site]]:
    """Return (score, site) pairs with a positive score, best first."""
    normalized_query = normalize_text(query)
    if not normalized_query:
        return []

    scored = []
    for site in sites:
        normalized_name = normalize_text(site.name)
        score = _score(normalized_name, normalized_query)
        if score > 0:
            scored.append((score, len(normalized_name), site))

    scored.sort(key=lambda entry: (-entry[0], entry[1], _collation_key(entry[2].name)))
    return [(score, site) for score, _, site in scored]


def get_site_candidates(sites: Sequence[Site], query: str, max_results: int) -> list[Site]:
    """Search sites by name.

    Args:
        sites: The site catalog
        query: Free-text station name (e.g., "t-centralen", "Slussen")
        max_results: Maximum number of sites to return

    Returns:
        Matching sites, best match first.
    """
    return [site for _, site in _rank(sites, query)[:max_results]]


def resolve_site_match(sites: Sequence[Site], query: str) -> SiteMatch:
    """Resolve a station name to one site, or report why it could not.

    Ties at prefix or exact level are reported as ambiguous rather than
    guessed; ties at the weaker "contains" level go to the tie-break winner.
    """
    ranked = _rank(sites, query)
    if not ranked:
        return SiteNotFound()

    top_score = ranked[0][0]
    top = [site for score, site in ranked if score == top_score]
    if top_score >= AMBIGUITY_THRESHOLD and len(top) > 1:
        return SiteAmbiguous(candidates=tuple(top))
    return SiteResolved(site=ranked[0][1])
