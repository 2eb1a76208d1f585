"""
Fuzzy address matching for contact suggestions.

Pure functions: no API calls.
"""

import unicodedata
from typing import Iterable

# Suggestions returned per query
MAX_SUGGESTIONS = 3

TOKEN_WEIGHT = 2
SIMILARITY_WEIGHT = 10


def strip_diacritics(text: str) -> str:
    """'Štěpánská' -> 'Stepanska'."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def jaro_winkler(s1: str, s2: str) -> float:
    """Jaro-Winkler similarity in [0, 1] (prefix scale 0.1, max prefix 4)."""
    len1, len2 = len(s1), len(s2)
    if len1 == 0 and len2 == 0:
        return 1.0
    if len1 == 0 or len2 == 0:
        return 0.0

    match_distance = max(len1, len2) // 2 - 1
    s1_matches = [False] * len1
    s2_matches = [False] * len2

    matches = 0
    for i, ch in enumerate(s1):
        start = max(0, i - match_distance)
        end = min(i + match_distance + 1, len2)
        for j in range(start, end):
            if s2_matches[j] or ch != s2[j]:
                continue
            s1_matches[i] = s2_matches[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i, ch in enumerate(s1):
        if not s1_matches[i]:
            continue
        while not s2_matches[k]:
            k += 1
        if ch != s2[k]:
            transpositions += 1
        k += 1

    jaro = (matches / len1 + matches / len2 + (matches - transpositions / 2) / matches) / 3.0

    prefix = 0
    for a, b in zip(s1[:4], s2[:4]):
        if a != b:
            break
        prefix += 1

    return jaro + prefix * 0.1 * (1 - jaro)


def score_address(query: str, address: str) -> float:
    """
    +2 per query token found in the address, plus similarity x 10.

    Both sides are lowercased and stripped of diacritics first.
    """
    normalized_query = strip_diacritics(query.lower().strip())
    normalized_address = strip_diacritics(address.lower())
    tokens = normalized_query.split()
    token_score = sum(TOKEN_WEIGHT for token in tokens if token in normalized_address)
    return token_score + jaro_winkler(normalized_query, normalized_address) * SIMILARITY_WEIGHT


def suggest_addresses(query: str, addresses: Iterable[str]) -> list[dict[str, object]]:
    """
    Top matches for a partial address.

    Example:
        >>> suggest_addresses("vinohradska", ["Vinohradská 12, Praha", ""])[0]["realEstate"]
        'Vinohradská 12, Praha'
    """
    if not query or not query.split():
        return []
    scored = [
        (score_address(query, address), address)
        for address in addresses
        if address
    ]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [
        {"realEstate": address, "score": round(score, 2)}
        for score, address in scored
        if score > 0
    ][:MAX_SUGGESTIONS]
