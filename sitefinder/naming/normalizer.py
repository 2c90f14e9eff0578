"""
Company name normalization.

Turns a raw company name into the keyword tokens used both for guessing
domains and for scoring candidates, and recognises legal-entity suffixes
that hint at the company's country.
"""

import re
from typing import List, Optional


STOPWORDS = frozenset({
    'inc', 'incorporated', 'llc', 'llp', 'lp', 'ltd', 'limited', 'corp',
    'corporation', 'plc', 'pty', 'the', 'and', 'of', 'for', 'a', 'an', 'co',
    'company', 'group', 'holdings', 'ventures',
    # multi-locale legal forms
    'gmbh', 'ag', 'kg', 'sarl', 'sas', 'sa', 'bv', 'nv', 'ab', 'oy', 'aps',
    'as', 'asa', 'srl', 'spa', 'sl', 'kk', 'pvt', 'pte', 'sdn', 'bhd', 'ltda',
})

# Legal forms written as several tokens; removed before tokenizing so their
# fragments ("z", "o") don't leak into keywords.
_MULTI_WORD_FORMS = re.compile(
    r'\b(?:pty\.?\s+ltd|pvt\.?\s+ltd|pte\.?\s+ltd|sdn\.?\s+bhd|sp\.?\s*z\s*o\.?\s*o)\b\.?',
    re.IGNORECASE
)

# Dotted abbreviations collapse to their stopword form ("S.A.R.L." -> "sarl").
_DOTTED_ABBREVIATION = re.compile(r'\b(?:[a-z]\.){2,}', re.IGNORECASE)

_NON_ALNUM = re.compile(r'[^a-z0-9]+')

LEGAL_FORM_COUNTRIES = [
    (re.compile(r'\bgmbh\b', re.IGNORECASE), 'Germany'),
    (re.compile(r'\bpty\.?\s+ltd\b', re.IGNORECASE), 'Australia'),
    (re.compile(r'\bsp\.?\s*z\s*o\.?\s*o\b', re.IGNORECASE), 'Poland'),
    (re.compile(r'\bs\.?a\.?r\.?l\b', re.IGNORECASE), 'France'),
    (re.compile(r'\bb\.?v\.?(?=\s|$)', re.IGNORECASE), 'Netherlands'),
    (re.compile(r'\bab$', re.IGNORECASE), 'Sweden'),
    (re.compile(r'\boy$', re.IGNORECASE), 'Finland'),
    (re.compile(r'\baps$', re.IGNORECASE), 'Denmark'),
    (re.compile(r'\bs\.?r\.?l\b', re.IGNORECASE), 'Italy'),
    (re.compile(r'\bs\.l\.?(?=\s|$)', re.IGNORECASE), 'Spain'),
    (re.compile(r'\bk\.k\.?(?=\s|$)', re.IGNORECASE), 'Japan'),
    (re.compile(r'\bpvt\.?\s+ltd\b', re.IGNORECASE), 'India'),
    (re.compile(r'\bpte\.?\s+ltd\b', re.IGNORECASE), 'Singapore'),
    (re.compile(r'\bsdn\.?\s+bhd\b', re.IGNORECASE), 'Malaysia'),
    (re.compile(r'\bltda\b', re.IGNORECASE), 'Brazil'),
]


def raw_tokens(name: str) -> List[str]:
    """Lowercase alphanumeric tokens of a name, stopwords included."""
    if not name:
        return []
    clean = _MULTI_WORD_FORMS.sub(' ', name)
    clean = _DOTTED_ABBREVIATION.sub(lambda m: m.group(0).replace('.', ''), clean)
    clean = clean.lower().replace('&', ' and ')
    return [token for token in _NON_ALNUM.split(clean) if token]


def keywords(name: str) -> List[str]:
    """Ordered keyword tokens of a name with legal suffixes and connectives removed."""
    return [token for token in raw_tokens(name) if token not in STOPWORDS]


def scoring_keywords(name: str) -> List[str]:
    """Keywords long enough to carry signal when matching titles and domains."""
    return [token for token in keywords(name) if len(token) > 2]


def country_hint(name: str) -> Optional[str]:
    """Country implied by a legal-entity suffix, e.g. 'GmbH' -> 'Germany'."""
    if not name:
        return None
    stripped = name.strip().rstrip('.')
    for pattern, country in LEGAL_FORM_COUNTRIES:
        if pattern.search(stripped):
            return country
    return None
