"""
Top-level-domain allowlist used to reject hosts that only look like domains
(version numbers, file names, template placeholders).
"""

from typing import Iterable, Optional, FrozenSet


GENERIC_TLDS = frozenset({
    'com', 'net', 'org', 'io', 'co', 'ai', 'app', 'tech', 'biz', 'info',
    'digital', 'media', 'online', 'site', 'dev', 'cloud', 'software',
    'solutions', 'systems', 'agency', 'studio', 'design', 'store', 'shop',
    'health', 'bio', 'energy', 'finance', 'capital', 'consulting', 'group',
    'global', 'world', 'network', 'services', 'company', 'team', 'works',
    'xyz', 'edu', 'gov', 'int', 'mil', 'pro', 'law', 'legal', 'travel',
    'tv', 'fm', 'me', 'ly', 'gg', 'so', 'inc', 'llc', 'ltd', 'eco', 'green',
    'earth', 'life', 'care', 'clinic', 'dental', 'email', 'marketing',
    'partners', 'ventures', 'holdings', 'international', 'industries',
    'engineering', 'games', 'academy', 'education', 'school',
    'university', 'institute', 'foundation', 'events', 'news', 'blog',
    'live', 'space', 'one', 'top', 'zone', 'today', 'plus', 'social',
    'security', 'insure', 'insurance', 'bank', 'money', 'fund', 'investments',
    'properties', 'realty', 'estate', 'homes', 'build', 'construction',
    'auto', 'cars', 'delivery', 'express', 'logistics', 'shipping',
    'restaurant', 'cafe', 'coffee', 'wine', 'beer', 'farm', 'fashion',
    'clothing', 'beauty', 'fitness', 'yoga', 'photography', 'film', 'music',
    'art', 'gallery', 'london', 'nyc', 'berlin', 'paris', 'tokyo', 'asia',
    'africa', 'eu',
})

COUNTRY_CODE_TLDS = frozenset("""
ac ad ae af ag ai al am ao aq ar as at au aw ax az ba bb bd be bf bg bh bi bj
bm bn bo br bs bt bw by bz ca cc cd cf cg ch ci ck cl cm cn co cr cu cv cw cx
cy cz de dj dk dm do dz ec ee eg er es et fi fj fk fm fo fr ga gd ge gf gg gh
gi gl gm gn gp gq gr gs gt gu gw gy hk hm hn hr ht hu id ie il im in io iq ir
is it je jm jo jp ke kg kh ki km kn kp kr kw ky kz la lb lc li lk lr ls lt lu
lv ly ma mc md me mg mh mk ml mm mn mo mp mq mr ms mt mu mv mw mx my mz na nc
ne nf ng ni nl no np nr nu nz om pa pe pf pg ph pk pl pm pn pr ps pt pw py qa
re ro rs ru rw sa sb sc sd se sg sh si sk sl sm sn so sr ss st sv sx sy sz tc
td tf tg th tj tk tl tm tn to tr tt tv tw tz ua ug uk us uy uz va vc ve vg vi
vn vu wf ws ye yt za zm zw
""".split())

# Second-level labels that form part of a country-code suffix (acme.co.uk).
SECOND_LEVEL_LABELS = frozenset({'co', 'com', 'org', 'net', 'ac', 'gov', 'edu'})


class TLDAllowlist:
    """
    Decide whether a host ends in a recognised top-level domain.
    """

    def __init__(self, extra_tlds: Optional[Iterable[str]] = None):
        """
        Args:
            extra_tlds: Additional TLDs to accept (e.g. from configuration)
        """
        extra = {tld.lower().strip().lstrip('.') for tld in (extra_tlds or []) if tld.strip()}
        self.allowed: FrozenSet[str] = GENERIC_TLDS | COUNTRY_CODE_TLDS | frozenset(extra)

    def is_valid_host(self, host: Optional[str]) -> bool:
        """Check the last one or two labels of a host against the allowlist."""
        if not host or '.' not in host:
            return False

        labels = host.lower().rstrip('.').split('.')
        if len(labels) < 2 or not all(labels):
            return False

        last = labels[-1]
        if not last.isalpha():
            return False

        return last in self.allowed or '.'.join(labels[-2:]) in self.allowed


def split_tld(host: str) -> tuple:
    """Split a host into (labels before the TLD, TLD).

    The TLD is the last label, or the last two when the host ends in a
    country-code suffix such as ``co.uk`` or ``com.au``.
    """
    labels = host.lower().split('.')
    if (len(labels) >= 3 and labels[-2] in SECOND_LEVEL_LABELS
            and len(labels[-1]) == 2):
        return labels[:-2], '.'.join(labels[-2:])
    return labels[:-1], labels[-1]
