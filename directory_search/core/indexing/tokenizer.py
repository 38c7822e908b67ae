import re
import unicodedata
from typing import Optional

_TOKEN_RE = re.compile(r"[^\W_]+")

STOPWORDS = frozenset(
    """
    a about above after again against all am an and any are aren as at be
    because been before being below between both but by can cannot could
    couldn did didn do does doesn doing don down during each few for from
    further had hadn has hasn have haven having he her here hers herself him
    himself his how i if in into is isn it its itself just let ll me more most
    mustn my myself no nor not of off on once only or other ought our ours
    ourselves out over own re same shan she should shouldn so some such than
    that the their theirs them themselves then there these they this those
    through to too under until up ve very was wasn we were weren what when
    where which while who whom why will with won would wouldn you your yours
    yourself yourselves
    """.split()
)


def tokenize(text: Optional[str]) -> list[str]:
    """Normalize text into content tokens.

    Lowercases, strips punctuation, drops stopwords and single characters.
    Order and duplicates are preserved since term counts depend on them.
    """
    if not text:
        return []

    normalized = unicodedata.normalize("NFKC", text).lower()
    return [
        token
        for token in _TOKEN_RE.findall(normalized)
        if len(token) > 1 and token not in STOPWORDS
    ]
