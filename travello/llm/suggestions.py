"""Follow-up prompt suggestions derived from recent chat text."""
from typing import List, Tuple

DEFAULT_COUNT = 3
MAX_SUGGESTIONS = 5

DEFAULT_SUGGESTIONS = ["Destinasi populer", "Hotel terdekat", "Tips traveling"]

# (keywords, suggestions) checked in order; the first match wins.
SUGGESTION_RULES: Tuple[Tuple[Tuple[str, ...], List[str]], ...] = (
    (("bali",), ["Hotel murah di Bali", "Transportasi di Bali", "Makanan halal Bali"]),
    (("yogyakarta", "jogja", "yogya"), ["Candi Borobudur", "Hotel dekat Malioboro", "Makanan khas Jogja"]),
    (("lombok",), ["Gili Trawangan", "Hotel di Senggigi", "Ayam Taliwang"]),
    (("hotel", "penginapan", "villa", "hostel"), ["Hotel bintang 3", "Villa untuk keluarga", "Hostel backpacker"]),
    (("budget", "hemat", "murah"), ["Tips hemat traveling", "Paket wisata murah", "Hostel terbaik"]),
    (("transportasi", "pesawat", "kereta"), ["Sewa mobil", "Tiket pesawat murah", "Kereta api"]),
    (("makanan", "restoran", "kuliner"), ["Makanan halal", "Kuliner khas", "Restoran keluarga"]),
)


def derive_suggestions(text: str, count: int = DEFAULT_COUNT) -> List[str]:
    """Return up to ``count`` (capped at 5) suggestions for ``text``.

    Pure keyword matching; falls back to a generic set when nothing matches.
    """
    count = max(1, min(count, MAX_SUGGESTIONS))
    lowered = (text or "").lower()
    for keywords, suggestions in SUGGESTION_RULES:
        if any(keyword in lowered for keyword in keywords):
            return suggestions[:count]
    return DEFAULT_SUGGESTIONS[:count]
