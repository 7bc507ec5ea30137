"""Generation backends behind the generation client.

A backend makes exactly one attempt per ``generate`` call; validation,
timeouts and retries belong to ``travello.llm.generation``.
"""
from __future__ import annotations

import re
import zlib
from typing import Dict, List, Sequence, Tuple

import openai
from loguru import logger

from travello.llm.history import ContextEntry
from travello.llm.prompt_builder import build_messages


class OpenAIChatBackend:
    """Chat completions against OpenAI or any OpenAI-compatible endpoint."""

    name = "openai"

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate(self, context: Sequence[ContextEntry], message: str) -> str:
        messages = build_messages(message, context=context)
        logger.debug(f"Calling chat completion | model={self.model} | messages={len(messages)}")
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()


# ---------------------------------------------------------------------------
# Offline keyword replies
# ---------------------------------------------------------------------------

# Checked in order; the first bucket whose pattern matches wins.
KEYWORD_BUCKETS: Tuple[Tuple[str, str], ...] = (
    ("wisata", r"wisata|destinasi|tempat|pantai|gunung|candi|pulau|danau|air terjun|liburan|travel|tourism|destination"),
    ("penginapan", r"hotel|penginapan|villa|resort|hostel|homestay|menginap|stay"),
    ("kuliner", r"makan|makanan|restoran|kuliner|food|cafe|warung"),
    ("transportasi", r"transportasi|kendaraan|mobil|bus|kereta|pesawat|tiket|cara ke|menuju"),
    ("budget", r"budget|harga|murah|hemat|biaya|ongkos"),
    ("tips", r"tips|panduan|petunjuk|saran|guide|persiapan|packing"),
    ("sapaan", r"halo|hai|hello|hi|selamat pagi|selamat siang|selamat sore|selamat malam"),
)

_BUCKET_PATTERNS = [
    (bucket, re.compile(rf"\b(?:{pattern})\b", re.IGNORECASE)) for bucket, pattern in KEYWORD_BUCKETS
]

KEYWORD_REPLIES: Dict[str, List[str]] = {
    "wisata": [
        "🌴 **Rekomendasi Wisata Bali** 🌴\n\n"
        "• Pantai Kuta: pasir putih dan sunset terbaik, masuk GRATIS\n"
        "• Pura Tanah Lot: pura di atas batu karang, tiket sekitar Rp 60.000\n"
        "• Ubud: sawah terasering Tegallalang dan Monkey Forest\n\n"
        "Waktu terbaik berkunjung adalah April-Oktober (musim kemarau). "
        "Mau saya bantu susun itinerary di Bali?",
        "🏝️ **Destinasi Populer Indonesia** 🏝️\n\n"
        "• Bali: pantai, pura, dan budaya yang kental\n"
        "• Yogyakarta: Candi Borobudur dan Prambanan\n"
        "• Lombok: Gili Trawangan dan Pantai Pink\n"
        "• Raja Ampat: surga diving di Papua Barat\n\n"
        "Destinasi mana yang ingin Anda ketahui lebih detail?",
        "🌅 **Liburan ke Bali?** Pilihan favorit wisatawan:\n\n"
        "1. Sunset di Uluwatu sambil menonton tari Kecak\n"
        "2. Snorkeling di Nusa Penida\n"
        "3. Sunrise trekking Gunung Batur\n\n"
        "Durasi ideal 5-7 hari. Butuh info penginapan atau transportasinya juga?",
    ],
    "penginapan": [
        "🏨 **Pilihan Penginapan** 🏨\n\n"
        "• Hostel: Rp 100-300 ribu/malam, cocok untuk backpacker\n"
        "• Hotel budget: Rp 300-700 ribu/malam\n"
        "• Villa & resort: mulai Rp 1 juta/malam, ideal untuk keluarga\n\n"
        "Di kota mana Anda ingin menginap dan berapa budget per malamnya?",
        "🛏️ Tips memilih hotel: cek ulasan terbaru, pastikan dekat dengan "
        "destinasi utama, dan bandingkan harga di beberapa aplikasi. "
        "Mau rekomendasi hotel di kota tertentu?",
    ],
    "kuliner": [
        "🍜 **Kuliner Khas Indonesia** 🍜\n\n"
        "• Rendang (Padang)\n• Gudeg (Yogyakarta)\n• Babi Guling & Nasi Campur (Bali)\n"
        "• Ayam Taliwang (Lombok)\n• Soto & Sate di hampir setiap kota\n\n"
        "Sedang mencari kuliner di daerah mana?",
        "🍽️ Untuk kuliner lokal, coba warung yang ramai dikunjungi warga setempat; "
        "biasanya lebih autentik dan terjangkau. Perlu rekomendasi restoran halal?",
    ],
    "transportasi": [
        "🚗 **Transportasi** 🚗\n\n"
        "• Pesawat: rute antar pulau tercepat, pesan 2-4 minggu sebelumnya\n"
        "• Kereta: nyaman untuk rute di Pulau Jawa\n"
        "• Ojek & taksi online: praktis untuk perjalanan dalam kota\n\n"
        "Dari kota mana ke mana rencana perjalanan Anda?",
        "🚆 Untuk perjalanan darat di Jawa, kereta api biasanya paling nyaman dan tepat waktu. "
        "Di Bali dan Lombok, sewa motor atau mobil memberi fleksibilitas lebih.",
    ],
    "budget": [
        "💰 **Tips Hemat Traveling** 💰\n\n"
        "• Berangkat di luar musim liburan\n• Pilih hostel atau homestay\n"
        "• Makan di warung lokal\n• Gunakan transportasi umum\n\n"
        "Berapa budget yang Anda siapkan untuk perjalanan ini?",
        "💸 Budget harian backpacker di Indonesia sekitar Rp 300-500 ribu, "
        "sudah termasuk penginapan sederhana, makan, dan transportasi lokal.",
    ],
    "tips": [
        "💡 **Tips Perjalanan di Indonesia** 💡\n\n"
        "• Waktu terbaik: April-Oktober (musim kemarau)\n"
        "• Siapkan uang tunai untuk daerah terpencil\n"
        "• Gunakan asuransi perjalanan\n• Hormati adat dan budaya setempat\n\n"
        "Perlu tips untuk destinasi tertentu?",
    ],
    "sapaan": [
        "Halo! Saya Travello Assistant 👋 Saya bisa membantu soal destinasi wisata, "
        "penginapan, kuliner, transportasi, dan tips budget traveling. Mau jalan-jalan ke mana?",
    ],
}

DEFAULT_REPLY = (
    "Saya Travello Assistant, asisten travel Anda untuk seluruh Indonesia. 🌏\n\n"
    "Saya bisa membantu dengan:\n"
    "• 📍 Destinasi wisata\n• 🏨 Hotel dan penginapan\n• 🍜 Kuliner khas daerah\n"
    "• 🚗 Transportasi dan rute\n• 💰 Tips budget traveling\n\n"
    "Contoh: \"Wisata di Bali\" atau \"Hotel murah di Yogyakarta\"."
)


def match_bucket(text: str) -> str | None:
    for bucket, pattern in _BUCKET_PATTERNS:
        if pattern.search(text or ""):
            return bucket
    return None


class KeywordReplyBackend:
    """Deterministic replies picked from keyword buckets.

    Used when no model endpoint is configured and as the test double: the
    same message always yields the same reply.
    """

    name = "keyword"

    async def generate(self, context: Sequence[ContextEntry], message: str) -> str:
        bucket = match_bucket(message)
        if bucket is None:
            return DEFAULT_REPLY
        replies = KEYWORD_REPLIES[bucket]
        return replies[zlib.crc32(message.encode("utf-8")) % len(replies)]
