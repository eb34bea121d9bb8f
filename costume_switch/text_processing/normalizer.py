import re

# Zero-width characters and the byte-order mark
_INVISIBLE_CHARS = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
# Markdown emphasis markers (*, _, ~) used by chat front-ends
_EMPHASIS_MARKERS = re.compile(r"[*_~]+")
_NBSP_CHARS = re.compile("[\u00a0\u202f\u2007]")

_QUOTE_TRANSLATION = str.maketrans({
    "\u201c": '"', "\u201d": '"', "\u201e": '"', "\u00ab": '"', "\u00bb": '"',
    "\u2018": "'", "\u2019": "'", "\u201a": "'", "\u2032": "'",
})


def normalize_stream_text(text: str) -> str:
    """
    Normalize one incoming chunk of streamed text.

    Strips zero-width characters and the BOM, converts curly quotes to
    straight quotes, removes markdown emphasis markers and turns non-breaking
    spaces into plain spaces. The transformation is applied to each token as
    it arrives; text already in the buffer is never normalized twice.
    """
    if not text:
        return ""
    text = _INVISIBLE_CHARS.sub("", text)
    text = text.translate(_QUOTE_TRANSLATION)
    text = _EMPHASIS_MARKERS.sub("", text)
    text = _NBSP_CHARS.sub(" ", text)
    return text


def build_stream_buffer(existing: str, token: str, limit: int = 0) -> str:
    """Append ``token`` and keep only the trailing ``limit`` characters (``limit <= 0`` keeps all)."""
    combined = f"{existing or ''}{token or ''}"
    if limit and limit > 0 and len(combined) > limit:
        return combined[len(combined) - limit:]
    return combined
