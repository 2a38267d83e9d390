"""Locally rendered SVG placeholder used when every image provider fails.

The output depends only on the prompt text, so the same prompt always
yields the same data URL.
"""

import base64
from xml.sax.saxutils import escape

CANVAS_WIDTH = 800
CANVAS_HEIGHT = 600
CAPTION_LIMIT = 50
BRAND_LINE = "Cerebray AI"


def shorten_caption(prompt: str, limit: int = CAPTION_LIMIT) -> str:
    """Truncate the prompt for display, marking the cut with an ellipsis."""
    text = " ".join((prompt or "").split())
    return text[:limit] + "..." if len(text) > limit else text


def create_image_svg(prompt: str) -> str:
    """Return SVG markup for an 800x600 placeholder captioned with the prompt."""
    caption = escape(shorten_caption(prompt), {'"': "&quot;"})
    return f"""<svg width="{CANVAS_WIDTH}" height="{CANVAS_HEIGHT}" xmlns="http://www.w3.org/2000/svg">
    <defs>
        <linearGradient id="grad" x1="0%" y1="0%" x2="100%" y2="100%">
            <stop offset="0%" style="stop-color:#4A90E2;stop-opacity:1" />
            <stop offset="100%" style="stop-color:#2C3E50;stop-opacity:1" />
        </linearGradient>
    </defs>
    <rect width="100%" height="100%" fill="url(#grad)" rx="15" ry="15"/>
    <rect x="50" y="50" width="700" height="500" fill="rgba(255,255,255,0.1)" rx="10" ry="10" stroke="#ffffff" stroke-width="2" stroke-opacity="0.3"/>
    <text x="50%" y="45%" font-family="Arial, sans-serif" font-size="24" fill="#FFFFFF" text-anchor="middle" dominant-baseline="middle">Image Generation Failed</text>
    <text x="50%" y="55%" font-family="Arial, sans-serif" font-size="18" fill="#FFFFFF" text-anchor="middle" dominant-baseline="middle">{caption}</text>
    <text x="50%" y="90%" font-family="Arial, sans-serif" font-size="14" fill="#FFFFFF" text-anchor="middle" dominant-baseline="middle">{BRAND_LINE}</text>
</svg>"""


def placeholder_data_url(prompt: str) -> str:
    """Encode the placeholder SVG as a self-contained base64 data URL."""
    encoded = base64.b64encode(create_image_svg(prompt).encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
