"""
Summary image: catalog size and the top countries by estimated GDP.
"""

import logging
import os
import tempfile
from datetime import datetime
from typing import List, Optional, Sequence

from PIL import Image, ImageDraw, ImageFont

from config import settings

logger = logging.getLogger(__name__)

WIDTH = 800
HEIGHT = 600
TOP_N = 5

BACKGROUND = "#1a1a1a"
TITLE_COLOR = "#ffffff"
TOTAL_COLOR = "#4ade80"
HEADER_COLOR = "#60a5fa"
BODY_COLOR = "#e5e7eb"
FOOTER_COLOR = "#9ca3af"

FONT_DIR = "/usr/share/fonts/truetype/dejavu"


def _load_font(size: int, bold: bool = False):
    name = "DejaVuSans-Bold.ttf" if bold else "DejaVuSans.ttf"
    try:
        return ImageFont.truetype(os.path.join(FONT_DIR, name), size)
    except OSError:
        return ImageFont.load_default()


def format_gdp(estimated_gdp: Optional[float]) -> str:
    """$<billions to 2 decimals>B, or N/A."""
    if estimated_gdp is None:
        return "N/A"
    return f"${estimated_gdp / 1_000_000_000:,.2f}B"


def ranked_lines(top_countries: Sequence, limit: int = TOP_N) -> List[str]:
    """
    Ranked list entries, skipping countries without an estimated GDP.

    Input is expected already ordered by estimated_gdp descending.
    """
    ranked = [c for c in top_countries if c.estimated_gdp is not None][:limit]
    return [
        f"{rank}. {country.name} — {format_gdp(country.estimated_gdp)}"
        for rank, country in enumerate(ranked, 1)
    ]


def save_atomic(img: Image.Image, path: str) -> str:
    """
    Write the PNG beside its destination and rename it into place, so
    readers only ever see a complete file.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".summary-", suffix=".png")
    try:
        with os.fdopen(fd, "wb") as handle:
            img.save(handle, format="PNG")
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return path


class SummaryRenderer:
    """Renders the fixed-layout summary PNG and persists it at `path`."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.IMAGE_PATH

    def render(self, total_countries: int, top_countries: Sequence, timestamp: datetime) -> Image.Image:
        img = Image.new("RGB", (WIDTH, HEIGHT), color=BACKGROUND)
        draw = ImageDraw.Draw(img)

        title_font = _load_font(36, bold=True)
        total_font = _load_font(28, bold=True)
        header_font = _load_font(24, bold=True)
        body_font = _load_font(20)
        footer_font = _load_font(18)

        center = WIDTH // 2
        draw.text((center, 50), "Country GDP Summary", fill=TITLE_COLOR, font=title_font, anchor="mm")
        draw.text((center, 120), f"Total Countries: {total_countries}", fill=TOTAL_COLOR, font=total_font, anchor="mm")
        draw.text((center, 180), f"Top {TOP_N} by Estimated GDP", fill=HEADER_COLOR, font=header_font, anchor="mm")

        lines = ranked_lines(top_countries)
        if not lines:
            draw.text((center, 230), "No GDP data available", fill=FOOTER_COLOR, font=body_font, anchor="mm")
        for index, line in enumerate(lines):
            draw.text((center, 230 + index * 40), line, fill=BODY_COLOR, font=body_font, anchor="mm")

        timestamp_str = timestamp.strftime("%Y-%m-%d %H:%M:%S UTC")
        draw.text((center, 550), f"Generated: {timestamp_str}", fill=FOOTER_COLOR, font=footer_font, anchor="mm")
        return img

    def generate(self, total_countries: int, top_countries: Sequence, timestamp: datetime) -> str:
        """Render and persist the summary image; returns its path."""
        img = self.render(total_countries, top_countries, timestamp)
        save_atomic(img, self.path)
        logger.info(f"Summary image written to {self.path}")
        return self.path


def get_image_path(path: Optional[str] = None) -> Optional[str]:
    """Path of the persisted summary image, or None if not generated yet."""
    path = path or settings.IMAGE_PATH
    return path if os.path.isfile(path) else None
