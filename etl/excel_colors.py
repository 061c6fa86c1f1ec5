# WORKFLOW: Partner row marking detection in uploaded registers.
# Used by: Register importer
# Functions:
# 1. row_fill_colors() - Sheet row -> ARGB fill colour of its first cell, for coloured rows only
# 2. resolve_color() - openpyxl colour (rgb / theme / indexed) -> ARGB integer
#
# Partners mark rows they already vetted by filling them; such parcels are imported
# as MARKED_BY_PARTNER and keep their colour for exports.

import io
import logging
from typing import Dict, Optional

from openpyxl import load_workbook
from openpyxl.styles.colors import COLOR_INDEX

logger = logging.getLogger(__name__)

# Default Office theme palette
THEME_COLORS = {
    0: 0xFFFFFFFF,  # Background 1
    1: 0xFF000000,  # Text 1
    2: 0xFFF2F2F2,  # Background 2
    3: 0xFF444444,  # Text 2
    4: 0xFF4F81BD,  # Accent 1
    5: 0xFFC0504D,  # Accent 2
    6: 0xFF9BBB59,  # Accent 3
    7: 0xFF8064A2,  # Accent 4
    8: 0xFF4BACC6,  # Accent 5
    9: 0xFFF79646,  # Accent 6
}
_FALLBACK_THEME_COLOR = 0xFFC8C8C8

WHITE = 0xFFFFFFFF


def _apply_tint(argb: int, tint: float) -> int:
    channels = [(argb >> shift) & 0xFF for shift in (16, 8, 0)]
    if tint > 0:
        factor = 1.0 + tint * 0.5
        channels = [min(255, int(c * factor)) for c in channels]
    else:
        factor = max(0.1, 1.0 + tint)
        channels = [max(0, int(c * factor)) for c in channels]
    return 0xFF000000 | (channels[0] << 16) | (channels[1] << 8) | channels[2]


def resolve_color(color) -> Optional[int]:
    """Convert an openpyxl Color to an ARGB integer, None when it cannot be resolved."""
    if color is None:
        return None
    if color.type == "rgb" and isinstance(color.rgb, str):
        return int(color.rgb, 16)
    if color.type == "theme":
        argb = THEME_COLORS.get(color.theme, _FALLBACK_THEME_COLOR)
        return _apply_tint(argb, color.tint) if color.tint else argb
    if color.type == "indexed" and color.indexed is not None and color.indexed < len(COLOR_INDEX):
        return int(COLOR_INDEX[color.indexed], 16)
    return None


def is_significant_color(argb: Optional[int]) -> bool:
    """White and fully transparent fills do not count as marking."""
    return argb is not None and argb != WHITE and (argb >> 24) != 0


def row_fill_colors(content: bytes) -> Dict[int, int]:
    """
    Fill colours of marked rows on the first sheet.

    Args:
        content: XLSX bytes

    Returns:
        Mapping of 1-based sheet row -> ARGB colour, only for significantly coloured rows
    """
    colors: Dict[int, int] = {}
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=False)
    except Exception as e:
        logger.warning(f"Could not read row colours, partner marking ignored: {e}")
        return colors

    try:
        worksheet = workbook.worksheets[0]
        for row_index in range(2, worksheet.max_row + 1):
            fill = worksheet.cell(row=row_index, column=1).fill
            if fill is None or fill.fill_type != "solid":
                continue
            argb = resolve_color(fill.fgColor)
            if is_significant_color(argb):
                colors[row_index] = argb
    finally:
        workbook.close()

    logger.info(f"Found {len(colors)} partner-marked rows")
    return colors
