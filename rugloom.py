"""
rugloom.py
==========

A deterministic ASCII rug weaver. Given a small configuration (size, style,
palette, motifs, placement mode) it lays out a grid of glyph cells following
one of seven procedural "style rules" built from border rings, diamond and
radial distance fields, medallion rings and motif lattices. The grid can be
exported as plain text and rendered to PNG.

Key features
------------
- Seven styles:
    * Persian Masterpiece      (alternating border rings, diamond medallion)
    * Berber Tribal (Nomadic)  (pine bands, wiggling fringes, motif columns)
    * Intricate Multi-Border   (24 rings of cycling border glyphs)
    * Sacred Geometry          (radial rings, central cross, diagonals)
    * Medallion Centerpiece    (concentric diamond medallion)
    * Bird & Bloom / Floral Garden (motif lattices, sparse or dense)
- Eight motifs placed uniformly, as a coordinate-hashed "random" mix, or in
  10x10 rectangular tiles.
- Seven named palettes, or five custom hex colors.
- Deterministic output: there is no RNG in the engine. The same config and
  character set always weave the same grid.
- Optional AI-sourced character set, see rugtheme.py.

Quick start
-----------
>>> from rugloom import generate_rug, grid_to_text, preset_config
>>> grid = generate_rug(preset_config("Persian Masterpiece"))
>>> grid[0][0].char
'█'
>>> text = grid_to_text(grid)

Command line
------------
$ python rugloom.py --style "Medallion Centerpiece" --size 100x70 \
    --palette "Tabriz Royal" --motifs floral,star --placement tiled \
    --out rug.txt --png rug.png

Notes on fonts
--------------
Most of the glyphs live in the Box Drawing, Block Elements and Dingbats
ranges. Pillow's bundled default font covers few of them, so pass
``--font`` with a monospace TrueType font (DejaVu Sans Mono, Noto Sans Mono)
for a faithful PNG. The text export does not depend on fonts at all.

License: MIT
"""

import argparse
import asyncio
import logging
import math
import sys
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Literal, Optional, Sequence, Tuple

try:
    from PIL import Image, ImageDraw, ImageFont
except Exception as e:  # pragma: no cover
    raise SystemExit("This script requires Pillow. Try: pip install pillow") from e

try:
    import numpy as np
except Exception as e:  # pragma: no cover
    raise SystemExit("This script requires NumPy. Try: pip install numpy") from e

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class RugConfigError(ValueError):
    """Raised for configuration values the weaver cannot use."""


# ---------------------------- Utilities ------------------------------------

def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Convert '#RRGGBB' or 'RRGGBB' to (r,g,b). Handles shorthand '#RGB' too."""
    h = hex_color.strip().lstrip("#")
    if len(h) == 3:
        h = "".join(c*2 for c in h)
    if len(h) != 6:
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    try:
        return (int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16))
    except ValueError:
        raise ValueError(f"Invalid hex color: {hex_color!r}") from None


def build_palette(colors: Sequence[str]) -> List[int]:
    """Flat 768-entry RGB palette for a "P" image; colors[0] becomes index 0."""
    if len(colors) > 256:
        raise ValueError("Paletted mode supports up to 256 colors.")
    rgb_list: List[int] = []
    for c in colors:
        rgb_list.extend(hex_to_rgb(c))
    # Pillow wants the full 256 entries.
    rgb_list.extend([0, 0, 0] * (256 - len(colors)))
    return rgb_list


# ---------------------------- Catalogues ------------------------------------

ColorRole = Literal["primary", "secondary", "accent", "border"]
PlacementMode = Literal["uniform", "random", "tiled"]

COLOR_ROLES: Tuple[str, ...] = ("primary", "secondary", "accent", "border")


@dataclass(frozen=True)
class ColorPalette:
    name: str
    primary: str
    secondary: str
    accent: str
    background: str
    border: str
    is_light: bool = False  # light ground; the UI flips its chrome to dark text


PALETTES: Tuple[ColorPalette, ...] = (
    ColorPalette("Shiraz Garden", "#dc2626", "#10b981", "#fbbf24", "#1a0505", "#450a0a"),
    ColorPalette("Pearl White", "#1e293b", "#1d4ed8", "#e11d48", "#f8fafc", "#cbd5e1", is_light=True),
    ColorPalette("Berber Canvas", "#0f172a", "#2563eb", "#f97316", "#fcf8f0", "#d6d3d1", is_light=True),
    ColorPalette("High Atlas", "#292524", "#f43f5e", "#059669", "#f4f1ea", "#e7e5e4", is_light=True),
    ColorPalette("Royal Saffron", "#78350f", "#991b1b", "#3730a3", "#fef3c7", "#fcd34d", is_light=True),
    ColorPalette("Lapis Sky", "#ffffff", "#a5f3fc", "#fde047", "#2563eb", "#1e40af"),
    ColorPalette("Tabriz Royal", "#3b82f6", "#eab308", "#f43f5e", "#050a1a", "#1e3a8a"),
)


@dataclass(frozen=True)
class CustomColors:
    background: str = "#1a0505"
    primary: str = "#dc2626"
    secondary: str = "#10b981"
    accent: str = "#fbbf24"
    border: str = "#450a0a"


DEFAULT_CUSTOM_COLORS = CustomColors()


@dataclass(frozen=True)
class Motif:
    id: str
    label: str
    glyphs: Tuple[str, ...]


# Global motif order; active motifs are always taken in this order.
MOTIFS: Tuple[Motif, ...] = (
    Motif("floral", "Floral", ("❀", "✿", "✾", "❃", "❁")),
    Motif("bird", "Bird", ("v", "y", "w", "Y", "M")),
    Motif("sun", "Sun", ("☼", "☀", "✹", "✺")),
    Motif("heart", "Heart", ("♥", "♡", "❣")),
    Motif("star", "Star", ("★", "☆", "✧", "✦")),
    Motif("bunny", "Bunny", ("(Y)", "\U0001F430")),
    Motif("geometric", "Sigils", ("╬", "╫", "╪", "╫")),
    Motif("diamond", "Stacked Diamonds", ("◆", "◇", "◈", "◊")),
)

PLACEMENT_MODES: Dict[str, str] = {
    "uniform": "Uniform",
    "random": "Random Mix",
    "tiled": "Rectangular Tiling",
}


class RugStyle(str, Enum):
    PERSIAN_MASTERPIECE = "Persian Masterpiece"
    BERBER_TRIBAL = "Berber Tribal (Nomadic)"
    INTRICATE_MULTI_BORDER = "Intricate Multi-Border"
    BIRD_AND_BLOOM = "Bird & Bloom"
    SACRED_GEOMETRY = "Sacred Geometry"
    MEDALLION_CENTERPIECE = "Medallion Centerpiece"
    FLORAL_GARDEN = "Floral Garden"


RUG_STYLES: List[str] = [s.value for s in RugStyle]


@dataclass(frozen=True)
class CharacterSet:
    """The five glyphs a style rule skins itself with."""
    border: str
    inner_border: str
    field: str
    medallion: str
    accent: str


DEFAULT_CHARSET = CharacterSet(border="█", inner_border="╬", field="·", medallion="❂", accent="✧")


# ---------------------------- Configuration ---------------------------------

@dataclass(frozen=True)
class RugConfig:
    """Everything one generation pass needs. Change a field -> weave again."""
    width: int = 80
    height: int = 60
    style_name: str = RugStyle.PERSIAN_MASTERPIECE.value
    palette: ColorPalette = PALETTES[0]
    has_medallion: bool = True
    selected_motif_ids: Tuple[str, ...] = ("floral",)  # selection order
    placement_mode: PlacementMode = "random"
    custom_colors: CustomColors = DEFAULT_CUSTOM_COLORS
    use_custom_colors: bool = False

    def __post_init__(self) -> None:
        if any(isinstance(v, bool) or not isinstance(v, int) for v in (self.width, self.height)):
            raise RugConfigError("width and height must be integers")
        if self.width <= 0 or self.height <= 0:
            raise RugConfigError(f"Rug size must be positive, got {self.width}x{self.height}")
        if self.placement_mode not in PLACEMENT_MODES:
            raise RugConfigError(
                f"Unknown placement mode: {self.placement_mode!r}. Choose from {list(PLACEMENT_MODES)}"
            )
        object.__setattr__(self, "selected_motif_ids", tuple(self.selected_motif_ids))


def palette_by_name(name: str) -> ColorPalette:
    for p in PALETTES:
        if p.name == name:
            return p
    raise RugConfigError(f"Unknown palette: {name!r}. Choose from {[p.name for p in PALETTES]}")


def motif_by_id(motif_id: str) -> Motif:
    for m in MOTIFS:
        if m.id == motif_id:
            return m
    raise RugConfigError(f"Unknown motif: {motif_id!r}. Choose from {[m.id for m in MOTIFS]}")


def preset_config(style_name: str) -> RugConfig:
    """The starting configuration for a freshly picked style.

    Berber rugs are woven portrait on the "Berber Canvas" ground; every other
    style is landscape on "Shiraz Garden". Only the two medallion styles start
    with the medallion switched on.
    """
    berber = "Berber" in style_name
    return RugConfig(
        width=60 if berber else 80,
        height=80 if berber else 60,
        style_name=style_name,
        palette=palette_by_name("Berber Canvas" if berber else "Shiraz Garden"),
        has_medallion=style_name in (RugStyle.MEDALLION_CENTERPIECE.value,
                                     RugStyle.PERSIAN_MASTERPIECE.value),
    )


def toggle_motif(config: RugConfig, motif_id: str) -> RugConfig:
    """Add or remove a motif. The last remaining motif cannot be removed."""
    motif_by_id(motif_id)
    ids = config.selected_motif_ids
    if motif_id in ids:
        selection = tuple(mid for mid in ids if mid != motif_id)
    else:
        selection = ids + (motif_id,)
    return replace(config, selected_motif_ids=selection or (motif_id,))


def with_custom_color(config: RugConfig, role: str, value: str) -> RugConfig:
    """Change one custom color; picking a color switches custom colors on."""
    if role not in COLOR_ROLES and role != "background":
        raise RugConfigError(f"Unknown color role: {role!r}")
    colors = replace(config.custom_colors, **{role: value})
    return replace(config, custom_colors=colors, use_custom_colors=True)


def active_motifs(config: RugConfig) -> Tuple[Motif, ...]:
    return tuple(m for m in MOTIFS if m.id in config.selected_motif_ids)


def is_light_theme(config: RugConfig) -> bool:
    return False if config.use_custom_colors else config.palette.is_light


# ---------------------------- Colors ----------------------------------------

def resolve_color(role: str, config: RugConfig) -> str:
    """Color for a cell role from whichever color source is active."""
    source = config.custom_colors if config.use_custom_colors else config.palette
    return getattr(source, role)


def resolve_background(config: RugConfig) -> str:
    return resolve_color("background", config)


# ---------------------------- Geometry --------------------------------------

@dataclass(frozen=True)
class CellGeometry:
    x: int
    y: int
    width: int
    height: int
    depth: int      # rings in from the nearest edge
    norm_dx: float  # -1..1 about the center
    norm_dy: float
    diamond: float  # L1 distance from the center
    radial: float   # L2 distance from the center


def cell_geometry(x: int, y: int, width: int, height: int) -> CellGeometry:
    """Geometry of a single coordinate."""
    depth = min(min(x, width - 1 - x), min(y, height - 1 - y))
    cx, cy = width / 2, height / 2
    ndx = (x - cx) / cx
    ndy = (y - cy) / cy
    return CellGeometry(
        x=x, y=y, width=width, height=height, depth=depth,
        norm_dx=ndx, norm_dy=ndy,
        diamond=abs(ndx) + abs(ndy),
        radial=math.sqrt(ndx*ndx + ndy*ndy),
    )


@dataclass(frozen=True)
class GeometryField:
    """The same quantities as cell_geometry, for every cell at once."""
    width: int
    height: int
    depth: np.ndarray
    norm_dx: np.ndarray
    norm_dy: np.ndarray
    diamond: np.ndarray
    radial: np.ndarray

    def at(self, x: int, y: int) -> CellGeometry:
        return CellGeometry(
            x=x, y=y, width=self.width, height=self.height,
            depth=int(self.depth[y, x]),
            norm_dx=float(self.norm_dx[y, x]),
            norm_dy=float(self.norm_dy[y, x]),
            diamond=float(self.diamond[y, x]),
            radial=float(self.radial[y, x]),
        )


def geometry_field(width: int, height: int) -> GeometryField:
    ys, xs = np.indices((height, width))
    depth = np.minimum(np.minimum(xs, width - 1 - xs), np.minimum(ys, height - 1 - ys))
    cx, cy = width / 2, height / 2
    ndx = (xs - cx) / cx
    ndy = (ys - cy) / cy
    return GeometryField(
        width=width, height=height, depth=depth,
        norm_dx=ndx, norm_dy=ndy,
        diamond=np.abs(ndx) + np.abs(ndy),
        radial=np.sqrt(ndx*ndx + ndy*ndy),
    )


# ---------------------------- Motif placement -------------------------------

def select_motif(x: int, y: int, mode: str, motifs: Sequence[Motif]) -> Motif:
    """Pick the motif for a coordinate.

    "random" is a spatial hash, not an RNG: the same (x, y) always lands on
    the same motif. "tiled" cycles motifs over 10x10 blocks. Anything else
    uses the first motif.
    """
    if not motifs:
        raise ValueError("select_motif needs at least one active motif")
    count = len(motifs)
    if mode == "random":
        seed = (x*123 + y*456) % 1000
        index = min(math.floor((seed / 1000) * count), count - 1)
    elif mode == "tiled":
        index = (x // 10 + y // 10) % count
    else:
        index = 0
    return motifs[index]


def motif_glyph(motif: Motif, x: int, y: int) -> str:
    return motif.glyphs[(x + y) % len(motif.glyphs)]


# ---------------------------- Cells & context -------------------------------

@dataclass(frozen=True)
class RugCell:
    char: str
    role: ColorRole
    color: str


Grid = Tuple[Tuple[RugCell, ...], ...]


@dataclass(frozen=True)
class WeaveContext:
    """Per-pass inputs shared by every cell: config, glyphs, motifs, colors."""
    config: RugConfig
    charset: CharacterSet
    motifs: Tuple[Motif, ...]
    colors: Dict[str, str]

    @classmethod
    def build(cls, config: RugConfig, charset: CharacterSet = DEFAULT_CHARSET) -> "WeaveContext":
        colors = {role: resolve_color(role, config) for role in COLOR_ROLES}
        return cls(config=config, charset=charset, motifs=active_motifs(config), colors=colors)

    def cell(self, char: str, role: ColorRole) -> RugCell:
        return RugCell(char=char, role=role, color=self.colors[role])

    def motif_char(self, x: int, y: int) -> str:
        if not self.motifs:
            return self.charset.accent
        motif = select_motif(x, y, self.config.placement_mode, self.motifs)
        return motif_glyph(motif, x, y)


StyleRule = Callable[[CellGeometry, WeaveContext], RugCell]


# ---------------------------- Style rules -----------------------------------

def style_berber_tribal(g: CellGeometry, ctx: WeaveContext) -> RugCell:
    """Pine-tree bands top and bottom, two wiggling fringes, motif columns."""
    x, y, w, h = g.x, g.y, g.width, g.height
    if y < 4 or y > h - 5:
        if x % 6 == 0 and (y == 1 or y == h - 2):
            return ctx.cell("▲", "accent")
        if y == 0 or y == h - 1:
            return ctx.cell("-", "border")
        return ctx.cell(" ", "primary")
    wiggle_left = abs(x - (6 + math.sin(y * 0.2) * 2)) < 0.6
    wiggle_right = abs(x - (w - 7 + math.cos(y * 0.25) * 1.5)) < 0.6
    if wiggle_left or wiggle_right:
        return ctx.cell("≀", "secondary")
    if abs(x % 15 - 7) < 3 and y % 12 < 6:
        return ctx.cell(ctx.motif_char(x, y), "accent")
    return ctx.cell(" ", "primary")


def style_intricate_multi_border(g: CellGeometry, ctx: WeaveContext) -> RugCell:
    """Six banded borders, four rings each: a glyph ring, a dot ring, two field rings."""
    if g.depth < 24 and g.depth % 4 == 0:
        glyphs = (ctx.charset.border, "╬", "▓", "░", "╫", "╪")
        roles = ("border", "secondary", "primary", "accent")
        band = g.depth // 4
        return ctx.cell(glyphs[band % len(glyphs)], roles[band % len(roles)])
    if g.depth < 24 and g.depth % 4 == 1:
        return ctx.cell("·", "primary")
    if g.x % 5 == 0 and g.y % 5 == 0:
        return ctx.cell(ctx.motif_char(g.x, g.y), "accent")
    return ctx.cell("·", "primary")


def style_sacred_geometry(g: CellGeometry, ctx: WeaveContext) -> RugCell:
    if g.depth < 4:
        return ctx.cell(ctx.charset.border, "border")
    on_ring = abs((g.radial * 10) % 1) < 0.1
    on_cross = g.x == g.width // 2 or g.y == g.height // 2
    on_diagonal = abs(abs(g.norm_dx) - abs(g.norm_dy)) < 0.02
    if on_ring or on_cross or on_diagonal:
        return ctx.cell("╬", "secondary")
    if g.x % 10 == 0 and g.y % 10 == 0:
        return ctx.cell(ctx.motif_char(g.x, g.y), "accent")
    return ctx.cell("·", "primary")


def style_medallion_centerpiece(g: CellGeometry, ctx: WeaveContext) -> RugCell:
    if g.depth < 5:
        return ctx.cell(ctx.charset.border, "border")
    if g.diamond < 0.6:
        ring = math.floor(g.diamond * 10)
        if ring == 1:
            return ctx.cell(ctx.charset.medallion, "accent")
        if ring % 2 == 0:
            return ctx.cell("✧", "secondary")
        return ctx.cell("░", "primary")
    if g.x % 8 == 0 and g.y % 8 == 0:
        return ctx.cell(ctx.motif_char(g.x, g.y), "accent")
    return ctx.cell("·", "primary")


def _garden(g: CellGeometry, ctx: WeaveContext, density: int, bloom: bool) -> RugCell:
    if g.depth < 4:
        return ctx.cell(ctx.charset.border, "border")
    if g.x % density == 0 and g.y % density == 0:
        return ctx.cell(ctx.motif_char(g.x, g.y), "accent")
    if bloom and (g.x % 2 == 0 or g.y % 2 == 0):
        return ctx.cell("⁛", "secondary")
    return ctx.cell("·", "primary")


def style_bird_and_bloom(g: CellGeometry, ctx: WeaveContext) -> RugCell:
    return _garden(g, ctx, density=8, bloom=False)


def style_floral_garden(g: CellGeometry, ctx: WeaveContext) -> RugCell:
    return _garden(g, ctx, density=4, bloom=True)


def style_persian_masterpiece(g: CellGeometry, ctx: WeaveContext) -> RugCell:
    if g.depth < 5:
        return ctx.cell(ctx.charset.border if g.depth % 2 == 0 else "╬", "border")
    if ctx.config.has_medallion and g.diamond < 0.3:
        return ctx.cell(ctx.charset.medallion if g.diamond < 0.1 else "✧", "accent")
    if g.x % 6 == 0 and g.y % 6 == 0:
        return ctx.cell(ctx.motif_char(g.x, g.y), "secondary")
    return ctx.cell(ctx.charset.field, "primary")


STYLE_RULES: Dict[RugStyle, StyleRule] = {
    RugStyle.PERSIAN_MASTERPIECE: style_persian_masterpiece,
    RugStyle.BERBER_TRIBAL: style_berber_tribal,
    RugStyle.INTRICATE_MULTI_BORDER: style_intricate_multi_border,
    RugStyle.BIRD_AND_BLOOM: style_bird_and_bloom,
    RugStyle.SACRED_GEOMETRY: style_sacred_geometry,
    RugStyle.MEDALLION_CENTERPIECE: style_medallion_centerpiece,
    RugStyle.FLORAL_GARDEN: style_floral_garden,
}


def style_for_name(name: str) -> RugStyle:
    """Exact-name lookup; unrecognised names weave as Persian Masterpiece."""
    try:
        return RugStyle(name)
    except ValueError:
        return RugStyle.PERSIAN_MASTERPIECE


def style_cell(x: int, y: int, config: RugConfig, charset: CharacterSet = DEFAULT_CHARSET) -> RugCell:
    """Evaluate the configured style rule at a single coordinate."""
    rule = STYLE_RULES[style_for_name(config.style_name)]
    return rule(cell_geometry(x, y, config.width, config.height), WeaveContext.build(config, charset))


# ---------------------------- High-level API --------------------------------

def generate_rug(config: RugConfig, charset: CharacterSet = DEFAULT_CHARSET) -> Grid:
    """Weave the whole grid: `config.height` rows of `config.width` cells."""
    style = style_for_name(config.style_name)
    if style.value != config.style_name:
        logger.warning("Unknown style %r; weaving %s", config.style_name, style.value)
    rule = STYLE_RULES[style]
    ctx = WeaveContext.build(config, charset)
    geo = geometry_field(config.width, config.height)
    logger.debug(
        "weaving %s %dx%d motifs=%s placement=%s",
        style.value, config.width, config.height,
        [m.id for m in ctx.motifs], config.placement_mode,
    )
    return tuple(
        tuple(rule(geo.at(x, y), ctx) for x in range(config.width))
        for y in range(config.height)
    )


def grid_to_text(grid: Sequence[Sequence[RugCell]]) -> str:
    return "\n".join("".join(cell.char for cell in row) for row in grid)


def default_export_name(now: Optional[float] = None) -> str:
    if now is None:
        now = time.time()
    return f"digital-textile-{int(round(now * 1000))}.txt"


def export_text(grid: Sequence[Sequence[RugCell]], out_path: str) -> str:
    """Write the grid as UTF-8 text. Returns the out_path."""
    with open(out_path, "w", encoding="utf-8") as fh:
        fh.write(grid_to_text(grid))
    return out_path


def load_font(font_path: Optional[str], size: int) -> ImageFont.ImageFont:
    if font_path:
        return ImageFont.truetype(font_path, size)
    return ImageFont.load_default(size=size)


def render_png(
    grid: Sequence[Sequence[RugCell]],
    config: RugConfig,
    out_path: str,
    cell_size: Tuple[int, int] = (8, 10),
    font_path: Optional[str] = None,
    paletted: bool = True,
) -> str:
    """Draw every glyph in its cell color on the resolved background.

    Paletted ("P") mode keeps the background at index 0 and draws unaliased
    glyphs; paletted=False renders an antialiased RGBA image instead.
    """
    cell_w, cell_h = cell_size
    rows = len(grid)
    cols = len(grid[0]) if rows else 0
    size = (max(1, cols * cell_w), max(1, rows * cell_h))
    bg = resolve_background(config)
    used = {cell.color for row in grid for cell in row}
    colors = [bg] + sorted(used - {bg})

    if paletted and len(colors) <= 256:
        im = Image.new("P", size, color=0)
        im.putpalette(build_palette(colors))
        ink: Dict[str, object] = {c: i for i, c in enumerate(colors)}
        draw = ImageDraw.Draw(im)
        draw.fontmode = "1"  # antialiasing would blend palette indices
    else:
        im = Image.new("RGBA", size, color=hex_to_rgb(bg) + (255,))
        ink = {c: hex_to_rgb(c) + (255,) for c in colors}
        draw = ImageDraw.Draw(im)

    font = load_font(font_path, cell_h)
    for y, row in enumerate(grid):
        for x, cell in enumerate(row):
            if cell.char.strip():
                draw.text((x * cell_w, y * cell_h), cell.char, fill=ink[cell.color], font=font)
    im.save(out_path, format="PNG", optimize=True)
    logger.info("rendered %dx%d px to %s", size[0], size[1], out_path)
    return out_path


# ---------------------------- CLI -------------------------------------------

def parse_size(s: str) -> Tuple[int, int]:
    if "x" not in s.lower():
        raise argparse.ArgumentTypeError("Size must be like 80x60")
    a, b = s.lower().split("x", 1)
    try:
        return (int(a), int(b))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Size must be like 80x60, got {s!r}") from None


def parse_colors(s: str) -> CustomColors:
    """'bg,primary,secondary,accent,border' hex list -> CustomColors."""
    parts = [c.strip() for c in s.split(",") if c.strip()]
    if len(parts) != 5:
        raise RugConfigError("--colors takes five hex colors: background,primary,secondary,accent,border")
    for c in parts:
        try:
            hex_to_rgb(c)
        except ValueError as e:
            raise RugConfigError(str(e)) from None
    return CustomColors(*parts)


def build_config(args: argparse.Namespace) -> RugConfig:
    config = preset_config(args.style)
    changes: Dict[str, object] = {}
    if args.size:
        changes["width"], changes["height"] = args.size
    if args.palette:
        changes["palette"] = palette_by_name(args.palette)
    if args.colors:
        changes["custom_colors"] = parse_colors(args.colors)
        changes["use_custom_colors"] = True
    if args.motifs:
        ids = tuple(m.strip() for m in args.motifs.split(",") if m.strip())
        for mid in ids:
            motif_by_id(mid)
        if not ids:
            raise RugConfigError("--motifs needs at least one motif id")
        changes["selected_motif_ids"] = ids
    if args.placement:
        changes["placement_mode"] = args.placement
    if args.medallion is not None:
        changes["has_medallion"] = args.medallion
    return replace(config, **changes)


def resolve_charset(config: RugConfig) -> CharacterSet:
    from rugtheme import resolve_theme, theme_request_for

    theme = asyncio.run(resolve_theme(theme_request_for(config.style_name)))
    logger.debug("theme %r: %s", theme.name, theme.description)
    return theme.characters.to_charset()


def print_catalogues() -> None:
    print("styles:")
    for s in RUG_STYLES:
        print(f"  {s}")
    print("palettes:")
    for p in PALETTES:
        print(f"  {p.name}{' (light)' if p.is_light else ''}")
    print("motifs:")
    for m in MOTIFS:
        print(f"  {m.id:<10} {m.label:<17} {' '.join(m.glyphs)}")
    print("placement modes:")
    for mode, label in PLACEMENT_MODES.items():
        print(f"  {mode:<8} {label}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Weave procedural ASCII rugs")
    ap.add_argument("--style", default=RugStyle.PERSIAN_MASTERPIECE.value, choices=RUG_STYLES)
    ap.add_argument("--size", type=parse_size, default=None, help="WIDTHxHEIGHT in characters (style preset if omitted)")
    ap.add_argument("--palette", default=None, help="Named palette (see --list)")
    ap.add_argument("--colors", default=None, help="Custom hex colors: background,primary,secondary,accent,border")
    ap.add_argument("--motifs", default=None, help="Comma list of motif ids (see --list)")
    ap.add_argument("--placement", default=None, choices=sorted(PLACEMENT_MODES))
    ap.add_argument("--medallion", action=argparse.BooleanOptionalAction, default=None,
                    help="Force the medallion on or off (styles that have one)")
    ap.add_argument("--out", default=None, help="Text export path (default digital-textile-<ms>.txt)")
    ap.add_argument("--png", default=None, help="Also render a PNG to this path")
    ap.add_argument("--font", default=None, help="TrueType font for the PNG")
    ap.add_argument("--cell", type=parse_size, default=(8, 10), help="PNG cell size in pixels, WxH")
    ap.add_argument("--no-paletted", dest="paletted", action="store_false", help="Render the PNG as RGBA.")
    ap.add_argument("--ai-theme", action="store_true", help="Ask Gemini for a themed character set")
    ap.add_argument("--print", dest="print_rug", action="store_true", help="Print the rug to stdout")
    ap.add_argument("--list", action="store_true", help="List styles, palettes, motifs and exit")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.list:
        print_catalogues()
        return 0

    load_dotenv()

    try:
        config = build_config(args)
        charset = resolve_charset(config) if args.ai_theme else DEFAULT_CHARSET
        grid = generate_rug(config, charset)
        if args.print_rug:
            print(grid_to_text(grid))
        out = export_text(grid, args.out or default_export_name())
        if args.png:
            render_png(grid, config, args.png, cell_size=args.cell,
                       font_path=args.font, paletted=args.paletted)
    except RugConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"File error: {e}", file=sys.stderr)
        return 2
    print(out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
