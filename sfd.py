"""
Glyph records for a FontForge spline font database (.sfd) document.

Every glyph is positioned twice: by its internal position (its index in the
font's glyph table, assigned in emission order) and by its external encoding
(a code point, or -1 when the glyph is unencoded).  The classes here render
the per-glyph text blocks; block layout lives in glyph_blocks.py and rule
synthesis in lookups.py.
"""

from dataclasses import dataclass, replace
from enum import Enum

from fontTools.misc.transform import Identity, Transform

from lookups import NO_LOOKUPS, Lookups

UNENCODED_SENTINEL = "-1"
FILLER_PREFIX = "empty"
FILLER_COLOR = "dddddd"

# Glyphs that are never drawn as spacing glyphs get the "W" (width set) flag.
WIDTH_FLAG_NAMES = {
    "ZWJ",
    "ZWNJ",
    "joinStackTok",
    "joinScaleTok",
    "combCartExtNoneTok",
}
WIDTH_FLAG_PREFIXES = ("VAR", "arrow")


@dataclass(frozen=True)
class EncodingPosition:
    """An external code point, or ``None`` for an unencoded glyph."""

    code_point: int | None = None

    def __post_init__(self):
        if self.code_point is not None and self.code_point < 0:
            raise ValueError(f"Code point must be non-negative, got {self.code_point}")

    @property
    def is_encoded(self) -> bool:
        return self.code_point is not None

    def advance(self) -> "EncodingPosition":
        """Return the next code point; unencoded stays unencoded."""
        if self.code_point is None:
            return self
        return EncodingPosition(self.code_point + 1)

    def render(self) -> str:
        if self.code_point is None:
            return UNENCODED_SENTINEL
        return str(self.code_point)


UNENCODED = EncodingPosition()


@dataclass(frozen=True)
class Encoding:
    """A glyph's internal position paired with its external encoding."""

    internal: int
    external: EncodingPosition = UNENCODED

    def render(self) -> str:
        # The internal position appears twice: once as the glyph's slot in
        # the custom encoding and once as its glyph index.
        return f"Encoding: {self.internal} {self.external.render()} {self.internal}"

    def render_reference(self, placement: str) -> str:
        return f"Refer: {self.internal} {self.external.render()} {placement}"


def _format_number(value) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def placement(transform: Transform = Identity, selected: bool = False, flags: int = 2) -> str:
    """
    Render a reference placement for an SFD ``Refer:`` line.

    The result is the selection marker (``S`` or ``N``), the six affine
    components of the transform, and the reference flags, e.g.
    ``placement(Transform().translate(-1000, 500), selected=True)``
    gives ``"S 1 0 0 1 -1000 500 2"``.
    """
    matrix = " ".join(_format_number(value) for value in transform)
    return f"{'S' if selected else 'N'} {matrix} {flags}"


@dataclass(frozen=True)
class Reference:
    """
    A reference to another glyph, drawn with the given placement.

    The target encoding is a snapshot taken when the reference is created;
    later changes to the referenced glyph do not reach it.
    """

    target: Encoding
    placement: str

    def render(self) -> str:
        return self.target.render_reference(self.placement)


@dataclass(frozen=True)
class Representation:
    """A glyph's foreground layer: an outline program plus glyph references."""

    outline: str = ""
    references: tuple[Reference, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.outline and not self.references

    def render(self) -> str:
        if self.is_empty:
            return ""
        parts = ["Fore\n"]
        if self.references:
            parts.append("\n".join(ref.render() for ref in self.references))
            parts.append("\n")
        if self.outline:
            parts.append(f"SplineSet\n{self.outline}\nEndSplineSet\n")
        return "".join(parts)


class AnchorClass(Enum):
    STACK = "stack"
    SCALE = "scale"


class AnchorType(Enum):
    BASE = "basechar"
    MARK = "mark"


STACK_ANCHOR_X = {AnchorType.BASE: 500, AnchorType.MARK: -500}
STACK_ANCHOR_Y = 400


@dataclass(frozen=True)
class Anchor:
    anchor_class: AnchorClass
    anchor_type: AnchorType
    x: int
    y: int

    @classmethod
    def stack(cls, anchor_type: AnchorType) -> "Anchor":
        """Stack anchors sit at fixed positions that depend only on their role."""
        return cls(AnchorClass.STACK, anchor_type, STACK_ANCHOR_X[anchor_type], STACK_ANCHOR_Y)

    @classmethod
    def scale(cls, anchor_type: AnchorType, x: int, y: int) -> "Anchor":
        return cls(AnchorClass.SCALE, anchor_type, x, y)

    def render(self) -> str:
        return (
            f'AnchorPoint: "{self.anchor_class.value}" {self.x} {self.y} '
            f"{self.anchor_type.value} 0\n"
        )


@dataclass(frozen=True)
class BasicGlyph:
    """Name, advance width, drawing and optional anchor of a single glyph."""

    name: str
    width: int
    representation: Representation = Representation()
    anchor: Anchor | None = None


class CombiningClass(Enum):
    """How a glyph takes part in cartouche extension and continuation marks."""

    FULL = "full"
    HALF = "half"
    PARTICIPANT = "participant"
    NONE = "none"


# (cartouche extension, long glyph continuation) for each combining class
_COMBINING_EXTENSIONS = {
    CombiningClass.FULL: ("combCartExtTok", "combLongGlyphExtTok"),
    CombiningClass.HALF: ("combCartExtHalfTok", "combLongGlyphExtHalfTok"),
    CombiningClass.PARTICIPANT: ("combCartExtNoneTok", "combCartExtNoneTok"),
}


def render_combining_class(combining_class: CombiningClass, full_name: str) -> str:
    if combining_class is CombiningClass.NONE:
        return ""
    cart, cont = _COMBINING_EXTENSIONS[combining_class]
    return (
        f"MultipleSubs2: \"'cc01' CART\" {full_name} {cart}\n"
        f"MultipleSubs2: \"'cc02' CONT\" {full_name} {cont}\n"
    )


def has_width_flag(full_name: str) -> bool:
    return (
        full_name in WIDTH_FLAG_NAMES
        or full_name.startswith(WIDTH_FLAG_PREFIXES)
        or "space" in full_name
    )


@dataclass
class GlyphFull:
    """
    A fully resolved glyph: drawing, encoding, lookup rules and combining class.

    Block construction may still patch ``encoding``, ``lookups`` and
    ``combining_class`` until the owning block is frozen.
    """

    glyph: BasicGlyph
    encoding: Encoding
    lookups: Lookups = NO_LOOKUPS
    combining_class: CombiningClass = CombiningClass.NONE

    @property
    def name(self) -> str:
        return self.glyph.name

    @property
    def is_filler(self) -> bool:
        return FILLER_PREFIX in self.glyph.name

    def render(self, prefix: str, suffix: str, color: str, variant: str) -> str:
        encoding = self.encoding.render()
        colour = f"Colour: {color}"
        if self.is_filler:
            return (
                f"\nStartChar: {self.name}\n{encoding}\nWidth: 0\nLayerCount: 2\n"
                f"{colour}\nEndChar\n"
            )

        full_name = f"{prefix}{self.name}{suffix}"
        flags = "Flags: W\n" if has_width_flag(full_name) else ""
        anchor = self.glyph.anchor.render() if self.glyph.anchor else ""
        representation = self.glyph.representation.render()
        rules = self.lookups.render(self.name, full_name, variant)
        combining = render_combining_class(self.combining_class, full_name)
        return (
            f"\nStartChar: {full_name}\n{encoding}\nWidth: {self.glyph.width}\n"
            f"{flags}{anchor}LayerCount: 2\n{representation}{rules}{combining}"
            f"{colour}\nEndChar\n"
        )


def filler_glyph(internal: int) -> GlyphFull:
    """A zero-width, unencoded placeholder used to page-align a block."""
    return GlyphFull(
        glyph=BasicGlyph(f"{FILLER_PREFIX}{internal:04}", 0),
        encoding=Encoding(internal, UNENCODED),
    )


def with_external(encoding: Encoding, external: EncodingPosition) -> Encoding:
    return replace(encoding, external=external)
