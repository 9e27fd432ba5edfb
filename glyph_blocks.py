"""
Block layout: turns glyph descriptors into page-aligned blocks of glyph records.

A block is a contiguous run of internal positions.  Positions come from one
``InternalPositions`` allocator shared by every block of a font source, so
the order in which blocks are built fixes the final glyph order.  Each block
is padded with filler glyphs to a multiple of 16 glyphs.

Blocks stay patchable after construction so that call sites can apply their
documented exceptions (``GlyphBlock.patch``); ``GlyphBlock.freeze`` ends that
phase before the block is read for classification or rendering.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from lookups import Lookups, LookupsMode
from sfd import (
    FILLER_COLOR,
    UNENCODED,
    Anchor,
    BasicGlyph,
    CombiningClass,
    Encoding,
    EncodingPosition,
    GlyphFull,
    Reference,
    Representation,
    filler_glyph,
    with_external,
)

PAGE_SIZE = 16


@dataclass(frozen=True)
class GlyphDescriptor:
    """A glyph as listed in the glyph data: name, outline, optional width and anchor."""

    name: str
    outline: str = ""
    width: int | None = None
    anchor: Anchor | None = None

    def to_basic(self, fallback_width: int) -> BasicGlyph:
        return BasicGlyph(
            name=self.name,
            width=self.width if self.width is not None else fallback_width,
            representation=Representation(self.outline),
            anchor=self.anchor,
        )


class InternalPositions:
    """Hands out internal glyph positions in strictly increasing order."""

    def __init__(self, start: int = 0):
        self.next = start

    def allocate(self) -> int:
        position = self.next
        self.next += 1
        return position


def filler_count(count: int) -> int:
    """Number of filler glyphs that pad ``count`` glyphs to a whole page."""
    return (PAGE_SIZE - 1) - ((count + PAGE_SIZE - 1) % PAGE_SIZE)


class GlyphBlock:
    """An ordered run of glyph records sharing a name prefix, suffix and colour."""

    def __init__(
        self,
        glyphs: Iterable[GlyphFull] = (),
        prefix: str = "",
        suffix: str = "",
        color: str = FILLER_COLOR,
    ):
        self.glyphs = list(glyphs)
        self.prefix = prefix
        self.suffix = suffix
        self.color = color
        self.frozen = False

    def __len__(self):
        return len(self.glyphs)

    def __iter__(self):
        return iter(self.glyphs)

    def __repr__(self):
        return (
            f"GlyphBlock({len(self.glyphs)} glyphs, prefix={self.prefix!r}, "
            f"suffix={self.suffix!r})"
        )

    @classmethod
    def _layout(
        cls,
        positions: InternalPositions,
        glyphs: Iterable[tuple[BasicGlyph, EncodingPosition]],
        lookups: LookupsMode,
        combining_class: CombiningClass,
        prefix: str,
        suffix: str,
        color: str,
    ) -> "GlyphBlock":
        laid_out = [
            GlyphFull(
                glyph=glyph,
                encoding=Encoding(positions.allocate(), external),
                lookups=lookups.resolve(index),
                combining_class=combining_class,
            )
            for index, (glyph, external) in enumerate(glyphs)
        ]
        for _ in range(filler_count(len(laid_out))):
            laid_out.append(filler_glyph(positions.allocate()))
        return cls(laid_out, prefix, suffix, color)

    @classmethod
    def from_encoded_glyphs(
        cls,
        positions: InternalPositions,
        glyphs: Sequence[tuple[BasicGlyph, EncodingPosition]],
        lookups: LookupsMode,
        combining_class: CombiningClass,
        prefix: str = "",
        suffix: str = "",
        color: str = FILLER_COLOR,
    ) -> "GlyphBlock":
        """Lay out glyphs that each carry their own external encoding."""
        return cls._layout(positions, glyphs, lookups, combining_class, prefix, suffix, color)

    @classmethod
    def from_basic_glyphs(
        cls,
        positions: InternalPositions,
        glyphs: Sequence[BasicGlyph],
        lookups: LookupsMode,
        combining_class: CombiningClass,
        prefix: str = "",
        suffix: str = "",
        color: str = FILLER_COLOR,
        start: EncodingPosition = UNENCODED,
    ) -> "GlyphBlock":
        """Lay out glyphs on consecutive code points beginning at ``start``."""
        encoded = []
        external = start
        for glyph in glyphs:
            encoded.append((glyph, external))
            external = external.advance()
        return cls._layout(positions, encoded, lookups, combining_class, prefix, suffix, color)

    @classmethod
    def from_descriptors(
        cls,
        positions: InternalPositions,
        descriptors: Sequence[GlyphDescriptor],
        lookups: LookupsMode,
        combining_class: CombiningClass,
        prefix: str = "",
        suffix: str = "",
        color: str = FILLER_COLOR,
        start: EncodingPosition = UNENCODED,
        fallback_width: int = 0,
    ) -> "GlyphBlock":
        glyphs = [descriptor.to_basic(fallback_width) for descriptor in descriptors]
        return cls.from_basic_glyphs(
            positions, glyphs, lookups, combining_class, prefix, suffix, color, start
        )

    @classmethod
    def empty(cls, positions: InternalPositions, count: int = 0) -> "GlyphBlock":
        """A block of ``count`` filler glyphs (no page padding is added)."""
        return cls([filler_glyph(positions.allocate()) for _ in range(count)])

    def referencing(
        self,
        positions: InternalPositions,
        placement: str,
        lookups: LookupsMode,
        combining_class: CombiningClass,
        use_full_names: bool,
        prefix: str = "",
        suffix: str = "",
        color: str = FILLER_COLOR,
        width: int | None = None,
        anchor: Anchor | None = None,
    ) -> "GlyphBlock":
        """
        Build a block whose glyphs each reference one glyph of this block.

        Every new glyph is drawn as a single reference to its source glyph at
        ``placement``.  Names are the source's bare names, or its decorated
        names when ``use_full_names`` is set.  ``width`` and ``anchor``
        override the source glyph's values when given.  The source's fillers
        are copied too and keep their names, so the new block needs no
        padding of its own.
        """
        glyphs = []
        for source in self.glyphs:
            name = self.full_name(source) if use_full_names else source.name
            glyphs.append(BasicGlyph(
                name=name,
                width=width if width is not None else source.glyph.width,
                representation=Representation(
                    references=(Reference(source.encoding, placement),)
                ),
                anchor=anchor if anchor is not None else source.glyph.anchor,
            ))
        return GlyphBlock.from_basic_glyphs(
            positions, glyphs, lookups, combining_class, prefix, suffix, color, UNENCODED
        )

    def full_name(self, glyph: GlyphFull) -> str:
        return f"{self.prefix}{glyph.name}{self.suffix}"

    def index_of(self, name: str) -> int:
        """Index of the glyph with the given bare name."""
        for index, glyph in enumerate(self.glyphs):
            if glyph.name == name:
                return index
        raise ValueError(f"No glyph named '{name}' in {self!r}")

    def patch(
        self,
        index: int,
        *,
        external: EncodingPosition | None = None,
        lookups: Lookups | None = None,
        combining_class: CombiningClass | None = None,
    ) -> None:
        """Override one glyph's external encoding, lookups or combining class."""
        if self.frozen:
            raise ValueError(f"Patching a frozen block: {self!r}")
        glyph = self.glyphs[index]
        if glyph.is_filler:
            raise ValueError(f"Patching filler glyph {glyph.name}")
        if external is not None:
            glyph.encoding = with_external(glyph.encoding, external)
        if lookups is not None:
            glyph.lookups = lookups
        if combining_class is not None:
            glyph.combining_class = combining_class

    def freeze(self) -> "GlyphBlock":
        """End the patching phase; later code only reads the glyph records."""
        self.frozen = True
        return self

    @property
    def internal_positions(self) -> list[int]:
        return [glyph.encoding.internal for glyph in self.glyphs]

    def render(self, variant: str) -> str:
        return "".join(
            glyph.render(self.prefix, self.suffix, self.color, variant)
            for glyph in self.glyphs
        )
