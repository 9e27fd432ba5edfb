"""
Class-based contextual rules derived from the finished glyph blocks.

Two FPST (contextual/chaining substitution) bodies are built here:

* ``'calt' CHANGE ZWJ`` turns a ZWJ into a scaling or stacking joiner
  depending on the glyph before it, using the classes zwj/scale/stack.
* ``'calt' CART AND CONT`` places cartouche extensions and long glyph
  continuations after base glyphs, using the classes base/cart/cont.

Each body lists its classes three times, for the current, backtrack ("B")
and lookahead ("F") positions.
"""

from collections.abc import Sequence

from glyph_blocks import GlyphBlock

CLASS_PREFIXES = ("", "B", "F")
TOKEN_SUFFIX = "Tok"
ZWJ_NAME = "ZWJ"
JOINER_NAMES = "joinStackTok joinScaleTok"
CARTOUCHE_TICK_COUNT = 8
LONG_GLYPH_EXCLUSION = "laTok"

CART_NAMES = " ".join([
    "combCartExtHalfTok combCartExtNoneTok",
    " ".join(f"combCartExt{n}TickTok" for n in range(1, CARTOUCHE_TICK_COUNT + 1)),
    "startCartTok combCartExtTok startCartAltTok",
])
CONT_NAMES = (
    "combLongGlyphExtHalfTok startLongPiTok combLongPiExtTok "
    "startLongGlyphTok combLongGlyphExtTok startRevLongGlyphTok"
)


def put_in_class(names: str) -> str:
    return f"Class: {len(names)} {names}"


def render_class_triple(classes: Sequence[str]) -> str:
    return "".join(
        f"  {prefix}{cls}\n" for prefix in CLASS_PREFIXES for cls in classes
    )


def _token_names(blocks: Sequence[GlyphBlock], keep) -> str:
    """
    Join the names of the glyphs ``keep`` accepts, block by block.

    Every block but the last holds bare token names that need the token
    suffix; the last (alternate) block's names are already complete.
    """
    per_block = []
    for index, block in enumerate(blocks):
        suffix = TOKEN_SUFFIX if index < len(blocks) - 1 else ""
        per_block.append(" ".join(
            f"{glyph.name}{suffix}" for glyph in block.glyphs if keep(glyph)
        ))
    return " ".join(per_block)


def scale_stack_names(
    outer_blocks: Sequence[GlyphBlock],
    lower_blocks: Sequence[GlyphBlock],
) -> tuple[str, str]:
    """
    Return the bodies of the scale and stack classes.

    A glyph that can be scaled is never listed as stackable, even if a lower
    block has a glyph of the same bare name; arrow alternates are never
    stackable.
    """
    scale_glyphs = {
        glyph.name
        for block in outer_blocks
        for glyph in block.glyphs
        if not glyph.is_filler
    }
    scale = _token_names(outer_blocks, lambda glyph: not glyph.is_filler)
    stack = _token_names(
        lower_blocks,
        lambda glyph: (
            not glyph.is_filler
            and "arrow" not in glyph.name
            and glyph.name not in scale_glyphs
        ),
    )
    return scale, stack


def render_context_subs(
    outer_blocks: Sequence[GlyphBlock],
    lower_blocks: Sequence[GlyphBlock],
) -> str:
    scale, stack = scale_stack_names(outer_blocks, lower_blocks)
    classes = [put_in_class(ZWJ_NAME), put_in_class(scale), put_in_class(stack)]
    return (
        "ContextSub2: class \"'calt' CHANGE ZWJ\" 4 4 4 2\n"
        + render_class_triple(classes)
    )


def base_names(ctrl_block: GlyphBlock, main_blocks: Sequence[GlyphBlock]) -> str:
    ctrl = " ".join(
        ctrl_block.full_name(glyph)
        for glyph in ctrl_block.glyphs
        if "Half" not in glyph.name and "Tick" not in glyph.name
    )
    main = " ".join(
        " ".join(block.full_name(glyph) for glyph in block.glyphs)
        for block in main_blocks
    )
    return f"{ctrl} {JOINER_NAMES} {main}"


def cont_names(long_glyph_block: GlyphBlock) -> str:
    longs = " ".join(
        long_glyph_block.full_name(glyph)
        for glyph in long_glyph_block.glyphs
        if glyph.name != LONG_GLYPH_EXCLUSION
    )
    return f"{CONT_NAMES} {longs}"


def render_chain_subs(
    ctrl_block: GlyphBlock,
    main_blocks: Sequence[GlyphBlock],
    long_glyph_block: GlyphBlock,
) -> str:
    classes = [
        put_in_class(base_names(ctrl_block, main_blocks)),
        put_in_class(CART_NAMES),
        put_in_class(cont_names(long_glyph_block)),
    ]
    return (
        "ChainSub2: class \"'calt' CART AND CONT\" 4 4 4 2\n"
        + render_class_triple(classes)
    )
