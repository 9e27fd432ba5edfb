#!/usr/bin/env python3
"""
Build the nasin-nanpa FontForge source from declarative glyph data.

Usage:
    python build_font.py <glyph_data.yaml|glyph_data/> [output_dir]

    The first argument can be a single YAML file or a directory of YAML files.
    When a directory is given, all *.yaml files are loaded and merged.

Outputs:
    output_dir/nasin-nanpa-<version>.sfd        - Main variant (keyboard ligatures)
    output_dir/nasin-nanpa-<version>-UCSUR.sfd  - UCSUR variant (private use area only)
"""

import os
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import yaml

from fontTools.misc.transform import Transform

from contextual_rules import render_chain_subs, render_context_subs
from glyph_blocks import GlyphBlock, GlyphDescriptor, InternalPositions
from lookups import MAIN, UCSUR, VARIANTS, LookupKind, Lookups, LookupsMode
from sfd import (
    UNENCODED,
    Anchor,
    AnchorClass,
    AnchorType,
    BasicGlyph,
    CombiningClass,
    Encoding,
    EncodingPosition,
    Reference,
    Representation,
    placement,
)

# The cartouche tick marks are drawn over combCartExtTok, which is laid out
# after them; the reference is fixed here and checked once the font is built.
CARTOUCHE_EXTENSION_NAME = "combCartExtTok"
CARTOUCHE_EXTENSION_POSITION = 34
REFERENCES = {
    "cartouche_extension": Reference(
        Encoding(CARTOUCHE_EXTENSION_POSITION, EncodingPosition(0xF1990)),
        placement(),
    ),
}

UPPER_PLACEMENT = placement(Transform().translate(-1000, 500), selected=True)

FAMILIES = (
    "ctrl",
    "tok_ctrl",
    "start_long_glyph",
    "latn",
    "tok_no_comb",
    "base_cor",
    "base_ext",
    "base_alt",
    "outer_cor",
    "outer_ext",
    "outer_alt",
    "inner_cor",
    "inner_ext",
    "inner_alt",
    "lower_cor",
    "lower_ext",
    "lower_alt",
)

DEFAULT_METADATA = {
    "font_name": "nasin-nanpa",
    "version": "0.0.0",
    "copyright": "",
    "trademark": "",
    "designer": "",
    "designer_url": "",
    "license": "",
    "license_url": "",
}


def load_glyph_data(path: Path) -> dict:
    """Load glyph families from a YAML file or directory of YAML files."""
    if path.is_dir():
        files = sorted(path.glob("*.yaml"))
    else:
        files = [path]

    metadata = {}
    families = {}
    for yaml_file in files:
        with open(yaml_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not data:
            continue
        if "metadata" in data:
            metadata.update(data["metadata"])
        for family, entries in (data.get("families") or {}).items():
            if family in families:
                raise ValueError(f"Glyph family '{family}' is defined twice ({yaml_file})")
            families[family] = entries or []
    return {"metadata": metadata, "families": families}


def parse_anchor(glyph_name: str, raw: dict | None) -> Anchor | None:
    """Convert a YAML anchor mapping ({class, type, x?, y?}) to an Anchor."""
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Glyph '{glyph_name}' has a malformed anchor: {raw!r}")
    try:
        anchor_class = AnchorClass(raw["class"])
        anchor_type = AnchorType.BASE if raw["type"] == "base" else AnchorType(raw["type"])
    except (KeyError, ValueError):
        raise ValueError(f"Glyph '{glyph_name}' has a malformed anchor: {raw!r}") from None
    if anchor_class is AnchorClass.STACK:
        return Anchor.stack(anchor_type)
    if "x" not in raw or "y" not in raw:
        raise ValueError(f"Glyph '{glyph_name}' has a scale anchor without a position")
    return Anchor.scale(anchor_type, raw["x"], raw["y"])


def _entry_name(entry: dict) -> str:
    if not isinstance(entry, dict) or "name" not in entry:
        raise ValueError(f"Glyph entry without a name: {entry!r}")
    return str(entry["name"])


def descriptors_from_yaml(entries: list[dict]) -> list[GlyphDescriptor]:
    descriptors = []
    for entry in entries:
        name = _entry_name(entry)
        descriptors.append(GlyphDescriptor(
            name=name,
            outline=entry.get("outline", ""),
            width=entry.get("width"),
            anchor=parse_anchor(name, entry.get("anchor")),
        ))
    return descriptors


def encoded_glyphs_from_yaml(entries: list[dict]) -> list[tuple[BasicGlyph, EncodingPosition]]:
    """Glyphs that carry their own code point (or none) and symbolic references."""
    glyphs = []
    for entry in entries:
        name = _entry_name(entry)
        references = []
        for ref_name in entry.get("refer", []):
            if ref_name not in REFERENCES:
                raise ValueError(f"Glyph '{name}' refers to unknown glyph '{ref_name}'")
            references.append(REFERENCES[ref_name])
        glyph = BasicGlyph(
            name=name,
            width=entry.get("width", 0),
            representation=Representation(entry.get("outline", ""), tuple(references)),
            anchor=parse_anchor(name, entry.get("anchor")),
        )
        glyphs.append((glyph, EncodingPosition(entry.get("encoding"))))
    return glyphs


def manual_ligatures(entries: list[dict]) -> LookupsMode:
    return LookupsMode.manual(str(entry.get("ligature", "")) for entry in entries)


@dataclass
class FontSource:
    """Everything the document needs from one variant's glyph layout."""

    variant: str
    blocks: list[GlyphBlock]
    context_subs: str
    chain_subs: str
    glyph_count: int

    def render_glyphs(self) -> str:
        return "".join(block.render(self.variant) for block in self.blocks)


def build_font_source(glyph_data: dict, variant: str = MAIN) -> FontSource:
    """
    Lay out every glyph block in document order and derive the class tables.

    The order of the block constructions below fixes every glyph's internal
    position in the font.
    """
    if variant not in VARIANTS:
        raise ValueError(f"Unknown font variant: {variant!r}")
    families = glyph_data["families"]
    missing = [family for family in FAMILIES if family not in families]
    if missing:
        raise ValueError(f"Glyph data is missing families: {', '.join(missing)}")

    is_main = variant == MAIN
    positions = InternalPositions()

    def from_family(family, lookups, combining_class, prefix, suffix, color, start, fallback_width):
        return GlyphBlock.from_descriptors(
            positions, descriptors_from_yaml(families[family]), lookups, combining_class,
            prefix, suffix, color, start, fallback_width,
        )

    ctrl_block = GlyphBlock.from_encoded_glyphs(
        positions,
        encoded_glyphs_from_yaml(families["ctrl"]),
        manual_ligatures(families["ctrl"]),
        CombiningClass.PARTICIPANT,
        "", "", "fa6791",
    )
    # NUL and the empty cartouche extension never extend a cartouche
    ctrl_block.patch(ctrl_block.index_of("NUL"), combining_class=CombiningClass.NONE)
    ctrl_block.patch(ctrl_block.index_of("combCartExtNoneTok"), combining_class=CombiningClass.NONE)

    tok_ctrl_block = from_family(
        "tok_ctrl", manual_ligatures(families["tok_ctrl"]), CombiningClass.NONE,
        "", "Tok", "aaafff", EncodingPosition(0xF1990), 0,
    )
    # The joiners sit inside cartouches
    tok_ctrl_block.patch(tok_ctrl_block.index_of("joinStack"), combining_class=CombiningClass.PARTICIPANT)
    tok_ctrl_block.patch(tok_ctrl_block.index_of("joinScale"), combining_class=CombiningClass.PARTICIPANT)
    # Alternate cartouche ends have no code point of their own
    tok_ctrl_block.patch(tok_ctrl_block.index_of("startCartAlt"), external=UNENCODED)
    tok_ctrl_block.patch(tok_ctrl_block.index_of("endCartAlt"), external=UNENCODED)

    start_long_glyph_block = from_family(
        "start_long_glyph", LookupsMode(LookupKind.START_LONG_GLYPH), CombiningClass.NONE,
        "", "_startLongGlyphTok", "aaafff", UNENCODED, 1000,
    )
    # la closes a reverse long glyph instead of opening one
    start_long_glyph_block.patch(
        start_long_glyph_block.index_of("laTok"), lookups=Lookups(LookupKind.END_LONG_GLYPH)
    )

    if is_main:
        latn_block = from_family(
            "latn", LookupsMode(), CombiningClass.HALF,
            "", "", "fffaaa", EncodingPosition(0x0020), 500,
        )
    else:
        latn_block = GlyphBlock.empty(positions)

    tok_no_comb_block = from_family(
        "tok_no_comb", manual_ligatures(families["tok_no_comb"]), CombiningClass.FULL,
        "", "Tok", "cccfff", UNENCODED, 1000,
    )
    # Punctuation and the ideographic space keep their standard code points
    tok_no_comb_block.patch(tok_no_comb_block.index_of("middleDot"), external=EncodingPosition(0xF199C))
    tok_no_comb_block.patch(tok_no_comb_block.index_of("colon"), external=EncodingPosition(0xF199D))
    tok_no_comb_block.patch(tok_no_comb_block.index_of("space"), external=EncodingPosition(0x3000))

    word_ligatures = LookupsMode(LookupKind.LETTERS if is_main else LookupKind.NONE)
    tok_block = from_family(
        "base_cor", word_ligatures, CombiningClass.FULL,
        "", "Tok", "bf80ff", EncodingPosition(0xF1900), 1000,
    )
    tok_ext_block = from_family(
        "base_ext", word_ligatures, CombiningClass.FULL,
        "", "Tok", "df80ff", EncodingPosition(0xF19A0), 1000,
    )
    tok_alt_block = from_family(
        "base_alt", LookupsMode(LookupKind.ALT), CombiningClass.FULL,
        "", "", "ff80e6", UNENCODED, 1000,
    )

    combo_first = LookupsMode(LookupKind.COMBO_FIRST)
    combo_last = LookupsMode(LookupKind.COMBO_LAST)
    tok_outer_block = from_family(
        "outer_cor", combo_first, CombiningClass.FULL,
        "", "Tok_joinScaleTok", "ffff", UNENCODED, 1000,
    )
    tok_ext_outer_block = from_family(
        "outer_ext", combo_first, CombiningClass.FULL,
        "", "Tok_joinScaleTok", "ffff", UNENCODED, 1000,
    )
    tok_alt_outer_block = from_family(
        "outer_alt", combo_first, CombiningClass.FULL,
        "", "_joinScaleTok", "ffff", UNENCODED, 1000,
    )
    tok_inner_block = from_family(
        "inner_cor", combo_last, CombiningClass.FULL,
        "joinScaleTok_", "Tok", "80ffff", UNENCODED, 0,
    )
    tok_ext_inner_block = from_family(
        "inner_ext", combo_last, CombiningClass.FULL,
        "joinScaleTok_", "Tok", "80ffff", UNENCODED, 0,
    )
    tok_alt_inner_block = from_family(
        "inner_alt", combo_last, CombiningClass.FULL,
        "joinScaleTok_", "", "80ffff", UNENCODED, 0,
    )
    tok_lower_block = from_family(
        "lower_cor", combo_first, CombiningClass.FULL,
        "", "Tok_joinStackTok", "ff00", UNENCODED, 1000,
    )
    tok_ext_lower_block = from_family(
        "lower_ext", combo_first, CombiningClass.FULL,
        "", "Tok_joinStackTok", "ff00", UNENCODED, 1000,
    )
    tok_alt_lower_block = from_family(
        "lower_alt", combo_first, CombiningClass.FULL,
        "", "_joinStackTok", "ff00", UNENCODED, 1000,
    )

    upper_mark = Anchor.stack(AnchorType.MARK)
    upper_blocks = [
        lower.referencing(
            positions, UPPER_PLACEMENT, combo_last, CombiningClass.FULL,
            use_full_names=False, prefix="joinStackTok_", suffix=suffix,
            color="80ff80", width=0, anchor=upper_mark,
        )
        for lower, suffix in (
            (tok_lower_block, "Tok"),
            (tok_ext_lower_block, "Tok"),
            (tok_alt_lower_block, ""),
        )
    ]

    outer_blocks = [tok_outer_block, tok_ext_outer_block, tok_alt_outer_block]
    inner_blocks = [tok_inner_block, tok_ext_inner_block, tok_alt_inner_block]
    lower_blocks = [tok_lower_block, tok_ext_lower_block, tok_alt_lower_block]
    main_blocks = [
        latn_block,
        tok_no_comb_block,
        tok_block,
        tok_ext_block,
        tok_alt_block,
        *outer_blocks,
        *inner_blocks,
        *lower_blocks,
        *upper_blocks,
    ]
    blocks = [ctrl_block, tok_ctrl_block, start_long_glyph_block, *main_blocks]
    for block in blocks:
        block.freeze()

    check_cartouche_extension(blocks)

    return FontSource(
        variant=variant,
        blocks=blocks,
        context_subs=render_context_subs(outer_blocks, lower_blocks),
        chain_subs=render_chain_subs(ctrl_block, main_blocks, start_long_glyph_block),
        glyph_count=positions.next,
    )


def check_cartouche_extension(blocks: list[GlyphBlock]):
    for block in blocks:
        for glyph in block.glyphs:
            if glyph.encoding.internal == CARTOUCHE_EXTENSION_POSITION:
                full_name = block.full_name(glyph)
                if full_name != CARTOUCHE_EXTENSION_NAME:
                    raise ValueError(
                        f"Cartouche tick marks refer to position {CARTOUCHE_EXTENSION_POSITION}, "
                        f"which holds '{full_name}' instead of '{CARTOUCHE_EXTENSION_NAME}'"
                    )
                return
    raise ValueError(f"No glyph at position {CARTOUCHE_EXTENSION_POSITION}")


HEADER = """SplineFontDB: 3.2
FontName: {font_name}
FullName: {font_name}
FamilyName: {font_name}
Weight: Regular
Copyright: {copyright}
Version: {version}
"""

DETAILS1 = """ItalicAngle: 0
UnderlinePosition: 0
UnderlineWidth: 0
Ascent: 900
Descent: 100
InvalidEm: 0
sfntRevision: 0x00010000
LayerCount: 2
Layer: 0 0 "Back" 1
Layer: 1 0 "Fore" 0
XUID: [1021 700 1229584016 12833]
StyleMap: 0x0040
FSType: 0
OS2Version: 4
OS2_WeightWidthSlopeOnly: 0
OS2_UseTypoMetrics: 0
CreationTime: 1640950552
"""

DETAILS2 = """
PfmFamily: 81
TTFWeight: 400
TTFWidth: 5
LineGap: 0
VLineGap: 0
Panose: 0 0 8 9 0 0 0 6 0 0
OS2TypoAscent: 1000
OS2TypoAOffset: 0
OS2TypoDescent: 0
OS2TypoDOffset: 0
OS2TypoLinegap: 0
OS2WinAscent: 1000
OS2WinAOffset: 0
OS2WinDescent: 386
OS2WinDOffset: 0
HheadAscent: 1000
HheadAOffset: 0
HheadDescent: -386
HheadDOffset: 0
OS2SubXSize: 650
OS2SubYSize: 699
OS2SubXOff: 0
OS2SubYOff: 140
OS2SupXSize: 650
OS2SupYSize: 699
OS2SupXOff: 0
OS2SupYOff: 479
OS2StrikeYSize: 49
OS2StrikeYPos: 258
OS2CapHeight: 1000
OS2XHeight: 500
OS2Vendor: 'XXXX'
OS2CodePages: 00000001.00000000
OS2UnicodeRanges: 0000000f.00000000.00000000.00000000
"""

_SCRIPTS = "('DFLT' <'dflt' 'latn' > 'latn' <'dflt' > )"

LOOKUPS = f"""Lookup: 4 0 0 "'liga' SPACE" {{ "'liga' SPACE"  }} ['liga' {_SCRIPTS} ]
Lookup: 4 0 0 "'liga' WORDS" {{ "'liga' WORD PLUS SPACE"  "'liga' WORD"  }} ['liga' {_SCRIPTS} ]
Lookup: 3 0 0 "'rand' RAND VARIATIONS" {{ "'rand' RAND VARIATIONS"  }} ['rand' {_SCRIPTS} ]
Lookup: 4 0 0 "'liga' VARIATIONS" {{ "'liga' VAR PLUS SPACE"  "'liga' VAR"  }} ['liga' {_SCRIPTS} ]
Lookup: 4 0 0 "'liga' START CONTAINER" {{ "'liga' START CONTAINER"  }} ['liga' {_SCRIPTS} ]
Lookup: 5 0 0 "'calt' CHANGE ZWJ" {{ "'calt' CHANGE ZWJ"  }} ['calt' {_SCRIPTS} ]
Lookup: 1 0 0 "'ss01' ZWJ TO SCALE" {{ "'ss01' ZWJ TO SCALE"  }} ['ss01' {_SCRIPTS} ]
Lookup: 1 0 0 "'ss02' ZWJ TO STACK" {{ "'ss02' ZWJ TO STACK"  }} ['ss02' {_SCRIPTS} ]
Lookup: 4 0 0 "'liga' GLYPH THEN JOINER" {{ "'liga' GLYPH THEN JOINER"  }} ['liga' {_SCRIPTS} ]
Lookup: 2 0 0 "'ccmp' RESPAWN JOINER" {{ "'ccmp' RESPAWN JOINER"  }} ['ccmp' {_SCRIPTS} ]
Lookup: 4 0 0 "'liga' JOINER THEN GLYPH" {{ "'liga' JOINER THEN GLYPH"  }} ['liga' {_SCRIPTS} ]
Lookup: 6 0 0 "'calt' CART AND CONT" {{ "'calt' CART AND CONT"  }} ['calt' {_SCRIPTS} ]
Lookup: 2 2 0 "'cc01' CART" {{ "'cc01' CART"  }} ['cc01' {_SCRIPTS} ]
Lookup: 2 2 0 "'cc02' CONT" {{ "'cc02' CONT"  }} ['cc02' {_SCRIPTS} ]
Lookup: 4 0 0 "'liga' CC CLEANUP" {{ "'liga' CC CLEANUP"  }} ['liga' {_SCRIPTS} ]
Lookup: 260 0 0 "'mark' POSITION COMBO" {{ "'mark' STACK"  "'mark' SCALE"  }} ['mark' {_SCRIPTS} ]
MarkAttachClasses: 1
"""

AFTER_CONTEXT_SUBS = """ 2 0 0
  ClsList: 2 1
  BClsList:
  FClsList:
 1
  SeqLookup: 1 "'ss01' ZWJ TO SCALE"
 2 0 0
  ClsList: 3 1
  BClsList:
  FClsList:
 1
  SeqLookup: 1 "'ss02' ZWJ TO STACK"
  ClassNames: "other" "zwj" "scale" "stack"
  BClassNames: "other" "zwj" "scale" "stack"
  FClassNames: "other" "zwj" "scale" "stack"
EndFPST
"""

AFTER_CHAIN_SUBS = """ 1 1 0
  ClsList: 1
  BClsList: 2
  FClsList:
 1
  SeqLookup: 0 "'cc01' CART"
 1 1 0
  ClsList: 1
  BClsList: 3
  FClsList:
 1
  SeqLookup: 0 "'cc02' CONT"
  ClassNames: "other" "base" "cart" "cont"
  BClassNames: "other" "base" "cart" "cont"
  FClassNames: "other" "base" "cart" "cont"
EndFPST
"""

# "+ACIA-" / "+ACIA" are FontForge's UTF-7 quoting of the surrounding quotes.
LANG_NAME = (
    'LangName: 1033 "" "" "" "" "" "{version}" "" "+ACIA-{trademark}+ACIA" "+ACIAIgAA" '
    '"+ACIA-{designer}+ACIA" "+ACIAIgAA" "+ACIAIgAA" "+ACIA-{designer_url}+ACIA" '
    '"+ACIA-{license}+ACIA" "+ACIA-{license_url}+ACIA" "" "{font_name}" "Regular"\n'
)

OTHER = """Encoding: Custom
UnicodeInterp: none
NameList: AGL For New Fonts
DisplaySize: -48
AntiAlias: 1
FitToEm: 1
WinInfo: 32 16 8
BeginPrivate: 12
BlueValues 22 [-2 1 414 417 796 797]
OtherBlues 11 [-385 -384]
BlueFuzz 1 1
BlueScale 8 0.039625
BlueShift 1 7
StdHW 5 [100]
StdVW 5 [100]
StemSnapH 5 [100]
StemSnapV 5 [100]
ForceBold 5 false
LanguageGroup 1 0
ExpansionFactor 4 0.06
EndPrivate
AnchorClass2: "stack" "'mark' POSITION COMBO" "scale" "'mark' POSITION COMBO"
"""


def get_modification_time() -> int:
    """Seconds since the epoch, honouring SOURCE_DATE_EPOCH for reproducible builds."""
    source_date_epoch = os.environ.get("SOURCE_DATE_EPOCH")
    if source_date_epoch:
        return int(source_date_epoch)
    return int(datetime.now().timestamp())


def render_document(
    font_source: FontSource,
    metadata: dict,
    modification_time: int,
) -> str:
    """Wrap the glyphs and contextual rules in the static SFD boilerplate."""
    fields = {**DEFAULT_METADATA, **metadata}
    count = font_source.glyph_count
    return (
        HEADER.format(**fields)
        + DETAILS1
        + f"ModificationTime: {modification_time}"
        + DETAILS2
        + LOOKUPS
        + "DEI: 91125\n"
        + font_source.context_subs
        + AFTER_CONTEXT_SUBS
        + font_source.chain_subs
        + AFTER_CHAIN_SUBS
        + LANG_NAME.format(**fields)
        + OTHER
        + f"BeginChars: {count} {count}\n"
        + font_source.render_glyphs()
        + "EndChars\nEndSplineFont\n\n"
    )


def output_filename(metadata: dict, variant: str) -> str:
    fields = {**DEFAULT_METADATA, **metadata}
    suffix = "-UCSUR" if variant == UCSUR else ""
    return f"{fields['font_name']}-{fields['version']}{suffix}.sfd"


def build_font(glyph_data: dict, output_path: Path, variant: str = MAIN):
    """
    Build one variant's font source and write it to output_path.

    Args:
        glyph_data: Dictionary containing metadata and glyph families
        output_path: Path to write the .sfd file
        variant: "main" or "ucsur"
    """
    metadata = glyph_data.get("metadata", {})
    font_source = build_font_source(glyph_data, variant)
    document = render_document(font_source, metadata, get_modification_time())
    output_path.write_text(document, encoding="utf-8")

    print(f"Font source saved to: {output_path}")
    print(f"  Variant: {variant}")
    print(f"  Blocks: {len(font_source.blocks)}")
    print(f"  Glyphs: {font_source.glyph_count}")


def main():
    if len(sys.argv) < 2:
        print("Usage: python build_font.py <glyph_data.yaml|glyph_data/> [output_dir]")
        print("\nOutputs:")
        print("  output_dir/nasin-nanpa-<version>.sfd")
        print("  output_dir/nasin-nanpa-<version>-UCSUR.sfd")
        print("\nExample:")
        print("  python build_font.py glyph_data/ build/")
        sys.exit(1)

    input_path = Path(sys.argv[1])

    if len(sys.argv) > 2:
        output_dir = Path(sys.argv[2])
    else:
        output_dir = Path(".")

    if not input_path.exists():
        print(f"Error: Input path not found: {input_path}")
        sys.exit(1)

    # Ensure output directory exists
    output_dir.mkdir(parents=True, exist_ok=True)

    glyph_data = load_glyph_data(input_path)
    metadata = glyph_data["metadata"]

    for variant in VARIANTS:
        build_font(glyph_data, output_dir / output_filename(metadata, variant), variant)


if __name__ == "__main__":
    main()
