"""End-to-end font source assembly from the shipped glyph data."""

import copy
import re

import pytest
import yaml

from build_font import (
    CARTOUCHE_EXTENSION_POSITION,
    build_font,
    build_font_source,
    load_glyph_data,
    output_filename,
    parse_anchor,
    render_document,
)
from lookups import MAIN, UCSUR
from sfd import Anchor, AnchorType

ENCODING_RE = re.compile(r"^Encoding: (\d+) (-?\d+) (\d+)$", re.MULTILINE)


def glyph_records(document):
    """Map each glyph name to the text of its StartChar..EndChar record."""
    body = document.split("BeginChars:", 1)[1]
    records = {}
    for chunk in body.split("\nStartChar: ")[1:]:
        name, _, rest = chunk.partition("\n")
        records[name] = rest.split("EndChar\n", 1)[0]
    return records


@pytest.fixture(scope="module")
def documents(glyph_data):
    return {
        variant: render_document(
            build_font_source(glyph_data, variant), glyph_data["metadata"], 1700000000
        )
        for variant in (MAIN, UCSUR)
    }


def test_loader_merges_directory(glyph_data):
    assert glyph_data["metadata"]["font_name"] == "nasin-nanpa"
    assert len(glyph_data["families"]["ctrl"]) == 32
    assert glyph_data["families"]["tok_ctrl"][2]["name"] == "combCartExt"


def test_loader_rejects_duplicate_family(tmp_path):
    for filename in ("a.yaml", "b.yaml"):
        (tmp_path / filename).write_text(
            yaml.safe_dump({"families": {"latn": [{"name": "space"}]}})
        )
    with pytest.raises(ValueError):
        load_glyph_data(tmp_path)


def test_loader_reads_single_file(tmp_path):
    path = tmp_path / "glyphs.yaml"
    path.write_text(yaml.safe_dump({
        "metadata": {"version": "1.0"},
        "families": {"latn": [{"name": "space"}]},
    }))
    data = load_glyph_data(path)
    assert data == {"metadata": {"version": "1.0"}, "families": {"latn": [{"name": "space"}]}}


@pytest.mark.parametrize("variant", [MAIN, UCSUR])
def test_positions_are_contiguous(glyph_data, variant):
    source = build_font_source(glyph_data, variant)
    positions = [p for block in source.blocks for p in block.internal_positions]
    assert positions == list(range(source.glyph_count))
    for block in source.blocks:
        assert len(block) % 16 == 0
        assert block.frozen


@pytest.mark.parametrize("variant", [MAIN, UCSUR])
def test_document_glyph_table(documents, variant):
    document = documents[variant]
    count = len(ENCODING_RE.findall(document))
    assert f"BeginChars: {count} {count}\n" in document
    for internal, _, index in ENCODING_RE.findall(document):
        assert internal == index
    names = re.findall(r"^StartChar: (.+)$", document, re.MULTILINE)
    assert len(names) == count
    glyph_names = [name for name in names if "empty" not in name]
    assert len(set(glyph_names)) == len(glyph_names)


def test_latin_glyphs_only_in_main(glyph_data):
    main = build_font_source(glyph_data, MAIN)
    ucsur = build_font_source(glyph_data, UCSUR)
    assert main.glyph_count - ucsur.glyph_count == 96
    assert len(ucsur.blocks[3]) == 0


def test_cartouche_extension_position(documents):
    records = glyph_records(documents[MAIN])
    assert records["combCartExtTok"].startswith(
        f"Encoding: {CARTOUCHE_EXTENSION_POSITION} 989586 {CARTOUCHE_EXTENSION_POSITION}\n"
    )
    assert "Refer: 34 989584 N 1 0 0 1 0 0 2\n" in records["combCartExt5TickTok"]


def test_misplaced_cartouche_extension_rejected(glyph_data):
    broken = copy.deepcopy(glyph_data)
    broken["families"]["tok_ctrl"].reverse()
    with pytest.raises(ValueError, match="combCartExtTok"):
        build_font_source(broken, MAIN)


def test_missing_family_rejected(glyph_data):
    broken = copy.deepcopy(glyph_data)
    del broken["families"]["inner_alt"]
    with pytest.raises(ValueError, match="inner_alt"):
        build_font_source(broken, MAIN)


def test_unknown_variant_rejected(glyph_data):
    with pytest.raises(ValueError):
        build_font_source(glyph_data, "latin")


def test_patched_glyphs(documents):
    records = glyph_records(documents[MAIN])
    assert "MultipleSubs2" not in records["NUL"]
    assert "MultipleSubs2" not in records["combCartExtNoneTok"]
    assert "ZWJ combCartExtNoneTok" in records["ZWJ"]
    assert "joinStackTok combCartExtNoneTok" in records["joinStackTok"]
    assert records["startCartAltTok"].startswith("Encoding: 44 -1 44\n")
    assert re.match(r"Encoding: (\d+) 989597 \1\n", records["colonTok"])
    assert re.match(r"Encoding: (\d+) 989596 \1\n", records["middleDotTok"])
    assert re.match(r"Encoding: (\d+) 12288 \1\n", records["spaceTok"])
    assert (
        "Ligature2: \"'liga' START CONTAINER\" endRevLongGlyphTok laTok\n"
        in records["laTok_startLongGlyphTok"]
    )
    assert (
        "Ligature2: \"'liga' START CONTAINER\" alaTok startLongGlyphTok\n"
        in records["alaTok_startLongGlyphTok"]
    )


def test_upper_glyphs_reference_lower_glyphs(documents):
    records = glyph_records(documents[MAIN])
    lower = records["miTok_joinStackTok"]
    upper = records["joinStackTok_miTok"]
    lower_internal = ENCODING_RE.search("\n" + lower).group(1)
    assert f"Refer: {lower_internal} -1 S 1 0 0 1 -1000 500 2\n" in upper
    assert "Width: 0\n" in upper
    assert 'AnchorPoint: "stack" -500 400 mark 0\n' in upper
    assert "SplineSet" not in upper
    assert "Colour: 80ff80\n" in upper


def test_upper_fillers_carry_lower_names(glyph_data):
    source = build_font_source(glyph_data, MAIN)
    lower_blocks = source.blocks[14:17]
    upper_blocks = source.blocks[17:20]
    for lower, upper in zip(lower_blocks, upper_blocks):
        lower_fillers = [glyph.name for glyph in lower if glyph.is_filler]
        upper_fillers = [glyph.name for glyph in upper if glyph.is_filler]
        assert lower_fillers
        assert upper_fillers == lower_fillers
        for glyph in upper:
            if glyph.is_filler:
                assert upper.full_name(glyph) in source.chain_subs.split()


def test_upper_filler_records_repeat_lower_names(documents):
    document = documents[MAIN]
    lower_filler = re.search(
        r"StartChar: miTok_joinStackTok\n.*?StartChar: (empty\d{4})\n", document, re.DOTALL
    ).group(1)
    assert document.count(f"\nStartChar: {lower_filler}\n") == 2
    assert f" joinStackTok_{lower_filler}Tok " in document


def test_anchor_parsing():
    assert parse_anchor("pona", None) is None
    assert parse_anchor("pona", {"class": "stack", "type": "base"}) == Anchor.stack(AnchorType.BASE)
    assert parse_anchor("pona", {"class": "scale", "type": "mark", "x": -500, "y": 400}) == (
        Anchor.scale(AnchorType.MARK, -500, 400)
    )


@pytest.mark.parametrize(
    "raw",
    [
        "base",
        ["stack", "base"],
        {"class": "stretch", "type": "base"},
        {"class": "stack", "type": "ligature"},
        {"type": "base"},
        {"class": "scale", "type": "base", "x": 500},
    ],
)
def test_malformed_anchor_rejected(raw):
    with pytest.raises(ValueError, match="pona"):
        parse_anchor("pona", raw)


def test_keyboard_ligatures_only_in_main(documents):
    rule = "Ligature2: \"'liga' WORD\" p o n a\n"
    assert rule in glyph_records(documents[MAIN])["ponaTok"]
    assert rule not in glyph_records(documents[UCSUR])["ponaTok"]


def test_class_tables(documents):
    document = documents[MAIN]
    assert "DEI: 91125\nContextSub2: class \"'calt' CHANGE ZWJ\" 4 4 4 2\n  Class: 3 ZWJ\n" in document
    scale = re.search(r"^  Class: \d+ (insaTok .*)$", document, re.MULTILINE).group(1).split(" ")
    stack = re.search(r"^  Class: \d+ (aTok .*)$", document, re.MULTILINE).group(1).split(" ")
    assert "tomoTok" in scale
    assert "tomoTok" not in stack
    assert "niTok_arrowW" not in stack
    assert "EndFPST\nChainSub2: class \"'calt' CART AND CONT\" 4 4 4 2\n" in document


def test_document_frame(documents):
    document = documents[MAIN]
    assert document.startswith(
        "SplineFontDB: 3.2\nFontName: nasin-nanpa\nFullName: nasin-nanpa\n"
    )
    assert "Version: 5.0.0-beta.1\nItalicAngle: 0\n" in document
    assert "CreationTime: 1640950552\nModificationTime: 1700000000\nPfmFamily: 81\n" in document
    assert (
        'LangName: 1033 "" "" "" "" "" "5.0.0-beta.1" "" "+ACIA-jan Itan 2023+ACIA" '
        in document
    )
    assert '"+ACIA-MIT License+ACIA"' in document
    assert "AnchorClass2: \"stack\" \"'mark' POSITION COMBO\" \"scale\"" in document
    assert document.endswith("EndChars\nEndSplineFont\n\n")


def test_output_filenames(glyph_data):
    metadata = glyph_data["metadata"]
    assert output_filename(metadata, MAIN) == "nasin-nanpa-5.0.0-beta.1.sfd"
    assert output_filename(metadata, UCSUR) == "nasin-nanpa-5.0.0-beta.1-UCSUR.sfd"


def test_build_font_writes_reproducible_file(glyph_data, tmp_path, monkeypatch):
    monkeypatch.setenv("SOURCE_DATE_EPOCH", "1234")
    first = tmp_path / "first.sfd"
    second = tmp_path / "second.sfd"
    build_font(glyph_data, first, UCSUR)
    build_font(glyph_data, second, UCSUR)
    text = first.read_text(encoding="utf-8")
    assert "ModificationTime: 1234\n" in text
    assert text == second.read_text(encoding="utf-8")
