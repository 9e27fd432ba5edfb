"""
Lookup rule synthesis for nasin-nanpa glyphs.

Every glyph carries a resolved ``Lookups`` value telling which naming
convention its OpenType rules follow.  ``Lookups.render`` turns the glyph's
bare name and decorated name into the literal SFD rule lines
(``Ligature2``, ``Substitution2``, ``MultipleSubs2``, ``AlternateSubs2``)
that follow the glyph's drawing.

Two font variants are built.  The "main" variant also maps ASCII keyboard
input (letters, punctuation, digit words) onto the glyphs; the "ucsur"
variant only carries the rules needed for text encoded in the private use
area.
"""

from dataclasses import dataclass
from enum import Enum

MAIN = "main"
UCSUR = "ucsur"
VARIANTS = (MAIN, UCSUR)

# Subtable names, as declared in the document's lookup list
WORD = "'liga' WORD"
WORD_PLUS_SPACE = "'liga' WORD PLUS SPACE"
VAR = "'liga' VAR"
VAR_PLUS_SPACE = "'liga' VAR PLUS SPACE"
SPACE = "'liga' SPACE"
START_CONTAINER = "'liga' START CONTAINER"
GLYPH_THEN_JOINER = "'liga' GLYPH THEN JOINER"
JOINER_THEN_GLYPH = "'liga' JOINER THEN GLYPH"
CC_CLEANUP = "'liga' CC CLEANUP"
RESPAWN_JOINER = "'ccmp' RESPAWN JOINER"
RAND_VARIATIONS = "'rand' RAND VARIATIONS"

REVERSE_LONG_GLYPH_END = "endRevLongGlyphTok"
CLEANUP_MARKERS = (
    "combCartExtHalfTok",
    "combLongGlyphExtHalfTok",
    "combCartExtTok",
    "combLongGlyphExtTok",
)

# Both selector spellings map to the digit word typed after a glyph.
SELECTOR_ORDINALS = {
    "VAR01": "one",
    "arrowW": "one",
    "VAR02": "two",
    "arrowN": "two",
    "VAR03": "three",
    "arrowE": "three",
    "VAR04": "four",
    "arrowS": "four",
    "VAR05": "five",
    "arrowNW": "five",
    "VAR06": "six",
    "arrowNE": "six",
    "VAR07": "seven",
    "arrowSE": "seven",
    "VAR08": "eight",
    "arrowSW": "eight",
}

# Keyboard glyphs that spell each arrow direction
ARROW_KEYS = {
    "W": "less",
    "N": "asciicircum",
    "E": "greater",
    "S": "v",
}
ARROW_DIRECTION_INDEX = 5  # "arrow" is followed by one or two direction letters

RANDOM_FAMILIES = ("jakiTok", "koTok")
RANDOM_VARIANT_COUNT = 8
RERANDOMIZE_SELECTOR = "9"
RERANDOMIZE_ORDINAL = "nine"


def ligature(subtable: str, *components: str) -> str:
    return f"Ligature2: \"{subtable}\" {' '.join(components)}\n"


def _keyboard_pair(components: str, plus_space: str, plain: str) -> str:
    """The same ligature with and without a trailing space."""
    return ligature(plus_space, components, "space") + ligature(plain, components)


class LookupKind(Enum):
    LETTERS = "letters"
    MANUAL = "manual"
    START_LONG_GLYPH = "start_long_glyph"
    END_LONG_GLYPH = "end_long_glyph"
    ALT = "alt"
    COMBO_FIRST = "combo_first"
    COMBO_LAST = "combo_last"
    NONE = "none"


@dataclass(frozen=True)
class Lookups:
    """The lookup convention of one glyph, plus its manual ligature if any."""

    kind: LookupKind = LookupKind.NONE
    ligature: str = ""

    def render(self, name: str, full_name: str, variant: str) -> str:
        """
        Synthesize the rule lines for a glyph.

        Args:
            name: the bare glyph name, as listed in the glyph data
            full_name: the name with the block's prefix and suffix applied
            variant: MAIN or UCSUR

        Raises ValueError when the name does not have the shape its
        convention requires.
        """
        if variant not in VARIANTS:
            raise ValueError(f"Unknown font variant: {variant!r}")
        rules = _DERIVATIONS[self.kind](self, name, full_name, variant)
        return rules + random_variation_rules(full_name, variant)


NO_LOOKUPS = Lookups()


@dataclass(frozen=True)
class LookupsMode:
    """
    A block-wide lookup policy, resolved per glyph by its index in the block.

    The manual policy carries one ligature string per glyph; an empty
    string resolves to no lookups.
    """

    kind: LookupKind = LookupKind.NONE
    ligatures: tuple[str, ...] = ()

    def __post_init__(self):
        if self.kind is LookupKind.END_LONG_GLYPH:
            raise ValueError("END_LONG_GLYPH is only reachable by patching a glyph")
        if self.ligatures and self.kind is not LookupKind.MANUAL:
            raise ValueError(f"Ligature list given for non-manual lookups mode {self.kind.value}")

    @classmethod
    def manual(cls, ligatures) -> "LookupsMode":
        return cls(LookupKind.MANUAL, tuple(ligatures))

    def resolve(self, index: int) -> Lookups:
        if self.kind is not LookupKind.MANUAL:
            return Lookups(self.kind)
        if index >= len(self.ligatures):
            raise ValueError(
                f"Manual ligature list has {len(self.ligatures)} entries, "
                f"no entry for glyph {index}"
            )
        word = self.ligatures[index]
        if not word:
            return NO_LOOKUPS
        return Lookups(LookupKind.MANUAL, word)


def split_first(full_name: str) -> tuple[str, str]:
    head, sep, tail = full_name.partition("_")
    if not sep:
        raise ValueError(f"Glyph '{full_name}' has no '_' separator")
    return head, tail


def split_last(full_name: str) -> tuple[str, str]:
    head, sep, tail = full_name.rpartition("_")
    if not sep:
        raise ValueError(f"Glyph '{full_name}' has no '_' separator")
    return head, tail


def selector_ordinal(full_name: str, selector: str) -> str:
    try:
        return SELECTOR_ORDINALS[selector]
    except KeyError:
        raise ValueError(
            f"Glyph '{full_name}' has unknown variation selector '{selector}'"
        ) from None


def arrow_key(name: str, direction: str) -> str:
    try:
        return ARROW_KEYS[direction]
    except KeyError:
        raise ValueError(
            f"Glyph '{name}' has unknown arrow direction '{direction}'"
        ) from None


def derive_letters(lookups: Lookups, name: str, full_name: str, variant: str) -> str:
    letters = " ".join(name)
    rules = _keyboard_pair(letters, WORD_PLUS_SPACE, WORD)
    if full_name == "aleTok":
        # "ali" is an accepted spelling of "ale"
        rules += _keyboard_pair("a l i", WORD_PLUS_SPACE, WORD)
    return rules


class ManualConvention(Enum):
    MIDDLE_DOT = "middle_dot"
    CARTOUCHE_ALT = "cartouche_alt"
    ZWJ = "zwj"
    ITAN = "itan"
    LEPEKA = "lepeka"
    PLAIN = "plain"


# Fixed glyph sequences for the two name glyphs that have them
_NAME_SEQUENCES = {
    ManualConvention.ITAN: "ijoTok ZWJ tanTok ZWJ anpaTok ZWJ nanpaTok",
    ManualConvention.LEPEKA: "meliTok ZWJ kuleTok ZWJ kuleTok",
}


def classify_manual(name: str, word: str) -> ManualConvention:
    """Tell which special convention a manual ligature string follows."""
    if "middleDotTok" in word:
        return ManualConvention.MIDDLE_DOT
    if "CartAlt" in word:
        return ManualConvention.CARTOUCHE_ALT
    if name == "ZWJ":
        return ManualConvention.ZWJ
    if word == "i t a n":
        return ManualConvention.ITAN
    if word == "l e p e k a":
        return ManualConvention.LEPEKA
    return ManualConvention.PLAIN


def _cartouche_alt_glyph(word: str) -> str:
    return "startCartTok" if "start" in word else "endCartTok"


def _manual_always(convention: ManualConvention, word: str) -> str:
    """Rules emitted for every variant."""
    if convention is ManualConvention.MIDDLE_DOT:
        return ligature(VAR, word)
    if convention is ManualConvention.CARTOUCHE_ALT:
        return ligature(VAR, _cartouche_alt_glyph(word), "VAR01")
    if convention is ManualConvention.ZWJ:
        return (
            "Substitution2: \"'ss02' BECOME STACK\" joinStackTok\n"
            "Substitution2: \"'ss01' BECOME SCALE\" joinScaleTok\n"
        )
    if convention in _NAME_SEQUENCES:
        return ligature(VAR, _NAME_SEQUENCES[convention])
    return ""


def _manual_keyboard(name: str, word: str) -> str:
    """Rules that map ASCII keyboard input onto the glyph (main variant only)."""
    if word == "space space":
        return ligature(SPACE, word) + ligature(SPACE, "z z space") + ligature(SPACE, "z z")
    if word == "arrow":
        directions = name[ARROW_DIRECTION_INDEX:ARROW_DIRECTION_INDEX + 2]
        if not directions:
            raise ValueError(f"Glyph '{name}' has no arrow direction")
        first = arrow_key(name, directions[0])
        if len(directions) == 1:
            return _keyboard_pair(first, WORD_PLUS_SPACE, WORD)
        second = arrow_key(name, directions[1])
        return (
            ligature(WORD_PLUS_SPACE, first, second, "space")
            + ligature(WORD_PLUS_SPACE, second, first, "space")
            + ligature(WORD, first, second)
            + ligature(WORD, second, first)
        )
    if word == "bar":
        return _keyboard_pair("bar", WORD_PLUS_SPACE, WORD)
    if "CartAlt" in word:
        glyph = _cartouche_alt_glyph(word)
        return (
            ligature(VAR_PLUS_SPACE, glyph, "VAR01", "space")
            + ligature(VAR_PLUS_SPACE, glyph, "one", "space")
            + ligature(VAR, glyph, "VAR01")
            + ligature(VAR, glyph, "one")
        )
    return _keyboard_pair(word, WORD_PLUS_SPACE, WORD)


def derive_manual(lookups: Lookups, name: str, full_name: str, variant: str) -> str:
    word = lookups.ligature
    convention = classify_manual(name, word)
    rules = _manual_always(convention, word)
    if variant == MAIN and convention is not ManualConvention.MIDDLE_DOT:
        rules += _manual_keyboard(name, word)
    return rules


def derive_start_long_glyph(lookups: Lookups, name: str, full_name: str, variant: str) -> str:
    glyph, joiner = split_last(full_name)
    return ligature(START_CONTAINER, glyph, joiner)


def derive_end_long_glyph(lookups: Lookups, name: str, full_name: str, variant: str) -> str:
    glyph, _ = split_first(full_name)
    return ligature(START_CONTAINER, REVERSE_LONG_GLYPH_END, glyph)


def _alt_special_cases(full_name: str, variant: str) -> str:
    if full_name == "aTok_VAR01":
        return ligature(VAR, "semeTok ZWJ aTok") + ligature(VAR, "aTok ZWJ semeTok")
    if full_name == "aTok_VAR02":
        return ligature(VAR, "aTok aTok")
    if full_name == "aTok_VAR03":
        return ligature(VAR, "aTok aTok aTok")
    if full_name == "aTok_VAR04" and variant == MAIN:
        return (
            ligature(VAR_PLUS_SPACE, "exclam question space")
            + ligature(VAR_PLUS_SPACE, "question exclam space")
            + ligature(VAR, "exclam question")
            + ligature(VAR, "question exclam")
        )
    return ""


def rerandomize_rules(family: str, digit: str, ordinal: str, variant: str) -> str:
    """
    Rules that swap any random variant of a family for the one picked by a
    variation selector.
    """
    rules = []
    for n in range(1, RANDOM_VARIANT_COUNT + 1):
        variant_glyph = f"{family}_VAR0{n}"
        if variant == MAIN:
            rules.append(ligature(VAR_PLUS_SPACE, variant_glyph, f"VAR0{digit}", "space"))
            rules.append(ligature(VAR_PLUS_SPACE, variant_glyph, ordinal, "space"))
            rules.append(ligature(VAR, variant_glyph, f"VAR0{digit}"))
            rules.append(ligature(VAR, variant_glyph, ordinal))
        else:
            rules.append(ligature(VAR, variant_glyph, f"VAR0{digit}"))
    return "".join(rules)


def derive_alt(lookups: Lookups, name: str, full_name: str, variant: str) -> str:
    parts = full_name.split("_")
    if len(parts) < 2:
        raise ValueError(f"Glyph '{full_name}' has no '_' separator")
    glyph, selector = parts[0], parts[1]
    ordinal = selector_ordinal(full_name, selector)

    rules = [_alt_special_cases(full_name, variant)]
    if variant == MAIN:
        rules.append(ligature(VAR_PLUS_SPACE, glyph, selector, "space"))
    rules.append(ligature(VAR, glyph, selector))
    if "niTok_arrow" in full_name:
        rules.append(ligature(VAR, glyph, "ZWJ", selector))
    if variant == MAIN:
        rules.append(_keyboard_pair(f"{glyph} {ordinal}", VAR_PLUS_SPACE, VAR))
    for family in RANDOM_FAMILIES:
        if full_name.startswith(family):
            rules.append(rerandomize_rules(family, selector[-1], ordinal, variant))
            break
    return "".join(rules)


def derive_combo_first(lookups: Lookups, name: str, full_name: str, variant: str) -> str:
    glyph, joiner = split_last(full_name)
    return (
        ligature(GLYPH_THEN_JOINER, glyph, joiner)
        + f"MultipleSubs2: \"{RESPAWN_JOINER}\" {full_name} {joiner}\n"
    )


def derive_combo_last(lookups: Lookups, name: str, full_name: str, variant: str) -> str:
    joiner, glyph = split_first(full_name)
    rules = [ligature(JOINER_THEN_GLYPH, joiner, glyph)]
    rules.extend(ligature(CC_CLEANUP, marker, full_name) for marker in CLEANUP_MARKERS)
    return "".join(rules)


def derive_none(lookups: Lookups, name: str, full_name: str, variant: str) -> str:
    return ""


_DERIVATIONS = {
    LookupKind.LETTERS: derive_letters,
    LookupKind.MANUAL: derive_manual,
    LookupKind.START_LONG_GLYPH: derive_start_long_glyph,
    LookupKind.END_LONG_GLYPH: derive_end_long_glyph,
    LookupKind.ALT: derive_alt,
    LookupKind.COMBO_FIRST: derive_combo_first,
    LookupKind.COMBO_LAST: derive_combo_last,
    LookupKind.NONE: derive_none,
}


def random_variation_rules(full_name: str, variant: str) -> str:
    """The 'rand' alternates of a random-variant family's base glyph."""
    if full_name not in RANDOM_FAMILIES:
        return ""
    alternates = " ".join(
        f"{full_name}_VAR0{n}" for n in range(1, RANDOM_VARIANT_COUNT + 1)
    )
    return (
        rerandomize_rules(full_name, RERANDOMIZE_SELECTOR, RERANDOMIZE_ORDINAL, variant)
        + f"AlternateSubs2: \"{RAND_VARIATIONS}\" {alternates}\n"
    )
