"""Line shapes and name tables shared by the session log parsers."""
from __future__ import annotations

import re

from logvisualizer.models import CharacterClass

# ASCII punctuation, the POSIX [:punct:] class.
PUNCT = r"!-/:-@\[-`{-~"

MUSCLE_SUBSTAT_NAMES = {"Beefiness", "Fortitude", "Muscleboundness", "Strengthliness", "Strongness"}
MYST_SUBSTAT_NAMES = {"Enchantedness", "Magicalness", "Mysteriousness", "Wizardliness"}
MOXIE_SUBSTAT_NAMES = {"Cheek", "Chutzpah", "Roguishness", "Sarcasm", "Smarm"}
MP_NAMES = {"Muscularity Points", "Mana Points", "Mojo Points"}

TRIVIAL_COMBAT_SKILL_CLASSES = {
    "clobber": CharacterClass.SEAL_CLUBBER,
    "toss": CharacterClass.TURTLE_TAMER,
    "spaghetti spear": CharacterClass.PASTAMANCER,
    "salsaball": CharacterClass.SAUCEROR,
    "suckerpunch": CharacterClass.DISCO_BANDIT,
    "sing": CharacterClass.ACCORDION_THIEF,
}

BANISH_SKILLS = {
    "curse of vacation",
    "batter up",
    "talk about politics",
    "creepy grin",
    "banishing shout",
    "howl of the alpha",
    "peel out",
    "walk away from explosion",
    "thunder clap",
}

BANISH_ITEMS = {
    "louder than bomb",
    "crystal skull",
    "ice house",
    "divine champagne popper",
    "harold's bell",
    "pulled indigo taffy",
    "classy monkey",
    "dirty stinkbomb",
    "deathchucks",
    "smoke grenade",
    "cocktail napkin",
}

# Consumables worth recording even when they give no adventures or stats.
SPECIAL_CONSUMABLES = {
    "steel margarita",
    "steel lasagna",
    "steel-scented air freshener",
    "spice melange",
    "synthetic dog hair pill",
    "mojo filter",
}

TURNS_USED = re.compile(r"^\[\d+(?:\-\d+)?].+")
NOT_AREA_NAME = re.compile(rf"^\[[\d{PUNCT}]+\]\s*|\s+$|\s*\[[\d{PUNCT}]+\]\s*$")
NOT_TURNCOUNT_STRING = re.compile(rf"^\[|\][\w{PUNCT}\s]+.*")
AREA_STATGAIN = re.compile(r".*\[\-?\d+,\-?\d+,\-?\d+\].*")
NOT_A_NUMBER = re.compile(r"\D+")
ALL_BEFORE_COLON = re.compile(r"^.*:\s*")
ITEM_FOUND = re.compile(r"^\s*\+>.+")
CONSUMED = re.compile(r"^\s*o>\s(?:Ate|Drank|Used|Chew).+")
FAMILIAR_CHANGED = re.compile(r"^\s*->\sTurn.+")
PULL = re.compile(r"^\s*#>\sTurn\s\[\d+\]\spulled.+")
DAY_CHANGE = re.compile(r"^=+Day\s+(?:[2-9]|\d\d+).*")
SEMIRARE = re.compile(r"^\s*#>\s\[\d+\]\sSemirare:\s.+")
BADMOON = re.compile(r"^\s*%>.+")
HUNTED_COMBAT = re.compile(r"^\s*\*>\s\[\d+\]\sStarted\shunting.*")
DISINTEGRATED_COMBAT = re.compile(r"^\s*\}> \[\d+\] Disintegrated .*")
FREE_RUNAWAYS_USAGE = re.compile(r"^\s*&> \d+ \\ \d+ free retreats.*")
CONSUMABLE_USED = re.compile(r"(?:(?:use|eat|drink|chew)|Buy and (?:eat|drink))(?: \d+)? .+")
GAIN = re.compile(r"^You gain \d*,?\d+ [\w\s]+")
GAIN_LOSE_CAPTURE = re.compile(r"^You (?:gain|lose) (\d*,?\d+) ([\w\s]+)")
GAIN_LOSE = re.compile(r"^(?:After Battle: )?You (?:gain|lose) \d*,?\d+ [\w\s]+")
USUAL_FORMAT_LOG_NAME = re.compile(r".+\-\d{8}$")

COMBAT_ROUND_LINE_BEGINNING = "Round "
ACQUIRE_EFFECT = "You acquire an effect:"
AFTER_BATTLE = "After Battle: "
ENCOUNTER_START = "Encounter: "


_GAME_NUMBER = re.compile(r"\d{1,3}(?:,\d{3})+|\d+")


def parse_number(text: str) -> int:
    """Parse a game number that may carry thousands separators.

    Raises ``ValueError`` for anything else, including misplaced separators.
    """
    text = text.strip()
    if _GAME_NUMBER.fullmatch(text) is None:
        raise ValueError(f"Not a game number: {text!r}")
    return int(text.replace(",", ""))
