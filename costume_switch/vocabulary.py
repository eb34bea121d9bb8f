"""
Verb and pronoun tables used to build the detection patterns.

Each verb is recorded with all of its inflections so that "Alice says",
"Alice said" and "Alice is saying" are recognised by the same signal. The
pattern compiler flattens these tables into one alternation per signal kind.
"""

from typing import Iterable, List, NamedTuple


class VerbForms(NamedTuple):
    """Inflections of a single verb."""
    base: str
    third_person: str
    past: str
    past_participle: str
    present_participle: str


def _regular(base: str) -> VerbForms:
    """Inflect a regular verb ("nod" -> nods, nodded, nodding)."""
    if base.endswith("e"):
        stem = base[:-1]
        return VerbForms(base, base + "s", base + "d", base + "d", stem + "ing")
    if base.endswith("y") and base[-2:-1] not in "aeiou":
        stem = base[:-1]
        return VerbForms(base, stem + "ies", stem + "ied", stem + "ied", base + "ing")
    if base.endswith(("sh", "ch", "ss", "x")):
        return VerbForms(base, base + "es", base + "ed", base + "ed", base + "ing")
    return VerbForms(base, base + "s", base + "ed", base + "ed", base + "ing")


def _doubled(base: str) -> VerbForms:
    """Inflect a verb that doubles its final consonant ("nod" -> nodded)."""
    last = base[-1]
    return VerbForms(base, base + "s", base + last + "ed", base + last + "ed", base + last + "ing")


# Speaking verbs: "Alice said", "said Alice"
ATTRIBUTION_VERBS = [
    VerbForms("say", "says", "said", "said", "saying"),
    VerbForms("speak", "speaks", "spoke", "spoken", "speaking"),
    VerbForms("tell", "tells", "told", "told", "telling"),
    _regular("ask"),
    _regular("reply"),
    _regular("answer"),
    _regular("respond"),
    _regular("whisper"),
    _regular("murmur"),
    _regular("mutter"),
    _regular("mumble"),
    _regular("shout"),
    _regular("yell"),
    _regular("scream"),
    _regular("cry"),
    _regular("exclaim"),
    _regular("call"),
    _regular("add"),
    _regular("continue"),
    _regular("declare"),
    _regular("announce"),
    _regular("state"),
    _regular("hiss"),
    _regular("growl"),
    _regular("bark"),
    _doubled("snap"),
    _regular("purr"),
    _regular("tease"),
    _regular("laugh"),
    _regular("giggle"),
    _regular("chuckle"),
    _regular("sigh"),
    _regular("groan"),
    _regular("breathe"),
    _regular("gasp"),
    _regular("insist"),
    _regular("demand"),
    _regular("explain"),
    _regular("note"),
    _regular("remark"),
    VerbForms("sing", "sings", "sang", "sung", "singing"),
]

# Physical actions: "Alice nodded", "Alice leans closer"
ACTION_VERBS = [
    _doubled("nod"),
    _regular("smile"),
    _doubled("grin"),
    _regular("smirk"),
    _regular("frown"),
    _regular("scowl"),
    _regular("shrug"),
    _regular("blush"),
    _regular("wink"),
    _regular("wave"),
    _regular("point"),
    _regular("gesture"),
    _regular("turn"),
    _regular("look"),
    _regular("glance"),
    _regular("stare"),
    _regular("gaze"),
    _regular("watch"),
    _regular("lean"),
    _doubled("step"),
    _regular("walk"),
    VerbForms("run", "runs", "ran", "run", "running"),
    VerbForms("sit", "sits", "sat", "sat", "sitting"),
    VerbForms("stand", "stands", "stood", "stood", "standing"),
    VerbForms("rise", "rises", "rose", "risen", "rising"),
    _regular("kneel"),
    _regular("reach"),
    _doubled("grab"),
    _regular("pull"),
    _regular("push"),
    _regular("touch"),
    _doubled("hug"),
    VerbForms("hold", "holds", "held", "held", "holding"),
    VerbForms("take", "takes", "took", "taken", "taking"),
    _doubled("hum"),
    _regular("move"),
    _regular("pause"),
    _regular("hesitate"),
    _regular("tilt"),
    _regular("cross"),
    _regular("enter"),
    _regular("approach"),
    _regular("crouch"),
    _regular("sniff"),
    _regular("yawn"),
    _regular("stretch"),
]

# Subject pronouns that can continue the most recent subject
DEFAULT_PRONOUNS = ["he", "she", "they"]

# Verbs accepted before a manual trigger ("change battle" -> "battle")
OUTFIT_ACTION_VERBS = ("switch", "change", "swap")


def flatten_verbs(table: Iterable[VerbForms]) -> List[str]:
    """Expand a verb table into a de-duplicated list of every inflection."""
    seen = set()
    words = []
    for forms in table:
        for word in forms:
            key = word.lower()
            if key and key not in seen:
                seen.add(key)
                words.append(word)
    return words


DEFAULT_ATTRIBUTION_WORDS = flatten_verbs(ATTRIBUTION_VERBS)
DEFAULT_ACTION_WORDS = flatten_verbs(ACTION_VERBS)


def is_outfit_action_verb(value) -> bool:
    if not value:
        return False
    return str(value).strip().lower() in OUTFIT_ACTION_VERBS
