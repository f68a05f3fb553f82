"""Genre scene templates used to steer scene chapters."""

from dataclasses import dataclass, field

_RULE = "=" * 63


@dataclass(frozen=True)
class GenreExample:
    genre: str
    description: str
    structure: list[str]
    example_scene: str  # with [PLACEHOLDER] names
    key_principles: list[str] = field(default_factory=list)


GENRE_EXAMPLES: dict[str, GenreExample] = {
    "realism": GenreExample(
        genre="Realism (19th century)",
        description="Objective narration, social detail, natural dialogue",
        structure=[
            "Orientation in place (1-2 sentences of concrete description)",
            "Dialogue (70%): short, natural lines",
            "Gestures and reactions between groups of lines",
            "Understatement and social tension",
            "Concrete detail instead of abstraction",
        ],
        example_scene=(
            "*[Drawing room in [LOCATION]; evening; [PROTAGONIST], [LOVE_INTEREST], her parents]*\n\n"
            "[PROTAGONIST] stands by the window, watching the street.\n\n"
            '"You see," [FATHER] begins, "our name, our tradition... it matters to us."\n'
            '"I understand."\n'
            '"People talk, you know. [LOVE_INTEREST] deserves..."\n'
            '"A good husband," [PROTAGONIST] cuts in. "So do I want that."\n\n'
            "[LOVE_INTEREST] rises from the piano and crosses to her mother.\n\n"
            '"Mother, I feel unwell. I will go up."\n'
            '"Already, darling? But Mr [PROTAGONIST]..."\n'
            '"Forgive me."\n\n'
            "She leaves the room. [PROTAGONIST] stays behind with her parents."
        ),
        key_principles=[
            "70% dialogue",
            "Short lines (1-2 sentences)",
            "Gestures carry emotion (stands up, looks away)",
            "Silence through action (she leaves the room)",
            "Concrete detail instead of abstraction",
        ],
    ),
    "psychological": GenreExample(
        genre="Psychological",
        description="Inner depth, moral dilemmas, psychological tension",
        structure=[
            "External situation (briefly)",
            "Dialogue with subtext",
            "Physical reactions mirror inner states",
            "A short inner monologue or a meaningful silence",
            "A gesture or decision that exposes the conflict",
        ],
        example_scene=(
            "*[Cramped room in [CITY]; night; [PROTAGONIST], [INVESTIGATOR]]*\n\n"
            '"You were near the house that evening," [INVESTIGATOR] says, not looking up.\n'
            '"Many people were."\n'
            '"Many people did not come back twice."\n\n'
            "[PROTAGONIST] laughs, too loud. His hand finds the edge of the table and stays there.\n\n"
            "He knows. He cannot know. He knows.\n\n"
            '"Are you cold?" [INVESTIGATOR] asks. "You are shaking."'
        ),
        key_principles=[
            "Subtext over statement",
            "The body betrays the mind",
            "Inner voice in short fragments",
            "Tension builds through what is not said",
        ],
    ),
    "fantasy": GenreExample(
        genre="Fantasy / adventure",
        description="Wonder, momentum, a world revealed through action",
        structure=[
            "A striking image of the world",
            "Dialogue that moves the quest forward",
            "Magic or danger shown, never explained at length",
            "A small humorous beat to release tension",
            "A hook toward the next step",
        ],
        example_scene=(
            "*[Ruined tower above [VALLEY]; dusk; [HERO], [COMPANION], [MENTOR]]*\n\n"
            "The stones hum under [HERO]'s boots.\n\n"
            '"Is it supposed to do that?"\n'
            '"No," says [MENTOR]. "Run."\n'
            '"Run where?"\n'
            '"Anywhere the floor is not glowing."\n\n'
            "[COMPANION] is already at the stairs, dragging the map behind like a banner."
        ),
        key_principles=[
            "Show the world through action",
            "Quick exchanges, clear stakes",
            "Wonder and danger in the same beat",
            "Light humor keeps the pace",
        ],
    ),
    "mythology": GenreExample(
        genre="Myth / epic",
        description="Elevated register, fate, gods and heroes, ritual rhythm",
        structure=[
            "A solemn opening image",
            "Formal speech with weight",
            "Fate or the gods felt in the scene",
            "Repetition and epithets for rhythm",
            "An irreversible act",
        ],
        example_scene=(
            "*[Shore of [SEA]; dawn; [HERO], [KING], the assembled host]*\n\n"
            "The ships stand silent. No wind has come for nine days.\n\n"
            '"The goddess asks a price," says [SEER].\n'
            '"Name it."\n'
            '"You know it already, son of [FATHER]."\n\n'
            "[KING] looks at the sea for a long time. Then he nods once."
        ),
        key_principles=[
            "Elevated but clear language",
            "Few words, heavy with consequence",
            "Fate is present in every choice",
            "Ritual rhythm and repetition",
        ],
    ),
    "romantic": GenreExample(
        genre="Romantic",
        description="Intense feeling, nature as mirror, longing and conflict",
        structure=[
            "Nature or setting reflecting emotion",
            "Dialogue charged with feeling",
            "Obstacle between lovers or ideals",
            "A gesture of devotion or refusal",
            "An open, aching ending",
        ],
        example_scene=(
            "*[Garden at [ESTATE]; moonlight; [LOVER], [BELOVED]]*\n\n"
            "The lilacs are heavy with rain.\n\n"
            '"You should not have come."\n'
            '"I could not stay away."\n'
            '"Then you will have to learn."\n\n'
            "[BELOVED] turns back toward the lit windows. [LOVER] does not follow."
        ),
        key_principles=[
            "Setting mirrors the heart",
            "Passion held back by duty",
            "Gestures of longing",
            "Endings that leave a wound",
        ],
    ),
    "dystopia": GenreExample(
        genre="Dystopia",
        description="Oppressive system, surveillance, quiet rebellion",
        structure=[
            "A cold, controlled environment",
            "Dialogue shaped by fear of being overheard",
            "System details revealed in passing",
            "A small act of defiance",
            "A reminder that someone is watching",
        ],
        example_scene=(
            "*[Canteen of [MINISTRY]; noon; [PROTAGONIST], [COLLEAGUE]]*\n\n"
            "The screen on the wall announces a new ration increase.\n\n"
            '"Good news," [COLLEAGUE] says.\n'
            '"Very good news."\n'
            '"Last month it was more."\n'
            '"Was it?"\n\n'
            "[COLLEAGUE] looks at the screen, then at his spoon, and says nothing else."
        ),
        key_principles=[
            "Fear in every line",
            "The system visible in small details",
            "Defiance is quiet",
            "Surveillance is constant",
        ],
    ),
    "modernist": GenreExample(
        genre="Modernist",
        description="Alienation, fragmented perception, absurd logic",
        structure=[
            "An ordinary setting made strange",
            "Dialogue that misses its target",
            "Fragmented perception and time",
            "Absurd rules accepted as normal",
            "No resolution, only displacement",
        ],
        example_scene=(
            "*[Office corridor in [CITY]; morning; [PROTAGONIST], [CLERK]]*\n\n"
            '"Your case has been moved."\n'
            '"Where?"\n'
            '"Forward. Or back. It depends on the floor."\n'
            '"Which floor?"\n'
            '"That is also being decided."\n\n'
            "[PROTAGONIST] thanks him and waits. The corridor seems longer than before."
        ),
        key_principles=[
            "The familiar turns strange",
            "Conversation without communication",
            "Calm tone for absurd content",
            "Endings that displace rather than resolve",
        ],
    ),
}

DEFAULT_GENRE = "realism"

# Checked in order; first hit wins
_STYLE_KEYWORDS = [
    ("realism", ("prus", "realism", "realist", "balzac", "dickens", "tolstoy")),
    ("psychological", ("dostoevsky", "dostoyevsky", "psychological", "noir")),
    ("fantasy", ("rowling", "fantasy", "tolkien", "pratchett")),
    ("mythology", ("mythology", "myth", "epic", "homer")),
    ("romantic", ("love", "romantic", "romanticism")),
    ("dystopia", ("dystopia", "dystopian", "orwell", "huxley")),
    ("modernist", ("kafka", "modernist", "modernism", "woolf", "joyce")),
]


def detect_genre(style_inspiration: str, overall_tone: str = "") -> str:
    """Map the planned style and tone to a GENRE_EXAMPLES key (fallback: realism)."""
    style = (style_inspiration or "").lower()
    tone = (overall_tone or "").lower()
    for genre, keywords in _STYLE_KEYWORDS:
        if any(k in style for k in keywords):
            return genre
        if genre == "romantic" and "romantic" in tone:
            return genre
    return DEFAULT_GENRE


def get_genre_example(genre: str) -> GenreExample:
    return GENRE_EXAMPLES.get(genre) or GENRE_EXAMPLES[DEFAULT_GENRE]


def format_genre_example(example: GenreExample) -> str:
    """Render a genre template as a prompt block."""
    lines = [
        _RULE,
        f"GENRE TEMPLATE: {example.genre}",
        _RULE,
        "",
        f"DESCRIPTION: {example.description}",
        "",
        "SCENE STRUCTURE:",
        *[f"{i}. {step}" for i, step in enumerate(example.structure, start=1)],
        "",
        "EXAMPLE WITH PLACEHOLDERS:",
        example.example_scene,
        "",
        "KEY PRINCIPLES:",
        *[f"- {p}" for p in example.key_principles],
        "",
        _RULE,
    ]
    return "\n".join(lines)
