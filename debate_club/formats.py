"""Built-in debate formats."""

from debate_club.models import DebateFormat, RoundSpec


class UnknownFormatError(KeyError):
    """Raised for a format key that is not registered."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else super().__str__()


def _fmt(key: str, name: str, description: str, rounds: list[tuple[str, str, int]], style: str | None = None) -> DebateFormat:
    return DebateFormat(
        key=key,
        name=name,
        description=description,
        rounds=tuple(RoundSpec(type=t, name=n, tokens=tok) for t, n, tok in rounds),
        style=style,
    )


DEBATE_FORMATS: dict[str, DebateFormat] = {
    f.key: f
    for f in (
        _fmt(
            "STANDARD", "Standard Debate",
            "A standard debate with opening statements, rebuttals, and closing statements",
            [
                ("opening", "Opening Statement", 2000),
                ("rebuttal", "Rebuttal", 1500),
                ("counter-rebuttal", "Counter-Rebuttal", 1500),
                ("closing", "Closing Statement", 1500),
            ],
        ),
        _fmt(
            "SHORT", "Short Debate",
            "A shorter debate format with opening and closing only",
            [
                ("opening", "Opening Statement", 1500),
                ("closing", "Closing Statement", 1500),
            ],
        ),
        _fmt(
            "COMPREHENSIVE", "Comprehensive Debate",
            "A detailed debate with multiple rounds of rebuttals",
            [
                ("opening", "Opening Statement", 2000),
                ("rebuttal", "First Rebuttal", 1500),
                ("counter-rebuttal", "First Counter-Rebuttal", 1500),
                ("rebuttal", "Second Rebuttal", 1000),
                ("counter-rebuttal", "Second Counter-Rebuttal", 1000),
                ("closing", "Closing Statement", 2000),
            ],
        ),
        _fmt(
            "SOCRATIC", "Socratic Dialogue",
            "A philosophical debate based on questioning to stimulate critical thinking",
            [
                ("opening", "Initial Position", 1500),
                ("questioning", "Socratic Questioning", 1500),
                ("response", "Response to Questions", 1500),
                ("closing", "Final Position", 1500),
            ],
            style="socratic",
        ),
        _fmt(
            "OXFORD", "Oxford-Style Debate",
            "A formal debate with strict rules and timed speeches",
            [
                ("opening", "Opening Statement", 2000),
                ("rebuttal", "First Rebuttal", 1500),
                ("cross-examination", "Cross-Examination", 1000),
                ("closing", "Closing Statement", 1500),
            ],
            style="oxford",
        ),
        _fmt(
            "LINCOLN_DOUGLAS", "Lincoln-Douglas Debate",
            "A one-on-one debate format focusing on values and philosophical arguments",
            [
                ("opening", "Affirmative Constructive", 2000),
                ("opening", "Negative Constructive", 2000),
                ("rebuttal", "Affirmative Rebuttal", 1500),
                ("rebuttal", "Negative Rebuttal", 1500),
                ("closing", "Closing Statements", 1500),
            ],
            style="lincoln-douglas",
        ),
        _fmt(
            "NYAYASUTRA", "Nyayasutra Debate",
            "An ancient Indian debate format based on logical reasoning and structured arguments",
            [
                ("opening", "Pratijna (Proposition)", 1500),
                ("hetu", "Hetu (Reason)", 1500),
                ("udaharana", "Udaharana (Example)", 1500),
                ("closing", "Nigamana (Conclusion)", 1500),
            ],
            style="nyayasutra",
        ),
        _fmt(
            "CONFUCIAN", "Confucian Dialogue",
            "A respectful debate style emphasizing harmony and mutual understanding",
            [
                ("opening", "Initial Wisdom", 1500),
                ("elaboration", "Elaboration of Views", 1500),
                ("reconciliation", "Seeking Harmony", 1500),
                ("closing", "Virtuous Conclusion", 1500),
            ],
            style="confucian",
        ),
        _fmt(
            "BUDDHIST", "Buddhist Debate Style",
            "A contemplative debate style examining truth from multiple perspectives",
            [
                ("opening", "Initial View", 1500),
                ("contemplation", "Middle Path Examination", 1500),
                ("rebuttal", "Refuting Extremes", 1500),
                ("closing", "Enlightened Conclusion", 1500),
            ],
            style="buddhist",
        ),
        _fmt(
            "RAP_BATTLE", "Rap Battle",
            "A creative debate format using rhythm, rhyme and wordplay",
            [
                ("opening", "Opening Verse", 1000),
                ("diss", "Diss Track", 1000),
                ("comeback", "Comeback Verse", 1000),
                ("closing", "Final Bars", 1000),
            ],
            style="rap_battle",
        ),
        _fmt(
            "PARLIAMENTARY", "Parliamentary Debate",
            "A formal legislative-style debate with government and opposition roles",
            [
                ("opening", "Prime Minister Speech", 2000),
                ("opening", "Leader of Opposition Speech", 2000),
                ("rebuttal", "Government Rebuttal", 1500),
                ("rebuttal", "Opposition Rebuttal", 1500),
                ("closing", "Closing Speeches", 1500),
            ],
            style="parliamentary",
        ),
    )
}


def get_format(key: str) -> DebateFormat:
    """Look up a format by key, case-insensitively."""
    try:
        return DEBATE_FORMATS[key.upper()]
    except KeyError:
        raise UnknownFormatError(f"Unknown debate format: {key}") from None
