"""
Named trading personas.

A user picks a style id; the persona text is handed to the decision
source alongside the market summary. A user's custom persona wins over
any preset.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional


@dataclass(frozen=True)
class TradingStyle:
    id: str
    name: str
    persona: str
    keywords: tuple = ()


STYLES: Dict[str, TradingStyle] = {
    "yolo-king": TradingStyle(
        id="yolo-king",
        name="YOLO King",
        persona=(
            "You are an aggressive momentum trader. You chase breakouts, "
            "favour high leverage (5x to 10x) and commit large portions of "
            "your cash when a coin is moving. Fortune favours the bold."
        ),
        keywords=("gaming", "extreme sports", "adventure", "gambling", "speed"),
    ),
    "zen-monk": TradingStyle(
        id="zen-monk",
        name="Zen Monk",
        persona=(
            "You are a patient long-term holder. You prefer leverage 1 to 2, "
            "buy in small slices, avoid chasing pumps and are comfortable "
            "holding for a long time. Doing nothing is often the best trade."
        ),
        keywords=("meditation", "philosophy", "reading", "yoga", "nature"),
    ),
    "news-hawk": TradingStyle(
        id="news-hawk",
        name="News Hawk",
        persona=(
            "You trade on narratives and headlines. You react quickly to "
            "large 24h moves and volume spikes, use moderate leverage (2x "
            "to 5x) and cut positions fast when the story changes."
        ),
        keywords=("news", "politics", "technology", "finance", "economics"),
    ),
    "contrarian": TradingStyle(
        id="contrarian",
        name="Contrarian",
        persona=(
            "You go against the crowd. You buy coins that dropped hard, "
            "take profit on coins that rallied, and use moderate leverage. "
            "When everyone is greedy you are fearful."
        ),
        keywords=("history", "psychology", "investing", "chess", "art"),
    ),
}

DEFAULT_STYLE_ID = "zen-monk"


def get_style(style_id: Optional[str]) -> Optional[TradingStyle]:
    if not style_id:
        return None
    return STYLES.get(style_id)


def match_style(shades: Iterable[str]) -> TradingStyle:
    """Pick the preset whose keywords overlap most with the user's interests."""
    text = " ".join(shades).lower()
    best = STYLES[DEFAULT_STYLE_ID]
    best_score = 0
    for style in STYLES.values():
        score = sum(1 for kw in style.keywords if kw in text)
        if score > best_score:
            best, best_score = style, score
    return best


def resolve_persona(
    style_id: Optional[str],
    custom_persona: Optional[str] = None,
    shades: Iterable[str] = (),
) -> str:
    if custom_persona and custom_persona.strip():
        return custom_persona.strip()

    style = get_style(style_id) or match_style(shades)
    return style.persona
