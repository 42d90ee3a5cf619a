"""
Fallback jokes served when the completion API is unavailable.
"""

import random
from typing import Optional, Sequence, Tuple

SCIENCE_JOKE = "Why don't scientists trust atoms? Because they make up everything!"
FOOD_JOKE = "What do you call a fake noodle? An impasta!"
COFFEE_JOKE = "Why did the coffee file a police report? It got mugged!"
COMPUTER_JOKE = "Why did the computer go to the doctor? It had a virus!"
CAT_JOKE = "Why was the cat sitting on the computer? To keep an eye on the mouse!"

FALLBACK_JOKES: Tuple[str, ...] = (
    SCIENCE_JOKE,
    FOOD_JOKE,
    COFFEE_JOKE,
    COMPUTER_JOKE,
    CAT_JOKE,
    "I'm reading a book about anti-gravity. It's impossible to put down!",
    "Why did the scarecrow win an award? He was outstanding in his field!",
    "What do you call a bear with no teeth? A gummy bear!",
    "Why don't eggs tell jokes? They'd crack each other up!",
    "How do you organize a space party? You planet!",
)

# Checked in order; the first anchor found in the keywords wins
TOPIC_ANCHORS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("science", "atom", "chemistry", "physics"), SCIENCE_JOKE),
    (("food", "noodle", "pasta"), FOOD_JOKE),
    (("coffee", "drink", "espresso"), COFFEE_JOKE),
    (("computer", "programming", "software"), COMPUTER_JOKE),
    (("cat", "kitten"), CAT_JOKE),
)


class FallbackJokeBank:
    """Static joke list with a keyword heuristic on top."""

    def __init__(self, jokes: Sequence[str] = FALLBACK_JOKES,
                 anchors: Sequence[Tuple[Tuple[str, ...], str]] = TOPIC_ANCHORS):
        if not jokes:
            raise ValueError("jokes is required and cannot be empty")
        self.jokes = tuple(jokes)
        self.anchors = tuple(anchors)

    def match(self, keywords: Optional[str]) -> Optional[str]:
        """Return the joke for the first topic anchor found in keywords."""
        if not keywords:
            return None
        lowered = keywords.lower()
        for words, joke in self.anchors:
            if any(word in lowered for word in words):
                return joke
        return None

    def pick(self, keywords: Optional[str] = None,
             rng: Optional[random.Random] = None) -> str:
        """Pick a joke for keywords, at random when no anchor matches."""
        matched = self.match(keywords)
        if matched is not None:
            return matched
        return (rng or random).choice(self.jokes)
