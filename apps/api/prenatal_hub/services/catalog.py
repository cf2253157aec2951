from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Topic:
    id: int
    title: str
    category: str | None = None


@dataclass(frozen=True)
class Journey:
    id: str
    name: str


def _topics(category: str, *entries: tuple[int, str]) -> list[Topic]:
    return [Topic(id=i, title=t, category=category) for i, t in entries]


# 32 stories, 4 per category.
TOPICS: tuple[Topic, ...] = tuple(
    _topics(
        "science_universe",
        (1, "The Story of Everything: From Big Bang to You"),
        (2, "Dancing with Gravity: The Force That Holds Us"),
        (3, "The Quantum Garden: Where Reality Gets Magical"),
        (4, "Starlight Stories: How Stars Live and Die"),
    )
    + _topics(
        "technology_ai",
        (5, "The Thinking Machine: How Computers Work"),
        (6, "Teaching Machines to Learn: The AI Story"),
        (7, "The Great Chain of Trust: Blockchain Unveiled"),
        (8, "The Web of All Things: How the Internet Connects Us"),
    )
    + _topics(
        "biology_life",
        (9, "The Dance of DNA: Your Genetic Blueprint"),
        (10, "The Symphony Inside: Your Body as an Orchestra"),
        (11, "The Hidden Garden: Your Microbiome"),
        (12, "The Tree of Life: Evolution and Connection"),
    )
    + _topics(
        "mathematics",
        (13, "The Language of the Universe: Numbers"),
        (14, "Infinity and Beyond: The Endless Mystery"),
        (15, "Nature's Secret Code: Fibonacci and Fractals"),
        (16, "The Game of Chance: Probability in Life"),
    )
    + _topics(
        "psychology_mind",
        (17, "The Wonder of Consciousness: Your Amazing Mind"),
        (18, "The Rainbow of Feelings: Understanding Emotions"),
        (19, "The Library of Memory: How We Remember"),
        (20, "Growing Your Mind: The Power of Learning"),
    )
    + _topics(
        "language_communication",
        (21, "The Magic of Words: How Language Began"),
        (22, "The Ancient Tongue: Sanskrit and the Roots of Language"),
        (23, "The Universal Language: Music and the Soul"),
        (24, "Speaking Without Words: Body Language"),
    )
    + _topics(
        "finance",
        (25, "The Story of Money: From Shells to Digital"),
        (26, "The Dance of Supply and Demand: How Markets Work"),
        (27, "Digital Gold: Understanding Cryptocurrency"),
        (28, "Building Wealth: The Power of Compound Growth"),
    )
    + _topics(
        "society",
        (29, "The Beautiful Tapestry: Celebrating Diversity"),
        (30, "Right and Wrong: The Journey of Ethics"),
        (31, "The Voice of the People: Understanding Democracy"),
        (32, "The Human Spirit: Art and Creativity"),
    )
)

JOURNEYS: tuple[Journey, ...] = (
    # Trimester paths
    Journey(id="first-trimester", name="First Trimester Journey"),
    Journey(id="second-trimester", name="Second Trimester Journey"),
    Journey(id="third-trimester", name="Third Trimester Journey"),
    # Themed paths
    Journey(id="default", name="All In One Journey"),
    Journey(id="beginner", name="Gentle Start"),
    Journey(id="science-tech", name="Science & Technology"),
    Journey(id="mind-body", name="Mind & Body"),
    Journey(id="communication-culture", name="Communication & Culture"),
    Journey(id="numbers-money", name="Numbers & Money"),
    Journey(id="advanced", name="Deep Dive"),
)

TOPIC_IDS: frozenset[int] = frozenset(t.id for t in TOPICS)


def get_topic_by_id(topic_id: int) -> Topic | None:
    return next((t for t in TOPICS if t.id == topic_id), None)


def get_topic_by_title(title: str) -> Topic | None:
    needle = title.lower()
    return next((t for t in TOPICS if t.title.lower() == needle), None)


def get_journey_by_id(journey_id: str) -> Journey | None:
    needle = journey_id.lower()
    return next((j for j in JOURNEYS if j.id.lower() == needle), None)


def get_journey_by_name(name: str) -> Journey | None:
    needle = name.lower()
    return next((j for j in JOURNEYS if j.name.lower() == needle), None)
