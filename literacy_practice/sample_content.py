"""Built-in sample exercise used when stored questions cannot be loaded."""

from typing import List
from .utils.normalize import NormalizedQuestion, normalize_questions

SAMPLE_TITLE = "The Curious Case of the Night Sky"

SAMPLE_PASSAGE = (
    "Maria stood on the balcony of her apartment, gazing up at the night sky. It was unusual for the "
    "stars to be so visible in the city, but tonight they shone with exceptional clarity.\n\n"
    "The buildings across the street, normally illuminated by harsh fluorescent lighting, were eerily "
    "dark. In fact, as Maria looked around, she realized that much of the city seemed to be "
    "experiencing a power outage.\n\n"
    "As she turned to go back inside, a movement in the sky caught her attention. What she had "
    "initially mistaken for a particularly bright star was moving, slowly but deliberately, across the "
    "night sky. It was too slow for a shooting star and followed too precise a path to be an airplane."
)

SAMPLE_QUESTION_ROWS = [
    {
        "id": "q1",
        "question_type": "multiple-choice",
        "question_text": "What was unusual about the night that Maria observed from her balcony?",
        "options": [
            "The moon was exceptionally bright",
            "She could see stars despite being in the city",
            "There was a meteor shower happening",
            "The sky was completely cloudless",
        ],
        "correct_answer": "She could see stars despite being in the city",
        "points": 1,
    },
    {
        "id": "q2",
        "question_type": "multiple-choice",
        "question_text": "What explanation did Maria come up with for the unusual visibility of stars?",
        "options": [
            "Seasonal changes affecting atmospheric conditions",
            "A recent environmental cleanup initiative",
            "A power outage in the city",
            "Special astronomical conditions that night",
        ],
        "correct_answer": "A power outage in the city",
        "points": 1,
    },
    {
        "id": "q3",
        "question_type": "short-answer",
        "question_text": "How did the mysterious object in the sky differ from an airplane or shooting star?",
        "correct_answer": "It moved too slowly for a shooting star and followed too precise a path to be an airplane.",
        "word_limit": 30,
        "points": 2,
    },
    {
        "id": "q4",
        "question_type": "paragraph",
        "question_text": (
            "Explain what evidence in the text suggests that the object Maria saw was not from Earth. "
            "Support your answer with details from the passage."
        ),
        "word_limit": 100,
        "rubric": (
            "Responses should identify at least two specific details from the text that suggest the "
            "object was extraterrestrial or advanced beyond current human technology."
        ),
        "points": 4,
    },
    {
        "id": "q5",
        "question_type": "matching",
        "question_text": "Match each description with the corresponding element from the story.",
        "options": [
            {"left": "Pulsating glow", "right": "The craft's exterior light"},
            {"left": "Musical note held at perfect pitch", "right": "The humming sound"},
            {"left": "Warm and golden", "right": "Light from inside the craft"},
            {"left": "Red, green, blue, yellow", "right": "Sequence of perimeter lights"},
        ],
        "points": 2,
    },
]


def sample_questions() -> List[NormalizedQuestion]:
    return normalize_questions(SAMPLE_QUESTION_ROWS)
