"""Local heuristic analysis used when the model-backed analyzer fails.

The result is built from the article text alone (sentence selection, word
frequency and keyword-based topic detection), so it needs no network and
always contains a summary, five key points and three image prompts.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Dict, List

from models.pipeline_models import ArticleAnalysis

STOP_WORDS = {
    "this", "that", "with", "have", "will", "been", "from", "they", "know", "want",
    "good", "much", "some", "time", "very", "when", "come", "here", "just", "like",
    "long", "make", "many", "over", "such", "take", "than", "them", "well", "were",
    "their", "there", "which", "would", "about", "could", "other", "these", "those",
    "after", "before", "while", "where", "being", "because", "should",
}

KEY_POINT_COUNT = 5
KEY_POINT_LENGTH = 120

GENERIC_KEY_POINTS = [
    "Article provides comprehensive information on the main topic",
    "Key themes include: {themes}",
    "Content offers detailed analysis and insights",
    "Information is well-structured and informative",
    "Article contains valuable knowledge for readers",
]

TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "technology": ["technology", "software", "digital", "computer", "data", "algorithm",
                   "machine", "learning", "programming", "code", "internet", "app", "system"],
    "business": ["business", "company", "market", "finance", "economy", "profit", "revenue",
                 "investment", "corporate", "industry", "startup", "entrepreneur"],
    "science": ["science", "research", "study", "experiment", "discovery", "theory",
                "hypothesis", "laboratory", "scientific", "evidence"],
    "health": ["health", "medical", "doctor", "hospital", "patient", "treatment", "medicine",
               "healthcare", "disease", "therapy", "clinical", "diagnosis"],
    "education": ["education", "school", "student", "teacher", "university", "academic",
                  "curriculum", "classroom"],
    "environment": ["environment", "climate", "nature", "sustainable", "ecology",
                    "conservation", "renewable", "pollution", "earth"],
}

TOPIC_PROMPTS: Dict[str, List[str]] = {
    "technology": [
        "Modern technology workspace with sleek computers, multiple monitors displaying code and data visualizations, clean minimalist design with blue and white color scheme",
        "Futuristic digital interface with holographic displays, neural network visualizations, and glowing circuit patterns in a high-tech environment",
        "Software development team collaborating in a modern office with glass walls, standing desks, and large screens showing development workflows",
    ],
    "business": [
        "Corporate boardroom with executives in business attire around a large conference table, city skyline visible through floor-to-ceiling windows",
        "Modern office building exterior with glass facade reflecting the sky, busy professionals walking in the foreground, urban business district",
        "Financial data on multiple screens showing charts, graphs, and market trends on a trading floor with professional traders",
    ],
    "science": [
        "Research laboratory with scientists in white coats working with microscopes and computer analysis stations",
        "Researchers examining data on large displays, laboratory equipment in the background, clean sterile environment",
        "Academic research facility with books, scientific journals, and whiteboards filled with equations",
    ],
    "health": [
        "Modern medical facility with healthcare professionals in scrubs, advanced medical equipment, clean white and blue color scheme",
        "Doctor consultation room with medical charts, stethoscope, and digital health monitoring devices",
        "Medical research laboratory with scientists analyzing samples and health data on computer screens",
    ],
    "education": [
        "Modern classroom with students engaged in learning, interactive whiteboards, bright and inspiring atmosphere",
        "University library with students studying among tall bookshelves, natural light, comfortable reading areas",
        "Students collaborating with tablets and digital learning tools in a contemporary learning space",
    ],
    "environment": [
        "Lush green forest landscape with sunlight streaming through tall trees and a clear river in the foreground",
        "Wind turbines and solar panels across rolling hills under a bright blue sky",
        "Coastal scene showing the effects of changing climate, waves meeting a rocky shore at sunset",
    ],
    "general": [
        "Editorial magazine layout with clean typography, organized text sections, and modern design elements",
        "Open books and digital documents on a wooden library table, warm light, knowledge-sharing atmosphere",
        "Writer's desk with a notebook, a laptop showing article text, and a cup of coffee by a window",
    ],
}


def split_sentences(text: str) -> List[str]:
    """Split text on sentence punctuation, keeping sentences longer than 20 characters."""
    return [s.strip() for s in re.split(r"[.!?]+", text or "") if len(s.strip()) > 20]


def top_words(text: str, limit: int = 10) -> List[str]:
    """Return the most frequent meaningful words, most frequent first."""
    words = [w for w in re.split(r"\W+", (text or "").lower()) if len(w) > 4 and w not in STOP_WORDS]
    return [word for word, _ in Counter(words).most_common(limit)]


def detect_topic(text: str) -> str:
    """Return the topic whose keywords appear most often, or 'general'."""
    lower = (text or "").lower()
    best, best_matches = "general", 0
    for topic, keywords in TOPIC_KEYWORDS.items():
        matches = sum(1 for keyword in keywords if keyword in lower)
        if matches > best_matches:
            best, best_matches = topic, matches
    return best


def _summary(title: str, sentences: List[str], themes: List[str]) -> str:
    if len(sentences) >= 3:
        middle = sentences[len(sentences) // 2]
        topics = ", ".join(themes[:3]) or "its main subject"
        return f"{sentences[0]}. This article discusses {topics} and related topics. {middle}."
    if sentences:
        return ". ".join(sentences) + ". This article provides valuable insights on the discussed topics."
    return f'This article titled "{title or "Untitled Article"}" contains valuable information and insights.'


def _key_points(sentences: List[str], themes: List[str]) -> List[str]:
    theme_set = set(themes)
    informative = [
        s for s in sentences
        if len(theme_set.intersection(re.split(r"\W+", s.lower()))) >= 2 or len(s) > 50
    ]
    points = []
    for sentence in informative[:KEY_POINT_COUNT]:
        clipped = sentence[:KEY_POINT_LENGTH]
        points.append(clipped + "..." if len(sentence) > KEY_POINT_LENGTH else clipped)

    themes_text = ", ".join(themes[:3]) or "the article's subject"
    for template in GENERIC_KEY_POINTS[len(points):]:
        points.append(template.format(themes=themes_text))
    return points


def build_fallback_analysis(title: str, text: str) -> ArticleAnalysis:
    """Return a deterministic analysis derived only from the article text."""
    sentences = split_sentences(text)
    themes = top_words(text)
    return ArticleAnalysis(
        summary=_summary(title, sentences, themes),
        key_points=_key_points(sentences, themes),
        image_prompts=list(TOPIC_PROMPTS[detect_topic(f"{title} {text}")]),
        fallback=True,
    )
