"""Schema definition for the article analysis tool."""

from typing import Any, Dict

FUNCTION_NAME = "record_article_analysis"

FUNCTION_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": FUNCTION_NAME,
    "description": (
        "Return the summary, key points, and image generation prompts for the article."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "summary": {
                "type": "string",
                "description": "A comprehensive summary of the article in 2-3 paragraphs.",
            },
            "key_points": {
                "type": "array",
                "items": {"type": "string"},
                "description": "5-7 key points, one sentence each.",
            },
            "image_prompts": {
                "type": "array",
                "items": {"type": "string"},
                "description": "3 detailed prompts (50-100 words) for illustrating the article.",
            },
        },
        "required": ["summary", "key_points", "image_prompts"],
        "additionalProperties": False,
    },
    "strict": True,
}
