"""Prompt builders for article analysis."""

MAX_ARTICLE_CHARS = 8000


def build_system_prompt() -> str:
    """Return the system prompt for the analyzer."""
    return (
        "You are an editor preparing articles for narration. "
        "You write faithful, neutral summaries and never invent facts that are not in the text. "
        "You also write concrete prompts for an illustrator."
    )


def build_user_prompt(title: str, text: str) -> str:
    """Return the user prompt carrying the article, truncated to the model budget."""
    body = text if len(text) <= MAX_ARTICLE_CHARS else text[:MAX_ARTICLE_CHARS] + "..."
    return (
        "Analyze the following article and provide a concise summary, 5 key bullet points, "
        "and 3 highly specific descriptive prompts for AI image generation.\n\n"
        "For the image prompts:\n"
        "1. Focus on the main subject with specific visual elements mentioned or implied in the article.\n"
        "2. Capture a key scene, process, or concept described in the article with concrete details.\n"
        "3. Illustrate a specific aspect, location, or context from the article.\n"
        "Use concrete objects, settings, colors and scenes; avoid generic words like "
        "'concept', 'theme' or 'illustration'.\n\n"
        f"Article Title: {title}\n\n"
        f"Article Content: {body}"
    )
