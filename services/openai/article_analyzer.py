"""Article analysis service using OpenAI's Responses API."""

import logging
import os
import time
from typing import Any, Dict, List

from openai import AsyncOpenAI

from models.pipeline_models import ArticleAnalysis
from services.openai.analysis_prompts import build_system_prompt, build_user_prompt
from services.openai.analysis_schema import FUNCTION_DEFINITION, FUNCTION_NAME
from services.openai.response_parser import extract_usage, parse_function_call

LOGGER = logging.getLogger(__name__)
DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-5-mini")


def _clean_list(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [str(v).strip() for v in values if str(v or "").strip()]


class ArticleAnalyzer:
    """Summarize an article and propose image prompts for it."""

    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_MODEL) -> None:
        """Initialize the analyzer with an OpenAI async client."""
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model
        self.system_prompt = build_system_prompt()

    async def analyze(self, title: str, text: str) -> ArticleAnalysis:
        """Return summary, key points and image prompts for the article.

        Raises:
            ValueError: If the model output is missing a summary, key points or image prompts.
            Exception: Any error raised by the OpenAI client propagates.
        """
        start_time = time.time()
        inputs = [
            {"type": "message", "role": "system", "content": [{"type": "input_text", "text": self.system_prompt}]},
            {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": build_user_prompt(title, text)}],
            },
        ]
        response = await self._create_response(inputs)
        analysis = self._parse_response(response)

        usage = extract_usage(response)
        LOGGER.info(
            "Article analysis latency: %.3fs (input_tokens=%s, output_tokens=%s)",
            time.time() - start_time,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        return analysis

    async def _create_response(self, inputs: List[Dict[str, Any]]) -> Any:
        """Send the analysis request to the OpenAI Responses API."""
        try:
            return await self.client.responses.create(
                model=self.model,
                input=inputs,
                tools=[FUNCTION_DEFINITION],
                tool_choice={"type": "function", "name": FUNCTION_NAME},
            )
        except Exception as exc:
            LOGGER.error("Error during OpenAI Responses API call: %s", exc)
            raise

    def _parse_response(self, response: Any) -> ArticleAnalysis:
        """Validate the tool arguments and build an ArticleAnalysis."""
        args = parse_function_call(response, tool_name=FUNCTION_NAME)

        summary = str(args.get("summary") or "").strip()
        key_points = _clean_list(args.get("key_points"))
        image_prompts = _clean_list(args.get("image_prompts"))

        if not summary:
            raise ValueError("Analysis output has no summary.")
        if not key_points:
            raise ValueError("Analysis output has no key points.")
        if not image_prompts:
            raise ValueError("Analysis output has no image prompts.")

        return ArticleAnalysis(summary=summary, key_points=key_points, image_prompts=image_prompts)
