"""Local tools shipped with the standard agent profiles."""
import json
import re
from datetime import datetime, timezone
from typing import Any, Dict

from .base import LocalTool

_NUMBER = re.compile(r"\d+(?:\.\d+)?%?")
_YEAR = re.compile(r"\d{4}")


def web_search(args: Dict[str, Any]) -> str:
    """Offline stand-in for the web search tool server.

    Used by the research agent when no tool server is configured.
    """
    query = args["query"]
    max_results = int(args.get("max_results", 3))
    results = [
        {
            "title": f"Result {i} for: {query}",
            "url": f"https://example.com/result{i}",
            "snippet": f"Placeholder search result {i} for the query \"{query}\".",
        }
        for i in range(1, max_results + 1)
    ]
    return json.dumps(
        {"query": query, "results": results, "timestamp": datetime.now(timezone.utc).isoformat()},
        indent=2,
    )


def extract_statistics(args: Dict[str, Any]) -> Dict[str, Any]:
    text = args["text"]
    numbers = _NUMBER.findall(text)
    # unique, first-seen order
    years = list(dict.fromkeys(_YEAR.findall(text)))
    return {
        "numbers_found": numbers,
        "years_found": years,
        "contains_percentages": any(n.endswith("%") for n in numbers),
    }


def format_as_markdown_table(args: Dict[str, Any]) -> str:
    headers = [str(h) for h in args["headers"]]
    rows = args["rows"]
    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join("---" for _ in headers) + " |",
    ]
    lines.extend("| " + " | ".join(str(cell) for cell in row) + " |" for row in rows)
    return "\n".join(lines)


def count_words(args: Dict[str, Any]) -> Dict[str, int]:
    return {"word_count": len(args["text"].split())}


WEB_SEARCH = LocalTool(
    name="web_search",
    description="Search the web for current information",
    execute=web_search,
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The search query"},
            "max_results": {"type": "number", "description": "Maximum number of results (default: 3)"},
        },
        "required": ["query"],
    },
)

EXTRACT_STATISTICS = LocalTool(
    name="extract_statistics",
    description="Extract numerical statistics and metrics from text",
    execute=extract_statistics,
    parameters={
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "The text to extract statistics from"},
        },
        "required": ["text"],
    },
)

FORMAT_AS_MARKDOWN_TABLE = LocalTool(
    name="format_as_markdown_table",
    description="Convert structured data into a Markdown table",
    execute=format_as_markdown_table,
    parameters={
        "type": "object",
        "properties": {
            "headers": {"type": "array", "items": {"type": "string"}, "description": "Column headers"},
            "rows": {"type": "array", "items": {"type": "array"}, "description": "Array of row data"},
        },
        "required": ["headers", "rows"],
    },
)

COUNT_WORDS = LocalTool(
    name="count_words",
    description="Count words in a text",
    execute=count_words,
    parameters={
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "The text to count words in"},
        },
        "required": ["text"],
    },
)
