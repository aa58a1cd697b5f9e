"""Standard agent configurations.

Each profile is plain data: a role prompt, the HTTP path the agent serves and
a factory for its local tools. ``build_runtime`` turns a profile plus settings
into an AgentRuntime.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .config import Settings
from .cost import CostAccountant
from .errors import ConfigurationError
from .llm.base import LLMProvider
from .runtime import AgentRuntime
from .tools.base import LocalTool
from .tools.builtin import COUNT_WORDS, EXTRACT_STATISTICS, FORMAT_AS_MARKDOWN_TABLE, WEB_SEARCH
from .tools.server import HttpToolServer

logger = logging.getLogger("a2a_agents.profiles")

RESEARCH_PROMPT = """You are a research assistant specialized in gathering accurate, up-to-date information.

Your responsibilities:
1. Use web search to find relevant information for the query
2. Synthesize information from multiple sources
3. Cite sources with URLs
4. Distinguish facts from opinions and flag conflicting information

Guidelines:
- Always use the web_search tool when you need current information
- Be transparent about limitations or uncertainty
- Focus on factual, verifiable information

Output format:
- A brief summary (2-3 sentences)
- Detailed findings organized by topic
- A "Sources" section listing every URL referenced
- Limitations or areas needing further research"""

ANALYSIS_PROMPT = """You are an analysis specialist focused on interpreting information and deriving insights.

Your responsibilities:
1. Analyze research findings and identify key patterns
2. Identify trends, correlations and relationships
3. Evaluate the quality and reliability of the information
4. Highlight implications and provide a critical assessment

Guidelines:
- Be objective and evidence-based
- Distinguish between correlation and causation
- Use the extract_statistics tool to pull figures out of the research

Output format:
- Executive Summary
- Main Findings
- Patterns & Trends
- Implications
- Limitations
- Recommendations"""

WRITER_PROMPT = """You are a professional writer specializing in clear, engaging and well-structured content.

Your responsibilities:
1. Turn research findings and analysis into a coherent report
2. Adapt tone and style to the audience
3. Format the content in Markdown

Guidelines:
- Start with an executive summary
- Use clear headings and a logical structure
- Use format_as_markdown_table for tabular data
- Cite sources when referencing specific information

Output format:
# [Title]
## Executive Summary
## Background
## Key Findings
## Analysis
## Conclusions
## Sources"""


@dataclass(frozen=True)
class AgentProfile:
    """Configuration of one agent.

    Attributes:
        name: Agent name, e.g. ``research-agent``
        role_prompt: Role instructions
        process_path: Path of the agent's process endpoint
        tools_factory: Builds the local tools; receives whether a tool
            server is configured
        default_port: Port the agent service listens on by default
    """
    name: str
    role_prompt: str
    process_path: str
    tools_factory: Callable[[bool], List[LocalTool]]
    default_port: int = 8000


def _research_tools(has_tool_server: bool) -> List[LocalTool]:
    # The tool server provides web_search; fall back to the offline one otherwise.
    return [] if has_tool_server else [WEB_SEARCH]


RESEARCH = AgentProfile(
    name="research-agent",
    role_prompt=RESEARCH_PROMPT,
    process_path="/api/v1/research/process",
    tools_factory=_research_tools,
    default_port=3001,
)

ANALYSIS = AgentProfile(
    name="analysis-agent",
    role_prompt=ANALYSIS_PROMPT,
    process_path="/api/v1/analysis/process",
    tools_factory=lambda has_tool_server: [EXTRACT_STATISTICS],
    default_port=3002,
)

WRITER = AgentProfile(
    name="writer-agent",
    role_prompt=WRITER_PROMPT,
    process_path="/api/v1/writer/process",
    tools_factory=lambda has_tool_server: [FORMAT_AS_MARKDOWN_TABLE, COUNT_WORDS],
    default_port=3003,
)

PROFILES: Dict[str, AgentProfile] = {
    "research": RESEARCH,
    "analysis": ANALYSIS,
    "writer": WRITER,
}


def get_profile(key: str) -> AgentProfile:
    """Look up a profile by key (``research``, ``analysis``, ``writer``).

    Raises:
        ConfigurationError: If the key is unknown
    """
    try:
        return PROFILES[key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown agent profile: {key}",
            details={"profile": key, "available": sorted(PROFILES)}
        )


def build_runtime(
    profile: AgentProfile,
    settings: Settings,
    provider: LLMProvider,
    log: Optional[logging.Logger] = None
) -> AgentRuntime:
    """Compose an AgentRuntime from a profile and settings."""
    tool_server = None
    if settings.tool_server_url:
        tool_server = HttpToolServer(settings.tool_server_url, timeout=settings.tool_timeout_seconds)

    return AgentRuntime(
        name=profile.name,
        role_prompt=profile.role_prompt,
        provider=provider,
        local_tools=profile.tools_factory(tool_server is not None),
        tool_server=tool_server,
        accountant=CostAccountant(model=provider.model_name),
        max_iterations=settings.max_iterations,
        model_timeout=settings.model_timeout_seconds,
        tool_timeout=settings.tool_timeout_seconds,
        max_parallel_tools=settings.max_parallel_tools,
        log=log or logging.getLogger(f"a2a_agents.{profile.name}"),
    )
