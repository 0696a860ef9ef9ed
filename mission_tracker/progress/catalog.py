"""Static catalog of the ten weekly missions."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Resource:
    """A link or tip attached to a mission."""
    type: str  # "link" or "tip"
    title: Optional[str] = None
    url: Optional[str] = None
    content: Optional[str] = None


@dataclass(frozen=True)
class Mission:
    """One weekly mission with its canonical goals."""
    id: int
    week: int
    title: str
    description: str
    suggested_goals: tuple[str, ...]
    resources: tuple[Resource, ...] = field(default_factory=tuple)
    challenge_tips: tuple[str, ...] = field(default_factory=tuple)


def _link(title: str, url: str) -> Resource:
    return Resource(type="link", title=title, url=url)


def _tip(content: str) -> Resource:
    return Resource(type="tip", content=content)


missions: tuple[Mission, ...] = (
    Mission(
        id=1,
        week=1,
        title="Resolution Tracker",
        description="Build a system to set, monitor, and achieve your goals throughout the year.",
        suggested_goals=(
            "Design the goal tracking system architecture",
            "Implement natural language processing for updates",
            "Create progress visualization dashboard",
            "Add intelligent feedback system",
        ),
        resources=(
            _link("Claude API Documentation", "https://docs.anthropic.com/en/docs"),
            _link("React State Management Guide", "https://react.dev/learn/managing-state"),
            _tip("Start with a simple data structure for goals before adding NLP complexity"),
            _tip("Use local storage for quick prototyping before integrating a database"),
        ),
        challenge_tips=(
            "Break down NLP processing into extraction, matching, and state update steps",
            "Test fuzzy matching with various phrasings of the same goal",
            "Consider using progress percentages to motivate users",
        ),
    ),
    Mission(
        id=2,
        week=2,
        title="Model Mapping",
        description="Learn to map and compare different AI models and their capabilities.",
        suggested_goals=(
            "Research major AI model families",
            "Create comparison framework",
            "Document strengths and weaknesses",
            "Build model selection guide",
        ),
        resources=(
            _link("Anthropic Model Overview", "https://docs.anthropic.com/en/docs/about-claude/models"),
            _link("OpenAI Models Documentation", "https://platform.openai.com/docs/models"),
            _tip("Focus on practical use cases rather than just benchmarks"),
            _tip("Consider cost, speed, and quality trade-offs for each model"),
        ),
        challenge_tips=(
            "Create a decision matrix based on task type, budget, and latency requirements",
            "Test the same prompt across multiple models to compare outputs",
            "Document real-world performance, not just advertised capabilities",
        ),
    ),
    Mission(
        id=3,
        week=3,
        title="Deep Research",
        description="Master deep research techniques using AI tools.",
        suggested_goals=(
            "Learn advanced prompting for research",
            "Practice synthesizing multiple sources",
            "Create research workflow templates",
            "Complete a full research project",
        ),
        resources=(
            _link("Prompting Guide", "https://www.promptingguide.ai/"),
            _link("Perplexity AI for Research", "https://www.perplexity.ai/"),
            _tip("Use chain-of-thought prompting for complex research questions"),
            _tip("Always verify AI-generated facts with primary sources"),
        ),
        challenge_tips=(
            "Break research into phases: explore, gather, synthesize, validate",
            "Create a template for consistent research documentation",
            "Use multiple AI tools to cross-reference findings",
        ),
    ),
    Mission(
        id=4,
        week=4,
        title="Data Analyst",
        description="Develop data analysis skills with AI assistance.",
        suggested_goals=(
            "Learn data cleaning with AI",
            "Practice statistical analysis",
            "Create data visualizations",
            "Build an analysis pipeline",
        ),
        resources=(
            _link("Python Pandas Documentation", "https://pandas.pydata.org/docs/"),
            _link("Chart.js for Visualizations", "https://www.chartjs.org/docs/latest/"),
            _tip("Let AI help write data transformation code, but always validate the output"),
            _tip("Start with exploratory data analysis before diving into complex statistics"),
        ),
        challenge_tips=(
            "Use AI to explain statistical concepts you encounter",
            "Create reusable code snippets for common data operations",
            "Always visualize data distributions before analysis",
        ),
    ),
    Mission(
        id=5,
        week=5,
        title="Visual Reasoning",
        description="Explore AI capabilities in visual understanding and reasoning.",
        suggested_goals=(
            "Understand vision model capabilities",
            "Practice image analysis tasks",
            "Combine visual and text reasoning",
            "Build a visual reasoning project",
        ),
        resources=(
            _link("Claude Vision Capabilities", "https://docs.anthropic.com/en/docs/build-with-claude/vision"),
            _link("OpenAI Vision Guide", "https://platform.openai.com/docs/guides/vision"),
            _tip("Vision models work best with clear, well-lit images"),
            _tip("Combine image analysis with text prompts for richer understanding"),
        ),
        challenge_tips=(
            "Test vision models on diverse image types: charts, diagrams, photos, screenshots",
            "Use specific questions to guide image analysis",
            "Consider multi-modal workflows combining vision and text",
        ),
    ),
    Mission(
        id=6,
        week=6,
        title="Information Pipelines",
        description="Build automated information processing pipelines.",
        suggested_goals=(
            "Design pipeline architecture",
            "Implement data ingestion",
            "Add transformation layers",
            "Create output formatting",
        ),
        resources=(
            _link("Zapier for No-Code Automation", "https://zapier.com/learn"),
            _link("n8n Workflow Automation", "https://docs.n8n.io/"),
            _tip("Start with a simple linear pipeline before adding complexity"),
            _tip("Add error handling and logging at each pipeline stage"),
        ),
        challenge_tips=(
            "Map out data flow before writing any code",
            "Test each pipeline stage independently",
            "Consider idempotency for reliable re-runs",
        ),
    ),
    Mission(
        id=7,
        week=7,
        title="Automation: Distribution",
        description="Automate content distribution across platforms.",
        suggested_goals=(
            "Map distribution channels",
            "Create automation workflows",
            "Implement scheduling system",
            "Add analytics tracking",
        ),
        resources=(
            _link("Buffer for Social Scheduling", "https://buffer.com/resources"),
            _link("Make.com (Integromat)", "https://www.make.com/en/help"),
            _tip("Tailor content format for each platform rather than one-size-fits-all"),
            _tip("Track engagement metrics to optimize posting times"),
        ),
        challenge_tips=(
            "Create content templates for consistent branding across platforms",
            "Use AI to repurpose content for different audiences",
            "Build in approval workflows for quality control",
        ),
    ),
    Mission(
        id=8,
        week=8,
        title="Automation: Productivity",
        description="Boost productivity through AI automation.",
        suggested_goals=(
            "Identify automation opportunities",
            "Build productivity tools",
            "Integrate with existing workflow",
            "Measure time savings",
        ),
        resources=(
            _link("Raycast for Mac Productivity", "https://www.raycast.com/"),
            _link("AutoHotkey for Windows", "https://www.autohotkey.com/docs/"),
            _tip("Automate repetitive tasks you do more than 3 times per week"),
            _tip("Track time spent before and after automation to measure ROI"),
        ),
        challenge_tips=(
            "Keep a log of repetitive tasks for one week to identify candidates",
            "Start with simple automations and gradually add complexity",
            "Document your automations for future reference",
        ),
    ),
    Mission(
        id=9,
        week=9,
        title="Context Engineering",
        description="Master the art of providing context to AI systems.",
        suggested_goals=(
            "Learn context window optimization",
            "Practice prompt engineering",
            "Build context management system",
            "Create reusable context templates",
        ),
        resources=(
            _link(
                "Anthropic Prompt Engineering Guide",
                "https://docs.anthropic.com/en/docs/build-with-claude/prompt-engineering",
            ),
            _link("OpenAI Prompt Engineering", "https://platform.openai.com/docs/guides/prompt-engineering"),
            _tip("Put the most important context at the beginning and end of prompts"),
            _tip("Use system prompts to establish consistent behavior"),
        ),
        challenge_tips=(
            "Experiment with different context orderings to see impact on output",
            "Create a library of tested, effective prompts",
            "Use XML tags or clear delimiters to structure context",
        ),
    ),
    Mission(
        id=10,
        week=10,
        title="Build an AI App",
        description="Culminate your learning by building a complete AI application.",
        suggested_goals=(
            "Define app concept and scope",
            "Design system architecture",
            "Implement core features",
            "Deploy and share your app",
        ),
        resources=(
            _link("Vercel Deployment Guide", "https://vercel.com/docs"),
            _link("Supabase Quick Start", "https://supabase.com/docs/guides/getting-started"),
            _tip("Start with an MVP - you can always add features later"),
            _tip("Use AI to help debug and explain error messages"),
        ),
        challenge_tips=(
            "Scope ruthlessly - pick one core feature to nail first",
            "Get user feedback early and often",
            "Deploy early so you can iterate based on real usage",
        ),
    ),
)

_by_id = {mission.id: mission for mission in missions}


def get_mission(mission_id: int) -> Optional[Mission]:
    """
    Look up a mission by id.

    Args:
        mission_id: Mission id (1-10)

    Returns:
        Mission if known, None otherwise
    """
    return _by_id.get(mission_id)
