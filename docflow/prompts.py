"""
Prompt templates for repository analysis, role-specific documentation and
chat. The analysis prompt fixes the JSON key contract the response parser
relies on; the rest of the wording is free to change.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from docflow.models import AnalysisResult, DocContext, FileEntry, Role

logger = logging.getLogger("docflow.prompts")

ANALYSIS_KEYS = ("overview", "endpoints", "functions", "dependencies", "architecture")

ROLE_FOCUS: dict[Role, dict[str, str]] = {
    Role.BACKEND: {
        "focus": "API endpoints, database schemas, authentication, server architecture, dependencies, security patterns",
        "questions": "What APIs does this expose? How is data stored? What authentication is used? What are the main server-side patterns?",
    },
    Role.FRONTEND: {
        "focus": "UI components, state management, routing, API integrations, styling patterns, build setup",
        "questions": "What UI framework is used? How is state managed? What APIs does it consume? How is styling organized?",
    },
    Role.DEVOPS: {
        "focus": "Infrastructure, deployment configs, CI/CD, containerization, monitoring, scalability patterns",
        "questions": "How is this deployed? What infrastructure is needed? Are there containers? What monitoring exists?",
    },
    Role.SECURITY: {
        "focus": "Authentication, authorization, data validation, encryption, security vulnerabilities, access controls",
        "questions": "What security measures are implemented? Are there potential vulnerabilities? How is data protected?",
    },
    Role.DATA: {
        "focus": "Data models, ETL pipelines, analytics, database design, data flows, processing patterns",
        "questions": "How is data structured? What processing happens? Are there analytics or ETL pipelines?",
    },
    Role.MOBILE: {
        "focus": "Mobile frameworks, platform-specific code, API integrations, offline capabilities, performance",
        "questions": "What mobile platform? How does it handle offline? What APIs does it use? Performance considerations?",
    },
    Role.PRODUCT_MANAGER: {
        "focus": "User-facing features, workflows, integrations, limitations, release and roadmap considerations",
        "questions": "What can users do with this? Which features are complete? What are the main risks and dependencies?",
    },
}

_ANALYSIS_SCHEMA = """\
{
  "overview": "Detailed project overview explaining what this does",
  "endpoints": [{"method": "GET", "path": "/api/route", "description": "what it does"}],
  "functions": [{"name": "functionName", "description": "what it does"}],
  "dependencies": ["package1", "package2"],
  "architecture": "Brief description of how the code is organized",
  "keyFeatures": ["feature1", "feature2"],
  "setupSteps": ["step1", "step2"]
}"""

_CHAT_INSTRUCTIONS = """\
Instructions:
- Answer questions based on the provided documentation
- Be concise and helpful
- If you don't know something based on the docs, say so
- Provide code examples when relevant
- If asked about setup or installation, refer to the quick start guide
- For API questions, refer to the API reference documentation"""


def render_codebase(files: list[FileEntry], budget: int) -> str:
    """Render files as fenced blocks, each cut to ``budget`` characters."""
    blocks = []
    for entry in files:
        content = entry.content
        if len(content) > budget:
            logger.debug("Truncating %s from %d to %d chars", entry.path, len(content), budget)
            content = content[:budget]
        blocks.append(f"### File: {entry.path}\n```\n{content}\n```\n")
    return "\n".join(blocks)


def build_analysis_prompt(
    repo_info: dict,
    files: list[FileEntry],
    role: Role,
    budget: int,
) -> str:
    """Ask the model for the analysis JSON object."""
    language = repo_info.get("language") or "code"
    focus = ROLE_FOCUS[role]
    return (
        f"Analyze this {language} repository and return ONLY valid JSON in this exact format:\n"
        f"{_ANALYSIS_SCHEMA}\n\n"
        f"The keys {', '.join(ANALYSIS_KEYS)} are required. Use empty lists or empty "
        "strings when nothing applies. Do not wrap the JSON in code fences.\n\n"
        f"Pay particular attention to: {focus['focus']}.\n\n"
        f"Repository: {repo_info.get('name', '')}\n"
        f"Description: {repo_info.get('description') or 'No description'}\n"
        f"Language: {repo_info.get('language') or 'Unknown'}\n\n"
        f"Code to analyze:\n{render_codebase(files, budget)}"
    )


def build_synthesis_prompt(repo_info: dict, role: Role, summary: dict, files: list[FileEntry], budget: int) -> str:
    """Analysis prompt for /analyze, seeded with the heuristic findings."""
    focus = ROLE_FOCUS[role]
    return (
        f"You are a senior {role.value} developer performing a code review.\n\n"
        "HEURISTIC ANALYSIS RESULTS:\n"
        f"{json.dumps(summary, indent=2, default=str)}\n\n"
        f"ROLE CONTEXT: Analyzing for {role.value} developer\n"
        f"FOCUS: {focus['focus']}\n"
        f"KEY QUESTIONS: {focus['questions']}\n\n"
        + build_analysis_prompt(repo_info, files, role, budget)
    )


def build_documentation_prompt(repo_name: str, role: Role, analysis: AnalysisResult) -> str:
    """Ask for role-tailored markdown built from the analysis."""
    title = role.display_name
    upper = role.value.upper()
    return f"""Create comprehensive markdown documentation for the {repo_name} repository specifically tailored for {upper} developers.

REPOSITORY ANALYSIS:
- Overview: {analysis.overview}
- Key Features: {', '.join(analysis.key_features)}
- Endpoints: {len(analysis.endpoints)} found
- Functions: {len(analysis.functions)} analyzed
- Dependencies: {', '.join(analysis.dependencies)}
- Architecture: {analysis.architecture}

TARGET AUDIENCE: {upper} DEVELOPERS

Create detailed markdown documentation with these sections:

# {repo_name} - {title} Developer Guide

## Project Overview
[Explain what this project does from a {role.value} perspective]

## Quick Start for {title}s
[Step-by-step setup guide tailored for {role.value} developers]

## Architecture Overview
[System architecture relevant to {role.value} work]

## Key Components
[Most important parts for {role.value} developers to understand]

## Dependencies & Tools
[Dependencies that {role.value} developers need to know about]

## Development Workflow
[How {role.value} developers should work with this codebase]

## Testing & Debugging
[Testing approaches for {role.value} developers]

## Additional Resources
[Links and resources for {role.value} developers]

Make it practical, actionable, and specific to {role.value} development needs. Include code examples where helpful."""


def build_index_markdown(repo_name: str, role: Role, today: datetime | None = None) -> str:
    today = today or datetime.now(timezone.utc)
    return (
        f"# {repo_name} Documentation\n\n"
        "## Available Guides\n\n"
        f"- [{role.display_name} Guide]({role.value}-guide.md) - Generated for {role.value} developers\n\n"
        f"Generated by AI on {today.date().isoformat()}"
    )


def build_pull_request_body(role: Role, analysis: AnalysisResult, language: str | None, files: list[str], max_features: int = 3) -> str:
    file_lines = "\n".join(f"- `{path}`" for path in files)
    features = ", ".join(analysis.key_features[:max_features]) or "n/a"
    return f"""# AI-Generated Documentation

## What's New
This PR adds documentation tailored specifically for **{role.value} developers**.

## Files Added
{file_lines}

## Analysis Results
- **Endpoints Found**: {len(analysis.endpoints)}
- **Functions Analyzed**: {len(analysis.functions)}
- **Dependencies Found**: {len(analysis.dependencies)}
- **Key Features**: {features}

## Next Steps
1. Review the generated documentation
2. Edit/customize as needed for your project
3. Merge when satisfied with the content

*Generated from an AI analysis of your {language or 'code'} repository.*"""


def build_chat_prompt(context: list[DocContext], history: list[tuple[str, str]], message: str) -> str:
    """Chat prompt: doc context, trailing conversation, then the new question."""
    context_text = "\n\n---\n\n".join(f"File: {doc.file}\n{doc.content}" for doc in context)
    conversation = "\n".join(f"{role}: {content}" for role, content in history)
    return (
        "You are a helpful documentation assistant for a software project. You have "
        "access to the project's documentation and should answer questions based on "
        "this information.\n\n"
        f"Documentation Context:\n{context_text}\n\n"
        f"{_CHAT_INSTRUCTIONS}\n\n"
        f"Conversation History:\n{conversation}\n\n"
        f"User: {message}\n\nAssistant:"
    )
