"""
Pipeline orchestration.

``analyze_repository`` runs the hierarchical analysis behind ``/analyze``:
structure → dependencies → architecture → features → functions →
relationships → AI synthesis.

``generate_documentation`` runs the flow behind ``/generate-docs``: pick
code files → AI analysis → AI documentation → local mirror → publish.
"""

from __future__ import annotations

import logging
import time

from pydantic import BaseModel, Field

from docflow.ai_client import AIClient
from docflow.classifier import (
    categorize_files,
    extension_of,
    identify_architectural_files,
    select_code_files,
)
from docflow.extractors import (
    extract_dependencies,
    extract_endpoints,
    extract_functions,
    extract_relationships,
)
from docflow.github_client import GitHubClient
from docflow.insights import (
    detect_architecture,
    detect_call_chains,
    group_features,
    inspect_dockerfile,
    package_scripts,
    rank_functions,
)
from docflow.models import (
    AnalysisResult,
    EndpointFinding,
    FileCategories,
    FileEntry,
    PublishOutcome,
    Relationship,
    RepositoryRef,
    Role,
)
from docflow.prompts import (
    build_analysis_prompt,
    build_documentation_prompt,
    build_synthesis_prompt,
)
from docflow.publisher import DocPublisher, documentation_files, save_local_copy
from docflow.response_parser import merge_findings, parse_analysis
from docflow.settings import settings

logger = logging.getLogger("docflow.pipeline")

PHASES = ("structure", "dependencies", "architecture", "features", "functions", "relationships", "synthesis")


class HeuristicReport(BaseModel):
    """Everything the regex/keyword phases learned before the AI call."""

    overview: dict = Field(default_factory=dict)
    categories: FileCategories = Field(default_factory=FileCategories)
    dependencies: list[str] = Field(default_factory=list)
    architecture: dict = Field(default_factory=dict)
    features: list[dict] = Field(default_factory=list)
    functions: list[dict] = Field(default_factory=list)
    call_chains: list[dict] = Field(default_factory=list)
    endpoints: list[EndpointFinding] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    files_analyzed: int = 0

    def prompt_summary(self, max_items: int = 20) -> dict:
        """Compact view of the report for the synthesis prompt."""
        return {
            "overview": self.overview,
            "architecture": self.architecture,
            "features": [
                f"{f['name']}: {f['description']} ({f['endpoints']} endpoints, {f['functions']} functions)"
                for f in self.features
            ],
            "external_dependencies": self.dependencies[:max_items],
            "internal_relationships": len(self.relationships),
            "top_functions": [
                f"{f['name']} ({f['importance']}): {f['type']} in {f['file']}"
                for f in self.functions[:10]
            ],
        }


class RepositoryAnalysis(BaseModel):
    repo_info: dict
    role: Role
    raw_analysis: str
    result: AnalysisResult
    report: HeuristicReport
    duration_ms: float = 0.0


class DocumentationRun(BaseModel):
    repo_info: dict
    role: Role
    analysis: AnalysisResult
    outcome: PublishOutcome


# ── Heuristic phases (pure) ────────────────────────────────────
def run_heuristics(
    repo_info: dict,
    tree: list[dict],
    categories: FileCategories,
    config_files: list[FileEntry],
    key_files: list[FileEntry],
    feature_files: list[FileEntry],
    role: Role,
) -> HeuristicReport:
    """Run every regex/keyword phase over already-fetched files."""
    overview: dict = {
        "name": repo_info.get("name"),
        "description": repo_info.get("description"),
        "language": repo_info.get("language"),
        "stars": repo_info.get("stargazers_count", 0),
        "total_files": len(tree),
        "file_structure": categories.counts(),
    }

    # Dependencies: manifests, Dockerfile, package scripts
    dependencies: list[str] = []
    for entry in config_files:
        dependencies.extend(extract_dependencies(entry.path, entry.content))
        name = entry.path.rsplit("/", 1)[-1].lower()
        if "dockerfile" in name:
            overview["containerized"] = True
            overview.setdefault("exposed_ports", []).extend(inspect_dockerfile(entry.content))
        if name == "package.json":
            scripts = package_scripts(entry.content)
            if scripts:
                overview["scripts"] = scripts
    dependencies = list(dict.fromkeys(dependencies))
    logger.info("Discovered %d external dependencies", len(dependencies))

    source_files = key_files + feature_files
    architecture = detect_architecture(key_files)
    features = group_features(source_files)

    endpoints: list[EndpointFinding] = []
    function_findings = []
    call_chains: list[dict] = []
    relationships: list[Relationship] = []
    for entry in source_files:
        endpoints.extend(extract_endpoints(entry.content, entry.path))
        function_findings.extend(extract_functions(entry.content, extension_of(entry.path), entry.path))
        call_chains.extend(detect_call_chains(entry.content, entry.path))
        relationships.extend(extract_relationships(entry.path, entry.content))

    logger.info(
        "Heuristics for %s: %d endpoints, %d functions, %d relationships",
        repo_info.get("full_name") or repo_info.get("name"),
        len(endpoints), len(function_findings), len(relationships),
    )

    return HeuristicReport(
        overview=overview,
        categories=categories,
        dependencies=dependencies,
        architecture=architecture,
        features=features,
        functions=rank_functions(function_findings, role),
        call_chains=call_chains,
        endpoints=endpoints,
        relationships=relationships,
        files_analyzed=len(source_files),
    )


# ── /analyze ───────────────────────────────────────────────────
async def analyze_repository(
    github: GitHubClient,
    ai: AIClient,
    ref: RepositoryRef,
    role: Role,
) -> RepositoryAnalysis:
    t0 = time.perf_counter()
    logger.info("Starting hierarchical analysis of %s for %s", ref.full_name, role.value)

    # Phase 1: structure
    repo_info = await github.get_repo(ref)
    tree = await github.get_tree(ref, repo_info.get("default_branch") or "main")
    categories = categorize_files(tree)

    # Phase 2: dependencies
    config_files = await github.fetch_files(ref, categories.config[: settings.config_files_limit])

    # Phase 3: architecture
    architectural = identify_architectural_files(categories.source)[: settings.architectural_files_limit]
    key_files = await github.fetch_files(ref, architectural)

    # Phase 4-6: features, functions, relationships
    remaining = [p for p in categories.source if p not in architectural][: settings.source_files_limit]
    feature_files = await github.fetch_files(ref, remaining)

    report = run_heuristics(repo_info, tree, categories, config_files, key_files, feature_files, role)

    # Phase 7: synthesis
    prompt = build_synthesis_prompt(
        repo_info, role, report.prompt_summary(), key_files + feature_files, settings.content_truncate,
    )
    raw = await ai.generate(prompt, json_mode=True)
    result = merge_findings(parse_analysis(raw), report.endpoints, report.dependencies)

    duration_ms = (time.perf_counter() - t0) * 1000
    logger.info("Analysis of %s complete in %.0f ms (%s)", ref.full_name, duration_ms, " -> ".join(PHASES))
    return RepositoryAnalysis(
        repo_info=repo_info,
        role=role,
        raw_analysis=raw,
        result=result,
        report=report,
        duration_ms=round(duration_ms, 1),
    )


# ── /generate-docs ─────────────────────────────────────────────
async def generate_documentation(
    github: GitHubClient,
    ai: AIClient,
    publisher: DocPublisher,
    ref: RepositoryRef,
    role: Role,
) -> DocumentationRun:
    """Analyse, write the role guide, mirror it locally and try to publish it.

    AI and repository-read failures propagate. Publish failures come back
    inside ``DocumentationRun.outcome`` with the markdown intact.
    """
    logger.info("Generating %s documentation for %s", role.value, ref.full_name)
    repo_info = await github.get_repo(ref)
    tree = await github.get_tree(ref, repo_info.get("default_branch") or "main")
    paths = select_code_files(tree, settings.max_file_size, settings.file_limit)
    files = await github.fetch_files(ref, paths)

    raw = await ai.generate(
        build_analysis_prompt(repo_info, files, role, settings.content_truncate),
        json_mode=True,
    )
    analysis = parse_analysis(raw)
    logger.info(
        "Analysis parsed: %d endpoints, %d functions, %d dependencies",
        len(analysis.endpoints), len(analysis.functions), len(analysis.dependencies),
    )

    repo_name = repo_info.get("name") or ref.repo
    markdown = await ai.generate(build_documentation_prompt(repo_name, role, analysis))

    try:
        save_local_copy(ref, documentation_files(repo_name, role, markdown), settings.docs_output_dir)
    except OSError as exc:
        logger.warning("Could not mirror docs for %s locally: %s", ref.full_name, exc)

    outcome = await publisher.publish(ref, role, markdown, repo_info, analysis)
    return DocumentationRun(repo_info=repo_info, role=role, analysis=analysis, outcome=outcome)
