"""
Heuristic fallback analyzer.

Used when no LLM is configured or the LLM path fails. Scores merged
repository text from a handful of textual signals; deterministic and
offline, with the same report shape as the LLM analyzer. When the engine
has already scored the README, that report replaces the keyword guess for
the README section.
"""

from __future__ import annotations

from devinsight.services.readme import ReadmeReport
from devinsight.services.readiness import (
    CodeQuality,
    ReadinessAnalysis,
    ReadinessReport,
    ReadmeQuality,
    Security,
    TechnicalDebt,
)


FALLBACK_MODEL = "heuristic-fallback-v1"

CODE_KEYWORDS: tuple[str, ...] = (
    "function",
    "class",
    "def ",
    "import ",
    "const ",
    "func ",
    "fn ",
    "public ",
    "#include",
)

BASE_SCORE = 50
README_BONUS = 20
CODE_BONUS = 15
LENGTH_BONUSES: tuple[tuple[int, int], ...] = ((1000, 10), (5000, 5))

README_TEMPLATE = (
    "# Project Title\n\n"
    "## Description\nBrief description of your project.\n\n"
    "## Installation\n```bash\nnpm install\n```\n\n"
    "## Usage\nInstructions on how to use your project.\n\n"
    "## Contributing\nGuidelines for contributing to the project."
)


def heuristic_score(text: str) -> int:
    has_readme = "readme" in text.lower()
    has_code = any(keyword in text for keyword in CODE_KEYWORDS)

    score = BASE_SCORE
    if has_readme:
        score += README_BONUS
    if has_code:
        score += CODE_BONUS
    for min_length, bonus in LENGTH_BONUSES:
        if len(text) > min_length:
            score += bonus
    return min(score, 100)


class FallbackAnalyzer:
    model = FALLBACK_MODEL

    async def analyze(
        self,
        text: str,
        reason: str | None = None,
        readme: ReadmeReport | None = None,
    ) -> ReadinessReport:
        return self.build_report(text, reason, readme)

    def build_report(
        self,
        text: str,
        reason: str | None = None,
        readme: ReadmeReport | None = None,
    ) -> ReadinessReport:
        has_readme = readme.exists if readme is not None else "readme" in text.lower()
        has_code = any(keyword in text for keyword in CODE_KEYWORDS)

        analysis = ReadinessAnalysis(
            readinessScore=heuristic_score(text),
            overallSummary=(
                "Repository contains documentation and appears to be well-structured."
                if has_readme
                else "Repository needs better documentation to improve readiness."
            ),
            codeQuality=CodeQuality(
                score=75 if has_code else 40,
                comments=(
                    ["Code structure looks good", "Consider adding more comments"]
                    if has_code
                    else ["Limited code examples found", "Consider adding practical implementations"]
                ),
                strengths=(
                    ["Contains executable code", "Structured content"]
                    if has_code
                    else ["Well-documented learning material"]
                ),
                improvements=(
                    ["Add more inline comments", "Include error handling"]
                    if has_code
                    else ["Add code examples", "Include practical implementations"]
                ),
            ),
            readmeQuality=readme_quality(has_readme, readme),
            suggestedReadme=suggested_readme(has_readme, readme),
            technicalDebt=TechnicalDebt(
                level="low" if has_code else "unknown",
                issues=(
                    ["Code organization could be improved"]
                    if has_code
                    else ["No significant technical debt detected in current analysis"]
                ),
            ),
            security=Security(
                concerns=["No obvious security vulnerabilities detected in basic analysis"],
                recommendations=[
                    "Follow security best practices",
                    "Keep dependencies updated",
                    "Validate user inputs",
                ],
            ),
        )

        return ReadinessReport(
            success=True,
            model=self.model,
            source="fallback",
            fallbackReason=reason,
            analysis=analysis,
        )


def readme_quality(has_readme: bool, readme: ReadmeReport | None = None) -> ReadmeQuality:
    if readme is not None:
        return ReadmeQuality(
            exists=readme.exists,
            score=readme.score,
            feedback=readme.feedback,
            suggestions=[finding.message for finding in readme.findings],
        )
    return ReadmeQuality(
        exists=has_readme,
        score=80 if has_readme else 20,
        feedback=(
            "README found and appears informative"
            if has_readme
            else "No README file detected"
        ),
        suggestions=(
            ["Consider adding more usage examples", "Include installation instructions"]
            if has_readme
            else ["Create a comprehensive README file", "Add project description and setup instructions"]
        ),
    )


def suggested_readme(has_readme: bool, readme: ReadmeReport | None = None) -> str:
    if not has_readme:
        return README_TEMPLATE
    if readme is not None and readme.sections_missing:
        return (
            "Consider enhancing your existing README with these sections: "
            f"{', '.join(readme.sections_missing)}."
        )
    return (
        "Consider enhancing your existing README with more examples and "
        "clearer installation instructions."
    )
