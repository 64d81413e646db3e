"""
Readiness assessment – shared report shape and the LLM-backed analyzer.

Both the LLM analyzer and the heuristic fallback satisfy the
``ReadinessAnalyzer`` protocol and return the same ``ReadinessReport``
model, so callers never branch on which one ran.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from devinsight.utils.token_counter import count_tokens


# ---------------------------------------------------------------------------
# Report models
# ---------------------------------------------------------------------------

def _clamp_score(v: Any) -> int:
    try:
        score = int(round(float(v)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


class CodeQuality(BaseModel):
    score: int = 0
    comments: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> int:
        return _clamp_score(v)


class ReadmeQuality(BaseModel):
    exists: bool = False
    score: int = 0
    feedback: str = ""
    suggestions: list[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> int:
        return _clamp_score(v)


class TechnicalDebt(BaseModel):
    level: str = "unknown"
    issues: list[str] = Field(default_factory=list)


class Security(BaseModel):
    concerns: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ReadinessAnalysis(BaseModel):
    readinessScore: int = 0
    overallSummary: str = ""
    codeQuality: CodeQuality = Field(default_factory=CodeQuality)
    readmeQuality: ReadmeQuality = Field(default_factory=ReadmeQuality)
    suggestedReadme: str = ""
    technicalDebt: TechnicalDebt = Field(default_factory=TechnicalDebt)
    security: Security = Field(default_factory=Security)
    error: str | None = None
    rawResponse: str | None = None

    @field_validator("readinessScore", mode="before")
    @classmethod
    def clamp_readiness(cls, v: Any) -> int:
        return _clamp_score(v)

    @field_validator("suggestedReadme", "overallSummary", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else v


class ReadinessReport(BaseModel):
    success: bool = True
    model: str
    source: Literal["llm", "fallback"]
    fallbackReason: str | None = None
    usage: dict[str, Any] | None = None
    analysis: ReadinessAnalysis

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=False)


@runtime_checkable
class ReadinessAnalyzer(Protocol):
    """Anything that can turn merged repository text into a ReadinessReport."""

    model: str

    async def analyze(self, text: str) -> ReadinessReport: ...


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are an expert software engineer and code reviewer specializing in "
    "analyzing GitHub repositories for code quality, documentation, and project "
    "readiness. Always respond with valid JSON only."
)

_PROMPT_TEMPLATE = """Analyze this GitHub project. Return your analysis in valid JSON format with the following structure:

{{
  "readinessScore": <number between 0-100>,
  "codeQuality": {{
    "score": <number between 0-100>,
    "comments": ["specific comment about code quality"],
    "strengths": ["positive aspects of the code"],
    "improvements": ["specific suggestions for improvement"]
  }},
  "readmeQuality": {{
    "exists": <boolean>,
    "score": <number between 0-100 if exists, 0 if not>,
    "feedback": "detailed feedback about README quality",
    "suggestions": ["specific suggestions for README improvement"]
  }},
  "suggestedReadme": "A complete README.md content suggestion (only if README is missing or very poor)",
  "overallSummary": "Brief summary of the project's state and recommendations",
  "technicalDebt": {{
    "level": "low|medium|high",
    "issues": ["specific technical debt issues found"]
  }},
  "security": {{
    "concerns": ["security issues or potential vulnerabilities"],
    "recommendations": ["security improvement suggestions"]
  }}
}}

Project Content:
{content}

Important: Return ONLY valid JSON. Do not include any markdown formatting, explanations, or text outside the JSON structure."""


def build_prompt(text: str) -> str:
    return _PROMPT_TEMPLATE.format(content=text)


def degraded_analysis(raw: str) -> ReadinessAnalysis:
    """Neutral result used when the model's reply can't be parsed."""
    return ReadinessAnalysis(
        readinessScore=50,
        overallSummary="Analysis could not be completed. Please try again.",
        codeQuality=CodeQuality(
            score=50,
            comments=["Unable to parse AI response - please try again"],
            improvements=["Retry analysis for detailed insights"],
        ),
        readmeQuality=ReadmeQuality(
            exists=False,
            score=0,
            feedback="Analysis incomplete due to parsing error",
        ),
        technicalDebt=TechnicalDebt(level="unknown"),
        error="Failed to parse AI response",
        rawResponse=raw[:1000],
    )


# ---------------------------------------------------------------------------
# LLM analyzer
# ---------------------------------------------------------------------------

class LLMReadinessAnalyzer:
    """
    Primary analyzer. The LLM client is injected: anything with
    ``async generate(prompt, system_prompt=...) -> LLMResponse`` and a ``model``
    attribute works, which keeps tests free of network access.

    API failures (``LLMError`` / ``RateLimitError``) propagate so the engine
    can fall back; malformed replies come back as a degraded report.
    """

    def __init__(self, llm: Any) -> None:
        self.llm = llm
        self.model: str = getattr(llm, "model", "unknown")

    async def analyze(self, text: str) -> ReadinessReport:
        prompt = build_prompt(text)
        logger.info("🤖 Sending {} characters (~{} tokens) for analysis", len(text), count_tokens(prompt))

        reply = await self.llm.generate(prompt=prompt, system_prompt=SYSTEM_PROMPT)
        logger.debug("LLM readiness reply - {} chars", len(reply.text))

        return ReadinessReport(
            success=True,
            model=self.model,
            source="llm",
            usage=reply.usage,
            analysis=self.parse(reply.text),
        )

    @staticmethod
    def parse(raw: str) -> ReadinessAnalysis:
        clean = strip_fences(raw)
        try:
            return ReadinessAnalysis.model_validate(json.loads(clean))
        except (json.JSONDecodeError, ValidationError, TypeError) as exc:
            logger.warning("⚠️  Failed to parse LLM readiness reply: {}", exc)
            return degraded_analysis(raw)


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    stripped = text.strip()
    if stripped.startswith("```"):
        body = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if body.rstrip().endswith("```"):
            body = body.rstrip()[:-3]
        return body.strip()
    return stripped
