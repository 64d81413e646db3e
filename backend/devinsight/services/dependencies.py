"""
Dependency Manifest Analyzer

Recognises package-manager manifests among the submitted files by file
name, parses their declared dependencies and scores each manifest on
security, maintenance and compatibility. Scoring is static: no registry
or advisory database is queried.

Health score per manifest:
    security 40% + maintenance 30% + compatibility 20% + performance 10%
"""

from __future__ import annotations

import json
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath
from typing import Any, Iterable

from loguru import logger

from devinsight.models.analysis import Finding, FindingLevel, SourceInput
from devinsight.services.metrics import is_ignored_path


MANIFESTS: dict[str, str] = {
    "package.json": "npm",
    "requirements.txt": "pip",
    "pyproject.toml": "pyproject",
    "Gemfile": "bundler",
    "composer.json": "composer",
    "go.mod": "go",
    "Cargo.toml": "cargo",
}

HEALTH_WEIGHTS: dict[str, float] = {
    "security": 0.4,
    "maintenance": 0.3,
    "compatibility": 0.2,
    "performance": 0.1,
}
PERFORMANCE_SCORE = 80

# Managers without version-range heuristics: (security, maintenance, compatibility)
BASE_SCORES: dict[str, tuple[int, int, int]] = {
    "pip": (90, 70, 80),
    "pyproject": (90, 75, 80),
    "bundler": (80, 70, 80),
    "composer": (80, 75, 85),
    "go": (85, 80, 90),
    "cargo": (90, 85, 90),
}

# Packages that shipped malicious releases.
COMPROMISED_NPM_PACKAGES = frozenset({"event-stream", "flatmap-stream", "eslint-scope", "getcookies"})

# package.json field -> maintenance points
NPM_METADATA_POINTS: dict[str, int] = {
    "version": 15,
    "description": 15,
    "repository": 15,
    "author": 10,
    "license": 20,
    "keywords": 10,
    "homepage": 5,
    "bugs": 5,
}
NPM_BASE_COMPATIBILITY = 90
STRICT_PIN_RATIO = 0.8
STRICT_PIN_PENALTY = 20
# (dependency count, maintenance penalty), largest first
DEPENDENCY_COUNT_PENALTIES: tuple[tuple[int, int], ...] = ((100, 20), (50, 10))
PRIMARY_MANAGER = "npm"
PRIMARY_WEIGHT = 0.7

_NPM_OUTDATED = re.compile(r"^[\^~]?0\.|^1\.[0-5]\.")
_EXACT_VERSION = re.compile(r"^\d+\.\d+\.\d+$")
_REQUIREMENT = re.compile(r"^([A-Za-z0-9][A-Za-z0-9._\-]*)(?:\[[^\]]*\])?\s*([<>=~!][^;#]*)?")
_GEM = re.compile(r"""^\s*gem\s+['"]([^'"]+)['"](?:\s*,\s*['"]([^'"]+)['"])?""", re.MULTILINE)
_GO_REQUIRE_LINE = re.compile(r"^require\s+(\S+)\s+(\S+)", re.MULTILINE)
_GO_REQUIRE_BLOCK = re.compile(r"^require\s*\(\n(.*?)^\)", re.MULTILINE | re.DOTALL)


def _half_up(value: float) -> int:
    return int(value + 0.5)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ManifestReport:
    path: str
    manager: str
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    security_score: int = 0
    maintenance_score: int = 0
    compatibility_score: int = 0
    compromised: tuple[str, ...] = ()
    outdated: tuple[str, ...] = ()
    findings: tuple[Finding, ...] = ()

    @property
    def total_dependencies(self) -> int:
        return len(self.dependencies) + len(self.dev_dependencies)

    @property
    def health_score(self) -> int:
        return _half_up(
            self.security_score * HEALTH_WEIGHTS["security"]
            + self.maintenance_score * HEALTH_WEIGHTS["maintenance"]
            + self.compatibility_score * HEALTH_WEIGHTS["compatibility"]
            + PERFORMANCE_SCORE * HEALTH_WEIGHTS["performance"]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.path,
            "type": self.manager,
            "dependencies": dict(self.dependencies),
            "devDependencies": dict(self.dev_dependencies),
            "totalDependencies": self.total_dependencies,
            "scores": {
                "security": self.security_score,
                "maintenance": self.maintenance_score,
                "compatibility": self.compatibility_score,
                "performance": PERFORMANCE_SCORE,
            },
            "healthScore": self.health_score,
            "compromisedPackages": list(self.compromised),
            "outdatedPackages": list(self.outdated),
            "recommendations": [f.to_dict() for f in self.findings],
        }


@dataclass(frozen=True)
class DependencyReport:
    manifests: tuple[ManifestReport, ...] = ()
    health_score: int = 0
    findings: tuple[Finding, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def exists(self) -> bool:
        return bool(self.manifests)

    def to_dict(self) -> dict[str, Any]:
        primary = self.manifests[0] if self.manifests else None
        return {
            "exists": self.exists,
            "healthScore": self.health_score,
            "primary": {"type": primary.manager, "file": primary.path} if primary else None,
            "packageFiles": [m.to_dict() for m in self.manifests],
            "summary": {
                "totalDependencies": sum(len(m.dependencies) for m in self.manifests),
                "devDependencies": sum(len(m.dev_dependencies) for m in self.manifests),
                "compromisedPackages": sum(len(m.compromised) for m in self.manifests),
                "outdatedPackages": sum(len(m.outdated) for m in self.manifests),
            },
            "recommendations": [f.to_dict() for f in self.findings],
            "errors": list(self.errors),
        }


# ---------------------------------------------------------------------------
# Parsers: text -> (dependencies, dev dependencies, metadata)
# ---------------------------------------------------------------------------

Parsed = tuple[dict[str, str], dict[str, str], dict[str, Any]]


def _json_object(text: str) -> dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("manifest root is not an object")
    return data


def _str_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def parse_npm(text: str) -> Parsed:
    data = _json_object(text)
    return _str_map(data.get("dependencies")), _str_map(data.get("devDependencies")), data


def parse_composer(text: str) -> Parsed:
    data = _json_object(text)
    return _str_map(data.get("require")), _str_map(data.get("require-dev")), data


def parse_requirements(text: str) -> Parsed:
    deps: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.split(" #", 1)[0].strip()
        # -r / -e / --index-url lines are pip options, not requirements
        if not line or line.startswith(("#", "-")):
            continue
        m = _REQUIREMENT.match(line)
        if m:
            deps[m.group(1)] = (m.group(2) or "").strip() or "*"
    return deps, {}, {}


def _pep508_map(requirements: Iterable[Any]) -> dict[str, str]:
    out: dict[str, str] = {}
    for requirement in requirements:
        m = _REQUIREMENT.match(str(requirement).strip())
        if m:
            out[m.group(1)] = (m.group(2) or "").strip() or "*"
    return out


def parse_pyproject(text: str) -> Parsed:
    data = tomllib.loads(text)
    project = data.get("project", {})
    deps = _pep508_map(project.get("dependencies", []))
    dev: dict[str, str] = {}
    for group in project.get("optional-dependencies", {}).values():
        dev.update(_pep508_map(group))

    poetry = data.get("tool", {}).get("poetry", {})
    for name, spec in poetry.get("dependencies", {}).items():
        if name != "python":
            deps[name] = spec if isinstance(spec, str) else str(spec.get("version", "*"))
    return deps, dev, project


def parse_gemfile(text: str) -> Parsed:
    return {m.group(1): m.group(2) or "*" for m in _GEM.finditer(text)}, {}, {}


def parse_go_mod(text: str) -> Parsed:
    deps = {m.group(1): m.group(2) for m in _GO_REQUIRE_LINE.finditer(text) if m.group(1) != "("}
    for block in _GO_REQUIRE_BLOCK.finditer(text):
        for line in block.group(1).splitlines():
            parts = line.split("//", 1)[0].split()
            if len(parts) >= 2:
                deps[parts[0]] = parts[1]
    return deps, {}, {}


def parse_cargo(text: str) -> Parsed:
    data = tomllib.loads(text)

    def table(name: str) -> dict[str, str]:
        return {
            dep: spec if isinstance(spec, str) else str(spec.get("version", "*"))
            for dep, spec in data.get(name, {}).items()
        }

    return table("dependencies"), table("dev-dependencies"), data.get("package", {})


PARSERS = {
    "npm": parse_npm,
    "pip": parse_requirements,
    "pyproject": parse_pyproject,
    "bundler": parse_gemfile,
    "composer": parse_composer,
    "go": parse_go_mod,
    "cargo": parse_cargo,
}


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

def manifest_type(path: str) -> str | None:
    if is_ignored_path(path):
        return None
    return MANIFESTS.get(PurePosixPath(path.replace("\\", "/")).name)


def is_manifest(path: str) -> bool:
    return manifest_type(path) is not None


class DependencyAnalyzer:
    """Stateless; safe to share between concurrent runs."""

    def analyze(self, sources: Iterable[SourceInput]) -> DependencyReport:
        manifests: list[ManifestReport] = []
        errors: list[str] = []

        for source in sources:
            manager = manifest_type(source.path)
            if manager is None:
                continue
            try:
                manifests.append(self.analyze_manifest(source.path, manager, source.text))
            except (ValueError, TypeError, AttributeError) as exc:
                logger.warning("⚠️  Could not parse {}: {}", source.path, exc)
                errors.append(f"{source.path}: {exc}")

        if not manifests:
            logger.info("📦 No dependency manifests found")
            return DependencyReport(findings=(_missing_manifest(),), errors=tuple(errors))

        manifests.sort(key=lambda m: (m.manager != PRIMARY_MANAGER, len(PurePosixPath(m.path).parts), m.path))
        report = DependencyReport(
            manifests=tuple(manifests),
            health_score=combined_health(manifests),
            findings=tuple(f for m in manifests for f in m.findings),
            errors=tuple(errors),
        )
        logger.info(
            "📦 Dependencies - {} manifest(s), health {}",
            len(manifests), report.health_score,
        )
        return report

    def analyze_manifest(self, path: str, manager: str, text: str) -> ManifestReport:
        deps, dev, metadata = PARSERS[manager](text)
        if manager == "npm":
            return self._score_npm(path, deps, dev, metadata)

        security, maintenance, compatibility = BASE_SCORES[manager]
        report = ManifestReport(
            path=path,
            manager=manager,
            dependencies=deps,
            dev_dependencies=dev,
            security_score=security,
            maintenance_score=maintenance,
            compatibility_score=compatibility,
        )
        return _with_findings(report, metadata)

    @staticmethod
    def _score_npm(
        path: str,
        deps: dict[str, str],
        dev: dict[str, str],
        metadata: dict[str, Any],
    ) -> ManifestReport:
        everything = {**dev, **deps}
        total = len(deps) + len(dev)

        compromised = tuple(sorted(name for name in everything if name in COMPROMISED_NPM_PACKAGES))
        outdated = tuple(sorted(
            name for name, version in everything.items() if _NPM_OUTDATED.search(version.strip())
        ))
        security = 100
        if total:
            security = max(0, _half_up(100 - (len(compromised) + len(outdated)) / total * 100))

        maintenance = sum(points for key, points in NPM_METADATA_POINTS.items() if metadata.get(key))
        for limit, penalty in DEPENDENCY_COUNT_PENALTIES:
            if total > limit:
                maintenance -= penalty
                break

        compatibility = NPM_BASE_COMPATIBILITY
        strict = sum(1 for version in deps.values() if _EXACT_VERSION.match(version.strip()))
        if deps and strict > len(deps) * STRICT_PIN_RATIO:
            compatibility -= STRICT_PIN_PENALTY

        report = ManifestReport(
            path=path,
            manager="npm",
            dependencies=deps,
            dev_dependencies=dev,
            security_score=security,
            maintenance_score=max(0, maintenance),
            compatibility_score=compatibility,
            compromised=compromised,
            outdated=outdated,
        )
        return _with_findings(report, metadata)


def combined_health(manifests: list[ManifestReport]) -> int:
    """npm manifests dominate when present; otherwise a plain mean."""
    if len(manifests) == 1:
        return manifests[0].health_score
    primary = [m.health_score for m in manifests if m.manager == PRIMARY_MANAGER]
    others = [m.health_score for m in manifests if m.manager != PRIMARY_MANAGER]
    if primary and others:
        return _half_up(
            sum(primary) / len(primary) * PRIMARY_WEIGHT
            + sum(others) / len(others) * (1 - PRIMARY_WEIGHT)
        )
    scores = primary or others
    return _half_up(sum(scores) / len(scores))


def _with_findings(report: ManifestReport, metadata: dict[str, Any]) -> ManifestReport:
    findings: list[Finding] = []
    if report.compromised:
        findings.append(Finding(
            FindingLevel.CRITICAL, "security",
            f"{report.path}: remove compromised packages ({', '.join(report.compromised)})",
            "These packages have shipped malicious releases",
        ))
    if report.outdated:
        shown = ", ".join(report.outdated[:5])
        findings.append(Finding(
            FindingLevel.IMPORTANT, "maintenance",
            f"{report.path}: {len(report.outdated)} dependencies pinned to pre-release or old ranges ({shown})",
            "Old major versions miss security and bug fixes",
        ))
    if report.manager == "npm":
        if not metadata.get("license"):
            findings.append(Finding(
                FindingLevel.IMPORTANT, "legal",
                f"{report.path}: add a license field",
                "Unlicensed packages cannot be safely reused",
            ))
        if not metadata.get("description"):
            findings.append(Finding(
                FindingLevel.SUGGESTION, "documentation",
                f"{report.path}: add a description field",
                "Descriptions help discovery in package registries",
            ))
    if report.total_dependencies > DEPENDENCY_COUNT_PENALTIES[0][0]:
        findings.append(Finding(
            FindingLevel.SUGGESTION, "performance",
            f"{report.path}: {report.total_dependencies} dependencies; audit for unused ones",
            "Large dependency trees slow installs and widen the attack surface",
        ))
    return replace(report, findings=tuple(findings))


def _missing_manifest() -> Finding:
    return Finding(
        FindingLevel.CRITICAL, "missing",
        "No package manager files found. Add package.json, requirements.txt or an equivalent manifest.",
        "Undeclared dependencies make builds unreproducible",
    )
