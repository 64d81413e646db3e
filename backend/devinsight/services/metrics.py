"""
Metric Extractor

Raw per-file and per-function measurements from source text:
- line / code-line / comment-line counts and comment ratio
- function detection with length, McCabe-style complexity and nesting depth
- TODO markers and leftover debug output
- smells: magic numbers, `var` declarations, empty functions and bare `except:`

Python is parsed with ``ast``; brace languages are scanned with per-language
declaration patterns over a copy of the text whose strings and comments
have been blanked out. Nothing in here raises on bad input: text that can't
be parsed yields zero functions and a ``parse_error`` marker.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from loguru import logger

from devinsight.models.analysis import FileMetrics


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawFunction:
    """A detected function before risk classification."""
    name: str
    start_line: int
    length: int
    complexity: int
    nesting_depth: int = 0
    is_empty: bool = False


@dataclass(frozen=True)
class _Smells:
    magic_numbers: int = 0
    var_declarations: int = 0
    broad_excepts: int = 0


@dataclass(frozen=True)
class ExtractionResult:
    path: str
    language: str
    metrics: FileMetrics
    functions: tuple[RawFunction, ...] = ()
    parse_error: str | None = None


@dataclass(frozen=True)
class _BraceSpec:
    declarations: tuple[re.Pattern[str], ...]
    branches: tuple[re.Pattern[str], ...]
    char_literals: bool = False
    hash_comments: bool = False


@dataclass
class _Span:
    name: str
    name_offset: int
    open_offset: int
    close_offset: int
    children: list[tuple[int, int]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Language tables
# ---------------------------------------------------------------------------

EXTENSION_LANGUAGES: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".pyw": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".cs": "csharp",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".go": "go",
    ".rs": "rust",
    ".php": "php",
    ".rb": "ruby",
    ".swift": "swift",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".scala": "scala",
}

LANGUAGE_ALIASES: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "c#": "csharp",
    "cs": "csharp",
    "c++": "cpp",
    "golang": "go",
    "rb": "ruby",
    "kt": "kotlin",
}

HASH_COMMENT_LANGUAGES = frozenset({"python", "ruby"})
SLASH_COMMENT_LANGUAGES = frozenset({
    "javascript", "typescript", "java", "csharp", "c", "cpp", "go",
    "rust", "php", "swift", "kotlin", "scala",
})

_CONTROL_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "return", "else", "do", "try",
    "new", "throw", "sizeof", "using", "lock", "foreach", "synchronized",
    "function", "elseif", "when", "match", "typeof", "await", "yield",
})

_COMMON_BRANCHES: tuple[str, ...] = (
    r"\bif\b",
    r"\bfor\b",
    r"\bwhile\b",
    r"\bcase\b",
    r"\bcatch\b",
    r"&&",
    r"\|\|",
)

# ternary ? but not ?. ?? or ?: (optional chaining, nullish, TS optionals)
_TERNARY: tuple[str, ...] = (r"(?<!\?)\?(?![?.:])",)

_JS_DECLARATIONS: tuple[str, ...] = (
    r"\bfunction\s*\*?\s*([A-Za-z_$][\w$]*)\s*(?:<[^>]*>)?\s*\(",
    r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*(?::[^=\n]+)?=\s*(?:async\s*)?"
    r"(?:function\s*\*?\s*[\w$]*\s*)?\(",
    r"^[ \t]*(?:(?:public|private|protected|static|async|get|set|readonly|override|abstract)[ \t]+)*"
    r"([A-Za-z_$][\w$]*)[ \t]*(?:<[^>\n]*>)?\(",
)

_CLIKE_METHOD = (
    r"^[ \t]*(?P<prefix>(?:[\w<>\[\],.?*&:~]+[ \t]+)+)(?P<name>[A-Za-z_~][\w~]*)[ \t]*\("
)


def _compile(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.MULTILINE) for p in patterns)


BRACE_LANGUAGES: dict[str, _BraceSpec] = {
    "javascript": _BraceSpec(_compile(_JS_DECLARATIONS), _compile(_COMMON_BRANCHES + _TERNARY)),
    "typescript": _BraceSpec(_compile(_JS_DECLARATIONS), _compile(_COMMON_BRANCHES + _TERNARY)),
    "java": _BraceSpec(_compile((_CLIKE_METHOD,)), _compile(_COMMON_BRANCHES + _TERNARY), char_literals=True),
    "csharp": _BraceSpec(
        _compile((_CLIKE_METHOD,)),
        _compile(_COMMON_BRANCHES + _TERNARY + (r"\bforeach\b",)),
        char_literals=True,
    ),
    "c": _BraceSpec(_compile((_CLIKE_METHOD,)), _compile(_COMMON_BRANCHES + _TERNARY), char_literals=True),
    "cpp": _BraceSpec(_compile((_CLIKE_METHOD,)), _compile(_COMMON_BRANCHES + _TERNARY), char_literals=True),
    "go": _BraceSpec(
        _compile((r"^[ \t]*func[ \t]+(?:\([^)]*\)[ \t]*)?([A-Za-z_]\w*)[ \t]*(?:\[[^\]]*\])?\(",)),
        _compile(_COMMON_BRANCHES),
        char_literals=True,
    ),
    "rust": _BraceSpec(
        _compile((r"\bfn\s+([A-Za-z_]\w*)\s*(?:<[^>]*>)?\s*\(",)),
        _compile(_COMMON_BRANCHES + (r"\bloop\b", r"=>")),
        char_literals=True,
    ),
    "php": _BraceSpec(
        _compile((r"\bfunction\s+&?([A-Za-z_]\w*)\s*\(",)),
        _compile(_COMMON_BRANCHES + _TERNARY + (r"\bforeach\b", r"\belseif\b")),
        hash_comments=True,
    ),
    "swift": _BraceSpec(
        _compile((r"\bfunc\s+([A-Za-z_]\w*)\s*(?:<[^>]*>)?\s*\(",)),
        _compile(_COMMON_BRANCHES + (r"\bguard\b",)),
    ),
    "kotlin": _BraceSpec(
        _compile((r"\bfun\s+(?:<[^>]*>\s*)?(?:[\w.]+\.)?([A-Za-z_]\w*)\s*\(",)),
        _compile(_COMMON_BRANCHES),
        char_literals=True,
    ),
    "scala": _BraceSpec(
        _compile((r"\bdef\s+([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?\s*\(",)),
        _compile(_COMMON_BRANCHES),
        char_literals=True,
    ),
}

_RUBY_DEF = re.compile(r"^([ \t]*)def[ \t]+(?:self\.)?([\w?!=]+)")
_RUBY_BRANCHES = _compile((
    r"\bif\b", r"\bunless\b", r"\bwhile\b", r"\buntil\b", r"\bfor\b",
    r"\bwhen\b", r"\brescue\b", r"\belsif\b", r"&&", r"\|\|", r"\band\b", r"\bor\b",
))

_TODO_PATTERN = re.compile(r"\b(?:TODO|FIXME|HACK|XXX)\b")
_DEBUG_PATTERNS: dict[str, re.Pattern[str]] = {
    "python": re.compile(r"^[ \t]*print\(", re.MULTILINE),
    "javascript": re.compile(r"\bconsole\.(?:log|debug)\("),
    "typescript": re.compile(r"\bconsole\.(?:log|debug)\("),
    "java": re.compile(r"\bSystem\.(?:out|err)\.print"),
}

_CHAR_LITERAL = re.compile(r"'(?:\\.[^']{0,8}|[^\\'\n])'")

# Two or more digits that are not part of a name, float or dotted version.
_MAGIC_NUMBER = re.compile(r"(?<![\w.])[0-9]{2,}\b(?![\w.])")
# A line naming an UPPER_CASE constant is where a literal belongs.
_CONSTANT_LINE = re.compile(r"^[ \t]*(?:#define\b|.*\b[A-Z][A-Z0-9_]*[ \t]*(?::[^=\n]*)?=[^=>])")
_VAR_KEYWORD = re.compile(r"\bvar\b")
_VAR_LANGUAGES = frozenset({"javascript", "typescript"})
_SIGNATURE_CONTINUATIONS = ("{", "=>", "->", "throws ", "where ", ": ")
_STUB_DECORATORS = frozenset({"abstractmethod", "overload"})

SUPPORTED_LANGUAGES = frozenset({"python", "ruby", *BRACE_LANGUAGES})

IGNORED_PATH_SEGMENTS = frozenset({
    "node_modules", ".git", "dist", "build", "target", "vendor", "__pycache__",
})

_PY_SCOPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)
_PY_BLOCKS = (
    ast.For, ast.AsyncFor, ast.While, ast.With, ast.AsyncWith, ast.Try, ast.Match,
) + ((ast.TryStar,) if hasattr(ast, "TryStar") else ())


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

def detect_language(path: str) -> str:
    """Language tag from a file extension; ``unknown`` when unrecognised."""
    return EXTENSION_LANGUAGES.get(PurePosixPath(path).suffix.lower(), "unknown")


def normalise_language(language: str | None, path: str) -> str:
    if not language:
        return detect_language(path)
    tag = language.strip().lower()
    return LANGUAGE_ALIASES.get(tag, tag) or detect_language(path)


def is_ignored_path(path: str) -> bool:
    """Dependency, build-output and minified files are not the project's own code."""
    parts = PurePosixPath(path.replace("\\", "/")).parts
    if any(part in IGNORED_PATH_SEGMENTS or part.endswith(".egg-info") for part in parts[:-1]):
        return True
    return bool(parts) and ".min." in parts[-1]


def is_analyzable(path: str, language: str | None = None) -> bool:
    """True for source files in a supported language outside ignored directories."""
    if is_ignored_path(path):
        return False
    return normalise_language(language, path) in SUPPORTED_LANGUAGES


class MetricExtractor:
    """Stateless: one instance can serve any number of concurrent runs."""

    def extract(self, path: str, language: str | None, text: str) -> ExtractionResult:
        lang = normalise_language(language, path)
        try:
            return self._extract(path, lang, text)
        except Exception as exc:
            logger.debug("Metric extraction failed for {}: {}", path, exc)
            line_count = len(_split_lines(text))
            return ExtractionResult(
                path=path,
                language=lang,
                metrics=FileMetrics(line_count=line_count),
                parse_error=f"extraction failed: {exc}",
            )

    def _extract(self, path: str, language: str, text: str) -> ExtractionResult:
        lines = _split_lines(text)
        comment_idx = _comment_line_indices(lines, language)
        code_lines = sum(
            1 for i, line in enumerate(lines) if line.strip() and i not in comment_idx
        )
        comment_lines = len(comment_idx)

        functions: tuple[RawFunction, ...] = ()
        smells = _Smells()
        parse_error: str | None = None
        if language == "python":
            functions, smells, parse_error = _python_source(text)
        elif language in BRACE_LANGUAGES:
            functions, smells, parse_error = _brace_source(text, language)
        elif language == "ruby":
            functions, smells, parse_error = _ruby_source(text, lines)

        if parse_error:
            logger.debug("⚠️  {} - {}", path, parse_error)

        metrics = FileMetrics(
            line_count=len(lines),
            code_lines=code_lines,
            comment_lines=comment_lines,
            comment_ratio=comment_lines / max(len(lines), 1),
            todo_count=len(_TODO_PATTERN.findall(text)),
            debug_count=_count_debug(text, language),
            magic_number_count=smells.magic_numbers,
            var_count=smells.var_declarations,
            empty_function_count=sum(1 for f in functions if f.is_empty),
            broad_except_count=smells.broad_excepts,
        )

        return ExtractionResult(
            path=path,
            language=language,
            metrics=metrics,
            functions=functions,
            parse_error=parse_error,
        )


_default_extractor = MetricExtractor()


def extract_metrics(path: str, language: str | None, text: str) -> ExtractionResult:
    return _default_extractor.extract(path, language, text)


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------

def _split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only so indices line up with ``ast`` line numbers."""
    if not text:
        return []
    lines = [line.rstrip("\r") for line in text.split("\n")]
    if lines[-1] == "":
        lines.pop()
    return lines


def _comment_line_indices(lines: list[str], language: str) -> set[int]:
    found: set[int] = set()
    if language in SLASH_COMMENT_LANGUAGES:
        in_block = False
        for i, raw in enumerate(lines):
            line = raw.strip()
            if in_block:
                found.add(i)
                if "*/" in line:
                    in_block = False
                continue
            if line.startswith("//") or (language == "php" and line.startswith("#")):
                found.add(i)
            elif line.startswith("/*"):
                found.add(i)
                in_block = "*/" not in line[2:]
    elif language in HASH_COMMENT_LANGUAGES:
        delimiter: str | None = None
        for i, raw in enumerate(lines):
            line = raw.strip()
            if delimiter:
                found.add(i)
                if delimiter in line:
                    delimiter = None
                continue
            if line.startswith("#"):
                found.add(i)
            elif language == "python" and line[:3] in ('"""', "'''"):
                found.add(i)
                quote = line[:3]
                if quote not in line[3:]:
                    delimiter = quote
    return found


def _count_debug(text: str, language: str) -> int:
    pattern = _DEBUG_PATTERNS.get(language)
    return len(pattern.findall(text)) if pattern else 0


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _count_magic_numbers(masked: str) -> int:
    """Numeric literals on lines that are not constant definitions."""
    return sum(
        len(_MAGIC_NUMBER.findall(line))
        for line in masked.split("\n")
        if not _CONSTANT_LINE.match(line)
    )


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------

def _python_source(text: str) -> tuple[tuple[RawFunction, ...], _Smells, str | None]:
    try:
        tree = ast.parse(text)
    except (SyntaxError, ValueError) as exc:
        return (), _Smells(), f"unparseable python: {exc}"

    found: list[RawFunction] = []
    for node in ast.walk(tree):
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        end = getattr(node, "end_lineno", None) or node.lineno
        found.append(RawFunction(
            name=node.name,
            start_line=node.lineno,
            length=end - node.lineno + 1,
            complexity=1 + sum(_python_decisions(n) for n in _own_nodes(node)),
            nesting_depth=_python_depth(node.body, 0),
            is_empty=_python_is_empty(node),
        ))
    found.sort(key=lambda f: (f.start_line, f.name))
    smells = _Smells(
        magic_numbers=_python_magic_numbers(tree),
        broad_excepts=sum(
            1 for n in ast.walk(tree) if isinstance(n, ast.ExceptHandler) and n.type is None
        ),
    )
    return tuple(found), smells, None


def _python_is_empty(func: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
    """A body of nothing but ``pass``; docstring-only and ``...`` stubs are intentional."""
    body = func.body
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant) \
            and isinstance(body[0].value.value, str):
        body = body[1:]
    if not body or not all(isinstance(stmt, ast.Pass) for stmt in body):
        return False
    return not any(_decorator_name(d) in _STUB_DECORATORS for d in func.decorator_list)


def _decorator_name(node: ast.expr) -> str:
    if isinstance(node, ast.Call):
        return _decorator_name(node.func)
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    return ""


def _python_magic_numbers(tree: ast.Module) -> int:
    named: set[int] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Assign):
            targets = node.targets
        elif isinstance(node, ast.AnnAssign):
            targets = [node.target]
        else:
            continue
        if all(isinstance(t, ast.Name) and t.id.isupper() for t in targets):
            named.update(id(n) for n in ast.walk(node))
    return sum(
        1
        for node in ast.walk(tree)
        if isinstance(node, ast.Constant)
        and type(node.value) is int
        and node.value >= 10
        and id(node) not in named
    )


def _own_nodes(func: ast.AST):
    """Walk a function body without descending into nested scopes."""
    stack = list(ast.iter_child_nodes(func))
    while stack:
        node = stack.pop()
        if isinstance(node, _PY_SCOPES):
            continue
        yield node
        stack.extend(ast.iter_child_nodes(node))


def _python_decisions(node: ast.AST) -> int:
    if isinstance(node, (ast.If, ast.For, ast.AsyncFor, ast.While,
                         ast.ExceptHandler, ast.IfExp, ast.match_case)):
        return 1
    if isinstance(node, ast.BoolOp):
        return len(node.values) - 1
    if isinstance(node, ast.comprehension):
        return 1 + len(node.ifs)
    return 0


def _python_depth(statements: list[ast.stmt], depth: int) -> int:
    best = depth
    for stmt in statements:
        if isinstance(stmt, _PY_SCOPES):
            continue
        if isinstance(stmt, ast.If):
            best = max(best, _python_depth(stmt.body, depth + 1))
            if len(stmt.orelse) == 1 and isinstance(stmt.orelse[0], ast.If):
                # elif stays at the same level as its if
                best = max(best, _python_depth(stmt.orelse, depth))
            else:
                best = max(best, _python_depth(stmt.orelse, depth + 1))
        elif isinstance(stmt, _PY_BLOCKS):
            for block in _python_blocks(stmt):
                best = max(best, _python_depth(block, depth + 1))
    return best


def _python_blocks(stmt: ast.stmt):
    for name in ("body", "orelse", "finalbody"):
        block = getattr(stmt, name, None)
        if block:
            yield block
    for handler in getattr(stmt, "handlers", ()):
        yield handler.body
    for case in getattr(stmt, "cases", ()):
        yield case.body


# ---------------------------------------------------------------------------
# Brace languages
# ---------------------------------------------------------------------------

def _mask_source(text: str, char_literals: bool, hash_comments: bool) -> str:
    """Blank out comments and string contents, keeping offsets and newlines."""
    out = list(text)
    n = len(text)
    i = 0

    def blank(start: int, end: int) -> None:
        for k in range(start, min(end, n)):
            if out[k] != "\n":
                out[k] = " "

    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if (ch == "/" and nxt == "/") or (hash_comments and ch == "#"):
            end = text.find("\n", i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
        elif ch == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            end = n if end == -1 else end + 2
            blank(i, end)
            i = end
        elif ch == '"' or ch == "`" or (ch == "'" and not char_literals):
            j = i + 1
            while j < n and text[j] != ch:
                if text[j] == "\\":
                    j += 1
                elif text[j] == "\n" and ch != "`":
                    break
                j += 1
            blank(i + 1, j)
            i = j + 1 if j < n and text[j] == ch else j
        elif ch == "'":
            m = _CHAR_LITERAL.match(text, i)
            if m:
                blank(i + 1, m.end() - 1)
                i = m.end()
            else:
                i += 1
        else:
            i += 1
    return "".join(out)


def _matching(masked: str, start: int, opener: str, closer: str) -> int:
    """Offset of the bracket closing the one at ``start``; -1 if unbalanced."""
    depth = 0
    for k in range(start, len(masked)):
        c = masked[k]
        if c == opener:
            depth += 1
        elif c == closer:
            depth -= 1
            if depth == 0:
                return k
    return -1


def _find_body(masked: str, paren_offset: int) -> int | None:
    """
    Offset of the ``{`` opening the body of a declaration whose parameter
    list starts at ``paren_offset``. None for prototypes, calls and
    expression-bodied declarations.
    """
    close = _matching(masked, paren_offset, "(", ")")
    if close == -1:
        return None
    k = close + 1
    n = len(masked)
    while k < n:
        c = masked[k]
        if c == "{":
            return k
        if c in ";}":
            return None
        if c == "\n":
            # A signature only carries on to the next line for a brace on its
            # own line or a trailing clause; anything else is a new statement.
            j = k + 1
            while j < n and masked[j] in " \t\r\n":
                j += 1
            if not masked.startswith(_SIGNATURE_CONTINUATIONS, j):
                return None
            k = j
            continue
        if c == "=":
            if k + 1 < n and masked[k + 1] == ">":
                k += 2
                continue
            rest = masked[k + 1:k + 200].lstrip()
            if rest.startswith("{"):
                return masked.index("{", k + 1)
            return None
        k += 1
    return None


def _brace_source(text: str, language: str) -> tuple[tuple[RawFunction, ...], _Smells, str | None]:
    spec = BRACE_LANGUAGES[language]
    masked = _mask_source(text, spec.char_literals, spec.hash_comments)

    spans: dict[int, _Span] = {}
    unclosed: list[str] = []
    for pattern in spec.declarations:
        for m in pattern.finditer(masked):
            name_group = "name" if "name" in pattern.groupindex else 1
            name = m.group(name_group)
            if name in _CONTROL_KEYWORDS:
                continue
            prefix = m.groupdict().get("prefix")
            if prefix and prefix.split()[-1] in _CONTROL_KEYWORDS:
                continue
            open_offset = _find_body(masked, m.end() - 1)
            if open_offset is None or open_offset in spans:
                continue
            close_offset = _matching(masked, open_offset, "{", "}")
            if close_offset == -1:
                unclosed.append(name)
                continue
            spans[open_offset] = _Span(name, m.start(name_group), open_offset, close_offset)

    ordered = sorted(spans.values(), key=lambda s: s.open_offset)
    for outer in ordered:
        for inner in ordered:
            if outer.open_offset < inner.open_offset and inner.close_offset <= outer.close_offset:
                outer.children.append((inner.open_offset, inner.close_offset))

    found: list[RawFunction] = []
    for span in ordered:
        body = _own_body(masked, span)
        start_line = _line_of(masked, span.name_offset)
        end_line = _line_of(masked, span.close_offset)
        complexity = 1 + sum(len(p.findall(body)) for p in spec.branches)
        found.append(RawFunction(
            name=span.name,
            start_line=start_line,
            length=end_line - start_line + 1,
            complexity=complexity,
            nesting_depth=_brace_depth(masked[span.open_offset:span.close_offset + 1]),
            is_empty=not masked[span.open_offset + 1:span.close_offset].strip(),
        ))

    found.sort(key=lambda f: (f.start_line, f.name))
    smells = _Smells(
        magic_numbers=_count_magic_numbers(masked),
        var_declarations=len(_VAR_KEYWORD.findall(masked)) if language in _VAR_LANGUAGES else 0,
    )
    error = f"unterminated function body: {', '.join(unclosed)}" if unclosed else None
    return tuple(found), smells, error


def _own_body(masked: str, span: _Span) -> str:
    """Function body text with directly nested function bodies cut out."""
    parts: list[str] = []
    cursor = span.open_offset
    for start, end in sorted(span.children):
        if start < cursor:
            continue
        parts.append(masked[cursor:start])
        cursor = end + 1
    parts.append(masked[cursor:span.close_offset + 1])
    return "".join(parts)


def _brace_depth(body: str) -> int:
    """Max block depth inside a body; the body's own braces are level 0."""
    depth = best = 0
    for c in body:
        if c == "{":
            depth += 1
            best = max(best, depth)
        elif c == "}":
            depth -= 1
    return max(best - 1, 0)


# ---------------------------------------------------------------------------
# Ruby
# ---------------------------------------------------------------------------

def _ruby_source(text: str, lines: list[str]) -> tuple[tuple[RawFunction, ...], _Smells, str | None]:
    found: list[RawFunction] = []
    unclosed: list[str] = []
    for i, line in enumerate(lines):
        m = _RUBY_DEF.match(line)
        if not m:
            continue
        indent = m.group(1)
        end = None
        for j in range(i + 1, len(lines)):
            candidate = lines[j]
            if candidate.strip() == "end" and candidate[:len(indent)] == indent \
                    and len(candidate) - len(candidate.lstrip()) == len(indent):
                end = j
                break
        if end is None:
            unclosed.append(m.group(2))
            continue
        body = "\n".join(
            l for l in lines[i:end + 1] if not l.strip().startswith("#")
        )
        found.append(RawFunction(
            name=m.group(2),
            start_line=i + 1,
            length=end - i + 1,
            complexity=1 + sum(len(p.findall(body)) for p in _RUBY_BRANCHES),
            nesting_depth=_ruby_depth(lines[i + 1:end], len(indent)),
            is_empty=all(not l.strip() or l.strip().startswith("#") for l in lines[i + 1:end]),
        ))
    smells = _Smells(magic_numbers=_count_magic_numbers(_mask_source(text, False, True)))
    error = f"unterminated method: {', '.join(unclosed)}" if unclosed else None
    return tuple(found), smells, error


def _ruby_depth(body: list[str], base_indent: int) -> int:
    """Indentation-based estimate: two spaces per level below the def."""
    best = 0
    for line in body:
        if not line.strip():
            continue
        indent = len(line) - len(line.lstrip())
        best = max(best, (indent - base_indent) // 2 - 1)
    return max(best, 0)
