#!/usr/bin/env -S uv run
# /// script
# requires-python = ">=3.10"
# ///
"""RTK Rewrite -- routes Bash commands through the rtk token-saving proxy.

PreToolUse hook that rewrites recognized commands (git, cargo, pytest, docker,
...) to their `rtk` equivalents so the output fed back to Claude is filtered
and compact. Commands are matched textually against an ordered rule table;
the first matching rule wins and everything after the matched prefix is kept
verbatim. Anything unrecognized runs unchanged.
"""

from __future__ import annotations

import json
import logging
import os
import re
import string
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

_MAX_INPUT = 10 * 1024 * 1024  # 10 MB

# Tool names whose `command` input is a shell command line.
_INTERCEPTED_TOOLS = frozenset({"Bash", "exec"})

_FALSE_VALUES = frozenset({"0", "false", "no", "off"})
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


# ── Rule and outcome types ──────────────────────────────────────────────────


@dataclass(frozen=True)
class RewriteRule:
    """A start-anchored matcher paired with a builder for the replacement.

    ``build`` receives the match object and returns the text that replaces the
    matched prefix. The rest of the command is appended untouched.
    """

    name: str
    matcher: re.Pattern
    build: Callable[[re.Match], str]


@dataclass(frozen=True)
class Rewritten:
    command: str
    rule: str


@dataclass(frozen=True)
class Unchanged:
    reason: str


NO_MATCH = Unchanged("no-match")
SKIPPED = Unchanged("skipped-by-guard")

RewriteOutcome = Rewritten | Unchanged


def _proxy(target: str) -> Callable[[re.Match], str]:
    """Builder: ``target`` followed by the captured separator."""
    return lambda m: f"{target}{m['tail']}"


def _proxy_sub(target: str) -> Callable[[re.Match], str]:
    """Builder: ``target``, the captured subcommand, then the separator."""
    return lambda m: f"{target} {m['sub']}{m['tail']}"


def _fixed(text: str) -> Callable[[re.Match], str]:
    return lambda m: text


def _rule(name: str, pattern: str, build: Callable[[re.Match], str]) -> RewriteRule:
    return RewriteRule(name, re.compile(pattern), build)


# Separator after the recognized token: one whitespace char or end of string.
_T = r"(?P<tail>\s|$)"


def _git(sub: str) -> RewriteRule:
    return _rule(f"git-{sub}", rf"^git\s+{sub}{_T}", _proxy(f"rtk git {sub}"))


def _cargo(sub: str) -> RewriteRule:
    return _rule(f"cargo-{sub}", rf"^cargo\s+{sub}{_T}", _proxy(f"rtk cargo {sub}"))


def _go(sub: str) -> RewriteRule:
    return _rule(f"go-{sub}", rf"^go\s+{sub}{_T}", _proxy(f"rtk go {sub}"))


# Ordered rewrite table. First match wins, so where prefixes overlap
# (pnpm vitest / pnpm test / vitest) the order below is the behavior.
DEFAULT_RULES: tuple[RewriteRule, ...] = (
    # ── Git ──
    _git("status"),
    _git("diff"),
    _git("log"),
    _git("add"),
    _git("commit"),
    _git("push"),
    _git("pull"),
    _git("branch"),
    _git("fetch"),
    _git("stash"),
    _git("show"),
    # ── GitHub CLI ──
    _rule("gh", rf"^gh\s+(?P<sub>pr|issue|run){_T}", _proxy_sub("rtk gh")),
    # ── Cargo ──
    _cargo("test"),
    _cargo("build"),
    _cargo("clippy"),
    # ── File operations ──
    _rule("cat", r"^cat\s+", _fixed("rtk read ")),
    _rule("grep", r"^(rg|grep)\s+", _fixed("rtk grep ")),
    _rule("ls", rf"^ls{_T}", _proxy("rtk ls")),
    # ── JS/TS tooling ──
    _rule("vitest", rf"^(pnpm\s+)?vitest{_T}", _proxy("rtk vitest run")),
    _rule("pnpm-test", rf"^pnpm\s+test{_T}", _proxy("rtk vitest run")),
    _rule("pnpm-tsc", rf"^pnpm\s+tsc{_T}", _proxy("rtk tsc")),
    _rule("tsc", rf"^(npx\s+)?tsc{_T}", _proxy("rtk tsc")),
    _rule("pnpm-lint", rf"^pnpm\s+lint{_T}", _proxy("rtk lint")),
    _rule("eslint", rf"^(npx\s+)?eslint{_T}", _proxy("rtk lint")),
    _rule("prettier", rf"^(npx\s+)?prettier{_T}", _proxy("rtk prettier")),
    _rule("playwright", rf"^(npx\s+)?playwright{_T}", _proxy("rtk playwright")),
    _rule("pnpm-playwright", rf"^pnpm\s+playwright{_T}", _proxy("rtk playwright")),
    _rule("prisma", rf"^(npx\s+)?prisma{_T}", _proxy("rtk prisma")),
    # ── Containers ──
    _rule("docker", rf"^docker\s+(?P<sub>ps|images|logs){_T}", _proxy_sub("rtk docker")),
    _rule("kubectl", rf"^kubectl\s+(?P<sub>get|logs){_T}", _proxy_sub("rtk kubectl")),
    # ── Network ──
    _rule("curl", r"^curl\s+", _fixed("rtk curl ")),
    # ── pnpm package management ──
    _rule("pnpm", rf"^pnpm\s+(?P<sub>list|ls|outdated){_T}", _proxy_sub("rtk pnpm")),
    # ── Python tooling ──
    _rule("pytest", rf"^pytest{_T}", _proxy("rtk pytest")),
    _rule("python-m-pytest", rf"^python\s+-m\s+pytest{_T}", _proxy("rtk pytest")),
    _rule("ruff", rf"^ruff\s+(?P<sub>check|format){_T}", _proxy_sub("rtk ruff")),
    _rule("pip", rf"^pip\s+(?P<sub>list|outdated|install|show){_T}", _proxy_sub("rtk pip")),
    _rule(
        "uv-pip",
        rf"^uv\s+pip\s+(?P<sub>list|outdated|install|show){_T}",
        _proxy_sub("rtk pip"),
    ),
    # ── Go tooling ──
    _go("test"),
    _go("build"),
    _go("vet"),
    _rule("golangci-lint", rf"^golangci-lint{_T}", _proxy("rtk golangci-lint")),
)


# ── Engine ──────────────────────────────────────────────────────────────────

_ALREADY_PROXIED = re.compile(r"^rtk\s")
_PATH_PROXIED = re.compile(r"/rtk\s")


def should_skip(command: str) -> bool:
    """Return True if the command must not be rewritten at all.

    Already-proxied commands (``rtk ...`` or ``/path/to/rtk ...``) would be
    double-wrapped. Heredocs carry payload lines that could spuriously match
    rules, so any ``<<`` opts the whole command out.
    """
    if _ALREADY_PROXIED.search(command) or _PATH_PROXIED.search(command):
        return True
    return "<<" in command


def attempt_rewrite(
    command: str, rules: Sequence[RewriteRule] = DEFAULT_RULES
) -> RewriteOutcome:
    """Rewrite ``command`` with the first matching rule, or report it unchanged."""
    if should_skip(command):
        return SKIPPED
    for rule in rules:
        m = rule.matcher.match(command)
        if m:
            return Rewritten(rule.build(m) + command[m.end() :], rule.name)
    return NO_MATCH


# ── Configuration ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RewriteConfig:
    enabled: bool = True
    verbose: bool = False
    extra_rules_path: str | None = None


def load_config(environ: Mapping[str, str] | None = None) -> RewriteConfig:
    """Read the RTK_REWRITE_* toggles. Rewriting is on unless explicitly disabled."""
    env = os.environ if environ is None else environ
    enabled = env.get("RTK_REWRITE_ENABLED", "").strip().lower() not in _FALSE_VALUES
    verbose = env.get("RTK_REWRITE_VERBOSE", "").strip().lower() in _TRUE_VALUES
    return RewriteConfig(
        enabled=enabled,
        verbose=verbose,
        extra_rules_path=env.get("RTK_REWRITE_EXTRA_RULES") or None,
    )


def setup_logger(name: str, verbose: bool) -> logging.Logger:
    """Configure the named hook logger. stdout is reserved for the JSON decision."""
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False
    if verbose:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(f"[{name}] %(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    else:
        logger.addHandler(logging.NullHandler())
    return logger


# ── User-defined rules ──
# Loaded from RTK_REWRITE_EXTRA_RULES (JSON file path) and appended after
# DEFAULT_RULES, so built-in rules always take precedence.


_FORMATTER = string.Formatter()


def check_template(template: str, pattern: re.Pattern) -> None:
    """Raise ValueError if ``template`` references a group ``pattern`` lacks."""
    for _literal, field, spec, conv in _FORMATTER.parse(template):
        if field is None:
            continue
        if spec or conv:
            raise ValueError(f"format spec or conversion in {{{field}}} is not supported")
        if not field:
            raise ValueError("automatic field numbering '{}' is not supported")
        if field.isdigit():
            if int(field) > pattern.groups:
                raise ValueError(f"group {{{field}}} not in pattern ({pattern.groups} group(s))")
        elif field not in pattern.groupindex:
            raise ValueError(f"{{{field}}} is not a group of the pattern")


def _template_builder(template: str) -> Callable[[re.Match], str]:
    def build(m: re.Match) -> str:
        groups = [g or "" for g in (m.group(0), *m.groups())]
        named = {k: v or "" for k, v in m.groupdict().items()}
        return template.format(*groups, **named)

    return build


def load_extra_rules(path: str | None) -> tuple[RewriteRule, ...]:
    """Load additional rewrite rules from a JSON file.

    The file holds an array of objects with keys: name, pattern, replacement.
    ``pattern`` is matched at the start of the command. ``replacement`` is a
    ``str.format`` template: ``{0}`` is the whole match, ``{1}``... the
    positional groups, and named groups by name. Unmatched groups render empty.

    Example JSON:
    [
        {
            "name": "make",
            "pattern": "^make(?P<tail>\\\\s|$)",
            "replacement": "rtk make{tail}"
        }
    ]
    """
    if not path:
        return ()
    try:
        with open(path) as f:
            raw = json.load(f)
        extra = []
        for entry in raw:
            pattern = re.compile(entry["pattern"])
            replacement = entry["replacement"]
            if not isinstance(replacement, str):
                raise TypeError(f"replacement for {entry['name']!r} must be a string")
            check_template(replacement, pattern)
            extra.append(RewriteRule(entry["name"], pattern, _template_builder(replacement)))
        return tuple(extra)
    except (
        OSError,
        json.JSONDecodeError,
        KeyError,
        TypeError,
        AttributeError,
        ValueError,
        re.error,
    ) as e:
        # Bad config must not break command execution
        logging.getLogger("rtk-rewrite").warning("Ignoring extra rules from %s: %s", path, e)
        return ()


def _validate_rules_file(path: str) -> tuple[list[str], int]:
    """Validate an extra rules JSON file. Returns (issues, count) tuple."""
    env_var = "RTK_REWRITE_EXTRA_RULES"
    issues = []
    if not os.path.exists(path):
        issues.append(f"{env_var}: file not found: {path}")
        return issues, 0
    try:
        with open(path) as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        issues.append(f"{env_var}: invalid JSON: {e}")
        return issues, 0
    except OSError as e:
        issues.append(f"{env_var}: cannot read file: {e}")
        return issues, 0
    if not isinstance(raw, list):
        issues.append(f"{env_var}: expected JSON array, got {type(raw).__name__}")
        return issues, 0
    if not raw:
        issues.append(f"{env_var}: file contains empty array (no rules)")
        return issues, 0

    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            issues.append(f"{env_var}[{i}]: expected object, got {type(entry).__name__}")
            continue
        name = entry.get("name", f"entry {i}")
        pfx = f"{env_var}[{i}] ({name!r})"
        for field in ("name", "pattern", "replacement"):
            if field not in entry:
                issues.append(f"{pfx}: missing required field '{field}'")
            elif not isinstance(entry[field], str):
                issues.append(
                    f"{pfx}: '{field}' must be a string, got {type(entry[field]).__name__}"
                )
        pattern = entry.get("pattern")
        compiled = None
        if isinstance(pattern, str):
            if not pattern:
                issues.append(f"{pfx}: 'pattern' is empty (will match ALL commands)")
            else:
                try:
                    compiled = re.compile(pattern)
                except re.error as e:
                    issues.append(f"{pfx}: invalid regex in 'pattern': {e}")
        replacement = entry.get("replacement")
        if compiled is not None and isinstance(replacement, str):
            try:
                check_template(replacement, compiled)
            except ValueError as e:
                issues.append(f"{pfx}: invalid 'replacement': {e}")
    return issues, len(raw)


def _validate_config(config: RewriteConfig) -> int:
    """Validate the extra rules file.

    Output channels follow hook conventions:
      - Success (exit 0): stdout (shown in transcript)
      - Failure (exit 2): stderr (fed back to Claude)
    """
    path = config.extra_rules_path
    if not path:
        return 0  # Nothing configured, nothing to validate
    issues, count = _validate_rules_file(path)
    if issues:
        print("RTK extra rewrite rules — validation failed:", file=sys.stderr)
        for issue in issues:
            print(f"  ✗ {issue}", file=sys.stderr)
        return 2
    print(f"RTK extra rewrite rules — {count} rule(s) from {path}")
    return 0


# ── Hook entry point ────────────────────────────────────────────────────────


def _parse_hook_input() -> dict:
    """Read and parse the JSON hook payload from stdin. Fails open."""
    raw = sys.stdin.buffer.read(_MAX_INPUT + 1)
    if len(raw) > _MAX_INPUT:
        sys.exit(0)
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        print("rtk-rewrite: failed to parse hook input", file=sys.stderr)
        sys.exit(0)
    if not isinstance(data, dict):
        sys.exit(0)
    return data


def build_decision(tool_input: dict, new_command: str) -> dict:
    """PreToolUse response that swaps in ``new_command``, keeping other input keys."""
    return {
        "hookSpecificOutput": {
            "hookEventName": "PreToolUse",
            "permissionDecision": "allow",
            "permissionDecisionReason": "RTK auto-rewrite",
            "updatedInput": {**tool_input, "command": new_command},
        }
    }


def main() -> None:
    config = load_config()

    if "--validate" in sys.argv:
        sys.exit(_validate_config(config))

    data = _parse_hook_input()
    logger = setup_logger("rtk-rewrite", config.verbose)
    if not config.enabled:
        logger.info("Plugin disabled via config")
        sys.exit(0)

    if data.get("tool_name") not in _INTERCEPTED_TOOLS:
        sys.exit(0)
    tool_input = data.get("tool_input")
    if not isinstance(tool_input, dict):
        sys.exit(0)
    command = tool_input.get("command")
    if not isinstance(command, str) or not command:
        sys.exit(0)

    rules = DEFAULT_RULES + load_extra_rules(config.extra_rules_path)
    logger.info("Plugin registered (%d rewrite rules)", len(rules))

    outcome = attempt_rewrite(command, rules)
    if isinstance(outcome, Unchanged):
        sys.exit(0)

    logger.info("%s -> %s", command, outcome.command)
    print(json.dumps(build_decision(tool_input, outcome.command)))
    sys.exit(0)


if __name__ == "__main__":
    main()
