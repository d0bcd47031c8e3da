"""Typed loaders for the bundled review defaults.

Risk taxonomy and severity rules are YAML, validated once at load time into
frozen records so the scorers never poke at loose dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

DEFAULTS_DIR = Path(__file__).parent / "defaults"
DEFAULT_TAXONOMY_PATH = DEFAULTS_DIR / "risk-taxonomy.yml"
DEFAULT_SEVERITY_RULES_PATH = DEFAULTS_DIR / "severity-rules.yml"
DEFAULT_STANDARDS_PATH = DEFAULTS_DIR / "standards.md"

RISK_TIERS = ("critical", "high", "medium", "low")


class ConfigError(RuntimeError):
    """Invalid or missing configuration file."""
    pass


@dataclass(frozen=True)
class RiskCategory:
    """One named area of the platform and the risk of touching it."""
    name: str
    risk: str
    description: str
    files: tuple[str, ...]
    repos: tuple[str, ...] = ()

    def applies_to_repo(self, repo_name: str) -> bool:
        if not self.repos:
            return True
        return repo_name in self.repos

    def matches(self, path: str) -> bool:
        lower = path.lower()
        for pattern in self.files:
            needle = pattern.lower()
            if needle.endswith("/"):
                if lower.startswith(needle) or needle in lower:
                    return True
            elif needle in lower:
                return True
        return False


@dataclass(frozen=True)
class RiskTaxonomy:
    categories: tuple[RiskCategory, ...] = ()


@dataclass(frozen=True)
class SeverityRule:
    description: str
    pattern: str | None = None


@dataclass(frozen=True)
class SeverityRules:
    critical: tuple[SeverityRule, ...] = ()
    warning: tuple[SeverityRule, ...] = ()
    suggestion: tuple[SeverityRule, ...] = ()


def _require_mapping(value: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{ctx}: expected mapping")
    return value


def _require_list(value: Any, ctx: str) -> list[Any]:
    if not isinstance(value, list):
        raise ConfigError(f"{ctx}: expected list")
    return value


def _require_str(value: Any, ctx: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    s = value.strip()
    if not s:
        raise ConfigError(f"{ctx}: must be non-empty")
    return s


def _require_str_list(value: Any, ctx: str) -> tuple[str, ...]:
    raw = _require_list(value, ctx)
    return tuple(_require_str(item, f"{ctx}[{idx}]") for idx, item in enumerate(raw))


def _optional_str(value: Any, ctx: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    s = value.strip()
    return s or None


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e


def parse_risk_taxonomy(raw: Any) -> RiskTaxonomy:
    cfg = _require_mapping(raw, "taxonomy")
    categories_raw = _require_mapping(cfg.get("categories", {}) or {}, "taxonomy.categories")

    categories: list[RiskCategory] = []
    for name, item in categories_raw.items():
        cat_name = _require_str(name, f"taxonomy.categories key '{name}'")
        ctx = f"taxonomy.categories[{cat_name}]"
        entry = _require_mapping(item, ctx)
        risk = _require_str(entry.get("risk"), f"{ctx}.risk").lower()
        if risk not in RISK_TIERS:
            raise ConfigError(f"{ctx}.risk: must be one of {', '.join(RISK_TIERS)}")
        files = _require_str_list(entry.get("files"), f"{ctx}.files")
        if not files:
            raise ConfigError(f"{ctx}.files: must be non-empty")
        repos: tuple[str, ...] = ()
        if entry.get("repos") is not None:
            repos = _require_str_list(entry.get("repos"), f"{ctx}.repos")
        categories.append(
            RiskCategory(
                name=cat_name,
                risk=risk,
                description=_optional_str(entry.get("description"), f"{ctx}.description") or "",
                files=files,
                repos=repos,
            )
        )
    return RiskTaxonomy(categories=tuple(categories))


def load_risk_taxonomy(path: Path) -> RiskTaxonomy:
    """Load risk taxonomy."""
    return parse_risk_taxonomy(_load_yaml(path))


def _parse_rules(value: Any, ctx: str) -> tuple[SeverityRule, ...]:
    if value is None:
        return ()
    rules: list[SeverityRule] = []
    for idx, item in enumerate(_require_list(value, ctx)):
        if isinstance(item, str):
            rules.append(SeverityRule(description=_require_str(item, f"{ctx}[{idx}]")))
            continue
        entry = _require_mapping(item, f"{ctx}[{idx}]")
        rules.append(
            SeverityRule(
                description=_require_str(entry.get("description"), f"{ctx}[{idx}].description"),
                pattern=_optional_str(entry.get("pattern"), f"{ctx}[{idx}].pattern"),
            )
        )
    return tuple(rules)


def load_severity_rules(path: Path) -> SeverityRules:
    """Load severity rules."""
    cfg = _require_mapping(_load_yaml(path), "severity_rules")
    return SeverityRules(
        critical=_parse_rules(cfg.get("critical"), "severity_rules.critical"),
        warning=_parse_rules(cfg.get("warning"), "severity_rules.warning"),
        suggestion=_parse_rules(cfg.get("suggestion"), "severity_rules.suggestion"),
    )


def load_standards(path: Path) -> str:
    """Coding standards are passed to the reviewer verbatim."""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"unable to read standards file {path}: {exc}") from exc


@lru_cache(maxsize=1)
def default_risk_taxonomy() -> RiskTaxonomy:
    return load_risk_taxonomy(DEFAULT_TAXONOMY_PATH)


@lru_cache(maxsize=1)
def default_severity_rules() -> SeverityRules:
    return load_severity_rules(DEFAULT_SEVERITY_RULES_PATH)
