"""Pattern-matched educational tips, at most two per review."""

from __future__ import annotations

import re
from dataclasses import dataclass

MAX_TIPS = 2


@dataclass(frozen=True)
class TipDefinition:
    id: str
    pattern: re.Pattern[str]
    title: str
    description: str


@dataclass(frozen=True)
class Tip:
    id: str
    title: str
    description: str


def _tip(tip_id: str, pattern: str, title: str, description: str, flags: int = 0) -> TipDefinition:
    return TipDefinition(tip_id, re.compile(pattern, flags), title, description)


TIP_DEFINITIONS = (
    _tip(
        "try-finally",
        r"\btry\s*\{[\s\S]*?\}\s*finally\s*\{",
        "try/finally for cleanup",
        "The `finally` block always runs, so browser instances, file handles, and database "
        "connections are released even when an exception escapes.",
    ),
    _tip(
        "async-await",
        r"async\s+(?:function|\([^)]*\)\s*=>|\w+\s*=\s*async)",
        "async/await pattern",
        "Wrap awaited calls in try/catch when converting callbacks to async/await. An "
        "unhandled promise rejection can crash a Node.js process.",
    ),
    _tip(
        "middleware",
        r"(?:app|router)\.(use|get|post|put|delete|patch)\s*\(",
        "Express middleware order",
        "Middleware runs in registration order. Authentication and validation belong before "
        "route handlers, and error-handling middleware (4 params) must come last.",
    ),
    _tip(
        "route-validation",
        r"router\.(get|post|put|delete|patch)\s*\(\s*['\"`][^'\"`]+['\"`]",
        "Request validation",
        "Validate and sanitize params, query, and body before use. A schema validator such as "
        "Joi or express-validator keeps injection out of handlers.",
    ),
    _tip(
        "promise-all",
        r"Promise\.all\s*\(",
        "Promise.all parallelism",
        "Promise.all fails fast on the first rejection. Use Promise.allSettled when every "
        "result matters, even the failures.",
    ),
    _tip(
        "sql-params",
        r"(?:query|execute)\s*\(\s*['\"`][\s\S]*?\$\d",
        "Parameterized queries",
        "Placeholders ($1, $2) keep user input out of the SQL text. Never build queries by "
        "string concatenation.",
    ),
    _tip(
        "env-vars",
        r"process\.env\.\w+",
        "Environment variables",
        "Validate required environment variables at startup; a missing one otherwise surfaces "
        "as a cryptic runtime error much later.",
    ),
    _tip(
        "transaction",
        r"\.transaction\s*\(|BEGIN|COMMIT|ROLLBACK",
        "Database transactions",
        "Transactions are all-or-nothing. Roll back on failure and release the connection in "
        "every code path.",
        re.IGNORECASE,
    ),
    _tip(
        "spread-operator",
        r"\.\.\.\w+",
        "Spread operator caution",
        "Spread makes a shallow copy: nested objects stay shared. Use structuredClone or a deep "
        "copy helper when the copies must be independent.",
    ),
    _tip(
        "fliplet-storage",
        r"Fliplet\.Storage",
        "Fliplet.Storage best practices",
        "Storage can be unavailable in some contexts (private browsing, for one). Always handle "
        "the rejected promise.",
    ),
)


def generate_tips(text: str | None, *, limit: int = MAX_TIPS) -> list[Tip]:
    """First `limit` tips whose pattern appears in the diff text, in table order."""
    if not text:
        return []
    tips: list[Tip] = []
    for definition in TIP_DEFINITIONS:
        if definition.pattern.search(text):
            tips.append(Tip(definition.id, definition.title, definition.description))
            if len(tips) >= limit:
                break
    return tips
