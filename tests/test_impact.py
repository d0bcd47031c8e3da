from __future__ import annotations

from conftest import added_lines_hunk, file_diff

from reviewgate.defaults_config import RiskCategory, RiskTaxonomy
from reviewgate.diff_parser import parse_diff
from reviewgate.impact import CRITICAL, HIGH, LOW, MEDIUM, assess_impact, higher_risk


def files_for(*paths: str, lines: int = 2):
    return parse_diff("\n".join(file_diff(p, [added_lines_hunk(lines)]) for p in paths))


def test_authenticate_change_is_critical() -> None:
    impact = assess_impact(files_for("libs/authenticate.js"))

    assert impact.level == CRITICAL
    assert impact.affects_auth is True
    assert impact.summary
    assert "authentication" in impact.summary
    assert impact.critical_file_count == 1


def test_plain_change_is_low_with_empty_summary() -> None:
    impact = assess_impact(files_for("src/utils/format-date.js"))

    assert impact.level == LOW
    assert impact.summary == ""
    assert impact.impacts == ()


def test_route_flag_sets_medium_floor() -> None:
    taxonomy = RiskTaxonomy()
    impact = assess_impact(files_for("server/routes/users.js"), taxonomy=taxonomy)

    assert impact.level == MEDIUM
    assert impact.affects_routes is True
    assert "Review for unintended side effects." in impact.summary


def test_level_is_maximum_not_last_seen() -> None:
    impact = assess_impact(
        files_for("src/middleware/cors.js", "server/routes/users.js"),
        taxonomy=RiskTaxonomy(),
    )
    assert impact.level == CRITICAL

    reversed_order = assess_impact(
        files_for("server/routes/users.js", "src/middleware/cors.js"),
        taxonomy=RiskTaxonomy(),
    )
    assert reversed_order.level == CRITICAL


def test_schema_and_data_flags() -> None:
    impact = assess_impact(files_for("db/migrations/0042_add_index.js", "libs/datasources/query.js"))

    assert impact.affects_schema is True
    assert impact.affects_data is True
    assert impact.level == CRITICAL


def test_taxonomy_matches_are_deduplicated_per_file_and_category() -> None:
    taxonomy = RiskTaxonomy(
        categories=(
            RiskCategory(name="billing", risk=HIGH, description="", files=("billing/", "billing/invoice")),
        )
    )
    impact = assess_impact(files_for("billing/invoice.js", "billing/invoice.js"), taxonomy=taxonomy)

    assert [(i.file, i.category) for i in impact.impacts] == [("billing/invoice.js", "billing")]
    assert impact.level == HIGH
    assert impact.high_file_count == 1


def test_repo_scoped_category_only_applies_to_its_repo() -> None:
    taxonomy = RiskTaxonomy(
        categories=(
            RiskCategory(name="billing", risk=CRITICAL, description="", files=("billing/",), repos=("payments",)),
        )
    )
    files = files_for("billing/invoice.js")

    assert assess_impact(files, "payments", taxonomy).level == CRITICAL
    assert assess_impact(files, "website", taxonomy).level == LOW


def test_summary_lists_three_examples_and_counts_the_rest() -> None:
    paths = [f"server/routes/r{i}.js" for i in range(5)]
    impact = assess_impact(files_for(*paths))

    assert "server/routes/r0.js, server/routes/r1.js, server/routes/r2.js and 2 more" in impact.summary
    assert "api-route" in impact.summary


def test_higher_risk() -> None:
    assert higher_risk(LOW, MEDIUM) == MEDIUM
    assert higher_risk(CRITICAL, HIGH) == CRITICAL
    assert higher_risk(HIGH, "bogus") == HIGH
