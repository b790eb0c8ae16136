from code_registry import (
    CodeClaim,
    SharedCodeFamily,
    build_code_usage,
    find_conflicts,
    find_next_available_code,
    parse_shared_code_families,
    register_claim,
    suggest_codes,
)


def test_next_available_code_fills_the_first_gap():
    assert find_next_available_code(["PM-022", "PM-023", "PM-025"], 22) == "PM-024"


def test_next_available_code_starts_at_one():
    assert find_next_available_code(["PM-001", "PM-002"]) == "PM-003"


def test_next_available_code_ignores_other_prefixes():
    assert find_next_available_code(["CM-001", "PM-002"]) == "PM-001"


def test_next_available_code_exhausted():
    used = [f"PM-{n:03d}" for n in range(1, 1000)]
    assert find_next_available_code(used) is None
    assert find_next_available_code(["PM-005"], start_from=5, limit=5) is None


def test_two_names_on_one_code_conflict():
    usage = build_code_usage([
        CodeClaim("PM-005", "Tracker.xlsx", "Tracker inspection"),
        CodeClaim("pm 05", "SCADA-Trackers-monitoring.xlsx", "SCADA trackers monitoring"),
    ])
    conflicts = find_conflicts(usage)

    assert list(conflicts) == ["PM-005"]
    assert [c.source_file for c in conflicts["PM-005"]] == [
        "Tracker.xlsx", "SCADA-Trackers-monitoring.xlsx"]


def test_allow_listed_family_is_not_a_conflict():
    usage = build_code_usage([
        CodeClaim("PM-017", "CCTV-Annual.xlsx", "Annual Inspection of CCTV"),
        CodeClaim("PM-017", "CCTV-Monthly.xlsx", "Monthly Inspection of CCTV"),
    ])
    assert find_conflicts(usage) == {}


def test_family_only_covers_its_own_code():
    usage = build_code_usage([
        CodeClaim("PM-018", "CCTV-Annual.xlsx", "Annual Inspection of CCTV"),
        CodeClaim("PM-018", "CCTV-Monthly.xlsx", "Monthly Inspection of CCTV"),
    ])
    assert list(find_conflicts(usage)) == ["PM-018"]


def test_outsider_breaks_the_family():
    usage = build_code_usage([
        CodeClaim("PM-017", "CCTV-Annual.xlsx", "Annual Inspection of CCTV"),
        CodeClaim("PM-017", "Fence.xlsx", "Fence inspection"),
    ])
    assert list(find_conflicts(usage)) == ["PM-017"]


def test_same_name_in_two_files_is_not_a_conflict():
    usage = build_code_usage([
        CodeClaim("PM-014", "Energy-Meter.xlsx", "Inspection of Energy Meter"),
        CodeClaim("PM-014", "Energy-Meter (copy).xlsx", "inspection of  energy meter"),
    ])
    assert len(usage["PM-014"]) == 2
    assert find_conflicts(usage) == {}


def test_register_claim_returns_a_new_map():
    usage = {}
    updated = register_claim(usage, CodeClaim("pm-14", "a.xlsx", "A"))

    assert usage == {}
    assert list(updated) == ["PM-014"]
    assert register_claim(updated, CodeClaim("PM-014", "a.xlsx", "A")) == updated


def test_register_claim_skips_missing_code():
    assert register_claim({}, CodeClaim(None, "Ventilation.xlsx", "Ventilation")) == {}


def test_prior_claims_take_part_in_conflicts():
    prior = [CodeClaim("PM-005", "<store>", "Tracker inspection")]
    usage = build_code_usage([CodeClaim("PM-005", "new.xlsx", "Combiner box inspection")], prior)

    conflict = find_conflicts(usage)["PM-005"]
    assert [c.source_file for c in conflict] == ["<store>", "new.xlsx"]


def test_suggestions_keep_first_claimant():
    usage = build_code_usage([
        CodeClaim("PM-005", "Tracker.xlsx", "Tracker inspection"),
        CodeClaim("PM-005", "SCADA.xlsx", "SCADA trackers monitoring"),
        CodeClaim("PM-022", "Inverter.xlsx", "Inverter inspection"),
        CodeClaim("PM-023", "Transformer.xlsx", "Transformer inspection"),
    ])
    suggestions = suggest_codes(find_conflicts(usage), usage.keys(), start_from=22)

    assert suggestions == [{
        "code": "PM-005",
        "source_file": "SCADA.xlsx",
        "name": "SCADA trackers monitoring",
        "suggested_code": "PM-024",
    }]


def test_suggestions_never_collide():
    usage = build_code_usage([
        CodeClaim("PM-001", "a.xlsx", "A"),
        CodeClaim("PM-001", "b.xlsx", "B"),
        CodeClaim("PM-001", "c.xlsx", "C"),
    ])
    suggestions = suggest_codes(find_conflicts(usage), usage.keys())
    assert [s["suggested_code"] for s in suggestions] == ["PM-002", "PM-003"]


def test_parse_shared_code_families():
    families = parse_shared_code_families([
        {"code": "pm 17", "members": ["cctv annual", "cctv monthly"]},
    ])
    assert families == (SharedCodeFamily("PM-017", ("cctv annual", "cctv monthly")),)
    assert families[0].matches("Monthly Inspection of CCTV")
    assert not families[0].matches("Monthly Inspection of Fence")


def test_zero_padded_spellings_share_one_code():
    usage = build_code_usage([
        CodeClaim("PM-0014", "Energy-Meter.xlsx", "Inspection of Energy Meter"),
        CodeClaim("PM-014", "Inverters.xlsx", "Inverter inspection"),
    ])
    assert list(usage) == ["PM-014"]
    assert list(find_conflicts(usage)) == ["PM-014"]
