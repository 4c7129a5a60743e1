"""Tests for series reconciliation."""

from py_series.models import ExistingInstance, SeriesStatus, SeriesTemplate
from py_series.reconciler import (
    disambiguate_slug,
    instance_slug,
    reconcile_extend,
    reconcile_initial,
    reconcile_regenerate,
    resume_start,
    select_deletable_on_series_delete,
    select_propagation_targets,
    slugify,
)
from py_series.rule import RecurrenceRule


def make_template(rule=None, start_date="2026-01-06", **kwargs):
    return SeriesTemplate(
        id="s1",
        name=kwargs.pop("name", "Open Climb"),
        rule=rule or RecurrenceRule.weekly(2, 4),
        start_date=start_date,
        **kwargs,
    )


def dates_of(commands):
    return [c.instance_date for c in commands]


def test_slugify():
    assert slugify("Open Climb!  Night") == "open-climb-night"
    assert slugify("  Café & Chess  ") == "caf-chess"
    assert slugify("!!!") == ""


def test_instance_slug():
    assert instance_slug("Open Climb", "2026-01-06") == "open-climb-2026-01-06"
    assert instance_slug("!!!", "2026-01-06") == "event-2026-01-06"


def test_disambiguate_slug():
    """Test deterministic numeric suffixes."""
    assert disambiguate_slug("a", set()) == "a"
    assert disambiguate_slug("a", {"a"}) == "a-2"
    assert disambiguate_slug("a", {"a", "a-2"}) == "a-3"


def test_initial_materializes_through_horizon():
    """Test first materialization of a weekly Tue/Thu series."""
    commands = reconcile_initial(make_template(), "2026-01-06", horizon_months=1)

    assert dates_of(commands) == [
        "2026-01-06",
        "2026-01-08",
        "2026-01-13",
        "2026-01-15",
        "2026-01-20",
        "2026-01-22",
        "2026-01-27",
        "2026-01-29",
        "2026-02-03",
        "2026-02-05",
    ]
    assert commands[0].slug == "open-climb-2026-01-06"
    assert all(c.series_id == "s1" for c in commands)


def test_initial_disambiguates_taken_slugs():
    commands = reconcile_initial(
        make_template(), "2026-01-06", horizon_months=1, taken_slugs={"open-climb-2026-01-06"}
    )
    assert commands[0].slug == "open-climb-2026-01-06-2"
    assert commands[1].slug == "open-climb-2026-01-08"


def test_initial_for_paused_series_is_empty():
    template = make_template(status=SeriesStatus.PAUSED)
    assert reconcile_initial(template, "2026-01-06") == []


def test_extend_is_idempotent():
    """Test that extending twice creates nothing the second time."""
    template = make_template()
    existing = dates_of(reconcile_initial(template, "2026-01-06", horizon_months=1))

    more = reconcile_extend(template, existing, "2026-01-06", horizon_months=2)
    assert dates_of(more) == [
        "2026-02-10",
        "2026-02-12",
        "2026-02-17",
        "2026-02-19",
        "2026-02-24",
        "2026-02-26",
        "2026-03-03",
        "2026-03-05",
    ]

    again = reconcile_extend(template, existing + dates_of(more), "2026-01-06", horizon_months=2)
    assert again == []


def test_extend_within_existing_horizon_creates_nothing():
    template = make_template()
    existing = dates_of(reconcile_initial(template, "2026-01-06", horizon_months=1))
    assert reconcile_extend(template, existing, "2026-01-06", horizon_months=1) == []


def test_extend_without_instances_starts_at_template_start():
    template = make_template(RecurrenceRule.weekly(1), start_date="2026-01-05")
    commands = reconcile_extend(template, [], "2026-01-05", horizon_months=0)
    assert dates_of(commands) == ["2026-01-05"]


def test_extend_keeps_biweekly_phase():
    """Test that a biweekly series resumes on its own weeks."""
    template = make_template(RecurrenceRule.biweekly(2))
    commands = reconcile_extend(template, ["2026-01-06", "2026-01-20"], "2026-01-21", horizon_months=1)
    assert dates_of(commands) == ["2026-02-03", "2026-02-17"]


def test_extend_counts_occurrences_series_wide():
    """Test that max occurrences is not reset by extension."""
    template = make_template(RecurrenceRule.weekly(1), start_date="2026-01-05", max_occurrences=3)
    commands = reconcile_extend(template, ["2026-01-05", "2026-01-12"], "2026-01-12", horizon_months=6)
    assert dates_of(commands) == ["2026-01-19"]


def test_extend_respects_end_date():
    template = make_template(RecurrenceRule.weekly(1), start_date="2026-01-05", end_date="2026-01-19")
    commands = reconcile_extend(template, ["2026-01-05"], "2026-01-05", horizon_months=6)
    assert dates_of(commands) == ["2026-01-12", "2026-01-19"]


def test_extend_for_ended_series_is_empty():
    template = make_template(status=SeriesStatus.ENDED)
    assert reconcile_extend(template, [], "2026-01-06") == []


def test_resume_start_snaps_to_week_grid():
    template = make_template(RecurrenceRule.biweekly(2))
    # Week grid starts on Sunday 2026-01-04; biweekly weeks are 01-04, 01-18, 02-01
    assert resume_start(template, "2026-01-20") == "2026-01-18"
    assert resume_start(template, "2026-01-27") == "2026-01-18"
    assert resume_start(template, "2026-02-01") == "2026-02-01"
    assert resume_start(template, "2026-01-01") == "2026-01-06"


def test_resume_start_with_count_is_template_start():
    template = make_template(max_occurrences=10)
    assert resume_start(template, "2026-03-01") == "2026-01-06"


def test_resume_start_monthly_is_start_of_month():
    template = make_template(RecurrenceRule.monthly_on_day(15), start_date="2026-01-15")
    assert resume_start(template, "2026-03-20") == "2026-03-01"


def _instances():
    return [
        ExistingInstance("past", "2026-01-06"),
        ExistingInstance("registered", "2026-01-13", has_registrations=True),
        ExistingInstance("plain-1", "2026-01-20"),
        ExistingInstance("exception", "2026-01-27", is_exception=True),
        ExistingInstance("plain-2", "2026-02-03"),
    ]


def test_regenerate_after_rule_change():
    """Test that regeneration rebuilds only the free future."""
    template = make_template(RecurrenceRule.weekly(4))
    plan = reconcile_regenerate(template, _instances(), "2026-01-13", horizon_months=1)

    assert plan.delete_ids == ["plain-1", "plain-2"]
    assert plan.kept_ids == ["registered", "exception"]
    assert plan.create_dates == ["2026-01-15", "2026-01-22", "2026-01-29", "2026-02-05", "2026-02-12"]


def test_regenerate_never_doubles_a_kept_date():
    """Test that registered and exception instances keep their dates occupied."""
    template = make_template(RecurrenceRule.weekly(2))
    plan = reconcile_regenerate(template, _instances(), "2026-01-13", horizon_months=1)

    assert "2026-01-13" not in plan.create_dates
    assert "2026-01-27" not in plan.create_dates
    assert plan.create_dates == ["2026-01-20", "2026-02-03", "2026-02-10"]


def test_regenerate_never_touches_the_past():
    template = make_template(RecurrenceRule.weekly(4))
    plan = reconcile_regenerate(template, _instances(), "2026-01-13", horizon_months=1)

    assert "past" not in plan.delete_ids
    assert all(d >= "2026-01-13" for d in plan.create_dates)


def test_regenerate_for_paused_series_is_empty():
    template = make_template(status=SeriesStatus.PAUSED)
    plan = reconcile_regenerate(template, _instances(), "2026-01-13")
    assert plan.delete_ids == [] and plan.create == [] and plan.kept_ids == []


def test_regenerate_before_series_start():
    """Test that regenerating before the start date starts at the start date."""
    template = make_template(RecurrenceRule.weekly(2), start_date="2026-02-03")
    plan = reconcile_regenerate(template, [], "2026-01-13", horizon_months=1)
    assert plan.create_dates == ["2026-02-03", "2026-02-10"]


def test_propagation_targets():
    targets = select_propagation_targets(_instances(), "2026-01-13")
    assert targets == ["registered", "plain-1", "plain-2"]


def test_deletable_on_series_delete():
    deletable = select_deletable_on_series_delete(_instances(), "2026-01-13")
    assert deletable == ["plain-1", "plain-2"]


def test_regenerate_counts_kept_instances_against_max():
    """Test that instances left on the old rule's dates use up the count."""
    template = make_template(RecurrenceRule.weekly(3), max_occurrences=4)
    instances = [
        ExistingInstance("first", "2026-01-06"),
        ExistingInstance("second", "2026-01-13"),
        ExistingInstance("registered", "2026-01-20", has_registrations=True),
        ExistingInstance("plain", "2026-01-27"),
    ]

    plan = reconcile_regenerate(template, instances, "2026-01-14")

    assert plan.delete_ids == ["plain"]
    assert plan.kept_ids == ["registered"]
    assert plan.create_dates == ["2026-01-14"]


def test_extend_counts_instances_off_the_rule_against_max():
    template = make_template(RecurrenceRule.weekly(3), max_occurrences=4)
    existing = ["2026-01-06", "2026-01-13", "2026-01-14", "2026-01-20"]
    assert reconcile_extend(template, existing, "2026-01-20", horizon_months=6) == []


def test_regenerate_reuses_slugs_of_deleted_instances():
    """Test that replacements take over freed slugs but avoid other events' slugs."""
    template = make_template(RecurrenceRule.weekly(2))
    instances = [ExistingInstance("plain", "2026-01-13", slug="open-climb-2026-01-13")]
    taken = {"open-climb-2026-01-13", "open-climb-2026-01-20"}

    plan = reconcile_regenerate(template, instances, "2026-01-13", horizon_months=1, taken_slugs=taken)

    assert plan.delete_ids == ["plain"]
    assert [c.slug for c in plan.create[:2]] == ["open-climb-2026-01-13", "open-climb-2026-01-20-2"]
