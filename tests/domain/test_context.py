from __future__ import annotations

from modelsync.domain.context import ReconciliationContext
from modelsync.domain.model import Channel, SourceKind


def _channel(channel_id: int, name: str, models: list[str]) -> Channel:
    channel = Channel(id=channel_id, name=name)
    channel.mark_fetched(models)
    return channel


def test_select_all_filters_by_pattern_and_skips_repeats() -> None:
    context = ReconciliationContext()
    alpha = _channel(1, "Alpha", ["gpt-4-0125-preview", "gpt-4o", "claude-3-opus"])

    assert context.select_all(alpha, patterns=["GPT"]) == 2
    assert context.select_all(alpha) == 1
    assert context.select_all(alpha) == 0
    assert context.curated == ["gpt-4-0125-preview", "gpt-4o", "claude-3-opus"]


def test_same_model_from_two_channels_keeps_both_sources() -> None:
    context = ReconciliationContext()
    alpha = _channel(1, "Alpha", ["gpt-4o"])
    beta = _channel(2, "Beta", ["gpt-4o"])

    context.select_all(alpha)
    context.select_all(beta)

    assert context.curated == ["gpt-4o", "gpt-4o"]
    assert context.tracker.channels_for("gpt-4o") == {1, 2}
    assert context.tracker.display_label("gpt-4o", 0) == "Beta"
    assert context.tracker.display_label("gpt-4o", 1) == "Alpha"


def test_remove_drops_every_copy_and_its_provenance() -> None:
    context = ReconciliationContext()
    context.select_from_search("gpt-4o", "Alpha", 1)
    context.select_from_search("gpt-4o", "Beta", 2)

    context.remove("gpt-4o")

    assert context.curated == []
    assert "gpt-4o" not in context.tracker


def test_plan_routes_mappings_to_source_channels() -> None:
    context = ReconciliationContext()
    alpha = _channel(1, "Alpha", ["gpt-4-0125-preview"])
    context.set_channels([alpha])
    context.select(alpha.catalog[0], alpha)
    context.select_from_search("orphan-model", "Search", None)

    result, plans = context.plan()

    assert result.mapping["gpt-4"] == "gpt-4-0125-preview"
    assert list(plans) == [1]
    assert plans[1].mappings == {"gpt-4": "gpt-4-0125-preview"}


def test_anomalies_flag_untracked_names() -> None:
    context = ReconciliationContext()
    context.curated.append("typed-by-hand")
    context.tracker.record("also-typed", SourceKind.MANUAL_INVALID, "", None)
    context.curated.append("also-typed")

    assert [anomaly.name for anomaly in context.anomalies()] == ["typed-by-hand", "also-typed"]
