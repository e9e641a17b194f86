import asyncio

import pytest

from blocks_shared.references import extract_inline_tokens, first_seen, is_valid_token
from services.blocks_api import planner, synthesis
from services.blocks_api.context import RequestContext
from services.blocks_api.errors import ValidationError
from services.blocks_api.facts import FactSheet, MockFactSource


@pytest.fixture
def sheet(ctx: RequestContext) -> FactSheet:
    return asyncio.run(MockFactSource().load(ctx))


def test_optimization_prompt_wants_spend_and_recommendations() -> None:
    plan = planner.plan("What are my optimization opportunities?")
    assert plan.factual
    assert planner.OPTIMIZATION in plan.topics
    assert plan.wants_recommendations and plan.wants_spend
    assert not plan.wants_projection


def test_keywords_match_whole_words_only() -> None:
    assert planner.classify("Which region is this?") == frozenset()
    assert planner.classify("What did I spend yesterday?") == frozenset({planner.COST})
    assert planner.PROJECTION in planner.classify("Forecast the end of month bill")


def test_greeting_is_conversational() -> None:
    plan = planner.plan("Hello there!")
    assert plan.conversational
    assert plan.greeting


def test_requested_count_and_category_context() -> None:
    plan = planner.plan("Show the top 5 ideas", {"category": " Storage "})
    assert plan.max_recommendations == 5
    assert plan.category == "storage"
    assert planner.RECOMMENDATION in plan.topics
    assert planner.plan("top 50 recommendations").max_recommendations == 10


@pytest.mark.parametrize("category", ["[REF:agg:x]", "cost optimisation", "a" * 65, 42])
def test_category_context_must_be_a_slug(category: object) -> None:
    with pytest.raises(ValidationError) as excinfo:
        planner.plan("Any ideas?", {"category": category})
    assert excinfo.value.hint == "Invalid field: context.category"


@pytest.mark.parametrize(
    "prompt",
    [
        "What are my optimization opportunities?",
        "Show me my spend analysis",
        "What recommendations do you have?",
        "What is the forecast for this month?",
        "How much did I spend and what should I optimize?",
    ],
)
def test_factual_drafts_cite_what_they_mention(prompt: str, sheet: FactSheet) -> None:
    draft = synthesis.compose(prompt, planner.plan(prompt), sheet)
    inline = extract_inline_tokens(draft.text)
    assert inline, draft.text
    assert draft.references == first_seen(inline)
    assert all(is_valid_token(token) for token in draft.references)
    assert [source["token"] for source in draft.sources] == draft.references


def test_recommendation_draft_lists_the_largest_savings(sheet: FactSheet) -> None:
    plan = planner.plan("Give me the top 2 recommendations")
    draft = synthesis.compose("Give me the top 2 recommendations", plan, sheet)
    ranked = sorted(sheet.recommendations, key=lambda stub: -stub.estimated_monthly_savings_minor)[:2]
    rec_tokens = [token for token in draft.references if token.startswith("rec:")]
    assert rec_tokens == [f"rec:{stub.reference_id}" for stub in ranked]
    assert draft.recommendations_considered == 2


def test_unknown_category_falls_back_to_all_recommendations(sheet: FactSheet) -> None:
    plan = planner.plan("Any ideas?", {"category": "quantum"})
    draft = synthesis.compose("Any ideas?", plan, sheet)
    assert "No open recommendations match the 'quantum' category" in draft.text
    assert any(token.startswith("rec:") for token in draft.references)


def test_conversational_drafts_have_no_tokens(sheet: FactSheet) -> None:
    greeting = synthesis.compose("hi", planner.plan("hi"), sheet)
    other = synthesis.compose("Tell me a joke", planner.plan("Tell me a joke"), sheet)
    assert greeting.text == synthesis.GREETING_TEXT
    assert other.text == synthesis.CAPABILITY_TEXT
    for draft in (greeting, other):
        assert "[REF:" not in draft.text
        assert draft.references == []


def test_ledger_deduplicates_repeat_citations(sheet: FactSheet) -> None:
    ledger = synthesis.CitationLedger()
    aggregate = sheet.aggregates[0]
    assert ledger.cite_aggregate(aggregate) == ledger.cite_aggregate(aggregate)
    assert len(ledger) == 1
    assert ledger.references == [str(aggregate.token)]
