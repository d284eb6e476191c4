from queued_agent.agent.fallback import NO_EVIDENCE_ANSWER, DeterministicModelClient
from queued_agent.agent.orchestrator import _SYSTEM_PROMPT
from queued_agent.types import ToolInvocation, ToolResult, UserMessage

KB_SCHEMA = [{"type": "function", "function": {"name": "knowledge_base"}}]


def test_prompt_names_the_knowledge_base_tool_and_citations() -> None:
    assert "`knowledge_base`" in _SYSTEM_PROMPT
    assert "[1]" in _SYSTEM_PROMPT


def test_deterministic_client_searches_before_answering() -> None:
    client = DeterministicModelClient()

    decision = client.complete(_SYSTEM_PROMPT, [UserMessage("What is the refund window?")], KB_SCHEMA)

    assert [call.name for call in decision.tool_calls] == ["knowledge_base"]
    assert decision.tool_calls[0].arguments == {"query": "What is the refund window?"}


def test_deterministic_client_cites_passages_by_rank() -> None:
    client = DeterministicModelClient(max_passages=2)
    transcript = [
        UserMessage("What is the refund window?"),
        ToolInvocation("knowledge_base", {"query": "refund"}, call_id="c1"),
        ToolResult(
            "knowledge_base",
            "[1] Refunds within 30 days.\n\n[2] Store credit after.\n\n[3] Unrelated.",
            call_id="c1",
        ),
    ]

    decision = client.complete(_SYSTEM_PROMPT, transcript, KB_SCHEMA)

    assert decision.is_final
    assert decision.text == "1. Refunds within 30 days. [1]\n2. Store credit after. [2]"


def test_deterministic_client_admits_missing_evidence() -> None:
    client = DeterministicModelClient()
    transcript = [
        UserMessage("Anything?"),
        ToolResult("knowledge_base", "No relevant documents found."),
    ]

    assert client.complete(_SYSTEM_PROMPT, transcript, KB_SCHEMA).text == NO_EVIDENCE_ANSWER
    assert client.complete(_SYSTEM_PROMPT, [UserMessage("Hi")], []).text == NO_EVIDENCE_ANSWER


def test_new_question_ignores_evidence_from_previous_turn() -> None:
    client = DeterministicModelClient()
    transcript = [
        UserMessage("First?"),
        ToolResult("knowledge_base", "[1] Old passage."),
        UserMessage("Second?"),
    ]

    decision = client.complete(_SYSTEM_PROMPT, transcript, KB_SCHEMA)

    assert decision.tool_calls[0].arguments == {"query": "Second?"}
