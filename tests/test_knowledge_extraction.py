# tests/test_knowledge_extraction.py

from conftest import EXTRACTION_ANSWER, FakeLLM

from paper_kb.models import ExtractionType
from paper_kb.nlp.knowledge_extraction import (
    KnowledgeExtractor,
    build_prompt,
    parse_extraction_payload,
)


def test_prompt_contains_heading_and_truncated_content():
    prompt = build_prompt("Method", "abcdefghij", max_chars=4)

    assert "Section: Method" in prompt
    assert "Content: abcd\n" in prompt
    assert "efgh" not in prompt
    assert "{name, detail}" in prompt


def test_parse_payload_maps_keys_to_types():
    items = parse_extraction_payload(
        {
            "methods": [{"name": " RAPTOR ", "detail": "tree"}],
            "baselines": [{"name": "DPR"}],
            "results": [{"name": "SOTA on QuALITY", "detail": {"accuracy": 82.6}}],
            "limitations": "not a list",
            "unknown": [{"name": "ignored"}],
            "datasets": ["bare string", {"detail": "nameless"}, {"name": "   "}],
        }
    )

    assert [(i.type, i.name) for i in items] == [
        (ExtractionType.METHOD, "RAPTOR"),
        (ExtractionType.BASELINE, "DPR"),
        (ExtractionType.RESULT, "SOTA on QuALITY"),
    ]
    assert items[1].detail is None
    assert items[2].detail == '{"accuracy": 82.6}'


def test_parse_payload_rejects_non_objects():
    assert parse_extraction_payload(["methods"]) == []
    assert parse_extraction_payload(None) == []


def test_extract_section_uses_llm_answer():
    llm = FakeLLM(EXTRACTION_ANSWER)
    extractor = KnowledgeExtractor(llm, max_chars=100)

    items = extractor.extract_section("Method", "We propose RAPTOR.", section_id="s1")

    assert {(i.type, i.name) for i in items} == {
        (ExtractionType.METHOD, "RAPTOR"),
        (ExtractionType.DATASET, "QuALITY"),
        (ExtractionType.METRIC, "accuracy"),
    }
    assert len(llm.prompts) == 1


def test_extract_section_never_raises():
    class BrokenLLM:
        def run(self, prompt):
            raise RuntimeError("endpoint down")

    assert KnowledgeExtractor(BrokenLLM(), max_chars=100).extract_section("Intro", "text") == []
    assert KnowledgeExtractor(FakeLLM("I cannot help with that."), max_chars=100).extract_section("Intro", "text") == []
    assert KnowledgeExtractor(FakeLLM(""), max_chars=100).extract_section("Intro", "text") == []
