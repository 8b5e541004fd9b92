import json

import pytest

from paleocore.ai import AiService, HeaderMappingRequest, wants_search
from paleocore.errors import AIDisabledError, AIServiceError
from paleocore.models import Microfossil, SectionFossilRecord, Taxonomy
from tests.conftest import FakeClient, make_section


def _aged(n):
    return [{"subsection": f"s{i}", "depth": float(i), "age": float(i) * 2.0, "delta18O": 3.0 + i / 100}
            for i in range(n)]


def test_disabled_service_never_calls_out():
    ai = AiService()
    assert not ai.enabled
    with pytest.raises(AIDisabledError) as exc:
        ai.map_headers(["a"])
    assert str(exc.value) == AIDisabledError.MESSAGE
    for call in (
        lambda: ai.summarize_section(make_section()),
        lambda: ai.detect_paleo_events(_aged(10)),
        lambda: ai.identify_fossil(b"x", "image/png"),
        lambda: ai.compute_age_model({}),
        lambda: ai.stream_analysis(make_section(), "why?"),
    ):
        with pytest.raises(AIDisabledError):
            call()


def test_unknown_request_kind():
    ai = AiService(client=FakeClient())
    with pytest.raises(TypeError):
        ai.run(object())


def test_summary_strips_markdown():
    client = FakeClient(replies=["## Overview\n**Cold** phase\n* point"])
    ai = AiService(client=client)
    sec = make_section(points=[{"subsection": "a", "depth": 1.0, "delta18O": 4.2}],
                       microfossil_records=[SectionFossilRecord("G_ruber", "Common")])
    fossil = Microfossil("G_ruber", Taxonomy(genus="Globigerinoides", species="ruber"))
    text = ai.summarize_section(sec, [fossil])
    assert text == " Overview\nCold phase\n point"
    prompt = client.models.calls[0]["contents"]
    assert "Globigerinoides ruber" in prompt
    assert client.models.calls[0]["model"] == "gemini-2.5-flash"


def test_header_mapping_filters_unknown_keys():
    reply = {"mapping": {"Depth_cm": "depth", "d18O_permil": "delta18O", "Junk": "salinity"}}
    client = FakeClient(replies=["```json\n" + json.dumps(reply) + "\n```"])
    ai = AiService(client=client)
    out = ai.run(HeaderMappingRequest(["Depth_cm", "d18O_permil", "Junk", "Missing"]))
    assert out == {"Depth_cm": "depth", "d18O_permil": "delta18O", "Junk": None, "Missing": None}


def test_invalid_json_and_transport_errors_are_typed():
    ai = AiService(client=FakeClient(replies=["not json"]))
    with pytest.raises(AIServiceError, match="invalid JSON"):
        ai.map_headers(["a"])
    ai = AiService(client=FakeClient(error=RuntimeError("quota")))
    with pytest.raises(AIServiceError, match="quota"):
        ai.summarize_section(make_section())


def test_events_need_five_aged_points():
    client = FakeClient()
    ai = AiService(client=client)
    assert ai.detect_paleo_events(_aged(4) + [{"subsection": "x", "depth": 9.0}]) == []
    assert client.models.calls == []


def test_events_are_normalized_and_capped():
    reply = [
        {"eventName": "Heinrich Stadial 1", "startAge": 18.0, "endAge": 14.7, "description": "Cold"},
        {"eventName": "Younger Dryas", "startAge": 11.7, "endAge": 12.9, "description": "Cold"},
    ]
    client = FakeClient(replies=[json.dumps(reply)])
    ai = AiService(client=client)
    events = ai.detect_paleo_events(_aged(600))
    assert [(e.start_age, e.end_age) for e in events] == [(14.7, 18.0), (11.7, 12.9)]
    prompt = client.models.calls[0]["contents"]
    assert "delta18O" in prompt
    sent = json.loads(prompt.split("Data:\n", 1)[1])
    assert len(sent) == 500
    assert set(sent[0]) == {"age", "value"}


def test_malformed_event_raises():
    client = FakeClient(replies=[json.dumps([{"eventName": "X"}])])
    with pytest.raises(AIServiceError):
        AiService(client=client).detect_paleo_events(_aged(5))


def test_analysis_streams_and_enables_search():
    client = FakeClient(stream=["The ", None, "answer"])
    ai = AiService(client=client)
    chunks = list(ai.stream_analysis(make_section(), "Find studies on this core"))
    assert "".join(chunks) == "The answer"
    cfg = client.models.calls[0]["config"]
    assert cfg.tools and cfg.tools[0].google_search is not None

    client = FakeClient(stream=["ok"])
    list(AiService(client=client).stream_analysis(make_section(), "Describe the trend"))
    assert not client.models.calls[0]["config"].tools


def test_wants_search_keywords():
    assert wants_search("What is new on Mg/Ca thermometry?")
    assert wants_search("LATEST RESEARCH please")
    assert not wants_search("Summarise the d18O trend")


def test_fossil_image_sends_bytes():
    client = FakeClient(replies=["### Identification\nGloborotalia menardii"])
    text = AiService(client=client).identify_fossil(b"\x89PNG", "image/png")
    assert text.startswith("### Identification")
    part, prompt = client.models.calls[0]["contents"]
    assert part.inline_data.data == b"\x89PNG"
    assert part.inline_data.mime_type == "image/png"
    assert "### Paleoecological Significance" in prompt
