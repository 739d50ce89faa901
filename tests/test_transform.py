from biomed_leads.core.models import Location, SearchResult
from biomed_leads.etl import transform


def test_parse_organic_results_handles_missing_payload():
    assert transform.parse_organic_results(None) == []
    assert transform.parse_organic_results({}) == []
    assert transform.parse_organic_results({"organic": "oops"}) == []
    assert transform.parse_organic_results([{"x": 1}]) == []


def test_parse_organic_results_strips_fields():
    payload = {
        "organic": [
            {"title": "  Laboratório XYZ  ", "link": " https://xyz.com.br ", "snippet": None, "position": "2"},
            "garbage",
        ]
    }

    results = transform.parse_organic_results(payload)

    assert results == [SearchResult(title="Laboratório XYZ", link="https://xyz.com.br", snippet="", position=None)]


def test_to_establishment_uses_normalized_title_and_link():
    location = Location(id=7, region="SC", name="Joaçaba", population=30146)
    result = SearchResult(title="Clínica São José", link="https://saojose.com.br", snippet="")

    establishment = transform.to_establishment(result, location, "OUTROS", "serper")

    assert establishment.name == "Clínica São José"
    assert establishment.name_normalized == "clinica sao jose"
    assert establishment.location_id == 7
    assert establishment.website == "https://saojose.com.br"
    assert establishment.source_url == "https://saojose.com.br"
    assert establishment.id is None
