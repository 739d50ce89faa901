from biomed_leads.core.text import normalize, normalize_location_name, strip_legal_suffix


def test_normalize_strips_accents_and_case():
    assert normalize("Clínica São José") == "clinica sao jose"


def test_normalize_drops_punctuation_and_collapses_whitespace():
    assert normalize("  Lab.  Genética -- Sul!  ") == "lab genetica sul"
    assert normalize("") == ""


def test_normalize_is_idempotent():
    once = normalize("Fertilização In Vitro (FIV) - Joaçaba/SC")
    assert normalize(once) == once


def test_normalize_location_name_removes_prepositions():
    assert normalize_location_name("Caxias do Sul") == "caxias sul"
    assert normalize_location_name("São José dos Pinhais") == "sao jose pinhais"


def test_strip_legal_suffix():
    assert strip_legal_suffix("clinica fertilidade sul ltda") == "clinica fertilidade sul"
    assert strip_legal_suffix("laboratorio xyz ltda me") == "laboratorio xyz"
    assert strip_legal_suffix("meta clinica") == "meta clinica"
    assert strip_legal_suffix("ltda") == "ltda"
