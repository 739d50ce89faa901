import pytest

from biomed_leads.core.config import FilterToggles
from biomed_leads.core.models import Accept, Reject, SearchResult
from biomed_leads.etl import relevance
from biomed_leads.etl.relevance import RelevanceClassifier, infer_category


def _result(title, link="https://clinicavida.com.br/", snippet=""):
    return SearchResult(title=title, link=link, snippet=snippet)


def test_pdf_rejected_even_with_specialty_terms():
    result = _result(
        "Clínica de Reprodução Humana Protocolo",
        link="https://clinica.com.br/protocolo.pdf",
        snippet="Fertilização in vitro e reprodução assistida",
    )

    assert RelevanceClassifier().classify(result) == Reject(relevance.PDF_OR_DOCUMENT)


def test_default_accept_without_any_trigger():
    result = _result("Centro Médico Integrado Vida", snippet="Atendimento humanizado")

    assert RelevanceClassifier().classify(result) == Accept("OUTROS")


@pytest.mark.parametrize(
    "result, reason",
    [
        (
            _result("Clínica FIV Porto Alegre", link="https://clinicafiv.com.br/blog/fertilidade"),
            relevance.URL_PATTERN,
        ),
        (
            _result("Clínica FIV Porto Alegre", link="https://www.facebook.com/clinicafiv"),
            relevance.DOMAIN_BLACKLIST,
        ),
        (
            _result(
                "Clínica de fertilidade inaugura unidade",
                link="https://portal.com.br/saude/clinica",
                snippet="12 de março de 2024 A nova clínica abre as portas",
            ),
            relevance.NEWS_ARTICLE,
        ),
        (
            _result(
                "Avaliação do espermograma em pacientes",
                link="https://repositorio.ufsc.br/handle/123",
                snippet="Resumo: estudo retrospectivo com 200 pacientes",
            ),
            relevance.ACADEMIC_PAPER,
        ),
        (_result("Home"), relevance.GENERIC_TITLE),
        (_result("Os 10 melhores laboratórios em Curitiba"), relevance.GENERIC_TITLE),
        (
            _result("Hospital Santa Casa de Joaçaba", snippet="Atendimento 24 horas"),
            relevance.GENERIC_CATEGORY,
        ),
    ],
)
def test_reject_reasons(result, reason):
    assert RelevanceClassifier().classify(result) == Reject(reason)


def test_specialty_term_outweighs_general_category():
    result = _result("Hospital com laboratório de análises clínicas")

    assert RelevanceClassifier().classify(result) == Accept("LABORATORIO_ANALISES")


def test_disabled_filters_are_skipped():
    pdf = _result("Clínica de Reprodução Humana Protocolo", link="https://clinica.com.br/protocolo.pdf")
    hospital = _result("Hospital Santa Casa de Joaçaba")

    classifier = RelevanceClassifier(FilterToggles(pdf_or_document=False, topic_relevance=False))

    assert classifier.classify(pdf) == Accept("REPRODUCAO_HUMANA")
    assert classifier.classify(hospital) == Accept("HOSPITAL")


@pytest.mark.parametrize(
    "title, category",
    [
        ("Clínica de Reprodução Humana Fertilis", "REPRODUCAO_HUMANA"),
        ("Centro de FIV Sul", "REPRODUCAO_HUMANA"),
        ("Laboratório de Genética Molecular", "LABORATORIO_GENETICA"),
        ("Andrologia Curitiba", "LABORATORIO_ANDROLOGIA"),
        ("Laboratório de Análises Clínicas Vida", "LABORATORIO_ANALISES"),
        ("Maternidade Municipal", "HOSPITAL"),
        ("Centro Médico Integrado", "OUTROS"),
    ],
)
def test_infer_category(title, category):
    assert infer_category(title, "") == category


def test_blacklist_matches_subdomains_only_on_label_boundary():
    assert relevance.is_blacklisted_domain(_result("x", link="https://pt-br.facebook.com/page"))
    assert not relevance.is_blacklisted_domain(_result("x", link="https://notfacebook.com/page"))
