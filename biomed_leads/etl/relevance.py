"""Pattern cascade deciding whether a search result looks like a real establishment.

Stages run in a fixed order and the first reject wins: structural checks on
the URL first, then host blacklists, then text markers for news, academic
and navigational pages, and finally a topic check. Anything that survives is
accepted, so ambiguous results still reach the dedupe and enrichment stages.
"""

import logging
import re
from typing import Iterable, Optional, Pattern, Sequence, Tuple
from urllib.parse import urlparse

from biomed_leads.core.config import CATEGORIES, DEFAULT_CATEGORY, FilterToggles
from biomed_leads.core.models import Accept, Classification, Reject, SearchResult
from biomed_leads.core.text import normalize

logger = logging.getLogger(__name__)

PDF_OR_DOCUMENT = "pdf_or_document"
URL_PATTERN = "url_pattern"
DOMAIN_BLACKLIST = "domain_blacklist"
NEWS_ARTICLE = "news_article"
ACADEMIC_PAPER = "academic_paper"
GENERIC_TITLE = "generic_title"
GENERIC_CATEGORY = "generic_category"

MIN_TITLE_LENGTH = 8

_DOCUMENT_EXTENSIONS = r"pdf|docx?|xlsx?|pptx?|odt|ods|rtf|csv"
_DOCUMENT_LINK = re.compile(rf"\.({_DOCUMENT_EXTENSIONS})(?:$|[?#])", re.IGNORECASE)
_DOCUMENT_TITLE = re.compile(
    rf"^\s*\[({_DOCUMENT_EXTENSIONS})\]|\bapplication/(pdf|msword|vnd\.)|\bfiletype:",
    re.IGNORECASE,
)

_URL_PATH_SEGMENTS = re.compile(
    r"/(noticias?|news|blog|artigos?|materias?|revista|imprensa|"
    r"vagas?|empregos?|jobs?|carreiras?|trabalhe-conosco|concursos?|editais|edital|"
    r"downloads?|documentos?|arquivos?|wp-content/uploads|tag|category|categoria)(?:/|$|[?#])",
    re.IGNORECASE,
)

BLACKLISTED_DOMAINS: Tuple[str, ...] = (
    # Redes sociais
    "facebook.com",
    "instagram.com",
    "linkedin.com",
    "twitter.com",
    "x.com",
    "youtube.com",
    "tiktok.com",
    "pinterest.com",
    # Vagas
    "catho.com.br",
    "vagas.com.br",
    "indeed.com",
    "gupy.io",
    "infojobs.com.br",
    "glassdoor.com.br",
    "trabalhabrasil.com.br",
    # Notícias
    "g1.globo.com",
    "globo.com",
    "uol.com.br",
    "gazetadopovo.com.br",
    "gauchazh.clicrbs.com.br",
    "nsctotal.com.br",
    "correiodopovo.com.br",
    # Acadêmicos
    "scielo.br",
    "scielo.org",
    "pubmed.ncbi.nlm.nih.gov",
    "ncbi.nlm.nih.gov",
    "researchgate.net",
    "academia.edu",
    "lattes.cnpq.br",
    "periodicos.capes.gov.br",
    "wikipedia.org",
    # Diretórios e agregadores
    "doctoralia.com.br",
    "boaforma.com.br",
    "reclameaqui.com.br",
    "jusbrasil.com.br",
    "olx.com.br",
    "guiamais.com.br",
    "apontador.com.br",
    "telelistas.net",
    "solutudo.com.br",
    "cnpj.biz",
    "econodata.com.br",
    "encontrasul.com.br",
)

_NEWS_MARKERS = re.compile(
    r"\b\d{1,2} de (janeiro|fevereiro|marco|abril|maio|junho|julho|agosto|setembro|outubro|novembro|dezembro)"
    r"( de \d{4})?\b|"
    r"\bha \d+ (minutos?|horas?|dias?|semanas?)\b|"
    r"\b(publicado|atualizado|postado) (em|ha)\b|"
    r"\b(reportagem|entrevista|colunista|redacao)\b|"
    r"\b(segundo|de acordo com) (o|a) (secretaria|ministerio|prefeitura|governo)\b"
)
_NEWS_DATE = re.compile(r"^\s*\d{1,2}/\d{1,2}/\d{2,4}\b|\b\d{1,2} (jan|fev|mar|abr|mai|jun|jul|ago|set|out|nov|dez)\.? \d{4}\b")

_ACADEMIC_MARKERS = re.compile(
    r"\b(resumo|abstract|doi|et al|issn|isbn|palavraschave|keywords|"
    r"revista brasileira|journal|artigo cientifico|anais do|congresso|"
    r"tese|dissertacao|monografia|tcc|trabalho de conclusao)\b"
)

_GENERIC_TITLE = re.compile(
    r"^(home|inicio|pagina inicial|contato|contact|fale conosco|sobre|sobre nos|quem somos|servicos|"
    r"login|entrar|bem vindo|bemvindo|index|untitled|sem titulo)$|"
    r"^(os|as)? ?\d+ melhores\b|\bmelhores .* (em|de|perto)\b|^top \d+\b|"
    r"^(lista|guia|ranking|encontre|procurando)\b|\bperto de (voce|mim)\b"
)

SPECIALTY_TERMS: Tuple[str, ...] = (
    "reproducao humana",
    "reproducao assistida",
    "fertilizacao",
    "fertilidade",
    "fiv",
    "inseminacao",
    "embriologia",
    "genetica",
    "citogenetica",
    "andrologia",
    "espermograma",
    "biologia molecular",
    "diagnostico molecular",
    "analises clinicas",
    "laboratorio",
)

GENERAL_CATEGORY_TERMS: Tuple[str, ...] = (
    "hospital",
    "clinica medica",
    "clinica geral",
    "clinica popular",
    "consultorio",
    "posto de saude",
    "unidade basica",
    "pronto atendimento",
    "pronto socorro",
    "odontologia",
    "odontologica",
    "veterinaria",
    "farmacia",
)


def _terms_pattern(terms: Iterable[str]) -> Pattern[str]:
    return re.compile(r"\b(" + "|".join(re.escape(term) for term in terms) + r")\b")


_SPECIALTY = _terms_pattern(SPECIALTY_TERMS)
_GENERAL = _terms_pattern(GENERAL_CATEGORY_TERMS)
_CATEGORY_LOOKUP: Tuple[Tuple[Pattern[str], str], ...] = tuple(
    (_terms_pattern([normalize(keyword)]), category) for keyword, category in CATEGORIES
)


def _host(link: str) -> str:
    try:
        host = urlparse(link).netloc.lower()
    except ValueError:
        return ""
    host = host.split("@")[-1].split(":")[0]
    return host[4:] if host.startswith("www.") else host


def is_document(result: SearchResult) -> bool:
    return bool(_DOCUMENT_LINK.search(result.link or "") or _DOCUMENT_TITLE.search(result.title or ""))


def has_excluded_path(result: SearchResult) -> bool:
    try:
        path = urlparse(result.link or "").path
    except ValueError:
        return False
    return bool(_URL_PATH_SEGMENTS.search(path))


def is_blacklisted_domain(result: SearchResult, domains: Sequence[str] = BLACKLISTED_DOMAINS) -> bool:
    host = _host(result.link or "")
    if not host:
        return False
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def looks_like_news(text: str) -> bool:
    return bool(_NEWS_MARKERS.search(text) or _NEWS_DATE.search(text))


def looks_like_academic(text: str) -> bool:
    return bool(_ACADEMIC_MARKERS.search(text))


def is_generic_title(title: str) -> bool:
    cleaned = (title or "").strip()
    if len(cleaned) < MIN_TITLE_LENGTH:
        return True
    return bool(_GENERIC_TITLE.search(normalize(cleaned)))


def infer_category(title: str, snippet: str) -> str:
    """First keyword->category hit over title + snippet, else the catch-all."""
    text = normalize(f"{title} {snippet}")
    for pattern, category in _CATEGORY_LOOKUP:
        if pattern.search(text):
            return category
    return DEFAULT_CATEGORY


class RelevanceClassifier:
    """Label search results as ``Accept(category)`` or ``Reject(reason)``."""

    def __init__(self, toggles: Optional[FilterToggles] = None) -> None:
        self.toggles = toggles or FilterToggles()

    def classify(self, result: SearchResult) -> Classification:
        reason = self._reject_reason(result)
        if reason:
            logger.debug("Rejected %s (%s)", result.link, reason)
            return Reject(reason)
        return Accept(infer_category(result.title, result.snippet))

    def _reject_reason(self, result: SearchResult) -> Optional[str]:
        toggles = self.toggles
        if toggles.pdf_or_document and is_document(result):
            return PDF_OR_DOCUMENT
        if toggles.url_pattern and has_excluded_path(result):
            return URL_PATTERN
        if toggles.domain_blacklist and is_blacklisted_domain(result):
            return DOMAIN_BLACKLIST

        text = normalize(f"{result.title} {result.snippet}")
        # News dates are written with accents and slashes; check the raw text too.
        raw_text = f"{result.title} {result.snippet}".lower()
        if toggles.news_article and (looks_like_news(text) or looks_like_news(raw_text)):
            return NEWS_ARTICLE
        if toggles.academic_paper and looks_like_academic(text):
            return ACADEMIC_PAPER
        if toggles.generic_title and is_generic_title(result.title):
            return GENERIC_TITLE

        if toggles.topic_relevance:
            if _SPECIALTY.search(text):
                return None
            if _GENERAL.search(text):
                return GENERIC_CATEGORY
        return None
