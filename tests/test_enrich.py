import httpx
import pytest

from biomed_leads.core.models import Establishment, ExtractedContacts
from biomed_leads.core.scheduler import FetchScheduler
from biomed_leads.core.site_enricher import ContactExtractor
from biomed_leads.jobs.enrich import ContactEnricher, capped_contacts


class FakeExtractor:
    def __init__(self, contacts_by_url):
        self.contacts_by_url = contacts_by_url
        self.urls = []

    async def extract(self, url):
        self.urls.append(url)
        return self.contacts_by_url.get(url, ExtractedContacts())


def _est(name, website):
    return Establishment(name=name, name_normalized=name.lower(), location_id=1, category="OUTROS", website=website)


def test_capped_contacts_applies_per_type_caps():
    contacts = ExtractedContacts(
        emails=[f"e{i}@lab.com.br" for i in range(5)],
        phones=[f"4935221{i:03d}" for i in range(5)],
        whatsapp=["wa.me/1", "wa.me/2", "wa.me/3"],
        socials={"instagram": ["a", "b", "c"], "linkedin": []},
    )

    capped = capped_contacts(contacts)

    assert capped["email"] == ["e0@lab.com.br", "e1@lab.com.br", "e2@lab.com.br"]
    assert len(capped["phone"]) == 3
    assert capped["whatsapp"] == ["wa.me/1", "wa.me/2"]
    assert capped["instagram"] == ["a", "b"]
    assert "linkedin" not in capped


@pytest.mark.asyncio
async def test_enricher_only_visits_sites_without_contacts(store, settings):
    first = store.insert_establishment(_est("Lab A", "https://a.com.br"))
    second = store.insert_establishment(_est("Lab B", "https://b.com.br"))
    store.insert_establishment(_est("Lab C", None))
    store.insert_contact(second, "email", "ja@b.com.br")
    extractor = FakeExtractor({"https://a.com.br": ExtractedContacts(emails=["contato@a.com.br"])})

    stats = await ContactEnricher(store, extractor, FetchScheduler(1, 0.0), settings=settings).run()

    assert extractor.urls == ["https://a.com.br"]
    assert stats.processed == 1
    assert stats.with_contacts == 1
    assert (first, "email", "contato@a.com.br") in store.contacts


@pytest.mark.asyncio
async def test_enricher_processes_in_batches(store, settings):
    for i in range(5):
        store.insert_establishment(_est(f"Lab {i}", f"https://lab{i}.com.br"))
    extractor = FakeExtractor({})

    stats = await ContactEnricher(store, extractor, FetchScheduler(2, 0.0), settings=settings, batch_size=2).run()

    assert stats.processed == 5
    assert stats.with_contacts == 0
    assert sorted(extractor.urls) == [f"https://lab{i}.com.br" for i in range(5)]


@pytest.mark.asyncio
async def test_page_with_ten_emails_persists_three(store, settings):
    emails = " ".join(f"contato{i}@clinica.com.br" for i in range(10))
    html = f"<html><body><footer>{emails}</footer></body></html>"

    def handler(request):
        return httpx.Response(200, headers={"Content-Type": "text/html"}, content=html.encode())

    est_id = store.insert_establishment(_est("Clinica", "https://clinica.com.br"))
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    extractor = ContactExtractor(settings=settings, client=client)

    await ContactEnricher(store, extractor, FetchScheduler(1, 0.0), settings=settings).run()
    await client.aclose()

    stored_emails = [value for (owner, kind, value) in store.contacts if owner == est_id and kind == "email"]
    assert stored_emails == ["contato0@clinica.com.br", "contato1@clinica.com.br", "contato2@clinica.com.br"]
