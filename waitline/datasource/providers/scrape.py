"""
HTML scrape of a facility's public page, read with the heuristic extractor.
"""

from waitline.datasource.base import BaseProvider
from waitline.datasource.models import Facility, ProviderKind, WaitTimeRecord
from waitline.extraction import HeuristicExtractor
from waitline.services.client import BROWSER_USER_AGENT, HTML_ACCEPT
from waitline.services.errors import InvalidURLError, NoDataError
from waitline.services.url_policy import TrustedURLPurpose


class HtmlScrapeProvider(BaseProvider):
    """Fallback source and secondary patient-count source."""

    def __init__(self, *args, extractor: HeuristicExtractor | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.extractor = extractor or HeuristicExtractor()

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.HTML_SCRAPE

    def is_configured(self, facility: Facility) -> bool:
        return bool(facility.website_url)

    async def fetch(self, facility: Facility) -> WaitTimeRecord:
        if not facility.website_url:
            raise InvalidURLError(None, f"{facility.label} has no website URL")

        result = await self.client.fetch(
            facility.website_url,
            TrustedURLPurpose.WEBSITE,
            headers={"Accept": HTML_ACCEPT, "User-Agent": BROWSER_USER_AGENT},
            retries=self.settings.fallback_retries,
        )

        extraction = self.extractor.extract(result.text)
        if extraction is None:
            raise NoDataError(
                f"{facility.label}: no patient count or status on page",
                endpoint=result.url,
            )

        self.log.debug(
            f"{facility.label}: {extraction.patients_in_line} via {extraction.rule}"
        )
        return WaitTimeRecord(
            facility_id=facility.id,
            wait_minutes=0,
            patients_in_line=extraction.patients_in_line,
            status=extraction.status,
            last_updated=self.now(),
            source=self.kind,
        )
