# paper_kb/arxiv/oai_pmh.py
"""
Discovery of newly announced papers through arXiv's OAI-PMH endpoint.

Only the record identifiers are used; metadata is fetched later by the
ingestion pipeline through the Atom API like any other submission.
"""

from __future__ import annotations

import logging
import re
import time
import xml.etree.ElementTree as ET
from typing import Callable, List, Optional, Sequence

import requests

from paper_kb.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

OAI_NS = "{http://www.openarchives.org/OAI/2.0/}"

_OAI_ID_RE = re.compile(r"oai:arXiv\.org:(\d{4}\.\d{4,5})")


def category_to_set(category: str) -> str:
    """arXiv OAI sets use ':' where categories use '.' (cs.CL -> cs:CL)."""
    return category.replace(".", ":", 1)


class OaiPmhHarvester:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        s = settings or get_settings()
        self.base_url = s.ARXIV_OAI_URL
        self.delay = s.OAI_REQUEST_DELAY
        self.timeout = s.HTTP_TIMEOUT
        self.session = session or requests.Session()
        self._sleep = sleep

    def _parse_page(self, xml_text: str) -> tuple[List[str], Optional[str], bool]:
        """Return (arxiv_ids, resumption_token, no_records) for one ListRecords page."""
        root = ET.fromstring(xml_text)

        for err in root.iter(f"{OAI_NS}error"):
            if err.get("code") == "noRecordsMatch":
                return [], None, True
            raise ValueError(f"OAI-PMH error {err.get('code')}: {(err.text or '').strip()}")

        ids: List[str] = []
        for ident in root.iter(f"{OAI_NS}identifier"):
            m = _OAI_ID_RE.search(ident.text or "")
            if m:
                ids.append(m.group(1))

        token_el = next(root.iter(f"{OAI_NS}resumptionToken"), None)
        token = (token_el.text or "").strip() if token_el is not None else ""
        return ids, token or None, False

    def list_ids(self, category: str, from_date: str, until_date: str) -> List[str]:
        """
        All record ids announced in `category` between the two YYYY-MM-DD dates.

        Follows resumption tokens, waiting `OAI_REQUEST_DELAY` seconds between
        requests. An HTTP failure stops paging for this category and keeps
        whatever was collected so far.
        """
        ids: List[str] = []
        params = {
            "verb": "ListRecords",
            "metadataPrefix": "oai_dc",
            "from": from_date,
            "until": until_date,
            "set": category_to_set(category),
        }

        while True:
            try:
                resp = self.session.get(self.base_url, params=params, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                logger.error("OAI-PMH request failed for %s: %s", category, e)
                break
            if resp.status_code != 200:
                logger.error("OAI-PMH request failed for %s: HTTP %s", category, resp.status_code)
                break

            page_ids, token, no_records = self._parse_page(resp.text)
            if no_records:
                break
            ids.extend(page_ids)

            if not token:
                break
            params = {"verb": "ListRecords", "resumptionToken": token}
            self._sleep(self.delay)

        return ids

    def fetch_new_ids(
        self,
        categories: Sequence[str],
        from_date: str,
        until_date: str,
    ) -> List[str]:
        """Deduplicated ids across categories, in discovery order."""
        seen: set = set()
        out: List[str] = []
        for i, category in enumerate(categories):
            for arxiv_id in self.list_ids(category, from_date, until_date):
                if arxiv_id not in seen:
                    seen.add(arxiv_id)
                    out.append(arxiv_id)
            if i < len(categories) - 1:
                self._sleep(self.delay)
        logger.info("OAI-PMH sweep found %d ids in %s", len(out), ", ".join(categories))
        return out
