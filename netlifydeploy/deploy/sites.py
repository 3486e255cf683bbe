"""Resolve a site name to a Netlify site by scanning the paginated site listing."""

import logging
from typing import Optional

from netlifydeploy.api.client import NetlifyAPI
from netlifydeploy.api.models import Site

log = logging.getLogger(__name__)

SITES_PER_PAGE = 25
# The listing has no name filter we can rely on; stop scanning eventually anyway
MAX_SITE_PAGES = 1000


def find_site(
    api: NetlifyAPI,
    name: str,
    per_page: int = SITES_PER_PAGE,
    max_pages: int = MAX_SITE_PAGES,
) -> Optional[Site]:
    """
    Return the first site whose name equals name, or None once a page comes back empty.
    API errors propagate as APIError("list sites").
    """
    for page in range(1, max_pages + 1):
        sites = api.list_sites(page, per_page)
        if not sites:
            return None
        for site in sites:
            if site.name == name:
                log.debug("Found site '%s' (id=%s) on page %d", name, site.id, page)
                return site
        log.debug(
            "Site wasn't found, looking for site '%s' with page '%d' and per_page '%d'",
            name, page + 1, per_page,
        )
    log.warning("Gave up looking for site '%s' after %d pages", name, max_pages)
    return None
