"""Affiliate URL helpers used when shaping product responses."""

from urllib.parse import urlparse, parse_qs

# Redirect query parameter FANZA affiliate links carry the target in
FANZA_TARGET_PARAM = "lurl"


def get_affiliate_url(url: str | None, direct_fanza: bool = False) -> str | None:
    """
    Link to show for a source, or None for a missing/empty value.

    With ``direct_fanza`` a FANZA affiliate redirect is replaced by its target
    page; any other URL is returned unchanged.
    """
    if not url:
        return None
    if direct_fanza:
        return convert_fanza_to_direct_url(url)
    return url


def is_linkable_url(url: str | None) -> bool:
    """Only absolute http(s) URLs are exposed to clients."""
    return bool(url) and url.startswith("http")


def convert_fanza_to_direct_url(affiliate_url: str) -> str:
    """
    Unwrap a FANZA affiliate redirect to its target page.

    'https://al.dmm.co.jp/?lurl=https%3A%2F%2Fwww.dmm.co.jp%2Fdigital%2F&af_id=x'
    -> 'https://www.dmm.co.jp/digital/'

    URLs without a target parameter are returned unchanged.
    """
    query = parse_qs(urlparse(affiliate_url).query)
    targets = query.get(FANZA_TARGET_PARAM)
    if not targets:
        return affiliate_url
    return targets[0]
