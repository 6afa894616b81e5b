"""ASP (affiliate service partner) name normalization.

Ingestion stores partner names as the crawler saw them ("FANZA", "DTI",
"カリビアンコム"). The API and filters work on lowercase canonical keys,
and DTI rows are resolved to the concrete sub-service through their URL.
"""

# Japanese / marketing names -> canonical key
JA_TO_EN_MAP: dict[str, str] = {
    "カリビアンコム": "caribbeancom",
    "カリビアンコムプレミアム": "caribbeancompr",
    "カリビアンコムPR": "caribbeancompr",
    "一本道": "1pondo",
    "天然むすめ": "10musume",
    "パコパコママ": "pacopacomama",
    "ムラムラ": "muramura",
    "ムラムラってくる素人": "muramura",
    "Tokyo Hot": "tokyohot",
    "トウキョウホット": "tokyohot",
    "HEYZO": "heyzo",
    "Hey動画": "heydouga",
}

# DTI umbrella rows: domain fragment -> sub-service. More specific domains first.
DTI_URL_PATTERNS: list[tuple[str, str]] = [
    ("caribbeancompr.com", "caribbeancompr"),
    ("caribbeancom.com", "caribbeancom"),
    ("1pondo.tv", "1pondo"),
    ("heyzo.com", "heyzo"),
    ("10musume.com", "10musume"),
    ("pacopacomama.com", "pacopacomama"),
    ("muramura.tv", "muramura"),
    ("tokyo-hot.com", "tokyohot"),
    ("heydouga.com", "heydouga"),
    ("x1x.com", "x1x"),
    ("av9898.com", "av9898"),
]

DTI_SUB_SERVICES = frozenset({
    "dti",
    "caribbeancom",
    "caribbeancompr",
    "1pondo",
    "heyzo",
    "10musume",
    "pacopacomama",
    "muramura",
    "tokyohot",
    "heydouga",
    "x1x",
    "av9898",
})

ASP_DISPLAY_NAMES: dict[str, str] = {
    "fanza": "FANZA",
    "mgs": "MGS動画",
    "duga": "DUGA",
    "sokmil": "ソクミル",
    "b10f": "b10f.jp",
    "fc2": "FC2",
    "japanska": "Japanska",
    "tmp": "TMP",
    "dti": "DTI",
    "caribbeancom": "カリビアンコム",
    "caribbeancompr": "カリビアンコムPR",
    "1pondo": "一本道",
    "heyzo": "HEYZO",
    "10musume": "天然むすめ",
    "pacopacomama": "パコパコママ",
    "muramura": "ムラムラ",
    "tokyohot": "Tokyo Hot",
    "heydouga": "Hey動画",
    "x1x": "X1X",
    "av9898": "AV9898",
}


def normalize_asp_name(asp_name: str, url: str | None = None) -> str:
    """
    Map a stored partner name to its canonical lowercase key.

    'FANZA' -> 'fanza', '一本道' -> '1pondo'. For 'DTI' rows the URL picks the
    sub-service, falling back to 'dti'.
    """
    if not asp_name:
        return ""

    if asp_name in JA_TO_EN_MAP:
        return JA_TO_EN_MAP[asp_name]

    lowered = asp_name.lower()
    if lowered == "dti":
        if url:
            url_lower = url.lower()
            for fragment, service in DTI_URL_PATTERNS:
                if fragment in url_lower:
                    return service
        return "dti"

    return lowered


def get_asp_display_name(asp_name: str) -> str:
    """Human-readable label; unknown names are returned unchanged."""
    return ASP_DISPLAY_NAMES.get(normalize_asp_name(asp_name), asp_name)


def is_dti_sub_service(asp_name: str) -> bool:
    return normalize_asp_name(asp_name) in DTI_SUB_SERVICES


def asp_name_from_source(source: str) -> str:
    """Stored asp_name for a raw_html_data source label."""
    lowered = source.lower()
    if "mgs" in lowered:
        return "MGS"
    if "fc2" in lowered:
        return "FC2"
    if "japanska" in lowered:
        return "Japanska"
    return "DTI"
