"""ElevenLabs voice mapping for the driver's languages.

Codes are ISO 639-1 style ("FR", "ja"); lookups are case-insensitive.
Languages without a native multilingual voice fall back to the English one.
"""

DEFAULT_VOICE_ID = "b6UtgdzviyF3kdUzNIlT"

LANGUAGE_VOICE_MAP: dict[str, str] = {
    "HI": "RBxPIvrKOP4ugCK2jVHD",
    "FIL": "1ZA0KgPdD0Tns6SR4FVQ",
    "TR": "0DihkedLJYKoWg7H1u4d",
    "KO": "9vTWeZwjAkqIiZJdCarV",
    "HR": "TRnNlYQWHAJwo9K75wNE",
    "RU": "d60rsXo2p0OwikDR5bS7",
    "RO": "znn3xedzq0kO6JXbSRB6",
    "ID": "TMvmhlKUioQA4U7LOoko",
    "EL": "ejJ1ETWS2ohLMMeCu1H3",
    "PT": "UkO7OCLgMp3WYf4UPjE5",
    "SV": "aSLKtNoVBZlxQEMsnGL2",
    "FR": "lvQdCgwZfBuOzxyV5pxu",
    "EN": DEFAULT_VOICE_ID,
    "PL": "XP3c7PKDwbCj3z2cnpa9",
    "SK": "T4CPtAHlrClEH8iCFo2h",
    "TA": "DNLl3gCCSh2dfn1WDBpZ",
    "ES": "iJQjCIhyynnZMKT6NN3H",
    "DA": "6SjhOkgKPuHxm8q0eIyp",
    "DE": "KbSC2XTZL12xT3fm2fcD",
    # no dedicated voice yet
    "JA": DEFAULT_VOICE_ID,
    "AR": DEFAULT_VOICE_ID,
    "ZH": DEFAULT_VOICE_ID,
}


def voice_for_language(code: str) -> str:
    return LANGUAGE_VOICE_MAP.get(code.upper(), DEFAULT_VOICE_ID)


def voice_for_languages(codes: list[str]) -> str:
    """Pick a voice for a list of codes: first non-English one wins, English otherwise."""
    non_english = next((c for c in codes if c.upper() != "EN"), None)
    primary = non_english or (codes[0] if codes else "EN")
    return voice_for_language(primary)
