# OpenSubtitles three-letter language ids offered in the addon config
LANGUAGE_OPTIONS = [
    "abk", "afr", "alb", "amh", "ara", "arg", "arm", "asm", "ast", "azb", "aze", "baq", "bel", "ben",
    "bos", "bre", "bul", "bur", "cat", "chi", "cze", "dan", "dut", "ell", "eng", "epo", "est", "ext",
    "fin", "fre", "geo", "ger", "gla", "gle", "glg", "heb", "hin", "hrv", "hun", "ibo", "ice", "ina",
    "ind", "ita", "jpn", "kan", "kaz", "khm", "kir", "kor", "kur", "lav", "lit", "ltz", "mac", "mal",
    "mar", "may", "mne", "mni", "mon", "nav", "nep", "nor", "oci", "ori", "per", "pob", "pol", "pom",
    "por", "prs", "pus", "rum", "rus", "sat", "scc", "sin", "slo", "slv", "sme", "snd", "som", "spa",
    "spl", "spn", "swa", "swe", "syr", "tam", "tat", "tel", "tet", "tgl", "tha", "tok", "tuk", "tur",
    "ukr", "urd", "uzb", "vie", "wel", "wen", "zhc", "zhe", "zht",
]

SUBRIP_MEDIA_TYPE = "application/x-subrip"
