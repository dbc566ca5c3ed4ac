import asyncio
import sys
from pathlib import Path

SRC_DIR = str((Path(__file__).resolve().parents[1] / "src").resolve())
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from dual_subtitles.cache import TTLCache  # noqa: E402
from dual_subtitles.models import STATUS_INSUFFICIENT, STATUS_OK, Cue, SearchCandidate  # noqa: E402
from dual_subtitles.service import DualSubtitleService  # noqa: E402


def _candidate(cid, lang):
    return SearchCandidate(id=cid, download_url=f"https://dl.example.com/{cid}", language_code=lang, format="srt")


class FakeClient:
    def __init__(self, ranked=None, contents=None):
        self.ranked = ranked or {}
        self.contents = contents or {}
        self.searches = []
        self.downloads = []

    async def search_and_rank(self, language, base_params):
        self.searches.append((language, dict(base_params)))
        return list(self.ranked.get(language, []))

    async def fetch_and_decode(self, candidate):
        self.downloads.append(candidate.id)
        return self.contents.get(candidate.id)


def _default_client():
    return FakeClient(
        ranked={"eng": [_candidate("m1", "eng")], "fre": [_candidate("t1", "fre")]},
        contents={
            "m1": [Cue(0, 2000, "Hello"), Cue(3000, 4000, "Bye")],
            "t1": [Cue(100, 1900, "Bonjour")],
        },
    )


def test_build_merges_main_and_translation():
    client = _default_client()
    service = DualSubtitleService(client)
    outcome = asyncio.run(service.build("movie", "tt0000123", "eng", "fre"))

    assert outcome.status == STATUS_OK
    assert outcome.cues == [Cue(0, 2000, "Bonjour"), Cue(3000, 4000, "")]
    assert outcome.main.id == "m1"
    assert outcome.translation.id == "t1"
    assert sorted(lang for lang, _ in client.searches) == ["eng", "fre"]
    assert client.searches[0][1] == {"imdbid": "123"}


def test_series_ids_carry_season_and_episode():
    client = _default_client()
    service = DualSubtitleService(client)
    asyncio.run(service.build("series", "tt0000123:2:5", "eng", "fre"))
    assert client.searches[0][1] == {"imdbid": "123", "season": "2", "episode": "5"}


def test_missing_translation_is_insufficient_not_error():
    client = _default_client()
    client.ranked["fre"] = []
    outcome = asyncio.run(DualSubtitleService(client).build("movie", "tt0000123", "eng", "fre"))
    assert outcome.status == STATUS_INSUFFICIENT
    assert "fre" in outcome.reason
    assert client.downloads == []


def test_undecodable_side_is_insufficient():
    client = _default_client()
    client.contents["m1"] = None
    outcome = asyncio.run(DualSubtitleService(client).build("movie", "tt0000123", "eng", "fre"))
    assert not outcome.ok
    assert "eng" in outcome.reason


def test_falls_through_to_next_candidate():
    client = _default_client()
    client.ranked["eng"] = [_candidate("bad", "eng"), _candidate("empty", "eng"), _candidate("m1", "eng")]
    client.contents["empty"] = []
    outcome = asyncio.run(DualSubtitleService(client).build("movie", "tt0000123", "eng", "fre"))
    assert outcome.ok
    assert outcome.main.id == "m1"
    assert client.downloads.count("bad") == 1


def test_download_attempts_are_capped():
    client = _default_client()
    client.ranked["eng"] = [_candidate(f"bad{i}", "eng") for i in range(5)]
    service = DualSubtitleService(client, max_download_attempts=2)
    outcome = asyncio.run(service.build("movie", "tt0000123", "eng", "fre"))
    assert not outcome.ok
    assert [d for d in client.downloads if d.startswith("bad")] == ["bad0", "bad1"]


def test_unsupported_id_skips_search():
    client = _default_client()
    outcome = asyncio.run(DualSubtitleService(client).build("movie", "kitsu:123", "eng", "fre"))
    assert outcome.status == STATUS_INSUFFICIENT
    assert client.searches == []


def test_outcomes_are_cached():
    client = _default_client()
    service = DualSubtitleService(client, cache=TTLCache(default_ttl=60))
    first = asyncio.run(service.build("movie", "tt0000123", "eng", "fre"))
    second = asyncio.run(service.build("movie", "tt0000123", "eng", "fre"))
    assert first is second
    assert len(client.searches) == 2


def test_untimed_candidate_falls_through_to_timed_one():
    client = _default_client()
    vtt = SearchCandidate(id="v", download_url="https://dl.example.com/v", language_code="fre", format="vtt", download_count=99)
    srt = SearchCandidate(id="t1", download_url="https://dl.example.com/t1", language_code="fre", format="srt", download_count=5)
    client.ranked["fre"] = [vtt, srt]
    client.contents["v"] = [Cue(0, 0, "Bonjour (vtt)")]
    outcome = asyncio.run(DualSubtitleService(client).build("movie", "tt0000123", "eng", "fre"))

    assert outcome.ok
    assert outcome.translation.id == "t1"
    assert outcome.cues[0].text == "Bonjour"
    assert client.downloads.count("v") == 1


def test_only_untimed_candidates_is_insufficient():
    client = _default_client()
    client.contents["m1"] = [Cue(0, 0, "broken"), Cue(0, 0, "also broken")]
    outcome = asyncio.run(DualSubtitleService(client).build("movie", "tt0000123", "eng", "fre"))
    assert outcome.status == STATUS_INSUFFICIENT
    assert "eng" in outcome.reason
