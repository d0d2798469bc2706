"""
Tests for query processing, ranking policies and the search strategy chain

The forum is replaced with an in-memory fake that records every call.
"""

import pytest

from reddisearch.common.pacing import Pacer
from reddisearch.retriever.documents import Document, RankingPolicy, dedupe_by_url, rank_documents


def doc(title, body="", community="laptops", score=0, comments=0, url=None):
    return Document(
        title=title,
        body=body,
        url=url or f"https://www.reddit.com/r/{community}/comments/{title.replace(' ', '_')}/",
        community=community,
        score=score,
        comments=comments,
    )


class FakeForum:
    """Stands in for ForumClient; answers from per-call tables"""

    def __init__(self, search=None, recent=None, hot=None):
        self.search = search or {}  # (query, community) -> docs
        self.recent = recent or {}  # community -> docs
        self.hot = hot or {}  # community -> docs
        self.calls = []

    def search_posts(self, query, community=None, limit=25):
        self.calls.append(("search", query, community))
        return list(self.search.get((query, community), []))[:limit]

    def list_recent(self, community=None, limit=25):
        self.calls.append(("recent", community))
        return list(self.recent.get(community, []))[:limit]

    def list_hot(self, community=None, limit=25):
        self.calls.append(("hot", community))
        return list(self.hot.get(community, []))[:limit]


@pytest.fixture
def processor():
    from reddisearch.retriever.query_processor import QueryProcessor
    return QueryProcessor()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_searcher(processor, sleeps):
    from reddisearch.retriever.searcher import Searcher

    def _make(forum, **kwargs):
        return Searcher(forum, processor=processor, pacer=Pacer(sleep=sleeps.append), **kwargs)

    return _make


class TestQueryProcessor:
    def test_extract_terms(self, processor):
        parsed = processor.parse("What is the best laptop for programming students?")

        assert parsed.terms == ["best", "laptop", "programming", "students"]
        assert parsed.required_matches == 2

    def test_terms_deduplicated(self, processor):
        assert processor.extract_terms("laptop Laptop LAPTOP bags") == ["laptop", "bags"]

    def test_short_words_excluded(self, processor):
        assert processor.extract_terms("top gpu for ai") == []

    def test_clean_query(self, processor):
        parsed = processor.parse("  best   laptop?!  ")
        assert parsed.cleaned == "best laptop?"

    def test_community_hint(self, processor):
        assert processor.parse("python web frameworks").community_hint == "Python"
        assert processor.parse("laptop bags").community_hint is None

    @pytest.mark.parametrize("terms,required", [([], 1), (["a"], 1), (["a", "b"], 1), (["a", "b", "c"], 2), (["a"] * 5, 3)])
    def test_required_matches(self, terms, required):
        from reddisearch.retriever.query_processor import required_matches
        assert required_matches(terms) == required

    def test_relevance_filter(self, processor):
        parsed = processor.parse("laptop programming students battery")
        docs = [
            doc("Laptop for programming", "battery is fine"),
            doc("Student laptop", "cheap"),
            doc("Pasta", "sauce", community="Cooking"),
        ]

        kept = processor.filter_relevant(docs, parsed)

        assert [d.title for d in kept] == ["Laptop for programming"]

    def test_no_terms_keeps_everything(self, processor):
        parsed = processor.parse("what is it?")
        assert parsed.terms == []
        assert processor.is_relevant(doc("anything"), parsed)
        assert not processor.is_relevant(doc("anything"), parsed, require_terms=True)
        assert processor.filter_relevant([doc("anything")], parsed, require_terms=True) == []


class TestRanking:
    def test_dedupe_keeps_higher_score(self):
        low = doc("Same post", score=3, url="u")
        high = doc("Same post", score=30, url="u")
        other = doc("Other", url="v")

        result = dedupe_by_url([low, other, high])

        assert result == [high, other]
        assert len({d.url for d in result}) == len(result)

    def test_raw_score_policy(self):
        docs = [doc("a", score=5, comments=100), doc("b", score=50, comments=0)]
        assert [d.title for d in rank_documents(docs, RankingPolicy.RAW_SCORE)] == ["b", "a"]

    def test_weighted_engagement_policy(self):
        docs = [doc("a", score=5, comments=100), doc("b", score=50, comments=0)]
        assert [d.title for d in rank_documents(docs, "weighted_engagement")] == ["a", "b"]


class TestStrategyChain:
    def test_direct_query_satisfies_and_stops(self, make_searcher):
        hits = [doc(f"laptop {i}", score=i) for i in range(5)]
        forum = FakeForum(search={("best laptop", "laptops"): hits})

        results = make_searcher(forum).search("best laptop", "r/laptops", limit=5)

        assert len(results) == 5
        assert forum.calls == [("search", "best laptop", "laptops")]
        assert [d.score for d in results] == [4, 3, 2, 1, 0]

    def test_keyword_probe_when_direct_is_thin(self, make_searcher):
        forum = FakeForum(search={
            ("laptop battery", "laptops"): [doc("one")],
            ("laptop", "laptops"): [doc(f"laptop {i}") for i in range(4)],
        })

        results = make_searcher(forum).search("laptop battery", "laptops", limit=4)

        assert len(results) == 4
        assert ("search", "laptop", "laptops") in forum.calls
        # satisfied after the first probe term
        assert ("search", "battery", "laptops") not in forum.calls

    def test_keyword_probe_skipped_at_half_limit(self, make_searcher):
        forum = FakeForum(search={
            ("laptop battery", "laptops"): [doc(f"hit {i}") for i in range(2)],
        })

        make_searcher(forum).search("laptop battery", "laptops", limit=4)

        assert ("search", "laptop", "laptops") not in forum.calls
        assert ("recent", "laptops") in forum.calls

    def test_recent_filter_keeps_matching_posts(self, make_searcher):
        forum = FakeForum(recent={"laptops": [
            doc("Laptop for programming", "battery"),
            doc("Unrelated", "pasta"),
        ]})

        results = make_searcher(forum).search("laptop programming", "laptops", limit=10)

        assert [d.title for d in results] == ["Laptop for programming"]

    def test_recent_filter_keeps_nothing_without_terms(self, make_searcher):
        forum = FakeForum(recent={"Cooking": [doc(f"Pasta {i}", "garlic", community="Cooking") for i in range(5)]})

        results = make_searcher(forum).search("is it ok?", "Cooking", limit=10)

        assert ("recent", "Cooking") in forum.calls
        assert results == []

    def test_all_scope_retry_when_thin(self, make_searcher):
        forum = FakeForum(search={
            ("laptop programming", "all"): [doc("Laptop thread", community="programming")],
        })

        results = make_searcher(forum).search("laptop programming", "laptops", limit=10)

        assert ("search", "laptop programming", "all") in forum.calls
        assert [d.community for d in results] == ["programming"]

    def test_no_all_scope_retry_when_already_all(self, make_searcher):
        forum = FakeForum()

        make_searcher(forum, backup_sources=False).search("laptop programming", None, limit=10)

        assert [c for c in forum.calls if c[0] == "search" and c[1] == "laptop programming"] == [
            ("search", "laptop programming", "all"),
        ]

    def test_duplicates_across_strategies_merged(self, make_searcher):
        shared = doc("Laptop programming", "laptop programming", score=1, url="same")
        better = doc("Laptop programming", "laptop programming", score=9, url="same")
        forum = FakeForum(
            search={("laptop programming", "laptops"): [shared]},
            recent={"laptops": [better]},
        )

        results = make_searcher(forum).search("laptop programming", "laptops", limit=10)

        assert len(results) == 1
        assert results[0].score == 9

    def test_ranking_override(self, make_searcher):
        hits = [doc("a", score=5, comments=100), doc("b", score=50)]
        forum = FakeForum(search={("laptop", "laptops"): hits})

        searcher = make_searcher(forum, ranking="weighted_engagement")

        assert [d.title for d in searcher.search("laptop", "laptops", limit=2)] == ["a", "b"]
        assert [d.title for d in searcher.search("laptop", "laptops", limit=2, ranking="raw_score")] == ["b", "a"]


class TestBackupSources:
    def test_runs_only_without_requested_community(self, make_searcher):
        forum = FakeForum(hot={"AskReddit": [doc("Laptop advice", "laptop", community="AskReddit")]})

        make_searcher(forum).search("laptop advice", "laptops", limit=10)
        assert not any(c[0] == "hot" for c in forum.calls)

        results = make_searcher(forum).search("laptop advice", None, limit=10)
        assert [d.community for d in results] == ["AskReddit"]

    def test_hinted_community_first_and_paced(self, make_searcher, sleeps):
        forum = FakeForum()

        make_searcher(forum, backup_delay=0.5).search("python laptop", None, limit=10)

        hot_calls = [c[1] for c in forum.calls if c[0] == "hot"]
        assert hot_calls == ["Python", "AskReddit", "explainlikeimfive", "LifeProTips", "todayilearned"]
        assert sleeps == [0.5] * 4

    def test_keeps_nothing_without_terms(self, make_searcher):
        forum = FakeForum(hot={"AskReddit": [doc("Anything", "at all", community="AskReddit")]})

        results = make_searcher(forum).search("is it ok?", None, limit=10)

        assert ("hot", "AskReddit") in forum.calls
        assert results == []

    def test_cancelled_pacer_aborts_search(self, processor):
        from reddisearch.retriever.searcher import Searcher
        pacer = Pacer(sleep=lambda s: None)
        pacer.cancel()
        searcher = Searcher(FakeForum(), processor=processor, pacer=pacer)

        with pytest.raises(InterruptedError):
            searcher.search("laptop advice", None, limit=10)

    def test_disabled(self, make_searcher):
        from reddisearch.retriever.searcher import BackupSources
        searcher = make_searcher(FakeForum(), backup_sources=False)
        assert not any(isinstance(s, BackupSources) for s in searcher.strategies)


class TestStrategiesInIsolation:
    def test_outcome_signals_continue(self, processor):
        from reddisearch.retriever.searcher import DirectQuery, SearchState
        forum = FakeForum(search={("laptop", "laptops"): [doc("a"), doc("b")]})
        state = SearchState(parsed=processor.parse("laptop"), community="laptops", limit=2, requested_community=True)

        outcome = DirectQuery(forum).run(state)

        assert len(outcome.documents) == 2
        assert not outcome.should_continue

    def test_keyword_probe_applies(self, processor):
        from reddisearch.retriever.searcher import KeywordProbe, SearchState
        state = SearchState(parsed=processor.parse("laptop"), community="laptops", limit=10, requested_community=True)
        probe = KeywordProbe(FakeForum())

        assert probe.applies(state)
        state.merge([doc(str(i)) for i in range(5)])
        assert not probe.applies(state)

    def test_custom_chain(self, processor):
        from reddisearch.retriever.searcher import RecentFilter, Searcher
        forum = FakeForum(recent={"laptops": [doc("laptop")]})
        searcher = Searcher(forum, processor=processor, strategies=[RecentFilter(forum, processor)])

        results = searcher.search("laptop", "laptops", limit=5)

        assert forum.calls == [("recent", "laptops")]
        assert len(results) == 1
