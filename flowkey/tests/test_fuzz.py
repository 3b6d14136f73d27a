"""Short fuzzing run over both parsers."""

import pytest

from flowkey import fuzz
from flowkey.fuzz import Finding, Fuzzer, deep_nesting, main, split_pieces
from flowkey.parser import parse as handwritten_parse


class TestFuzzer:
    """The fuzzer itself, plus a small run that must come back clean."""

    def test_seed_corpus_is_valid(self):
        fuzzer = Fuzzer(seed=0)
        for text in Fuzzer.SEED_CORPUS:
            assert not fuzzer.test_input(text), fuzzer.findings
        assert fuzzer.stats["parse_ok"] == len(Fuzzer.SEED_CORPUS)

    def test_generation_is_reproducible(self):
        a = Fuzzer(seed=7)
        b = Fuzzer(seed=7)
        assert [a.generate_random() for _ in range(20)] == [b.generate_random() for _ in range(20)]

    def test_short_run_finds_nothing(self):
        fuzzer = Fuzzer(seed=1234)
        findings = fuzzer.run(iterations=500)
        assert findings == []
        assert fuzzer.stats["iterations"] == 500
        assert fuzzer.stats["parse_ok"] + fuzzer.stats["parse_error"] == 500

    def test_deep_nesting_is_not_a_crash(self):
        fuzzer = Fuzzer(seed=0)
        assert not fuzzer.test_input(deep_nesting(2000)), fuzzer.findings
        assert fuzzer.stats["parse_error"] == 1

    @pytest.mark.parametrize("text", [
        "country:[foo:x]",
        "ip5source,ipsource,",
        "foo:bar,",
        "foo:[bar:x]",
    ])
    def test_rejections_agree_on_kind_and_offset(self, text):
        fuzzer = Fuzzer(seed=0)
        assert not fuzzer.test_input(text), fuzzer.findings

    def test_disagreement_is_recorded(self, monkeypatch):
        monkeypatch.setattr(fuzz, "peg_parse", lambda text: handwritten_parse("ip5source"))
        fuzzer = Fuzzer(seed=0)
        assert fuzzer.test_input("foo:bar")
        assert fuzzer.findings[0].category == "disagreement"

    def test_mutations_stay_strings(self):
        fuzzer = Fuzzer(seed=5)
        text = "group:[null:[country:ipsource]:XX]:eu:us"
        for _ in range(200):
            text = fuzzer.mutate(text)[:500]
            assert isinstance(text, str)

    def test_split_pieces(self):
        assert split_pieces("group:[x_1]:a b") == ["group", ":", "[", "x_1", "]", ":", "a", " ", "b"]

    def test_record_saves_finding(self, tmp_path):
        fuzzer = Fuzzer(seed=0, findings_dir=tmp_path)
        fuzzer.record("x", "crash", "boom")
        fuzzer.record("x", "crash", "boom")
        assert fuzzer.findings == [Finding("crash", "x", "boom")]
        assert len(list(tmp_path.iterdir())) == 1

    def test_main(self, capsys):
        assert main(["--iterations", "50", "--seed", "3"]) == 0
        assert "Random seed: 3" in capsys.readouterr().out
