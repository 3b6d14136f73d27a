#!/usr/bin/env python3
"""
Parser fuzzer for the flow key DSL.

Generates random and mutated definitions and checks that:
- parsing only ever fails with a ParseError (anything else is a crash)
- parsing terminates (hangs are reported as timeouts)
- parsing is deterministic
- rendering a parsed definition with to_text() reparses to an equal AST
- the hand-written parser and the Lark parser agree, including the error
  kind and offset when both reject

Usage:
    python -m flowkey.fuzz [--duration MINUTES | --iterations N] [--seed SEED]
                           [--timeout SECONDS] [--findings-dir DIR]
"""

import argparse
import hashlib
import random
import signal
import string
import time
import traceback
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .converter import to_text
from .errors import ParseError
from .lexer import is_identifier_char
from .parser import MAX_NESTING_DEPTH, parse
from .peg_parser import parse as peg_parse


class FuzzTimeout(Exception):
    pass


@contextmanager
def deadline(seconds: float):
    """Raise FuzzTimeout if the block runs longer than `seconds` (Unix only)."""
    if not hasattr(signal, 'setitimer'):
        yield
        return

    def expired(signum, frame):
        raise FuzzTimeout(f"no result after {seconds:g}s")

    previous = signal.signal(signal.SIGALRM, expired)
    signal.setitimer(signal.ITIMER_REAL, seconds)
    try:
        yield
    finally:
        signal.setitimer(signal.ITIMER_REAL, 0)
        signal.signal(signal.SIGALRM, previous)


def split_pieces(text: str) -> List[str]:
    """Split text into identifier runs and single other characters."""
    pieces: List[str] = []
    for char in text:
        if pieces and is_identifier_char(char) and is_identifier_char(pieces[-1][-1]):
            pieces[-1] += char
        else:
            pieces.append(char)
    return pieces


def deep_nesting(depth: int) -> str:
    """A valid-looking definition with `depth` nested null calls."""
    return "null:[" * depth + "country:ipsource" + "]:d" * depth


@dataclass
class Finding:
    """An input that broke one of the checked properties."""
    category: str  # crash, timeout, nondeterministic, roundtrip, disagreement
    input: str
    detail: str


def _outcome(parse_fn, text: str):
    """Parse and return either the AST or (error kind, offset)."""
    try:
        return parse_fn(text)
    except ParseError as e:
        return (e.kind, e.offset)


class Fuzzer:
    """Flow key DSL parser fuzzer."""

    # Token pools for generation
    KEY_NAMES = ["ipsource", "ipdestination", "ip6source", "ip6destination", "ip6ttl", "ip6_offset"]
    FUNCTIONS = ["group", "country", "asn", "or", "null"]
    IDENTIFIERS = ["x", "foo", "trusted", "bad", "unknown", "gro_up1", "_G3_", "42", "ip5source"]
    PUNCTUATION = [":", ",", "[", "]"]

    # Seed corpus - known valid inputs
    SEED_CORPUS = [
        "ip6destination",
        "ipsource,ipdestination",
        "country:ip6source",
        "asn:ipsource",
        "group:ip6source:trusted:bad",
        "group:ipdestination:gro_up1",
        "ip6destination,group:[country:ip6source]:trusted:bad:unknown",
        "or:ipsource:ip6source",
        "or:[country:ipsource]:[country:ip6source]:ip6ttl",
        "null:[country:ipsource]:unknown",
        "group:[null:[country:ipsource]:XX]:eu:us",
        "  ip6ttl,ip6bytes  ",
    ]

    def __init__(self, seed=None, findings_dir: Optional[Path] = None, verbose: bool = False,
                 time_limit: float = 5.0):
        self.rng = random.Random(seed)
        self.findings_dir = Path(findings_dir) if findings_dir else None
        self.verbose = verbose
        self.time_limit = time_limit
        self.findings: List[Finding] = []
        self.stats = {
            "iterations": 0,
            "parse_ok": 0,
            "parse_error": 0,
            "findings": 0,
        }
        self._seen = set()
        self.start_time = None

        if self.findings_dir:
            self.findings_dir.mkdir(parents=True, exist_ok=True)

    def random_identifier(self) -> str:
        """Generate a random identifier."""
        if self.rng.random() < 0.7:
            return self.rng.choice(self.IDENTIFIERS + self.KEY_NAMES)
        length = self.rng.randint(1, 12)
        return "".join(self.rng.choices(string.ascii_letters + string.digits + "_", k=length))

    def random_call(self, depth=0) -> str:
        """Generate a random (possibly ill-shaped) function call."""
        name = self.rng.choice(self.FUNCTIONS) if self.rng.random() < 0.9 else self.random_identifier()
        args = []
        for _ in range(self.rng.randint(0, 4)):
            if depth < 4 and self.rng.random() < 0.3:
                args.append(f"[{self.random_call(depth + 1)}]")
            else:
                args.append(self.random_identifier())
        return ":".join([name] + args)

    def generate_random(self) -> str:
        """Generate a completely random definition."""
        keys = []
        for _ in range(self.rng.randint(1, 4)):
            if self.rng.random() < 0.5:
                keys.append(self.rng.choice(self.KEY_NAMES))
            else:
                keys.append(self.random_call())
        return ",".join(keys)

    # =========================================================================
    # Mutations
    # =========================================================================

    def mutate(self, input_str: str) -> str:
        """Mutate an input string."""
        mutations = [
            self._mutate_insert_random,
            self._mutate_drop_piece,
            self._mutate_swap_keys,
            self._mutate_repeat_argument,
            self._mutate_misspell,
            self._mutate_nest,
            self._mutate_insert_special,
        ]

        mutation = self.rng.choice(mutations)
        return mutation(input_str)

    def _mutate_insert_random(self, s: str) -> str:
        """Insert a random token."""
        pos = self.rng.randint(0, len(s))
        chars = self.rng.choice([
            self.rng.choice(self.PUNCTUATION),
            self.rng.choice(self.FUNCTIONS) + ":",
            self.random_identifier(),
            " " * self.rng.randint(1, 3),
            "\t",
        ])
        return s[:pos] + chars + s[pos:]

    def _mutate_drop_piece(self, s: str) -> str:
        """Remove one identifier or punctuation character."""
        pieces = split_pieces(s)
        if len(pieces) < 2:
            return s
        del pieces[self.rng.randrange(len(pieces))]
        return "".join(pieces)

    def _mutate_swap_keys(self, s: str) -> str:
        """Swap two comma-separated keys."""
        keys = s.split(",")
        if len(keys) < 2:
            return s + "," + s
        i, j = self.rng.sample(range(len(keys)), 2)
        keys[i], keys[j] = keys[j], keys[i]
        return ",".join(keys)

    def _mutate_repeat_argument(self, s: str) -> str:
        """Repeat one ':'-separated part to push a call past its arity."""
        parts = s.split(":")
        if len(parts) < 2:
            return s + ":" + self.random_identifier()
        index = self.rng.randrange(1, len(parts))
        parts[index:index] = [parts[index]] * self.rng.randint(1, 3)
        return ":".join(parts)

    def _mutate_misspell(self, s: str) -> str:
        """Change one character of an identifier."""
        pieces = split_pieces(s)
        names = [i for i, piece in enumerate(pieces) if is_identifier_char(piece[0])]
        if not names:
            return s
        index = self.rng.choice(names)
        name = pieces[index]
        pos = self.rng.randrange(len(name))
        replacement = self.rng.choice([
            "",
            name[pos].upper(),
            self.rng.choice(string.ascii_lowercase + string.digits),
        ])
        pieces[index] = name[:pos] + replacement + name[pos + 1:]
        return "".join(pieces)

    def _mutate_nest(self, s: str) -> str:
        """Wrap the first key in null calls, sometimes past the nesting limit."""
        head, sep, rest = s.partition(",")
        if ":" not in head:
            head = f"country:{head}"
        depth = self.rng.choice([1, 2, MAX_NESTING_DEPTH, MAX_NESTING_DEPTH + 1])
        return "null:[" * depth + head + "]:d" * depth + sep + rest

    def _mutate_insert_special(self, s: str) -> str:
        """Insert special/edge case characters."""
        pos = self.rng.randint(0, len(s))
        special = self.rng.choice([
            "\x00",
            "\r\n",
            "🎉",
            "α",
            "²",
            "[[[[",
            "]]",
            "::",
            ",,",
        ])
        return s[:pos] + special + s[pos:]

    # =========================================================================
    # Checking
    # =========================================================================

    def record(self, input_str: str, category: str, detail: str):
        """Record a finding, saving it to disk when a findings directory is set."""
        hash_val = hashlib.md5(input_str.encode('utf-8', errors='replace')).hexdigest()[:8]
        if (category, hash_val) in self._seen:
            return
        self._seen.add((category, hash_val))

        self.findings.append(Finding(category, input_str, detail))
        self.stats["findings"] += 1

        if self.findings_dir:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = self.findings_dir / f"{category}_{timestamp}_{hash_val}.txt"
            with open(filename, 'w') as f:
                f.write(f"Category: {category}\n")
                f.write(f"Detail: {detail}\n")
                f.write(f"Timestamp: {timestamp}\n")
                f.write(f"Input length: {len(input_str)}\n")
                f.write("\n--- Input ---\n")
                f.write(input_str)
                f.write("\n")
            if self.verbose:
                print(f"[!] Saved finding: {filename}")

    def test_input(self, input_str: str) -> bool:
        """Test a single input. Returns True if it produced a finding."""
        before = len(self.findings)
        try:
            with deadline(self.time_limit):
                first = _outcome(parse, input_str)
                second = _outcome(parse, input_str)
                peg = _outcome(peg_parse, input_str)
        except FuzzTimeout as e:
            self.record(input_str, "timeout", str(e))
            return True
        except Exception as e:
            self.record(input_str, "crash", f"{type(e).__name__}: {e}\n{traceback.format_exc()}")
            return True

        if first != second:
            self.record(input_str, "nondeterministic", f"{first!r} != {second!r}")

        if first != peg:
            self.record(input_str, "disagreement", f"hand-written {first!r}, Lark {peg!r}")

        if isinstance(first, tuple):
            self.stats["parse_error"] += 1
        else:
            self.stats["parse_ok"] += 1
            text = to_text(first)
            reparsed = _outcome(parse, text)
            if reparsed != first:
                self.record(input_str, "roundtrip", f"{text!r} reparsed as {reparsed!r}")

        return len(self.findings) > before

    def run(self, iterations: int = None, duration_minutes: float = None) -> List[Finding]:
        """Run the fuzzer until the iteration or time budget is spent."""
        self.start_time = time.time()
        end_time = self.start_time + (duration_minutes * 60) if duration_minutes else None

        if self.verbose:
            print(f"Starting fuzzer (seed corpus: {len(self.SEED_CORPUS)} inputs)")
            print("-" * 60)

        corpus = list(self.SEED_CORPUS)

        try:
            while True:
                if iterations is not None and self.stats["iterations"] >= iterations:
                    break
                if end_time and time.time() > end_time:
                    break
                self.stats["iterations"] += 1

                strategy = self.rng.random()
                if strategy < 0.3:
                    input_str = self.generate_random()
                elif strategy < 0.8:
                    input_str = self.mutate(self.rng.choice(corpus))
                    for _ in range(self.rng.randint(0, 3)):
                        input_str = self.mutate(input_str)
                else:
                    input_str = self.rng.choice(corpus)

                interesting = self.test_input(input_str)

                if interesting or (self.rng.random() < 0.01 and len(input_str) < 200):
                    corpus.append(input_str)
                    if len(corpus) > 500:
                        corpus.pop(self.rng.randint(len(self.SEED_CORPUS), len(corpus) - 1))

                if self.verbose and self.stats["iterations"] % 1000 == 0:
                    print(self.summary())

        except KeyboardInterrupt:
            print("\n\nInterrupted by user")

        if self.verbose:
            print("=" * 60)
            print(self.summary())
        return self.findings

    def summary(self) -> str:
        """One line of counters: accepted, rejected and findings."""
        elapsed = time.time() - self.start_time if self.start_time else 0.0
        return (f"{self.stats['iterations']} inputs in {elapsed:.1f}s: "
                f"{self.stats['parse_ok']} accepted, {self.stats['parse_error']} rejected, "
                f"{self.stats['findings']} findings")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Fuzz the flow key parsers")
    parser.add_argument("--duration", type=float, default=None,
                        help="Duration in minutes")
    parser.add_argument("--iterations", type=int, default=None,
                        help="Number of inputs to try (default: 10000 unless --duration is set)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducibility")
    parser.add_argument("--timeout", type=float, default=5.0,
                        help="Seconds allowed per input before it counts as a hang")
    parser.add_argument("--findings-dir", type=Path, default=None,
                        help="Directory to save findings to")
    args = parser.parse_args(argv)

    seed = args.seed if args.seed is not None else int(time.time())
    print(f"Random seed: {seed}")

    iterations = args.iterations
    if iterations is None and args.duration is None:
        iterations = 10000

    fuzzer = Fuzzer(seed=seed, findings_dir=args.findings_dir, verbose=True,
                    time_limit=args.timeout)
    findings = fuzzer.run(iterations=iterations, duration_minutes=args.duration)
    for finding in findings:
        print(f"{finding.category}: {finding.input!r}\n    {finding.detail.splitlines()[0]}")
    return 1 if findings else 0


if __name__ == "__main__":
    raise SystemExit(main())
