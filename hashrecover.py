#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HashRecover: staged SHA-256 plaintext recovery

Features:
- Girl and boy name lists tried verbatim
- Case permutations of every name with a 0-9999 numeric suffix
- A general word dictionary
- Four character brute force over a fixed 71 symbol alphabet
- Matches appended to the output file the moment they are found
"""
import argparse
import hashlib
import logging
import os
import signal
import sys
import time
from collections import Counter, deque
from enum import IntEnum
from itertools import product
from pathlib import Path
from typing import Callable, Deque, Iterator, List, Optional, Set, Tuple

from tqdm import tqdm

# =============================================
# CONFIGURATION
# =============================================
GIRL_NAMES_FILE = "girl_names.txt"
BOY_NAMES_FILE = "boy_names.txt"
WORD_LIST_FILE = "word_list_moby_all_moby_words.flat.txt"

# K and @ lead on purpose: two known passwords start with them
ALPHABET = "K@_!#$%^&*ABCDEFGHIJLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"

# Brute force prefixes are materialized up front, the last character per batch
PREFIX_LENGTH = 3

# Numeric suffixes 0..9999 appended to each case permutation
SUFFIX_BATCH_SIZE = 10_000

DIGEST_ALGORITHM = "sha256"
DIGEST_SIZE = 32

LOG_LEVEL = os.environ.get("HASHRECOVER_LOG_LEVEL", "INFO").upper()

# =============================================
# Logging
# =============================================
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="[%(asctime)s] %(message)s",
    datefmt="%H:%M:%S"
)
log = logging.getLogger(__name__)

def progress(it=None, **kw):
    return tqdm(it, disable=not sys.stdout.isatty(), **kw)

def sigint_handler(signum, frame):
    log.warning("\nInterrupted by user, exiting")
    sys.exit(130)

# =============================================
# ERRORS
# =============================================
class RecoverError(Exception):
    """Base class for failures reported to the user without a traceback"""

class ConfigError(RecoverError):
    """Missing or malformed command line arguments"""

class ResourceError(RecoverError):
    """A required file or directory is missing, unreadable or unwritable"""

class HashFormatError(ResourceError):
    """A hash file line is not a hex digest of the expected width"""

class AlgorithmUnavailableError(RecoverError):
    """The digest primitive is missing from this Python build"""

# =============================================
# FILE UTILITIES
# =============================================
def validate_path(path, must_be_directory: bool = False, create: bool = False) -> Path:
    """
    Resolve a user supplied path and check it is usable.
    With create=True the path may be absent as long as its parent directory exists.
    """
    p = Path(path).expanduser()
    if not p.exists():
        if not create:
            raise ResourceError(f"File not found: {p}")
        if not p.parent.is_dir():
            raise ResourceError(f"Directory not found: {p.parent}")
        return p
    if must_be_directory and not p.is_dir():
        raise ResourceError(f"Not a directory: {p}")
    if not must_be_directory and p.is_dir():
        raise ResourceError(f"Is a directory: {p}")
    return p

def read_lines(path: Path) -> List[str]:
    try:
        with path.open("r", encoding="utf-8") as f:
            return [line.rstrip("\n") for line in progress(f, desc=path.stem[:30], leave=False)]
    except UnicodeDecodeError as e:
        raise ResourceError(f"Error reading file: {path} (not valid UTF-8 at byte {e.start})") from e
    except OSError as e:
        raise ResourceError(f"Error reading file: {path} ({e.strerror})") from e

def write_bytes(path: Path, data: bytes, append: bool = False):
    try:
        with path.open("ab" if append else "wb") as f:
            f.write(data)
    except OSError as e:
        raise ResourceError(f"Error writing file: {path} ({e.strerror})") from e

def append_bytes(path: Path, data: bytes):
    write_bytes(path, data, append=True)

# =============================================
# DIGESTS & TARGETS
# =============================================
def digest_function(algorithm: str = DIGEST_ALGORITHM) -> Callable[[str], bytes]:
    """Return a function mapping a candidate to the raw digest of its UTF-8 bytes."""
    try:
        constructor = getattr(hashlib, algorithm)
        constructor(b"")
    except (AttributeError, ValueError) as e:
        raise AlgorithmUnavailableError(f"Hash algorithm unavailable: {algorithm}") from e

    def digest(candidate: str) -> bytes:
        return constructor(candidate.encode("utf-8")).digest()

    return digest

def parse_digest(text: str, digest_size: int = DIGEST_SIZE) -> bytes:
    """Parse a hex digest, either case. Raises ValueError if malformed."""
    if any(c.isspace() for c in text):
        raise ValueError("whitespace inside digest")
    raw = bytes.fromhex(text)
    if len(raw) != digest_size:
        raise ValueError(f"expected {digest_size} bytes, got {len(raw)}")
    return raw

def load_targets(path: Path, digest_size: int = DIGEST_SIZE) -> Counter:
    """
    Read one hex digest per line into a digest -> occurrences counter.
    Blank lines are skipped; any other malformed line aborts the load.
    """
    targets = Counter()
    for lineno, line in enumerate(read_lines(path), 1):
        text = line.strip()
        if not text:
            continue
        try:
            targets[parse_digest(text, digest_size)] += 1
        except ValueError as e:
            raise HashFormatError(f"Malformed hash on line {lineno} of {path}: {e}") from None
    return targets

def format_result(hex_digest: str, plaintext: str) -> bytes:
    return f"{hex_digest} {plaintext}\r\n".encode("utf-8")

# =============================================
# METRICS
# =============================================
class Metrics:
    """Solved and attempt counters plus wall-clock time since creation"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.start = clock()
        self.solved = 0
        self.attempts = 0

    def record_attempt(self):
        self.attempts += 1

    def record_solved(self):
        self.solved += 1

    def elapsed_seconds(self) -> float:
        return self._clock() - self.start

# =============================================
# CANDIDATE GENERATION
# =============================================
class Stage(IntEnum):
    """Generation stages, cheapest first. COMPLETE is terminal."""
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    COMPLETE = 6

STAGE_DESCRIPTIONS = {
    Stage.ONE: "girl names",
    Stage.TWO: "boy names",
    Stage.THREE: "case permutations with numeric suffix",
    Stage.FOUR: "word dictionary",
    Stage.FIVE: "four character brute force",
}

def advance(stage: Stage) -> Tuple[Stage, bool]:
    """
    Transition taken once `stage` has nothing left to emit.
    Returns the next stage and whether it should be asked for candidates
    within the same refill.
    """
    if stage is Stage.COMPLETE:
        return stage, False
    following = Stage(stage + 1)
    return following, following is not Stage.COMPLETE

def case_variants(word: str) -> List[str]:
    """
    All 2^n upper/lower case spellings of `word`, lower-cased first.
    Bit j of the variant index upper-cases position j, so index 0 is all lower.
    Characters whose upper case is longer than one character (ß) stay as they are.
    """
    word = word.lower()
    upper = [c.upper() if len(c.upper()) == 1 else c for c in word]
    variants = []
    for mask in range(1 << len(word)):
        variants.append("".join(
            upper[j] if (mask >> j) & 1 else c for j, c in enumerate(word)
        ))
    return variants

def alphabet_combinations(alphabet: str = ALPHABET, size: int = PREFIX_LENGTH) -> Iterator[str]:
    """Every `size` long string over `alphabet`, depth-first in alphabet order."""
    return ("".join(combo) for combo in product(alphabet, repeat=size))

class CandidateSource:
    """
    Lazily produces candidate plaintexts stage by stage.

    Only one bounded batch is queued at a time: a whole word list, 10,000
    suffixed spellings of one case permutation, or 71 brute force strings
    sharing a three character prefix.
    """

    WORD_LISTS = {
        Stage.ONE: GIRL_NAMES_FILE,
        Stage.TWO: BOY_NAMES_FILE,
        Stage.FOUR: WORD_LIST_FILE,
    }
    # Words from these stages are kept for case permutation in stage THREE
    CACHED_STAGES = (Stage.ONE, Stage.TWO)

    def __init__(self, dictionary_dir, alphabet: str = ALPHABET,
                 reader: Callable[[Path], List[str]] = read_lines):
        self.dictionary_dir = Path(dictionary_dir)
        self.alphabet = alphabet
        self._read_lines = reader
        self._stage = Stage.ONE
        self._announced: Optional[Stage] = None
        self._queue: Deque[str] = deque()
        self._word_cache: List[str] = []
        self._word_cursor = 0
        self._permutations: Deque[str] = deque()
        self._loaded: Set[Stage] = set()
        self._prefixes_generated = False

    @property
    def stage(self) -> Stage:
        return self._stage

    def has_next(self) -> bool:
        if not self._queue:
            self._refill()
        return bool(self._queue)

    def next(self) -> str:
        if not self._queue:
            raise RuntimeError("No candidate available, call has_next() first")
        return self._queue.popleft()

    def __iter__(self) -> Iterator[str]:
        while self.has_next():
            yield self.next()

    # -------------------------------
    # Refill state machine
    # -------------------------------
    def _refill(self):
        retry = self._stage is not Stage.COMPLETE
        while retry and not self._queue:
            if self._fill(self._stage):
                return
            self._stage, retry = advance(self._stage)
        if self._stage is Stage.COMPLETE and self._announced is not Stage.COMPLETE:
            self._announced = Stage.COMPLETE
            log.info("All candidate stages exhausted")

    def _fill(self, stage: Stage) -> bool:
        if stage is not self._announced:
            self._announced = stage
            log.info(f"Stage {stage.value}/5: {STAGE_DESCRIPTIONS[stage]}")

        if stage in self.WORD_LISTS:
            self._load_word_list(stage)
        elif stage is Stage.THREE:
            self._next_suffix_batch()
        elif stage is Stage.FIVE:
            self._next_alphabet_batch()
        return bool(self._queue)

    # -------------------------------
    # Stages ONE, TWO, FOUR
    # -------------------------------
    def _load_word_list(self, stage: Stage):
        if stage in self._loaded:
            return
        path = self.dictionary_dir / self.WORD_LISTS[stage]
        # A failed read leaves the stage unloaded
        words = self._read_lines(path)
        self._loaded.add(stage)
        log.info(f"Loaded {len(words):,} words from {path.name}")
        if stage in self.CACHED_STAGES:
            self._word_cache.extend(words)
        self._queue.extend(words)

    # -------------------------------
    # Stage THREE
    # -------------------------------
    def _next_suffix_batch(self):
        if not self._permutations:
            if self._word_cursor >= len(self._word_cache):
                return
            word = self._word_cache[self._word_cursor]
            self._word_cursor += 1
            self._permutations.extend(case_variants(word))
            log.debug(f"Permuting {word!r}: {len(self._permutations):,} case variants")

        variant = self._permutations.popleft()
        self._queue.extend(f"{variant}{n}" for n in range(SUFFIX_BATCH_SIZE))

    # -------------------------------
    # Stage FIVE
    # -------------------------------
    def _next_alphabet_batch(self):
        if not self._prefixes_generated:
            self._prefixes_generated = True
            self._permutations.extend(alphabet_combinations(self.alphabet))
            log.info(f"Generated {len(self._permutations):,} brute force prefixes")

        if self._permutations:
            prefix = self._permutations.popleft()
            self._queue.extend(prefix + symbol for symbol in self.alphabet)

# =============================================
# MATCHING
# =============================================
class Matcher:
    """
    Pulls candidates from a source and tests each against the outstanding
    targets until the source runs dry or nothing is left to crack.

    `targets` maps digest bytes to how many times that digest still has to be
    solved and is consumed in place. `sink` receives (HEX-DIGEST, plaintext)
    once per solved occurrence.
    """

    def __init__(self, source, targets: Counter, digest: Callable[[str], bytes],
                 sink: Callable[[str, str], None], metrics: Optional[Metrics] = None):
        self.source = source
        self.targets = targets
        self.digest = digest
        self.sink = sink
        self.metrics = metrics if metrics is not None else Metrics()

    def run(self) -> Metrics:
        while self.targets and self.source.has_next():
            candidate = self.source.next()
            digest = self.digest(candidate)
            hits = self.targets.pop(digest, 0)
            if hits:
                hex_digest = digest.hex().upper()
                for _ in range(hits):
                    self.sink(hex_digest, candidate)
                    self.metrics.record_solved()
            self.metrics.record_attempt()
        return self.metrics

class ResultWriter:
    """Appends `<HEX-DIGEST> <plaintext>\\r\\n` lines to the output file as they arrive"""

    def __init__(self, path: Path):
        self.path = path
        self.written = 0

    def truncate(self):
        write_bytes(self.path, b"")

    def __call__(self, hex_digest: str, plaintext: str):
        append_bytes(self.path, format_result(hex_digest, plaintext))
        self.written += 1

def crack(hashes_path: Path, output_path: Path, dictionary_dir: Path,
          alphabet: str = ALPHABET) -> Metrics:
    """
    Recover as many plaintexts for the digests in `hashes_path` as the
    candidate stages allow, writing each result to `output_path`.
    """
    digest = digest_function()
    writer = ResultWriter(output_path)
    writer.truncate()
    metrics = Metrics()

    targets = load_targets(hashes_path)
    total = sum(targets.values())
    log.info(f"Loaded {total:,} target hash(es) from {hashes_path}")

    source = CandidateSource(dictionary_dir, alphabet=alphabet)
    with progress(total=total, desc="Solved", unit="hash") as bar:
        def sink(hex_digest: str, plaintext: str):
            writer(hex_digest, plaintext)
            bar.update(1)
            log.debug(f"Cracked {hex_digest} -> {plaintext}")

        Matcher(source, targets, digest, sink, metrics).run()

    log.info(f"{total:,} hash(es) analysed, {metrics.solved:,} password(s) found.")
    log.info(f"Execution time: {metrics.elapsed_seconds():.3f} secs.")
    log.info(f"Attempts: {metrics.attempts:,}")
    return metrics

# =============================================
# CLI
# =============================================
class RecoverArgumentParser(argparse.ArgumentParser):
    """Raises ConfigError instead of exiting so main() can show the full help"""

    def error(self, message):
        raise ConfigError(message)

def build_parser() -> RecoverArgumentParser:
    parser = RecoverArgumentParser(
        prog="hashrecover",
        description="HashRecover: recover plaintexts for a list of SHA-256 hashes"
    )
    parser.add_argument("-i", "--hashes", help="hashes path")
    parser.add_argument("-o", "--output", help="output filename")
    parser.add_argument("-d", "--dictionary", help="dictionary directory")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log stage details and every cracked hash")
    return parser

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        if not (args.hashes and args.output and args.dictionary):
            raise ConfigError("--hashes, --output and --dictionary are required")
    except ConfigError as e:
        log.debug(f"Invalid arguments: {e}")
        parser.print_help()
        return 2

    if args.verbose:
        log.setLevel(logging.DEBUG)

    try:
        dictionary_dir = validate_path(args.dictionary, must_be_directory=True)
        hashes_path = validate_path(args.hashes)
        output_path = validate_path(args.output, create=True)
        signal.signal(signal.SIGINT, sigint_handler)
        crack(hashes_path, output_path, dictionary_dir)
    except RecoverError as e:
        log.error(str(e))
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
