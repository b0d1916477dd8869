"""
codes.py — Generation of Unique Membership Codes

A code is a single uppercase letter followed by an 8-digit number drawn
uniformly from [10000000, 99999999], e.g. "A48213977". With ~9×10^7 numbers
per prefix collisions are rare, but the attempt count is bounded so that a
misbehaving store cannot keep the generator spinning forever.
"""

import logging
import random
import re
from typing import Iterator, Optional

from .errors import CodeGenerationExhausted
from .store import CodeStore

CODE_MIN = 10000000
CODE_MAX = 99999999
CODE_PATTERN = re.compile(r"^[A-Z]\d{8}$")
PREFIX_PATTERN = re.compile(r"^[A-Z]$")

log = logging.getLogger(__name__)


class CodeGenerator:
    """
    Draws codes for a prefix, consulting the code store for codes already in use.

    A free code can still be taken by a concurrent order before it is stored;
    the pipeline persists each candidate with the store's atomic insert and
    moves on to the next one on `DuplicateCodeError`. Store lookups and insert
    attempts share the same budget of `max_attempts` draws.
    """
    def __init__(self, store: CodeStore, max_attempts: int = 20, rng: Optional[random.Random] = None):
        self.store = store
        self.max_attempts = max_attempts
        self.rng = rng or random.SystemRandom()

    def draw(self, prefix: str) -> str:
        """Returns a random candidate code for `prefix` without consulting the store."""
        _check_prefix(prefix)
        return f"{prefix}{self.rng.randint(CODE_MIN, CODE_MAX)}"

    def candidates(self, prefix: str) -> Iterator[str]:
        """
        Yields codes for `prefix` that are not in the store yet.

        Stops after `max_attempts` draws in total, counting both draws that
        collided in the store and candidates the caller moved past.

        Raises:
            ValueError: If the prefix is not a single uppercase letter.
            StoreError: If the store lookup fails.
        """
        for attempt in range(1, self.max_attempts + 1):
            code = self.draw(prefix)
            if self.store.exists(code):
                log.warning(f"Code collision for prefix {prefix} (attempt {attempt}/{self.max_attempts}).")
                continue
            yield code

    def generate(self, prefix: str) -> str:
        """
        Returns a code for `prefix` that is not in the store yet.

        Raises:
            ValueError: If the prefix is not a single uppercase letter.
            CodeGenerationExhausted: If every draw collided.
            StoreError: If the store lookup fails.
        """
        for code in self.candidates(prefix):
            return code
        raise CodeGenerationExhausted(prefix, self.max_attempts)


def is_valid_code(code: str) -> bool:
    return bool(CODE_PATTERN.match(code or ""))


def _check_prefix(prefix: str):
    if not isinstance(prefix, str) or not PREFIX_PATTERN.match(prefix):
        raise ValueError(f"Code prefix must be a single uppercase letter, got {prefix!r}")
