"""
Best-effort spacing/punctuation of candidate decryptions through an external
text-completion endpoint, gated by letter similarity and cached for 24 hours.
"""

import concurrent.futures
import hashlib
import json
import os
import re
import threading
import time
import urllib.error
import urllib.request
from typing import Callable, Dict, List, Optional

from columnar_breaker_helpers import calculate_character_similarity


CONFIG: Dict = {}

DEFAULT_CACHE_PATH = os.path.join(
    os.path.dirname(__file__), "auxiliary", "refinement_cache.json"
)
CACHE_KEY_PREFIX = "refine_"
CACHE_DIRECT_KEY_MAX_LENGTH = 100
CACHE_DIGEST_LENGTH = 32
SUGGESTION_FIELDS = ("spacedText", "spaced_text", "text")

Oracle = Callable[[str], Optional[str]]


def set_config_refiner(cfg: Dict):
    """Initialize module-level CONFIG (copy)."""
    global CONFIG
    if isinstance(cfg, dict):
        CONFIG = cfg.copy()
    else:
        CONFIG = dict(cfg)


def debug(*args, **kwargs):
    if CONFIG.get("debug_output", False):
        print(*args, **kwargs)


class OracleError(Exception):
    """Base class for refinement failures; never escapes the refiner."""


class OracleUnavailable(OracleError):
    """Endpoint unconfigured, unreachable, or returned an unusable HTTP response."""


class OracleMalformed(OracleError):
    """Response content could not be parsed even after lenient repair."""


class OracleUntrusted(OracleError):
    """Suggested text strays too far from the decryption it should only format."""


def refinement_cache_key(decrypted_text: str) -> str:
    """Direct key for short texts, a bounded SHA-256 digest for long ones."""
    if len(decrypted_text) <= CACHE_DIRECT_KEY_MAX_LENGTH:
        return CACHE_KEY_PREFIX + decrypted_text
    digest = hashlib.sha256(decrypted_text.encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}hash_{digest[:CACHE_DIGEST_LENGTH]}"


class RefinementCache:
    """
    Key-value store of refinement outcomes with time-based expiry.
    Entries are {"refinedText": str, "createdAt": epoch seconds}. With a path
    the store is mirrored to a JSON file; without one it lives in memory only.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.path = path
        self.ttl_seconds = (
            ttl_seconds
            if ttl_seconds is not None
            else CONFIG.get("refinement_cache_ttl_seconds", 24 * 60 * 60)
        )
        self.clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict] = self._load()

    def _load(self) -> Dict[str, Dict]:
        if not self.path or not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            print(f"[WARNING] Could not read refinement cache {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            print(f"[WARNING] Ignoring refinement cache {self.path}: not a JSON object")
            return {}
        return data

    def _save(self):
        if not self.path:
            return
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump(self._entries, fh, indent=2, ensure_ascii=False)
        except OSError as e:
            print(
                f"[WARNING] Could not write refinement cache {self.path}: {e} (keeping it in memory)"
            )

    def is_expired(self, entry: Dict) -> bool:
        created_at = entry.get("createdAt")
        if not isinstance(created_at, (int, float)):
            return True
        return self.clock() - created_at >= self.ttl_seconds

    def get(self, decrypted_text: str) -> Optional[str]:
        """Return the cached refinement for decrypted_text, or None if absent/expired."""
        key = refinement_cache_key(decrypted_text)
        with self._lock:
            entry = self._entries.get(key)
        if not isinstance(entry, dict) or self.is_expired(entry):
            return None
        refined = entry.get("refinedText")
        return refined if isinstance(refined, str) else None

    def put(self, decrypted_text: str, refined_text: str):
        key = refinement_cache_key(decrypted_text)
        with self._lock:
            self._entries[key] = {"refinedText": refined_text, "createdAt": self.clock()}
            self._save()

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            expired = [
                k
                for k, v in self._entries.items()
                if not isinstance(v, dict) or self.is_expired(v)
            ]
            for k in expired:
                del self._entries[k]
            if expired:
                self._save()
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


def build_refinement_prompt(decrypted_text: str) -> str:
    return (
        "You are helping evaluate a decrypted columnar cipher. \n\n"
        f'The decrypted text is: "{decrypted_text}"\n\n'
        "Please analyze this text and respond with a JSON object containing:\n"
        '1. "spacedText": string - if valid, provide the same text but with proper '
        "spacing and punctuation added. If not valid, return the original text.\n\n"
        "Only respond with the JSON object, no other text."
    )


def extract_response_text(data) -> str:
    """Pull the completion text out of a chat-style or plain completion payload."""
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict) and message.get("content"):
            return message["content"]
    for field in ("completion", "response", "text"):
        if isinstance(data.get(field), str) and data[field]:
            return data[field]
    return ""


_OBJECT_FRAGMENT = re.compile(r"\{[\s\S]*?\}")
_UNQUOTED_KEY = re.compile(r"([{,]\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*:")
_UNQUOTED_VALUE = re.compile(r':\s*([^",{\[\]}\s][^",}\[\]]*?)\s*([,}])')


def repair_json_fragment(fragment: str) -> str:
    """Fix common quoting mistakes: single quotes, bare keys, bare string values."""
    repaired = fragment.replace("'", '"')
    repaired = _UNQUOTED_KEY.sub(r'\1"\2":', repaired)
    repaired = _UNQUOTED_VALUE.sub(r': "\1"\2', repaired)
    return repaired


def _suggestion_from(parsed) -> Optional[str]:
    if not isinstance(parsed, dict):
        return None
    for field in SUGGESTION_FIELDS:
        value = parsed.get(field)
        if isinstance(value, str) and value:
            return value
    return None


def parse_oracle_response(content: str) -> str:
    """
    Return the suggested text from an oracle reply. Tries strict JSON first,
    then the first object-like fragment, then that fragment after repair.
    Raises OracleMalformed when nothing yields a suggestion.
    """
    if not isinstance(content, str) or not content.strip():
        raise OracleMalformed("empty oracle response")

    attempts = [content.strip()]
    match = _OBJECT_FRAGMENT.search(content)
    if match:
        attempts.append(match.group(0))
        attempts.append(repair_json_fragment(match.group(0)))

    for attempt in attempts:
        try:
            parsed = json.loads(attempt)
        except ValueError:
            continue
        suggestion = _suggestion_from(parsed)
        if suggestion is not None:
            return suggestion

    raise OracleMalformed(f"could not parse oracle response: {content[:120]!r}")


class CompletionsOracle:
    """HTTP client for a chat-completions style endpoint."""

    def __init__(
        self,
        endpoint: str,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout if timeout is not None else CONFIG.get("completions_timeout", 20)
        self.max_tokens = (
            max_tokens if max_tokens is not None else CONFIG.get("completions_max_tokens", 500)
        )
        self.temperature = (
            temperature
            if temperature is not None
            else CONFIG.get("completions_temperature", 0.1)
        )

    def build_request(self, decrypted_text: str) -> urllib.request.Request:
        body = {
            "messages": [
                {"role": "user", "content": build_refinement_prompt(decrypted_text)}
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        return urllib.request.Request(
            self.endpoint,
            data=json.dumps(body).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

    def __call__(self, decrypted_text: str) -> str:
        request = self.build_request(decrypted_text)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                payload = response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            raise OracleUnavailable(f"completions request failed: {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise OracleUnavailable(f"completions request failed: {e}") from e

        try:
            data = json.loads(payload)
        except ValueError as e:
            raise OracleUnavailable("completions endpoint returned non-JSON body") from e
        return extract_response_text(data)


def default_oracle() -> Optional[CompletionsOracle]:
    """Oracle for the configured endpoint (CONFIG, then $COMPLETIONS_API), or None."""
    endpoint = CONFIG.get("completions_api") or os.environ.get("COMPLETIONS_API")
    if not endpoint:
        return None
    return CompletionsOracle(endpoint)


class PlausibilityRefiner:
    """
    Asks an oracle to add spacing/punctuation to the top few candidates. Any
    failure leaves the candidate unrefined; nothing here raises to the caller.
    """

    def __init__(
        self,
        oracle: Optional[Oracle] = None,
        cache: Optional[RefinementCache] = None,
        similarity_threshold: Optional[float] = None,
        top_n: Optional[int] = None,
        workers: Optional[int] = None,
    ):
        self.oracle = oracle
        self.cache = cache if cache is not None else RefinementCache()
        self.similarity_threshold = (
            similarity_threshold
            if similarity_threshold is not None
            else CONFIG.get("similarity_threshold", 0.9)
        )
        self.top_n = top_n if top_n is not None else CONFIG.get("refine_top_candidates", 3)
        self.workers = workers if workers is not None else CONFIG.get("refinement_workers", 3)

    def _ask_oracle(self, decrypted_text: str) -> str:
        if self.oracle is None:
            raise OracleUnavailable("no completions endpoint configured")

        content = self.oracle(decrypted_text)
        if content is None:
            raise OracleUnavailable("oracle returned no response")

        suggestion = parse_oracle_response(content)
        similarity = calculate_character_similarity(decrypted_text, suggestion)
        debug(f"[REFINE] similarity={similarity:.3f} suggestion={suggestion[:80]!r}")
        if similarity < self.similarity_threshold:
            raise OracleUntrusted(
                f"similarity {similarity:.3f} below {self.similarity_threshold}"
            )
        return suggestion

    def refine_text(self, decrypted_text: str) -> str:
        """Return the accepted refinement, or decrypted_text unchanged."""
        cached = self.cache.get(decrypted_text)
        if cached is not None:
            debug(f"[REFINE] cache hit for {decrypted_text[:40]!r}")
            return cached

        try:
            refined = self._ask_oracle(decrypted_text)
        except OracleUnavailable as e:
            debug(f"[REFINE] skipped: {e}")
            return decrypted_text
        except (OracleMalformed, OracleUntrusted) as e:
            if CONFIG.get("intermediate_output", True):
                print(f"[REFINE] rejected ({type(e).__name__}): {e}")
            refined = decrypted_text

        self.cache.put(decrypted_text, refined)
        return refined

    def refine_candidates(self, candidates: List) -> List:
        """
        Refine the top_n candidates concurrently; the rest pass through unchanged.
        Candidates sharing a decrypted text share one oracle request.
        """
        head = list(candidates[: self.top_n])
        tail = list(candidates[self.top_n :])
        if not head:
            return tail

        unique_texts = list(dict.fromkeys(c.decrypted_text for c in head))
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, min(self.workers, len(unique_texts)))
        ) as executor:
            futures = {
                text: executor.submit(self.refine_text, text) for text in unique_texts
            }

        results = {}
        for text, future in futures.items():
            try:
                results[text] = future.result()
            except Exception as e:
                print(f"[REFINE] unexpected error, keeping raw decryption: {e}")
                results[text] = text

        refined_head = []
        for candidate in head:
            refined = results[candidate.decrypted_text]
            refined_head.append(
                candidate.with_refinement(
                    refined if refined != candidate.decrypted_text else None
                )
            )
        return refined_head + tail
