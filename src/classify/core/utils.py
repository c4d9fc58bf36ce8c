"""
Core Utilities - Shared helpers for the classification package.
"""

import hashlib
import threading
from typing import Any, Callable, Optional


def compute_content_hash(content: str) -> str:
    """
    Compute SHA256 hash of text content.

    Args:
        content: Text content to hash

    Returns:
        Hex-encoded SHA256 hash (64 characters)

    Example:
        >>> compute_content_hash("Hello, World!")
        'dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f'
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def content_fingerprint(item) -> str:
    """
    Compute the cache fingerprint of a content item.

    Uses the raw text; items without text fall back to title + URL so that
    two empty items from different pages do not share a cache entry.

    Args:
        item: ContentItem

    Returns:
        Hex-encoded SHA256 fingerprint
    """
    text = item.raw_content or ""
    if text.strip():
        return compute_content_hash(text)
    return compute_content_hash(f"{item.title or ''}\n{item.url or ''}")


def truncate_text(text: Optional[str], max_chars: int) -> str:
    """Truncate text to ``max_chars`` characters (empty string for None)."""
    if not text:
        return ""
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars]


class CallTimeoutError(TimeoutError):
    """A timed call was still running when its timeout expired."""

    def __init__(self, timeout: float):
        super().__init__(f"Call did not finish within {timeout:g}s")
        self.timeout = timeout


def call_with_timeout(
    func: Callable[..., Any],
    timeout: float,
    *args: Any,
    thread_name: str = "timed-call",
) -> Any:
    """
    Run ``func(*args)`` on its own daemon thread and wait up to ``timeout`` seconds.

    Every call gets a fresh thread and the clock starts once that thread is
    running. A call that never returns holds only its own thread, so it
    cannot delay or starve later calls.

    Args:
        func: Callable to run
        timeout: Seconds to wait after the call starts
        *args: Positional arguments for ``func``
        thread_name: Name of the worker thread (shows up in log records)

    Returns:
        Whatever ``func`` returned

    Raises:
        CallTimeoutError: If ``func`` is still running after ``timeout``
        Exception: Whatever ``func`` raised
    """
    outcome = {}
    started = threading.Event()

    def target():
        started.set()
        try:
            outcome["result"] = func(*args)
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=target, name=thread_name, daemon=True)
    worker.start()
    started.wait()
    worker.join(timeout)

    if worker.is_alive():
        raise CallTimeoutError(timeout)
    if "error" in outcome:
        raise outcome["error"]
    return outcome["result"]
