"""
Run-scoped shared decisions.

One instance is created per orchestration call and passed by reference to
every worker. Both flags are decided at most once; workers that arrive after
a decision see the stored outcome without prompting again.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RunDecisions:
    """Synchronised one-shot flags shared by all targets of a run."""

    def __init__(self, confirm: Optional[Callable[[str], bool]] = None) -> None:
        self._warning_lock = threading.Lock()
        self._fallback_lock = threading.Lock()
        self._confirm = confirm
        self._credential_warning_shown = False
        self._insecure_fallback: Optional[bool] = None

    @property
    def credential_warning_shown(self) -> bool:
        with self._warning_lock:
            return self._credential_warning_shown

    @property
    def insecure_fallback(self) -> Optional[bool]:
        """None until decided, then the operator's answer."""
        with self._fallback_lock:
            return self._insecure_fallback

    def claim_credential_warning(self) -> bool:
        """
        Atomic check-and-set for the credential warning.

        Returns True for exactly one caller per run: the one that should
        emit the warning.
        """
        with self._warning_lock:
            if self._credential_warning_shown:
                return False
            self._credential_warning_shown = True
            return True

    def decide_insecure_fallback(self, message: str) -> bool:
        """
        Ask once per run whether to fall back to a potentially unsecure protocol.

        The fallback lock is held while asking so concurrent callers wait for
        the answer instead of prompting a second time. Without a confirm
        callback, or when the callback raises, the fallback is declined.
        """
        with self._fallback_lock:
            if self._insecure_fallback is None:
                self._insecure_fallback = self._ask(message)
            return self._insecure_fallback

    def _ask(self, message: str) -> bool:
        if self._confirm is None:
            logger.warning("%s Non-interactive run: fallback declined.", message)
            return False
        try:
            accepted = bool(self._confirm(message))
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Fallback confirmation failed (%s): fallback declined for this run",
                           exc or type(exc).__name__)
            return False
        logger.info("Insecure protocol fallback %s for this run", "accepted" if accepted else "declined")
        return accepted
