"""
Remote-execution protocol negotiation.

Per target: Unverified -> ProtocolSelected -> Probed{ok|failed} ->
{Confirmed -> Proceed | Declined -> Abandon}. The confirm/decline answer is
taken once per run and reused for every later target.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from autodbinstall.application.install.ports import RemoteCommand, RemoteExecutor, RemoteOperation
from autodbinstall.application.install.run_state import RunDecisions
from autodbinstall.domain.credential import Credential
from autodbinstall.domain.install.models import AuthMethod, Target
from autodbinstall.domain.results import Failure, Result, Success

logger = logging.getLogger(__name__)

PRIVILEGED_PROTOCOL = AuthMethod.CREDSSP
FALLBACK_PROTOCOL = AuthMethod.DEFAULT


class NegotiationState(Enum):
    UNVERIFIED = "unverified"
    PROTOCOL_SELECTED = "protocol_selected"
    PROBED_OK = "probed_ok"
    PROBED_FAILED = "probed_failed"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


@dataclass
class Negotiation:
    """Outcome of negotiation for one target."""

    target: Target
    protocol: AuthMethod
    state: NegotiationState = NegotiationState.UNVERIFIED
    history: list[NegotiationState] = field(default_factory=list)

    def move(self, state: NegotiationState) -> None:
        self.history.append(state)
        self.state = state


def select_protocol(credential: Optional[Credential], preferred: Optional[AuthMethod]) -> AuthMethod:
    """
    Pick the initial protocol.

    CredSSP when explicit credentials are given, so the host can re-present
    them to a media share; the default protocol otherwise.
    """
    if preferred is not None:
        return preferred
    return PRIVILEGED_PROTOCOL if credential is not None else FALLBACK_PROTOCOL


class AuthNegotiator:
    """Selects and verifies a working protocol for each target of a run."""

    def __init__(self, executor: RemoteExecutor, decisions: RunDecisions) -> None:
        self.executor = executor
        self.decisions = decisions
        self._provisioned: set[str] = set()
        self._lock = threading.Lock()

    def negotiate(self, target: Target, credential: Optional[Credential],
                  preferred: Optional[AuthMethod] = None,
                  note: Callable[[str], None] = lambda _msg: None) -> Result[Negotiation, str]:
        """
        Establish a verified protocol for ``target``.

        Recoverable problems (CredSSP provisioning) are reported through
        ``note``. Failure means the target must be abandoned.
        """
        negotiation = Negotiation(target=target, protocol=select_protocol(credential, preferred))
        negotiation.move(NegotiationState.PROTOCOL_SELECTED)
        host = target.fqdn

        if negotiation.protocol == PRIVILEGED_PROTOCOL:
            self._provision(target, credential, note)

        probe = self._probe(host, credential, negotiation.protocol)
        if probe is None:
            negotiation.move(NegotiationState.PROBED_OK)
            logger.info("[%s] Remote execution verified using %s", target.name, negotiation.protocol.value)
            return Success(negotiation)

        negotiation.move(NegotiationState.PROBED_FAILED)
        logger.warning("[%s] Probe using %s failed: %s", target.name, negotiation.protocol.value, probe)

        if negotiation.protocol == FALLBACK_PROTOCOL:
            return Failure(f"Unable to execute commands on {host}: {probe}")

        message = (f"Failed to connect to {host} using {negotiation.protocol.value} authentication. "
                   f"Fall back to {FALLBACK_PROTOCOL.value} authentication for the rest of the run? "
                   "It may be unsecure.")
        if not self.decisions.decide_insecure_fallback(message):
            negotiation.move(NegotiationState.DECLINED)
            return Failure(f"{negotiation.protocol.value} connection to {host} failed and fallback to "
                           f"{FALLBACK_PROTOCOL.value} authentication was declined")

        negotiation.move(NegotiationState.CONFIRMED)
        note(f"Falling back to {FALLBACK_PROTOCOL.value} authentication after "
             f"{negotiation.protocol.value} failed: {probe}")
        negotiation.protocol = FALLBACK_PROTOCOL

        retry = self._probe(host, credential, negotiation.protocol)
        if retry is not None:
            return Failure(f"Unable to execute commands on {host}: {retry}")

        logger.info("[%s] Remote execution verified using %s", target.name, negotiation.protocol.value)
        return Success(negotiation)

    def _provision(self, target: Target, credential: Optional[Credential],
                   note: Callable[[str], None]) -> None:
        """Enable CredSSP on the target once per run; failures are notes only."""
        with self._lock:
            if target.fqdn.lower() in self._provisioned:
                return
            self._provisioned.add(target.fqdn.lower())

        logger.debug("[%s] Configuring CredSSP", target.name)
        command = RemoteCommand(RemoteOperation.ENABLE_CREDSSP, {"client": not target.is_local})
        result = self.executor.exec_remote(target.fqdn, credential, FALLBACK_PROTOCOL, command)
        if not result.success:
            note(f"Failed to configure CredSSP on {target.fqdn}: {result.message}")

    def _probe(self, host: str, credential: Optional[Credential], protocol: AuthMethod) -> Optional[str]:
        """No-op remote call; returns None on success or the failure text."""
        result = self.executor.exec_remote(host, credential, protocol, RemoteCommand(RemoteOperation.PING))
        return None if result.success else result.message
