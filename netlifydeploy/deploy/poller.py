"""Poll a deploy until it reaches a lifecycle state."""

import logging
import threading
from typing import Callable, Optional

from netlifydeploy.api.client import NetlifyAPI
from netlifydeploy.api.models import Deploy
from netlifydeploy.errors import DeployCancelledError

log = logging.getLogger(__name__)

STATE_PREPARED = "prepared"
STATE_READY = "ready"
POLL_INTERVAL = 1.0


def wait_for_state(
    api: NetlifyAPI,
    deploy_id: str,
    target: str,
    cancel: Optional[threading.Event] = None,
    interval: float = POLL_INTERVAL,
    on_poll: Optional[Callable[[Deploy], None]] = None,
) -> Deploy:
    """
    Fetch the deploy every interval seconds until its state is target, and return it.
    "ready" is terminal and also ends the wait when another target was requested.
    No timeout: the caller stops a hung wait by setting cancel. Fetch errors propagate.
    """
    cancel = cancel or threading.Event()
    while True:
        if cancel.is_set():
            raise DeployCancelledError(f"Cancelled while waiting for deploy {deploy_id} to be {target}")
        deploy = api.get_deploy(deploy_id)
        log.debug("Deploy %s state=%s (waiting for %s)", deploy_id, deploy.state, target)
        if on_poll:
            on_poll(deploy)
        if deploy.state == target:
            return deploy
        if deploy.state == STATE_READY:
            log.info("Deploy %s is already ready (wanted %s)", deploy_id, target)
            return deploy
        if cancel.wait(interval):
            raise DeployCancelledError(f"Cancelled while waiting for deploy {deploy_id} to be {target}")
