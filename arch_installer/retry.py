from __future__ import annotations

import logging
from typing import Callable, Tuple, Type, TypeVar

from .errors import ExternalCommandFailed
from .prompt import Prompter

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_or_abort(
    prompter: Prompter,
    action: Callable[[], T],
    *,
    question: str,
    retry_on: Tuple[Type[BaseException], ...] = (ExternalCommandFailed,),
) -> T:
    """Run `action` until it succeeds or the operator gives up.

    On a `retry_on` failure the error is reported and the operator is asked
    `question`. "yes" runs the whole action again (including any questions
    it asks); "no" re-raises the failure, which aborts the run. There is no
    attempt limit.
    """

    attempt = 1
    while True:
        try:
            return action()
        except retry_on as e:
            logger.warning("Attempt %d failed: %s", attempt, e)
            prompter.report_error(str(e))
            if not prompter.ask_yes_no(question):
                logger.error("Operator declined to retry")
                raise
            attempt += 1


def continue_or_abort(prompter: Prompter, action: Callable[[], None], *, question: str) -> bool:
    """Run `action`; on command failure let the operator accept it and carry on.

    Returns True when the action succeeded, False when the failure was accepted.
    """

    try:
        action()
        return True
    except ExternalCommandFailed as e:
        logger.warning("Command failed: %s", e)
        if not prompter.ask_yes_no(f"{e}. {question}"):
            raise
        logger.info("Operator chose to continue despite: %s", e)
        return False
