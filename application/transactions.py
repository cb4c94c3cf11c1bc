from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from domain.errors import BackerError
from domain.repositories import Controller, Transaction

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(controller: Controller, name: str) -> Iterator[Transaction]:
    """
    Run the body of a `with` block inside one transaction.

        with unit_of_work(controller, "fund") as tx:
            player = controller.find_player(player_id, tx)
            ...

    - Commits when the block finishes normally.
    - Rolls back on any exception, including a failed commit, and
      re-raises the original exception unchanged.
    - A rollback that fails is logged; it never replaces the original error.
    """

    tx = controller.begin_transaction()
    try:
        yield tx
        tx.commit()
    except Exception as e:
        if isinstance(e, BackerError):
            logger.warning(f"{name} rejected: {e}")
        else:
            logger.error(f"Transaction failed in {name}: {e}", exc_info=True)
        try:
            tx.rollback()
        except Exception:
            logger.exception(f"Rollback failed in {name}")
        raise
