from __future__ import annotations

from typing import TYPE_CHECKING

from werkzeug.local import LocalProxy, LocalStack

if TYPE_CHECKING:
    from postledger.unit_of_work import UnitOfWork


def _find_uow() -> UnitOfWork:
    return _uow_context_stack.top


# context locals
_uow_context_stack = LocalStack()
current_uow: UnitOfWork = LocalProxy(_find_uow)  # type: ignore  # noqa: F821
