from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from app.database import run_in_transaction

T = TypeVar("T")


class BaseService:
    """
    Common plumbing for the service layer: the request-scoped session and
    the unit-of-work runner.
    """

    def __init__(self, db: Session):
        self.db = db

    def transaction(self, work: Callable[[Session], T]) -> T:
        return run_in_transaction(self.db, work)
