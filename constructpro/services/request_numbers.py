import json
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from constructpro.core.config import settings
from constructpro.models.sequence import MaterialRequestSequence

logger = logging.getLogger("constructpro.materials")

MATERIAL_REQUEST_SEQUENCE = "material_request"


def _locked_counter(db: Session, name: str) -> MaterialRequestSequence | None:
    return db.execute(
        select(MaterialRequestSequence)
        .where(MaterialRequestSequence.name == name)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def next_sequence_value(db: Session, name: str = MATERIAL_REQUEST_SEQUENCE) -> int:
    """Allocate the next value of a named counter inside the caller's transaction.

    The counter row stays locked until commit, so concurrent allocations queue
    behind each other; a rollback hands the value back.
    """
    counter = _locked_counter(db, name)
    if counter is None:
        savepoint = db.begin_nested()
        try:
            counter = MaterialRequestSequence(name=name, current_value=1)
            db.add(counter)
            db.flush()
            savepoint.commit()
            return 1
        except IntegrityError:
            savepoint.rollback()
            logger.info(json.dumps({"event": "sequence_counter_race_retry", "sequence": name}))
            counter = _locked_counter(db, name)
            if counter is None:
                raise

    counter.current_value += 1
    db.flush()
    return counter.current_value


def format_request_number(value: int) -> str:
    width = settings.material_request_number_width
    return f"{settings.material_request_number_prefix}-{value:0{width}d}"


def next_request_number(db: Session) -> str:
    return format_request_number(next_sequence_value(db))
