"""Write-once store of LLM analyses keyed by (date, scope).

A row whose content no longer parses counts as a miss and may be
overwritten by the next successful generation.
"""

import json
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.analytics import AiAnalysis

logger = logging.getLogger(__name__)


def _parse(row: AiAnalysis) -> dict | None:
    try:
        content = json.loads(row.content)
    except (TypeError, ValueError) as e:
        logger.warning(f"Corrupt cached analysis ignored | date={row.date} | scope={row.scope} | {e}")
        return None
    if not isinstance(content, dict):
        logger.warning(f"Cached analysis is not an object | date={row.date} | scope={row.scope}")
        return None
    return content


class AnalysisCache:
    def __init__(self, db: Session):
        self.db = db

    def get_row(self, date: str, scope: str) -> AiAnalysis | None:
        return (
            self.db.query(AiAnalysis)
            .filter(AiAnalysis.date == date, AiAnalysis.scope == scope)
            .first()
        )

    def get(self, date: str, scope: str) -> dict | None:
        """Parsed analysis, or None on a miss or unparsable content."""
        row = self.get_row(date, scope)
        if row is None:
            return None
        return _parse(row)

    def create_if_absent(
        self,
        date: str,
        scope: str,
        content: dict,
        tokens: int = 0,
        model: str = "",
    ) -> bool:
        """Insert once. Returns False when a readable row already exists.

        An unreadable row for the same key is replaced in place.
        """
        payload = json.dumps(content, ensure_ascii=False)
        existing = self.get_row(date, scope)
        if existing is not None:
            if _parse(existing) is not None:
                return False
            existing.content = payload
            existing.tokens = tokens
            existing.model = model
            self.db.commit()
            logger.info(f"Corrupt cached analysis replaced | date={date} | scope={scope}")
            return True

        self.db.add(AiAnalysis(date=date, scope=scope, content=payload, tokens=tokens, model=model))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Analysis already cached by another writer | date={date} | scope={scope}")
            return False
        return True

    def list_for_date(self, date: str) -> list[AiAnalysis]:
        return (
            self.db.query(AiAnalysis)
            .filter(AiAnalysis.date == date)
            .order_by(AiAnalysis.scope)
            .all()
        )
