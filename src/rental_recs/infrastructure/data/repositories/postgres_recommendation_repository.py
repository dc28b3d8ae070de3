import json
from datetime import datetime
from typing import Any, Dict, List, Sequence

from asyncpg import Pool

from ....domain.entities.recommendation import PersistedRecommendation, RecommendationAction
from ....domain.repositories.recommendation_repository import RecommendationRepository
from .postgres_base import PostgresRepository, measure_performance, retry_on_db_error


SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS property_recommendations (
        id BIGSERIAL PRIMARY KEY,
        user_id BIGINT NOT NULL,
        property_id BIGINT NOT NULL,
        score NUMERIC(5, 2) NOT NULL,
        reason TEXT NOT NULL,
        factors JSONB NOT NULL DEFAULT '{}'::jsonb,
        shown BOOLEAN NOT NULL DEFAULT FALSE,
        clicked BOOLEAN NOT NULL DEFAULT FALSE,
        booked BOOLEAN NOT NULL DEFAULT FALSE,
        valid_until TIMESTAMPTZ NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (user_id, property_id)
    );
    CREATE INDEX IF NOT EXISTS idx_property_recommendations_user_valid
        ON property_recommendations (user_id, valid_until);
    CREATE INDEX IF NOT EXISTS idx_property_recommendations_score
        ON property_recommendations (score DESC);
"""

# Whitelisted flag columns, interpolated into UPDATE statements
_ACTION_COLUMNS = {
    RecommendationAction.SHOWN: "shown",
    RecommendationAction.CLICKED: "clicked",
    RecommendationAction.BOOKED: "booked",
}


class PostgresRecommendationRepository(PostgresRepository, RecommendationRepository):
    """asyncpg-backed store for computed recommendations"""

    def __init__(self, connection_pool: Pool, connection_timeout: float = 30.0):
        super().__init__(connection_pool, connection_timeout)

    async def ensure_schema(self):
        async with self.get_connection() as conn:
            await conn.execute(SCHEMA_SQL)
        self.logger.info("Recommendation store schema ensured")

    @retry_on_db_error()
    @measure_performance("delete_expired_recommendations")
    async def delete_expired(self, user_id: int, now: datetime) -> int:
        async with self.get_connection() as conn:
            result = await conn.execute(
                "DELETE FROM property_recommendations WHERE user_id = $1 AND valid_until < $2",
                user_id, now
            )
            return self._affected_rows(result)

    @retry_on_db_error()
    @measure_performance("upsert_recommendations")
    async def upsert_many(self, recommendations: Sequence[PersistedRecommendation]) -> int:
        if not recommendations:
            return 0

        query = """
            INSERT INTO property_recommendations (
                user_id, property_id, score, reason, factors, valid_until
            ) VALUES ($1, $2, $3, $4, $5::jsonb, $6)
            ON CONFLICT (user_id, property_id) DO UPDATE SET
                score = EXCLUDED.score,
                reason = EXCLUDED.reason,
                factors = EXCLUDED.factors,
                valid_until = EXCLUDED.valid_until,
                updated_at = NOW()
        """
        records = [
            (
                rec.user_id,
                rec.property_id,
                rec.score,
                rec.reason,
                json.dumps(rec.factors),
                rec.valid_until
            )
            for rec in recommendations
        ]
        async with self.get_connection() as conn:
            async with conn.transaction():
                await conn.executemany(query, records)
        return len(records)

    @retry_on_db_error()
    @measure_performance("get_valid_recommendations")
    async def get_valid(self, user_id: int, now: datetime,
                        limit: int = 20) -> List[PersistedRecommendation]:
        query = """
            SELECT user_id, property_id, score, reason, factors, valid_until,
                   shown, clicked, booked
            FROM property_recommendations
            WHERE user_id = $1 AND valid_until > $2
            ORDER BY score DESC, property_id
            LIMIT $3
        """
        async with self.get_connection() as conn:
            rows = await conn.fetch(query, user_id, now, limit)
            return [self._row_to_recommendation(row) for row in rows]

    @retry_on_db_error()
    @measure_performance("mark_recommendation_action")
    async def mark_action(self, user_id: int, property_id: int,
                          action: RecommendationAction) -> bool:
        column = _ACTION_COLUMNS[RecommendationAction(action)]
        query = f"""
            UPDATE property_recommendations
            SET {column} = TRUE, updated_at = NOW()
            WHERE user_id = $1 AND property_id = $2
        """
        async with self.get_connection() as conn:
            result = await conn.execute(query, user_id, property_id)
            return self._affected_rows(result) > 0

    @retry_on_db_error()
    @measure_performance("get_recommendation_counts")
    async def get_counts(self, now: datetime) -> Dict[str, Any]:
        totals_query = """
            SELECT COUNT(*) AS total,
                   COUNT(*) FILTER (WHERE valid_until > $1) AS active,
                   COUNT(*) FILTER (WHERE shown) AS shown,
                   COUNT(*) FILTER (WHERE clicked) AS clicked,
                   COUNT(*) FILTER (WHERE booked) AS booked,
                   AVG(score) AS average_score
            FROM property_recommendations
        """
        reasons_query = """
            SELECT reason, COUNT(*) AS count
            FROM property_recommendations
            WHERE booked
            GROUP BY reason
        """
        async with self.get_connection() as conn:
            totals = await conn.fetchrow(totals_query, now)
            reason_rows = await conn.fetch(reasons_query)

        average_score = totals['average_score']
        return {
            "total": totals['total'],
            "active": totals['active'],
            "shown": totals['shown'],
            "clicked": totals['clicked'],
            "booked": totals['booked'],
            "average_score": float(average_score) if average_score is not None else None,
            "booked_reason_counts": {row['reason']: row['count'] for row in reason_rows}
        }

    def _row_to_recommendation(self, row) -> PersistedRecommendation:
        factors = row['factors']
        if isinstance(factors, str):
            factors = json.loads(factors)
        return PersistedRecommendation(
            user_id=row['user_id'],
            property_id=row['property_id'],
            score=float(row['score']),
            reason=row['reason'],
            factors=factors or {},
            valid_until=row['valid_until'],
            shown=row['shown'],
            clicked=row['clicked'],
            booked=row['booked']
        )

    @staticmethod
    def _affected_rows(status: str) -> int:
        # asyncpg returns command tags such as "DELETE 3"
        try:
            return int(status.split()[-1])
        except (AttributeError, IndexError, ValueError):
            return 0
