import sqlalchemy as sa

from app.core.config import settings
from app.core.game import ALL_OPPONENT_MODEL_IDS, ALL_VARIANT_IDS
from app.db.session import build_engine, build_session_factory
from app.models import AiOpponentRating
from app.services.rating_store import DEFAULT_AI_RATINGS


def seed(db) -> int:
    """Insert missing (model, variant) rows; configured ratings are left alone."""
    existing = {
        (r.opponent_model_id, r.variant_id)
        for r in db.execute(sa.select(AiOpponentRating)).scalars().all()
    }
    created = 0
    for model_id in ALL_OPPONENT_MODEL_IDS:
        for variant_id in ALL_VARIANT_IDS:
            if (model_id, variant_id) in existing:
                continue
            db.add(AiOpponentRating(
                opponent_model_id=model_id,
                variant_id=variant_id,
                rating=DEFAULT_AI_RATINGS.get(model_id, settings.AI_DEFAULT_RATING),
                description=f"default rating for {model_id} ({variant_id})",
            ))
            created += 1
    return created


def main():
    engine = build_engine(settings)
    db = build_session_factory(engine)()
    try:
        created = seed(db)
        db.commit()
        print(f"ok: ai_opponent_ratings created={created}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    main()
