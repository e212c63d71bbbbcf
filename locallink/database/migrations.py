import logging
from locallink.database.models import Base
from locallink.config.db import get_engine

logger = logging.getLogger(__name__)

def create_tables():
    """Create all tables if they don't exist"""
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")

def drop_tables():
    """Drop every table owned by the application"""
    Base.metadata.drop_all(bind=get_engine())
