from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from dotenv import load_dotenv
import os
import logging
from pathlib import Path
from contextlib import asynccontextmanager

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)

# Pending creator signups are purged by MongoDB this long after creation
ONBOARDING_TTL_SECONDS = 60 * 60 * 6

def _db_name() -> str:
    return os.environ.get('DB_NAME', 'valoris')

class Database:
    """Process-wide Mongo handle. Connected once by the app lifespan, closed on shutdown."""
    client: AsyncIOMotorClient = None
    db = None
    
    async def connect(self):
        if self.db is not None:
            return
        try:
            mongo_url = os.environ['MONGO_URL']
            self.client = AsyncIOMotorClient(mongo_url, tz_aware=True)
            self.db = self.client[_db_name()]
            # Verify connection
            await self.db.command("ping")
            logger.info(f"Connected to MongoDB: {_db_name()}")
            
            await self._create_indexes()
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            self.client = None
            self.db = None
            raise
    
    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")
        self.client = None
        self.db = None
    
    def get_db(self):
        if self.db is None:
            raise RuntimeError("Database not connected")
        return self.db
    
    async def _create_indexes(self):
        """Create MongoDB indexes; unique ones back the idempotency guarantees."""
        await create_indexes(self.db)

async def create_indexes(db):
    try:
        # Identity store - unique email makes duplicate provisioning fail fast
        await db.users.create_index("user_id", unique=True)
        await db.users.create_index("email", unique=True)
        
        # Onboarding ledger - TTL on created_at (must be a BSON date)
        await db.onboarding_sessions.create_index("onboarding_id", unique=True)
        await db.onboarding_sessions.create_index("email")
        await db.onboarding_sessions.create_index(
            "created_at", expireAfterSeconds=ONBOARDING_TTL_SECONDS
        )
        
        await db.valuations.create_index("valuation_id", unique=True)
        await db.valuations.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        
        await db.extra_services.create_index("extra_id", unique=True)
        await db.extra_services.create_index([("valuation_id", ASCENDING), ("created_at", ASCENDING)])
        await db.extra_services.create_index([("updated_at", DESCENDING)])
        
        # One running offer per (valuation, user)
        await db.offers.create_index("offer_id", unique=True)
        await db.offers.create_index(
            [("valuation_id", ASCENDING), ("user_id", ASCENDING)], unique=True
        )
        
        await db.audit_logs.create_index([("action", ASCENDING), ("timestamp", DESCENDING)])
        await db.audit_logs.create_index("timestamp")
        logger.info("MongoDB indexes created/verified")
    except Exception as e:
        # Indexes may already exist with different options, log but don't fail
        logger.warning(f"Index creation note: {e}")

# Global database instance
database = Database()

def get_db():
    """FastAPI dependency returning the connected database handle."""
    return database.get_db()

@asynccontextmanager
async def get_db_context():
    """Context manager for standalone scripts to access the database.
    
    Usage in scripts:
        async with get_db_context() as db:
            await db.users.find_one(...)
    """
    client = None
    try:
        client = AsyncIOMotorClient(os.environ["MONGO_URL"], tz_aware=True)
        db = client[_db_name()]
        await db.command("ping")
        logger.info(f"Script connected to MongoDB: {_db_name()}")
        yield db
    finally:
        if client:
            client.close()
            logger.info("Script MongoDB connection closed")
