"""
Shared client instances — Redis, OpenAI.

Lazily tolerant of missing env vars so importing this module is always safe
(even during tests). redis.from_url does not connect until first use.
"""
import logging
import redis

from leadgen.config import REDIS_URL, OPENAI_API_KEY

logger = logging.getLogger('leadgen.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# ── OpenAI ────────────────────────────────────────────────────────────────────
openai_client = None
if OPENAI_API_KEY:
    try:
        from openai import OpenAI
        openai_client = OpenAI(api_key=OPENAI_API_KEY)
        logger.info("OpenAI client initialized successfully")
    except Exception as e:
        logger.error("Error initializing OpenAI client: %s", e)
else:
    logger.warning("OPENAI_API_KEY not set — lead scoring unavailable")
