# teamkb/config.py
import os
from dotenv import load_dotenv
load_dotenv()

DB_DSN = os.getenv("DATABASE_URL")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ROOT_PATH = os.getenv("ROOT_PATH", "")

# Search: "substring" (default) or "embedding"
SEARCH_MATCHER = os.getenv("SEARCH_MATCHER", "substring").lower()
SEARCH_LIMIT = int(os.getenv("SEARCH_LIMIT", "5"))
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.7"))

EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIMENSIONS = int(os.getenv("EMBEDDING_DIMENSIONS", "1536"))
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# Off by default: any authenticated caller may update/delete any article.
ENFORCE_MUTATION_SCOPE = os.getenv("ENFORCE_MUTATION_SCOPE", "false").lower() in ("1", "true", "yes")

# JWT settings with development defaults
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-insecure-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
