import os
from dotenv import load_dotenv

# Load environment-specific configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

if ENVIRONMENT == "development":
    load_dotenv(".env.development")
elif ENVIRONMENT == "production":
    load_dotenv(".env.production")
else:
    load_dotenv()  # Fallback to default .env

# Database settings - "supabase" in deployed environments, "memory" for local runs and tests
DATABASE_PROVIDER = os.getenv("DATABASE_PROVIDER", "supabase")

# Supabase settings
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

# Storage buckets
AVATARS_BUCKET = "avatars"
ATTACHMENTS_BUCKET = "attachments"
STORAGE_BUCKETS = (AVATARS_BUCKET, ATTACHMENTS_BUCKET)
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))

# Google Gemini settings
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")

# OpenAI settings
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# AI responder identity (fixed system user that authors AI comments)
AI_USER_ID = os.getenv("AI_USER_ID", "00000000-0000-0000-0000-000000000001")
AI_USER_DISPLAY_NAME = os.getenv("AI_USER_DISPLAY_NAME", "AI Asistan")
AI_USER_BIO = "Sınav sorularınıza AI destekli yanıtlar veren asistan."

# Outbound request settings
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))

# Shared secret the database webhook sends in X-Webhook-Secret; events are refused while unset
REALTIME_WEBHOOK_SECRET = os.getenv("REALTIME_WEBHOOK_SECRET", "")

# Feed / notification query settings
NOTIFICATIONS_LIMIT = int(os.getenv("NOTIFICATIONS_LIMIT", "50"))

# HTTP settings
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]

# Debug mode - logs request/response bodies
DEBUG_MODE = os.getenv("DEBUG_MODE", "False").lower() == "true"

# Testing settings
RUN_REAL_API_TESTS = os.getenv("RUN_REAL_API_TESTS", "False").lower() == "true"
