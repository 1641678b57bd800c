import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fieldjobs.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security (tokens are issued by the auth provider, we only verify them)
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
CRON_SECRET = os.getenv("CRON_SECRET")

# ✅ Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_PRICE_ID_STARTER = os.getenv("STRIPE_PRICE_ID_STARTER")
STRIPE_PRICE_ID_GROWTH = os.getenv("STRIPE_PRICE_ID_GROWTH")
STRIPE_PRICE_ID_PROFESSIONAL = os.getenv("STRIPE_PRICE_ID_PROFESSIONAL")
STRIPE_PRICE_ID_ENTERPRISE = os.getenv("STRIPE_PRICE_ID_ENTERPRISE")

# ✅ Email (SMTP). Without a host, messages are logged instead of sent.
EMAIL_SMTP_HOST = os.getenv("EMAIL_SMTP_HOST")
EMAIL_SMTP_PORT = int(os.getenv("EMAIL_SMTP_PORT", "587"))
EMAIL_SMTP_USERNAME = os.getenv("EMAIL_SMTP_USERNAME")
EMAIL_SMTP_PASSWORD = os.getenv("EMAIL_SMTP_PASSWORD")
EMAIL_SMTP_USE_SSL = os.getenv("EMAIL_SMTP_USE_SSL", "0") == "1"
EMAIL_SMTP_TIMEOUT_SECONDS = int(os.getenv("EMAIL_SMTP_TIMEOUT_SECONDS", "15"))
EMAIL_FROM = os.getenv("EMAIL_FROM", "noreply@field-jobs.co")
EMAIL_REPLY_TO = os.getenv("EMAIL_REPLY_TO", "support@field-jobs.co")
EMAIL_MAX_ATTEMPTS = int(os.getenv("EMAIL_MAX_ATTEMPTS", "3"))

# ✅ App
BASE_URL = os.getenv("BASE_URL", "http://localhost:3000")
RESUME_STORAGE_DIR = os.getenv("RESUME_STORAGE_DIR", "storage/resumes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs") or None  # empty disables the log file
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
