import os

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # dotenv is optional for production, but useful locally


def _csv(value: str | None) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


class Settings:
    APP_NAME = os.environ.get("APP_NAME", "EchoVault")

    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Hosted auth / platform ---
    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
    SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY")
    SUPABASE_JWT_SECRET = os.environ.get("SUPABASE_JWT_SECRET")
    JWT_AUDIENCE = os.environ.get("JWT_AUDIENCE", "authenticated")

    # --- Public links ---
    APP_DOMAIN = os.environ.get("APP_DOMAIN", "echo-vault.app")

    # --- Twilio (WhatsApp) ---
    TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN")
    TWILIO_MESSAGING_SERVICE_SID = os.environ.get("TWILIO_MESSAGING_SERVICE_SID")
    TWILIO_WHATSAPP_NUMBER = os.environ.get("TWILIO_WHATSAPP_NUMBER")

    # --- Telnyx (SMS) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")

    # --- E-mail ---
    SMTP_HOST = os.environ.get("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER", "")
    SMTP_PASS = os.environ.get("SMTP_PASS", "")
    EMAIL_FROM = os.environ.get("EMAIL_FROM", "EchoVault <notifications@echo-vault.app>")

    # --- OpenAI (message enhancer) ---
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = int(os.environ.get("OPENAI_TIMEOUT", "30"))

    # --- Attachments ---
    ATTACHMENTS_S3_BUCKET = os.environ.get("ATTACHMENTS_S3_BUCKET")
    ATTACHMENT_URL_TTL = int(os.environ.get("ATTACHMENT_URL_TTL", "3600"))
    MAX_ATTACHMENT_MB = int(os.environ.get("MAX_ATTACHMENT_MB", "10"))

    # --- Admin ---
    ADMIN_EMAILS = _csv(os.environ.get("ADMIN_EMAILS", "marc.s@seelenbinderconsulting.com"))

    # --- Reminders ---
    STUCK_REMINDER_MINUTES = int(os.environ.get("STUCK_REMINDER_MINUTES", "5"))
    EMERGENCY_EMAIL_ATTEMPTS = int(os.environ.get("EMERGENCY_EMAIL_ATTEMPTS", "3"))

    # Keys the get-app-config function is allowed to expose
    PUBLIC_CONFIG_KEYS = ("TWILIO_WHATSAPP_NUMBER",)


settings = Settings()
