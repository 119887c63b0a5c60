import os

# Settings are read once, at import time of the app package.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_app.db")
os.environ.setdefault("PAYTECH_API_KEY", "test-api-key")
os.environ.setdefault("PAYTECH_SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("FRONTEND_URL", "https://jungle.example")
