import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


class Config:
    """Flask settings, read from the environment once at import time."""

    SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
    DB_PATH = os.getenv("ORDERFLOW_DB", os.path.join(os.path.dirname(__file__), "orderflow.db"))
    # 'authenticated': any logged-in caller can read an order by id
    # 'participants': only the order's customer, owner, agent or an admin
    ORDER_READ_POLICY = os.getenv("ORDER_READ_POLICY", "authenticated")
    SESSION_MINUTES = int(os.getenv("SESSION_MINUTES", "30"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
