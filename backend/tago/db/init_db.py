"""
Database initialization script.
"""
from tago.db.session import init_db

# Import all models so SQLAlchemy can register them
from tago.models import (  # noqa: F401
    User, TaxiParty, ChatRoom, ChatMessage,
    Notification, Settlement, SettlementParticipant
)

if __name__ == "__main__":
    print("Initializing database...")
    init_db()
    print("Database initialized successfully!")
