"""Database and application configuration."""
import os

DATABASE_CONFIG = {
    'host': os.getenv('DB_HOST', 'localhost'),
    'port': os.getenv('DB_PORT', '5432'),
    'database': os.getenv('DB_NAME', 'klaverjas'),
    'user': os.getenv('DB_USER', os.getenv('USER', 'postgres')),
    'password': os.getenv('DB_PASSWORD', ''),
}

# "memory" keeps all lobbies in process, "postgres" uses DATABASE_CONFIG
STORE_BACKEND = os.getenv('KLAVERJAS_STORE', 'memory')

# Per-lobby action logs; empty disables them
LOGS_DIR = os.getenv('KLAVERJAS_LOGS_DIR', '')

# When off, illegal cards are accepted and can only be caught by calling verzaakt
ENFORCE_LEGAL_MOVES = os.getenv('KLAVERJAS_ENFORCE_LEGAL_MOVES', '1') not in ('0', 'false', 'no')

TOTAL_ROUNDS = int(os.getenv('KLAVERJAS_TOTAL_ROUNDS', '16'))

LOBBY_MAX_AGE_DAYS = int(os.getenv('KLAVERJAS_LOBBY_MAX_AGE_DAYS', '30'))

FLASK_HOST = os.getenv('FLASK_HOST', '127.0.0.1')
FLASK_PORT = int(os.getenv('FLASK_PORT', '3000'))


def get_database_url():
    """Get PostgreSQL connection URL."""
    c = DATABASE_CONFIG
    return f"postgresql://{c['user']}:{c['password']}@{c['host']}:{c['port']}/{c['database']}"
