import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Token signing secret. When unset it is read from (or created in) TOKEN_SECRET_FILE.
    TOKEN_SECRET = os.environ.get('TOKEN_SECRET')
    TOKEN_SECRET_FILE = os.environ.get('TOKEN_SECRET_FILE') or '.secret'
    # Card catalog (one random card per request)
    CARD_API_URL = os.environ.get('CARD_API_URL') or 'https://db.ygoprodeck.com/api/v7/randomcard.php'
    CARD_FETCH_TIMEOUT_SEC = float(os.environ.get('CARD_FETCH_TIMEOUT_SEC', '5'))
    CARD_FETCH_RETRIES = int(os.environ.get('CARD_FETCH_RETRIES', '2'))
    # Audiences can be large; this is the per-session, per-event listener ceiling
    MAX_LISTENERS_PER_SESSION = int(os.environ.get('MAX_LISTENERS_PER_SESSION', '100000'))
    # Attempts at drawing an unused 4-character join code before giving up
    JOIN_CODE_MAX_ATTEMPTS = int(os.environ.get('JOIN_CODE_MAX_ATTEMPTS', '50'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
