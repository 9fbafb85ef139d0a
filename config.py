import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    # Supabase
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_KEY = os.getenv('SUPABASE_KEY')
    SUPABASE_ANON_KEY = os.getenv('SUPABASE_ANON_KEY') or os.getenv('SUPABASE_KEY')

    # Flask
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY', 'your-secret-key-change-this-in-production')
    PORT = int(os.getenv('PORT', 5555))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Ledger and passbook
    APP_TIMEZONE = os.getenv('APP_TIMEZONE', 'Africa/Lagos')
    CHARGE_STRATEGY = os.getenv('CHARGE_STRATEGY', 'month_bucket_first_deposit')
    PASSBOOK_MONTHS = int(os.getenv('PASSBOOK_MONTHS', 3))
    PAGE_SIZE = int(os.getenv('PAGE_SIZE', 10))
    MEMBER_EMAIL_DOMAIN = os.getenv('MEMBER_EMAIL_DOMAIN', 'adashi.local')
