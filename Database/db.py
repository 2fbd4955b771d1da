'''
This file contains the database configuration for the SportsBook API.
'''
from typing import Optional

from supabase import create_client, Client

from settings import Settings, load_settings

USERS_TABLE_NAME = "users"
FACILITIES_TABLE_NAME = "facilities"
TRAINERS_TABLE_NAME = "trainers"
ATHLETES_TABLE_NAME = "athletes"
BOOKINGS_TABLE_NAME = "bookings"
FINANCIAL_AID_TABLE_NAME = "financial_aid_applications"
DONATIONS_TABLE_NAME = "donations"


class SportsBookDB:
    """Database Client"""

    # private interface
    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or load_settings()
        url: Optional[str] = settings.supabase_url
        key: Optional[str] = settings.supabase_key
        if url is None or key is None:
            raise ValueError("Database URL or Key not found in environment variables.")
        self.client: Client = create_client(url, key)


if __name__ == "__main__":
    db_conn = SportsBookDB()

    _ = db_conn.client.table(USERS_TABLE_NAME).select("id").limit(1).execute()
    print(_)
