"""Check MongoDB connectivity using the project's settings.

Usage:
  python scripts/check_mongo_connection.py

Prints the effective database, tries to connect and reports how many readings
are stored, or shows a clear error.
"""
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from meter_app.core.config import settings
from meter_app.core.database import _get_db_name_from_uri

uri = settings.get_mongo_uri()
db_name = _get_db_name_from_uri(uri)
print("Effective database:", db_name)

try:
    client = MongoClient(uri, serverSelectionTimeoutMS=5000)
    info = client.server_info()
    print("MongoDB server info:", {k: info.get(k) for k in ("version", "gitVersion") if k in info})
    db = client[db_name]
    print("meter_readings:", db.meter_readings.estimated_document_count())
    print("pending (placeholder) readings:", db.meter_readings.count_documents({"meter_value": 0}))
    client.close()
except PyMongoError as e:
    print("Failed to connect to MongoDB:\n", e)
    print("Suggested checks:\n - Is MONGODB_URL in .env correct?\n - Is your network/VPN blocking outbound connections to MongoDB Atlas?\n - Does MongoDB Atlas allow your IP in Project Network Access (IP whitelist)?")
