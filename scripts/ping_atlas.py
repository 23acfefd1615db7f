import os
from pymongo.mongo_client import MongoClient
from pymongo.server_api import ServerApi
from dotenv import load_dotenv

load_dotenv()  # reads .env in project root
uri = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
db_name = os.getenv("MONGODB_DB", "greencandle")
print("Using URI:", uri[:40] + "...")  # don’t dump whole secret to console

client = MongoClient(uri, server_api=ServerApi("1"))
try:
  client.admin.command("ping")
  db = client[db_name]
  print(f"✅ Pinged your deployment. {db_name}: {db['calls'].estimated_document_count()} calls, "
        f"{db['users'].estimated_document_count()} users")
except Exception as e:
  print("❌ Mongo ping failed:", repr(e))
  raise
finally:
  client.close()
