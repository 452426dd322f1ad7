from qdrant_client import QdrantClient
from qdrant_client.http.models import Distance, PayloadSchemaType, VectorParams
from dotenv import load_dotenv
import os

# Load environment from .env
load_dotenv()

QDRANT_URL = os.getenv("QDRANT_URL")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
COLLECTION = os.getenv("MEMORY_COLLECTION", "soulsync_memories")

# all-MiniLM-L6-v2: 384 dimensions
VECTOR_SIZE = int(os.getenv("EMBEDDING_DIMENSION", "384"))

client = QdrantClient(
    url=QDRANT_URL,
    api_key=QDRANT_API_KEY,
)

# Recreate from scratch
if client.collection_exists(COLLECTION):
    client.delete_collection(COLLECTION)
    print(f"Deleted existing: {COLLECTION}")

client.create_collection(
    collection_name=COLLECTION,
    vectors_config=VectorParams(
        size=VECTOR_SIZE,
        distance=Distance.COSINE
    )
)

# Owner filter runs on every query
client.create_payload_index(
    collection_name=COLLECTION,
    field_name="owner_id",
    field_schema=PayloadSchemaType.KEYWORD,
)

# Oldest/newest lookups in stats order by this field
client.create_payload_index(
    collection_name=COLLECTION,
    field_name="created_ts",
    field_schema=PayloadSchemaType.FLOAT,
)
print(f"Created: {COLLECTION} (dim={VECTOR_SIZE}, owner_id and created_ts indexes)")
