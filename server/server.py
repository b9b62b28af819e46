from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from batch_executor import BatchExecutor
from config import Settings, settings as default_settings
from document_store import CollectionStore
from errors import (
    ConnectionClosed,
    InvalidDocument,
    InvalidQuery,
    NotFound,
    ParseError,
    ProtocolDesync,
    StoreCommandFailed,
    StoreError,
)
from kv_client import KeyValueClient, get_kv_client
from logging_config import setup_logging
from query_engine import GetParams

PETS = "pets"
USERS = "users"

ERROR_STATUS = [
    (InvalidDocument, 400),
    (InvalidQuery, 400),
    (NotFound, 404),
    (ParseError, 500),
    (StoreCommandFailed, 500),
    (ProtocolDesync, 503),
    (ConnectionClosed, 503),
]

class QueryRequest(BaseModel):
    operator: Optional[str] = None
    field: Optional[str] = None
    value: Optional[Union[str, List[str]]] = None

def split_csv(raw: Optional[str]) -> List[str]:
    """'available, sold,' -> ['available', 'sold']"""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]

def create_app(settings: Optional[Settings] = None, kv_client: Optional[KeyValueClient] = None) -> FastAPI:
    """
    Builds the API around one explicitly owned store connection.
    The lifespan opens the client on startup and closes it on shutdown.
    """
    settings = settings or default_settings
    logger = setup_logging(settings.log_level, settings.log_file)

    if kv_client is None:
        kv_client = get_kv_client(settings.store_type, **settings.kv_client_kwargs())
    store = CollectionStore(BatchExecutor(kv_client))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        kv_client.open()
        logger.info("%s started with %s store", settings.project_name, settings.store_type)
        yield
        kv_client.close()
        logger.warning("%s is down", settings.project_name)

    app = FastAPI(title=settings.project_name, lifespan=lifespan)
    app.state.kv_client = kv_client
    app.state.store = store

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
        return JSONResponse(status_code=status_code, content={"status": "error", "message": str(exc)})

    # Pets

    @app.post("/v2/pet")
    def create_pet(pet: Dict[str, Any]):
        store.insert(PETS, pet)
        return {"status": "success", "message": "Pet created successfully"}

    @app.put("/v2/pet")
    def update_pet(pet: Dict[str, Any]):
        store.update(PETS, pet)
        return {"status": "success", "message": "Pet updated successfully"}

    @app.get("/v2/pet/findByStatus")
    def find_pets_by_status(status: str):
        """Pets whose status is any of the comma separated values."""
        query = {"operator": "eq", "field": "pets:status", "value": split_csv(status)}
        return store.query.find(PETS, query)

    @app.get("/v2/pet/findByTags")
    def find_pets_by_tags(tags: str):
        """Pets carrying any of the comma separated tag names."""
        query = {"operator": "eq", "field": "pets.tags.name", "value": split_csv(tags)}
        return store.query.find(PETS, query)

    @app.get("/v2/pet/{pet_id}")
    def get_pet(pet_id: str):
        return store.query.find_one(PETS, pet_id)

    @app.delete("/v2/pet/{pet_id}")
    def delete_pet(pet_id: str):
        store.delete(PETS, pet_id)
        return {"status": "success", "message": "Pet deleted successfully"}

    # Users

    @app.post("/v2/user")
    def create_user(user: Dict[str, Any]):
        store.insert(USERS, user)
        return {"status": "success", "message": "User created successfully"}

    @app.put("/v2/user")
    def update_user(user: Dict[str, Any]):
        store.update(USERS, user)
        return {"status": "success", "message": "User updated successfully"}

    @app.get("/v2/user")
    def get_all_users():
        return store.query.find_all(USERS)

    @app.get("/v2/user/{username}")
    def get_users_by_username(username: str):
        query = {"operator": "eq", "field": "users:username", "value": username}
        return store.query.find(USERS, query)

    @app.delete("/v2/user/{username}")
    def delete_user(username: str):
        query = {"operator": "eq", "field": "users:username", "value": username}
        users = store.query.find(USERS, query)
        if not users:
            raise NotFound(f"No user with username {username}")
        for user in users:
            store.delete(USERS, user["id"])
        return {"status": "success", "message": "User deleted successfully", "deleted": len(users)}

    # Generic field query, e.g. {"operator": "eq", "field": "pets:status", "value": ["sold"]}

    @app.post("/v2/query/{collection}")
    def run_query(collection: str, query: QueryRequest, distinct: bool = False):
        return store.query.find(collection, query.model_dump(), GetParams(distinct=distinct))

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
