# Request dependencies for the app-owned state

from fastapi import FastAPI, Request

from slot_telemetry.core.storage import StateStorage, load_state_or_empty
from slot_telemetry.services.event_store import EventStore
from slot_telemetry.services.ingestion import IngestionService


def attach_state(app: FastAPI, store: EventStore, storage: StateStorage) -> None:
    """
    Give the app ownership of the event store for its lifetime.

    Previously persisted state is loaded into the store; failures fall
    back to an empty store.
    """
    store.restore(load_state_or_empty(storage))
    app.state.store = store
    app.state.storage = storage
    app.state.ingestion = IngestionService(store, storage)


def get_store(request: Request) -> EventStore:
    return request.app.state.store


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion
