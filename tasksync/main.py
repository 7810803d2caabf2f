from fastapi import FastAPI
from .routers import sync

app = FastAPI(title="Task Sync API", version="1.0.0")
app.include_router(sync.router)
