"""
Demo application serving a spec router from FastAPI.

Run with:
    SPEC_ROUTER_LOG_LEVEL=debug python examples/demo_app.py
"""

import os
from datetime import date
from typing import List

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field
from typing_extensions import Annotated, NotRequired

from spec_router import Router, load_settings
from spec_router.app_logging import configure_from_settings

settings = load_settings(os.getenv("SPEC_ROUTER_CONFIG"))
logger = configure_from_settings(settings)


class PersonIn(BaseModel):
    name: str = Field(min_length=1)
    birthday: date
    tags: List[str] = []


class PersonOut(PersonIn):
    id: int


people = {}

router = Router(settings=settings)


def list_people(ctx):
    limit = ctx.request.query.get("limit", 20)
    ctx.body = list(people.values())[:limit]


def create_person(ctx):
    person = dict(ctx.request.body, id=len(people) + 1)
    people[person["id"]] = person
    ctx.status = 201
    ctx.body = person


def show_person(ctx):
    person = people.get(ctx.params["id"])
    if person is None:
        ctx.throw(404, f"person {ctx.params['id']} not found")
    ctx.body = person


async def upload_avatar(ctx):
    stored = []
    async for part in ctx.request.parts:
        stored.append({"filename": part.filename, "size": len(await part.read())})
    ctx.body = {"person": ctx.params["id"], "files": stored}


router.get(
    "/people",
    {"validate": {"query": {"limit": NotRequired[Annotated[int, Field(ge=1, le=100)]]}}},
    list_people,
)
router.post(
    "/people",
    {
        "validate": {
            "type": "json",
            "body": PersonIn,
            "output": {"201": {"body": PersonOut}, "400-599": {"body": dict}},
        },
        "meta": {"desc": "Create a person"},
    },
    create_person,
)
router.get(
    "/people/:id",
    {"validate": {"params": {"id": int}, "output": {"200": {"body": PersonOut}}}},
    show_person,
)
router.post(
    "/people/:id/avatar",
    {"validate": {"type": "multipart", "params": {"id": int}}},
    upload_avatar,
)

# FastAPI app configuration
app = FastAPI(
    title="Spec Router Demo",
    description="People API validated by spec routes",
    version="1.0.0",
)


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.mount("/api", router.middleware())

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
