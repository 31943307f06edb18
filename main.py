import logging
import os
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from database import get_store
from queries import build_list_query, search_pipeline, stats_pipeline
from schemas import Comment, CommentCreate, PostCreate

load_dotenv()

PORT = int(os.getenv("PORT", 3000))
HOST = os.getenv("HOST", "0.0.0.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Blog API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def open_store():
    app.state.client = await database.connect()
    app.state.posts = database.posts_collection(app.state.client)


@app.on_event("shutdown")
async def close_store():
    client = getattr(app.state, "client", None)
    if client is not None:
        database.disconnect(client)


# Helpers

def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id")


def serialize(doc):
    if isinstance(doc, list):
        return [serialize(d) for d in doc]
    if not isinstance(doc, dict):
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            # stored dates are UTC
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            d[k] = v.isoformat()
        elif isinstance(v, (list, dict)):
            d[k] = serialize(v)
    return d


def validation_message(errors) -> str:
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        field = ".".join(loc) or "body"
        parts.append(f"{field}: {err.get('msg')}")
    return "Validation failed: " + ", ".join(parts)


# Error envelope

@app.exception_handler(RequestValidationError)
async def on_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": validation_message(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def on_http_error(request: Request, exc: StarletteHTTPException):
    # a missing document is reported as a message, everything else as an error
    key = "message" if exc.status_code == 404 else "error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, key: exc.detail},
    )


@app.exception_handler(PyMongoError)
async def on_store_error(request: Request, exc: PyMongoError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


@app.exception_handler(Exception)
async def on_server_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


@app.get("/")
def read_root():
    return {"message": "Blog API running"}


@app.get("/test")
async def test_database(store: AsyncIOMotorCollection = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "collections": [],
    }
    try:
        response["database_name"] = store.database.name
        response["collections"] = (await store.database.list_collection_names())[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# API Endpoints

@app.post("/api/posts", status_code=201)
async def create_post(payload: PostCreate, store: AsyncIOMotorCollection = Depends(get_store)):
    doc = payload.to_post().to_document()
    result = await store.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.debug("Created post %s", result.inserted_id)
    return {
        "success": True,
        "data": serialize(doc),
        "message": "Post created successfully",
    }


@app.get("/api/posts")
async def list_posts(
    tag: Optional[str] = None,
    published: Optional[str] = None,
    limit: Optional[str] = None,
    store: AsyncIOMotorCollection = Depends(get_store),
):
    query = build_list_query(tag=tag, published=published, limit=limit)
    cursor = store.find(query.filter, sort=query.sort, limit=query.limit)
    posts = await cursor.to_list(length=None)
    return {"success": True, "count": len(posts), "data": serialize(posts)}


@app.get("/api/posts/search")
async def search_posts(q: Optional[str] = None, store: AsyncIOMotorCollection = Depends(get_store)):
    results = await store.aggregate(search_pipeline(q)).to_list(length=None)
    response = {"success": True, "count": len(results), "data": serialize(results)}
    if q is not None:
        response["query"] = q
    return response


@app.get("/api/posts/stats")
async def post_stats(store: AsyncIOMotorCollection = Depends(get_store)):
    rows = await store.aggregate(stats_pipeline()).to_list(length=None)
    stats = {}
    if rows:
        stats = {k: v for k, v in rows[0].items() if k != "_id"}
    return {"success": True, "data": stats}


@app.patch("/api/posts/{post_id}/like")
async def like_post(post_id: str, store: AsyncIOMotorCollection = Depends(get_store)):
    post = await store.find_one_and_update(
        {"_id": to_object_id(post_id)},
        {"$inc": {"likes": 1}},
        projection={"likes": True},
        return_document=ReturnDocument.AFTER,
    )
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    logger.debug("Liked post %s (%s likes)", post_id, post["likes"])
    return {"success": True, "data": {"likes": post["likes"]}}


@app.post("/api/posts/{post_id}/comments")
async def add_comment(
    post_id: str,
    payload: CommentCreate,
    store: AsyncIOMotorCollection = Depends(get_store),
):
    comment = Comment(**payload.model_dump()).to_document()
    post = await store.find_one_and_update(
        {"_id": to_object_id(post_id)},
        {"$push": {"comments": comment}},
        return_document=ReturnDocument.AFTER,
    )
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    logger.debug("Comment %s added to post %s", comment["_id"], post_id)
    saved = next(c for c in post["comments"] if c.get("_id") == comment["_id"])
    return {"success": True, "data": serialize(saved)}


@app.patch("/api/posts/{post_id}/publish")
async def publish_post(post_id: str, store: AsyncIOMotorCollection = Depends(get_store)):
    post = await store.find_one_and_update(
        {"_id": to_object_id(post_id)},
        {"$set": {"published": True}},
        return_document=ReturnDocument.AFTER,
    )
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return {"success": True, "data": serialize(post)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
