from fastapi import APIRouter, Depends

from article_comments.dependencies import ListingParams, get_comment_store, get_requester_id
from article_comments.schemas import CommentContent, CommentEnvelope, ListingEnvelope
from article_comments.services import comment_service
from article_comments.services.comment_store import CommentStore

router = APIRouter(prefix="/api/v1/comment", tags=["comments"])

@router.get("/article/{article_uuid}", response_model=ListingEnvelope)
async def list_article_comments(
    article_uuid: str,
    listing: ListingParams = Depends(),
    store: CommentStore = Depends(get_comment_store),
):
    result = await comment_service.list_article_comments(store, article_uuid, listing.query)
    return {"success": True, "result": result}

@router.get("/comment/{comment_uuid}", response_model=ListingEnvelope)
async def list_comment_replies(
    comment_uuid: str,
    listing: ListingParams = Depends(),
    store: CommentStore = Depends(get_comment_store),
):
    result = await comment_service.list_comment_replies(store, comment_uuid, listing.query)
    return {"success": True, "result": result}

@router.post("/article/{article_uuid}", status_code=201, response_model=CommentEnvelope)
async def create_comment(
    article_uuid: str,
    data: CommentContent,
    store: CommentStore = Depends(get_comment_store),
    requester_id: int | None = Depends(get_requester_id),
):
    result = await comment_service.create_comment(store, article_uuid, data.content, requester_id)
    return {"success": True, "result": result}

@router.put("/{comment_uuid}", response_model=CommentEnvelope)
async def edit_comment(
    comment_uuid: str,
    data: CommentContent,
    store: CommentStore = Depends(get_comment_store),
    requester_id: int | None = Depends(get_requester_id),
):
    result = await comment_service.edit_comment(store, comment_uuid, data.content, requester_id)
    return {"success": True, "result": result}

@router.post("/{comment_uuid}/article/{article_uuid}", status_code=201, response_model=CommentEnvelope)
async def reply_comment(
    comment_uuid: str,
    article_uuid: str,
    data: CommentContent,
    store: CommentStore = Depends(get_comment_store),
    requester_id: int | None = Depends(get_requester_id),
):
    result = await comment_service.reply_comment(
        store, comment_uuid, article_uuid, data.content, requester_id
    )
    return {"success": True, "result": result}

@router.delete("/{comment_uuid}", response_model=CommentEnvelope)
async def delete_comment(
    comment_uuid: str,
    store: CommentStore = Depends(get_comment_store),
    requester_id: int | None = Depends(get_requester_id),
):
    result = await comment_service.delete_comment(store, comment_uuid, requester_id)
    return {"success": True, "result": result}
