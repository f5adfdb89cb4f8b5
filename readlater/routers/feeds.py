from fastapi import APIRouter, HTTPException, status

from ..config import get_crawler_settings
from ..schemas import ReadLaterFeedOut, ReadLaterItemOut
from ..store import find_read_later_items, find_user_id_for_feed_id


router = APIRouter(prefix="/v1/feeds", tags=["feeds"])


@router.get("/{feed_id}/items", response_model=ReadLaterFeedOut)
def list_feed_items(feed_id: str):
    """Return the read-later items of the user owning ``feed_id``.

    The feed id is the unguessable token stored on the user; no session is
    required. Items are those downloaded successfully or given up on.
    """
    user_id = find_user_id_for_feed_id(feed_id)
    if user_id is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Feed {feed_id} not found")
    settings = get_crawler_settings()
    items = find_read_later_items(user_id, settings.max_download_attempts)
    return ReadLaterFeedOut(
        feed_id=feed_id,
        items=[
            ReadLaterItemOut(
                url=item.url,
                successfully_retrieved=item.successfully_retrieved,
                title=item.title,
                byline=item.byline,
                content=item.content,
                content_type=item.content_type,
                retrieval_time=item.retrieval_time,
            )
            for item in items
        ],
    )
