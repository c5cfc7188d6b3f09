import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from vidnet.models.account import Account
from vidnet.models.base import utcnow
from vidnet.models.video import Video, render_videos
from vidnet.services.auth import get_current_account
from vidnet.services.media import MediaStorage, get_media_storage
from vidnet.utils.base import SortType, VideoSortField
from vidnet.utils.errors import Forbidden, NotFound, ValidationError
from vidnet.utils.response import api_response, paginated, parse_object_id


logger = logging.getLogger(__name__)

router = APIRouter()


def _get_owned_video(video_id: str, account: Account) -> Video:
    video: Video | None = Video.objects(id=parse_object_id(video_id, "video id")).first()
    if not video:
        raise NotFound("Video not found")
    if video.owner_id != account.id:
        raise Forbidden("You are not the owner of this video")
    return video


@router.get("")
def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    query: str | None = None,
    sort_by: VideoSortField = VideoSortField.CREATED_AT,
    sort_type: SortType = SortType.DESC,
    user_id: str | None = None,
    current_account: Account = Depends(get_current_account),
) -> dict:
    """PROTECTED: Search and page through videos."""
    match: dict = {"is_published": True}
    if user_id:
        owner_id = parse_object_id(user_id, "user id")
        match["owner"] = owner_id
        # Owners browsing their own channel also see drafts
        if owner_id == current_account.id:
            del match["is_published"]
    if query:
        match["title__icontains"] = query

    sign = "+" if sort_type == SortType.ASC else "-"
    videos = Video.objects(**match)
    total = videos.count()
    page_items = list(videos.order_by(f"{sign}{sort_by.value}", f"{sign}id").skip((page - 1) * limit).limit(limit))
    return api_response(paginated(render_videos(page_items), page, limit, total), "Videos fetched successfully")


class PublishBody(BaseModel):
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float = Field(0.0, ge=0)

@router.post("", status_code=201)
def publish_video(body: PublishBody, current_account: Account = Depends(get_current_account)) -> dict:
    """PROTECTED: Publish a video whose media is already on the media host."""
    if not body.title.strip() or not body.description.strip():
        raise ValidationError("Title and description are required")
    if not body.video_file.strip() or not body.thumbnail.strip():
        raise ValidationError("Both video file and thumbnail are required")

    video = Video(
        title=body.title.strip(),
        description=body.description.strip(),
        video_file=body.video_file,
        thumbnail=body.thumbnail,
        duration=body.duration,
        owner=current_account.id,
    ).save()
    logger.info("Account %s published video %s", current_account.id, video.id)
    return api_response(render_videos([video])[0], "Video published successfully", 201)


@router.get("/{video_id}")
def get_video(video_id: str, current_account: Account = Depends(get_current_account)) -> dict:
    """PROTECTED: Fetch a video and record the view in the caller's watch history."""
    oid = parse_object_id(video_id, "video id")
    video: Video | None = Video.objects(id=oid).first()
    if not video or (not video.is_published and video.owner_id != current_account.id):
        raise NotFound("Video not found")

    viewed = Video.objects(id=oid).modify(new=True, inc__views=1)
    history = Account.objects(id=current_account.id)
    # Re-watching moves the video to the end of the history
    history.update_one(pull__watch_history=oid)
    history.update_one(push__watch_history=oid)
    return api_response(render_videos([viewed or video])[0], "Video fetched successfully")


class UpdateVideoBody(BaseModel):
    title: str | None = None
    description: str | None = None
    thumbnail: str | None = None

@router.patch("/{video_id}")
def update_video(
    video_id: str,
    body: UpdateVideoBody,
    current_account: Account = Depends(get_current_account),
    media: MediaStorage = Depends(get_media_storage),
) -> dict:
    """PROTECTED: Edit title, description or thumbnail of an owned video."""
    video = _get_owned_video(video_id, current_account)
    updates = {}
    for field in ("title", "description", "thumbnail"):
        value = getattr(body, field)
        if value is not None:
            if not value.strip():
                raise ValidationError(f"{field} cannot be empty")
            updates[field] = value.strip()
    if not updates:
        raise ValidationError("Nothing to update")

    sets = {f"set__{field}": value for field, value in updates.items()}
    updated = Video.objects(id=video.id).modify(new=True, set__updated_at=utcnow(), **sets)
    if "thumbnail" in updates and updates["thumbnail"] != video.thumbnail:
        media.discard(video.thumbnail)
    return api_response(render_videos([updated])[0], "Video updated successfully")


@router.delete("/{video_id}")
def delete_video(
    video_id: str,
    current_account: Account = Depends(get_current_account),
    media: MediaStorage = Depends(get_media_storage),
) -> dict:
    """PROTECTED: Delete an owned video and its media."""
    video = _get_owned_video(video_id, current_account)
    video.delete()
    Account.objects(watch_history=video.id).update(pull__watch_history=video.id)
    media.discard(video.video_file)
    media.discard(video.thumbnail)
    logger.info("Account %s deleted video %s", current_account.id, video.id)
    return api_response({}, "Video deleted successfully")


@router.patch("/{video_id}/toggle-publish")
def toggle_publish(video_id: str, current_account: Account = Depends(get_current_account)) -> dict:
    """PROTECTED: Flip the published flag of an owned video."""
    video = _get_owned_video(video_id, current_account)
    Video.objects(id=video.id).update_one(set__is_published=not video.is_published, set__updated_at=utcnow())
    return api_response({"is_published": not video.is_published}, "Publish status toggled successfully")
