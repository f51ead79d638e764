import uuid
from typing import Iterable

from starlette.requests import HTTPConnection

from flexbase.db.models.post import Post
from flexbase.db.models.user import User
from flexbase.schemas import CommentOut
from flexbase.services.connection_manager import ConnectionManager


class NotificationService:
    """Maps domain events onto socket rooms.

    Delivery is best effort: the stored likes, comments and follows stay the
    source of truth and clients reload them on reconnect.
    """

    def __init__(self, manager: ConnectionManager = None):
        self.manager = manager or ConnectionManager()

    async def new_post(self, author: User, post: Post, follower_ids: Iterable[uuid.UUID]) -> int:
        payload = {
            "type": "new_post",
            "user": author.username,
            "userId": author.id,
            "postId": post.id,
            "message": f"{author.username} posted a new item",
        }
        delivered = 0
        for follower_id in follower_ids:
            delivered += await self.manager.emit(self.manager.user_room(follower_id), "new_post", payload)
        return delivered

    async def post_liked(self, post: Post, actor: User, is_liked: bool, total_likes: int) -> None:
        await self.manager.emit(self.manager.post_room(post.id), "post_like", {
            "postId": post.id,
            "userId": actor.id,
            "username": actor.username,
            "isLiked": is_liked,
            "totalLikes": total_likes,
        })

        if is_liked and post.owner_id != actor.id:
            await self.manager.emit(self.manager.user_room(post.owner_id), "notification", {
                "type": "like",
                "user": actor.username,
                "userId": actor.id,
                "postId": post.id,
                "message": f"{actor.username} liked your post",
            })

    async def post_commented(self, post: Post, actor: User, comment: CommentOut, total_comments: int) -> None:
        await self.manager.emit(self.manager.post_room(post.id), "post_comment", {
            "postId": post.id,
            "comment": comment.model_dump(mode="json", by_alias=True),
            "totalComments": total_comments,
        })

        if post.owner_id != actor.id:
            await self.manager.emit(self.manager.user_room(post.owner_id), "notification", {
                "type": "comment",
                "user": actor.username,
                "userId": actor.id,
                "postId": post.id,
                "message": f"{actor.username} commented on your post",
            })

    async def followed(self, follower: User, followee: User) -> None:
        await self.manager.emit(self.manager.user_room(followee.id), "notification", {
            "type": "follow",
            "user": follower.username,
            "userId": follower.id,
            "message": f"{follower.username} started following you",
        })


def get_notifier(connection: HTTPConnection) -> NotificationService:
    return connection.app.state.notifier
