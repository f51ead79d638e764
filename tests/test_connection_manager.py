from __future__ import annotations

import unittest
import uuid
from types import SimpleNamespace
from typing import Any

from flexbase.services.connection_manager import ConnectionManager
from flexbase.services.notification_service import NotificationService


class FakeSocket:
    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    def events(self, name: str) -> list[dict[str, Any]]:
        return [m["data"] for m in self.sent if m["event"] == name]


class TestConnectionManager(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.manager = ConnectionManager()
        self.user_id = uuid.uuid4()
        self.socket = FakeSocket()
        await self.manager.connect(self.socket, self.user_id)

    async def test_connect_accepts_and_joins_user_room(self) -> None:
        self.assertTrue(self.socket.accepted)
        self.assertEqual(self.manager.rooms_of(self.socket), {f"user_{self.user_id}"})

    async def test_emit_reaches_room_members_only(self) -> None:
        other = FakeSocket()
        await self.manager.connect(other, uuid.uuid4())

        delivered = await self.manager.emit(self.manager.user_room(self.user_id), "notification", {"n": 1})

        self.assertEqual(delivered, 1)
        self.assertEqual(self.socket.sent, [{"event": "notification", "data": {"n": 1}}])
        self.assertEqual(other.sent, [])

    async def test_emit_to_empty_room_is_noop(self) -> None:
        self.assertEqual(await self.manager.emit("post_nobody", "post_like", {}), 0)

    async def test_emit_encodes_uuids(self) -> None:
        post_id = uuid.uuid4()
        await self.manager.emit(self.manager.user_room(self.user_id), "x", {"postId": post_id})
        self.assertEqual(self.socket.sent[0]["data"], {"postId": str(post_id)})

    async def test_join_and_leave_post_room(self) -> None:
        room = self.manager.post_room(uuid.uuid4())
        self.manager.join(self.socket, room)
        self.assertIn(self.socket, self.manager.members(room))

        self.manager.leave(self.socket, room)
        self.assertEqual(self.manager.members(room), set())
        self.assertNotIn(room, self.manager.rooms_of(self.socket))

    async def test_leave_unknown_room_is_harmless(self) -> None:
        self.manager.leave(self.socket, "post_missing")
        self.assertEqual(len(self.manager.rooms_of(self.socket)), 1)

    async def test_disconnect_removes_all_memberships(self) -> None:
        room = self.manager.post_room(uuid.uuid4())
        self.manager.join(self.socket, room)

        self.manager.disconnect(self.socket)

        self.assertEqual(self.manager.rooms_of(self.socket), set())
        self.assertEqual(self.manager.members(room), set())
        self.assertEqual(await self.manager.emit(room, "post_like", {}), 0)

    async def test_failed_send_drops_socket(self) -> None:
        broken = FakeSocket(fail=True)
        await self.manager.connect(broken, self.user_id)

        with self.assertLogs("flexbase.services.connection_manager", level="WARNING"):
            delivered = await self.manager.emit(self.manager.user_room(self.user_id), "notification", {})

        self.assertEqual(delivered, 1)
        self.assertEqual(self.manager.rooms_of(broken), set())
        self.assertEqual(self.manager.members(self.manager.user_room(self.user_id)), {self.socket})


class TestNotificationService(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.notifier = NotificationService()
        self.owner = SimpleNamespace(id=uuid.uuid4(), username="alice")
        self.fan = SimpleNamespace(id=uuid.uuid4(), username="bob")
        self.post = SimpleNamespace(id=uuid.uuid4(), owner_id=self.owner.id)

        self.owner_socket = FakeSocket()
        self.watcher = FakeSocket()
        await self.notifier.manager.connect(self.owner_socket, self.owner.id)
        await self.notifier.manager.connect(self.watcher, self.fan.id)
        self.notifier.manager.join(self.watcher, self.notifier.manager.post_room(self.post.id))

    async def test_like_broadcasts_and_notifies_owner(self) -> None:
        await self.notifier.post_liked(self.post, self.fan, True, 1)

        [broadcast] = self.watcher.events("post_like")
        self.assertEqual(broadcast["totalLikes"], 1)
        self.assertTrue(broadcast["isLiked"])

        [note] = self.owner_socket.events("notification")
        self.assertEqual(note["type"], "like")
        self.assertEqual(note["message"], "bob liked your post")

    async def test_unlike_broadcasts_without_notification(self) -> None:
        await self.notifier.post_liked(self.post, self.fan, False, 0)

        self.assertEqual(len(self.watcher.events("post_like")), 1)
        self.assertEqual(self.owner_socket.events("notification"), [])

    async def test_self_like_does_not_notify(self) -> None:
        await self.notifier.post_liked(self.post, self.owner, True, 1)
        self.assertEqual(self.owner_socket.events("notification"), [])

    async def test_follow_notifies_followee(self) -> None:
        await self.notifier.followed(self.fan, self.owner)

        [note] = self.owner_socket.events("notification")
        self.assertEqual(note["type"], "follow")
        self.assertEqual(note["userId"], str(self.fan.id))
        self.assertEqual(note["message"], "bob started following you")

    async def test_new_post_reaches_each_follower(self) -> None:
        delivered = await self.notifier.new_post(self.owner, self.post, [self.fan.id, uuid.uuid4()])

        self.assertEqual(delivered, 1)
        [note] = self.watcher.events("new_post")
        self.assertEqual(note["message"], "alice posted a new item")


if __name__ == "__main__":
    unittest.main()
