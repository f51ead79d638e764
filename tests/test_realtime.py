from __future__ import annotations

import unittest

from starlette.websockets import WebSocketDisconnect

from tests.helpers import ApiTestCase


class TestRealtime(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.alice = self.register("alice")
        self.bob = self.register("bob")

    def connect(self, account):
        return self.client.websocket_connect(f"/ws?token={account.token}")

    @staticmethod
    def sync(ws) -> None:
        # Frames are handled in order, so a pong means earlier frames were applied.
        ws.send_json({"event": "ping"})
        assert ws.receive_json() == {"event": "pong"}

    def test_rejects_missing_token(self) -> None:
        with self.assertRaises(WebSocketDisconnect) as ctx:
            with self.client.websocket_connect("/ws"):
                pass
        self.assertEqual(ctx.exception.code, 1008)

    def test_rejects_invalid_token(self) -> None:
        with self.assertRaises(WebSocketDisconnect) as ctx:
            with self.client.websocket_connect("/ws?token=garbage"):
                pass
        self.assertEqual(ctx.exception.code, 1008)

    def test_follow_notification(self) -> None:
        with self.connect(self.bob) as ws:
            self.sync(ws)
            self.follow(self.alice, self.bob)

            message = ws.receive_json()
            self.assertEqual(message["event"], "notification")
            self.assertEqual(message["data"]["type"], "follow")
            self.assertEqual(message["data"]["message"], "alice started following you")

    def test_new_post_reaches_followers(self) -> None:
        self.follow(self.bob, self.alice)

        with self.connect(self.bob) as ws:
            self.sync(ws)
            post = self.create_post(self.alice)["post"]

            message = ws.receive_json()
            self.assertEqual(message["event"], "new_post")
            self.assertEqual(message["data"]["postId"], post["id"])
            self.assertEqual(message["data"]["user"], "alice")

    def test_post_room_receives_likes_and_comments(self) -> None:
        post = self.create_post(self.alice)["post"]

        with self.connect(self.alice) as ws:
            ws.send_json({"event": "join_post", "postId": post["id"]})
            self.sync(ws)

            self.client.post(f"/api/posts/{post['id']}/like", headers=self.bob.headers)

            broadcast = ws.receive_json()
            self.assertEqual(broadcast["event"], "post_like")
            self.assertEqual(broadcast["data"]["totalLikes"], 1)
            self.assertTrue(broadcast["data"]["isLiked"])

            note = ws.receive_json()
            self.assertEqual(note["event"], "notification")
            self.assertEqual(note["data"]["message"], "bob liked your post")

            self.client.post(f"/api/posts/{post['id']}/comment", json={"text": "fire"}, headers=self.bob.headers)

            broadcast = ws.receive_json()
            self.assertEqual(broadcast["event"], "post_comment")
            self.assertEqual(broadcast["data"]["comment"]["text"], "fire")
            self.assertEqual(broadcast["data"]["totalComments"], 1)

            note = ws.receive_json()
            self.assertEqual(note["data"]["type"], "comment")

    def test_leave_post_stops_broadcasts(self) -> None:
        post = self.create_post(self.alice)["post"]

        with self.connect(self.bob) as ws:
            ws.send_json({"event": "join_post", "postId": post["id"]})
            ws.send_json({"event": "leave_post", "postId": post["id"]})
            self.sync(ws)

            self.client.post(f"/api/posts/{post['id']}/like", headers=self.alice.headers)

            # Nothing was queued for bob, so the next frame is the pong.
            self.sync(ws)

    def test_malformed_frames_are_ignored(self) -> None:
        with self.connect(self.bob) as ws:
            ws.send_text("not json")
            ws.send_json({"event": "join_post", "postId": "nope"})
            ws.send_json({"event": "dance"})
            self.sync(ws)

    def test_binary_frames_are_ignored(self) -> None:
        with self.connect(self.bob) as ws:
            with self.assertLogs("flexbase.routers.realtime", level="WARNING"):
                ws.send_bytes(b"\x00\x01")
                self.sync(ws)

            self.follow(self.alice, self.bob)
            self.assertEqual(ws.receive_json()["data"]["type"], "follow")

    def test_disconnect_leaves_rooms(self) -> None:
        with self.connect(self.bob) as ws:
            self.sync(ws)
            manager = self.notifier.manager
            self.assertEqual(len(manager.members(manager.user_room(self.bob.id))), 1)

        self.assertEqual(manager.members(manager.user_room(self.bob.id)), set())


if __name__ == "__main__":
    unittest.main()
