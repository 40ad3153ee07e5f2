import socket
import threading
import unittest

from wa_bridge import client, codec, server
from wa_bridge.errors import AcceptError, BindError, ConnectError, UnknownFrameTagError
from wa_bridge.records import ChatIdentity, ContactRecord, GroupRecord, Snapshot


def _snapshot() -> Snapshot:
    return Snapshot(
        contacts=[
            ContactRecord(identity=ChatIdentity.parse("2@s.whatsapp.net"), push_name="bob"),
            ContactRecord(identity=ChatIdentity.parse("1@s.whatsapp.net"), push_name="al", full_name="Alice"),
        ],
        groups=[GroupRecord(identity=ChatIdentity.parse("7@g.us"), name="Team", metadata={"size": 3})],
        complete=True,
    )


class RawLineServer:
    """Listens on loopback and writes canned lines to the first consumer."""

    def __init__(self, lines: list[str | bytes]) -> None:
        self._lines = lines
        self._listener = socket.create_server(("127.0.0.1", 0))
        self.address = self._listener.getsockname()[:2]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self) -> "RawLineServer":
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._thread.join(timeout=2.0)
        self._listener.close()

    def _serve(self) -> None:
        conn, _ = self._listener.accept()
        with conn:
            conn.sendall(b"".join(line if isinstance(line, bytes) else line.encode("utf-8") for line in self._lines))


class TestSnapshotHandoff(unittest.TestCase):
    def test_full_snapshot_over_loopback(self):
        snapshot = _snapshot()
        listener = server.listen(("127.0.0.1", 0))
        address = server.bound_address(listener)
        result: dict[str, int] = {}

        thread = threading.Thread(
            target=lambda: result.setdefault("frames", server.serve_listener(listener, snapshot, 5.0)),
            daemon=True,
        )
        thread.start()
        received = client.fetch_snapshot(address, timeout_s=5.0)
        thread.join(timeout=5.0)

        self.assertTrue(received.complete)
        self.assertEqual(received.contacts, snapshot.contacts)
        self.assertEqual(received.groups, snapshot.groups)
        self.assertEqual(result["frames"], 4)
        self.assertEqual(listener.fileno(), -1)

    def test_partial_snapshot_is_tolerated(self):
        first = ContactRecord(identity=ChatIdentity.parse("1@s.whatsapp.net"), push_name="a")
        second = ContactRecord(identity=ChatIdentity.parse("2@s.whatsapp.net"), push_name="b")
        lines = [codec.encode_contact(first), codec.encode_contact(second)]

        with RawLineServer(lines) as raw:
            with self.assertLogs("wa_bridge.client", level="WARNING") as logs:
                received = client.fetch_snapshot(raw.address, timeout_s=5.0)

        self.assertFalse(received.complete)
        self.assertEqual(received.contacts, [first, second])
        self.assertEqual(received.groups, [])
        self.assertTrue(any("before End" in message for message in logs.output))

    def test_malformed_frame_is_skipped(self):
        good = GroupRecord(identity=ChatIdentity.parse("3@g.us"), name="ok")
        lines = ["SetGroup\\\\{broken\n", codec.encode_group(good), codec.encode_end()]

        with RawLineServer(lines) as raw:
            with self.assertLogs("wa_bridge.client", level="WARNING"):
                received = client.fetch_snapshot(raw.address, timeout_s=5.0)

        self.assertTrue(received.complete)
        self.assertEqual(received.groups, [good])

    def test_invalid_utf8_frame_is_skipped(self):
        good = ContactRecord(identity=ChatIdentity.parse("1@s.whatsapp.net"), push_name="al")
        broken = b'SetContact\\\\{"jid":"2@s.whatsapp.net","push_name":"\xff"}\n'
        lines = [codec.encode_contact(good), broken, codec.encode_end()]

        with RawLineServer(lines) as raw:
            with self.assertLogs("wa_bridge.client", level="WARNING") as logs:
                received = client.fetch_snapshot(raw.address, timeout_s=5.0)

        self.assertTrue(received.complete)
        self.assertEqual(received.contacts, [good])
        self.assertTrue(any("invalid UTF-8" in message for message in logs.output))

    def test_deeply_nested_payload_is_skipped(self):
        good = ContactRecord(identity=ChatIdentity.parse("1@s.whatsapp.net"), push_name="al")
        nested = "[" * 100000 + "]" * 100000
        lines = [
            codec.encode_contact(good),
            'SetGroup\\\\{"jid":"1@g.us","metadata":{"x":' + nested + "}}\n",
            codec.encode_end(),
        ]

        with RawLineServer(lines) as raw:
            with self.assertLogs("wa_bridge.client", level="WARNING"):
                received = client.fetch_snapshot(raw.address, timeout_s=5.0)

        self.assertTrue(received.complete)
        self.assertEqual(received.contacts, [good])
        self.assertEqual(received.groups, [])

    def test_frames_after_end_are_ignored(self):
        late = ContactRecord(identity=ChatIdentity.parse("9@s.whatsapp.net"))
        with RawLineServer([codec.encode_end(), codec.encode_contact(late)]) as raw:
            received = client.fetch_snapshot(raw.address, timeout_s=5.0)
        self.assertTrue(received.complete)
        self.assertEqual(received.contacts, [])

    def test_unknown_tag_aborts_receive(self):
        with RawLineServer(["Hello\\\\{}\n", codec.encode_end()]) as raw:
            with self.assertRaises(UnknownFrameTagError):
                client.fetch_snapshot(raw.address, timeout_s=5.0)


class TestTransportErrors(unittest.TestCase):
    def test_connect_refused(self):
        probe = socket.create_server(("127.0.0.1", 0))
        address = probe.getsockname()[:2]
        probe.close()

        with self.assertRaises(ConnectError) as ctx:
            client.connect(address, timeout_s=2.0)
        self.assertEqual(ctx.exception.exit_code, 24)

    def test_bind_conflict(self):
        with server.listen(("127.0.0.1", 0)) as busy:
            with self.assertRaises(BindError) as ctx:
                server.listen(server.bound_address(busy))
        self.assertEqual(ctx.exception.exit_code, 22)

    def test_accept_timeout(self):
        with server.listen(("127.0.0.1", 0)) as listener:
            with self.assertRaises(AcceptError):
                server.accept(listener, timeout_s=0.1)

    def test_serve_once_closes_listener_after_accept_failure(self):
        with self.assertRaises(AcceptError):
            server.serve_once(("127.0.0.1", 0), _snapshot(), accept_timeout_s=0.1)


if __name__ == "__main__":
    unittest.main()
