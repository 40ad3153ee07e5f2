import io
import json
import os
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from wa_bridge import cli, server
from wa_bridge.records import ChatIdentity, ContactRecord, GroupRecord, Snapshot


class TestBridgeCli(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.dict(os.environ, {}, clear=True)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_dump_prints_snapshot_as_json_lines(self):
        snapshot = Snapshot(
            contacts=[ContactRecord(identity=ChatIdentity.parse("1@s.whatsapp.net"), push_name="al")],
            groups=[GroupRecord(identity=ChatIdentity.parse("7@g.us"), name="Team")],
            complete=True,
        )
        listener = server.listen(("127.0.0.1", 0))
        host, port = server.bound_address(listener)
        thread = threading.Thread(target=server.serve_listener, args=(listener, snapshot, 5.0), daemon=True)
        thread.start()

        output = io.StringIO()
        code = cli.main(["dump", "--host", host, "--port", str(port)], output=output)
        thread.join(timeout=5.0)

        self.assertEqual(code, 0)
        rows = [json.loads(line) for line in output.getvalue().splitlines()]
        self.assertEqual([row["t"] for row in rows], ["contact", "group", "end"])
        self.assertEqual(rows[0]["jid"], "1@s.whatsapp.net")
        self.assertTrue(rows[2]["complete"])

    def test_serve_without_consumer_exits_with_accept_status(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "snapshot.json"
            path.write_text(json.dumps({"contacts": [], "groups": []}), encoding="utf-8")
            code = cli.main(
                ["serve", "--port", "0", "--accept-timeout", "0.1", "--snapshot-file", str(path)],
            )
        self.assertEqual(code, 23)

    def test_serve_with_missing_snapshot_file(self):
        code = cli.main(["serve", "--port", "0", "--snapshot-file", "/nonexistent/snapshot.json"])
        self.assertEqual(code, 20)

    def test_invalid_port_from_env(self):
        with mock.patch.dict(os.environ, {"WA_BRIDGE_PORT": "nope"}):
            code = cli.main(["dump"])
        self.assertEqual(code, 30)


if __name__ == "__main__":
    unittest.main()
