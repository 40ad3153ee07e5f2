import threading
import unittest

from wa_bridge.records import ChatIdentity
from wa_tui.chat_buffer import ChatBufferStore, ChatLine

ALICE = ChatIdentity.parse("1@s.whatsapp.net")


class TestChatBufferStore(unittest.TestCase):
    def test_unknown_identity_is_empty(self):
        store = ChatBufferStore()
        self.assertEqual(store.lines(ChatIdentity.parse("404@s.whatsapp.net")), ())
        self.assertEqual(store.try_lines(ChatIdentity.parse("404@s.whatsapp.net")), ())

    def test_history_then_live_keeps_order(self):
        store = ChatBufferStore()
        history = [ChatLine("al", "one"), ChatLine("me", "two"), ChatLine("al", "three")]
        self.assertEqual(store.append_history_batch(ALICE, history), 3)
        store.append_line(ALICE, ChatLine("al", "four", "12:00"))

        self.assertEqual([line.body for line in store.lines(ALICE)], ["one", "two", "three", "four"])

    def test_history_batch_skips_unusable_entries(self):
        store = ChatBufferStore()
        batch = [ChatLine("al", "keep"), ChatLine("al", ""), None, "raw", ChatLine("", "no sender"), ChatLine("al", "also")]
        self.assertEqual(store.append_history_batch(ALICE, batch), 2)
        self.assertEqual([line.body for line in store.lines(ALICE)], ["keep", "also"])

    def test_lines_returns_a_snapshot(self):
        store = ChatBufferStore()
        store.append_line(ALICE, ChatLine("al", "first"))
        view = store.lines(ALICE)
        store.append_line(ALICE, ChatLine("al", "second"))
        self.assertEqual(len(view), 1)
        self.assertEqual(len(store.lines(ALICE)), 2)

    def test_try_lines_does_not_wait_for_writers(self):
        store = ChatBufferStore()
        store.append_line(ALICE, ChatLine("al", "x"))
        with store._lock:
            self.assertIsNone(store.try_lines(ALICE))
        self.assertEqual(len(store.try_lines(ALICE)), 1)

    def test_concurrent_appends_to_distinct_chats(self):
        store = ChatBufferStore()
        identities = [ChatIdentity(str(n), "s.whatsapp.net") for n in range(8)]
        start = threading.Barrier(len(identities))

        def writer(identity: ChatIdentity) -> None:
            start.wait()
            for i in range(100):
                store.append_line(identity, ChatLine("bot", f"{identity.user}-{i}"))
                store.lines(identity)

        threads = [threading.Thread(target=writer, args=(identity,)) for identity in identities]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10.0)

        for identity in identities:
            lines = store.lines(identity)
            self.assertEqual(len(lines), 100)
            self.assertEqual([line.body for line in lines], [f"{identity.user}-{i}" for i in range(100)])
        self.assertEqual(len(store), 800)
        self.assertEqual(store.identities(), sorted(identities))

    def test_render_with_and_without_timestamp(self):
        self.assertEqual(ChatLine("al", "hi").render(), "al: hi")
        self.assertEqual(ChatLine("al", "hi", "09:30").render(), "[09:30] al: hi")


if __name__ == "__main__":
    unittest.main()
