#!/usr/bin/env python3
import os
import sys
import unittest
from unittest.mock import Mock
from xml.etree import ElementTree

sys.path.insert(0, os.path.dirname(__file__))

from fake_session import RecordingSession  # noqa: E402
from xmpp_webhook.address import Address  # noqa: E402
from xmpp_webhook.dispatcher import InboundDispatcher  # noqa: E402
from xmpp_webhook.errors import ErrorSink, SessionError  # noqa: E402

RELAY = Address.parse('relay@b.com/xmpp-webhook')


def stanza(xml):
    return ElementTree.fromstring(xml)


class TestInboundDispatcher(unittest.TestCase):
    def setUp(self):
        self.session = RecordingSession()
        self.errors = ErrorSink()
        self.dispatcher = InboundDispatcher(self.session, RELAY, errors=self.errors)

    def test_chat_message_is_echoed_to_bare_sender(self):
        reply = self.dispatcher.handle(stanza(
            "<message xmlns='jabber:client' from='a@b.com/phone' to='relay@b.com' type='chat'>"
            "<body>ping</body></message>"
        ))
        self.assertEqual(len(self.session.deliveries), 1)
        delivery = self.session.deliveries[0]
        self.assertEqual(delivery, reply)
        self.assertEqual(delivery.sender, RELAY)
        self.assertEqual(str(delivery.to), 'a@b.com')
        self.assertEqual(delivery.text, 'ping')

    def test_empty_body_is_not_echoed(self):
        self.dispatcher.handle(stanza("<message from='a@b.com/phone' type='chat'><body></body></message>"))
        self.dispatcher.handle(stanza("<message from='a@b.com/phone' type='chat'/>"))
        self.assertEqual(self.session.deliveries, [])

    def test_non_chat_types_are_not_echoed(self):
        for kind in ['normal', 'groupchat', 'headline', 'error']:
            with self.subTest(kind=kind):
                self.dispatcher.handle(stanza(
                    f"<message from='a@b.com/phone' type='{kind}'><body>ping</body></message>"
                ))
        # sem type = 'normal'
        self.dispatcher.handle(stanza("<message from='a@b.com/phone'><body>ping</body></message>"))
        self.assertEqual(self.session.deliveries, [])

    def test_other_stanzas_are_ignored(self):
        for xml in [
            "<presence xmlns='jabber:client' from='a@b.com/phone'/>",
            "<iq xmlns='jabber:client' type='get' id='1' from='b.com'><ping xmlns='urn:xmpp:ping'/></iq>",
        ]:
            self.assertIsNone(self.dispatcher.handle(stanza(xml)))
        self.assertEqual(self.session.deliveries, [])
        self.assertEqual(self.errors.count(), 0)

    def test_decode_error_is_swallowed(self):
        self.assertIsNone(self.dispatcher.handle(stanza("<message type='chat'><body>ping</body></message>")))
        self.assertEqual(self.session.deliveries, [])
        self.assertEqual(self.errors.count('decode'), 1)

    def test_failed_echo_is_swallowed(self):
        session = RecordingSession(fail_for={'a@b.com'})
        dispatcher = InboundDispatcher(session, RELAY, errors=self.errors)
        dispatcher.handle(stanza("<message from='a@b.com/phone' type='chat'><body>ping</body></message>"))
        self.assertEqual(session.deliveries, [])
        self.assertEqual(self.errors.count('echo'), 1)

    def test_run_processes_stream_until_close(self):
        self.session.inbound.put(stanza("<message from='a@b.com/phone' type='chat'><body>one</body></message>"))
        self.session.inbound.put(stanza("<presence from='a@b.com/phone'/>"))
        self.session.inbound.put(stanza("<message from='c@b.com' type='chat'><body>two</body></message>"))
        self.session.close()
        self.dispatcher.start()
        self.dispatcher.join(timeout=5)
        self.assertFalse(self.dispatcher.is_alive())
        self.assertEqual([d.text for d in self.session.deliveries], ['one', 'two'])

    def test_stream_error_calls_on_fatal(self):
        on_fatal = Mock()
        dispatcher = InboundDispatcher(self.session, RELAY, errors=self.errors, on_fatal=on_fatal)
        error = SessionError('stream encerrado')
        self.session.inbound.put(error)
        dispatcher.start()
        dispatcher.join(timeout=5)
        on_fatal.assert_called_once_with(error)


if __name__ == '__main__':
    unittest.main()
