#!/usr/bin/env python3
import unittest
from xml.etree import ElementTree

from xmpp_webhook.errors import DecodeError
from xmpp_webhook.messages import AlertMessage, decode_message


def element(xml):
    return ElementTree.fromstring(xml)


class TestDecodeMessage(unittest.TestCase):
    def test_decode_chat_message_with_namespace(self):
        msg = decode_message(element(
            "<message xmlns='jabber:client' from='a@b.com/phone' to='relay@b.com' type='chat'>"
            "<body>ping</body></message>"
        ))
        self.assertEqual(str(msg.sender), 'a@b.com/phone')
        self.assertEqual(str(msg.to), 'relay@b.com')
        self.assertEqual(msg.type, 'chat')
        self.assertEqual(msg.body, 'ping')

    def test_defaults_for_missing_type_and_body(self):
        msg = decode_message(element("<message from='a@b.com'/>"))
        self.assertEqual(msg.type, 'normal')
        self.assertEqual(msg.body, '')
        self.assertIsNone(msg.to)

    def test_missing_or_invalid_from_is_decode_error(self):
        with self.assertRaises(DecodeError):
            decode_message(element("<message type='chat'><body>x</body></message>"))
        with self.assertRaises(DecodeError):
            decode_message(element("<message from='@b.com' type='chat'><body>x</body></message>"))

    def test_non_message_is_decode_error(self):
        with self.assertRaises(DecodeError):
            decode_message(element("<presence from='a@b.com'/>"))


class TestAlertMessage(unittest.TestCase):
    def test_recipients_become_tuple(self):
        msg = AlertMessage(text='disk full', recipients=['x@y.com', 'z@y.com'])
        self.assertEqual(msg.recipients, ('x@y.com', 'z@y.com'))

    def test_default_recipients_marker(self):
        self.assertIsNone(AlertMessage(text='disk full').recipients)


if __name__ == '__main__':
    unittest.main()
