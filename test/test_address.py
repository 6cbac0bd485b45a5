#!/usr/bin/env python3
import unittest

from xmpp_webhook.address import Address
from xmpp_webhook.errors import InvalidAddress


class TestAddress(unittest.TestCase):
    def test_parse_full_address(self):
        addr = Address.parse('alerts@example.com/relay')
        self.assertEqual(addr.local, 'alerts')
        self.assertEqual(addr.domain, 'example.com')
        self.assertEqual(addr.resource, 'relay')
        self.assertEqual(str(addr), 'alerts@example.com/relay')

    def test_bare_strips_resource(self):
        addr = Address.parse('a@b.com/phone')
        self.assertEqual(str(addr.bare()), 'a@b.com')
        self.assertIsNone(addr.bare().resource)
        # sem recurso, bare() devolve o próprio endereço
        bare = Address.parse('a@b.com')
        self.assertIs(bare.bare(), bare)

    def test_round_trip_bare_form(self):
        for text in ['a@b.com', 'ops.team@chat.example.org', 'example.org', 'joão@exemplo.com.br']:
            with self.subTest(text=text):
                self.assertEqual(str(Address.parse(text).bare()), text)
                self.assertEqual(str(Address.parse(text + '/res').bare()), text)

    def test_resource_may_contain_slash_and_at(self):
        addr = Address.parse('a@b.com/home/desk@2')
        self.assertEqual(addr.resource, 'home/desk@2')
        self.assertEqual(str(addr), 'a@b.com/home/desk@2')

    def test_domain_is_normalized(self):
        addr = Address.parse('a@Example.COM.')
        self.assertEqual(addr.domain, 'example.com')

    def test_same_bare_ignores_resource(self):
        addr = Address.parse('a@b.com/phone')
        self.assertTrue(addr.same_bare('a@b.com/laptop'))
        self.assertTrue(addr.same_bare(Address.parse('a@b.com')))
        self.assertFalse(addr.same_bare('c@b.com/phone'))
        self.assertNotEqual(addr, Address.parse('a@b.com/laptop'))

    def test_invalid_addresses(self):
        invalid = [
            '',
            '   ',
            '@example.com',
            'user@',
            'user@example.com/',
            'us er@example.com',
            'us"er@example.com',
            'user@exa mple.com',
            'a@b@c.com',
            'x' * 1024 + '@example.com',
            'user@a..b',
            'user@exa<mple.com',
            'user@-x.com',
            'us\x00er@b.com',
        ]
        for text in invalid:
            with self.subTest(text=text):
                with self.assertRaises(InvalidAddress):
                    Address.parse(text)

    def test_invalid_address_is_value_error(self):
        with self.assertRaises(ValueError):
            Address.parse('user@')


if __name__ == '__main__':
    unittest.main()
