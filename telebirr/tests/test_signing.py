import base64

from django.test import SimpleTestCase

from telebirr import signing
from telebirr.exceptions import SigningError

from .helpers import OTHER_PRIVATE_PEM, PRIVATE_PEM, PUBLIC_PEM

FIELDS = {
    "appId": "app",
    "appKey": "secret",
    "nonce": "abc123",
    "notifyUrl": "https://pharmaflow.test/telebirr/callback",
    "outTradeNo": "SALE-1",
    "returnUrl": "https://pharmaflow.test/payment/return",
    "shortCode": "192321",
    "subject": "Payment for Paracetamol",
    "timeoutExpress": "30",
    "timestamp": "1700000000000",
    "totalAmount": "25.50",
}


def _pem_body(pem: str) -> str:
    return "".join(line for line in pem.splitlines() if not line.startswith("-----"))


class CanonicalStringTests(SimpleTestCase):
    def test_sorted_and_joined(self):
        self.assertEqual(signing.canonical_string({"b": "2", "a": "1", "C": "3"}), "C=3&a=1&b=2")

    def test_signature_fields_excluded(self):
        s = signing.canonical_string({"a": "1", "sign": "xyz", "sign_type": "SHA256WithRSA"})
        self.assertEqual(s, "a=1")

    def test_none_values_skipped(self):
        self.assertEqual(signing.canonical_string({"a": "1", "fabricAppId": None}), "a=1")


class SignTests(SimpleTestCase):
    def test_deterministic(self):
        self.assertEqual(signing.sign(FIELDS, PRIVATE_PEM), signing.sign(dict(FIELDS), PRIVATE_PEM))

    def test_key_order_does_not_matter(self):
        reversed_fields = dict(reversed(list(FIELDS.items())))
        self.assertEqual(signing.sign(FIELDS, PRIVATE_PEM), signing.sign(reversed_fields, PRIVATE_PEM))

    def test_existing_sign_field_ignored(self):
        self.assertEqual(
            signing.sign(FIELDS, PRIVATE_PEM),
            signing.sign({**FIELDS, "sign": "stale"}, PRIVATE_PEM),
        )

    def test_any_field_change_changes_signature(self):
        base = signing.sign(FIELDS, PRIVATE_PEM)
        for key in FIELDS:
            with self.subTest(field=key):
                changed = {**FIELDS, key: FIELDS[key] + "x"}
                self.assertNotEqual(signing.sign(changed, PRIVATE_PEM), base)

    def test_signature_is_base64_rsa_2048(self):
        raw = base64.b64decode(signing.sign(FIELDS, PRIVATE_PEM))
        self.assertEqual(len(raw), 256)

    def test_verify_round_trip(self):
        sig = signing.sign(FIELDS, PRIVATE_PEM)
        self.assertTrue(signing.verify(FIELDS, sig, PUBLIC_PEM))

    def test_verify_rejects_tampered_fields(self):
        sig = signing.sign(FIELDS, PRIVATE_PEM)
        self.assertFalse(signing.verify({**FIELDS, "totalAmount": "1.00"}, sig, PUBLIC_PEM))

    def test_verify_rejects_other_key(self):
        sig = signing.sign(FIELDS, OTHER_PRIVATE_PEM)
        self.assertFalse(signing.verify(FIELDS, sig, PUBLIC_PEM))

    def test_verify_rejects_garbage_signature(self):
        self.assertFalse(signing.verify(FIELDS, "not base64!!", PUBLIC_PEM))
        self.assertFalse(signing.verify(FIELDS, "", PUBLIC_PEM))

    def test_bare_base64_keys_accepted(self):
        sig = signing.sign(FIELDS, _pem_body(PRIVATE_PEM))
        self.assertTrue(signing.verify(FIELDS, sig, _pem_body(PUBLIC_PEM)))


class SigningErrorTests(SimpleTestCase):
    def test_missing_key(self):
        with self.assertRaises(SigningError):
            signing.sign(FIELDS, "")
        with self.assertRaises(SigningError):
            signing.sign(FIELDS, None)

    def test_malformed_key(self):
        with self.assertRaises(SigningError):
            signing.sign(FIELDS, "definitely-not-a-key")

    def test_public_key_cannot_sign(self):
        with self.assertRaises(SigningError):
            signing.sign(FIELDS, PUBLIC_PEM)
