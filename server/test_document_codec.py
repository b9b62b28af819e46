import unittest
from document_codec import encode_document, decode_document
from errors import ParseError

class TestDocumentCodec(unittest.TestCase):
    def test_encode_is_compact_and_keeps_field_order(self):
        doc = {"id": 1, "status": "available", "tags": [{"name": "dog"}]}
        self.assertEqual(encode_document(doc), '{"id":1,"status":"available","tags":[{"name":"dog"}]}')

        reordered = {"status": "sold", "id": 2}
        self.assertEqual(list(decode_document(encode_document(reordered)).keys()), ["status", "id"])

    def test_nested_values_and_unicode_survive(self):
        doc = {"id": 7, "name": "Café", "category": {"id": 1, "name": "cats"}, "photoUrls": ["a", "b"]}
        self.assertEqual(decode_document(encode_document(doc)), doc)

    def test_decode_accepts_bytes(self):
        self.assertEqual(decode_document(b'{"id":3}'), {"id": 3})

    def test_decode_rejects_invalid_json(self):
        with self.assertRaises(ParseError):
            decode_document("{not json")

    def test_decode_rejects_non_object(self):
        for raw in ("[1, 2]", "42", '"text"', "null"):
            with self.assertRaises(ParseError):
                decode_document(raw)

    def test_decode_rejects_non_string(self):
        with self.assertRaises(ParseError):
            decode_document(12)  # type: ignore

    def test_encode_rejects_non_mapping(self):
        with self.assertRaises(TypeError):
            encode_document([1, 2])  # type: ignore

if __name__ == "__main__":
    unittest.main()
